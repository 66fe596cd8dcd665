"""Configuration loading for audoc (.audoc.yml)."""

from __future__ import annotations

from dataclasses import dataclass, field
from pathlib import Path
from typing import Any, Dict, List, Optional, Sequence

import yaml

CONFIG_FILENAME = ".audoc.yml"

DEFAULT_INCLUDE_PATTERNS = ("*.ts", "*.tsx", "*.js", "*.jsx", "*.py")
DEFAULT_SOURCE_IGNORE = ("*.test.ts", "*.spec.ts", "*.d.ts")
DEFAULT_STATE_DIR = ".audoc"


class ConfigError(RuntimeError):
    """Raised when the configuration file cannot be parsed."""


@dataclass
class ClassificationConfig:
    """Path segments that mark a source file as a service or utility module."""

    service_segments: List[str] = field(default_factory=lambda: ["services"])
    utility_segments: List[str] = field(default_factory=lambda: ["utils"])


@dataclass
class ScanConfig:
    """Tree scanning settings."""

    workers: int = 8
    source_ignore: List[str] = field(default_factory=lambda: list(DEFAULT_SOURCE_IGNORE))


@dataclass
class RunConfig:
    """Limits applied by the run orchestrator."""

    max_iterations: int = 50
    cycle_max_iterations: int = 30
    cycle_coverage_threshold: int = 95
    cycle_batch_size: int = 50


@dataclass
class AudocConfig:
    """Represents the settings defined in .audoc.yml."""

    root: Path
    include: List[str] = field(default_factory=lambda: list(DEFAULT_INCLUDE_PATTERNS))
    exclude_paths: List[str] = field(default_factory=list)
    classification: ClassificationConfig = field(default_factory=ClassificationConfig)
    scan: ScanConfig = field(default_factory=ScanConfig)
    run: RunConfig = field(default_factory=RunConfig)
    state_dir: str = DEFAULT_STATE_DIR

    @property
    def state_path(self) -> Path:
        return self.root / self.state_dir


def load_config(config_path: Path) -> AudocConfig:
    """Load configuration from disk, falling back to defaults when absent."""
    config_file = _resolve_config_path(Path(config_path))
    root = config_file.parent.resolve()

    if not config_file.exists():
        return AudocConfig(root=root)

    data = _read_config(config_file)
    if not isinstance(data, dict):
        raise ConfigError(f"{CONFIG_FILENAME} must contain a mapping at the root")

    config = AudocConfig(root=root)

    include = _as_str_list(data.get("include"))
    if include:
        config.include = include
    config.exclude_paths = _as_str_list(data.get("exclude_paths"))

    state_dir = _as_str(data.get("state_dir"))
    if state_dir:
        config.state_dir = state_dir.strip("/") or DEFAULT_STATE_DIR

    classification_data = _as_dict(data.get("classification"))
    if classification_data:
        if "service_segments" in classification_data:
            config.classification.service_segments = _as_str_list(
                classification_data.get("service_segments")
            )
        if "utility_segments" in classification_data:
            config.classification.utility_segments = _as_str_list(
                classification_data.get("utility_segments")
            )

    scan_data = _as_dict(data.get("scan"))
    if scan_data:
        workers = _as_int(scan_data.get("workers"))
        if workers is not None and workers > 0:
            config.scan.workers = workers
        if "source_ignore" in scan_data:
            config.scan.source_ignore = _as_str_list(scan_data.get("source_ignore"))

    run_data = _as_dict(data.get("run"))
    if run_data:
        for name in (
            "max_iterations",
            "cycle_max_iterations",
            "cycle_coverage_threshold",
            "cycle_batch_size",
        ):
            value = _as_int(run_data.get(name))
            if value is not None and value >= 0:
                setattr(config.run, name, value)
        config.run.cycle_coverage_threshold = max(0, min(100, config.run.cycle_coverage_threshold))

    return config


def _resolve_config_path(config_path: Path) -> Path:
    config_path = config_path.expanduser()
    if config_path.is_dir():
        return (config_path / CONFIG_FILENAME).resolve()
    if config_path.name != CONFIG_FILENAME:
        return (config_path.parent / CONFIG_FILENAME).resolve()
    return config_path.resolve()


def _read_config(path: Path) -> Dict[str, Any]:
    try:
        text = path.read_text(encoding="utf-8")
    except OSError as exc:
        raise ConfigError(f"Failed to read {path.name}: {exc}") from exc
    if not text.strip():
        return {}
    try:
        loaded = yaml.safe_load(text)
    except yaml.YAMLError as exc:
        raise ConfigError(f"Failed to parse {path.name}: {exc}") from exc
    return loaded if loaded is not None else {}


def _as_dict(value: Any) -> Dict[str, Any]:
    return value if isinstance(value, dict) else {}


def _as_str(value: Any) -> Optional[str]:
    return str(value) if isinstance(value, (str, int, float, bool)) else None


def _as_int(value: Any) -> Optional[int]:
    if isinstance(value, bool):
        return None
    if isinstance(value, int):
        return value
    if isinstance(value, str):
        try:
            return int(value)
        except ValueError:
            return None
    return None


def _as_str_list(value: Any) -> List[str]:
    if value is None:
        return []
    if isinstance(value, str):
        return [item.strip() for item in value.split(",") if item.strip()]
    if isinstance(value, Sequence):
        return [str(item) for item in value if isinstance(item, (str, int, float, bool))]
    return []


__all__ = [
    "AudocConfig",
    "ClassificationConfig",
    "ConfigError",
    "CONFIG_FILENAME",
    "DEFAULT_INCLUDE_PATTERNS",
    "DEFAULT_SOURCE_IGNORE",
    "RunConfig",
    "ScanConfig",
    "load_config",
]
