"""Read access to the discovery manifest that assigns source files to cycles."""

from __future__ import annotations

import json
import os
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any, Dict, Iterable, List, Mapping, Optional, Sequence, Set

from ..config import DEFAULT_STATE_DIR
from ..file_filter import FileFilter, create_file_filter
from ..logging import get_logger
from ..models import percent
from ..paths import PathMappingError, normalize
from .cycle_state import phase_key

MANIFEST_FILENAME = "_manifest.json"

CYCLE_OUTPUT_DIRS: Dict[int, str] = {
    1: "context",
    2: "structure",
    3: "data",
    4: "behavior",
    5: "verification",
    6: "analysis",
}

_GLOB_CHARS = ("*", "?", "[")

logger = get_logger("stores.manifest")


@dataclass
class DirectoryAssignment:
    path: str
    purpose: str = ""
    cycles: Dict[str, List[str]] = field(default_factory=dict)


@dataclass
class ManifestCycle:
    name: str = ""
    files: List[str] = field(default_factory=list)
    source_files: List[str] = field(default_factory=list)
    expected_outputs: List[str] = field(default_factory=list)


@dataclass
class ManifestStatistics:
    total_files: Optional[int] = None
    relevant_files: Optional[int] = None


@dataclass
class CycleCoverage:
    """How much of a cycle's target file list the worker actually consumed."""

    target_files: int
    read_files: int
    percentage: int
    missing: List[str] = field(default_factory=list)


@dataclass
class Manifest:
    """Parsed manifest; ``raw`` keeps the document for lossless write-back."""

    version: int
    discovered_at: str
    project: Dict[str, Any]
    directories: List[DirectoryAssignment]
    cycles: Dict[str, ManifestCycle]
    statistics: ManifestStatistics
    raw: Dict[str, Any] = field(default_factory=dict, repr=False)

    def cycle(self, number: int | str) -> Optional[ManifestCycle]:
        """Look up ``cycle<N>`` first, then the bare ``<N>`` key."""
        key = phase_key(number)
        if key in self.cycles:
            return self.cycles[key]
        bare = key[len("cycle"):] if key.startswith("cycle") else key
        return self.cycles.get(bare)

    def directory_patterns(self, number: int | str) -> List[tuple[str, List[str]]]:
        key = phase_key(number)
        result: List[tuple[str, List[str]]] = []
        for directory in self.directories:
            patterns = directory.cycles.get(key)
            if patterns:
                result.append((directory.path, list(patterns)))
        return result

    def expected_file_count(self, number: int | str) -> Optional[int]:
        cycle = self.cycle(number)
        if cycle is None:
            return None
        if cycle.source_files:
            return len(set(cycle.source_files))
        if cycle.files:
            return len(cycle.files)
        return None


class ManifestStore:
    """Loads ``_manifest.json`` and performs the one write this package makes to it."""

    def __init__(self, path: Path) -> None:
        self.path = Path(path)

    @classmethod
    def for_root(cls, root: Path, state_dir: str = DEFAULT_STATE_DIR) -> "ManifestStore":
        return cls(Path(root) / state_dir / MANIFEST_FILENAME)

    def load(self) -> Optional[Manifest]:
        try:
            data = json.loads(self.path.read_bytes().decode("utf-8"))
        except FileNotFoundError:
            return None
        except (OSError, UnicodeDecodeError, json.JSONDecodeError) as exc:
            logger.warning("Ignoring unreadable manifest %s: %s", self.path, exc)
            return None
        if not isinstance(data, dict):
            logger.warning("Ignoring manifest %s: root is not an object", self.path)
            return None
        return _manifest_from_dict(data)

    def files_for_cycle(
        self,
        root: Path,
        number: int | str,
        max_files: int = 50,
        file_filter: FileFilter | None = None,
    ) -> List[str]:
        """Resolve the source files a cycle should read.

        Directory assignments win, merged with the cycle's literal ``files``;
        otherwise ``sourceFiles`` and finally ``files`` are expanded.
        """
        manifest = self.load()
        if manifest is None:
            return []
        root = Path(root)
        file_filter = file_filter or create_file_filter(root)
        cycle = manifest.cycle(number)

        dir_patterns = manifest.directory_patterns(number)
        if dir_patterns:
            found: Set[str] = set()
            for directory, patterns in dir_patterns:
                for pattern in patterns:
                    found.update(_expand_glob(root, f"{directory.rstrip('/')}/{pattern}", file_filter))
            if cycle is not None and cycle.files:
                found.update(_expand_entries(root, cycle.files, file_filter))
            return sorted(found)[:max_files]

        if cycle is None:
            return []
        if cycle.source_files:
            return sorted(set(_expand_entries(root, cycle.source_files, file_filter)))[:max_files]
        if cycle.files:
            return sorted(set(_expand_entries(root, cycle.files, file_filter)))[:max_files]
        return []

    def sync_outputs(self, number: int, outputs_root: Path, suffix: str = ".sysml") -> List[str]:
        """Register output files found on disk in the cycle's ``expectedOutputs``.

        Returns the newly added entries; the manifest is only rewritten when
        something was added.
        """
        manifest = self.load()
        if manifest is None:
            return []
        key = phase_key(number)
        digits = key[len("cycle"):] if key.startswith("cycle") else key
        raw_cycles = manifest.raw.get("cycles")
        if not isinstance(raw_cycles, dict):
            return []
        if key not in raw_cycles:
            key = digits
        raw_cycle = raw_cycles.get(key)
        output_dir = CYCLE_OUTPUT_DIRS.get(int(digits)) if digits.isdigit() else None
        if not isinstance(raw_cycle, dict) or output_dir is None:
            return []

        current = set(_as_str_list(raw_cycle.get("expectedOutputs")))
        added: List[str] = []
        for output in _scan_outputs(Path(outputs_root) / output_dir, output_dir, suffix):
            if output.rsplit("/", 1)[-1] == f"_index{suffix}":
                continue
            if output not in current:
                current.add(output)
                added.append(output)

        if added:
            raw_cycle["expectedOutputs"] = sorted(current)
            self._write(manifest.raw)
            logger.info("Registered %d new outputs for %s", len(added), key)
        return sorted(added)

    def _write(self, data: Mapping[str, Any]) -> None:
        self.path.parent.mkdir(parents=True, exist_ok=True)
        tmp = self.path.with_suffix(self.path.suffix + ".tmp")
        tmp.write_text(json.dumps(data, indent=2), encoding="utf-8")
        tmp.replace(self.path)


def verify_cycle_coverage(
    cycle: int | str,
    read: Iterable[str],
    targets: Sequence[str],
    threshold: int = 95,
) -> CycleCoverage:
    consumed = {_strip_dot(path) for path in read}
    missing = [target for target in targets if _strip_dot(target) not in consumed]
    target_count = len(targets)
    read_count = target_count - len(missing)
    percentage = percent(read_count, target_count)
    if percentage < threshold:
        logger.warning(
            "%s coverage: %d%% (%d/%d files) - below %d%% threshold",
            phase_key(cycle),
            percentage,
            read_count,
            target_count,
            threshold,
        )
        if missing:
            logger.info("Missing files (first 10): %s", ", ".join(missing[:10]))
    return CycleCoverage(
        target_files=target_count,
        read_files=read_count,
        percentage=percentage,
        missing=missing,
    )


def _manifest_from_dict(data: Mapping[str, Any]) -> Manifest:
    directories: List[DirectoryAssignment] = []
    for entry in data.get("directories") or []:
        if not isinstance(entry, dict) or not isinstance(entry.get("path"), str):
            continue
        cycles: Dict[str, List[str]] = {}
        raw_cycles = entry.get("cycles")
        if isinstance(raw_cycles, dict):
            for key, assignment in raw_cycles.items():
                if isinstance(assignment, dict):
                    cycles[str(key)] = _as_str_list(assignment.get("patterns"))
        directories.append(
            DirectoryAssignment(
                path=entry["path"],
                purpose=str(entry.get("purpose") or ""),
                cycles=cycles,
            )
        )

    cycles: Dict[str, ManifestCycle] = {}
    raw_cycles = data.get("cycles")
    if isinstance(raw_cycles, dict):
        for key, payload in raw_cycles.items():
            if not isinstance(payload, dict):
                continue
            cycles[str(key)] = ManifestCycle(
                name=str(payload.get("name") or ""),
                files=_as_str_list(payload.get("files")),
                source_files=_as_str_list(payload.get("sourceFiles")),
                expected_outputs=_as_str_list(payload.get("expectedOutputs")),
            )

    stats = data.get("statistics") if isinstance(data.get("statistics"), dict) else {}
    version = data.get("version")
    project = data.get("project")
    return Manifest(
        version=version if isinstance(version, int) else 1,
        discovered_at=str(data.get("discoveredAt") or ""),
        project=project if isinstance(project, dict) else {},
        directories=directories,
        cycles=cycles,
        statistics=ManifestStatistics(
            total_files=stats.get("totalFiles") if isinstance(stats.get("totalFiles"), int) else None,
            relevant_files=stats.get("relevantFiles") if isinstance(stats.get("relevantFiles"), int) else None,
        ),
        raw=dict(data),
    )


def _expand_entries(root: Path, entries: Iterable[str], file_filter: FileFilter) -> List[str]:
    found: List[str] = []
    for entry in entries:
        if any(char in entry for char in _GLOB_CHARS):
            found.extend(_expand_glob(root, entry, file_filter))
            continue
        relative = _relative_entry(entry)
        if relative is None:
            continue
        if (root / relative).is_file() and file_filter.accepts(relative, is_dir=False):
            found.append(relative)
    return found


def _expand_glob(root: Path, pattern: str, file_filter: FileFilter) -> List[str]:
    matches: List[str] = []
    relative_pattern = _relative_entry(pattern)
    if relative_pattern is None:
        return matches
    try:
        candidates = list(root.glob(relative_pattern))
    except (ValueError, OSError, NotImplementedError) as exc:
        logger.debug("Skipping glob %s: %s", pattern, exc)
        return matches
    for candidate in candidates:
        if not candidate.is_file():
            continue
        relative = candidate.relative_to(root).as_posix()
        if file_filter.accepts(relative, is_dir=False):
            matches.append(relative)
    return matches


def _scan_outputs(directory: Path, prefix: str, suffix: str) -> List[str]:
    outputs: List[str] = []
    if not directory.is_dir():
        return outputs
    for dirpath, dirnames, filenames in os.walk(directory):
        dirnames.sort()
        relative = os.path.relpath(dirpath, directory).replace(os.sep, "/")
        base = prefix if relative == "." else f"{prefix}/{relative}"
        for filename in sorted(filenames):
            if filename.endswith(suffix):
                outputs.append(f"{base}/{filename}")
    return outputs


def _relative_entry(entry: str) -> Optional[str]:
    """Entries must stay inside the root; absolute and ``..`` paths are dropped."""
    try:
        relative = normalize(entry)
    except PathMappingError as exc:
        logger.debug("Skipping manifest entry %r: %s", entry, exc)
        return None
    return None if relative == "." else relative


def _as_str_list(value: Any) -> List[str]:
    if not isinstance(value, list):
        return []
    return [item for item in value if isinstance(item, str)]


def _strip_dot(path: str) -> str:
    return path[2:] if path.startswith("./") else path


__all__ = [
    "CYCLE_OUTPUT_DIRS",
    "CycleCoverage",
    "DirectoryAssignment",
    "MANIFEST_FILENAME",
    "Manifest",
    "ManifestCycle",
    "ManifestStatistics",
    "ManifestStore",
    "verify_cycle_coverage",
]
