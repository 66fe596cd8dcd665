"""Tests for audoc.config."""

from __future__ import annotations

from pathlib import Path

import pytest

from audoc.config import (
    DEFAULT_INCLUDE_PATTERNS,
    DEFAULT_SOURCE_IGNORE,
    AudocConfig,
    ConfigError,
    load_config,
)


def test_load_config_returns_defaults_when_missing(tmp_path: Path) -> None:
    config = load_config(tmp_path)

    assert isinstance(config, AudocConfig)
    assert config.root == tmp_path.resolve()
    assert config.include == list(DEFAULT_INCLUDE_PATTERNS)
    assert config.exclude_paths == []
    assert config.scan.source_ignore == list(DEFAULT_SOURCE_IGNORE)
    assert config.scan.workers == 8
    assert config.classification.service_segments == ["services"]
    assert config.classification.utility_segments == ["utils"]
    assert config.run.max_iterations == 50
    assert config.state_dir == ".audoc"
    assert config.state_path == tmp_path.resolve() / ".audoc"


def test_load_config_parses_expected_fields(tmp_path: Path) -> None:
    config_file = tmp_path / ".audoc.yml"
    config_file.write_text(
        """
include: ["*.go", "*.rs"]
exclude_paths:
  - "sandbox/"
state_dir: ".state/"
classification:
  service_segments: [services, handlers]
  utility_segments: []
scan:
  workers: 2
  source_ignore: "*_test.go, *.gen.go"
run:
  max_iterations: 5
  cycle_max_iterations: 7
  cycle_coverage_threshold: 150
  cycle_batch_size: "20"
""",
        encoding="utf-8",
    )

    config = load_config(config_file)

    assert config.include == ["*.go", "*.rs"]
    assert config.exclude_paths == ["sandbox/"]
    assert config.state_dir == ".state"
    assert config.classification.service_segments == ["services", "handlers"]
    assert config.classification.utility_segments == []
    assert config.scan.workers == 2
    assert config.scan.source_ignore == ["*_test.go", "*.gen.go"]
    assert config.run.max_iterations == 5
    assert config.run.cycle_max_iterations == 7
    assert config.run.cycle_coverage_threshold == 100
    assert config.run.cycle_batch_size == 20


def test_load_config_ignores_invalid_numbers(tmp_path: Path) -> None:
    (tmp_path / ".audoc.yml").write_text(
        "scan:\n  workers: 0\nrun:\n  max_iterations: lots\n", encoding="utf-8"
    )

    config = load_config(tmp_path)

    assert config.scan.workers == 8
    assert config.run.max_iterations == 50


def test_load_config_accepts_a_sibling_file_path(tmp_path: Path) -> None:
    (tmp_path / ".audoc.yml").write_text("include: ['*.py']\n", encoding="utf-8")

    config = load_config(tmp_path / "setup.cfg")

    assert config.include == ["*.py"]


def test_empty_config_file_uses_defaults(tmp_path: Path) -> None:
    (tmp_path / ".audoc.yml").write_text("\n", encoding="utf-8")

    assert load_config(tmp_path).include == list(DEFAULT_INCLUDE_PATTERNS)


@pytest.mark.parametrize("text", ["include: [unclosed\n", "- just\n- a list\n"])
def test_load_config_rejects_malformed_yaml(tmp_path: Path, text: str) -> None:
    (tmp_path / ".audoc.yml").write_text(text, encoding="utf-8")

    with pytest.raises(ConfigError):
        load_config(tmp_path)
