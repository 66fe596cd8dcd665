"""Tests for the merged validator run."""

from __future__ import annotations

from pathlib import Path

import pytest

from audoc.validators import ArtifactValidator
from audoc.validators.base import ValidationResult
from tests._fixtures.repo_builder import COMPLETE_FILE, RepoBuilder

_BUCKETS = (
    "stale_files",
    "incomplete_files",
    "parse_errors",
    "stale_references",
    "contents_issues",
    "orphaned_artifacts",
)


def _buckets(result: ValidationResult) -> dict:
    return {name: list(getattr(result, name)) for name in _BUCKETS}


def _mixed_tree(repo_builder: RepoBuilder) -> None:
    repo_builder.write({f"src/mod{index:02d}.ts": f"export const v = {index};\n" for index in range(24)})
    for index in range(0, 24, 2):
        repo_builder.write_artifact(f"src/mod{index:02d}.ts", COMPLETE_FILE)
    repo_builder.write(
        {
            "src/mod01.ts.au": "layer: core\n",
            "src/mod03.ts.au": "layer: [unclosed\n",
            "src/gone.ts.au": "layer: core\n",
            "lib/old.ts.au": "layer: core\n",
            "src/mod04.ts": "export const changed = true;\n",
        }
    )


def test_worker_count_does_not_change_findings(repo_builder: RepoBuilder) -> None:
    _mixed_tree(repo_builder)
    scan = repo_builder.scan()

    serial = ArtifactValidator(workers=1).validate(repo_builder.path(), scan)
    parallel = ArtifactValidator(workers=8).validate(repo_builder.path(), scan)

    assert _buckets(serial) == _buckets(parallel)
    assert serial.documented == parallel.documented
    assert serial.stale_files == ["src/mod04.ts"]
    assert [issue.path for issue in serial.parse_errors] == ["src/mod03.ts"]
    assert serial.orphaned_artifacts == ["lib/old.ts.au", "src/gone.ts.au"]


def test_artifact_removed_after_scan_counts_as_missing(repo_builder: RepoBuilder) -> None:
    repo_builder.write({"src/index.ts": "export {};\n"})
    repo_builder.write_artifact("src/index.ts", COMPLETE_FILE)
    scan = repo_builder.scan()
    (repo_builder.path() / "src" / "index.ts.au").unlink()

    result = ArtifactValidator().validate(repo_builder.path(), scan)

    assert "src/index.ts" not in result.documented
    assert result.parse_errors == []
    assert result.incomplete_files == []


def test_unreadable_artifact_counts_as_missing(repo_builder: RepoBuilder, monkeypatch: pytest.MonkeyPatch) -> None:
    repo_builder.write({"src/index.ts": "export {};\n", "src/util.ts": "export const x = 1;\n"})
    repo_builder.write_artifact("src/index.ts", COMPLETE_FILE)
    repo_builder.write_artifact("src/util.ts", COMPLETE_FILE)
    real_read_bytes = Path.read_bytes

    def _read_bytes(self: Path) -> bytes:
        if self.name == "index.ts.au":
            raise PermissionError(13, "Permission denied", str(self))
        return real_read_bytes(self)

    monkeypatch.setattr(Path, "read_bytes", _read_bytes)

    result = ArtifactValidator().validate(repo_builder.path(), repo_builder.scan())

    assert result.documented >= {"src/util.ts"}
    assert "src/index.ts" not in result.documented
    assert result.parse_errors == []
