"""Tests for the freshness check."""

from __future__ import annotations

from audoc.validators import ArtifactValidator
from tests._fixtures.repo_builder import COMPLETE_FILE, RepoBuilder


def test_changed_source_marks_artifact_stale(repo_builder: RepoBuilder) -> None:
    repo_builder.write({"src/index.ts": "export {};\n"})
    repo_builder.write_artifact("src/index.ts", COMPLETE_FILE)

    fresh = ArtifactValidator().validate(repo_builder.path(), repo_builder.scan())
    assert fresh.stale_files == []

    repo_builder.write({"src/index.ts": "export const changed = true;\n"})
    stale = ArtifactValidator().validate(repo_builder.path(), repo_builder.scan())

    assert stale.stale_files == ["src/index.ts"]
    assert stale.records["src/index.ts"].documented


def test_artifact_without_fingerprint_is_not_judged(repo_builder: RepoBuilder) -> None:
    repo_builder.write(
        {
            "src/index.ts": "export {};\n",
            "src/index.ts.au": "layer: core\nunderstanding:\n  summary: s\n  purpose: p\n",
        }
    )

    result = ArtifactValidator().validate(repo_builder.path(), repo_builder.scan())

    assert result.stale_files == []
