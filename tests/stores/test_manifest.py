"""Tests for manifest loading, cycle targets and output registration."""

from __future__ import annotations

import json
from pathlib import Path

from audoc.stores import ManifestStore
from audoc.stores.manifest import verify_cycle_coverage


def _write_manifest(root: Path, payload: dict) -> ManifestStore:
    store = ManifestStore.for_root(root)
    store.path.parent.mkdir(parents=True, exist_ok=True)
    store.path.write_text(json.dumps(payload), encoding="utf-8")
    return store


def _touch(root: Path, *paths: str) -> None:
    for relative in paths:
        target = root / relative
        target.parent.mkdir(parents=True, exist_ok=True)
        target.write_text("x\n", encoding="utf-8")


def test_load_missing_or_corrupt_manifest_returns_none(tmp_path: Path) -> None:
    store = ManifestStore.for_root(tmp_path)
    assert store.load() is None

    store.path.parent.mkdir(parents=True)
    store.path.write_text("[1, 2", encoding="utf-8")
    assert store.load() is None


def test_cycle_lookup_accepts_prefixed_and_bare_keys(tmp_path: Path) -> None:
    store = _write_manifest(
        tmp_path,
        {
            "version": 2,
            "cycles": {"cycle1": {"name": "context"}, "2": {"name": "structure"}},
            "statistics": {"totalFiles": 10},
        },
    )

    manifest = store.load()

    assert manifest is not None
    assert manifest.version == 2
    assert manifest.cycle(1).name == "context"
    assert manifest.cycle(2).name == "structure"
    assert manifest.cycle(3) is None
    assert manifest.statistics.total_files == 10
    assert manifest.statistics.relevant_files is None


def test_files_for_cycle_prefers_directory_patterns(tmp_path: Path) -> None:
    _touch(tmp_path, "src/a.ts", "src/b.ts", "src/b.test.ts", "docs/readme.md", "lib/extra.ts")
    store = _write_manifest(
        tmp_path,
        {
            "directories": [
                {"path": "src", "cycles": {"cycle1": {"patterns": ["*.ts"]}}},
                {"path": "docs", "cycles": {"cycle2": {"patterns": ["*.md"]}}},
            ],
            "cycles": {"cycle1": {"files": ["lib/extra.ts", "lib/missing.ts"]}},
        },
    )

    assert store.files_for_cycle(tmp_path, 1) == ["lib/extra.ts", "src/a.ts", "src/b.ts"]
    assert store.files_for_cycle(tmp_path, 1, max_files=2) == ["lib/extra.ts", "src/a.ts"]


def test_files_for_cycle_falls_back_to_source_files(tmp_path: Path) -> None:
    _touch(tmp_path, "src/a.ts", "src/nested/b.ts")
    store = _write_manifest(
        tmp_path,
        {"cycles": {"cycle3": {"sourceFiles": ["./src/**/*.ts", "src/a.ts"], "files": ["ignored.ts"]}}},
    )

    assert store.files_for_cycle(tmp_path, 3) == ["src/a.ts", "src/nested/b.ts"]
    assert store.files_for_cycle(tmp_path, 4) == []


def test_sync_outputs_registers_new_files_only(tmp_path: Path) -> None:
    store = _write_manifest(
        tmp_path,
        {"cycles": {"cycle2": {"expectedOutputs": ["structure/existing.sysml"]}}},
    )
    outputs = tmp_path / ".sysml"
    _touch(
        outputs,
        "structure/existing.sysml",
        "structure/_index.sysml",
        "structure/parts/new.sysml",
        "structure/notes.txt",
    )

    added = store.sync_outputs(2, outputs)

    assert added == ["structure/parts/new.sysml"]
    manifest = store.load()
    assert manifest is not None
    assert manifest.cycle(2).expected_outputs == [
        "structure/existing.sysml",
        "structure/parts/new.sysml",
    ]
    assert store.sync_outputs(2, outputs) == []


def test_sync_outputs_without_cycle_entry_is_noop(tmp_path: Path) -> None:
    store = _write_manifest(tmp_path, {"cycles": {}})
    _touch(tmp_path / ".sysml", "context/a.sysml")

    assert store.sync_outputs(1, tmp_path / ".sysml") == []


def test_verify_cycle_coverage_reports_missing() -> None:
    coverage = verify_cycle_coverage(1, ["./a.ts", "b.ts"], ["a.ts", "b.ts", "c.ts"])

    assert coverage.target_files == 3
    assert coverage.read_files == 2
    assert coverage.percentage == 67
    assert coverage.missing == ["c.ts"]


def test_verify_cycle_coverage_with_no_targets_is_full() -> None:
    coverage = verify_cycle_coverage(1, [], [])

    assert coverage.percentage == 100
    assert coverage.missing == []


def test_binary_manifest_returns_none(tmp_path: Path) -> None:
    store = ManifestStore.for_root(tmp_path)
    store.path.parent.mkdir(parents=True)
    store.path.write_bytes(b"\xff\xfe\x00\x81")

    assert store.load() is None


def test_entries_outside_the_root_are_skipped(tmp_path: Path) -> None:
    root = tmp_path / "repo"
    _touch(root, "src/a.ts")
    _touch(tmp_path, "outside/secret.ts")
    outside = (tmp_path / "outside").as_posix()
    store = _write_manifest(
        root,
        {
            "cycles": {
                "cycle1": {
                    "sourceFiles": [f"{outside}/*.ts", "../outside/*.ts", "src/*.ts"],
                },
                "cycle2": {"files": [f"{outside}/secret.ts", "../outside/secret.ts", "src/a.ts"]},
            }
        },
    )

    assert store.files_for_cycle(root, 1) == ["src/a.ts"]
    assert store.files_for_cycle(root, 2) == ["src/a.ts"]
