"""Tests for audoc.file_filter."""

from __future__ import annotations

from pathlib import Path

from audoc.config import AudocConfig
from audoc.file_filter import FileFilter, create_file_filter, parse_gitignore


def test_root_is_always_accepted(tmp_path: Path) -> None:
    file_filter = FileFilter(tmp_path, parse_gitignore("*\n"))

    assert file_filter.accepts(".")
    assert file_filter.accepts("")


def test_hard_deny_list(tmp_path: Path) -> None:
    file_filter = FileFilter(tmp_path)

    assert not file_filter.accepts("node_modules/lib/index.js", is_dir=False)
    assert not file_filter.accepts(".git", is_dir=True)
    assert not file_filter.accepts("src/index.ts.au", is_dir=False)
    assert not file_filter.accepts("src/.au", is_dir=False)
    assert file_filter.accepts("src/index.ts", is_dir=False)


def test_gitignore_directory_rules_cover_descendants(tmp_path: Path) -> None:
    (tmp_path / ".gitignore").write_text("generated/\n*.log\n!keep.log\n/local.ts\n", encoding="utf-8")
    file_filter = create_file_filter(tmp_path)

    assert not file_filter.accepts("generated/api.ts", is_dir=False)
    assert not file_filter.accepts("src/generated", is_dir=True)
    assert not file_filter.accepts("debug.log", is_dir=False)
    assert file_filter.accepts("keep.log", is_dir=False)
    assert not file_filter.accepts("local.ts", is_dir=False)
    assert file_filter.accepts("src/local.ts", is_dir=False)


def test_directory_only_rule_ignores_same_named_file(tmp_path: Path) -> None:
    file_filter = FileFilter(tmp_path, parse_gitignore("cache/\n"))

    assert file_filter.accepts("cache", is_dir=False)
    assert not file_filter.accepts("cache", is_dir=True)


def test_config_excludes_and_source_ignores(tmp_path: Path) -> None:
    config = AudocConfig(root=tmp_path, exclude_paths=["vendor/"], state_dir=".state")
    file_filter = create_file_filter(tmp_path, config)

    assert not file_filter.accepts("vendor/lib.ts", is_dir=False)
    assert not file_filter.accepts("src/app.test.ts", is_dir=False)
    assert not file_filter.accepts("types/index.d.ts", is_dir=False)
    assert not file_filter.accepts(".state", is_dir=True)
    assert file_filter.accepts("src/app.ts", is_dir=False)


def test_unreadable_config_falls_back_to_gitignore_only(tmp_path: Path) -> None:
    (tmp_path / ".audoc.yml").write_text("include: [unclosed\n", encoding="utf-8")
    file_filter = create_file_filter(tmp_path)

    assert file_filter.accepts("src/app.ts", is_dir=False)
    assert not file_filter.accepts(".audoc", is_dir=True)
