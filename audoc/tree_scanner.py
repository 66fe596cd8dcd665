"""Walks a source tree and enumerates documentable units and existing artifacts."""

from __future__ import annotations

import os
from dataclasses import dataclass, field
from fnmatch import fnmatchcase
from pathlib import Path
from typing import Callable, List, Optional, Sequence

from .config import DEFAULT_INCLUDE_PATTERNS
from .file_filter import FileFilter, create_file_filter
from .logging import get_logger
from .models import SourceUnit, UnitKind
from .paths import ROOT_PATH, is_artifact_path, parent_directories

FilterFactory = Callable[[Path], FileFilter]

logger = get_logger("tree_scanner")


@dataclass
class ScanResult:
    """Units and artifacts discovered beneath ``root``."""

    root: Path
    units: List[SourceUnit] = field(default_factory=list)
    artifacts: List[str] = field(default_factory=list)

    @property
    def files(self) -> List[SourceUnit]:
        return [unit for unit in self.units if unit.kind is UnitKind.FILE]

    @property
    def directories(self) -> List[SourceUnit]:
        return [unit for unit in self.units if unit.kind is UnitKind.DIRECTORY]


class TreeScanner:
    """Enumerate source units according to include patterns and ignore rules."""

    def __init__(self, filter_factory: FilterFactory = create_file_filter) -> None:
        self._filter_factory = filter_factory

    def scan(self, base: Path | str, include_patterns: Optional[Sequence[str]] = None) -> ScanResult:
        root = Path(base).expanduser().resolve()
        if not root.exists():
            raise FileNotFoundError(f"Source root not found: {root}")
        if not root.is_dir():
            raise NotADirectoryError(f"Source root is not a directory: {root}")
        # os.walk hides listing errors, so an unreadable root would scan as empty.
        with os.scandir(root):
            pass

        patterns = list(include_patterns or DEFAULT_INCLUDE_PATTERNS)
        file_filter = self._filter_factory(root)

        files = list(self._iter_source_files(root, patterns, file_filter))
        units: List[SourceUnit] = []
        seen_directories: set[str] = set()
        for rel_path in files:
            for directory in parent_directories(rel_path):
                if directory in seen_directories:
                    continue
                seen_directories.add(directory)
                units.append(SourceUnit(directory, UnitKind.DIRECTORY))
            units.append(SourceUnit(rel_path, UnitKind.FILE))

        if units:
            units.insert(0, SourceUnit(ROOT_PATH, UnitKind.ROOT))

        artifacts = list(self._iter_artifacts(root, file_filter))
        logger.debug(
            "Scanned %s: %d files, %d directories, %d artifacts",
            root,
            len(files),
            len(seen_directories),
            len(artifacts),
        )
        return ScanResult(root=root, units=units, artifacts=artifacts)

    def _iter_source_files(self, root: Path, patterns: Sequence[str], file_filter: FileFilter):
        for dirpath, dirnames, filenames in os.walk(root):
            rel_dir = _relative_dir(root, dirpath)
            dirnames[:] = sorted(
                name
                for name in dirnames
                if file_filter.accepts(_join(rel_dir, name), is_dir=True)
            )
            for filename in sorted(filenames):
                rel_path = _join(rel_dir, filename)
                if is_artifact_path(filename):
                    continue
                if not matches_include(rel_path, patterns):
                    continue
                if not file_filter.accepts(rel_path, is_dir=False):
                    continue
                try:
                    size = os.stat(os.path.join(dirpath, filename)).st_size
                except OSError as exc:
                    logger.debug("Skipping %s: %s", rel_path, exc)
                    continue
                if size == 0:
                    continue
                yield rel_path

    def _iter_artifacts(self, root: Path, file_filter: FileFilter):
        for dirpath, dirnames, filenames in os.walk(root):
            rel_dir = _relative_dir(root, dirpath)
            dirnames[:] = sorted(name for name in dirnames if not file_filter.is_excluded_dir(name))
            for filename in sorted(filenames):
                if is_artifact_path(filename):
                    yield _join(rel_dir, filename)


def matches_include(rel_path: str, patterns: Sequence[str]) -> bool:
    """Patterns without a slash match the basename, others the relative path."""
    name = rel_path.rsplit("/", 1)[-1]
    for pattern in patterns:
        pattern = pattern.strip()
        if not pattern:
            continue
        if pattern.startswith("**/"):
            pattern = pattern[3:]
        if "/" in pattern:
            if fnmatchcase(rel_path, pattern):
                return True
        elif fnmatchcase(name, pattern):
            return True
    return False


def _relative_dir(root: Path, dirpath: str) -> str:
    relative = os.path.relpath(dirpath, root).replace(os.sep, "/")
    return "" if relative == "." else relative


def _join(rel_dir: str, name: str) -> str:
    return f"{rel_dir}/{name}" if rel_dir else name


__all__ = ["ScanResult", "TreeScanner", "matches_include"]
