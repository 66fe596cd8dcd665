"""Ignore predicate combining .gitignore rules, .audoc.yml excludes and a fixed deny list."""

from __future__ import annotations

from dataclasses import dataclass
from fnmatch import fnmatchcase
from pathlib import Path
from typing import Iterable, List, Optional, Sequence

from .config import DEFAULT_STATE_DIR, AudocConfig, ConfigError, load_config
from .logging import get_logger
from .paths import ARTIFACT_SUFFIX, ROOT_ARTIFACT

EXCLUDED_DIRS = frozenset(
    {
        ".git",
        ".hg",
        ".svn",
        "node_modules",
        "dist",
        "build",
        ".next",
        ".cache",
        ".venv",
        "__pycache__",
        ".pytest_cache",
        ".mypy_cache",
        ".idea",
        DEFAULT_STATE_DIR,
    }
)

EXCLUDED_FILES = frozenset({".DS_Store", "Thumbs.db"})

logger = get_logger("file_filter")


@dataclass
class IgnoreRule:
    """Represents an ignore rule parsed from .gitignore or .audoc.yml."""

    pattern: str
    directory_only: bool
    anchored: bool
    negate: bool
    has_slash: bool

    def matches(self, rel_path: str, is_dir: bool) -> bool:
        if not self.pattern:
            return False
        if self.directory_only and not is_dir:
            return False

        if self.anchored or self.has_slash:
            return fnmatchcase(rel_path, self.pattern)

        name = rel_path.rsplit("/", 1)[-1]
        return fnmatchcase(name, self.pattern)


def build_ignore_rule(pattern: str, negate: bool = False) -> IgnoreRule | None:
    pattern = pattern.strip()
    if not pattern:
        return None

    directory_only = pattern.endswith("/")
    if directory_only:
        pattern = pattern.rstrip("/")

    anchored = pattern.startswith("/")
    if anchored:
        pattern = pattern.lstrip("/")

    if pattern.startswith("**/"):
        pattern = pattern[3:]

    has_slash = "/" in pattern
    return IgnoreRule(
        pattern=pattern,
        directory_only=directory_only,
        anchored=anchored,
        negate=negate,
        has_slash=has_slash,
    )


def parse_gitignore(text: str) -> List[IgnoreRule]:
    rules: List[IgnoreRule] = []
    for raw_line in text.splitlines():
        line = raw_line.strip()
        if not line or line.startswith("#"):
            continue
        negate = line.startswith("!")
        if negate:
            line = line[1:]
        rule = build_ignore_rule(line, negate=negate)
        if rule is not None:
            rules.append(rule)
    return rules


class FileFilter:
    """Decides whether a relative path belongs to the documented source tree.

    A path is rejected when it, or any directory above it, is ignored.
    Artifact files and the deny-listed directories are always rejected; the
    root itself is always accepted.
    """

    def __init__(
        self,
        root: Path,
        rules: Sequence[IgnoreRule] = (),
        *,
        excluded_dirs: Iterable[str] = EXCLUDED_DIRS,
    ) -> None:
        self.root = Path(root)
        self.rules = list(rules)
        self.excluded_dirs = frozenset(excluded_dirs)

    def accepts(self, path: str, is_dir: Optional[bool] = None) -> bool:
        relative = _relative(path)
        if not relative:
            return True

        parts = relative.split("/")
        for index in range(1, len(parts)):
            if self._rejects("/".join(parts[:index]), parts[index - 1], True):
                return False

        if is_dir is None:
            is_dir = (self.root / relative).is_dir()
        return not self._rejects(relative, parts[-1], is_dir)

    def is_excluded_dir(self, name: str) -> bool:
        return name in self.excluded_dirs

    def _rejects(self, relative: str, name: str, is_dir: bool) -> bool:
        if name == ROOT_ARTIFACT or name.endswith(ARTIFACT_SUFFIX):
            return True
        if is_dir and name in self.excluded_dirs:
            return True
        if not is_dir and name in EXCLUDED_FILES:
            return True
        ignored = False
        for rule in self.rules:
            if rule.matches(relative, is_dir):
                ignored = not rule.negate
        return ignored


def create_file_filter(root: Path, config: AudocConfig | None = None) -> FileFilter:
    """Build the filter for ``root`` from its .gitignore and .audoc.yml."""
    root = Path(root)
    rules = _load_gitignore(root / ".gitignore")

    if config is None:
        try:
            config = load_config(root)
        except ConfigError as exc:
            logger.warning("Ignoring unreadable configuration: %s", exc)
            config = None

    excluded_dirs = set(EXCLUDED_DIRS)
    if config is not None:
        for pattern in config.exclude_paths:
            rule = build_ignore_rule(pattern)
            if rule is not None:
                rules.append(rule)
        for pattern in config.scan.source_ignore:
            rule = build_ignore_rule(pattern)
            if rule is not None:
                rules.append(rule)
        excluded_dirs.add(config.state_dir.split("/")[0])

    return FileFilter(root, rules, excluded_dirs=excluded_dirs)


def _load_gitignore(path: Path) -> List[IgnoreRule]:
    try:
        text = path.read_text(encoding="utf-8")
    except FileNotFoundError:
        return []
    except (OSError, UnicodeDecodeError) as exc:
        logger.warning("Could not read %s: %s", path, exc)
        return []
    return parse_gitignore(text)


def _relative(path: str) -> str:
    relative = path.replace("\\", "/")
    while relative.startswith("./"):
        relative = relative[2:]
    relative = relative.strip("/")
    return "" if relative == "." else relative


__all__ = [
    "EXCLUDED_DIRS",
    "FileFilter",
    "IgnoreRule",
    "build_ignore_rule",
    "create_file_filter",
    "parse_gitignore",
]
