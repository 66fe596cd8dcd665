"""Core data models shared across audoc components."""

from __future__ import annotations

from dataclasses import dataclass, field
from enum import Enum
from typing import FrozenSet, List, Tuple


class UnitKind(str, Enum):
    """Kind of source unit an artifact describes."""

    FILE = "file"
    DIRECTORY = "directory"
    ROOT = "repository"


@dataclass(frozen=True)
class SourceUnit:
    """A file or directory of the source tree, or the implicit root."""

    path: str
    kind: UnitKind

    @property
    def is_root(self) -> bool:
        return self.kind is UnitKind.ROOT

    @property
    def is_directory(self) -> bool:
        return self.kind in (UnitKind.DIRECTORY, UnitKind.ROOT)


@dataclass(frozen=True)
class WriteEvent:
    """Emitted after a worker successfully writes an artifact."""

    unit_path: str
    is_new: bool
    byte_delta: int


@dataclass(frozen=True)
class FileIssue:
    """An artifact missing one or more required fields."""

    path: str
    missing: Tuple[str, ...]

    @property
    def issues(self) -> List[str]:
        return [f"missing {name}" for name in self.missing]


@dataclass(frozen=True)
class ParseIssue:
    """An artifact that could not be parsed as a structured document."""

    path: str
    detail: str


@dataclass(frozen=True)
class StaleReference:
    """A cross-artifact reference that no longer resolves."""

    artifact: str
    field: str
    ref: str


@dataclass(frozen=True)
class ContentsIssue:
    """A directory artifact whose `contents` disagrees with the directory on disk."""

    artifact: str
    missing: Tuple[str, ...]
    extra: Tuple[str, ...]

    @property
    def size(self) -> int:
        return len(self.missing) + len(self.extra)


@dataclass(frozen=True)
class CoverageSnapshot:
    """Immutable result of one coverage scan."""

    root: str
    units: Tuple[SourceUnit, ...]
    documented: FrozenSet[str]
    pending_items: Tuple[str, ...]
    stale_files: Tuple[str, ...] = ()
    incomplete_files: Tuple[FileIssue, ...] = ()
    parse_errors: Tuple[ParseIssue, ...] = ()
    stale_references: Tuple[StaleReference, ...] = ()
    contents_issues: Tuple[ContentsIssue, ...] = ()
    orphaned_artifacts: Tuple[str, ...] = ()
    artifacts: Tuple[str, ...] = field(default=(), repr=False)

    @property
    def total_items(self) -> int:
        return len(self.units)

    @property
    def documented_items(self) -> int:
        return sum(1 for unit in self.units if unit.path in self.documented)

    @property
    def coverage_percent(self) -> int:
        return percent(self.documented_items, self.total_items)

    @property
    def issue_count(self) -> int:
        return (
            len(self.stale_files)
            + len(self.incomplete_files)
            + len(self.parse_errors)
            + len(self.stale_references)
            + sum(issue.size for issue in self.contents_issues)
            + len(self.orphaned_artifacts)
        )

    @property
    def has_work(self) -> bool:
        return bool(self.pending_items) or self.issue_count > 0

    def to_dict(self) -> dict:
        """Return a JSON-serialisable summary."""
        return {
            "root": self.root,
            "totalItems": self.total_items,
            "documentedItems": self.documented_items,
            "coveragePercent": self.coverage_percent,
            "hasWork": self.has_work,
            "issueCount": self.issue_count,
            "pendingItems": list(self.pending_items),
            "staleFiles": list(self.stale_files),
            "incompleteFiles": [
                {"path": issue.path, "missing": list(issue.missing)}
                for issue in self.incomplete_files
            ],
            "parseErrors": [
                {"path": issue.path, "detail": issue.detail} for issue in self.parse_errors
            ],
            "staleReferences": [
                {"artifact": ref.artifact, "field": ref.field, "ref": ref.ref}
                for ref in self.stale_references
            ],
            "contentsIssues": [
                {
                    "artifact": issue.artifact,
                    "missing": list(issue.missing),
                    "extra": list(issue.extra),
                }
                for issue in self.contents_issues
            ],
            "orphanedArtifacts": list(self.orphaned_artifacts),
        }


def percent(part: int, total: int) -> int:
    """Whole-number percentage rounded half up; 100 for an empty total."""
    if total <= 0:
        return 100
    return (part * 200 + total) // (total * 2)


__all__ = [
    "ContentsIssue",
    "CoverageSnapshot",
    "FileIssue",
    "ParseIssue",
    "SourceUnit",
    "StaleReference",
    "UnitKind",
    "WriteEvent",
    "percent",
]
