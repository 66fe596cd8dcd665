"""Live progress tracking for a single documentation run."""

from __future__ import annotations

from dataclasses import dataclass
from typing import Dict, List, Set

from .logging import get_logger
from .models import CoverageSnapshot, WriteEvent, percent
from .paths import PathMappingError, normalize

logger = get_logger("progress")


@dataclass(frozen=True)
class ProgressCounts:
    total: int
    documented: int
    pending: int


class ProgressTracker:
    """Seeded from a snapshot, then updated from worker write events.

    One tracker belongs to one run; :meth:`init` discards any previous state.
    """

    def __init__(self) -> None:
        self._all_items: List[str] = []
        self._known: Set[str] = set()
        self._documented: Set[str] = set()
        self._stale: Set[str] = set()
        self._incomplete: Dict[str, tuple] = {}

    def init(self, snapshot: CoverageSnapshot) -> None:
        self._all_items = [unit.path for unit in snapshot.units]
        self._known = set(self._all_items)
        self._documented = {path for path in snapshot.documented if path in self._known}
        self._stale = set(snapshot.stale_files)
        self._incomplete = {issue.path: issue.missing for issue in snapshot.incomplete_files}

    def mark_documented(self, path: str) -> None:
        """Record ``path`` as documented; unknown or malformed paths are ignored."""
        try:
            normalized = normalize(path)
        except PathMappingError:
            logger.debug("Ignoring malformed path %r", path)
            return
        if normalized in self._known:
            self._documented.add(normalized)

    def record_success(self, event: WriteEvent) -> None:
        self.mark_documented(event.unit_path)
        try:
            normalized = normalize(event.unit_path)
        except PathMappingError:
            return
        self._stale.discard(normalized)
        self._incomplete.pop(normalized, None)

    def get_pending_items(self, limit: int = 10) -> List[str]:
        pending = [path for path in self._all_items if path not in self._documented]
        return pending[: max(0, limit)]

    def get_counts(self) -> ProgressCounts:
        total = len(self._all_items)
        documented = len(self._documented)
        return ProgressCounts(total=total, documented=documented, pending=total - documented)

    def get_progress_percent(self) -> int:
        counts = self.get_counts()
        return percent(counts.documented, counts.total)

    def outstanding_issues(self) -> List[str]:
        """Units still stale or incomplete since the snapshot, sorted."""
        return sorted(self._stale | set(self._incomplete))

    def is_complete(self) -> bool:
        return self.get_counts().pending == 0 and not self._stale and not self._incomplete


__all__ = ["ProgressCounts", "ProgressTracker"]
