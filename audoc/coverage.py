"""Aggregates scan and validation results into an immutable coverage snapshot."""

from __future__ import annotations

from pathlib import Path
from typing import List, Optional, Sequence

from .config import AudocConfig, load_config
from .file_filter import create_file_filter
from .logging import get_logger
from .models import CoverageSnapshot
from .tree_scanner import TreeScanner
from .validators import ArtifactValidator

logger = get_logger("coverage")


class CoverageAggregator:
    """Scan, validate and summarise a source tree in one call.

    Configuration is read from the tree's ``.audoc.yml`` on every collect
    unless an explicit :class:`AudocConfig` is supplied.
    """

    def __init__(self, config: AudocConfig | None = None) -> None:
        self._config = config

    def collect(
        self,
        base: Path | str,
        *,
        include_patterns: Optional[Sequence[str]] = None,
    ) -> CoverageSnapshot:
        root = Path(base).expanduser().resolve()
        if not root.exists():
            raise FileNotFoundError(f"Source root not found: {root}")
        if not root.is_dir():
            raise NotADirectoryError(f"Source root is not a directory: {root}")
        config = self._config or load_config(root)

        def filter_factory(path: Path):
            return create_file_filter(path, config)

        scan = TreeScanner(filter_factory).scan(root, include_patterns or config.include)
        result = ArtifactValidator(
            classification=config.classification,
            workers=config.scan.workers,
            filter_factory=filter_factory,
        ).validate(root, scan)

        documented = result.documented
        pending: List[str] = [unit.path for unit in scan.units if unit.path not in documented]
        queued = set(pending)
        for path in [*result.stale_files, *(issue.path for issue in result.incomplete_files)]:
            if path not in queued:
                queued.add(path)
                pending.append(path)

        snapshot = CoverageSnapshot(
            root=str(root),
            units=tuple(scan.units),
            documented=frozenset(documented),
            pending_items=tuple(pending),
            stale_files=tuple(result.stale_files),
            incomplete_files=tuple(result.incomplete_files),
            parse_errors=tuple(result.parse_errors),
            stale_references=tuple(result.stale_references),
            contents_issues=tuple(result.contents_issues),
            orphaned_artifacts=tuple(result.orphaned_artifacts),
            artifacts=tuple(sorted(scan.artifacts)),
        )
        logger.info(
            "Coverage %d%% (%d/%d documented, %d pending, %d issues)",
            snapshot.coverage_percent,
            snapshot.documented_items,
            snapshot.total_items,
            len(snapshot.pending_items),
            snapshot.issue_count,
        )
        return snapshot


__all__ = ["CoverageAggregator"]
