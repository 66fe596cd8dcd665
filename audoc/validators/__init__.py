"""Validation package for `.au` artifacts."""

from __future__ import annotations

from dataclasses import astuple, is_dataclass
from pathlib import Path
from typing import Callable, List, Optional, Sequence

from ..config import ClassificationConfig
from ..file_filter import FileFilter, create_file_filter
from ..logging import get_logger
from ..tree_scanner import ScanResult
from .base import (
    ArtifactCheck,
    ArtifactRecord,
    ValidationContext,
    ValidationResult,
    build_records,
)
from .completeness import CompletenessCheck, ParseCheck
from .contents import ContentsCheck
from .freshness import FreshnessCheck
from .orphans import OrphanCheck
from .references import ReferenceCheck

logger = get_logger("validators")


def default_checks() -> List[ArtifactCheck]:
    return [
        ParseCheck(),
        CompletenessCheck(),
        FreshnessCheck(),
        ReferenceCheck(),
        ContentsCheck(),
        OrphanCheck(),
    ]


class ArtifactValidator:
    """Runs every check over one scan and merges the findings."""

    def __init__(
        self,
        checks: Optional[Sequence[ArtifactCheck]] = None,
        *,
        classification: ClassificationConfig | None = None,
        workers: int = 8,
        filter_factory: Callable[[Path], FileFilter] = create_file_filter,
    ) -> None:
        self.checks = list(checks) if checks is not None else default_checks()
        self.classification = classification or ClassificationConfig()
        self.workers = workers
        self._filter_factory = filter_factory

    def validate(self, base: Path | str, scan: ScanResult) -> ValidationResult:
        root = Path(base).expanduser().resolve()
        records = build_records(
            root,
            scan.units,
            scan.artifacts,
            classification=self.classification,
            workers=self.workers,
        )
        context = ValidationContext(
            root=root,
            units=scan.units,
            artifacts=scan.artifacts,
            records=records,
            file_filter=self._filter_factory(root),
        )
        result = ValidationResult(records=records)
        for check in self.checks:
            findings = check.check(context)
            getattr(result, check.bucket).extend(sorted(findings, key=_sort_key))
            if findings:
                logger.debug("%s: %d findings", check.name, len(findings))
        return result


def _sort_key(finding: object) -> tuple:
    if is_dataclass(finding):
        return tuple(str(value) for value in astuple(finding))
    return (str(finding),)


__all__ = [
    "ArtifactCheck",
    "ArtifactRecord",
    "ArtifactValidator",
    "CompletenessCheck",
    "ContentsCheck",
    "FreshnessCheck",
    "OrphanCheck",
    "ParseCheck",
    "ReferenceCheck",
    "ValidationContext",
    "ValidationResult",
    "default_checks",
]
