"""Core validation data structures shared by the artifact checks."""

from __future__ import annotations

from concurrent.futures import ThreadPoolExecutor
from dataclasses import dataclass, field
from pathlib import Path
from typing import Dict, Iterable, List, Mapping, Optional, Protocol, Sequence

from ..classification import UnitClass, classify_unit
from ..config import ClassificationConfig
from ..documents import ArtifactDocument, FieldPresence, ParseResult, check_fields, parse_document
from ..file_filter import FileFilter
from ..logging import get_logger
from ..models import ContentsIssue, FileIssue, ParseIssue, SourceUnit, StaleReference, UnitKind
from ..paths import to_artifact_path

logger = get_logger("validators")


@dataclass
class ArtifactRecord:
    """Everything the checks need to know about one unit's artifact, read once."""

    unit: SourceUnit
    artifact: str
    unit_class: UnitClass
    exists: bool = False
    parse: Optional[ParseResult] = None
    presence: Optional[FieldPresence] = None
    source_bytes: Optional[bytes] = None

    @property
    def documented(self) -> bool:
        """The artifact exists and parses as a structured document."""
        return self.exists and self.parse is not None and self.parse.ok

    @property
    def complete(self) -> bool:
        return self.documented and self.presence is not None and self.presence.complete

    @property
    def document(self) -> Optional[ArtifactDocument]:
        if self.parse is None or not self.parse.ok:
            return None
        return self.parse.document


@dataclass
class ValidationContext:
    """Shared, read-only view handed to every check."""

    root: Path
    units: Sequence[SourceUnit]
    artifacts: Sequence[str]
    records: Mapping[str, ArtifactRecord]
    file_filter: FileFilter

    def unit_paths(self) -> set[str]:
        return {unit.path for unit in self.units}

    def iter_documents(self) -> Iterable[tuple[ArtifactRecord, ArtifactDocument]]:
        for path in sorted(self.records):
            record = self.records[path]
            document = record.document
            if document is not None:
                yield record, document


@dataclass
class ValidationResult:
    """Merged, deterministically ordered findings of one validation pass."""

    records: Dict[str, ArtifactRecord] = field(default_factory=dict)
    stale_files: List[str] = field(default_factory=list)
    incomplete_files: List[FileIssue] = field(default_factory=list)
    parse_errors: List[ParseIssue] = field(default_factory=list)
    stale_references: List[StaleReference] = field(default_factory=list)
    contents_issues: List[ContentsIssue] = field(default_factory=list)
    orphaned_artifacts: List[str] = field(default_factory=list)

    @property
    def documented(self) -> set[str]:
        return {path for path, record in self.records.items() if record.documented}


class ArtifactCheck(Protocol):
    """Protocol implemented by artifact checks.

    ``bucket`` names the :class:`ValidationResult` list the findings extend.
    """

    name: str
    bucket: str

    def check(self, context: ValidationContext) -> List[object]:
        """Run the check and return its findings, already sorted."""


def build_records(
    root: Path,
    units: Sequence[SourceUnit],
    artifacts: Iterable[str],
    *,
    classification: ClassificationConfig | None = None,
    workers: int = 8,
) -> Dict[str, ArtifactRecord]:
    """Read every unit's artifact (and file source) once, on a bounded pool."""
    classification = classification or ClassificationConfig()
    existing = set(artifacts)

    def _load(unit: SourceUnit) -> ArtifactRecord:
        artifact = to_artifact_path(unit.path, unit.kind)
        record = ArtifactRecord(
            unit=unit,
            artifact=artifact,
            unit_class=classify_unit(
                unit,
                service_segments=classification.service_segments,
                utility_segments=classification.utility_segments,
            ),
        )
        if artifact not in existing:
            return record
        try:
            text = (root / artifact).read_bytes().decode("utf-8", errors="replace")
        except OSError as exc:
            logger.debug("Treating %s as missing: %s", artifact, exc)
            return record
        record.exists = True
        record.parse = parse_document(text)
        if record.parse.ok:
            record.presence = check_fields(record.parse.document or {}, record.unit_class)
        if unit.kind is UnitKind.FILE:
            try:
                record.source_bytes = (root / unit.path).read_bytes()
            except OSError as exc:
                logger.debug("Could not read source %s: %s", unit.path, exc)
        return record

    with ThreadPoolExecutor(max_workers=max(1, workers)) as pool:
        loaded = list(pool.map(_load, units))
    return {record.unit.path: record for record in loaded}


__all__ = [
    "ArtifactCheck",
    "ArtifactRecord",
    "ValidationContext",
    "ValidationResult",
    "build_records",
]
