"""Required-field and parse checks."""

from __future__ import annotations

from typing import List

from ..documents import REQUIRED_FIELDS
from ..models import FileIssue, ParseIssue
from .base import ArtifactCheck, ValidationContext


class CompletenessCheck(ArtifactCheck):
    """Flags parsed artifacts missing one or more required fields."""

    name = "completeness"
    bucket = "incomplete_files"

    def check(self, context: ValidationContext) -> List[FileIssue]:
        issues: List[FileIssue] = []
        for record, _document in context.iter_documents():
            presence = record.presence
            if presence is None:
                missing = tuple(spec.name for spec in REQUIRED_FIELDS[record.unit_class])
            else:
                missing = presence.missing
            if missing:
                issues.append(FileIssue(path=record.unit.path, missing=missing))
        return issues


class ParseCheck(ArtifactCheck):
    """Reports artifacts that exist but are not structured documents."""

    name = "parse"
    bucket = "parse_errors"

    def check(self, context: ValidationContext) -> List[ParseIssue]:
        issues: List[ParseIssue] = []
        for path in sorted(context.records):
            record = context.records[path]
            if record.exists and record.parse is not None and record.parse.error is not None:
                issues.append(ParseIssue(path=path, detail=str(record.parse.error)))
        return issues


__all__ = ["CompletenessCheck", "ParseCheck"]
