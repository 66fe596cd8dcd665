"""Detects file artifacts written against an older version of their source."""

from __future__ import annotations

from typing import List

from ..documents import source_fingerprint, stored_fingerprint
from ..models import UnitKind
from .base import ArtifactCheck, ValidationContext


class FreshnessCheck(ArtifactCheck):
    name = "freshness"
    bucket = "stale_files"

    def check(self, context: ValidationContext) -> List[str]:
        stale: List[str] = []
        for record, document in context.iter_documents():
            if record.unit.kind is not UnitKind.FILE or record.source_bytes is None:
                continue
            stored = stored_fingerprint(document)
            # Artifacts without a marker predate fingerprinting; not judged.
            if stored is None:
                continue
            if stored != source_fingerprint(record.source_bytes):
                stale.append(record.unit.path)
        return stale


__all__ = ["FreshnessCheck"]
