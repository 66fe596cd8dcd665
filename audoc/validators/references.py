"""Cross-artifact reference resolution."""

from __future__ import annotations

from typing import Any, Iterator, List, Mapping, Tuple

from ..models import StaleReference
from ..paths import PathMappingError, ROOT_PATH, strip_reference
from .base import ArtifactCheck, ValidationContext

# (section, list key, entry key) triples holding references.
REFERENCE_FIELDS: Tuple[Tuple[str, str, str], ...] = (
    ("relationships", "depends_on", "ref"),
    ("understanding", "collaborates_with", "path"),
)


class ReferenceCheck(ArtifactCheck):
    """Every reference must name a known unit or an existing path under the root."""

    name = "references"
    bucket = "stale_references"

    def check(self, context: ValidationContext) -> List[StaleReference]:
        known = context.unit_paths()
        stale: List[StaleReference] = []
        for record, document in context.iter_documents():
            for field_name, ref in iter_references(document):
                if not self._resolves(context, known, ref):
                    stale.append(StaleReference(artifact=record.artifact, field=field_name, ref=ref))
        return stale

    @staticmethod
    def _resolves(context: ValidationContext, known: set[str], ref: str) -> bool:
        try:
            target = strip_reference(ref)
        except PathMappingError:
            return False
        if target in known or target == ROOT_PATH:
            return True
        return (context.root / target).exists()


def iter_references(document: Mapping[str, Any]) -> Iterator[Tuple[str, str]]:
    """Yield ``(dotted field, reference)`` pairs found in ``document``."""
    for section, key, entry_key in REFERENCE_FIELDS:
        container = document.get(section)
        if not isinstance(container, Mapping):
            continue
        entries = container.get(key)
        if not isinstance(entries, list):
            continue
        for entry in entries:
            if isinstance(entry, Mapping):
                value = entry.get(entry_key)
            else:
                value = entry
            if isinstance(value, str) and value.strip():
                yield f"{section}.{key}", value.strip()


__all__ = ["REFERENCE_FIELDS", "ReferenceCheck", "iter_references"]
