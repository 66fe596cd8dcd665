"""Finds artifacts whose source unit is no longer part of the tree."""

from __future__ import annotations

from typing import List

from ..paths import to_artifact_path
from .base import ArtifactCheck, ValidationContext


class OrphanCheck(ArtifactCheck):
    """Reports orphans; deleting them is left to the caller."""

    name = "orphans"
    bucket = "orphaned_artifacts"

    def check(self, context: ValidationContext) -> List[str]:
        expected = {to_artifact_path(unit.path, unit.kind) for unit in context.units}
        return sorted(artifact for artifact in set(context.artifacts) if artifact not in expected)


__all__ = ["OrphanCheck"]
