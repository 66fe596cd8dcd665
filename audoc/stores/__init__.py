"""Persistence for artifacts, cycle state and the discovery manifest."""

from .artifacts import ArtifactStore
from .cycle_state import CycleStateStore
from .manifest import Manifest, ManifestStore

__all__ = ["ArtifactStore", "CycleStateStore", "Manifest", "ManifestStore"]
