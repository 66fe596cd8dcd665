"""Worker protocols, turn payloads and worker discovery.

A worker is the external agent that reads sources and writes artifacts. The
orchestrator drives it one turn at a time and never relies on exceptions for
completion: each turn returns an explicit :class:`TurnStatus`.
"""

from __future__ import annotations

import importlib
from dataclasses import dataclass, field
from enum import Enum
from importlib import metadata
from pathlib import Path
from typing import TYPE_CHECKING, Iterable, List, Optional, Protocol, runtime_checkable

from .models import CoverageSnapshot, WriteEvent

if TYPE_CHECKING:  # pragma: no cover - typing aid
    from .progress import ProgressCounts
    from .stores.artifacts import ArtifactStore
    from .stores.manifest import Manifest

_ENTRY_POINT_GROUP = "audoc.workers"


class WorkerLoadError(RuntimeError):
    """Raised when a worker specification cannot be resolved."""


class TurnStatus(str, Enum):
    CONTINUE = "continue"
    COMPLETE = "complete"
    FAILED = "failed"


@dataclass
class TurnContext:
    """What the worker is told at the start of an ingest turn."""

    iteration: int
    root: Path
    store: "ArtifactStore"
    counts: "ProgressCounts"
    progress_percent: int
    pending_items: List[str]
    outstanding: List[str]
    snapshot: CoverageSnapshot


@dataclass
class TurnResult:
    events: List[WriteEvent] = field(default_factory=list)
    status: TurnStatus = TurnStatus.CONTINUE
    message: str = ""


@dataclass
class CycleTurnContext:
    """What the worker is told at the start of a cycle turn."""

    cycle: int
    iteration: int
    root: Path
    targets: List[str]
    consumed: frozenset
    remaining: List[str]
    expected_files: Optional[int] = None
    manifest: Optional["Manifest"] = None


@dataclass
class CycleTurnResult:
    read_files: List[str] = field(default_factory=list)
    status: TurnStatus = TurnStatus.CONTINUE
    message: str = ""


@runtime_checkable
class DocumentationWorker(Protocol):
    def run_turn(self, context: TurnContext) -> TurnResult:
        """Document some pending units and report the writes made."""


@runtime_checkable
class CycleWorker(Protocol):
    def run_cycle_turn(self, context: CycleTurnContext) -> CycleTurnResult:
        """Consume some of the cycle's target files and report which."""


def load_worker(spec: str) -> object:
    """Resolve ``module:attribute`` or an ``audoc.workers`` entry point name."""
    spec = (spec or "").strip()
    if not spec:
        raise WorkerLoadError("No worker specified")

    if ":" in spec:
        module_name, _, attribute = spec.partition(":")
        try:
            target: object = importlib.import_module(module_name)
        except ImportError as exc:
            raise WorkerLoadError(f"Cannot import worker module '{module_name}': {exc}") from exc
        for part in attribute.split("."):
            try:
                target = getattr(target, part)
            except AttributeError as exc:
                raise WorkerLoadError(f"Worker '{spec}' not found") from exc
        return _coerce_worker(spec, target)

    for entry in _iter_entry_points():
        if entry.name != spec:
            continue
        try:
            loaded = entry.load()
        except Exception as exc:  # pragma: no cover - third-party plugin guard
            raise WorkerLoadError(f"Failed to load worker entry point '{spec}': {exc}") from exc
        return _coerce_worker(spec, loaded)

    known = ", ".join(sorted(entry.name for entry in _iter_entry_points())) or "none"
    raise WorkerLoadError(f"Unknown worker '{spec}' (installed: {known})")


def _coerce_worker(spec: str, obj: object) -> object:
    if _is_worker(obj) and not isinstance(obj, type):
        return obj
    if callable(obj):
        instance = obj()
        if _is_worker(instance):
            return instance
    raise WorkerLoadError(
        f"Worker '{spec}' must provide run_turn() or run_cycle_turn(), or be a factory for one"
    )


def _is_worker(obj: object) -> bool:
    return isinstance(obj, (DocumentationWorker, CycleWorker))


def _iter_entry_points() -> Iterable[metadata.EntryPoint]:
    return metadata.entry_points().select(group=_ENTRY_POINT_GROUP)


__all__ = [
    "CycleTurnContext",
    "CycleTurnResult",
    "CycleWorker",
    "DocumentationWorker",
    "TurnContext",
    "TurnResult",
    "TurnStatus",
    "WorkerLoadError",
    "load_worker",
]
