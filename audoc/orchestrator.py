"""Run orchestration: the per-file ingest loop and the per-cycle pipeline."""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from enum import Enum
from pathlib import Path
from typing import List, Optional, Sequence

from .config import AudocConfig, ConfigError, load_config
from .coverage import CoverageAggregator
from .logging import get_logger
from .models import CoverageSnapshot
from .paths import PathMappingError, normalize
from .progress import ProgressCounts, ProgressTracker
from .stores.artifacts import ArtifactStore
from .stores.cycle_state import CycleStateStore
from .stores.manifest import (
    CYCLE_OUTPUT_DIRS,
    CycleCoverage,
    Manifest,
    ManifestStore,
    verify_cycle_coverage,
)
from .workers import (
    CycleTurnContext,
    CycleWorker,
    DocumentationWorker,
    TurnContext,
    TurnStatus,
)

DEFAULT_OUTPUTS_DIR = ".sysml"


class RunState(str, Enum):
    SCANNING = "scanning"
    VALIDATED = "validated"
    DISPATCHING = "dispatching"
    PROGRESS_UPDATED = "progress_updated"
    DONE = "done"
    ABORTED = "aborted"
    EXHAUSTED = "exhausted"

    @property
    def terminal(self) -> bool:
        return self in (RunState.DONE, RunState.ABORTED, RunState.EXHAUSTED)


@dataclass
class RunOutcome:
    """Result of an ingest run."""

    state: RunState
    iterations: int
    snapshot: Optional[CoverageSnapshot]
    counts: Optional[ProgressCounts] = None
    message: str = ""
    history: List[RunState] = field(default_factory=list)


@dataclass
class CycleOutcome:
    cycle: int
    state: RunState
    iterations: int
    consumed: List[str]
    coverage: CycleCoverage
    outputs_added: List[str] = field(default_factory=list)
    message: str = ""


@dataclass
class CyclesOutcome:
    state: RunState
    cycles: List[CycleOutcome] = field(default_factory=list)


class Orchestrator:
    """Coordinates scans, the worker and the trackers for one run at a time."""

    def __init__(
        self,
        aggregator_factory=CoverageAggregator,
        config: AudocConfig | None = None,
    ) -> None:
        self._aggregator_factory = aggregator_factory
        self._config = config
        self.logger = get_logger("orchestrator")

    # ------------------------------------------------------------------
    # Ingest

    def collect(self, path: str | Path, *, include_patterns: Optional[Sequence[str]] = None) -> CoverageSnapshot:
        root = Path(path).expanduser().resolve()
        config = self._resolve_config(root)
        return self._aggregator_factory(config).collect(root, include_patterns=include_patterns)

    def run_ingest(
        self,
        path: str | Path,
        worker: DocumentationWorker,
        *,
        include_patterns: Optional[Sequence[str]] = None,
        max_iterations: Optional[int] = None,
        purge: bool = False,
    ) -> RunOutcome:
        """Drive ``worker`` until nothing is pending, it fails, or the cap is hit."""
        root = Path(path).expanduser().resolve()
        config = self._resolve_config(root)
        limit = config.run.max_iterations if max_iterations is None else max_iterations
        store = ArtifactStore(root)
        aggregator = self._aggregator_factory(config)
        history: List[RunState] = []

        self.logger.info("Starting ingest run for %s", root)
        if purge:
            store.purge()

        self._enter(history, RunState.SCANNING)
        snapshot = aggregator.collect(root, include_patterns=include_patterns)
        self._enter(history, RunState.VALIDATED)
        tracker = ProgressTracker()
        tracker.init(snapshot)

        iteration = 0
        while snapshot.has_work:
            if iteration >= limit:
                self._enter(history, RunState.SCANNING)
                snapshot = aggregator.collect(root, include_patterns=include_patterns)
                if not snapshot.has_work:
                    break
                self._enter(history, RunState.EXHAUSTED)
                self.logger.warning(
                    "Iteration limit %d reached with %d items pending", limit, len(snapshot.pending_items)
                )
                return RunOutcome(
                    state=RunState.EXHAUSTED,
                    iterations=iteration,
                    snapshot=snapshot,
                    counts=ProgressCounts(
                        snapshot.total_items,
                        snapshot.documented_items,
                        snapshot.total_items - snapshot.documented_items,
                    ),
                    message=f"Stopped after {iteration} iterations",
                    history=history,
                )

            iteration += 1
            self._enter(history, RunState.DISPATCHING)
            context = TurnContext(
                iteration=iteration,
                root=root,
                store=store,
                counts=tracker.get_counts(),
                progress_percent=tracker.get_progress_percent(),
                pending_items=tracker.get_pending_items(),
                outstanding=tracker.outstanding_issues(),
                snapshot=snapshot,
            )
            try:
                result = worker.run_turn(context)
            except Exception as exc:
                self._log_exception(f"Worker failed on iteration {iteration}", exc)
                self._enter(history, RunState.ABORTED)
                return RunOutcome(
                    state=RunState.ABORTED,
                    iterations=iteration,
                    snapshot=snapshot,
                    counts=tracker.get_counts(),
                    message=str(exc),
                    history=history,
                )

            for event in result.events:
                tracker.record_success(event)
            self._enter(history, RunState.PROGRESS_UPDATED)
            self.logger.info(
                "Iteration %d: %d writes, %d%% documented",
                iteration,
                len(result.events),
                tracker.get_progress_percent(),
            )

            if result.status is TurnStatus.FAILED:
                self.logger.error("Worker reported failure: %s", result.message or "no details")
                self._enter(history, RunState.ABORTED)
                return RunOutcome(
                    state=RunState.ABORTED,
                    iterations=iteration,
                    snapshot=snapshot,
                    counts=tracker.get_counts(),
                    message=result.message,
                    history=history,
                )

            if result.status is TurnStatus.COMPLETE or tracker.is_complete():
                self._enter(history, RunState.SCANNING)
                snapshot = aggregator.collect(root, include_patterns=include_patterns)
                self._enter(history, RunState.VALIDATED)
                tracker.init(snapshot)

        self._enter(history, RunState.DONE)
        self.logger.info("Ingest complete for %s after %d iterations", root, iteration)
        return RunOutcome(
            state=RunState.DONE,
            iterations=iteration,
            snapshot=snapshot,
            counts=ProgressCounts(snapshot.total_items, snapshot.documented_items, 0),
            history=history,
        )

    # ------------------------------------------------------------------
    # Cycles

    def run_cycles(
        self,
        path: str | Path,
        worker: CycleWorker,
        cycles: Optional[Sequence[int]] = None,
        *,
        max_iterations: Optional[int] = None,
        purge: bool = False,
        outputs_root: Path | None = None,
    ) -> CyclesOutcome:
        """Run each cycle until its manifest targets are consumed, resuming saved state."""
        root = Path(path).expanduser().resolve()
        if not root.is_dir():
            raise FileNotFoundError(f"Source root not found: {root}")
        config = self._resolve_config(root)
        limit = config.run.cycle_max_iterations if max_iterations is None else max_iterations
        state_store = CycleStateStore.for_root(root, config.state_dir)
        manifest_store = ManifestStore.for_root(root, config.state_dir)
        outputs_root = outputs_root or root / DEFAULT_OUTPUTS_DIR

        if purge:
            state_store.clear()

        selected = list(cycles) if cycles else self._default_cycles(manifest_store)
        outcome = CyclesOutcome(state=RunState.DONE)
        for cycle in selected:
            result = self._run_cycle(
                root,
                worker,
                cycle,
                limit=limit,
                config=config,
                state_store=state_store,
                manifest_store=manifest_store,
                outputs_root=outputs_root,
            )
            outcome.cycles.append(result)
            if result.state is RunState.ABORTED:
                outcome.state = RunState.ABORTED
                break
            if result.state is RunState.EXHAUSTED:
                outcome.state = RunState.EXHAUSTED
        return outcome

    def _run_cycle(
        self,
        root: Path,
        worker: CycleWorker,
        cycle: int,
        *,
        limit: int,
        config: AudocConfig,
        state_store: CycleStateStore,
        manifest_store: ManifestStore,
        outputs_root: Path,
    ) -> CycleOutcome:
        consumed = state_store.load(cycle)
        manifest = manifest_store.load()
        targets = manifest_store.files_for_cycle(root, cycle, max_files=config.run.cycle_batch_size)
        remaining = [target for target in targets if target not in consumed]
        expected = len(targets) if targets else _declared_count(manifest, cycle)
        self.logger.info(
            "Cycle %d: %d targets, %d already consumed", cycle, len(targets), len(targets) - len(remaining)
        )
        idle = not targets and manifest is not None and manifest.statistics.relevant_files == 0
        if idle:
            self.logger.info("Cycle %d: manifest declares no relevant files, skipping dispatch", cycle)

        state = RunState.DONE
        message = ""
        iteration = 0
        while not idle and (not targets or remaining):
            if iteration >= limit:
                state = RunState.EXHAUSTED
                break
            iteration += 1
            context = CycleTurnContext(
                cycle=cycle,
                iteration=iteration,
                root=root,
                targets=list(targets),
                consumed=frozenset(consumed),
                remaining=list(remaining),
                expected_files=expected,
                manifest=manifest,
            )
            try:
                result = worker.run_cycle_turn(context)
            except Exception as exc:
                self._log_exception(f"Worker failed in cycle {cycle}", exc)
                state, message = RunState.ABORTED, str(exc)
                break

            consumed.update(_normalize_all(result.read_files))
            state_store.save(cycle, consumed)
            remaining = [target for target in targets if target not in consumed]

            if result.status is TurnStatus.FAILED:
                self.logger.error("Worker reported failure in cycle %d: %s", cycle, result.message)
                state, message = RunState.ABORTED, result.message
                break
            if result.status is TurnStatus.COMPLETE:
                break

        coverage = verify_cycle_coverage(
            cycle, consumed, targets, threshold=config.run.cycle_coverage_threshold
        )
        added: List[str] = []
        if state is not RunState.ABORTED:
            added = manifest_store.sync_outputs(cycle, outputs_root)
        return CycleOutcome(
            cycle=cycle,
            state=state,
            iterations=iteration,
            consumed=sorted(consumed),
            coverage=coverage,
            outputs_added=added,
            message=message,
        )

    # ------------------------------------------------------------------
    # Internal helpers

    def _resolve_config(self, root: Path) -> AudocConfig:
        if self._config is not None:
            return self._config
        return self._load_config(root)

    def _load_config(self, root: Path) -> AudocConfig:
        try:
            return load_config(root)
        except ConfigError as exc:
            self.logger.warning("Using default configuration: %s", exc)
            return AudocConfig(root=root)

    @staticmethod
    def _default_cycles(manifest_store: ManifestStore) -> List[int]:
        manifest = manifest_store.load()
        if manifest is None:
            return sorted(CYCLE_OUTPUT_DIRS)
        numbers = set()
        for key in manifest.cycles:
            digits = key[len("cycle"):] if key.startswith("cycle") else key
            if digits.isdigit():
                numbers.add(int(digits))
        return sorted(numbers) or sorted(CYCLE_OUTPUT_DIRS)

    def _enter(self, history: List[RunState], state: RunState) -> None:
        history.append(state)
        self.logger.debug("-> %s", state.value)

    def _log_exception(self, message: str, exc: Exception) -> None:
        if self.logger.isEnabledFor(logging.DEBUG):
            self.logger.exception("%s: %s", message, exc)
        else:
            self.logger.error("%s: %s", message, exc)


def _declared_count(manifest: Optional[Manifest], cycle: int) -> Optional[int]:
    if manifest is None:
        return None
    return manifest.expected_file_count(cycle)


def _normalize_all(paths: Sequence[str]) -> List[str]:
    normalized: List[str] = []
    for path in paths:
        try:
            normalized.append(normalize(path))
        except PathMappingError:
            continue
    return normalized


__all__ = [
    "CycleOutcome",
    "CyclesOutcome",
    "Orchestrator",
    "RunOutcome",
    "RunState",
]
