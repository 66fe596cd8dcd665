"""Tests for audoc.orchestrator."""

from __future__ import annotations

import json
from pathlib import Path

from audoc.orchestrator import Orchestrator, RunState
from audoc.stores import CycleStateStore, ManifestStore
from tests._fixtures.repo_builder import COMPLETE_FILE, RepoBuilder, complete_directory, complete_root
from tests._fixtures.workers import DocumentingWorker, FailingWorker, IdleWorker, ReadingWorker

_SOURCES = {"src/index.ts": "export {};\n", "src/util.ts": "export const x = 1;\n"}

_DOCUMENTS = {
    ".": complete_root("src"),
    "src": complete_directory("index.ts", "util.ts"),
    "src/index.ts": COMPLETE_FILE,
    "src/util.ts": COMPLETE_FILE,
}


def _write_manifest(root: Path, payload: dict) -> None:
    store = ManifestStore.for_root(root)
    store.path.parent.mkdir(parents=True, exist_ok=True)
    store.path.write_text(json.dumps(payload), encoding="utf-8")


def test_ingest_runs_until_everything_is_documented(repo_builder: RepoBuilder) -> None:
    repo_builder.write(_SOURCES)
    worker = DocumentingWorker(_DOCUMENTS)

    outcome = Orchestrator().run_ingest(repo_builder.path(), worker)

    assert outcome.state is RunState.DONE
    assert outcome.iterations == 1
    assert outcome.snapshot is not None
    assert outcome.snapshot.coverage_percent == 100
    assert not outcome.snapshot.has_work
    assert outcome.history == [
        RunState.SCANNING,
        RunState.VALIDATED,
        RunState.DISPATCHING,
        RunState.PROGRESS_UPDATED,
        RunState.SCANNING,
        RunState.VALIDATED,
        RunState.DONE,
    ]
    first = worker.contexts[0]
    assert first.iteration == 1
    assert first.progress_percent == 0
    assert first.pending_items == [".", "src", "src/index.ts", "src/util.ts"]


def test_ingest_on_documented_tree_never_calls_worker(repo_builder: RepoBuilder) -> None:
    worker = IdleWorker()

    outcome = Orchestrator().run_ingest(repo_builder.path(), worker)

    assert outcome.state is RunState.DONE
    assert outcome.iterations == 0
    assert worker.calls == 0


def test_ingest_stops_at_iteration_limit(repo_builder: RepoBuilder) -> None:
    repo_builder.write(_SOURCES)
    worker = IdleWorker()

    outcome = Orchestrator().run_ingest(repo_builder.path(), worker, max_iterations=2)

    assert outcome.state is RunState.EXHAUSTED
    assert outcome.iterations == 2
    assert worker.calls == 2
    assert outcome.counts is not None
    assert outcome.counts.pending == 4
    assert outcome.history[-1] is RunState.EXHAUSTED


def test_ingest_aborts_when_worker_raises(repo_builder: RepoBuilder) -> None:
    repo_builder.write(_SOURCES)

    outcome = Orchestrator().run_ingest(repo_builder.path(), FailingWorker(RuntimeError("boom")))

    assert outcome.state is RunState.ABORTED
    assert outcome.iterations == 1
    assert outcome.message == "boom"
    assert outcome.history[-1] is RunState.ABORTED


def test_ingest_aborts_when_worker_reports_failure(repo_builder: RepoBuilder) -> None:
    repo_builder.write(_SOURCES)

    outcome = Orchestrator().run_ingest(repo_builder.path(), FailingWorker())

    assert outcome.state is RunState.ABORTED
    assert outcome.message == "model refused"


def test_ingest_purge_removes_existing_artifacts(repo_builder: RepoBuilder) -> None:
    repo_builder.write(_SOURCES)
    repo_builder.write_artifact("src/index.ts", COMPLETE_FILE)

    outcome = Orchestrator().run_ingest(repo_builder.path(), IdleWorker(), max_iterations=0, purge=True)

    assert outcome.state is RunState.EXHAUSTED
    assert outcome.snapshot is not None
    assert outcome.snapshot.documented_items == 0
    assert not (repo_builder.path() / "src" / "index.ts.au").exists()


def test_cycles_consume_manifest_targets(repo_builder: RepoBuilder) -> None:
    repo_builder.write({"src/a.ts": "a\n", "src/b.ts": "b\n"})
    _write_manifest(repo_builder.path(), {"cycles": {"cycle1": {"sourceFiles": ["src/*.ts"]}}})
    worker = ReadingWorker()

    result = Orchestrator().run_cycles(repo_builder.path(), worker, [1])

    assert result.state is RunState.DONE
    [cycle] = result.cycles
    assert cycle.state is RunState.DONE
    assert cycle.iterations == 2
    assert cycle.consumed == ["src/a.ts", "src/b.ts"]
    assert cycle.coverage.percentage == 100
    assert CycleStateStore.for_root(repo_builder.path()).load(1) == {"src/a.ts", "src/b.ts"}


def test_cycles_resume_from_saved_state(repo_builder: RepoBuilder) -> None:
    repo_builder.write({"src/a.ts": "a\n", "src/b.ts": "b\n"})
    _write_manifest(repo_builder.path(), {"cycles": {"cycle1": {"sourceFiles": ["src/*.ts"]}}})
    orchestrator = Orchestrator()

    first = orchestrator.run_cycles(repo_builder.path(), ReadingWorker(), [1], max_iterations=1)

    assert first.state is RunState.EXHAUSTED
    assert first.cycles[0].consumed == ["src/a.ts"]
    assert first.cycles[0].coverage.missing == ["src/b.ts"]

    worker = ReadingWorker()
    second = orchestrator.run_cycles(repo_builder.path(), worker, [1])

    assert second.state is RunState.DONE
    assert worker.contexts[0].consumed == frozenset({"src/a.ts"})
    assert worker.contexts[0].remaining == ["src/b.ts"]
    assert second.cycles[0].iterations == 1


def test_cycles_purge_forgets_saved_state(repo_builder: RepoBuilder) -> None:
    repo_builder.write({"src/a.ts": "a\n"})
    _write_manifest(repo_builder.path(), {"cycles": {"cycle1": {"sourceFiles": ["src/*.ts"]}}})
    CycleStateStore.for_root(repo_builder.path()).save(1, ["src/a.ts"])
    worker = ReadingWorker()

    result = Orchestrator().run_cycles(repo_builder.path(), worker, [1], purge=True)

    assert result.cycles[0].iterations == 1
    assert worker.contexts[0].consumed == frozenset()


def test_cycles_stop_after_aborted_cycle(repo_builder: RepoBuilder) -> None:
    repo_builder.write({"src/a.ts": "a\n"})
    _write_manifest(repo_builder.path(), {"cycles": {"cycle1": {"sourceFiles": ["src/*.ts"]}}})

    result = Orchestrator().run_cycles(repo_builder.path(), FailingWorker(RuntimeError("boom")), [1, 2])

    assert result.state is RunState.ABORTED
    assert len(result.cycles) == 1
    assert result.cycles[0].message == "boom"


def test_cycle_without_targets_runs_until_worker_completes(repo_builder: RepoBuilder) -> None:
    worker = ReadingWorker()

    result = Orchestrator().run_cycles(repo_builder.path(), worker, [2])

    assert result.state is RunState.DONE
    assert result.cycles[0].iterations == 1
    assert result.cycles[0].coverage.percentage == 100


def test_cycles_register_outputs_written_during_the_run(repo_builder: RepoBuilder) -> None:
    repo_builder.write({"src/a.ts": "a\n", ".sysml/context/system.sysml": "part def System;\n"})
    _write_manifest(repo_builder.path(), {"cycles": {"cycle1": {"sourceFiles": ["src/*.ts"]}}})

    result = Orchestrator().run_cycles(repo_builder.path(), ReadingWorker(), [1])

    assert result.cycles[0].outputs_added == ["context/system.sysml"]
    manifest = ManifestStore.for_root(repo_builder.path()).load()
    assert manifest is not None
    assert manifest.cycle(1).expected_outputs == ["context/system.sysml"]


def test_default_cycles_come_from_manifest(repo_builder: RepoBuilder) -> None:
    _write_manifest(repo_builder.path(), {"cycles": {"cycle3": {}, "1": {}, "notes": {}}})
    worker = ReadingWorker()

    result = Orchestrator().run_cycles(repo_builder.path(), worker)

    assert [cycle.cycle for cycle in result.cycles] == [1, 3]


def test_cycle_context_reports_expected_file_count(repo_builder: RepoBuilder) -> None:
    repo_builder.write({"src/a.ts": "a\n", "src/b.ts": "b\n"})
    _write_manifest(repo_builder.path(), {"cycles": {"cycle1": {"sourceFiles": ["src/*.ts"]}}})
    worker = ReadingWorker()

    Orchestrator().run_cycles(repo_builder.path(), worker, [1])

    assert [context.expected_files for context in worker.contexts] == [2, 2]


def test_cycle_context_falls_back_to_declared_file_count(repo_builder: RepoBuilder) -> None:
    _write_manifest(repo_builder.path(), {"cycles": {"cycle1": {"files": ["gone.ts", "also-gone.ts"]}}})
    worker = ReadingWorker()

    result = Orchestrator().run_cycles(repo_builder.path(), worker, [1])

    assert result.state is RunState.DONE
    assert worker.contexts[0].targets == []
    assert worker.contexts[0].expected_files == 2


def test_cycle_is_skipped_when_manifest_declares_no_relevant_files(repo_builder: RepoBuilder) -> None:
    _write_manifest(repo_builder.path(), {"statistics": {"relevantFiles": 0}, "cycles": {"cycle1": {}}})
    worker = ReadingWorker()

    result = Orchestrator().run_cycles(repo_builder.path(), worker, [1])

    assert result.state is RunState.DONE
    assert result.cycles[0].iterations == 0
    assert worker.contexts == []
