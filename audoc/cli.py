"""CLI entrypoints for audoc commands."""

from __future__ import annotations

import argparse
import json
import sys
from pathlib import Path

from .config import ConfigError, load_config
from .logging import configure_logging
from .models import CoverageSnapshot
from .orchestrator import DEFAULT_OUTPUTS_DIR, Orchestrator, RunState
from .stores.manifest import ManifestStore
from .workers import WorkerLoadError, load_worker

_EXIT_CODES = {
    RunState.DONE: 0,
    RunState.ABORTED: 1,
    RunState.EXHAUSTED: 2,
}


def _add_verbose_option(
    parser: argparse.ArgumentParser, *, suppress_default: bool = False
) -> None:
    kwargs: dict[str, object] = {
        "action": "store_true",
        "help": "Increase log verbosity for troubleshooting.",
    }
    if suppress_default:
        kwargs["default"] = argparse.SUPPRESS
    else:
        kwargs["default"] = False
    parser.add_argument(
        "-v",
        "--verbose",
        **kwargs,
    )


def _add_log_file_option(
    parser: argparse.ArgumentParser, *, suppress_default: bool = False
) -> None:
    parser.add_argument(
        "--log-file",
        default=argparse.SUPPRESS if suppress_default else None,
        help="Also write DEBUG-level logs to this file.",
    )


def _add_path_argument(parser: argparse.ArgumentParser) -> None:
    parser.add_argument(
        "path",
        nargs="?",
        default=".",
        help="Path to the source root (defaults to current directory).",
    )


def _add_include_option(parser: argparse.ArgumentParser) -> None:
    parser.add_argument(
        "--include",
        default=None,
        help="Comma-separated include globs overriding .audoc.yml (e.g. '*.py,*.ts').",
    )


def _build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="audoc",
        description="Track coverage, staleness and resumable progress of .au understanding files.",
    )
    _add_verbose_option(parser)
    _add_log_file_option(parser)
    subparsers = parser.add_subparsers(dest="command", required=True)

    status_parser = subparsers.add_parser(
        "status",
        help="Report coverage and outstanding issues for a source tree.",
    )
    _add_verbose_option(status_parser, suppress_default=True)
    _add_log_file_option(status_parser, suppress_default=True)
    _add_path_argument(status_parser)
    _add_include_option(status_parser)
    status_parser.add_argument(
        "--json",
        action="store_true",
        help="Print the coverage snapshot as JSON.",
    )
    status_parser.add_argument(
        "--strict",
        action="store_true",
        help="Exit with status 1 when anything is pending or broken.",
    )

    ingest_parser = subparsers.add_parser(
        "ingest",
        help="Drive a documentation worker until every unit is documented.",
    )
    _add_verbose_option(ingest_parser, suppress_default=True)
    _add_log_file_option(ingest_parser, suppress_default=True)
    _add_path_argument(ingest_parser)
    _add_include_option(ingest_parser)
    ingest_parser.add_argument(
        "--worker",
        required=True,
        help="Worker as 'module:attribute' or an installed audoc.workers entry point.",
    )
    ingest_parser.add_argument(
        "--max-iterations",
        type=int,
        default=None,
        help="Stop after this many worker turns (defaults to run.max_iterations).",
    )
    ingest_parser.add_argument(
        "--purge",
        action="store_true",
        help="Delete every existing artifact before starting.",
    )

    cycles_parser = subparsers.add_parser(
        "cycles",
        help="Run the multi-cycle pipeline, resuming from saved cycle state.",
    )
    _add_verbose_option(cycles_parser, suppress_default=True)
    _add_log_file_option(cycles_parser, suppress_default=True)
    _add_path_argument(cycles_parser)
    cycles_parser.add_argument(
        "--worker",
        required=True,
        help="Worker as 'module:attribute' or an installed audoc.workers entry point.",
    )
    cycles_parser.add_argument(
        "--cycle",
        type=int,
        action="append",
        dest="cycles",
        default=None,
        help="Cycle number to run; repeat for several (defaults to every manifest cycle).",
    )
    cycles_parser.add_argument(
        "--max-iterations",
        type=int,
        default=None,
        help="Turn limit per cycle (defaults to run.cycle_max_iterations).",
    )
    cycles_parser.add_argument(
        "--purge",
        action="store_true",
        help="Forget saved cycle state before starting.",
    )

    sync_parser = subparsers.add_parser(
        "sync-outputs",
        help="Register output files found on disk in the manifest.",
    )
    _add_verbose_option(sync_parser, suppress_default=True)
    _add_log_file_option(sync_parser, suppress_default=True)
    _add_path_argument(sync_parser)
    sync_parser.add_argument("--cycle", type=int, required=True, help="Cycle number.")
    sync_parser.add_argument(
        "--outputs",
        default=None,
        help=f"Outputs directory (defaults to <path>/{DEFAULT_OUTPUTS_DIR}).",
    )

    serve_parser = subparsers.add_parser(
        "serve",
        help="Start the HTTP service.",
    )
    _add_verbose_option(serve_parser, suppress_default=True)
    _add_log_file_option(serve_parser, suppress_default=True)
    serve_parser.add_argument("--host", default="127.0.0.1", help="Interface to bind.")
    serve_parser.add_argument("--port", type=int, default=8000, help="Port to bind.")

    return parser


def main(argv: list[str] | None = None) -> None:
    """CLI entrypoint for audoc commands."""
    parser = _build_parser()
    args = parser.parse_args(argv)

    log_file = Path(args.log_file) if args.log_file else None
    try:
        configure_logging(verbose=bool(args.verbose), log_file=log_file)
    except OSError as exc:
        parser.exit(1, f"Cannot open log file {log_file}: {exc}\n")

    orchestrator = Orchestrator()

    if args.command == "status":
        try:
            snapshot = orchestrator.collect(args.path, include_patterns=_split(args.include))
        except (FileNotFoundError, NotADirectoryError) as exc:
            parser.exit(1, f"{exc}\n")
        except (ConfigError, ValueError, OSError) as exc:
            parser.exit(1, f"audoc status failed: {exc}\n")
        if args.json:
            print(json.dumps(snapshot.to_dict(), indent=2))
        else:
            print(_format_snapshot(snapshot))
        if args.strict and snapshot.has_work:
            parser.exit(1)
    elif args.command == "ingest":
        worker = _load_worker_or_exit(parser, args.worker)
        try:
            outcome = orchestrator.run_ingest(
                args.path,
                worker,
                include_patterns=_split(args.include),
                max_iterations=args.max_iterations,
                purge=bool(args.purge),
            )
        except (FileNotFoundError, NotADirectoryError) as exc:
            parser.exit(1, f"{exc}\n")
        except (ConfigError, ValueError, OSError) as exc:
            parser.exit(1, f"audoc ingest failed: {exc}\nRun with --verbose for more details.\n")
        if outcome.snapshot is not None:
            print(_format_snapshot(outcome.snapshot))
        print(f"Ingest {outcome.state.value} after {outcome.iterations} iterations")
        _exit_for_state(parser, outcome.state)
    elif args.command == "cycles":
        worker = _load_worker_or_exit(parser, args.worker)
        try:
            result = orchestrator.run_cycles(
                args.path,
                worker,
                args.cycles,
                max_iterations=args.max_iterations,
                purge=bool(args.purge),
            )
        except (FileNotFoundError, NotADirectoryError) as exc:
            parser.exit(1, f"{exc}\n")
        except (ConfigError, ValueError, OSError) as exc:
            parser.exit(1, f"audoc cycles failed: {exc}\nRun with --verbose for more details.\n")
        for cycle in result.cycles:
            print(
                f"cycle{cycle.cycle}: {cycle.state.value}, "
                f"{cycle.coverage.read_files}/{cycle.coverage.target_files} files "
                f"({cycle.coverage.percentage}%)"
            )
        _exit_for_state(parser, result.state)
    elif args.command == "sync-outputs":
        root = Path(args.path).expanduser().resolve()
        try:
            config = load_config(root)
        except ConfigError as exc:
            parser.exit(1, f"{exc}\n")
        outputs = Path(args.outputs) if args.outputs else root / DEFAULT_OUTPUTS_DIR
        added = ManifestStore.for_root(root, config.state_dir).sync_outputs(args.cycle, outputs)
        if added:
            for item in added:
                print(f"added {item}")
        else:
            print("Manifest already up to date")
    elif args.command == "serve":
        from .service.app import run_service

        run_service(host=args.host, port=args.port)
    else:  # pragma: no cover - argparse enforces choices
        parser.exit(1, "Unknown command\n")


def _load_worker_or_exit(parser: argparse.ArgumentParser, spec: str) -> object:
    try:
        return load_worker(spec)
    except WorkerLoadError as exc:
        parser.exit(1, f"{exc}\n")


def _exit_for_state(parser: argparse.ArgumentParser, state: RunState) -> None:
    code = _EXIT_CODES.get(state, 1)
    if code:
        parser.exit(code)


def _split(value: str | None) -> list[str] | None:
    if not value:
        return None
    items = [item.strip() for item in value.split(",") if item.strip()]
    return items or None


def _format_snapshot(snapshot: CoverageSnapshot) -> str:
    lines = [
        f"Coverage: {snapshot.coverage_percent}% "
        f"({snapshot.documented_items}/{snapshot.total_items} documented)",
    ]
    buckets = (
        ("Pending", list(snapshot.pending_items)),
        ("Stale", list(snapshot.stale_files)),
        (
            "Incomplete",
            [f"{issue.path} ({', '.join(issue.issues)})" for issue in snapshot.incomplete_files],
        ),
        ("Parse errors", [f"{issue.path}: {issue.detail}" for issue in snapshot.parse_errors]),
        (
            "Stale references",
            [f"{ref.artifact} [{ref.field}] -> {ref.ref}" for ref in snapshot.stale_references],
        ),
        (
            "Contents mismatches",
            [
                f"{issue.artifact} missing={list(issue.missing)} extra={list(issue.extra)}"
                for issue in snapshot.contents_issues
            ],
        ),
        ("Orphaned artifacts", list(snapshot.orphaned_artifacts)),
    )
    for title, items in buckets:
        if not items:
            continue
        lines.append(f"{title} ({len(items)}):")
        lines.extend(f"  - {item}" for item in items)
    return "\n".join(lines)


if __name__ == "__main__":
    main(sys.argv[1:])
