"""Persistence of per-cycle consumed-file sets so multi-cycle runs can resume."""

from __future__ import annotations

import fcntl
import json
from contextlib import contextmanager
from datetime import UTC, datetime
from pathlib import Path
from typing import Any, Dict, Iterable, Iterator, Optional, Set

from ..config import DEFAULT_STATE_DIR
from ..logging import get_logger

CYCLE_STATE_FILENAME = "_cycle-state.json"

logger = get_logger("stores.cycle_state")


def phase_key(phase: int | str) -> str:
    """Integer phases (and bare digit strings) map to ``cycle<N>`` keys."""
    if isinstance(phase, bool):
        raise TypeError("phase must be an int or str")
    if isinstance(phase, int):
        return f"cycle{phase}"
    text = str(phase).strip()
    if text.isdigit():
        return f"cycle{int(text)}"
    return text


class CycleStateStore:
    """JSON document mapping phase keys to the source paths already consumed."""

    def __init__(self, path: Path) -> None:
        self.path = Path(path)

    @classmethod
    def for_root(cls, root: Path, state_dir: str = DEFAULT_STATE_DIR) -> "CycleStateStore":
        return cls(Path(root) / state_dir / CYCLE_STATE_FILENAME)

    def load(self, phase: int | str) -> Set[str]:
        entry = self._read_all().get(phase_key(phase))
        if not isinstance(entry, dict):
            return set()
        files = entry.get("readFiles")
        if not isinstance(files, list):
            return set()
        return {item for item in files if isinstance(item, str)}

    def save(self, phase: int | str, paths: Iterable[str]) -> None:
        """Replace the consumed set of ``phase``, leaving other phases untouched."""
        key = phase_key(phase)
        with self._locked():
            state = self._read_all()
            state[key] = {
                "readFiles": sorted(set(paths)),
                "lastUpdated": datetime.now(UTC).isoformat().replace("+00:00", "Z"),
            }
            self._write_all(state)
        logger.debug("Saved %d consumed paths for %s", len(state[key]["readFiles"]), key)

    def clear(self, phase: Optional[int | str] = None) -> None:
        """Forget one phase, or the whole store when ``phase`` is omitted."""
        with self._locked():
            if phase is None:
                if self.path.exists():
                    self.path.unlink()
                return
            state = self._read_all()
            if state.pop(phase_key(phase), None) is not None:
                self._write_all(state)

    def phases(self) -> Dict[str, Set[str]]:
        result: Dict[str, Set[str]] = {}
        for key in self._read_all():
            result[key] = self.load(key)
        return result

    # ------------------------------------------------------------------
    # Internal helpers

    def _read_all(self) -> Dict[str, Any]:
        try:
            raw = self.path.read_bytes()
        except FileNotFoundError:
            return {}
        except OSError as exc:
            logger.warning("Could not read cycle state %s: %s", self.path, exc)
            return {}
        try:
            data = json.loads(raw.decode("utf-8"))
        except (json.JSONDecodeError, UnicodeDecodeError) as exc:
            logger.warning("Ignoring corrupt cycle state %s: %s", self.path, exc)
            return {}
        if not isinstance(data, dict):
            logger.warning("Ignoring cycle state %s: root is not an object", self.path)
            return {}
        return data

    def _write_all(self, state: Dict[str, Any]) -> None:
        self.path.parent.mkdir(parents=True, exist_ok=True)
        tmp = self.path.with_suffix(self.path.suffix + ".tmp")
        tmp.write_text(json.dumps(state, indent=2, sort_keys=True), encoding="utf-8")
        tmp.replace(self.path)

    @contextmanager
    def _locked(self) -> Iterator[None]:
        lock_path = self.path.with_suffix(self.path.suffix + ".lock")
        lock_path.parent.mkdir(parents=True, exist_ok=True)
        with open(lock_path, "a+", encoding="utf-8") as handle:
            fcntl.flock(handle, fcntl.LOCK_EX)
            try:
                yield
            finally:
                fcntl.flock(handle, fcntl.LOCK_UN)


__all__ = ["CYCLE_STATE_FILENAME", "CycleStateStore", "phase_key"]
