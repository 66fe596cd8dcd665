"""Reads and writes `.au` artifacts stored beside their source units."""

from __future__ import annotations

import os
from pathlib import Path
from typing import Any, List, Mapping, Optional

from ..documents import (
    ArtifactDocument,
    META_KEY,
    ParseResult,
    delete_by_path,
    dump_document,
    generate_meta,
    load_document,
    parse_document,
    set_by_path,
)
from ..file_filter import EXCLUDED_DIRS
from ..logging import get_logger
from ..models import UnitKind, WriteEvent
from ..paths import ROOT_PATH, guess_kind, is_artifact_path, normalize, to_artifact_path

logger = get_logger("stores.artifacts")


class ArtifactStore:
    """File-system backed access to the artifact tree rooted at ``root``."""

    def __init__(self, root: Path, *, excluded_dirs=EXCLUDED_DIRS) -> None:
        self.root = Path(root)
        self._excluded_dirs = frozenset(excluded_dirs)

    def artifact_file(self, source: str, kind: UnitKind | None = None) -> Path:
        return self.root / to_artifact_path(source, kind)

    def exists(self, source: str, kind: UnitKind | None = None) -> bool:
        return self.artifact_file(source, kind).is_file()

    def read_bytes(self, source: str, kind: UnitKind | None = None) -> Optional[bytes]:
        """Return raw artifact content, or ``None`` when it cannot be read."""
        try:
            return self.artifact_file(source, kind).read_bytes()
        except FileNotFoundError:
            return None
        except OSError as exc:
            logger.debug("Unable to read artifact for %s: %s", source, exc)
            return None

    def read(self, source: str, kind: UnitKind | None = None) -> Optional[ParseResult]:
        data = self.read_bytes(source, kind)
        if data is None:
            return None
        return parse_document(data.decode("utf-8", errors="replace"))

    def write(
        self,
        source: str,
        document: Mapping[str, Any],
        kind: UnitKind | None = None,
    ) -> WriteEvent:
        """Replace the artifact for ``source``, regenerating its ``meta`` block."""
        source = normalize(source)
        resolved = kind or self._kind_for(source)
        target = self.artifact_file(source, resolved)
        previous = self.read_bytes(source, resolved)

        body = {key: value for key, value in document.items() if key != META_KEY}
        payload: ArtifactDocument = {META_KEY: generate_meta(source, resolved, self._source_bytes(source, resolved))}
        payload.update(body)
        rendered = dump_document(payload).encode("utf-8")

        target.parent.mkdir(parents=True, exist_ok=True)
        target.write_bytes(rendered)
        event = WriteEvent(
            unit_path=source,
            is_new=previous is None,
            byte_delta=len(rendered) - len(previous or b""),
        )
        logger.debug("Wrote %s (%+d bytes)", target.relative_to(self.root), event.byte_delta)
        return event

    def update(
        self,
        source: str,
        path: str,
        value: Any,
        kind: UnitKind | None = None,
    ) -> WriteEvent:
        """Set one dot-path field, creating the artifact when it does not exist.

        Raises :class:`~audoc.documents.ArtifactParseError` when the existing
        artifact cannot be parsed, so a corrupt document is never overwritten
        by a partial edit.
        """
        document = self._load_existing(source, kind)
        return self.write(source, set_by_path(document, path, value), kind)

    def remove_field(self, source: str, path: str, kind: UnitKind | None = None) -> WriteEvent:
        document = self._load_existing(source, kind)
        return self.write(source, delete_by_path(document, path), kind)

    def list(self) -> List[str]:
        """Return every artifact path beneath the root, sorted."""
        found: List[str] = []
        for dirpath, dirnames, filenames in os.walk(self.root):
            dirnames[:] = [name for name in dirnames if name not in self._excluded_dirs]
            relative = os.path.relpath(dirpath, self.root).replace(os.sep, "/")
            for filename in filenames:
                if is_artifact_path(filename):
                    found.append(filename if relative == "." else f"{relative}/{filename}")
        return sorted(found)

    def purge(self) -> int:
        """Delete every artifact beneath the root and return how many were removed."""
        removed = 0
        for artifact in self.list():
            try:
                (self.root / artifact).unlink()
            except FileNotFoundError:
                continue
            removed += 1
        if removed:
            logger.info("Purged %d artifacts under %s", removed, self.root)
        return removed

    # ------------------------------------------------------------------
    # Internal helpers

    def _load_existing(self, source: str, kind: UnitKind | None) -> ArtifactDocument:
        data = self.read_bytes(source, kind or self._kind_for(normalize(source)))
        if data is None:
            return {}
        return load_document(data.decode("utf-8", errors="replace"))

    def _kind_for(self, source: str) -> UnitKind:
        if source == ROOT_PATH:
            return UnitKind.ROOT
        candidate = self.root / source
        if candidate.is_dir():
            return UnitKind.DIRECTORY
        if candidate.is_file():
            return UnitKind.FILE
        return guess_kind(source)

    def _source_bytes(self, source: str, kind: UnitKind) -> bytes:
        if kind is not UnitKind.FILE:
            return b""
        try:
            return (self.root / source).read_bytes()
        except OSError:
            return b""


__all__ = ["ArtifactStore"]
