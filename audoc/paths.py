"""Bidirectional mapping between source paths and `.au` artifact paths.

Rules:

* root (``.`` or empty) maps to ``.au``
* a file ``src/index.ts`` maps to ``src/index.ts.au``
* a directory ``src/lib`` maps to ``src/lib/.au``

Without an explicit kind the extension decides: a last segment with a suffix
is a file, anything else is a directory.
"""

from __future__ import annotations

import posixpath

from .models import UnitKind

ARTIFACT_SUFFIX = ".au"
ROOT_ARTIFACT = ".au"
ROOT_PATH = "."
_DIRECTORY_MARKER = "/" + ROOT_ARTIFACT


class PathMappingError(ValueError):
    """Raised when a path cannot be normalised into the relative source domain."""


def normalize(path: str) -> str:
    """Return the canonical relative POSIX form of ``path``; root is ``.``."""
    if not isinstance(path, str):
        raise PathMappingError(f"Expected a string path, got {type(path).__name__}")
    candidate = path.replace("\\", "/")
    if candidate.startswith("/"):
        raise PathMappingError(f"Absolute paths are not allowed: {path!r}")
    segments = [segment for segment in candidate.split("/") if segment and segment != "."]
    if ".." in segments:
        raise PathMappingError(f"Parent segments are not allowed: {path!r}")
    if not segments:
        return ROOT_PATH
    return "/".join(segments)


def is_artifact_path(path: str) -> bool:
    return path == ROOT_ARTIFACT or path.endswith(ARTIFACT_SUFFIX)


def is_root_artifact(path: str) -> bool:
    return path == ROOT_ARTIFACT


def is_directory_artifact(path: str) -> bool:
    """True for directory artifacts, including the root artifact."""
    return path == ROOT_ARTIFACT or path.endswith(_DIRECTORY_MARKER)


def is_file_artifact(path: str) -> bool:
    return is_artifact_path(path) and not is_directory_artifact(path)


def artifact_kind(path: str) -> UnitKind:
    """Return the unit kind an artifact path describes."""
    if is_root_artifact(path):
        return UnitKind.ROOT
    if is_directory_artifact(path):
        return UnitKind.DIRECTORY
    return UnitKind.FILE


def guess_kind(path: str) -> UnitKind:
    """Classify a source path by its shape alone."""
    normalized = normalize(path)
    if normalized == ROOT_PATH:
        return UnitKind.ROOT
    _, ext = posixpath.splitext(normalized)
    return UnitKind.FILE if ext else UnitKind.DIRECTORY


def to_artifact_path(source: str, kind: UnitKind | None = None) -> str:
    """Map a source path to its artifact path.

    An artifact path passed by mistake is first mapped back to its source, so
    the call is idempotent.
    """
    normalized = normalize(source)
    if is_artifact_path(normalized):
        marker_kind = artifact_kind(normalized)
        normalized = to_source_path(normalized)
        kind = kind or marker_kind

    if normalized == ROOT_PATH:
        return ROOT_ARTIFACT

    resolved = kind or guess_kind(normalized)
    if resolved is UnitKind.FILE:
        return normalized + ARTIFACT_SUFFIX
    return normalized + _DIRECTORY_MARKER


def to_source_path(artifact: str) -> str:
    """Map an artifact path back to its source path; other paths pass through."""
    if artifact == ROOT_ARTIFACT:
        return ROOT_PATH
    if artifact.endswith(_DIRECTORY_MARKER):
        return artifact[: -len(_DIRECTORY_MARKER)]
    if artifact.endswith(ARTIFACT_SUFFIX):
        return artifact[: -len(ARTIFACT_SUFFIX)]
    return artifact


def strip_reference(ref: str) -> str:
    """Turn an ``au:``-style reference or artifact path into a source path."""
    target = ref.strip()
    if target.startswith("au:"):
        target = target[3:]
    if not target:
        return ROOT_PATH
    target = to_source_path(normalize(target))
    return normalize(target)


def parent_directories(path: str) -> list[str]:
    """Return every ancestor directory of ``path``, outermost first, excluding root."""
    parts = normalize(path).split("/")
    return ["/".join(parts[:index]) for index in range(1, len(parts))]


__all__ = [
    "ARTIFACT_SUFFIX",
    "PathMappingError",
    "ROOT_ARTIFACT",
    "ROOT_PATH",
    "artifact_kind",
    "guess_kind",
    "is_artifact_path",
    "is_directory_artifact",
    "is_file_artifact",
    "is_root_artifact",
    "normalize",
    "parent_directories",
    "strip_reference",
    "to_artifact_path",
    "to_source_path",
]
