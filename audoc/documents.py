"""YAML codec, required-field schema and dot-path editing for artifact documents."""

from __future__ import annotations

import copy
import hashlib
import json
import re
from dataclasses import dataclass
from datetime import UTC, datetime
from typing import Any, Dict, List, Mapping, Optional, Tuple

import yaml

from .classification import UnitClass
from .models import UnitKind

FORMAT_VERSION = "1.0"
META_KEY = "meta"

ArtifactDocument = Dict[str, Any]

_ARRAY_INDEX = re.compile(r"^(0|[1-9]\d*)$")
_YAML_KEY_VALUE = re.compile(r"^[a-zA-Z_][a-zA-Z0-9_]*:\s")


class ArtifactParseError(ValueError):
    """Raised when artifact content is not a structured YAML mapping."""


class DocumentEditError(ValueError):
    """Raised when a dot-path edit cannot be applied."""


@dataclass(frozen=True)
class FieldSpec:
    """Where a required field lives inside an artifact document."""

    name: str
    section: Optional[str] = None

    @property
    def dotted(self) -> str:
        return f"{self.section}.{self.name}" if self.section else self.name


LAYER = FieldSpec("layer")
CONTENTS = FieldSpec("contents")
SUMMARY = FieldSpec("summary", "understanding")
PURPOSE = FieldSpec("purpose", "understanding")
KEY_LOGIC = FieldSpec("key_logic", "understanding")
RESPONSIBILITY = FieldSpec("responsibility", "understanding")
ARCHITECTURE = FieldSpec("architecture", "understanding")

REQUIRED_FIELDS: Dict[UnitClass, Tuple[FieldSpec, ...]] = {
    UnitClass.MODULE: (LAYER, SUMMARY, PURPOSE),
    UnitClass.SERVICE: (LAYER, SUMMARY, PURPOSE, KEY_LOGIC),
    UnitClass.UTILITY: (LAYER, SUMMARY, PURPOSE, KEY_LOGIC),
    UnitClass.DIRECTORY: (SUMMARY, RESPONSIBILITY, CONTENTS),
    UnitClass.ROOT: (SUMMARY, RESPONSIBILITY, CONTENTS, ARCHITECTURE),
}


@dataclass(frozen=True)
class FieldPresence:
    """Required-field check evaluated once for a parsed document."""

    present: Tuple[str, ...]
    missing: Tuple[str, ...]

    @property
    def complete(self) -> bool:
        return not self.missing


@dataclass
class ParseResult:
    """Outcome of parsing artifact text; exactly one of document/error is set."""

    document: Optional[ArtifactDocument] = None
    error: Optional[ArtifactParseError] = None
    empty: bool = False

    @property
    def ok(self) -> bool:
        return self.error is None


def parse_document(text: str) -> ParseResult:
    """Parse artifact text without raising; empty text yields an empty document."""
    try:
        loaded = yaml.safe_load(text)
    except yaml.YAMLError as exc:
        return ParseResult(error=ArtifactParseError(_describe_yaml_error(exc)))
    if loaded is None:
        return ParseResult(document={}, empty=True)
    if not isinstance(loaded, dict):
        return ParseResult(
            error=ArtifactParseError(
                f"document root must be a mapping, got {type(loaded).__name__}"
            )
        )
    return ParseResult(document=loaded, empty=not loaded)


def load_document(text: str) -> ArtifactDocument:
    """Strict variant of :func:`parse_document`."""
    result = parse_document(text)
    if result.error is not None:
        raise result.error
    return result.document or {}


def dump_document(document: Mapping[str, Any]) -> str:
    """Serialise a document to YAML with stable formatting."""
    return yaml.safe_dump(
        dict(document),
        sort_keys=False,
        indent=2,
        width=100,
        allow_unicode=True,
        default_flow_style=False,
    )


def check_fields(document: Mapping[str, Any], unit_class: UnitClass) -> FieldPresence:
    """Evaluate the required-field schema for ``unit_class`` against ``document``."""
    present: List[str] = []
    missing: List[str] = []
    for spec in REQUIRED_FIELDS[unit_class]:
        if has_field(document, spec):
            present.append(spec.name)
        else:
            missing.append(spec.name)
    return FieldPresence(present=tuple(present), missing=tuple(missing))


def has_field(document: Mapping[str, Any], spec: FieldSpec) -> bool:
    container: Any = document
    if spec.section:
        container = document.get(spec.section)
    if isinstance(container, Mapping) and _is_filled(container.get(spec.name)):
        return True
    if not spec.section:
        return False
    # Flattened keys such as "understanding.summary" written by a sloppy worker.
    prefixes = (spec.dotted, spec.dotted.replace(".", "/"))
    return any(
        isinstance(key, str) and key.startswith(prefixes) and _is_filled(value)
        for key, value in document.items()
    )


def _is_filled(value: Any) -> bool:
    if value is None:
        return False
    if isinstance(value, (str, list, dict, tuple)):
        return bool(value)
    return True


def source_fingerprint(content: bytes | str) -> str:
    """Freshness marker stored in ``meta.analyzed_hash``."""
    data = content.encode("utf-8") if isinstance(content, str) else content
    return hashlib.md5(data).hexdigest()


def stored_fingerprint(document: Mapping[str, Any]) -> Optional[str]:
    meta = document.get(META_KEY)
    if not isinstance(meta, Mapping):
        return None
    value = meta.get("analyzed_hash")
    return value if isinstance(value, str) and value else None


def generate_meta(source_path: str, kind: UnitKind, source_content: bytes | str = b"") -> Dict[str, str]:
    """Build the auto-managed ``meta`` block for an artifact."""
    identifier = "au:" if source_path in (".", "") else f"au:{source_path}"
    return {
        "au": FORMAT_VERSION,
        "id": identifier,
        "type": kind.value,
        "analyzed_at": datetime.now(UTC).isoformat().replace("+00:00", "Z"),
        "analyzed_hash": source_fingerprint(source_content),
    }


def parse_path(path: str) -> List[str]:
    """Split a dot path; ``""`` and ``"."`` address the document root."""
    if not path or path == ".":
        return []
    return path.split(".")


def set_by_path(document: Mapping[str, Any], path: str, value: Any) -> ArtifactDocument:
    """Return a copy of ``document`` with ``value`` stored at the dot ``path``.

    Indices past the end of a list append instead of leaving gaps.
    """
    value = _coerce_structured_string(value)
    segments = parse_path(path)
    if segments and segments[0] == META_KEY:
        raise DocumentEditError("Meta fields are auto-managed and cannot be set directly")

    if not segments:
        if not isinstance(value, dict):
            raise DocumentEditError("Root value must be a mapping")
        replaced = dict(value)
        replaced.pop(META_KEY, None)
        if META_KEY in document:
            replaced[META_KEY] = copy.deepcopy(document[META_KEY])
        return replaced

    result = copy.deepcopy(dict(document))
    current: Any = result
    for index, segment in enumerate(segments[:-1]):
        next_is_index = bool(_ARRAY_INDEX.match(segments[index + 1]))
        if isinstance(current, list) and _ARRAY_INDEX.match(segment):
            position = int(segment)
            if position >= len(current):
                current.append([] if next_is_index else {})
                current = current[-1]
                continue
            child = current[position]
        elif isinstance(current, dict):
            if current.get(segment) is None:
                current[segment] = [] if next_is_index else {}
            child = current[segment]
        else:
            raise DocumentEditError(
                f"Cannot traverse into non-container at {'.'.join(segments[:index]) or '.'}"
            )
        if not isinstance(child, (dict, list)):
            raise DocumentEditError(
                f"Cannot traverse into non-container at {'.'.join(segments[: index + 1])}"
            )
        current = child

    last = segments[-1]
    if isinstance(current, list):
        if not _ARRAY_INDEX.match(last):
            raise DocumentEditError(f"List index expected at {path}, got {last!r}")
        position = int(last)
        if position >= len(current):
            current.append(value)
        else:
            current[position] = value
    else:
        current[last] = value
    return result


def delete_by_path(document: Mapping[str, Any], path: str) -> ArtifactDocument:
    """Return a copy of ``document`` without the key (and descendants) at ``path``."""
    segments = parse_path(path)
    if not segments:
        raise DocumentEditError("Cannot delete the document root")
    if segments[0] == META_KEY:
        raise DocumentEditError("Meta fields are auto-managed and cannot be deleted")

    result = copy.deepcopy(dict(document))
    current: Any = result
    for segment in segments[:-1]:
        if isinstance(current, dict):
            current = current.get(segment)
        elif isinstance(current, list) and _ARRAY_INDEX.match(segment) and int(segment) < len(current):
            current = current[int(segment)]
        else:
            return result
        if current is None:
            return result

    last = segments[-1]
    if isinstance(current, list):
        if _ARRAY_INDEX.match(last) and int(last) < len(current):
            del current[int(last)]
    elif isinstance(current, dict):
        current.pop(last, None)
    return result


def _coerce_structured_string(value: Any) -> Any:
    """Workers sometimes pass objects as JSON or YAML strings; decode those."""
    if not isinstance(value, str):
        return value
    trimmed = value.strip()
    if (trimmed.startswith("{") and trimmed.endswith("}")) or (
        trimmed.startswith("[") and trimmed.endswith("]")
    ):
        try:
            return json.loads(trimmed)
        except ValueError:
            pass
    if ":" in trimmed and ("\n" in trimmed or _YAML_KEY_VALUE.match(trimmed)):
        try:
            parsed = yaml.safe_load(trimmed)
        except yaml.YAMLError:
            return value
        if isinstance(parsed, (dict, list)):
            return parsed
    return value


def _describe_yaml_error(exc: yaml.YAMLError) -> str:
    mark = getattr(exc, "problem_mark", None)
    problem = getattr(exc, "problem", None) or str(exc).splitlines()[0]
    if mark is not None:
        return f"{problem} (line {mark.line + 1}, column {mark.column + 1})"
    return str(problem)


__all__ = [
    "ArtifactDocument",
    "ArtifactParseError",
    "DocumentEditError",
    "FieldPresence",
    "FieldSpec",
    "ParseResult",
    "REQUIRED_FIELDS",
    "check_fields",
    "delete_by_path",
    "dump_document",
    "generate_meta",
    "load_document",
    "parse_document",
    "set_by_path",
    "source_fingerprint",
    "stored_fingerprint",
]
