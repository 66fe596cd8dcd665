"""Classification of source units into the categories that drive required fields."""

from __future__ import annotations

from enum import Enum
from typing import Iterable, Sequence

from .models import SourceUnit, UnitKind


class UnitClass(str, Enum):
    """Role of a source unit as far as artifact requirements are concerned."""

    ROOT = "root"
    DIRECTORY = "directory"
    SERVICE = "service"
    UTILITY = "utility"
    MODULE = "module"

    @property
    def requires_key_logic(self) -> bool:
        return self in (UnitClass.SERVICE, UnitClass.UTILITY)


DEFAULT_SERVICE_SEGMENTS: tuple[str, ...] = ("services",)
DEFAULT_UTILITY_SEGMENTS: tuple[str, ...] = ("utils",)


def classify_unit(
    unit: SourceUnit,
    *,
    service_segments: Sequence[str] = DEFAULT_SERVICE_SEGMENTS,
    utility_segments: Sequence[str] = DEFAULT_UTILITY_SEGMENTS,
) -> UnitClass:
    """Classify a unit by kind and, for files, by the directories it lives in.

    A file counts as a service (or utility) when one of its parent directory
    segments matches, so ``src/services/user.ts`` is a service while a top-level
    ``services.ts`` is a plain module. The first segment counts too:
    ``services/user.ts`` at the root of the tree is a service, the same as when
    it is nested.
    """
    if unit.kind is UnitKind.ROOT:
        return UnitClass.ROOT
    if unit.kind is UnitKind.DIRECTORY:
        return UnitClass.DIRECTORY

    directories = unit.path.split("/")[:-1]
    if _matches(directories, service_segments):
        return UnitClass.SERVICE
    if _matches(directories, utility_segments):
        return UnitClass.UTILITY
    return UnitClass.MODULE


def _matches(directories: Iterable[str], segments: Sequence[str]) -> bool:
    wanted = {segment.strip("/").lower() for segment in segments if segment.strip("/")}
    return any(directory.lower() in wanted for directory in directories)


__all__ = ["UnitClass", "classify_unit"]
