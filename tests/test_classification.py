"""Tests for audoc.classification."""

from __future__ import annotations

from audoc.classification import UnitClass, classify_unit
from audoc.models import SourceUnit, UnitKind


def _file(path: str) -> SourceUnit:
    return SourceUnit(path, UnitKind.FILE)


def test_kinds_map_to_structural_classes() -> None:
    assert classify_unit(SourceUnit(".", UnitKind.ROOT)) is UnitClass.ROOT
    assert classify_unit(SourceUnit("src", UnitKind.DIRECTORY)) is UnitClass.DIRECTORY


def test_files_under_service_and_utility_directories() -> None:
    assert classify_unit(_file("src/services/user.ts")) is UnitClass.SERVICE
    assert classify_unit(_file("src/utils/strings.ts")) is UnitClass.UTILITY
    assert classify_unit(_file("src/index.ts")) is UnitClass.MODULE


def test_file_name_alone_does_not_make_a_service() -> None:
    assert classify_unit(_file("services.ts")) is UnitClass.MODULE


def test_custom_segments_are_case_insensitive() -> None:
    unit = _file("app/Handlers/login.py")
    assert classify_unit(unit, service_segments=["handlers"]) is UnitClass.SERVICE
    assert UnitClass.SERVICE.requires_key_logic
    assert not UnitClass.MODULE.requires_key_logic


def test_top_level_service_directory_counts() -> None:
    assert classify_unit(_file("services/user.ts")) is UnitClass.SERVICE
    assert classify_unit(_file("utils/strings.ts")) is UnitClass.UTILITY
