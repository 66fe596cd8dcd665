"""Compares a directory artifact's ``contents`` list with the directory on disk."""

from __future__ import annotations

import os
from typing import Any, List, Optional

from ..logging import get_logger
from ..models import ContentsIssue
from ..paths import ROOT_PATH
from .base import ArtifactCheck, ValidationContext

logger = get_logger("validators.contents")


class ContentsCheck(ArtifactCheck):
    name = "contents"
    bucket = "contents_issues"

    def check(self, context: ValidationContext) -> List[ContentsIssue]:
        issues: List[ContentsIssue] = []
        for record, document in context.iter_documents():
            if not record.unit.is_directory:
                continue
            declared = document.get("contents")
            if not isinstance(declared, list):
                continue
            actual = self._list_children(context, record.unit.path)
            if actual is None:
                continue
            names = [name for name in (_entry_name(item) for item in declared) if name]
            declared_set = set(names)
            actual_set = set(actual)
            missing = tuple(name for name in actual if name not in declared_set)
            extra = tuple(name for name in names if name not in actual_set)
            if missing or extra:
                issues.append(ContentsIssue(artifact=record.artifact, missing=missing, extra=extra))
        return issues

    @staticmethod
    def _list_children(context: ValidationContext, directory: str) -> Optional[List[str]]:
        base = context.root if directory == ROOT_PATH else context.root / directory
        try:
            entries = sorted(os.scandir(base), key=lambda entry: entry.name)
        except OSError as exc:
            logger.debug("Cannot list %s: %s", base, exc)
            return None
        children: List[str] = []
        for entry in entries:
            rel_path = entry.name if directory == ROOT_PATH else f"{directory}/{entry.name}"
            try:
                is_dir = entry.is_dir()
            except OSError:
                continue
            if context.file_filter.accepts(rel_path, is_dir=is_dir):
                children.append(entry.name)
        return children


def _entry_name(item: Any) -> str:
    if isinstance(item, dict):
        item = item.get("name", "")
    if item is None:
        return ""
    return str(item).strip().rstrip("/")


__all__ = ["ContentsCheck"]
