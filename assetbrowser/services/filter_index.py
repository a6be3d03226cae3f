"""Search match computation over local roots without building tree nodes."""

from __future__ import annotations

import os
from typing import Iterable

from assetbrowser.app_logging import get_logger
from assetbrowser.services.exclusion import list_visible_entries
from assetbrowser.services.filesystem import FileSystem, canonical_path
from assetbrowser.settings_models import ExclusionRules

logger = get_logger(__name__)

DEFAULT_MAX_DEPTH = 15
DEFAULT_MATCH_SCAN_DEPTH = 5


def normalize_query(query: str | None) -> str:
    return str(query or "").strip().lower()


def compute_matches(
    fs: FileSystem,
    roots: Iterable[str],
    query: str,
    rules: ExclusionRules | None = None,
    *,
    max_depth: int = DEFAULT_MAX_DEPTH,
) -> set[str]:
    """Return every path under ``roots`` whose name contains ``query``, plus all of their ancestors.

    Paths are canonical. A root is included when anything below it matches.
    """
    needle = normalize_query(query)
    if not needle:
        return set()
    active_rules = rules or ExclusionRules()
    matches: set[str] = set()

    def walk(folder: str, depth: int) -> bool:
        if depth > max_depth:
            return False
        found = False
        for entry in list_visible_entries(fs, folder, active_rules):
            path = canonical_path(entry.path)
            hit = needle in entry.name.lower()
            if entry.is_dir and walk(path, depth + 1):
                hit = True
            if hit:
                matches.add(path)
                found = True
        return found

    for root in roots:
        root_path = canonical_path(root)
        if not fs.is_dir(root_path):
            continue
        if needle in os.path.basename(root_path).lower() or walk(root_path, 1):
            matches.add(root_path)
    return matches


def scan_for_match(
    fs: FileSystem,
    folder: str,
    query: str,
    rules: ExclusionRules | None = None,
    *,
    max_depth: int = DEFAULT_MATCH_SCAN_DEPTH,
) -> bool:
    """True when any visible entry below ``folder`` contains ``query`` within ``max_depth`` levels."""
    needle = normalize_query(query)
    if not needle:
        return True
    active_rules = rules or ExclusionRules()

    def walk(path: str, depth: int) -> bool:
        if depth > max_depth:
            return False
        entries = list_visible_entries(fs, path, active_rules)
        if any(needle in entry.name.lower() for entry in entries):
            return True
        return any(walk(entry.path, depth + 1) for entry in entries if entry.is_dir)

    return walk(folder, 1)
