"""Visibility rules for local filesystem entries."""

from __future__ import annotations

from typing import Iterable

from assetbrowser.app_logging import get_logger
from assetbrowser.services.filesystem import DirEntry, FileSystem
from assetbrowser.settings_models import ExclusionRules

logger = get_logger(__name__)


def is_excluded(entry: DirEntry, sibling_files: set[str], rules: ExclusionRules) -> bool:
    """Apply the exclusion rules in order.

    ``sibling_files`` holds the names of the files next to ``entry``.
    """
    if entry.is_hidden:
        return True
    name = entry.name
    lowered = name.lower()
    if entry.is_dir and rules.build_artifact_dir and lowered == rules.build_artifact_dir.lower():
        return True
    if name.startswith("."):
        return True
    if entry.is_dir:
        return False
    if rules.generated_marker and rules.generated_marker.lower() in lowered:
        return True
    if rules.meta_suffix and lowered.endswith(rules.meta_suffix.lower()):
        return True
    suffix = rules.compiled_suffix.lower()
    if suffix and lowered.endswith(suffix) and len(lowered) > len(suffix):
        return name[: -len(suffix)] in sibling_files
    return False


def sort_entries(entries: Iterable[DirEntry]) -> list[DirEntry]:
    return sorted(entries, key=lambda e: (not e.is_dir, e.name.lower()))


def visible_entries(entries: list[DirEntry], rules: ExclusionRules) -> list[DirEntry]:
    sibling_files = {e.name for e in entries if not e.is_dir}
    return sort_entries(e for e in entries if not is_excluded(e, sibling_files, rules))


def list_visible_entries(fs: FileSystem, path: str, rules: ExclusionRules) -> list[DirEntry]:
    """Folders first, then files, both case-insensitive. Scan errors yield ``[]``."""
    try:
        entries = fs.list_entries(path)
    except OSError as exc:
        logger.debug("Could not list '%s': %s", path, exc)
        return []
    return visible_entries(entries, rules)
