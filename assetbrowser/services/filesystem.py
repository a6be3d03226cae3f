"""Filesystem capability used by tree nodes, the filter index and file operations."""

from __future__ import annotations

import os
import shutil
import stat
from dataclasses import dataclass
from pathlib import Path
from typing import Protocol


@dataclass(slots=True)
class DirEntry:
    name: str
    path: str
    is_dir: bool
    is_hidden: bool = False


class FileSystem(Protocol):
    def list_entries(self, path: str) -> list[DirEntry]: ...

    def has_entries(self, path: str) -> bool: ...

    def exists(self, path: str) -> bool: ...

    def is_dir(self, path: str) -> bool: ...

    def is_file(self, path: str) -> bool: ...

    def move(self, src: str, dest: str) -> None: ...

    def copy(self, src: str, dest: str) -> None: ...

    def delete(self, path: str) -> None: ...

    def make_dir(self, path: str) -> None: ...

    def write_text(self, path: str, text: str) -> None: ...


def canonical_path(path: str) -> str:
    try:
        return os.path.realpath(os.path.abspath(os.path.expanduser(path)))
    except (OSError, ValueError):
        return os.path.abspath(os.path.expanduser(path))


def is_within(ancestor: str, path: str) -> bool:
    try:
        return os.path.commonpath([canonical_path(ancestor), canonical_path(path)]) == canonical_path(ancestor)
    except ValueError:
        return False


def filter_nested_paths(paths: list[str]) -> list[str]:
    ordered = sorted({canonical_path(p) for p in paths if isinstance(p, str) and p.strip()}, key=lambda p: (len(p), p.lower()))
    result: list[str] = []
    for path in ordered:
        if any(path == root or path.startswith(root + os.sep) for root in result):
            continue
        result.append(path)
    return result


def _entry_is_hidden(entry: os.DirEntry) -> bool:
    try:
        info = entry.stat(follow_symlinks=False)
    except OSError:
        return False
    attributes = getattr(info, "st_file_attributes", 0)
    if attributes and attributes & getattr(stat, "FILE_ATTRIBUTE_HIDDEN", 0):
        return True
    flags = getattr(info, "st_flags", 0)
    return bool(flags and flags & getattr(stat, "UF_HIDDEN", 0))


class LocalFileSystem:
    """``FileSystem`` backed by ``os`` and ``shutil``.

    Enumeration raises ``OSError``; callers that must stay responsive catch it
    at the call site.
    """

    def list_entries(self, path: str) -> list[DirEntry]:
        entries: list[DirEntry] = []
        with os.scandir(path) as it:
            for entry in it:
                try:
                    is_dir = entry.is_dir(follow_symlinks=True)
                except OSError:
                    continue
                entries.append(DirEntry(entry.name, entry.path, is_dir, _entry_is_hidden(entry)))
        return entries

    def has_entries(self, path: str) -> bool:
        try:
            with os.scandir(path) as it:
                for entry in it:
                    if not entry.name.startswith("."):
                        return True
        except OSError:
            return False
        return False

    def exists(self, path: str) -> bool:
        return os.path.exists(path)

    def is_dir(self, path: str) -> bool:
        return os.path.isdir(path)

    def is_file(self, path: str) -> bool:
        return os.path.isfile(path)

    def move(self, src: str, dest: str) -> None:
        shutil.move(src, dest)

    def copy(self, src: str, dest: str) -> None:
        if os.path.isdir(src):
            shutil.copytree(src, dest)
        else:
            shutil.copy2(src, dest)

    def delete(self, path: str) -> None:
        if os.path.isdir(path) and not os.path.islink(path):
            shutil.rmtree(path)
        else:
            os.remove(path)

    def make_dir(self, path: str) -> None:
        os.makedirs(path, exist_ok=False)

    def write_text(self, path: str, text: str) -> None:
        target = Path(path)
        target.parent.mkdir(parents=True, exist_ok=True)
        with open(target, "x", encoding="utf-8") as handle:
            handle.write(text)
