"""User-initiated file operations: rename, duplicate, delete, create and drops.

Every operation is a single filesystem call per item so a failure leaves the
item where it was. Failures raise ``FileOperationError``.
"""

from __future__ import annotations

import os
from dataclasses import dataclass, field

from assetbrowser.services.filesystem import FileSystem, canonical_path, filter_nested_paths, is_within


class FileOperationError(RuntimeError):
    def __init__(self, message: str, *, kind: str = "unknown", path: str = "") -> None:
        super().__init__(message)
        self.kind = kind
        self.path = path


@dataclass(slots=True)
class DropItem:
    source: str
    destination: str
    action: str  # move | copy
    is_dir: bool


@dataclass(slots=True)
class DropPlan:
    immediate: list[DropItem] = field(default_factory=list)
    needs_confirmation: list[DropItem] = field(default_factory=list)
    skipped: list[str] = field(default_factory=list)


def validate_simple_name(name: str) -> str | None:
    """Return an error message for ``name`` or ``None`` when it is usable."""
    text = str(name or "").strip()
    if not text:
        return "Name cannot be empty."
    if text in (".", ".."):
        return "Invalid name."
    if "/" in text or "\\" in text:
        return "Use a simple name without path separators."
    return None


def rename_target(fs: FileSystem, path: str, new_name: str) -> str | None:
    """Destination for renaming ``path`` to ``new_name``; ``None`` means nothing to do."""
    text = str(new_name or "").strip()
    old_name = os.path.basename(path)
    if not text or text == old_name:
        return None
    if not fs.is_dir(path) and not os.path.splitext(text)[1]:
        text += os.path.splitext(old_name)[1]
        if text == old_name:
            return None
    return os.path.join(os.path.dirname(path), text)


def rename_path(fs: FileSystem, path: str, new_name: str) -> str | None:
    cpath = canonical_path(path)
    if not fs.exists(cpath):
        raise FileOperationError(f"Path no longer exists:\n{cpath}", kind="missing", path=cpath)
    problem = validate_simple_name(new_name)
    if problem is not None and str(new_name or "").strip():
        raise FileOperationError(problem, kind="validation", path=cpath)
    target = rename_target(fs, cpath, new_name)
    if target is None:
        return None
    if fs.exists(target):
        raise FileOperationError(f"Target already exists:\n{target}", kind="exists", path=target)
    try:
        fs.move(cpath, target)
    except OSError as exc:
        raise FileOperationError(f"Could not rename path:\n{exc}", kind="os", path=cpath) from exc
    return canonical_path(target)


def next_copy_target(fs: FileSystem, dest_dir: str, source_name: str) -> str:
    stem, ext = os.path.splitext(source_name)
    if not stem:
        stem, ext = source_name, ""
    counter = 0
    while True:
        suffix = "_copy" if counter == 0 else f"_copy{counter}"
        candidate = os.path.join(dest_dir, f"{stem}{suffix}{ext}")
        if not fs.exists(candidate):
            return candidate
        counter += 1


def duplicate_path(fs: FileSystem, path: str) -> str:
    cpath = canonical_path(path)
    if not fs.exists(cpath):
        raise FileOperationError(f"Path no longer exists:\n{cpath}", kind="missing", path=cpath)
    target = next_copy_target(fs, os.path.dirname(cpath), os.path.basename(cpath))
    try:
        fs.copy(cpath, target)
    except OSError as exc:
        raise FileOperationError(f"Could not duplicate '{cpath}': {exc}", kind="os", path=cpath) from exc
    return canonical_path(target)


def compiled_sibling(path: str, compiled_suffix: str = "_c") -> str:
    return f"{path}{compiled_suffix}"


def delete_path(fs: FileSystem, path: str, *, compiled_suffix: str = "_c") -> list[str]:
    """Delete ``path`` and, for files, its compiled sibling. Returns the removed paths."""
    cpath = canonical_path(path)
    if not fs.exists(cpath):
        raise FileOperationError(f"Path no longer exists:\n{cpath}", kind="missing", path=cpath)
    is_file = not fs.is_dir(cpath)
    try:
        fs.delete(cpath)
    except OSError as exc:
        raise FileOperationError(f"Could not delete '{cpath}': {exc}", kind="os", path=cpath) from exc
    removed = [cpath]
    if is_file and compiled_suffix:
        sibling = compiled_sibling(cpath, compiled_suffix)
        if fs.is_file(sibling):
            try:
                fs.delete(sibling)
            except OSError as exc:
                raise FileOperationError(f"Could not delete '{sibling}': {exc}", kind="os", path=sibling) from exc
            removed.append(sibling)
    return removed


def create_file(fs: FileSystem, folder: str, name: str, text: str = "") -> str:
    problem = validate_simple_name(name)
    if problem is not None:
        raise FileOperationError(problem, kind="validation", path=folder)
    base = canonical_path(folder)
    if not fs.is_dir(base):
        raise FileOperationError("Target directory does not exist.", kind="missing", path=base)
    target = os.path.join(base, name.strip())
    if fs.exists(target):
        raise FileOperationError(f"Path already exists:\n{target}", kind="exists", path=target)
    try:
        fs.write_text(target, text)
    except OSError as exc:
        raise FileOperationError(f"Could not create file:\n{exc}", kind="os", path=target) from exc
    return target


def unique_folder_name(fs: FileSystem, folder: str, base_name: str = "New Folder") -> str:
    candidate = base_name
    counter = 1
    while fs.exists(os.path.join(folder, candidate)):
        candidate = f"{base_name} {counter}"
        counter += 1
    return candidate


def create_folder(fs: FileSystem, folder: str, name: str | None = None) -> str:
    base = canonical_path(folder)
    if not fs.is_dir(base):
        raise FileOperationError("Target directory does not exist.", kind="missing", path=base)
    chosen = str(name or "").strip() or unique_folder_name(fs, base)
    problem = validate_simple_name(chosen)
    if problem is not None:
        raise FileOperationError(problem, kind="validation", path=base)
    target = os.path.join(base, chosen)
    if fs.exists(target):
        raise FileOperationError(f"Path already exists:\n{target}", kind="exists", path=target)
    try:
        fs.make_dir(target)
    except OSError as exc:
        raise FileOperationError(f"Could not create folder:\n{exc}", kind="os", path=target) from exc
    return target


def plan_drop(fs: FileSystem, sources: list[str], target_dir: str, *, copy: bool = False) -> DropPlan:
    """Split dropped paths into work done now and directory moves awaiting confirmation."""
    plan = DropPlan()
    target = canonical_path(target_dir)
    for src in filter_nested_paths(sources):
        if src == target:
            plan.skipped.append(src)
            continue
        destination = os.path.join(target, os.path.basename(src))
        if canonical_path(destination) == src or not fs.exists(src):
            plan.skipped.append(src)
            continue
        is_dir = fs.is_dir(src)
        if is_dir and is_within(src, target):
            plan.skipped.append(src)
            continue
        item = DropItem(src, destination, "copy" if copy else "move", is_dir)
        if is_dir and not copy:
            plan.needs_confirmation.append(item)
        else:
            plan.immediate.append(item)
    return plan


def apply_drop_item(fs: FileSystem, item: DropItem) -> str:
    if item.action == "copy":
        destination = item.destination
        if fs.exists(destination):
            destination = next_copy_target(fs, os.path.dirname(destination), os.path.basename(item.source))
        try:
            fs.copy(item.source, destination)
        except OSError as exc:
            raise FileOperationError(f"Could not copy '{item.source}': {exc}", kind="os", path=item.source) from exc
        return destination

    if fs.exists(item.destination):
        raise FileOperationError(f"Target already exists:\n{item.destination}", kind="exists", path=item.destination)
    try:
        fs.move(item.source, item.destination)
    except OSError as exc:
        raise FileOperationError(f"Could not move '{item.source}': {exc}", kind="os", path=item.source) from exc
    return item.destination


def apply_drop_items(fs: FileSystem, items: list[DropItem]) -> tuple[list[tuple[str, str]], list[FileOperationError]]:
    done: list[tuple[str, str]] = []
    failures: list[FileOperationError] = []
    for item in items:
        try:
            destination = apply_drop_item(fs, item)
        except FileOperationError as exc:
            failures.append(exc)
            continue
        done.append((item.source, destination))
    return done, failures
