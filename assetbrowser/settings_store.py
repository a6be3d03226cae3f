from __future__ import annotations

import json
from copy import deepcopy
from pathlib import Path
from typing import Any, Mapping

from assetbrowser.app_logging import get_logger

COOKIE_PREFIX = "TreeAssetBrowser"

logger = get_logger(__name__)


class SettingsStoreError(RuntimeError):
    """Raised when a settings file cannot be loaded or saved."""


def deep_merge_defaults(data: Mapping[str, Any], defaults: Mapping[str, Any]) -> dict[str, Any]:
    """Merge defaults into data without overwriting explicitly provided values."""
    merged = deepcopy(dict(data))
    for key, default_value in defaults.items():
        if key not in merged:
            merged[key] = deepcopy(default_value)
            continue
        current = merged[key]
        if isinstance(current, dict) and isinstance(default_value, dict):
            merged[key] = deep_merge_defaults(current, default_value)
    return merged


def dot_get(data: Mapping[str, Any], key: str, default: Any = None) -> Any:
    if not key:
        return data
    current: Any = data
    for part in key.split("."):
        if not isinstance(current, Mapping) or part not in current:
            return default
        current = current[part]
    return current


def dot_set(data: dict[str, Any], key: str, value: Any) -> None:
    if not key:
        raise ValueError("Key cannot be empty.")
    current: dict[str, Any] = data
    parts = key.split(".")
    for part in parts[:-1]:
        next_value = current.get(part)
        if not isinstance(next_value, dict):
            next_value = {}
            current[part] = next_value
        current = next_value
    current[parts[-1]] = value


def dot_delete(data: dict[str, Any], key: str) -> bool:
    if not key:
        return False
    current: dict[str, Any] = data
    parts = key.split(".")
    trail: list[tuple[dict[str, Any], str]] = []
    for part in parts[:-1]:
        next_value = current.get(part)
        if not isinstance(next_value, dict):
            return False
        trail.append((current, part))
        current = next_value
    if parts[-1] not in current:
        return False
    del current[parts[-1]]

    # Drop containers left empty by the delete.
    while trail:
        parent, child_key = trail.pop()
        child = parent.get(child_key)
        if isinstance(child, dict) and not child:
            del parent[child_key]
        else:
            break
    return True


class JsonSettingsStore:
    """JSON-backed mutable store with defaults and dot-key helpers."""

    def __init__(self, path: Path | str, defaults: Mapping[str, Any] | None = None, *, persistent: bool = True) -> None:
        self.path = Path(path)
        self.defaults: dict[str, Any] = deepcopy(dict(defaults or {}))
        self.data: dict[str, Any] = deep_merge_defaults({}, self.defaults)
        self.dirty: bool = False
        self.last_error: str | None = None
        self.persistent: bool = bool(persistent)

    def load(self) -> dict[str, Any]:
        self.last_error = None
        if not self.persistent or not self.path.exists():
            self.data = deep_merge_defaults({}, self.defaults)
            self.dirty = False
            return self.data

        try:
            raw = json.loads(self.path.read_text(encoding="utf-8"))
        except (OSError, ValueError) as exc:
            # Keep the browser usable without touching the unreadable file.
            self.last_error = str(exc)
            logger.warning("Could not read settings file '%s': %s", self.path, exc)
            raw = {}
        if not isinstance(raw, dict):
            self.last_error = f"Settings root in '{self.path}' must be a JSON object, found {type(raw).__name__}."
            logger.warning(self.last_error)
            raw = {}

        self.data = deep_merge_defaults(raw, self.defaults)
        self.dirty = False
        return self.data

    def save(self) -> None:
        if not self.persistent:
            self.dirty = False
            return
        try:
            self.path.parent.mkdir(parents=True, exist_ok=True)
            self.path.write_text(json.dumps(self.data, indent=2, sort_keys=True), encoding="utf-8")
        except OSError as exc:
            raise SettingsStoreError(f"Could not write settings file '{self.path}': {exc}") from exc
        self.dirty = False
        self.last_error = None

    def get(self, key: str, default: Any = None) -> Any:
        return deepcopy(dot_get(self.data, key, default))

    def set(self, key: str, value: Any) -> bool:
        if dot_get(self.data, key, object()) == value:
            return False
        dot_set(self.data, key, deepcopy(value))
        self.dirty = True
        return True

    def delete(self, key: str) -> bool:
        changed = dot_delete(self.data, key)
        if changed:
            self.dirty = True
        return changed


class CookieStore:
    """Project-scoped key/value persistence for browser panels.

    Keys follow ``TreeAssetBrowser.<id>.<field>``. Writes are buffered in the
    underlying store; ``flush`` writes them out when anything changed.
    """

    def __init__(self, store: JsonSettingsStore) -> None:
        self._store = store

    @classmethod
    def for_project(cls, project_root: Path | str) -> "CookieStore":
        path = Path(project_root) / ".assetbrowser" / "cookies.json"
        store = JsonSettingsStore(path, {})
        store.load()
        return cls(store)

    @classmethod
    def in_memory(cls) -> "CookieStore":
        return cls(JsonSettingsStore(Path("cookies.json"), {}, persistent=False))

    @staticmethod
    def key(*parts: str) -> str:
        return ".".join((COOKIE_PREFIX, *parts))

    def get(self, key: str, default: Any = None) -> Any:
        return self._store.get(key, default)

    def set(self, key: str, value: Any) -> None:
        self._store.set(key, value)

    def delete(self, key: str) -> None:
        self._store.delete(key)

    def flush(self) -> bool:
        if not self._store.dirty:
            return False
        try:
            self._store.save()
        except SettingsStoreError as exc:
            logger.warning("%s", exc)
            return False
        return True
