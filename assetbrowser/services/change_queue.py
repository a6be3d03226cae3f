from __future__ import annotations

import threading

from assetbrowser.services.filesystem import canonical_path, filter_nested_paths


class ChangeQueue:
    """Collects "path is stale" notices from any thread; drained on the UI tick.

    Repeated notices for one path collapse to a single entry, and a path below
    another pending path is folded into its ancestor on drain.
    """

    def __init__(self) -> None:
        self._lock = threading.Lock()
        self._pending: set[str] = set()

    def post(self, path: str) -> None:
        text = str(path or "").strip()
        if not text:
            return
        with self._lock:
            self._pending.add(canonical_path(text))

    def has_pending(self) -> bool:
        with self._lock:
            return bool(self._pending)

    def drain(self) -> list[str]:
        with self._lock:
            pending = list(self._pending)
            self._pending.clear()
        return filter_nested_paths(pending)

    def clear(self) -> None:
        with self._lock:
            self._pending.clear()
