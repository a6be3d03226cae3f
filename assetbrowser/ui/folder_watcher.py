from __future__ import annotations

import os

from PySide6.QtCore import QFileSystemWatcher, QObject, QTimer, Signal

from assetbrowser.services.change_queue import ChangeQueue
from assetbrowser.services.filesystem import canonical_path


class FolderWatcher(QObject):
    """Watches a set of directories and reports changed ones after a debounce."""

    pathsChanged = Signal(list)  # canonical directory paths, nested ones folded

    def __init__(self, debounce_ms: int = 260, parent: QObject | None = None) -> None:
        super().__init__(parent)
        self._queue = ChangeQueue()
        self._watcher = QFileSystemWatcher(self)
        self._watcher.directoryChanged.connect(self._on_directory_changed)
        self._flush_timer = QTimer(self)
        self._flush_timer.setSingleShot(True)
        self._flush_timer.setInterval(max(0, int(debounce_ms)))
        self._flush_timer.timeout.connect(self.flush)

    def watched(self) -> set[str]:
        return {canonical_path(path) for path in self._watcher.directories() if isinstance(path, str) and path}

    def set_directories(self, paths: set[str] | list[str]) -> None:
        desired = {canonical_path(path) for path in paths if isinstance(path, str) and os.path.isdir(path)}
        current = self.watched()
        remove_paths = sorted(current - desired)
        if remove_paths:
            self._watcher.removePaths(remove_paths)
        add_paths = sorted(desired - current)
        if add_paths:
            self._watcher.addPaths(add_paths)

    def notify(self, path: str) -> None:
        self._queue.post(path)
        self._flush_timer.start()

    def flush(self) -> None:
        changed = self._queue.drain()
        if changed:
            self.pathsChanged.emit(changed)

    def stop(self) -> None:
        self._flush_timer.stop()
        self._queue.clear()
        dirs = [path for path in self._watcher.directories() if isinstance(path, str) and path]
        if dirs:
            self._watcher.removePaths(dirs)

    def _on_directory_changed(self, path: str) -> None:
        self.notify(path)
