"""Icon grid panel: the visible entries of a single folder."""

from __future__ import annotations

import os

from PySide6.QtCore import QPoint, QUrl
from PySide6.QtGui import QDesktopServices
from PySide6.QtWidgets import QHBoxLayout, QLabel, QMenu, QToolButton, QVBoxLayout, QWidget

from assetbrowser.app_logging import get_logger
from assetbrowser.services.exclusion import list_visible_entries
from assetbrowser.services.filesystem import canonical_path
from assetbrowser.services.remote_packages import PackageRecord
from assetbrowser.ui.controllers.browser_context import BrowserContext
from assetbrowser.ui.controllers.browser_panel import BrowserPanel
from assetbrowser.ui.folder_watcher import FolderWatcher
from assetbrowser.ui.widgets.icon_grid import GridEntry, IconGridWidget

logger = get_logger(__name__)

CLOUD_LABEL = "Cloud"


class GridPanel(BrowserPanel):
    PANEL_TYPE = "IconGrid"

    def __init__(self, panel_id: str, context: BrowserContext, parent: QWidget | None = None) -> None:
        super().__init__(panel_id, context, parent)
        self.current_folder: str | None = None
        self._cloud_packages: list[PackageRecord] | None = None

        self.up_btn = QToolButton(self)
        self.up_btn.setText("Up")
        self.path_label = QLabel(self)
        self.refresh_btn = QToolButton(self)
        self.refresh_btn.setText("Refresh")
        self.grid = IconGridWidget(self)

        toolbar = QHBoxLayout()
        toolbar.setContentsMargins(0, 0, 0, 0)
        toolbar.addWidget(self.up_btn)
        toolbar.addWidget(self.path_label, 1)
        toolbar.addWidget(self.refresh_btn)
        layout = QVBoxLayout(self)
        layout.setContentsMargins(0, 0, 0, 0)
        layout.setSpacing(2)
        layout.addLayout(toolbar)
        layout.addWidget(self.grid, 1)

        self._watcher = FolderWatcher(context.config.watch_debounce_ms, self)
        self._watcher.pathsChanged.connect(self._on_paths_changed)

        self.up_btn.clicked.connect(self.go_up)
        self.refresh_btn.clicked.connect(self.refresh)
        self.grid.entryActivated.connect(self.activate_entry)
        self.grid.entrySelected.connect(self._on_entry_selected)
        self.grid.entryContextMenuRequested.connect(self._show_context_menu)
        self.grid.dropRequested.connect(self.handle_drop)

        roots = context.local_roots()
        if roots:
            self.show_folder(roots[0][1])
        else:
            self._update_header()

    @property
    def in_package_mode(self) -> bool:
        return self._cloud_packages is not None

    def show_folder(self, path: str) -> bool:
        folder = canonical_path(path)
        if not self.context.fs.is_dir(folder):
            return False
        self._cloud_packages = None
        self.current_folder = folder
        self._watcher.set_directories({folder})
        self.reload()
        return True

    def show_cloud_packages(self, packages: list[PackageRecord]) -> None:
        self._cloud_packages = list(packages)
        self._watcher.set_directories(set())
        self.reload()

    def go_up(self) -> bool:
        if self.in_package_mode:
            if self.current_folder and self.context.fs.is_dir(self.current_folder):
                return self.show_folder(self.current_folder)
            self._cloud_packages = None
            self.reload()
            return False
        if not self.can_go_up():
            return False
        return self.show_folder(os.path.dirname(self.current_folder))

    def can_go_up(self) -> bool:
        if self.in_package_mode:
            return self.current_folder is not None
        if not self.current_folder or self.context.is_boundary(self.current_folder):
            return False
        return os.path.dirname(self.current_folder) != self.current_folder

    def reload(self) -> None:
        if self._cloud_packages is not None:
            entries = [GridEntry(label=p.title or p.ident, package=p) for p in self._cloud_packages]
            self.grid.drop_target_dir = ""
        elif self.current_folder:
            listed = list_visible_entries(self.context.fs, self.current_folder, self.context.config.rules)
            entries = [GridEntry(label=e.name, path=e.path, is_dir=e.is_dir) for e in listed]
            self.grid.drop_target_dir = self.current_folder
        else:
            entries = []
            self.grid.drop_target_dir = ""
        self.grid.set_entries(entries)
        self._update_header()

    def refresh(self) -> None:
        if self.current_folder and not self.in_package_mode and not self.context.fs.is_dir(self.current_folder):
            # Folder vanished; fall back to the nearest existing ancestor.
            parent = os.path.dirname(self.current_folder)
            while parent and not self.context.fs.is_dir(parent) and os.path.dirname(parent) != parent:
                parent = os.path.dirname(parent)
            if self.context.fs.is_dir(parent):
                self.show_folder(parent)
                return
        self.reload()

    def select_path(self, path: str) -> bool:
        target = canonical_path(path)
        for row, entry in enumerate(self.grid.entries()):
            if entry.path == target:
                self.grid.setCurrentRow(row)
                return True
        return False

    def after_path_change(self, folder: str, focus_path: str | None = None) -> None:
        self.refresh()
        if focus_path:
            self.select_path(focus_path)

    def activate_entry(self, entry: GridEntry) -> None:
        if entry.package is not None:
            self.statusMessage.emit(f"Package: {entry.package.ident}")
        elif entry.is_dir:
            self.show_folder(entry.path)
        elif entry.path:
            self.context.open_file(entry.path)

    def close_panel(self) -> None:
        self._watcher.stop()
        super().close_panel()

    def _update_header(self) -> None:
        if self.in_package_mode:
            self.path_label.setText(CLOUD_LABEL)
        elif self.current_folder:
            self.path_label.setText(self.context.display_path(self.current_folder))
        else:
            self.path_label.setText("")
        self.up_btn.setEnabled(self.can_go_up())

    def _on_entry_selected(self, entry: GridEntry | None) -> None:
        if entry is None or entry.is_dir or not entry.path:
            return
        self.fileSelected.emit(entry.path)
        resolver = self.context.resolver
        asset = resolver.find_asset_by_path(entry.path) if resolver is not None else None
        if asset is not None:
            self.assetSelected.emit(asset)

    def _on_paths_changed(self, paths: list[str]) -> None:
        if self.current_folder in paths and not self.in_package_mode:
            self.refresh()

    def _show_context_menu(self, entry: GridEntry | None, global_pos: QPoint) -> None:
        menu = QMenu(self)
        if self.in_package_mode:
            package = entry.package if entry is not None else None
            if package is None:
                return
            act_browser = menu.addAction("Open in Browser")
            act_browser.setEnabled(self.context.package_page_url(package.ident) is not None)
            act_browser.triggered.connect(lambda: self.open_package_page(package))
            act_copy = menu.addAction("Copy Identifier")
            act_copy.triggered.connect(lambda: self.copy_path_to_clipboard(package.ident))
            menu.exec(global_pos)
            return
        if entry is not None and entry.path:
            path = entry.path
            act_open = menu.addAction("Open")
            act_open.triggered.connect(lambda: self.activate_entry(entry))
            menu.addSeparator()
            act_rename = menu.addAction("Rename...")
            act_rename.triggered.connect(lambda: self.prompt_rename(path))
            act_duplicate = menu.addAction("Duplicate")
            act_duplicate.triggered.connect(lambda: self.duplicate_path(path))
            act_delete = menu.addAction("Delete...")
            act_delete.triggered.connect(lambda: self.delete_path(path))
            act_copy = menu.addAction("Copy Path")
            act_copy.triggered.connect(lambda: self.copy_path_to_clipboard(path))
            act_copy_rel = menu.addAction("Copy Relative Path")
            act_copy_rel.triggered.connect(lambda: self.copy_relative_path(path))
        elif self.current_folder:
            folder = self.current_folder
            act_new_file = menu.addAction("New File...")
            act_new_file.triggered.connect(lambda: self.prompt_new_file(folder))
            act_new_folder = menu.addAction("New Folder")
            act_new_folder.triggered.connect(lambda: self.create_folder_in(folder))
            act_open_dir = menu.addAction("Open in File Manager")
            act_open_dir.triggered.connect(lambda: QDesktopServices.openUrl(QUrl.fromLocalFile(folder)))
        menu.addSeparator()
        act_refresh = menu.addAction("Refresh")
        act_refresh.triggered.connect(self.refresh)
        menu.exec(global_pos)
