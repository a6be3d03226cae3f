"""Icon grid of the packages most recently loaded by a cloud panel."""

from __future__ import annotations

from PySide6.QtCore import QPoint
from PySide6.QtWidgets import QLabel, QMenu, QVBoxLayout, QWidget

from assetbrowser.services.remote_packages import PackageRecord
from assetbrowser.ui.controllers.browser_context import BrowserContext
from assetbrowser.ui.controllers.browser_panel import BrowserPanel
from assetbrowser.ui.widgets.icon_grid import GridEntry, IconGridWidget


class CloudGridPanel(BrowserPanel):
    PANEL_TYPE = "CloudIconGrid"

    def __init__(self, panel_id: str, context: BrowserContext, parent: QWidget | None = None) -> None:
        super().__init__(panel_id, context, parent)
        self._packages: list[PackageRecord] = []
        self.header_label = QLabel("Cloud packages", self)
        self.grid = IconGridWidget(self)
        self.grid.setAcceptDrops(False)

        layout = QVBoxLayout(self)
        layout.setContentsMargins(0, 0, 0, 0)
        layout.setSpacing(2)
        layout.addWidget(self.header_label)
        layout.addWidget(self.grid, 1)

        self.grid.entryActivated.connect(self._on_entry_activated)
        self.grid.entrySelected.connect(self._on_entry_selected)
        self.grid.entryContextMenuRequested.connect(self._show_context_menu)

    def packages(self) -> list[PackageRecord]:
        return list(self._packages)

    def show_packages(self, packages: list[PackageRecord]) -> None:
        self._packages = list(packages)
        self.refresh()

    def refresh(self) -> None:
        self.grid.set_entries([GridEntry(label=p.title or p.ident, package=p) for p in self._packages])
        self.header_label.setText(f"Cloud packages ({len(self._packages)})")

    def _on_entry_activated(self, entry: GridEntry) -> None:
        if entry.package is not None:
            self.statusMessage.emit(f"Package: {entry.package.ident}")

    def _on_entry_selected(self, entry: GridEntry | None) -> None:
        if entry is not None and entry.package is not None and entry.package.summary:
            self.statusMessage.emit(entry.package.summary)

    def _show_context_menu(self, entry: GridEntry | None, global_pos: QPoint) -> None:
        if entry is None or entry.package is None:
            return
        package = entry.package
        menu = QMenu(self)
        act_browser = menu.addAction("Open in Browser")
        act_browser.setEnabled(self.context.package_page_url(package.ident) is not None)
        act_browser.triggered.connect(lambda: self.open_package_page(package))
        act_copy = menu.addAction("Copy Identifier")
        act_copy.triggered.connect(lambda: self.copy_path_to_clipboard(package.ident))
        menu.exec(global_pos)
