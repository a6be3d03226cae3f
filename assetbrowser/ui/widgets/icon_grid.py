from __future__ import annotations

import json
from dataclasses import dataclass

from PySide6.QtCore import QMimeData, QPoint, QSize, Qt, QUrl, Signal
from PySide6.QtWidgets import QAbstractItemView, QApplication, QListView, QListWidget, QListWidgetItem, QStyle, QWidget

from assetbrowser.services.remote_packages import PackageRecord
from assetbrowser.ui.widgets.asset_tree_model import AssetTreeModel


@dataclass(slots=True)
class GridEntry:
    label: str
    path: str = ""
    is_dir: bool = False
    package: PackageRecord | None = None


class IconGridWidget(QListWidget):
    entryActivated = Signal(object)                    # GridEntry
    entrySelected = Signal(object)                     # GridEntry | None
    entryContextMenuRequested = Signal(object, QPoint)  # GridEntry | None, global_pos
    dropRequested = Signal(list, str, bool)            # source paths, target dir, copy

    def __init__(self, parent: QWidget | None = None) -> None:
        super().__init__(parent)
        self.setViewMode(QListView.ViewMode.IconMode)
        self.setResizeMode(QListView.ResizeMode.Adjust)
        self.setMovement(QListView.Movement.Static)
        self.setIconSize(QSize(48, 48))
        self.setGridSize(QSize(96, 84))
        self.setWordWrap(True)
        self.setUniformItemSizes(True)
        self.setSelectionMode(QAbstractItemView.SelectionMode.SingleSelection)
        self.setDragEnabled(True)
        self.setAcceptDrops(True)
        self.setDropIndicatorShown(True)
        self.setDragDropMode(QAbstractItemView.DragDropMode.DragDrop)
        self.drop_target_dir: str = ""

        self.itemDoubleClicked.connect(self._on_item_double_clicked)
        self.currentItemChanged.connect(self._on_current_item_changed)

    def set_entries(self, entries: list[GridEntry]) -> None:
        self.clear()
        style = QApplication.style()
        for entry in entries:
            if entry.package is not None:
                icon = style.standardIcon(QStyle.StandardPixmap.SP_DriveNetIcon)
            elif entry.is_dir:
                icon = style.standardIcon(QStyle.StandardPixmap.SP_DirIcon)
            else:
                icon = style.standardIcon(QStyle.StandardPixmap.SP_FileIcon)
            item = QListWidgetItem(icon, entry.label)
            item.setData(Qt.ItemDataRole.UserRole, entry)
            item.setToolTip(entry.path or (entry.package.ident if entry.package is not None else entry.label))
            self.addItem(item)

    def entries(self) -> list[GridEntry]:
        return [self.item(row).data(Qt.ItemDataRole.UserRole) for row in range(self.count())]

    def selected_entry(self) -> GridEntry | None:
        item = self.currentItem()
        return item.data(Qt.ItemDataRole.UserRole) if item is not None else None

    def contextMenuEvent(self, event):
        item = self.itemAt(event.pos())
        entry = item.data(Qt.ItemDataRole.UserRole) if item is not None else None
        self.entryContextMenuRequested.emit(entry, event.globalPos())
        event.accept()

    def mimeData(self, items):
        mime_data = QMimeData()
        paths = [e.path for e in (i.data(Qt.ItemDataRole.UserRole) for i in items) if e is not None and e.path]
        packages = [e.package.ident for e in (i.data(Qt.ItemDataRole.UserRole) for i in items) if e is not None and e.package is not None]
        if paths:
            mime_data.setData(AssetTreeModel.MIME_TYPE, json.dumps(paths).encode("utf-8"))
            mime_data.setUrls([QUrl.fromLocalFile(path) for path in paths])
        if packages:
            mime_data.setData(AssetTreeModel.PACKAGE_MIME_TYPE, json.dumps(packages).encode("utf-8"))
            mime_data.setText("\n".join(packages))
        return mime_data

    def mimeTypes(self):
        return [AssetTreeModel.MIME_TYPE, AssetTreeModel.PACKAGE_MIME_TYPE, "text/uri-list"]

    def dragEnterEvent(self, event):
        if self.drop_target_dir and AssetTreeModel.decode_paths(event.mimeData()):
            event.acceptProposedAction()
            return
        event.ignore()

    def dragMoveEvent(self, event):
        if self._drop_target(event.position().toPoint()) and AssetTreeModel.decode_paths(event.mimeData()):
            event.accept()
            return
        event.ignore()

    def dropEvent(self, event):
        sources = AssetTreeModel.decode_paths(event.mimeData())
        target = self._drop_target(event.position().toPoint())
        if not sources or not target:
            event.ignore()
            return
        copy = bool(event.modifiers() & Qt.KeyboardModifier.ControlModifier)
        event.setDropAction(Qt.DropAction.CopyAction)
        event.accept()
        self.dropRequested.emit(sources, target, copy)

    def _drop_target(self, pos: QPoint) -> str:
        item = self.itemAt(pos)
        entry = item.data(Qt.ItemDataRole.UserRole) if item is not None else None
        if entry is not None and entry.is_dir and entry.path:
            return entry.path
        return self.drop_target_dir

    def _on_item_double_clicked(self, item: QListWidgetItem) -> None:
        entry = item.data(Qt.ItemDataRole.UserRole)
        if entry is not None:
            self.entryActivated.emit(entry)

    def _on_current_item_changed(self, current: QListWidgetItem | None, _previous: QListWidgetItem | None) -> None:
        self.entrySelected.emit(current.data(Qt.ItemDataRole.UserRole) if current is not None else None)
