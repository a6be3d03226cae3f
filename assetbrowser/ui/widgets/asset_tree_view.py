import os
from typing import List, Optional

from PySide6.QtCore import QModelIndex, QPoint, Qt, Signal
from PySide6.QtWidgets import QAbstractItemView, QTreeView, QWidget

from assetbrowser.tree.nodes import NodeKind, TreeNode
from assetbrowser.ui.widgets.asset_tree_model import AssetTreeModel, is_folder_like


class AssetTreeView(QTreeView):
    nodeActivated = Signal(object)                      # TreeNode
    nodeSelected = Signal(object)                       # TreeNode | None
    nodeContextMenuRequested = Signal(object, QPoint)   # TreeNode | None, global_pos
    dropRequested = Signal(list, str, bool)             # source paths, target dir, copy

    def __init__(self, parent: Optional[QWidget] = None):
        super().__init__(parent)
        self._model = AssetTreeModel(self)
        self.setModel(self._model)
        self.setHeaderHidden(True)
        self.setUniformRowHeights(True)
        self.setDragEnabled(True)
        self.setAcceptDrops(True)
        self.setDropIndicatorShown(True)
        self.setDragDropMode(QAbstractItemView.DragDropMode.DragDrop)
        self.setSelectionMode(QAbstractItemView.SelectionMode.SingleSelection)
        self.setEditTriggers(QAbstractItemView.EditTrigger.NoEditTriggers)

        self.doubleClicked.connect(self._on_double_clicked)
        self.expanded.connect(self._on_expanded)
        self.collapsed.connect(self._on_collapsed)
        self.selectionModel().currentChanged.connect(self._on_current_changed)

    def asset_model(self) -> AssetTreeModel:
        return self._model

    def set_roots(self, roots: List[TreeNode]):
        self._model.set_roots(roots)
        self.sync_expansion()

    def selected_node(self) -> Optional[TreeNode]:
        return self._model.node_from_index(self.currentIndex())

    def sync_expansion(self):
        """Expand every published node whose ``expanded`` flag is set, top-down."""

        def walk(parent_index: QModelIndex):
            for row in range(self._model.rowCount(parent_index)):
                idx = self._model.index(row, 0, parent_index)
                node = self._model.node_from_index(idx)
                if node is None or not node.expanded:
                    continue
                if self._model.canFetchMore(idx):
                    self._model.fetchMore(idx)
                if not self.isExpanded(idx):
                    self.expand(idx)
                walk(idx)

        walk(QModelIndex())

    def reveal_node(self, node: TreeNode) -> bool:
        for ancestor in reversed(list(node.ancestors())):
            ancestor.set_expanded(True)
        index = self._model.publish(node)
        if not index.isValid():
            return False
        self.sync_expansion()
        self.setCurrentIndex(index)
        self.scrollTo(index)
        return True

    def set_all_expanded(self, expanded: bool):
        """Expand or collapse every displayed folder-like node."""

        def walk(parent_index: QModelIndex):
            for row in range(self._model.rowCount(parent_index)):
                idx = self._model.index(row, 0, parent_index)
                node = self._model.node_from_index(idx)
                if node is None or not is_folder_like(node) or node.kind == NodeKind.CATEGORY:
                    continue
                if expanded:
                    self.expand(idx)
                    walk(idx)
                else:
                    walk(idx)
                    self.collapse(idx)

        walk(QModelIndex())

    def contextMenuEvent(self, event):
        index = self.indexAt(event.pos())
        self.nodeContextMenuRequested.emit(self._model.node_from_index(index), event.globalPos())
        event.accept()

    def keyPressEvent(self, event):
        if event.key() in (Qt.Key.Key_Return, Qt.Key.Key_Enter):
            index = self.currentIndex()
            if index.isValid():
                self._on_double_clicked(index)
                event.accept()
                return
        super().keyPressEvent(event)

    # ---------- Drag/Drop ----------

    def dragEnterEvent(self, event):
        if AssetTreeModel.decode_paths(event.mimeData()):
            event.acceptProposedAction()
            return
        event.ignore()

    def dragMoveEvent(self, event):
        target = self._drop_target_dir(event.position().toPoint())
        if target and AssetTreeModel.decode_paths(event.mimeData()):
            event.setDropAction(self._drop_action(event))
            event.accept()
            return
        event.ignore()

    def dropEvent(self, event):
        sources = AssetTreeModel.decode_paths(event.mimeData())
        target = self._drop_target_dir(event.position().toPoint())
        if not sources or not target:
            event.ignore()
            return
        copy = self._drop_action(event) == Qt.DropAction.CopyAction
        # Report the drop as a copy so the drag source never removes rows itself.
        event.setDropAction(Qt.DropAction.CopyAction)
        event.accept()
        self.dropRequested.emit(sources, target, copy)

    def _drop_action(self, event) -> Qt.DropAction:
        if event.modifiers() & Qt.KeyboardModifier.ControlModifier:
            return Qt.DropAction.CopyAction
        return Qt.DropAction.MoveAction

    def _drop_target_dir(self, pos: QPoint) -> Optional[str]:
        node = self._model.node_from_index(self.indexAt(pos))
        if node is None:
            return None
        if node.kind == NodeKind.LOCAL_FOLDER:
            return node.path
        if node.kind == NodeKind.LOCAL_FILE and node.path:
            return os.path.dirname(node.path)
        return None

    # ---------- Internals ----------

    def _on_expanded(self, index: QModelIndex):
        if self._model.canFetchMore(index):
            self._model.fetchMore(index)
        node = self._model.node_from_index(index)
        if node is not None:
            node.set_expanded(True)

    def _on_collapsed(self, index: QModelIndex):
        node = self._model.node_from_index(index)
        if node is not None:
            node.set_expanded(False)

    def _on_current_changed(self, current: QModelIndex, _previous: QModelIndex):
        self.nodeSelected.emit(self._model.node_from_index(current))

    def _on_double_clicked(self, index: QModelIndex):
        node = self._model.node_from_index(index)
        if node is None:
            return
        if is_folder_like(node):
            self.setExpanded(index, not self.isExpanded(index))
            return
        self.nodeActivated.emit(node)
