import json
from typing import Any, Callable, Dict, List, Optional, cast

from PySide6.QtCore import QAbstractItemModel, QMimeData, QModelIndex, QObject, Qt, QUrl
from PySide6.QtWidgets import QApplication, QStyle

from assetbrowser.tree.nodes import FOLDER_KINDS, NodeKind, TreeNode

NodeRole = Qt.ItemDataRole.UserRole
KindRole = Qt.ItemDataRole.UserRole + 1
IdentityRole = Qt.ItemDataRole.UserRole + 2

_KIND_ICONS = {
    NodeKind.LOCAL_FOLDER: QStyle.StandardPixmap.SP_DirIcon,
    NodeKind.LOCAL_FILE: QStyle.StandardPixmap.SP_FileIcon,
    NodeKind.PACKAGE_FOLDER: QStyle.StandardPixmap.SP_DriveNetIcon,
    NodeKind.PACKAGE_SUBFOLDER: QStyle.StandardPixmap.SP_DirIcon,
    NodeKind.CATEGORY: QStyle.StandardPixmap.SP_DirLinkIcon,
    NodeKind.LOAD_MORE: QStyle.StandardPixmap.SP_ArrowDown,
    NodeKind.SECTION_HEADER: QStyle.StandardPixmap.SP_ComputerIcon,
}


class AssetTreeModel(QAbstractItemModel):
    """Item model over a forest of lazily built ``TreeNode`` objects.

    Rows are published per node: a node's children reach the view only through
    ``fetchMore`` (or ``publish``), filtered by the display predicate.
    """

    MIME_TYPE = "application/x-assetbrowser-paths"
    PACKAGE_MIME_TYPE = "application/x-assetbrowser-package"

    def __init__(self, parent: Optional[QObject] = None):
        super().__init__(parent)
        self._roots: List[TreeNode] = []
        self._published: Dict[Any, List[TreeNode]] = {None: []}
        self._should_display: Optional[Callable[[TreeNode], bool]] = None

    # ---------- Public API ----------

    def roots(self) -> List[TreeNode]:
        return list(self._roots)

    def set_roots(self, roots: List[TreeNode]):
        self.beginResetModel()
        self._roots = list(roots)
        self._published = {None: self._filter(self._roots)}
        self.endResetModel()

    def set_should_display(self, predicate: Optional[Callable[[TreeNode], bool]]):
        self._should_display = predicate

    def should_display(self, node: TreeNode) -> bool:
        if self._should_display is None:
            return True
        try:
            return bool(self._should_display(node))
        except OSError:
            return True

    def node_from_index(self, index: QModelIndex) -> Optional[TreeNode]:
        if not index.isValid():
            return None
        return cast(TreeNode, index.internalPointer())

    def index_from_node(self, node: Optional[TreeNode]) -> QModelIndex:
        if node is None:
            return QModelIndex()
        siblings = self._published.get(node.parent if node.parent is not None else None)
        if siblings is None:
            return QModelIndex()
        for row, sibling in enumerate(siblings):
            if sibling is node:
                return self.createIndex(row, 0, node)
        return QModelIndex()

    def publish(self, node: TreeNode) -> QModelIndex:
        """Make ``node`` reachable in the view by publishing every ancestor's rows."""
        chain = list(reversed(list(node.ancestors())))
        for ancestor in chain:
            idx = self.index_from_node(ancestor)
            if not idx.isValid():
                return QModelIndex()
            if self.canFetchMore(idx):
                self.fetchMore(idx)
        return self.index_from_node(node)

    def refresh_node(self, node: TreeNode):
        """Discard and rebuild the children of ``node`` in place."""
        index = self.index_from_node(node)
        if not index.isValid():
            # Not reachable in the view; rebuild the node only.
            self._unpublish_children(node)
            node.clear_children()
            if node.expanded:
                node.ensure_children_built()
            return
        old = self._published.get(node, [])
        if old:
            self.beginRemoveRows(index, 0, len(old) - 1)
            self._unpublish_children(node)
            node.clear_children()
            self.endRemoveRows()
        else:
            self._unpublish_children(node)
            node.clear_children()
        if node.expanded:
            self._publish_children(node, index)

    def node_changed(self, node: TreeNode):
        index = self.index_from_node(node)
        if index.isValid():
            self.dataChanged.emit(index, index, [Qt.ItemDataRole.DisplayRole, Qt.ItemDataRole.DecorationRole])

    def sync_children(self, node: TreeNode):
        """Publish rows appended to an already built node (e.g. a loaded page)."""
        index = self.index_from_node(node)
        if node not in self._published:
            return
        current = self._published[node]
        wanted = self._filter(node.children or [])
        if [id(n) for n in wanted[: len(current)]] != [id(n) for n in current]:
            self.refresh_node(node)
            return
        extra = wanted[len(current):]
        if not extra:
            return
        self.beginInsertRows(index, len(current), len(current) + len(extra) - 1)
        self._published[node] = wanted
        self.endInsertRows()

    # ---------- QAbstractItemModel ----------

    def index(self, row: int, column: int, parent: QModelIndex = QModelIndex()) -> QModelIndex:
        if not self.hasIndex(row, column, parent):
            return QModelIndex()
        rows = self._published.get(self._key(parent), [])
        if not 0 <= row < len(rows):
            return QModelIndex()
        return self.createIndex(row, column, rows[row])

    def parent(self, index: QModelIndex) -> QModelIndex:
        if not index.isValid():
            return QModelIndex()
        node = cast(TreeNode, index.internalPointer())
        return self.index_from_node(node.parent)

    def rowCount(self, parent: QModelIndex = QModelIndex()) -> int:
        if parent.column() > 0:
            return 0
        return len(self._published.get(self._key(parent), []))

    def columnCount(self, parent: QModelIndex = QModelIndex()) -> int:
        return 1

    def data(self, index: QModelIndex, role: int = Qt.ItemDataRole.DisplayRole) -> Any:
        if not index.isValid():
            return None
        node = cast(TreeNode, index.internalPointer())
        if role in (Qt.ItemDataRole.DisplayRole, Qt.ItemDataRole.EditRole):
            return node.display_name
        if role == Qt.ItemDataRole.DecorationRole:
            return QApplication.style().standardIcon(_KIND_ICONS[node.kind])
        if role == Qt.ItemDataRole.ToolTipRole:
            if node.path:
                return node.path
            package = getattr(node, "package", None)
            return package.ident if package is not None else None
        if role == NodeRole:
            return node
        if role == KindRole:
            return node.kind.value
        if role == IdentityRole:
            return node.identity_key
        return None

    def headerData(self, section: int, orientation: Qt.Orientation, role: int = Qt.ItemDataRole.DisplayRole) -> Any:
        if orientation == Qt.Orientation.Horizontal and role == Qt.ItemDataRole.DisplayRole:
            return "Assets"
        return None

    def flags(self, index: QModelIndex) -> Qt.ItemFlag:
        if not index.isValid():
            return Qt.ItemFlag.ItemIsEnabled
        node = cast(TreeNode, index.internalPointer())
        flags = Qt.ItemFlag.ItemIsEnabled | Qt.ItemFlag.ItemIsSelectable
        if node.kind in (NodeKind.LOCAL_FOLDER, NodeKind.LOCAL_FILE, NodeKind.PACKAGE_FOLDER):
            flags |= Qt.ItemFlag.ItemIsDragEnabled
        if node.kind == NodeKind.LOCAL_FOLDER:
            flags |= Qt.ItemFlag.ItemIsDropEnabled
        return flags

    def hasChildren(self, parent: QModelIndex = QModelIndex()) -> bool:
        if not parent.isValid():
            return bool(self._published.get(None))
        node = cast(TreeNode, parent.internalPointer())
        if node in self._published:
            return bool(self._published[node])
        return node.has_children()

    def canFetchMore(self, parent: QModelIndex) -> bool:
        if not parent.isValid():
            return False
        node = cast(TreeNode, parent.internalPointer())
        if node in self._published:
            return False
        return node.has_children()

    def fetchMore(self, parent: QModelIndex):
        if not parent.isValid():
            return
        node = cast(TreeNode, parent.internalPointer())
        if node in self._published:
            return
        self._publish_children(node, parent)

    # ---------- Drag ----------

    def mimeTypes(self) -> List[str]:
        return [self.MIME_TYPE, self.PACKAGE_MIME_TYPE, "text/uri-list"]

    def mimeData(self, indexes: List[QModelIndex]) -> QMimeData:
        mime_data = QMimeData()
        paths: List[str] = []
        packages: List[str] = []
        for index in indexes:
            if not index.isValid() or index.column() != 0:
                continue
            node = cast(TreeNode, index.internalPointer())
            if node.kind in (NodeKind.LOCAL_FOLDER, NodeKind.LOCAL_FILE) and node.path and node.path not in paths:
                paths.append(node.path)
            package = getattr(node, "package", None)
            if node.kind == NodeKind.PACKAGE_FOLDER and package is not None:
                packages.append(package.ident)
        if paths:
            mime_data.setData(self.MIME_TYPE, json.dumps(paths).encode("utf-8"))
            mime_data.setUrls([QUrl.fromLocalFile(path) for path in paths])
        if packages:
            mime_data.setData(self.PACKAGE_MIME_TYPE, json.dumps(packages).encode("utf-8"))
            mime_data.setText("\n".join(packages))
        return mime_data

    @classmethod
    def decode_paths(cls, data: QMimeData) -> List[str]:
        if data.hasFormat(cls.MIME_TYPE):
            raw = bytes(data.data(cls.MIME_TYPE))
            try:
                payload = json.loads(raw.decode("utf-8", errors="replace"))
            except ValueError:
                payload = []
            if isinstance(payload, list):
                return [str(item) for item in payload if isinstance(item, str) and item.strip()]
        if data.hasUrls():
            return [url.toLocalFile() for url in data.urls() if url.isLocalFile()]
        return []

    # ---------- Internals ----------

    def _key(self, index: QModelIndex):
        if not index.isValid():
            return None
        return cast(TreeNode, index.internalPointer())

    def _filter(self, nodes: List[TreeNode]) -> List[TreeNode]:
        return [node for node in nodes if self.should_display(node)]

    def _publish_children(self, node: TreeNode, index: QModelIndex):
        node.ensure_children_built()
        visible = self._filter(node.children or [])
        if not visible:
            self._published[node] = []
            return
        self.beginInsertRows(index, 0, len(visible) - 1)
        self._published[node] = visible
        self.endInsertRows()

    def _unpublish_children(self, node: TreeNode):
        for child in self._published.pop(node, []):
            self._unpublish_children(child)


def is_folder_like(node: Optional[TreeNode]) -> bool:
    return node is not None and (node.kind in FOLDER_KINDS or node.kind in (NodeKind.CATEGORY, NodeKind.SECTION_HEADER))
