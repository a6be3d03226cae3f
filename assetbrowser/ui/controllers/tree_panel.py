"""Tree panel: local roots as a lazily built tree with search and persisted expansion."""

from __future__ import annotations

import os

from PySide6.QtCore import QPoint, QTimer, QUrl
from PySide6.QtGui import QDesktopServices
from PySide6.QtWidgets import QHBoxLayout, QLineEdit, QMenu, QToolButton, QVBoxLayout, QWidget

from assetbrowser.app_logging import get_logger
from assetbrowser.services.filesystem import canonical_path
from assetbrowser.tree.expansion_state import ExpansionStateStore
from assetbrowser.tree.nodes import (
    LocalFolderNode,
    NodeContext,
    NodeKind,
    SectionHeaderNode,
    TreeNode,
    find_in_roots,
    header_key,
)
from assetbrowser.tree.search_session import SearchSession
from assetbrowser.ui.controllers.browser_context import BrowserContext
from assetbrowser.ui.controllers.browser_panel import BrowserPanel
from assetbrowser.ui.folder_watcher import FolderWatcher
from assetbrowser.ui.widgets.asset_tree_view import AssetTreeView

logger = get_logger(__name__)

LOCAL_HEADER = "Local"
PACKAGE_HEADER = "Package"
SEARCH_DEBOUNCE_MS = 250


class TreePanel(BrowserPanel):
    PANEL_TYPE = "Tree"

    def __init__(self, panel_id: str, context: BrowserContext, parent: QWidget | None = None) -> None:
        super().__init__(panel_id, context, parent)
        self._roots: list[TreeNode] = []
        self._node_context = context.node_context(owner=self)
        self.store = ExpansionStateStore(panel_id, context.cookies)
        self.session = SearchSession(
            context.fs,
            self.store,
            context.search_roots,
            self._rebuild_roots,
            rules=context.config.rules,
            max_depth=context.config.scan_max_depth,
        )

        self.search_edit = QLineEdit(self)
        self.search_edit.setPlaceholderText("Search assets...")
        self.search_edit.setClearButtonEnabled(True)
        self.expand_all_btn = QToolButton(self)
        self.expand_all_btn.setText("Expand All")
        self.collapse_all_btn = QToolButton(self)
        self.collapse_all_btn.setText("Collapse All")
        self.refresh_btn = QToolButton(self)
        self.refresh_btn.setText("Refresh")
        self.view = AssetTreeView(self)
        self.view.asset_model().set_should_display(self.session.is_visible)

        toolbar = QHBoxLayout()
        toolbar.setContentsMargins(0, 0, 0, 0)
        toolbar.addWidget(self.search_edit, 1)
        toolbar.addWidget(self.expand_all_btn)
        toolbar.addWidget(self.collapse_all_btn)
        toolbar.addWidget(self.refresh_btn)
        layout = QVBoxLayout(self)
        layout.setContentsMargins(0, 0, 0, 0)
        layout.setSpacing(2)
        layout.addLayout(toolbar)
        layout.addWidget(self.view, 1)

        self._search_timer = QTimer(self)
        self._search_timer.setSingleShot(True)
        self._search_timer.setInterval(SEARCH_DEBOUNCE_MS)
        self._search_timer.timeout.connect(self._run_pending_search)
        self._save_timer = QTimer(self)
        self._save_timer.setInterval(context.config.save_interval_ms)
        self._save_timer.timeout.connect(self._on_save_tick)
        self._watcher = FolderWatcher(context.config.watch_debounce_ms, self)
        self._watcher.pathsChanged.connect(self._on_paths_changed)

        self.search_edit.textEdited.connect(self._on_search_text_edited)
        self.search_edit.returnPressed.connect(self._run_pending_search)
        self.expand_all_btn.clicked.connect(self.expand_all)
        self.collapse_all_btn.clicked.connect(self.collapse_all)
        self.refresh_btn.clicked.connect(self.refresh)
        self.view.nodeActivated.connect(self.activate_node)
        self.view.nodeSelected.connect(self._on_node_selected)
        self.view.nodeContextMenuRequested.connect(self._show_context_menu)
        self.view.dropRequested.connect(self.handle_drop)

        self._load_initial_tree()
        self._update_search_controls()
        self._save_timer.start()

    # ---------- Tree construction ----------

    def roots(self) -> list[TreeNode]:
        return list(self._roots)

    def _local_root_nodes(self, node_context: NodeContext) -> list[TreeNode]:
        return [LocalFolderNode(path, node_context, name) for name, path in self.context.local_roots()]

    def _package_root_nodes(self, node_context: NodeContext) -> list[TreeNode]:
        package_root = self.context.package_root()
        if not package_root:
            return []
        return [LocalFolderNode(package_root, node_context)]

    def _build_roots(self) -> list[TreeNode]:
        roots: list[TreeNode] = [SectionHeaderNode(LOCAL_HEADER, self._local_root_nodes, self._node_context)]
        if self.context.package_root():
            roots.append(SectionHeaderNode(PACKAGE_HEADER, self._package_root_nodes, self._node_context))
        return roots

    def _rebuild_roots(self) -> list[TreeNode]:
        self._roots = self._build_roots()
        if self.session.active:
            for root in self._roots:
                root.set_expanded(True, notify=False)
        self.view.set_roots(self._roots)
        return self._roots

    def _load_initial_tree(self) -> None:
        first_run = self.context.cookies.get(self.store.cookie_key) is None
        saved = self.store.load()
        if first_run and not saved:
            saved = {header_key(LOCAL_HEADER)}
        roots = self._rebuild_roots()
        self.store.restore(roots, saved)
        self.view.sync_expansion()
        self._sync_watched_dirs()

    def node_expansion_changed(self, node: TreeNode, expanded: bool) -> None:
        if expanded:
            self.store.on_expanded(node.identity_key)
        else:
            self.store.on_collapsed(node.identity_key)
        if node.kind == NodeKind.LOCAL_FOLDER:
            self._sync_watched_dirs()

    def refresh(self) -> None:
        if self.session.active:
            roots = self.session.submit(self.session.query)
            if roots is not None:
                # Folders opened during the search stay open across the re-run.
                self.store.restore(roots, prune=False)
                self.view.sync_expansion()
                self._sync_watched_dirs()
            return
        saved = self.store.snapshot()
        roots = self._rebuild_roots()
        self.store.restore(roots, saved)
        self.view.sync_expansion()
        self._sync_watched_dirs()

    # ---------- Search ----------

    def search(self, query: str) -> None:
        self._search_timer.stop()
        if self.search_edit.text() != query:
            self.search_edit.setText(query)
        if not str(query or "").strip():
            self.clear_search()
            return
        self.session.submit(query)
        self._update_search_controls()

    def clear_search(self) -> None:
        self._search_timer.stop()
        if self.search_edit.text():
            self.search_edit.clear()
        if self.session.clear() is not None:
            self.view.sync_expansion()
            self._sync_watched_dirs()
        self._update_search_controls()

    def expand_all(self) -> bool:
        if not self.session.active:
            return False
        self.view.set_all_expanded(True)
        return True

    def collapse_all(self) -> bool:
        if not self.session.active:
            return False
        self.view.set_all_expanded(False)
        return True

    def _on_search_text_edited(self, text: str) -> None:
        self.session.note_typing(text)
        self._search_timer.start()

    def _run_pending_search(self) -> None:
        self.search(self.search_edit.text())

    def _update_search_controls(self) -> None:
        active = self.session.active
        self.expand_all_btn.setVisible(active)
        self.collapse_all_btn.setVisible(active)

    # ---------- Navigation ----------

    def navigate_to_file(self, path: str) -> bool:
        target = canonical_path(path)
        if self.session.active and target not in self.session.match_set:
            self.clear_search()
        node = find_in_roots(self._roots, target)
        if node is None:
            return False
        return self.view.reveal_node(node)

    def activate_node(self, node: TreeNode) -> None:
        kind = node.kind
        if kind == NodeKind.LOCAL_FILE and node.path:
            self.context.open_file(node.path)
        elif kind in (NodeKind.LOCAL_FOLDER, NodeKind.SECTION_HEADER):
            node.set_expanded(not node.expanded)
            self.view.sync_expansion()

    def _on_node_selected(self, node: TreeNode | None) -> None:
        if node is None or not node.path:
            return
        if node.kind == NodeKind.LOCAL_FOLDER:
            self.folderSelected.emit(node.path)
        elif node.kind == NodeKind.LOCAL_FILE:
            self.fileSelected.emit(node.path)
            asset = getattr(node, "asset", None)
            if asset is not None:
                self.assetSelected.emit(asset)

    # ---------- File operations ----------

    def rename_node(self, node: TreeNode, new_name: str) -> str | None:
        if not node.path:
            return None
        return self.rename_path(node.path, new_name)

    def delete_node(self, node: TreeNode, *, confirmed: bool = False) -> bool:
        if not node.path:
            return False
        deleted = self.delete_path(node.path, confirmed=confirmed)
        if deleted:
            self.store.on_collapsed(node.identity_key)
        return deleted

    def after_path_change(self, folder: str, focus_path: str | None = None) -> None:
        node = find_in_roots(self._roots, canonical_path(folder))
        if node is None or node.kind != NodeKind.LOCAL_FOLDER:
            self.refresh()
        else:
            node.set_expanded(True)
            self._reload_folders([node])
        if focus_path:
            self.navigate_to_file(focus_path)

    # ---------- Context menu ----------

    def _show_context_menu(self, node: TreeNode | None, global_pos: QPoint) -> None:
        menu = QMenu(self)
        path = node.path if node is not None else None
        if node is not None and node.kind == NodeKind.LOCAL_FOLDER and path:
            self._populate_folder_menu(menu, path)
        elif node is not None and node.kind == NodeKind.LOCAL_FILE and path:
            self._populate_file_menu(menu, path)
        act_refresh = menu.addAction("Refresh")
        act_refresh.triggered.connect(self.refresh)
        menu.exec(global_pos)

    def _populate_folder_menu(self, menu: QMenu, path: str) -> None:
        act_new_file = menu.addAction("New File...")
        act_new_file.triggered.connect(lambda: self.prompt_new_file(path))
        act_new_folder = menu.addAction("New Folder")
        act_new_folder.triggered.connect(lambda: self.create_folder_in(path))
        menu.addSeparator()
        self._populate_common_menu(menu, path)
        act_open_dir = menu.addAction("Open in File Manager")
        act_open_dir.triggered.connect(lambda: QDesktopServices.openUrl(QUrl.fromLocalFile(path)))
        menu.addSeparator()

    def _populate_file_menu(self, menu: QMenu, path: str) -> None:
        act_open = menu.addAction("Open")
        act_open.triggered.connect(lambda: self.context.open_file(path))
        menu.addSeparator()
        self._populate_common_menu(menu, path)
        act_show = menu.addAction("Show in Folder")
        act_show.triggered.connect(lambda: QDesktopServices.openUrl(QUrl.fromLocalFile(os.path.dirname(path))))
        menu.addSeparator()

    def _populate_common_menu(self, menu: QMenu, path: str) -> None:
        is_root = self.context.is_boundary(path)
        act_rename = menu.addAction("Rename...")
        act_rename.setEnabled(not is_root)
        act_rename.triggered.connect(lambda: self.prompt_rename(path))
        act_duplicate = menu.addAction("Duplicate")
        act_duplicate.setEnabled(not is_root)
        act_duplicate.triggered.connect(lambda: self.duplicate_path(path))
        act_delete = menu.addAction("Delete...")
        act_delete.setEnabled(not is_root)
        act_delete.triggered.connect(lambda: self.delete_path(path))
        act_copy = menu.addAction("Copy Path")
        act_copy.triggered.connect(lambda: self.copy_path_to_clipboard(path))
        act_copy_rel = menu.addAction("Copy Relative Path")
        act_copy_rel.triggered.connect(lambda: self.copy_relative_path(path))

    # ---------- Watcher / persistence ----------

    def _sync_watched_dirs(self) -> None:
        watched = {path for _name, path in self.context.local_roots()}
        for root in self._roots:
            for node in root.iter_built():
                if node.kind == NodeKind.LOCAL_FOLDER and node.expanded and node.path:
                    watched.add(node.path)
        self._watcher.set_directories(watched)

    def _on_paths_changed(self, paths: list[str]) -> None:
        if self.session.active:
            self.refresh()
            return
        changed = set(paths)
        stale = [
            node
            for root in self._roots
            for node in root.iter_built()
            if node.kind == NodeKind.LOCAL_FOLDER and node.path in changed and node.children_built
        ]
        if stale:
            self._reload_folders(stale)

    def _reload_folders(self, nodes: list[TreeNode]) -> None:
        model = self.view.asset_model()
        for node in nodes:
            model.refresh_node(node)
            self.store.restore(node.children or [], prune=False)
        self.view.sync_expansion()
        self._sync_watched_dirs()

    def _on_save_tick(self) -> None:
        if not self.session.active:
            self.store.tick()

    def save_state(self) -> None:
        if self.session.active:
            self.store.replace(self.session.saved_expansion())
        self.store.flush()

    def close_panel(self) -> None:
        self._save_timer.stop()
        self._search_timer.stop()
        self._watcher.stop()
        super().close_panel()
