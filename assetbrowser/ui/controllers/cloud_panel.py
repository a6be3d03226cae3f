"""Cloud panel: remote package categories paged in from the package repository."""

from __future__ import annotations

import concurrent.futures
import queue
from dataclasses import dataclass
from typing import Any

from PySide6.QtCore import QPoint, QTimer
from PySide6.QtWidgets import QHBoxLayout, QLabel, QLineEdit, QMenu, QToolButton, QVBoxLayout, QWidget

from assetbrowser.app_logging import get_logger
from assetbrowser.services.remote_packages import PackageRecord, PackageRepositoryError, category_query
from assetbrowser.settings_models import CLOUD_CATEGORIES
from assetbrowser.tree.expansion_state import ExpansionStateStore
from assetbrowser.tree.nodes import CategoryNode, LoadMoreNode, NodeKind, TreeNode
from assetbrowser.ui.controllers.browser_context import BrowserContext
from assetbrowser.ui.controllers.browser_panel import BrowserPanel
from assetbrowser.ui.widgets.asset_tree_view import AssetTreeView

logger = get_logger(__name__)

SEARCH_DEBOUNCE_MS = 350


@dataclass(slots=True)
class _PageRequest:
    generation: int
    type_tag: str
    query: str
    page_size: int
    offset: int
    more: bool


class CloudPanel(BrowserPanel):
    PANEL_TYPE = "Cloud"

    def __init__(self, panel_id: str, context: BrowserContext, parent: QWidget | None = None) -> None:
        super().__init__(panel_id, context, parent)
        self._node_context = context.node_context(owner=self)
        self.store = ExpansionStateStore(panel_id, context.cookies)
        self._categories: list[CategoryNode] = []
        self._generation = 0
        self._search_text = ""
        self._first_pages: set[str] = set()
        self._first_pages_failed = False

        self._executor = concurrent.futures.ThreadPoolExecutor(max_workers=2, thread_name_prefix="assetbrowser-cloud")
        self._active_futures: set[concurrent.futures.Future] = set()
        self._result_queue: queue.Queue[dict[str, Any]] = queue.Queue()
        self._result_pump = QTimer(self)
        self._result_pump.setInterval(context.config.result_pump_ms)
        self._result_pump.timeout.connect(self.drain_results)

        self.search_edit = QLineEdit(self)
        self.search_edit.setPlaceholderText("Search cloud packages...")
        self.search_edit.setClearButtonEnabled(True)
        self.refresh_btn = QToolButton(self)
        self.refresh_btn.setText("Refresh")
        self.status_label = QLabel(self)
        self.view = AssetTreeView(self)

        toolbar = QHBoxLayout()
        toolbar.setContentsMargins(0, 0, 0, 0)
        toolbar.addWidget(self.search_edit, 1)
        toolbar.addWidget(self.refresh_btn)
        layout = QVBoxLayout(self)
        layout.setContentsMargins(0, 0, 0, 0)
        layout.setSpacing(2)
        layout.addLayout(toolbar)
        layout.addWidget(self.view, 1)
        layout.addWidget(self.status_label)

        self._search_timer = QTimer(self)
        self._search_timer.setSingleShot(True)
        self._search_timer.setInterval(SEARCH_DEBOUNCE_MS)
        self._search_timer.timeout.connect(lambda: self.search(self.search_edit.text()))
        self._save_timer = QTimer(self)
        self._save_timer.setInterval(context.config.save_interval_ms)
        self._save_timer.timeout.connect(self.store.tick)

        self.search_edit.textEdited.connect(lambda _text: self._search_timer.start())
        self.search_edit.returnPressed.connect(lambda: self.search(self.search_edit.text()))
        self.refresh_btn.clicked.connect(self.refresh)
        self.view.nodeActivated.connect(self.activate_node)
        self.view.nodeSelected.connect(self._on_node_selected)
        self.view.nodeContextMenuRequested.connect(self._show_context_menu)
        self.statusMessage.connect(self.status_label.setText)

        saved = self.store.load()
        self._rebuild()
        # Packages arrive later, so keys that match nothing yet are kept.
        self.store.restore(self._categories, saved, prune=False)
        self.view.sync_expansion()
        self._save_timer.start()

    # ---------- Tree ----------

    def categories(self) -> list[CategoryNode]:
        return list(self._categories)

    def category(self, type_tag: str) -> CategoryNode | None:
        for node in self._categories:
            if node.type_tag == type_tag:
                return node
        return None

    def loaded_packages(self) -> list[PackageRecord]:
        return [package for node in self._categories for package in node.packages]

    def _rebuild(self) -> None:
        self._generation += 1
        self._categories = [CategoryNode(tag, title, self._node_context) for tag, title in CLOUD_CATEGORIES]
        self.view.set_roots(self._categories)
        page_size = self.context.config.cloud_search_page_size if self._search_text else self.context.config.cloud_initial_page_size
        self._first_pages = set()
        self._first_pages_failed = False
        for node in self._categories:
            self._request_page(node, page_size)

    def refresh(self) -> None:
        saved = self.store.snapshot()
        self._rebuild()
        self.store.restore(self._categories, saved, prune=False)
        self.view.sync_expansion()

    def search(self, text: str) -> None:
        self._search_timer.stop()
        query = str(text or "").strip()
        if self.search_edit.text().strip() != query:
            self.search_edit.setText(query)
        if query == self._search_text:
            return
        self._search_text = query
        self.refresh()

    def node_expansion_changed(self, node: TreeNode, expanded: bool) -> None:
        if expanded:
            self.store.on_expanded(node.identity_key)
        else:
            self.store.on_collapsed(node.identity_key)
        if expanded and isinstance(node, CategoryNode) and not node.loaded and not node.is_loading:
            self._request_page(node, self.context.config.cloud_initial_page_size)

    # ---------- Activation ----------

    def activate_node(self, node: TreeNode) -> None:
        kind = node.kind
        if kind == NodeKind.LOAD_MORE and isinstance(node, LoadMoreNode):
            self.load_more(node.category)
        elif kind == NodeKind.LOCAL_FILE and node.path:
            self.context.open_file(node.path)

    def load_more(self, category: CategoryNode) -> bool:
        """Request the next page; refused while one is already in flight."""
        if self.context.repository is None or not category.begin_load_more():
            return False
        sentinel = category.load_more_node()
        if sentinel is not None:
            self.view.asset_model().node_changed(sentinel)
        self._submit(
            _PageRequest(
                generation=self._generation,
                type_tag=category.type_tag,
                query=category_query(category.type_tag, self._search_text),
                page_size=self.context.config.cloud_load_more_page_size,
                offset=category.next_offset,
                more=True,
            )
        )
        return True

    def _on_node_selected(self, node: TreeNode | None) -> None:
        if node is None:
            return
        if node.kind == NodeKind.LOCAL_FILE and node.path:
            self.fileSelected.emit(node.path)
            asset = getattr(node, "asset", None)
            if asset is not None:
                self.assetSelected.emit(asset)
        elif node.kind == NodeKind.PACKAGE_FOLDER:
            package = getattr(node, "package", None)
            if package is not None and package.summary:
                self.statusMessage.emit(package.summary)

    def _show_context_menu(self, node: TreeNode | None, global_pos: QPoint) -> None:
        menu = QMenu(self)
        package = getattr(node, "package", None) if node is not None else None
        if node is not None and node.kind == NodeKind.PACKAGE_FOLDER and package is not None:
            act_browser = menu.addAction("Open in Browser")
            act_browser.setEnabled(self.context.package_page_url(package.ident) is not None)
            act_browser.triggered.connect(lambda: self.open_package_page(package))
            act_copy = menu.addAction("Copy Identifier")
            act_copy.triggered.connect(lambda: self.copy_path_to_clipboard(package.ident))
        elif node is not None and node.kind == NodeKind.LOCAL_FILE and node.path:
            path = node.path
            act_open = menu.addAction("Open")
            act_open.triggered.connect(lambda: self.context.open_file(path))
            act_copy = menu.addAction("Copy Path")
            act_copy.triggered.connect(lambda: self.copy_path_to_clipboard(path))
        elif isinstance(node, CategoryNode):
            category = node
            act_more = menu.addAction("Load More")
            act_more.setEnabled(not category.is_loading_more)
            act_more.triggered.connect(lambda: self.load_more(category))
        menu.addSeparator()
        act_refresh = menu.addAction("Refresh")
        act_refresh.triggered.connect(self.refresh)
        menu.exec(global_pos)

    # ---------- Requests ----------

    def _request_page(self, category: CategoryNode, page_size: int) -> None:
        if self.context.repository is None:
            category.last_error = "Cloud packages are not configured."
            self.statusMessage.emit(category.last_error)
            return
        category.is_loading = True
        self._first_pages.add(category.type_tag)
        self._submit(
            _PageRequest(
                generation=self._generation,
                type_tag=category.type_tag,
                query=category_query(category.type_tag, self._search_text),
                page_size=page_size,
                offset=0,
                more=False,
            )
        )

    def _submit(self, request: _PageRequest) -> None:
        future = self._executor.submit(self._run_request, request)
        self._active_futures.add(future)
        if not self._result_pump.isActive():
            self._result_pump.start()

    def active_requests(self) -> list[concurrent.futures.Future]:
        return list(self._active_futures)

    def _run_request(self, request: _PageRequest) -> None:
        payload: dict[str, Any] = {"request": request, "packages": [], "error": None}
        repository = self.context.repository
        try:
            if repository is None:
                raise PackageRepositoryError("Cloud packages are not configured.", kind="config")
            payload["packages"] = repository.find(request.query, request.page_size, request.offset)
        except PackageRepositoryError as exc:
            payload["error"] = str(exc)
        except Exception as exc:
            logger.exception("Package query '%s' failed", request.query)
            payload["error"] = f"Package query failed: {exc}"
        self._result_queue.put(payload)

    def drain_results(self) -> None:
        while True:
            try:
                payload = self._result_queue.get_nowait()
            except queue.Empty:
                break
            self._handle_result(payload)
        # Futures are only touched on this thread; done ones have queued their payload.
        self._active_futures = {future for future in self._active_futures if not future.done()}
        if not self._active_futures and self._result_queue.empty():
            self._result_pump.stop()

    def _handle_result(self, payload: dict[str, Any]) -> None:
        request: _PageRequest = payload["request"]
        if request.generation != self._generation:
            logger.debug("Dropping stale page for '%s'", request.query)
            return
        category = self.category(request.type_tag)
        if category is None:
            return
        error = payload.get("error")
        packages = list(payload.get("packages") or [])
        model = self.view.asset_model()
        if request.more:
            if error:
                category.fail_load_more(str(error))
            else:
                added = category.finish_load_more(packages)
                title = category.display_name.lower()
                if added:
                    self.statusMessage.emit(f"Loaded {len(category.packages)} {title}")
                else:
                    self.statusMessage.emit(f"No more {title} found")
        else:
            category.is_loading = False
            if error:
                category.last_error = str(error)
                self._first_pages_failed = True
            else:
                category.set_packages(packages)
                if self._search_text:
                    category.set_expanded(bool(category.packages))
        if error:
            logger.warning("Package query '%s' failed: %s", request.query, error)
            self.statusMessage.emit(str(error))
        model.sync_children(category)
        model.node_changed(category)
        sentinel = category.load_more_node()
        if sentinel is not None:
            model.node_changed(sentinel)
        if not category.expanded:
            self.view.collapse(model.index_from_node(category))
        if not error:
            self.store.restore([category], prune=False)
            self.view.sync_expansion()
            self.packagesLoaded.emit(self.loaded_packages())
        if not request.more and category.type_tag in self._first_pages:
            self._first_pages.discard(category.type_tag)
            if not self._first_pages:
                self._first_pages_done()

    def _first_pages_done(self) -> None:
        total = len(self.loaded_packages())
        if self._search_text:
            self.statusMessage.emit(f'Found {total} results for "{self._search_text}"')
            return
        if not self._first_pages_failed:
            # Every category has its first page; keys still unmatched are gone.
            self.store.restore(self._categories, prune=True)
        self.statusMessage.emit(f"Loaded {total} cloud assets")

    # ---------- Persistence ----------

    def close_panel(self) -> None:
        self._save_timer.stop()
        self._search_timer.stop()
        self._result_pump.stop()
        self._executor.shutdown(wait=False, cancel_futures=True)
        super().close_panel()
