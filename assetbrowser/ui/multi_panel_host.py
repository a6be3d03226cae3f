"""Host widget composing several browser panels side by side or as tabs."""

from __future__ import annotations

from typing import Any

from PySide6.QtCore import Qt, Signal
from PySide6.QtWidgets import QHBoxLayout, QMenu, QSplitter, QTabBar, QToolButton, QVBoxLayout, QWidget

from assetbrowser.app_logging import get_logger
from assetbrowser.settings_models import PANEL_TYPES
from assetbrowser.settings_store import CookieStore
from assetbrowser.tree.expansion_state import expanded_paths_key
from assetbrowser.ui.controllers import CloudGridPanel, CloudPanel, GridPanel, TreePanel
from assetbrowser.ui.controllers.browser_context import BrowserContext
from assetbrowser.ui.controllers.browser_panel import BrowserPanel

logger = get_logger(__name__)

PANEL_CLASSES: dict[str, type[BrowserPanel]] = {
    TreePanel.PANEL_TYPE: TreePanel,
    GridPanel.PANEL_TYPE: GridPanel,
    CloudPanel.PANEL_TYPE: CloudPanel,
    CloudGridPanel.PANEL_TYPE: CloudGridPanel,
}

_PANEL_TITLES = {
    "Tree": "Tree",
    "IconGrid": "Icon Grid",
    "Cloud": "Cloud",
    "CloudIconGrid": "Cloud Grid",
}

ALL_INSTANCE_IDS_KEY = CookieStore.key("AllInstanceIds")


def claim_instance_id(cookies: CookieStore, exclude: set[str] | frozenset[str] = frozenset()) -> str:
    """Return the first registered ``Browser_{n}`` not in ``exclude``, registering a new one if needed."""
    raw = cookies.get(ALL_INSTANCE_IDS_KEY, [])
    known = [str(item) for item in raw if isinstance(item, str) and item] if isinstance(raw, list) else []
    for instance_id in known:
        if instance_id not in exclude:
            return instance_id
    n = 1
    while f"Browser_{n}" in known or f"Browser_{n}" in exclude:
        n += 1
    instance_id = f"Browser_{n}"
    cookies.set(ALL_INSTANCE_IDS_KEY, known + [instance_id])
    cookies.flush()
    return instance_id


def normalize_host_state(raw: Any) -> dict[str, Any]:
    """Validated host state: known panel types, clamped tab index, tab mode only with several panels."""
    data = raw if isinstance(raw, dict) else {}
    raw_types = data.get("panel_types")
    types = [str(t) for t in raw_types if t in PANEL_TYPES] if isinstance(raw_types, list) else []
    if not types:
        types = ["Tree"]
    try:
        index = int(data.get("active_tab_index", 0))
    except (TypeError, ValueError):
        index = 0
    index = max(0, min(len(types) - 1, index))
    return {
        "is_tab_mode": bool(data.get("is_tab_mode", False)) and len(types) > 1,
        "active_tab_index": index,
        "panel_types": types,
    }


class AssetBrowserHost(QWidget):
    folderSelected = Signal(str)
    fileSelected = Signal(str)
    assetSelected = Signal(object)
    statusMessage = Signal(str)

    def __init__(self, context: BrowserContext, instance_id: str | None = None, parent: QWidget | None = None) -> None:
        super().__init__(parent)
        self.context = context
        self.instance_id = instance_id or claim_instance_id(context.cookies, context.active_instance_ids)
        context.active_instance_ids.add(self.instance_id)
        self._panels: list[BrowserPanel] = []
        self._is_tab_mode = False
        self._active_tab_index = 0
        self._restoring = False
        self._closed = False

        self.add_btn = QToolButton(self)
        self.add_btn.setText("Add Panel")
        self.add_btn.setPopupMode(QToolButton.ToolButtonPopupMode.InstantPopup)
        add_menu = QMenu(self.add_btn)
        for panel_type in PANEL_TYPES:
            action = add_menu.addAction(_PANEL_TITLES.get(panel_type, panel_type))
            action.triggered.connect(lambda _checked=False, t=panel_type: self.add_panel(t))
        self.add_btn.setMenu(add_menu)
        self.mode_btn = QToolButton(self)
        self.mode_btn.setText("Tabs")
        self.mode_btn.setCheckable(True)
        self.close_btn = QToolButton(self)
        self.close_btn.setText("Close Panel")
        self.left_btn = QToolButton(self)
        self.left_btn.setText("<")
        self.right_btn = QToolButton(self)
        self.right_btn.setText(">")
        self.tab_bar = QTabBar(self)
        self.tab_bar.setTabsClosable(True)
        self.tab_bar.setExpanding(False)
        self.splitter = QSplitter(Qt.Orientation.Horizontal, self)
        self.splitter.setChildrenCollapsible(False)

        toolbar = QHBoxLayout()
        toolbar.setContentsMargins(0, 0, 0, 0)
        toolbar.addWidget(self.add_btn)
        toolbar.addWidget(self.mode_btn)
        toolbar.addWidget(self.tab_bar, 1)
        toolbar.addWidget(self.left_btn)
        toolbar.addWidget(self.right_btn)
        toolbar.addWidget(self.close_btn)
        layout = QVBoxLayout(self)
        layout.setContentsMargins(0, 0, 0, 0)
        layout.setSpacing(2)
        layout.addLayout(toolbar)
        layout.addWidget(self.splitter, 1)

        self.mode_btn.toggled.connect(self.set_tab_mode)
        self.close_btn.clicked.connect(lambda: self.remove_panel(self.active_panel()))
        self.left_btn.clicked.connect(lambda: self.move_panel_left(self.active_panel()))
        self.right_btn.clicked.connect(lambda: self.move_panel_right(self.active_panel()))
        self.tab_bar.currentChanged.connect(self._on_tab_changed)
        self.tab_bar.tabCloseRequested.connect(lambda index: self.remove_panel(self.panel_at(index)))

        self._restore_state()

    # ---------- Queries ----------

    @property
    def state_key(self) -> str:
        return CookieStore.key(self.instance_id, "State")

    @property
    def is_tab_mode(self) -> bool:
        return self._is_tab_mode

    @property
    def active_tab_index(self) -> int:
        return self._active_tab_index

    def panels(self) -> list[BrowserPanel]:
        return list(self._panels)

    def panel_types(self) -> list[str]:
        return [panel.panel_type for panel in self._panels]

    def panel_at(self, index: int) -> BrowserPanel | None:
        if 0 <= index < len(self._panels):
            return self._panels[index]
        return None

    def active_panel(self) -> BrowserPanel | None:
        return self.panel_at(self._active_tab_index)

    def panel_id_for(self, index: int) -> str:
        return f"{self.instance_id}_Panel{index}"

    # ---------- Structure ----------

    def add_panel(self, panel_type: str, index: int | None = None) -> BrowserPanel | None:
        cls = PANEL_CLASSES.get(panel_type)
        if cls is None:
            logger.warning("Unknown panel type '%s'", panel_type)
            return None
        pos = len(self._panels) if index is None else max(0, min(len(self._panels), int(index)))
        if pos < len(self._panels):
            self._renumber_panels(gap_at=pos)
        if not self._restoring:
            self.context.cookies.delete(expanded_paths_key(self.panel_id_for(pos)))
        panel = cls(self.panel_id_for(pos), self.context, self.splitter)
        self._wire_panel(panel)
        self._panels.insert(pos, panel)
        self.splitter.insertWidget(pos, panel)
        self._active_tab_index = pos
        self._layout_changed()
        return panel

    def remove_panel(self, panel: BrowserPanel | None) -> bool:
        """Close ``panel``; the last remaining panel is never removed."""
        if panel is None or panel not in self._panels or len(self._panels) <= 1:
            return False
        index = self._panels.index(panel)
        self._panels.pop(index)
        panel.close_panel()
        self._forget_panel_state(panel)
        panel.hide()
        panel.setParent(None)
        panel.deleteLater()
        if self._active_tab_index >= len(self._panels):
            self._active_tab_index = len(self._panels) - 1
        elif self._active_tab_index > index:
            self._active_tab_index -= 1
        if len(self._panels) <= 1:
            self._is_tab_mode = False
        self._layout_changed()
        return True

    def move_panel_left(self, panel: BrowserPanel | None) -> bool:
        if panel is None or panel not in self._panels:
            return False
        index = self._panels.index(panel)
        if index <= 0:
            return False
        self._swap_panels(index - 1, index)
        return True

    def move_panel_right(self, panel: BrowserPanel | None) -> bool:
        if panel is None or panel not in self._panels:
            return False
        index = self._panels.index(panel)
        if index >= len(self._panels) - 1:
            return False
        self._swap_panels(index, index + 1)
        return True

    def set_tab_mode(self, enabled: bool) -> bool:
        """Switch display mode; tab mode needs more than one panel. Returns the resulting mode."""
        wanted = bool(enabled) and len(self._panels) > 1
        if wanted == self._is_tab_mode:
            self._sync_mode_widgets()
            return wanted
        self._is_tab_mode = wanted
        self._layout_changed()
        return wanted

    def set_active_tab(self, index: int) -> None:
        if not 0 <= index < len(self._panels) or index == self._active_tab_index:
            return
        self._active_tab_index = index
        self._layout_changed()

    def _swap_panels(self, index_a: int, index_b: int) -> None:
        active = self.active_panel()
        self._panels[index_a], self._panels[index_b] = self._panels[index_b], self._panels[index_a]
        for pos, panel in enumerate(self._panels):
            self.splitter.insertWidget(pos, panel)
        if active is not None:
            self._active_tab_index = self._panels.index(active)
        self._layout_changed()

    def _layout_changed(self) -> None:
        self._renumber_panels()
        self._sync_mode_widgets()
        if not self._restoring:
            self.save_state()

    def _renumber_panels(self, gap_at: int | None = None) -> None:
        # Panel ids follow position so persisted state lines up with the saved type order.
        targets: dict[BrowserPanel, str] = {}
        for pos, panel in enumerate(self._panels):
            slot = pos if gap_at is None or pos < gap_at else pos + 1
            if panel.panel_id != self.panel_id_for(slot):
                targets[panel] = self.panel_id_for(slot)
        for panel in targets:
            if panel.store is not None:
                self.context.cookies.delete(panel.store.cookie_key)
        for panel, panel_id in targets.items():
            panel.set_panel_id(panel_id)

    def _forget_panel_state(self, panel: BrowserPanel) -> None:
        if panel.store is not None:
            self.context.cookies.delete(panel.store.cookie_key)

    def _sync_mode_widgets(self) -> None:
        many = len(self._panels) > 1
        for pos, panel in enumerate(self._panels):
            panel.setVisible(not self._is_tab_mode or pos == self._active_tab_index)

        self.tab_bar.blockSignals(True)
        while self.tab_bar.count():
            self.tab_bar.removeTab(0)
        for panel in self._panels:
            self.tab_bar.addTab(_PANEL_TITLES.get(panel.panel_type, panel.panel_type))
        if self._panels:
            self.tab_bar.setCurrentIndex(self._active_tab_index)
        self.tab_bar.blockSignals(False)
        self.tab_bar.setVisible(self._is_tab_mode)

        self.mode_btn.blockSignals(True)
        self.mode_btn.setChecked(self._is_tab_mode)
        self.mode_btn.blockSignals(False)
        self.mode_btn.setVisible(many)
        self.close_btn.setEnabled(many)
        self.left_btn.setEnabled(many and self._active_tab_index > 0)
        self.right_btn.setEnabled(many and self._active_tab_index < len(self._panels) - 1)

    def _on_tab_changed(self, index: int) -> None:
        self.set_active_tab(index)

    # ---------- Cross-panel sync ----------

    def _wire_panel(self, panel: BrowserPanel) -> None:
        panel.folderSelected.connect(lambda path, source=panel: self._on_folder_selected(source, path))
        panel.packagesLoaded.connect(lambda packages, source=panel: self._on_packages_loaded(source, packages))
        panel.fileSelected.connect(self.fileSelected)
        panel.assetSelected.connect(self.assetSelected)
        panel.statusMessage.connect(self.statusMessage)

    def _on_folder_selected(self, source: BrowserPanel, path: str) -> None:
        self.folderSelected.emit(path)
        for panel in self._panels:
            if panel is not source and panel.panel_type == GridPanel.PANEL_TYPE:
                panel.show_folder(path)

    def _on_packages_loaded(self, source: BrowserPanel, packages: list) -> None:
        for panel in self._panels:
            if panel is source:
                continue
            if panel.panel_type == CloudGridPanel.PANEL_TYPE:
                panel.show_packages(packages)
            elif panel.panel_type == GridPanel.PANEL_TYPE:
                panel.show_cloud_packages(packages)

    def navigate_to_file(self, path: str) -> bool:
        for panel in self._panels:
            if isinstance(panel, TreePanel):
                return panel.navigate_to_file(path)
        return False

    def refresh_all(self) -> None:
        for panel in self._panels:
            panel.refresh()

    # ---------- Persistence ----------

    def _restore_state(self) -> None:
        state = normalize_host_state(self.context.cookies.get(self.state_key))
        self._restoring = True
        try:
            for panel_type in state["panel_types"]:
                self.add_panel(panel_type)
            self._active_tab_index = state["active_tab_index"]
            self._is_tab_mode = state["is_tab_mode"]
            self._sync_mode_widgets()
        finally:
            self._restoring = False

    def state(self) -> dict[str, Any]:
        return {
            "is_tab_mode": self._is_tab_mode,
            "active_tab_index": self._active_tab_index,
            "panel_types": self.panel_types(),
        }

    def save_state(self) -> None:
        self.context.cookies.set(self.state_key, self.state())
        self.context.cookies.flush()

    def shutdown(self) -> None:
        """Flush every panel and the host layout; safe to call more than once."""
        if self._closed:
            return
        self._closed = True
        for panel in self._panels:
            panel.close_panel()
        self.save_state()
        self.context.active_instance_ids.discard(self.instance_id)

    def close(self) -> bool:
        self.shutdown()
        return super().close()

    def closeEvent(self, event):
        self.shutdown()
        super().closeEvent(event)
