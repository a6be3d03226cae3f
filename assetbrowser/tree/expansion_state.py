"""Per-panel record of which nodes are open, persisted through the cookie store."""

from __future__ import annotations

from typing import Iterable

from assetbrowser.app_logging import get_logger
from assetbrowser.settings_store import CookieStore
from assetbrowser.tree.nodes import NodeKind, TreeNode

logger = get_logger(__name__)


def expanded_paths_key(panel_id: str) -> str:
    return CookieStore.key(panel_id, "ExpandedPaths")


class ExpansionStateStore:
    def __init__(self, panel_id: str, cookies: CookieStore | None = None) -> None:
        self.panel_id = panel_id
        self._cookies = cookies
        self._expanded: set[str] = set()
        self._last_saved: set[str] = set()

    @property
    def cookie_key(self) -> str:
        return expanded_paths_key(self.panel_id)

    def load(self) -> set[str]:
        raw = self._cookies.get(self.cookie_key, []) if self._cookies is not None else []
        keys = {str(item) for item in raw if isinstance(item, str) and item} if isinstance(raw, list) else set()
        self._expanded = set(keys)
        self._last_saved = set(keys)
        return set(keys)

    def on_expanded(self, key: str) -> None:
        if key:
            self._expanded.add(key)

    def on_collapsed(self, key: str) -> None:
        self._expanded.discard(key)

    def is_expanded(self, key: str) -> bool:
        return key in self._expanded

    def snapshot(self) -> set[str]:
        return set(self._expanded)

    def replace(self, keys: Iterable[str]) -> None:
        self._expanded = {key for key in keys if key}

    def restore(self, roots: list[TreeNode], saved: set[str] | None = None, *, prune: bool = True) -> list[TreeNode]:
        """Re-open every node whose key is in ``saved`` and every ancestor of one.

        Ancestors are opened without entering the set. Keys that match no
        node are dropped when ``prune`` is set. Returns the opened nodes in
        walk order.
        """
        targets = set(self._expanded if saved is None else saved)
        opened: list[TreeNode] = []
        found: set[str] = set()

        def walk(nodes: list[TreeNode]) -> None:
            for node in nodes:
                key = node.identity_key
                if key in targets:
                    found.add(key)
                    node.set_expanded(True)
                    opened.append(node)
                    walk(node.children or [])
                elif node.kind == NodeKind.SECTION_HEADER:
                    node.ensure_children_built()
                    walk(node.children or [])
                elif any(node.may_contain(target) for target in targets):
                    node.set_expanded(True, notify=False)
                    opened.append(node)
                    walk(node.children or [])

        walk(roots)
        if saved is not None:
            self._expanded = set(targets)
        if prune:
            stale = targets - found
            if stale:
                logger.debug("Dropping %d stale expanded entries for %s", len(stale), self.panel_id)
            self._expanded -= stale
        return opened

    def tick(self) -> bool:
        """Persist when the open set changed since the last write."""
        if self._expanded == self._last_saved:
            return False
        self._write()
        return True

    def flush(self) -> None:
        self._write()

    def _write(self) -> None:
        self._last_saved = set(self._expanded)
        if self._cookies is None:
            return
        self._cookies.set(self.cookie_key, sorted(self._expanded))
        self._cookies.flush()
