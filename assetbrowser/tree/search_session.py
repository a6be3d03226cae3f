from __future__ import annotations

from enum import Enum
from typing import Callable

from assetbrowser.app_logging import get_logger
from assetbrowser.services.filesystem import FileSystem
from assetbrowser.services.filter_index import DEFAULT_MAX_DEPTH, compute_matches
from assetbrowser.settings_models import ExclusionRules
from assetbrowser.tree.expansion_state import ExpansionStateStore
from assetbrowser.tree.nodes import NodeKind, TreeNode

logger = get_logger(__name__)


class SearchState(Enum):
    IDLE = "idle"
    SEARCH_ACTIVE = "search_active"


class SearchSession:
    """Filters a lazily built tree against a precomputed match set.

    Entering a search snapshots the open set; clearing it rebuilds the tree
    and replays that snapshot. ``rebuild`` discards the current nodes and
    returns fresh roots.
    """

    def __init__(
        self,
        fs: FileSystem,
        store: ExpansionStateStore,
        search_roots: Callable[[], list[str]],
        rebuild: Callable[[], list[TreeNode]],
        *,
        rules: ExclusionRules | None = None,
        max_depth: int = DEFAULT_MAX_DEPTH,
    ) -> None:
        self._fs = fs
        self._store = store
        self._search_roots = search_roots
        self._rebuild = rebuild
        self._rules = rules or ExclusionRules()
        self._max_depth = max_depth
        self.state = SearchState.IDLE
        self.query = ""
        self.match_set: set[str] = set()
        self._snapshot: set[str] = set()

    @property
    def active(self) -> bool:
        return self.state == SearchState.SEARCH_ACTIVE

    def note_typing(self, text: str) -> None:
        """Take the snapshot as soon as the user starts typing."""
        if str(text or "").strip() and not self.active:
            self._enter()

    def submit(self, query: str) -> list[TreeNode] | None:
        text = str(query or "").strip()
        if not text:
            return self.clear()
        if not self.active:
            self._enter()
        self.query = text
        self.match_set = compute_matches(
            self._fs,
            self._search_roots(),
            text,
            self._rules,
            max_depth=self._max_depth,
        )
        logger.debug("Search '%s' matched %d paths", text, len(self.match_set))
        return self._rebuild()

    def clear(self) -> list[TreeNode] | None:
        """Leave search mode; returns the rebuilt roots, or ``None`` when no search was active."""
        if not self.active:
            self.query = ""
            return None
        self.state = SearchState.IDLE
        self.query = ""
        self.match_set = set()
        snapshot = set(self._snapshot)
        self._snapshot = set()
        roots = self._rebuild()
        self._store.replace(snapshot)
        self._store.restore(roots, snapshot)
        return roots

    def saved_expansion(self) -> set[str]:
        """The open set captured when the current search began."""
        return set(self._snapshot)

    def is_visible(self, node: TreeNode) -> bool:
        if not self.active or not node.filterable:
            return True
        if node.kind in (NodeKind.LOCAL_FOLDER, NodeKind.LOCAL_FILE):
            return node.identity_key in self.match_set
        return node.matches_filter(self.query)

    def _enter(self) -> None:
        self._snapshot = self._store.snapshot()
        self.state = SearchState.SEARCH_ACTIVE
