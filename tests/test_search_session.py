import os
import shutil
from pathlib import Path

from conftest import make_tree

from assetbrowser.services.filesystem import LocalFileSystem, canonical_path
from assetbrowser.settings_models import ExclusionRules
from assetbrowser.tree.expansion_state import ExpansionStateStore
from assetbrowser.tree.nodes import LocalFolderNode, NodeContext, SectionHeaderNode, find_in_roots
from assetbrowser.tree.search_session import SearchSession, SearchState


class Harness:
    """Minimal panel stand-in: owns roots and forwards expansion to the store."""

    def __init__(self, base: Path) -> None:
        self.base = base
        self.store = ExpansionStateStore("p")
        self.context = NodeContext(fs=LocalFileSystem(), rules=ExclusionRules(), owner=self)
        self.roots: list = []
        self.rebuilds = 0
        self.session = SearchSession(
            LocalFileSystem(),
            self.store,
            lambda: [str(base)],
            self.rebuild,
            rules=ExclusionRules(),
        )

    def node_expansion_changed(self, node, expanded: bool) -> None:
        if expanded:
            self.store.on_expanded(node.identity_key)
        else:
            self.store.on_collapsed(node.identity_key)

    def rebuild(self):
        self.rebuilds += 1
        self.roots = [SectionHeaderNode("Local", lambda ctx: [LocalFolderNode(str(self.base), ctx)], self.context)]
        return self.roots

    def node(self, *parts: str):
        return find_in_roots(self.roots, canonical_path(os.path.join(str(self.base), *parts)))


def _layout(tmp_path: Path) -> Path:
    return make_tree(
        tmp_path / "Assets",
        {"models": {"rocks": {"boulder.vmdl": None}, "trees": {"oak.vmdl": None}}, "sounds": {"wind.vsnd": None}},
    )


def test_clear_restores_exact_expansion(tmp_path: Path) -> None:
    harness = Harness(_layout(tmp_path))
    harness.rebuild()
    harness.node().set_expanded(True)
    harness.node("models").set_expanded(True)
    harness.node("models", "rocks").set_expanded(True)
    before = harness.store.snapshot()

    harness.session.submit("oak")
    # Expansion changes made while filtering do not survive the clear.
    harness.node("sounds").set_expanded(True)
    harness.node("models", "trees").set_expanded(True)
    roots = harness.session.clear()

    assert roots is harness.roots
    assert harness.session.state == SearchState.IDLE
    assert harness.store.snapshot() == before
    assert harness.node("models", "rocks").expanded
    assert not harness.node("models", "trees").expanded
    assert not harness.node("sounds").expanded


def test_visibility_follows_match_set(tmp_path: Path) -> None:
    harness = Harness(_layout(tmp_path))
    harness.rebuild()

    harness.session.submit("OAK")

    header = harness.roots[0]
    assert harness.session.active
    assert harness.session.is_visible(header)
    assert harness.session.is_visible(harness.node())
    assert harness.session.is_visible(harness.node("models"))
    assert harness.session.is_visible(harness.node("models", "trees"))
    assert harness.session.is_visible(harness.node("models", "trees", "oak.vmdl"))
    assert not harness.session.is_visible(harness.node("models", "rocks"))
    assert not harness.session.is_visible(harness.node("sounds"))


def test_new_query_recomputes_in_place(tmp_path: Path) -> None:
    harness = Harness(_layout(tmp_path))
    harness.rebuild()
    harness.node().set_expanded(True)
    before = harness.store.snapshot()

    harness.session.submit("oak")
    first = set(harness.session.match_set)
    harness.session.submit("wind")

    assert harness.session.match_set != first
    assert canonical_path(str(harness.base / "sounds" / "wind.vsnd")) in harness.session.match_set
    assert harness.session.saved_expansion() == before
    assert harness.rebuilds == 3


def test_blank_submit_clears(tmp_path: Path) -> None:
    harness = Harness(_layout(tmp_path))
    harness.rebuild()
    harness.session.submit("oak")

    harness.session.submit("   ")

    assert not harness.session.active
    assert harness.session.match_set == set()
    assert harness.session.is_visible(harness.node("sounds"))


def test_clear_when_idle_is_a_no_op(tmp_path: Path) -> None:
    harness = Harness(_layout(tmp_path))
    harness.rebuild()

    assert harness.session.clear() is None
    assert harness.rebuilds == 1


def test_typing_takes_the_snapshot_early(tmp_path: Path) -> None:
    harness = Harness(_layout(tmp_path))
    harness.rebuild()
    harness.node().set_expanded(True)
    before = harness.store.snapshot()

    harness.session.note_typing("o")
    harness.node("models").set_expanded(True)
    harness.session.submit("oak")

    assert harness.session.saved_expansion() == before


def test_removed_paths_drop_out_of_restored_state(tmp_path: Path) -> None:
    harness = Harness(_layout(tmp_path))
    harness.rebuild()
    harness.node().set_expanded(True)
    harness.node("models").set_expanded(True)
    harness.node("models", "rocks").set_expanded(True)

    harness.session.submit("rock")
    shutil.rmtree(harness.base / "models" / "rocks")
    harness.session.clear()

    assert harness.store.snapshot() == {
        canonical_path(str(harness.base)),
        canonical_path(str(harness.base / "models")),
    }
