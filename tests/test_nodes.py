import os
from pathlib import Path

from conftest import FakeRepository, make_tree, packages

from assetbrowser.services.asset_resolver import ExtensionAssetResolver
from assetbrowser.services.filesystem import LocalFileSystem, canonical_path
from assetbrowser.services.remote_packages import PackageRecord
from assetbrowser.settings_models import ExclusionRules
from assetbrowser.tree.nodes import (
    CategoryNode,
    LoadMoreNode,
    LocalFolderNode,
    NodeContext,
    NodeKind,
    PackageFolderNode,
    SectionHeaderNode,
    find_in_roots,
    header_key,
    package_key,
    package_sub_key,
)


class RecordingOwner:
    def __init__(self) -> None:
        self.events: list[tuple[str, bool]] = []

    def node_expansion_changed(self, node, expanded: bool) -> None:
        self.events.append((node.identity_key, expanded))


def _context(**kwargs) -> NodeContext:
    return NodeContext(fs=LocalFileSystem(), rules=ExclusionRules(), **kwargs)


def _names(node) -> list[str]:
    return [child.display_name for child in node.children or []]


def test_children_are_lazy_and_sorted(tmp_path: Path) -> None:
    root = make_tree(tmp_path / "Assets", {"b": {}, "A": {"x.txt": None}, "z.txt": None, "m.vmdl": None, "m.vmdl_c": None})
    node = LocalFolderNode(str(root), _context(), "Assets")

    assert node.children is None
    assert node.has_children()
    assert node.children is None

    node.ensure_children_built()

    assert _names(node) == ["A", "b", "m.vmdl", "z.txt"]
    assert [child.kind for child in node.children] == [
        NodeKind.LOCAL_FOLDER,
        NodeKind.LOCAL_FOLDER,
        NodeKind.LOCAL_FILE,
        NodeKind.LOCAL_FILE,
    ]
    assert all(child.parent is node for child in node.children)


def test_build_children_is_repeatable_after_clear(tmp_path: Path) -> None:
    root = make_tree(tmp_path / "R", {"one.txt": None})
    node = LocalFolderNode(str(root), _context())
    node.ensure_children_built()
    (root / "two.txt").write_text("", encoding="utf-8")

    node.ensure_children_built()
    assert _names(node) == ["one.txt"]

    node.clear_children()
    node.ensure_children_built()
    assert _names(node) == ["one.txt", "two.txt"]


def test_vanished_folder_has_no_children(tmp_path: Path) -> None:
    node = LocalFolderNode(str(tmp_path / "gone"), _context())

    assert not node.has_children()
    node.build_children()
    assert node.children == []


def test_find_node_descends_only_along_the_path(tmp_path: Path) -> None:
    root = make_tree(tmp_path / "R", {"a": {"b": {"leaf.txt": None}}, "c": {"other.txt": None}})
    node = LocalFolderNode(str(root), _context())
    target = os.path.join(canonical_path(str(root)), "a", "b", "leaf.txt")

    found = node.find_node(target)

    assert found is not None
    assert found.kind == NodeKind.LOCAL_FILE
    assert [a.display_name for a in found.ancestors()] == ["b", "a", "R"]
    sibling = next(child for child in node.children if child.display_name == "c")
    assert sibling.children is None
    assert node.find_node(os.path.join(canonical_path(str(root)), "a", "missing.txt")) is None
    assert node.find_node(str(tmp_path / "elsewhere")) is None


def test_find_node_does_not_confuse_prefix_siblings(tmp_path: Path) -> None:
    root = make_tree(tmp_path / "R", {"Art": {}, "Artwork": {"x.png": None}})
    node = LocalFolderNode(str(root), _context())
    target = os.path.join(canonical_path(str(root)), "Artwork", "x.png")

    found = node.find_node(target)

    assert found is not None and found.parent.display_name == "Artwork"
    art = next(child for child in node.children if child.display_name == "Art")
    assert art.children is None


def test_matches_filter_scans_without_building(tmp_path: Path) -> None:
    root = make_tree(tmp_path / "R", {"sub": {"deep": {"Needle.txt": None}}})
    node = LocalFolderNode(str(root), _context())

    assert node.matches_filter("needle")
    assert node.children is None
    assert not node.matches_filter("haystack")
    assert node.matches_filter("R")


def test_matches_filter_uses_built_children(tmp_path: Path) -> None:
    root = make_tree(tmp_path / "R", {"keep.txt": None})
    node = LocalFolderNode(str(root), _context())
    node.ensure_children_built()
    # Files added after the build are not seen until a rebuild.
    (root / "later.txt").write_text("", encoding="utf-8")

    assert node.matches_filter("keep")
    assert not node.matches_filter("later")


def test_file_matches_asset_friendly_name(tmp_path: Path) -> None:
    root = make_tree(tmp_path / "R", {"rock_01.vmdl": None})
    node = LocalFolderNode(str(root), _context(resolver=ExtensionAssetResolver()))
    node.ensure_children_built()
    file_node = node.children[0]

    assert file_node.asset is not None
    assert file_node.asset.type_name == "model"
    assert file_node.asset.friendly_name == "Model"
    assert file_node.matches_filter("MODEL")
    assert not file_node.matches_filter("material")


def test_set_expanded_notifies_owner_once(tmp_path: Path) -> None:
    root = make_tree(tmp_path / "R", {"x.txt": None})
    owner = RecordingOwner()
    node = LocalFolderNode(str(root), _context(owner=owner))

    node.set_expanded(True)
    node.set_expanded(True)
    node.set_expanded(False)
    node.set_expanded(True, notify=False)

    assert owner.events == [(node.identity_key, True), (node.identity_key, False)]
    assert node.expanded
    assert node.children_built


def test_package_manifest_grouping(tmp_path: Path) -> None:
    cache = tmp_path / "cache"
    package = PackageRecord("studio.rocks", "Rocks", "model")
    repo = FakeRepository(
        manifests={
            "studio.rocks": [
                "readme.txt",
                "models/rock.vmdl",
                "Models/cliff.vmdl",
                "materials/rock.vmat",
                "models/lod/rock_lod1.vmdl",
                "Icon.png",
            ]
        },
        cache_dir=str(cache),
    )
    node = PackageFolderNode(package, _context(repository=repo))

    assert node.has_children()
    node.ensure_children_built()

    assert _names(node) == ["materials", "models", "Icon.png", "readme.txt"]
    models = node.children[1]
    assert models.kind == NodeKind.PACKAGE_SUBFOLDER
    assert models.identity_key == package_sub_key("studio.rocks", "models")
    models.ensure_children_built()
    assert _names(models) == ["lod", "cliff.vmdl", "rock.vmdl"]
    lod = models.children[0]
    assert lod.identity_key == package_sub_key("studio.rocks", "models/lod")
    lod.ensure_children_built()
    assert lod.children[0].path == canonical_path(os.path.join(str(cache), "models", "lod", "rock_lod1.vmdl"))


def test_package_find_node_and_filter(tmp_path: Path) -> None:
    package = PackageRecord("studio.rocks", "Rocks", "model")
    repo = FakeRepository(manifests={"studio.rocks": ["models/lod/rock_lod1.vmdl"]}, cache_dir=str(tmp_path))
    node = PackageFolderNode(package, _context(repository=repo))

    found = node.find_node(package_sub_key("studio.rocks", "models/lod"))

    assert found is not None and found.display_name == "lod"
    assert PackageFolderNode(package, _context(repository=repo)).matches_filter("lod1")
    assert not PackageFolderNode(package, _context(repository=repo)).matches_filter("cliff")


def test_package_manifest_failure_yields_no_children(tmp_path: Path) -> None:
    repo = FakeRepository(cache_dir=str(tmp_path))
    repo.fail_manifest = True
    node = PackageFolderNode(PackageRecord("x.y", "XY"), _context(repository=repo))

    node.ensure_children_built()

    assert node.children == []
    assert not node.has_children()


def test_category_always_has_children_and_trailing_sentinel() -> None:
    category = CategoryNode("model", "Models", _context())

    assert category.has_children()
    category.ensure_children_built()
    assert len(category.children) == 1
    assert isinstance(category.children[0], LoadMoreNode)
    assert not category.filterable

    category.set_packages(packages("model", 3))

    assert [c.kind for c in category.children] == [NodeKind.PACKAGE_FOLDER] * 3 + [NodeKind.LOAD_MORE]
    assert category.next_offset == 3
    assert category.may_contain(package_key("pkg.model1"))
    assert category.find_node(package_key("pkg.model2")) is category.children[2]


def test_load_more_double_trigger_appends_one_page() -> None:
    category = CategoryNode("model", "Models", _context())
    category.set_packages(packages("model", 10))
    category.ensure_children_built()
    first_nodes = list(category.children[:10])

    assert category.begin_load_more()
    assert not category.begin_load_more()
    assert category.load_more_node().display_name == "Loading..."

    page = packages("model", 30)[10:30]
    added = category.finish_load_more(page)

    assert added == 20
    assert category.next_offset == 30
    assert category.children[:10] == first_nodes
    assert category.children[-1] is category.load_more_node()
    assert category.load_more_node().display_name == "Load more..."
    # The same page arriving again appends nothing.
    assert category.begin_load_more()
    assert category.finish_load_more(page) == 0
    assert len(category.packages) == 30


def test_load_more_failure_keeps_loaded_pages() -> None:
    category = CategoryNode("sound", "Sounds", _context())
    category.set_packages(packages("sound", 5))

    assert category.begin_load_more()
    category.fail_load_more("timeout")

    assert len(category.packages) == 5
    assert category.last_error == "timeout"
    assert not category.is_loading_more


def test_section_header_wraps_roots(tmp_path: Path) -> None:
    assets = make_tree(tmp_path / "Assets", {"a.txt": None})
    context = _context()
    header = SectionHeaderNode("Local", lambda ctx: [LocalFolderNode(str(assets), ctx, "Assets")], context)

    assert header.identity_key == header_key("Local")
    assert not header.filterable
    found = find_in_roots([header], os.path.join(canonical_path(str(assets)), "a.txt"))

    assert found is not None
    assert found.parent.parent is header
