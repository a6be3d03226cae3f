"""Lazily materialized tree nodes for local folders, cloud packages and categories.

Children stay ``None`` until first expansion or an explicit build; a rebuild of
the tree discards every node, so only ``identity_key`` is meaningful across
rebuilds.
"""

from __future__ import annotations

import os
from dataclasses import dataclass
from enum import Enum
from typing import Callable, Iterator, Protocol

from assetbrowser.app_logging import get_logger
from assetbrowser.services.asset_resolver import AssetRecord, AssetResolver
from assetbrowser.services.exclusion import list_visible_entries
from assetbrowser.services.filesystem import FileSystem, LocalFileSystem, canonical_path
from assetbrowser.services.filter_index import DEFAULT_MATCH_SCAN_DEPTH, normalize_query, scan_for_match
from assetbrowser.services.remote_packages import PackageRecord, PackageRepository, PackageRepositoryError
from assetbrowser.settings_models import ExclusionRules

logger = get_logger(__name__)

PACKAGE_KEY_PREFIX = "__package__"
PACKAGE_SUB_KEY_PREFIX = "__packagesub__"
HEADER_KEY_PREFIX = "__header__"
CATEGORY_KEY_PREFIX = "__category__"
LOAD_MORE_KEY_PREFIX = "__loadmore__"


class NodeKind(Enum):
    LOCAL_FOLDER = "local_folder"
    LOCAL_FILE = "local_file"
    PACKAGE_FOLDER = "package_folder"
    PACKAGE_SUBFOLDER = "package_subfolder"
    CATEGORY = "category"
    LOAD_MORE = "load_more"
    SECTION_HEADER = "section_header"


FOLDER_KINDS = (NodeKind.LOCAL_FOLDER, NodeKind.PACKAGE_FOLDER, NodeKind.PACKAGE_SUBFOLDER)


class NodeOwner(Protocol):
    def node_expansion_changed(self, node: "TreeNode", expanded: bool) -> None: ...


@dataclass(slots=True)
class NodeContext:
    fs: FileSystem
    rules: ExclusionRules
    resolver: AssetResolver | None = None
    repository: PackageRepository | None = None
    owner: NodeOwner | None = None
    match_scan_depth: int = DEFAULT_MATCH_SCAN_DEPTH

    @classmethod
    def local(cls, *, owner: NodeOwner | None = None, rules: ExclusionRules | None = None) -> "NodeContext":
        return cls(fs=LocalFileSystem(), rules=rules or ExclusionRules(), owner=owner)


def package_key(ident: str) -> str:
    return f"{PACKAGE_KEY_PREFIX}{ident}"


def package_sub_key(ident: str, folder_name: str) -> str:
    return f"{PACKAGE_SUB_KEY_PREFIX}{ident}__{folder_name}"


def header_key(name: str) -> str:
    return f"{HEADER_KEY_PREFIX}{name}"


class TreeNode:
    kind: NodeKind = NodeKind.SECTION_HEADER
    filterable = True

    def __init__(self, identity_key: str, display_name: str, context: NodeContext, parent: "TreeNode | None" = None):
        self.identity_key = identity_key
        self._display_name = display_name
        self.context = context
        self.parent = parent
        self.children: list[TreeNode] | None = None
        self.expanded = False

    def __repr__(self) -> str:
        return f"<{type(self).__name__} {self.identity_key!r}>"

    @property
    def display_name(self) -> str:
        return self._display_name

    @property
    def children_built(self) -> bool:
        return self.children is not None

    @property
    def path(self) -> str | None:
        return None

    def has_children(self) -> bool:
        if self.children is not None:
            return bool(self.children)
        return self._probe_children()

    def build_children(self) -> None:
        try:
            created = self._create_children()
        except (OSError, PackageRepositoryError) as exc:
            logger.warning("Could not build children of %s: %s", self.identity_key, exc)
            created = []
        for child in created:
            child.parent = self
        self.children = created

    def ensure_children_built(self) -> None:
        if self.children is None:
            self.build_children()

    def clear_children(self) -> None:
        self.children = None

    def may_contain(self, key: str) -> bool:
        """True when ``key`` can only live somewhere below this node."""
        return False

    def find_node(self, key: str) -> "TreeNode | None":
        if key == self.identity_key:
            return self
        if not self.may_contain(key):
            return None
        self.ensure_children_built()
        for child in self.children or []:
            found = child.find_node(key)
            if found is not None:
                return found
        return None

    def matches_filter(self, query: str) -> bool:
        needle = normalize_query(query)
        if not needle or needle in self.display_name.lower():
            return True
        if self.children is not None:
            return any(child.matches_filter(needle) for child in self.children)
        return self._scan_matches(needle)

    def set_expanded(self, expanded: bool, *, notify: bool = True) -> None:
        expanded = bool(expanded)
        if expanded:
            self.ensure_children_built()
        if self.expanded == expanded:
            return
        self.expanded = expanded
        owner = self.context.owner
        if notify and owner is not None:
            owner.node_expansion_changed(self, expanded)

    def ancestors(self) -> Iterator["TreeNode"]:
        node = self.parent
        while node is not None:
            yield node
            node = node.parent

    def iter_built(self) -> Iterator["TreeNode"]:
        """Depth-first walk over this node and every already-built descendant."""
        yield self
        for child in self.children or []:
            yield from child.iter_built()

    def row(self) -> int:
        if self.parent is None or self.parent.children is None:
            return 0
        for index, sibling in enumerate(self.parent.children):
            if sibling is self:
                return index
        return -1

    def _probe_children(self) -> bool:
        return False

    def _create_children(self) -> list["TreeNode"]:
        return []

    def _scan_matches(self, needle: str) -> bool:
        return False


class LocalFolderNode(TreeNode):
    kind = NodeKind.LOCAL_FOLDER

    def __init__(self, path: str, context: NodeContext, display_name: str | None = None, parent: TreeNode | None = None):
        cpath = canonical_path(path)
        super().__init__(cpath, display_name or os.path.basename(cpath) or cpath, context, parent)
        self._path = cpath

    @property
    def path(self) -> str:
        return self._path

    def may_contain(self, key: str) -> bool:
        return key.startswith(self._path.rstrip(os.sep) + os.sep)

    def _probe_children(self) -> bool:
        return self.context.fs.has_entries(self._path)

    def _create_children(self) -> list[TreeNode]:
        children: list[TreeNode] = []
        for entry in list_visible_entries(self.context.fs, self._path, self.context.rules):
            if entry.is_dir:
                children.append(LocalFolderNode(entry.path, self.context, entry.name, self))
            else:
                children.append(LocalFileNode(entry.path, self.context, self))
        return children

    def _scan_matches(self, needle: str) -> bool:
        return scan_for_match(
            self.context.fs,
            self._path,
            needle,
            self.context.rules,
            max_depth=self.context.match_scan_depth,
        )


class LocalFileNode(TreeNode):
    kind = NodeKind.LOCAL_FILE

    def __init__(self, path: str, context: NodeContext, parent: TreeNode | None = None):
        cpath = canonical_path(path)
        super().__init__(cpath, os.path.basename(cpath), context, parent)
        self._path = cpath
        self._asset: AssetRecord | None = None
        self._asset_resolved = False

    @property
    def path(self) -> str:
        return self._path

    @property
    def asset(self) -> AssetRecord | None:
        if not self._asset_resolved:
            resolver = self.context.resolver
            self._asset = resolver.find_asset_by_path(self._path) if resolver is not None else None
            self._asset_resolved = True
        return self._asset

    def _scan_matches(self, needle: str) -> bool:
        asset = self.asset
        return asset is not None and needle in asset.friendly_name.lower()


def _group_package_files(
    package: PackageRecord,
    files: list[str],
    prefix: str,
    context: NodeContext,
    parent: TreeNode,
) -> list[TreeNode]:
    """Sub-folders (by next path segment below ``prefix``) first, then files."""
    folders: dict[str, tuple[str, list[str]]] = {}
    current_files: list[str] = []
    strip = prefix + "/" if prefix else ""
    for file in files:
        normalized = file.replace("\\", "/")
        relative = normalized
        if strip and normalized.lower().startswith(strip.lower()):
            relative = normalized[len(strip):]
        parts = relative.split("/")
        if len(parts) > 1:
            folder_name, grouped = folders.setdefault(parts[0].lower(), (parts[0], []))
            grouped.append(file)
        else:
            current_files.append(file)

    children: list[TreeNode] = []
    for _key, (folder_name, grouped) in sorted(folders.items()):
        full_name = f"{prefix}/{folder_name}" if prefix else folder_name
        children.append(PackageSubFolderNode(package, full_name, grouped, context, parent))

    repository = context.repository
    for file in sorted(current_files, key=str.lower):
        local_path = repository.resolve_local_path(file) if repository is not None else None
        if local_path:
            children.append(LocalFileNode(local_path, context, parent))
    return children


class PackageFolderNode(TreeNode):
    kind = NodeKind.PACKAGE_FOLDER

    def __init__(self, package: PackageRecord, context: NodeContext, parent: TreeNode | None = None):
        super().__init__(package_key(package.ident), package.title or package.ident, context, parent)
        self.package = package
        self._manifest: list[str] | None = None

    def manifest_files(self) -> list[str]:
        if self._manifest is None:
            repository = self.context.repository
            if repository is None:
                self._manifest = []
            else:
                try:
                    self._manifest = list(repository.get_manifest_files(self.package.ident))
                except PackageRepositoryError as exc:
                    logger.warning("Could not list files of package %s: %s", self.package.ident, exc)
                    self._manifest = []
        return self._manifest

    def may_contain(self, key: str) -> bool:
        return key.startswith(f"{PACKAGE_SUB_KEY_PREFIX}{self.package.ident}__")

    def _probe_children(self) -> bool:
        # Unknown until the manifest is fetched; fetching it here would block the view.
        if self._manifest is None:
            return True
        return bool(self._manifest)

    def _create_children(self) -> list[TreeNode]:
        return _group_package_files(self.package, self.manifest_files(), "", self.context, self)

    def _scan_matches(self, needle: str) -> bool:
        return any(needle in file.lower() for file in self.manifest_files())


class PackageSubFolderNode(TreeNode):
    kind = NodeKind.PACKAGE_SUBFOLDER

    def __init__(
        self,
        package: PackageRecord,
        folder_name: str,
        files: list[str],
        context: NodeContext,
        parent: TreeNode | None = None,
    ):
        super().__init__(
            package_sub_key(package.ident, folder_name),
            folder_name.rsplit("/", 1)[-1],
            context,
            parent,
        )
        self.package = package
        self.folder_name = folder_name
        self.files = list(files)

    def may_contain(self, key: str) -> bool:
        return key.startswith(self.identity_key + "/")

    def _probe_children(self) -> bool:
        return bool(self.files)

    def _create_children(self) -> list[TreeNode]:
        return _group_package_files(self.package, self.files, self.folder_name, self.context, self)

    def _scan_matches(self, needle: str) -> bool:
        strip = len(self.folder_name) + 1
        return any(needle in file[strip:].lower() for file in self.files)


class CategoryNode(TreeNode):
    """A remote package category paged in on demand.

    Always reports children. ``begin_load_more`` is the busy guard: while a
    page request is outstanding a second request is refused.
    """

    kind = NodeKind.CATEGORY
    filterable = False

    def __init__(self, type_tag: str, title: str, context: NodeContext, parent: TreeNode | None = None):
        super().__init__(f"{CATEGORY_KEY_PREFIX}{type_tag}", title, context, parent)
        self.type_tag = type_tag
        self.packages: list[PackageRecord] = []
        self.loaded = False
        self.is_loading = False
        self.is_loading_more = False
        self.last_error: str | None = None

    @property
    def next_offset(self) -> int:
        return len(self.packages)

    def has_children(self) -> bool:
        return True

    def may_contain(self, key: str) -> bool:
        return any(
            key == package_key(p.ident) or key.startswith(f"{PACKAGE_SUB_KEY_PREFIX}{p.ident}__")
            for p in self.packages
        )

    def set_packages(self, packages: list[PackageRecord]) -> None:
        self.packages = []
        self.loaded = True
        self.last_error = None
        self.append_packages(packages)
        if self.children is not None:
            self._sync_children()

    def append_packages(self, packages: list[PackageRecord]) -> int:
        known = {p.ident for p in self.packages}
        added = 0
        for package in packages:
            if package.ident in known:
                continue
            known.add(package.ident)
            self.packages.append(package)
            added += 1
        if added and self.children is not None:
            self._sync_children()
        return added

    def begin_load_more(self) -> bool:
        if self.is_loading_more or self.is_loading:
            return False
        self.is_loading_more = True
        return True

    def finish_load_more(self, packages: list[PackageRecord]) -> int:
        self.is_loading_more = False
        return self.append_packages(packages)

    def fail_load_more(self, message: str) -> None:
        self.is_loading_more = False
        self.last_error = message

    def load_more_node(self) -> "LoadMoreNode | None":
        for child in self.children or []:
            if isinstance(child, LoadMoreNode):
                return child
        return None

    def _create_children(self) -> list[TreeNode]:
        children: list[TreeNode] = [PackageFolderNode(package, self.context, self) for package in self.packages]
        children.append(LoadMoreNode(self, self.context))
        return children

    def _sync_children(self) -> None:
        existing = {child.identity_key: child for child in self.children or []}
        children: list[TreeNode] = []
        for package in self.packages:
            node = existing.get(package_key(package.ident))
            if node is None:
                node = PackageFolderNode(package, self.context, self)
            children.append(node)
        sentinel = existing.get(f"{LOAD_MORE_KEY_PREFIX}{self.type_tag}") or LoadMoreNode(self, self.context)
        children.append(sentinel)
        for child in children:
            child.parent = self
        self.children = children


class LoadMoreNode(TreeNode):
    kind = NodeKind.LOAD_MORE
    filterable = False

    def __init__(self, category: CategoryNode, context: NodeContext):
        super().__init__(f"{LOAD_MORE_KEY_PREFIX}{category.type_tag}", "Load more...", context, category)
        self.category = category

    @property
    def display_name(self) -> str:
        if self.category.is_loading_more:
            return "Loading..."
        return "Load more..."


class SectionHeaderNode(TreeNode):
    kind = NodeKind.SECTION_HEADER
    filterable = False

    def __init__(self, name: str, root_factory: Callable[[NodeContext], list[TreeNode]], context: NodeContext):
        super().__init__(header_key(name), name, context, None)
        self._root_factory = root_factory

    def may_contain(self, key: str) -> bool:
        return True

    def _probe_children(self) -> bool:
        return True

    def _create_children(self) -> list[TreeNode]:
        return list(self._root_factory(self.context))


def find_in_roots(roots: list[TreeNode], key: str) -> TreeNode | None:
    for root in roots:
        found = root.find_node(key)
        if found is not None:
            return found
    return None
