"""Shared project context passed to every browser panel."""

from __future__ import annotations

import os
import urllib.parse
from dataclasses import dataclass, field
from typing import Callable

from PySide6.QtCore import QUrl
from PySide6.QtGui import QDesktopServices

from assetbrowser.services.asset_resolver import AssetResolver, ExtensionAssetResolver
from assetbrowser.services.filesystem import FileSystem, LocalFileSystem, canonical_path, is_within
from assetbrowser.services.remote_packages import HttpPackageRepository, PackageRepository
from assetbrowser.settings_models import BrowserConfig
from assetbrowser.settings_store import CookieStore
from assetbrowser.tree.nodes import NodeContext, NodeOwner


def open_in_system_editor(path: str) -> None:
    QDesktopServices.openUrl(QUrl.fromLocalFile(path))


def open_in_web_browser(url: str) -> None:
    QDesktopServices.openUrl(QUrl(url))


@dataclass
class BrowserContext:
    project_root: str
    config: BrowserConfig
    cookies: CookieStore
    fs: FileSystem = field(default_factory=LocalFileSystem)
    resolver: AssetResolver | None = None
    repository: PackageRepository | None = None
    open_file: Callable[[str], None] = open_in_system_editor
    open_url: Callable[[str], None] = open_in_web_browser
    active_instance_ids: set[str] = field(default_factory=set)

    @classmethod
    def for_project(cls, project_root: str, config: BrowserConfig, cookies: CookieStore | None = None) -> "BrowserContext":
        root = canonical_path(project_root)
        repository: PackageRepository | None = None
        if config.package_api_url:
            repository = HttpPackageRepository(
                config.package_api_url,
                cache_dir=os.path.join(root, config.package_cache_dir),
                timeout_s=config.request_timeout_s,
            )
        return cls(
            project_root=root,
            config=config,
            cookies=cookies if cookies is not None else CookieStore.for_project(root),
            resolver=ExtensionAssetResolver(config.rules.compiled_suffix),
            repository=repository,
        )

    def node_context(self, owner: NodeOwner | None = None) -> NodeContext:
        return NodeContext(
            fs=self.fs,
            rules=self.config.rules,
            resolver=self.resolver,
            repository=self.repository,
            owner=owner,
            match_scan_depth=self.config.match_scan_max_depth,
        )

    def package_page_url(self, ident: str) -> str | None:
        base = self.config.package_page_url
        if not base or not ident:
            return None
        return f"{base}/{urllib.parse.quote(ident)}"

    def _resolve(self, path: str) -> str:
        if os.path.isabs(path):
            return canonical_path(path)
        return canonical_path(os.path.join(self.project_root, path))

    def local_roots(self) -> list[tuple[str, str]]:
        """Configured well-known roots that exist, as ``(name, path)``."""
        roots: list[tuple[str, str]] = []
        for entry in self.config.roots:
            path = self._resolve(entry["path"])
            if self.fs.is_dir(path):
                roots.append((entry["name"], path))
        return roots

    def package_root(self) -> str | None:
        if not self.config.package_root:
            return None
        path = self._resolve(self.config.package_root)
        return path if self.fs.is_dir(path) else None

    def boundary_roots(self) -> list[tuple[str, str]]:
        roots = list(self.local_roots())
        for entry in self.config.extra_roots:
            roots.append((entry["name"], self._resolve(entry["path"])))
        package_root = self.package_root()
        if package_root:
            roots.append((os.path.basename(package_root), package_root))
        return roots

    def search_roots(self) -> list[str]:
        return [path for _name, path in self.boundary_roots() if self.fs.is_dir(path)]

    def is_boundary(self, path: str) -> bool:
        cpath = canonical_path(path)
        return any(cpath == root for _name, root in self.boundary_roots())

    def root_for_path(self, path: str) -> tuple[str, str] | None:
        cpath = canonical_path(path)
        best: tuple[str, str] | None = None
        for name, root in self.boundary_roots():
            if is_within(root, cpath) and (best is None or len(root) > len(best[1])):
                best = (name, root)
        return best

    def display_path(self, path: str) -> str:
        """``Root/relative/path`` for paths below a known root."""
        found = self.root_for_path(path)
        if found is None:
            return canonical_path(path)
        name, root = found
        rel = os.path.relpath(canonical_path(path), root)
        if rel in (".", ""):
            return name
        return "/".join([name, *rel.split(os.sep)])
