import os
from pathlib import Path

import pytest

from assetbrowser.services.remote_packages import PackageRecord, PackageRepositoryError, resolve_in_cache
from assetbrowser.settings_store import CookieStore


@pytest.fixture(scope="session")
def qapp():
    pytest.importorskip("PySide6", reason="PySide6 is required for widget tests", exc_type=ImportError)
    pytest.importorskip("PySide6.QtWidgets", reason="Qt widgets not available", exc_type=ImportError)
    os.environ.setdefault("QT_QPA_PLATFORM", "offscreen")
    from PySide6.QtWidgets import QApplication

    app = QApplication.instance()
    if app is None:
        app = QApplication([])
    yield app


@pytest.fixture()
def cookies() -> CookieStore:
    return CookieStore.in_memory()


def make_tree(root: Path, layout: dict) -> Path:
    """Create files and folders from a nested dict; ``None`` values are files."""
    root.mkdir(parents=True, exist_ok=True)
    for name, child in layout.items():
        path = root / name
        if child is None:
            path.write_text("", encoding="utf-8")
        else:
            make_tree(path, child)
    return root


class FakeRepository:
    """In-memory package repository recording every ``find`` call."""

    def __init__(self, packages_by_tag=None, manifests=None, cache_dir: str = "") -> None:
        self.packages_by_tag: dict[str, list[PackageRecord]] = dict(packages_by_tag or {})
        self.manifests: dict[str, list[str]] = dict(manifests or {})
        self.cache_dir = cache_dir
        self.find_calls: list[tuple[str, int, int]] = []
        self.fail_find = False
        self.fail_manifest = False

    def find(self, query: str, page_size: int, offset: int) -> list[PackageRecord]:
        self.find_calls.append((query, page_size, offset))
        if self.fail_find:
            raise PackageRepositoryError("service unavailable", kind="http", status_code=503)
        tag = query.rsplit("type:", 1)[-1].strip()
        search = query.rsplit("type:", 1)[0].strip().lower()
        matching = [p for p in self.packages_by_tag.get(tag, []) if search in p.title.lower()]
        return matching[offset:offset + page_size]

    def get_manifest_files(self, ident: str) -> list[str]:
        if self.fail_manifest:
            raise PackageRepositoryError("manifest unavailable", kind="network")
        return list(self.manifests.get(ident, []))

    def resolve_local_path(self, relative_path: str):
        return resolve_in_cache(self.cache_dir, relative_path)


def packages(tag: str, count: int, prefix: str = "pkg") -> list[PackageRecord]:
    return [PackageRecord(ident=f"{prefix}.{tag}{i}", title=f"{tag.title()} {i}", type_tag=tag) for i in range(count)]
