import concurrent.futures
from pathlib import Path

import pytest
from conftest import FakeRepository, packages

from assetbrowser.services.filesystem import canonical_path
from assetbrowser.settings_models import BrowserConfig
from assetbrowser.tree.expansion_state import expanded_paths_key
from assetbrowser.tree.nodes import NodeKind, package_key


@pytest.fixture()
def repository(tmp_path: Path) -> FakeRepository:
    return FakeRepository(
        {"model": packages("model", 25), "sound": packages("sound", 3)},
        manifests={"pkg.model0": ["models/rock.vmdl", "materials/rock.vmat"]},
        cache_dir=str(tmp_path / "cache"),
    )


@pytest.fixture()
def context(qapp, tmp_path, cookies, repository):
    from assetbrowser.ui.controllers.browser_context import BrowserContext

    opened_urls: list[str] = []
    ctx = BrowserContext(
        project_root=canonical_path(str(tmp_path)),
        config=BrowserConfig.from_mapping({}),
        cookies=cookies,
        repository=repository,
        open_file=lambda path: None,
        open_url=opened_urls.append,
    )
    ctx.opened_urls = opened_urls
    return ctx


@pytest.fixture()
def make_panel(context):
    from assetbrowser.ui.controllers.cloud_panel import CloudPanel

    panels = []

    def factory(panel_id: str = "c"):
        panel = CloudPanel(panel_id, context)
        panels.append(panel)
        return panel

    yield factory
    for panel in panels:
        panel.close_panel()


def settle(panel) -> None:
    concurrent.futures.wait(panel.active_requests(), timeout=10)
    panel.drain_results()


def test_first_page_per_category(make_panel, repository) -> None:
    panel = make_panel()
    loaded: list = []
    panel.packagesLoaded.connect(loaded.append)
    settle(panel)

    assert len(panel.category("model").packages) == 10
    assert [p.ident for p in panel.category("sound").packages] == ["pkg.sound0", "pkg.sound1", "pkg.sound2"]
    assert panel.category("map").loaded and panel.category("map").packages == []
    assert ("type:model", 10, 0) in repository.find_calls
    assert len(loaded[-1]) == 13
    assert panel.active_requests() == []


def test_load_more_is_single_flight(make_panel, repository) -> None:
    panel = make_panel()
    settle(panel)
    category = panel.category("model")

    assert panel.load_more(category)
    assert not panel.load_more(category)
    settle(panel)

    assert len(category.packages) == 25
    assert len({p.ident for p in category.packages}) == 25
    assert [call for call in repository.find_calls if call[2] > 0] == [("type:model", 20, 10)]
    assert not category.is_loading_more


def test_load_more_failure_keeps_loaded_pages(make_panel, repository) -> None:
    panel = make_panel()
    messages: list[str] = []
    panel.statusMessage.connect(messages.append)
    settle(panel)
    category = panel.category("model")
    repository.fail_find = True

    assert panel.load_more(category)
    settle(panel)

    assert len(category.packages) == 10
    assert category.last_error == "service unavailable"
    assert not category.is_loading_more
    assert "service unavailable" in messages
    assert panel.load_more(category)
    settle(panel)


def test_activating_load_more_row(make_panel) -> None:
    panel = make_panel()
    settle(panel)
    category = panel.category("sound")
    category.set_expanded(True)
    sentinel = category.load_more_node()

    assert sentinel is not None and sentinel.kind == NodeKind.LOAD_MORE
    panel.activate_node(sentinel)
    assert sentinel.display_name == "Loading..."
    settle(panel)
    assert sentinel.display_name == "Load more..."


def test_search_requests_filtered_pages(make_panel, repository) -> None:
    panel = make_panel()
    panel.search("Model 1")
    settle(panel)

    titles = [p.title for p in panel.category("model").packages]
    assert titles and all("model 1" in title.lower() for title in titles)
    assert ("Model 1 type:model", 20, 0) in repository.find_calls
    assert panel.category("sound").packages == []


def test_expansion_restored_after_refresh(make_panel) -> None:
    panel = make_panel()
    settle(panel)
    category = panel.category("model")
    category.set_expanded(True)
    package_node = category.children[0]
    package_node.set_expanded(True)
    assert [child.display_name for child in package_node.children] == ["materials", "models"]

    panel.refresh()
    settle(panel)

    fresh = panel.category("model")
    assert fresh is not category
    assert fresh.expanded
    assert fresh.children[0].identity_key == package_node.identity_key
    assert fresh.children[0].expanded


def test_saved_expansion_applies_when_pages_arrive(make_panel, context) -> None:
    context.cookies.set(expanded_paths_key("c"), ["__category__model", package_key("pkg.model1")])

    panel = make_panel()
    settle(panel)

    category = panel.category("model")
    assert category.expanded
    assert category.children[1].expanded
    assert panel.store.is_expanded(package_key("pkg.model1"))


def test_close_persists_expansion(make_panel, context) -> None:
    panel = make_panel()
    settle(panel)
    panel.category("sound").set_expanded(True)

    panel.close_panel()

    assert context.cookies.get(expanded_paths_key("c")) == ["__category__sound"]


def test_without_repository_reports_error(qapp, tmp_path, cookies) -> None:
    from assetbrowser.ui.controllers.browser_context import BrowserContext
    from assetbrowser.ui.controllers.cloud_panel import CloudPanel

    context = BrowserContext(project_root=str(tmp_path), config=BrowserConfig.from_mapping({}), cookies=cookies)
    panel = CloudPanel("c", context)
    try:
        assert panel.active_requests() == []
        assert panel.category("model").last_error == "Cloud packages are not configured."
        assert not panel.load_more(panel.category("model"))
    finally:
        panel.close_panel()


def test_search_opens_categories_with_results(make_panel) -> None:
    panel = make_panel()
    settle(panel)
    panel.category("sound").set_expanded(True)
    messages: list[str] = []
    panel.statusMessage.connect(messages.append)

    panel.search("Model 1")
    settle(panel)

    assert panel.category("model").expanded
    assert not panel.category("sound").expanded
    assert not panel.store.is_expanded("__category__sound")
    assert messages[-1] == 'Found 11 results for "Model 1"'


def test_load_more_reports_progress(make_panel) -> None:
    panel = make_panel()
    settle(panel)
    category = panel.category("model")
    messages: list[str] = []
    panel.statusMessage.connect(messages.append)

    assert panel.load_more(category)
    settle(panel)
    assert messages[-1] == "Loaded 25 models"

    assert panel.load_more(category)
    settle(panel)
    assert messages[-1] == "No more models found"
    assert len(category.packages) == 25


def test_page_arriving_after_refresh_is_dropped(make_panel) -> None:
    panel = make_panel()
    settle(panel)
    stale = panel.category("model")
    loaded: list = []
    panel.packagesLoaded.connect(loaded.append)

    assert panel.load_more(stale)
    concurrent.futures.wait(panel.active_requests(), timeout=10)
    panel.refresh()
    settle(panel)

    fresh = panel.category("model")
    assert fresh is not stale
    assert len(stale.packages) == 10
    assert len(fresh.packages) == 10
    assert loaded and all(len(batch) <= 13 for batch in loaded)


def test_unmatched_keys_pruned_after_first_pages(make_panel, context) -> None:
    context.cookies.set(
        expanded_paths_key("c"),
        ["__category__model", package_key("pkg.model1"), package_key("pkg.gone")],
    )
    panel = make_panel()
    messages: list[str] = []
    panel.statusMessage.connect(messages.append)
    settle(panel)

    assert panel.store.snapshot() == {"__category__model", package_key("pkg.model1")}
    assert messages[-1] == "Loaded 13 cloud assets"


def test_unmatched_keys_kept_while_searching(make_panel, context) -> None:
    context.cookies.set(expanded_paths_key("c"), [package_key("pkg.gone")])
    panel = make_panel()

    panel.search("Model 1")
    settle(panel)

    assert panel.store.is_expanded(package_key("pkg.gone"))


def test_unmatched_keys_kept_when_a_page_fails(make_panel, context, repository) -> None:
    context.cookies.set(expanded_paths_key("c"), [package_key("pkg.gone")])
    repository.fail_find = True
    panel = make_panel()
    settle(panel)

    assert panel.store.is_expanded(package_key("pkg.gone"))


def test_open_package_page(make_panel, context) -> None:
    panel = make_panel()
    package = packages("model", 1)[0]

    assert panel.open_package_page(package)
    assert context.opened_urls == ["https://packages.example.com/pkg.model0"]

    context.config = BrowserConfig.from_mapping({"package_page_url": ""})
    assert not panel.open_package_page(package)
    assert context.opened_urls == ["https://packages.example.com/pkg.model0"]
