from pathlib import Path

import pytest
from conftest import make_tree, packages

from assetbrowser.services.filesystem import canonical_path
from assetbrowser.settings_models import BrowserConfig
from assetbrowser.settings_store import CookieStore
from assetbrowser.tree.expansion_state import expanded_paths_key


@pytest.fixture()
def context(qapp, tmp_path: Path, cookies):
    from assetbrowser.ui.controllers.browser_context import BrowserContext

    project = make_tree(tmp_path / "proj", {"Assets": {"models": {"rock.vmdl": None}}, "Code": {}})
    return BrowserContext(
        project_root=canonical_path(str(project)),
        config=BrowserConfig.from_mapping({}),
        cookies=cookies,
        open_file=lambda path: None,
    )


@pytest.fixture()
def make_host(context):
    from assetbrowser.ui.multi_panel_host import AssetBrowserHost

    hosts = []

    def factory(instance_id: str | None = "Browser_1"):
        host = AssetBrowserHost(context, instance_id)
        hosts.append(host)
        return host

    yield factory
    for host in hosts:
        host.shutdown()


def _state_key(instance_id: str = "Browser_1") -> str:
    return CookieStore.key(instance_id, "State")


def test_default_layout_is_single_tree(make_host) -> None:
    host = make_host()

    assert host.panel_types() == ["Tree"]
    assert host.panels()[0].panel_id == "Browser_1_Panel0"
    assert not host.is_tab_mode
    assert not host.set_tab_mode(True)
    assert not host.remove_panel(host.panels()[0])


def test_restores_saved_layout(make_host, context) -> None:
    context.cookies.set(
        _state_key(),
        {"panel_types": ["Tree", "Bogus", "IconGrid", "CloudIconGrid"], "active_tab_index": 7, "is_tab_mode": True},
    )

    host = make_host()

    assert host.panel_types() == ["Tree", "IconGrid", "CloudIconGrid"]
    assert host.active_tab_index == 2
    assert host.is_tab_mode
    assert [panel.isHidden() for panel in host.panels()] == [True, True, False]
    assert host.tab_bar.count() == 3


def test_normalize_host_state() -> None:
    from assetbrowser.ui.multi_panel_host import normalize_host_state

    assert normalize_host_state(None) == {"is_tab_mode": False, "active_tab_index": 0, "panel_types": ["Tree"]}
    assert normalize_host_state({"panel_types": ["Cloud"], "is_tab_mode": True, "active_tab_index": "x"}) == {
        "is_tab_mode": False,
        "active_tab_index": 0,
        "panel_types": ["Cloud"],
    }


def test_add_remove_and_persist(make_host, context) -> None:
    host = make_host()
    host.add_panel("IconGrid")
    host.add_panel("Cloud")

    assert host.panel_types() == ["Tree", "IconGrid", "Cloud"]
    assert host.active_tab_index == 2
    assert context.cookies.get(_state_key())["panel_types"] == ["Tree", "IconGrid", "Cloud"]
    assert host.add_panel("Nope") is None

    assert host.remove_panel(host.panel_at(1))

    assert host.panel_types() == ["Tree", "Cloud"]
    assert [panel.panel_id for panel in host.panels()] == ["Browser_1_Panel0", "Browser_1_Panel1"]
    assert context.cookies.get(_state_key())["panel_types"] == ["Tree", "Cloud"]


def test_tab_mode_leaves_with_last_panel(make_host) -> None:
    host = make_host()
    grid = host.add_panel("IconGrid")

    assert host.set_tab_mode(True)
    assert host.tab_bar.isVisibleTo(host)
    host.set_active_tab(0)
    assert grid.isHidden()

    host.remove_panel(grid)

    assert not host.is_tab_mode
    assert not host.panels()[0].isHidden()


def test_reorder_moves_expansion_state_with_panel(make_host, context) -> None:
    host = make_host()
    tree = host.panels()[0]
    tree.store.on_expanded("marker")
    tree.save_state()
    host.add_panel("IconGrid")

    assert host.move_panel_right(tree)

    assert host.panel_types() == ["IconGrid", "Tree"]
    assert tree.panel_id == "Browser_1_Panel1"
    assert "marker" in context.cookies.get(expanded_paths_key("Browser_1_Panel1"))
    assert context.cookies.get(expanded_paths_key("Browser_1_Panel0")) is None
    assert not host.move_panel_right(tree)
    assert host.active_panel() is not tree


def test_inserted_panel_starts_with_fresh_state(make_host, context) -> None:
    host = make_host()
    tree = host.panels()[0]
    tree.store.on_expanded("marker")
    tree.save_state()

    second = host.add_panel("Tree", index=0)

    assert host.panels() == [second, tree]
    assert tree.panel_id == "Browser_1_Panel1"
    assert "marker" not in second.store.snapshot()
    assert "marker" in context.cookies.get(expanded_paths_key("Browser_1_Panel1"))


def test_folder_selection_drives_icon_grids(make_host, context) -> None:
    host = make_host()
    grid = host.add_panel("IconGrid")
    tree = host.panels()[0]
    forwarded: list[str] = []
    host.folderSelected.connect(forwarded.append)
    models = canonical_path(str(Path(context.project_root, "Assets", "models")))

    tree.folderSelected.emit(models)

    assert grid.current_folder == models
    assert forwarded == [models]


def test_loaded_packages_fan_out(make_host) -> None:
    host = make_host()
    grid = host.add_panel("IconGrid")
    cloud_grid = host.add_panel("CloudIconGrid")
    cloud = host.add_panel("Cloud")

    cloud.packagesLoaded.emit(packages("model", 2))

    assert [p.ident for p in cloud_grid.packages()] == ["pkg.model0", "pkg.model1"]
    assert grid.in_package_mode


def test_shutdown_saves_every_panel(make_host, context) -> None:
    host = make_host()
    tree = host.panels()[0]
    tree.store.on_expanded("marker")

    host.shutdown()
    host.shutdown()

    assert "marker" in context.cookies.get(expanded_paths_key("Browser_1_Panel0"))
    assert context.cookies.get(_state_key())["panel_types"] == ["Tree"]


def test_instance_ids_are_reused(cookies) -> None:
    from assetbrowser.ui.multi_panel_host import ALL_INSTANCE_IDS_KEY, claim_instance_id

    first = claim_instance_id(cookies)
    second = claim_instance_id(cookies, exclude={first})

    assert (first, second) == ("Browser_1", "Browser_2")
    assert claim_instance_id(cookies) == "Browser_1"
    assert cookies.get(ALL_INSTANCE_IDS_KEY) == ["Browser_1", "Browser_2"]


def test_host_claims_id_when_none_given(make_host) -> None:
    host = make_host(None)

    assert host.instance_id == "Browser_1"
    assert host.state_key == _state_key()


def test_refresh_all_reloads_every_panel(make_host, context) -> None:
    import shutil

    host = make_host()
    grid = host.add_panel("IconGrid")
    assets = canonical_path(str(Path(context.project_root, "Assets")))
    models = canonical_path(str(Path(assets, "models")))
    grid.show_folder(models)
    shutil.rmtree(models)

    host.refresh_all()

    assert host.panel_types() == ["Tree", "IconGrid"]
    assert grid.current_folder == assets


def test_open_hosts_claim_distinct_ids(make_host, context) -> None:
    first = make_host(None)
    second = make_host(None)

    assert (first.instance_id, second.instance_id) == ("Browser_1", "Browser_2")
    assert first.panels()[0].panel_id != second.panels()[0].panel_id

    first.shutdown()
    third = make_host(None)

    assert third.instance_id == "Browser_1"
    assert context.active_instance_ids == {"Browser_1", "Browser_2"}
