from __future__ import annotations

from copy import deepcopy
from dataclasses import dataclass, field
from typing import Any, TypedDict

PANEL_TYPES = ("Tree", "IconGrid", "Cloud", "CloudIconGrid")

WELL_KNOWN_ROOT_NAMES = ("Assets", "Code", "Core", "Citizen")

CLOUD_CATEGORIES = (
    ("model", "Models"),
    ("material", "Materials"),
    ("sound", "Sounds"),
    ("map", "Maps"),
)


class RootEntry(TypedDict, total=False):
    name: str
    path: str


class AssetBrowserSettings(TypedDict, total=False):
    scan_max_depth: int
    match_scan_max_depth: int
    save_interval_ms: int
    watch_debounce_ms: int
    result_pump_ms: int
    cloud_initial_page_size: int
    cloud_search_page_size: int
    cloud_load_more_page_size: int
    build_artifact_dir: str
    generated_marker: str
    meta_suffix: str
    compiled_suffix: str
    roots: list[RootEntry]
    extra_roots: list[RootEntry]
    package_root: str
    package_api_url: str
    package_page_url: str
    package_cache_dir: str
    request_timeout_s: float


class BrowserSettings(TypedDict, total=False):
    asset_browser: AssetBrowserSettings


def default_asset_browser_settings() -> AssetBrowserSettings:
    return {
        "scan_max_depth": 15,
        "match_scan_max_depth": 5,
        "save_interval_ms": 2000,
        "watch_debounce_ms": 260,
        "result_pump_ms": 16,
        "cloud_initial_page_size": 10,
        "cloud_search_page_size": 20,
        "cloud_load_more_page_size": 20,
        "build_artifact_dir": "obj",
        "generated_marker": ".generated",
        "meta_suffix": ".meta",
        "compiled_suffix": "_c",
        "roots": [
            {"name": "Assets", "path": "Assets"},
            {"name": "Code", "path": "Code"},
        ],
        "extra_roots": [],
        "package_root": "",
        "package_api_url": "https://packages.example.com/api",
        "package_page_url": "https://packages.example.com",
        "package_cache_dir": ".assetbrowser/cloud",
        "request_timeout_s": 15.0,
    }


def default_browser_settings() -> BrowserSettings:
    return deepcopy({"asset_browser": default_asset_browser_settings()})


def _normalize_roots(raw: Any) -> list[RootEntry]:
    roots: list[RootEntry] = []
    if not isinstance(raw, list):
        return roots
    for item in raw:
        if not isinstance(item, dict):
            continue
        path = str(item.get("path") or "").strip()
        if not path:
            continue
        name = str(item.get("name") or "").strip() or path.replace("\\", "/").rstrip("/").rsplit("/", 1)[-1]
        roots.append({"name": name, "path": path})
    return roots


def normalize_asset_browser_settings(raw: Any) -> AssetBrowserSettings:
    defaults = default_asset_browser_settings()
    data: dict[str, Any] = dict(defaults)
    if isinstance(raw, dict):
        for key, value in raw.items():
            data[str(key)] = value

    def _clamp_int(value: Any, low: int, high: int, fallback: int) -> int:
        try:
            return max(low, min(high, int(value)))
        except Exception:
            return fallback

    def _text(key: str) -> str:
        return str(data.get(key) if data.get(key) is not None else defaults[key]).strip()

    try:
        timeout_s = max(0.5, float(data.get("request_timeout_s", defaults["request_timeout_s"])))
    except Exception:
        timeout_s = float(defaults["request_timeout_s"])

    roots = _normalize_roots(data.get("roots"))
    return {
        "scan_max_depth": _clamp_int(data.get("scan_max_depth"), 1, 64, int(defaults["scan_max_depth"])),
        "match_scan_max_depth": _clamp_int(data.get("match_scan_max_depth"), 0, 64, int(defaults["match_scan_max_depth"])),
        "save_interval_ms": _clamp_int(data.get("save_interval_ms"), 100, 60000, int(defaults["save_interval_ms"])),
        "watch_debounce_ms": _clamp_int(data.get("watch_debounce_ms"), 0, 10000, int(defaults["watch_debounce_ms"])),
        "result_pump_ms": _clamp_int(data.get("result_pump_ms"), 1, 1000, int(defaults["result_pump_ms"])),
        "cloud_initial_page_size": _clamp_int(data.get("cloud_initial_page_size"), 1, 200, int(defaults["cloud_initial_page_size"])),
        "cloud_search_page_size": _clamp_int(data.get("cloud_search_page_size"), 1, 200, int(defaults["cloud_search_page_size"])),
        "cloud_load_more_page_size": _clamp_int(data.get("cloud_load_more_page_size"), 1, 200, int(defaults["cloud_load_more_page_size"])),
        "build_artifact_dir": _text("build_artifact_dir"),
        "generated_marker": _text("generated_marker"),
        "meta_suffix": _text("meta_suffix"),
        "compiled_suffix": _text("compiled_suffix"),
        "roots": roots if roots else deepcopy(defaults["roots"]),
        "extra_roots": _normalize_roots(data.get("extra_roots")),
        "package_root": _text("package_root"),
        "package_api_url": _text("package_api_url").rstrip("/") or defaults["package_api_url"],
        "package_page_url": _text("package_page_url").rstrip("/"),
        "package_cache_dir": _text("package_cache_dir") or defaults["package_cache_dir"],
        "request_timeout_s": timeout_s,
    }


@dataclass(slots=True)
class ExclusionRules:
    build_artifact_dir: str = "obj"
    generated_marker: str = ".generated"
    meta_suffix: str = ".meta"
    compiled_suffix: str = "_c"


@dataclass(slots=True)
class BrowserConfig:
    scan_max_depth: int = 15
    match_scan_max_depth: int = 5
    save_interval_ms: int = 2000
    watch_debounce_ms: int = 260
    result_pump_ms: int = 16
    cloud_initial_page_size: int = 10
    cloud_search_page_size: int = 20
    cloud_load_more_page_size: int = 20
    rules: ExclusionRules = field(default_factory=ExclusionRules)
    roots: list[RootEntry] = field(default_factory=list)
    extra_roots: list[RootEntry] = field(default_factory=list)
    package_root: str = ""
    package_api_url: str = ""
    package_page_url: str = ""
    package_cache_dir: str = ""
    request_timeout_s: float = 15.0

    @classmethod
    def from_mapping(cls, data: Any) -> "BrowserConfig":
        n = normalize_asset_browser_settings(data)
        return cls(
            scan_max_depth=int(n["scan_max_depth"]),
            match_scan_max_depth=int(n["match_scan_max_depth"]),
            save_interval_ms=int(n["save_interval_ms"]),
            watch_debounce_ms=int(n["watch_debounce_ms"]),
            result_pump_ms=int(n["result_pump_ms"]),
            cloud_initial_page_size=int(n["cloud_initial_page_size"]),
            cloud_search_page_size=int(n["cloud_search_page_size"]),
            cloud_load_more_page_size=int(n["cloud_load_more_page_size"]),
            rules=ExclusionRules(
                build_artifact_dir=str(n["build_artifact_dir"]),
                generated_marker=str(n["generated_marker"]),
                meta_suffix=str(n["meta_suffix"]),
                compiled_suffix=str(n["compiled_suffix"]),
            ),
            roots=list(n["roots"]),
            extra_roots=list(n["extra_roots"]),
            package_root=str(n["package_root"]),
            package_api_url=str(n["package_api_url"]),
            package_page_url=str(n["package_page_url"]),
            package_cache_dir=str(n["package_cache_dir"]),
            request_timeout_s=float(n["request_timeout_s"]),
        )
