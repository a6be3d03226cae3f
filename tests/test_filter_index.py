import os
from pathlib import Path

from conftest import make_tree

from assetbrowser.services.filesystem import LocalFileSystem, canonical_path
from assetbrowser.services.filter_index import compute_matches, scan_for_match
from assetbrowser.settings_models import ExclusionRules


def test_matches_include_every_ancestor(tmp_path: Path) -> None:
    root = make_tree(tmp_path / "R", {"sub": {"deep": {"match.txt": None}}, "other": {"x.txt": None}})
    base = canonical_path(str(root))

    matches = compute_matches(LocalFileSystem(), [str(root)], "match")

    assert os.path.join(base, "sub", "deep", "match.txt") in matches
    assert os.path.join(base, "sub", "deep") in matches
    assert os.path.join(base, "sub") in matches
    assert base in matches
    assert os.path.join(base, "other") not in matches
    assert os.path.join(base, "other", "x.txt") not in matches


def test_match_is_case_insensitive_and_includes_folders(tmp_path: Path) -> None:
    root = make_tree(tmp_path / "Assets", {"Textures": {"wall.png": None}, "models": {"Rock.vmdl": None}})
    base = canonical_path(str(root))

    matches = compute_matches(LocalFileSystem(), [str(root)], "  TEXTURE ")

    assert os.path.join(base, "Textures") in matches
    # Children of a matching folder are not matches themselves.
    assert os.path.join(base, "Textures", "wall.png") not in matches
    assert os.path.join(base, "models", "Rock.vmdl") not in compute_matches(LocalFileSystem(), [str(root)], "texture")
    assert os.path.join(base, "models", "Rock.vmdl") in compute_matches(LocalFileSystem(), [str(root)], "rOcK")


def test_excluded_entries_never_match(tmp_path: Path) -> None:
    root = make_tree(
        tmp_path / "R",
        {"obj": {"target.txt": None}, ".hidden": {"target.txt": None}, "target.vmdl": None, "target.vmdl_c": None},
    )
    base = canonical_path(str(root))

    matches = compute_matches(LocalFileSystem(), [str(root)], "target", ExclusionRules())

    assert matches == {base, os.path.join(base, "target.vmdl")}


def test_depth_bound_stops_the_walk(tmp_path: Path) -> None:
    root = make_tree(tmp_path / "R", {"a": {"b": {"c": {"needle.txt": None}}}})

    assert compute_matches(LocalFileSystem(), [str(root)], "needle", max_depth=3) == set()
    assert compute_matches(LocalFileSystem(), [str(root)], "needle", max_depth=4)


def test_empty_query_and_missing_roots(tmp_path: Path) -> None:
    root = make_tree(tmp_path / "R", {"file.txt": None})

    assert compute_matches(LocalFileSystem(), [str(root)], "   ") == set()
    assert compute_matches(LocalFileSystem(), [str(tmp_path / "missing")], "file") == set()


def test_scan_for_match_is_bounded(tmp_path: Path) -> None:
    root = make_tree(tmp_path / "R", {"one": {"two": {"three.txt": None}}})
    fs = LocalFileSystem()

    assert scan_for_match(fs, str(root), "three")
    assert not scan_for_match(fs, str(root), "three", max_depth=2)
    assert not scan_for_match(fs, str(root), "four")
    assert scan_for_match(fs, str(root), "")
