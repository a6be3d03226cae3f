from __future__ import annotations

import os
from dataclasses import dataclass
from typing import Protocol


@dataclass(slots=True)
class AssetRecord:
    path: str
    type_name: str
    friendly_name: str


class AssetResolver(Protocol):
    def find_asset_by_path(self, path: str) -> AssetRecord | None: ...


ASSET_TYPES: dict[str, tuple[str, str]] = {
    ".vmdl": ("model", "Model"),
    ".vmat": ("material", "Material"),
    ".vsnd": ("sound", "Sound"),
    ".sound": ("soundevent", "Sound Event"),
    ".vmap": ("map", "Map"),
    ".png": ("texture", "Texture"),
    ".jpg": ("texture", "Texture"),
    ".jpeg": ("texture", "Texture"),
    ".tga": ("texture", "Texture"),
    ".prefab": ("prefab", "Prefab"),
    ".scene": ("scene", "Scene"),
    ".shader": ("shader", "Shader"),
}


class ExtensionAssetResolver:
    """Resolves asset records from file extensions, ignoring the compiled suffix."""

    def __init__(self, compiled_suffix: str = "_c", types: dict[str, tuple[str, str]] | None = None) -> None:
        self._compiled_suffix = compiled_suffix.lower()
        self._types = dict(types if types is not None else ASSET_TYPES)

    def find_asset_by_path(self, path: str) -> AssetRecord | None:
        source = path
        if self._compiled_suffix and source.lower().endswith(self._compiled_suffix):
            source = source[: -len(self._compiled_suffix)]
        ext = os.path.splitext(source)[1].lower()
        found = self._types.get(ext)
        if found is None:
            return None
        type_name, friendly_name = found
        return AssetRecord(path=source, type_name=type_name, friendly_name=friendly_name)
