from __future__ import annotations

import json
import os
import urllib.error
import urllib.parse
import urllib.request
from dataclasses import dataclass
from typing import Any, Protocol


@dataclass(slots=True)
class PackageRecord:
    ident: str
    title: str
    type_tag: str = ""
    summary: str = ""
    thumb_url: str = ""


class PackageRepositoryError(RuntimeError):
    def __init__(self, message: str, *, kind: str = "unknown", status_code: int | None = None) -> None:
        super().__init__(message)
        self.kind = kind
        self.status_code = status_code


class PackageRepository(Protocol):
    def find(self, query: str, page_size: int, offset: int) -> list[PackageRecord]: ...

    def get_manifest_files(self, ident: str) -> list[str]: ...

    def resolve_local_path(self, relative_path: str) -> str | None: ...


def category_query(type_tag: str, search: str = "") -> str:
    text = str(search or "").strip()
    if text:
        return f"{text} type:{type_tag}"
    return f"type:{type_tag}"


def resolve_in_cache(cache_dir: str, relative_path: str) -> str | None:
    rel = str(relative_path or "").replace("\\", "/").strip().lstrip("/")
    if not rel or not cache_dir:
        return None
    root = os.path.abspath(cache_dir)
    full = os.path.abspath(os.path.join(root, *rel.split("/")))
    if full != root and not full.startswith(root + os.sep):
        return None
    return full


def _package_from_payload(raw: Any) -> PackageRecord | None:
    if not isinstance(raw, dict):
        return None
    ident = str(raw.get("ident") or raw.get("full_ident") or "").strip()
    if not ident:
        return None
    return PackageRecord(
        ident=ident,
        title=str(raw.get("title") or ident).strip(),
        type_tag=str(raw.get("type") or "").strip(),
        summary=str(raw.get("summary") or "").strip(),
        thumb_url=str(raw.get("thumb") or "").strip(),
    )


class HttpPackageRepository:
    """JSON-over-HTTP package repository with a local download cache."""

    def __init__(
        self,
        api_base_url: str,
        *,
        cache_dir: str = "",
        timeout_s: float = 15.0,
    ) -> None:
        base = str(api_base_url or "").strip().rstrip("/")
        if not base:
            raise PackageRepositoryError("No package repository URL is configured.", kind="validation")
        self._api_base_url = base
        self._cache_dir = str(cache_dir or "")
        self._timeout_s = max(0.5, float(timeout_s))

    def find(self, query: str, page_size: int, offset: int) -> list[PackageRecord]:
        params = urllib.parse.urlencode(
            {
                "q": str(query or ""),
                "take": max(1, int(page_size)),
                "skip": max(0, int(offset)),
            }
        )
        payload = self._request_json(f"/packages/find?{params}")
        if isinstance(payload, dict):
            payload = payload.get("packages")
        if not isinstance(payload, list):
            raise PackageRepositoryError("Unexpected package search payload.", kind="invalid_response")
        packages: list[PackageRecord] = []
        for raw in payload:
            record = _package_from_payload(raw)
            if record is not None:
                packages.append(record)
        return packages

    def get_manifest_files(self, ident: str) -> list[str]:
        quoted = urllib.parse.quote(str(ident or "").strip(), safe="")
        if not quoted:
            return []
        payload = self._request_json(f"/packages/{quoted}/files")
        if isinstance(payload, dict):
            payload = payload.get("files")
        if not isinstance(payload, list):
            raise PackageRepositoryError("Unexpected manifest payload.", kind="invalid_response")
        files: list[str] = []
        for item in payload:
            if isinstance(item, dict):
                item = item.get("path")
            text = str(item or "").strip()
            if text:
                files.append(text)
        return files

    def resolve_local_path(self, relative_path: str) -> str | None:
        return resolve_in_cache(self._cache_dir, relative_path)

    def _request_json(self, path: str) -> Any:
        request = urllib.request.Request(
            url=f"{self._api_base_url}{path}",
            headers={
                "Accept": "application/json",
                "User-Agent": "AssetBrowser",
            },
            method="GET",
        )
        try:
            with urllib.request.urlopen(request, timeout=self._timeout_s) as response:
                body = response.read()
        except urllib.error.HTTPError as exc:
            status = int(getattr(exc, "code", 0) or 0)
            if status == 404:
                raise PackageRepositoryError("Package endpoint not found.", kind="not_found", status_code=status) from None
            raise PackageRepositoryError(
                f"Package request failed with HTTP {status}.",
                kind="http",
                status_code=status,
            ) from None
        except urllib.error.URLError as exc:
            raise PackageRepositoryError("Network error while contacting the package repository.", kind="network") from exc
        except TimeoutError as exc:
            raise PackageRepositoryError("Package request timed out.", kind="network") from exc

        try:
            return json.loads(body.decode("utf-8"))
        except (UnicodeDecodeError, ValueError) as exc:
            raise PackageRepositoryError("Failed to decode package response.", kind="invalid_response") from exc
