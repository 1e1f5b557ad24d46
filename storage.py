"""
Storage collaborators: list objects under a batch prefix, fetch bytes,
upload bytes.

LocalStorage keeps a batch on disk; SupabaseStorage talks to the Supabase
Storage REST API with requests (imported lazily).
"""

from __future__ import annotations

import logging
import os
import random
import time
from dataclasses import dataclass
from pathlib import Path
from typing import List, Optional, Protocol
from urllib.parse import quote

import config
from errors import AssetFetchFailure
from matching import PhotoAsset

logger = logging.getLogger(__name__)

_RETRY_STATUS = (429, 500, 502, 503, 504)


@dataclass(frozen=True)
class StoredObject:
    name: str
    path: str


class Storage(Protocol):
    def list(self, prefix: str, limit: int = config.STORAGE_LIST_LIMIT) -> List[StoredObject]: ...

    def fetch(self, path: str) -> bytes: ...

    def upload(self, path: str, data: bytes, content_type: str = "application/octet-stream") -> str: ...


def _join(prefix: str, name: str) -> str:
    prefix = prefix.strip("/")
    return f"{prefix}/{name}" if prefix else name


class LocalStorage:
    """Filesystem-backed storage rooted at one directory."""

    def __init__(self, root):
        self.root = Path(root).resolve()

    def _resolve(self, path: str) -> Path:
        p = (self.root / path.lstrip("/")).resolve()
        if p != self.root and self.root not in p.parents:
            raise AssetFetchFailure(f"Path escapes storage root: {path!r}")
        return p

    def list(self, prefix: str, limit: int = config.STORAGE_LIST_LIMIT) -> List[StoredObject]:
        d = self._resolve(prefix)
        if not d.exists():
            return []
        try:
            entries = sorted(e for e in d.iterdir() if e.is_file() and not e.name.startswith("."))
        except OSError as e:
            raise AssetFetchFailure(f"Could not list {prefix!r}: {e}") from e
        return [StoredObject(name=e.name, path=_join(prefix, e.name)) for e in entries[:limit]]

    def fetch(self, path: str) -> bytes:
        try:
            return self._resolve(path).read_bytes()
        except OSError as e:
            raise AssetFetchFailure(f"Could not read {path!r}: {e}") from e

    def upload(self, path: str, data: bytes, content_type: str = "application/octet-stream") -> str:
        p = self._resolve(path)
        p.parent.mkdir(parents=True, exist_ok=True)
        p.write_bytes(data)
        return path


class SupabaseStorage:
    """
    Supabase Storage over REST:
      list:   POST {url}/storage/v1/object/list/{bucket}
      fetch:  GET  {url}/storage/v1/object/{bucket}/{path}
      upload: POST {url}/storage/v1/object/{bucket}/{path}  (x-upsert)
    """

    def __init__(
        self,
        url: str,
        key: str,
        bucket: str = "orders",
        *,
        timeout_s: int = 30,
        max_attempts: int = 3,
    ):
        url = (url or "").strip().rstrip("/")
        key = (key or "").strip()
        if not url or not key:
            raise ValueError("Supabase storage requires a project URL and a service key.")
        self.url = url
        self.key = key
        self.bucket = (bucket or "orders").strip()
        self.timeout_s = timeout_s
        self.max_attempts = max_attempts

    def _headers(self, **extra) -> dict:
        return {
            "Authorization": f"Bearer {self.key}",
            "apikey": self.key,
            "User-Agent": "badgeflow-print/1.0",
            **extra,
        }

    def _object_url(self, path: str) -> str:
        return f"{self.url}/storage/v1/object/{quote(self.bucket, safe='')}/{quote(path.lstrip('/'), safe='/')}"

    def _request(self, method: str, endpoint: str, **kwargs):
        import requests

        last_exc: Optional[Exception] = None
        last_resp = None
        for attempt in range(max(1, int(self.max_attempts))):
            try:
                resp = requests.request(method, endpoint, timeout=(10, max(10, int(self.timeout_s))), **kwargs)
                last_resp = resp
                if resp.status_code in _RETRY_STATUS:
                    logger.info("storage %s %s -> %s, retrying", method, endpoint, resp.status_code)
                    time.sleep(min(6.0, 0.6 * (2**attempt) + random.random() * 0.25))
                    continue
                return resp
            except requests.RequestException as e:
                last_exc = e
                logger.info("storage %s %s failed (%s), retrying", method, endpoint, e)
                time.sleep(min(6.0, 0.6 * (2**attempt) + random.random() * 0.25))
        if last_resp is not None:
            return last_resp
        raise AssetFetchFailure(f"Storage request failed after retries: {last_exc}") from last_exc

    @staticmethod
    def _describe(resp) -> str:
        snippet = (resp.text or "")[:300]
        return f"status {resp.status_code}, body: {snippet}"

    def list(self, prefix: str, limit: int = config.STORAGE_LIST_LIMIT) -> List[StoredObject]:
        endpoint = f"{self.url}/storage/v1/object/list/{quote(self.bucket, safe='')}"
        body = {
            "prefix": prefix.strip("/"),
            "limit": int(limit),
            "offset": 0,
            "sortBy": {"column": "name", "order": "asc"},
        }
        resp = self._request("POST", endpoint, headers=self._headers(**{"Content-Type": "application/json"}), json=body)
        if resp.status_code != 200:
            raise AssetFetchFailure(f"Could not list {prefix!r} ({self._describe(resp)})")
        try:
            data = resp.json()
        except ValueError as e:
            raise AssetFetchFailure(f"Storage list response was not valid JSON ({self._describe(resp)})") from e
        if not isinstance(data, list):
            raise AssetFetchFailure(f"Unexpected storage list response type: {type(data).__name__}")
        out = []
        for item in data:
            name = str((item or {}).get("name") or "")
            # folders come back with id == None; ".emptyFolderPlaceholder" marks empty dirs
            if not name or name.startswith(".") or (item.get("id") is None and "id" in item):
                continue
            out.append(StoredObject(name=name, path=_join(prefix, name)))
        return out

    def fetch(self, path: str) -> bytes:
        resp = self._request("GET", self._object_url(path), headers=self._headers())
        if resp.status_code != 200:
            raise AssetFetchFailure(f"Could not download {path!r} ({self._describe(resp)})")
        return resp.content

    def upload(self, path: str, data: bytes, content_type: str = "application/octet-stream") -> str:
        resp = self._request(
            "POST",
            self._object_url(path),
            headers=self._headers(**{"Content-Type": content_type or "application/octet-stream", "x-upsert": "true"}),
            data=data,
        )
        if resp.status_code not in (200, 201):
            raise RuntimeError(f"Upload of {path!r} failed ({self._describe(resp)})")
        return path


def storage_from_env(environ=None) -> SupabaseStorage:
    env = os.environ if environ is None else environ
    return SupabaseStorage(
        url=env.get("BADGEFLOW_SUPABASE_URL", ""),
        key=env.get("BADGEFLOW_SUPABASE_KEY", ""),
        bucket=env.get("BADGEFLOW_BUCKET", "orders"),
    )


def storage_env_problem(environ=None) -> Optional[str]:
    """
    None when remote storage is either fully configured or not configured at
    all (local storage is used); otherwise a message naming what is missing.
    """
    env = os.environ if environ is None else environ
    url = (env.get("BADGEFLOW_SUPABASE_URL") or "").strip()
    key = (env.get("BADGEFLOW_SUPABASE_KEY") or "").strip()
    if not url and not key:
        return None
    missing = [name for name, value in (("BADGEFLOW_SUPABASE_URL", url), ("BADGEFLOW_SUPABASE_KEY", key)) if not value]
    if missing:
        return f"Remote storage is partly configured; set {', '.join(missing)} or unset the other variable."
    if not url.startswith(("https://", "http://")):
        return f"BADGEFLOW_SUPABASE_URL must be an http(s) URL, got {url!r}."
    return None


def list_photo_assets(storage: Storage, prefix: str, limit: int = config.STORAGE_LIST_LIMIT) -> List[PhotoAsset]:
    """Enumerate the current photo files under prefix as PhotoAssets (listing order)."""
    objects = storage.list(prefix, limit=limit)
    return [PhotoAsset(original_filename=o.name, storage_path=o.path, lookup_key=o.name.lower()) for o in objects]
