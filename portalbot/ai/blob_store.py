# portalbot/ai/blob_store.py
"""
Where the serialized model bundle lives.

LocalBlobStore keeps artifacts as files under a directory (the server
publishes them through /model/{artifact}); HttpBlobStore fetches them
from such a server.
"""
from __future__ import annotations

import os
import tempfile
from pathlib import Path
from typing import Dict, Mapping, Protocol

import httpx

from .errors import BundleMissingError, TransportError

OCTET_STREAM = "application/octet-stream"
JSON_CONTENT = "application/json"


class BlobStore(Protocol):
    def get(self, key: str) -> bytes: ...

    def put_many(self, blobs: Mapping[str, bytes]) -> None: ...

    def exists(self, key: str) -> bool: ...

    def close(self) -> None: ...


class LocalBlobStore:
    def __init__(self, root: str | Path):
        self.root = Path(root)

    def close(self) -> None:
        pass

    def path_for(self, key: str) -> Path:
        return self.root / key

    def exists(self, key: str) -> bool:
        return self.path_for(key).is_file()

    def get(self, key: str) -> bytes:
        path = self.path_for(key)
        if not path.is_file():
            raise BundleMissingError(key)
        try:
            return path.read_bytes()
        except OSError as e:
            raise TransportError(f"Failed to read {key}: {e}") from e

    def put_many(self, blobs: Mapping[str, bytes]) -> None:
        """Stage every blob to a temp file first, then publish them all.

        A failure while staging leaves the previously published set untouched.
        """
        staged: Dict[str, str] = {}
        try:
            for key, data in blobs.items():
                target = self.path_for(key)
                target.parent.mkdir(parents=True, exist_ok=True)
                fd, tmp = tempfile.mkstemp(dir=target.parent, prefix=f".{target.name}.", suffix=".tmp")
                with os.fdopen(fd, "wb") as fh:
                    fh.write(data)
                staged[key] = tmp
            for key, tmp in staged.items():
                os.replace(tmp, self.path_for(key))
        except OSError as e:
            for tmp in staged.values():
                if os.path.exists(tmp):
                    os.unlink(tmp)
            raise TransportError(f"Failed to store model bundle: {e}") from e


class HttpBlobStore:
    """Read-only store backed by a server exposing GET {base_url}/{key}."""

    def __init__(self, base_url: str, timeout_seconds: float = 30.0, client: httpx.Client | None = None):
        self.base_url = base_url.rstrip("/")
        self._http = client or httpx.Client(base_url=self.base_url, timeout=httpx.Timeout(timeout_seconds))

    def _fetch(self, key: str) -> httpx.Response:
        headers = {"Accept": OCTET_STREAM, "Cache-Control": "no-cache"}
        try:
            resp = self._http.get(f"/{key}", headers=headers)
        except httpx.HTTPError as e:
            raise TransportError(f"Failed to fetch {key}: {e}") from e
        return resp

    def exists(self, key: str) -> bool:
        return self._fetch(key).status_code == 200

    def get(self, key: str) -> bytes:
        resp = self._fetch(key)
        if resp.status_code == 404:
            raise BundleMissingError(key)
        try:
            resp.raise_for_status()
        except httpx.HTTPStatusError as e:
            raise TransportError(f"Failed to fetch {key}: {resp.status_code} {resp.reason_phrase}") from e
        return resp.content

    def put_many(self, blobs: Mapping[str, bytes]) -> None:
        raise TransportError("HttpBlobStore is read-only; train against a LocalBlobStore")

    def close(self) -> None:
        self._http.close()


def make_blob_store(settings) -> BlobStore:
    if settings.MODEL_STORE_URL:
        return HttpBlobStore(settings.MODEL_STORE_URL, settings.MODEL_FETCH_TIMEOUT_SECONDS)
    return LocalBlobStore(settings.MODEL_STORE_DIR)
