"""
Blob storage backends for CV uploads.

Contract: upload(data, path, on_progress) -> public URL.
  - on_progress receives whole percentages (0..100) as bytes move.
  - Transport failures raise StorageError; nothing else is raised on purpose.

Backends:
  - LocalBlobStorage: copies into a directory in chunks; URL = base URL + path
  - HttpBlobStorage:  streamed PUT with httpx; URL returned by the server
                      (JSON "url" field) or endpoint + path
"""
from __future__ import annotations

import asyncio
import logging
from pathlib import Path
from typing import AsyncIterator, Callable, Optional

import httpx

from cvintake.config import get_settings
from cvintake.errors import StorageError

logger = logging.getLogger(__name__)

ProgressCallback = Callable[[int], None]


def _percent(sent: int, total: int) -> int:
    if total <= 0:
        return 100
    return round(sent / total * 100)


class LocalBlobStorage:
    def __init__(
        self,
        root: Optional[Path] = None,
        base_url: Optional[str] = None,
        *,
        chunk_size: Optional[int] = None,
    ):
        settings = get_settings()
        self.root = Path(root or settings.blob_dir)
        self.base_url = (base_url or settings.blob_base_url).rstrip("/")
        self.chunk_size = chunk_size or settings.upload_chunk_size

    async def upload(self, data: bytes, path: str, on_progress: ProgressCallback) -> str:
        target = self.root / path
        total = len(data)
        try:
            target.parent.mkdir(parents=True, exist_ok=True)
            with open(target, "wb") as f:
                sent = 0
                while sent < total:
                    chunk = data[sent:sent + self.chunk_size]
                    f.write(chunk)
                    sent += len(chunk)
                    on_progress(_percent(sent, total))
                    # let other transfers interleave
                    await asyncio.sleep(0)
        except OSError as e:
            raise StorageError(f"Could not write {path}: {e}") from e

        if total == 0:
            on_progress(100)
        logger.debug("Stored %s (%d bytes)", target, total)
        return f"{self.base_url}/{path}"


class HttpBlobStorage:
    def __init__(
        self,
        endpoint: Optional[str] = None,
        token: Optional[str] = None,
        *,
        chunk_size: Optional[int] = None,
        timeout: float = 60.0,
        transport: Optional[httpx.AsyncBaseTransport] = None,
    ):
        settings = get_settings()
        endpoint = endpoint or settings.storage_endpoint
        if not endpoint:
            raise ValueError("HttpBlobStorage needs an endpoint (set STORAGE_ENDPOINT).")
        self.endpoint = endpoint.rstrip("/")
        self.token = token if token is not None else settings.storage_token
        self.chunk_size = chunk_size or settings.upload_chunk_size
        self.timeout = timeout
        self._transport = transport

    async def upload(self, data: bytes, path: str, on_progress: ProgressCallback) -> str:
        url = f"{self.endpoint}/{path}"
        total = len(data)

        async def body() -> AsyncIterator[bytes]:
            sent = 0
            while sent < total:
                chunk = data[sent:sent + self.chunk_size]
                sent += len(chunk)
                yield chunk
                on_progress(_percent(sent, total))

        headers = {"Content-Length": str(total), "Content-Type": "application/octet-stream"}
        if self.token:
            headers["Authorization"] = f"Bearer {self.token}"

        async with httpx.AsyncClient(timeout=self.timeout, transport=self._transport) as client:
            try:
                resp = await client.put(url, content=body(), headers=headers)
                resp.raise_for_status()
            except httpx.HTTPStatusError as e:
                raise StorageError(f"Storage returned HTTP {e.response.status_code} for {path}") from e
            except httpx.HTTPError as e:
                raise StorageError(f"Upload of {path} failed: {e}") from e

        try:
            payload = resp.json()
        except ValueError:
            payload = {}
        if isinstance(payload, dict) and payload.get("url"):
            return payload["url"]
        return url


def default_storage() -> LocalBlobStorage | HttpBlobStorage:
    """Pick the backend from settings: HTTP when an endpoint is configured."""
    settings = get_settings()
    if settings.storage_endpoint:
        return HttpBlobStorage()
    return LocalBlobStorage()
