# === NAVMAP v1 ===
# {
#   "module": "SetupYarn.ArtifactCache.transport",
#   "purpose": "HTTPX client for the artifact cache service and archive blob downloads",
#   "sections": [
#     {
#       "id": "create-http-client",
#       "name": "create_http_client",
#       "anchor": "function-create-http-client",
#       "kind": "function"
#     },
#     {
#       "id": "cachetransport",
#       "name": "CacheTransport",
#       "anchor": "class-cachetransport",
#       "kind": "class"
#     }
#   ]
# }
# === /NAVMAP ===

"""HTTPX client for the artifact cache service.

The cache service speaks a small JSON protocol:

- ``GET cache?keys=&version=`` looks an entry up (200 entry, 204 miss).
- ``POST caches`` reserves an entry for upload (201 id, 409 already reserved).
- ``PATCH caches/{id}`` uploads one byte range of the archive (204).
- ``POST caches/{id}`` commits the entry with its final size (204).

Archives are downloaded from the pre-signed ``archiveLocation`` returned by a
lookup: a ``HEAD`` request reveals the size, then ranged ``GET`` requests fetch
the chunks.  Chunk transfers are launched together and awaited together; each
chunk carries its own absolute offset so completion order does not matter.

Nothing here retries.  A failed request surfaces as a single exception and the
caller decides what to do with it.
"""

from __future__ import annotations

import asyncio
import logging
import os
from contextlib import asynccontextmanager
from pathlib import Path
from typing import Any, AsyncIterator, Awaitable, Callable, Dict, List, Optional, Sequence, Union

import httpx

from .chunks import ByteRange, split_byte_ranges
from .errors import CacheConfigurationError, FilesystemError, ProtocolError
from .models import CacheEntry
from .responses import (
    JSON_CONTENT_TYPE,
    OCTET_STREAM_CONTENT_TYPE,
    assert_content_type,
    drain,
    read_error,
    read_json,
)
from .settings import CacheServiceSettings, get_settings

logger = logging.getLogger(__name__)

PathLike = Union[str, "os.PathLike[str]"]

UPLOAD_BLOCK_SIZE = 256 * 1024


def create_http_client(settings: CacheServiceSettings) -> httpx.AsyncClient:
    """Create the async HTTPX client used for cache service and blob requests."""

    timeout = httpx.Timeout(settings.timeout_sec)
    client = httpx.AsyncClient(
        timeout=timeout,
        limits=httpx.Limits(max_connections=settings.max_connections),
        follow_redirects=True,
    )
    logger.debug(
        "HTTPX client created",
        extra={
            "max_connections": settings.max_connections,
            "timeout_sec": settings.timeout_sec,
        },
    )
    return client


async def _iter_range(
    path: PathLike,
    byte_range: ByteRange,
    block_size: Optional[int] = None,
) -> AsyncIterator[bytes]:
    """Yield ``byte_range`` of ``path`` in blocks read on a worker thread."""

    if block_size is None:
        block_size = UPLOAD_BLOCK_SIZE
    fd = await asyncio.to_thread(os.open, os.fspath(path), os.O_RDONLY)
    try:
        offset = byte_range.start
        while offset < byte_range.end:
            size = min(block_size, byte_range.end - offset)
            block = await asyncio.to_thread(os.pread, fd, size, offset)
            if not block:
                raise FilesystemError(
                    f"{path} ended at byte {offset}, expected {byte_range.end} bytes"
                )
            offset += len(block)
            yield block
    finally:
        os.close(fd)


def _write_at(fd: int, data: bytes, offset: int) -> None:
    view = memoryview(data)
    while view:
        written = os.pwrite(fd, view, offset)
        view = view[written:]
        offset += written


class CacheTransport:
    """Issue cache service requests and chunked archive transfers.

    Args:
        settings: Service URL, token and transfer knobs. Loaded from the
            environment when omitted.
        client: Pre-built ``httpx.AsyncClient``. The transport only closes
            clients it created itself.

    Example:
        >>> async with CacheTransport(settings) as transport:  # doctest: +SKIP
        ...     entry = await transport.lookup("setup-yarn-action-Linux", "4.1.0")
    """

    def __init__(
        self,
        settings: Optional[CacheServiceSettings] = None,
        *,
        client: Optional[httpx.AsyncClient] = None,
    ) -> None:
        self.settings = settings if settings is not None else get_settings()
        self._owns_client = client is None
        self._client = client if client is not None else create_http_client(self.settings)

    async def __aenter__(self) -> "CacheTransport":
        return self

    async def __aexit__(self, *exc_info: object) -> None:
        await self.aclose()

    async def aclose(self) -> None:
        if self._owns_client:
            await self._client.aclose()

    # ------------------------------------------------------------------
    # Request plumbing
    # ------------------------------------------------------------------

    def service_headers(self) -> Dict[str, str]:
        """Headers every cache service request carries."""

        token = self.settings.runtime_token
        if not token:
            raise CacheConfigurationError("ACTIONS_RUNTIME_TOKEN is not set")
        return {
            "Accept": f"{JSON_CONTENT_TYPE};api-version={self.settings.api_version}",
            "Authorization": f"Bearer {token}",
        }

    def _service_url(self, resource_path: str) -> str:
        if not self.settings.cache_url:
            raise CacheConfigurationError("ACTIONS_CACHE_URL is not set")
        return self.settings.service_url(resource_path)

    def _download_headers(self) -> Dict[str, str]:
        return self.service_headers() if self.settings.authorize_downloads else {}

    @asynccontextmanager
    async def _stream(
        self,
        method: str,
        url: str,
        *,
        headers: Optional[Dict[str, str]] = None,
        **kwargs: Any,
    ) -> AsyncIterator[httpx.Response]:
        async with self._client.stream(method, url, headers=headers, **kwargs) as response:
            yield response

    async def _run_chunks(
        self,
        operation: str,
        ranges: Sequence[ByteRange],
        transfer: Callable[[ByteRange], Awaitable[None]],
    ) -> None:
        limit = self.settings.max_concurrent_chunks
        semaphore = asyncio.Semaphore(limit) if limit else None

        async def _guarded(byte_range: ByteRange) -> None:
            if semaphore is None:
                await transfer(byte_range)
                return
            async with semaphore:
                await transfer(byte_range)

        tasks = [asyncio.ensure_future(_guarded(byte_range)) for byte_range in ranges]
        results = await asyncio.gather(*tasks, return_exceptions=True)

        failures = [
            (byte_range, result)
            for byte_range, result in zip(ranges, results)
            if isinstance(result, BaseException)
        ]
        for byte_range, error in failures:
            logger.error(
                "%s chunk bytes %d-%d failed: %s",
                operation,
                byte_range.start,
                byte_range.last,
                error,
                extra={"stage": operation, "chunk_start": byte_range.start},
            )
        if failures:
            raise failures[0][1]

    # ------------------------------------------------------------------
    # Cache service operations
    # ------------------------------------------------------------------

    async def lookup(self, key: str, version: str) -> Optional[CacheEntry]:
        """Return the entry stored for ``key``/``version``, or ``None`` on a miss."""

        url = self._service_url("cache")
        async with self._stream(
            "GET",
            url,
            params={"keys": key, "version": version},
            headers=self.service_headers(),
        ) as response:
            if response.status_code == 200:
                return CacheEntry.from_payload(await read_json(response))
            if response.status_code == 204:
                await drain(response)
                return None
            raise await read_error(response)

    async def reserve(self, key: str, version: str, size: int) -> Optional[int]:
        """Reserve an entry of ``size`` bytes; ``None`` when another writer holds it."""

        url = self._service_url("caches")
        async with self._stream(
            "POST",
            url,
            json={"key": key, "version": version, "cacheSize": size},
            headers=self.service_headers(),
        ) as response:
            if response.status_code == 201:
                payload = await read_json(response)
                if not isinstance(payload, dict) or "cacheId" not in payload:
                    raise ProtocolError("cache reservation response is missing 'cacheId'")
                return int(payload["cacheId"])
            if response.status_code == 409:
                await drain(response)
                return None
            raise await read_error(response)

    async def upload(
        self,
        cache_id: int,
        file_path: PathLike,
        file_size: int,
        *,
        max_chunk_size: Optional[int] = None,
    ) -> None:
        """Upload ``file_path`` to a reserved entry, one PATCH per chunk."""

        chunk_size = self.settings.max_chunk_size if max_chunk_size is None else max_chunk_size
        url = self._service_url(f"caches/{cache_id}")
        headers = self.service_headers()
        ranges = split_byte_ranges(file_size, chunk_size)

        async def _upload_chunk(byte_range: ByteRange) -> None:
            async with self._stream(
                "PATCH",
                url,
                content=_iter_range(file_path, byte_range),
                headers={
                    **headers,
                    "Content-Type": OCTET_STREAM_CONTENT_TYPE,
                    "Content-Length": str(byte_range.length),
                    "Content-Range": byte_range.content_range(),
                },
            ) as response:
                if response.status_code != 204:
                    raise await read_error(response)
                await drain(response)

        logger.debug(
            "uploading cache archive",
            extra={"cache_id": cache_id, "size": file_size, "chunks": len(ranges)},
        )
        await self._run_chunks("upload", ranges, _upload_chunk)

    async def commit(self, cache_id: int, size: int) -> None:
        """Finalise a reserved entry whose archive is ``size`` bytes long."""

        url = self._service_url(f"caches/{cache_id}")
        async with self._stream(
            "POST", url, json={"size": size}, headers=self.service_headers()
        ) as response:
            if response.status_code != 204:
                raise await read_error(response)
            await drain(response)

    # ------------------------------------------------------------------
    # Archive downloads
    # ------------------------------------------------------------------

    async def get_download_size(self, url: str) -> int:
        """Probe ``url`` with ``HEAD`` and return its ``Content-Length``."""

        async with self._stream("HEAD", url, headers=self._download_headers()) as response:
            if response.status_code != 200:
                raise await read_error(response)
            await drain(response)
            length = response.headers.get("content-length")
        try:
            return int(length)  # type: ignore[arg-type]
        except (TypeError, ValueError):
            raise ProtocolError(
                f"archive size probe returned an invalid Content-Length: {length!r}",
                status_code=200,
            ) from None

    async def download(
        self,
        url: str,
        save_path: PathLike,
        *,
        max_chunk_size: Optional[int] = None,
    ) -> None:
        """Download ``url`` into ``save_path`` with concurrent ranged requests."""

        chunk_size = self.settings.max_chunk_size if max_chunk_size is None else max_chunk_size
        headers = self._download_headers()
        fd = os.open(Path(save_path), os.O_WRONLY | os.O_CREAT | os.O_TRUNC, 0o644)
        try:
            file_size = await self.get_download_size(url)
            ranges: List[ByteRange] = split_byte_ranges(file_size, chunk_size)

            async def _download_chunk(byte_range: ByteRange) -> None:
                async with self._stream(
                    "GET", url, headers={**headers, "Range": byte_range.range_header()}
                ) as response:
                    if response.status_code != 206:
                        raise await read_error(response)
                    assert_content_type(response, OCTET_STREAM_CONTENT_TYPE)
                    data = await response.aread()
                if len(data) != byte_range.length:
                    raise ProtocolError(
                        f"expected {byte_range.length} bytes for range "
                        f"{byte_range.range_header()}, received {len(data)}",
                        status_code=206,
                    )
                await asyncio.to_thread(_write_at, fd, data, byte_range.start)

            logger.debug(
                "downloading cache archive",
                extra={"size": file_size, "chunks": len(ranges)},
            )
            await self._run_chunks("download", ranges, _download_chunk)
        finally:
            os.close(fd)


__all__ = ["CacheTransport", "create_http_client"]
