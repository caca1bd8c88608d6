# === NAVMAP v1 ===
# {
#   "module": "SetupYarn.ArtifactCache.cache",
#   "purpose": "Restore and save cache entries through temporary archives",
#   "sections": [
#     {
#       "id": "temporary-archive-path",
#       "name": "temporary_archive_path",
#       "anchor": "function-temporary-archive-path",
#       "kind": "function"
#     },
#     {
#       "id": "restore-cache",
#       "name": "restore_cache",
#       "anchor": "function-restore-cache",
#       "kind": "function"
#     },
#     {
#       "id": "save-cache",
#       "name": "save_cache",
#       "anchor": "function-save-cache",
#       "kind": "function"
#     },
#     {
#       "id": "artifactcache",
#       "name": "ArtifactCache",
#       "anchor": "class-artifactcache",
#       "kind": "class"
#     }
#   ]
# }
# === /NAVMAP ===

"""Restore and save cache entries end to end.

``restore_cache`` and ``save_cache`` are the only operations the action layer
needs.  Each call works inside its own fresh temporary directory, which is
removed before the call returns whether it succeeded or not, so a failed call
can simply be retried.
"""

from __future__ import annotations

import logging
import os
import shutil
import tempfile
from contextlib import contextmanager
from pathlib import Path
from typing import Iterator, Optional, Sequence, Union

from .archive import create_archive, extract_archive
from .errors import FilesystemError
from .models import CacheKey
from .settings import ARCHIVE_NAME, CacheServiceSettings, get_settings
from .transport import CacheTransport

logger = logging.getLogger(__name__)

PathLike = Union[str, "os.PathLike[str]"]


def _remove_temp_dir(path: Path) -> None:
    try:
        shutil.rmtree(path)
    except OSError as exc:
        logger.warning(
            "Failed to remove temporary directory %s: %s",
            path,
            exc,
            extra={"stage": "cleanup"},
        )


@contextmanager
def temporary_archive_path() -> Iterator[Path]:
    """Yield an archive path inside a fresh temporary directory that is always removed."""

    try:
        temp_dir = Path(tempfile.mkdtemp(prefix="temp-"))
    except OSError as exc:
        raise FilesystemError(f"Failed to create temporary directory: {exc}") from exc
    try:
        yield temp_dir / ARCHIVE_NAME
    finally:
        _remove_temp_dir(temp_dir)


async def restore_cache(
    transport: CacheTransport,
    key: str,
    version: str,
    *,
    cwd: Optional[PathLike] = None,
) -> bool:
    """Download and extract the entry for ``key``/``version``.

    Returns:
        ``True`` when an entry was found and extracted, ``False`` on a cache miss.
    """

    entry = await transport.lookup(key, version)
    if entry is None:
        logger.debug("cache entry not found", extra={"key": key, "version": version})
        return False

    with temporary_archive_path() as archive_path:
        await transport.download(entry.archive_location, archive_path)
        await extract_archive(archive_path, cwd=cwd, settings=transport.settings)
    return True


async def save_cache(
    transport: CacheTransport,
    key: str,
    version: str,
    file_paths: Sequence[PathLike],
    *,
    cwd: Optional[PathLike] = None,
) -> bool:
    """Archive ``file_paths`` and store them under ``key``/``version``.

    Returns:
        ``True`` once the entry is committed, ``False`` when another writer
        already reserved it.
    """

    with temporary_archive_path() as archive_path:
        await create_archive(archive_path, file_paths, cwd=cwd, settings=transport.settings)
        try:
            size = archive_path.stat().st_size
        except OSError as exc:
            raise FilesystemError(f"Failed to stat archive {archive_path}: {exc}") from exc

        cache_id = await transport.reserve(key, version, size)
        if cache_id is None:
            logger.debug("cache entry already reserved", extra={"key": key, "version": version})
            return False

        await transport.upload(cache_id, archive_path, size)
        await transport.commit(cache_id, size)
        logger.debug("cache entry committed", extra={"cache_id": cache_id, "size": size})
    return True


class ArtifactCache:
    """Restore/save facade that owns a :class:`CacheTransport` built from settings."""

    def __init__(
        self,
        settings: Optional[CacheServiceSettings] = None,
        *,
        transport: Optional[CacheTransport] = None,
    ) -> None:
        self.settings = settings if settings is not None else get_settings()
        self.transport = transport if transport is not None else CacheTransport(self.settings)

    async def __aenter__(self) -> "ArtifactCache":
        return self

    async def __aexit__(self, *exc_info: object) -> None:
        await self.aclose()

    async def aclose(self) -> None:
        await self.transport.aclose()

    async def restore(self, cache_key: CacheKey, *, cwd: Optional[PathLike] = None) -> bool:
        return await restore_cache(self.transport, cache_key.key, cache_key.version, cwd=cwd)

    async def save(
        self,
        cache_key: CacheKey,
        file_paths: Sequence[PathLike],
        *,
        cwd: Optional[PathLike] = None,
    ) -> bool:
        return await save_cache(
            self.transport, cache_key.key, cache_key.version, file_paths, cwd=cwd
        )


__all__ = ["ArtifactCache", "restore_cache", "save_cache", "temporary_archive_path"]
