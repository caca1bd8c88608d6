"""Digest helpers used to fingerprint lockfiles for cache versions.

``hash_file`` streams a file through :mod:`hashlib` in fixed-size blocks.
``hash_file_async`` runs exactly the same loop on a worker thread so large
files do not stall the event loop; it can be cancelled cooperatively through a
:class:`threading.Event`, which the worker checks between blocks before it
releases the file handle and hash state.
"""

from __future__ import annotations

import asyncio
import hashlib
import logging
import os
import threading
from concurrent import futures
from typing import Iterable, Optional, Union

from .errors import CacheConfigurationError, HashingCancelled

logger = logging.getLogger(__name__)

_HASH_BLOCK_SIZE = 256 * 1024

PathLike = Union[str, "os.PathLike[str]"]
HashInput = Union[bytes, bytearray, memoryview, str]


def _new_hasher(algorithm: str) -> "hashlib._Hash":
    candidate = (algorithm or "").strip().lower()
    try:
        return hashlib.new(candidate)
    except (TypeError, ValueError):
        raise CacheConfigurationError(f"unsupported hash algorithm '{algorithm}'") from None


def hash_bytes(data: Union[HashInput, Iterable[HashInput]], algorithm: str = "md5") -> str:
    """Return the hex digest of ``data``.

    ``data`` may be a single buffer or string, or an iterable of them; strings
    are encoded as UTF-8.

    Examples:
        >>> hash_bytes(b"abc")
        '900150983cd24fb0d6963f7d28e17f72'
        >>> hash_bytes(["a", b"bc"]) == hash_bytes("abc")
        True
    """

    hasher = _new_hasher(algorithm)
    parts = [data] if isinstance(data, (bytes, bytearray, memoryview, str)) else data
    for part in parts:
        hasher.update(part.encode("utf-8") if isinstance(part, str) else part)
    return hasher.hexdigest()


def _digest_file(
    path: PathLike,
    algorithm: str,
    chunk_size: int,
    cancel_event: Optional[threading.Event],
) -> str:
    hasher = _new_hasher(algorithm)
    with open(path, "rb") as handle:
        while True:
            if cancel_event is not None and cancel_event.is_set():
                raise HashingCancelled(f"hashing of {os.fspath(path)} was cancelled")
            block = handle.read(chunk_size)
            if not block:
                break
            hasher.update(block)
    return hasher.hexdigest()


def hash_file(path: PathLike, algorithm: str = "md5", *, chunk_size: int = _HASH_BLOCK_SIZE) -> str:
    """Return the hex digest of the file at ``path``."""

    return _digest_file(path, algorithm, chunk_size, None)


async def hash_file_async(
    path: PathLike,
    algorithm: str = "md5",
    *,
    cancel_event: Optional[threading.Event] = None,
    executor: Optional[futures.Executor] = None,
    chunk_size: int = _HASH_BLOCK_SIZE,
) -> str:
    """Hash ``path`` on a worker thread without blocking the event loop.

    Args:
        path: File to hash.
        algorithm: Any algorithm :func:`hashlib.new` accepts.
        cancel_event: Optional signal; once set, the worker stops at the next
            block boundary and raises :class:`HashingCancelled`.
        executor: Executor to run the worker on (the loop default when omitted).
        chunk_size: Read block size.

    Raises:
        HashingCancelled: If ``cancel_event`` was set before hashing finished.
        OSError: If the file cannot be opened or read.
    """

    event = cancel_event if cancel_event is not None else threading.Event()
    loop = asyncio.get_running_loop()
    pending = loop.run_in_executor(executor, _digest_file, path, algorithm, chunk_size, event)
    try:
        return await pending
    except asyncio.CancelledError:
        event.set()
        logger.debug("hashing cancelled", extra={"path": os.fspath(path)})
        raise


__all__ = ["hash_bytes", "hash_file", "hash_file_async"]
