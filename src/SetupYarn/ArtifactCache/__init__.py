"""Remote artifact cache: key derivation, chunked transfer, and archive codec."""

from .cache import ArtifactCache, restore_cache, save_cache
from .errors import (
    ArtifactCacheError,
    CacheConfigurationError,
    ContentTypeMismatch,
    FilesystemError,
    HashingCancelled,
    ProtocolError,
    SubprocessFailure,
)
from .hashing import hash_bytes, hash_file, hash_file_async
from .models import CacheEntry, CacheKey
from .settings import CacheServiceSettings, get_settings
from .transport import CacheTransport

__all__ = [
    "ArtifactCache",
    "ArtifactCacheError",
    "CacheConfigurationError",
    "CacheEntry",
    "CacheKey",
    "CacheServiceSettings",
    "CacheTransport",
    "ContentTypeMismatch",
    "FilesystemError",
    "HashingCancelled",
    "ProtocolError",
    "SubprocessFailure",
    "get_settings",
    "hash_bytes",
    "hash_file",
    "hash_file_async",
    "restore_cache",
    "save_cache",
]
