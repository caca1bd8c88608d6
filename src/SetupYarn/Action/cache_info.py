"""Derive the cache key and the paths worth caching for a Yarn project."""

from __future__ import annotations

import json
import logging
import os
import platform
from pathlib import Path
from typing import List, Optional, Union

from ..ArtifactCache import CacheKey, hash_file_async
from .errors import ActionError
from .yarn import get_yarn_config, get_yarn_version

logger = logging.getLogger(__name__)

CACHE_KEY_PREFIX = "setup-yarn-action"
LOCK_FILE = "yarn.lock"
PNP_FILES = (".pnp.cjs", ".pnp.loader.mjs")
YARN_CACHE_CONFIGS = (
    ("Yarn cache folder", "cacheFolder"),
    ("Yarn deferred version folder", "deferredVersionFolder"),
    ("Yarn install state path", "installStatePath"),
    ("Yarn patch folder", "patchFolder"),
    ("Yarn PnP unplugged folder", "pnpUnpluggedFolder"),
    ("Yarn virtual folder", "virtualFolder"),
)

PathLike = Union[str, "os.PathLike[str]"]


def compose_cache_version(tool_version: str, lock_digest: Optional[str]) -> str:
    """Join the Yarn version and lockfile digest into a cache version string.

    Examples:
        >>> compose_cache_version("4.1.0", "abc123")
        '4.1.0-abc123'
    """

    if lock_digest:
        return f"{tool_version}-{lock_digest}"
    logger.warning("Lock file could not be found, using empty hash")
    return tool_version


async def get_cache_key(lock_file: PathLike = LOCK_FILE) -> CacheKey:
    """Build the cache key from the OS, the Corepack Yarn version and the lockfile."""

    key = f"{CACHE_KEY_PREFIX}-{platform.system()}"

    logger.info("Getting Yarn version...")
    try:
        tool_version = await get_yarn_version(corepack=True)
    except Exception as exc:
        raise ActionError(f"Failed to get Yarn version: {exc}") from exc

    logger.info("Calculating lock file hash...")
    lock_digest: Optional[str] = None
    lock_path = Path(lock_file)
    if lock_path.exists():
        try:
            lock_digest = await hash_file_async(lock_path, "md5")
        except OSError as exc:
            raise ActionError(f"Failed to calculate lock file hash: {exc}") from exc

    cache_key = CacheKey(key=key, version=compose_cache_version(tool_version, lock_digest))
    logger.info("Using cache key: %s", cache_key)
    return cache_key


async def get_cache_paths() -> List[str]:
    """Return the Plug'n'Play files and Yarn folders that exist and should be cached."""

    candidates: List[str] = list(PNP_FILES)
    for name, config in YARN_CACHE_CONFIGS:
        logger.info("Getting %s...", name)
        try:
            candidates.append(await get_yarn_config(config))
        except Exception as exc:
            raise ActionError(f"Failed to get {name}: {exc}") from exc

    cache_paths = [path for path in candidates if os.path.exists(path)]
    logger.info("Using cache paths: %s", json.dumps(cache_paths, indent=4))
    return cache_paths


__all__ = [
    "CACHE_KEY_PREFIX",
    "compose_cache_version",
    "get_cache_key",
    "get_cache_paths",
]
