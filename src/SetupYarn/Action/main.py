"""End-to-end action run: enable Yarn, restore cache, install, save cache."""

from __future__ import annotations

import logging
from typing import Awaitable, Optional, TypeVar

from ..ArtifactCache import ArtifactCache, CacheKey
from .cache_info import get_cache_key, get_cache_paths
from .corepack import corepack_assert_yarn_version, corepack_enable_yarn
from .inputs import ActionInputs, get_inputs
from .logging_utils import log_group
from .yarn import set_yarn_version, yarn_install

logger = logging.getLogger(__name__)

T = TypeVar("T")


class StepFailed(Exception):
    """Internal signal that a step already reported its failure."""


async def _step(description: str, awaitable: Awaitable[T]) -> T:
    try:
        return await awaitable
    except Exception as exc:
        logger.error("Failed to %s: %s", description, exc)
        raise StepFailed(description) from exc


async def _enable_yarn(inputs: ActionInputs) -> None:
    logger.info("Enabling Yarn...")
    await _step("enable Yarn", _enable_and_assert())

    if inputs.version:
        logger.info("Setting Yarn version...")
        await _step("set Yarn version", _set_and_assert(inputs.version))


async def _enable_and_assert() -> None:
    await corepack_enable_yarn()
    await corepack_assert_yarn_version()


async def _set_and_assert(version: str) -> None:
    await set_yarn_version(version)
    await corepack_assert_yarn_version()


async def _run(inputs: ActionInputs, artifact_cache: Optional[ArtifactCache]) -> None:
    await _enable_yarn(inputs)

    cache_key: Optional[CacheKey] = None
    if inputs.cache:
        with log_group("Getting cache key"):
            cache_key = await _step("get cache key", get_cache_key())

        logger.info("Restoring cache...")
        restored = await _step("restore cache", artifact_cache.restore(cache_key))
        if restored:
            logger.info("Cache restored successfully")
            return
        logger.warning("Cache not found")

    with log_group("Installing dependencies"):
        await _step("install dependencies", yarn_install())

    if cache_key is not None:
        with log_group("Getting cache paths"):
            cache_paths = await _step("get cache paths", get_cache_paths())

        logger.info("Saving cache...")
        await _step("save cache", artifact_cache.save(cache_key, cache_paths))


async def run(
    inputs: Optional[ActionInputs] = None,
    *,
    artifact_cache: Optional[ArtifactCache] = None,
) -> int:
    """Run the action and return the process exit code.

    Args:
        inputs: Action inputs; read from ``INPUT_*`` variables when omitted.
        artifact_cache: Cache facade; built from the runner environment when
            caching is requested and none is supplied.
    """

    logger.info("Getting action inputs...")
    if inputs is None:
        try:
            inputs = get_inputs()
        except Exception as exc:
            logger.error("Failed to get action inputs: %s", exc)
            return 1

    owns_cache = artifact_cache is None and inputs.cache
    if owns_cache:
        try:
            artifact_cache = ArtifactCache()
        except Exception as exc:
            logger.error("Failed to configure cache: %s", exc)
            return 1
    try:
        await _run(inputs, artifact_cache)
    except StepFailed:
        return 1
    finally:
        if owns_cache:
            await artifact_cache.aclose()
    return 0


__all__ = ["run"]
