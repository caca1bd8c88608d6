"""Enable Yarn through Corepack."""

from __future__ import annotations

from pathlib import Path

from .errors import ActionError
from .exec import get_exec_output
from .logging_utils import add_path
from .yarn import get_yarn_version


async def corepack_enable_yarn() -> Path:
    """Install Corepack's ``yarn`` shim into ``~/.corepack`` and put it on ``PATH``."""

    corepack_dir = Path.home() / ".corepack"
    corepack_dir.mkdir(parents=True, exist_ok=True)
    await get_exec_output("corepack", ["enable", "--install-directory", str(corepack_dir), "yarn"])
    add_path(corepack_dir)
    return corepack_dir


async def corepack_assert_yarn_version() -> None:
    """Check that ``yarn`` resolves to the version Corepack selected.

    Raises:
        ActionError: If ``yarn --version`` and ``corepack yarn --version`` differ.
    """

    version = await get_yarn_version()
    corepack_version = await get_yarn_version(corepack=True)
    if version != corepack_version:
        raise ActionError(
            "The `yarn` command is using a different version of Yarn, "
            f"expected `{corepack_version}` but got `{version}`"
        )


__all__ = ["corepack_assert_yarn_version", "corepack_enable_yarn"]
