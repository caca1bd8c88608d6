"""Yarn commands, always routed through Corepack where the version matters."""

from __future__ import annotations

import json
import logging
import os
from typing import Literal

from pydantic import BaseModel, ConfigDict
from pydantic import ValidationError as PydanticValidationError

from .errors import ActionError
from .exec import exec_lines, get_exec_output

logger = logging.getLogger(__name__)


class YarnInstallOutput(BaseModel):
    """One line of ``yarn install --json`` output."""

    type: Literal["info", "warning", "error"]
    displayName: str = ""
    indent: str = ""
    data: str = ""

    model_config = ConfigDict(extra="ignore")


def print_yarn_install_output(output: YarnInstallOutput) -> None:
    if output.type == "info":
        logger.info("%s: %s%s", output.displayName, output.indent, output.data)
    elif output.type == "warning":
        logger.warning("%s (%s)", output.data, output.displayName)
    else:
        logger.error("%s (%s)", output.data, output.displayName)


def _handle_install_line(line: str) -> None:
    try:
        output = YarnInstallOutput.model_validate_json(line)
    except PydanticValidationError:
        logger.info("%s", line)
        return
    print_yarn_install_output(output)


async def get_yarn_version(*, corepack: bool = False) -> str:
    """Return the version reported by ``yarn`` (or ``corepack yarn``)."""

    if corepack:
        result = await get_exec_output("corepack", ["yarn", "--version"])
    else:
        result = await get_exec_output("yarn", ["--version"])
    return result.stdout.strip()


async def set_yarn_version(version: str) -> None:
    await get_exec_output("yarn", ["set", "version", version])


async def get_yarn_config(name: str) -> str:
    """Return the effective value of the Yarn configuration ``name``."""

    result = await get_exec_output("corepack", ["yarn", "config", name, "--json"])
    try:
        return str(json.loads(result.stdout)["effective"])
    except (ValueError, KeyError, TypeError) as exc:
        raise ActionError(f"Unexpected output from `yarn config {name}`: {exc}") from exc


async def yarn_install() -> None:
    """Install dependencies, relaying Yarn's JSON report through the logger."""

    env = dict(os.environ)
    # Keep Yarn from emitting its own group markers.
    env["GITHUB_ACTIONS"] = ""
    env["FORCE_COLOR"] = "true"
    # A missing lockfile must not abort the install.
    env["CI"] = ""
    await exec_lines("corepack", ["yarn", "install", "--json"], _handle_install_line, env=env)


__all__ = [
    "YarnInstallOutput",
    "get_yarn_config",
    "get_yarn_version",
    "print_yarn_install_output",
    "set_yarn_version",
    "yarn_install",
]
