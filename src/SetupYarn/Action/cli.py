"""Typer CLI for the setup-yarn action.

Example:
    $ setup-yarn run
    $ setup-yarn cache-key --lock-file yarn.lock
"""

from __future__ import annotations

import asyncio
from pathlib import Path

import typer

from .. import __version__
from .cache_info import LOCK_FILE, get_cache_key
from .logging_utils import setup_logging
from .main import run

app = typer.Typer(
    name="setup-yarn",
    help="Enable Yarn with Corepack and cache its install state in CI",
    no_args_is_help=True,
)

_LOG_LEVEL_OPTION = typer.Option("INFO", "--log-level", "-l", help="Logging level")


def _print_version(value: bool) -> None:
    if value:
        typer.echo(f"setup-yarn {__version__}")
        raise typer.Exit(0)


@app.callback()
def main(
    version: bool = typer.Option(
        False,
        "--version",
        "-V",
        help="Show version and exit",
        is_eager=True,
        callback=_print_version,
    ),
) -> None:
    """Set up Yarn for a CI job."""


@app.command("run")
def run_cmd(log_level: str = _LOG_LEVEL_OPTION) -> None:
    """Run the action using the INPUT_* and ACTIONS_* environment."""

    setup_logging(level=log_level)
    exit_code = asyncio.run(run())
    raise typer.Exit(exit_code)


@app.command("cache-key")
def cache_key_cmd(
    lock_file: Path = typer.Option(Path(LOCK_FILE), "--lock-file", help="Lockfile to fingerprint"),
    log_level: str = typer.Option("WARNING", "--log-level", "-l", help="Logging level"),
) -> None:
    """Print the cache key and version derived for the current project."""

    setup_logging(level=log_level)
    cache_key = asyncio.run(get_cache_key(lock_file))
    typer.echo(f"key={cache_key.key}")
    typer.echo(f"version={cache_key.version}")


__all__ = ["app", "main"]
