"""Run external commands on the event loop."""

from __future__ import annotations

import asyncio
import logging
import os
from dataclasses import dataclass
from typing import Callable, Mapping, Optional, Sequence, Union

from .errors import CommandError

logger = logging.getLogger(__name__)

_READ_SIZE = 64 * 1024

PathLike = Union[str, "os.PathLike[str]"]


@dataclass(slots=True, frozen=True)
class ExecOutput:
    """Captured result of a finished command."""

    exit_code: int
    stdout: str
    stderr: str


async def _spawn(
    command: Sequence[str],
    *,
    env: Optional[Mapping[str, str]],
    cwd: Optional[PathLike],
) -> asyncio.subprocess.Process:
    try:
        return await asyncio.create_subprocess_exec(
            *command,
            stdin=asyncio.subprocess.DEVNULL,
            stdout=asyncio.subprocess.PIPE,
            stderr=asyncio.subprocess.PIPE,
            env=dict(env) if env is not None else None,
            cwd=cwd,
        )
    except OSError as exc:
        raise CommandError(command, stderr=str(exc)) from exc


async def get_exec_output(
    command: str,
    args: Sequence[str] = (),
    *,
    env: Optional[Mapping[str, str]] = None,
    cwd: Optional[PathLike] = None,
) -> ExecOutput:
    """Run ``command args...`` to completion and capture its output.

    Raises:
        CommandError: If the command cannot start or exits non-zero.
    """

    argv = [command, *args]
    logger.debug("running %s", " ".join(argv))
    process = await _spawn(argv, env=env, cwd=cwd)
    stdout, stderr = await process.communicate()
    output = ExecOutput(
        exit_code=process.returncode if process.returncode is not None else -1,
        stdout=stdout.decode("utf-8", errors="replace"),
        stderr=stderr.decode("utf-8", errors="replace"),
    )
    if output.exit_code != 0:
        raise CommandError(argv, exit_code=output.exit_code, stderr=output.stderr)
    return output


async def _pump_lines(stream: asyncio.StreamReader, on_line: Callable[[str], None]) -> None:
    """Split ``stream`` on newlines without bounding the length of a line."""

    pending = bytearray()

    def _emit(raw: bytes) -> None:
        line = raw.decode("utf-8", errors="replace").rstrip("\r")
        if line:
            on_line(line)

    while True:
        chunk = await stream.read(_READ_SIZE)
        if not chunk:
            break
        pending.extend(chunk)
        *complete, rest = pending.split(b"\n")
        for raw in complete:
            _emit(bytes(raw))
        pending = bytearray(rest)
    if pending:
        _emit(bytes(pending))


async def _kill(process: asyncio.subprocess.Process) -> None:
    if process.returncode is None:
        process.kill()
    await process.wait()


async def exec_lines(
    command: str,
    args: Sequence[str],
    on_line: Callable[[str], None],
    *,
    env: Optional[Mapping[str, str]] = None,
    cwd: Optional[PathLike] = None,
) -> int:
    """Run a command, handing each stdout line to ``on_line`` as it arrives.

    Returns:
        The exit code, which is always zero.

    Raises:
        CommandError: If the command cannot start or exits non-zero.
    """

    argv = [command, *args]
    logger.debug("running %s", " ".join(argv))
    process = await _spawn(argv, env=env, cwd=cwd)
    assert process.stdout is not None and process.stderr is not None

    try:
        _, stderr = await asyncio.gather(
            _pump_lines(process.stdout, on_line), process.stderr.read()
        )
        exit_code = await process.wait()
    finally:
        # The child is reaped on every path, including a failing ``on_line``.
        await _kill(process)
    if exit_code != 0:
        raise CommandError(
            argv, exit_code=exit_code, stderr=stderr.decode("utf-8", errors="replace")
        )
    return exit_code


__all__ = ["ExecOutput", "exec_lines", "get_exec_output"]
