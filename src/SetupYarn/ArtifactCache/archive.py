# === NAVMAP v1 ===
# {
#   "module": "SetupYarn.ArtifactCache.archive",
#   "purpose": "tar and zstd process pipelines for cache archives",
#   "sections": [
#     {
#       "id": "run-pipeline",
#       "name": "run_pipeline",
#       "anchor": "function-run-pipeline",
#       "kind": "function"
#     },
#     {
#       "id": "archive-commands",
#       "name": "archive_commands",
#       "anchor": "function-archive-commands",
#       "kind": "function"
#     },
#     {
#       "id": "extract-commands",
#       "name": "extract_commands",
#       "anchor": "function-extract-commands",
#       "kind": "function"
#     },
#     {
#       "id": "create-archive",
#       "name": "create_archive",
#       "anchor": "function-create-archive",
#       "kind": "function"
#     },
#     {
#       "id": "extract-archive",
#       "name": "extract_archive",
#       "anchor": "function-extract-archive",
#       "kind": "function"
#     }
#   ]
# }
# === /NAVMAP ===

"""Create and extract ``tar`` + ``zstd`` cache archives.

Both directions run two cooperating processes joined by an OS pipe so the
archive never has to fit in memory: ``tar`` packs (or unpacks) a plain stream
while ``zstd`` compresses (or decompresses) it.  Paths are stored exactly as
given (``tar -P``), absolute paths included, so extraction puts every file back
where it was found.
"""

from __future__ import annotations

import asyncio
import logging
import os
import signal
from typing import Optional, Sequence, Tuple, Union

from .errors import SubprocessFailure
from .settings import CacheServiceSettings

logger = logging.getLogger(__name__)

PathLike = Union[str, "os.PathLike[str]"]
Command = Tuple[str, ...]


async def _spawn(
    command: Command,
    *,
    stdin: Optional[int] = None,
    stdout: Optional[int] = None,
    cwd: Optional[PathLike] = None,
) -> asyncio.subprocess.Process:
    try:
        return await asyncio.create_subprocess_exec(
            *command,
            stdin=stdin if stdin is not None else asyncio.subprocess.DEVNULL,
            stdout=stdout if stdout is not None else asyncio.subprocess.DEVNULL,
            stderr=asyncio.subprocess.PIPE,
            cwd=cwd,
        )
    except OSError as exc:
        raise SubprocessFailure(command, stderr=str(exc)) from exc


async def _wait(command: Command, process: asyncio.subprocess.Process) -> None:
    _, stderr = await process.communicate()
    if process.returncode != 0:
        raise SubprocessFailure(
            command,
            returncode=process.returncode,
            stderr=stderr.decode("utf-8", errors="replace") if stderr else "",
        )


async def _kill(process: asyncio.subprocess.Process) -> None:
    if process.returncode is None:
        process.kill()
    await process.wait()


async def run_pipeline(
    producer: Command,
    consumer: Command,
    *,
    cwd: Optional[PathLike] = None,
) -> None:
    """Run ``producer | consumer`` and wait until both exit successfully.

    Raises:
        SubprocessFailure: If either process cannot start or exits non-zero.
            When both fail, the producer's failure is raised unless it was
            only killed by a broken pipe, in which case the consumer's is.
    """

    read_fd, write_fd = os.pipe()
    try:
        first = await _spawn(producer, stdout=write_fd, cwd=cwd)
    except SubprocessFailure:
        os.close(read_fd)
        os.close(write_fd)
        raise
    os.close(write_fd)
    try:
        second = await _spawn(consumer, stdin=read_fd, cwd=cwd)
    except SubprocessFailure:
        await _kill(first)
        raise
    finally:
        os.close(read_fd)

    try:
        results = await asyncio.gather(
            _wait(producer, first), _wait(consumer, second), return_exceptions=True
        )
    except BaseException:
        # Cancelled: neither process may outlive the caller.
        await _kill(first)
        await _kill(second)
        raise
    producer_error, consumer_error = (
        result if isinstance(result, BaseException) else None for result in results
    )
    if (
        isinstance(producer_error, SubprocessFailure)
        and producer_error.returncode == -signal.SIGPIPE
        and consumer_error is not None
    ):
        raise consumer_error
    if producer_error is not None:
        raise producer_error
    if consumer_error is not None:
        raise consumer_error


def archive_commands(
    archive_path: PathLike,
    file_paths: Sequence[PathLike],
    settings: Optional[CacheServiceSettings] = None,
) -> Tuple[Command, Command]:
    tar, zstd = _executables(settings)
    return (
        (tar, "-cf", "-", "-P", *(os.fspath(path) for path in file_paths)),
        (zstd, "-T0", "-o", os.fspath(archive_path)),
    )


def extract_commands(
    archive_path: PathLike,
    settings: Optional[CacheServiceSettings] = None,
) -> Tuple[Command, Command]:
    tar, zstd = _executables(settings)
    return (
        (zstd, "-d", "-T0", "-c", os.fspath(archive_path)),
        (tar, "-xf", "-", "-P"),
    )


def _executables(settings: Optional[CacheServiceSettings]) -> Tuple[str, str]:
    if settings is None:
        return "tar", "zstd"
    return settings.tar_command, settings.zstd_command


async def create_archive(
    archive_path: PathLike,
    file_paths: Sequence[PathLike],
    *,
    cwd: Optional[PathLike] = None,
    settings: Optional[CacheServiceSettings] = None,
) -> None:
    """Pack ``file_paths`` into a zstd-compressed tarball at ``archive_path``.

    Relative paths are resolved against ``cwd`` (default: the current working
    directory) and stored relative; absolute paths are stored absolute.
    """

    producer, consumer = archive_commands(archive_path, file_paths, settings)
    logger.debug("creating archive", extra={"archive": os.fspath(archive_path)})
    await run_pipeline(producer, consumer, cwd=cwd)


async def extract_archive(
    archive_path: PathLike,
    *,
    cwd: Optional[PathLike] = None,
    settings: Optional[CacheServiceSettings] = None,
) -> None:
    """Unpack a zstd-compressed tarball into ``cwd`` (default: current directory)."""

    producer, consumer = extract_commands(archive_path, settings)
    logger.debug("extracting archive", extra={"archive": os.fspath(archive_path)})
    await run_pipeline(producer, consumer, cwd=cwd)


__all__ = [
    "run_pipeline",
    "archive_commands",
    "extract_commands",
    "create_archive",
    "extract_archive",
]
