"""tar + zstd archive pipeline."""

from __future__ import annotations

import asyncio
import os
import shutil
import signal
import string
import tempfile
from pathlib import Path

import pytest
from hypothesis import HealthCheck, given, settings
from hypothesis import strategies as st

from SetupYarn.ArtifactCache import SubprocessFailure
from SetupYarn.ArtifactCache import archive as archive_module
from SetupYarn.ArtifactCache.archive import (
    archive_commands,
    create_archive,
    extract_archive,
    extract_commands,
    run_pipeline,
)
from tests.fixtures.cache_service import make_settings

requires_archivers = pytest.mark.skipif(
    shutil.which("tar") is None or shutil.which("zstd") is None,
    reason="tar and zstd executables are required",
)


def test_commands_preserve_paths_verbatim():
    producer, consumer = archive_commands("/tmp/x/cache.tar.zst", [".pnp.cjs", "/abs/.yarn/cache"])
    assert producer == ("tar", "-cf", "-", "-P", ".pnp.cjs", "/abs/.yarn/cache")
    assert consumer == ("zstd", "-T0", "-o", "/tmp/x/cache.tar.zst")

    producer, consumer = extract_commands("/tmp/x/cache.tar.zst")
    assert producer == ("zstd", "-d", "-T0", "-c", "/tmp/x/cache.tar.zst")
    assert consumer == ("tar", "-xf", "-", "-P")


def test_commands_honour_configured_executables():
    configured = make_settings(tar_command="gtar", zstd_command="/opt/bin/zstd")
    producer, consumer = archive_commands("out.tzst", ["a"], configured)
    assert producer[0] == "gtar"
    assert consumer[0] == "/opt/bin/zstd"


def test_pipeline_streams_producer_output_into_consumer(tmp_path):
    target = tmp_path / "piped.txt"

    asyncio.run(
        run_pipeline(
            ("sh", "-c", "printf 'hello through a pipe'"),
            ("sh", "-c", f"cat > '{target}'"),
        )
    )

    assert target.read_text() == "hello through a pipe"


def test_pipeline_failure_reports_command_and_stderr():
    with pytest.raises(SubprocessFailure) as excinfo:
        asyncio.run(
            run_pipeline(
                ("sh", "-c", "printf data"),
                ("sh", "-c", "cat > /dev/null; echo 'disk full' >&2; exit 3"),
            )
        )

    error = excinfo.value
    assert error.returncode == 3
    assert "disk full" in error.stderr
    assert str(error).startswith("Process failed: sh -c cat > /dev/null;")


def test_consumer_failure_wins_over_broken_pipe():
    with pytest.raises(SubprocessFailure) as excinfo:
        asyncio.run(
            run_pipeline(
                ("yes",),
                ("sh", "-c", "echo 'cannot write archive' >&2; exit 1"),
            )
        )

    assert "cannot write archive" in excinfo.value.stderr


def test_missing_executable_is_a_subprocess_failure(tmp_path):
    with pytest.raises(SubprocessFailure) as excinfo:
        asyncio.run(run_pipeline(("sh", "-c", "printf x"), ("definitely-not-a-real-binary",)))

    assert excinfo.value.command == ("definitely-not-a-real-binary",)


@pytest.mark.archive
@requires_archivers
def test_round_trip_reproduces_files(tmp_path):
    source = tmp_path / "project"
    (source / ".yarn" / "cache").mkdir(parents=True)
    files = {
        ".pnp.cjs": b"module.exports = {};\n",
        ".yarn/cache/left-pad.zip": os.urandom(200_000),
        ".yarn/cache/empty.zip": b"",
    }
    for name, content in files.items():
        (source / name).write_bytes(content)
    archive = tmp_path / "cache.tar.zst"

    asyncio.run(create_archive(archive, [".pnp.cjs", ".yarn"], cwd=source))
    assert archive.stat().st_size > 0

    restored = tmp_path / "restored"
    restored.mkdir()
    asyncio.run(extract_archive(archive, cwd=restored))

    for name, content in files.items():
        assert (restored / name).read_bytes() == content


@pytest.mark.archive
@requires_archivers
def test_missing_input_path_fails_the_archive(tmp_path):
    with pytest.raises(SubprocessFailure) as excinfo:
        asyncio.run(create_archive(tmp_path / "cache.tar.zst", ["does-not-exist"], cwd=tmp_path))

    assert excinfo.value.command[0] == "tar"


def test_cancelled_pipeline_kills_both_processes(monkeypatch):
    spawned = []
    real_spawn = archive_module._spawn

    async def recording_spawn(command, **kwargs):
        process = await real_spawn(command, **kwargs)
        spawned.append(process)
        return process

    monkeypatch.setattr(archive_module, "_spawn", recording_spawn)

    async def scenario():
        task = asyncio.ensure_future(run_pipeline(("sleep", "30"), ("sleep", "30")))
        while len(spawned) < 2:
            await asyncio.sleep(0.01)
        await asyncio.sleep(0.05)
        task.cancel()
        with pytest.raises(asyncio.CancelledError):
            await task

    asyncio.run(scenario())

    assert [process.returncode for process in spawned] == [-signal.SIGKILL, -signal.SIGKILL]


@pytest.mark.archive
@requires_archivers
def test_absolute_paths_are_restored_in_place(tmp_path):
    source = tmp_path / "home" / ".yarn" / "berry" / "cache"
    source.mkdir(parents=True)
    payload = os.urandom(50_000)
    (source / "typescript.zip").write_bytes(payload)
    pnp = tmp_path / "project" / ".pnp.cjs"
    pnp.parent.mkdir()
    pnp.write_text("module.exports = {};\n", encoding="utf-8")
    archive = tmp_path / "cache.tar.zst"

    asyncio.run(create_archive(archive, [str(source), str(pnp)], cwd=pnp.parent))
    shutil.rmtree(tmp_path / "home")
    pnp.unlink()

    elsewhere = tmp_path / "elsewhere"
    elsewhere.mkdir()
    asyncio.run(extract_archive(archive, cwd=elsewhere))

    assert (source / "typescript.zip").read_bytes() == payload
    assert pnp.read_text(encoding="utf-8") == "module.exports = {};\n"
    assert list(elsewhere.iterdir()) == []


_NAMES = st.text(
    alphabet=string.ascii_lowercase + string.digits + "-_.", min_size=1, max_size=12
).filter(
    lambda name: name not in {".", ".."} and not name.startswith("-")
)


@pytest.mark.archive
@requires_archivers
@given(files=st.dictionaries(_NAMES, st.binary(max_size=4096), min_size=1, max_size=6))
@settings(max_examples=15, deadline=None, suppress_health_check=[HealthCheck.too_slow])
def test_round_trip_preserves_arbitrary_file_sets(files):
    with tempfile.TemporaryDirectory() as scratch:
        root = Path(scratch)
        source = root / "source"
        source.mkdir()
        for name, content in files.items():
            (source / name).write_bytes(content)
        archive = root / "cache.tar.zst"

        asyncio.run(create_archive(archive, sorted(files), cwd=source))
        restored = root / "restored"
        restored.mkdir()
        asyncio.run(extract_archive(archive, cwd=restored))

        assert {path.name: path.read_bytes() for path in restored.iterdir()} == files
