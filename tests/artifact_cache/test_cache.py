"""restore_cache / save_cache orchestration against the in-memory cache service."""

from __future__ import annotations

import asyncio
import json
import os
import tempfile
from pathlib import Path

import httpx
import pytest

from SetupYarn.ArtifactCache import (
    ArtifactCache,
    CacheKey,
    CacheTransport,
    ProtocolError,
    SubprocessFailure,
    restore_cache,
    save_cache,
)
from SetupYarn.ArtifactCache import cache as cache_module
from tests.fixtures.cache_service import FakeCacheService, cache_service, make_settings  # noqa: F401

MiB = 1024 * 1024


@pytest.fixture
def temp_root(tmp_path, monkeypatch):
    root = tmp_path / "tmp"
    root.mkdir()
    monkeypatch.setattr(tempfile, "tempdir", str(root))
    return root


@pytest.fixture
def archiver(monkeypatch):
    """Replace the tar/zstd pipeline with in-process fakes and record calls."""

    calls = {"create": [], "extract": []}
    state = {"payload": b"archive-bytes", "extract_error": None}

    async def fake_create(archive_path, file_paths, *, cwd=None, settings=None):
        calls["create"].append(list(file_paths))
        Path(archive_path).write_bytes(state["payload"])

    async def fake_extract(archive_path, *, cwd=None, settings=None):
        calls["extract"].append(Path(archive_path).read_bytes())
        if state["extract_error"] is not None:
            raise state["extract_error"]

    monkeypatch.setattr(cache_module, "create_archive", fake_create)
    monkeypatch.setattr(cache_module, "extract_archive", fake_extract)
    return calls, state


def _transport(service: FakeCacheService) -> CacheTransport:
    return CacheTransport(make_settings(), client=httpx.AsyncClient(transport=service.transport()))


def test_successful_save_uploads_three_chunks_then_commits(cache_service, archiver, temp_root):
    calls, state = archiver
    state["payload"] = os.urandom(10 * MiB)

    saved = asyncio.run(save_cache(_transport(cache_service), "key", "4.1.0", ["a.txt", "b.txt"]))

    assert saved is True
    assert calls["create"] == [["a.txt", "b.txt"]]
    reserve = cache_service.requests_for("POST", "/caches")
    assert json.loads(reserve[0].content)["cacheSize"] == 10485760
    patches = cache_service.requests_for("PATCH")
    assert sorted(request.headers["content-range"] for request in patches) == [
        "bytes 0-4194303/*",
        "bytes 4194304-8388607/*",
        "bytes 8388608-10485759/*",
    ]
    commits = cache_service.requests_for("POST", "/caches/1")
    assert [json.loads(request.content) for request in commits] == [{"size": 10485760}]
    assert cache_service.requests.index(commits[0]) > max(
        cache_service.requests.index(request) for request in patches
    )
    assert list(temp_root.iterdir()) == []


def test_reservation_race_returns_false_without_upload(cache_service, archiver, temp_root):
    cache_service.overrides.append(
        lambda request: httpx.Response(409) if request.url.path.endswith("/caches") else None
    )

    saved = asyncio.run(save_cache(_transport(cache_service), "key", "1", ["a.txt"]))

    assert saved is False
    assert cache_service.requests_for("PATCH") == []
    assert cache_service.requests_for("POST", "/caches/1") == []
    assert list(temp_root.iterdir()) == []


def test_restore_miss_is_idempotent_and_leaves_no_temp_dirs(cache_service, archiver, temp_root):
    calls, _ = archiver
    transport = _transport(cache_service)

    async def scenario():
        return [await restore_cache(transport, "key", "1") for _ in range(2)]

    assert asyncio.run(scenario()) == [False, False]
    assert calls["extract"] == []
    assert list(temp_root.iterdir()) == []


def test_restore_hit_downloads_and_extracts(cache_service, archiver, temp_root):
    calls, _ = archiver
    payload = os.urandom(3 * MiB + 17)
    cache_service.add_entry("key", "1", payload)

    restored = asyncio.run(restore_cache(_transport(cache_service), "key", "1"))

    assert restored is True
    assert calls["extract"] == [payload]
    assert list(temp_root.iterdir()) == []


def test_restore_failure_still_removes_temp_dir(cache_service, archiver, temp_root):
    _, state = archiver
    state["extract_error"] = SubprocessFailure(("tar", "-xf", "-", "-P"), returncode=2, stderr="boom")
    cache_service.add_entry("key", "1", b"data")

    with pytest.raises(SubprocessFailure, match="boom"):
        asyncio.run(restore_cache(_transport(cache_service), "key", "1"))

    assert list(temp_root.iterdir()) == []


def test_failed_commit_propagates_after_cleanup(cache_service, archiver, temp_root):
    cache_service.overrides.append(
        lambda request: httpx.Response(500, content=b"commit failed")
        if request.method == "POST" and request.url.path.endswith("/caches/1")
        else None
    )

    with pytest.raises(ProtocolError, match=r"commit failed \(500\)"):
        asyncio.run(save_cache(_transport(cache_service), "key", "1", ["a.txt"]))

    assert list(temp_root.iterdir()) == []


def test_saved_entry_can_be_restored(cache_service, archiver, temp_root):
    calls, state = archiver
    state["payload"] = b"round trip through the service"

    async def scenario():
        async with ArtifactCache(make_settings(), transport=_transport(cache_service)) as cache:
            cache_key = CacheKey("setup-yarn-action-Linux", "4.1.0-abc123")
            saved = await cache.save(cache_key, [".pnp.cjs"])
            restored = await cache.restore(cache_key)
        return saved, restored

    assert asyncio.run(scenario()) == (True, True)
    assert calls["extract"] == [b"round trip through the service"]


def test_cache_key_requires_key():
    with pytest.raises(ValueError):
        CacheKey("", "1")
    assert str(CacheKey("k", "")) == "k"
    assert str(CacheKey("k", "v")) == "k-v"
