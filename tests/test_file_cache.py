from __future__ import annotations

import asyncio

import pytest

from app.core.file_cache import FileCache
from app.storage.base import RemoteFile


class FakeClock:
    def __init__(self):
        self.now = 1000.0

    def __call__(self) -> float:
        return self.now


def _remote(file_id: str = "abc", size: int = 10) -> RemoteFile:
    return RemoteFile(file_id=file_id, name="book.pdf", size=size)


def test_get_returns_cached_file():
    cache = FileCache(ttl_seconds=60)
    remote = _remote()

    cache.put(remote)

    assert cache.get("abc") is remote
    assert "abc" in cache
    assert len(cache) == 1


def test_entries_expire_on_read_without_event_loop():
    clock = FakeClock()
    cache = FileCache(ttl_seconds=60, clock=clock)
    cache.put(_remote())

    clock.now += 59
    assert cache.get("abc") is not None

    clock.now += 1
    assert cache.get("abc") is None
    assert len(cache) == 0


def test_put_replaces_entry_and_restarts_ttl():
    clock = FakeClock()
    cache = FileCache(ttl_seconds=60, clock=clock)
    cache.put(_remote(size=1))

    clock.now += 50
    cache.put(_remote(size=2))
    clock.now += 50

    assert cache.get("abc").size == 2


def test_disabled_cache_stores_nothing():
    cache = FileCache(ttl_seconds=0)

    cache.put(_remote())

    assert cache.get("abc") is None
    assert len(cache) == 0


def test_evict_and_clear():
    cache = FileCache(ttl_seconds=60)
    cache.put(_remote("a"))
    cache.put(_remote("b"))

    assert cache.evict("a") is True
    assert cache.evict("a") is False
    assert cache.get("a") is None

    cache.clear()
    assert len(cache) == 0


@pytest.mark.asyncio
async def test_timer_evicts_entry():
    cache = FileCache(ttl_seconds=0.05)
    cache.put(_remote())

    assert len(cache) == 1
    await asyncio.sleep(0.15)

    assert len(cache) == 0


@pytest.mark.asyncio
async def test_old_timer_does_not_evict_replacement():
    cache = FileCache(ttl_seconds=0.3)
    cache.put(_remote(size=1))

    await asyncio.sleep(0.2)
    cache.put(_remote(size=2))
    await asyncio.sleep(0.2)

    assert cache.get("abc").size == 2


@pytest.mark.asyncio
async def test_clear_cancels_timers():
    cache = FileCache(ttl_seconds=0.05)
    cache.put(_remote())
    entry = cache._entries["abc"]

    cache.clear()

    assert entry.timer is None
    await asyncio.sleep(0.1)
    assert len(cache) == 0
