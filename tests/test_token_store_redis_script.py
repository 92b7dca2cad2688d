"""Runs the sliding-window Lua script against a Lua-capable fake Redis server."""

import fakeredis
import pytest

from finance_tracker.adapters.token_store import RedisTokenStore

NOW = 1_700_000_000_000
KEY = "finance-tracker:ratelimit:write:1.2.3.4"


@pytest.fixture
def redis_client() -> fakeredis.FakeAsyncRedis:
    # Fresh server per test so keys never leak between tests
    return fakeredis.FakeAsyncRedis(server=fakeredis.FakeServer())


@pytest.fixture
def store(redis_client: fakeredis.FakeAsyncRedis) -> RedisTokenStore:
    return RedisTokenStore(redis_client=redis_client)


@pytest.mark.asyncio
async def test_admits_quota_then_rejects(store: RedisTokenStore, redis_client) -> None:
    for expected in (1, 2, 3):
        result = await store.increment_with_window(KEY, window_seconds=10, limit=3, now_ms=NOW + expected)
        assert result.admitted is True
        assert result.count == expected
        assert result.oldest_ms == NOW + 1

    blocked = await store.increment_with_window(KEY, window_seconds=10, limit=3, now_ms=NOW + 500)

    assert blocked.admitted is False
    assert blocked.count == 3
    assert blocked.oldest_ms == NOW + 1
    # The rejected hit was not recorded
    assert await redis_client.zcard(KEY) == 3


@pytest.mark.asyncio
async def test_hits_in_the_same_millisecond_are_all_counted(store: RedisTokenStore) -> None:
    results = [
        await store.increment_with_window(KEY, window_seconds=10, limit=5, now_ms=NOW) for _ in range(6)
    ]

    assert [r.admitted for r in results] == [True] * 5 + [False]
    assert results[4].count == 5


@pytest.mark.asyncio
async def test_full_window_slide_restores_quota(store: RedisTokenStore) -> None:
    for _ in range(10):
        await store.increment_with_window(KEY, window_seconds=10, limit=10, now_ms=NOW)

    results = [
        await store.increment_with_window(KEY, window_seconds=10, limit=10, now_ms=NOW + 10_000)
        for _ in range(10)
    ]

    assert all(r.admitted for r in results)
    assert results[-1].count == 10
    assert results[-1].oldest_ms == NOW + 10_000


@pytest.mark.asyncio
async def test_partial_slide_frees_only_expired_hits(store: RedisTokenStore) -> None:
    await store.increment_with_window(KEY, window_seconds=10, limit=2, now_ms=NOW)
    await store.increment_with_window(KEY, window_seconds=10, limit=2, now_ms=NOW + 4_000)
    assert not (await store.increment_with_window(KEY, window_seconds=10, limit=2, now_ms=NOW + 9_999)).admitted

    # First hit is exactly one window old: it no longer counts
    result = await store.increment_with_window(KEY, window_seconds=10, limit=2, now_ms=NOW + 10_000)

    assert result.admitted is True
    assert result.count == 2
    assert result.oldest_ms == NOW + 4_000

    blocked = await store.increment_with_window(KEY, window_seconds=10, limit=2, now_ms=NOW + 10_001)
    assert blocked.admitted is False


@pytest.mark.asyncio
async def test_key_expires_one_window_after_newest_hit(store: RedisTokenStore, redis_client) -> None:
    await store.increment_with_window(KEY, window_seconds=10, limit=5, now_ms=NOW)

    ttl_ms = await redis_client.pttl(KEY)

    assert 0 < ttl_ms <= 10_000


@pytest.mark.asyncio
async def test_keys_are_isolated(store: RedisTokenStore) -> None:
    other = "finance-tracker:ratelimit:write:5.6.7.8"

    await store.increment_with_window(KEY, window_seconds=10, limit=1, now_ms=NOW)

    assert not (await store.increment_with_window(KEY, window_seconds=10, limit=1, now_ms=NOW)).admitted
    assert (await store.increment_with_window(other, window_seconds=10, limit=1, now_ms=NOW)).admitted


@pytest.mark.asyncio
async def test_ping_and_close(store: RedisTokenStore) -> None:
    assert await store.ping() is True

    await store.close()
