"""Redis-backed sliding-window token store.

Each key is a sorted set of hit timestamps (score = epoch ms). Pruning,
counting, recording and expiry happen inside one Lua script so concurrent
requests from every server instance are serialized by Redis itself.
"""

from __future__ import annotations

import logging
import uuid
from typing import Any

import redis.asyncio as aioredis
from redis.exceptions import RedisError

from finance_tracker.adapters.token_store.base import AbstractTokenStore, WindowCount
from finance_tracker.core.errors import TokenStoreUnavailableError

logger = logging.getLogger(__name__)


# Lua numbers are truncated to integers when returned to the client, so all
# timestamps travel as integer milliseconds.
SLIDING_WINDOW_SCRIPT = """
    local key = KEYS[1]
    local now_ms = tonumber(ARGV[1])
    local window_ms = tonumber(ARGV[2])
    local limit = tonumber(ARGV[3])
    local member = ARGV[4]

    redis.call('ZREMRANGEBYSCORE', key, '-inf', now_ms - window_ms)
    local count = redis.call('ZCARD', key)

    local admitted = 0
    if count < limit then
        redis.call('ZADD', key, now_ms, member)
        redis.call('PEXPIRE', key, window_ms)
        count = count + 1
        admitted = 1
    end

    local oldest = redis.call('ZRANGE', key, 0, 0, 'WITHSCORES')
    local oldest_ms = -1
    if oldest[2] then
        oldest_ms = tonumber(oldest[2])
    end

    return {admitted, count, oldest_ms}
"""


class RedisTokenStore(AbstractTokenStore):
    """Distributed token store on top of ``redis.asyncio``."""

    def __init__(
        self,
        *,
        redis_client: Any | None = None,
        redis_url: str | None = None,
        socket_timeout_seconds: float = 1.0,
    ) -> None:
        """Initialize the store.

        Args:
            redis_client: Pre-built async Redis client (takes precedence).
            redis_url: Connection URL used when no client is given.
            socket_timeout_seconds: Command/connect timeout for the built client.

        Raises:
            ValueError: If neither a client nor a URL is provided.
        """
        if redis_client is None and not redis_url:
            raise ValueError("redis_client or redis_url is required")

        self._redis = redis_client
        self._redis_url = redis_url
        self._socket_timeout = socket_timeout_seconds
        self._script: Any | None = None

    def _get_redis(self) -> Any:
        if self._redis is None:
            self._redis = aioredis.from_url(
                self._redis_url,
                socket_timeout=self._socket_timeout,
                socket_connect_timeout=self._socket_timeout,
            )
        return self._redis

    def _get_script(self) -> Any:
        if self._script is None:
            self._script = self._get_redis().register_script(SLIDING_WINDOW_SCRIPT)
        return self._script

    async def increment_with_window(
        self,
        key: str,
        *,
        window_seconds: int,
        limit: int,
        now_ms: int,
    ) -> WindowCount:
        if not key:
            raise ValueError("key must be a non-empty string")

        # Unique member so two hits in the same millisecond are both counted
        member = f"{now_ms}:{uuid.uuid4().hex}"
        try:
            script = self._get_script()
            admitted, count, oldest_ms = await script(
                keys=[key],
                args=[now_ms, window_seconds * 1000, limit, member],
            )
        except (RedisError, OSError) as exc:
            logger.error(
                "token_store.unavailable",
                extra={"backend": "redis", "error_type": type(exc).__name__},
            )
            raise TokenStoreUnavailableError(
                code="token_store_unavailable",
                message="Rate limit store is unavailable",
                details={"backend": "redis", "reason": type(exc).__name__},
            ) from exc

        oldest = int(oldest_ms)
        return WindowCount(
            admitted=bool(int(admitted)),
            count=int(count),
            oldest_ms=oldest if oldest >= 0 else None,
        )

    async def ping(self) -> bool:
        try:
            return bool(await self._get_redis().ping())
        except (RedisError, OSError) as exc:
            logger.warning(
                "token_store.ping_failed",
                extra={"backend": "redis", "error_type": type(exc).__name__},
            )
            return False

    async def close(self) -> None:
        if self._redis is not None:
            await self._redis.aclose()
