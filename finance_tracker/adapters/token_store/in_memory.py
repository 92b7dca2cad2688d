"""In-memory sliding-window token store.

Notes:
- Per-process only: running multiple workers multiplies the effective limit.
  Use the Redis backend anywhere more than one process serves traffic.
- Thread-safe: every operation runs under a single lock and never awaits
  while holding it, so increments are atomic for threads and coroutines.
"""

from __future__ import annotations

import logging
import threading
from collections import OrderedDict, deque
from dataclasses import dataclass, field

from finance_tracker.adapters.token_store.base import AbstractTokenStore, WindowCount

logger = logging.getLogger(__name__)


@dataclass
class _WindowState:
    hits: deque[int] = field(default_factory=deque)
    expires_at_ms: int = 0


class InMemoryTokenStore(AbstractTokenStore):
    """Sliding log of hit timestamps per key with per-key expiry.

    Keys are kept in LRU order; once more than ``max_keys`` are tracked the
    least recently used ones are evicted.
    """

    def __init__(self, *, max_keys: int | None = 10_000) -> None:
        if max_keys is not None and max_keys < 1:
            raise ValueError("max_keys must be >= 1")

        self._max_keys = max_keys
        self._lock = threading.RLock()
        self._windows: OrderedDict[str, _WindowState] = OrderedDict()
        self._evictions = 0

    def __repr__(self) -> str:  # pragma: no cover - representation only
        return (
            f"InMemoryTokenStore(max_keys={self._max_keys}, keys={len(self._windows)}, "
            f"evictions={self._evictions})"
        )

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
        if window_seconds < 1:
            raise ValueError("window_seconds must be >= 1")
        if limit < 1:
            raise ValueError("limit must be >= 1")

        window_ms = window_seconds * 1000
        cutoff = now_ms - window_ms

        with self._lock:
            self._evict_expired_locked(now_ms)
            state = self._windows.get(key)
            if state is None:
                state = _WindowState()
                self._windows[key] = state
            self._windows.move_to_end(key)

            while state.hits and state.hits[0] <= cutoff:
                state.hits.popleft()

            admitted = len(state.hits) < limit
            if admitted:
                state.hits.append(now_ms)
                state.expires_at_ms = now_ms + window_ms

            oldest = state.hits[0] if state.hits else None
            count = len(state.hits)
            self._evict_if_over_capacity_locked()

        return WindowCount(admitted=admitted, count=count, oldest_ms=oldest)

    async def ping(self) -> bool:
        return True

    def key_count(self) -> int:
        """Number of keys currently tracked (expired keys included until swept)."""
        with self._lock:
            return len(self._windows)

    def clear(self) -> None:
        """Drop every tracked window."""
        with self._lock:
            self._windows.clear()
            self._evictions = 0

    def _evict_expired_locked(self, now_ms: int) -> None:
        # Only the least recently touched keys are swept; the walk stops at the
        # first live one. Expired keys further in are pruned on access.
        while self._windows:
            key, state = next(iter(self._windows.items()))
            if state.expires_at_ms > now_ms:
                return
            del self._windows[key]
            self._evictions += 1

    def _evict_if_over_capacity_locked(self) -> None:
        if self._max_keys is None:
            return

        while len(self._windows) > self._max_keys:
            key, _ = self._windows.popitem(last=False)
            self._evictions += 1
            logger.debug("token_store.evicted", extra={"reason": "capacity"})
