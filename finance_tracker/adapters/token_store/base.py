"""Token store interfaces.

The rate limiter depends on this abstraction (not the concrete backend) so
counters can live in Redis for shared deployments and in process memory for
development and tests.
"""

from __future__ import annotations

from abc import ABC, abstractmethod
from dataclasses import dataclass


@dataclass(frozen=True)
class WindowCount:
    """Outcome of a single increment-with-window call.

    Attributes:
        admitted: Whether the hit was recorded (count was below the limit).
        count: Hits inside the window after this call, including this one
            when admitted.
        oldest_ms: Epoch milliseconds of the oldest hit still in the window,
            or None when the window is empty.
    """

    admitted: bool
    count: int
    oldest_ms: int | None


class AbstractTokenStore(ABC):
    """Interface for shared, atomically updated rate limit counters."""

    @abstractmethod
    async def increment_with_window(
        self,
        key: str,
        *,
        window_seconds: int,
        limit: int,
        now_ms: int,
    ) -> WindowCount:
        """Record a hit for ``key`` inside a sliding window, atomically.

        Hits older than ``now_ms - window_seconds`` are discarded first; the
        new hit is recorded only when fewer than ``limit`` hits remain. The key
        expires on its own ``window_seconds`` after its newest hit.

        Args:
            key: Namespaced counter key.
            window_seconds: Sliding window length.
            limit: Maximum hits allowed inside the window.
            now_ms: Current time in epoch milliseconds.

        Returns:
            WindowCount describing the window after the call.

        Raises:
            TokenStoreUnavailableError: If the backing store cannot be reached.
        """
        raise NotImplementedError

    @abstractmethod
    async def ping(self) -> bool:
        """Return True when the backing store answers."""
        raise NotImplementedError

    async def close(self) -> None:
        """Release connections held by the store."""
        return None
