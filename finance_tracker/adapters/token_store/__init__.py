"""Token store adapters.

Shared counters for the rate limiter: Redis for deployments with several
instances, an in-process store for development and tests.
"""

from finance_tracker.adapters.token_store.base import AbstractTokenStore, WindowCount
from finance_tracker.adapters.token_store.factory import create_token_store
from finance_tracker.adapters.token_store.in_memory import InMemoryTokenStore
from finance_tracker.adapters.token_store.redis_store import RedisTokenStore

__all__ = [
    "AbstractTokenStore",
    "InMemoryTokenStore",
    "RedisTokenStore",
    "WindowCount",
    "create_token_store",
]
