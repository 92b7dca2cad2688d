"""Factory for the configured token store backend."""

import logging

from finance_tracker.adapters.token_store.base import AbstractTokenStore
from finance_tracker.adapters.token_store.in_memory import InMemoryTokenStore
from finance_tracker.adapters.token_store.redis_store import RedisTokenStore
from finance_tracker.core.config import TokenStoreSettings, settings
from finance_tracker.core.errors import ValidationAppError

logger = logging.getLogger(__name__)


def create_token_store(store_settings: TokenStoreSettings | None = None) -> AbstractTokenStore:
    """Instantiate the token store selected by ``TOKEN_STORE_BACKEND``.

    Args:
        store_settings: Optional override; defaults to global settings.

    Returns:
        AbstractTokenStore: Configured store instance.

    Raises:
        ValidationAppError: If the backend name is not supported.
    """
    cfg = store_settings or settings.token_store
    backend = cfg.backend.lower()

    if backend == "redis":
        return RedisTokenStore(
            redis_url=cfg.redis_url,
            socket_timeout_seconds=cfg.socket_timeout_seconds,
        )

    if backend == "memory":
        logger.warning(
            "token_store.in_memory",
            extra={"hint": "counters are per-process; use redis when running several workers"},
        )
        return InMemoryTokenStore(max_keys=cfg.memory_max_keys)

    raise ValidationAppError(
        code="token_store_unknown_backend",
        message=f"Unknown token store backend: '{backend}'. Supported backends: redis, memory",
    )
