"""In-memory transaction service.

Keeps per-user transactions behind a lock. It exists so the gated routes have
real business logic to protect; persistence to a hosted database is out of
scope here.
"""

from __future__ import annotations

import logging
import threading
import uuid
from datetime import datetime, timezone

from finance_tracker.schemas.transactions import (
    Transaction,
    TransactionCreate,
    TransactionType,
)

logger = logging.getLogger(__name__)


class TransactionService:
    """Record and list transactions per user, newest booking date first."""

    def __init__(self) -> None:
        self._lock = threading.RLock()
        self._by_user: dict[str, list[Transaction]] = {}

    def create(self, user_id: str, payload: TransactionCreate) -> Transaction:
        transaction = Transaction(
            id=uuid.uuid4().hex,
            user_id=user_id,
            created_at=datetime.now(timezone.utc),
            **payload.model_dump(),
        )
        with self._lock:
            self._by_user.setdefault(user_id, []).append(transaction)

        logger.info(
            "transaction.created",
            extra={"user_id": user_id, "transaction_type": transaction.type},
        )
        return transaction

    def list_for_user(
        self,
        user_id: str,
        *,
        type: TransactionType | None = None,
        limit: int = 50,
        offset: int = 0,
    ) -> tuple[list[Transaction], int]:
        """Return one page of the user's transactions and the filtered total."""

        with self._lock:
            items = list(self._by_user.get(user_id, []))

        if type is not None:
            items = [t for t in items if t.type == type]

        items.sort(key=lambda t: (t.date, t.created_at), reverse=True)
        return items[offset : offset + limit], len(items)

    def clear(self) -> None:
        with self._lock:
            self._by_user.clear()
