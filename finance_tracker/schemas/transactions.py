"""Pydantic schemas for the transactions resource."""

from __future__ import annotations

import datetime as dt
from decimal import Decimal
from typing import List, Literal

from pydantic import BaseModel, Field

TransactionType = Literal["income", "expense"]


class TransactionCreate(BaseModel):
    """Payload for recording an income or expense."""

    amount: Decimal = Field(..., gt=0, max_digits=12, decimal_places=2, description="Positive amount.")
    type: TransactionType = Field(..., description="income or expense.")
    description: str = Field("", max_length=255, description="Free-text note.")
    category_id: str | None = Field(None, description="Optional category reference.")
    date: dt.date = Field(default_factory=dt.date.today, description="Booking date.")


class Transaction(TransactionCreate):
    """Stored transaction."""

    id: str
    user_id: str
    created_at: dt.datetime


class TransactionListResponse(BaseModel):
    data: List[Transaction] = Field(default_factory=list)
    total: int = 0
