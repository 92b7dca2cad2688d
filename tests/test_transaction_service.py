"""Unit tests for the in-memory transaction service and its schemas."""

import datetime as dt
from decimal import Decimal

import pytest
from pydantic import ValidationError

from finance_tracker.schemas.transactions import TransactionCreate
from finance_tracker.services.transaction_service import TransactionService


@pytest.fixture
def service() -> TransactionService:
    return TransactionService()


def _payload(**overrides) -> TransactionCreate:
    data = {"amount": "10.00", "type": "expense", "date": dt.date(2024, 3, 1)}
    data.update(overrides)
    return TransactionCreate(**data)


def test_create_assigns_identity(service: TransactionService) -> None:
    transaction = service.create("user_1", _payload(description="Rent"))

    assert transaction.user_id == "user_1"
    assert transaction.amount == Decimal("10.00")
    assert transaction.description == "Rent"
    assert len(transaction.id) == 32


def test_list_is_newest_first_and_filtered(service: TransactionService) -> None:
    service.create("user_1", _payload(date=dt.date(2024, 1, 1)))
    service.create("user_1", _payload(date=dt.date(2024, 2, 1), type="income"))
    service.create("user_1", _payload(date=dt.date(2024, 3, 1)))

    items, total = service.list_for_user("user_1")
    assert total == 3
    assert [t.date.month for t in items] == [3, 2, 1]

    expenses, expense_total = service.list_for_user("user_1", type="expense")
    assert expense_total == 2
    assert all(t.type == "expense" for t in expenses)


def test_pagination(service: TransactionService) -> None:
    for day in range(1, 6):
        service.create("user_1", _payload(date=dt.date(2024, 1, day)))

    page, total = service.list_for_user("user_1", limit=2, offset=2)

    assert total == 5
    assert [t.date.day for t in page] == [3, 2]


def test_users_are_isolated(service: TransactionService) -> None:
    service.create("user_1", _payload())

    assert service.list_for_user("user_2") == ([], 0)


@pytest.mark.parametrize(
    "overrides",
    [
        {"amount": "0"},
        {"amount": "-5.00"},
        {"amount": "1.234"},
        {"type": "transfer"},
        {"description": "x" * 256},
    ],
)
def test_invalid_payloads(overrides: dict) -> None:
    with pytest.raises(ValidationError):
        _payload(**overrides)
