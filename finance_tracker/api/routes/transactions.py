from __future__ import annotations

from typing import Annotated

from fastapi import APIRouter, Depends, Query, Request, status
from pydantic import ValidationError

from finance_tracker.core.errors import ValidationAppError
from finance_tracker.core.gate import read_gate, write_gate
from finance_tracker.schemas.security import ErrorResponse
from finance_tracker.schemas.transactions import (
    Transaction,
    TransactionCreate,
    TransactionListResponse,
    TransactionType,
)
from finance_tracker.schemas.user import User
from finance_tracker.services.transaction_service import TransactionService

router = APIRouter(tags=["Transactions"])

_transaction_service = TransactionService()


def get_transaction_service() -> TransactionService:
    return _transaction_service


async def parse_transaction_body(request: Request) -> TransactionCreate:
    """Decode and validate the request body as a TransactionCreate.

    Called from the handler, after the gate has admitted the request, so
    malformed bodies are still counted against the caller's quota.

    Raises:
        ValidationAppError: If the body is not JSON or fails validation.
    """
    try:
        body = await request.json()
    except ValueError as exc:
        # json.JSONDecodeError and UnicodeDecodeError both subclass ValueError
        raise ValidationAppError(
            code="invalid_json",
            message="Request body must be valid JSON",
        ) from exc

    try:
        return TransactionCreate.model_validate(body)
    except ValidationError as exc:
        raise ValidationAppError(
            code="invalid_transaction",
            message="Invalid transaction payload",
            details={
                "context": {
                    "errors": [
                        {"loc": [str(part) for part in err["loc"]], "msg": err["msg"]}
                        for err in exc.errors()
                    ]
                }
            },
        ) from exc


@router.get(
    "/transactions",
    response_model=TransactionListResponse,
    responses={
        401: {"model": ErrorResponse},
        429: {"model": ErrorResponse},
    },
)
async def list_transactions(
    user: Annotated[User, Depends(read_gate)],
    service: Annotated[TransactionService, Depends(get_transaction_service)],
    type: TransactionType | None = None,
    limit: Annotated[int, Query(ge=1, le=200)] = 50,
    offset: Annotated[int, Query(ge=0)] = 0,
) -> TransactionListResponse:
    """List the authenticated user's transactions, newest first."""
    items, total = service.list_for_user(user.id, type=type, limit=limit, offset=offset)
    return TransactionListResponse(data=items, total=total)


@router.post(
    "/transactions",
    response_model=Transaction,
    status_code=status.HTTP_201_CREATED,
    responses={
        400: {"model": ErrorResponse, "description": "Malformed or invalid body."},
        401: {"model": ErrorResponse},
        403: {"model": ErrorResponse, "description": "CSRF validation failed."},
        429: {"model": ErrorResponse},
    },
    # The body is parsed in the handler; document it here
    openapi_extra={
        "requestBody": {
            "required": True,
            "content": {"application/json": {"schema": TransactionCreate.model_json_schema()}},
        }
    },
)
async def create_transaction(
    request: Request,
    user: Annotated[User, Depends(write_gate)],
    service: Annotated[TransactionService, Depends(get_transaction_service)],
) -> Transaction:
    """Record an income or expense. Requires the ``X-CSRF-Token`` header."""
    payload = await parse_transaction_body(request)
    return service.create(user.id, payload)
