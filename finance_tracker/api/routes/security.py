from __future__ import annotations

from typing import Annotated

from fastapi import APIRouter, Depends, Request, Response

from finance_tracker.core.cookies import CookieJar
from finance_tracker.core.csrf import CsrfGuard, get_csrf_guard
from finance_tracker.core.gate import auth_gate, csrf_issuance_gate
from finance_tracker.schemas.security import CsrfTokenResponse, ErrorResponse, SessionResponse
from finance_tracker.schemas.user import User

router = APIRouter(tags=["Security"])

_GATE_ERRORS = {
    401: {"model": ErrorResponse, "description": "No authenticated session."},
    429: {"model": ErrorResponse, "description": "Rate limit exceeded."},
}


@router.get(
    "/csrf-token",
    response_model=CsrfTokenResponse,
    responses=_GATE_ERRORS,
    dependencies=[Depends(csrf_issuance_gate)],
)
async def get_csrf_token(
    request: Request,
    response: Response,
    csrf_guard: Annotated[CsrfGuard, Depends(get_csrf_guard)],
) -> CsrfTokenResponse:
    """Get or generate the session's CSRF token.

    Exempt from CSRF validation: it is the endpoint that mints the token.
    The token is stored in an HTTP-only cookie and returned in the body so
    client code can echo it in the ``X-CSRF-Token`` header.
    """
    token = csrf_guard.issue(CookieJar.read_write(request, response))
    return CsrfTokenResponse(token=token)


@router.get(
    "/session",
    response_model=SessionResponse,
    responses=_GATE_ERRORS,
)
async def get_session(
    request: Request,
    response: Response,
    user: Annotated[User, Depends(auth_gate)],
    csrf_guard: Annotated[CsrfGuard, Depends(get_csrf_guard)],
) -> SessionResponse:
    """Return the current user and make sure the session has a CSRF token."""
    token = csrf_guard.issue(CookieJar.read_write(request, response))
    return SessionResponse(user=user, csrf_token=token)
