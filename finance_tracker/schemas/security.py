"""Pydantic schemas for CSRF token issuance and session endpoints."""

from __future__ import annotations

from pydantic import BaseModel, Field

from finance_tracker.schemas.user import User


class CsrfTokenResponse(BaseModel):
    """Token to echo in the ``X-CSRF-Token`` header of state-changing requests."""

    token: str = Field(..., description="64-character hex CSRF token (also set as cookie).")
    message: str = Field(
        "CSRF token generated successfully",
        description="Human-readable status.",
    )


class SessionResponse(BaseModel):
    """Current session: the authenticated user plus its CSRF token."""

    user: User
    csrf_token: str = Field(..., description="Session CSRF token (also set as cookie).")


class ErrorResponse(BaseModel):
    """Body returned by every guard rejection."""

    error: str = Field(..., description="Human-readable error message.")
    code: str = Field(..., description="Stable machine-readable error code.")
    request_id: str | None = Field(None, description="Correlation id of the request.")
