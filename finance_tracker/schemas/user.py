from __future__ import annotations

from pydantic import BaseModel, Field


class User(BaseModel):
    """Authenticated principal resolved by the auth provider."""

    id: str = Field(..., description="Stable user identifier")
    email: str | None = Field(None, description="Primary email, when known")
