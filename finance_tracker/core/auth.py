"""Session authentication collaborator.

The request gate only needs ``get_current_user(request) -> User | None``; the
provider behind it is swappable. The bundled provider resolves bearer session
tokens configured through ``APP_AUTH_TOKENS``.

Design principles:
- Single Responsibility: only resolves who is calling, never rejects by itself
- Dependency Injection: used via FastAPI Depends() for loose coupling
- Configuration-driven: tokens managed via env vars, not hardcoded
"""

from __future__ import annotations

import hashlib
import hmac
import logging
from abc import ABC, abstractmethod

from fastapi import Request

from finance_tracker.core.config import settings
from finance_tracker.core.errors import ValidationAppError
from finance_tracker.schemas.user import User

logger = logging.getLogger(__name__)

BEARER_PREFIX = "bearer "


def parse_auth_tokens(tokens_string: str | None) -> dict[str, User]:
    """Parse ``token:user_id[:email]`` entries into a token -> User map.

    Args:
        tokens_string: Comma-separated entries, or None.

    Returns:
        Mapping of session token to user. Blank entries are skipped.

    Raises:
        ValidationAppError: If an entry has no user id.

    Examples:
        >>> parse_auth_tokens("t1:user_1, t2:user_2:ana@example.com")["t2"].email
        'ana@example.com'
        >>> parse_auth_tokens(None)
        {}
    """
    if not tokens_string:
        return {}

    users: dict[str, User] = {}
    for entry in tokens_string.split(","):
        entry = entry.strip()
        if not entry:
            continue
        token, _, rest = entry.partition(":")
        user_id, _, email = rest.partition(":")
        token, user_id, email = token.strip(), user_id.strip(), email.strip()
        if not token or not user_id:
            raise ValidationAppError(
                code="auth_tokens_malformed",
                message="APP_AUTH_TOKENS entries must look like token:user_id[:email]",
            )
        users[token] = User(id=user_id, email=email or None)
    return users


def extract_bearer_token(request: Request) -> str | None:
    """Return the bearer token from the Authorization header, if any."""
    authorization = request.headers.get("authorization")
    if not authorization or not authorization.lower().startswith(BEARER_PREFIX):
        return None
    token = authorization[len(BEARER_PREFIX):].strip()
    return token or None


class AbstractAuthProvider(ABC):
    """Interface for resolving the current user of a request."""

    @abstractmethod
    async def get_current_user(self, request: Request) -> User | None:
        """Return the authenticated user, or None for anonymous requests."""
        raise NotImplementedError


class StaticTokenAuthProvider(AbstractAuthProvider):
    """Resolve bearer tokens against a fixed token table."""

    def __init__(self, users_by_token: dict[str, User]) -> None:
        self._users_by_token = dict(users_by_token)

    async def get_current_user(self, request: Request) -> User | None:
        token = extract_bearer_token(request)
        if token is None:
            logger.debug("auth.no_credentials")
            return None

        # Walk every entry so lookup time does not depend on which token matched
        match: User | None = None
        for known_token, user in self._users_by_token.items():
            if hmac.compare_digest(known_token.encode(), token.encode()):
                match = user

        if match is None:
            logger.warning(
                "auth.unknown_token",
                extra={"token_hash": hashlib.sha256(token.encode()).hexdigest()[:16]},
            )
            return None

        logger.debug("auth.success", extra={"user_id": match.id})
        return match


_provider: AbstractAuthProvider | None = None
_provider_config: str | None = None


def get_auth_provider() -> AbstractAuthProvider:
    """Return the process-wide auth provider, rebuilt when config changes."""

    global _provider, _provider_config

    config = settings.app.auth_tokens or ""
    if _provider is None or _provider_config != config:
        users = parse_auth_tokens(settings.app.auth_tokens)
        if not users:
            logger.warning(
                "auth.no_tokens_configured",
                extra={"hint": "Set APP_AUTH_TOKENS; every gated request will get 401"},
            )
        _provider = StaticTokenAuthProvider(users)
        _provider_config = config

    return _provider
