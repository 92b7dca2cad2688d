"""Client helpers for calling the Finance Tracker API."""

from finance_tracker.client.csrf_client import (
    CsrfAwareClient,
    CsrfTokenFetchError,
    is_csrf_rejection,
)

__all__ = ["CsrfAwareClient", "CsrfTokenFetchError", "is_csrf_rejection"]
