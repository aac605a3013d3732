"""
Typed exceptions raised by the sync engine.

Responsibility: Domain error types shared across adapters and services
"""

from typing import Any, Dict, Optional


class CongressSyncError(Exception):
    """Base for all sync engine errors."""

    def __init__(self, message: str, context: Optional[Dict[str, Any]] = None):
        self.message = message
        self.context = context or {}
        super().__init__(message)


class CongressApiError(CongressSyncError):
    """
    Error response (or transport failure) from the Congress.gov API.

    The HTTP status is folded into the message so the classifier's
    message table sees it ("Congress.gov API error 429: ...").
    """

    def __init__(
        self,
        status_code: int,
        message: str,
        detail: Optional[str] = None,
        url: Optional[str] = None,
        retry_after: Optional[float] = None,
    ):
        self.status_code = status_code
        self.detail = detail
        self.url = url
        self.retry_after = retry_after
        super().__init__(
            f"Congress.gov API error {status_code}: {message}",
            context={"status_code": status_code, "url": url, "detail": detail},
        )


class SyncStateError(CongressSyncError):
    """Illegal lifecycle transition on a SyncRun or SyncJob."""
