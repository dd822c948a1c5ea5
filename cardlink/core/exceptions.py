"""
Custom exceptions for CardLink.

Provides a hierarchy of exceptions so callers can react to each failure class.
"""

from typing import Any, Dict, Optional


class CardLinkError(Exception):
    """Base exception for all CardLink errors."""

    def __init__(self, message: str, details: Optional[Dict[str, Any]] = None):
        super().__init__(message)
        self.message = message
        self.details = details or {}


class ConfigurationError(CardLinkError):
    """Raised when there are configuration issues."""

    pass


class StorageError(CardLinkError):
    """Key/value store read or write failures."""

    pass


class ApiError(CardLinkError):
    """
    Backend request failure.

    ``status`` is 0 when no response was received.
    """

    def __init__(
        self,
        message: str,
        status: int = 0,
        url: Optional[str] = None,
        body: Any = None,
        **kwargs,
    ):
        super().__init__(message, **kwargs)
        self.status = status
        self.url = url
        self.body = body
        self.attempts = 1


class ApiTimeoutError(ApiError):
    """
    The request timed out, usually because the server is waking up.

    ``connect_failed`` is set when the timeout hit before a connection existed.
    """

    def __init__(self, message: str, connect_failed: bool = False, **kwargs):
        super().__init__(message, **kwargs)
        self.connect_failed = connect_failed


class NetworkError(ApiError):
    """Connection or DNS level failure."""

    def __init__(self, message: str, connect_failed: bool = False, **kwargs):
        super().__init__(message, **kwargs)
        self.connect_failed = connect_failed


class AuthenticationError(ApiError):
    """HTTP 401."""

    pass


class NotFoundError(ApiError):
    """HTTP 404."""

    pass


class ServerError(ApiError):
    """HTTP 5xx."""

    pass


class UnexpectedResponseError(ServerError):
    """An HTML error page came back where JSON was expected."""

    pass


class ApiUnreachableError(ApiError):
    """All attempts were used up without a captured error."""

    pass


class WarmupError(CardLinkError):
    """Server warm-up health check failed."""

    pass
