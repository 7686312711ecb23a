"""
Exception types raised by the session resilience layer.

Backend failures keep their HTTP status and any structured details so that
callers (and the error classifier) can branch on them after a retry loop
re-raises the original error.
"""

from typing import Any, Dict, Optional

import httpx


class SessionResilienceError(Exception):
    """Base exception for all errors raised by this package."""


class ConfigurationError(SessionResilienceError):
    """Raised when client configuration is missing or invalid."""


class BackendError(SessionResilienceError):
    """
    Error returned by the hosted backend.

    Attributes:
        message: Error message reported by the backend
        status: HTTP status code if applicable
        details: Parsed response body, if any
        error_type: Backend error code (e.g. "refresh_token_not_found")
    """

    def __init__(
        self,
        message: str,
        status: Optional[int] = None,
        details: Optional[Dict[str, Any]] = None,
        error_type: Optional[str] = None
    ):
        super().__init__(message)
        self.message = message
        self.status = status
        self.details = details
        self.error_type = error_type

    @property
    def status_code(self) -> Optional[int]:
        return self.status

    @classmethod
    def from_response(cls, response: httpx.Response) -> "BackendError":
        """
        Build an error from a non-2xx backend response.

        Args:
            response: The httpx response

        Returns:
            An instance of ``cls`` carrying status and parsed body
        """
        details: Optional[Dict[str, Any]] = None
        try:
            body = response.json()
            if isinstance(body, dict):
                details = body
        except ValueError:
            body = None

        message = None
        error_type = None
        if details:
            message = (
                details.get("message")
                or details.get("msg")
                or details.get("error_description")
                or details.get("error")
            )
            error_type = details.get("error_code") or details.get("error")
        if not message:
            message = f"HTTP {response.status_code}: {response.reason_phrase or 'error'}"

        return cls(
            str(message),
            status=response.status_code,
            details=details,
            error_type=error_type
        )

    def __repr__(self) -> str:
        return f"{type(self).__name__}(message={self.message!r}, status={self.status!r})"


class AuthApiError(BackendError):
    """Error returned by an auth endpoint (sign-in, refresh, sign-out)."""


class SessionDecodeError(AuthApiError):
    """Raised when the stored session blob cannot be decoded."""

    def __init__(self, key: str):
        super().__init__(
            f"Invalid session token: stored session under '{key}' could not be decoded",
            status=None,
            error_type="invalid_session_token"
        )
        self.key = key
