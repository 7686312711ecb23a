"""
Error classification for retry decisions.

This module maps any raised error (backend errors, httpx transport errors,
builtin OS errors, or plain dict-shaped error payloads) onto a fixed taxonomy.
The taxonomy alone decides whether the request retrier tries again.
"""

import re
from collections.abc import Mapping
from dataclasses import dataclass
from enum import Enum
from typing import Any, Dict, FrozenSet, List, Optional, Tuple

import httpx


class ErrorKind(Enum):
    """Fixed, exhaustive error taxonomy."""
    NETWORK = "network"
    TIMEOUT = "timeout"
    AUTH_EXPIRED = "auth_expired"
    VALIDATION_REJECTED = "validation_rejected"
    SERVER_FAULT = "server_fault"
    SERVICE_UNAVAILABLE = "service_unavailable"
    UNKNOWN = "unknown"


RETRYABLE_KINDS: FrozenSet[ErrorKind] = frozenset({
    ErrorKind.NETWORK,
    ErrorKind.TIMEOUT,
    ErrorKind.SERVER_FAULT,
    ErrorKind.SERVICE_UNAVAILABLE,
})

USER_MESSAGES: Dict[ErrorKind, str] = {
    ErrorKind.NETWORK: "Network connection issue, check your connection and try again",
    ErrorKind.TIMEOUT: "Request timed out or was cancelled",
    ErrorKind.AUTH_EXPIRED: "Authentication session expired, please sign in again",
    ErrorKind.VALIDATION_REJECTED: "Request was rejected by the server",
    ErrorKind.SERVER_FAULT: "Server error, please try again in a few moments",
    ErrorKind.SERVICE_UNAVAILABLE: "Service temporarily unavailable, please try again later",
    ErrorKind.UNKNOWN: "An unknown error occurred",
}


@dataclass(frozen=True)
class ErrorClassification:
    """Result of classifying one error."""
    kind: ErrorKind
    retryable: bool
    status: Optional[int] = None
    user_message: Optional[str] = None

    @classmethod
    def for_kind(cls, kind: ErrorKind, status: Optional[int] = None) -> "ErrorClassification":
        return cls(
            kind=kind,
            retryable=kind in RETRYABLE_KINDS,
            status=status,
            user_message=USER_MESSAGES[kind]
        )


class ErrorClassifier:
    """Pure, total error classifier."""

    # Error patterns for string matching, checked in rule order
    ERROR_PATTERNS: Dict[ErrorKind, Tuple[str, ...]] = {
        ErrorKind.NETWORK: ('failed to fetch', 'network error', 'connection refused',
                            'connection error', 'connection reset', 'networkerror'),
        ErrorKind.TIMEOUT: ('timed out', 'timeout', 'aborted'),
        ErrorKind.SERVER_FAULT: ('internal server error', 'internal error'),
        ErrorKind.SERVICE_UNAVAILABLE: ('service unavailable', 'unavailable'),
        ErrorKind.VALIDATION_REJECTED: ('already exists', 'already registered',
                                        'invalid credentials', 'invalid login credentials',
                                        'user not found'),
        ErrorKind.AUTH_EXPIRED: ('jwt', 'session expired', 'token expired',
                                 'refresh token', 'invalid session token'),
    }

    SERVER_FAULT_STATUS_CODES: FrozenSet[int] = frozenset({500, 502})
    UNAVAILABLE_STATUS_CODES: FrozenSet[int] = frozenset({503, 504, 429})
    VALIDATION_STATUS_CODES: FrozenSet[int] = frozenset({400, 409, 422})
    AUTH_STATUS_CODES: FrozenSet[int] = frozenset({401, 403})
    LISTED_CLIENT_STATUS_CODES: FrozenSet[int] = \
        VALIDATION_STATUS_CODES | AUTH_STATUS_CODES | frozenset({429})

    TIMEOUT_ERROR_NAMES: FrozenSet[str] = frozenset({'AbortError', 'TimeoutError'})

    _HTTP_STATUS_RE = re.compile(r'\bhttp\s*(\d{3})\b')

    @classmethod
    def classify(cls, error: Any) -> ErrorClassification:
        """
        Classify an error.

        Args:
            error: Any exception, dict-shaped error payload, or None

        Returns:
            ErrorClassification; UNKNOWN (not retryable) when nothing matches
        """
        text = error_text(error).lower()
        status = extract_status(error)
        if status is None:
            match = cls._HTTP_STATUS_RE.search(text)
            if match:
                status = int(match.group(1))

        # Client errors outside the listed codes fail closed
        if status is not None and 400 <= status < 500 and \
                status not in cls.LISTED_CLIENT_STATUS_CODES:
            return ErrorClassification.for_kind(ErrorKind.UNKNOWN, status)

        # 1. Network
        if isinstance(error, (httpx.NetworkError, ConnectionError)) or \
                cls._matches(text, ErrorKind.NETWORK):
            return ErrorClassification.for_kind(ErrorKind.NETWORK, status)

        # 2. Abort / timeout
        if isinstance(error, (httpx.TimeoutException, TimeoutError)) or \
                error_name(error) in cls.TIMEOUT_ERROR_NAMES or \
                cls._matches(text, ErrorKind.TIMEOUT):
            return ErrorClassification.for_kind(ErrorKind.TIMEOUT, status)

        # 3. Server side
        if status in cls.SERVER_FAULT_STATUS_CODES:
            return ErrorClassification.for_kind(ErrorKind.SERVER_FAULT, status)
        if status in cls.UNAVAILABLE_STATUS_CODES:
            return ErrorClassification.for_kind(ErrorKind.SERVICE_UNAVAILABLE, status)
        if status is None or status >= 500:
            if cls._matches(text, ErrorKind.SERVER_FAULT):
                return ErrorClassification.for_kind(ErrorKind.SERVER_FAULT, status)
            if cls._matches(text, ErrorKind.SERVICE_UNAVAILABLE):
                return ErrorClassification.for_kind(ErrorKind.SERVICE_UNAVAILABLE, status)

        # 4. Validation (expected responses, never retried)
        if status in cls.VALIDATION_STATUS_CODES or \
                cls._matches(text, ErrorKind.VALIDATION_REJECTED):
            return ErrorClassification.for_kind(ErrorKind.VALIDATION_REJECTED, status)

        # 5. Auth / expired session
        if status in cls.AUTH_STATUS_CODES or cls._matches(text, ErrorKind.AUTH_EXPIRED):
            return ErrorClassification.for_kind(ErrorKind.AUTH_EXPIRED, status)

        return ErrorClassification.for_kind(ErrorKind.UNKNOWN, status)

    @classmethod
    def is_retryable(cls, error: Any) -> bool:
        return cls.classify(error).retryable

    @classmethod
    def _matches(cls, text: str, kind: ErrorKind) -> bool:
        return any(pattern in text for pattern in cls.ERROR_PATTERNS[kind])


def _safe_attr(obj: Any, name: str) -> Any:
    """Read an attribute, treating a raising property as absent."""
    try:
        return getattr(obj, name, None)
    except Exception:
        return None


def _field(error: Any, name: str) -> Any:
    if isinstance(error, Mapping):
        try:
            return error.get(name)
        except Exception:
            return None
    return _safe_attr(error, name)


def extract_status(error: Any) -> Optional[int]:
    """Extract an HTTP status code from an error or error payload."""
    if error is None:
        return None

    candidates: List[Any] = [_field(error, 'status'), _field(error, 'status_code')]
    if not isinstance(error, Mapping):
        response = _safe_attr(error, 'response')
        if response is not None:
            candidates.append(_safe_attr(response, 'status_code'))

    for candidate in candidates:
        if isinstance(candidate, int) and not isinstance(candidate, bool):
            return candidate
        if isinstance(candidate, str) and candidate.isdigit():
            return int(candidate)
    return None


def error_name(error: Any) -> str:
    """Error name, honouring an explicit ``name`` field on payloads."""
    if isinstance(error, Mapping):
        name = _field(error, 'name')
        return name if isinstance(name, str) else type(error).__name__
    return type(error).__name__


_MESSAGE_FIELDS = ('message', 'error_description', 'error', 'msg')


def _message_fields(source: Any) -> List[str]:
    parts: List[str] = []
    for field_name in _MESSAGE_FIELDS:
        value = _field(source, field_name)
        if isinstance(value, str) and value and value not in parts:
            parts.append(value)
    return parts


def _response_body_text(response: Any) -> List[str]:
    """Message fields from a response body; the request URL is never included."""
    json_body = _safe_attr(response, 'json')
    if callable(json_body):
        try:
            body = json_body()
        except Exception:
            body = None
        if isinstance(body, Mapping):
            return _message_fields(body)
        if isinstance(body, str) and body:
            return [body]
        return []
    text = _safe_attr(response, 'text')
    return [text] if isinstance(text, str) and text else []


def error_text(error: Any) -> str:
    """
    Collect the human-readable text of an error.

    Reads ``message``, ``error_description``, ``error`` and ``msg`` fields
    (attributes or mapping keys). An error carrying a ``response`` falls back
    to the response body; any other error falls back to ``str(error)``.
    Never raises.
    """
    if error is None:
        return ""

    parts = _message_fields(error)

    if not parts and not isinstance(error, Mapping):
        response = _safe_attr(error, 'response')
        if response is not None:
            parts = _response_body_text(response)
        else:
            try:
                rendered = str(error)
            except Exception:
                rendered = ""
            if rendered:
                parts.append(rendered)

    if not parts:
        parts.append(type(error).__name__)

    return " ".join(parts)
