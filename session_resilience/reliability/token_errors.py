"""
Detection of corrupted or missing session credentials.

A positive match triggers destructive recovery (stored credentials are wiped),
so matching is explicit: a fixed list of phrases, or a 401 whose text mentions
a token. A bare 401 or any 404 never matches.
"""

from dataclasses import dataclass
from typing import Any, Optional, Tuple

from .error_classifier import error_text, extract_status

TOKEN_ERROR_PHRASES: Tuple[str, ...] = (
    'invalid refresh token',
    'refresh token not found',
    'refresh_token_not_found',
    'invalid_refresh_token',
    'jwt expired',
    'refresh token is invalid',
    'invalid session token',
    'session token expired',
)


@dataclass(frozen=True)
class TokenErrorSignal:
    """Whether an error signals token corruption, and the text it matched on."""
    is_token_error: bool
    message: str
    matched: Optional[str] = None

    def __bool__(self) -> bool:
        return self.is_token_error


class TokenErrorDetector:
    """Conservative predicate over raw errors."""

    PHRASES = TOKEN_ERROR_PHRASES

    @classmethod
    def inspect(cls, error: Any) -> TokenErrorSignal:
        if error is None:
            return TokenErrorSignal(False, "")

        message = error_text(error)
        lowered = message.lower()

        for phrase in cls.PHRASES:
            if phrase in lowered:
                return TokenErrorSignal(True, message, matched=phrase)

        if extract_status(error) == 401 and 'token' in lowered:
            return TokenErrorSignal(True, message, matched='401+token')

        return TokenErrorSignal(False, message)

    @classmethod
    def is_token_error(cls, error: Any) -> bool:
        return cls.inspect(error).is_token_error


def is_token_error(error: Any) -> bool:
    """True if ``error`` signals corrupted or missing session credentials."""
    return TokenErrorDetector.is_token_error(error)
