"""Reliability layer for error classification, token detection and retries.

This layer handles:
- Error classification into a fixed retry taxonomy
- Detection of corrupted or missing session tokens
- Bounded retry with exponential backoff and jitter
"""

from .error_classifier import (
    ErrorClassification,
    ErrorClassifier,
    ErrorKind,
    RETRYABLE_KINDS,
)
from .token_errors import TokenErrorDetector, TokenErrorSignal, is_token_error
from .retry import DEFAULT_RETRY_POLICY, RequestRetrier, RetryPolicy, RetryState, retry

__all__ = [
    "ErrorClassification",
    "ErrorClassifier",
    "ErrorKind",
    "RETRYABLE_KINDS",
    "TokenErrorDetector",
    "TokenErrorSignal",
    "is_token_error",
    "DEFAULT_RETRY_POLICY",
    "RequestRetrier",
    "RetryPolicy",
    "RetryState",
    "retry",
]
