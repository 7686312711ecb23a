"""
Session Resilience SDK - client-side session lifecycle, retry and recovery.

This package owns the single authenticated backend client of an application
and keeps its session usable:
- One lazily constructed client per process, with diagnostics and reset
- Bounded retry with exponential backoff, driven by an error taxonomy
- Detection of corrupted or expired credential tokens
- Recovery that wipes stored credentials, signs out, notifies subscribers
  and optionally restarts the process
"""

__version__ = "0.1.0"

from .api.runtime import SessionRuntime
from .client import ClientHandle, ClientRegistry
from .config import ClientConfig, TimeoutPolicy, session_storage_keys
from .errors import (
    AuthApiError,
    BackendError,
    ConfigurationError,
    SessionDecodeError,
    SessionResilienceError,
)
from .models import RecoveryAction, RecoveryEvent, Session, SessionState
from .recovery import (
    RecoveryEventBus,
    RecoveryMonitor,
    RecoveryOrchestrator,
    SessionValidator,
)
from .reliability import (
    ErrorClassification,
    ErrorClassifier,
    ErrorKind,
    RequestRetrier,
    RetryPolicy,
    TokenErrorDetector,
    is_token_error,
    retry,
)
from .storage import (
    JsonFileStorageBackend,
    MemoryStorageBackend,
    PersistentKeyValueStore,
)

__all__ = [
    # Composition root
    "SessionRuntime",

    # Client
    "ClientHandle",
    "ClientRegistry",
    "ClientConfig",
    "TimeoutPolicy",
    "session_storage_keys",

    # Reliability
    "ErrorClassification",
    "ErrorClassifier",
    "ErrorKind",
    "RequestRetrier",
    "RetryPolicy",
    "TokenErrorDetector",
    "is_token_error",
    "retry",

    # Recovery
    "RecoveryEventBus",
    "RecoveryMonitor",
    "RecoveryOrchestrator",
    "SessionValidator",

    # Storage
    "JsonFileStorageBackend",
    "MemoryStorageBackend",
    "PersistentKeyValueStore",

    # Models
    "RecoveryAction",
    "RecoveryEvent",
    "Session",
    "SessionState",

    # Errors
    "AuthApiError",
    "BackendError",
    "ConfigurationError",
    "SessionDecodeError",
    "SessionResilienceError",
]
