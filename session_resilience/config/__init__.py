"""Configuration module for the session resilience layer."""

from .settings import ClientConfig, TimeoutPolicy

# Import all constants
from .constants import *

__all__ = [
    "ClientConfig",
    "TimeoutPolicy",
    "session_storage_keys",
    "client_storage_key",
]
