"""Public API for the session resilience layer."""

from .runtime import SessionRuntime

__all__ = ["SessionRuntime"]
