"""Logging helpers shared by the session resilience components."""

from .logging import ComponentLogger, describe_error

__all__ = ["ComponentLogger", "describe_error"]
