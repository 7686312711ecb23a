"""
Structured logging utility for session components.

This module provides a consistent logging interface for the registry, retrier
and recovery components, prefixing every record with standard fields such as
the component name, recovery context and operation id.
"""

import logging
import time
import uuid
from contextlib import contextmanager
from typing import Any, Dict, Iterator, Optional


class ComponentLogger:
    """Structured logger for a session resilience component."""

    def __init__(self, component: str):
        """
        Initialize logger for a specific component.

        Args:
            component: Name of the component (e.g., "registry", "recovery")
        """
        self.component = component
        self.logger = logging.getLogger(f"session_resilience.{component}")

    def _format_message(self, message: str, **kwargs) -> str:
        """Prefix the message with non-empty fields."""
        fields = [f"component={self.component}"]

        for key, value in kwargs.items():
            if value is not None:
                fields.append(f"{key}={value}")

        return f"[{' '.join(fields)}] {message}"

    def debug(self, message: str, context: Optional[str] = None, **kwargs):
        self.logger.debug(self._format_message(message, context=context, **kwargs))

    def info(self, message: str, context: Optional[str] = None, **kwargs):
        self.logger.info(self._format_message(message, context=context, **kwargs))

    def warning(self, message: str, context: Optional[str] = None,
                error: Optional[BaseException] = None, **kwargs):
        if error is not None:
            kwargs['error_type'] = type(error).__name__
            kwargs['error_msg'] = describe_error(error)
        self.logger.warning(self._format_message(message, context=context, **kwargs))

    def error(self, message: str, context: Optional[str] = None,
              error: Optional[BaseException] = None, **kwargs):
        if error is not None:
            kwargs['error_type'] = type(error).__name__
            kwargs['error_msg'] = describe_error(error)
        self.logger.error(self._format_message(message, context=context, **kwargs))

    @contextmanager
    def track_operation(self, operation: str, context: Optional[str] = None,
                        operation_id: Optional[str] = None) -> Iterator[Dict[str, Any]]:
        """
        Context manager to time an operation and log its outcome.

        Args:
            operation: The operation being run (e.g., "sign_out", "recover")
            context: Optional call-site context
            operation_id: Optional id (generated if not provided)

        Yields:
            Dict with operation metadata including operation_id
        """
        if operation_id is None:
            operation_id = str(uuid.uuid4())[:8]

        start_time = time.time()
        self.debug(f"Starting {operation}", context=context, operation_id=operation_id)

        metadata = {
            'operation_id': operation_id,
            'operation': operation,
            'context': context,
            'start_time': start_time
        }

        try:
            yield metadata

            duration = time.time() - start_time
            self.info(
                f"Completed {operation}",
                context=context,
                operation_id=operation_id,
                duration_ms=int(duration * 1000)
            )

        except Exception as e:
            duration = time.time() - start_time
            self.error(
                f"Failed {operation}",
                context=context,
                operation_id=operation_id,
                duration_ms=int(duration * 1000),
                error=e
            )
            raise


def describe_error(error: Any) -> str:
    """Best-effort message for an arbitrary error object."""
    try:
        message = getattr(error, 'message', None)
    except Exception:
        message = None
    if isinstance(message, str) and message:
        return message
    try:
        return str(error)
    except Exception:
        return type(error).__name__
