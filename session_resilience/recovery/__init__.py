"""Session validation, recovery orchestration and recovery notifications."""

from .events import RecoveryEventBus, RecoveryHandler
from .monitoring import RecoveryMonitor
from .orchestrator import RecoveryOrchestrator, RestartCallback
from .validator import SessionValidator

__all__ = [
    "RecoveryEventBus",
    "RecoveryHandler",
    "RecoveryMonitor",
    "RecoveryOrchestrator",
    "RestartCallback",
    "SessionValidator",
]
