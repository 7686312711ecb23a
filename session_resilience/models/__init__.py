from .events import RecoveryAction, RecoveryEvent
from .session import Session, SessionState

__all__ = ["RecoveryAction", "RecoveryEvent", "Session", "SessionState"]
