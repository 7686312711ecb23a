"""Event models for session recovery notifications."""

from dataclasses import dataclass, field
from datetime import datetime, timezone
from enum import Enum
from typing import Any, Dict, Tuple


class RecoveryAction(str, Enum):
    """Steps of a recovery run that completed."""
    TOKENS_CLEARED = "tokens_cleared"
    SIGNED_OUT = "signed_out"
    RESTART_SCHEDULED = "restart_scheduled"


@dataclass(frozen=True)
class RecoveryEvent:
    """Emitted once per recovery run; never persisted."""
    context: str
    original_error_message: str
    actions_taken: Tuple[RecoveryAction, ...] = ()
    timestamp: datetime = field(default_factory=lambda: datetime.now(timezone.utc))

    def has_action(self, action: RecoveryAction) -> bool:
        return action in self.actions_taken

    def to_dict(self) -> Dict[str, Any]:
        """Convert to dictionary for serialization."""
        return {
            "context": self.context,
            "original_error_message": self.original_error_message,
            "actions_taken": [action.value for action in self.actions_taken],
            "timestamp": self.timestamp.isoformat()
        }
