import time
from typing import Any, Dict, Optional

from pydantic import BaseModel, ConfigDict, Field, model_validator

from ..config.constants import SESSION_EXPIRY_WARNING_SECONDS


class Session(BaseModel):
    """Session blob as issued by the backend and persisted by the client handle."""
    access_token: str = Field(..., min_length=1)
    refresh_token: Optional[str] = None
    expires_at: Optional[int] = Field(None, description="Expiry as epoch seconds")
    token_type: str = "bearer"
    user: Optional[Dict[str, Any]] = None

    model_config = ConfigDict(extra="ignore")

    @classmethod
    def from_payload(cls, payload: Dict[str, Any], now: Optional[float] = None) -> "Session":
        """Build a session from a token endpoint response."""
        data = dict(payload)
        if data.get("expires_at") is None and data.get("expires_in") is not None:
            now = time.time() if now is None else now
            data["expires_at"] = int(now) + int(data["expires_in"])
        return cls(**data)

    def seconds_to_expiry(self, now: Optional[float] = None) -> Optional[int]:
        if self.expires_at is None:
            return None
        now = time.time() if now is None else now
        return self.expires_at - int(now)


class SessionState(BaseModel):
    """
    Result of validating the current session.

    ``present=False`` means there is no session, which is a normal state.
    A failure to read the session is never reported through this model.
    """
    present: bool
    expires_at: Optional[int] = None
    seconds_to_expiry: Optional[int] = None
    expiring_soon: bool = False

    @model_validator(mode="after")
    def check_absent_has_no_expiry(self):
        if not self.present and (self.expires_at is not None or self.seconds_to_expiry is not None):
            raise ValueError("an absent session cannot carry expiry information")
        return self

    @classmethod
    def absent(cls) -> "SessionState":
        return cls(present=False)

    @classmethod
    def from_session(
        cls,
        session: Session,
        now: Optional[float] = None,
        warning_seconds: int = SESSION_EXPIRY_WARNING_SECONDS
    ) -> "SessionState":
        remaining = session.seconds_to_expiry(now)
        return cls(
            present=True,
            expires_at=session.expires_at,
            seconds_to_expiry=remaining,
            expiring_soon=remaining is not None and remaining < warning_seconds
        )
