"""Client configuration models."""

import os
from typing import Optional

from dotenv import load_dotenv
from pydantic import BaseModel, Field, field_validator

from ..errors import ConfigurationError
from .constants import (
    BACKEND_API_KEY_ENV_VAR,
    BACKEND_URL_ENV_VAR,
    DEFAULT_STORAGE_NAMESPACE,
    STORAGE_NAMESPACE_ENV_VAR,
    client_storage_key,
)


class TimeoutPolicy(BaseModel):
    """Per-operation request timeouts in seconds."""
    auth: float = Field(default=15.0, gt=0, description="Auth endpoints")
    realtime: float = Field(default=5.0, gt=0, description="Realtime endpoints")
    storage: float = Field(default=45.0, gt=0, description="File storage uploads")
    default: float = Field(default=30.0, gt=0, description="Database and everything else")

    def for_path(self, path: str) -> float:
        """Pick the timeout for a request path."""
        if "/auth/" in path:
            return self.auth
        if "/realtime" in path:
            return self.realtime
        if "/storage/" in path:
            return self.storage
        return self.default


class ClientConfig(BaseModel):
    """
    Configuration for the authenticated backend client.

    The storage namespace prefixes every session key written by the client
    and every key cleared during recovery.
    """
    endpoint: str = Field(..., description="Backend base URL")
    api_key: Optional[str] = Field(None, description="Public (anon) API key")
    storage_namespace: str = Field(default=DEFAULT_STORAGE_NAMESPACE, min_length=1)
    timeouts: TimeoutPolicy = Field(default_factory=TimeoutPolicy)
    refresh_margin: float = Field(
        default=60.0,
        ge=0,
        description="Refresh the session when it expires within this many seconds"
    )

    @field_validator('endpoint')
    def validate_endpoint(cls, v):
        v = v.strip().rstrip("/")
        if not v.startswith(("http://", "https://")):
            raise ValueError("endpoint must be an http(s) URL")
        return v

    @property
    def storage_key(self) -> str:
        return client_storage_key(self.storage_namespace)

    @classmethod
    def from_env(cls, env_file: Optional[str] = None) -> "ClientConfig":
        """
        Build configuration from environment variables.

        Loads a ``.env`` file first (without overriding variables that are
        already set).

        Raises:
            ConfigurationError: If the backend URL is not configured
        """
        load_dotenv(env_file)

        endpoint = os.getenv(BACKEND_URL_ENV_VAR)
        if not endpoint:
            raise ConfigurationError(
                f"{BACKEND_URL_ENV_VAR} is not set; cannot configure the backend client"
            )

        return cls(
            endpoint=endpoint,
            api_key=os.getenv(BACKEND_API_KEY_ENV_VAR),
            storage_namespace=os.getenv(STORAGE_NAMESPACE_ENV_VAR) or DEFAULT_STORAGE_NAMESPACE
        )
