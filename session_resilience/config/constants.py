"""
Session storage keys and runtime defaults.

Central location for every storage key that holds session material. Recovery
clears exactly the keys enumerated here (plus the namespaced sweep described
in ``SESSION_KEY_MARKERS``), so coverage can be audited in one place.
"""

from typing import Tuple

DEFAULT_STORAGE_NAMESPACE = "healthscan"

# Sent as X-Client-Info on every backend request
CLIENT_INFO = "session-resilience-python/0.1.0"

# Every key written by the client handle starts with namespace + this prefix
CLIENT_STORAGE_PREFIX = "-auth-"

# Keys derived from the namespace; ``{ns}`` is replaced at runtime
SESSION_KEY_TEMPLATES = (
    "{ns}-auth-token",          # session blob written by the client handle
    "{ns}_auth_token",          # access token cached by callers
    "{ns}_refresh_token",       # refresh token cached by callers
    "{ns}_session",             # serialized session snapshot
    "{ns}_user_data",           # cached user profile
    "{ns}_needs_confirmation",  # stale email confirmation flag
    "{ns}_email_confirmed",     # stale email confirmation flag
)

# Any other key under the namespace containing one of these is also swept
SESSION_KEY_MARKERS = ("auth", "token", "session")

# Seconds before expiry at which a session counts as expiring soon
SESSION_EXPIRY_WARNING_SECONDS = 300

# Recovery contexts that always restart the process
RESTART_CONTEXTS = frozenset({"initialization"})

DEFAULT_RESTART_DELAY = 1.0
FALLBACK_RESTART_DELAY = 0.5

# Environment variables read by ClientConfig.from_env and the CLI
BACKEND_URL_ENV_VAR = "SESSION_BACKEND_URL"
BACKEND_API_KEY_ENV_VAR = "SESSION_BACKEND_API_KEY"
STORAGE_NAMESPACE_ENV_VAR = "SESSION_STORAGE_NAMESPACE"
STORAGE_PATH_ENV_VAR = "SESSION_STORAGE_PATH"

DEFAULT_STORAGE_PATH = "~/.session_resilience/storage.json"


def client_storage_prefix(namespace: str) -> str:
    return f"{namespace}{CLIENT_STORAGE_PREFIX}"


def client_storage_key(namespace: str) -> str:
    """Key under which the client handle persists its session blob."""
    return f"{client_storage_prefix(namespace)}token"


def session_storage_keys(namespace: str = DEFAULT_STORAGE_NAMESPACE) -> Tuple[str, ...]:
    """Enumerate every session-related storage key for a namespace."""
    return tuple(template.format(ns=namespace) for template in SESSION_KEY_TEMPLATES)


def is_namespaced_session_key(key: str, namespace: str) -> bool:
    """True for keys under ``namespace`` that look like session material."""
    if not key.startswith(namespace):
        return False
    lowered = key.lower()
    return any(marker in lowered for marker in SESSION_KEY_MARKERS)
