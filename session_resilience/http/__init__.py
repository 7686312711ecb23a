"""HTTP endpoints for the session resilience layer.

Requires FastAPI (installed with the package).
"""

from .api import RecoverRequest, create_router

__all__ = ["RecoverRequest", "create_router"]
