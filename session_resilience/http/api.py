"""FastAPI endpoints exposing the session debug surface.

Mount the router returned by ``create_router`` on an application to inspect
the client registry, validate the stored session and trigger a reset or a
recovery run.
"""

from typing import Any, Dict

from fastapi import APIRouter, HTTPException
from pydantic import BaseModel, Field

from ..api.runtime import SessionRuntime
from ..errors import SessionResilienceError
from ..observability.logging import describe_error


class RecoverRequest(BaseModel):
    """Body of a manual recovery request."""
    context: str = Field(default="manual", min_length=1)
    reason: str = Field(default="Manual recovery requested")
    force_restart: bool = False


def create_router(runtime: SessionRuntime) -> APIRouter:
    """Build the session debug router bound to one runtime."""
    router = APIRouter(prefix="/session")

    @router.get("/diagnostics")
    async def session_diagnostics() -> Dict[str, Any]:
        return runtime.diagnostics()

    @router.get("/validate")
    async def session_validate() -> Dict[str, Any]:
        try:
            state = await runtime.validate_session()
        except Exception as e:
            if runtime.is_token_error(e):
                await runtime.recover(e, "http-validate")
                raise HTTPException(status_code=401, detail=describe_error(e))
            classification = runtime.classify(e)
            raise HTTPException(
                status_code=503 if classification.retryable else 500,
                detail=describe_error(e)
            )
        return state.model_dump()

    @router.post("/reset")
    async def session_reset() -> Dict[str, Any]:
        runtime.reset_client()
        return runtime.diagnostics()

    @router.post("/recover")
    async def session_recover(request: RecoverRequest) -> Dict[str, Any]:
        error = SessionResilienceError(request.reason)
        await runtime.recover(error, request.context, request.force_restart)
        return {"recovered": True, "context": request.context}

    return router
