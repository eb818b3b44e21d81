"""
Health router.

GET /health   — liveness; pings the database when it is ready
GET /ready    — readiness gate; 503 until the store has initialized
"""
from datetime import datetime, timezone

from fastapi import APIRouter, Request
from fastapi.responses import JSONResponse

from checkin_tracker.core.config import settings
from checkin_tracker.core.errors import CheckinException

router = APIRouter(tags=["health"])


def _now() -> str:
    return datetime.now(tz=timezone.utc).isoformat()


@router.get("/health", summary="Health check")
def health(request: Request):
    """
    Returns `{"status": "healthy", "database": "ready"}` when the store answers
    `SELECT 1`. A store that is still initializing reports `initializing`;
    an unreachable database returns HTTP 503.
    """
    store = getattr(request.app.state, "store", None)
    if store is None or not store.is_ready:
        return {"status": "healthy", "database": "initializing", "timestamp": _now()}

    try:
        store.ping()
    except CheckinException as exc:
        return JSONResponse(
            status_code=503,
            content={
                "status": "unhealthy",
                "database": "error",
                "error": exc.message,
                "timestamp": _now(),
            },
        )
    return {"status": "healthy", "database": "ready", "env": settings.APP_ENV, "timestamp": _now()}


@router.get("/ready", summary="Readiness check")
def ready(request: Request):
    store = getattr(request.app.state, "store", None)
    if store is None or not store.is_ready:
        return JSONResponse(status_code=503, content={"ready": False, "timestamp": _now()})
    return {"ready": True, "backend": store.backend_name, "timestamp": _now()}
