"""Health check endpoint."""

from fastapi import APIRouter, Request

router = APIRouter()


@router.get("/health")
def health_check(request: Request) -> dict[str, str]:
    """Return application and store health status."""
    store = getattr(request.app.state, "store", None)
    ping = getattr(store, "ping", None)
    if store is None:
        return {"status": "error", "store": "uninitialized"}
    if ping is None:
        return {"status": "ok", "store": "memory"}
    if ping():
        return {"status": "ok", "store": "connected"}
    return {"status": "error", "store": "disconnected"}
