"""Health check endpoint."""

from datetime import datetime, timezone
from typing import Any

from fastapi import APIRouter

from eventbook import __version__

router = APIRouter(tags=["health"])


@router.get("/ping", summary="Health check")
async def ping() -> dict[str, Any]:
    """Liveness probe for the load balancer and API Gateway."""
    return {
        "status": "ok",
        "timestamp": datetime.now(timezone.utc).isoformat(),
        "service": "eventbook-api",
        "version": __version__,
    }
