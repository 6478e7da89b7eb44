"""Health check endpoints.

Liveness (/health) only reports that the process is serving. Readiness
(/health/ready) also checks that the hosted backend's auth API answers.
"""

from __future__ import annotations

import httpx
from fastapi import APIRouter, status
from fastapi.responses import JSONResponse

from src.crm.config import get_settings

router = APIRouter(tags=["health"])


@router.get("/health")
async def health_check():
    """Basic liveness check. No external dependencies are checked."""
    settings = get_settings()
    return {"status": "ok", "environment": settings.ENVIRONMENT.value}


@router.get("/health/ready")
async def readiness_check():
    """Readiness: 200 when the backend health endpoint answers, 503 otherwise."""
    settings = get_settings()
    checks: dict = {"backend": "ok"}
    try:
        async with httpx.AsyncClient(
            headers={"apikey": settings.SUPABASE_ANON_KEY},
            timeout=settings.BACKEND_TIMEOUT_READ,
        ) as client:
            response = await client.get(f"{settings.auth_url}/health")
        if response.is_error:
            checks["backend"] = "error"
            checks["backend_error"] = f"HTTP {response.status_code}"
    except httpx.HTTPError as e:
        checks["backend"] = "error"
        checks["backend_error"] = str(e)

    healthy = checks["backend"] == "ok"
    return JSONResponse(
        status_code=status.HTTP_200_OK if healthy else status.HTTP_503_SERVICE_UNAVAILABLE,
        content={"status": "ready" if healthy else "degraded", "checks": checks},
    )
