"""
Health check endpoint.

GET /health - checks MongoDB connectivity and email configuration.
Rules:
- MongoDB failure → "unhealthy" (503); the credential store backs every request.
- Email not configured → "degraded" (200).
"""

from __future__ import annotations

from fastapi import APIRouter, Request
from fastapi.responses import JSONResponse

from schemas.dto.responses.common import HealthResponse

router = APIRouter(tags=["health"])


@router.get("/health", response_model=HealthResponse)
async def health_check(request: Request) -> JSONResponse:
    checks: dict[str, str] = {}
    overall = "healthy"

    try:
        db = request.app.state.db
        await db.client.admin.command("ping")
        checks["mongodb"] = "ok"
    except Exception:
        checks["mongodb"] = "error"
        overall = "unhealthy"

    # Without email, password reset and verification cannot complete
    if request.app.state.settings.email.zepto_api_token:
        checks["email"] = "ok"
    else:
        checks["email"] = "not_configured"
        if overall == "healthy":
            overall = "degraded"

    status_code = 503 if overall == "unhealthy" else 200
    return JSONResponse(
        status_code=status_code,
        content=HealthResponse(status=overall, checks=checks).model_dump(),
    )
