"""Health check endpoints."""

import logging
from datetime import datetime, timezone

from fastapi import APIRouter, Request
from pydantic import BaseModel
from sqlalchemy import text
from sqlalchemy.exc import SQLAlchemyError

from ftms_payroll.api.dependencies import AppSettings, DbSession

logger = logging.getLogger(__name__)

router = APIRouter(tags=["health"])


class HealthResponse(BaseModel):
    """Service health, including the notification backlog."""

    status: str
    timestamp: datetime
    database: str
    hr_source: str
    outbound_pending: int


@router.get("/health", response_model=HealthResponse)
async def health_check(request: Request, db: DbSession, settings: AppSettings) -> HealthResponse:
    """Ping the database and report in-flight outbound notifications."""
    try:
        await db.execute(text("SELECT 1"))
        database = "healthy"
    except SQLAlchemyError:
        logger.warning("Database health check failed", exc_info=True)
        database = "unhealthy"

    return HealthResponse(
        status="healthy" if database == "healthy" else "degraded",
        timestamp=datetime.now(timezone.utc),
        database=database,
        hr_source=settings.hr_source,
        outbound_pending=request.app.state.dispatcher.pending,
    )


@router.get("/ready")
async def readiness_check() -> dict[str, str]:
    return {"status": "ready"}


@router.get("/live")
async def liveness_check() -> dict[str, str]:
    return {"status": "alive"}
