"""Health check endpoints."""

import logging
from datetime import datetime, timezone

from fastapi import APIRouter, Response, status
from pydantic import BaseModel
from sqlalchemy import func, select
from sqlalchemy.ext.asyncio import AsyncSession

from period_reconciler.api.dependencies import DbSession
from period_reconciler.config import get_settings
from period_reconciler.models import PayrollPeriod

logger = logging.getLogger(__name__)

router = APIRouter(tags=["health"])


class HealthResponse(BaseModel):
    """Health check response."""

    status: str
    timestamp: datetime
    database: str
    engine_version: str
    default_periodicity: str


async def _ledger_reachable(db: AsyncSession) -> bool:
    try:
        await db.execute(select(func.count()).select_from(PayrollPeriod))
    except Exception as e:
        logger.warning("Period ledger unreachable: %s", e)
        return False
    return True


@router.get("/health", response_model=HealthResponse)
async def health_check(db: DbSession) -> HealthResponse:
    """Report API health and whether the period ledger can be queried."""
    settings = get_settings()
    reachable = await _ledger_reachable(db)
    return HealthResponse(
        status="healthy" if reachable else "degraded",
        timestamp=datetime.now(timezone.utc),
        database="healthy" if reachable else "unhealthy",
        engine_version=settings.engine_version,
        default_periodicity=settings.default_periodicity,
    )


@router.get("/ready")
async def readiness_check(db: DbSession, response: Response) -> dict[str, str]:
    """Ready once the period ledger answers queries."""
    if not await _ledger_reachable(db):
        response.status_code = status.HTTP_503_SERVICE_UNAVAILABLE
        return {"status": "not_ready"}
    return {"status": "ready"}


@router.get("/live", status_code=status.HTTP_200_OK)
async def liveness_check() -> dict[str, str]:
    """Liveness check for container orchestration."""
    return {"status": "alive"}
