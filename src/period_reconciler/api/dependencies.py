"""FastAPI dependencies for dependency injection."""

from collections.abc import AsyncGenerator
from typing import Annotated
from uuid import UUID

from fastapi import Depends, Header, HTTPException, status
from sqlalchemy.ext.asyncio import AsyncSession

from period_reconciler.config import Settings, get_settings
from period_reconciler.database import async_session_factory
from period_reconciler.services import PeriodReconciliationService, SqlPeriodStore


async def get_db_session() -> AsyncGenerator[AsyncSession, None]:
    """Get database session dependency."""
    async with async_session_factory() as session:
        try:
            yield session
        finally:
            await session.close()


def _parse_company_id(value: str) -> UUID:
    try:
        return UUID(value)
    except ValueError:
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail="Invalid X-Company-ID format",
        )


async def get_company_id(
    x_company_id: Annotated[str | None, Header()] = None
) -> UUID:
    """Extract company ID from header."""
    if not x_company_id:
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail="X-Company-ID header is required",
        )
    return _parse_company_id(x_company_id)


async def get_optional_company_id(
    x_company_id: Annotated[str | None, Header()] = None
) -> UUID | None:
    """Company ID from header, None when absent."""
    if not x_company_id:
        return None
    return _parse_company_id(x_company_id)


def get_reconciliation_service(
    db: Annotated[AsyncSession, Depends(get_db_session)],
    settings: Annotated[Settings, Depends(get_settings)],
) -> PeriodReconciliationService:
    """Reconciliation facade bound to the request's session."""
    store = SqlPeriodStore(db, settings.default_periodicity)
    return PeriodReconciliationService(store, settings=settings)


# Type aliases for cleaner dependency injection
DbSession = Annotated[AsyncSession, Depends(get_db_session)]
CompanyId = Annotated[UUID, Depends(get_company_id)]
OptionalCompanyId = Annotated[UUID | None, Depends(get_optional_company_id)]
Reconciliation = Annotated[PeriodReconciliationService, Depends(get_reconciliation_service)]
