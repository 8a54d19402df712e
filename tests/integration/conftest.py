"""API test fixtures over the in-memory SQLite ledger."""

from collections.abc import AsyncGenerator

import pytest
import pytest_asyncio
from httpx import ASGITransport, AsyncClient
from sqlalchemy.ext.asyncio import AsyncSession

from period_reconciler.api.app import create_app
from period_reconciler.api.dependencies import get_db_session
from period_reconciler.config import get_settings
from tests.fakes import TEST_SETTINGS


@pytest_asyncio.fixture
async def client(session: AsyncSession) -> AsyncGenerator[AsyncClient, None]:
    """Async HTTP client bound to the test session."""
    app = create_app()

    async def _session_override() -> AsyncGenerator[AsyncSession, None]:
        yield session

    app.dependency_overrides[get_db_session] = _session_override
    app.dependency_overrides[get_settings] = lambda: TEST_SETTINGS

    transport = ASGITransport(app=app)
    async with AsyncClient(transport=transport, base_url="http://test") as client:
        yield client

    app.dependency_overrides.clear()


@pytest.fixture
def headers(company_id):
    return {"X-Company-ID": str(company_id)}
