"""API routes."""

from period_reconciler.api.routes.health import router as health_router
from period_reconciler.api.routes.periods import router as periods_router

__all__ = ["health_router", "periods_router"]
