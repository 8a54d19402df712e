"""Serve the reconciliation API: python -m period_reconciler"""

import uvicorn

from period_reconciler.config import get_settings


def main() -> None:
    settings = get_settings()
    uvicorn.run(
        "period_reconciler.api.app:app",
        host=settings.host,
        port=settings.port,
        reload=settings.debug,
        log_level=settings.log_level.lower(),
    )


if __name__ == "__main__":
    main()
