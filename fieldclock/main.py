from __future__ import annotations

from fastapi import FastAPI

from fieldclock.api.deps import get_session_service
from fieldclock.api.v1.router import router as api_v1_router
from fieldclock.config.logging import get_logger, setup_logging
from fieldclock.config.settings import settings
from fieldclock.db.init_db import init_db

logger = get_logger(__name__)


def create_app() -> FastAPI:
    """
    Application factory for the FastAPI app.

    - Configures title, version, debug mode from Settings.
    - Includes the versioned API router under /api/v1.
    - Restarts geofence monitoring for sessions left open by a previous
      process and stops every monitor on shutdown.
    """
    setup_logging()

    app = FastAPI(
        title=settings.APP_NAME,
        debug=settings.DEBUG,
        version=settings.API_VERSION,
        docs_url="/docs",
        redoc_url="/redoc",
        openapi_url="/openapi.json",
    )

    app.include_router(api_v1_router, prefix=settings.API_V1_STR)

    @app.get("/health", tags=["Health"])
    def health() -> dict:
        return {"status": "ok", "environment": settings.ENVIRONMENT}

    @app.on_event("startup")
    async def on_startup() -> None:
        if settings.ENVIRONMENT != "production":
            # Production schemas are managed outside the app
            init_db()
        get_session_service().restore_monitoring()
        logger.info(f"{settings.APP_NAME} started", extra={"environment": settings.ENVIRONMENT})

    @app.on_event("shutdown")
    async def on_shutdown() -> None:
        get_session_service().shutdown()

    return app


app = create_app()
