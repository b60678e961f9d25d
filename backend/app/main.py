"""
FastAPI application factory.
"""

import logging
import time
from contextlib import asynccontextmanager
from datetime import datetime, timezone
from typing import Optional

from fastapi import FastAPI

from app.config import Settings, get_settings
from app.core.exceptions import register_exception_handlers
from app.core.middleware import setup_cors
from app.core.tokens import TokenService
from app.database import build_engine, build_session_factory, create_tables
from app.logging_config import setup_logging
from app.api.v1 import router as api_v1_router

log = logging.getLogger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Application lifespan: startup and shutdown logic."""
    settings: Settings = app.state.settings
    # ── Startup ──────────────────────────────────────────
    log.info("Starting %s v%s (%s)", settings.APP_NAME, settings.APP_VERSION, settings.APP_ENV)
    if settings.DB_CREATE_TABLES:
        await create_tables(app.state.engine)
        log.info("Database tables created")
    yield
    # ── Shutdown ─────────────────────────────────────────
    log.info("Shutting down")
    await app.state.engine.dispose()


def create_app(settings: Optional[Settings] = None) -> FastAPI:
    """Build and return the FastAPI application.

    All components read configuration from ``settings`` (injected, or the
    process-wide default).
    """
    settings = settings or get_settings()
    setup_logging(settings.LOG_LEVEL)

    app = FastAPI(
        title=settings.APP_NAME,
        version=settings.APP_VERSION,
        description="User management API with JWT authentication and role-based access control",
        lifespan=lifespan,
    )

    app.state.settings = settings
    app.state.started_at = time.monotonic()
    app.state.engine = build_engine(settings.DATABASE_URL, echo=settings.DB_ECHO)
    app.state.session_factory = build_session_factory(app.state.engine)
    app.state.token_service = TokenService.from_settings(settings)

    # Middleware
    setup_cors(app, settings)

    # Exception handlers
    register_exception_handlers(app, debug=not settings.is_production)

    # Routers
    app.include_router(api_v1_router, prefix="/api/v1")

    # Health check
    @app.get("/health", tags=["health"])
    async def health():
        return {
            "status": "ok",
            "timestamp": datetime.now(timezone.utc).isoformat(),
            "uptime": round(time.monotonic() - app.state.started_at, 3),
            "environment": settings.APP_ENV,
            "version": settings.APP_VERSION,
        }

    return app
