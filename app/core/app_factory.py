"""Application factory helpers to keep app/main.py lightweight."""

from __future__ import annotations

import logging
import os
from contextlib import asynccontextmanager

import orjson
from fastapi import Depends, FastAPI, HTTPException, status
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import ORJSONResponse
from sqlalchemy import text
from sqlalchemy.orm import Session

from app.api.router import api_router
from app.core.config import settings
from app.core.database import get_db
from app.core.error_handlers import register_exception_handlers
from app.core.logging_config import setup_logging
from app.core.middleware import LoggingMiddleware, add_language_header, limiter
from app.core.scheduling import start_scheduler, stop_scheduler
from app.i18n import ALL_LANGUAGES
from app.modules.notifications.push import init_push_gateway

logger = logging.getLogger(__name__)


def _configure_app(app: FastAPI) -> None:
    # Logs all requests and responses with timing
    app.add_middleware(LoggingMiddleware)

    origins = settings.cors_origins or ["*"]
    app.add_middleware(
        CORSMiddleware,
        allow_origins=origins,
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )

    app.middleware("http")(add_language_header)

    app.include_router(api_router)


def _register_routes(app: FastAPI) -> None:
    # Liveness Check (Is the app process running?)
    @app.get("/livez", tags=["Health"])
    async def livez():
        return {"status": "ok"}

    # Readiness Check (Is the database reachable?)
    @app.get("/readyz", tags=["Health"])
    async def readyz(db: Session = Depends(get_db)):
        health_status = {"database": "unknown", "push_gateway": "unknown"}
        is_ready = True

        try:
            db.execute(text("SELECT 1"))
            health_status["database"] = "connected"
        except Exception as e:
            logger.error(f"Readiness check failed (Database): {e}")
            health_status["database"] = "disconnected"
            is_ready = False

        # The gateway is only contacted on send; report whether the handle exists.
        gateway = getattr(app.state, "push_gateway", None)
        health_status["push_gateway"] = "initialised" if gateway else "not initialised"

        if not is_ready:
            raise HTTPException(
                status_code=status.HTTP_503_SERVICE_UNAVAILABLE, detail=health_status
            )

        return {"status": "ready", "details": health_status}

    @app.get("/languages", tags=["Health"])
    def get_available_languages():
        return ALL_LANGUAGES


def _lifespan_factory():
    @asynccontextmanager
    async def lifespan(app: FastAPI):
        # Startup
        app.state.push_gateway = init_push_gateway(settings)
        start_scheduler(app)

        yield

        # Shutdown
        stop_scheduler(app)
        await app.state.push_gateway.aclose()
        app.state.push_gateway = None

    return lifespan


def create_app() -> FastAPI:
    """
    Application Factory to create and configure the FastAPI application.
    Integrates Logging, Error Handling, Rate Limiting, and Middleware.
    """

    # Setup Logging System first
    setup_logging(
        log_level=getattr(settings, "log_level", "INFO"),
        log_dir=getattr(settings, "log_dir", "logs"),
        app_name="studio-notifications",
        max_bytes=10 * 1024 * 1024,  # 10 MB
        backup_count=5,
        use_json=getattr(settings, "use_json_logs", False),
        use_colors=True,
    )

    lifespan = _lifespan_factory()

    app = FastAPI(
        title=f"{settings.SITE_NAME} Notifications",
        description="Notification dispatch, push delivery and history for the studio apps",
        version="1.0.0",
        lifespan=lifespan,
        default_response_class=ORJSONResponse,
        json_dumps=lambda v, *, default: orjson.dumps(v, default=default),
        json_loads=orjson.loads,
    )

    # Configure App State
    app.state.default_language = settings.default_language
    app.state.environment = settings.environment
    app.state.push_gateway = None

    # The exception handler for RateLimitExceeded lives in register_exception_handlers
    app.state.limiter = limiter
    if hasattr(limiter, "enabled"):
        limiter.enabled = settings.environment.lower() != "test" and (
            os.getenv("APP_ENV", settings.environment).lower() != "test"
        )

    _configure_app(app)
    _register_routes(app)
    register_exception_handlers(app)

    logger.info("Application startup complete")

    return app


__all__ = ["create_app"]
