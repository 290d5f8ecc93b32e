"""
FastAPI application entry point.

Run with:
    uvicorn floodwatch.main:app --reload --port 8000

The lifespan builds the area store (SQL, from DATABASE_URL) and the
monitoring scheduler, optionally starts monitoring (MONITOR_AUTOSTART),
and stops the loop cleanly on shutdown.
"""

from __future__ import annotations

from contextlib import asynccontextmanager
from typing import Optional

from fastapi import FastAPI

# ── Core infrastructure ──
from floodwatch.core.cache import close_redis
from floodwatch.core.config import settings
from floodwatch.core.database import build_engine, build_session_factory, close_db, init_db
from floodwatch.core.errors import ConfigurationError, register_error_handlers
from floodwatch.core.logging_config import get_logger, setup_logging
from floodwatch.core.middleware import RequestLoggingMiddleware

# ── Domain services ──
from floodwatch.monitoring.alerts import build_alert_digest
from floodwatch.monitoring.scheduler import MonitoringScheduler
from floodwatch.storage.area_store import AreaStore
from floodwatch.storage.sql_store import SqlAreaStore

# ── API routers ──
from floodwatch.api.v1.monitor import router as monitor_router
from floodwatch.api.v1.risk import router as risk_router

setup_logging()
logger = get_logger(__name__)


def create_app(store: Optional[AreaStore] = None) -> FastAPI:
    """
    Build the application.

    Passing ``store`` skips the database entirely (tests, demos); otherwise
    the lifespan opens the configured SQL database.
    """

    @asynccontextmanager
    async def lifespan(app: FastAPI):
        logger.info(
            "Starting %s v%s [%s]",
            settings.APP_NAME, settings.APP_VERSION, settings.ENVIRONMENT,
        )
        engine = None
        area_store = store
        if area_store is None:
            engine = build_engine()
            await init_db(engine)
            area_store = SqlAreaStore(build_session_factory(engine))

        async def on_levels_changed() -> None:
            digest = build_alert_digest(await area_store.list())
            if digest.headline:
                logger.warning(
                    "%s: %d severe, %d high",
                    digest.headline, digest.severe_count, digest.high_count,
                )

        scheduler = MonitoringScheduler(area_store, notify_changed=on_levels_changed)
        app.state.store = area_store
        app.state.scheduler = scheduler

        if settings.MONITOR_AUTOSTART:
            try:
                await scheduler.start(settings.MONITOR_DEFAULT_MODE)
            except ConfigurationError as e:
                logger.error("Monitoring not started: %s", e.message)

        yield

        await scheduler.close()
        await close_redis()
        if engine is not None:
            await close_db(engine)
        logger.info("Shutting down %s", settings.APP_NAME)

    app = FastAPI(
        title=settings.APP_NAME,
        description=(
            "Flood risk monitoring for georeferenced areas. "
            "Combines static site characteristics with live OpenWeatherMap "
            "or demo-scenario weather, re-evaluates every tracked area on a "
            "schedule and records risk level transitions."
        ),
        version=settings.APP_VERSION,
        docs_url="/docs",
        redoc_url="/redoc",
        lifespan=lifespan,
    )

    app.add_middleware(RequestLoggingMiddleware)
    register_error_handlers(app)

    app.include_router(monitor_router)
    app.include_router(risk_router)

    @app.get("/", tags=["root"])
    async def root():
        return {
            "service": settings.APP_NAME,
            "version": settings.APP_VERSION,
            "environment": settings.ENVIRONMENT,
            "docs": "/docs",
        }

    @app.get("/health/live", tags=["health"])
    async def liveness():
        return {"status": "alive"}

    return app


app = create_app()
