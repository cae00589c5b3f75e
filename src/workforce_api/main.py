"""Workforce API FastAPI application entry point."""

from __future__ import annotations

import logging
from collections.abc import AsyncIterator
from contextlib import asynccontextmanager

from fastapi import FastAPI
from fastapi.routing import Lifespan

from .api.router import api_router
from .common.exceptions import register_exception_handlers
from .common.logging import setup_logging
from .common.middleware import register_middleware
from .db import DatabaseConfig, db
from .db.migrations import run_migrations_async
from .features.realtime.feed import ChangeFeed
from .settings import Settings, get_settings

logger = logging.getLogger(__name__)
API_PREFIX = "/api"


def create_application_lifespan(*, settings: Settings) -> Lifespan[FastAPI]:
    """Return the lifespan handler: database up, change feed ready, then teardown."""

    @asynccontextmanager
    async def lifespan(app: FastAPI) -> AsyncIterator[None]:
        if settings.migrate_on_startup:
            await run_migrations_async(settings)
        db.init(DatabaseConfig.from_settings(settings))
        app.state.change_feed = ChangeFeed()
        logger.info(
            "app.startup",
            extra={"app_version": settings.app_version, "database": db.config.url},
        )
        try:
            yield
        finally:
            await db.dispose()
            logger.info("app.shutdown")

    return lifespan


def create_app(settings: Settings | None = None) -> FastAPI:
    """Return a configured FastAPI application."""

    settings = settings or get_settings()
    setup_logging(settings)

    docs_url = settings.docs_url if settings.api_docs_enabled else None
    redoc_url = settings.redoc_url if settings.api_docs_enabled else None
    openapi_url = settings.openapi_url if settings.api_docs_enabled else None

    app = FastAPI(
        title=settings.app_name,
        version=settings.app_version,
        docs_url=docs_url,
        redoc_url=redoc_url,
        openapi_url=openapi_url,
        debug=settings.debug,
        lifespan=create_application_lifespan(settings=settings),
    )

    app.state.settings = settings
    register_middleware(app, settings)
    register_exception_handlers(app)
    app.include_router(api_router, prefix=API_PREFIX)
    return app


__all__ = [
    "API_PREFIX",
    "create_app",
    "create_application_lifespan",
]
