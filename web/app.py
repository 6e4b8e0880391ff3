"""FastAPI application factory and main app.

This module creates the FastAPI application with all routers, CORS and the
index loaded into app state.
"""

from __future__ import annotations

import logging
from collections.abc import AsyncIterator
from contextlib import asynccontextmanager

from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware

from bundle_cache import __version__
from bundle_cache.config import get_settings
from bundle_cache.index.manager import IndexManager, load_index
from web.routers import admin, bundles, health, stats, versions

logger = logging.getLogger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI) -> AsyncIterator[None]:
    """Application lifespan context manager.

    Loads the index snapshot on startup. A corrupt snapshot is reported and
    the service starts with an empty index.
    """
    settings = get_settings()
    index, result = load_index(settings.index_path)
    if not result.success:
        logger.warning("Serving with a degraded index: %s", result.message)
    app.state.index = index
    yield


def create_app(index: IndexManager | None = None) -> FastAPI:
    """Create and configure the FastAPI application.

    Args:
        index: Already loaded index to serve. When omitted the index is
            loaded from settings at startup.

    Returns:
        Configured FastAPI application.
    """
    application = FastAPI(
        title="Bundle Cache API",
        description="Lookup API for cached, versioned package bundles",
        version=__version__,
        lifespan=lifespan if index is None else None,
    )
    if index is not None:
        application.state.index = index

    application.add_middleware(
        CORSMiddleware,
        allow_origins=["*"],
        allow_methods=["*"],
        allow_headers=["*"],
    )

    # Include routers
    application.include_router(health.router, tags=["health"])
    application.include_router(bundles.router, prefix="/bundle", tags=["bundles"])
    application.include_router(versions.router, prefix="/versions", tags=["versions"])
    application.include_router(stats.router, tags=["stats"])
    application.include_router(admin.router, tags=["admin"])

    return application


# Create the default application instance
app = create_app()
