"""
FastAPI tile server for MBTiles archives.

This is the main application entry point. The tileset index is built
once in the lifespan handler, before the first request is served, and
is read-only afterwards.
"""

from contextlib import asynccontextmanager
from typing import Optional

import uvicorn
from fastapi import FastAPI, Request
from fastapi.middleware.cors import CORSMiddleware
from starlette.middleware.trustedhost import TrustedHostMiddleware

from mbtileserver import __version__
from mbtileserver.config import Settings, get_settings
from mbtileserver.logger import get_logger, set_log_level
from mbtileserver.routers import health_router, services_router
from mbtileserver.tilesets import discover_tilesets

logger = get_logger(__name__)


def create_app(settings: Optional[Settings] = None) -> FastAPI:
    """
    Create the FastAPI application.

    Args:
        settings: Settings to use (defaults to get_settings())

    Returns:
        Configured FastAPI app
    """
    settings = settings or get_settings()
    set_log_level(settings.log_level)

    @asynccontextmanager
    async def lifespan(app: FastAPI):
        """Application lifespan handler."""
        # Startup
        logger.info(
            "Serving tiles",
            extra={"directory": str(settings.directory)},
        )
        app.state.tilesets = discover_tilesets(settings.directory)
        yield

    app = FastAPI(
        title="mbtileserver",
        description="Map tile server for MBTiles archives",
        version=__version__,
        lifespan=lifespan,
    )
    app.state.settings = settings

    # CORS middleware
    app.add_middleware(
        CORSMiddleware,
        allow_origins=["*"],  # Allow all origins for tile serving
        allow_credentials=False,  # Must be False when using "*"
        allow_methods=["GET"],
        allow_headers=["*"],
    )

    if not settings.allows_any_host:
        app.add_middleware(
            TrustedHostMiddleware,
            allowed_hosts=settings.allowed_hosts,
        )

    @app.middleware("http")
    async def add_configured_headers(request: Request, call_next):
        response = await call_next(request)
        for name, value in settings.headers.items():
            response.headers[name] = value
        return response

    app.include_router(health_router)
    app.include_router(services_router)

    return app


def run(settings: Optional[Settings] = None) -> None:
    """Run the tile server with uvicorn."""
    settings = settings or get_settings()
    uvicorn.run(
        create_app(settings),
        host=settings.host,
        port=settings.port,
        log_level=settings.log_level.lower(),
    )
