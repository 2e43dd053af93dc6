"""
Wingmann Engine - FastAPI Application

Main application entry point. Creates the FastAPI app, wires up routers,
initializes the record store and exports on startup.

Run with: uvicorn backend.main:app --reload

Middleware and handler notes:
- CORS middleware is outermost so preflight requests are answered first
- Content-Disposition is exposed so browsers can read download filenames
- Every error is rendered in the standard error envelope
"""

import logging
from contextlib import asynccontextmanager
from typing import AsyncGenerator, Optional

from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware

from . import __version__
from .config import Settings, configure_logging, get_settings, validate_required_env
from .core.errors import setup_error_handlers
from .core.middleware import RequestLoggingMiddleware
from .routers.download import router as download_router
from .routers.health import router as health_router
from .routers.submissions import router as submissions_router
from .services.engine import build_engine
from .storage.blob_store import BlobStore, create_blob_store

logger = logging.getLogger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI) -> AsyncGenerator[None, None]:
    """
    Application lifespan handler.

    Startup: create the canonical list if absent and regenerate both
    exports so they match it.
    """
    settings: Settings = app.state.settings
    engine = app.state.engine

    logger.info(
        f"Starting Wingmann Engine v{__version__} "
        f"({settings.environment}, storage={engine.blobs.backend})"
    )
    await engine.startup()
    logger.info(f"Ready: {await engine.store.count()} submissions on record")

    yield

    logger.info("Wingmann Engine shut down")


def create_app(
    settings: Optional[Settings] = None,
    blob_store: Optional[BlobStore] = None,
) -> FastAPI:
    """
    Application factory.

    Args:
        settings: Configuration (defaults to get_settings())
        blob_store: Storage backend (defaults to the one STORAGE_BACKEND selects)

    Raises:
        RuntimeError: required configuration is missing
    """
    explicit_settings = settings is not None
    if settings is None:
        settings = get_settings()

    configure_logging(settings)
    validate_required_env(settings, fail_fast=True)

    if blob_store is None:
        blob_store = create_blob_store(settings)

    app = FastAPI(
        title="Wingmann Engine",
        description="Submission persistence and export backend for the Wingmann questionnaire.",
        version=__version__,
        docs_url="/docs",
        redoc_url="/redoc",
        openapi_url="/openapi.json",
        lifespan=lifespan,
    )
    app.state.settings = settings
    app.state.engine = build_engine(blob_store)

    if explicit_settings:
        app.dependency_overrides[get_settings] = lambda: settings

    # First added = outermost
    app.add_middleware(
        CORSMiddleware,
        allow_origins=settings.cors_allowed_origins,
        allow_methods=["*"],
        allow_headers=["*"],
        expose_headers=["Content-Disposition", "X-Request-ID"],
    )
    app.add_middleware(RequestLoggingMiddleware)

    setup_error_handlers(app)

    app.include_router(submissions_router, prefix="/api")
    app.include_router(download_router, prefix="/api")
    app.include_router(health_router, prefix="/api")

    @app.get("/", tags=["root"])
    async def root() -> dict[str, str]:
        """Root endpoint - service info."""
        return {
            "service": "Wingmann Engine",
            "version": __version__,
            "status": "running",
            "health": "/api/health",
        }

    logger.info(f"FastAPI app created: {app.title}")

    return app


# Create the application instance
app = create_app()


# =============================================================================
# CLI Entry Point
# =============================================================================

if __name__ == "__main__":
    import uvicorn

    settings = get_settings()

    uvicorn.run(
        "backend.main:app",
        host=settings.HOST,
        port=settings.PORT,
        reload=settings.is_development,
        log_level=settings.log_level.lower(),
    )
