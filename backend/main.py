"""
Codezoo FastAPI application.

Entry point for the API server.
"""

from __future__ import annotations

import asyncio
import logging
from contextlib import asynccontextmanager

from fastapi import FastAPI

from backend import db
from backend.config import settings
from backend.middleware.rate_limit import rate_limiter
from backend.routes import auth_routes
from backend.routes import editor as editor_routes
from backend.routes import pens as pen_routes
from backend.routes import ws as ws_routes
from engine.editor import preprocessors
from engine.editor.extensions import editor_extensions

logger = logging.getLogger(__name__)


# Background task for cleanup
async def cleanup_task():
    """
    Background task to drop old rate limit entries.

    Runs every 60 seconds.
    """
    while True:
        try:
            rate_limiter.cleanup_old_entries(max_age_hours=2)
        except Exception:
            logger.exception("Error in cleanup task")

        await asyncio.sleep(60)


@asynccontextmanager
async def lifespan(app: FastAPI):
    """
    Lifespan context manager for FastAPI application.

    Handles startup and shutdown logic:
    - Register editor extensions and point script preprocessors at Node
    - Initialize database pool
    - Start background cleanup task
    - Close database pool on shutdown
    """
    logging.basicConfig(
        level=logging.DEBUG if settings.ENVIRONMENT == "development" else logging.INFO,
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
    )

    # Startup
    editor_extensions.ensure_initialized()
    preprocessors.configure(settings.NODE_BINARY, settings.COMPILE_TIMEOUT_SECONDS)
    logger.info("Preprocessors configured (node=%s)", settings.NODE_BINARY)

    await db.init_pool()
    logger.info("Database pool initialized")

    cleanup_task_handle = asyncio.create_task(cleanup_task())
    logger.info("Background cleanup task started")

    yield

    # Shutdown
    cleanup_task_handle.cancel()
    try:
        await cleanup_task_handle
    except asyncio.CancelledError:
        logger.info("Background cleanup task stopped")

    await db.close_pool()
    logger.info("Database pool closed")


app = FastAPI(
    title="Codezoo",
    docs_url=None,
    redoc_url=None,
    lifespan=lifespan,
)

# Register routes
app.include_router(auth_routes.router)
app.include_router(pen_routes.router)
app.include_router(editor_routes.router)
app.include_router(ws_routes.router)


@app.get("/health")
async def health():
    """Health check endpoint for uptime monitoring."""
    return {"status": "ok"}
