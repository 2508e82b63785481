"""FastAPI application entry point for Trade Escrow.

Lifecycle:
    1. Startup: Initialize logging, database (tables in dev), Redis when it backs locks.
    2. Running: Serve REST API + MCP tools on a single Uvicorn process.
    3. Shutdown: Close database and Redis connections gracefully.

The MCP server is mounted at /mcp so agents can discover tools
alongside the REST API at /api/v1/*.

Run with:
    uv run uvicorn trade_escrow.main:app --reload --host 0.0.0.0 --port 8000
"""

from __future__ import annotations

from contextlib import asynccontextmanager
from typing import TYPE_CHECKING

from fastapi import FastAPI

from trade_escrow import __version__
from trade_escrow.config import get_settings
from trade_escrow.logging_config import get_logger, setup_logging_from_settings

if TYPE_CHECKING:
    from collections.abc import AsyncGenerator


@asynccontextmanager
async def lifespan(app: FastAPI) -> AsyncGenerator[None, None]:
    """Manage application startup and shutdown lifecycle."""
    settings = get_settings()

    setup_logging_from_settings(settings)
    logger = get_logger(__name__)
    logger.info("app.starting", env=settings.app_env, debug=settings.app_debug)

    from trade_escrow.api.deps import reset_services
    from trade_escrow.infrastructure.database.engine import close_db, init_db
    from trade_escrow.infrastructure.redis_client import close_redis, init_redis

    await init_db()

    # Redis is required only when it backs the deal locks.
    if settings.deal_lock_backend == "redis":
        await init_redis()

    logger.info("app.started", host=settings.app_host, port=settings.app_port)

    yield

    logger.info("app.shutting_down")
    reset_services()
    await close_db()
    await close_redis()
    logger.info("app.stopped")


def create_app() -> FastAPI:
    """Application factory - creates and configures the FastAPI app."""
    settings = get_settings()

    app = FastAPI(
        title="Trade Escrow",
        description=(
            "Four-party conditional-payment escrow: producer, carrier and buyer "
            "authorize in order, the arbiter finalizes, the escrow pays out."
        ),
        version=__version__,
        lifespan=lifespan,
        debug=settings.app_debug,
        docs_url="/docs" if settings.is_development else None,
        redoc_url="/redoc" if settings.is_development else None,
    )

    from trade_escrow.api.middleware import setup_middleware

    setup_middleware(app)

    from trade_escrow.api.routes.deals import router as deals_router
    from trade_escrow.api.routes.health import router as health_router
    from trade_escrow.api.routes.ledger import router as ledger_router

    app.include_router(health_router)
    app.include_router(deals_router)
    if settings.is_development:
        app.include_router(ledger_router)

    from trade_escrow.mcp_server.tools import mcp

    app.mount("/mcp", mcp.sse_app())

    return app


# The app instance used by Uvicorn
app = create_app()
