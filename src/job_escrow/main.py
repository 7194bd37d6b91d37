"""FastAPI application entry point for the Job Escrow Ledger.

Lifecycle:
    1. Startup: Initialize logging, the ledger store tables, and the platform
       row (owner, arbiter, fee recipient, fee rate from settings) if absent.
    2. Running: Serve the REST API at /api/v1/*.
    3. Shutdown: Dispose of the database engine.

Run with:
    uvicorn job_escrow.main:app --reload --host 0.0.0.0 --port 8000
"""

from __future__ import annotations

from contextlib import asynccontextmanager
from typing import TYPE_CHECKING

from fastapi import FastAPI

from job_escrow import __version__
from job_escrow.config import Settings, get_settings
from job_escrow.logging_config import get_logger, setup_logging

if TYPE_CHECKING:
    from collections.abc import AsyncGenerator


async def bootstrap_platform(settings: Settings) -> None:
    """Initialize the platform-state row from settings unless it already exists."""
    from job_escrow.infrastructure.database.engine import _get_session_factory
    from job_escrow.services.job_registry import JobRegistry

    logger = get_logger(__name__)
    async with _get_session_factory()() as session:
        registry = JobRegistry(session, escrow_account=settings.escrow_account)
        if await registry.is_initialized():
            logger.info("platform.already_initialized")
            return
        await registry.initialize(
            owner=settings.platform_owner,
            arbiter=settings.arbiter_identity,
            fee_recipient=settings.fee_recipient_identity,
            fee_rate=settings.default_fee_rate,
        )


@asynccontextmanager
async def lifespan(app: FastAPI) -> AsyncGenerator[None, None]:
    """Manage application startup and shutdown lifecycle."""
    settings = get_settings()

    setup_logging(
        log_level=settings.app_log_level,
        json_logs=not settings.is_development,
    )
    logger = get_logger(__name__)
    logger.info("app.starting", env=settings.app_env, debug=settings.app_debug)

    from job_escrow.infrastructure.database.engine import close_db, init_db

    await init_db()
    await bootstrap_platform(settings)

    logger.info("app.started", host=settings.app_host, port=settings.app_port)

    yield

    logger.info("app.shutting_down")
    await close_db()
    logger.info("app.stopped")


def create_app() -> FastAPI:
    """Application factory — creates and configures the FastAPI app."""
    settings = get_settings()

    app = FastAPI(
        title="Job Escrow Ledger",
        description=(
            "Job posting with escrowed payment, freelancer payouts, "
            "single-arbiter disputes and employer reputation."
        ),
        version=__version__,
        lifespan=lifespan,
        debug=settings.app_debug,
        docs_url="/docs" if settings.is_development else None,
        redoc_url="/redoc" if settings.is_development else None,
    )

    from job_escrow.api.middleware import setup_middleware

    setup_middleware(app)

    from job_escrow.api.routes.health import router as health_router
    from job_escrow.api.routes.jobs import router as jobs_router
    from job_escrow.api.routes.platform import router as platform_router

    app.include_router(health_router)
    app.include_router(jobs_router)
    app.include_router(platform_router)

    return app


# The app instance used by Uvicorn
app = create_app()
