"""FastAPI dependency injection providers.

These are used with Depends() in route handlers to inject database sessions,
the job registry, the caller's identity, and configuration.
"""

from __future__ import annotations

from typing import TYPE_CHECKING

from fastapi import Depends, Header

from job_escrow.config import Settings, get_settings
from job_escrow.domain.exceptions import AuthorizationError
from job_escrow.infrastructure.database.engine import get_async_session
from job_escrow.services.job_registry import JobRegistry

if TYPE_CHECKING:
    from collections.abc import AsyncGenerator

    from sqlalchemy.ext.asyncio import AsyncSession

CALLER_HEADER = "X-Caller-Identity"


async def get_db_session() -> AsyncGenerator[AsyncSession, None]:
    """Yield an async database session for a request."""
    async for session in get_async_session():
        yield session


def get_app_settings() -> Settings:
    """Provide the application settings."""
    return get_settings()


async def get_registry(
    session: AsyncSession = Depends(get_db_session),
    settings: Settings = Depends(get_app_settings),
) -> JobRegistry:
    """Provide a JobRegistry bound to the current session."""
    return JobRegistry(session, escrow_account=settings.escrow_account)


def get_caller_identity(
    x_caller_identity: str | None = Header(default=None, alias=CALLER_HEADER),
) -> str:
    """Return the caller identity asserted by the authenticating gateway.

    The gateway in front of this service authenticates the caller and sets
    the header; the service trusts it as-is.
    """
    if x_caller_identity is None or not x_caller_identity.strip():
        raise AuthorizationError("<anonymous>", f"holder of a {CALLER_HEADER} header")
    return x_caller_identity.strip()
