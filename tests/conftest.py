"""Shared test fixtures for the Job Escrow Ledger test suite.

Provides:
    - An in-memory SQLite ledger store per test
    - A JobRegistry driven by a controllable clock
    - Factory helpers for posting and accepting jobs
    - Async test support via pytest-asyncio
"""

from __future__ import annotations

from typing import TYPE_CHECKING

import pytest
import pytest_asyncio
from sqlalchemy.ext.asyncio import create_async_engine
from sqlalchemy.pool import StaticPool

from job_escrow.infrastructure.database.engine import make_session_factory
from job_escrow.infrastructure.database.orm_models import Base
from job_escrow.services.job_registry import JobRegistry

if TYPE_CHECKING:
    from collections.abc import AsyncIterator

    from sqlalchemy.ext.asyncio import AsyncEngine, AsyncSession, async_sessionmaker

NOW = 1_700_000_000
DAY = 86_400

OWNER = "ops"
ARBITER = "arbiter"
TREASURY = "treasury"
EMPLOYER = "alice"
FREELANCER = "bob"
OUTSIDER = "mallory"

STARTING_BALANCE = 10_000


class FakeClock:
    """Callable clock whose time only moves when a test says so."""

    def __init__(self, now: int = NOW) -> None:
        self.now = now

    def __call__(self) -> int:
        return self.now

    def advance(self, seconds: int) -> None:
        self.now += seconds


# ---------------------------------------------------------------------------
# Database Fixtures
# ---------------------------------------------------------------------------


@pytest_asyncio.fixture
async def engine() -> AsyncIterator[AsyncEngine]:
    """A fresh in-memory store. StaticPool keeps a single shared connection."""
    eng = create_async_engine(
        "sqlite+aiosqlite://",
        poolclass=StaticPool,
        connect_args={"check_same_thread": False},
    )
    async with eng.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)
    yield eng
    await eng.dispose()


@pytest.fixture
def session_factory(engine: AsyncEngine) -> async_sessionmaker[AsyncSession]:
    return make_session_factory(engine)


@pytest_asyncio.fixture
async def session(
    session_factory: async_sessionmaker[AsyncSession],
) -> AsyncIterator[AsyncSession]:
    async with session_factory() as sess:
        yield sess


# ---------------------------------------------------------------------------
# Registry Fixtures
# ---------------------------------------------------------------------------


@pytest.fixture
def clock() -> FakeClock:
    return FakeClock()


@pytest_asyncio.fixture
async def registry(session: AsyncSession, clock: FakeClock) -> JobRegistry:
    """An initialized registry with funded employer and freelancer accounts."""
    reg = JobRegistry(session, clock=clock)
    await reg.initialize(owner=OWNER, arbiter=ARBITER, fee_recipient=TREASURY, fee_rate=25)
    await reg.deposit(EMPLOYER, STARTING_BALANCE)
    await reg.deposit(FREELANCER, STARTING_BALANCE)
    return reg


async def post_job(
    registry: JobRegistry,
    payment: int = 1000,
    employer: str = EMPLOYER,
    deadline: int = NOW + 7 * DAY,
) -> int:
    """Post a job and return its id."""
    job = await registry.create_job(
        caller=employer,
        title="Design a logo",
        description="Vector logo in SVG and PNG",
        deadline=deadline,
        escrow_amount=payment,
    )
    return job.id


async def post_and_accept(
    registry: JobRegistry,
    payment: int = 1000,
    freelancer: str = FREELANCER,
) -> int:
    """Post a job and have ``freelancer`` accept it. Returns the job id."""
    job_id = await post_job(registry, payment=payment)
    await registry.accept_job(freelancer, job_id)
    return job_id
