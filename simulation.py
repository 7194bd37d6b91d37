#!/usr/bin/env python3
"""Job Escrow Ledger — End-to-End Simulation.

Simulates four scenarios with EmployerBot, FreelancerBot and ArbiterBot:

    Scenario 1: Happy Path
        - Employer posts a 1000-unit job
        - Freelancer accepts and completes it, rating the employer 90
        - Freelancer receives 975, the fee recipient 25

    Scenario 2: Cancellation
        - Employer posts a 500-unit job and cancels it before anyone accepts
        - Employer is refunded in full; a second cancel is rejected

    Scenario 3: Dispute
        - Employer posts a 2000-unit job, freelancer accepts
        - Employer raises a dispute, arbiter awards the escrow to the freelancer
        - A second resolution is rejected

    Scenario 4: Missed Deadline
        - Employer posts a job whose deadline passes before anyone accepts
        - Acceptance is rejected; the employer cancels to recover the escrow

Usage:
    # SQLite in-memory (nothing written to disk):
    python simulation.py --memory

    # Against the configured DATABASE_URL:
    python simulation.py

    # Run a specific scenario:
    python simulation.py --memory --scenario 3
"""

from __future__ import annotations

import argparse
import asyncio
import time
from dataclasses import dataclass
from typing import Any

# ---------------------------------------------------------------------------
# Configure structured logging BEFORE importing app modules
# ---------------------------------------------------------------------------
from job_escrow.logging_config import get_logger, setup_logging

setup_logging(log_level="INFO", json_logs=False)
logger = get_logger("simulation")

OWNER = "platform-owner"
ARBITER = "arbiter"
TREASURY = "treasury"

# Module-level state
_memory_engine = None
_memory_session_factory = None
_clock_offset = 0


def _clock() -> int:
    """Wall clock shifted by however far the simulation has fast-forwarded."""
    return int(time.time()) + _clock_offset


def fast_forward(seconds: int) -> None:
    global _clock_offset
    _clock_offset += seconds


# ---------------------------------------------------------------------------
# Database lifecycle helpers
# ---------------------------------------------------------------------------
async def init_database(in_memory: bool = False) -> None:
    """Initialize the ledger store and the platform-state row."""
    global _memory_engine, _memory_session_factory

    if in_memory:
        from sqlalchemy.ext.asyncio import create_async_engine
        from sqlalchemy.pool import StaticPool

        from job_escrow.infrastructure.database.engine import make_session_factory
        from job_escrow.infrastructure.database.orm_models import Base

        _memory_engine = create_async_engine(
            "sqlite+aiosqlite://",
            poolclass=StaticPool,
            connect_args={"check_same_thread": False},
        )
        _memory_session_factory = make_session_factory(_memory_engine)
        async with _memory_engine.begin() as conn:
            await conn.run_sync(Base.metadata.create_all)
        logger.info("database.memory_initialized")
    else:
        from job_escrow.infrastructure.database.engine import init_db

        await init_db()

    async with await get_session() as session:
        registry = registry_for(session)
        if not await registry.is_initialized():
            await registry.initialize(owner=OWNER, arbiter=ARBITER, fee_recipient=TREASURY)


async def get_session() -> Any:
    """Get a fresh database session."""
    if _memory_session_factory is not None:
        return _memory_session_factory()

    from job_escrow.infrastructure.database.engine import _get_session_factory

    return _get_session_factory()()


async def shutdown_database() -> None:
    """Close database connections."""
    global _memory_engine, _memory_session_factory

    if _memory_engine is not None:
        await _memory_engine.dispose()
        _memory_engine = None
        _memory_session_factory = None
    else:
        from job_escrow.infrastructure.database.engine import close_db

        await close_db()


def registry_for(session: Any) -> Any:
    from job_escrow.config import get_settings
    from job_escrow.services.job_registry import JobRegistry

    return JobRegistry(session, escrow_account=get_settings().escrow_account, clock=_clock)


# ---------------------------------------------------------------------------
# Bot Agents
# ---------------------------------------------------------------------------
@dataclass
class EmployerBot:
    """Simulated employer that funds its account and posts jobs."""

    identity: str = "employer-bot"

    async def fund(self, session: Any, amount: int) -> int:
        balance = await registry_for(session).deposit(self.identity, amount)
        logger.info("🔵 EMPLOYER: Account funded", identity=self.identity, balance=balance)
        return balance

    async def post_job(
        self,
        session: Any,
        title: str,
        description: str,
        payment: int,
        deadline_in: int = 7 * 86_400,
    ) -> int:
        """Post a job. Returns job_id."""
        job = await registry_for(session).create_job(
            caller=self.identity,
            title=title,
            description=description,
            deadline=_clock() + deadline_in,
            escrow_amount=payment,
        )
        logger.info("🔵 EMPLOYER: Job posted", job_id=job.id, payment=payment)
        return job.id

    async def cancel(self, session: Any, job_id: int) -> None:
        await registry_for(session).cancel_job(self.identity, job_id)
        logger.info("🔵 EMPLOYER: Job cancelled", job_id=job_id)

    async def raise_dispute(self, session: Any, job_id: int, reason: str) -> None:
        await registry_for(session).raise_dispute(self.identity, job_id, reason)
        logger.info("🔵 EMPLOYER: Dispute raised", job_id=job_id, reason=reason)


@dataclass
class FreelancerBot:
    """Simulated freelancer that accepts and completes jobs."""

    identity: str = "freelancer-bot"

    async def accept(self, session: Any, job_id: int) -> None:
        await registry_for(session).accept_job(self.identity, job_id)
        logger.info("🟢 FREELANCER: Job accepted", job_id=job_id)

    async def complete(self, session: Any, job_id: int, employer_rating: int) -> None:
        await registry_for(session).complete_job(self.identity, job_id, employer_rating)
        logger.info("🟢 FREELANCER: Job completed", job_id=job_id, rating=employer_rating)


@dataclass
class ArbiterBot:
    """Simulated arbiter that rules on disputes."""

    identity: str = ARBITER

    async def resolve(self, session: Any, job_id: int, winner: str) -> None:
        await registry_for(session).resolve_dispute(self.identity, job_id, winner)
        logger.info("⚖️  ARBITER: Dispute resolved", job_id=job_id, winner=winner)


# ---------------------------------------------------------------------------
# Print helpers
# ---------------------------------------------------------------------------
def banner(text: str) -> None:
    """Print a prominent banner."""
    width = 70
    print("\n" + "=" * width)
    print(f"  {text}")
    print("=" * width + "\n")


def section(text: str) -> None:
    """Print a section header."""
    print(f"\n--- {text} ---\n")


async def print_balances(session: Any, *identities: str) -> None:
    registry = registry_for(session)
    print("  💰 Balances:")
    for identity in (*identities, TREASURY):
        print(f"    {identity:<16} {await registry.get_balance(identity):>8}")
    print(f"    {'(escrow pool)':<16} {await registry.get_contract_balance():>8}")


async def print_audit_trail(session: Any, job_id: int) -> None:
    """Print the full audit trail for a job."""
    events = await registry_for(session).get_events(job_id)
    print("\n  📜 Audit Trail:")
    for i, evt in enumerate(events, 1):
        old = evt.old_status or "-"
        new = evt.new_status or "-"
        print(f"    {i}. [{evt.event_type}] {old} -> {new} (by {evt.actor})")
    print()


async def expect_rejection(label: str, operation: Any) -> None:
    """Run ``operation`` and report the domain error it is expected to raise."""
    from job_escrow.domain.exceptions import LedgerError

    try:
        await operation
    except LedgerError as exc:
        print(f"  ⛔ {label}: rejected with {exc.code} ({exc.message})")
        return
    raise AssertionError(f"{label} was expected to be rejected")


# ===========================================================================
# Scenario 1: Happy Path
# ===========================================================================
async def scenario_1_happy_path() -> None:
    """Employer posts, freelancer accepts and completes, payment is split."""
    banner("SCENARIO 1: Happy Path — Completion and Payout")

    employer = EmployerBot(identity="alice")
    freelancer = FreelancerBot(identity="bob")

    async with await get_session() as session:
        section("Step 1: Employer funds account and posts a job")
        await employer.fund(session, 1000)
        job_id = await employer.post_job(
            session, "Design a logo", "Vector logo in SVG and PNG", payment=1000
        )

        section("Step 2: Freelancer accepts")
        await freelancer.accept(session, job_id)

        section("Step 3: Freelancer completes and rates the employer")
        await freelancer.complete(session, job_id, employer_rating=90)

        average, count = await registry_for(session).get_reputation(employer.identity)
        print(f"  ⭐ Employer rating: {average} over {count} job(s)")
        await print_balances(session, employer.identity, freelancer.identity)
        await print_audit_trail(session, job_id)


# ===========================================================================
# Scenario 2: Cancellation
# ===========================================================================
async def scenario_2_cancellation() -> None:
    """Employer cancels an untaken job and gets the escrow back."""
    banner("SCENARIO 2: Cancellation — Full Refund")

    employer = EmployerBot(identity="carol")

    async with await get_session() as session:
        section("Step 1: Employer posts a job")
        await employer.fund(session, 500)
        job_id = await employer.post_job(
            session, "Translate brochure", "English to German, 4 pages", payment=500
        )

        section("Step 2: Employer cancels before anyone accepts")
        await employer.cancel(session, job_id)

        section("Step 3: Cancelling again is rejected")
        await expect_rejection("Second cancel", employer.cancel(session, job_id))

        await print_balances(session, employer.identity)
        await print_audit_trail(session, job_id)


# ===========================================================================
# Scenario 3: Dispute
# ===========================================================================
async def scenario_3_dispute() -> None:
    """Arbiter awards a disputed job's whole escrow to the freelancer."""
    banner("SCENARIO 3: Dispute — Arbiter Awards the Freelancer")

    employer = EmployerBot(identity="dave")
    freelancer = FreelancerBot(identity="erin")
    arbiter = ArbiterBot()

    async with await get_session() as session:
        section("Step 1: Employer posts, freelancer accepts")
        await employer.fund(session, 2000)
        job_id = await employer.post_job(
            session, "Build landing page", "Responsive, three sections", payment=2000
        )
        await freelancer.accept(session, job_id)

        section("Step 2: Employer raises a dispute")
        await employer.raise_dispute(session, job_id, "Delivered page is not responsive")
        await expect_rejection(
            "Completion while disputed", freelancer.complete(session, job_id, 50)
        )

        section("Step 3: Arbiter rules for the freelancer")
        await arbiter.resolve(session, job_id, winner=freelancer.identity)
        await expect_rejection(
            "Second resolution", arbiter.resolve(session, job_id, winner=employer.identity)
        )

        await print_balances(session, employer.identity, freelancer.identity)
        await print_audit_trail(session, job_id)


# ===========================================================================
# Scenario 4: Missed Deadline
# ===========================================================================
async def scenario_4_missed_deadline() -> None:
    """Nobody accepts in time; the employer recovers funds by cancelling."""
    banner("SCENARIO 4: Missed Deadline — Acceptance Rejected")

    employer = EmployerBot(identity="frank")
    freelancer = FreelancerBot(identity="grace")

    async with await get_session() as session:
        section("Step 1: Employer posts a job due in one day")
        await employer.fund(session, 800)
        job_id = await employer.post_job(
            session, "Proofread thesis", "80 pages, APA style", payment=800, deadline_in=86_400
        )

        section("Step 2: Two days pass")
        fast_forward(2 * 86_400)
        await expect_rejection("Late acceptance", freelancer.accept(session, job_id))

        section("Step 3: Employer cancels to recover the escrow")
        await employer.cancel(session, job_id)

        await print_balances(session, employer.identity)
        await print_audit_trail(session, job_id)


# ===========================================================================
# Main
# ===========================================================================
SCENARIOS = {
    1: scenario_1_happy_path,
    2: scenario_2_cancellation,
    3: scenario_3_dispute,
    4: scenario_4_missed_deadline,
}


async def run_all(in_memory: bool = False) -> None:
    """Run all scenarios sequentially."""
    await init_database(in_memory=in_memory)

    try:
        print("\n" + "=" * 70)
        print("  JOB ESCROW LEDGER — SIMULATION")
        db_type = "SQLite (in-memory)" if in_memory else "configured DATABASE_URL"
        print(f"  Database: {db_type}")
        print("=" * 70 + "\n")

        for scenario in SCENARIOS.values():
            await scenario()

        print("\n" + "=" * 70)
        print("  ✅ ALL SCENARIOS COMPLETED SUCCESSFULLY")
        print("=" * 70 + "\n")

    finally:
        await shutdown_database()


async def run_scenario(num: int, in_memory: bool = False) -> None:
    """Run a specific scenario."""
    await init_database(in_memory=in_memory)

    try:
        if num not in SCENARIOS:
            print(f"Unknown scenario {num}. Available: {', '.join(map(str, SCENARIOS))}")
            return
        await SCENARIOS[num]()
    finally:
        await shutdown_database()


if __name__ == "__main__":
    parser = argparse.ArgumentParser(description="Job Escrow Ledger Simulation")
    parser.add_argument(
        "--scenario",
        type=int,
        default=0,
        help="Run a specific scenario (1-4). Default: run all.",
    )
    parser.add_argument(
        "--memory",
        action="store_true",
        help="Use an in-memory SQLite store instead of DATABASE_URL.",
    )
    args = parser.parse_args()

    if args.scenario == 0:
        asyncio.run(run_all(in_memory=args.memory))
    else:
        asyncio.run(run_scenario(args.scenario, in_memory=args.memory))
