"""Job Registry — public entry points of the escrow ledger.

This is the application layer that coordinates between:
    - Domain guards and state machines (validation, authorization, transitions)
    - Repositories (job records, indexes, platform state)
    - EscrowEngine (money movement through the ledger store)
    - DisputeResolver and ReputationTracker
    - Event log (domain events for external observers)

Both the REST routes and simulation.py call into this class, so every rule
lives in one place.

Each mutating operation is one unit of work: guards run first, then state
changes and ledger transfers are staged in the session and committed
together. Any exception rolls the whole unit back, so a rejected or failed
operation leaves no observable change.

Requests run concurrently, so the write that commits a guarded decision is
conditional on the stored row (see the repositories). Of two racing
operations only one can pass the same check.
"""

from __future__ import annotations

import time
from contextlib import asynccontextmanager
from typing import TYPE_CHECKING

from job_escrow.domain.enums import DisputeStatus, EventType, JobStatus
from job_escrow.domain.exceptions import (
    DeadlinePassedError,
    DisputeNotFoundError,
    InvalidStateError,
    JobNotFoundError,
    LedgerError,
    PlatformNotInitializedError,
    ValidationError,
)
from job_escrow.domain.guards import (
    require_employer,
    require_fee_rate,
    require_freelancer,
    require_future,
    require_identity,
    require_not_employer,
    require_positive,
    require_rating,
    require_role,
    require_text,
)
from job_escrow.domain.payout import DEFAULT_FEE_RATE
from job_escrow.domain.state_machine import (
    DisputeStateMachine,
    JobStateMachine,
    guard_transition,
)
from job_escrow.infrastructure.database.orm_models import Job, PlatformState
from job_escrow.infrastructure.database.repositories import (
    AccountRepository,
    DisputeRepository,
    EventRepository,
    JobIndexRepository,
    JobRepository,
    PlatformRepository,
    ReputationRepository,
)
from job_escrow.logging_config import get_logger
from job_escrow.services.dispute_resolver import DisputeResolver
from job_escrow.services.payout_engine import EscrowEngine
from job_escrow.services.reputation_tracker import ReputationTracker

if TYPE_CHECKING:
    from collections.abc import AsyncIterator, Callable

    from sqlalchemy.ext.asyncio import AsyncSession

    from job_escrow.infrastructure.database.orm_models import Dispute, JobEvent

logger = get_logger(__name__)

EMPLOYER_ROLE = "employer"
FREELANCER_ROLE = "freelancer"


def _system_clock() -> int:
    return int(time.time())


class JobRegistry:
    """Owns jobs, the job-id counter and per-user indexes.

    Usage:
        registry = JobRegistry(session)
        await registry.initialize(owner="ops", arbiter="arb", fee_recipient="treasury")
        job = await registry.create_job("alice", "Logo", "Vector logo", deadline, 1000)
        await registry.accept_job("bob", job.id)
        await registry.complete_job("bob", job.id, employer_rating=90)
    """

    def __init__(
        self,
        session: AsyncSession,
        escrow_account: str = "escrow",
        clock: Callable[[], int] | None = None,
    ) -> None:
        self._session = session
        self._clock = clock or _system_clock

        self._platform_repo = PlatformRepository(session)
        self._accounts = AccountRepository(session)
        self._job_repo = JobRepository(session)
        self._index_repo = JobIndexRepository(session)
        self._event_repo = EventRepository(session)

        self._engine = EscrowEngine(
            ledger=self._accounts,
            platform_repo=self._platform_repo,
            event_repo=self._event_repo,
            escrow_account=escrow_account,
        )
        self._disputes = DisputeResolver(
            dispute_repo=DisputeRepository(session),
            job_repo=self._job_repo,
            event_repo=self._event_repo,
            engine=self._engine,
        )
        self._reputation = ReputationTracker(ReputationRepository(session), self._event_repo)

    @property
    def escrow_account(self) -> str:
        return self._engine.escrow_account

    # ------------------------------------------------------------------
    # Platform bootstrap
    # ------------------------------------------------------------------

    async def initialize(
        self,
        owner: str,
        arbiter: str | None = None,
        fee_recipient: str | None = None,
        fee_rate: int = DEFAULT_FEE_RATE,
    ) -> PlatformState:
        """Create the platform-state row. Must run once before any job exists."""
        async with self._atomic("initialize"):
            arbiter = arbiter or owner
            fee_recipient = fee_recipient or owner
            for field, identity in (
                ("owner", owner),
                ("arbiter", arbiter),
                ("fee_recipient", fee_recipient),
            ):
                require_identity(field, identity)
                self._reject_reserved(identity, field)
            require_fee_rate(fee_rate)
            if await self._platform_repo.get() is not None:
                raise InvalidStateError("Platform is already initialized")

            state = await self._platform_repo.create(
                PlatformState(
                    job_counter=0,
                    fee_rate=fee_rate,
                    owner=owner,
                    arbiter=arbiter,
                    fee_recipient=fee_recipient,
                )
            )
            await self._event_repo.record(
                event_type=EventType.PLATFORM_INITIALIZED,
                actor=owner,
                metadata={
                    "owner": state.owner,
                    "arbiter": state.arbiter,
                    "fee_recipient": state.fee_recipient,
                    "fee_rate": fee_rate,
                },
            )
        logger.info("platform.initialized", owner=owner, fee_rate=fee_rate)
        return state

    async def is_initialized(self) -> bool:
        return await self._platform_repo.get() is not None

    async def get_platform(self) -> PlatformState:
        return await self._platform_or_raise()

    # ------------------------------------------------------------------
    # Ledger funding
    # ------------------------------------------------------------------

    async def deposit(self, caller: str, amount: int) -> int:
        """Credit ``amount`` to the caller's ledger account and return the new balance."""
        async with self._atomic("deposit"):
            require_identity("caller", caller)
            require_positive("amount", amount)
            self._reject_reserved(caller)
            balance = await self._accounts.credit(caller, amount)
            await self._event_repo.record(
                event_type=EventType.FUNDS_DEPOSITED,
                actor=caller,
                metadata={"identity": caller, "amount": amount, "balance": balance},
            )
        logger.info("ledger.deposited", identity=caller, amount=amount, balance=balance)
        return balance

    async def get_balance(self, identity: str) -> int:
        return await self._accounts.balance_of(identity)

    # ------------------------------------------------------------------
    # Job lifecycle
    # ------------------------------------------------------------------

    async def create_job(
        self,
        caller: str,
        title: str,
        description: str,
        deadline: int,
        escrow_amount: int,
    ) -> Job:
        """Post a job and lock its payment in escrow. Returns the new job."""
        async with self._atomic("create_job"):
            now = self._clock()
            require_identity("caller", caller)
            self._reject_reserved(caller)
            require_text("title", title)
            require_text("description", description)
            require_positive("escrow_amount", escrow_amount)
            require_future("deadline", deadline, now)
            platform = await self._platform_or_raise()

            await self._engine.lock(escrow_amount, caller)
            job_id = await self._platform_repo.next_job_id(platform)
            job = await self._job_repo.create(
                Job(
                    id=job_id,
                    title=title,
                    description=description,
                    payment=escrow_amount,
                    employer=caller,
                    freelancer=None,
                    status=JobStatus.OPEN.value,
                    dispute_status=DisputeStatus.NONE.value,
                    deadline=deadline,
                    created_at=now,
                )
            )
            await self._index_repo.append(caller, EMPLOYER_ROLE, job_id)

            await self._event_repo.record(
                event_type=EventType.JOB_CREATED,
                actor=caller,
                job_id=job_id,
                old_status=None,
                new_status=JobStatus.OPEN,
                metadata={
                    "employer": caller,
                    "title": title,
                    "payment": escrow_amount,
                    "deadline": deadline,
                },
            )
        logger.info("job.created", job_id=job_id, employer=caller, payment=escrow_amount)
        return job

    async def accept_job(self, caller: str, job_id: int) -> Job:
        """Assign the caller as freelancer of an open job."""
        async with self._atomic("accept_job"):
            now = self._clock()
            require_identity("caller", caller)
            self._reject_reserved(caller)
            job = await self._get_job_or_raise(job_id)
            new_status = guard_transition(job.status, "freelancer_accepts")
            require_not_employer(job, caller)
            if now >= job.deadline:
                raise DeadlinePassedError(job.id, job.deadline, now)

            await self._job_repo.transition(
                job,
                "freelancer_accepts",
                expected={"status": JobStatus.OPEN.value, "freelancer": None},
                changes={"status": new_status, "freelancer": caller},
            )
            await self._index_repo.append(caller, FREELANCER_ROLE, job.id)

            await self._event_repo.record(
                event_type=EventType.JOB_ACCEPTED,
                actor=caller,
                job_id=job.id,
                old_status=JobStatus.OPEN,
                new_status=JobStatus.IN_PROGRESS,
                metadata={"employer": job.employer, "freelancer": caller},
            )
        logger.info("job.accepted", job_id=job_id, freelancer=caller)
        return job

    async def complete_job(self, caller: str, job_id: int, employer_rating: int) -> Job:
        """Mark a job completed, pay the freelancer and the fee, rate the employer.

        This is the only path by which a freelancer is paid.
        """
        async with self._atomic("complete_job"):
            job = await self._get_job_or_raise(job_id)
            require_freelancer(job, caller)
            new_status = guard_transition(job.status, "freelancer_completes")
            if job.dispute_status != DisputeStatus.NONE:
                raise InvalidStateError(
                    f"Job {job.id} has a {job.dispute_status} dispute and cannot be completed"
                )
            require_rating("employer_rating", employer_rating)
            platform = await self._platform_or_raise()

            await self._job_repo.transition(
                job,
                "freelancer_completes",
                expected={
                    "status": JobStatus.IN_PROGRESS.value,
                    "dispute_status": DisputeStatus.NONE.value,
                },
                changes={"status": new_status},
            )
            payout = await self._engine.pay_completion(job, platform)
            await self._reputation.record_rating(
                job.employer, employer_rating, rated_by=caller, job_id=job.id
            )

            await self._event_repo.record(
                event_type=EventType.JOB_COMPLETED,
                actor=caller,
                job_id=job.id,
                old_status=JobStatus.IN_PROGRESS,
                new_status=JobStatus.COMPLETED,
                metadata={
                    "employer": job.employer,
                    "freelancer": caller,
                    "payment": job.payment,
                    "freelancer_payment": payout.remainder,
                    "platform_fee": payout.fee,
                    "employer_rating": employer_rating,
                },
            )
        logger.info(
            "job.completed",
            job_id=job_id,
            freelancer=caller,
            freelancer_payment=payout.remainder,
            platform_fee=payout.fee,
        )
        return job

    async def cancel_job(self, caller: str, job_id: int) -> Job:
        """Cancel a job nobody has accepted and refund the employer in full."""
        async with self._atomic("cancel_job"):
            job = await self._get_job_or_raise(job_id)
            require_employer(job, caller)
            new_status = guard_transition(job.status, "employer_cancels")

            await self._job_repo.transition(
                job,
                "employer_cancels",
                expected={"status": JobStatus.OPEN.value},
                changes={"status": new_status},
            )
            await self._engine.refund(job)

            await self._event_repo.record(
                event_type=EventType.JOB_CANCELLED,
                actor=caller,
                job_id=job.id,
                old_status=JobStatus.OPEN,
                new_status=JobStatus.CANCELLED,
                metadata={"employer": caller, "refund": job.payment},
            )
        logger.info("job.cancelled", job_id=job_id, employer=caller, refund=job.payment)
        return job

    # ------------------------------------------------------------------
    # Disputes
    # ------------------------------------------------------------------

    async def raise_dispute(self, caller: str, job_id: int, reason: str) -> Dispute:
        async with self._atomic("raise_dispute"):
            job = await self._get_job_or_raise(job_id)
            dispute = await self._disputes.raise_dispute(job, caller, reason, now=self._clock())
        return dispute

    async def resolve_dispute(self, caller: str, job_id: int, winner: str) -> Dispute:
        """Arbiter-only: pay the whole escrow to ``winner`` and close the job."""
        async with self._atomic("resolve_dispute"):
            job = await self._get_job_or_raise(job_id)
            platform = await self._platform_or_raise()
            dispute = await self._disputes.resolve_dispute(
                job, caller, winner, arbiter=platform.arbiter, now=self._clock()
            )
        return dispute

    async def get_dispute(self, job_id: int) -> Dispute:
        await self._get_job_or_raise(job_id)
        dispute = await self._disputes.get_dispute(job_id)
        if dispute is None:
            raise DisputeNotFoundError(job_id)
        return dispute

    # ------------------------------------------------------------------
    # Platform fee
    # ------------------------------------------------------------------

    async def update_platform_fee(self, caller: str, new_fee_rate: int) -> PlatformState:
        """Owner-only: change the fee rate applied to future completions."""
        async with self._atomic("update_platform_fee"):
            platform = await self._platform_or_raise()
            require_role(caller, platform.owner, "platform owner")
            old_rate = await self._engine.update_fee_rate(platform, new_fee_rate)
            await self._event_repo.record(
                event_type=EventType.PLATFORM_FEE_UPDATED,
                actor=caller,
                metadata={"old_fee_rate": old_rate, "new_fee_rate": new_fee_rate},
            )
        logger.info("platform.fee_updated", old_fee_rate=old_rate, new_fee_rate=new_fee_rate)
        return platform

    # ------------------------------------------------------------------
    # Read helpers
    # ------------------------------------------------------------------

    async def get_job(self, job_id: int) -> Job:
        return await self._get_job_or_raise(job_id)

    async def list_open_jobs(self) -> list[Job]:
        return await self._job_repo.get_by_status(JobStatus.OPEN)

    async def get_employer_jobs(self, identity: str) -> list[int]:
        return await self._index_repo.job_ids(identity, EMPLOYER_ROLE)

    async def get_freelancer_jobs(self, identity: str) -> list[int]:
        return await self._index_repo.job_ids(identity, FREELANCER_ROLE)

    async def get_user_rating(self, identity: str) -> int:
        return await self._reputation.get_rating(identity)

    async def get_reputation(self, identity: str) -> tuple[int, int]:
        """Return (average, count) for ``identity``."""
        return await self._reputation.get_reputation(identity)

    async def get_contract_balance(self) -> int:
        return await self._engine.contract_balance()

    async def get_status(self, job_id: int) -> dict:
        """Job status with the events each state machine allows next."""
        job = await self._get_job_or_raise(job_id)
        return {
            "job_id": job.id,
            "status": job.status,
            "dispute_status": job.dispute_status,
            "allowed_events": JobStateMachine(current_status=job.status).get_allowed_events(),
            "allowed_dispute_events": DisputeStateMachine(
                current_status=job.dispute_status
            ).get_allowed_events(),
        }

    async def get_events(self, job_id: int) -> list[JobEvent]:
        await self._get_job_or_raise(job_id)
        return await self._event_repo.get_by_job(job_id)

    # ------------------------------------------------------------------
    # Private helpers
    # ------------------------------------------------------------------

    @asynccontextmanager
    async def _atomic(self, operation: str) -> AsyncIterator[None]:
        """Commit everything staged in the block, or roll all of it back."""
        try:
            yield
        except LedgerError as exc:
            await self._session.rollback()
            logger.info("registry.rejected", operation=operation, code=exc.code, error=exc.message)
            raise
        except Exception as exc:
            await self._session.rollback()
            logger.error("registry.rolled_back", operation=operation, error=str(exc))
            raise
        await self._session.commit()

    def _reject_reserved(self, identity: str, field: str = "caller") -> None:
        if identity == self._engine.escrow_account:
            raise ValidationError(field, "the escrow pool cannot act as a party")

    async def _platform_or_raise(self) -> PlatformState:
        state = await self._platform_repo.get()
        if state is None:
            raise PlatformNotInitializedError()
        return state

    async def _get_job_or_raise(self, job_id: int) -> Job:
        job = await self._job_repo.get_by_id(job_id)
        if job is None:
            raise JobNotFoundError(job_id)
        return job
