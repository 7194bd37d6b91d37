"""Repository classes for database access.

Repositories encapsulate all SQL queries and provide a clean interface
to the service layer. They accept an AsyncSession, flush their writes, and
never commit or roll back (that's the job registry's responsibility).

Writes that depend on a value read earlier are issued as conditional
UPDATEs against the stored row, so two sessions racing on the same job,
account or counter cannot both pass a check that only one of them should.
"""

from __future__ import annotations

from typing import TYPE_CHECKING, Any

from sqlalchemy import select, update
from sqlalchemy.dialects.postgresql import insert as pg_insert
from sqlalchemy.dialects.sqlite import insert as sqlite_insert
from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm.attributes import set_committed_value

from job_escrow.domain.exceptions import (
    InsufficientFundsError,
    InvalidStateError,
    InvalidStateTransitionError,
)
from job_escrow.infrastructure.database.orm_models import (
    Account,
    Dispute,
    Job,
    JobEvent,
    JobIndexEntry,
    PlatformState,
    Reputation,
)

if TYPE_CHECKING:
    from sqlalchemy.ext.asyncio import AsyncSession

    from job_escrow.domain.enums import EventType, JobStatus

PLATFORM_ROW_ID = 1


def _upsert_for(session: AsyncSession):
    """Dialect-specific INSERT that supports ON CONFLICT clauses."""
    if session.get_bind().dialect.name == "postgresql":
        return pg_insert
    return sqlite_insert


class PlatformRepository:
    """Data access for the single platform-state row."""

    def __init__(self, session: AsyncSession) -> None:
        self._session = session

    async def get(self) -> PlatformState | None:
        result = await self._session.execute(
            select(PlatformState)
            .where(PlatformState.id == PLATFORM_ROW_ID)
            .execution_options(populate_existing=True)
        )
        return result.scalar_one_or_none()

    async def create(self, state: PlatformState) -> PlatformState:
        state.id = PLATFORM_ROW_ID
        self._session.add(state)
        try:
            await self._session.flush()
        except IntegrityError as err:
            raise InvalidStateError("Platform is already initialized") from err
        return state

    async def next_job_id(self, state: PlatformState) -> int:
        """Advance the job counter in the database and return the allocated id."""
        await self._session.execute(
            update(PlatformState)
            .where(PlatformState.id == PLATFORM_ROW_ID)
            .values(job_counter=PlatformState.job_counter + 1)
            .execution_options(synchronize_session=False)
        )
        result = await self._session.execute(
            select(PlatformState.job_counter).where(PlatformState.id == PLATFORM_ROW_ID)
        )
        job_id = result.scalar_one()
        set_committed_value(state, "job_counter", job_id)
        return job_id

    async def set_fee_rate(self, state: PlatformState, fee_rate: int) -> PlatformState:
        state.fee_rate = fee_rate
        await self._session.flush()
        return state


class AccountRepository:
    """Ledger balances. Satisfies the LedgerStore protocol.

    Balances are only ever changed with relative UPDATEs, never by writing
    back a value computed in Python.
    """

    def __init__(self, session: AsyncSession) -> None:
        self._session = session

    async def balance_of(self, identity: str) -> int:
        result = await self._session.execute(
            select(Account.balance).where(Account.identity == identity)
        )
        balance = result.scalar_one_or_none()
        return balance if balance is not None else 0

    async def credit(self, identity: str, amount: int) -> int:
        insert = _upsert_for(self._session)
        stmt = insert(Account).values(identity=identity, balance=amount)
        stmt = stmt.on_conflict_do_update(
            index_elements=[Account.identity],
            set_={"balance": Account.balance + amount},
        )
        await self._session.execute(stmt)
        return await self.balance_of(identity)

    async def debit(self, identity: str, amount: int) -> int:
        result = await self._session.execute(
            update(Account)
            .where(Account.identity == identity, Account.balance >= amount)
            .values(balance=Account.balance - amount)
            .execution_options(synchronize_session=False)
        )
        if result.rowcount == 0:
            available = await self.balance_of(identity)
            raise InsufficientFundsError(identity, required=amount, available=available)
        return await self.balance_of(identity)

    async def transfer(self, source: str, destination: str, amount: int) -> None:
        await self.debit(source, amount)
        await self.credit(destination, amount)


class JobRepository:
    """Data access for jobs."""

    def __init__(self, session: AsyncSession) -> None:
        self._session = session

    async def create(self, job: Job) -> Job:
        self._session.add(job)
        await self._session.flush()
        return job

    async def get_by_id(self, job_id: int) -> Job | None:
        result = await self._session.execute(
            select(Job).where(Job.id == job_id).execution_options(populate_existing=True)
        )
        return result.scalar_one_or_none()

    async def get_by_status(self, status: JobStatus) -> list[Job]:
        result = await self._session.execute(
            select(Job).where(Job.status == status.value).order_by(Job.id.asc())
        )
        return list(result.scalars().all())

    async def transition(
        self,
        job: Job,
        event: str,
        expected: dict[str, Any],
        changes: dict[str, Any],
    ) -> Job:
        """Apply ``changes`` only if the stored row still matches ``expected``.

        Call AFTER state machine validation. If another session moved the job
        first, no row matches and the event is rejected against the job's
        current stored status.
        """
        criteria = [
            getattr(Job, column).is_(None) if value is None else getattr(Job, column) == value
            for column, value in expected.items()
        ]
        result = await self._session.execute(
            update(Job)
            .where(Job.id == job.id, *criteria)
            .values(**changes)
            .execution_options(synchronize_session=False)
        )
        if result.rowcount == 0:
            current = await self.get_by_id(job.id)
            raise InvalidStateTransitionError(current.status if current else "MISSING", event)
        for column, value in changes.items():
            set_committed_value(job, column, value)
        return job


class DisputeRepository:
    """Data access for disputes."""

    def __init__(self, session: AsyncSession) -> None:
        self._session = session

    async def create(self, dispute: Dispute) -> Dispute:
        self._session.add(dispute)
        await self._session.flush()
        return dispute

    async def get_by_job(self, job_id: int) -> Dispute | None:
        result = await self._session.execute(select(Dispute).where(Dispute.job_id == job_id))
        return result.scalar_one_or_none()

    async def mark_resolved(self, dispute: Dispute, winner: str, resolved_at: int) -> Dispute:
        dispute.resolved = True
        dispute.winner = winner
        dispute.resolved_at = resolved_at
        await self._session.flush()
        return dispute


class JobIndexRepository:
    """Append-only per-user job id sequences."""

    def __init__(self, session: AsyncSession) -> None:
        self._session = session

    async def append(self, identity: str, role: str, job_id: int) -> None:
        self._session.add(JobIndexEntry(identity=identity, role=role, job_id=job_id))
        await self._session.flush()

    async def job_ids(self, identity: str, role: str) -> list[int]:
        """Return job ids in the order they were appended."""
        result = await self._session.execute(
            select(JobIndexEntry.job_id)
            .where(JobIndexEntry.identity == identity, JobIndexEntry.role == role)
            .order_by(JobIndexEntry.id.asc())
        )
        return list(result.scalars().all())


class ReputationRepository:
    """Data access for reputation records."""

    def __init__(self, session: AsyncSession) -> None:
        self._session = session

    async def get(self, identity: str) -> Reputation | None:
        result = await self._session.execute(
            select(Reputation)
            .where(Reputation.identity == identity)
            .execution_options(populate_existing=True)
        )
        return result.scalar_one_or_none()

    async def get_for_update(self, identity: str) -> Reputation:
        """Return the identity's record locked for this transaction.

        An empty (0, 0) record is inserted first if none exists, so the row
        lock always has a row to hold.
        """
        insert = _upsert_for(self._session)
        await self._session.execute(
            insert(Reputation)
            .values(identity=identity, average=0, count=0)
            .on_conflict_do_nothing(index_elements=[Reputation.identity])
        )
        result = await self._session.execute(
            select(Reputation)
            .where(Reputation.identity == identity)
            .with_for_update()
            .execution_options(populate_existing=True)
        )
        return result.scalar_one()

    async def save(self, record: Reputation, average: int, count: int) -> Reputation:
        record.average = average
        record.count = count
        await self._session.flush()
        return record


class EventRepository:
    """Data access for the append-only domain event log."""

    def __init__(self, session: AsyncSession) -> None:
        self._session = session

    async def record(
        self,
        event_type: EventType,
        actor: str,
        job_id: int | None = None,
        old_status: JobStatus | None = None,
        new_status: JobStatus | None = None,
        metadata: dict | None = None,
    ) -> JobEvent:
        """Append a new event. This is the ONLY write operation allowed."""
        evt = JobEvent(
            job_id=job_id,
            event_type=event_type.value,
            old_status=old_status.value if old_status else None,
            new_status=new_status.value if new_status else None,
            actor=actor,
            metadata_json=metadata,
        )
        self._session.add(evt)
        await self._session.flush()
        return evt

    async def get_by_job(self, job_id: int) -> list[JobEvent]:
        """Fetch all events for a job in the order they were recorded."""
        result = await self._session.execute(
            select(JobEvent).where(JobEvent.job_id == job_id).order_by(JobEvent.id.asc())
        )
        return list(result.scalars().all())
