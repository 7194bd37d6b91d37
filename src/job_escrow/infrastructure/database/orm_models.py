"""SQLAlchemy 2.0 ORM models for the Job Escrow Ledger.

Tables:
    1. platform_state  — single row: job-id counter, fee rate, platform roles.
    2. accounts        — ledger balances per identity (escrow pool included).
    3. jobs            — job records; never deleted, terminal rows kept for audit.
    4. disputes        — at most one per job, keyed by job id.
    5. job_index       — append-only per-user job id sequences (enumeration only).
    6. reputations     — running rating average per rated identity.
    7. job_events      — append-only domain event log.

Design decisions:
    - Integer job ids allocated from platform_state.job_counter (never reused).
    - Integer amounts in the smallest currency unit (no Decimal, no floats).
    - Unix-second integers for deadlines and timestamps so comparisons are
      timezone-free on every backend.
    - Generic JSON type so the same models run on SQLite and PostgreSQL.
    - CHECK constraints mirror the domain invariants at the DB level.
"""

from __future__ import annotations

from datetime import UTC, datetime

from sqlalchemy import (
    JSON,
    BigInteger,
    Boolean,
    CheckConstraint,
    DateTime,
    ForeignKey,
    Index,
    Integer,
    String,
    Text,
)
from sqlalchemy.orm import DeclarativeBase, Mapped, mapped_column


class Base(DeclarativeBase):
    """Base class for all ORM models."""

    pass


# ---------------------------------------------------------------------------
# 1. platform_state
# ---------------------------------------------------------------------------
class PlatformState(Base):
    """Process-wide parameters owned by the job registry."""

    __tablename__ = "platform_state"

    id: Mapped[int] = mapped_column(Integer, primary_key=True, default=1)
    job_counter: Mapped[int] = mapped_column(
        BigInteger,
        nullable=False,
        default=0,
        comment="Highest job id allocated so far",
    )
    fee_rate: Mapped[int] = mapped_column(
        Integer,
        nullable=False,
        comment="Platform fee in thousandths of the payment",
    )
    owner: Mapped[str] = mapped_column(String(128), nullable=False)
    arbiter: Mapped[str] = mapped_column(String(128), nullable=False)
    fee_recipient: Mapped[str] = mapped_column(String(128), nullable=False)

    __table_args__ = (
        CheckConstraint("id = 1", name="ck_platform_single_row"),
        CheckConstraint("fee_rate >= 0 AND fee_rate <= 100", name="ck_platform_fee_cap"),
        CheckConstraint("job_counter >= 0", name="ck_platform_counter"),
    )

    def __repr__(self) -> str:
        return f"<PlatformState counter={self.job_counter} fee_rate={self.fee_rate}>"


# ---------------------------------------------------------------------------
# 2. accounts
# ---------------------------------------------------------------------------
class Account(Base):
    """A ledger balance."""

    __tablename__ = "accounts"

    identity: Mapped[str] = mapped_column(String(128), primary_key=True)
    balance: Mapped[int] = mapped_column(BigInteger, nullable=False, default=0)

    __table_args__ = (CheckConstraint("balance >= 0", name="ck_account_non_negative"),)

    def __repr__(self) -> str:
        return f"<Account {self.identity} balance={self.balance}>"


# ---------------------------------------------------------------------------
# 3. jobs
# ---------------------------------------------------------------------------
class Job(Base):
    """A job posted by an employer with its payment held in escrow."""

    __tablename__ = "jobs"

    id: Mapped[int] = mapped_column(BigInteger, primary_key=True, autoincrement=False)

    title: Mapped[str] = mapped_column(String(256), nullable=False)
    description: Mapped[str] = mapped_column(Text, nullable=False)
    payment: Mapped[int] = mapped_column(
        BigInteger,
        nullable=False,
        comment="Escrowed amount; fixed at creation",
    )

    employer: Mapped[str] = mapped_column(String(128), nullable=False)
    freelancer: Mapped[str | None] = mapped_column(
        String(128),
        nullable=True,
        default=None,
        comment="Set once, on acceptance",
    )

    status: Mapped[str] = mapped_column(
        String(20),
        nullable=False,
        default="OPEN",
        comment="Lifecycle state (guarded by JobStateMachine)",
    )
    dispute_status: Mapped[str] = mapped_column(
        String(20),
        nullable=False,
        default="NONE",
        comment="Dispute state (guarded by DisputeStateMachine)",
    )

    deadline: Mapped[int] = mapped_column(BigInteger, nullable=False)
    created_at: Mapped[int] = mapped_column(BigInteger, nullable=False)

    __table_args__ = (
        CheckConstraint(
            "status IN ('OPEN', 'IN_PROGRESS', 'COMPLETED', 'DISPUTED', 'CANCELLED')",
            name="ck_job_valid_status",
        ),
        CheckConstraint(
            "dispute_status IN ('NONE', 'RAISED', 'RESOLVED')",
            name="ck_job_valid_dispute_status",
        ),
        CheckConstraint("payment > 0", name="ck_job_positive_payment"),
        Index("idx_job_status", "status"),
        Index("idx_job_employer", "employer"),
        Index("idx_job_freelancer", "freelancer"),
    )

    def __repr__(self) -> str:
        return f"<Job id={self.id} status={self.status} payment={self.payment}>"


# ---------------------------------------------------------------------------
# 4. disputes
# ---------------------------------------------------------------------------
class Dispute(Base):
    """A dispute raised on an in-progress job."""

    __tablename__ = "disputes"

    job_id: Mapped[int] = mapped_column(
        BigInteger,
        ForeignKey("jobs.id"),
        primary_key=True,
        autoincrement=False,
    )
    reason: Mapped[str] = mapped_column(Text, nullable=False)
    raised_by: Mapped[str] = mapped_column(String(128), nullable=False)
    created_at: Mapped[int] = mapped_column(BigInteger, nullable=False)
    resolved: Mapped[bool] = mapped_column(Boolean, nullable=False, default=False)
    winner: Mapped[str | None] = mapped_column(String(128), nullable=True, default=None)
    resolved_at: Mapped[int | None] = mapped_column(BigInteger, nullable=True, default=None)

    def __repr__(self) -> str:
        return f"<Dispute job={self.job_id} resolved={self.resolved}>"


# ---------------------------------------------------------------------------
# 5. job_index
# ---------------------------------------------------------------------------
class JobIndexEntry(Base):
    """One position in a user's employer or freelancer job sequence."""

    __tablename__ = "job_index"

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    identity: Mapped[str] = mapped_column(String(128), nullable=False)
    role: Mapped[str] = mapped_column(String(16), nullable=False)
    job_id: Mapped[int] = mapped_column(BigInteger, ForeignKey("jobs.id"), nullable=False)

    __table_args__ = (
        CheckConstraint("role IN ('employer', 'freelancer')", name="ck_index_role"),
        Index("idx_index_identity_role", "identity", "role"),
    )


# ---------------------------------------------------------------------------
# 6. reputations
# ---------------------------------------------------------------------------
class Reputation(Base):
    """Running average rating for one identity."""

    __tablename__ = "reputations"

    identity: Mapped[str] = mapped_column(String(128), primary_key=True)
    average: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
    count: Mapped[int] = mapped_column(Integer, nullable=False, default=0)

    __table_args__ = (
        CheckConstraint("average >= 0 AND average <= 100", name="ck_reputation_range"),
        CheckConstraint("count >= 0", name="ck_reputation_count"),
    )


# ---------------------------------------------------------------------------
# 7. job_events (Append-Only)
# ---------------------------------------------------------------------------
class JobEvent(Base):
    """Immutable record of one domain event.

    This table is APPEND-ONLY. No UPDATE or DELETE operations are permitted
    at the application level.
    """

    __tablename__ = "job_events"

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    job_id: Mapped[int | None] = mapped_column(
        BigInteger,
        nullable=True,
        comment="Null for platform-level events (fee updates, deposits)",
    )
    event_type: Mapped[str] = mapped_column(String(40), nullable=False)
    old_status: Mapped[str | None] = mapped_column(String(20), nullable=True)
    new_status: Mapped[str | None] = mapped_column(String(20), nullable=True)
    actor: Mapped[str] = mapped_column(String(128), nullable=False)
    metadata_json: Mapped[dict | None] = mapped_column(
        "metadata",
        JSON,
        nullable=True,
        default=None,
        comment="Identities and amounts relevant to the event",
    )
    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        nullable=False,
        default=lambda: datetime.now(UTC),
    )

    __table_args__ = (
        Index("idx_event_job", "job_id"),
        Index("idx_event_type", "event_type"),
    )

    def __repr__(self) -> str:
        return (
            f"<JobEvent id={self.id} type={self.event_type} "
            f"{self.old_status}->{self.new_status}>"
        )
