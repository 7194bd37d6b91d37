"""Domain enumerations for the Job Escrow Ledger.

These enums define the canonical states and event types used throughout the
system. They are framework-agnostic (no SQLAlchemy, no FastAPI imports).
"""

import enum


class JobStatus(enum.StrEnum):
    """Lifecycle states of a job.

    Transitions are enforced by JobStateMachine (domain/state_machine.py).
    COMPLETED, DISPUTED and CANCELLED are terminal.
    """

    OPEN = "OPEN"
    IN_PROGRESS = "IN_PROGRESS"
    COMPLETED = "COMPLETED"
    DISPUTED = "DISPUTED"
    CANCELLED = "CANCELLED"


class DisputeStatus(enum.StrEnum):
    """Dispute state carried on every job."""

    NONE = "NONE"
    RAISED = "RAISED"
    RESOLVED = "RESOLVED"


class EventType(enum.StrEnum):
    """Domain events recorded in the job_events table.

    Every mutating operation records at least one event. The log is
    append-only and is what external indexers and notifiers consume.
    """

    # Job lifecycle
    JOB_CREATED = "JOB_CREATED"
    JOB_ACCEPTED = "JOB_ACCEPTED"
    JOB_COMPLETED = "JOB_COMPLETED"
    JOB_CANCELLED = "JOB_CANCELLED"

    # Money movement
    FUNDS_DEPOSITED = "FUNDS_DEPOSITED"
    PAYMENT_RELEASED = "PAYMENT_RELEASED"
    ESCROW_REFUNDED = "ESCROW_REFUNDED"

    # Disputes
    DISPUTE_RAISED = "DISPUTE_RAISED"
    DISPUTE_RESOLVED = "DISPUTE_RESOLVED"

    # Reputation
    RATING_RECORDED = "RATING_RECORDED"

    # Platform
    PLATFORM_INITIALIZED = "PLATFORM_INITIALIZED"
    PLATFORM_FEE_UPDATED = "PLATFORM_FEE_UPDATED"
