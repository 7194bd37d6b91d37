"""Domain layer — pure business logic with zero framework dependencies."""

from job_escrow.domain.enums import (
    DisputeStatus,
    EventType,
    JobStatus,
)
from job_escrow.domain.exceptions import (
    AuthorizationError,
    DeadlinePassedError,
    DisputeNotFoundError,
    InsufficientFundsError,
    InvalidStateError,
    InvalidStateTransitionError,
    JobNotFoundError,
    LedgerError,
    NotFoundError,
    PlatformNotInitializedError,
    ValidationError,
)
from job_escrow.domain.ledger_protocol import LedgerStore
from job_escrow.domain.payout import PayoutSplit, split
from job_escrow.domain.reputation import fold_rating
from job_escrow.domain.state_machine import (
    DisputeStateMachine,
    JobStateMachine,
    guard_transition,
    validate_transition,
)

__all__ = [
    "DisputeStatus",
    "EventType",
    "JobStatus",
    "AuthorizationError",
    "DeadlinePassedError",
    "DisputeNotFoundError",
    "InsufficientFundsError",
    "InvalidStateError",
    "InvalidStateTransitionError",
    "JobNotFoundError",
    "LedgerError",
    "NotFoundError",
    "PlatformNotInitializedError",
    "ValidationError",
    "LedgerStore",
    "PayoutSplit",
    "split",
    "fold_rating",
    "DisputeStateMachine",
    "JobStateMachine",
    "guard_transition",
    "validate_transition",
]
