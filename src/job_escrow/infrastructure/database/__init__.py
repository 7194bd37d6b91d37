"""Database infrastructure — engine, ORM models, and repositories."""

from job_escrow.infrastructure.database.engine import (
    close_db,
    get_async_session,
    init_db,
    make_session_factory,
)
from job_escrow.infrastructure.database.orm_models import (
    Account,
    Base,
    Dispute,
    Job,
    JobEvent,
    JobIndexEntry,
    PlatformState,
    Reputation,
)
from job_escrow.infrastructure.database.repositories import (
    AccountRepository,
    DisputeRepository,
    EventRepository,
    JobIndexRepository,
    JobRepository,
    PlatformRepository,
    ReputationRepository,
)

__all__ = [
    "Account",
    "Base",
    "Dispute",
    "Job",
    "JobEvent",
    "JobIndexEntry",
    "PlatformState",
    "Reputation",
    "AccountRepository",
    "DisputeRepository",
    "EventRepository",
    "JobIndexRepository",
    "JobRepository",
    "PlatformRepository",
    "ReputationRepository",
    "get_async_session",
    "init_db",
    "close_db",
    "make_session_factory",
]
