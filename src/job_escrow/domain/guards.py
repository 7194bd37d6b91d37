"""Shared validation and authorization guards.

Each guard either returns silently or raises the matching domain error. The
registry runs them before touching any state, in the order: existence,
authorization, state, input.
"""

from __future__ import annotations

from typing import TYPE_CHECKING

from job_escrow.domain.exceptions import AuthorizationError, ValidationError
from job_escrow.domain.payout import MAX_FEE_RATE
from job_escrow.domain.reputation import MAX_RATING, MIN_RATING

if TYPE_CHECKING:
    from job_escrow.infrastructure.database.orm_models import Job


# ---------------------------------------------------------------------------
# Input validation
# ---------------------------------------------------------------------------


def require_text(field: str, value: str | None) -> str:
    """Reject missing or whitespace-only text."""
    if value is None or not value.strip():
        raise ValidationError(field, "must be non-empty")
    return value


def require_positive(field: str, amount: int) -> int:
    if isinstance(amount, bool) or not isinstance(amount, int):
        raise ValidationError(field, f"must be an integer, got {type(amount).__name__}")
    if amount <= 0:
        raise ValidationError(field, f"must be positive, got {amount}")
    return amount


def require_future(field: str, timestamp: int, now: int) -> int:
    """Reject timestamps that are not strictly after ``now``."""
    if timestamp <= now:
        raise ValidationError(field, f"must be in the future (got {timestamp}, now {now})")
    return timestamp


def require_rating(field: str, rating: int) -> int:
    if isinstance(rating, bool) or not isinstance(rating, int):
        raise ValidationError(field, f"must be an integer, got {type(rating).__name__}")
    if not MIN_RATING <= rating <= MAX_RATING:
        raise ValidationError(field, f"must be in [{MIN_RATING}, {MAX_RATING}], got {rating}")
    return rating


def require_fee_rate(fee_rate: int) -> int:
    if isinstance(fee_rate, bool) or not isinstance(fee_rate, int):
        raise ValidationError("fee_rate", f"must be an integer, got {type(fee_rate).__name__}")
    if fee_rate < 0:
        raise ValidationError("fee_rate", f"cannot be negative, got {fee_rate}")
    if fee_rate > MAX_FEE_RATE:
        raise ValidationError("fee_rate", f"exceeds cap of {MAX_FEE_RATE}, got {fee_rate}")
    return fee_rate


def require_identity(field: str, identity: str | None) -> str:
    if identity is None or not identity.strip():
        raise ValidationError(field, "identity must be non-empty")
    return identity


# ---------------------------------------------------------------------------
# Authorization
# ---------------------------------------------------------------------------


def require_employer(job: Job, caller: str) -> None:
    if caller != job.employer:
        raise AuthorizationError(caller, "employer", job.id)


def require_freelancer(job: Job, caller: str) -> None:
    if job.freelancer is None or caller != job.freelancer:
        raise AuthorizationError(caller, "freelancer", job.id)


def require_not_employer(job: Job, caller: str) -> None:
    """Employers cannot take their own jobs."""
    if caller == job.employer:
        raise AuthorizationError(caller, "non-employer", job.id)


def require_party(job: Job, caller: str) -> None:
    """Caller must be the job's employer or its assigned freelancer."""
    if caller != job.employer and (job.freelancer is None or caller != job.freelancer):
        raise AuthorizationError(caller, "employer or freelancer", job.id)


def require_role(caller: str, holder: str, role: str) -> None:
    """Caller must hold a fixed platform role (owner, arbiter)."""
    if caller != holder:
        raise AuthorizationError(caller, role)
