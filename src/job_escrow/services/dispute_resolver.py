"""Dispute Resolver — single-arbiter dispute workflow.

Dispute lifecycle per job: NONE -> RAISED -> RESOLVED.

Raising a dispute freezes an in-progress job: it can no longer be completed,
and the only way its escrow leaves the pool is the arbiter's resolution,
which pays the full amount to one party and moves the job to DISPUTED.
Resolution is single-shot; there is no appeal and no partial award.
"""

from __future__ import annotations

from typing import TYPE_CHECKING

from job_escrow.domain.enums import DisputeStatus, EventType, JobStatus
from job_escrow.domain.exceptions import InvalidStateError, ValidationError
from job_escrow.domain.guards import require_party, require_role, require_text
from job_escrow.domain.state_machine import guard_transition
from job_escrow.infrastructure.database.orm_models import Dispute
from job_escrow.logging_config import get_logger

if TYPE_CHECKING:
    from job_escrow.infrastructure.database.orm_models import Job
    from job_escrow.infrastructure.database.repositories import (
        DisputeRepository,
        EventRepository,
        JobRepository,
    )
    from job_escrow.services.payout_engine import EscrowEngine

logger = get_logger(__name__)


class DisputeResolver:
    """Manages dispute records and arbiter resolution."""

    def __init__(
        self,
        dispute_repo: DisputeRepository,
        job_repo: JobRepository,
        event_repo: EventRepository,
        engine: EscrowEngine,
    ) -> None:
        self._dispute_repo = dispute_repo
        self._job_repo = job_repo
        self._event_repo = event_repo
        self._engine = engine

    async def raise_dispute(self, job: Job, caller: str, reason: str, now: int) -> Dispute:
        """Open a dispute on an in-progress job."""
        require_party(job, caller)
        if job.status != JobStatus.IN_PROGRESS:
            raise InvalidStateError(
                f"Disputes can only be raised on IN_PROGRESS jobs (job {job.id} is {job.status})"
            )
        new_dispute_status = guard_transition(job.dispute_status, "party_raises", machine="dispute")
        require_text("reason", reason)

        await self._job_repo.transition(
            job,
            "party_raises",
            expected={
                "status": JobStatus.IN_PROGRESS.value,
                "dispute_status": DisputeStatus.NONE.value,
            },
            changes={"dispute_status": new_dispute_status},
        )
        dispute = await self._dispute_repo.create(
            Dispute(job_id=job.id, reason=reason, raised_by=caller, created_at=now, resolved=False)
        )

        await self._event_repo.record(
            event_type=EventType.DISPUTE_RAISED,
            actor=caller,
            job_id=job.id,
            old_status=JobStatus(job.status),
            new_status=JobStatus(job.status),
            metadata={
                "raised_by": caller,
                "reason": reason,
                "employer": job.employer,
                "freelancer": job.freelancer,
            },
        )
        logger.info("dispute.raised", job_id=job.id, raised_by=caller)
        return dispute

    async def resolve_dispute(
        self,
        job: Job,
        caller: str,
        winner: str,
        arbiter: str,
        now: int,
    ) -> Dispute:
        """Award the full escrow to ``winner`` and close the job as DISPUTED."""
        require_role(caller, arbiter, "arbiter")
        new_dispute_status = guard_transition(job.dispute_status, "arbiter_resolves", machine="dispute")
        new_job_status = guard_transition(job.status, "arbiter_resolves")
        if winner not in (job.employer, job.freelancer):
            raise ValidationError("winner", f"'{winner}' is not a party to job {job.id}")

        dispute = await self._dispute_repo.get_by_job(job.id)
        if dispute is None:
            # dispute_status says RAISED, so the record must exist.
            raise InvalidStateError(f"Dispute record missing for job {job.id}")

        old_status = JobStatus(job.status)
        await self._job_repo.transition(
            job,
            "arbiter_resolves",
            expected={
                "status": JobStatus.IN_PROGRESS.value,
                "dispute_status": DisputeStatus.RAISED.value,
            },
            changes={"status": new_job_status, "dispute_status": new_dispute_status},
        )
        await self._dispute_repo.mark_resolved(dispute, winner=winner, resolved_at=now)
        await self._engine.award(job, winner)

        await self._event_repo.record(
            event_type=EventType.DISPUTE_RESOLVED,
            actor=caller,
            job_id=job.id,
            old_status=old_status,
            new_status=JobStatus.DISPUTED,
            metadata={"winner": winner, "amount": job.payment},
        )
        logger.info("dispute.resolved", job_id=job.id, winner=winner, amount=job.payment)
        return dispute

    async def get_dispute(self, job_id: int) -> Dispute | None:
        return await self._dispute_repo.get_by_job(job_id)
