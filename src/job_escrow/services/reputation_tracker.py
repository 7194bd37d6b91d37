"""Reputation Tracker — running average rating per identity."""

from __future__ import annotations

from typing import TYPE_CHECKING

from job_escrow.domain.enums import EventType
from job_escrow.domain.guards import require_rating
from job_escrow.domain.reputation import fold_rating
from job_escrow.logging_config import get_logger

if TYPE_CHECKING:
    from job_escrow.infrastructure.database.orm_models import Reputation
    from job_escrow.infrastructure.database.repositories import (
        EventRepository,
        ReputationRepository,
    )

logger = get_logger(__name__)


class ReputationTracker:
    """Folds ratings into per-identity averages.

    Only the job registry calls record_rating, on successful completion,
    with the freelancer's rating of the employer.
    """

    def __init__(self, reputation_repo: ReputationRepository, event_repo: EventRepository) -> None:
        self._reputation_repo = reputation_repo
        self._event_repo = event_repo

    async def record_rating(
        self,
        subject: str,
        rating: int,
        rated_by: str,
        job_id: int | None = None,
    ) -> Reputation:
        require_rating("rating", rating)
        record = await self._reputation_repo.get_for_update(subject)
        average, count = fold_rating(record.average, record.count, rating)
        await self._reputation_repo.save(record, average, count)

        await self._event_repo.record(
            event_type=EventType.RATING_RECORDED,
            actor=rated_by,
            job_id=job_id,
            metadata={"subject": subject, "rating": rating, "average": average, "count": count},
        )
        logger.info("reputation.recorded", subject=subject, rating=rating, average=average, count=count)
        return record

    async def get_rating(self, subject: str) -> int:
        """Current average, 0 when the subject has never been rated."""
        record = await self._reputation_repo.get(subject)
        return record.average if record is not None else 0

    async def get_reputation(self, subject: str) -> tuple[int, int]:
        """Return (average, count) for ``subject``."""
        record = await self._reputation_repo.get(subject)
        if record is None:
            return 0, 0
        return record.average, record.count
