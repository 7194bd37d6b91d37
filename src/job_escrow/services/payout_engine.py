"""Escrow/Payout Engine — moves escrowed funds through the ledger store.

The engine keeps no state of its own beyond the platform fee rate (stored on
the platform-state row). It never commits: every lock, release and split runs
inside the job registry's unit of work, so a failed transfer rolls back the
status change that triggered it.

Money paths:
    lock      employer       -> escrow pool    (create_job)
    release   escrow pool    -> freelancer + fee recipient   (complete_job)
    refund    escrow pool    -> employer       (cancel_job)
    award     escrow pool    -> dispute winner (resolve_dispute)
"""

from __future__ import annotations

from typing import TYPE_CHECKING

from job_escrow.domain.enums import EventType
from job_escrow.domain.guards import require_fee_rate
from job_escrow.domain.payout import PayoutSplit, split
from job_escrow.logging_config import get_logger

if TYPE_CHECKING:
    from job_escrow.domain.ledger_protocol import LedgerStore
    from job_escrow.infrastructure.database.orm_models import Job, PlatformState
    from job_escrow.infrastructure.database.repositories import (
        EventRepository,
        PlatformRepository,
    )

logger = get_logger(__name__)


class EscrowEngine:
    """Computes payout splits and issues ledger transfers."""

    def __init__(
        self,
        ledger: LedgerStore,
        platform_repo: PlatformRepository,
        event_repo: EventRepository,
        escrow_account: str,
    ) -> None:
        self._ledger = ledger
        self._platform_repo = platform_repo
        self._event_repo = event_repo
        self._escrow_account = escrow_account

    @property
    def escrow_account(self) -> str:
        return self._escrow_account

    # ------------------------------------------------------------------
    # Primitives
    # ------------------------------------------------------------------

    async def lock(self, amount: int, source: str) -> None:
        """Move ``amount`` from ``source`` into the escrow pool."""
        await self._ledger.transfer(source, self._escrow_account, amount)
        logger.debug("escrow.locked", amount=amount, source=source)

    async def release(self, amount: int, destination: str) -> None:
        """Move ``amount`` out of the escrow pool to ``destination``."""
        await self._ledger.transfer(self._escrow_account, destination, amount)
        logger.debug("escrow.released", amount=amount, destination=destination)

    @staticmethod
    def split(amount: int, fee_rate: int) -> PayoutSplit:
        return split(amount, fee_rate)

    async def contract_balance(self) -> int:
        """Total currently held in escrow across all open and in-progress jobs."""
        return await self._ledger.balance_of(self._escrow_account)

    # ------------------------------------------------------------------
    # Job payouts
    # ------------------------------------------------------------------

    async def pay_completion(self, job: Job, platform: PlatformState) -> PayoutSplit:
        """Pay the freelancer and the platform fee for a completed job."""
        payout = self.split(job.payment, platform.fee_rate)
        await self.release(payout.remainder, job.freelancer)
        if payout.fee:
            await self.release(payout.fee, platform.fee_recipient)

        await self._event_repo.record(
            event_type=EventType.PAYMENT_RELEASED,
            actor="SYSTEM",
            job_id=job.id,
            metadata={
                "freelancer": job.freelancer,
                "freelancer_payment": payout.remainder,
                "fee_recipient": platform.fee_recipient,
                "platform_fee": payout.fee,
                "fee_rate": platform.fee_rate,
            },
        )
        logger.info(
            "payout.released",
            job_id=job.id,
            freelancer=job.freelancer,
            freelancer_payment=payout.remainder,
            platform_fee=payout.fee,
        )
        return payout

    async def refund(self, job: Job) -> None:
        """Return the full escrowed payment to the employer."""
        await self.release(job.payment, job.employer)
        await self._event_repo.record(
            event_type=EventType.ESCROW_REFUNDED,
            actor="SYSTEM",
            job_id=job.id,
            metadata={"employer": job.employer, "amount": job.payment},
        )
        logger.info("payout.refunded", job_id=job.id, employer=job.employer, amount=job.payment)

    async def award(self, job: Job, winner: str) -> None:
        """Pay the full escrowed payment to a dispute winner. No fee is taken."""
        await self.release(job.payment, winner)
        await self._event_repo.record(
            event_type=EventType.PAYMENT_RELEASED,
            actor="SYSTEM",
            job_id=job.id,
            metadata={"winner": winner, "amount": job.payment},
        )
        logger.info("payout.awarded", job_id=job.id, winner=winner, amount=job.payment)

    # ------------------------------------------------------------------
    # Fee rate
    # ------------------------------------------------------------------

    async def update_fee_rate(self, platform: PlatformState, new_rate: int) -> int:
        """Set a new fee rate (caller authorization is the registry's concern).

        Returns:
            The previous fee rate.
        """
        require_fee_rate(new_rate)
        old_rate = platform.fee_rate
        await self._platform_repo.set_fee_rate(platform, new_rate)
        return old_rate
