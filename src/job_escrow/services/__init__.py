"""Application services — job, escrow, dispute and reputation use cases."""

from job_escrow.services.dispute_resolver import DisputeResolver
from job_escrow.services.job_registry import JobRegistry
from job_escrow.services.payout_engine import EscrowEngine
from job_escrow.services.reputation_tracker import ReputationTracker

__all__ = ["DisputeResolver", "EscrowEngine", "JobRegistry", "ReputationTracker"]
