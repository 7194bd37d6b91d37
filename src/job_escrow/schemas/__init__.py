"""Pydantic API schemas."""

from job_escrow.schemas.jobs import (
    BalanceResponse,
    CompleteJobRequest,
    CreateJobRequest,
    DepositRequest,
    DisputeResponse,
    HealthResponse,
    JobEventResponse,
    JobIdsResponse,
    JobResponse,
    JobStatusResponse,
    PlatformResponse,
    RaiseDisputeRequest,
    RatingResponse,
    ResolveDisputeRequest,
    UpdateFeeRequest,
)

__all__ = [
    "BalanceResponse",
    "CompleteJobRequest",
    "CreateJobRequest",
    "DepositRequest",
    "DisputeResponse",
    "HealthResponse",
    "JobEventResponse",
    "JobIdsResponse",
    "JobResponse",
    "JobStatusResponse",
    "PlatformResponse",
    "RaiseDisputeRequest",
    "RatingResponse",
    "ResolveDisputeRequest",
    "UpdateFeeRequest",
]
