"""Pydantic schemas for the Job Escrow API.

These schemas define the request/response shapes for the REST API. They are
separate from the ORM models to keep the API and database layers apart.
Business validation (non-empty text, positive amounts, rating range) stays
in the domain guards so every entry point reports the same errors.
"""

from __future__ import annotations

from datetime import datetime

from pydantic import BaseModel, ConfigDict, Field

# ---------------------------------------------------------------------------
# Request Schemas
# ---------------------------------------------------------------------------


class CreateJobRequest(BaseModel):
    """Request body for posting a job. The caller becomes the employer."""

    title: str = Field(..., description="Short job title", examples=["Design a logo"])
    description: str = Field(
        ...,
        description="What the freelancer is expected to deliver",
        examples=["Vector logo in SVG and PNG, two revisions"],
    )
    deadline: int = Field(
        ...,
        description="Unix timestamp (seconds) after which the job can no longer be accepted",
    )
    escrow_amount: int = Field(
        ...,
        description="Payment in the smallest currency unit, locked from the caller's balance",
        examples=[1000],
    )


class CompleteJobRequest(BaseModel):
    """Request body for a freelancer completing a job."""

    employer_rating: int = Field(..., description="Freelancer's rating of the employer, 1-100")


class RaiseDisputeRequest(BaseModel):
    """Request body for raising a dispute against a job."""

    reason: str = Field(..., description="Why the job is being disputed")


class ResolveDisputeRequest(BaseModel):
    """Request body for the arbiter's ruling."""

    winner: str = Field(..., description="Identity (employer or freelancer) awarded the escrow")


class UpdateFeeRequest(BaseModel):
    """Request body for changing the platform fee."""

    fee_rate: int = Field(..., description="New fee in thousandths (max 100 = 10%)")


class DepositRequest(BaseModel):
    """Request body for crediting the caller's ledger account."""

    amount: int = Field(..., description="Amount in the smallest currency unit")


# ---------------------------------------------------------------------------
# Response Schemas
# ---------------------------------------------------------------------------


class JobResponse(BaseModel):
    """Response schema for a job."""

    model_config = ConfigDict(from_attributes=True)

    id: int
    title: str
    description: str
    payment: int
    employer: str
    freelancer: str | None
    status: str
    dispute_status: str
    deadline: int
    created_at: int


class DisputeResponse(BaseModel):
    """Response schema for a dispute."""

    model_config = ConfigDict(from_attributes=True)

    job_id: int
    reason: str
    raised_by: str
    created_at: int
    resolved: bool
    winner: str | None
    resolved_at: int | None


class JobStatusResponse(BaseModel):
    """Lightweight status check response."""

    job_id: int
    status: str
    dispute_status: str
    allowed_events: list[str] = Field(
        description="Job state machine events that can fire from the current status"
    )
    allowed_dispute_events: list[str] = Field(
        description="Dispute state machine events that can fire from the current status"
    )


class JobEventResponse(BaseModel):
    """Response schema for a domain event."""

    model_config = ConfigDict(from_attributes=True)

    id: int
    job_id: int | None
    event_type: str
    old_status: str | None
    new_status: str | None
    actor: str
    metadata: dict | None = Field(default=None, validation_alias="metadata_json")
    created_at: datetime


class JobIdsResponse(BaseModel):
    """Job ids indexed for one identity, oldest first."""

    identity: str
    role: str
    job_ids: list[int]


class RatingResponse(BaseModel):
    identity: str
    average: int
    count: int


class PlatformResponse(BaseModel):
    """Response schema for the platform parameters."""

    model_config = ConfigDict(from_attributes=True)

    job_counter: int
    fee_rate: int
    owner: str
    arbiter: str
    fee_recipient: str


class BalanceResponse(BaseModel):
    identity: str
    balance: int


class HealthResponse(BaseModel):
    """Health check response."""

    status: str = "ok"
    version: str = "0.1.0"
    database: str = "unknown"
