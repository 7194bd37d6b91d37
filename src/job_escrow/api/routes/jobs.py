"""Job REST API routes.

Every mutating route acts on behalf of the identity in the X-Caller-Identity
header; authorization against that identity happens in the JobRegistry.

Routes:
    POST   /api/v1/jobs                          — Post a job (escrows payment)
    GET    /api/v1/jobs/open                     — List open jobs
    GET    /api/v1/jobs/{id}                     — Get job details
    GET    /api/v1/jobs/{id}/status              — Status + allowed next events
    GET    /api/v1/jobs/{id}/events              — Domain event trail
    POST   /api/v1/jobs/{id}/accept              — Freelancer accepts
    POST   /api/v1/jobs/{id}/complete            — Freelancer completes + rates
    POST   /api/v1/jobs/{id}/cancel              — Employer cancels an open job
    POST   /api/v1/jobs/{id}/dispute             — Raise a dispute
    GET    /api/v1/jobs/{id}/dispute             — Get the dispute record
    POST   /api/v1/jobs/{id}/dispute/resolve     — Arbiter resolves the dispute
"""

from __future__ import annotations

from fastapi import APIRouter, Depends

from job_escrow.api.deps import get_caller_identity, get_registry
from job_escrow.schemas.jobs import (
    CompleteJobRequest,
    CreateJobRequest,
    DisputeResponse,
    JobEventResponse,
    JobResponse,
    JobStatusResponse,
    RaiseDisputeRequest,
    ResolveDisputeRequest,
)
from job_escrow.services.job_registry import JobRegistry

router = APIRouter(prefix="/api/v1/jobs", tags=["Jobs"])


# ---------------------------------------------------------------------------
# Create
# ---------------------------------------------------------------------------


@router.post(
    "",
    response_model=JobResponse,
    status_code=201,
    summary="Post a job and escrow its payment",
)
async def create_job(
    request: CreateJobRequest,
    caller: str = Depends(get_caller_identity),
    registry: JobRegistry = Depends(get_registry),
) -> JobResponse:
    """Create a job in OPEN state, locking escrow_amount from the caller's balance."""
    job = await registry.create_job(
        caller=caller,
        title=request.title,
        description=request.description,
        deadline=request.deadline,
        escrow_amount=request.escrow_amount,
    )
    return JobResponse.model_validate(job)


# ---------------------------------------------------------------------------
# Read endpoints
# ---------------------------------------------------------------------------


@router.get("/open", response_model=list[JobResponse], summary="List open jobs")
async def list_open_jobs(registry: JobRegistry = Depends(get_registry)) -> list[JobResponse]:
    jobs = await registry.list_open_jobs()
    return [JobResponse.model_validate(j) for j in jobs]


@router.get("/{job_id}", response_model=JobResponse, summary="Get job details")
async def get_job(job_id: int, registry: JobRegistry = Depends(get_registry)) -> JobResponse:
    job = await registry.get_job(job_id)
    return JobResponse.model_validate(job)


@router.get(
    "/{job_id}/status",
    response_model=JobStatusResponse,
    summary="Get lightweight status check",
)
async def get_status(
    job_id: int, registry: JobRegistry = Depends(get_registry)
) -> JobStatusResponse:
    """Return the current status and the state machine events allowed next."""
    return JobStatusResponse(**await registry.get_status(job_id))


@router.get(
    "/{job_id}/events",
    response_model=list[JobEventResponse],
    summary="Get the domain event trail",
)
async def get_events(
    job_id: int, registry: JobRegistry = Depends(get_registry)
) -> list[JobEventResponse]:
    events = await registry.get_events(job_id)
    return [JobEventResponse.model_validate(e) for e in events]


# ---------------------------------------------------------------------------
# Lifecycle
# ---------------------------------------------------------------------------


@router.post("/{job_id}/accept", response_model=JobResponse, summary="Accept an open job")
async def accept_job(
    job_id: int,
    caller: str = Depends(get_caller_identity),
    registry: JobRegistry = Depends(get_registry),
) -> JobResponse:
    """Caller becomes the freelancer. Transitions OPEN -> IN_PROGRESS."""
    job = await registry.accept_job(caller, job_id)
    return JobResponse.model_validate(job)


@router.post(
    "/{job_id}/complete",
    response_model=JobResponse,
    summary="Complete a job and release payment",
)
async def complete_job(
    job_id: int,
    request: CompleteJobRequest,
    caller: str = Depends(get_caller_identity),
    registry: JobRegistry = Depends(get_registry),
) -> JobResponse:
    """Freelancer completes the job. Transitions IN_PROGRESS -> COMPLETED."""
    job = await registry.complete_job(caller, job_id, request.employer_rating)
    return JobResponse.model_validate(job)


@router.post("/{job_id}/cancel", response_model=JobResponse, summary="Cancel an open job")
async def cancel_job(
    job_id: int,
    caller: str = Depends(get_caller_identity),
    registry: JobRegistry = Depends(get_registry),
) -> JobResponse:
    """Employer cancels and is refunded. Transitions OPEN -> CANCELLED."""
    job = await registry.cancel_job(caller, job_id)
    return JobResponse.model_validate(job)


# ---------------------------------------------------------------------------
# Disputes
# ---------------------------------------------------------------------------


@router.post(
    "/{job_id}/dispute",
    response_model=DisputeResponse,
    status_code=201,
    summary="Raise a dispute",
)
async def raise_dispute(
    job_id: int,
    request: RaiseDisputeRequest,
    caller: str = Depends(get_caller_identity),
    registry: JobRegistry = Depends(get_registry),
) -> DisputeResponse:
    """Employer or freelancer disputes an IN_PROGRESS job."""
    dispute = await registry.raise_dispute(caller, job_id, request.reason)
    return DisputeResponse.model_validate(dispute)


@router.get("/{job_id}/dispute", response_model=DisputeResponse, summary="Get the dispute")
async def get_dispute(
    job_id: int, registry: JobRegistry = Depends(get_registry)
) -> DisputeResponse:
    dispute = await registry.get_dispute(job_id)
    return DisputeResponse.model_validate(dispute)


@router.post(
    "/{job_id}/dispute/resolve",
    response_model=DisputeResponse,
    summary="Resolve a dispute (arbiter only)",
)
async def resolve_dispute(
    job_id: int,
    request: ResolveDisputeRequest,
    caller: str = Depends(get_caller_identity),
    registry: JobRegistry = Depends(get_registry),
) -> DisputeResponse:
    """Award the full escrow to the winner. Transitions IN_PROGRESS -> DISPUTED."""
    dispute = await registry.resolve_dispute(caller, job_id, request.winner)
    return DisputeResponse.model_validate(dispute)
