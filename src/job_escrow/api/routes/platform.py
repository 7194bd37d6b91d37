"""Platform, ledger and per-user REST API routes.

Routes:
    GET    /api/v1/platform                         — Platform parameters
    GET    /api/v1/platform/balance                 — Funds held in escrow
    PUT    /api/v1/platform/fee                     — Update fee rate (owner only)
    POST   /api/v1/ledger/deposit                   — Credit the caller's account
    GET    /api/v1/ledger/{identity}                — Account balance
    GET    /api/v1/users/{identity}/jobs/employer   — Jobs posted by identity
    GET    /api/v1/users/{identity}/jobs/freelancer — Jobs accepted by identity
    GET    /api/v1/users/{identity}/rating          — Reputation average
"""

from __future__ import annotations

from fastapi import APIRouter, Depends

from job_escrow.api.deps import get_caller_identity, get_registry
from job_escrow.schemas.jobs import (
    BalanceResponse,
    DepositRequest,
    JobIdsResponse,
    PlatformResponse,
    RatingResponse,
    UpdateFeeRequest,
)
from job_escrow.services.job_registry import JobRegistry

router = APIRouter(prefix="/api/v1", tags=["Platform"])


# ---------------------------------------------------------------------------
# Platform
# ---------------------------------------------------------------------------


@router.get("/platform", response_model=PlatformResponse, summary="Get platform parameters")
async def get_platform(registry: JobRegistry = Depends(get_registry)) -> PlatformResponse:
    platform = await registry.get_platform()
    return PlatformResponse.model_validate(platform)


@router.get(
    "/platform/balance",
    response_model=BalanceResponse,
    summary="Total funds currently held in escrow",
)
async def get_contract_balance(registry: JobRegistry = Depends(get_registry)) -> BalanceResponse:
    balance = await registry.get_contract_balance()
    return BalanceResponse(identity=registry.escrow_account, balance=balance)


@router.put("/platform/fee", response_model=PlatformResponse, summary="Update the fee rate")
async def update_platform_fee(
    request: UpdateFeeRequest,
    caller: str = Depends(get_caller_identity),
    registry: JobRegistry = Depends(get_registry),
) -> PlatformResponse:
    """Owner-only. Applies to completions from now on."""
    platform = await registry.update_platform_fee(caller, request.fee_rate)
    return PlatformResponse.model_validate(platform)


# ---------------------------------------------------------------------------
# Ledger
# ---------------------------------------------------------------------------


@router.post("/ledger/deposit", response_model=BalanceResponse, summary="Fund the caller")
async def deposit(
    request: DepositRequest,
    caller: str = Depends(get_caller_identity),
    registry: JobRegistry = Depends(get_registry),
) -> BalanceResponse:
    balance = await registry.deposit(caller, request.amount)
    return BalanceResponse(identity=caller, balance=balance)


@router.get("/ledger/{identity}", response_model=BalanceResponse, summary="Get a balance")
async def get_balance(
    identity: str, registry: JobRegistry = Depends(get_registry)
) -> BalanceResponse:
    return BalanceResponse(identity=identity, balance=await registry.get_balance(identity))


# ---------------------------------------------------------------------------
# Users
# ---------------------------------------------------------------------------


@router.get("/users/{identity}/jobs/employer", response_model=JobIdsResponse)
async def get_employer_jobs(
    identity: str, registry: JobRegistry = Depends(get_registry)
) -> JobIdsResponse:
    job_ids = await registry.get_employer_jobs(identity)
    return JobIdsResponse(identity=identity, role="employer", job_ids=job_ids)


@router.get("/users/{identity}/jobs/freelancer", response_model=JobIdsResponse)
async def get_freelancer_jobs(
    identity: str, registry: JobRegistry = Depends(get_registry)
) -> JobIdsResponse:
    job_ids = await registry.get_freelancer_jobs(identity)
    return JobIdsResponse(identity=identity, role="freelancer", job_ids=job_ids)


@router.get("/users/{identity}/rating", response_model=RatingResponse)
async def get_user_rating(
    identity: str, registry: JobRegistry = Depends(get_registry)
) -> RatingResponse:
    average, count = await registry.get_reputation(identity)
    return RatingResponse(identity=identity, average=average, count=count)
