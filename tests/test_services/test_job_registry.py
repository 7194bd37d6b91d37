"""Tests for the JobRegistry against an in-memory ledger store.

Every failing operation must leave no observable change, so these tests
re-read jobs and balances through the registry after each rejection instead
of inspecting objects held from before it.
"""

from __future__ import annotations

import pytest
from conftest import (
    ARBITER,
    DAY,
    EMPLOYER,
    FREELANCER,
    NOW,
    OUTSIDER,
    OWNER,
    STARTING_BALANCE,
    TREASURY,
    FakeClock,
    post_and_accept,
    post_job,
)

from job_escrow.domain.enums import DisputeStatus, EventType, JobStatus
from job_escrow.domain.exceptions import (
    AuthorizationError,
    DeadlinePassedError,
    InsufficientFundsError,
    InvalidStateError,
    JobNotFoundError,
    PlatformNotInitializedError,
    ValidationError,
)
from job_escrow.services.job_registry import JobRegistry


async def _total_supply(registry: JobRegistry, *identities: str) -> int:
    accounts = (EMPLOYER, FREELANCER, TREASURY, registry.escrow_account, *identities)
    return sum([await registry.get_balance(identity) for identity in accounts])


# ---------------------------------------------------------------------------
# Platform bootstrap
# ---------------------------------------------------------------------------


class TestInitialize:
    @pytest.mark.asyncio
    async def test_platform_parameters(self, registry: JobRegistry) -> None:
        platform = await registry.get_platform()
        assert platform.owner == OWNER
        assert platform.arbiter == ARBITER
        assert platform.fee_recipient == TREASURY
        assert platform.fee_rate == 25
        assert platform.job_counter == 0

    @pytest.mark.asyncio
    async def test_second_initialize_rejected(self, registry: JobRegistry) -> None:
        with pytest.raises(InvalidStateError, match="already initialized"):
            await registry.initialize(owner=OUTSIDER)
        platform = await registry.get_platform()
        assert platform.owner == OWNER

    @pytest.mark.asyncio
    async def test_roles_default_to_owner(self, session, clock: FakeClock) -> None:
        reg = JobRegistry(session, clock=clock)
        assert await reg.is_initialized() is False
        platform = await reg.initialize(owner=OWNER)
        assert platform.arbiter == OWNER
        assert platform.fee_recipient == OWNER
        assert await reg.is_initialized() is True

    @pytest.mark.asyncio
    @pytest.mark.parametrize("role", ["owner", "arbiter", "fee_recipient"])
    async def test_escrow_pool_cannot_hold_a_role(
        self, session, clock: FakeClock, role: str
    ) -> None:
        reg = JobRegistry(session, clock=clock)
        roles = {"owner": OWNER, "arbiter": ARBITER, "fee_recipient": TREASURY}
        roles[role] = reg.escrow_account

        with pytest.raises(ValidationError) as exc_info:
            await reg.initialize(**roles)

        assert exc_info.value.field == role
        assert await reg.is_initialized() is False

    @pytest.mark.asyncio
    async def test_create_job_requires_initialize(self, session, clock: FakeClock) -> None:
        reg = JobRegistry(session, clock=clock)
        await reg.deposit(EMPLOYER, 5000)
        with pytest.raises(PlatformNotInitializedError):
            await post_job(reg)
        assert await reg.get_balance(EMPLOYER) == 5000


# ---------------------------------------------------------------------------
# create_job
# ---------------------------------------------------------------------------


class TestCreateJob:
    @pytest.mark.asyncio
    async def test_create_locks_escrow(self, registry: JobRegistry) -> None:
        job_id = await post_job(registry, payment=1000)
        job = await registry.get_job(job_id)

        assert job.id == 1
        assert job.status == JobStatus.OPEN
        assert job.dispute_status == DisputeStatus.NONE
        assert job.employer == EMPLOYER
        assert job.freelancer is None
        assert job.payment == 1000
        assert job.created_at == NOW
        assert await registry.get_balance(EMPLOYER) == STARTING_BALANCE - 1000
        assert await registry.get_contract_balance() == 1000

    @pytest.mark.asyncio
    async def test_ids_are_sequential(self, registry: JobRegistry) -> None:
        ids = [await post_job(registry, payment=100) for _ in range(3)]
        assert ids == [1, 2, 3]
        assert (await registry.get_platform()).job_counter == 3
        assert await registry.get_employer_jobs(EMPLOYER) == [1, 2, 3]

    @pytest.mark.asyncio
    async def test_listed_as_open(self, registry: JobRegistry) -> None:
        first = await post_job(registry)
        second = await post_job(registry)
        await registry.cancel_job(EMPLOYER, first)
        assert [j.id for j in await registry.list_open_jobs()] == [second]

    @pytest.mark.asyncio
    @pytest.mark.parametrize(
        ("overrides", "field"),
        [
            ({"title": "  "}, "title"),
            ({"description": ""}, "description"),
            ({"escrow_amount": 0}, "escrow_amount"),
            ({"escrow_amount": -10}, "escrow_amount"),
            ({"deadline": NOW}, "deadline"),
            ({"deadline": NOW - 1}, "deadline"),
        ],
    )
    async def test_invalid_input_rejected(
        self, registry: JobRegistry, overrides: dict, field: str
    ) -> None:
        kwargs = {
            "caller": EMPLOYER,
            "title": "Logo",
            "description": "Vector logo",
            "deadline": NOW + DAY,
            "escrow_amount": 1000,
            **overrides,
        }
        with pytest.raises(ValidationError) as exc_info:
            await registry.create_job(**kwargs)
        assert exc_info.value.field == field
        assert (await registry.get_platform()).job_counter == 0
        assert await registry.get_balance(EMPLOYER) == STARTING_BALANCE

    @pytest.mark.asyncio
    async def test_insufficient_funds(self, registry: JobRegistry) -> None:
        with pytest.raises(InsufficientFundsError) as exc_info:
            await post_job(registry, payment=STARTING_BALANCE + 1)
        assert exc_info.value.available == STARTING_BALANCE
        assert (await registry.get_platform()).job_counter == 0
        assert await registry.get_employer_jobs(EMPLOYER) == []
        assert await registry.get_contract_balance() == 0

    @pytest.mark.asyncio
    async def test_unfunded_employer(self, registry: JobRegistry) -> None:
        with pytest.raises(InsufficientFundsError):
            await post_job(registry, employer=OUTSIDER)

    @pytest.mark.asyncio
    async def test_escrow_pool_cannot_post(self, registry: JobRegistry) -> None:
        with pytest.raises(ValidationError):
            await post_job(registry, employer=registry.escrow_account)


# ---------------------------------------------------------------------------
# accept_job
# ---------------------------------------------------------------------------


class TestAcceptJob:
    @pytest.mark.asyncio
    async def test_accept(self, registry: JobRegistry) -> None:
        job_id = await post_job(registry)
        job = await registry.accept_job(FREELANCER, job_id)

        assert job.status == JobStatus.IN_PROGRESS
        assert job.freelancer == FREELANCER
        assert await registry.get_freelancer_jobs(FREELANCER) == [job_id]
        assert await registry.list_open_jobs() == []

    @pytest.mark.asyncio
    async def test_unknown_job(self, registry: JobRegistry) -> None:
        with pytest.raises(JobNotFoundError):
            await registry.accept_job(FREELANCER, 99)

    @pytest.mark.asyncio
    async def test_employer_cannot_accept_own_job(self, registry: JobRegistry) -> None:
        job_id = await post_job(registry)
        with pytest.raises(AuthorizationError):
            await registry.accept_job(EMPLOYER, job_id)
        job = await registry.get_job(job_id)
        assert job.status == JobStatus.OPEN
        assert job.freelancer is None

    @pytest.mark.asyncio
    async def test_second_accept_leaves_freelancer_unchanged(
        self, registry: JobRegistry
    ) -> None:
        job_id = await post_and_accept(registry)
        with pytest.raises(InvalidStateError):
            await registry.accept_job(OUTSIDER, job_id)
        job = await registry.get_job(job_id)
        assert job.freelancer == FREELANCER
        assert await registry.get_freelancer_jobs(OUTSIDER) == []

    @pytest.mark.asyncio
    async def test_escrow_pool_cannot_accept(self, registry: JobRegistry) -> None:
        job_id = await post_job(registry)

        with pytest.raises(ValidationError) as exc_info:
            await registry.accept_job(registry.escrow_account, job_id)

        assert exc_info.value.field == "caller"
        job = await registry.get_job(job_id)
        assert job.status == JobStatus.OPEN
        assert job.freelancer is None
        assert await registry.get_freelancer_jobs(registry.escrow_account) == []
        assert await registry.get_contract_balance() == 1000

    @pytest.mark.asyncio
    @pytest.mark.parametrize("caller", ["", "   "])
    async def test_blank_caller_cannot_accept(self, registry: JobRegistry, caller: str) -> None:
        job_id = await post_job(registry)

        with pytest.raises(ValidationError):
            await registry.accept_job(caller, job_id)

        job = await registry.get_job(job_id)
        assert job.status == JobStatus.OPEN
        assert job.freelancer is None

    @pytest.mark.asyncio
    @pytest.mark.parametrize("final_status", [JobStatus.COMPLETED, JobStatus.DISPUTED])
    async def test_finished_job_cannot_be_accepted(
        self, registry: JobRegistry, final_status: JobStatus
    ) -> None:
        job_id = await post_and_accept(registry)
        if final_status == JobStatus.COMPLETED:
            await registry.complete_job(FREELANCER, job_id, employer_rating=80)
        else:
            await registry.raise_dispute(EMPLOYER, job_id, "Work not delivered")
            await registry.resolve_dispute(ARBITER, job_id, winner=EMPLOYER)

        with pytest.raises(InvalidStateError):
            await registry.accept_job(OUTSIDER, job_id)

        job = await registry.get_job(job_id)
        assert job.status == final_status
        assert job.freelancer == FREELANCER
        assert await registry.get_freelancer_jobs(OUTSIDER) == []

    @pytest.mark.asyncio
    async def test_accept_after_deadline(self, registry: JobRegistry, clock: FakeClock) -> None:
        job_id = await post_job(registry, deadline=NOW + DAY)
        clock.advance(2 * DAY)

        with pytest.raises(DeadlinePassedError):
            await registry.accept_job(FREELANCER, job_id)

        job = await registry.get_job(job_id)
        assert job.status == JobStatus.OPEN
        assert job.freelancer is None

    @pytest.mark.asyncio
    async def test_accept_at_deadline(self, registry: JobRegistry, clock: FakeClock) -> None:
        job_id = await post_job(registry, deadline=NOW + DAY)
        clock.advance(DAY)
        with pytest.raises(DeadlinePassedError):
            await registry.accept_job(FREELANCER, job_id)

    @pytest.mark.asyncio
    async def test_expired_job_stays_cancellable(
        self, registry: JobRegistry, clock: FakeClock
    ) -> None:
        """Expiry is not automatic: the employer recovers funds by cancelling."""
        job_id = await post_job(registry, deadline=NOW + DAY)
        clock.advance(2 * DAY)
        assert (await registry.get_job(job_id)).status == JobStatus.OPEN

        await registry.cancel_job(EMPLOYER, job_id)
        assert await registry.get_balance(EMPLOYER) == STARTING_BALANCE


# ---------------------------------------------------------------------------
# complete_job
# ---------------------------------------------------------------------------


class TestCompleteJob:
    @pytest.mark.asyncio
    async def test_completion_pays_out(self, registry: JobRegistry) -> None:
        job_id = await post_and_accept(registry, payment=1000)
        job = await registry.complete_job(FREELANCER, job_id, employer_rating=90)

        assert job.status == JobStatus.COMPLETED
        assert await registry.get_balance(FREELANCER) == STARTING_BALANCE + 975
        assert await registry.get_balance(TREASURY) == 25
        assert await registry.get_balance(EMPLOYER) == STARTING_BALANCE - 1000
        assert await registry.get_contract_balance() == 0
        assert await registry.get_user_rating(EMPLOYER) == 90

    @pytest.mark.asyncio
    async def test_only_freelancer_can_complete(self, registry: JobRegistry) -> None:
        job_id = await post_and_accept(registry)
        for caller in (EMPLOYER, OUTSIDER):
            with pytest.raises(AuthorizationError):
                await registry.complete_job(caller, job_id, employer_rating=50)
        assert (await registry.get_job(job_id)).status == JobStatus.IN_PROGRESS

    @pytest.mark.asyncio
    async def test_cannot_complete_open_job(self, registry: JobRegistry) -> None:
        job_id = await post_job(registry)
        with pytest.raises(AuthorizationError):
            await registry.complete_job(FREELANCER, job_id, employer_rating=50)

    @pytest.mark.asyncio
    async def test_cannot_complete_twice(self, registry: JobRegistry) -> None:
        job_id = await post_and_accept(registry)
        await registry.complete_job(FREELANCER, job_id, employer_rating=50)
        with pytest.raises(InvalidStateError):
            await registry.complete_job(FREELANCER, job_id, employer_rating=50)
        assert await registry.get_balance(FREELANCER) == STARTING_BALANCE + 975

    @pytest.mark.asyncio
    @pytest.mark.parametrize("rating", [0, 101])
    async def test_bad_rating_changes_nothing(self, registry: JobRegistry, rating: int) -> None:
        job_id = await post_and_accept(registry)

        with pytest.raises(ValidationError):
            await registry.complete_job(FREELANCER, job_id, employer_rating=rating)

        assert (await registry.get_job(job_id)).status == JobStatus.IN_PROGRESS
        assert await registry.get_balance(FREELANCER) == STARTING_BALANCE
        assert await registry.get_contract_balance() == 1000
        assert await registry.get_reputation(EMPLOYER) == (0, 0)

    @pytest.mark.asyncio
    async def test_failure_after_payout_rolls_back(
        self, registry: JobRegistry, monkeypatch: pytest.MonkeyPatch
    ) -> None:
        job_id = await post_and_accept(registry)

        async def boom(*args, **kwargs):
            raise RuntimeError("reputation store unavailable")

        monkeypatch.setattr(registry._reputation, "record_rating", boom)
        with pytest.raises(RuntimeError):
            await registry.complete_job(FREELANCER, job_id, employer_rating=70)

        assert (await registry.get_job(job_id)).status == JobStatus.IN_PROGRESS
        assert await registry.get_balance(FREELANCER) == STARTING_BALANCE
        assert await registry.get_balance(TREASURY) == 0
        assert await registry.get_contract_balance() == 1000

    @pytest.mark.asyncio
    async def test_ratings_fold_per_completion(self, registry: JobRegistry) -> None:
        for rating in (1, 100, 100):
            job_id = await post_and_accept(registry, payment=100)
            await registry.complete_job(FREELANCER, job_id, employer_rating=rating)

        assert await registry.get_reputation(EMPLOYER) == (66, 3)
        assert await registry.get_reputation(FREELANCER) == (0, 0)

    @pytest.mark.asyncio
    async def test_fee_floors_and_conserves(self, registry: JobRegistry) -> None:
        job_id = await post_and_accept(registry, payment=999)
        await registry.complete_job(FREELANCER, job_id, employer_rating=50)
        assert await registry.get_balance(TREASURY) == 24
        assert await registry.get_balance(FREELANCER) == STARTING_BALANCE + 975


# ---------------------------------------------------------------------------
# cancel_job
# ---------------------------------------------------------------------------


class TestCancelJob:
    @pytest.mark.asyncio
    async def test_cancel_refunds_in_full(self, registry: JobRegistry) -> None:
        job_id = await post_job(registry, payment=500)
        assert await registry.get_balance(EMPLOYER) == STARTING_BALANCE - 500

        job = await registry.cancel_job(EMPLOYER, job_id)

        assert job.status == JobStatus.CANCELLED
        assert await registry.get_balance(EMPLOYER) == STARTING_BALANCE
        assert await registry.get_contract_balance() == 0

    @pytest.mark.asyncio
    async def test_cancelled_job_is_terminal(self, registry: JobRegistry) -> None:
        job_id = await post_job(registry, payment=500)
        await registry.cancel_job(EMPLOYER, job_id)

        with pytest.raises(InvalidStateError):
            await registry.cancel_job(EMPLOYER, job_id)
        with pytest.raises(InvalidStateError):
            await registry.accept_job(FREELANCER, job_id)
        assert await registry.get_balance(EMPLOYER) == STARTING_BALANCE

    @pytest.mark.asyncio
    async def test_only_employer_can_cancel(self, registry: JobRegistry) -> None:
        job_id = await post_job(registry)
        with pytest.raises(AuthorizationError):
            await registry.cancel_job(FREELANCER, job_id)
        assert (await registry.get_job(job_id)).status == JobStatus.OPEN

    @pytest.mark.asyncio
    async def test_cannot_cancel_accepted_job(self, registry: JobRegistry) -> None:
        job_id = await post_and_accept(registry)
        with pytest.raises(InvalidStateError):
            await registry.cancel_job(EMPLOYER, job_id)
        assert await registry.get_contract_balance() == 1000


# ---------------------------------------------------------------------------
# Disputes (through the registry)
# ---------------------------------------------------------------------------


class TestDisputeFlow:
    @pytest.mark.asyncio
    async def test_dispute_awarded_to_freelancer(self, registry: JobRegistry) -> None:
        job_id = await post_and_accept(registry, payment=2000)
        await registry.raise_dispute(EMPLOYER, job_id, "Work not delivered")

        dispute = await registry.resolve_dispute(ARBITER, job_id, FREELANCER)

        assert dispute.resolved is True
        assert dispute.winner == FREELANCER
        job = await registry.get_job(job_id)
        assert job.status == JobStatus.DISPUTED
        assert job.dispute_status == DisputeStatus.RESOLVED
        # Full payment, no platform fee
        assert await registry.get_balance(FREELANCER) == STARTING_BALANCE + 2000
        assert await registry.get_balance(TREASURY) == 0
        assert await registry.get_contract_balance() == 0

        with pytest.raises(InvalidStateError):
            await registry.resolve_dispute(ARBITER, job_id, EMPLOYER)
        assert await registry.get_balance(EMPLOYER) == STARTING_BALANCE - 2000

    @pytest.mark.asyncio
    async def test_dispute_awarded_to_employer(self, registry: JobRegistry) -> None:
        job_id = await post_and_accept(registry, payment=2000)
        await registry.raise_dispute(FREELANCER, job_id, "Scope changed")
        await registry.resolve_dispute(ARBITER, job_id, EMPLOYER)
        assert await registry.get_balance(EMPLOYER) == STARTING_BALANCE
        assert await registry.get_balance(FREELANCER) == STARTING_BALANCE

    @pytest.mark.asyncio
    async def test_disputed_job_cannot_complete(self, registry: JobRegistry) -> None:
        job_id = await post_and_accept(registry)
        await registry.raise_dispute(FREELANCER, job_id, "Employer unresponsive")

        with pytest.raises(InvalidStateError):
            await registry.complete_job(FREELANCER, job_id, employer_rating=10)
        assert await registry.get_balance(FREELANCER) == STARTING_BALANCE
        assert await registry.get_reputation(EMPLOYER) == (0, 0)

    @pytest.mark.asyncio
    async def test_get_dispute(self, registry: JobRegistry) -> None:
        job_id = await post_and_accept(registry)
        await registry.raise_dispute(EMPLOYER, job_id, "Late")
        dispute = await registry.get_dispute(job_id)
        assert dispute.reason == "Late"
        assert dispute.raised_by == EMPLOYER
        assert dispute.resolved is False
        assert dispute.created_at == NOW


# ---------------------------------------------------------------------------
# Platform fee
# ---------------------------------------------------------------------------


class TestPlatformFee:
    @pytest.mark.asyncio
    async def test_owner_updates_fee(self, registry: JobRegistry) -> None:
        platform = await registry.update_platform_fee(OWNER, 50)
        assert platform.fee_rate == 50

        job_id = await post_and_accept(registry, payment=1000)
        await registry.complete_job(FREELANCER, job_id, employer_rating=80)
        assert await registry.get_balance(TREASURY) == 50
        assert await registry.get_balance(FREELANCER) == STARTING_BALANCE + 950

    @pytest.mark.asyncio
    async def test_zero_fee_sends_nothing_to_recipient(self, registry: JobRegistry) -> None:
        await registry.update_platform_fee(OWNER, 0)
        job_id = await post_and_accept(registry, payment=1000)
        await registry.complete_job(FREELANCER, job_id, employer_rating=80)
        assert await registry.get_balance(TREASURY) == 0
        assert await registry.get_balance(FREELANCER) == STARTING_BALANCE + 1000

    @pytest.mark.asyncio
    async def test_non_owner_rejected(self, registry: JobRegistry) -> None:
        for caller in (EMPLOYER, ARBITER):
            with pytest.raises(AuthorizationError):
                await registry.update_platform_fee(caller, 10)
        assert (await registry.get_platform()).fee_rate == 25

    @pytest.mark.asyncio
    async def test_cap_enforced(self, registry: JobRegistry) -> None:
        with pytest.raises(ValidationError):
            await registry.update_platform_fee(OWNER, 101)
        assert (await registry.get_platform()).fee_rate == 25


# ---------------------------------------------------------------------------
# Read helpers and conservation
# ---------------------------------------------------------------------------


class TestReads:
    @pytest.mark.asyncio
    async def test_get_status(self, registry: JobRegistry) -> None:
        job_id = await post_and_accept(registry)
        status = await registry.get_status(job_id)

        assert status["job_id"] == job_id
        assert status["status"] == "IN_PROGRESS"
        assert status["dispute_status"] == "NONE"
        assert set(status["allowed_events"]) == {"freelancer_completes", "arbiter_resolves"}
        assert status["allowed_dispute_events"] == ["party_raises"]

    @pytest.mark.asyncio
    async def test_event_trail(self, registry: JobRegistry) -> None:
        job_id = await post_and_accept(registry)
        await registry.complete_job(FREELANCER, job_id, employer_rating=60)

        events = await registry.get_events(job_id)
        assert [e.event_type for e in events] == [
            EventType.JOB_CREATED,
            EventType.JOB_ACCEPTED,
            EventType.PAYMENT_RELEASED,
            EventType.RATING_RECORDED,
            EventType.JOB_COMPLETED,
        ]
        completed = events[-1]
        assert completed.actor == FREELANCER
        assert completed.old_status == "IN_PROGRESS"
        assert completed.new_status == "COMPLETED"
        assert completed.metadata_json["platform_fee"] == 25

    @pytest.mark.asyncio
    async def test_rejected_operation_records_no_event(self, registry: JobRegistry) -> None:
        job_id = await post_job(registry)
        with pytest.raises(AuthorizationError):
            await registry.cancel_job(OUTSIDER, job_id)
        events = await registry.get_events(job_id)
        assert [e.event_type for e in events] == [EventType.JOB_CREATED]

    @pytest.mark.asyncio
    async def test_unknown_job_reads(self, registry: JobRegistry) -> None:
        with pytest.raises(JobNotFoundError):
            await registry.get_job(42)
        with pytest.raises(JobNotFoundError):
            await registry.get_status(42)

    @pytest.mark.asyncio
    async def test_value_is_conserved(self, registry: JobRegistry) -> None:
        supply = await _total_supply(registry)

        completed = await post_and_accept(registry, payment=1234)
        await registry.complete_job(FREELANCER, completed, employer_rating=75)
        cancelled = await post_job(registry, payment=300)
        await registry.cancel_job(EMPLOYER, cancelled)
        disputed = await post_and_accept(registry, payment=777)
        await registry.raise_dispute(FREELANCER, disputed, "Unpaid extras")
        await registry.resolve_dispute(ARBITER, disputed, EMPLOYER)
        await post_job(registry, payment=50)

        assert await _total_supply(registry) == supply
        assert await registry.get_contract_balance() == 50
