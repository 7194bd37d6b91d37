"""Job and Dispute State Machine Guards.

Uses python-statemachine to enforce legal state transitions at the domain level.
Whatever the API or a service does, an illegal transition (e.g.
CANCELLED -> IN_PROGRESS) raises TransitionNotAllowed before any field changes.

A machine is instantiated per check from the stored status string and is
never persisted itself.

Job transition table:
    OPEN          -> IN_PROGRESS      (freelancer_accepts)
    OPEN          -> CANCELLED        (employer_cancels)
    IN_PROGRESS   -> COMPLETED        (freelancer_completes)
    IN_PROGRESS   -> DISPUTED         (arbiter_resolves)

Dispute transition table:
    NONE          -> RAISED           (party_raises)
    RAISED        -> RESOLVED         (arbiter_resolves)
"""

from __future__ import annotations

from statemachine import State, StateMachine
from statemachine.exceptions import TransitionNotAllowed

from job_escrow.domain.exceptions import InvalidStateTransitionError


class _GuardMixin:
    """Construction from a stored status plus small read helpers."""

    def _check_status(self, current_status: str) -> None:
        valid_values = {s.value for s in self.states}
        if current_status not in valid_values:
            valid = ", ".join(sorted(valid_values))
            raise ValueError(
                f"Unknown status '{current_status}'. Valid states: {valid}"
            )

    @property
    def status(self) -> str:
        """Return the current state value as a string."""
        return str(self.current_state.value)

    def get_allowed_events(self) -> list[str]:
        """Return the event names that can fire from the current state."""
        return [event.id for event in self.allowed_events]


class JobStateMachine(_GuardMixin, StateMachine):
    """Guards the job lifecycle.

    Usage:
        sm = JobStateMachine(current_status="OPEN")
        sm.freelancer_accepts()  # transitions to IN_PROGRESS
    """

    # --- States ---
    OPEN = State("OPEN", initial=True)
    IN_PROGRESS = State("IN_PROGRESS")
    COMPLETED = State("COMPLETED", final=True)
    DISPUTED = State("DISPUTED", final=True)
    CANCELLED = State("CANCELLED", final=True)

    # --- Events / Transitions ---
    freelancer_accepts = OPEN.to(IN_PROGRESS)
    employer_cancels = OPEN.to(CANCELLED)
    freelancer_completes = IN_PROGRESS.to(COMPLETED)
    arbiter_resolves = IN_PROGRESS.to(DISPUTED)

    def __init__(self, current_status: str = "OPEN") -> None:
        self._check_status(current_status)
        super().__init__(start_value=current_status)


class DisputeStateMachine(_GuardMixin, StateMachine):
    """Guards the per-job dispute lifecycle."""

    NONE = State("NONE", initial=True)
    RAISED = State("RAISED")
    RESOLVED = State("RESOLVED", final=True)

    party_raises = NONE.to(RAISED)
    arbiter_resolves = RAISED.to(RESOLVED)

    def __init__(self, current_status: str = "NONE") -> None:
        self._check_status(current_status)
        super().__init__(start_value=current_status)


_MACHINES: dict[str, type[StateMachine]] = {
    "job": JobStateMachine,
    "dispute": DisputeStateMachine,
}

_EVENTS: dict[type[StateMachine], frozenset[str]] = {
    JobStateMachine: frozenset(
        {"freelancer_accepts", "employer_cancels", "freelancer_completes", "arbiter_resolves"}
    ),
    DisputeStateMachine: frozenset({"party_raises", "arbiter_resolves"}),
}


def validate_transition(current_status: str, event_name: str, machine: str = "job") -> str:
    """Validate a state transition and return the new status.

    Creates a temporary state machine, fires the named event, and returns
    the resulting status string.

    Args:
        current_status: Current JobStatus (or DisputeStatus) value.
        event_name: The event to fire (e.g., "freelancer_accepts").
        machine: "job" or "dispute".

    Raises:
        TransitionNotAllowed: If the transition is illegal.
        ValueError: If the machine, status or event name is invalid.
    """
    machine_cls = _MACHINES.get(machine)
    if machine_cls is None:
        raise ValueError(f"Unknown machine '{machine}'. Known: {sorted(_MACHINES)}")
    sm = machine_cls(current_status=current_status)

    event_method = getattr(sm, event_name, None)
    if event_method is None or event_name not in _EVENTS[machine_cls]:
        raise ValueError(
            f"Unknown event '{event_name}'. "
            f"Allowed events from {current_status}: {sm.get_allowed_events()}"
        )

    event_method()
    return sm.status


def guard_transition(current_status: str, event_name: str, machine: str = "job") -> str:
    """Fire ``event_name`` on a throwaway machine and return the new status.

    Raises:
        InvalidStateTransitionError: If the event cannot fire from ``current_status``.
    """
    try:
        return validate_transition(current_status, event_name, machine=machine)
    except TransitionNotAllowed as err:
        raise InvalidStateTransitionError(current_status, event_name) from err
