"""Domain exceptions for the Job Escrow Ledger.

These exceptions are framework-agnostic and represent business rule violations.
They are caught and translated to HTTP responses by the API layer's middleware.
Every failing precondition maps to exactly one of the five families below.
"""


class LedgerError(Exception):
    """Base exception for all domain errors."""

    def __init__(self, message: str, code: str = "LEDGER_ERROR") -> None:
        self.message = message
        self.code = code
        super().__init__(self.message)


# --- Authorization ---


class AuthorizationError(LedgerError):
    """Raised when the caller lacks the role an operation requires."""

    def __init__(self, caller: str, required_role: str, job_id: int | None = None) -> None:
        target = f" on job {job_id}" if job_id is not None else ""
        super().__init__(
            message=f"Caller '{caller}' is not the {required_role}{target}",
            code="UNAUTHORIZED",
        )
        self.caller = caller
        self.required_role = required_role
        self.job_id = job_id


# --- Lookup ---


class NotFoundError(LedgerError):
    """Raised when a referenced record does not exist."""

    def __init__(self, message: str, code: str = "NOT_FOUND") -> None:
        super().__init__(message=message, code=code)


class JobNotFoundError(NotFoundError):
    """Raised when a job ID does not exist."""

    def __init__(self, job_id: int) -> None:
        super().__init__(message=f"Job not found: {job_id}", code="JOB_NOT_FOUND")
        self.job_id = job_id


class DisputeNotFoundError(NotFoundError):
    """Raised when a job has no dispute record."""

    def __init__(self, job_id: int) -> None:
        super().__init__(
            message=f"No dispute recorded for job: {job_id}",
            code="DISPUTE_NOT_FOUND",
        )
        self.job_id = job_id


# --- State ---


class InvalidStateError(LedgerError):
    """Raised when an operation is attempted from a state that forbids it."""

    def __init__(self, message: str, code: str = "INVALID_STATE") -> None:
        super().__init__(message=message, code=code)


class InvalidStateTransitionError(InvalidStateError):
    """Raised when a state machine event cannot fire from the current state.

    Example: CANCELLED -> IN_PROGRESS (a cancelled job can never be accepted).
    """

    def __init__(self, current_state: str, attempted_event: str) -> None:
        super().__init__(
            message=f"Invalid state transition: '{attempted_event}' from {current_state}",
            code="INVALID_STATE_TRANSITION",
        )
        self.current_state = current_state
        self.attempted_event = attempted_event


class DeadlinePassedError(InvalidStateError):
    """Raised when a job is accepted at or after its deadline."""

    def __init__(self, job_id: int, deadline: int, now: int) -> None:
        super().__init__(
            message=f"Deadline for job {job_id} passed at {deadline} (now {now})",
            code="DEADLINE_PASSED",
        )
        self.job_id = job_id
        self.deadline = deadline


class PlatformNotInitializedError(InvalidStateError):
    """Raised when the registry is used before initialize() has run."""

    def __init__(self) -> None:
        super().__init__(
            message="Platform has not been initialized",
            code="PLATFORM_NOT_INITIALIZED",
        )


# --- Input ---


class ValidationError(LedgerError):
    """Raised for malformed input (empty text, bad amount, bad rating, ...)."""

    def __init__(self, field: str, message: str) -> None:
        super().__init__(message=f"{field}: {message}", code="VALIDATION_ERROR")
        self.field = field


# --- Funds ---


class InsufficientFundsError(LedgerError):
    """Raised by the ledger store when an account cannot cover a debit."""

    def __init__(self, identity: str, required: int, available: int) -> None:
        super().__init__(
            message=(
                f"Insufficient funds for '{identity}': "
                f"required {required}, available {available}"
            ),
            code="INSUFFICIENT_FUNDS",
        )
        self.identity = identity
        self.required = required
        self.available = available
