"""
Closed error taxonomy for amm_engine.

Local validation errors (InvalidAmount, RatioMismatch, InsufficientBalance,
StaleSnapshotError) are raised before anything is sent to the remote pool.
Remote failures (AuthorizationFailure, MutationFailure, ConfirmationTimeout)
are recorded on the OperationState with the failing step; any free-text
message coming back from the remote side lives in `message` only.
"""

from __future__ import annotations

from enum import Enum


class AMMError(Exception):
    """Base class for every error raised by amm_engine."""
    pass


class InvalidAmount(AMMError):
    """Unparseable, non-positive or over-precision amount."""

    def __init__(self, message: str, *, value: object = None):
        super().__init__(message)
        self.value = value


class RatioMismatch(AMMError):
    """Deposit counterpart outside the remote invariant's tolerance.

    Attributes
    ----------
    required : int
        Exact counterpart the pool expects; callers can offer it as the correction.
    supplied : int
        Counterpart the caller supplied.
    tolerance : int
        Allowed absolute difference in base units.
    """

    def __init__(self, required: int, supplied: int, tolerance: int):
        super().__init__(
            f"Counterpart {supplied} deviates from required {required} "
            f"by more than {tolerance} base unit(s)"
        )
        self.required = required
        self.supplied = supplied
        self.tolerance = tolerance

    @property
    def difference(self) -> int:
        return abs(self.supplied - self.required)


class InsufficientBalance(AMMError):
    """Cached account balance cannot cover the request (fast-fail, not authoritative)."""

    def __init__(self, token: str, required: int, available: int):
        super().__init__(
            f"Insufficient {token} balance: required={required} available={available}"
        )
        self.token = token
        self.required = required
        self.available = available


class RemoteFailure(AMMError):
    """A remote write step was rejected, reverted or not confirmed in time."""

    def __init__(self, step: int, message: str = ""):
        super().__init__(f"step {step} failed: {message}" if message else f"step {step} failed")
        self.step = step
        self.message = message


class AuthorizationFailure(RemoteFailure):
    pass


class MutationFailure(RemoteFailure):
    pass


class ConfirmationTimeout(RemoteFailure):
    """Confirmation not observed within the bound. The outcome is indeterminate."""
    pass


class StaleSnapshotError(AMMError):
    """Snapshot older than the allowed staleness bound (strict-freshness callers only)."""

    def __init__(self, age_s: float | None, max_age_s: float, *, flagged: bool = False):
        if age_s is None:
            msg = "no pool snapshot available"
        elif flagged:
            msg = f"pool snapshot flagged stale (age={age_s:.3f}s)"
        else:
            msg = f"pool snapshot age {age_s:.3f}s exceeds bound {max_age_s:.3f}s"
        super().__init__(msg)
        self.age_s = age_s
        self.max_age_s = max_age_s
        self.flagged = flagged


class RefreshError(AMMError):
    """Fetching pool/account state failed; the cache keeps its last good values."""
    pass


class UnknownOperation(AMMError, KeyError):
    pass


class FailureCause(str, Enum):
    """Structured cause recorded on a failed step."""
    AUTHORIZATION_FAILURE = "AuthorizationFailure"
    MUTATION_FAILURE = "MutationFailure"
    CONFIRMATION_TIMEOUT = "ConfirmationTimeout"

    def as_exception(self, step: int, message: str = "") -> RemoteFailure:
        cls = {
            FailureCause.AUTHORIZATION_FAILURE: AuthorizationFailure,
            FailureCause.MUTATION_FAILURE: MutationFailure,
            FailureCause.CONFIRMATION_TIMEOUT: ConfirmationTimeout,
        }[self]
        return cls(step, message)
