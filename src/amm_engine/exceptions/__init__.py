from .core import (
    AMMError,
    InvalidAmount,
    RatioMismatch,
    InsufficientBalance,
    RemoteFailure,
    AuthorizationFailure,
    MutationFailure,
    ConfirmationTimeout,
    StaleSnapshotError,
    RefreshError,
    UnknownOperation,
    FailureCause,
)

__all__ = [
    "AMMError",
    "InvalidAmount",
    "RatioMismatch",
    "InsufficientBalance",
    "RemoteFailure",
    "AuthorizationFailure",
    "MutationFailure",
    "ConfirmationTimeout",
    "StaleSnapshotError",
    "RefreshError",
    "UnknownOperation",
    "FailureCause",
]
