from __future__ import annotations

import time
from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Dict, Hashable, List, Optional, Tuple

from amm_engine.contracts.operation import OperationRequest
from amm_engine.contracts.wallet import ContractCall
from amm_engine.data.snapshot import PoolState
from amm_engine.exceptions import FailureCause, RemoteFailure


class OperationPhase(str, Enum):
    IDLE = "idle"
    AUTHORIZING = "authorizing"
    AWAITING_CONFIRMATION = "awaiting_confirmation"
    AUTHORIZED = "authorized"
    MUTATING = "mutating"
    CONFIRMED = "confirmed"
    FAILED = "failed"


_ALLOWED: Dict[OperationPhase, set[OperationPhase]] = {
    OperationPhase.IDLE: {
        OperationPhase.AUTHORIZING,
        OperationPhase.MUTATING,
        OperationPhase.AUTHORIZED,
    },
    OperationPhase.AUTHORIZING: {
        OperationPhase.AWAITING_CONFIRMATION,
        OperationPhase.FAILED,
    },
    OperationPhase.MUTATING: {
        OperationPhase.AWAITING_CONFIRMATION,
        OperationPhase.FAILED,
    },
    OperationPhase.AWAITING_CONFIRMATION: {
        OperationPhase.AUTHORIZING,
        OperationPhase.AUTHORIZED,
        OperationPhase.MUTATING,
        OperationPhase.CONFIRMED,
        OperationPhase.FAILED,
    },
    OperationPhase.AUTHORIZED: {
        OperationPhase.MUTATING,
    },
    # resume: re-submit the failed step or re-await a timed-out one
    OperationPhase.FAILED: {
        OperationPhase.AUTHORIZING,
        OperationPhase.MUTATING,
        OperationPhase.AWAITING_CONFIRMATION,
        OperationPhase.AUTHORIZED,
    },
    OperationPhase.CONFIRMED: set(),
}


class PhaseGuard:
    """Enforce legal OperationPhase transitions."""

    def __init__(self) -> None:
        self._phase = OperationPhase.IDLE

    @property
    def phase(self) -> OperationPhase:
        return self._phase

    def enter(self, phase: OperationPhase) -> None:
        if phase not in _ALLOWED[self._phase]:
            raise RuntimeError(f"Invalid operation transition {self._phase.value} -> {phase.value}")
        self._phase = phase


class StepKind(str, Enum):
    AUTHORIZE = "authorize"
    MUTATE = "mutate"


class StepStatus(str, Enum):
    PENDING = "pending"
    SUBMITTED = "submitted"
    CONFIRMED = "confirmed"
    FAILED = "failed"


@dataclass(frozen=True)
class Step:
    index: int                  # 1-based position in the plan
    kind: StepKind
    call: ContractCall
    token: Optional[str] = None # authorizations only
    amount: Optional[int] = None

    @property
    def failure_cause(self) -> FailureCause:
        if self.kind is StepKind.AUTHORIZE:
            return FailureCause.AUTHORIZATION_FAILURE
        return FailureCause.MUTATION_FAILURE

    def to_dict(self) -> Dict[str, Any]:
        return {
            "index": self.index,
            "kind": self.kind.value,
            "call": self.call.to_dict(),
            "token": self.token,
            "amount": self.amount,
        }


@dataclass
class StepRecord:
    index: int
    status: StepStatus = StepStatus.PENDING
    handle: Optional[Hashable] = None
    attempts: int = 0
    timed_out: bool = False
    message: str = ""

    @property
    def awaiting_handle(self) -> bool:
        """A timed-out submission whose outcome is still unknown."""
        return self.status is StepStatus.FAILED and self.timed_out and self.handle is not None


@dataclass(frozen=True)
class StepFailure:
    step: int
    cause: FailureCause
    message: str = ""

    def as_exception(self) -> RemoteFailure:
        return self.cause.as_exception(self.step, self.message)

    def to_dict(self) -> Dict[str, Any]:
        return {"step": self.step, "cause": self.cause.value, "message": self.message}


@dataclass
class OperationState:
    """
    Lifecycle record of one submitted request, owned by the orchestrator.

    `current_step` is 1-based; 0 means no step started yet.
    """

    op_id: str
    request: OperationRequest
    steps: Tuple[Step, ...]
    records: List[StepRecord]
    state_before: Optional[PoolState] = None
    current_step: int = 0
    failure: Optional[StepFailure] = None
    created_at: float = field(default_factory=time.time)
    updated_at: float = field(default_factory=time.time)
    history: List[Tuple[str, int, float]] = field(default_factory=list)
    guard: PhaseGuard = field(default_factory=PhaseGuard, repr=False)

    @property
    def phase(self) -> OperationPhase:
        return self.guard.phase

    @property
    def is_terminal(self) -> bool:
        return self.phase in (OperationPhase.CONFIRMED, OperationPhase.FAILED)

    @property
    def indeterminate(self) -> bool:
        return self.failure is not None and self.failure.cause is FailureCause.CONFIRMATION_TIMEOUT

    @property
    def authorization_steps(self) -> Tuple[Step, ...]:
        return tuple(s for s in self.steps if s.kind is StepKind.AUTHORIZE)

    @property
    def next_step(self) -> Optional[Step]:
        for step in self.steps:
            if self.records[step.index - 1].status is not StepStatus.CONFIRMED:
                return step
        return None

    def record(self, step: Step) -> StepRecord:
        return self.records[step.index - 1]

    def transition(self, phase: OperationPhase, step: int | None = None, *, now: float | None = None) -> None:
        self.guard.enter(phase)
        if step is not None:
            self.current_step = step
        if phase is not OperationPhase.FAILED:
            self.failure = None
        self.updated_at = time.time() if now is None else now
        self.history.append((phase.value, self.current_step, self.updated_at))

    def to_dict(self) -> Dict[str, Any]:
        return {
            "op_id": self.op_id,
            "request": self.request.to_dict(),
            "phase": self.phase.value,
            "current_step": self.current_step,
            "steps": [s.to_dict() for s in self.steps],
            "records": [
                {
                    "index": r.index,
                    "status": r.status.value,
                    "handle": None if r.handle is None else str(r.handle),
                    "attempts": r.attempts,
                    "timed_out": r.timed_out,
                    "message": r.message,
                }
                for r in self.records
            ],
            "failure": None if self.failure is None else self.failure.to_dict(),
            "indeterminate": self.indeterminate,
            "created_at": self.created_at,
            "updated_at": self.updated_at,
        }
