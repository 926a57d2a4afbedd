from __future__ import annotations

import asyncio
import itertools
import time
from collections import deque
from typing import Awaitable, Callable, Dict, List, Optional

from amm_engine.config import PoolAddresses
from amm_engine.contracts.operation import (
    OperationRequest,
    SwapRequest,
    AddLiquidityRequest,
    RemoveLiquidityRequest,
    MintRequest,
)
from amm_engine.contracts.wallet import ConfirmationStatus, WalletTransport
from amm_engine.data.cache import PoolStateCache
from amm_engine.data.snapshot import PoolState
from amm_engine.exceptions import (
    FailureCause,
    InsufficientBalance,
    StaleSnapshotError,
    UnknownOperation,
)
from amm_engine.quote.engine import QuoteEngine
from amm_engine.utils.asyncio import wait_bounded
from amm_engine.utils.logger import (
    get_logger,
    log_debug,
    log_info,
    log_warn,
    log_exception,
    log_operation_trace,
)
from amm_engine.utils.timer import timed_block

from .plan import plan_steps
from .state import (
    OperationPhase,
    OperationState,
    Step,
    StepFailure,
    StepKind,
    StepRecord,
    StepStatus,
)

OperationListener = Callable[[OperationState], None]
ConfirmedCallback = Callable[[OperationState], Awaitable[None]]


class OperationOrchestrator:
    """
    Drives a request through its authorization steps and its single mutation.

    Lifecycle:
        IDLE -> (AUTHORIZING[i] -> AWAITING_CONFIRMATION[i])* -> [AUTHORIZED]
             -> MUTATING -> AWAITING_CONFIRMATION -> CONFIRMED
        any step may end in FAILED(step, cause)

    Semantics:
      - a step starts only after the previous one is confirmed;
      - local validation runs before anything is submitted;
      - a failed operation resumes from its failed step; confirmed steps
        are never re-issued;
      - a confirmation timeout keeps the submission handle so `resume`
        re-awaits it instead of submitting a duplicate write.
    """

    def __init__(
        self,
        wallet: WalletTransport,
        cache: PoolStateCache,
        engine: QuoteEngine,
        addresses: PoolAddresses,
        *,
        confirmation_timeout_s: float = 60.0,
        max_snapshot_age_s: float | None = None,
        archive_size: int = 100,
        clock: Callable[[], float] = time.time,
    ):
        if confirmation_timeout_s <= 0:
            raise ValueError("confirmation_timeout_s must be > 0")
        self.wallet = wallet
        self.cache = cache
        self.engine = engine
        self.addresses = addresses
        self.confirmation_timeout_s = float(confirmation_timeout_s)
        self.max_snapshot_age_s = max_snapshot_age_s
        self._clock = clock

        self._ids = itertools.count(1)
        self._operations: Dict[str, OperationState] = {}
        self._archive: deque[OperationState] = deque(maxlen=int(archive_size))
        self._running: set[str] = set()
        self._listeners: List[OperationListener] = []
        self._confirmed: List[ConfirmedCallback] = []
        self._logger = get_logger(__name__)

    # ------------------------------------------------------------------
    # Observers
    # ------------------------------------------------------------------
    def subscribe(self, listener: OperationListener) -> None:
        """Called synchronously on every phase transition."""
        if listener not in self._listeners:
            self._listeners.append(listener)

    def unsubscribe(self, listener: OperationListener) -> None:
        if listener in self._listeners:
            self._listeners.remove(listener)

    def on_confirmed(self, callback: ConfirmedCallback) -> None:
        """Awaited after an operation reaches CONFIRMED."""
        if callback not in self._confirmed:
            self._confirmed.append(callback)

    # ------------------------------------------------------------------
    # Registry
    # ------------------------------------------------------------------
    @property
    def operations(self) -> Dict[str, OperationState]:
        return dict(self._operations)

    @property
    def archived(self) -> List[OperationState]:
        return list(self._archive)

    def get(self, op_id: str) -> OperationState:
        try:
            return self._operations[op_id]
        except KeyError:
            raise UnknownOperation(op_id) from None

    def acknowledge(self, op_id: str) -> OperationState:
        """Retire a terminal operation once its outcome has been observed."""
        op = self.get(op_id)
        if not op.is_terminal:
            raise RuntimeError(f"operation {op_id} is {op.phase.value}, not terminal")
        if op_id in self._running:
            raise RuntimeError(f"operation {op_id} is still running")
        del self._operations[op_id]
        self._archive.append(op)
        log_debug(self._logger, "OperationOrchestrator acknowledged", op_id=op_id, phase=op.phase)
        return op

    # ------------------------------------------------------------------
    # Validation
    # ------------------------------------------------------------------
    def validate(self, request: OperationRequest) -> Optional[PoolState]:
        """
        Local checks against the cached state; nothing is sent remotely.

        Raises InvalidAmount, RatioMismatch, InsufficientBalance or
        StaleSnapshotError. Balance checks are skipped without a cached
        account position. Returns the PoolState the checks used.
        """
        state = self.cache.capture(self.max_snapshot_age_s)

        if isinstance(request, AddLiquidityRequest):
            if state is None:
                raise StaleSnapshotError(None, self.max_snapshot_age_s or 0.0)
            self.engine.check_deposit(state.snapshot, request.amount_x, request.amount_y)
        elif isinstance(request, RemoveLiquidityRequest):
            if state is not None:
                self.engine.removal_quote(state.snapshot, request.lp_amount)
        elif not isinstance(request, (SwapRequest, MintRequest)):
            raise TypeError(f"unsupported request type: {type(request).__name__}")

        position = None if state is None else state.position
        if position is not None:
            for token, amount in request.spends().items():
                available = position.balance_of(token)
                if amount > available:
                    raise InsufficientBalance(token, amount, available)
        return state

    # ------------------------------------------------------------------
    # Execution
    # ------------------------------------------------------------------
    async def submit(self, request: OperationRequest, *, stop_before_mutation: bool = False) -> OperationState:
        """Validate, plan and run `request`; returns the resulting OperationState.

        Local validation errors propagate and no OperationState is created.
        Remote failures are recorded on the returned state, not raised.
        """
        state_before = self.validate(request)
        steps = plan_steps(request, self.addresses)
        now = self._clock()
        op = OperationState(
            op_id=f"op-{next(self._ids)}",
            request=request,
            steps=steps,
            records=[StepRecord(index=s.index) for s in steps],
            state_before=state_before,
            created_at=now,
            updated_at=now,
        )
        self._operations[op.op_id] = op
        log_operation_trace(
            self._logger,
            "operation.submitted",
            op_id=op.op_id,
            request=request,
            steps=[s.call.function for s in steps],
        )
        return await self._run(op, stop_before_mutation)

    async def resume(self, op_id: str, *, stop_before_mutation: bool = False) -> OperationState:
        """Continue a FAILED or AUTHORIZED operation from its first unconfirmed step.

        Unless the step is a timed-out submission to re-await, the request is
        validated again first; RatioMismatch, InsufficientBalance and
        StaleSnapshotError propagate without sending anything.
        """
        op = self.get(op_id)
        if op.phase is OperationPhase.CONFIRMED:
            log_debug(self._logger, "OperationOrchestrator resume on confirmed operation", op_id=op_id)
            return op
        if op.phase not in (OperationPhase.FAILED, OperationPhase.AUTHORIZED):
            raise RuntimeError(f"operation {op_id} cannot resume from {op.phase.value}")
        step = op.next_step
        if step is not None and not op.record(step).awaiting_handle:
            # a fresh submission follows: re-check against the current cache,
            # local errors propagate and the operation keeps its phase
            self.validate(op.request)
        log_operation_trace(
            self._logger,
            "operation.resumed",
            op_id=op_id,
            phase=op.phase,
            failure=op.failure,
        )
        return await self._run(op, stop_before_mutation)

    async def _run(self, op: OperationState, stop_before_mutation: bool) -> OperationState:
        if op.op_id in self._running:
            raise RuntimeError(f"operation {op.op_id} is already running")
        self._running.add(op.op_id)
        try:
            with timed_block("operation.run", self._logger, op_id=op.op_id):
                await self._drive(op, stop_before_mutation)
        finally:
            self._running.discard(op.op_id)

        if op.phase is OperationPhase.CONFIRMED:
            await self._fire_confirmed(op)
        return op

    async def _drive(self, op: OperationState, stop_before_mutation: bool) -> None:
        for step in op.steps:
            if op.record(step).status is StepStatus.CONFIRMED:
                continue
            if step.kind is StepKind.MUTATE and stop_before_mutation:
                if op.phase is not OperationPhase.AUTHORIZED:
                    self._transition(op, OperationPhase.AUTHORIZED, step.index - 1)
                return
            if not await self._run_step(op, step):
                return
        self._transition(op, OperationPhase.CONFIRMED)

    async def _run_step(self, op: OperationState, step: Step) -> bool:
        record = op.record(step)
        if record.awaiting_handle:
            # outcome of the earlier submission is unknown: re-await, never re-send
            log_info(
                self._logger,
                "OperationOrchestrator re-awaiting timed-out step",
                op_id=op.op_id,
                step=step.index,
                handle=record.handle,
            )
        else:
            phase = OperationPhase.AUTHORIZING if step.kind is StepKind.AUTHORIZE else OperationPhase.MUTATING
            self._transition(op, phase, step.index)
            record.attempts += 1
            record.timed_out = False
            record.handle = None
            try:
                handle = await self.wallet.submit(step.call)
            except Exception as exc:
                log_exception(
                    self._logger,
                    "OperationOrchestrator submission rejected",
                    op_id=op.op_id,
                    step=step.index,
                    call=step.call,
                )
                self._fail(op, step, step.failure_cause, str(exc))
                return False
            record.handle = handle
            record.status = StepStatus.SUBMITTED

        self._transition(op, OperationPhase.AWAITING_CONFIRMATION, step.index)
        status = await self._await(op, step, record)
        if status is None:
            return False

        if status is ConfirmationStatus.CONFIRMED:
            record.status = StepStatus.CONFIRMED
            record.timed_out = False
            record.message = ""
            log_operation_trace(
                self._logger,
                "operation.step_confirmed",
                op_id=op.op_id,
                step=step.index,
                kind=step.kind,
                handle=record.handle,
            )
            return True

        if status is ConfirmationStatus.TIMED_OUT:
            record.timed_out = True
            self._fail(op, step, FailureCause.CONFIRMATION_TIMEOUT, "confirmation not observed in time")
            return False

        self._fail(op, step, step.failure_cause, "reverted")
        return False

    async def _await(self, op: OperationState, step: Step, record: StepRecord) -> Optional[ConfirmationStatus]:
        try:
            status = await wait_bounded(
                self.wallet.await_confirmation(record.handle, self.confirmation_timeout_s),
                timeout_s=self.confirmation_timeout_s,
                logger=self._logger,
                op="await_confirmation",
                op_id=op.op_id,
                step=step.index,
            )
            # an unrecognised status is treated like a failed lookup
            return ConfirmationStatus(status)
        except asyncio.TimeoutError:
            return ConfirmationStatus.TIMED_OUT
        except Exception as exc:
            log_exception(
                self._logger,
                "OperationOrchestrator confirmation lookup failed",
                op_id=op.op_id,
                step=step.index,
            )
            # handle is known: treat as indeterminate so resume re-awaits it
            record.timed_out = True
            self._fail(op, step, FailureCause.CONFIRMATION_TIMEOUT, str(exc))
            return None

    # ------------------------------------------------------------------
    # Transitions
    # ------------------------------------------------------------------
    def _transition(self, op: OperationState, phase: OperationPhase, step: int | None = None) -> None:
        op.transition(phase, step, now=self._clock())
        log_operation_trace(
            self._logger,
            "operation.transition",
            op_id=op.op_id,
            phase=phase,
            step=op.current_step,
        )
        self._notify(op)

    def _fail(self, op: OperationState, step: Step, cause: FailureCause, message: str) -> None:
        record = op.record(step)
        record.status = StepStatus.FAILED
        record.message = message
        op.transition(OperationPhase.FAILED, step.index, now=self._clock())
        op.failure = StepFailure(step=step.index, cause=cause, message=message)
        log_operation_trace(
            self._logger,
            "operation.transition",
            op_id=op.op_id,
            phase=OperationPhase.FAILED,
            step=step.index,
            cause=cause,
        )
        log_warn(
            self._logger,
            "OperationOrchestrator step failed",
            op_id=op.op_id,
            step=step.index,
            cause=cause,
            message=message,
            indeterminate=op.indeterminate,
        )
        self._notify(op)

    def _notify(self, op: OperationState) -> None:
        for listener in list(self._listeners):
            try:
                listener(op)
            except Exception:
                log_exception(self._logger, "OperationOrchestrator listener failed", listener=repr(listener))

    async def _fire_confirmed(self, op: OperationState) -> None:
        for callback in list(self._confirmed):
            try:
                await callback(op)
            except Exception:
                # the operation stays CONFIRMED; a failed follow-up is only logged
                log_exception(
                    self._logger,
                    "OperationOrchestrator confirmed callback failed",
                    op_id=op.op_id,
                    callback=repr(callback),
                )
