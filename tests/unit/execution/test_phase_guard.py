from __future__ import annotations

import pytest

from amm_engine.execution import OperationPhase, PhaseGuard


def test_phase_guard_two_approvals_then_mutation() -> None:
    guard = PhaseGuard()
    for _ in range(2):
        guard.enter(OperationPhase.AUTHORIZING)
        guard.enter(OperationPhase.AWAITING_CONFIRMATION)
    guard.enter(OperationPhase.MUTATING)
    guard.enter(OperationPhase.AWAITING_CONFIRMATION)
    guard.enter(OperationPhase.CONFIRMED)
    assert guard.phase is OperationPhase.CONFIRMED


def test_phase_guard_authorized_is_resumable() -> None:
    guard = PhaseGuard()
    guard.enter(OperationPhase.AUTHORIZING)
    guard.enter(OperationPhase.AWAITING_CONFIRMATION)
    guard.enter(OperationPhase.AUTHORIZED)
    guard.enter(OperationPhase.MUTATING)


def test_phase_guard_failed_can_retry_or_reawait() -> None:
    guard = PhaseGuard()
    guard.enter(OperationPhase.MUTATING)
    guard.enter(OperationPhase.FAILED)
    guard.enter(OperationPhase.AWAITING_CONFIRMATION)
    guard.enter(OperationPhase.FAILED)
    guard.enter(OperationPhase.MUTATING)


def test_phase_guard_rejects_mutation_before_confirmation() -> None:
    guard = PhaseGuard()
    guard.enter(OperationPhase.AUTHORIZING)
    with pytest.raises(RuntimeError):
        guard.enter(OperationPhase.MUTATING)


def test_phase_guard_confirmed_is_final() -> None:
    guard = PhaseGuard()
    guard.enter(OperationPhase.MUTATING)
    guard.enter(OperationPhase.AWAITING_CONFIRMATION)
    guard.enter(OperationPhase.CONFIRMED)
    with pytest.raises(RuntimeError):
        guard.enter(OperationPhase.FAILED)


def test_phase_guard_rejects_invalid_start() -> None:
    with pytest.raises(RuntimeError):
        PhaseGuard().enter(OperationPhase.CONFIRMED)
