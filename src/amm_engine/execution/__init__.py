from .state import (
    OperationPhase,
    PhaseGuard,
    OperationState,
    Step,
    StepKind,
    StepStatus,
    StepRecord,
    StepFailure,
)
from .plan import plan_steps, mutation_call
from .orchestrator import OperationOrchestrator

__all__ = [
    "OperationPhase",
    "PhaseGuard",
    "OperationState",
    "Step",
    "StepKind",
    "StepStatus",
    "StepRecord",
    "StepFailure",
    "plan_steps",
    "mutation_call",
    "OperationOrchestrator",
]
