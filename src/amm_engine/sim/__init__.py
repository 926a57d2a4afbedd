from .pool import SimulatedPool, SignerRejected, ExecutionReverted, Receipt

__all__ = ["SimulatedPool", "SignerRejected", "ExecutionReverted", "Receipt"]
