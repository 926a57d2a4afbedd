from .views import DepositBaseline, FeeAccrual, PoolView, recompute_view
from .sync import StateSynchronizer, tick_to_state

__all__ = [
    "DepositBaseline",
    "FeeAccrual",
    "PoolView",
    "recompute_view",
    "StateSynchronizer",
    "tick_to_state",
]
