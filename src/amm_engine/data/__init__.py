from .snapshot import PoolSnapshot, AccountPosition, PoolState
from .cache import PoolStateCache

__all__ = ["PoolSnapshot", "AccountPosition", "PoolState", "PoolStateCache"]
