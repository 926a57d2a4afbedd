from .normalize import PoolStateNormalizer
from .source import PoolStateSource, TokenAddresses
from .worker import PoolStateWorker

__all__ = ["PoolStateNormalizer", "PoolStateSource", "TokenAddresses", "PoolStateWorker"]
