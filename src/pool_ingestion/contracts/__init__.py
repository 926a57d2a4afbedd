from .reads import PoolReadService, CounterpartReadService
from .tick import PoolTick, normalize_tick
from .worker import IngestWorker

__all__ = ["PoolReadService", "CounterpartReadService", "PoolTick", "normalize_tick", "IngestWorker"]
