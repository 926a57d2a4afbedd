from __future__ import annotations

from typing import Protocol, Callable, Awaitable, Union

from pool_ingestion.contracts.tick import PoolTick

EmitFn = Callable[[PoolTick], Union[None, Awaitable[None]]]


class IngestWorker(Protocol):
    """
    Ingestion worker contract.

    An IngestWorker is responsible ONLY for:
        - polling the remote pool service
        - normalizing raw reads
        - emitting PoolTick objects

    It MUST NOT:
        - import amm_engine.*
        - write the pool state cache
        - compute quotes or derived values

    Lifecycle:
        world -> worker.run(emit_tick) ... worker.stop()
    """

    async def run(self, emit: EmitFn) -> None:
        """
        Start the polling loop.

        Parameters
        ----------
        emit:
            Callback (sync or async) receiving each normalized PoolTick.
        """
        ...

    def stop(self) -> None:
        ...
