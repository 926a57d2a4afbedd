from __future__ import annotations

from typing import List, Tuple

from amm_engine.config import PoolAddresses
from amm_engine.contracts.operation import (
    OperationRequest,
    SwapRequest,
    AddLiquidityRequest,
    RemoveLiquidityRequest,
    MintRequest,
)
from amm_engine.contracts.wallet import ContractCall
from amm_engine.quote.types import SwapDirection

from .state import Step, StepKind


def mutation_call(request: OperationRequest, addresses: PoolAddresses) -> ContractCall:
    """The single pool-mutating call a request ends with."""
    if isinstance(request, SwapRequest):
        if request.direction is SwapDirection.X_TO_Y:
            args = (request.amount_in, 0)
        else:
            args = (0, request.amount_in)
        return ContractCall(addresses.pool, "swap", args)
    if isinstance(request, AddLiquidityRequest):
        return ContractCall(addresses.pool, "addLiquidity", (request.amount_x, request.amount_y))
    if isinstance(request, RemoveLiquidityRequest):
        return ContractCall(addresses.pool, "removeLiquidity", (request.lp_amount,))
    if isinstance(request, MintRequest):
        return ContractCall(addresses.token_address(request.token), "freeMintToSender", (request.amount,))
    raise TypeError(f"unsupported request type: {type(request).__name__}")


def plan_steps(request: OperationRequest, addresses: PoolAddresses) -> Tuple[Step, ...]:
    """
    Ordered remote calls for one request:
        approve(pool, amount) per token the pool will pull and that requires it,
        then exactly one mutation.
    """
    steps: List[Step] = []
    for token, amount in request.spends().items():
        if amount <= 0 or not addresses.requires_authorization(token):
            continue
        steps.append(
            Step(
                index=len(steps) + 1,
                kind=StepKind.AUTHORIZE,
                call=ContractCall(addresses.token_address(token), "approve", (addresses.pool, amount)),
                token=token,
                amount=amount,
            )
        )
    steps.append(Step(index=len(steps) + 1, kind=StepKind.MUTATE, call=mutation_call(request, addresses)))
    return tuple(steps)
