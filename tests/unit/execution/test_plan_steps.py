from __future__ import annotations

import pytest

from helpers.factories import make_addresses, make_position

from amm_engine.contracts import (
    AddLiquidityRequest,
    MintRequest,
    RemoveLiquidityRequest,
    SwapRequest,
    remove_all,
)
from amm_engine.execution import StepKind, plan_steps
from amm_engine.exceptions import InvalidAmount
from amm_engine.quote import SwapDirection


def test_add_liquidity_plans_two_approvals_then_mutation() -> None:
    addresses = make_addresses()
    steps = plan_steps(AddLiquidityRequest(100, 200), addresses)

    assert [s.index for s in steps] == [1, 2, 3]
    assert [s.kind for s in steps] == [StepKind.AUTHORIZE, StepKind.AUTHORIZE, StepKind.MUTATE]
    assert steps[0].call.target == addresses.token_x
    assert steps[0].call.function == "approve"
    assert steps[0].call.args == (addresses.pool, 100)
    assert steps[1].call.target == addresses.token_y
    assert steps[1].call.args == (addresses.pool, 200)
    assert steps[2].call.target == addresses.pool
    assert steps[2].call.function == "addLiquidity"
    assert steps[2].call.args == (100, 200)


@pytest.mark.parametrize(
    "direction, token_attr, args",
    [
        (SwapDirection.X_TO_Y, "token_x", (50, 0)),
        (SwapDirection.Y_TO_X, "token_y", (0, 50)),
    ],
)
def test_swap_plans_one_approval(direction: SwapDirection, token_attr: str, args: tuple) -> None:
    addresses = make_addresses()
    steps = plan_steps(SwapRequest(direction, 50), addresses)

    assert len(steps) == 2
    assert steps[0].call.target == getattr(addresses, token_attr)
    assert steps[0].token == token_attr
    assert steps[1].call.function == "swap"
    assert steps[1].call.args == args


def test_remove_liquidity_needs_no_approval_by_default() -> None:
    steps = plan_steps(RemoveLiquidityRequest(10), make_addresses())
    assert len(steps) == 1
    assert steps[0].call.function == "removeLiquidity"
    assert steps[0].call.args == (10,)


def test_remove_liquidity_with_lp_authorization_configured() -> None:
    addresses = make_addresses(authorization={"lp_token": True})
    steps = plan_steps(RemoveLiquidityRequest(10), addresses)
    assert [s.call.function for s in steps] == ["approve", "removeLiquidity"]
    assert steps[0].call.target == addresses.lp_token


def test_mint_targets_token_contract() -> None:
    addresses = make_addresses()
    steps = plan_steps(MintRequest("token_y", 7), addresses)
    assert len(steps) == 1
    assert steps[0].call.target == addresses.token_y
    assert steps[0].call.function == "freeMintToSender"


def test_requests_reject_non_positive_amounts() -> None:
    with pytest.raises(InvalidAmount):
        SwapRequest(SwapDirection.X_TO_Y, 0)
    with pytest.raises(InvalidAmount):
        AddLiquidityRequest(1, 0)
    with pytest.raises(InvalidAmount):
        RemoveLiquidityRequest(-1)
    with pytest.raises(InvalidAmount):
        MintRequest("lp_token", 1)  # type: ignore[arg-type]


def test_remove_all_uses_whole_lp_balance() -> None:
    assert remove_all(make_position(lp=42)).lp_amount == 42
    with pytest.raises(InvalidAmount):
        remove_all(make_position(lp=0))
