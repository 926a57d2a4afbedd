from __future__ import annotations

from math import isqrt

import pytest

from amm_engine.contracts import ConfirmationStatus, ContractCall, WalletTransport
from amm_engine.sim import SignerRejected, SimulatedPool


async def _run(pool: SimulatedPool, call: ContractCall) -> ConfirmationStatus:
    handle = await pool.submit(call)
    return await pool.await_confirmation(handle, timeout=1.0)


def test_simulated_pool_is_a_wallet_transport(sim_pool: SimulatedPool) -> None:
    assert isinstance(sim_pool, WalletTransport)


@pytest.mark.asyncio
async def test_first_deposit_mints_geometric_mean(sim_pool: SimulatedPool) -> None:
    a = sim_pool.addresses
    sim_pool.fund("token_x", 400)
    sim_pool.fund("token_y", 900)

    assert await _run(sim_pool, ContractCall(a.token_x, "approve", (a.pool, 400))) is ConfirmationStatus.CONFIRMED
    assert await _run(sim_pool, ContractCall(a.token_y, "approve", (a.pool, 900))) is ConfirmationStatus.CONFIRMED
    assert await _run(sim_pool, ContractCall(a.pool, "addLiquidity", (400, 900))) is ConfirmationStatus.CONFIRMED

    assert await sim_pool.get_reserves() == (400, 900)
    assert sim_pool.balance("lp_token") == isqrt(400 * 900) == 600
    assert sim_pool.allowance("token_x") == 0


@pytest.mark.asyncio
async def test_deposit_outside_tolerance_reverts(sim_pool: SimulatedPool) -> None:
    a = sim_pool.addresses
    sim_pool.seed(1000, 2000)
    sim_pool.fund("token_x", 100)
    sim_pool.fund("token_y", 300)
    await _run(sim_pool, ContractCall(a.token_x, "approve", (a.pool, 100)))
    await _run(sim_pool, ContractCall(a.token_y, "approve", (a.pool, 300)))

    status = await _run(sim_pool, ContractCall(a.pool, "addLiquidity", (100, 198)))
    assert status is ConfirmationStatus.REVERTED
    assert await sim_pool.get_reserves() == (1000, 2000)

    status = await _run(sim_pool, ContractCall(a.pool, "addLiquidity", (100, 201)))
    assert status is ConfirmationStatus.CONFIRMED
    assert await sim_pool.get_reserves() == (1100, 2201)


@pytest.mark.asyncio
async def test_swap_without_allowance_reverts(sim_pool: SimulatedPool) -> None:
    a = sim_pool.addresses
    sim_pool.seed(1000, 1000)
    sim_pool.fund("token_x", 100)
    status = await _run(sim_pool, ContractCall(a.pool, "swap", (100, 0)))
    assert status is ConfirmationStatus.REVERTED
    assert sim_pool.balance("token_x") == 100


@pytest.mark.asyncio
async def test_swap_applies_fee_on_input(sim_pool: SimulatedPool) -> None:
    a = sim_pool.addresses
    sim_pool.seed(10_000, 10_000)
    sim_pool.fund("token_y", 1_000)
    await _run(sim_pool, ContractCall(a.token_y, "approve", (a.pool, 1_000)))
    await _run(sim_pool, ContractCall(a.pool, "swap", (0, 1_000)))

    effective = 1_000 - 1_000 * 30 // 10_000
    out = effective * 10_000 // (10_000 + effective)
    assert sim_pool.balance("token_x") == out
    assert await sim_pool.get_reserves() == (10_000 - out, 11_000)


@pytest.mark.asyncio
async def test_remove_liquidity_pro_rata(sim_pool: SimulatedPool) -> None:
    a = sim_pool.addresses
    sim_pool.seed(1000, 4000)  # supply 2000 held by genesis
    sim_pool.fund("lp_token", 500)
    supply = sim_pool.lp_total_supply
    await _run(sim_pool, ContractCall(a.pool, "removeLiquidity", (500,)))

    assert sim_pool.balance("token_x") == 500 * 1000 // supply
    assert sim_pool.balance("token_y") == 500 * 4000 // supply
    assert sim_pool.balance("lp_token") == 0


@pytest.mark.asyncio
async def test_failure_injection_modes(sim_pool: SimulatedPool) -> None:
    a = sim_pool.addresses
    mint = ContractCall(a.token_x, "freeMintToSender", (5,))

    sim_pool.fail_next("freeMintToSender", "reject")
    with pytest.raises(SignerRejected):
        await sim_pool.submit(mint)

    sim_pool.fail_next("freeMintToSender", "revert")
    assert await _run(sim_pool, mint) is ConfirmationStatus.REVERTED
    assert sim_pool.balance("token_x") == 0

    sim_pool.fail_next("freeMintToSender", "hang")
    handle = await sim_pool.submit(mint)
    assert await sim_pool.await_confirmation(handle, 1.0) is ConfirmationStatus.TIMED_OUT
    assert await sim_pool.await_confirmation(handle, 1.0) is ConfirmationStatus.CONFIRMED
    assert sim_pool.balance("token_x") == 5

    with pytest.raises(ValueError):
        sim_pool.fail_next("swap", "explode")  # type: ignore[arg-type]


@pytest.mark.asyncio
async def test_read_failures_and_counterpart(sim_pool: SimulatedPool) -> None:
    sim_pool.seed(1000, 2000)
    assert await sim_pool.get_required_counterpart(100, "x") == 200
    assert await sim_pool.get_required_counterpart(200, "y") == 100

    sim_pool.fail_reads(1)
    with pytest.raises(ConnectionError):
        await sim_pool.get_reserves()
    assert await sim_pool.get_reserves() == (1000, 2000)
