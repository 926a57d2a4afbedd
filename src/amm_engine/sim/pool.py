"""
In-memory constant-product pool with ERC20-style token ledgers and a wallet.

Implements both remote boundaries the client talks to:
  - the read service (`get_reserves`, `get_lp_total_supply`, `get_balance`,
    `get_required_counterpart`);
  - the wallet transport (`submit`, `await_confirmation`).

A submitted call executes at submission; `await_confirmation` reports the
receipt. Injected failures let tests and the demo reproduce rejected,
reverted and hung submissions.
"""

from __future__ import annotations

import asyncio
import itertools
from collections import defaultdict
from dataclasses import dataclass
from math import isqrt
from typing import Dict, Hashable, List, Literal, Tuple

from amm_engine.config import PoolAddresses
from amm_engine.contracts.wallet import ConfirmationStatus, ContractCall
from amm_engine.utils.logger import get_logger, log_debug, log_info

FailureMode = Literal["reject", "revert", "hang"]


class SignerRejected(Exception):
    """The signer refused the call; nothing was broadcast."""


class ExecutionReverted(Exception):
    """Pool or token rule violated; state is unchanged."""


@dataclass
class Receipt:
    handle: str
    call: ContractCall
    status: ConfirmationStatus
    reason: str = ""
    # confirmation lookups that still time out before the receipt shows up
    pending_lookups: int = 0


class SimulatedPool:

    def __init__(
        self,
        addresses: PoolAddresses,
        *,
        account: str | None = None,
        fee_bps: int = 30,
        fee_denominator: int = 10_000,
        tolerance: int = 1,
        confirm_delay_s: float = 0.0,
    ):
        self.addresses = addresses
        self.account = account or addresses.account or "0xaccount"
        self.fee_bps = int(fee_bps)
        self.fee_denominator = int(fee_denominator)
        self.tolerance = int(tolerance)
        self.confirm_delay_s = float(confirm_delay_s)

        self.reserve_x = 0
        self.reserve_y = 0
        # token address -> holder -> balance; the LP token supply is its ledger sum
        self._balances: Dict[str, Dict[str, int]] = defaultdict(lambda: defaultdict(int))
        self._allowances: Dict[Tuple[str, str, str], int] = defaultdict(int)

        self._handles = itertools.count(1)
        self._receipts: Dict[str, Receipt] = {}
        self._failures: Dict[str, List[FailureMode]] = defaultdict(list)
        self._read_failures = 0
        self.calls: List[ContractCall] = []
        self._logger = get_logger(__name__)

    # ------------------------------------------------------------------
    # Setup helpers
    # ------------------------------------------------------------------
    def seed(self, reserve_x: int, reserve_y: int, *, lp_holder: str = "0xgenesis") -> None:
        """Initialise reserves directly; LP supply is isqrt(x*y) held by `lp_holder`."""
        if (reserve_x == 0) != (reserve_y == 0):
            raise ValueError("reserves must be both zero or both positive")
        self.reserve_x = int(reserve_x)
        self.reserve_y = int(reserve_y)
        self._balances[self.addresses.token_x][self.addresses.pool] = self.reserve_x
        self._balances[self.addresses.token_y][self.addresses.pool] = self.reserve_y
        self._balances[self.addresses.lp_token].clear()
        supply = isqrt(self.reserve_x * self.reserve_y)
        if supply:
            self._balances[self.addresses.lp_token][lp_holder] = supply

    def fund(self, token: str, amount: int, holder: str | None = None) -> None:
        """Credit `amount` of a token key (token_x / token_y / lp_token) to `holder`."""
        address = self.addresses.token_address(token)
        self._balances[address][holder or self.account] += int(amount)

    def fail_next(self, function: str, mode: FailureMode = "revert", times: int = 1) -> None:
        """Make the next `times` submissions of `function` fail with `mode`."""
        if mode not in ("reject", "revert", "hang"):
            raise ValueError(f"unknown failure mode: {mode!r}")
        self._failures[function].extend([mode] * int(times))

    def fail_reads(self, times: int = 1) -> None:
        self._read_failures += int(times)

    def balance(self, token: str, holder: str | None = None) -> int:
        return self._balances[self.addresses.token_address(token)][holder or self.account]

    def allowance(self, token: str, owner: str | None = None) -> int:
        key = (self.addresses.token_address(token), owner or self.account, self.addresses.pool)
        return self._allowances[key]

    @property
    def lp_total_supply(self) -> int:
        return sum(self._balances[self.addresses.lp_token].values())

    def calls_to(self, function: str) -> List[ContractCall]:
        return [c for c in self.calls if c.function == function]

    # ------------------------------------------------------------------
    # Read service
    # ------------------------------------------------------------------
    def _check_read(self) -> None:
        if self._read_failures > 0:
            self._read_failures -= 1
            raise ConnectionError("simulated read failure")

    async def get_reserves(self) -> tuple[int, int]:
        self._check_read()
        return self.reserve_x, self.reserve_y

    async def get_lp_total_supply(self) -> int:
        self._check_read()
        return self.lp_total_supply

    async def get_balance(self, token: str, account: str) -> int:
        self._check_read()
        return self._balances[token][account]

    async def get_required_counterpart(self, amount: int, side: str) -> int:
        self._check_read()
        if self.reserve_x == 0:
            raise ExecutionReverted("pool has no liquidity")
        if side == "x":
            return amount * self.reserve_y // self.reserve_x
        if side == "y":
            return amount * self.reserve_x // self.reserve_y
        raise ValueError(f"unknown side: {side!r}")

    # ------------------------------------------------------------------
    # Wallet transport
    # ------------------------------------------------------------------
    async def submit(self, call: ContractCall) -> Hashable:
        self.calls.append(call)
        failures = self._failures.get(call.function)
        mode = failures.pop(0) if failures else None
        if mode == "reject":
            log_info(self._logger, "SimulatedPool signer rejected", function=call.function)
            raise SignerRejected(f"user rejected {call.function}")

        handle = f"0x{next(self._handles):064x}"
        if mode == "revert":
            receipt = Receipt(handle, call, ConfirmationStatus.REVERTED, reason="injected revert")
        else:
            try:
                self._execute(call)
            except ExecutionReverted as exc:
                receipt = Receipt(handle, call, ConfirmationStatus.REVERTED, reason=str(exc))
            else:
                receipt = Receipt(handle, call, ConfirmationStatus.CONFIRMED)
            if mode == "hang":
                receipt.pending_lookups = 1

        self._receipts[handle] = receipt
        log_debug(
            self._logger,
            "SimulatedPool submitted",
            function=call.function,
            handle=handle,
            status=receipt.status,
            reason=receipt.reason,
        )
        return handle

    async def await_confirmation(self, handle: Hashable, timeout: float) -> ConfirmationStatus:
        receipt = self._receipts.get(str(handle))
        if receipt is None:
            raise KeyError(f"unknown handle: {handle!r}")
        if receipt.pending_lookups > 0:
            receipt.pending_lookups -= 1
            return ConfirmationStatus.TIMED_OUT
        if self.confirm_delay_s > timeout:
            await asyncio.sleep(timeout)
            return ConfirmationStatus.TIMED_OUT
        if self.confirm_delay_s > 0:
            await asyncio.sleep(self.confirm_delay_s)
        return receipt.status

    def receipt(self, handle: Hashable) -> Receipt:
        return self._receipts[str(handle)]

    # ------------------------------------------------------------------
    # Execution
    # ------------------------------------------------------------------
    def _execute(self, call: ContractCall) -> None:
        a = self.addresses
        if call.target in (a.token_x, a.token_y, a.lp_token):
            if call.function == "approve":
                spender, amount = call.args
                self._allowances[(call.target, self.account, spender)] = int(amount)
                return
            if call.function == "freeMintToSender" and call.target != a.lp_token:
                (amount,) = call.args
                self._balances[call.target][self.account] += int(amount)
                return
        elif call.target == a.pool:
            if call.function == "addLiquidity":
                self._add_liquidity(*call.args)
                return
            if call.function == "removeLiquidity":
                self._remove_liquidity(*call.args)
                return
            if call.function == "swap":
                self._swap(*call.args)
                return
        raise ExecutionReverted(f"unknown call {call.function} on {call.target}")

    def _transfer_from(self, token: str, owner: str, amount: int) -> None:
        pool = self.addresses.pool
        key = (token, owner, pool)
        if self._allowances[key] < amount:
            raise ExecutionReverted(f"insufficient allowance for {token}")
        if self._balances[token][owner] < amount:
            raise ExecutionReverted(f"insufficient balance for {token}")
        self._allowances[key] -= amount
        self._balances[token][owner] -= amount
        self._balances[token][pool] += amount

    def _pay_out(self, token: str, to: str, amount: int) -> None:
        self._balances[token][self.addresses.pool] -= amount
        self._balances[token][to] += amount

    def _add_liquidity(self, amount_x: int, amount_y: int) -> None:
        if amount_x <= 0 or amount_y <= 0:
            raise ExecutionReverted("amounts must be positive")
        supply = self.lp_total_supply
        if self.reserve_x == 0:
            minted = isqrt(amount_x * amount_y)
        else:
            required = amount_x * self.reserve_y // self.reserve_x
            if abs(amount_y - required) > self.tolerance:
                raise ExecutionReverted("ratio mismatch")
            minted = min(amount_x * supply // self.reserve_x, amount_y * supply // self.reserve_y)
        if minted == 0:
            raise ExecutionReverted("insufficient liquidity minted")

        a = self.addresses
        # both pulls must succeed before state changes
        for token, amount in ((a.token_x, amount_x), (a.token_y, amount_y)):
            if self._allowances[(token, self.account, a.pool)] < amount:
                raise ExecutionReverted(f"insufficient allowance for {token}")
            if self._balances[token][self.account] < amount:
                raise ExecutionReverted(f"insufficient balance for {token}")
        self._transfer_from(a.token_x, self.account, amount_x)
        self._transfer_from(a.token_y, self.account, amount_y)
        self._balances[a.lp_token][self.account] += minted
        self.reserve_x += amount_x
        self.reserve_y += amount_y

    def _remove_liquidity(self, lp_amount: int) -> None:
        a = self.addresses
        supply = self.lp_total_supply
        if lp_amount <= 0 or self._balances[a.lp_token][self.account] < lp_amount:
            raise ExecutionReverted("insufficient LP balance")
        if a.authorization.get("lp_token", False):
            key = (a.lp_token, self.account, a.pool)
            if self._allowances[key] < lp_amount:
                raise ExecutionReverted("insufficient LP allowance")
            self._allowances[key] -= lp_amount
        out_x = lp_amount * self.reserve_x // supply
        out_y = lp_amount * self.reserve_y // supply
        self._balances[a.lp_token][self.account] -= lp_amount
        self._pay_out(a.token_x, self.account, out_x)
        self._pay_out(a.token_y, self.account, out_y)
        self.reserve_x -= out_x
        self.reserve_y -= out_y

    def _swap(self, x_in: int, y_in: int) -> None:
        if (x_in > 0) == (y_in > 0):
            raise ExecutionReverted("exactly one swap input must be non-zero")
        if self.reserve_x == 0:
            raise ExecutionReverted("pool has no liquidity")
        a = self.addresses
        if x_in > 0:
            token_in, token_out, amount_in, r_in, r_out = a.token_x, a.token_y, x_in, self.reserve_x, self.reserve_y
        else:
            token_in, token_out, amount_in, r_in, r_out = a.token_y, a.token_x, y_in, self.reserve_y, self.reserve_x
        effective = amount_in - amount_in * self.fee_bps // self.fee_denominator
        amount_out = effective * r_out // (r_in + effective)
        if amount_out == 0:
            raise ExecutionReverted("insufficient output amount")

        self._transfer_from(token_in, self.account, amount_in)
        self._pay_out(token_out, self.account, amount_out)
        if x_in > 0:
            self.reserve_x += amount_in
            self.reserve_y -= amount_out
        else:
            self.reserve_y += amount_in
            self.reserve_x -= amount_out
