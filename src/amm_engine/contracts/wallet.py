from __future__ import annotations

from dataclasses import dataclass
from enum import Enum
from typing import Any, Dict, Hashable, Protocol, Tuple, runtime_checkable


@dataclass(frozen=True)
class ContractCall:
    """One remote write: target contract address, function name, integer/address args."""

    target: str
    function: str
    args: Tuple[Any, ...] = ()

    def to_dict(self) -> Dict[str, Any]:
        return {"target": self.target, "function": self.function, "args": list(self.args)}


class ConfirmationStatus(str, Enum):
    CONFIRMED = "confirmed"
    REVERTED = "reverted"
    TIMED_OUT = "timed_out"


@runtime_checkable
class WalletTransport(Protocol):
    """
    Opaque signing/transport capability.

    `submit` returns once the signer accepted the call (raises if the signer
    rejects it). `await_confirmation` resolves to the final status; it must
    return TIMED_OUT rather than wait past `timeout`.
    """

    async def submit(self, call: ContractCall) -> Hashable:
        ...

    async def await_confirmation(self, handle: Hashable, timeout: float) -> ConfirmationStatus:
        ...
