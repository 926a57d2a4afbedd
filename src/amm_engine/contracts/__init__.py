from .operation import (
    OperationKind,
    SwapRequest,
    AddLiquidityRequest,
    RemoveLiquidityRequest,
    MintRequest,
    OperationRequest,
    remove_all,
)
from .wallet import ContractCall, ConfirmationStatus, WalletTransport

__all__ = [
    "OperationKind",
    "SwapRequest",
    "AddLiquidityRequest",
    "RemoveLiquidityRequest",
    "MintRequest",
    "OperationRequest",
    "remove_all",
    "ContractCall",
    "ConfirmationStatus",
    "WalletTransport",
]
