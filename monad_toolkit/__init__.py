"""
Monad toolkit - agent-facing operations on Monad testnet.
"""
from .client import MonadClient, TransactionDetails, TransferOutcome
from .config import NetworkConfig, ToolkitSettings
from .contracts import CoinflipClient, CoinSide, RedeemRequest, StakingVaultClient
from .exceptions import (
    ConfigurationError,
    ConfirmationTimeout,
    DecodeMismatch,
    ErrorKind,
    ExecutionReverted,
    InsufficientFunds,
    InsufficientLiquidity,
    InvalidArgument,
    NotFound,
    RpcUnavailable,
    ToolkitError,
    TransactionReverted,
    WaitCancelled,
)
from .models import ToolResult, TransactionIntent, IntentKind, TxReceipt
from .rpc import RpcPool
from .signer import LocalSigner, Signer
from .tools import Toolkit
from .version import __version__

__all__ = [
    "MonadClient",
    "TransactionDetails",
    "TransferOutcome",
    "NetworkConfig",
    "ToolkitSettings",
    "CoinflipClient",
    "CoinSide",
    "RedeemRequest",
    "StakingVaultClient",
    "ErrorKind",
    "ToolkitError",
    "InvalidArgument",
    "InsufficientFunds",
    "InsufficientLiquidity",
    "RpcUnavailable",
    "TransactionReverted",
    "DecodeMismatch",
    "NotFound",
    "ExecutionReverted",
    "ConfirmationTimeout",
    "WaitCancelled",
    "ConfigurationError",
    "ToolResult",
    "TransactionIntent",
    "IntentKind",
    "TxReceipt",
    "RpcPool",
    "LocalSigner",
    "Signer",
    "Toolkit",
    "__version__",
]
