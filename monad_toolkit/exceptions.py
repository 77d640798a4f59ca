"""
Exceptions for the Monad toolkit.

Every failure the engine can report is a ``ToolkitError`` carrying an
``ErrorKind``. The operation layer renders them into failure results.
"""
from enum import Enum
from typing import Any, List, Optional


class ErrorKind(str, Enum):
    """Error kinds surfaced to callers of the operations."""
    INVALID_ARGUMENT = "InvalidArgument"
    INSUFFICIENT_FUNDS = "InsufficientFunds"
    INSUFFICIENT_LIQUIDITY = "InsufficientLiquidity"
    RPC_UNAVAILABLE = "RpcUnavailable"
    TRANSACTION_REVERTED = "TransactionReverted"
    DECODE_MISMATCH = "DecodeMismatch"
    NOT_FOUND = "NotFound"

    # Raised by a node for eth_call / eth_estimateGas before anything is broadcast
    EXECUTION_REVERTED = "ExecutionReverted"
    CONFIRMATION_TIMEOUT = "ConfirmationTimeout"
    CANCELLED = "Cancelled"
    CONFIGURATION = "ConfigurationError"


class ToolkitError(Exception):
    """Base exception for all toolkit errors."""
    kind = ErrorKind.INVALID_ARGUMENT

    def __init__(self, message: str):
        self.message = message
        super().__init__(message)


class InvalidArgument(ToolkitError):
    """Raised when an address, amount or enum argument is malformed."""
    kind = ErrorKind.INVALID_ARGUMENT


class InsufficientFunds(ToolkitError):
    """Raised when the sender's balance is below the requested amount."""
    kind = ErrorKind.INSUFFICIENT_FUNDS

    def __init__(self, message: str, required: int = 0, available: int = 0):
        self.required = required
        self.available = available
        super().__init__(message)


class InsufficientLiquidity(ToolkitError):
    """Raised when a contract-side pool cannot cover the operation."""
    kind = ErrorKind.INSUFFICIENT_LIQUIDITY


class RpcUnavailable(ToolkitError):
    """Raised when no configured endpoint could satisfy the quorum."""
    kind = ErrorKind.RPC_UNAVAILABLE

    def __init__(self, message: str, failures: Optional[List[str]] = None):
        self.failures = failures or []
        super().__init__(message)


class TransactionReverted(ToolkitError):
    """Raised when a mined receipt reports failure."""
    kind = ErrorKind.TRANSACTION_REVERTED

    def __init__(self, message: str, tx_hash: Optional[str] = None, receipt: Any = None):
        self.tx_hash = tx_hash
        self.receipt = receipt
        super().__init__(message)


class DecodeMismatch(ToolkitError):
    """Raised when a log does not match the expected event schema."""
    kind = ErrorKind.DECODE_MISMATCH


class NotFound(ToolkitError):
    """Raised when a queried resource does not exist or is already resolved."""
    kind = ErrorKind.NOT_FOUND


class ExecutionReverted(ToolkitError):
    """Raised when a read-only call or gas estimation reverts on the node."""
    kind = ErrorKind.EXECUTION_REVERTED

    def __init__(self, message: str, data: Optional[str] = None):
        self.data = data
        super().__init__(message)


class ConfirmationTimeout(ToolkitError):
    """Raised when a broadcast transaction is not mined in time."""
    kind = ErrorKind.CONFIRMATION_TIMEOUT

    def __init__(self, message: str, tx_hash: Optional[str] = None):
        self.tx_hash = tx_hash
        super().__init__(message)


class WaitCancelled(ToolkitError):
    """Raised when the caller cancels a confirmation wait."""
    kind = ErrorKind.CANCELLED

    def __init__(self, message: str, tx_hash: Optional[str] = None):
        self.tx_hash = tx_hash
        super().__init__(message)


class ConfigurationError(ToolkitError):
    """Raised for missing or malformed configuration."""
    kind = ErrorKind.CONFIGURATION
