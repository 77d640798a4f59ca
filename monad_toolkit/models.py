"""
Data models for the Monad toolkit.
"""
from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Dict, List, Optional, Tuple

from pydantic import BaseModel, ConfigDict, Field, field_validator

from .abi import FunctionSpec
from .units import NATIVE_DECIMALS, NATIVE_SYMBOL, format_units, to_int

# Applied gas limit = estimate * 120 / 100, floored
GAS_BUFFER_NUMERATOR = 120
GAS_BUFFER_DENOMINATOR = 100


def _hex_str(value: Any) -> Any:
    if isinstance(value, (bytes, bytearray)):
        return "0x" + bytes(value).hex()
    return value


class TxLog(BaseModel):
    """One log entry as returned by eth_getLogs or inside a receipt"""
    model_config = ConfigDict(populate_by_name=True)

    address: str
    topics: List[str] = Field(default_factory=list)
    data: str = "0x"
    block_number: Optional[int] = Field(None, alias="blockNumber")
    tx_hash: Optional[str] = Field(None, alias="transactionHash")
    log_index: Optional[int] = Field(None, alias="logIndex")

    @field_validator("block_number", "log_index", mode="before")
    @classmethod
    def _quantity(cls, value):
        return to_int(value)

    @field_validator("address", "data", "tx_hash", mode="before")
    @classmethod
    def _hex(cls, value):
        return _hex_str(value)

    @field_validator("topics", mode="before")
    @classmethod
    def _topics(cls, value):
        return [_hex_str(t) for t in value or []]


class TxReceipt(BaseModel):
    """Transaction receipt from the blockchain"""
    model_config = ConfigDict(populate_by_name=True)

    tx_hash: str = Field(..., alias="transactionHash")
    block_number: int = Field(..., alias="blockNumber")
    block_hash: str = Field(..., alias="blockHash")
    status: int
    gas_used: int = Field(..., alias="gasUsed")
    from_address: str = Field(..., alias="from")
    to_address: Optional[str] = Field(None, alias="to")
    contract_address: Optional[str] = Field(None, alias="contractAddress")
    effective_gas_price: Optional[int] = Field(None, alias="effectiveGasPrice")
    logs: List[TxLog] = Field(default_factory=list)

    @field_validator("block_number", "status", "gas_used", "effective_gas_price", mode="before")
    @classmethod
    def _quantity(cls, value):
        return to_int(value)

    @field_validator("tx_hash", "block_hash", mode="before")
    @classmethod
    def _hex(cls, value):
        return _hex_str(value)

    @property
    def succeeded(self) -> bool:
        return self.status == 1


class TransactionInfo(BaseModel):
    """A transaction as returned by eth_getTransactionByHash"""
    model_config = ConfigDict(populate_by_name=True)

    tx_hash: str = Field(..., alias="hash")
    from_address: str = Field(..., alias="from")
    to_address: Optional[str] = Field(None, alias="to")
    value: int = 0
    nonce: int = 0
    gas: int = 0
    gas_price: Optional[int] = Field(None, alias="gasPrice")
    input: str = "0x"
    block_number: Optional[int] = Field(None, alias="blockNumber")
    block_hash: Optional[str] = Field(None, alias="blockHash")

    @field_validator("value", "nonce", "gas", "gas_price", "block_number", mode="before")
    @classmethod
    def _quantity(cls, value):
        return to_int(value)


class BlockInfo(BaseModel):
    """Block header fields used by the toolkit"""
    model_config = ConfigDict(populate_by_name=True)

    number: int
    block_hash: str = Field(..., alias="hash")
    parent_hash: str = Field(..., alias="parentHash")
    timestamp: int
    gas_used: int = Field(..., alias="gasUsed")
    gas_limit: int = Field(..., alias="gasLimit")
    transactions: List[Any] = Field(default_factory=list)

    @field_validator("number", "timestamp", "gas_used", "gas_limit", mode="before")
    @classmethod
    def _quantity(cls, value):
        return to_int(value)


class TokenBalance(BaseModel):
    """Balance of one holder in one token, with the token's metadata"""
    token: str
    holder: str
    symbol: str
    decimals: int
    raw: int

    @property
    def formatted(self) -> str:
        return format_units(self.raw, self.decimals)


class GasParameters(BaseModel):
    """Gas limit (estimated and buffered) and price for one transaction"""
    model_config = ConfigDict(frozen=True)

    estimated_limit: int
    applied_limit: int
    price: int

    @classmethod
    def from_estimate(cls, estimated_limit: int, price: int) -> "GasParameters":
        applied = estimated_limit * GAS_BUFFER_NUMERATOR // GAS_BUFFER_DENOMINATOR
        return cls(estimated_limit=estimated_limit, applied_limit=applied, price=price)


class EventRecord(BaseModel):
    """A decoded log"""
    name: str
    address: str
    args: Dict[str, Any]
    block_number: Optional[int] = None
    tx_hash: Optional[str] = None
    log_index: Optional[int] = None


class IntentKind(str, Enum):
    NATIVE_TRANSFER = "native_transfer"
    TOKEN_TRANSFER = "token_transfer"
    CONTRACT_CALL = "contract_call"


@dataclass(frozen=True)
class TransactionIntent:
    """
    What the caller wants to happen, before any network interaction.

    For a contract call ``recipient`` is the contract and ``amount`` is the
    value attached (native) or, when ``token`` is set, the token amount the
    sender must hold for the call to make sense.
    """
    kind: IntentKind
    recipient: str
    amount: str = "0"
    token: Optional[str] = None
    function: Optional[FunctionSpec] = None
    arguments: Tuple[Any, ...] = ()


@dataclass(frozen=True)
class BuiltTransaction:
    """Unsigned transaction plus the data it was built from"""
    intent: TransactionIntent
    sender: str
    raw_amount: int
    gas: GasParameters
    transaction: Dict[str, Any] = field(default_factory=dict)
    decimals: int = NATIVE_DECIMALS
    symbol: str = NATIVE_SYMBOL


class ToolResult(BaseModel):
    """Outcome of one operation, as handed to the presentation layer"""
    ok: bool
    text: str
    error_kind: Optional[str] = None
