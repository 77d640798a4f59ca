"""
Named operations for agent hosts.

``Toolkit.invoke(name, arguments)`` validates the arguments with a pydantic
model, runs the operation against a ``MonadClient`` and renders the outcome
as a ``ToolResult``. No exception leaves ``invoke``.
"""
import logging
from dataclasses import dataclass
from datetime import datetime, timezone
from typing import Annotated, Any, Callable, Dict, List, Optional, Type

from pydantic import BaseModel, ConfigDict, Field, ValidationError

from .client import MonadClient
from .exceptions import ErrorKind, ToolkitError
from .models import ToolResult, TxReceipt
from .units import (
    ADDRESS_PATTERN,
    AMOUNT_PATTERN,
    GWEI_DECIMALS,
    NATIVE_DECIMALS,
    NATIVE_SYMBOL,
    TX_HASH_PATTERN,
    format_units,
)

logger = logging.getLogger(__name__)

Address = Annotated[str, Field(pattern=ADDRESS_PATTERN)]
Amount = Annotated[str, Field(pattern=AMOUNT_PATTERN)]

MAX_HISTORY_LIMIT = 100


class ToolArgs(BaseModel):
    model_config = ConfigDict(populate_by_name=True, extra="forbid", str_strip_whitespace=True)


class NoArgs(ToolArgs):
    pass


class AddressArgs(ToolArgs):
    address: Address


class OptionalAddressArgs(ToolArgs):
    address: Optional[Address] = None


class TokenBalanceArgs(ToolArgs):
    address: Address
    token_contract: Address = Field(..., alias="tokenContract")


class MultipleBalancesArgs(ToolArgs):
    address: Address
    token_contracts: List[Address] = Field(..., alias="tokenContracts", min_length=1)


class TransactionArgs(ToolArgs):
    hash: str = Field(..., pattern=TX_HASH_PATTERN)


class SendNativeArgs(ToolArgs):
    to: Address
    amount: Amount


class SendTokenArgs(ToolArgs):
    token_contract: Address = Field(..., alias="tokenContract")
    to: Address
    amount: Amount


class FlipArgs(ToolArgs):
    choice: str = Field(..., pattern=r"(?i)^(heads|tails)$")
    amount: Amount


class HistoryArgs(ToolArgs):
    address: Optional[Address] = None
    limit: int = Field(10, ge=1, le=MAX_HISTORY_LIMIT)


class StakeArgs(ToolArgs):
    amount: Amount


class UnstakeArgs(ToolArgs):
    shares: Amount


class ClaimArgs(ToolArgs):
    request_id: int = Field(..., alias="requestId", ge=0)


@dataclass(frozen=True)
class ToolSpec:
    """Registry entry: name, argument model and the verb used in failure text."""
    name: str
    description: str
    args_model: Type[ToolArgs]
    action: str
    handler: str


TOOLS: Dict[str, ToolSpec] = {}


def _register(name: str, description: str, args_model: Type[ToolArgs], action: str):
    def decorator(func: Callable) -> Callable:
        TOOLS[name] = ToolSpec(name, description, args_model, action, func.__name__)
        return func
    return decorator


def _format_validation_error(error: ValidationError) -> str:
    parts = []
    for item in error.errors():
        location = ".".join(str(p) for p in item.get("loc", ())) or "arguments"
        parts.append(f"{location}: {item.get('msg')}")
    return "Invalid arguments: " + "; ".join(parts)


def _mon(value: int) -> str:
    return f"{format_units(value, NATIVE_DECIMALS)} {NATIVE_SYMBOL}"


class Toolkit:
    """
    Operation layer over one ``MonadClient``.

    Example:
        toolkit = Toolkit(MonadClient.from_settings(ToolkitSettings.from_env()))
        result = toolkit.invoke("get-mon-balance", {"address": "0x..."})
    """

    def __init__(self, client: MonadClient, logger: Optional[logging.Logger] = None):
        self.client = client
        self.logger = logger or logging.getLogger(__name__)

    @staticmethod
    def definitions() -> List[Dict[str, Any]]:
        """Name, description and JSON schema of every operation."""
        return [
            {
                "name": spec.name,
                "description": spec.description,
                "inputSchema": spec.args_model.model_json_schema(by_alias=True),
            }
            for spec in TOOLS.values()
        ]

    def invoke(self, name: str, arguments: Optional[Dict[str, Any]] = None) -> ToolResult:
        """
        Run one operation.

        Returns:
            ToolResult with the success text, or the failure text and error kind
        """
        spec = TOOLS.get(name)
        if spec is None:
            return ToolResult(
                ok=False,
                text=f"Failed to run {name}. Error: unknown operation",
                error_kind=ErrorKind.INVALID_ARGUMENT.value,
            )

        try:
            args = spec.args_model.model_validate(arguments or {})
        except ValidationError as e:
            return self._failure(spec, _format_validation_error(e), ErrorKind.INVALID_ARGUMENT.value)

        self.logger.debug(f"Invoking {name}")
        try:
            text = getattr(self, spec.handler)(args)
        except ToolkitError as e:
            self.logger.info(f"{name} failed with {e.kind.value}: {e.message}")
            return self._failure(spec, e.message, e.kind.value)
        except Exception as e:
            self.logger.exception(f"Unexpected error in {name}")
            return self._failure(spec, str(e) or type(e).__name__, None)
        return ToolResult(ok=True, text=text)

    @staticmethod
    def _failure(spec: ToolSpec, cause: str, kind: Optional[str]) -> ToolResult:
        return ToolResult(ok=False, text=f"Failed to {spec.action}. Error: {cause}", error_kind=kind)

    def _holder(self, address: Optional[str]) -> str:
        return address or self.client.address

    def _tx_lines(self, receipt: TxReceipt) -> List[str]:
        lines = [
            f"Transaction Hash: {receipt.tx_hash}",
            f"Status: {'Success' if receipt.succeeded else 'Failed'}",
            f"Block: {receipt.block_number}",
            f"Gas Used: {receipt.gas_used}",
        ]
        url = self.client.tx_url(receipt.tx_hash)
        if url:
            lines.append(f"Explorer: {url}")
        return lines

    # Reads

    @_register("get-mon-balance", "Get MON balance for an address", AddressArgs, "retrieve balance")
    def get_mon_balance(self, args: AddressArgs) -> str:
        balance = self.client.get_native_balance(args.address)
        return f"Balance for {args.address}: {_mon(balance)}"

    @_register("get-token-balance", "Get ERC-20 token balance for an address",
               TokenBalanceArgs, "retrieve token balance")
    def get_token_balance(self, args: TokenBalanceArgs) -> str:
        holding = self.client.get_token_balance(args.token_contract, args.address)
        return f"Token balance for {args.address}: {holding.formatted} {holding.symbol}"

    @_register("get-multiple-balances", "Get balances of several ERC-20 tokens for an address",
               MultipleBalancesArgs, "get multiple token balances")
    def get_multiple_balances(self, args: MultipleBalancesArgs) -> str:
        holdings = self.client.get_token_balances(args.token_contracts, args.address)
        lines = [f"{h.symbol}: {h.formatted} ({h.token})" for h in holdings]
        return f"Token Balances for {args.address}:\n" + "\n".join(lines)

    @_register("get-transaction-details", "Get details of a transaction by hash",
               TransactionArgs, "retrieve transaction details")
    def get_transaction_details(self, args: TransactionArgs) -> str:
        details = self.client.describe_transaction(args.hash)
        lines = [
            "Transaction Details:",
            f"Type: {details.kind}",
            f"From: {details.from_address}",
            f"To: {details.to_address or 'contract creation'}",
            f"Amount: {format_units(details.raw_amount, details.decimals)} {details.symbol}",
            f"Date: {details.timestamp.strftime('%Y-%m-%d %H:%M:%S UTC')}",
            f"Status: {'Success' if details.succeeded else 'Failed'}",
            f"Block: {details.block_number}",
            f"Gas Used: {details.gas_used}",
        ]
        return "\n".join(lines)

    @_register("get-gas-price", "Get the current gas price", NoArgs, "get gas price")
    def get_gas_price(self, args: NoArgs) -> str:
        price = self.client.get_gas_price()
        return f"Current Gas Price: {format_units(price, GWEI_DECIMALS)} Gwei"

    @_register("get-latest-block", "Get information about the latest block", NoArgs, "get latest block info")
    def get_latest_block(self, args: NoArgs) -> str:
        block = self.client.get_latest_block()
        timestamp = self._utc(block.timestamp)
        return "\n".join([
            "Latest Block Information:",
            f"Block Number: {block.number}",
            f"Timestamp: {timestamp}",
            f"Hash: {block.block_hash}",
            f"Parent Hash: {block.parent_hash}",
            f"Transactions Count: {len(block.transactions)}",
            f"Gas Used: {block.gas_used}",
            f"Gas Limit: {block.gas_limit}",
        ])

    @staticmethod
    def _utc(timestamp: int) -> str:
        return datetime.fromtimestamp(timestamp, tz=timezone.utc).strftime("%Y-%m-%d %H:%M:%S UTC")

    # Transfers

    @_register("send-mon", "Send MON to an address", SendNativeArgs, "send MON")
    def send_mon(self, args: SendNativeArgs) -> str:
        outcome = self.client.transfer_native(args.to, args.amount)
        header = f"Sent {format_units(outcome.raw_amount, outcome.decimals)} {outcome.symbol} to {outcome.recipient}"
        return "\n".join([header] + self._tx_lines(outcome.receipt))

    @_register("send-token", "Send ERC-20 tokens to an address", SendTokenArgs, "send tokens")
    def send_token(self, args: SendTokenArgs) -> str:
        outcome = self.client.transfer_token(args.token_contract, args.to, args.amount)
        header = (
            f"Sent {format_units(outcome.raw_amount, outcome.decimals)} {outcome.symbol} "
            f"to {outcome.recipient} (token {outcome.token})"
        )
        return "\n".join([header] + self._tx_lines(outcome.receipt))

    # Coin flip

    @_register("flip-coin", "Bet MON on heads or tails", FlipArgs, "flip coin")
    def flip_coin(self, args: FlipArgs) -> str:
        outcome = self.client.coinflip.flip(args.choice, args.amount)
        lines = [f"Coin flip: bet {_mon(outcome.bet)} on {outcome.choice.label}"]
        record = outcome.record
        if record is None:
            lines.append("Result: no FlipResult event found in the receipt")
        elif record.won:
            lines.append(f"Result: the coin landed {record.landed.label}, you won {_mon(record.payout)}")
        else:
            lines.append(f"Result: the coin landed {record.landed.label}, you lost {_mon(record.bet)}")
        return "\n".join(lines + self._tx_lines(outcome.receipt))

    @_register("get-coinflip-pool", "Get the coin-flip pool balance", NoArgs, "get coinflip pool balance")
    def get_coinflip_pool(self, args: NoArgs) -> str:
        coinflip = self.client.coinflip
        return f"Coinflip pool balance ({coinflip.address}): {_mon(coinflip.pool_balance())}"

    @_register("get-coinflip-history", "Get recent coin-flip games of a player",
               HistoryArgs, "get coinflip history")
    def get_coinflip_history(self, args: HistoryArgs) -> str:
        player = self._holder(args.address)
        history = self.client.coinflip.history(player, limit=args.limit)
        header = f"Coinflip history for {player} (blocks {history.from_block}-{history.to_block}):"
        if not history.records:
            return f"{header}\nNo games found"
        lines = [header]
        for record in history.records:
            verdict = f"won {_mon(record.payout)}" if record.won else f"lost {_mon(record.bet)}"
            lines.append(
                f"Block {record.block_number}: bet {_mon(record.bet)} on {record.choice.label}, "
                f"landed {record.landed.label}, {verdict} ({record.tx_hash})"
            )
        stats = history.stats
        lines.append(
            f"Games: {stats.games}, Wins: {stats.wins}, Losses: {stats.losses}, "
            f"Total bet: {_mon(stats.total_bet)}, Total won: {_mon(stats.total_won)}, Net: {_mon(stats.net)}"
        )
        return "\n".join(lines)

    # Staking

    @_register("stake-mon", "Stake MON in the liquid staking vault", StakeArgs, "stake MON")
    def stake_mon(self, args: StakeArgs) -> str:
        outcome = self.client.staking.deposit(args.amount)
        lines = [f"Staked {_mon(outcome.assets)}"]
        if outcome.shares is not None:
            lines.append(f"Shares received: {format_units(outcome.shares, NATIVE_DECIMALS)}")
        return "\n".join(lines + self._tx_lines(outcome.receipt))

    @_register("request-unstake", "Request a withdrawal of vault shares", UnstakeArgs, "request unstake")
    def request_unstake(self, args: UnstakeArgs) -> str:
        outcome = self.client.staking.request_withdrawal(args.shares)
        lines = [f"Requested withdrawal of {args.shares} shares"]
        if outcome.request is not None:
            lines.append(f"Request ID: {outcome.request.request_id}")
            lines.append(f"Assets: {_mon(outcome.request.assets)}")
        return "\n".join(lines + self._tx_lines(outcome.receipt))

    @_register("claim-unstake", "Claim a previously requested withdrawal", ClaimArgs, "claim unstake")
    def claim_unstake(self, args: ClaimArgs) -> str:
        outcome = self.client.staking.claim(args.request_id)
        lines = [f"Claimed withdrawal request {outcome.request_id}"]
        if outcome.assets is not None:
            lines.append(f"Received: {_mon(outcome.assets)} (fee {_mon(outcome.fee or 0)})")
        return "\n".join(lines + self._tx_lines(outcome.receipt))

    @_register("get-staking-position", "Get vault shares and their MON value",
               OptionalAddressArgs, "get staking position")
    def get_staking_position(self, args: OptionalAddressArgs) -> str:
        position = self.client.staking.position(self._holder(args.address))
        return "\n".join([
            f"Staking position for {position.holder}:",
            f"Shares: {format_units(position.shares, position.decimals)}",
            f"Value: {_mon(position.assets)}",
            f"Withdrawal fee: {position.withdrawal_fee}",
        ])

    @_register("get-pending-withdrawals", "List outstanding withdrawal requests",
               HistoryArgs, "get pending withdrawals")
    def get_pending_withdrawals(self, args: HistoryArgs) -> str:
        controller = self._holder(args.address)
        staking = self.client.staking
        requests = staking.pending_requests(controller, limit=args.limit)
        header = f"Pending withdrawals for {controller}:"
        if not requests:
            return f"{header}\nNo pending withdrawals"
        decimals = staking.share_decimals()
        lines = [header]
        for request in requests:
            lines.append(
                f"Request {request.request_id}: {format_units(request.pending_shares or 0, decimals)} "
                f"shares pending, {_mon(request.assets)} requested in block {request.block_number}"
            )
        return "\n".join(lines)
