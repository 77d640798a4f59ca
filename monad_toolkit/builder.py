"""
TransactionBuilder - turns a validated intent into an unsigned transaction.
"""
import logging
from typing import Any, Dict, Optional

from .abi import ERC20
from .exceptions import InsufficientFunds, InvalidArgument
from .models import BuiltTransaction, GasParameters, IntentKind, TransactionIntent
from .reader import ChainReader
from .units import NATIVE_DECIMALS, NATIVE_SYMBOL, format_units, parse_units, validate_address, validate_amount

logger = logging.getLogger(__name__)


def apply_gas_buffer(estimated_limit: int) -> int:
    """Buffered gas limit for a state-changing call."""
    return GasParameters.from_estimate(estimated_limit, 0).applied_limit


class TransactionBuilder:
    """
    Builds unsigned transactions.

    Order of work: local validation, unit conversion, balance check, gas
    estimation, buffer, gas price. Any failure aborts the build.
    """

    def __init__(self, reader: ChainReader, chain_id: Optional[int] = None,
                 logger: Optional[logging.Logger] = None):
        self.reader = reader
        self._chain_id = chain_id
        self.logger = logger or logging.getLogger(__name__)

    @property
    def chain_id(self) -> int:
        if self._chain_id is None:
            return self.reader.get_chain_id()
        return self._chain_id

    def _validate(self, intent: TransactionIntent, sender: str) -> None:
        validate_address(sender, "sender")
        validate_address(intent.recipient, "recipient")
        validate_amount(intent.amount)
        if intent.token is not None:
            validate_address(intent.token, "token contract")
        if intent.kind == IntentKind.TOKEN_TRANSFER and intent.token is None:
            raise InvalidArgument("Token transfer requires a token contract")
        if intent.kind == IntentKind.CONTRACT_CALL and intent.function is None:
            raise InvalidArgument("Contract call requires a function")

    def _unit(self, intent: TransactionIntent) -> Dict[str, Any]:
        if intent.token is None:
            return {"decimals": NATIVE_DECIMALS, "symbol": NATIVE_SYMBOL}
        return self.reader.get_token_metadata(intent.token)

    def _balance(self, intent: TransactionIntent, sender: str) -> int:
        if intent.token is None:
            return self.reader.get_native_balance(sender)
        return self.reader.get_token_balance(intent.token, sender)

    def _call_fields(self, intent: TransactionIntent, sender: str, raw_amount: int) -> Dict[str, Any]:
        if intent.kind == IntentKind.NATIVE_TRANSFER:
            return {"to": validate_address(intent.recipient), "value": raw_amount, "data": "0x"}
        if intent.kind == IntentKind.TOKEN_TRANSFER:
            return {
                "to": validate_address(intent.token),
                "value": 0,
                "data": ERC20.transfer.encode_call(validate_address(intent.recipient), raw_amount),
            }
        # Native amount rides along as value; a token amount is only a precondition
        value = raw_amount if intent.token is None else 0
        return {
            "to": validate_address(intent.recipient),
            "value": value,
            "data": intent.function.encode_call(*intent.arguments),
        }

    def build(self, intent: TransactionIntent, sender: str) -> BuiltTransaction:
        """
        Build the unsigned transaction for an intent.

        Args:
            intent: What to do
            sender: Address that will sign

        Returns:
            BuiltTransaction with gas parameters and the transaction dict

        Raises:
            InvalidArgument: Malformed address or amount (no network call made)
            InsufficientFunds: Balance below the amount (no gas estimate made)
            ExecutionReverted: The node says the call would revert
            RpcUnavailable: The endpoints could not answer
        """
        self._validate(intent, sender)
        sender = validate_address(sender, "sender")

        unit = self._unit(intent)
        raw_amount = parse_units(intent.amount, unit["decimals"])

        if raw_amount > 0:
            balance = self._balance(intent, sender)
            if balance < raw_amount:
                raise InsufficientFunds(
                    f"Insufficient balance: need {format_units(raw_amount, unit['decimals'])} {unit['symbol']}, "
                    f"have {format_units(balance, unit['decimals'])} {unit['symbol']}",
                    required=raw_amount,
                    available=balance,
                )

        fields = self._call_fields(intent, sender, raw_amount)
        estimated = self.reader.estimate_gas({"from": sender, **fields})
        price = self.reader.get_gas_price()
        gas = GasParameters.from_estimate(estimated, price)
        self.logger.debug(
            f"Gas for {intent.kind.value} to {fields['to']}: estimated {gas.estimated_limit}, "
            f"applied {gas.applied_limit}, price {gas.price}"
        )

        transaction = {
            **fields,
            "from": sender,
            "gas": gas.applied_limit,
            "gasPrice": gas.price,
            "chainId": self.chain_id,
        }
        return BuiltTransaction(
            intent=intent,
            sender=sender,
            raw_amount=raw_amount,
            gas=gas,
            transaction=transaction,
            decimals=unit["decimals"],
            symbol=unit["symbol"],
        )
