"""
Event decoding.

``decode_log`` matches one log against one static ``EventSpec``.
``EventDecoder.find_event`` picks the event that represents the result of a
transaction: the first log in receipt order that decodes against the target
schema. That rule fits contracts that emit the target event once per call;
contracts emitting several instances of the same event per call would need
a stronger rule (emitter address or field values).
"""
import logging
from typing import Any, Dict, Optional, Union

from eth_abi import decode as abi_decode
from web3 import Web3

from .abi import EventSpec, Param
from .exceptions import DecodeMismatch, TransactionReverted
from .models import EventRecord, TxLog, TxReceipt
from .units import same_address

logger = logging.getLogger(__name__)


def _hex_to_bytes(value: str) -> bytes:
    return bytes.fromhex(value[2:] if value.startswith("0x") else value)


def _normalize(param: Param, value: Any) -> Any:
    if param.type == "address":
        return Web3.to_checksum_address(value)
    if isinstance(value, (bytes, bytearray)):
        return "0x" + bytes(value).hex()
    return value


def decode_log(log: Union[TxLog, Dict[str, Any]], event: EventSpec) -> EventRecord:
    """
    Decode one log against an event schema.

    Args:
        log: Log entry (model or raw JSON-RPC dict)
        event: Expected event

    Returns:
        EventRecord with the decoded arguments

    Raises:
        DecodeMismatch: If the log is not an instance of ``event``
    """
    if not isinstance(log, TxLog):
        log = TxLog.model_validate(log)

    if not log.topics or log.topics[0].lower() != event.topic:
        raise DecodeMismatch(f"Log is not a {event.name} event")

    indexed = event.indexed_fields
    if len(log.topics) - 1 != len(indexed):
        raise DecodeMismatch(
            f"{event.name} expects {len(indexed)} indexed topics, log has {len(log.topics) - 1}"
        )

    try:
        args: Dict[str, Any] = {}
        for param, topic in zip(indexed, log.topics[1:]):
            args[param.name] = _normalize(param, abi_decode([param.type], _hex_to_bytes(topic))[0])
        data_fields = event.data_fields
        values = abi_decode([p.type for p in data_fields], _hex_to_bytes(log.data))
        for param, value in zip(data_fields, values):
            args[param.name] = _normalize(param, value)
    except Exception as e:
        raise DecodeMismatch(f"Could not decode {event.name}: {e}") from e

    # Keep the schema's field order
    ordered = {p.name: args[p.name] for p in event.fields}
    return EventRecord(
        name=event.name,
        address=Web3.to_checksum_address(log.address),
        args=ordered,
        block_number=log.block_number,
        tx_hash=log.tx_hash,
        log_index=log.log_index,
    )


class EventDecoder:
    """Selects and decodes the event relevant to an operation."""

    def __init__(self, logger: Optional[logging.Logger] = None):
        self.logger = logger or logging.getLogger(__name__)

    def find_event(
        self,
        receipt: TxReceipt,
        event: EventSpec,
        address: Optional[str] = None
    ) -> Optional[EventRecord]:
        """
        Return the first log of ``receipt`` that decodes as ``event``.

        Args:
            receipt: Mined receipt
            event: Target event schema
            address: Only consider logs emitted by this contract

        Returns:
            The decoded record, or None if no log matches

        Raises:
            TransactionReverted: If the receipt reports failure
        """
        if not receipt.succeeded:
            raise TransactionReverted(
                f"Transaction {receipt.tx_hash} reverted; its logs are not decoded",
                tx_hash=receipt.tx_hash,
                receipt=receipt,
            )

        for position, log in enumerate(receipt.logs):
            if address is not None and not same_address(log.address, address):
                continue
            try:
                return decode_log(log, event)
            except DecodeMismatch as e:
                self.logger.debug(f"Skipping log {position} of {receipt.tx_hash}: {e}")
        return None
