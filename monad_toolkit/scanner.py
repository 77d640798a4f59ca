"""
HistoricalLogScanner - recent event history from eth_getLogs.

The scan covers a fixed window of recent blocks instead of the full
history; events older than the window are not visible.
"""
import logging
from dataclasses import dataclass, field
from typing import Any, Dict, List, Optional

from eth_abi import encode as abi_encode

from .abi import EventSpec
from .events import decode_log
from .exceptions import DecodeMismatch, InvalidArgument
from .models import EventRecord
from .reader import ChainReader
from .units import validate_address

logger = logging.getLogger(__name__)

DEFAULT_SCAN_WINDOW = 1000
DEFAULT_LIMIT = 10


def scan_start(latest_block: int, window: int = DEFAULT_SCAN_WINDOW) -> int:
    """First block of the scan window ending at ``latest_block``."""
    return max(0, latest_block - window)


def encode_topic(param_type: str, value: Any) -> str:
    """Encode an indexed value the way it appears in a log topic."""
    if param_type == "address":
        value = validate_address(value)
    return "0x" + abi_encode([param_type], [value]).hex()


@dataclass
class ScanResult:
    """Decoded records of one scan, newest first."""
    records: List[EventRecord] = field(default_factory=list)
    from_block: int = 0
    to_block: int = 0
    matched: int = 0
    dropped: int = 0


class HistoricalLogScanner:
    """Finds and decodes recent logs of one event emitted by one contract."""

    def __init__(self, reader: ChainReader, window: int = DEFAULT_SCAN_WINDOW,
                 logger: Optional[logging.Logger] = None):
        if window < 0:
            raise InvalidArgument(f"Scan window must not be negative (got {window})")
        self.reader = reader
        self.window = window
        self.logger = logger or logging.getLogger(__name__)

    def build_topics(self, event: EventSpec, indexed_filter: Optional[Dict[str, Any]] = None) -> List[Optional[str]]:
        """
        Topic filter for ``event`` with optional values for indexed fields.

        Raises:
            InvalidArgument: If a filter key is not an indexed field of the event
        """
        indexed_filter = indexed_filter or {}
        indexed = event.indexed_fields
        unknown = set(indexed_filter) - {p.name for p in indexed}
        if unknown:
            raise InvalidArgument(f"{event.name} has no indexed field(s): {', '.join(sorted(unknown))}")

        topics: List[Optional[str]] = [event.topic]
        for param in indexed:
            value = indexed_filter.get(param.name)
            topics.append(None if value is None else encode_topic(param.type, value))
        while topics and topics[-1] is None:
            topics.pop()
        return topics

    def scan(
        self,
        address: str,
        event: EventSpec,
        indexed_filter: Optional[Dict[str, Any]] = None,
        limit: int = DEFAULT_LIMIT
    ) -> ScanResult:
        """
        Fetch and decode recent logs.

        Args:
            address: Emitting contract
            event: Event schema
            indexed_filter: Values for indexed fields, applied node-side
            limit: Maximum number of logs to decode (the most recent ones)

        Returns:
            ScanResult; records that fail to decode are counted in ``dropped``
        """
        address = validate_address(address, "contract address")
        if limit < 1:
            raise InvalidArgument(f"Limit must be at least 1 (got {limit})")
        topics = self.build_topics(event, indexed_filter)

        latest = self.reader.get_block_number()
        start = scan_start(latest, self.window)
        logs = self.reader.get_logs({
            "address": address,
            "fromBlock": hex(start),
            "toBlock": hex(latest),
            "topics": topics,
        })
        self.logger.debug(f"{len(logs)} {event.name} log(s) from {address} in blocks {start}-{latest}")

        # Logs come oldest first; keep the newest ``limit``
        limited = list(reversed(logs[-limit:]))
        result = ScanResult(from_block=start, to_block=latest, matched=len(logs))
        for log in limited:
            try:
                result.records.append(decode_log(log, event))
            except DecodeMismatch as e:
                result.dropped += 1
                self.logger.debug(f"Dropping undecodable {event.name} log: {e}")
        return result
