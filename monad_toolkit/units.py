"""
Amount and address helpers.

Amounts are always handled as integers in the smallest unit of their token;
decimal strings are only used at the edges.
"""
import re
from typing import Any, Optional, Union

from web3 import Web3

from .exceptions import InvalidArgument

NATIVE_DECIMALS = 18
NATIVE_SYMBOL = "MON"
GWEI_DECIMALS = 9

ADDRESS_PATTERN = r"^0x[0-9a-fA-F]{40}$"
AMOUNT_PATTERN = r"^(\d+(\.\d*)?|\.\d+)$"
TX_HASH_PATTERN = r"^0x[0-9a-fA-F]{64}$"

_ADDRESS_RE = re.compile(ADDRESS_PATTERN)
_AMOUNT_RE = re.compile(AMOUNT_PATTERN)
_TX_HASH_RE = re.compile(TX_HASH_PATTERN)


def validate_address(value: Any, field: str = "address") -> str:
    """
    Check that value is a 0x-prefixed 40-hex-digit address.

    Returns:
        The address in checksum form

    Raises:
        InvalidArgument: If the address is malformed
    """
    if not isinstance(value, str) or not _ADDRESS_RE.match(value):
        raise InvalidArgument(f"Invalid {field}: {value!r} (expected 0x followed by 40 hex digits)")
    # Checksum is not enforced on input, any casing is accepted
    return Web3.to_checksum_address(value.lower())


def validate_tx_hash(value: Any) -> str:
    """Check that value is a 0x-prefixed 32-byte hash and return it lowercased."""
    if not isinstance(value, str) or not _TX_HASH_RE.match(value):
        raise InvalidArgument(f"Invalid transaction hash: {value!r}")
    return value.lower()


def validate_amount(value: Any, field: str = "amount") -> str:
    """Check that value matches the unsigned decimal grammar."""
    if not isinstance(value, str) or not _AMOUNT_RE.match(value.strip()):
        raise InvalidArgument(f"Invalid {field}: {value!r} (expected an unsigned decimal number)")
    return value.strip()


def same_address(a: Optional[str], b: Optional[str]) -> bool:
    """Case-insensitive address equality."""
    if a is None or b is None:
        return False
    return a.lower() == b.lower()


def parse_units(amount: str, decimals: int) -> int:
    """
    Convert a decimal string to raw integer units.

    Args:
        amount: Unsigned decimal string, e.g. "1.5"
        decimals: Number of decimals of the unit

    Returns:
        Integer amount in the smallest unit

    Raises:
        InvalidArgument: If the string is malformed or more precise than the unit allows
    """
    text = validate_amount(amount)
    whole, _, fraction = text.partition(".")
    if len(fraction) > decimals:
        excess = fraction[decimals:]
        if excess.strip("0"):
            raise InvalidArgument(
                f"Amount {amount} has more than {decimals} decimal places"
            )
        fraction = fraction[:decimals]
    return int(whole or "0") * 10 ** decimals + int(fraction.ljust(decimals, "0") or "0")


def format_units(value: int, decimals: int) -> str:
    """
    Render raw integer units as a decimal string without trailing zeros.

    Negative values are allowed so that net results can be shown.
    """
    sign = "-" if value < 0 else ""
    whole, fraction = divmod(abs(value), 10 ** decimals)
    if decimals == 0 or fraction == 0:
        return f"{sign}{whole}"
    fraction_text = str(fraction).rjust(decimals, "0").rstrip("0")
    return f"{sign}{whole}.{fraction_text}"


def to_int(value: Union[int, str, None]) -> Optional[int]:
    """Parse a JSON-RPC hex quantity (or pass an int through)."""
    if value is None:
        return None
    if isinstance(value, int):
        return value
    if isinstance(value, str) and value.startswith(("0x", "0X")):
        # Some nodes answer "0x" for zero
        return Web3.to_int(hexstr=value) if len(value) > 2 else 0
    return Web3.to_int(text=value)
