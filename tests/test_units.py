"""
Tests for amount and address helpers.
"""
import pytest
from hypothesis import given, strategies as st

from monad_toolkit.exceptions import InvalidArgument
from monad_toolkit.units import (
    format_units,
    parse_units,
    same_address,
    to_int,
    validate_address,
    validate_amount,
    validate_tx_hash,
)


class TestParseUnits:
    @pytest.mark.parametrize("text,decimals,expected", [
        ("1", 18, 10 ** 18),
        ("0.01", 18, 10 ** 16),
        ("1.5", 6, 1500000),
        (".5", 2, 50),
        ("5.", 2, 500),
        ("0", 18, 0),
        ("1.2300", 2, 123),
    ])
    def test_valid(self, text, decimals, expected):
        assert parse_units(text, decimals) == expected

    @pytest.mark.parametrize("text", ["", "abc", "-1", "1e18", "1,5", "0x10", " . "])
    def test_malformed(self, text):
        with pytest.raises(InvalidArgument):
            parse_units(text, 18)

    def test_excess_precision_rejected(self):
        with pytest.raises(InvalidArgument) as exc_info:
            parse_units("1.123", 2)
        assert "more than 2 decimal places" in str(exc_info.value)

    def test_non_string_rejected(self):
        with pytest.raises(InvalidArgument):
            parse_units(1.5, 18)


class TestFormatUnits:
    def test_trims_trailing_zeros(self):
        assert format_units(1500000000000000000, 18) == "1.5"
        assert format_units(2 * 10 ** 16, 18) == "0.02"

    def test_whole_number(self):
        assert format_units(3 * 10 ** 18, 18) == "3"

    def test_negative(self):
        assert format_units(-10 ** 16, 18) == "-0.01"

    def test_zero_decimals(self):
        assert format_units(42, 0) == "42"


@given(st.integers(min_value=0, max_value=10 ** 30), st.integers(min_value=0, max_value=24))
def test_format_then_parse_is_identity(value, decimals):
    assert parse_units(format_units(value, decimals), decimals) == value


class TestValidation:
    def test_address_checksummed(self):
        result = validate_address("0xb2f82d0f38dc453d596ad40a37799446cc89274a")
        assert result == "0xb2f82D0f38dc453D596Ad40A37799446Cc89274A"

    @pytest.mark.parametrize("value", ["0x123", "b2f82d0f38dc453d596ad40a37799446cc89274a", None, 123,
                                       "0xZZf82d0f38dc453d596ad40a37799446cc89274a"])
    def test_bad_address(self, value):
        with pytest.raises(InvalidArgument):
            validate_address(value, "recipient")

    def test_bad_address_names_field(self):
        with pytest.raises(InvalidArgument) as exc_info:
            validate_address("0x123", "recipient")
        assert "recipient" in exc_info.value.message

    def test_tx_hash_lowercased(self):
        assert validate_tx_hash("0x" + "AB" * 32) == "0x" + "ab" * 32

    def test_bad_tx_hash(self):
        with pytest.raises(InvalidArgument):
            validate_tx_hash("0x1234")

    def test_amount_stripped(self):
        assert validate_amount(" 1.5 ") == "1.5"

    def test_same_address(self):
        assert same_address("0xABCDEF0000000000000000000000000000000000",
                            "0xabcdef0000000000000000000000000000000000")
        assert not same_address(None, "0xabcdef0000000000000000000000000000000000")


def test_to_int():
    assert to_int("0x10") == 16
    assert to_int("0x") == 0
    assert to_int(7) == 7
    assert to_int(None) is None
    assert to_int("12") == 12
