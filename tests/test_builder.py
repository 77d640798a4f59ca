"""
Tests for TransactionBuilder.
"""
import pytest
from hypothesis import given, strategies as st

from conftest import ONE_MON, RECIPIENT, TEST_ADDRESS, TEST_CHAIN_ID, TOKEN, RpcErrorResponse
from monad_toolkit.abi import ERC20, Coinflip
from monad_toolkit.builder import TransactionBuilder, apply_gas_buffer
from monad_toolkit.exceptions import ExecutionReverted, InsufficientFunds, InvalidArgument
from monad_toolkit.models import GasParameters, IntentKind, TransactionIntent


@pytest.fixture
def builder(reader):
    return TransactionBuilder(reader, chain_id=TEST_CHAIN_ID)


def native(amount, recipient=RECIPIENT):
    return TransactionIntent(kind=IntentKind.NATIVE_TRANSFER, recipient=recipient, amount=amount)


class TestGasBuffer:
    def test_exact_value(self):
        assert apply_gas_buffer(21000) == 25200

    def test_floor(self):
        assert apply_gas_buffer(21001) == 25201

    @given(st.integers(min_value=0, max_value=10 ** 12))
    def test_buffer_bounds(self, estimate):
        applied = apply_gas_buffer(estimate)
        assert applied * 100 <= estimate * 120 < (applied + 1) * 100
        assert applied >= estimate

    def test_gas_parameters_frozen(self):
        gas = GasParameters.from_estimate(100000, 7)
        assert (gas.estimated_limit, gas.applied_limit, gas.price) == (100000, 120000, 7)
        with pytest.raises(Exception):
            gas.price = 8


class TestNativeTransfer:
    def test_build(self, builder, chain):
        chain.gas_estimate = 21000
        built = builder.build(native("1.5"), TEST_ADDRESS)

        assert built.raw_amount == 1500000000000000000
        assert built.gas.estimated_limit == 21000
        assert built.gas.applied_limit == 25200
        tx = built.transaction
        assert tx["to"] == RECIPIENT
        assert tx["value"] == 1500000000000000000
        assert tx["gas"] == 25200
        assert tx["gasPrice"] == 50 * 10 ** 9
        assert tx["chainId"] == TEST_CHAIN_ID
        assert tx["from"] == TEST_ADDRESS
        assert (built.decimals, built.symbol) == (18, "MON")

    def test_insufficient_funds_before_estimate(self, builder, chain):
        with pytest.raises(InsufficientFunds) as exc_info:
            builder.build(native("11"), TEST_ADDRESS)

        assert exc_info.value.required == 11 * ONE_MON
        assert exc_info.value.available == 10 * ONE_MON
        assert "need 11 MON, have 10 MON" in exc_info.value.message
        assert chain.calls_to("eth_estimateGas") == []

    def test_invalid_recipient_makes_no_request(self, builder, chain):
        with pytest.raises(InvalidArgument):
            builder.build(native("1", recipient="0x1234"), TEST_ADDRESS)
        assert chain.calls == []

    def test_invalid_amount_makes_no_request(self, builder, chain):
        with pytest.raises(InvalidArgument):
            builder.build(native("1,5"), TEST_ADDRESS)
        assert chain.calls == []

    def test_zero_amount_skips_balance_check(self, builder, chain):
        builder.build(native("0"), TEST_ADDRESS)
        assert chain.calls_to("eth_getBalance") == []

    def test_estimate_revert_aborts(self, builder, chain):
        chain.on("eth_estimateGas", RpcErrorResponse(3, "execution reverted"))
        with pytest.raises(ExecutionReverted):
            builder.build(native("1"), TEST_ADDRESS)
        assert chain.calls_to("eth_gasPrice") == []

    def test_chain_id_read_when_not_configured(self, reader, chain):
        built = TransactionBuilder(reader).build(native("1"), TEST_ADDRESS)
        assert built.transaction["chainId"] == TEST_CHAIN_ID
        assert len(chain.calls_to("eth_chainId")) == 1


class TestTokenTransfer:
    def test_build(self, builder, chain):
        chain.contract(TOKEN, ERC20.decimals, 6)
        chain.contract(TOKEN, ERC20.symbol, "USDC")
        chain.contract(TOKEN, ERC20.balance_of, 5000000)
        intent = TransactionIntent(kind=IntentKind.TOKEN_TRANSFER, recipient=RECIPIENT,
                                   amount="2.5", token=TOKEN)

        built = builder.build(intent, TEST_ADDRESS)

        assert built.raw_amount == 2500000
        assert built.transaction["to"] == TOKEN
        assert built.transaction["value"] == 0
        assert built.transaction["data"] == ERC20.transfer.encode_call(RECIPIENT, 2500000)
        assert (built.decimals, built.symbol) == (6, "USDC")

    def test_insufficient_token_balance(self, builder, chain):
        chain.contract(TOKEN, ERC20.decimals, 6)
        chain.contract(TOKEN, ERC20.symbol, "USDC")
        chain.contract(TOKEN, ERC20.balance_of, 1000000)
        intent = TransactionIntent(kind=IntentKind.TOKEN_TRANSFER, recipient=RECIPIENT,
                                   amount="2", token=TOKEN)

        with pytest.raises(InsufficientFunds) as exc_info:
            builder.build(intent, TEST_ADDRESS)
        assert "USDC" in exc_info.value.message
        assert chain.calls_to("eth_estimateGas") == []

    def test_token_required(self, builder):
        intent = TransactionIntent(kind=IntentKind.TOKEN_TRANSFER, recipient=RECIPIENT, amount="1")
        with pytest.raises(InvalidArgument):
            builder.build(intent, TEST_ADDRESS)


class TestContractCall:
    def test_value_attached(self, builder):
        intent = TransactionIntent(kind=IntentKind.CONTRACT_CALL, recipient=RECIPIENT, amount="0.01",
                                   function=Coinflip.flip_coin, arguments=(1,))
        built = builder.build(intent, TEST_ADDRESS)

        assert built.transaction["value"] == 10 ** 16
        assert built.transaction["data"] == Coinflip.flip_coin.encode_call(1)

    def test_function_required(self, builder):
        intent = TransactionIntent(kind=IntentKind.CONTRACT_CALL, recipient=RECIPIENT, amount="1")
        with pytest.raises(InvalidArgument):
            builder.build(intent, TEST_ADDRESS)
