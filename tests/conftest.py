"""
Pytest fixtures for the Monad toolkit tests.
"""
import time
from typing import Any, Callable, Dict, List, Optional

import pytest
from eth_abi import decode as abi_decode
from eth_abi import encode as abi_encode
from eth_account import Account
from web3 import Web3
from web3.providers.rpc import HTTPProvider

from monad_toolkit.abi import EventSpec, FunctionSpec
from monad_toolkit.client import MonadClient
from monad_toolkit.config import NetworkConfig
from monad_toolkit.reader import ChainReader
from monad_toolkit.rpc import RpcPool
from monad_toolkit.rpc._rate_limited_log import reset_rate_limits
from monad_toolkit.scanner import encode_topic

# Constants for testing
TEST_RPC_URL = "https://rpc.example.com"
TEST_CHAIN_ID = 10143
TEST_PRIV_KEY = "0x0123456789abcdef0123456789abcdef0123456789abcdef0123456789abcdef"
TEST_ADDRESS = Account.from_key(TEST_PRIV_KEY).address
RECIPIENT = Web3.to_checksum_address("0x1234567890123456789012345678901234567890")
TOKEN = Web3.to_checksum_address("0x0987654321098765432109876543210987654321")
COINFLIP = Web3.to_checksum_address("0x1111111111111111111111111111111111111111")
VAULT = Web3.to_checksum_address("0xb2f82d0f38dc453d596ad40a37799446cc89274a")
BLOCK_HASH = "0x" + "ab" * 32
PARENT_HASH = "0x" + "cd" * 32
TX_HASH = "0x" + "12" * 32
GAS_PRICE = 50 * 10 ** 9
ONE_MON = 10 ** 18

# Captured before the autouse patch below replaces it
REAL_MAKE_REQUEST = HTTPProvider.make_request


# 1) Make time.sleep instantaneous so receipt polling doesn't slow the suite down
@pytest.fixture(autouse=True)
def _fast_sleep(monkeypatch):
    monkeypatch.setattr(time, "sleep", lambda *_a, **_kw: None)


@pytest.fixture(autouse=True)
def _reset_state():
    reset_rate_limits()
    NetworkConfig._networks_cache = None
    yield
    NetworkConfig._networks_cache = None


@pytest.fixture(autouse=True)
def _patch_http_provider(monkeypatch):
    """
    Stub every Web3 HTTP call so no DNS / network traffic is triggered.
    Tests that exercise the HTTP layer use requests_mock and undo this.
    """
    def _dummy(self, method, params=None):
        raise ConnectionError(f"network disabled in tests ({method})")

    monkeypatch.setattr(HTTPProvider, "make_request", _dummy, raising=True)


class RpcErrorResponse:
    """Handler result that makes the fake node answer with a JSON-RPC error"""

    def __init__(self, code: int, message: str, data: Any = None):
        self.code = code
        self.message = message
        self.data = data


def encode_output(function: FunctionSpec, value: Any) -> str:
    values = [value] if len(function.outputs) == 1 else list(value)
    return "0x" + abi_encode([p.type for p in function.outputs], values).hex()


def make_log(address: str, event: EventSpec, args: Dict[str, Any], block_number: int = 100,
             tx_hash: str = TX_HASH, log_index: int = 0) -> Dict[str, Any]:
    """Raw JSON-RPC log for ``event`` with the given field values"""
    topics = [event.topic] + [encode_topic(p.type, args[p.name]) for p in event.indexed_fields]
    data_fields = event.data_fields
    data = abi_encode([p.type for p in data_fields], [args[p.name] for p in data_fields])
    return {
        "address": address.lower(),
        "topics": topics,
        "data": "0x" + data.hex(),
        "blockNumber": hex(block_number),
        "transactionHash": tx_hash,
        "logIndex": hex(log_index),
    }


def make_receipt(tx_hash: str = TX_HASH, status: int = 1, logs: Optional[List[Dict[str, Any]]] = None,
                 block_number: int = 100, gas_used: int = 21000, to: Optional[str] = RECIPIENT) -> Dict[str, Any]:
    return {
        "transactionHash": tx_hash,
        "blockNumber": hex(block_number),
        "blockHash": BLOCK_HASH,
        "status": hex(status),
        "gasUsed": hex(gas_used),
        "from": TEST_ADDRESS.lower(),
        "to": to.lower() if to else None,
        "contractAddress": None,
        "effectiveGasPrice": hex(GAS_PRICE),
        "logs": [dict(log, transactionHash=tx_hash) for log in logs or []],
    }


def make_block(number: int = 5000, timestamp: int = 1700000000, transactions: int = 3) -> Dict[str, Any]:
    return {
        "number": hex(number),
        "hash": BLOCK_HASH,
        "parentHash": PARENT_HASH,
        "timestamp": hex(timestamp),
        "gasUsed": hex(1500000),
        "gasLimit": hex(30000000),
        "transactions": ["0x" + f"{i:064x}" for i in range(transactions)],
    }


class FakeChain:
    """
    In-memory JSON-RPC endpoint.

    Answers the methods the toolkit uses from simple state; ``on`` overrides
    a method with a fixed result, an ``RpcErrorResponse`` or a callable.
    """

    def __init__(self, endpoint_uri: str = TEST_RPC_URL):
        self.endpoint_uri = endpoint_uri
        self.calls: List[tuple] = []
        self.overrides: Dict[str, Any] = {}
        self.balances: Dict[str, int] = {}
        self.contracts: Dict[tuple, Any] = {}
        self.receipts: Dict[str, Dict[str, Any]] = {}
        self.transactions: Dict[str, Dict[str, Any]] = {}
        self.blocks: Dict[str, Dict[str, Any]] = {}
        self.logs: List[Dict[str, Any]] = []
        self.sent: List[str] = []
        self.block_number = 5000
        self.gas_estimate = 21000
        self.gas_price = GAS_PRICE
        self.nonce = 5
        # Receipt produced for each broadcast transaction (None keeps it pending)
        self.next_receipt: Optional[Callable[[str], Optional[Dict[str, Any]]]] = lambda h: make_receipt(h)

    # Setup helpers

    def on(self, method: str, result: Any) -> None:
        self.overrides[method] = result

    def set_balance(self, address: str, value: int) -> None:
        self.balances[address.lower()] = value

    def contract(self, address: str, function: FunctionSpec, result: Any) -> None:
        """Answer eth_call of ``function`` on ``address`` (value, callable(args) or RpcErrorResponse)"""
        self.contracts[(address.lower(), "0x" + function.selector.hex())] = (function, result)

    def calls_to(self, method: str) -> List[Any]:
        return [params for m, params in self.calls if m == method]

    def contract_calls(self, function: FunctionSpec) -> List[tuple]:
        selector = "0x" + function.selector.hex()
        found = []
        for params in self.calls_to("eth_call"):
            data = params[0]["data"]
            if data.startswith(selector):
                found.append(tuple(abi_decode([p.type for p in function.inputs], bytes.fromhex(data[10:]))))
        return found

    # JSON-RPC

    def make_request(self, method, params):
        self.calls.append((method, params))
        if method in self.overrides:
            result = self.overrides[method]
            if callable(result):
                result = result(params)
        else:
            result = getattr(self, "_" + method)(params)
        if isinstance(result, RpcErrorResponse):
            return {"jsonrpc": "2.0", "id": 1,
                    "error": {"code": result.code, "message": result.message, "data": result.data}}
        return {"jsonrpc": "2.0", "id": 1, "result": result}

    def _eth_chainId(self, params):
        return hex(TEST_CHAIN_ID)

    def _eth_blockNumber(self, params):
        return hex(self.block_number)

    def _eth_gasPrice(self, params):
        return hex(self.gas_price)

    def _eth_getBalance(self, params):
        return hex(self.balances.get(params[0].lower(), 0))

    def _eth_getTransactionCount(self, params):
        return hex(self.nonce)

    def _eth_estimateGas(self, params):
        return hex(self.gas_estimate)

    def _eth_call(self, params):
        tx = params[0]
        data = tx["data"]
        entry = self.contracts.get((tx["to"].lower(), data[:10]))
        if entry is None:
            return "0x"
        function, result = entry
        if callable(result):
            args = abi_decode([p.type for p in function.inputs], bytes.fromhex(data[10:]))
            result = result(*args)
        if isinstance(result, RpcErrorResponse):
            return result
        return encode_output(function, result)

    def _eth_sendRawTransaction(self, params):
        raw = params[0]
        tx_hash = "0x" + bytes(Web3.keccak(hexstr=raw)).hex()
        self.sent.append(raw)
        receipt = self.next_receipt(tx_hash) if self.next_receipt else None
        if receipt is not None:
            self.receipts[tx_hash] = receipt
        return tx_hash

    def _eth_getTransactionReceipt(self, params):
        return self.receipts.get(params[0])

    def _eth_getTransactionByHash(self, params):
        return self.transactions.get(params[0])

    def _eth_getBlockByNumber(self, params):
        return self.blocks.get(params[0], self.blocks.get("latest"))

    def _eth_getBlockByHash(self, params):
        return self.blocks.get(params[0])

    def _eth_getLogs(self, params):
        return self.logs


@pytest.fixture
def chain():
    chain = FakeChain()
    chain.set_balance(TEST_ADDRESS, 10 * ONE_MON)
    return chain


@pytest.fixture
def pool(chain):
    return RpcPool([chain])


@pytest.fixture
def reader(pool):
    return ChainReader(pool)


@pytest.fixture
def client(pool):
    return MonadClient(
        rpc_urls=[TEST_RPC_URL],
        pool=pool,
        priv_key=TEST_PRIV_KEY,
        chain_id=TEST_CHAIN_ID,
        coinflip_address=COINFLIP,
        staking_address=VAULT,
        explorer_url="https://testnet.monadexplorer.com",
    )


@pytest.fixture
def readonly_client(pool):
    return MonadClient(rpc_urls=[TEST_RPC_URL], pool=pool, chain_id=TEST_CHAIN_ID)
