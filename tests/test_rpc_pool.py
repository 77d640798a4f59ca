"""
Tests for the RPC redundancy layer.
"""
import json
import logging

import pytest
import requests
from web3 import Web3
from web3.providers.rpc import HTTPProvider

from conftest import REAL_MAKE_REQUEST, RpcErrorResponse, FakeChain
from monad_toolkit.exceptions import ConfigurationError, ExecutionReverted, RpcUnavailable
from monad_toolkit.rpc import NodeError, RpcPool, validate_rpc_url
from monad_toolkit.rpc._rate_limited_log import rate_limited_log

RAW_TX = "0x" + "f8" * 40
RAW_TX_HASH = "0x" + bytes(Web3.keccak(hexstr=RAW_TX)).hex()


def _failing(exc):
    def handler(params):
        raise exc
    return handler


def _chains(count):
    return [FakeChain(f"https://rpc{i}.example.com") for i in range(count)]


class TestConstruction:
    def test_no_providers(self):
        with pytest.raises(ConfigurationError):
            RpcPool([])

    @pytest.mark.parametrize("quorum", [0, 3])
    def test_quorum_out_of_range(self, quorum):
        with pytest.raises(ConfigurationError):
            RpcPool(_chains(2), quorum=quorum)

    def test_endpoints(self):
        pool = RpcPool(_chains(2))
        assert pool.endpoints == ["https://rpc0.example.com", "https://rpc1.example.com"]

    @pytest.mark.parametrize("url", [
        "https://rpc.example.com",
        "http://localhost:8545",
        "http://127.0.0.1:8545",
    ])
    def test_accepted_urls(self, url):
        assert validate_rpc_url(url) == url

    def test_plain_http_rejected(self):
        with pytest.raises(ConfigurationError):
            validate_rpc_url("http://rpc.example.com")

    def test_from_urls_validates(self):
        with pytest.raises(ConfigurationError):
            RpcPool.from_urls(["https://ok.example.com", "http://bad.example.com"])


class TestRead:
    def test_first_answer_wins_with_quorum_one(self):
        first, second = _chains(2)
        pool = RpcPool([first, second])

        assert pool.read("eth_blockNumber") == hex(5000)
        assert second.calls == []

    def test_falls_through_transport_errors(self):
        first, second = _chains(2)
        first.on("eth_blockNumber", _failing(requests.ConnectionError("refused")))
        pool = RpcPool([first, second])

        assert pool.read("eth_blockNumber") == hex(5000)
        assert len(second.calls) == 1

    def test_falls_through_node_errors(self):
        first, second = _chains(2)
        first.on("eth_gasPrice", RpcErrorResponse(-32000, "header not found"))
        pool = RpcPool([first, second])

        assert pool.read("eth_gasPrice") == hex(50 * 10 ** 9)

    def test_all_endpoints_fail(self):
        chains = _chains(3)
        for chain in chains:
            chain.on("eth_blockNumber", _failing(requests.Timeout("timed out")))
        pool = RpcPool(chains)

        with pytest.raises(RpcUnavailable) as exc_info:
            pool.read("eth_blockNumber")
        assert len(exc_info.value.failures) == 3
        assert all(len(chain.calls) == 1 for chain in chains)

    def test_quorum_of_agreeing_answers(self):
        chains = _chains(3)
        chains[0].block_number = 4999
        pool = RpcPool(chains, quorum=2)

        assert pool.read("eth_blockNumber") == hex(5000)

    def test_quorum_not_reached(self):
        chains = _chains(3)
        chains[0].block_number = 1
        chains[1].block_number = 2
        chains[2].block_number = 3
        pool = RpcPool(chains, quorum=2)

        with pytest.raises(RpcUnavailable) as exc_info:
            pool.read("eth_blockNumber")
        assert "none reached quorum 2" in exc_info.value.message

    def test_revert_is_not_retried(self):
        first, second = _chains(2)
        first.on("eth_call", RpcErrorResponse(3, "execution reverted: pool empty", "0x08c379a0"))
        pool = RpcPool([first, second])

        with pytest.raises(ExecutionReverted) as exc_info:
            pool.read("eth_call", [{"to": "0x" + "11" * 20, "data": "0x"}, "latest"])
        assert exc_info.value.data == "0x08c379a0"
        assert second.calls == []

    def test_null_result_is_an_answer(self):
        pool = RpcPool(_chains(2), quorum=2)
        assert pool.read("eth_getTransactionReceipt", ["0x" + "00" * 32]) is None

    def test_failure_warning_rate_limited(self, caplog):
        first, second = _chains(2)
        first.on("eth_blockNumber", _failing(requests.ConnectionError("refused")))
        pool = RpcPool([first, second])

        with caplog.at_level(logging.WARNING):
            pool.read("eth_blockNumber")
            pool.read("eth_blockNumber")
        warnings = [r for r in caplog.records if "rpc0.example.com" in r.getMessage()]
        assert len(warnings) == 1


class TestSubmit:
    def test_returns_local_hash(self):
        chain = FakeChain()
        pool = RpcPool([chain])

        assert pool.submit(bytes.fromhex(RAW_TX[2:])) == RAW_TX_HASH
        assert chain.sent == [RAW_TX]

    def test_already_known_counts_as_accepted(self):
        first, second = _chains(2)
        first.on("eth_sendRawTransaction", RpcErrorResponse(-32000, "already known"))
        pool = RpcPool([first, second], quorum=2)

        assert pool.submit(RAW_TX) == RAW_TX_HASH

    def test_rejection_falls_through(self):
        first, second = _chains(2)
        first.on("eth_sendRawTransaction", RpcErrorResponse(-32000, "nonce too low"))
        pool = RpcPool([first, second])

        assert pool.submit(RAW_TX) == RAW_TX_HASH
        assert second.sent == [RAW_TX]

    def test_not_enough_acceptances(self):
        first, second = _chains(2)
        second.on("eth_sendRawTransaction", _failing(requests.ConnectionError("refused")))
        pool = RpcPool([first, second], quorum=2)

        with pytest.raises(RpcUnavailable) as exc_info:
            pool.submit(RAW_TX)
        assert "1 of 2" in exc_info.value.message


class TestNodeError:
    def test_flags(self):
        assert NodeError(3, "execution reverted").is_revert
        assert NodeError(-32000, "VM Exception: revert").is_revert
        assert not NodeError(-32000, "nonce too low").is_revert
        assert NodeError(-32000, "Known transaction: 0xabc").is_already_known


class TestHttpTransport:
    """Pool over real HTTP providers with requests_mock in place of the network."""

    @pytest.fixture(autouse=True)
    def _real_provider(self, monkeypatch):
        monkeypatch.setattr(HTTPProvider, "make_request", REAL_MAKE_REQUEST, raising=True)

    def test_fallthrough_over_http(self, requests_mock):
        requests_mock.post("https://rpc0.example.com/", status_code=503)
        requests_mock.post("https://rpc1.example.com/", json={"jsonrpc": "2.0", "id": 0, "result": "0x2a"})
        pool = RpcPool.from_urls(["https://rpc0.example.com/", "https://rpc1.example.com/"])

        assert pool.read("eth_blockNumber") == "0x2a"
        body = json.loads(requests_mock.last_request.text)
        assert body["method"] == "eth_blockNumber"

    def test_node_error_over_http(self, requests_mock):
        requests_mock.post("https://rpc0.example.com/", json={
            "jsonrpc": "2.0", "id": 0, "error": {"code": 3, "message": "execution reverted"},
        })
        pool = RpcPool.from_urls(["https://rpc0.example.com/"])

        with pytest.raises(ExecutionReverted):
            pool.read("eth_call", [{"to": "0x" + "11" * 20, "data": "0x"}, "latest"])


def test_rate_limited_log_suppresses_repeats(caplog):
    with caplog.at_level(logging.WARNING):
        assert rate_limited_log("endpoint down", key="k1") is True
        assert rate_limited_log("endpoint down", key="k1") is False
        assert rate_limited_log("endpoint down", key="k2") is True
