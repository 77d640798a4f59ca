"""
RpcPool - several JSON-RPC endpoints behind one logical provider.

Reads are answered once ``quorum`` endpoints agree on the same result;
writes are accepted once ``quorum`` endpoints took the raw transaction.
Every call makes a single pass over the endpoint list, in order.
"""
import json
import logging
import urllib.parse
from typing import Any, Dict, List, Optional, Protocol, Sequence, Tuple, Union

from web3 import Web3

from ..exceptions import ConfigurationError, ExecutionReverted, RpcUnavailable
from ._rate_limited_log import rate_limited_log

logger = logging.getLogger(__name__)

# Node answers to eth_sendRawTransaction meaning the tx is already in its pool
ALREADY_KNOWN_MARKERS = ("already known", "known transaction", "already imported", "alreadyknown")

# JSON-RPC error code used by geth-style nodes for EVM reverts
REVERT_ERROR_CODE = 3


class RpcProvider(Protocol):
    """Anything that can answer one JSON-RPC request (web3 providers qualify)"""

    def make_request(self, method: Any, params: Any) -> Dict[str, Any]:
        ...


class NodeError(Exception):
    """A JSON-RPC error object returned by one endpoint."""

    def __init__(self, code: int, message: str, data: Any = None):
        self.code = code
        self.message = message
        self.data = data
        super().__init__(f"RPC error {code}: {message}")

    @property
    def is_revert(self) -> bool:
        return self.code == REVERT_ERROR_CODE or "revert" in self.message.lower()

    @property
    def is_already_known(self) -> bool:
        text = self.message.lower()
        return any(marker in text for marker in ALREADY_KNOWN_MARKERS)


def validate_rpc_url(url: str) -> str:
    """
    Require https unless the endpoint is local.

    Raises:
        ConfigurationError: If the URL is not acceptable
    """
    parsed = urllib.parse.urlparse(url)
    host = parsed.netloc.split(':')[0] if parsed.netloc else ''
    is_local = host in ('localhost', '127.0.0.1')
    if parsed.scheme != 'https' and not is_local:
        raise ConfigurationError(f"RPC URL must use https:// (got: {url})")
    return url


def _endpoint_name(provider: RpcProvider, index: int) -> str:
    uri = getattr(provider, "endpoint_uri", None)
    return str(uri) if uri else f"endpoint#{index}"


class RpcPool:
    """
    Ordered endpoints plus a quorum count.

    The rest of the engine only ever calls ``read`` and ``submit``; no other
    module references an individual endpoint.
    """

    def __init__(
        self,
        providers: Sequence[RpcProvider],
        quorum: int = 1,
        logger: Optional[logging.Logger] = None
    ):
        """
        Args:
            providers: Endpoints in priority order
            quorum: Number of agreeing answers required (1 = first answer wins)
            logger: Optional logger instance

        Raises:
            ConfigurationError: If there are no providers or the quorum cannot be met
        """
        if not providers:
            raise ConfigurationError("At least one RPC endpoint is required")
        if quorum < 1 or quorum > len(providers):
            raise ConfigurationError(
                f"Quorum must be between 1 and {len(providers)} (got {quorum})"
            )
        self.providers = list(providers)
        self.quorum = quorum
        self.logger = logger or logging.getLogger(__name__)

    @classmethod
    def from_urls(
        cls,
        urls: Sequence[str],
        quorum: int = 1,
        timeout: int = 30,
        logger: Optional[logging.Logger] = None
    ) -> "RpcPool":
        """
        Build a pool of HTTP providers.

        web3's own retry is switched off: the pool makes one pass per call.
        """
        providers = [
            Web3.HTTPProvider(
                validate_rpc_url(url),
                request_kwargs={"timeout": timeout},
                exception_retry_configuration=None,
            )
            for url in urls
        ]
        return cls(providers, quorum=quorum, logger=logger)

    @property
    def endpoints(self) -> List[str]:
        return [_endpoint_name(p, i) for i, p in enumerate(self.providers)]

    def _request(self, provider: RpcProvider, method: str, params: List[Any]) -> Any:
        response = provider.make_request(method, params)
        error = response.get("error")
        if error:
            if isinstance(error, dict):
                raise NodeError(int(error.get("code", -1)), str(error.get("message", "")), error.get("data"))
            raise NodeError(-1, str(error))
        return response.get("result")

    def _endpoint_failed(self, index: int, method: str, exc: Exception, failures: List[str]) -> None:
        name = _endpoint_name(self.providers[index], index)
        failures.append(f"{name}: {exc}")
        rate_limited_log(
            f"RPC endpoint {name} failed for {method}: {exc}",
            key=f"{name}:{method}:{type(exc).__name__}",
            logger_instance=self.logger,
        )

    def read(self, method: str, params: Optional[List[Any]] = None) -> Any:
        """
        Perform a read-only JSON-RPC call.

        Args:
            method: JSON-RPC method name, e.g. "eth_getBalance"
            params: Positional parameters

        Returns:
            The agreed ``result`` value (may be None, e.g. for a pending receipt)

        Raises:
            ExecutionReverted: If an endpoint reports an EVM revert
            RpcUnavailable: If no value reached the quorum
        """
        params = list(params or [])
        tallies: Dict[str, Tuple[int, Any]] = {}
        failures: List[str] = []

        for index, provider in enumerate(self.providers):
            try:
                result = self._request(provider, method, params)
            except NodeError as e:
                if e.is_revert:
                    raise ExecutionReverted(f"{method} reverted: {e.message}", data=e.data) from e
                self._endpoint_failed(index, method, e, failures)
                continue
            except Exception as e:
                self._endpoint_failed(index, method, e, failures)
                continue

            key = json.dumps(result, sort_keys=True, default=str)
            count = tallies.get(key, (0, result))[0] + 1
            tallies[key] = (count, result)
            if count >= self.quorum:
                return result

        if tallies:
            failures.append(f"{len(tallies)} distinct answers, none reached quorum {self.quorum}")
        raise RpcUnavailable(
            f"{method} failed: no quorum of {self.quorum} among {len(self.providers)} endpoint(s). "
            + "; ".join(failures),
            failures=failures,
        )

    def submit(self, raw_transaction: Union[bytes, str]) -> str:
        """
        Broadcast a signed transaction.

        An endpoint that already knows the transaction counts as accepting it,
        since the same raw transaction may reach several endpoints.

        Returns:
            0x-prefixed transaction hash

        Raises:
            RpcUnavailable: If fewer than ``quorum`` endpoints accepted it
        """
        if isinstance(raw_transaction, (bytes, bytearray)):
            raw_bytes = bytes(raw_transaction)
        else:
            raw_bytes = bytes.fromhex(raw_transaction[2:] if raw_transaction.startswith("0x") else raw_transaction)
        raw_hex = "0x" + raw_bytes.hex()
        tx_hash = "0x" + bytes(Web3.keccak(raw_bytes)).hex()

        accepted = 0
        failures: List[str] = []
        for index, provider in enumerate(self.providers):
            try:
                result = self._request(provider, "eth_sendRawTransaction", [raw_hex])
            except NodeError as e:
                if not e.is_already_known:
                    self._endpoint_failed(index, "eth_sendRawTransaction", e, failures)
                    continue
                self.logger.debug(
                    f"{_endpoint_name(provider, index)} already knows {tx_hash}"
                )
            except Exception as e:
                self._endpoint_failed(index, "eth_sendRawTransaction", e, failures)
                continue
            else:
                if isinstance(result, str) and result.lower() != tx_hash:
                    self.logger.warning(f"Endpoint returned hash {result}, expected {tx_hash}")
            accepted += 1
            if accepted >= self.quorum:
                return tx_hash

        raise RpcUnavailable(
            f"Transaction broadcast failed: {accepted} of {self.quorum} required endpoint(s) accepted it. "
            + "; ".join(failures),
            failures=failures,
        )
