"""
ChainReader - read-only queries routed through the RPC pool.
"""
import logging
from concurrent.futures import ThreadPoolExecutor
from typing import Any, Callable, Dict, List, Optional, Sequence, Union

from .abi import ERC20, FunctionSpec
from .exceptions import InvalidArgument, NotFound
from .models import BlockInfo, TokenBalance, TransactionInfo, TxLog, TxReceipt
from .rpc import RpcPool
from .units import NATIVE_DECIMALS, to_int, validate_address, validate_tx_hash

logger = logging.getLogger(__name__)

DEFAULT_MAX_WORKERS = 8
UNKNOWN_SYMBOL = "???"


class ChainReader:
    """
    Stateless read access to the chain.

    All methods are side-effect free and may be called from several threads.
    Failures are raised as typed ``ToolkitError`` subclasses.
    """

    def __init__(self, pool: RpcPool, max_workers: int = DEFAULT_MAX_WORKERS,
                 logger: Optional[logging.Logger] = None):
        self.pool = pool
        self.max_workers = max_workers
        self.logger = logger or logging.getLogger(__name__)

    def gather(self, *calls: Callable[[], Any]) -> List[Any]:
        """
        Run independent reads concurrently and wait for all of them.

        Returns:
            Results in the order of ``calls``; the first failure is re-raised
        """
        if not calls:
            return []
        if len(calls) == 1:
            return [calls[0]()]
        with ThreadPoolExecutor(max_workers=min(len(calls), self.max_workers)) as executor:
            futures = [executor.submit(call) for call in calls]
            return [future.result() for future in futures]

    # Native chain state

    def get_chain_id(self) -> int:
        return to_int(self.pool.read("eth_chainId"))

    def get_block_number(self) -> int:
        return to_int(self.pool.read("eth_blockNumber"))

    def get_gas_price(self) -> int:
        return to_int(self.pool.read("eth_gasPrice"))

    def get_native_balance(self, address: str, block: str = "latest") -> int:
        address = validate_address(address)
        return to_int(self.pool.read("eth_getBalance", [address, block]))

    def get_transaction_count(self, address: str, block: str = "pending") -> int:
        address = validate_address(address)
        return to_int(self.pool.read("eth_getTransactionCount", [address, block]))

    def get_transaction(self, tx_hash: str) -> TransactionInfo:
        tx_hash = validate_tx_hash(tx_hash)
        result = self.pool.read("eth_getTransactionByHash", [tx_hash])
        if result is None:
            raise NotFound(f"Transaction {tx_hash} not found")
        return TransactionInfo.model_validate(result)

    def find_transaction_receipt(self, tx_hash: str) -> Optional[TxReceipt]:
        """Return the receipt, or None while the transaction is not mined."""
        tx_hash = validate_tx_hash(tx_hash)
        result = self.pool.read("eth_getTransactionReceipt", [tx_hash])
        if result is None:
            return None
        return TxReceipt.model_validate(result)

    def get_transaction_receipt(self, tx_hash: str) -> TxReceipt:
        receipt = self.find_transaction_receipt(tx_hash)
        if receipt is None:
            raise NotFound(f"Receipt for {tx_hash} not found")
        return receipt

    def get_block(self, block: Union[int, str] = "latest") -> BlockInfo:
        """
        Fetch a block header by number, hash or tag.

        Args:
            block: Block number, 0x-prefixed 32-byte hash, or a tag like "latest"
        """
        if isinstance(block, int):
            result = self.pool.read("eth_getBlockByNumber", [hex(block), False])
        elif isinstance(block, str) and len(block) == 66 and block.startswith("0x"):
            result = self.pool.read("eth_getBlockByHash", [validate_tx_hash(block), False])
        else:
            result = self.pool.read("eth_getBlockByNumber", [block, False])
        if result is None:
            raise NotFound(f"Block {block} not found")
        return BlockInfo.model_validate(result)

    # Contracts

    def call(self, contract: str, function: FunctionSpec, *args: Any,
             sender: Optional[str] = None, block: str = "latest") -> Any:
        """
        Execute a read-only contract call and decode its output.

        Raises:
            ExecutionReverted: If the call reverts
            NotFound: If the call returned no data (no contract or function there)
            InvalidArgument: If the return data does not fit the outputs
        """
        contract = validate_address(contract, "contract address")
        tx: Dict[str, Any] = {"to": contract, "data": function.encode_call(*args)}
        if sender:
            tx["from"] = validate_address(sender, "sender")
        data = self.pool.read("eth_call", [tx, block])
        if not data or data == "0x":
            raise NotFound(f"{function.name} on {contract} returned no data")
        try:
            return function.decode_output(data)
        except Exception as e:
            raise InvalidArgument(f"Could not decode {function.name} output from {contract}: {e}") from e

    def estimate_gas(self, transaction: Dict[str, Any]) -> int:
        """Estimate gas for a transaction dict (from/to/value/data)."""
        params = {k: v for k, v in transaction.items() if k in ("from", "to", "data", "value")}
        if isinstance(params.get("value"), int):
            params["value"] = hex(params["value"])
        estimate = to_int(self.pool.read("eth_estimateGas", [params]))
        self.logger.debug(f"Estimated gas: {estimate}")
        return estimate

    def get_logs(self, log_filter: Dict[str, Any]) -> List[TxLog]:
        result = self.pool.read("eth_getLogs", [log_filter])
        return [TxLog.model_validate(entry) for entry in result or []]

    # Tokens

    def get_token_balance(self, token: str, holder: str) -> int:
        holder = validate_address(holder, "holder address")
        return self.call(token, ERC20.balance_of, holder)

    def get_token_decimals(self, token: str) -> int:
        """Token decimals; 18 if the token does not expose them."""
        try:
            return int(self.call(token, ERC20.decimals))
        except (NotFound, InvalidArgument):
            self.logger.debug(f"No decimals() on {token}, assuming {NATIVE_DECIMALS}")
            return NATIVE_DECIMALS

    def get_token_symbol(self, token: str) -> str:
        try:
            return self.call(token, ERC20.symbol)
        except (NotFound, InvalidArgument):
            self.logger.debug(f"No symbol() on {token}")
            return UNKNOWN_SYMBOL

    def get_token_metadata(self, token: str) -> Dict[str, Any]:
        """Symbol and decimals, read concurrently."""
        token = validate_address(token, "token contract")
        symbol, decimals = self.gather(
            lambda: self.get_token_symbol(token),
            lambda: self.get_token_decimals(token),
        )
        return {"symbol": symbol, "decimals": decimals}

    def get_token_holding(self, token: str, holder: str) -> TokenBalance:
        """Balance, symbol and decimals of one token for one holder."""
        token = validate_address(token, "token contract")
        holder = validate_address(holder, "holder address")
        raw, symbol, decimals = self.gather(
            lambda: self.get_token_balance(token, holder),
            lambda: self.get_token_symbol(token),
            lambda: self.get_token_decimals(token),
        )
        return TokenBalance(token=token, holder=holder, symbol=symbol, decimals=decimals, raw=raw)

    def get_token_holdings(self, tokens: Sequence[str], holder: str) -> List[TokenBalance]:
        """Holdings for several tokens; each token's reads run concurrently."""
        holder = validate_address(holder, "holder address")
        tokens = [validate_address(t, "token contract") for t in tokens]
        return self.gather(*[
            (lambda t=t: self.get_token_holding(t, holder)) for t in tokens
        ])
