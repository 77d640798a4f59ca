"""
MonadClient - main entry point wiring the engine together.
"""
import logging
import threading
from dataclasses import dataclass
from datetime import datetime, timezone
from typing import List, Optional, Sequence

from .abi import ERC20
from .builder import TransactionBuilder
from .config import NetworkConfig, ToolkitSettings
from .contracts.coinflip import CoinflipClient
from .contracts.staking import StakingVaultClient
from .events import EventDecoder, decode_log
from .exceptions import ConfigurationError, DecodeMismatch
from .models import BlockInfo, IntentKind, TokenBalance, TransactionIntent, TxReceipt
from .reader import ChainReader
from .rpc import RpcPool
from .scanner import DEFAULT_SCAN_WINDOW, HistoricalLogScanner
from .signer import LocalSigner, Signer
from .submitter import DEFAULT_CONFIRMATION_TIMEOUT, DEFAULT_POLL_INTERVAL, TransactionSubmitter
from .units import NATIVE_DECIMALS, NATIVE_SYMBOL, validate_address, validate_tx_hash


@dataclass
class TransferOutcome:
    receipt: TxReceipt
    recipient: str
    raw_amount: int
    decimals: int
    symbol: str
    token: Optional[str] = None


@dataclass
class TransactionDetails:
    """Human-oriented view of a mined transaction."""
    tx_hash: str
    kind: str
    from_address: str
    to_address: Optional[str]
    raw_amount: int
    decimals: int
    symbol: str
    timestamp: datetime
    succeeded: bool
    block_number: int
    gas_used: int
    token: Optional[str] = None


class MonadClient:
    """
    Client for Monad testnet operations.

    Read-only methods work without a signer. Transfers and contract
    interactions need either a private key or a custom signer.
    """

    def __init__(
        self,
        rpc_urls: Sequence[str],
        quorum: int = 1,
        priv_key: Optional[str] = None,
        signer: Optional[Signer] = None,
        chain_id: Optional[int] = None,
        coinflip_address: Optional[str] = None,
        staking_address: Optional[str] = None,
        confirmation_timeout: Optional[float] = DEFAULT_CONFIRMATION_TIMEOUT,
        poll_interval: float = DEFAULT_POLL_INTERVAL,
        scan_window: int = DEFAULT_SCAN_WINDOW,
        timeout: int = 30,
        explorer_url: Optional[str] = None,
        pool: Optional[RpcPool] = None,
        logger: Optional[logging.Logger] = None
    ):
        """
        Initialize the MonadClient

        Args:
            rpc_urls: RPC endpoint URLs in priority order (https, or localhost)
            quorum: Number of endpoints that must agree on each answer
            priv_key: Private key used for signing (optional if signer provided)
            signer: Custom signer object (optional if priv_key provided)
            chain_id: Chain id put into transactions (read from the node if None)
            coinflip_address: Coin-flip contract address
            staking_address: Staking vault address
            confirmation_timeout: Seconds to wait for a receipt, None waits indefinitely
            poll_interval: Seconds between receipt polls
            scan_window: Number of recent blocks covered by history scans
            timeout: HTTP timeout per RPC request in seconds
            explorer_url: Block explorer base URL used for transaction links
            pool: Prebuilt RPC pool (rpc_urls, quorum and timeout are ignored)
            logger: Optional logger instance to use for debug/info logging

        Raises:
            ConfigurationError: If the endpoints, quorum or key are invalid
        """
        self.logger = logger or logging.getLogger(__name__)
        self.explorer_url = explorer_url.rstrip("/") if explorer_url else None
        self.pool = pool or RpcPool.from_urls(rpc_urls, quorum=quorum, timeout=timeout, logger=self.logger)
        self.reader = ChainReader(self.pool, logger=self.logger)
        self.decoder = EventDecoder(logger=self.logger)
        self.scanner = HistoricalLogScanner(self.reader, window=scan_window, logger=self.logger)

        self.signer: Optional[Signer] = signer
        if self.signer is None and priv_key:
            self.signer = LocalSigner(priv_key)

        self.builder: Optional[TransactionBuilder] = None
        self.submitter: Optional[TransactionSubmitter] = None
        if self.signer is not None:
            self.builder = TransactionBuilder(self.reader, chain_id=chain_id, logger=self.logger)
            self.submitter = TransactionSubmitter(
                self.pool, self.reader, self.signer,
                confirmation_timeout=confirmation_timeout,
                poll_interval=poll_interval,
                logger=self.logger,
            )

        self.coinflip_address = validate_address(coinflip_address, "coinflip contract") if coinflip_address else None
        self.staking_address = validate_address(staking_address, "staking contract") if staking_address else None

    @classmethod
    def from_network(
        cls,
        network: str = "monad-testnet",
        rpc_urls: Optional[List[str]] = None,
        **kwargs
    ) -> "MonadClient":
        """
        Create a client from a bundled network definition.

        Keyword arguments override the network's values.
        """
        kwargs.setdefault("chain_id", NetworkConfig.get_chain_id(network))
        kwargs.setdefault("coinflip_address", NetworkConfig.get_coinflip_address(network))
        kwargs.setdefault("staking_address", NetworkConfig.get_staking_address(network))
        kwargs.setdefault("explorer_url", NetworkConfig.get_explorer_url(network))
        return cls(rpc_urls=NetworkConfig.get_rpc_urls(network, override=rpc_urls), **kwargs)

    @classmethod
    def from_settings(cls, settings: ToolkitSettings, logger: Optional[logging.Logger] = None) -> "MonadClient":
        overrides = {
            "coinflip_address": settings.coinflip_address,
            "staking_address": settings.staking_address,
        }
        return cls.from_network(
            settings.network,
            rpc_urls=settings.rpc_urls or None,
            quorum=settings.quorum,
            priv_key=settings.private_key,
            confirmation_timeout=settings.confirmation_timeout,
            poll_interval=settings.poll_interval,
            scan_window=settings.scan_window,
            timeout=settings.request_timeout,
            logger=logger,
            **{k: v for k, v in overrides.items() if v},
        )

    @property
    def address(self) -> str:
        """
        Address of the configured signer

        Raises:
            ConfigurationError: If no signer is configured
        """
        if self.signer is None:
            raise ConfigurationError("No signer available; set a private key")
        return self.signer.address

    def tx_url(self, tx_hash: str) -> Optional[str]:
        """Explorer link for a transaction, if an explorer is configured."""
        if not self.explorer_url:
            return None
        return f"{self.explorer_url}/tx/{tx_hash}"

    @property
    def coinflip(self) -> CoinflipClient:
        if not self.coinflip_address:
            raise ConfigurationError("Coinflip contract address is not configured")
        return CoinflipClient(
            self.coinflip_address, self.reader, self.builder, self.submitter,
            scanner=self.scanner, decoder=self.decoder, logger=self.logger,
        )

    @property
    def staking(self) -> StakingVaultClient:
        if not self.staking_address:
            raise ConfigurationError("Staking contract address is not configured")
        return StakingVaultClient(
            self.staking_address, self.reader, self.builder, self.submitter,
            scanner=self.scanner, decoder=self.decoder, logger=self.logger,
        )

    # Reads

    def get_native_balance(self, address: str) -> int:
        return self.reader.get_native_balance(address)

    def get_token_balance(self, token: str, holder: str) -> TokenBalance:
        return self.reader.get_token_holding(token, holder)

    def get_token_balances(self, tokens: Sequence[str], holder: str) -> List[TokenBalance]:
        return self.reader.get_token_holdings(tokens, holder)

    def get_gas_price(self) -> int:
        return self.reader.get_gas_price()

    def get_latest_block(self) -> BlockInfo:
        return self.reader.get_block("latest")

    def describe_transaction(self, tx_hash: str) -> TransactionDetails:
        """
        Fetch a transaction with its receipt and block.

        If the first log of a successful receipt is an ERC-20 Transfer, the
        transaction is described as a token transfer; otherwise as a native
        transfer of the transaction value.
        """
        tx_hash = validate_tx_hash(tx_hash)
        tx, receipt = self.reader.gather(
            lambda: self.reader.get_transaction(tx_hash),
            lambda: self.reader.get_transaction_receipt(tx_hash),
        )
        block = self.reader.get_block(receipt.block_hash)

        details = TransactionDetails(
            tx_hash=tx_hash,
            kind="Native MON Transfer",
            from_address=tx.from_address,
            to_address=tx.to_address,
            raw_amount=tx.value,
            decimals=NATIVE_DECIMALS,
            symbol=NATIVE_SYMBOL,
            timestamp=datetime.fromtimestamp(block.timestamp, tz=timezone.utc),
            succeeded=receipt.succeeded,
            block_number=receipt.block_number,
            gas_used=receipt.gas_used,
        )

        if receipt.succeeded and receipt.logs:
            first = receipt.logs[0]
            try:
                transfer = decode_log(first, ERC20.Transfer)
            except DecodeMismatch:
                self.logger.debug(f"First log of {tx_hash} is not a Transfer")
            else:
                metadata = self.reader.get_token_metadata(transfer.address)
                details.kind = "Token Transfer"
                details.from_address = transfer.args["from"]
                details.to_address = transfer.args["to"]
                details.raw_amount = int(transfer.args["value"])
                details.decimals = metadata["decimals"]
                details.symbol = metadata["symbol"]
                details.token = transfer.address
        return details

    # Transfers

    def _submit(self, intent: TransactionIntent, cancel: Optional[threading.Event]):
        if self.builder is None or self.submitter is None:
            raise ConfigurationError("No signer available; set a private key")
        built = self.builder.build(intent, self.address)
        return built, self.submitter.submit(built, cancel=cancel)

    def transfer_native(self, to: str, amount: str, cancel: Optional[threading.Event] = None) -> TransferOutcome:
        """Send ``amount`` MON to ``to`` and wait for confirmation."""
        intent = TransactionIntent(kind=IntentKind.NATIVE_TRANSFER, recipient=to, amount=amount)
        built, receipt = self._submit(intent, cancel)
        return TransferOutcome(
            receipt=receipt,
            recipient=validate_address(to, "recipient"),
            raw_amount=built.raw_amount,
            decimals=NATIVE_DECIMALS,
            symbol=NATIVE_SYMBOL,
        )

    def transfer_token(self, token: str, to: str, amount: str,
                       cancel: Optional[threading.Event] = None) -> TransferOutcome:
        """Send ``amount`` of an ERC-20 token to ``to`` and wait for confirmation."""
        intent = TransactionIntent(kind=IntentKind.TOKEN_TRANSFER, recipient=to, amount=amount, token=token)
        built, receipt = self._submit(intent, cancel)
        transfer = self.decoder.find_event(receipt, ERC20.Transfer, address=token)
        raw_amount = int(transfer.args["value"]) if transfer else built.raw_amount
        return TransferOutcome(
            receipt=receipt,
            recipient=validate_address(to, "recipient"),
            raw_amount=raw_amount,
            decimals=built.decimals,
            symbol=built.symbol,
            token=validate_address(token, "token contract"),
        )
