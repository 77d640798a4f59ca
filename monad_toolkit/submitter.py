"""
TransactionSubmitter - signs, broadcasts and waits for a receipt.
"""
import logging
import threading
import time
from typing import Any, Optional

from .exceptions import ConfirmationTimeout, ToolkitError, TransactionReverted, WaitCancelled
from .models import BuiltTransaction, TxReceipt
from .reader import ChainReader
from .rpc import RpcPool
from .signer import Signer
from .units import same_address

logger = logging.getLogger(__name__)

DEFAULT_CONFIRMATION_TIMEOUT = 120.0
DEFAULT_POLL_INTERVAL = 1.0


class TransactionSubmitter:
    """
    Signs built transactions with the configured signer and blocks until
    they are mined.

    A reverted receipt is final: it is reported, never re-submitted.
    """

    def __init__(
        self,
        pool: RpcPool,
        reader: ChainReader,
        signer: Signer,
        confirmation_timeout: Optional[float] = DEFAULT_CONFIRMATION_TIMEOUT,
        poll_interval: float = DEFAULT_POLL_INTERVAL,
        logger: Optional[logging.Logger] = None
    ):
        """
        Args:
            pool: RPC pool used for broadcasting
            reader: Chain reader used for nonce and receipt polling
            signer: Credential that signs every transaction
            confirmation_timeout: Seconds to wait for a receipt, None waits indefinitely
            poll_interval: Seconds between receipt polls
            logger: Optional logger instance
        """
        self.pool = pool
        self.reader = reader
        self.signer = signer
        self.confirmation_timeout = confirmation_timeout
        self.poll_interval = poll_interval
        self.logger = logger or logging.getLogger(__name__)

    def sign(self, built: BuiltTransaction) -> Any:
        """
        Add the pending nonce and sign.

        Raises:
            ToolkitError: If the transaction was built for another sender
        """
        if not same_address(built.sender, self.signer.address):
            raise ToolkitError(
                f"Transaction built for {built.sender} cannot be signed by {self.signer.address}"
            )
        nonce = self.reader.get_transaction_count(self.signer.address, "pending")
        tx = {**built.transaction, "nonce": nonce}
        return self.signer.sign_transaction(tx)

    def send(self, built: BuiltTransaction) -> str:
        """
        Sign and broadcast without waiting.

        Returns:
            Transaction hash
        """
        signed = self.sign(built)
        tx_hash = self.pool.submit(signed.raw_transaction)
        self.logger.info(
            f"Transaction sent: {tx_hash} ({built.intent.kind.value} to {built.transaction.get('to')})"
        )
        return tx_hash

    def wait_for_receipt(
        self,
        tx_hash: str,
        timeout: Optional[float] = None,
        cancel: Optional[threading.Event] = None
    ) -> TxReceipt:
        """
        Poll until the transaction is mined.

        Args:
            tx_hash: Transaction hash to wait for
            timeout: Overrides the configured timeout for this wait
            cancel: Event that aborts the wait when set

        Returns:
            The receipt, whatever its status

        Raises:
            ConfirmationTimeout: If no receipt appeared in time
            WaitCancelled: If ``cancel`` was set
        """
        limit = self.confirmation_timeout if timeout is None else timeout
        deadline = None if limit is None else time.monotonic() + limit

        while True:
            if cancel is not None and cancel.is_set():
                raise WaitCancelled(f"Stopped waiting for {tx_hash}", tx_hash=tx_hash)

            receipt = self.reader.find_transaction_receipt(tx_hash)
            if receipt is not None:
                self.logger.info(
                    f"Transaction {tx_hash} mined in block {receipt.block_number} with status {receipt.status}"
                )
                return receipt

            if deadline is not None and time.monotonic() >= deadline:
                raise ConfirmationTimeout(
                    f"Transaction {tx_hash} not mined after {limit} seconds", tx_hash=tx_hash
                )
            if cancel is not None:
                cancel.wait(self.poll_interval)
            else:
                time.sleep(self.poll_interval)

    def submit(
        self,
        built: BuiltTransaction,
        timeout: Optional[float] = None,
        cancel: Optional[threading.Event] = None
    ) -> TxReceipt:
        """
        Send and wait for a successful receipt.

        Raises:
            TransactionReverted: If the mined receipt reports failure
            ConfirmationTimeout: If no receipt appeared in time
            RpcUnavailable: If broadcasting or polling failed on every endpoint
        """
        tx_hash = self.send(built)
        receipt = self.wait_for_receipt(tx_hash, timeout=timeout, cancel=cancel)
        if not receipt.succeeded:
            self.logger.error(f"Transaction {tx_hash} reverted in block {receipt.block_number}")
            raise TransactionReverted(
                f"Transaction {tx_hash} reverted (gas used: {receipt.gas_used})",
                tx_hash=tx_hash,
                receipt=receipt,
            )
        return receipt
