"""
Transaction signers.
"""
from typing import Any, Dict, Protocol

from eth_account import Account
from eth_account.signers.local import LocalAccount

from .exceptions import ConfigurationError


class Signer(Protocol):
    """Protocol for custom signers"""
    address: str

    def sign_transaction(self, transaction_dict: Dict[str, Any]) -> Any:
        """Sign transaction and return an object exposing ``raw_transaction``"""
        ...


class LocalSigner:
    """Signer backed by a private key held in memory."""

    def __init__(self, private_key: str):
        """
        Args:
            private_key: Hex private key, with or without 0x prefix

        Raises:
            ConfigurationError: If the key cannot be parsed
        """
        try:
            self._account: LocalAccount = Account.from_key(private_key)
        except (ValueError, TypeError) as e:
            raise ConfigurationError(f"Invalid private key: {e}") from e

    @property
    def address(self) -> str:
        return self._account.address

    def sign_transaction(self, transaction_dict: Dict[str, Any]) -> Any:
        tx = {k: v for k, v in transaction_dict.items() if k != "from"}
        return self._account.sign_transaction(tx)

    def __repr__(self) -> str:
        return f"LocalSigner(address={self.address})"
