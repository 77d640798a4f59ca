"""
Network and runtime configuration.
"""
import importlib.resources
import json
import logging
import os
from typing import Any, Dict, List, Optional

from pydantic import BaseModel, Field

from .exceptions import ConfigurationError

logger = logging.getLogger(__name__)

DEFAULT_NETWORK = "monad-testnet"


class NetworkConfig:
    """
    Bundled network definitions (``networks.json``).

    Each entry holds a chain id, one or more RPC URLs, the block explorer and
    the contract addresses used by the toolkit.
    """
    _networks_cache: Optional[Dict[str, Dict[str, Any]]] = None

    @classmethod
    def load_networks(cls) -> Dict[str, Dict[str, Any]]:
        if cls._networks_cache is None:
            text = importlib.resources.files("monad_toolkit").joinpath("networks.json").read_text()
            cls._networks_cache = json.loads(text)
        return cls._networks_cache

    @classmethod
    def get_network(cls, network: str) -> Dict[str, Any]:
        """
        Raises:
            ConfigurationError: If the network is unknown
        """
        networks = cls.load_networks()
        if network not in networks:
            available = ", ".join(sorted(networks))
            raise ConfigurationError(f"Unknown network '{network}'. Available networks: {available}")
        return networks[network]

    @staticmethod
    def _env_prefix(network: str) -> str:
        return network.upper().replace("-", "_")

    @classmethod
    def get_rpc_urls(cls, network: str, override: Optional[List[str]] = None) -> List[str]:
        """
        RPC URLs in priority order.

        An explicit override wins, then ``<NETWORK>_RPC_URL`` (comma separated),
        then the bundled list.
        """
        if override:
            return list(override)
        env_value = os.environ.get(f"{cls._env_prefix(network)}_RPC_URL")
        if env_value:
            return split_urls(env_value)
        rpc = cls.get_network(network)["rpc"]
        return [rpc] if isinstance(rpc, str) else list(rpc)

    @classmethod
    def get_chain_id(cls, network: str) -> int:
        return int(cls.get_network(network)["chainId"])

    @classmethod
    def get_explorer_url(cls, network: str) -> Optional[str]:
        return cls.get_network(network).get("explorer")

    @classmethod
    def get_coinflip_address(cls, network: str) -> Optional[str]:
        return cls.get_network(network).get("coinflip")

    @classmethod
    def get_staking_address(cls, network: str) -> Optional[str]:
        return cls.get_network(network).get("stakingVault")


def split_urls(value: str) -> List[str]:
    return [url.strip() for url in value.split(",") if url.strip()]


def _env_number(name: str, cast, default):
    raw = os.environ.get(name)
    if raw is None or raw.strip() == "":
        return default
    try:
        return cast(raw)
    except ValueError as e:
        raise ConfigurationError(f"{name} must be a number (got {raw!r})") from e


class ToolkitSettings(BaseModel):
    """Runtime settings, usually read from the environment."""
    network: str = DEFAULT_NETWORK
    rpc_urls: List[str] = Field(default_factory=list)
    quorum: int = 1
    private_key: Optional[str] = Field(None, repr=False)
    coinflip_address: Optional[str] = None
    staking_address: Optional[str] = None
    confirmation_timeout: Optional[float] = 120.0
    poll_interval: float = 1.0
    scan_window: int = 1000
    request_timeout: int = 30

    @classmethod
    def from_env(cls) -> "ToolkitSettings":
        """
        Read settings from environment variables.

        MONAD_NETWORK, MONAD_RPC_URLS (comma separated), MONAD_RPC_QUORUM,
        PRIVATE_KEY, COINFLIP_CONTRACT_ADDRESS, STAKING_CONTRACT_ADDRESS,
        MONAD_CONFIRMATION_TIMEOUT (0 = wait indefinitely), MONAD_SCAN_WINDOW.

        Raises:
            ConfigurationError: If a numeric variable is malformed
        """
        timeout = _env_number("MONAD_CONFIRMATION_TIMEOUT", float, 120.0)
        return cls(
            network=os.environ.get("MONAD_NETWORK", DEFAULT_NETWORK),
            rpc_urls=split_urls(os.environ.get("MONAD_RPC_URLS", "")),
            quorum=_env_number("MONAD_RPC_QUORUM", int, 1),
            private_key=os.environ.get("PRIVATE_KEY") or None,
            coinflip_address=os.environ.get("COINFLIP_CONTRACT_ADDRESS") or None,
            staking_address=os.environ.get("STAKING_CONTRACT_ADDRESS") or None,
            confirmation_timeout=timeout if timeout > 0 else None,
            scan_window=_env_number("MONAD_SCAN_WINDOW", int, 1000),
        )
