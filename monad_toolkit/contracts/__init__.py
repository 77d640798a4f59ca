from .coinflip import CoinflipClient, CoinSide, FlipRecord, FlipStats
from .staking import RedeemRequest, StakingVaultClient

__all__ = ["CoinflipClient", "CoinSide", "FlipRecord", "FlipStats", "RedeemRequest", "StakingVaultClient"]
