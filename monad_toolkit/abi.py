"""
Static contract schemas.

Each function and event the toolkit touches is described once, here, as a
frozen ``FunctionSpec`` or ``EventSpec``. Encoding and decoding work from
these descriptions only; no JSON ABI is loaded at runtime.
"""
from dataclasses import dataclass
from typing import Any, Sequence, Tuple

from eth_abi import decode as abi_decode
from eth_abi import encode as abi_encode
from web3 import Web3


@dataclass(frozen=True)
class Param:
    """A function input/output or an event field."""
    name: str
    type: str
    indexed: bool = False


@dataclass(frozen=True)
class FunctionSpec:
    """A contract function: name, input and output types."""
    name: str
    inputs: Tuple[Param, ...] = ()
    outputs: Tuple[Param, ...] = ()
    payable: bool = False
    view: bool = False

    @property
    def signature(self) -> str:
        return f"{self.name}({','.join(p.type for p in self.inputs)})"

    @property
    def selector(self) -> bytes:
        return bytes(Web3.keccak(text=self.signature)[:4])

    def encode_call(self, *args: Any) -> str:
        """
        Encode calldata for this function.

        Returns:
            0x-prefixed hex calldata

        Raises:
            ValueError: If the number of arguments does not match the inputs
        """
        if len(args) != len(self.inputs):
            raise ValueError(
                f"{self.signature} expects {len(self.inputs)} arguments, got {len(args)}"
            )
        encoded = abi_encode([p.type for p in self.inputs], list(args))
        return "0x" + (self.selector + encoded).hex()

    def decode_output(self, data: str) -> Any:
        """
        Decode the return data of an eth_call.

        A single output is returned unwrapped, several outputs as a tuple.
        """
        raw = bytes.fromhex(data[2:] if data.startswith("0x") else data)
        values = abi_decode([p.type for p in self.outputs], raw)
        if len(self.outputs) == 1:
            return values[0]
        return tuple(values)


@dataclass(frozen=True)
class EventSpec:
    """An event: name and ordered fields with their indexed flag."""
    name: str
    fields: Tuple[Param, ...]

    @property
    def signature(self) -> str:
        return f"{self.name}({','.join(p.type for p in self.fields)})"

    @property
    def topic(self) -> str:
        return "0x" + bytes(Web3.keccak(text=self.signature)).hex()

    @property
    def indexed_fields(self) -> Tuple[Param, ...]:
        return tuple(p for p in self.fields if p.indexed)

    @property
    def data_fields(self) -> Tuple[Param, ...]:
        return tuple(p for p in self.fields if not p.indexed)


def _fn(name: str, inputs: Sequence[Tuple[str, str]] = (), outputs: Sequence[Tuple[str, str]] = (),
        payable: bool = False, view: bool = False) -> FunctionSpec:
    return FunctionSpec(
        name=name,
        inputs=tuple(Param(n, t) for n, t in inputs),
        outputs=tuple(Param(n, t) for n, t in outputs),
        payable=payable,
        view=view,
    )


def _event(name: str, fields: Sequence[Tuple[str, str, bool]]) -> EventSpec:
    return EventSpec(name=name, fields=tuple(Param(n, t, i) for n, t, i in fields))


class ERC20:
    """Subset of the ERC-20 interface."""
    balance_of = _fn("balanceOf", [("account", "address")], [("", "uint256")], view=True)
    decimals = _fn("decimals", [], [("", "uint8")], view=True)
    symbol = _fn("symbol", [], [("", "string")], view=True)
    transfer = _fn("transfer", [("recipient", "address"), ("amount", "uint256")], [("", "bool")])

    Transfer = _event("Transfer", [
        ("from", "address", True),
        ("to", "address", True),
        ("value", "uint256", False),
    ])


class Coinflip:
    """Coin-flip wager game."""
    flip_coin = _fn("flipCoin", [("_choice", "uint8")], payable=True)
    get_total_balance = _fn("getTotalBalance", [], [("", "uint256")], view=True)

    FlipResult = _event("FlipResult", [
        ("player", "address", True),
        ("playerChoice", "uint8", False),
        ("result", "bool", False),
        ("won", "bool", False),
        ("amount", "uint256", False),
        ("bet", "uint256", False),
        ("requestId", "bytes32", False),
    ])


class StakingVault:
    """aprMON-style liquid staking vault with asynchronous redemption."""
    deposit = _fn("deposit", [("assets", "uint256"), ("receiver", "address")],
                  [("shares", "uint256")], payable=True)
    request_redeem = _fn("requestRedeem",
                         [("shares", "uint256"), ("controller", "address"), ("owner", "address")],
                         [("requestId", "uint256")])
    redeem = _fn("redeem", [("requestId", "uint256"), ("receiver", "address")])
    balance_of = _fn("balanceOf", [("account", "address")], [("", "uint256")], view=True)
    convert_to_assets = _fn("convertToAssets", [("shares", "uint256")], [("assets", "uint256")], view=True)
    convert_to_shares = _fn("convertToShares", [("assets", "uint256")], [("shares", "uint256")], view=True)
    withdrawal_fee = _fn("withdrawalFee", [], [("", "uint256")], view=True)
    pending_redeem_request = _fn("pendingRedeemRequest",
                                 [("requestId", "uint256"), ("controller", "address")],
                                 [("shares", "uint256")], view=True)

    Deposit = _event("Deposit", [
        ("sender", "address", True),
        ("owner", "address", True),
        ("assets", "uint256", False),
        ("shares", "uint256", False),
    ])
    RedeemRequest = _event("RedeemRequest", [
        ("controller", "address", True),
        ("owner", "address", True),
        ("requestId", "uint256", True),
        ("sender", "address", False),
        ("shares", "uint256", False),
        ("assets", "uint256", False),
    ])
    Redeem = _event("Redeem", [
        ("controller", "address", True),
        ("receiver", "address", True),
        ("requestId", "uint256", True),
        ("shares", "uint256", False),
        ("assets", "uint256", False),
        ("fee", "uint256", False),
    ])
