"""
Liquid staking vault (aprMON-style).

Staking deposits native value and mints shares. Unstaking is two-phase:
``requestRedeem`` registers a request and yields a request id, ``redeem``
later claims it. Requests are never stored locally; whether one is still
outstanding is always read back from the contract.
"""
import logging
import threading
from dataclasses import dataclass
from typing import List, Optional

from ..abi import StakingVault
from ..builder import TransactionBuilder
from ..events import EventDecoder
from ..exceptions import ConfigurationError, InvalidArgument, NotFound
from ..models import EventRecord, IntentKind, TransactionIntent, TxReceipt
from ..reader import ChainReader
from ..scanner import DEFAULT_LIMIT, HistoricalLogScanner
from ..submitter import TransactionSubmitter
from ..units import NATIVE_DECIMALS, parse_units, validate_address, validate_amount

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class RedeemRequest:
    """A withdrawal request as created by ``requestRedeem``."""
    request_id: int
    controller: str
    owner: str
    shares: int
    assets: int
    pending_shares: Optional[int] = None
    tx_hash: Optional[str] = None
    block_number: Optional[int] = None

    @classmethod
    def from_event(cls, record: EventRecord, pending_shares: Optional[int] = None) -> "RedeemRequest":
        args = record.args
        return cls(
            request_id=int(args["requestId"]),
            controller=args["controller"],
            owner=args["owner"],
            shares=int(args["shares"]),
            assets=int(args["assets"]),
            pending_shares=pending_shares,
            tx_hash=record.tx_hash,
            block_number=record.block_number,
        )


@dataclass
class StakeOutcome:
    receipt: TxReceipt
    assets: int
    shares: Optional[int] = None


@dataclass
class WithdrawalRequestOutcome:
    receipt: TxReceipt
    shares: int
    request: Optional[RedeemRequest] = None


@dataclass
class ClaimOutcome:
    receipt: TxReceipt
    request_id: int
    assets: Optional[int] = None
    shares: Optional[int] = None
    fee: Optional[int] = None


@dataclass
class StakingPosition:
    holder: str
    shares: int
    assets: int
    withdrawal_fee: int
    decimals: int = NATIVE_DECIMALS


class StakingVaultClient:
    """Stakes, requests withdrawals and claims them on one vault."""

    def __init__(
        self,
        address: str,
        reader: ChainReader,
        builder: Optional[TransactionBuilder] = None,
        submitter: Optional[TransactionSubmitter] = None,
        scanner: Optional[HistoricalLogScanner] = None,
        decoder: Optional[EventDecoder] = None,
        logger: Optional[logging.Logger] = None
    ):
        self.address = validate_address(address, "staking contract")
        self.reader = reader
        self.builder = builder
        self.submitter = submitter
        self.scanner = scanner or HistoricalLogScanner(reader)
        self.decoder = decoder or EventDecoder()
        self.logger = logger or logging.getLogger(__name__)

    def _require_signer(self) -> str:
        if self.builder is None or self.submitter is None:
            raise ConfigurationError("A signer is required for staking transactions")
        return self.submitter.signer.address

    def _transact(self, intent: TransactionIntent, sender: str,
                  cancel: Optional[threading.Event]) -> TxReceipt:
        built = self.builder.build(intent, sender)
        return self.submitter.submit(built, cancel=cancel)

    def share_balance(self, holder: str) -> int:
        holder = validate_address(holder, "holder address")
        return self.reader.call(self.address, StakingVault.balance_of, holder)

    def share_decimals(self) -> int:
        return self.reader.get_token_decimals(self.address)

    def pending_shares(self, request_id: int, controller: str) -> int:
        """Shares still pending for ``request_id``; 0 once resolved or if unknown."""
        controller = validate_address(controller, "controller address")
        return self.reader.call(self.address, StakingVault.pending_redeem_request, request_id, controller)

    def deposit(self, amount: str, cancel: Optional[threading.Event] = None) -> StakeOutcome:
        """
        Stake ``amount`` native units.

        Raises:
            InvalidArgument: Bad amount
            InsufficientFunds: Native balance below ``amount``
            TransactionReverted: The deposit reverted
        """
        sender = self._require_signer()
        assets = parse_units(amount, NATIVE_DECIMALS)
        if assets <= 0:
            raise InvalidArgument("Stake amount must be greater than zero")

        intent = TransactionIntent(
            kind=IntentKind.CONTRACT_CALL,
            recipient=self.address,
            amount=amount,
            function=StakingVault.deposit,
            arguments=(assets, sender),
        )
        receipt = self._transact(intent, sender, cancel)
        event = self.decoder.find_event(receipt, StakingVault.Deposit)
        shares = int(event.args["shares"]) if event else None
        return StakeOutcome(receipt=receipt, assets=assets, shares=shares)

    def request_withdrawal(self, shares: str, cancel: Optional[threading.Event] = None) -> WithdrawalRequestOutcome:
        """
        Register a redeem request for ``shares`` vault shares.

        Raises:
            InvalidArgument: Bad amount
            InsufficientFunds: Share balance below ``shares``
            TransactionReverted: The request reverted
        """
        sender = self._require_signer()
        validate_amount(shares, "share amount")
        decimals = self.share_decimals()
        raw_shares = parse_units(shares, decimals)
        if raw_shares <= 0:
            raise InvalidArgument("Share amount must be greater than zero")

        intent = TransactionIntent(
            kind=IntentKind.CONTRACT_CALL,
            recipient=self.address,
            amount=shares,
            token=self.address,
            function=StakingVault.request_redeem,
            arguments=(raw_shares, sender, sender),
        )
        receipt = self._transact(intent, sender, cancel)
        event = self.decoder.find_event(receipt, StakingVault.RedeemRequest)
        request = RedeemRequest.from_event(event) if event else None
        if request is None:
            self.logger.warning(f"No RedeemRequest event in {receipt.tx_hash}")
        return WithdrawalRequestOutcome(receipt=receipt, shares=raw_shares, request=request)

    def claim(self, request_id: int, cancel: Optional[threading.Event] = None) -> ClaimOutcome:
        """
        Redeem a previously requested withdrawal.

        Raises:
            NotFound: The request does not exist or was already claimed (nothing is broadcast)
            TransactionReverted: The claim reverted
        """
        sender = self._require_signer()
        if isinstance(request_id, bool) or not isinstance(request_id, int) or request_id < 0:
            raise InvalidArgument(f"Invalid request id: {request_id!r}")

        pending = self.pending_shares(request_id, sender)
        if pending == 0:
            raise NotFound(f"Withdrawal request {request_id} not found or already claimed")

        intent = TransactionIntent(
            kind=IntentKind.CONTRACT_CALL,
            recipient=self.address,
            function=StakingVault.redeem,
            arguments=(request_id, sender),
        )
        receipt = self._transact(intent, sender, cancel)
        event = self.decoder.find_event(receipt, StakingVault.Redeem)
        if event is None:
            return ClaimOutcome(receipt=receipt, request_id=request_id)
        return ClaimOutcome(
            receipt=receipt,
            request_id=request_id,
            assets=int(event.args["assets"]),
            shares=int(event.args["shares"]),
            fee=int(event.args["fee"]),
        )

    def position(self, holder: str) -> StakingPosition:
        """Shares held, their value in native units and the withdrawal fee."""
        holder = validate_address(holder, "holder address")
        shares = self.share_balance(holder)
        assets, fee, decimals = self.reader.gather(
            lambda: self.reader.call(self.address, StakingVault.convert_to_assets, shares),
            lambda: self.reader.call(self.address, StakingVault.withdrawal_fee),
            self.share_decimals,
        )
        return StakingPosition(holder=holder, shares=shares, assets=assets,
                               withdrawal_fee=fee, decimals=decimals)

    def pending_requests(self, controller: str, limit: int = DEFAULT_LIMIT) -> List[RedeemRequest]:
        """
        Recent withdrawal requests of ``controller`` that are still outstanding.

        A RedeemRequest log only proves the request was created, so each one
        is checked against the live pending amount.
        """
        controller = validate_address(controller, "controller address")
        scan = self.scanner.scan(self.address, StakingVault.RedeemRequest,
                                 {"controller": controller}, limit=limit)
        pending = self.reader.gather(*[
            (lambda r=r: self.pending_shares(int(r.args["requestId"]), controller))
            for r in scan.records
        ])
        return [
            RedeemRequest.from_event(record, pending_shares=amount)
            for record, amount in zip(scan.records, pending)
            if amount > 0
        ]
