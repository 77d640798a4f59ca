"""
Coin-flip wager contract.

A bet is placed by sending native value with ``flipCoin(choice)``; the
contract pays twice the bet on a win and reports every game through a
``FlipResult`` event.
"""
import logging
import threading
from dataclasses import dataclass, field
from enum import IntEnum
from typing import List, Optional

from ..abi import Coinflip
from ..builder import TransactionBuilder
from ..events import EventDecoder
from ..exceptions import ConfigurationError, DecodeMismatch, InsufficientLiquidity, InvalidArgument
from ..models import EventRecord, IntentKind, TransactionIntent, TxReceipt
from ..reader import ChainReader
from ..scanner import DEFAULT_LIMIT, HistoricalLogScanner
from ..submitter import TransactionSubmitter
from ..units import NATIVE_DECIMALS, NATIVE_SYMBOL, format_units, parse_units, validate_address

logger = logging.getLogger(__name__)

PAYOUT_MULTIPLIER = 2


class CoinSide(IntEnum):
    HEADS = 0
    TAILS = 1

    @classmethod
    def parse(cls, value) -> "CoinSide":
        if isinstance(value, CoinSide):
            return value
        if isinstance(value, str):
            try:
                return cls[value.strip().upper()]
            except KeyError:
                pass
        raise InvalidArgument(f"Invalid choice: {value!r} (expected 'heads' or 'tails')")

    @property
    def label(self) -> str:
        return self.name.lower()


@dataclass(frozen=True)
class FlipRecord:
    """One decoded game."""
    player: str
    choice: CoinSide
    won: bool
    payout: int
    bet: int
    request_id: str
    tx_hash: Optional[str] = None
    block_number: Optional[int] = None

    @property
    def landed(self) -> CoinSide:
        if self.won:
            return self.choice
        return CoinSide.TAILS if self.choice == CoinSide.HEADS else CoinSide.HEADS

    @classmethod
    def from_event(cls, record: EventRecord) -> "FlipRecord":
        """
        Raises:
            DecodeMismatch: If the logged choice is neither heads nor tails
        """
        args = record.args
        try:
            choice = CoinSide(args["playerChoice"])
        except ValueError as e:
            raise DecodeMismatch(f"FlipResult in {record.tx_hash} has unknown choice {args['playerChoice']!r}") from e
        return cls(
            player=args["player"],
            choice=choice,
            won=bool(args["won"]),
            payout=int(args["amount"]),
            bet=int(args["bet"]),
            request_id=args["requestId"],
            tx_hash=record.tx_hash,
            block_number=record.block_number,
        )


@dataclass
class FlipStats:
    """Aggregates over a list of games."""
    games: int = 0
    wins: int = 0
    losses: int = 0
    total_bet: int = 0
    total_won: int = 0

    @property
    def net(self) -> int:
        return self.total_won - self.total_bet

    @classmethod
    def from_records(cls, records: List[FlipRecord]) -> "FlipStats":
        stats = cls()
        for record in records:
            stats.games += 1
            stats.total_bet += record.bet
            if record.won:
                stats.wins += 1
                stats.total_won += record.payout
            else:
                stats.losses += 1
        return stats


@dataclass
class FlipOutcome:
    """Receipt of a wager and its decoded result (None if no event was found)."""
    receipt: TxReceipt
    bet: int
    choice: CoinSide
    record: Optional[FlipRecord] = None


@dataclass
class FlipHistory:
    records: List[FlipRecord] = field(default_factory=list)
    stats: FlipStats = field(default_factory=FlipStats)
    from_block: int = 0
    to_block: int = 0


class CoinflipClient:
    """Places wagers and reads game history for one coin-flip contract."""

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
        self.address = validate_address(address, "coinflip contract")
        self.reader = reader
        self.builder = builder
        self.submitter = submitter
        self.scanner = scanner or HistoricalLogScanner(reader)
        self.decoder = decoder or EventDecoder()
        self.logger = logger or logging.getLogger(__name__)

    def _record(self, event: EventRecord) -> Optional[FlipRecord]:
        try:
            return FlipRecord.from_event(event)
        except DecodeMismatch as e:
            self.logger.debug(f"Skipping FlipResult: {e}")
            return None

    def pool_balance(self) -> int:
        """Native balance available for payouts."""
        return self.reader.call(self.address, Coinflip.get_total_balance)

    def flip(self, choice, amount: str, cancel: Optional[threading.Event] = None) -> FlipOutcome:
        """
        Bet ``amount`` native units on ``choice``.

        Raises:
            InvalidArgument: Bad choice or amount
            InsufficientLiquidity: The pool cannot pay out a win
            InsufficientFunds: The sender cannot cover the bet
            TransactionReverted: The wager reverted on chain
        """
        if self.builder is None or self.submitter is None:
            raise ConfigurationError("A signer is required to place a wager")
        side = CoinSide.parse(choice)
        bet = parse_units(amount, NATIVE_DECIMALS)
        if bet <= 0:
            raise InvalidArgument("Bet amount must be greater than zero")

        pool = self.pool_balance()
        if pool < bet * PAYOUT_MULTIPLIER:
            raise InsufficientLiquidity(
                f"Coinflip pool holds {format_units(pool, NATIVE_DECIMALS)} {NATIVE_SYMBOL}, "
                f"cannot cover a payout of {format_units(bet * PAYOUT_MULTIPLIER, NATIVE_DECIMALS)} {NATIVE_SYMBOL}"
            )

        intent = TransactionIntent(
            kind=IntentKind.CONTRACT_CALL,
            recipient=self.address,
            amount=amount,
            function=Coinflip.flip_coin,
            arguments=(int(side),),
        )
        built = self.builder.build(intent, self.submitter.signer.address)
        receipt = self.submitter.submit(built, cancel=cancel)

        event = self.decoder.find_event(receipt, Coinflip.FlipResult)
        record = self._record(event) if event else None
        if record is None:
            self.logger.warning(f"No FlipResult event in {receipt.tx_hash}")
        return FlipOutcome(receipt=receipt, bet=bet, choice=side, record=record)

    def history(self, player: str, limit: int = DEFAULT_LIMIT) -> FlipHistory:
        """Recent games of ``player`` with statistics over the returned games."""
        player = validate_address(player, "player address")
        scan = self.scanner.scan(self.address, Coinflip.FlipResult, {"player": player}, limit=limit)
        records = [record for record in map(self._record, scan.records) if record is not None]
        return FlipHistory(
            records=records,
            stats=FlipStats.from_records(records),
            from_block=scan.from_block,
            to_block=scan.to_block,
        )
