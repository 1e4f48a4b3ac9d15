"""Snapshot, restore and resume ordering guard for ledger and aggregator state.

A snapshot captures every open lot verbatim, head first, together with the
accumulators of every touched tax year and the date of the last processed
transaction. Restoring replaces both states completely. After a restore every
new transaction must be strictly later than that date; within one batch dates
must not decrease.
"""

from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime, timezone
import logging

from pydantic import ValidationError

from taxledger.analytics.fiscal_year import FiscalYearAggregator
from taxledger.analytics.interfaces import FiscalYearState
from taxledger.domain import (
    DataInconsistencyError,
    MonetaryAmount,
    OptionAssignment,
    OptionKey,
    OptionTrade,
    OrderingViolationError,
    SnapshotSerializationError,
    StockOpeningTrade,
    StockTrade,
    Transaction,
)
from taxledger.ledger import OptionShortPosition, PositionLedger, StockPosition

from .models import (
    SNAPSHOT_FORMAT_VERSION,
    FiscalYearWireModel,
    MoneyWireModel,
    OptionLotWireModel,
    OptionTradeWireModel,
    PositionsWireModel,
    SnapshotMetadataWireModel,
    StateSnapshotWireModel,
    StockLotWireModel,
    StockOpenTradeWireModel,
)

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class SnapshotMetadata:
    """Snapshot header.

    Attributes:
        version: Wire format version.
        created_at: Snapshot creation timestamp.
        last_transaction_date: Date of the last transaction reflected in the state.
    """

    version: str
    created_at: datetime
    last_transaction_date: datetime


@dataclass(frozen=True)
class StateSnapshot:
    """In-memory checkpoint of ledger and aggregator state.

    Attributes:
        metadata: Snapshot header.
        option_queues: Open option lots per key, head first.
        stock_queues: Open stock lots per symbol, head first.
        fiscal_years: Accumulators of every touched tax year, ordered by year.
    """

    metadata: SnapshotMetadata
    option_queues: dict[OptionKey, list[OptionShortPosition]]
    stock_queues: dict[str, list[StockPosition]]
    fiscal_years: list[FiscalYearState]


class SnapshotCodec:
    """Captures and restores ledger plus aggregator state and guards resume ordering."""

    def __init__(self, ledger: PositionLedger, aggregator: FiscalYearAggregator):
        """Initialize codec over the run's ledger and aggregator.

        Args:
            ledger: Position ledger owned by the current run.
            aggregator: Fiscal year aggregator owned by the current run.

        Returns:
            None: Initializer does not return a value.

        Raises:
            ValueError: Raised when dependencies are None.
        """

        if ledger is None:
            raise ValueError("ledger must not be None")
        if aggregator is None:
            raise ValueError("aggregator must not be None")
        self._ledger = ledger
        self._aggregator = aggregator
        self._resume_after: datetime | None = None
        self._last_applied_date: datetime | None = None

    @property
    def last_transaction_date(self) -> datetime | None:
        """Date of the last guarded transaction, or of the restored snapshot."""

        return self._last_applied_date or self._resume_after

    def snapshot(self, last_transaction_date: datetime, created_at: datetime | None = None) -> StateSnapshot:
        """Capture the current ledger and aggregator state.

        Args:
            last_transaction_date: Date of the last transaction reflected in the state.
            created_at: Optional creation timestamp, defaults to now in UTC.

        Returns:
            StateSnapshot: Detached checkpoint.

        Raises:
            ValueError: Raised when last_transaction_date is offset-naive.
            DataInconsistencyError: Raised when a reverse split leg is still unmatched.
        """

        if last_transaction_date.tzinfo is None or last_transaction_date.utcoffset() is None:
            raise ValueError("last_transaction_date must be offset-aware")
        if self._ledger.ledger_has_pending_split():
            raise DataInconsistencyError(
                "cannot snapshot while a reverse split leg is waiting for its counterpart",
                details={"last_transaction_date": last_transaction_date.isoformat()},
            )

        return StateSnapshot(
            metadata=SnapshotMetadata(
                version=SNAPSHOT_FORMAT_VERSION,
                created_at=created_at or datetime.now(timezone.utc),
                last_transaction_date=last_transaction_date,
            ),
            option_queues=self._ledger.ledger_option_queues(),
            stock_queues=self._ledger.ledger_stock_queues(),
            fiscal_years=self._aggregator.fiscal_year_states(),
        )

    def restore(self, snapshot: StateSnapshot) -> None:
        """Replace ledger and aggregator state with a snapshot.

        Args:
            snapshot: Checkpoint to restore.

        Returns:
            None: State is replaced as side effect.

        Raises:
            SnapshotSerializationError: Raised when the snapshot version is unsupported
                or its last transaction date is offset-naive.
            ValueError: Raised when the snapshot content is inconsistent.
        """

        if snapshot.metadata.version != SNAPSHOT_FORMAT_VERSION:
            raise SnapshotSerializationError(
                f"unsupported snapshot version {snapshot.metadata.version}, expected {SNAPSHOT_FORMAT_VERSION}",
                details={"version": snapshot.metadata.version},
            )
        last_transaction_date = snapshot.metadata.last_transaction_date
        if last_transaction_date.tzinfo is None or last_transaction_date.utcoffset() is None:
            raise SnapshotSerializationError(
                "snapshot last_transaction_date must be offset-aware",
                details={"last_transaction_date": last_transaction_date.isoformat()},
            )
        self._ledger.ledger_replace_state(snapshot.option_queues, snapshot.stock_queues)
        self._aggregator.restore(snapshot.fiscal_years)
        self._resume_after = snapshot.metadata.last_transaction_date
        self._last_applied_date = None
        logger.info(
            "Restored snapshot last_transaction_date=%s option_keys=%s stock_symbols=%s fiscal_years=%s",
            snapshot.metadata.last_transaction_date.isoformat(),
            len(snapshot.option_queues),
            len(snapshot.stock_queues),
            [state.year for state in snapshot.fiscal_years],
        )

    def snapshot_guard_transaction(self, transaction: Transaction) -> None:
        """Reject a transaction that would replay or reorder processed history.

        Args:
            transaction: Transaction about to be applied.

        Returns:
            None: The transaction date is recorded as side effect.

        Raises:
            OrderingViolationError: Raised when the transaction is not later than the
                restored snapshot, or earlier than the previously applied transaction.
        """

        if self._resume_after is not None and transaction.date <= self._resume_after:
            raise OrderingViolationError(self._resume_after, transaction.date, transaction)
        if self._last_applied_date is not None and transaction.date < self._last_applied_date:
            raise OrderingViolationError(self._last_applied_date, transaction.date, transaction)
        self._last_applied_date = transaction.date


def snapshot_encode(snapshot: StateSnapshot) -> bytes:
    """Serialize a snapshot into UTF-8 JSON bytes.

    Args:
        snapshot: Checkpoint to serialize.

    Returns:
        bytes: Indented JSON document.

    Raises:
        SnapshotSerializationError: Raised when the snapshot cannot be represented.
    """

    try:
        wire_model = StateSnapshotWireModel(
            metadata=SnapshotMetadataWireModel(
                version=snapshot.metadata.version,
                created_at=snapshot.metadata.created_at,
                last_transaction_date=snapshot.metadata.last_transaction_date,
            ),
            positions=PositionsWireModel(
                options={
                    key.option_key_text(): [
                        OptionLotWireModel(
                            open_trade=_snapshot_option_trade_to_wire(position.open_trade),
                            quantity_remaining=position.quantity_remaining,
                        )
                        for position in positions
                    ]
                    for key, positions in snapshot.option_queues.items()
                },
                stocks={
                    symbol: [
                        StockLotWireModel(
                            open_trade=_snapshot_stock_trade_to_wire(position.open_trade),
                            quantity_remaining=position.quantity_remaining,
                        )
                        for position in positions
                    ]
                    for symbol, positions in snapshot.stock_queues.items()
                },
            ),
            fiscal_years={
                str(state.year): FiscalYearWireModel(
                    profit_options=_snapshot_money_to_wire(state.profit_from_options),
                    loss_options=_snapshot_money_to_wire(state.loss_from_options),
                    profit_stocks=_snapshot_money_to_wire(state.profit_from_stocks),
                )
                for state in snapshot.fiscal_years
            },
        )
    except ValidationError as error:
        raise SnapshotSerializationError(f"snapshot cannot be serialized: {error}") from error
    return wire_model.model_dump_json(by_alias=True, indent=2).encode("utf-8")


def snapshot_decode(payload: bytes) -> StateSnapshot:
    """Parse UTF-8 JSON bytes into a snapshot.

    Args:
        payload: Snapshot document.

    Returns:
        StateSnapshot: Decoded checkpoint.

    Raises:
        SnapshotSerializationError: Raised on invalid JSON, schema violations,
            unsupported versions or keys that do not match their lots.
    """

    try:
        wire_model = StateSnapshotWireModel.model_validate_json(payload)
    except ValidationError as error:
        raise SnapshotSerializationError(f"snapshot document is invalid: {error}") from error

    if wire_model.metadata.version != SNAPSHOT_FORMAT_VERSION:
        raise SnapshotSerializationError(
            f"unsupported snapshot version {wire_model.metadata.version}, expected {SNAPSHOT_FORMAT_VERSION}",
            details={"version": wire_model.metadata.version},
        )

    try:
        option_queues: dict[OptionKey, list[OptionShortPosition]] = {}
        for key_text, option_lots in wire_model.positions.options.items():
            positions = [
                OptionShortPosition(
                    open_trade=_snapshot_option_trade_from_wire(option_lot.open_trade),
                    quantity_remaining=option_lot.quantity_remaining,
                )
                for option_lot in option_lots
            ]
            if not positions:
                continue
            key = positions[0].open_trade.position_key
            _snapshot_validate_lot_keys(
                key_text,
                [position.open_trade.position_key.option_key_text() for position in positions],
            )
            option_queues[key] = positions

        stock_queues: dict[str, list[StockPosition]] = {}
        for symbol, stock_lots in wire_model.positions.stocks.items():
            positions = [
                StockPosition(
                    open_trade=_snapshot_stock_trade_from_wire(stock_lot.open_trade),
                    quantity_remaining=stock_lot.quantity_remaining,
                )
                for stock_lot in stock_lots
            ]
            if not positions:
                continue
            _snapshot_validate_lot_keys(symbol, [position.open_trade.symbol for position in positions])
            stock_queues[symbol] = positions

        fiscal_years = [
            FiscalYearState(
                year=int(year_text),
                profit_from_options=_snapshot_money_from_wire(fiscal_year.profit_options),
                loss_from_options=_snapshot_money_from_wire(fiscal_year.loss_options),
                profit_from_stocks=_snapshot_money_from_wire(fiscal_year.profit_stocks),
            )
            for year_text, fiscal_year in sorted(wire_model.fiscal_years.items(), key=lambda item: int(item[0]))
        ]
    except (TypeError, ValueError) as error:
        raise SnapshotSerializationError(f"snapshot content is inconsistent: {error}") from error

    return StateSnapshot(
        metadata=SnapshotMetadata(
            version=wire_model.metadata.version,
            created_at=wire_model.metadata.created_at,
            last_transaction_date=wire_model.metadata.last_transaction_date,
        ),
        option_queues=option_queues,
        stock_queues=stock_queues,
        fiscal_years=fiscal_years,
    )


def _snapshot_validate_lot_keys(key_text: str, lot_key_texts: list[str]) -> None:
    for lot_key_text in lot_key_texts:
        if lot_key_text != key_text:
            raise SnapshotSerializationError(
                f"snapshot lot key {lot_key_text} is stored under {key_text}",
                details={"position_key": key_text, "lot_key": lot_key_text},
            )


def _snapshot_money_to_wire(amount: MonetaryAmount) -> MoneyWireModel:
    return MoneyWireModel(amount=amount.amount, currency=amount.currency)


def _snapshot_money_from_wire(amount: MoneyWireModel) -> MonetaryAmount:
    return MonetaryAmount(amount=amount.amount, currency=amount.currency)


def _snapshot_option_trade_to_wire(trade: OptionTrade) -> OptionTradeWireModel:
    return OptionTradeWireModel(
        date=trade.date,
        action=trade.action,
        root_symbol=trade.root_symbol,
        expiration=trade.expiration,
        strike=trade.strike,
        call_or_put=trade.call_or_put,
        quantity=trade.quantity,
        value=_snapshot_money_to_wire(trade.value),
        average_price=_snapshot_money_to_wire(trade.average_price),
        commissions=_snapshot_money_to_wire(trade.commissions),
        fees=_snapshot_money_to_wire(trade.fees),
        description=trade.description,
        underlying_symbol=trade.underlying_symbol,
        multiplier=trade.multiplier,
        order_number=trade.order_number,
    )


def _snapshot_option_trade_from_wire(trade: OptionTradeWireModel) -> OptionTrade:
    return OptionTrade(
        date=trade.date,
        action=trade.action,
        root_symbol=trade.root_symbol,
        expiration=trade.expiration,
        strike=trade.strike,
        call_or_put=trade.call_or_put,
        quantity=trade.quantity,
        value=_snapshot_money_from_wire(trade.value),
        average_price=_snapshot_money_from_wire(trade.average_price),
        commissions=_snapshot_money_from_wire(trade.commissions),
        fees=_snapshot_money_from_wire(trade.fees),
        description=trade.description,
        underlying_symbol=trade.underlying_symbol,
        multiplier=trade.multiplier,
        order_number=trade.order_number,
    )


def _snapshot_stock_trade_to_wire(trade: StockOpeningTrade) -> StockOpenTradeWireModel:
    if isinstance(trade, OptionAssignment):
        return StockOpenTradeWireModel(
            kind="option_assignment",
            date=trade.date,
            symbol=trade.symbol,
            action=trade.action,
            quantity=trade.quantity,
            value=_snapshot_money_to_wire(trade.value),
            average_price=_snapshot_money_to_wire(trade.average_price),
            fees=_snapshot_money_to_wire(trade.fees),
            description=trade.description,
        )
    return StockOpenTradeWireModel(
        kind="stock_trade",
        date=trade.date,
        symbol=trade.symbol,
        action=trade.action,
        quantity=trade.quantity,
        value=_snapshot_money_to_wire(trade.value),
        average_price=_snapshot_money_to_wire(trade.average_price),
        commissions=_snapshot_money_to_wire(trade.commissions),
        fees=_snapshot_money_to_wire(trade.fees),
        description=trade.description,
        sub_type=trade.sub_type,
    )


def _snapshot_stock_trade_from_wire(trade: StockOpenTradeWireModel) -> StockOpeningTrade:
    if trade.kind == "option_assignment":
        return OptionAssignment(
            date=trade.date,
            symbol=trade.symbol,
            action=trade.action,
            quantity=trade.quantity,
            value=_snapshot_money_from_wire(trade.value),
            average_price=_snapshot_money_from_wire(trade.average_price),
            fees=_snapshot_money_from_wire(trade.fees),
            description=trade.description,
        )
    if trade.commissions is None:
        raise ValueError(f"stock trade lot for {trade.symbol} is missing commissions")
    return StockTrade(
        date=trade.date,
        symbol=trade.symbol,
        action=trade.action,
        quantity=trade.quantity,
        value=_snapshot_money_from_wire(trade.value),
        average_price=_snapshot_money_from_wire(trade.average_price),
        commissions=_snapshot_money_from_wire(trade.commissions),
        fees=_snapshot_money_from_wire(trade.fees),
        description=trade.description,
        sub_type=trade.sub_type,
    )


__all__ = [
    "SnapshotCodec",
    "SnapshotMetadata",
    "StateSnapshot",
    "snapshot_decode",
    "snapshot_encode",
]
