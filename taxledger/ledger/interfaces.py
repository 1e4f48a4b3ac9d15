"""Typed contracts for the position ledger and its match events."""

from __future__ import annotations

from dataclasses import dataclass
from typing import Protocol, Union

from taxledger.domain import (
    OptionKey,
    OptionRemoval,
    OptionTrade,
    StockOpeningTrade,
    Transaction,
)


@dataclass(frozen=True)
class PositionCloseResult:
    """Outcome of closing part of one open lot.

    Attributes:
        quantity_closed: Quantity matched against the lot.
        quantity_left_in_closing_tx: Quantity of the closing transaction still unmatched.
        quantity_left_in_position: Quantity left open in the lot.
    """

    quantity_closed: int
    quantity_left_in_closing_tx: int
    quantity_left_in_position: int

    def position_depleted(self) -> bool:
        return self.quantity_left_in_position == 0


@dataclass
class OptionShortPosition:
    """One open short option lot.

    Attributes:
        open_trade: SELL_TO_OPEN trade that created the lot.
        quantity_remaining: Contracts still open.
    """

    open_trade: OptionTrade
    quantity_remaining: int

    def position_close(self, requested_quantity: int) -> PositionCloseResult:
        """Close up to `requested_quantity` contracts of this lot.

        Args:
            requested_quantity: Contracts the closing trade still has to match.

        Returns:
            PositionCloseResult: Matched and leftover quantities.

        Raises:
            ValueError: Raised when requested_quantity is not positive.
        """

        return _position_close(self, requested_quantity)


@dataclass
class StockPosition:
    """One open long stock lot.

    Attributes:
        open_trade: BUY_TO_OPEN stock trade or assignment that created the lot.
        quantity_remaining: Shares still open.
    """

    open_trade: StockOpeningTrade
    quantity_remaining: int

    def position_close(self, requested_quantity: int) -> PositionCloseResult:
        return _position_close(self, requested_quantity)


def _position_close(position: OptionShortPosition | StockPosition, requested_quantity: int) -> PositionCloseResult:
    if requested_quantity <= 0:
        raise ValueError("requested_quantity must be > 0")
    quantity_closed = min(requested_quantity, position.quantity_remaining)
    position.quantity_remaining -= quantity_closed
    return PositionCloseResult(
        quantity_closed=quantity_closed,
        quantity_left_in_closing_tx=requested_quantity - quantity_closed,
        quantity_left_in_position=position.quantity_remaining,
    )


@dataclass(frozen=True)
class OptionOpened:
    """Short option lot opened; premium is recognized at open time."""

    trade: OptionTrade


@dataclass(frozen=True)
class OptionClosed:
    """Part of a short option lot bought back.

    Attributes:
        open_trade: Opening trade of the matched lot.
        close_trade: BUY_TO_CLOSE trade.
        quantity: Contracts matched against this lot.
    """

    open_trade: OptionTrade
    close_trade: OptionTrade
    quantity: int


@dataclass(frozen=True)
class OptionRemoved:
    """Short option lot removed by expiration or assignment."""

    open_trade: OptionTrade
    removal: OptionRemoval
    quantity: int


@dataclass(frozen=True)
class StockOpened:
    """Long stock lot opened by a purchase or an assignment."""

    trade: StockOpeningTrade


@dataclass(frozen=True)
class StockClosed:
    """Part of a long stock lot sold.

    Attributes:
        open_trade: Opening trade of the matched lot.
        close_trade: SELL_TO_CLOSE trade or assignment.
        quantity: Shares matched against this lot.
    """

    open_trade: StockOpeningTrade
    close_trade: StockOpeningTrade
    quantity: int


MatchEvent = Union[OptionOpened, OptionClosed, OptionRemoved, StockOpened, StockClosed]


class MatchEventSink(Protocol):
    """Consumer of ledger match events, called in emission order."""

    def on_match_event(self, event: MatchEvent) -> None:
        """Consume one match event.

        Args:
            event: Event emitted by the position ledger.

        Returns:
            None: State is updated as side effect.

        Raises:
            ConfigurationError: Raised when conversion inputs are missing.
        """


class LedgerPort(Protocol):
    """Port definition for the FIFO position ledger."""

    def ledger_apply(self, transaction: Transaction) -> list[MatchEvent]:
        """Apply one transaction and return the emitted match events.

        Args:
            transaction: Classified transaction.

        Returns:
            list[MatchEvent]: Events in emission order.

        Raises:
            DataInconsistencyError: Raised when the transaction contradicts open positions.
            ConfigurationError: Raised when the transaction action is unsupported.
        """

    def ledger_option_queues(self) -> dict[OptionKey, list[OptionShortPosition]]:
        """Return a detached copy of all open option queues."""

    def ledger_stock_queues(self) -> dict[str, list[StockPosition]]:
        """Return a detached copy of all open stock queues."""


__all__ = [
    "LedgerPort",
    "MatchEvent",
    "MatchEventSink",
    "OptionClosed",
    "OptionOpened",
    "OptionRemoved",
    "OptionShortPosition",
    "PositionCloseResult",
    "StockClosed",
    "StockOpened",
    "StockPosition",
]
