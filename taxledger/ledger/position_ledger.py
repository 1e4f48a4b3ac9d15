"""FIFO position ledger for short options and long stock lots.

Open lots are appended at the tail of a per-instrument queue and consumed from
the head. One closing transaction may span several lots and then emits one
close event per lot, in queue order. Queue map entries are removed as soon as
their queue becomes empty.
"""

from __future__ import annotations

from collections import deque
from decimal import Decimal
from enum import Enum
import logging
from typing import Callable, TypeVar, assert_never

from taxledger.domain import (
    InsufficientOpenQuantityError,
    MonetaryAmount,
    NoOpenPositionError,
    OptionAssignment,
    OptionKey,
    OptionRemoval,
    OptionTrade,
    QuantityConservationError,
    RemovalQuantityMismatchError,
    ReverseSplitMismatchError,
    StockOpeningTrade,
    StockTrade,
    TradeAction,
    Transaction,
    UnknownActionError,
    money_zero,
)

from .interfaces import (
    LedgerPort,
    MatchEvent,
    OptionClosed,
    OptionOpened,
    OptionRemoved,
    OptionShortPosition,
    PositionCloseResult,
    StockClosed,
    StockOpened,
    StockPosition,
)

logger = logging.getLogger(__name__)

_QueueKey = TypeVar("_QueueKey")
_Position = TypeVar("_Position", OptionShortPosition, StockPosition)


class RemovalQuantityPolicy(str, Enum):
    """How an option removal's reported quantity is checked against the head lot.

    `WHOLE_LOT` drops the head lot regardless of the reported quantity.
    `STRICT` requires the reported quantity to equal the head lot's open quantity.
    """

    WHOLE_LOT = "whole_lot"
    STRICT = "strict"


class PositionLedger(LedgerPort):
    """Stateful FIFO matcher that turns transactions into match events."""

    def __init__(self, removal_quantity_policy: RemovalQuantityPolicy = RemovalQuantityPolicy.STRICT):
        """Initialize an empty ledger.

        Args:
            removal_quantity_policy: Removal quantity check mode.

        Returns:
            None: Initializer does not return a value.

        Raises:
            ValueError: Raised when removal_quantity_policy is None.
        """

        if removal_quantity_policy is None:
            raise ValueError("removal_quantity_policy must not be None")
        self._removal_quantity_policy = RemovalQuantityPolicy(removal_quantity_policy)
        self._option_queues: dict[OptionKey, deque[OptionShortPosition]] = {}
        self._stock_queues: dict[str, deque[StockPosition]] = {}
        self._pending_split_leg: StockTrade | None = None

    def ledger_apply(self, transaction: Transaction) -> list[MatchEvent]:
        """Apply one transaction and return emitted match events in order.

        Args:
            transaction: Classified transaction.

        Returns:
            list[MatchEvent]: Zero or more match events.

        Raises:
            NoOpenPositionError: Raised when a close or removal has no open lot.
            InsufficientOpenQuantityError: Raised when open lots run out mid-close.
            RemovalQuantityMismatchError: Raised in strict mode on removal quantity mismatch.
            ReverseSplitMismatchError: Raised when reverse split legs do not pair up.
            UnknownActionError: Raised when the action is invalid for the variant.
        """

        logger.debug("ledger_apply transaction=%r", transaction)
        match transaction:
            case OptionTrade():
                return self._ledger_apply_option_trade(transaction)
            case OptionRemoval():
                return self._ledger_apply_option_removal(transaction)
            case StockTrade():
                return self._ledger_apply_stock_trade(transaction)
            case OptionAssignment():
                return self._ledger_apply_stock_transaction(transaction)
            case _:
                assert_never(transaction)

    def ledger_option_positions(self, key: OptionKey) -> list[OptionShortPosition]:
        """Return detached copies of the open lots for one option key, head first."""

        return [
            OptionShortPosition(open_trade=position.open_trade, quantity_remaining=position.quantity_remaining)
            for position in self._option_queues.get(key, ())
        ]

    def ledger_stock_positions(self, symbol: str) -> list[StockPosition]:
        """Return detached copies of the open lots for one stock symbol, head first."""

        return [
            StockPosition(open_trade=position.open_trade, quantity_remaining=position.quantity_remaining)
            for position in self._stock_queues.get(symbol, ())
        ]

    def ledger_option_queues(self) -> dict[OptionKey, list[OptionShortPosition]]:
        return {key: self.ledger_option_positions(key) for key in self._option_queues}

    def ledger_stock_queues(self) -> dict[str, list[StockPosition]]:
        return {symbol: self.ledger_stock_positions(symbol) for symbol in self._stock_queues}

    def ledger_has_pending_split(self) -> bool:
        """Return whether one reverse split leg is waiting for its counterpart."""

        return self._pending_split_leg is not None

    def ledger_replace_state(
        self,
        option_queues: dict[OptionKey, list[OptionShortPosition]],
        stock_queues: dict[str, list[StockPosition]],
    ) -> None:
        """Replace all open lots, used when restoring a snapshot.

        Args:
            option_queues: Option lots per key, head first.
            stock_queues: Stock lots per symbol, head first.

        Returns:
            None: Ledger state is replaced as side effect.

        Raises:
            ValueError: Raised when a lot quantity is not positive.
        """

        restored_option_queues: dict[OptionKey, deque[OptionShortPosition]] = {}
        for key, positions in option_queues.items():
            restored_queue = deque(
                OptionShortPosition(open_trade=position.open_trade, quantity_remaining=position.quantity_remaining)
                for position in positions
            )
            _ledger_validate_restored_queue(restored_queue, key.option_key_text())
            if restored_queue:
                restored_option_queues[key] = restored_queue

        restored_stock_queues: dict[str, deque[StockPosition]] = {}
        for symbol, positions in stock_queues.items():
            restored_queue = deque(
                StockPosition(open_trade=position.open_trade, quantity_remaining=position.quantity_remaining)
                for position in positions
            )
            _ledger_validate_restored_queue(restored_queue, symbol)
            if restored_queue:
                restored_stock_queues[symbol] = restored_queue

        self._option_queues = restored_option_queues
        self._stock_queues = restored_stock_queues
        self._pending_split_leg = None

    def ledger_reset(self) -> None:
        """Drop every open lot."""

        self._option_queues = {}
        self._stock_queues = {}
        self._pending_split_leg = None

    def _ledger_apply_option_trade(self, trade: OptionTrade) -> list[MatchEvent]:
        if trade.action is TradeAction.SELL_TO_OPEN:
            position = OptionShortPosition(open_trade=trade, quantity_remaining=trade.quantity)
            self._option_queues.setdefault(trade.position_key, deque()).append(position)
            logger.info(
                "Option STO key=%s date=%s quantity=%s value=%s",
                trade.position_key.option_key_text(),
                trade.date.isoformat(),
                trade.quantity,
                trade.value.amount,
            )
            return [OptionOpened(trade=trade)]

        if trade.action is TradeAction.BUY_TO_CLOSE:
            logger.info(
                "Option BTC key=%s date=%s quantity=%s value=%s",
                trade.position_key.option_key_text(),
                trade.date.isoformat(),
                trade.quantity,
                trade.value.amount,
            )
            return _ledger_close_fifo(
                queues=self._option_queues,
                key=trade.position_key,
                key_text=trade.position_key.option_key_text(),
                transaction=trade,
                requested_quantity=trade.quantity,
                build_event=lambda position, quantity: OptionClosed(
                    open_trade=position.open_trade,
                    close_trade=trade,
                    quantity=quantity,
                ),
            )

        raise UnknownActionError(trade.action, trade)

    def _ledger_apply_option_removal(self, removal: OptionRemoval) -> list[MatchEvent]:
        key = removal.position_key
        key_text = key.option_key_text()
        queue = self._option_queues.get(key)
        if not queue:
            raise NoOpenPositionError(key_text, removal)

        head_position = queue[0]
        if (
            self._removal_quantity_policy is RemovalQuantityPolicy.STRICT
            and removal.quantity != head_position.quantity_remaining
        ):
            raise RemovalQuantityMismatchError(key_text, removal.quantity, head_position.quantity_remaining, removal)

        queue.popleft()
        if not queue:
            del self._option_queues[key]
        logger.info(
            "Option %s key=%s date=%s removed_quantity=%s reported_quantity=%s",
            removal.status.value.lower(),
            key_text,
            removal.date.isoformat(),
            head_position.quantity_remaining,
            removal.quantity,
        )
        return [
            OptionRemoved(
                open_trade=head_position.open_trade,
                removal=removal,
                quantity=head_position.quantity_remaining,
            )
        ]

    def _ledger_apply_stock_trade(self, trade: StockTrade) -> list[MatchEvent]:
        if trade.stock_trade_is_reverse_split():
            self._ledger_apply_reverse_split_leg(trade)
            return []
        return self._ledger_apply_stock_transaction(trade)

    def _ledger_apply_stock_transaction(self, trade: StockOpeningTrade) -> list[MatchEvent]:
        if trade.action is TradeAction.BUY_TO_OPEN:
            self._stock_queues.setdefault(trade.symbol, deque()).append(
                StockPosition(open_trade=trade, quantity_remaining=trade.quantity)
            )
            logger.info(
                "Stock BTO symbol=%s date=%s quantity=%s average_price=%s",
                trade.symbol,
                trade.date.isoformat(),
                trade.quantity,
                trade.average_price.amount,
            )
            return [StockOpened(trade=trade)]

        if trade.action is TradeAction.SELL_TO_CLOSE:
            logger.info(
                "Stock STC symbol=%s date=%s quantity=%s average_price=%s",
                trade.symbol,
                trade.date.isoformat(),
                trade.quantity,
                trade.average_price.amount,
            )
            return _ledger_close_fifo(
                queues=self._stock_queues,
                key=trade.symbol,
                key_text=trade.symbol,
                transaction=trade,
                requested_quantity=trade.quantity,
                build_event=lambda position, quantity: StockClosed(
                    open_trade=position.open_trade,
                    close_trade=trade,
                    quantity=quantity,
                ),
            )

        raise UnknownActionError(trade.action, trade)

    def _ledger_apply_reverse_split_leg(self, split_leg: StockTrade) -> None:
        """Collapse all lots of a symbol into one lot once both split legs arrived.

        The two legs share one timestamp and arrive in undefined order. The new
        lot keeps the summed original buy value, so the split price reported
        by the broker never affects realized gains.
        """

        if split_leg.action not in (TradeAction.BUY_TO_OPEN, TradeAction.SELL_TO_CLOSE):
            raise UnknownActionError(split_leg.action, split_leg)

        counterpart = self._pending_split_leg
        if counterpart is None:
            self._pending_split_leg = split_leg
            logger.debug("Reverse split first leg symbol=%s", split_leg.symbol)
            return

        if counterpart.date != split_leg.date:
            raise ReverseSplitMismatchError(
                f"reverse split legs have different dates: {counterpart!r} / {split_leg!r}",
                details={"first_leg": repr(counterpart), "second_leg": repr(split_leg)},
            )
        if counterpart.symbol != split_leg.symbol:
            raise ReverseSplitMismatchError(
                f"reverse split legs have different symbols: {counterpart.symbol} / {split_leg.symbol}",
                details={"first_leg": repr(counterpart), "second_leg": repr(split_leg)},
            )
        if counterpart.action is split_leg.action:
            raise ReverseSplitMismatchError(
                f"reverse split legs have the same action {split_leg.action.value}",
                details={"first_leg": repr(counterpart), "second_leg": repr(split_leg)},
            )

        if split_leg.action is TradeAction.BUY_TO_OPEN:
            buy_leg, sell_leg = split_leg, counterpart
        else:
            buy_leg, sell_leg = counterpart, split_leg
        queue = self._stock_queues.get(split_leg.symbol)
        if not queue:
            raise NoOpenPositionError(split_leg.symbol, split_leg)

        total_buy_value = money_zero(buy_leg.value.currency)
        for position in queue:
            total_buy_value = total_buy_value + position.open_trade.average_price.money_multiply(
                position.quantity_remaining
            )
        new_quantity = buy_leg.quantity
        zero_amount = money_zero(buy_leg.value.currency)
        split_lot_trade = StockTrade(
            date=buy_leg.date,
            symbol=buy_leg.symbol,
            action=TradeAction.BUY_TO_OPEN,
            quantity=new_quantity,
            value=total_buy_value,
            average_price=MonetaryAmount(
                amount=total_buy_value.amount / Decimal(new_quantity),
                currency=total_buy_value.currency,
            ),
            commissions=zero_amount,
            fees=zero_amount,
            description=buy_leg.description,
            sub_type=buy_leg.sub_type,
        )
        self._stock_queues[split_leg.symbol] = deque(
            [StockPosition(open_trade=split_lot_trade, quantity_remaining=new_quantity)]
        )
        self._pending_split_leg = None
        logger.info(
            "Stock reverse split symbol=%s old_quantity=%s new_quantity=%s total_buy_value=%s",
            split_leg.symbol,
            sell_leg.quantity,
            new_quantity,
            total_buy_value.amount,
        )


def _ledger_close_fifo(
    queues: dict[_QueueKey, deque[_Position]],
    key: _QueueKey,
    key_text: str,
    transaction: Transaction,
    requested_quantity: int,
    build_event: Callable[[_Position, int], MatchEvent],
) -> list[MatchEvent]:
    """Match a closing quantity against the head lots of one queue.

    Args:
        queues: Queue map owned by the ledger.
        key: Queue key.
        key_text: Key rendering for diagnostics.
        transaction: Closing transaction.
        requested_quantity: Quantity to close.
        build_event: Builds one close event from the matched lot and quantity.

    Returns:
        list[MatchEvent]: One close event per matched lot, oldest lot first.

    Raises:
        NoOpenPositionError: Raised when no lot is open for the key.
        InsufficientOpenQuantityError: Raised when lots run out before the quantity is matched.
        QuantityConservationError: Raised when a close step breaks quantity conservation.
    """

    if not queues.get(key):
        raise NoOpenPositionError(key_text, transaction)

    emitted_events: list[MatchEvent] = []
    quantity_to_close = requested_quantity
    while quantity_to_close > 0:
        queue = queues.get(key)
        if not queue:
            raise InsufficientOpenQuantityError(
                key_text,
                requested_quantity,
                quantity_to_close,
                transaction,
                matched_events=tuple(emitted_events),
            )

        head_position = queue[0]
        quantity_before_close = head_position.quantity_remaining
        close_result = head_position.position_close(quantity_to_close)
        _ledger_validate_close_result(close_result, quantity_to_close, quantity_before_close, key_text)
        if close_result.position_depleted():
            queue.popleft()
            if not queue:
                del queues[key]

        emitted_events.append(build_event(head_position, close_result.quantity_closed))
        logger.debug("Closed lot key=%s result=%s", key_text, close_result)
        quantity_to_close = close_result.quantity_left_in_closing_tx

    return emitted_events


def _ledger_validate_close_result(
    close_result: PositionCloseResult,
    requested_quantity: int,
    quantity_before_close: int,
    key_text: str,
) -> None:
    conserved = close_result.quantity_closed + close_result.quantity_left_in_closing_tx == requested_quantity
    bounded = 0 < close_result.quantity_closed <= quantity_before_close
    if not (conserved and bounded):
        raise QuantityConservationError(
            f"close result {close_result} violates quantity conservation for key={key_text} "
            f"requested={requested_quantity} lot_quantity={quantity_before_close}",
            details={
                "position_key": key_text,
                "requested_quantity": requested_quantity,
                "lot_quantity": quantity_before_close,
            },
        )


def _ledger_validate_restored_queue(queue: deque[_Position], key_text: str) -> None:
    for position in queue:
        if position.quantity_remaining <= 0:
            raise ValueError(f"restored lot for key={key_text} must have quantity_remaining > 0")


__all__ = ["PositionLedger", "RemovalQuantityPolicy"]
