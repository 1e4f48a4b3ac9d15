"""Immutable classified brokerage transaction variants.

`Transaction` is a closed union of four frozen dataclasses. Consumers dispatch
with structural `match` statements and close the match with `assert_never`,
so a new variant fails type checking at every unhandled dispatch site.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import date, datetime
from decimal import Decimal
from enum import Enum
from typing import Union

from .money import MonetaryAmount


class TradeAction(str, Enum):
    """Broker trade action."""

    SELL_TO_OPEN = "SELL_TO_OPEN"
    BUY_TO_CLOSE = "BUY_TO_CLOSE"
    BUY_TO_OPEN = "BUY_TO_OPEN"
    SELL_TO_CLOSE = "SELL_TO_CLOSE"


class OptionStatus(str, Enum):
    """Reason an option lot left the account without a closing trade."""

    EXPIRED = "EXPIRED"
    ASSIGNED = "ASSIGNED"


class CallOrPut(str, Enum):
    """Option right."""

    CALL = "CALL"
    PUT = "PUT"


REVERSE_SPLIT_SUB_TYPE = "Reverse Split"


def _transaction_validate_date(value: datetime, field_name: str) -> None:
    if not isinstance(value, datetime):
        raise TypeError(f"{field_name} must be a datetime")
    if value.tzinfo is None or value.utcoffset() is None:
        raise ValueError(f"{field_name} must include timezone offset")


def _transaction_validate_quantity(value: int, field_name: str) -> None:
    if isinstance(value, bool) or not isinstance(value, int):
        raise TypeError(f"{field_name} must be an int")
    if value <= 0:
        raise ValueError(f"{field_name} must be > 0")


@dataclass(frozen=True)
class OptionKey:
    """Position key for one option series.

    Strike is compared as an exact `Decimal`, so `Decimal("5")` and
    `Decimal("5.00")` address the same queue.

    Attributes:
        call_or_put: Option right.
        root_symbol: Underlying root symbol.
        expiration: Expiration date.
        strike: Strike price.
    """

    call_or_put: CallOrPut
    root_symbol: str
    expiration: date
    strike: Decimal

    def option_key_text(self) -> str:
        """Render the stable text form used by snapshots and diagnostics.

        Returns:
            str: `CALL|PUT-ROOT-YYYY-MM-DD-STRIKE`.

        Raises:
            RuntimeError: This helper does not raise runtime errors.
        """

        strike_text = format(self.strike.normalize(), "f")
        return f"{self.call_or_put.value}-{self.root_symbol}-{self.expiration.isoformat()}-{strike_text}"


@dataclass(frozen=True)
class OptionTrade:
    """Option trade opening or closing a short option position.

    Attributes:
        date: Offset-aware execution timestamp.
        action: SELL_TO_OPEN or BUY_TO_CLOSE.
        root_symbol: Underlying root symbol.
        expiration: Expiration date.
        strike: Strike price.
        call_or_put: Option right.
        quantity: Contract count, strictly positive.
        value: Signed cash value (premium received is positive).
        average_price: Signed per-contract average price.
        commissions: Commission amount.
        fees: Fee amount.
        description: Broker description text.
        underlying_symbol: Underlying instrument symbol.
        multiplier: Contract multiplier.
        order_number: Broker order number when present.
    """

    date: datetime
    action: TradeAction
    root_symbol: str
    expiration: date
    strike: Decimal
    call_or_put: CallOrPut
    quantity: int
    value: MonetaryAmount
    average_price: MonetaryAmount
    commissions: MonetaryAmount
    fees: MonetaryAmount
    description: str = ""
    underlying_symbol: str = ""
    multiplier: int = 100
    order_number: str | None = None

    def __post_init__(self) -> None:
        _transaction_validate_date(self.date, "date")
        _transaction_validate_quantity(self.quantity, "quantity")
        if not self.root_symbol.strip():
            raise ValueError("root_symbol must not be blank")

    @property
    def position_key(self) -> OptionKey:
        return OptionKey(
            call_or_put=self.call_or_put,
            root_symbol=self.root_symbol,
            expiration=self.expiration,
            strike=self.strike,
        )


@dataclass(frozen=True)
class OptionRemoval:
    """Option lot removed by expiration or assignment.

    Attributes:
        date: Offset-aware removal timestamp.
        root_symbol: Underlying root symbol.
        expiration: Expiration date.
        strike: Strike price.
        call_or_put: Option right.
        quantity: Reported contract count.
        status: EXPIRED or ASSIGNED.
        description: Broker description text.
    """

    date: datetime
    root_symbol: str
    expiration: date
    strike: Decimal
    call_or_put: CallOrPut
    quantity: int
    status: OptionStatus
    description: str = ""

    def __post_init__(self) -> None:
        _transaction_validate_date(self.date, "date")
        _transaction_validate_quantity(self.quantity, "quantity")

    @property
    def position_key(self) -> OptionKey:
        return OptionKey(
            call_or_put=self.call_or_put,
            root_symbol=self.root_symbol,
            expiration=self.expiration,
            strike=self.strike,
        )


@dataclass(frozen=True)
class StockTrade:
    """Stock trade opening or closing a long stock position.

    Attributes:
        date: Offset-aware execution timestamp.
        symbol: Stock symbol.
        action: BUY_TO_OPEN or SELL_TO_CLOSE.
        quantity: Share count, strictly positive.
        value: Signed cash value (purchases are negative).
        average_price: Signed per-share average price (purchases are negative).
        commissions: Commission amount.
        fees: Fee amount.
        description: Broker description text.
        sub_type: Broker sub-type, e.g. `Buy`, `Sell` or `Reverse Split`.
    """

    date: datetime
    symbol: str
    action: TradeAction
    quantity: int
    value: MonetaryAmount
    average_price: MonetaryAmount
    commissions: MonetaryAmount
    fees: MonetaryAmount
    description: str = ""
    sub_type: str = ""

    def __post_init__(self) -> None:
        _transaction_validate_date(self.date, "date")
        _transaction_validate_quantity(self.quantity, "quantity")
        if not self.symbol.strip():
            raise ValueError("symbol must not be blank")

    def stock_trade_is_reverse_split(self) -> bool:
        return self.sub_type == REVERSE_SPLIT_SUB_TYPE


@dataclass(frozen=True)
class OptionAssignment:
    """Stock delivery caused by an option assignment.

    Attributes:
        date: Offset-aware delivery timestamp.
        symbol: Stock symbol.
        action: BUY_TO_OPEN or SELL_TO_CLOSE.
        quantity: Share count.
        value: Signed cash value.
        average_price: Signed per-share average price.
        fees: Fee amount.
        description: Broker description text.
    """

    date: datetime
    symbol: str
    action: TradeAction
    quantity: int
    value: MonetaryAmount
    average_price: MonetaryAmount
    fees: MonetaryAmount
    description: str = field(default="")

    def __post_init__(self) -> None:
        _transaction_validate_date(self.date, "date")
        _transaction_validate_quantity(self.quantity, "quantity")
        if not self.symbol.strip():
            raise ValueError("symbol must not be blank")


Transaction = Union[OptionTrade, OptionRemoval, StockTrade, OptionAssignment]
StockOpeningTrade = Union[StockTrade, OptionAssignment]


def transaction_sort_key(transaction: Transaction) -> datetime:
    """Return the chronological sort key of a transaction."""

    return transaction.date


__all__ = [
    "REVERSE_SPLIT_SUB_TYPE",
    "CallOrPut",
    "OptionAssignment",
    "OptionKey",
    "OptionRemoval",
    "OptionStatus",
    "OptionTrade",
    "StockOpeningTrade",
    "StockTrade",
    "TradeAction",
    "Transaction",
    "transaction_sort_key",
]
