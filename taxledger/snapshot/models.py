"""Pydantic wire models for the JSON state snapshot format.

Field names are camelCase on the wire. Decimal values are serialized as JSON
strings so amounts, prices and strikes round-trip without float drift.
"""

import datetime as dt
from decimal import Decimal
from typing import Literal

from pydantic import AwareDatetime, BaseModel, ConfigDict, Field
from pydantic.alias_generators import to_camel

from taxledger.domain import CallOrPut, TradeAction

SNAPSHOT_FORMAT_VERSION = "1.0"


class _SnapshotWireModel(BaseModel):
    model_config = ConfigDict(
        alias_generator=to_camel,
        populate_by_name=True,
        extra="forbid",
        frozen=True,
    )


class MoneyWireModel(_SnapshotWireModel):
    amount: Decimal
    currency: str = Field(min_length=1)


class OptionTradeWireModel(_SnapshotWireModel):
    date: AwareDatetime
    action: TradeAction
    root_symbol: str = Field(min_length=1)
    expiration: dt.date
    strike: Decimal
    call_or_put: CallOrPut
    quantity: int = Field(gt=0)
    value: MoneyWireModel
    average_price: MoneyWireModel
    commissions: MoneyWireModel
    fees: MoneyWireModel
    description: str = ""
    underlying_symbol: str = ""
    multiplier: int = 100
    order_number: str | None = None


class StockOpenTradeWireModel(_SnapshotWireModel):
    """Opening stock trade; `kind` keeps assignment-driven lots distinguishable."""

    kind: Literal["stock_trade", "option_assignment"] = "stock_trade"
    date: AwareDatetime
    symbol: str = Field(min_length=1)
    action: TradeAction
    quantity: int = Field(gt=0)
    value: MoneyWireModel
    average_price: MoneyWireModel
    commissions: MoneyWireModel | None = None
    fees: MoneyWireModel
    description: str = ""
    sub_type: str = ""


class OptionLotWireModel(_SnapshotWireModel):
    open_trade: OptionTradeWireModel
    quantity_remaining: int = Field(gt=0)


class StockLotWireModel(_SnapshotWireModel):
    open_trade: StockOpenTradeWireModel
    quantity_remaining: int = Field(gt=0)


class PositionsWireModel(_SnapshotWireModel):
    options: dict[str, list[OptionLotWireModel]] = Field(default_factory=dict)
    stocks: dict[str, list[StockLotWireModel]] = Field(default_factory=dict)


class FiscalYearWireModel(_SnapshotWireModel):
    profit_options: MoneyWireModel
    loss_options: MoneyWireModel
    profit_stocks: MoneyWireModel


class SnapshotMetadataWireModel(_SnapshotWireModel):
    version: str
    created_at: AwareDatetime
    last_transaction_date: AwareDatetime


class StateSnapshotWireModel(_SnapshotWireModel):
    metadata: SnapshotMetadataWireModel
    positions: PositionsWireModel
    fiscal_years: dict[str, FiscalYearWireModel] = Field(default_factory=dict)


__all__ = [
    "SNAPSHOT_FORMAT_VERSION",
    "FiscalYearWireModel",
    "MoneyWireModel",
    "OptionLotWireModel",
    "OptionTradeWireModel",
    "PositionsWireModel",
    "SnapshotMetadataWireModel",
    "StateSnapshotWireModel",
    "StockLotWireModel",
    "StockOpenTradeWireModel",
]
