"""Tests for broker CSV classification into transaction variants."""

from __future__ import annotations

from datetime import date, datetime, timedelta, timezone
from decimal import Decimal
from pathlib import Path

import pytest

from taxledger.domain import (
    CallOrPut,
    CsvMappingError,
    OptionAssignment,
    OptionRemoval,
    OptionStatus,
    OptionTrade,
    StockTrade,
    TradeAction,
    usd,
)
from taxledger.mapping import (
    CSV_COLUMN_COUNT,
    CsvTransactionRow,
    TransactionCsvReader,
    mapping_parse_decimal,
    mapping_parse_expiration,
    mapping_parse_timestamp,
)
from taxledger.mapping.transaction_csv import mapping_parse_quantity

_HEADER = (
    "Date,Type,Sub Type,Action,Symbol,Instrument Type,Description,Value,Quantity,Average Price,"
    "Commissions,Fees,Multiplier,Root Symbol,Underlying Symbol,Expiration Date,Strike Price,Call or Put,Order #"
)
_STO_ROW = (
    "2022-01-07T15:29:49+0100,Trade,Sell to Open,SELL_TO_OPEN,SPY   220218P00430000,Equity Option,"
    "Sold 1 SPY 02/18/22 Put 430.00 @ 4.55,455.00,1,455.00,-1.00,-0.14,100,SPY,SPY,2/18/22,430,PUT,1001"
)
_BTC_ROW = (
    "2022-01-20T16:01:02+0100,Trade,Buy to Close,BUY_TO_CLOSE,SPY   220218P00430000,Equity Option,"
    "Bought 1 SPY 02/18/22 Put 430.00 @ 1.20,-120.00,1,-120.00,0.00,-0.13,100,SPY,SPY,2/18/22,430,PUT,1002"
)
_EXPIRATION_ROW = (
    "2022-02-19T00:00:00+0100,Receive Deliver,Expiration,,SPY   220218P00430000,Equity Option,"
    "Removal of 1.0 SPY 02/18/22 Put 430.00 due to expiration.,0.00,1,0.00,--,0.00,100,SPY,SPY,2/18/22,430,PUT,"
)
_ASSIGNMENT_REMOVAL_ROW = (
    "2022-02-19T00:00:00+0100,Receive Deliver,Assignment,,SPY   220218P00430000,Equity Option,"
    "Removal of option due to assignment,0.00,1,0.00,--,0.00,100,SPY,SPY,2/18/22,430,PUT,"
)
_ASSIGNED_STOCK_ROW = (
    "2022-02-19T00:00:00+0100,Receive Deliver,Buy to Open,BUY_TO_OPEN,SPY,Equity,"
    "Bought 100 SPY @ 430.00,\"-43,000.00\",100,-430.00,--,-5.00,,,,,,,"
)
_STOCK_BUY_ROW = (
    "2022-03-01T15:35:00+0100,Trade,Buy,BUY_TO_OPEN,AMD,Equity,Bought 10 AMD @ 110.00,"
    "-1100.00,10,-110.00,0.00,-0.08,,,,,,,2001"
)
_REVERSE_SPLIT_ROW = (
    "2022-04-04T07:00:00+0200,Receive Deliver,Reverse Split,SELL_TO_CLOSE,AMD,Equity,"
    "Reverse split: Close 10.0 AMD,1100.00,10,110.00,--,0.00,,,,,,,"
)
_MONEY_MOVEMENT_ROW = "2022-01-10T10:00:00+0100,Money Movement,Deposit,,,,ACH DEPOSIT,1000.00,0,,0.00,0.00,,,,,,,"


def _row(text: str) -> CsvTransactionRow:
    """Split a raw CSV line into a positional row.

    Args:
        text: CSV line without quotes inside fields.

    Returns:
        CsvTransactionRow: Row referencing a synthetic file.
    """

    return CsvTransactionRow(source_ref="test.csv:1", columns=tuple(column.strip() for column in text.split(",")))


def _write_csv(path: Path, *rows: str) -> Path:
    path.parent.mkdir(parents=True, exist_ok=True)
    path.write_text("\n".join((_HEADER, *rows)) + "\n", encoding="utf-8")
    return path


def test_mapping_option_trade_row_maps_every_field() -> None:
    """Map a sell-to-open option row.

    Returns:
        None: Assertions validate the mapped option trade.

    Raises:
        AssertionError: Raised when a field is mapped incorrectly.
    """

    transaction = TransactionCsvReader().csv_map_row(_row(_STO_ROW))

    assert isinstance(transaction, OptionTrade)
    assert transaction.date == datetime(2022, 1, 7, 14, 29, 49, tzinfo=timezone.utc)
    assert transaction.action is TradeAction.SELL_TO_OPEN
    assert transaction.root_symbol == "SPY"
    assert transaction.expiration == date(2022, 2, 18)
    assert transaction.strike == Decimal("430")
    assert transaction.call_or_put is CallOrPut.PUT
    assert transaction.quantity == 1
    assert transaction.value == usd("455.00")
    assert transaction.commissions == usd("-1.00")
    assert transaction.multiplier == 100
    assert transaction.order_number == "1001"


def test_mapping_receive_deliver_option_rows_become_removals() -> None:
    reader = TransactionCsvReader()

    expired = reader.csv_map_row(_row(_EXPIRATION_ROW))
    assigned = reader.csv_map_row(_row(_ASSIGNMENT_REMOVAL_ROW))

    assert isinstance(expired, OptionRemoval)
    assert expired.status is OptionStatus.EXPIRED
    assert isinstance(assigned, OptionRemoval)
    assert assigned.status is OptionStatus.ASSIGNED
    assert assigned.position_key == expired.position_key


def test_mapping_stock_rows_map_to_stock_trade_and_assignment() -> None:
    reader = TransactionCsvReader()

    stock_trade = reader.csv_map_row(_row(_STOCK_BUY_ROW))
    reverse_split = reader.csv_map_row(_row(_REVERSE_SPLIT_ROW))

    assert isinstance(stock_trade, StockTrade)
    assert stock_trade.action is TradeAction.BUY_TO_OPEN
    assert stock_trade.average_price == usd("-110.00")
    assert not stock_trade.stock_trade_is_reverse_split()
    assert isinstance(reverse_split, StockTrade)
    assert reverse_split.stock_trade_is_reverse_split()
    assert reverse_split.commissions == usd("0")


def test_mapping_reads_quoted_thousands_and_assignment_rows(tmp_path: Path) -> None:
    csv_path = _write_csv(tmp_path / "2022.csv", _ASSIGNED_STOCK_ROW)

    transactions = TransactionCsvReader().csv_read_file(csv_path)

    assert len(transactions) == 1
    assignment = transactions[0]
    assert isinstance(assignment, OptionAssignment)
    assert assignment.value == usd("-43000.00")
    assert assignment.quantity == 100


def test_mapping_rejects_unknown_instrument_and_short_rows() -> None:
    reader = TransactionCsvReader()
    future_columns = list(_row(_STO_ROW).columns)
    future_columns[5] = "Future"

    with pytest.raises(CsvMappingError) as error_info:
        reader.csv_map_row(CsvTransactionRow(source_ref="test.csv:7", columns=tuple(future_columns)))
    assert error_info.value.error_code == "CSV_MAPPING_ERROR"
    assert error_info.value.details["source_ref"] == "test.csv:7"

    with pytest.raises(CsvMappingError):
        reader.csv_map_row(CsvTransactionRow(source_ref="test.csv:8", columns=tuple(["x"] * (CSV_COLUMN_COUNT - 1))))


def test_mapping_wraps_malformed_values() -> None:
    malformed_columns = list(_row(_STO_ROW).columns)
    malformed_columns[3] = "SELL_SHORT"

    with pytest.raises(CsvMappingError):
        TransactionCsvReader().csv_map_row(
            CsvTransactionRow(source_ref="test.csv:2", columns=tuple(malformed_columns))
        )


def test_mapping_directory_read_sorts_skips_and_excludes_snapshots(tmp_path: Path) -> None:
    """Read a directory tree into one chronological list.

    Returns:
        None: Assertions validate ordering, skipped rows and excluded folders.

    Raises:
        AssertionError: Raised when files are read out of order or snapshots are read.
    """

    _write_csv(tmp_path / "b.csv", _BTC_ROW, _MONEY_MOVEMENT_ROW)
    _write_csv(tmp_path / "a.csv", _STO_ROW, "")
    _write_csv(tmp_path / "snapshots" / "stale.csv", _STOCK_BUY_ROW)

    transactions = TransactionCsvReader().csv_read_directory(tmp_path, excluded_dir_name="snapshots")

    assert [transaction.action for transaction in transactions] == [
        TradeAction.SELL_TO_OPEN,
        TradeAction.BUY_TO_CLOSE,
    ]


def test_mapping_directory_read_rejects_missing_directory(tmp_path: Path) -> None:
    with pytest.raises(CsvMappingError):
        TransactionCsvReader().csv_read_directory(tmp_path / "absent")


def test_mapping_value_parsers() -> None:
    assert mapping_parse_timestamp("2022-01-07T15:29:49+0100").utcoffset() == timedelta(hours=1)
    assert mapping_parse_timestamp("2022-01-07T15:29:49Z").utcoffset() == timedelta(0)
    assert mapping_parse_expiration("12/16/22") == date(2022, 12, 16)
    assert mapping_parse_decimal("1,234.50") == Decimal("1234.50")
    assert mapping_parse_decimal("--") == Decimal("0")
    assert mapping_parse_quantity("-100.0") == 100

    with pytest.raises(ValueError):
        mapping_parse_timestamp("2022-01-07T15:29:49")
    with pytest.raises(ValueError):
        mapping_parse_decimal("NaN")
    with pytest.raises(ValueError):
        mapping_parse_quantity("1.5")
