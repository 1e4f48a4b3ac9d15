"""Broker CSV export reader that classifies rows into transaction variants.

Columns are positional, following the broker export layout:
Date, Type, Sub Type, Action, Symbol, Instrument Type, Description, Value,
Quantity, Average Price, Commissions, Fees, Multiplier, Root Symbol,
Underlying Symbol, Expiration Date, Strike Price, Call or Put, Order #.
"""

from __future__ import annotations

import csv
from dataclasses import dataclass
from datetime import date, datetime
from decimal import Decimal, InvalidOperation
import logging
from pathlib import Path

from taxledger.domain import (
    USD,
    CallOrPut,
    CsvMappingError,
    MonetaryAmount,
    OptionAssignment,
    OptionRemoval,
    OptionStatus,
    OptionTrade,
    StockTrade,
    TradeAction,
    Transaction,
    REVERSE_SPLIT_SUB_TYPE,
    transaction_sort_key,
)

logger = logging.getLogger(__name__)

CSV_COLUMN_COUNT = 19

_TYPE_TRADE = "Trade"
_TYPE_RECEIVE_DELIVER = "Receive Deliver"
_INSTRUMENT_EQUITY = "Equity"
_INSTRUMENT_EQUITY_OPTION = "Equity Option"
_EMPTY_NUMBER_VALUES = frozenset({"", "--"})


@dataclass(frozen=True)
class CsvTransactionRow:
    """Typed view over one positional broker CSV row.

    Attributes:
        source_ref: `<file>:<line>` reference for diagnostics.
        columns: Raw column values, stripped.
    """

    source_ref: str
    columns: tuple[str, ...]

    @property
    def date_text(self) -> str:
        return self.columns[0]

    @property
    def type(self) -> str:
        return self.columns[1]

    @property
    def sub_type(self) -> str:
        return self.columns[2]

    @property
    def action(self) -> str:
        return self.columns[3]

    @property
    def symbol(self) -> str:
        return self.columns[4]

    @property
    def instrument_type(self) -> str:
        return self.columns[5]

    @property
    def description(self) -> str:
        return self.columns[6]

    @property
    def value(self) -> str:
        return self.columns[7]

    @property
    def quantity(self) -> str:
        return self.columns[8]

    @property
    def average_price(self) -> str:
        return self.columns[9]

    @property
    def commissions(self) -> str:
        return self.columns[10]

    @property
    def fees(self) -> str:
        return self.columns[11]

    @property
    def multiplier(self) -> str:
        return self.columns[12]

    @property
    def root_symbol(self) -> str:
        return self.columns[13]

    @property
    def underlying_symbol(self) -> str:
        return self.columns[14]

    @property
    def expiration_date(self) -> str:
        return self.columns[15]

    @property
    def strike_price(self) -> str:
        return self.columns[16]

    @property
    def call_or_put(self) -> str:
        return self.columns[17]

    @property
    def order_number(self) -> str:
        return self.columns[18]


class TransactionCsvReader:
    """Reads broker CSV exports into classified transactions."""

    def __init__(self, currency: str = USD):
        if not currency.strip():
            raise ValueError("currency must not be blank")
        self._currency = currency.strip().upper()

    def csv_read_directory(self, directory: Path | str, excluded_dir_name: str | None = None) -> list[Transaction]:
        """Read every `*.csv` file below a directory, sorted chronologically.

        Sorting is stable, so rows sharing a timestamp keep file and row order.

        Args:
            directory: Directory holding broker exports.
            excluded_dir_name: Sub-directory name to skip, e.g. the snapshot directory.

        Returns:
            list[Transaction]: Transactions ordered by date.

        Raises:
            CsvMappingError: Raised when the directory is missing or a row cannot be mapped.
        """

        root_path = Path(directory)
        if not root_path.is_dir():
            raise CsvMappingError(
                f"transactions directory does not exist: {root_path}",
                details={"directory": str(root_path)},
            )

        transactions: list[Transaction] = []
        for csv_path in sorted(root_path.rglob("*.csv")):
            relative_parts = csv_path.relative_to(root_path).parts[:-1]
            if excluded_dir_name and excluded_dir_name in relative_parts:
                continue
            transactions.extend(self.csv_read_file(csv_path))
        return sorted(transactions, key=transaction_sort_key)

    def csv_read_file(self, csv_path: Path | str) -> list[Transaction]:
        """Read one broker CSV export.

        Args:
            csv_path: File path.

        Returns:
            list[Transaction]: Transactions in file order.

        Raises:
            CsvMappingError: Raised when the file is unreadable or a row cannot be mapped.
        """

        resolved_path = Path(csv_path)
        try:
            with resolved_path.open("r", encoding="utf-8-sig", newline="") as csv_file:
                raw_rows = list(csv.reader(csv_file))
        except OSError as error:
            raise CsvMappingError(
                f"cannot read transactions file {resolved_path}",
                details={"path": str(resolved_path)},
            ) from error

        transactions: list[Transaction] = []
        for line_number, raw_columns in enumerate(raw_rows, start=1):
            if not raw_columns or not any(column.strip() for column in raw_columns):
                continue
            row = CsvTransactionRow(
                source_ref=f"{resolved_path.name}:{line_number}",
                columns=tuple(column.strip() for column in raw_columns),
            )
            if mapping_is_header_row(row):
                continue
            if len(row.columns) < 2 or row.type not in (_TYPE_TRADE, _TYPE_RECEIVE_DELIVER):
                logger.debug("Skipping row %s type=%s", row.source_ref, row.columns[1:2])
                continue
            transactions.append(self.csv_map_row(row))

        logger.info("Read %s transactions from %s", len(transactions), resolved_path)
        return transactions

    def csv_map_row(self, row: CsvTransactionRow) -> Transaction:
        """Classify and map one trade or receive-deliver row.

        Args:
            row: Positional CSV row.

        Returns:
            Transaction: Classified transaction variant.

        Raises:
            CsvMappingError: Raised when the row is incomplete, malformed or unclassifiable.
        """

        if len(row.columns) < CSV_COLUMN_COUNT:
            raise CsvMappingError(
                f"row {row.source_ref} has {len(row.columns)} columns, expected {CSV_COLUMN_COUNT}",
                details={"source_ref": row.source_ref, "columns": list(row.columns)},
            )
        try:
            if row.type == _TYPE_TRADE and row.instrument_type == _INSTRUMENT_EQUITY_OPTION:
                return self._csv_map_option_trade(row)
            if row.type == _TYPE_RECEIVE_DELIVER and row.instrument_type == _INSTRUMENT_EQUITY_OPTION:
                return self._csv_map_option_removal(row)
            if row.instrument_type == _INSTRUMENT_EQUITY and (
                row.type == _TYPE_TRADE or row.sub_type == REVERSE_SPLIT_SUB_TYPE
            ):
                return self._csv_map_stock_trade(row)
            if row.type == _TYPE_RECEIVE_DELIVER and row.instrument_type == _INSTRUMENT_EQUITY:
                return self._csv_map_option_assignment(row)
        except CsvMappingError:
            raise
        except (TypeError, ValueError) as error:
            raise CsvMappingError(
                f"row {row.source_ref} cannot be mapped: {error}",
                details={"source_ref": row.source_ref, "columns": list(row.columns)},
            ) from error

        raise CsvMappingError(
            f"row {row.source_ref} has unknown transaction type {row.type}/{row.instrument_type}",
            details={"source_ref": row.source_ref, "columns": list(row.columns)},
        )

    def _csv_map_option_trade(self, row: CsvTransactionRow) -> OptionTrade:
        return OptionTrade(
            date=mapping_parse_timestamp(row.date_text),
            action=mapping_parse_action(row.action),
            root_symbol=row.root_symbol,
            expiration=mapping_parse_expiration(row.expiration_date),
            strike=mapping_parse_decimal(row.strike_price),
            call_or_put=CallOrPut(row.call_or_put.upper()),
            quantity=mapping_parse_quantity(row.quantity),
            value=self._csv_money(row.value),
            average_price=self._csv_money(row.average_price),
            commissions=self._csv_money(row.commissions),
            fees=self._csv_money(row.fees),
            description=row.description,
            underlying_symbol=row.underlying_symbol,
            multiplier=int(row.multiplier) if row.multiplier else 100,
            order_number=row.order_number or None,
        )

    def _csv_map_option_removal(self, row: CsvTransactionRow) -> OptionRemoval:
        status = OptionStatus.ASSIGNED if "assignment" in row.description.lower() else OptionStatus.EXPIRED
        return OptionRemoval(
            date=mapping_parse_timestamp(row.date_text),
            root_symbol=row.root_symbol,
            expiration=mapping_parse_expiration(row.expiration_date),
            strike=mapping_parse_decimal(row.strike_price),
            call_or_put=CallOrPut(row.call_or_put.upper()),
            quantity=mapping_parse_quantity(row.quantity),
            status=status,
            description=row.description,
        )

    def _csv_map_stock_trade(self, row: CsvTransactionRow) -> StockTrade:
        is_reverse_split = row.sub_type == REVERSE_SPLIT_SUB_TYPE
        return StockTrade(
            date=mapping_parse_timestamp(row.date_text),
            symbol=row.symbol,
            action=mapping_parse_action(row.action),
            quantity=mapping_parse_quantity(row.quantity),
            value=self._csv_money(row.value),
            average_price=self._csv_money(row.average_price),
            commissions=self._csv_money("0" if is_reverse_split else row.commissions),
            fees=self._csv_money(row.fees),
            description=row.description,
            sub_type=row.sub_type,
        )

    def _csv_map_option_assignment(self, row: CsvTransactionRow) -> OptionAssignment:
        return OptionAssignment(
            date=mapping_parse_timestamp(row.date_text),
            symbol=row.symbol,
            action=mapping_parse_action(row.action),
            quantity=mapping_parse_quantity(row.quantity),
            value=self._csv_money(row.value),
            average_price=self._csv_money(row.average_price),
            fees=self._csv_money(row.fees),
            description=row.description,
        )

    def _csv_money(self, value_text: str) -> MonetaryAmount:
        return MonetaryAmount(amount=mapping_parse_decimal(value_text), currency=self._currency)


def mapping_is_header_row(row: CsvTransactionRow) -> bool:
    return "Date" in row.date_text


def mapping_parse_timestamp(value: str) -> datetime:
    """Parse an offset-aware ISO timestamp such as `2022-01-07T15:29:49+0100`.

    Args:
        value: Timestamp text with `+HHMM`, `+HH:MM` or `Z` offset.

    Returns:
        datetime: Offset-aware timestamp.

    Raises:
        ValueError: Raised when the text is malformed or has no offset.
    """

    normalized_value = value.strip()
    try:
        parsed_value = datetime.strptime(normalized_value, "%Y-%m-%dT%H:%M:%S%z")
    except ValueError:
        parsed_value = datetime.fromisoformat(normalized_value)
    if parsed_value.tzinfo is None or parsed_value.utcoffset() is None:
        raise ValueError(f"timestamp must include an offset: {value!r}")
    return parsed_value


def mapping_parse_expiration(value: str) -> date:
    """Parse an expiration date in `M/DD/YY` format."""

    return datetime.strptime(value.strip(), "%m/%d/%y").date()


def mapping_parse_decimal(value: str) -> Decimal:
    """Parse a decimal with optional thousands separators; blanks and `--` are zero.

    Args:
        value: Number text.

    Returns:
        Decimal: Exact decimal value.

    Raises:
        ValueError: Raised when the text is not a finite number.
    """

    normalized_value = value.strip().replace(",", "")
    if normalized_value in _EMPTY_NUMBER_VALUES:
        return Decimal("0")
    try:
        parsed_value = Decimal(normalized_value)
    except InvalidOperation as error:
        raise ValueError(f"invalid number: {value!r}") from error
    if not parsed_value.is_finite():
        raise ValueError(f"invalid number: {value!r}")
    return parsed_value


def mapping_parse_quantity(value: str) -> int:
    """Parse a whole, positive quantity; `100.0` is accepted, `1.5` is not."""

    parsed_value = mapping_parse_decimal(value)
    if parsed_value != parsed_value.to_integral_value():
        raise ValueError(f"quantity must be a whole number: {value!r}")
    return abs(int(parsed_value))


def mapping_parse_action(value: str) -> TradeAction:
    try:
        return TradeAction(value.strip().upper())
    except ValueError as error:
        raise ValueError(f"unknown action: {value!r}") from error


__all__ = [
    "CSV_COLUMN_COUNT",
    "CsvTransactionRow",
    "TransactionCsvReader",
    "mapping_is_header_row",
    "mapping_parse_action",
    "mapping_parse_decimal",
    "mapping_parse_expiration",
    "mapping_parse_quantity",
    "mapping_parse_timestamp",
]
