"""Mapping layer package for broker CSV to transaction classification."""

from .transaction_csv import (
	CSV_COLUMN_COUNT,
	CsvTransactionRow,
	TransactionCsvReader,
	mapping_parse_decimal,
	mapping_parse_expiration,
	mapping_parse_timestamp,
)

__all__ = [
	"CSV_COLUMN_COUNT",
	"CsvTransactionRow",
	"TransactionCsvReader",
	"mapping_parse_decimal",
	"mapping_parse_expiration",
	"mapping_parse_timestamp",
]
