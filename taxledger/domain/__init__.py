"""Domain value objects, transaction variants and error taxonomy."""

from .errors import (
	ConfigurationError,
	CsvMappingError,
	DataInconsistencyError,
	InsufficientOpenQuantityError,
	MissingExchangeRateError,
	NoOpenPositionError,
	OrderingViolationError,
	QuantityConservationError,
	RemovalQuantityMismatchError,
	ReverseSplitMismatchError,
	SnapshotSerializationError,
	TaxLedgerError,
	UnknownActionError,
)
from .models import HealthStatus
from .money import EUR, USD, MonetaryAmount, money, money_zero, usd
from .timeline import domain_build_stage_event, domain_elapsed_ms
from .transactions import (
	REVERSE_SPLIT_SUB_TYPE,
	CallOrPut,
	OptionAssignment,
	OptionKey,
	OptionRemoval,
	OptionStatus,
	OptionTrade,
	StockOpeningTrade,
	StockTrade,
	TradeAction,
	Transaction,
	transaction_sort_key,
)

__all__ = [
	"EUR",
	"REVERSE_SPLIT_SUB_TYPE",
	"USD",
	"CallOrPut",
	"ConfigurationError",
	"CsvMappingError",
	"DataInconsistencyError",
	"HealthStatus",
	"InsufficientOpenQuantityError",
	"MissingExchangeRateError",
	"MonetaryAmount",
	"NoOpenPositionError",
	"OptionAssignment",
	"OptionKey",
	"OptionRemoval",
	"OptionStatus",
	"OptionTrade",
	"OrderingViolationError",
	"QuantityConservationError",
	"RemovalQuantityMismatchError",
	"ReverseSplitMismatchError",
	"SnapshotSerializationError",
	"StockOpeningTrade",
	"StockTrade",
	"TaxLedgerError",
	"TradeAction",
	"Transaction",
	"UnknownActionError",
	"domain_build_stage_event",
	"domain_elapsed_ms",
	"money",
	"money_zero",
	"transaction_sort_key",
	"usd",
]
