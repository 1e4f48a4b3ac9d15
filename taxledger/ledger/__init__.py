"""Ledger layer package for FIFO position matching."""

from .interfaces import (
	LedgerPort,
	MatchEvent,
	MatchEventSink,
	OptionClosed,
	OptionOpened,
	OptionRemoved,
	OptionShortPosition,
	PositionCloseResult,
	StockClosed,
	StockOpened,
	StockPosition,
)
from .position_ledger import PositionLedger, RemovalQuantityPolicy

__all__ = [
	"LedgerPort",
	"MatchEvent",
	"MatchEventSink",
	"OptionClosed",
	"OptionOpened",
	"OptionRemoved",
	"OptionShortPosition",
	"PositionCloseResult",
	"PositionLedger",
	"RemovalQuantityPolicy",
	"StockClosed",
	"StockOpened",
	"StockPosition",
]
