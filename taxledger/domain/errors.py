"""Typed fatal error taxonomy for ledger, aggregation and snapshot processing.

Every error carries a stable `error_code` and a `details` mapping with the
transaction, position key or dates needed to diagnose the failure without a
debugger. None of these errors are retried or auto-corrected.
"""

from __future__ import annotations

from datetime import datetime
from typing import Any


class TaxLedgerError(Exception):
    """Base error for tax ledger processing failures.

    Attributes:
        error_code: Stable machine-readable code.
        details: Structured diagnostic context.
    """

    error_code = "TAX_LEDGER_ERROR"

    def __init__(self, message: str, details: dict[str, Any] | None = None):
        super().__init__(message)
        self.details: dict[str, Any] = dict(details or {})


class DataInconsistencyError(TaxLedgerError, RuntimeError):
    """Raised when the transaction stream contradicts the ledger state."""

    error_code = "DATA_INCONSISTENCY"


class NoOpenPositionError(DataInconsistencyError):
    """Raised when a close or removal finds no open position for its key."""

    def __init__(self, position_key: str, transaction: object):
        super().__init__(
            f"no open position for key={position_key} while applying {transaction!r}",
            details={"position_key": position_key, "transaction": repr(transaction)},
        )
        self.position_key = position_key


class InsufficientOpenQuantityError(DataInconsistencyError):
    """Raised when open lots run out before a closing quantity is fully matched.

    `matched_events` holds the close events of the lots consumed before the shortfall.
    """

    def __init__(
        self,
        position_key: str,
        requested_quantity: int,
        unmatched_quantity: int,
        transaction: object,
        matched_events: tuple = (),
    ):
        super().__init__(
            f"insufficient open quantity for key={position_key}: requested={requested_quantity} "
            f"unmatched={unmatched_quantity} while applying {transaction!r}",
            details={
                "position_key": position_key,
                "requested_quantity": requested_quantity,
                "unmatched_quantity": unmatched_quantity,
                "transaction": repr(transaction),
            },
        )
        self.position_key = position_key
        self.requested_quantity = requested_quantity
        self.unmatched_quantity = unmatched_quantity
        self.matched_events = tuple(matched_events)


class RemovalQuantityMismatchError(DataInconsistencyError):
    """Raised when an option removal quantity differs from the head lot quantity."""

    def __init__(self, position_key: str, removal_quantity: int, lot_quantity: int, transaction: object):
        super().__init__(
            f"removal quantity {removal_quantity} does not match head lot quantity {lot_quantity} "
            f"for key={position_key} while applying {transaction!r}",
            details={
                "position_key": position_key,
                "removal_quantity": removal_quantity,
                "lot_quantity": lot_quantity,
                "transaction": repr(transaction),
            },
        )


class ReverseSplitMismatchError(DataInconsistencyError):
    """Raised when the two legs of a reverse split do not belong together."""


class QuantityConservationError(DataInconsistencyError):
    """Raised when a close step would break quantity conservation."""


class ConfigurationError(TaxLedgerError, ValueError):
    """Raised for caller or environment misconfiguration."""

    error_code = "CONFIGURATION_ERROR"


class UnknownActionError(ConfigurationError):
    """Raised when a transaction variant carries an action it cannot perform."""

    def __init__(self, action: object, transaction: object):
        super().__init__(
            f"unsupported action={action} for {type(transaction).__name__}: {transaction!r}",
            details={"action": str(action), "transaction": repr(transaction)},
        )


class MissingExchangeRateError(ConfigurationError):
    """Raised when no exchange rate exists for a required date."""

    def __init__(self, rate_date: object, source: str = ""):
        suffix = f" in {source}" if source else ""
        super().__init__(
            f"no exchange rate for {rate_date}{suffix}",
            details={"rate_date": str(rate_date), "source": source},
        )


class OrderingViolationError(TaxLedgerError, ValueError):
    """Raised when a transaction does not follow the last processed date."""

    error_code = "ORDERING_VIOLATION"

    def __init__(self, last_transaction_date: datetime, transaction_date: datetime, transaction: object):
        super().__init__(
            "chronological order violation: last processed transaction is "
            f"{last_transaction_date.isoformat()} but transaction dated {transaction_date.isoformat()} "
            f"is not later ({transaction!r}). Delete the snapshot files and reprocess from the beginning "
            "or supply only transactions after the last processed date.",
            details={
                "last_transaction_date": last_transaction_date.isoformat(),
                "transaction_date": transaction_date.isoformat(),
                "transaction": repr(transaction),
            },
        )
        self.last_transaction_date = last_transaction_date
        self.transaction_date = transaction_date


class SnapshotSerializationError(TaxLedgerError, RuntimeError):
    """Raised when a snapshot cannot be read, written or decoded."""

    error_code = "SNAPSHOT_SERIALIZATION_ERROR"


class CsvMappingError(TaxLedgerError, ValueError):
    """Raised when a broker CSV row cannot be classified into a transaction."""

    error_code = "CSV_MAPPING_ERROR"


__all__ = [
    "ConfigurationError",
    "CsvMappingError",
    "DataInconsistencyError",
    "InsufficientOpenQuantityError",
    "MissingExchangeRateError",
    "NoOpenPositionError",
    "OrderingViolationError",
    "QuantityConservationError",
    "RemovalQuantityMismatchError",
    "ReverseSplitMismatchError",
    "SnapshotSerializationError",
    "TaxLedgerError",
    "UnknownActionError",
]
