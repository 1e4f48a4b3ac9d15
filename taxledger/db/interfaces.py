"""Typed interfaces for persistence-layer services.

All SQL and file persistence must remain in the db package and its submodules.
"""

from contextlib import AbstractContextManager
from dataclasses import dataclass
from datetime import datetime
from pathlib import Path
from typing import Any, Protocol

from taxledger.domain import HealthStatus


class DatabaseHealthPort(Protocol):
    """Port definition for database connectivity verification."""

    def db_connection_label(self) -> str:
        """Return a stable label for the active database connection target.

        Returns:
            str: Database target label for diagnostics.

        Raises:
            RuntimeError: Raised when connection metadata is unavailable.
        """

    def db_check_health(self) -> HealthStatus:
        """Check database connectivity and return deterministic health payload.

        Returns:
            HealthStatus: Database health status payload.

        Raises:
            ConnectionError: Raised when database cannot be reached.
        """


class ProcessingRunAlreadyActiveError(RuntimeError):
    """Raised when a run is rejected because the processing lock is held."""


@dataclass(frozen=True)
class ProcessingRunState:
    """Lifecycle and outcome state for one processing run.

    Attributes:
        status: Run status (`started`, `success`, `failed`).
        started_at_utc: Run start timestamp in UTC.
        ended_at_utc: Optional run end timestamp in UTC.
        duration_ms: Optional run duration in milliseconds.
        error_code: Optional deterministic error code.
        error_message: Optional human-readable error message.
        diagnostics: Optional stage timeline payload.
    """

    status: str
    started_at_utc: datetime
    ended_at_utc: datetime | None
    duration_ms: int | None
    error_code: str | None
    error_message: str | None
    diagnostics: list[dict[str, Any]] | None


@dataclass(frozen=True)
class ProcessingRunRecord:
    """Persistence model for one processing run row.

    Attributes:
        processing_run_id: Unique run identifier.
        run_type: Trigger source (`manual`, `api`, `scheduled`).
        source_dir: Transactions directory processed by the run.
        state: Lifecycle and outcome state.
        created_at_utc: Row creation timestamp in UTC.
    """

    processing_run_id: str
    run_type: str
    source_dir: str
    state: ProcessingRunState
    created_at_utc: datetime


class ProcessingRunRepositoryPort(Protocol):
    """Port definition for processing run lifecycle persistence."""

    def db_processing_run_create_started(self, run_type: str, source_dir: str) -> ProcessingRunRecord:
        """Create a started run row.

        Args:
            run_type: Trigger source.
            source_dir: Transactions directory.

        Returns:
            ProcessingRunRecord: Started run.

        Raises:
            ProcessingRunAlreadyActiveError: Raised when another run is still started.
            RuntimeError: Raised when persistence fails.
        """

    def db_processing_run_finalize(
        self,
        processing_run_id: str,
        status: str,
        error_code: str | None,
        error_message: str | None,
        diagnostics: list[dict[str, Any]] | None,
    ) -> ProcessingRunRecord:
        """Finalize one run.

        Args:
            processing_run_id: Run identifier.
            status: Final status (`success` or `failed`).
            error_code: Optional error code.
            error_message: Optional error message.
            diagnostics: Optional stage timeline.

        Returns:
            ProcessingRunRecord: Finalized run.

        Raises:
            LookupError: Raised when the run does not exist.
            RuntimeError: Raised when persistence fails.
        """

    def db_processing_run_get_by_id(self, processing_run_id: str) -> ProcessingRunRecord | None:
        """Fetch one run by id."""

    def db_processing_run_list(self, limit: int, offset: int) -> list[ProcessingRunRecord]:
        """List runs, newest first."""


class ProcessingLockPort(Protocol):
    """Port definition for the exclusive processing lock."""

    def db_processing_lock(self, lock_name: str) -> AbstractContextManager[str]:
        """Hold the named lock for the duration of a `with` block.

        Args:
            lock_name: Lock identity.

        Returns:
            AbstractContextManager[str]: Context yielding the lock owner id.

        Raises:
            ProcessingRunAlreadyActiveError: Raised when the lock is already held.
            RuntimeError: Raised when persistence fails.
        """


class SnapshotStorePort(Protocol):
    """Port definition for snapshot file persistence."""

    def snapshot_write(self, payload: bytes, path: Path) -> None:
        """Write snapshot bytes to a path."""

    def snapshot_read(self, path: Path) -> bytes:
        """Read snapshot bytes from a path."""

    def snapshot_list_candidates(self, directory: Path) -> list[str]:
        """List snapshot file names in a directory, sorted ascending."""

    def snapshot_latest_path(self, directory: Path) -> Path | None:
        """Return the path of the latest snapshot, or None."""

    def snapshot_build_filename(self, last_transaction_date: datetime) -> str:
        """Return the snapshot file name for the given date."""

    def snapshot_build_path(self, directory: Path, last_transaction_date: datetime) -> Path:
        """Return the path a snapshot for the given date is written to."""


__all__ = [
    "DatabaseHealthPort",
    "ProcessingLockPort",
    "ProcessingRunAlreadyActiveError",
    "ProcessingRunRecord",
    "ProcessingRunRepositoryPort",
    "ProcessingRunState",
    "SnapshotStorePort",
]
