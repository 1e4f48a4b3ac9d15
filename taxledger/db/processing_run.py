"""Database service for processing run lifecycle persistence and lock enforcement."""

from __future__ import annotations

import json
import logging
from collections.abc import Iterator
from contextlib import contextmanager
from datetime import datetime, timezone
from typing import Any
from uuid import uuid4

from sqlalchemy import Engine, text
from sqlalchemy.exc import IntegrityError, SQLAlchemyError

from .interfaces import (
    ProcessingLockPort,
    ProcessingRunAlreadyActiveError,
    ProcessingRunRecord,
    ProcessingRunRepositoryPort,
    ProcessingRunState,
)

logger = logging.getLogger(__name__)

_RUN_COLUMNS = (
    "processing_run_id, run_type, status, source_dir, started_at_utc, ended_at_utc, duration_ms, "
    "error_code, error_message, diagnostics, created_at_utc"
)


class SQLAlchemyProcessingRunService(ProcessingRunRepositoryPort, ProcessingLockPort):
    """SQLAlchemy-backed processing run registry and exclusive processing lock.

    Only portable SQL is issued so the registry runs on SQLite and PostgreSQL.
    The lock is a row in `processing_lock`; the primary key rejects a second holder.
    """

    def __init__(self, engine: Engine, clock=None):
        """Initialize processing run persistence service.

        Args:
            engine: SQLAlchemy engine used for all persistence operations.
            clock: Optional callable returning the current UTC datetime.

        Raises:
            ValueError: Raised when engine is None.
        """

        if engine is None:
            raise ValueError("engine must not be None")
        self._engine = engine
        self._clock = clock or (lambda: datetime.now(timezone.utc))

    @contextmanager
    def db_processing_lock(self, lock_name: str) -> Iterator[str]:
        """Hold the named processing lock for the duration of a `with` block.

        Args:
            lock_name: Lock identity.

        Yields:
            str: Owner id recorded on the lock row.

        Raises:
            ProcessingRunAlreadyActiveError: Raised when another owner holds the lock.
            RuntimeError: Raised when persistence fails.
        """

        normalized_lock_name = self._validate_non_empty_text(lock_name, "lock_name")
        owner_id = str(uuid4())
        try:
            with self._engine.begin() as connection:
                connection.execute(
                    text(
                        "INSERT INTO processing_lock (lock_name, owner_id, acquired_at_utc) "
                        "VALUES (:lock_name, :owner_id, :acquired_at_utc)"
                    ),
                    {
                        "lock_name": normalized_lock_name,
                        "owner_id": owner_id,
                        "acquired_at_utc": self._clock().isoformat(),
                    },
                )
        except IntegrityError as error:
            raise ProcessingRunAlreadyActiveError(
                f"processing lock '{normalized_lock_name}' is held by another run"
            ) from error
        except SQLAlchemyError as error:
            raise RuntimeError("failed to acquire processing lock") from error

        logger.info("Acquired processing lock %s (owner %s)", normalized_lock_name, owner_id)
        try:
            yield owner_id
        finally:
            self._db_release_lock(normalized_lock_name, owner_id)

    def db_processing_lock_force_release(self, lock_name: str) -> int:
        """Remove a stale lock row and fail runs left in `started` state.

        Intended for recovery after a process was killed while holding the lock.

        Args:
            lock_name: Lock identity.

        Returns:
            int: Number of abandoned runs marked as failed.

        Raises:
            RuntimeError: Raised when persistence fails.
        """

        normalized_lock_name = self._validate_non_empty_text(lock_name, "lock_name")
        ended_at = self._clock().isoformat()
        try:
            with self._engine.begin() as connection:
                connection.execute(
                    text("DELETE FROM processing_lock WHERE lock_name = :lock_name"),
                    {"lock_name": normalized_lock_name},
                )
                result = connection.execute(
                    text(
                        "UPDATE processing_run SET "
                        "status = 'failed', ended_at_utc = :ended_at_utc, "
                        "error_code = 'RUN_ABANDONED', error_message = :error_message "
                        "WHERE status = 'started'"
                    ),
                    {"ended_at_utc": ended_at, "error_message": "run abandoned while holding the processing lock"},
                )
        except SQLAlchemyError as error:
            raise RuntimeError("failed to release processing lock") from error

        logger.warning(
            "Force released processing lock %s, %d abandoned run(s) marked failed",
            normalized_lock_name,
            result.rowcount,
        )
        return result.rowcount

    def db_processing_run_create_started(self, run_type: str, source_dir: str) -> ProcessingRunRecord:
        """Create a started run while enforcing a single active run.

        Args:
            run_type: Trigger source (`manual`, `api`, `scheduled`).
            source_dir: Transactions directory processed by the run.

        Returns:
            ProcessingRunRecord: Newly created started run.

        Raises:
            ProcessingRunAlreadyActiveError: Raised when a started run already exists.
            ValueError: Raised when required inputs are blank.
            RuntimeError: Raised when persistence fails.
        """

        normalized_run_type = self._validate_non_empty_text(run_type, "run_type")
        normalized_source_dir = self._validate_non_empty_text(source_dir, "source_dir")
        processing_run_id = str(uuid4())
        started_at = self._clock().isoformat()

        try:
            with self._engine.begin() as connection:
                active_row = connection.execute(
                    text("SELECT processing_run_id FROM processing_run WHERE status = 'started' LIMIT 1")
                ).first()
                if active_row is not None:
                    raise ProcessingRunAlreadyActiveError("run already active")

                connection.execute(
                    text(
                        "INSERT INTO processing_run ("
                        "processing_run_id, run_type, status, source_dir, started_at_utc, created_at_utc"
                        ") VALUES ("
                        ":processing_run_id, :run_type, 'started', :source_dir, :started_at_utc, :started_at_utc"
                        ")"
                    ),
                    {
                        "processing_run_id": processing_run_id,
                        "run_type": normalized_run_type,
                        "source_dir": normalized_source_dir,
                        "started_at_utc": started_at,
                    },
                )
                return self._db_fetch_run_by_id_or_raise(connection=connection, processing_run_id=processing_run_id)
        except SQLAlchemyError as error:
            raise RuntimeError("failed to create started processing run") from error

    def db_processing_run_finalize(
        self,
        processing_run_id: str,
        status: str,
        error_code: str | None,
        error_message: str | None,
        diagnostics: list[dict[str, Any]] | None,
    ) -> ProcessingRunRecord:
        """Finalize one run with end timestamp and duration.

        Args:
            processing_run_id: Run identifier.
            status: Final status (`success` or `failed`).
            error_code: Optional deterministic error code.
            error_message: Optional human-readable message.
            diagnostics: Optional stage timeline payload.

        Returns:
            ProcessingRunRecord: Finalized run row.

        Raises:
            LookupError: Raised when run is not found.
            ValueError: Raised when final status is invalid.
            RuntimeError: Raised when persistence fails.
        """

        if status not in {"success", "failed"}:
            raise ValueError("status must be one of: success, failed")

        diagnostics_payload = None
        if diagnostics is not None:
            diagnostics_payload = json.dumps(diagnostics)

        ended_at = self._clock()
        try:
            with self._engine.begin() as connection:
                current_record = self._db_fetch_run_by_id_or_raise(
                    connection=connection, processing_run_id=processing_run_id
                )
                elapsed = ended_at - current_record.state.started_at_utc
                duration_ms = max(0, int(elapsed.total_seconds() * 1000))
                connection.execute(
                    text(
                        "UPDATE processing_run SET "
                        "status = :status, "
                        "ended_at_utc = :ended_at_utc, "
                        "duration_ms = :duration_ms, "
                        "error_code = :error_code, "
                        "error_message = :error_message, "
                        "diagnostics = :diagnostics "
                        "WHERE processing_run_id = :processing_run_id"
                    ),
                    {
                        "status": status,
                        "ended_at_utc": ended_at.isoformat(),
                        "duration_ms": duration_ms,
                        "error_code": error_code,
                        "error_message": error_message,
                        "diagnostics": diagnostics_payload,
                        "processing_run_id": processing_run_id,
                    },
                )
                return self._db_fetch_run_by_id_or_raise(connection=connection, processing_run_id=processing_run_id)
        except SQLAlchemyError as error:
            raise RuntimeError("failed to finalize processing run") from error

    def db_processing_run_get_by_id(self, processing_run_id: str) -> ProcessingRunRecord | None:
        """Fetch one processing run by id.

        Args:
            processing_run_id: Run identifier.

        Returns:
            ProcessingRunRecord | None: Matching run row or None.

        Raises:
            RuntimeError: Raised when database read fails.
        """

        try:
            with self._engine.connect() as connection:
                row = connection.execute(
                    text(f"SELECT {_RUN_COLUMNS} FROM processing_run WHERE processing_run_id = :processing_run_id"),
                    {"processing_run_id": processing_run_id},
                ).mappings().first()
        except SQLAlchemyError as error:
            raise RuntimeError("failed to fetch processing run by id") from error
        if row is None:
            return None
        return self._map_processing_run_record(row)

    def db_processing_run_list(self, limit: int, offset: int) -> list[ProcessingRunRecord]:
        """List runs, newest first.

        Args:
            limit: Maximum number of rows.
            offset: Number of rows to skip.

        Returns:
            list[ProcessingRunRecord]: Ordered run rows.

        Raises:
            ValueError: Raised when limit or offset are invalid.
            RuntimeError: Raised when database read fails.
        """

        if limit < 1:
            raise ValueError("limit must be >= 1")
        if offset < 0:
            raise ValueError("offset must be >= 0")

        try:
            with self._engine.connect() as connection:
                rows = connection.execute(
                    text(
                        f"SELECT {_RUN_COLUMNS} FROM processing_run "
                        "ORDER BY started_at_utc DESC, processing_run_id DESC "
                        "LIMIT :limit OFFSET :offset"
                    ),
                    {"limit": limit, "offset": offset},
                ).mappings().all()
        except SQLAlchemyError as error:
            raise RuntimeError("failed to list processing runs") from error
        return [self._map_processing_run_record(row) for row in rows]

    def _db_release_lock(self, lock_name: str, owner_id: str) -> None:
        try:
            with self._engine.begin() as connection:
                connection.execute(
                    text("DELETE FROM processing_lock WHERE lock_name = :lock_name AND owner_id = :owner_id"),
                    {"lock_name": lock_name, "owner_id": owner_id},
                )
        except SQLAlchemyError as error:
            raise RuntimeError("failed to release processing lock") from error
        logger.info("Released processing lock %s (owner %s)", lock_name, owner_id)

    def _db_fetch_run_by_id_or_raise(self, connection, processing_run_id: str) -> ProcessingRunRecord:
        row = connection.execute(
            text(f"SELECT {_RUN_COLUMNS} FROM processing_run WHERE processing_run_id = :processing_run_id"),
            {"processing_run_id": processing_run_id},
        ).mappings().first()
        if row is None:
            raise LookupError("processing run not found")
        return self._map_processing_run_record(row)

    def _map_processing_run_record(self, row: Any) -> ProcessingRunRecord:
        """Map SQLAlchemy row mapping to typed processing run record.

        Args:
            row: SQLAlchemy mapping row.

        Returns:
            ProcessingRunRecord: Typed run record.

        Raises:
            TypeError: Raised when diagnostics are not a JSON array.
        """

        diagnostics_value = row["diagnostics"]
        if diagnostics_value is not None:
            diagnostics_value = json.loads(diagnostics_value)
            if not isinstance(diagnostics_value, list):
                raise TypeError("processing_run.diagnostics must be a JSON array when present")

        return ProcessingRunRecord(
            processing_run_id=row["processing_run_id"],
            run_type=row["run_type"],
            source_dir=row["source_dir"],
            state=ProcessingRunState(
                status=row["status"],
                started_at_utc=_parse_utc_text(row["started_at_utc"]),
                ended_at_utc=_parse_utc_text(row["ended_at_utc"]),
                duration_ms=row["duration_ms"],
                error_code=row["error_code"],
                error_message=row["error_message"],
                diagnostics=diagnostics_value,
            ),
            created_at_utc=_parse_utc_text(row["created_at_utc"]),
        )

    def _validate_non_empty_text(self, value: str, field_name: str) -> str:
        stripped_value = value.strip()
        if not stripped_value:
            raise ValueError(f"{field_name} must not be blank")
        return stripped_value


def _parse_utc_text(value: str | None) -> datetime | None:
    if value is None:
        return None
    return datetime.fromisoformat(value)


__all__ = ["SQLAlchemyProcessingRunService"]
