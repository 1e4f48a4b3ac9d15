"""Tests for the SQLAlchemy processing run registry and processing lock."""

from __future__ import annotations

from datetime import datetime, timedelta, timezone
from pathlib import Path

import pytest
from sqlalchemy import Engine, text

from taxledger.db import (
    ProcessingRunAlreadyActiveError,
    SQLAlchemyDatabaseHealthService,
    SQLAlchemyProcessingRunService,
    db_create_engine,
    db_create_schema,
)


class _StepClock:
    """Deterministic clock advancing one second per call."""

    def __init__(self) -> None:
        self._current = datetime(2026, 1, 5, 9, 0, tzinfo=timezone.utc)

    def __call__(self) -> datetime:
        self._current = self._current + timedelta(seconds=1)
        return self._current


def _build_engine(tmp_path: Path) -> Engine:
    """Create a file-backed SQLite registry with the schema applied.

    Args:
        tmp_path: Pytest temporary directory.

    Returns:
        Engine: Engine bound to a fresh database file.
    """

    engine = db_create_engine(f"sqlite:///{tmp_path / 'registry.db'}")
    db_create_schema(engine)
    return engine


def test_db_processing_run_lifecycle_persists_outcome_and_diagnostics(tmp_path: Path) -> None:
    """Create, finalize and fetch one run.

    Returns:
        None: Assertions validate persisted lifecycle fields.

    Raises:
        AssertionError: Raised when persisted values differ.
    """

    service = SQLAlchemyProcessingRunService(engine=_build_engine(tmp_path), clock=_StepClock())

    started = service.db_processing_run_create_started(run_type="manual", source_dir="/data/transactions")
    finalized = service.db_processing_run_finalize(
        processing_run_id=started.processing_run_id,
        status="failed",
        error_code="DATA_INCONSISTENCY",
        error_message="no open position",
        diagnostics=[{"stage": "run", "status": "failed"}],
    )
    fetched = service.db_processing_run_get_by_id(started.processing_run_id)

    assert started.state.status == "started"
    assert started.state.ended_at_utc is None
    assert finalized.state.status == "failed"
    assert finalized.state.duration_ms == 1000
    assert fetched == finalized
    assert fetched.state.diagnostics == [{"stage": "run", "status": "failed"}]
    assert fetched.state.started_at_utc.tzinfo is not None
    assert service.db_processing_run_get_by_id("missing") is None


def test_db_processing_run_rejects_second_active_run(tmp_path: Path) -> None:
    service = SQLAlchemyProcessingRunService(engine=_build_engine(tmp_path), clock=_StepClock())
    service.db_processing_run_create_started(run_type="manual", source_dir="/data")

    with pytest.raises(ProcessingRunAlreadyActiveError):
        service.db_processing_run_create_started(run_type="api", source_dir="/data")


def test_db_processing_run_list_orders_newest_first_with_paging(tmp_path: Path) -> None:
    service = SQLAlchemyProcessingRunService(engine=_build_engine(tmp_path), clock=_StepClock())
    run_ids = []
    for _ in range(3):
        record = service.db_processing_run_create_started(run_type="manual", source_dir="/data")
        service.db_processing_run_finalize(record.processing_run_id, "success", None, None, None)
        run_ids.append(record.processing_run_id)

    first_page = service.db_processing_run_list(limit=2, offset=0)
    second_page = service.db_processing_run_list(limit=2, offset=2)

    assert [record.processing_run_id for record in first_page] == [run_ids[2], run_ids[1]]
    assert [record.processing_run_id for record in second_page] == [run_ids[0]]
    with pytest.raises(ValueError):
        service.db_processing_run_list(limit=0, offset=0)
    with pytest.raises(ValueError):
        service.db_processing_run_list(limit=1, offset=-1)


def test_db_processing_run_finalize_validates_status_and_existence(tmp_path: Path) -> None:
    service = SQLAlchemyProcessingRunService(engine=_build_engine(tmp_path), clock=_StepClock())

    with pytest.raises(ValueError):
        service.db_processing_run_finalize("any", "started", None, None, None)
    with pytest.raises(LookupError):
        service.db_processing_run_finalize("missing", "success", None, None, None)


def test_db_processing_lock_rejects_second_holder_and_releases_on_exit(tmp_path: Path) -> None:
    """Hold the lock once, reject a concurrent holder, then reacquire.

    Returns:
        None: Assertions validate exclusivity and release.

    Raises:
        AssertionError: Raised when the lock is not exclusive or not released.
    """

    engine = _build_engine(tmp_path)
    service = SQLAlchemyProcessingRunService(engine=engine)
    other_service = SQLAlchemyProcessingRunService(engine=engine)

    with service.db_processing_lock("tax_calculation") as owner_id:
        assert owner_id
        with pytest.raises(ProcessingRunAlreadyActiveError):
            with other_service.db_processing_lock("tax_calculation"):
                pass
        with other_service.db_processing_lock("another_lock"):
            pass

    with other_service.db_processing_lock("tax_calculation"):
        pass
    with engine.connect() as connection:
        assert connection.execute(text("SELECT COUNT(*) FROM processing_lock")).scalar_one() == 0


def test_db_processing_lock_is_released_when_block_raises(tmp_path: Path) -> None:
    service = SQLAlchemyProcessingRunService(engine=_build_engine(tmp_path))

    with pytest.raises(RuntimeError, match="boom"):
        with service.db_processing_lock("tax_calculation"):
            raise RuntimeError("boom")

    with service.db_processing_lock("tax_calculation"):
        pass


def test_db_processing_lock_force_release_fails_abandoned_runs(tmp_path: Path) -> None:
    engine = _build_engine(tmp_path)
    service = SQLAlchemyProcessingRunService(engine=engine, clock=_StepClock())
    with engine.begin() as connection:
        connection.execute(
            text(
                "INSERT INTO processing_lock (lock_name, owner_id, acquired_at_utc) "
                "VALUES ('tax_calculation', 'dead-owner', '2026-01-05T08:00:00+00:00')"
            )
        )
    abandoned = service.db_processing_run_create_started(run_type="manual", source_dir="/data")

    released_count = service.db_processing_lock_force_release("tax_calculation")

    assert released_count == 1
    record = service.db_processing_run_get_by_id(abandoned.processing_run_id)
    assert record.state.status == "failed"
    assert record.state.error_code == "RUN_ABANDONED"
    with service.db_processing_lock("tax_calculation"):
        pass


def test_db_health_service_reports_connectivity(tmp_path: Path) -> None:
    health_service = SQLAlchemyDatabaseHealthService(engine=_build_engine(tmp_path))

    health = health_service.db_check_health()

    assert health.status == "ok"
    assert health_service.db_connection_label().startswith("sqlite:///")


def test_db_create_engine_rejects_blank_url() -> None:
    with pytest.raises(ValueError):
        db_create_engine("   ")
