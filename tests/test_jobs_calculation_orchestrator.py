"""Regression tests for calculation runs: resume, checkpoint, failure and locking."""

from __future__ import annotations

import json
from decimal import Decimal
from pathlib import Path

import pytest

from taxledger.adapters import StaticExchangeRateRepository
from taxledger.analytics import CurrencyConverter, FiscalYearAggregator, tax_resolve_timezone
from taxledger.bootstrap import bootstrap_create_calculation_orchestrator, bootstrap_create_run_service
from taxledger.config import AppSettings
from taxledger.db import FileSnapshotStore, ProcessingRunAlreadyActiveError
from taxledger.jobs import CalculationOrchestrator, CalculationOrchestratorConfig
from taxledger.ledger import PositionLedger
from taxledger.mapping import TransactionCsvReader

_HEADER = (
    "Date,Type,Sub Type,Action,Symbol,Instrument Type,Description,Value,Quantity,Average Price,"
    "Commissions,Fees,Multiplier,Root Symbol,Underlying Symbol,Expiration Date,Strike Price,Call or Put,Order #"
)
_OPTION_COLUMNS = "100,SPY,SPY,2/18/22,430,PUT"


def _option_row(timestamp: str, action: str, quantity: int, value: str) -> str:
    return (
        f"{timestamp},Trade,{action},{action},SPY   220218P00430000,Equity Option,{action} SPY,"
        f"{value},{quantity},{Decimal(value) / quantity},0.00,0.00,{_OPTION_COLUMNS},"
    )


def _build_settings(tmp_path: Path) -> AppSettings:
    """Create settings pointing every path at a temporary directory.

    Args:
        tmp_path: Pytest temporary directory.

    Returns:
        AppSettings: Settings with SQLite registry and 1 USD = 0.5 EUR rates.
    """

    rate_file = tmp_path / "eurofxref-hist.csv"
    rate_file.write_text(
        "Date,USD\n2022-02-01,2.0\n2022-01-20,2.0\n2022-01-03,2.0\n",
        encoding="utf-8",
    )
    transactions_dir = tmp_path / "transactions"
    transactions_dir.mkdir()
    return AppSettings(
        database_url=f"sqlite:///{tmp_path / 'registry.db'}",
        transactions_dir=transactions_dir,
        exchange_rate_file=rate_file,
    )


def _write_transactions(settings: AppSettings, file_name: str, *rows: str) -> None:
    (settings.transactions_dir / file_name).write_text("\n".join((_HEADER, *rows)) + "\n", encoding="utf-8")


def _run(settings: AppSettings):
    return bootstrap_create_calculation_orchestrator(settings).job_execute(job_name="calculation_run")


def test_jobs_calculation_run_reports_totals_and_writes_snapshot(tmp_path: Path) -> None:
    """Process one export end to end.

    Returns:
        None: Assertions validate report totals, snapshot file and run row.

    Raises:
        AssertionError: Raised when the run outcome differs.
    """

    settings = _build_settings(tmp_path)
    _write_transactions(
        settings,
        "2022-01.csv",
        _option_row("2022-01-03T15:29:49+0100", "SELL_TO_OPEN", 1, "455.00"),
        _option_row("2022-01-20T16:01:02+0100", "BUY_TO_CLOSE", 1, "-120.00"),
    )

    result = _run(settings)

    assert result.status == "success"
    assert result.error_code is None
    report_line = result.report.report_line_for(2022)
    assert report_line.profits.profit_from_options.amount == Decimal("167.5")
    assert report_line.profits.loss_from_options.amount == Decimal("0")
    assert [path.name for path in settings.settings_snapshot_dir().iterdir()] == ["snapshot-2022-01-20-160102.json"]

    run_record = bootstrap_create_run_service(settings).db_processing_run_get_by_id(result.processing_run_id)
    assert run_record.state.status == "success"
    stages = [(event["stage"], event["status"]) for event in run_record.state.diagnostics]
    assert ("report", "completed") in stages
    assert stages[-1] == ("run", "success")


def test_jobs_calculation_run_resumes_from_latest_snapshot(tmp_path: Path) -> None:
    settings = _build_settings(tmp_path)
    _write_transactions(
        settings,
        "2022-01.csv",
        _option_row("2022-01-03T15:29:49+0100", "SELL_TO_OPEN", 2, "910.00"),
        _option_row("2022-01-20T16:01:02+0100", "BUY_TO_CLOSE", 1, "-120.00"),
    )
    assert _run(settings).status == "success"

    (settings.transactions_dir / "2022-01.csv").unlink()
    _write_transactions(
        settings,
        "2022-02.csv",
        _option_row("2022-02-01T10:00:00+0100", "BUY_TO_CLOSE", 1, "-100.00"),
    )
    result = _run(settings)

    assert result.status == "success"
    assert result.report.report_line_for(2022).profits.profit_from_options.amount == Decimal("345.0")
    snapshot_names = sorted(path.name for path in settings.settings_snapshot_dir().iterdir())
    assert snapshot_names == ["snapshot-2022-01-20-160102.json", "snapshot-2022-02-01-100000.json"]
    latest_document = json.loads((settings.settings_snapshot_dir() / snapshot_names[-1]).read_text(encoding="utf-8"))
    assert latest_document["positions"]["options"] == {}


def test_jobs_calculation_run_rejects_already_processed_transactions(tmp_path: Path) -> None:
    settings = _build_settings(tmp_path)
    _write_transactions(
        settings,
        "2022-01.csv",
        _option_row("2022-01-03T15:29:49+0100", "SELL_TO_OPEN", 1, "455.00"),
    )
    assert _run(settings).status == "success"

    result = _run(settings)

    assert result.status == "failed"
    assert result.error_code == "ORDERING_VIOLATION"
    assert len(list(settings.settings_snapshot_dir().iterdir())) == 1


def test_jobs_calculation_run_failure_is_recorded_without_snapshot(tmp_path: Path) -> None:
    """Record a data inconsistency as a failed run and keep the snapshot untouched.

    Returns:
        None: Assertions validate failed status and diagnostics.

    Raises:
        AssertionError: Raised when the failure is not recorded as expected.
    """

    settings = _build_settings(tmp_path)
    _write_transactions(
        settings,
        "2022-01.csv",
        _option_row("2022-01-20T16:01:02+0100", "BUY_TO_CLOSE", 1, "-120.00"),
    )

    result = _run(settings)

    assert result.status == "failed"
    assert result.error_code == "DATA_INCONSISTENCY"
    assert result.report is None
    assert not settings.settings_snapshot_dir().exists()

    run_record = bootstrap_create_run_service(settings).db_processing_run_get_by_id(result.processing_run_id)
    assert run_record.state.status == "failed"
    assert run_record.state.error_code == "DATA_INCONSISTENCY"
    failure_event = run_record.state.diagnostics[-1]
    assert failure_event["status"] == "failed"
    assert failure_event["details"]["error_type"] == "NoOpenPositionError"
    assert "position_key" in failure_event["details"]["error_details"]


def test_jobs_calculation_run_without_transactions_keeps_snapshot_state(tmp_path: Path) -> None:
    settings = _build_settings(tmp_path)

    result = _run(settings)

    assert result.status == "success"
    assert result.report.lines == ()
    assert not settings.settings_snapshot_dir().exists()


def test_jobs_calculation_run_missing_exchange_rate_fails_run(tmp_path: Path) -> None:
    settings = _build_settings(tmp_path)
    _write_transactions(
        settings,
        "2022-03.csv",
        _option_row("2022-03-01T10:00:00+0100", "SELL_TO_OPEN", 1, "50.00"),
    )

    result = _run(settings)

    assert result.status == "failed"
    assert result.error_code == "CONFIGURATION_ERROR"


def test_jobs_calculation_run_is_rejected_while_lock_is_held(tmp_path: Path) -> None:
    settings = _build_settings(tmp_path)
    run_service = bootstrap_create_run_service(settings)

    with run_service.db_processing_lock(settings.processing_lock_name):
        with pytest.raises(ProcessingRunAlreadyActiveError):
            _run(settings)

    assert run_service.db_processing_run_list(limit=10, offset=0) == []


def test_jobs_calculation_run_rejects_unsupported_job_name(tmp_path: Path) -> None:
    orchestrator = bootstrap_create_calculation_orchestrator(_build_settings(tmp_path))

    assert orchestrator.job_supported_names() == ("calculation_run",)
    with pytest.raises(ValueError):
        orchestrator.job_execute(job_name="reprocess_run")


class _TypeErrorLedger(PositionLedger):
    """Ledger stub that fails with an error outside the tax ledger error family."""

    def ledger_apply(self, transaction):
        raise TypeError("unexpected lot state")


def _build_orchestrator_with_ledger(settings: AppSettings, ledger: PositionLedger) -> CalculationOrchestrator:
    report_timezone = tax_resolve_timezone(settings.report_timezone)
    return CalculationOrchestrator(
        run_repository=bootstrap_create_run_service(settings),
        snapshot_store=FileSnapshotStore(report_timezone=report_timezone),
        csv_reader=TransactionCsvReader(),
        ledger=ledger,
        aggregator=FiscalYearAggregator(
            converter=CurrencyConverter(
                exchange_rates=StaticExchangeRateRepository({"2022-01": Decimal("0.5")}),
                report_timezone=report_timezone,
            )
        ),
        config=CalculationOrchestratorConfig(
            transactions_dir=settings.transactions_dir,
            snapshot_dir=settings.settings_snapshot_dir(),
            lock_name=settings.processing_lock_name,
        ),
    )


def test_jobs_calculation_run_unexpected_error_is_recorded_and_releases_registry(tmp_path: Path) -> None:
    """Record an unexpected error as a failed run so the next run can start.

    Returns:
        None: Assertions validate failed run row and a successful follow-up run.

    Raises:
        AssertionError: Raised when the failed run stays started or blocks later runs.
    """

    settings = _build_settings(tmp_path)
    _write_transactions(
        settings,
        "2022-01.csv",
        _option_row("2022-01-03T15:29:49+0100", "SELL_TO_OPEN", 1, "455.00"),
    )
    orchestrator = _build_orchestrator_with_ledger(settings, _TypeErrorLedger())

    with pytest.raises(RuntimeError) as error_info:
        orchestrator.job_execute(job_name="calculation_run")
    assert isinstance(error_info.value.__cause__, TypeError)

    run_service = bootstrap_create_run_service(settings)
    failed_run = run_service.db_processing_run_list(limit=10, offset=0)[0]
    assert failed_run.state.status == "failed"
    assert failed_run.state.error_code == "UNEXPECTED_ERROR"
    assert failed_run.state.diagnostics[-1]["details"]["error_type"] == "TypeError"

    result = _run(settings)

    assert result.status == "success"
    assert result.report.lines[0].profits.profit_from_options.amount == Decimal("227.5")
