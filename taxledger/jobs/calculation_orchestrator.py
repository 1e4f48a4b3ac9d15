"""Job-layer calculation orchestrator with stage timeline persistence."""

from __future__ import annotations

import logging
import traceback
from dataclasses import dataclass
from datetime import datetime, timezone
from pathlib import Path

from taxledger.analytics import FiscalYearAggregator
from taxledger.db import ProcessingLockPort, ProcessingRunRepositoryPort, SnapshotStorePort
from taxledger.domain import TaxLedgerError, Transaction, domain_build_stage_event, domain_elapsed_ms
from taxledger.ledger import PositionLedger
from taxledger.mapping import TransactionCsvReader
from taxledger.snapshot import SnapshotCodec, snapshot_decode, snapshot_encode

from .interfaces import JobExecutionResult, JobOrchestratorPort
from .report import job_build_fiscal_year_report, job_report_to_payload

logger = logging.getLogger(__name__)

UNEXPECTED_ERROR_CODE = "UNEXPECTED_ERROR"


@dataclass(frozen=True)
class CalculationOrchestratorConfig:
    """Configuration values for calculation runs.

    Attributes:
        transactions_dir: Directory holding broker CSV exports.
        snapshot_dir: Directory holding snapshot files.
        lock_name: Name of the exclusive processing lock.
        run_type: Run source type (`manual`, `api`, `scheduled`).
    """

    transactions_dir: Path
    snapshot_dir: Path
    lock_name: str = "tax_calculation"
    run_type: str = "manual"


class CalculationOrchestrator(JobOrchestratorPort):
    """Runs one calculation: resume, read, match, aggregate, report, checkpoint.

    Ledger, aggregator and codec belong to this run. Every transaction is applied
    to the ledger and its events are handed to the aggregator before the next one.
    """

    _CALCULATION_JOB_NAME = "calculation_run"

    def __init__(
        self,
        run_repository: ProcessingRunRepositoryPort | ProcessingLockPort,
        snapshot_store: SnapshotStorePort,
        csv_reader: TransactionCsvReader,
        ledger: PositionLedger,
        aggregator: FiscalYearAggregator,
        config: CalculationOrchestratorConfig,
        codec: SnapshotCodec | None = None,
    ):
        """Initialize calculation orchestrator dependencies.

        Args:
            run_repository: DB-layer run registry that also provides the processing lock.
            snapshot_store: Snapshot file persistence.
            csv_reader: Broker CSV reader.
            ledger: Position ledger for this run.
            aggregator: Fiscal year aggregator for this run.
            config: Calculation configuration.
            codec: Optional snapshot codec bound to ledger and aggregator.

        Raises:
            ValueError: Raised when dependencies or config values are invalid.
        """

        if run_repository is None:
            raise ValueError("run_repository must not be None")
        if snapshot_store is None:
            raise ValueError("snapshot_store must not be None")
        if csv_reader is None:
            raise ValueError("csv_reader must not be None")
        if ledger is None:
            raise ValueError("ledger must not be None")
        if aggregator is None:
            raise ValueError("aggregator must not be None")
        if not config.lock_name.strip():
            raise ValueError("config.lock_name must not be blank")
        if not config.run_type.strip():
            raise ValueError("config.run_type must not be blank")

        self._run_repository = run_repository
        self._snapshot_store = snapshot_store
        self._csv_reader = csv_reader
        self._ledger = ledger
        self._aggregator = aggregator
        self._config = config
        self._codec = codec or SnapshotCodec(ledger=ledger, aggregator=aggregator)

    def job_supported_names(self) -> tuple[str, ...]:
        return (self._CALCULATION_JOB_NAME,)

    def job_execute(self, job_name: str) -> JobExecutionResult:
        """Execute the calculation workflow inside the processing lock.

        Args:
            job_name: Name of job to execute.

        Returns:
            JobExecutionResult: Final status; the report is set only on success.

        Raises:
            ValueError: Raised when job name is unsupported.
            ProcessingRunAlreadyActiveError: Raised when another run holds the lock.
            RuntimeError: Raised when the run registry itself fails, or after an
                unexpected error has been recorded as `UNEXPECTED_ERROR`.
        """

        normalized_job_name = job_name.strip()
        if normalized_job_name != self._CALCULATION_JOB_NAME:
            raise ValueError(f"unsupported job_name={normalized_job_name}")

        with self._run_repository.db_processing_lock(self._config.lock_name):
            return self._job_execute_locked(normalized_job_name)

    def _job_execute_locked(self, normalized_job_name: str) -> JobExecutionResult:
        timeline: list[dict[str, object]] = []
        timeline.append(domain_build_stage_event(stage="run", status="started"))

        run_record = self._run_repository.db_processing_run_create_started(
            run_type=self._config.run_type,
            source_dir=str(self._config.transactions_dir),
        )
        logger.info("Started processing run %s", run_record.processing_run_id)

        try:
            self._job_restore_latest_snapshot(timeline)

            timeline.append(domain_build_stage_event(stage="read", status="started"))
            transactions = self._csv_reader.csv_read_directory(
                self._config.transactions_dir,
                excluded_dir_name=self._config.snapshot_dir.name,
            )
            timeline.append(
                domain_build_stage_event(
                    stage="read",
                    status="completed",
                    details={"transaction_count": len(transactions)},
                )
            )

            self._job_apply_transactions(transactions, timeline)

            report = job_build_fiscal_year_report(
                states=self._aggregator.fiscal_year_states(),
                home_currency=self._aggregator.home_currency,
                last_transaction_date=self._codec.last_transaction_date,
            )
            timeline.append(
                domain_build_stage_event(stage="report", status="completed", details=job_report_to_payload(report))
            )

            self._job_save_snapshot(processed_count=len(transactions), timeline=timeline)

            timeline.append(domain_build_stage_event(stage="run", status="success"))
            self._run_repository.db_processing_run_finalize(
                processing_run_id=run_record.processing_run_id,
                status="success",
                error_code=None,
                error_message=None,
                diagnostics=timeline,
            )
            logger.info("Processing run %s succeeded", run_record.processing_run_id)
            return JobExecutionResult(
                job_name=normalized_job_name,
                status="success",
                processing_run_id=run_record.processing_run_id,
                report=report,
            )
        except (TaxLedgerError, TimeoutError, ConnectionError, ValueError, RuntimeError) as error:
            error_code = self._job_record_failure(run_record.processing_run_id, error, timeline)
            return JobExecutionResult(
                job_name=normalized_job_name,
                status="failed",
                processing_run_id=run_record.processing_run_id,
                error_code=error_code,
                error_message=str(error),
            )
        except Exception as error:
            self._job_record_failure(run_record.processing_run_id, error, timeline)
            raise RuntimeError("calculation run failed unexpectedly") from error

    def _job_record_failure(
        self,
        processing_run_id: str,
        error: Exception,
        timeline: list[dict[str, object]],
    ) -> str:
        """Append the failure event and finalize the run as failed.

        Args:
            processing_run_id: Run identifier.
            error: Exception that ended the run.
            timeline: Stage timeline of the run.

        Returns:
            str: Error code recorded on the run.

        Raises:
            RuntimeError: Raised when the run registry itself fails.
        """

        error_code = self._job_error_code_for_exception(error)
        logger.error("Processing run %s failed with %s: %s", processing_run_id, error_code, error)

        failure_details: dict[str, object] = {
            "error_code": error_code,
            "error_type": type(error).__name__,
            "error_message": str(error),
            "traceback": traceback.format_exc(),
        }
        if isinstance(error, TaxLedgerError) and error.details:
            failure_details["error_details"] = {key: str(value) for key, value in error.details.items()}
        timeline.append(domain_build_stage_event(stage="run", status="failed", details=failure_details))
        self._run_repository.db_processing_run_finalize(
            processing_run_id=processing_run_id,
            status="failed",
            error_code=error_code,
            error_message=str(error),
            diagnostics=timeline,
        )
        return error_code

    def _job_restore_latest_snapshot(self, timeline: list[dict[str, object]]) -> None:
        """Restore ledger and aggregator from the latest snapshot, or start empty.

        Raises:
            SnapshotSerializationError: Raised when the snapshot cannot be read or decoded.
        """

        timeline.append(domain_build_stage_event(stage="restore", status="started"))
        snapshot_path = self._snapshot_store.snapshot_latest_path(self._config.snapshot_dir)
        if snapshot_path is None:
            self._ledger.ledger_reset()
            self._aggregator.reset()
            logger.info("No snapshot found. Processing all transactions from scratch.")
            timeline.append(
                domain_build_stage_event(
                    stage="restore",
                    status="completed",
                    details={"restore_skip_reason": "no_snapshot_found"},
                )
            )
            return

        snapshot = snapshot_decode(self._snapshot_store.snapshot_read(snapshot_path))
        self._codec.restore(snapshot)
        timeline.append(
            domain_build_stage_event(
                stage="restore",
                status="completed",
                details={
                    "snapshot_path": str(snapshot_path),
                    "last_transaction_date": snapshot.metadata.last_transaction_date.isoformat(),
                },
            )
        )

    def _job_apply_transactions(self, transactions: list[Transaction], timeline: list[dict[str, object]]) -> None:
        timeline.append(domain_build_stage_event(stage="apply", status="started"))
        apply_started_at = datetime.now(timezone.utc)
        event_count = 0
        for transaction in transactions:
            self._codec.snapshot_guard_transaction(transaction)
            for event in self._ledger.ledger_apply(transaction):
                self._aggregator.on_match_event(event)
                event_count += 1
        timeline.append(
            domain_build_stage_event(
                stage="apply",
                status="completed",
                details={
                    "transaction_count": len(transactions),
                    "match_event_count": event_count,
                    "apply_duration_ms": domain_elapsed_ms(apply_started_at),
                },
            )
        )

    def _job_save_snapshot(self, processed_count: int, timeline: list[dict[str, object]]) -> None:
        """Write a new snapshot when this run applied at least one transaction.

        Raises:
            SnapshotSerializationError: Raised when encoding or writing fails.
            DataInconsistencyError: Raised when a reverse split leg is unmatched.
        """

        last_transaction_date = self._codec.last_transaction_date
        if processed_count == 0 or last_transaction_date is None:
            timeline.append(
                domain_build_stage_event(
                    stage="snapshot",
                    status="completed",
                    details={"snapshot_skip_reason": "no_transactions_processed"},
                )
            )
            logger.info("No transactions processed, snapshot not updated")
            return

        timeline.append(domain_build_stage_event(stage="snapshot", status="started"))
        payload = snapshot_encode(self._codec.snapshot(last_transaction_date))
        snapshot_path = self._snapshot_store.snapshot_build_path(self._config.snapshot_dir, last_transaction_date)
        self._snapshot_store.snapshot_write(payload, snapshot_path)
        timeline.append(
            domain_build_stage_event(
                stage="snapshot",
                status="completed",
                details={"snapshot_path": str(snapshot_path), "snapshot_bytes": len(payload)},
            )
        )

    def _job_error_code_for_exception(self, error: Exception) -> str:
        if isinstance(error, TaxLedgerError):
            return error.error_code
        return UNEXPECTED_ERROR_CODE


__all__ = [
    "CalculationOrchestrator",
    "CalculationOrchestratorConfig",
    "UNEXPECTED_ERROR_CODE",
]
