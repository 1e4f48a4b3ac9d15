"""Typed interfaces for job-layer orchestration responsibilities."""

from dataclasses import dataclass
from typing import Protocol

from .report import FiscalYearReport


@dataclass(frozen=True)
class JobExecutionResult:
    """Result contract for calculation workflow execution.

    Attributes:
        job_name: Job identifier.
        status: Final execution state (`success` or `failed`).
        processing_run_id: Identifier of the persisted processing run.
        error_code: Error code when the run failed.
        error_message: Diagnostic message when the run failed.
        report: Fiscal year report, present only on success.
    """

    job_name: str
    status: str
    processing_run_id: str | None = None
    error_code: str | None = None
    error_message: str | None = None
    report: FiscalYearReport | None = None


class JobOrchestratorPort(Protocol):
    """Port definition for orchestrating calculation jobs."""

    def job_supported_names(self) -> tuple[str, ...]:
        """Return the set of workflow names this orchestrator can execute.

        Returns:
            tuple[str, ...]: Deterministic list of supported job names.
        """

    def job_execute(self, job_name: str) -> JobExecutionResult:
        """Execute one named workflow in the job layer.

        Args:
            job_name: Workflow name.

        Returns:
            JobExecutionResult: Final execution status payload.

        Raises:
            ValueError: Raised when the job name is unsupported.
            ProcessingRunAlreadyActiveError: Raised when another run holds the lock.
        """


__all__ = ["JobExecutionResult", "JobOrchestratorPort"]
