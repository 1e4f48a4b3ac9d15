"""Job layer package for calculation orchestration and reporting."""

from .calculation_orchestrator import UNEXPECTED_ERROR_CODE, CalculationOrchestrator, CalculationOrchestratorConfig
from .interfaces import JobExecutionResult, JobOrchestratorPort
from .report import (
	FiscalYearReport,
	FiscalYearReportLine,
	job_build_fiscal_year_report,
	job_report_from_snapshot,
	job_report_line_to_payload,
	job_report_render_text,
	job_report_to_payload,
)
from .snapshot_query import LatestSnapshotQuery

__all__ = [
	"UNEXPECTED_ERROR_CODE",
	"CalculationOrchestrator",
	"CalculationOrchestratorConfig",
	"FiscalYearReport",
	"FiscalYearReportLine",
	"JobExecutionResult",
	"JobOrchestratorPort",
	"LatestSnapshotQuery",
	"job_build_fiscal_year_report",
	"job_report_from_snapshot",
	"job_report_line_to_payload",
	"job_report_render_text",
	"job_report_to_payload",
]
