"""Fiscal year report construction and rendering."""

from __future__ import annotations

import logging
from dataclasses import dataclass
from datetime import datetime
from decimal import ROUND_HALF_UP, Decimal
from typing import Any

from taxledger.analytics import FiscalYearState, ProfitsSummary
from taxledger.domain import SnapshotSerializationError
from taxledger.snapshot import StateSnapshot

logger = logging.getLogger(__name__)

_DISPLAY_QUANTUM = Decimal("0.01")


@dataclass(frozen=True)
class FiscalYearReportLine:
    """Totals of one tax year.

    Attributes:
        year: Tax year.
        profits: Option profit, option loss and stock profit in home currency.
    """

    year: int
    profits: ProfitsSummary


@dataclass(frozen=True)
class FiscalYearReport:
    """Per-year totals for every touched tax year, ordered by year.

    Attributes:
        home_currency: Reporting currency code.
        lines: One line per touched tax year.
        last_transaction_date: Date of the last transaction reflected in the totals.
    """

    home_currency: str
    lines: tuple[FiscalYearReportLine, ...]
    last_transaction_date: datetime | None = None

    def report_line_for(self, year: int) -> FiscalYearReportLine | None:
        for line in self.lines:
            if line.year == year:
                return line
        return None


def job_build_fiscal_year_report(
    states: list[FiscalYearState],
    home_currency: str,
    last_transaction_date: datetime | None = None,
) -> FiscalYearReport:
    """Build a report from fiscal year accumulator states.

    Args:
        states: Accumulators of every touched tax year.
        home_currency: Reporting currency code.
        last_transaction_date: Optional date of the last applied transaction.

    Returns:
        FiscalYearReport: Report ordered by year.
    """

    lines = tuple(
        FiscalYearReportLine(year=state.year, profits=state.fiscal_year_profits())
        for state in sorted(states, key=lambda item: item.year)
    )
    return FiscalYearReport(
        home_currency=home_currency,
        lines=lines,
        last_transaction_date=last_transaction_date,
    )


def job_report_from_snapshot(snapshot: StateSnapshot, home_currency: str) -> FiscalYearReport:
    """Build a report from a decoded snapshot without running a calculation.

    Totals are labelled with the currency stored in the snapshot. The configured
    home currency is used only when the snapshot holds no tax year.

    Args:
        snapshot: Decoded snapshot.
        home_currency: Configured reporting currency code.

    Returns:
        FiscalYearReport: Totals stored in the snapshot.

    Raises:
        SnapshotSerializationError: Raised when snapshot totals mix currencies.
    """

    snapshot_currencies = {
        amount.currency
        for state in snapshot.fiscal_years
        for amount in (state.profit_from_options, state.loss_from_options, state.profit_from_stocks)
    }
    if len(snapshot_currencies) > 1:
        raise SnapshotSerializationError(
            "snapshot fiscal year totals use more than one currency",
            details={"currencies": ",".join(sorted(snapshot_currencies))},
        )
    report_currency = snapshot_currencies.pop() if snapshot_currencies else home_currency
    if report_currency != home_currency:
        logger.warning(
            "Snapshot totals are in %s while the configured home currency is %s",
            report_currency,
            home_currency,
        )

    return job_build_fiscal_year_report(
        states=snapshot.fiscal_years,
        home_currency=report_currency,
        last_transaction_date=snapshot.metadata.last_transaction_date,
    )


def job_report_line_to_payload(line: FiscalYearReportLine) -> dict[str, Any]:
    return {
        "year": line.year,
        "profit_from_options": str(line.profits.profit_from_options.amount),
        "loss_from_options": str(line.profits.loss_from_options.amount),
        "profit_from_stocks": str(line.profits.profit_from_stocks.amount),
    }


def job_report_to_payload(report: FiscalYearReport) -> dict[str, Any]:
    """Convert a report to a JSON-safe payload with decimal strings.

    Args:
        report: Fiscal year report.

    Returns:
        dict[str, Any]: Payload for diagnostics and API responses.
    """

    last_transaction_date = None
    if report.last_transaction_date is not None:
        last_transaction_date = report.last_transaction_date.isoformat()
    return {
        "home_currency": report.home_currency,
        "last_transaction_date": last_transaction_date,
        "fiscal_years": [job_report_line_to_payload(line) for line in report.lines],
    }


def job_report_render_text(report: FiscalYearReport) -> str:
    """Render a report as a fixed-width text table, amounts rounded to cents.

    Args:
        report: Fiscal year report.

    Returns:
        str: Printable table.
    """

    header = (
        f"{'Year':<6}{'Option profit':>18}{'Option loss':>18}{'Stock profit':>18}  ({report.home_currency})"
    )
    rendered_lines = [header, "-" * len(header)]
    for line in report.lines:
        rendered_lines.append(
            f"{line.year:<6}"
            f"{_report_display(line.profits.profit_from_options.amount):>18}"
            f"{_report_display(line.profits.loss_from_options.amount):>18}"
            f"{_report_display(line.profits.profit_from_stocks.amount):>18}"
        )
    if not report.lines:
        rendered_lines.append("no transactions processed")
    if report.last_transaction_date is not None:
        rendered_lines.append(f"Last transaction: {report.last_transaction_date.isoformat()}")
    return "\n".join(rendered_lines)


def _report_display(amount: Decimal) -> str:
    return f"{amount.quantize(_DISPLAY_QUANTUM, rounding=ROUND_HALF_UP):,}"


__all__ = [
    "FiscalYearReport",
    "FiscalYearReportLine",
    "job_build_fiscal_year_report",
    "job_report_from_snapshot",
    "job_report_line_to_payload",
    "job_report_render_text",
    "job_report_to_payload",
]
