"""Snapshot-backed read API routers for fiscal year totals and open positions."""

from __future__ import annotations

from collections.abc import Callable

from fastapi import APIRouter, status
from fastapi.responses import JSONResponse

from taxledger.config import AppSettings
from taxledger.domain import SnapshotSerializationError
from taxledger.jobs import (
    LatestSnapshotQuery,
    job_report_from_snapshot,
    job_report_line_to_payload,
    job_report_to_payload,
)
from taxledger.ledger import OptionShortPosition, StockPosition
from taxledger.snapshot import StateSnapshot


def api_create_fiscal_years_router(settings: AppSettings, snapshot_query: LatestSnapshotQuery) -> APIRouter:
    """Create router exposing fiscal year totals of the latest snapshot.

    Args:
        settings: Runtime settings providing the home currency.
        snapshot_query: Latest snapshot reader.

    Returns:
        APIRouter: Router exposing `/fiscal-years` endpoints.

    Raises:
        ValueError: Raised when dependencies are invalid.
    """

    if settings is None:
        raise ValueError("settings must not be None")
    if snapshot_query is None:
        raise ValueError("snapshot_query must not be None")

    router = APIRouter(prefix="/fiscal-years", tags=["fiscal-years"])

    @router.get("")
    def api_fiscal_year_list() -> JSONResponse:
        """Return totals of every tax year stored in the latest snapshot."""

        return _api_with_latest_snapshot(
            snapshot_query,
            lambda snapshot: JSONResponse(
                content=job_report_to_payload(job_report_from_snapshot(snapshot, settings.home_currency)),
                status_code=status.HTTP_200_OK,
            ),
        )

    @router.get("/{year}")
    def api_fiscal_year_detail(year: int) -> JSONResponse:
        """Return totals of one tax year, 404 when the year was never touched."""

        def _api_render_year(snapshot: StateSnapshot) -> JSONResponse:
            report = job_report_from_snapshot(snapshot, settings.home_currency)
            report_line = report.report_line_for(year)
            if report_line is None:
                return _api_error_response(
                    status.HTTP_404_NOT_FOUND,
                    "FISCAL_YEAR_NOT_FOUND",
                    f"no totals recorded for fiscal year {year}",
                )
            payload = {"home_currency": report.home_currency, **job_report_line_to_payload(report_line)}
            return JSONResponse(content=payload, status_code=status.HTTP_200_OK)

        return _api_with_latest_snapshot(snapshot_query, _api_render_year)

    return router


def api_create_positions_router(snapshot_query: LatestSnapshotQuery) -> APIRouter:
    """Create router exposing open option and stock lots of the latest snapshot.

    Args:
        snapshot_query: Latest snapshot reader.

    Returns:
        APIRouter: Router exposing `/positions`.

    Raises:
        ValueError: Raised when snapshot_query is None.
    """

    if snapshot_query is None:
        raise ValueError("snapshot_query must not be None")

    router = APIRouter(tags=["positions"])

    @router.get("/positions")
    def api_position_list() -> JSONResponse:
        return _api_with_latest_snapshot(
            snapshot_query,
            lambda snapshot: JSONResponse(
                content=api_serialize_positions(snapshot),
                status_code=status.HTTP_200_OK,
            ),
        )

    return router


def api_serialize_positions(snapshot: StateSnapshot) -> dict[str, object]:
    """Serialize open lots in queue order, head first.

    Args:
        snapshot: Decoded snapshot.

    Returns:
        dict[str, object]: JSON-serializable positions payload.
    """

    options = [
        {
            "key": key.option_key_text(),
            "call_or_put": key.call_or_put.value,
            "root_symbol": key.root_symbol,
            "expiration": key.expiration.isoformat(),
            "strike": str(key.strike),
            "lots": [_api_serialize_option_lot(lot) for lot in lots],
        }
        for key, lots in sorted(snapshot.option_queues.items(), key=lambda item: item[0].option_key_text())
    ]
    stocks = [
        {
            "symbol": symbol,
            "lots": [_api_serialize_stock_lot(lot) for lot in lots],
        }
        for symbol, lots in sorted(snapshot.stock_queues.items())
    ]
    return {
        "last_transaction_date": snapshot.metadata.last_transaction_date.isoformat(),
        "options": options,
        "stocks": stocks,
    }


def _api_serialize_option_lot(lot: OptionShortPosition) -> dict[str, object]:
    return {
        "opened_at": lot.open_trade.date.isoformat(),
        "quantity_remaining": lot.quantity_remaining,
        "premium": str(lot.open_trade.value.amount),
        "average_price": str(lot.open_trade.average_price.amount),
        "currency": lot.open_trade.value.currency,
    }


def _api_serialize_stock_lot(lot: StockPosition) -> dict[str, object]:
    return {
        "opened_at": lot.open_trade.date.isoformat(),
        "opened_by": type(lot.open_trade).__name__,
        "quantity_remaining": lot.quantity_remaining,
        "average_price": str(lot.open_trade.average_price.amount),
        "currency": lot.open_trade.average_price.currency,
    }


def _api_with_latest_snapshot(
    snapshot_query: LatestSnapshotQuery,
    render: Callable[[StateSnapshot], JSONResponse],
) -> JSONResponse:
    try:
        snapshot = snapshot_query.snapshot_query_latest()
        if snapshot is None:
            return _api_error_response(
                status.HTTP_404_NOT_FOUND, "SNAPSHOT_NOT_FOUND", "no snapshot has been written yet"
            )
        return render(snapshot)
    except SnapshotSerializationError as error:
        return _api_error_response(status.HTTP_500_INTERNAL_SERVER_ERROR, error.error_code, str(error))


def _api_error_response(status_code: int, code: str, message: str) -> JSONResponse:
    payload = {
        "status": "error",
        "code": code,
        "message": message,
    }
    return JSONResponse(content=payload, status_code=status_code)


__all__ = ["api_create_fiscal_years_router", "api_create_positions_router", "api_serialize_positions"]
