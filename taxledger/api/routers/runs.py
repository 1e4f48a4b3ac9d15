"""Processing run API router composition for run list and detail endpoints."""

from __future__ import annotations

from fastapi import APIRouter, Query, status
from fastapi.responses import JSONResponse

from taxledger.config import AppSettings
from taxledger.db import ProcessingRunRecord, ProcessingRunRepositoryPort


def api_create_runs_router(settings: AppSettings, run_repository: ProcessingRunRepositoryPort) -> APIRouter:
    """Create processing run router with list and detail endpoints.

    Args:
        settings: Runtime settings used for pagination defaults.
        run_repository: DB-layer processing run repository.

    Returns:
        APIRouter: Router exposing `/runs` endpoints.

    Raises:
        ValueError: Raised when dependencies are invalid.
    """

    if settings is None:
        raise ValueError("settings must not be None")
    if run_repository is None:
        raise ValueError("run_repository must not be None")

    router = APIRouter(prefix="/runs", tags=["runs"])

    @router.get("")
    def api_processing_run_list(
        limit: int = Query(default=settings.api_default_limit, ge=1),
        offset: int = Query(default=0, ge=0),
    ) -> JSONResponse:
        """Return processing runs ordered by latest first.

        Args:
            limit: Max rows to return, capped at `api_max_limit`.
            offset: Rows to skip.

        Returns:
            JSONResponse: Runs list payload.

        Raises:
            RuntimeError: Raised when repository read fails.
        """

        applied_limit = min(limit, settings.api_max_limit)
        run_rows = run_repository.db_processing_run_list(limit=applied_limit, offset=offset)
        payload = {
            "items": [api_serialize_processing_run_record(run_record) for run_record in run_rows],
            "page": {
                "limit": limit,
                "applied_limit": applied_limit,
                "offset": offset,
                "returned": len(run_rows),
            },
        }
        return JSONResponse(content=payload, status_code=status.HTTP_200_OK)

    @router.get("/{processing_run_id}")
    def api_processing_run_detail(processing_run_id: str) -> JSONResponse:
        run_record = run_repository.db_processing_run_get_by_id(processing_run_id=processing_run_id)
        if run_record is None:
            payload = {
                "status": "error",
                "code": "PROCESSING_RUN_NOT_FOUND",
                "message": "processing run not found",
            }
            return JSONResponse(content=payload, status_code=status.HTTP_404_NOT_FOUND)

        return JSONResponse(
            content=api_serialize_processing_run_record(run_record),
            status_code=status.HTTP_200_OK,
        )

    return router


def api_serialize_processing_run_record(run_record: ProcessingRunRecord) -> dict[str, object]:
    """Serialize typed processing run row to JSON response payload.

    Args:
        run_record: Typed processing run record.

    Returns:
        dict[str, object]: JSON-serializable processing run payload.
    """

    return {
        "processing_run_id": run_record.processing_run_id,
        "run_type": run_record.run_type,
        "source_dir": run_record.source_dir,
        "status": run_record.state.status,
        "started_at_utc": run_record.state.started_at_utc.isoformat(),
        "ended_at_utc": run_record.state.ended_at_utc.isoformat() if run_record.state.ended_at_utc else None,
        "duration_ms": run_record.state.duration_ms,
        "error_code": run_record.state.error_code,
        "error_message": run_record.state.error_message,
        "diagnostics": run_record.state.diagnostics,
        "created_at_utc": run_record.created_at_utc.isoformat(),
    }


__all__ = ["api_create_runs_router", "api_serialize_processing_run_record"]
