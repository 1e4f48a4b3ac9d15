"""FastAPI application factory for the read-only tax ledger API."""

from fastapi import FastAPI

from taxledger.config import AppSettings
from taxledger.db import DatabaseHealthPort, ProcessingRunRepositoryPort
from taxledger.jobs import LatestSnapshotQuery

from .routers import (
    api_create_fiscal_years_router,
    api_create_health_router,
    api_create_positions_router,
    api_create_runs_router,
)


def create_api_application(
    settings: AppSettings,
    db_health_service: DatabaseHealthPort,
    run_repository: ProcessingRunRepositoryPort,
    snapshot_query: LatestSnapshotQuery,
) -> FastAPI:
    """Create the FastAPI application instance for the service.

    Args:
        settings: Validated application settings used for runtime metadata.
        db_health_service: Database health service used by health endpoints.
        run_repository: Processing run repository for list/detail APIs.
        snapshot_query: Latest snapshot reader for fiscal year and position APIs.

    Returns:
        FastAPI: Framework application instance.
    """

    application = FastAPI(title="Brokerage Tax Ledger")

    @application.get("/", tags=["foundation"])
    def foundation_index() -> dict[str, str]:
        return {
            "service": "brokerage-tax-ledger",
            "status": "foundation-ready",
            "environment": settings.environment_name,
        }

    application.include_router(api_create_health_router(db_health_service=db_health_service))
    application.include_router(api_create_runs_router(settings=settings, run_repository=run_repository))
    application.include_router(api_create_fiscal_years_router(settings=settings, snapshot_query=snapshot_query))
    application.include_router(api_create_positions_router(snapshot_query=snapshot_query))

    return application


__all__ = ["create_api_application"]
