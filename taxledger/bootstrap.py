"""Application bootstrap wiring for startup validation and dependency assembly."""

from fastapi import FastAPI
from sqlalchemy import Engine

from taxledger.adapters import EcbExchangeRateRepository
from taxledger.analytics import CurrencyConverter, FiscalYearAggregator, tax_resolve_timezone
from taxledger.api import create_api_application
from taxledger.config import AppSettings, config_load_settings
from taxledger.db import (
    FileSnapshotStore,
    SQLAlchemyDatabaseHealthService,
    SQLAlchemyProcessingRunService,
    db_create_engine,
    db_create_schema,
)
from taxledger.jobs import CalculationOrchestrator, CalculationOrchestratorConfig, LatestSnapshotQuery
from taxledger.ledger import PositionLedger
from taxledger.mapping import TransactionCsvReader


def bootstrap_create_application(settings: AppSettings | None = None) -> FastAPI:
    """Assemble the read-only API application after validating startup configuration.

    Args:
        settings: Optional preloaded settings.

    Returns:
        FastAPI: Fully initialized FastAPI application instance.

    Raises:
        SettingsLoadError: Raised when startup configuration validation fails.
    """

    resolved_settings = settings or config_load_settings()
    engine = bootstrap_create_engine(resolved_settings)
    return create_api_application(
        settings=resolved_settings,
        db_health_service=SQLAlchemyDatabaseHealthService(engine=engine),
        run_repository=SQLAlchemyProcessingRunService(engine=engine),
        snapshot_query=bootstrap_create_snapshot_query(resolved_settings),
    )


def bootstrap_create_calculation_orchestrator(
    settings: AppSettings | None = None,
    run_type: str = "manual",
) -> CalculationOrchestrator:
    """Build a calculation orchestrator with a fresh ledger and aggregator for one run.

    Args:
        settings: Optional preloaded settings.
        run_type: Run source type recorded on the processing run.

    Returns:
        CalculationOrchestrator: Fully wired orchestrator instance.

    Raises:
        SettingsLoadError: Raised when startup configuration validation fails.
    """

    resolved_settings = settings or config_load_settings()
    report_timezone = tax_resolve_timezone(resolved_settings.report_timezone)
    exchange_rates = EcbExchangeRateRepository(
        csv_path=resolved_settings.exchange_rate_file,
        currency_column=resolved_settings.source_currency,
        decimal_places=resolved_settings.exchange_rate_decimal_places,
    )
    converter = CurrencyConverter(
        exchange_rates=exchange_rates,
        report_timezone=report_timezone,
        home_currency=resolved_settings.home_currency,
        source_currency=resolved_settings.source_currency,
    )
    return CalculationOrchestrator(
        run_repository=bootstrap_create_run_service(resolved_settings),
        snapshot_store=FileSnapshotStore(report_timezone=report_timezone),
        csv_reader=TransactionCsvReader(currency=resolved_settings.source_currency),
        ledger=PositionLedger(removal_quantity_policy=resolved_settings.removal_quantity_policy),
        aggregator=FiscalYearAggregator(converter=converter),
        config=CalculationOrchestratorConfig(
            transactions_dir=resolved_settings.transactions_dir,
            snapshot_dir=resolved_settings.settings_snapshot_dir(),
            lock_name=resolved_settings.processing_lock_name,
            run_type=run_type,
        ),
    )


def bootstrap_create_snapshot_query(settings: AppSettings) -> LatestSnapshotQuery:
    report_timezone = tax_resolve_timezone(settings.report_timezone)
    return LatestSnapshotQuery(
        snapshot_store=FileSnapshotStore(report_timezone=report_timezone),
        snapshot_dir=settings.settings_snapshot_dir(),
    )


def bootstrap_create_run_service(settings: AppSettings) -> SQLAlchemyProcessingRunService:
    return SQLAlchemyProcessingRunService(engine=bootstrap_create_engine(settings))


def bootstrap_create_engine(settings: AppSettings) -> Engine:
    """Create the registry engine and make sure its tables exist.

    Args:
        settings: Validated settings.

    Returns:
        Engine: Engine bound to `database_url`.

    Raises:
        SQLAlchemyError: Raised when table creation fails.
    """

    engine = db_create_engine(database_url=settings.database_url)
    db_create_schema(engine)
    return engine


__all__ = [
    "bootstrap_create_application",
    "bootstrap_create_calculation_orchestrator",
    "bootstrap_create_engine",
    "bootstrap_create_run_service",
    "bootstrap_create_snapshot_query",
]
