"""Main module entrypoint for calculation runs, reports and the API server."""

import argparse
import logging
import logging.config

import uvicorn

from taxledger.bootstrap import (
    bootstrap_create_application,
    bootstrap_create_calculation_orchestrator,
    bootstrap_create_run_service,
    bootstrap_create_snapshot_query,
)
from taxledger.config import AppSettings, SettingsLoadError, config_load_settings
from taxledger.db import ProcessingRunAlreadyActiveError
from taxledger.domain import SnapshotSerializationError
from taxledger.jobs import job_report_from_snapshot, job_report_render_text

logger = logging.getLogger(__name__)


def main(argv: list[str] | None = None) -> None:
    """Run the selected command with validated startup configuration.

    Args:
        argv: Optional argument list, defaults to `sys.argv[1:]`.

    Raises:
        SystemExit: Raised with status 1 when the command fails.
    """

    argument_parser = argparse.ArgumentParser(description="Brokerage tax ledger runtime entrypoint")
    argument_parser.add_argument(
        "command",
        nargs="?",
        default="calculate",
        choices=("calculate", "report", "api", "unlock"),
        help="Runtime command: `calculate` processes new transactions and prints the report, "
        "`report` prints the latest snapshot's report, `api` starts the server, "
        "`unlock` releases a stale processing lock",
        type=str,
    )
    parsed_arguments = argument_parser.parse_args(argv)

    try:
        settings = config_load_settings()
    except SettingsLoadError as error:
        print(error)
        raise SystemExit(1) from error
    main_configure_logging(settings.log_level)

    if parsed_arguments.command == "calculate":
        main_run_calculation(settings)
        return

    if parsed_arguments.command == "report":
        main_print_latest_report(settings)
        return

    if parsed_arguments.command == "unlock":
        abandoned_count = bootstrap_create_run_service(settings).db_processing_lock_force_release(
            settings.processing_lock_name
        )
        print(f"Released lock '{settings.processing_lock_name}', {abandoned_count} abandoned run(s) marked failed")
        return

    application = bootstrap_create_application(settings)
    uvicorn.run(
        application,
        host=settings.application_host,
        port=settings.application_port,
    )


def main_run_calculation(settings: AppSettings) -> None:
    """Run one calculation and print its report.

    Raises:
        SystemExit: Raised with status 1 when the run failed or the lock is held.
    """

    orchestrator = bootstrap_create_calculation_orchestrator(settings)
    try:
        execution_result = orchestrator.job_execute(job_name="calculation_run")
    except ProcessingRunAlreadyActiveError as error:
        print(f"PROCESSING_RUN_ACTIVE: {error}")
        raise SystemExit(1) from error

    if execution_result.status != "success" or execution_result.report is None:
        print(f"{execution_result.error_code}: {execution_result.error_message}")
        raise SystemExit(1)
    print(job_report_render_text(execution_result.report))


def main_print_latest_report(settings: AppSettings) -> None:
    """Print the report stored in the latest snapshot.

    Raises:
        SystemExit: Raised with status 1 when no readable snapshot exists.
    """

    try:
        snapshot = bootstrap_create_snapshot_query(settings).snapshot_query_latest()
        if snapshot is None:
            print("SNAPSHOT_NOT_FOUND: run `calculate` first")
            raise SystemExit(1)
        report = job_report_from_snapshot(snapshot, settings.home_currency)
    except SnapshotSerializationError as error:
        print(f"{error.error_code}: {error}")
        raise SystemExit(1) from error
    print(job_report_render_text(report))


def main_configure_logging(log_level: str) -> None:
    """Configure root logging with a single console handler."""

    logging.config.dictConfig(
        {
            "version": 1,
            "disable_existing_loggers": False,
            "formatters": {
                "standard": {"format": "%(asctime)s %(levelname)-5.5s [%(name)s] %(message)s"},
            },
            "handlers": {
                "console": {
                    "class": "logging.StreamHandler",
                    "formatter": "standard",
                    "stream": "ext://sys.stderr",
                },
            },
            "root": {"level": log_level, "handlers": ["console"]},
        }
    )
    logger.debug("Logging configured at %s", log_level)


if __name__ == "__main__":
    main()
