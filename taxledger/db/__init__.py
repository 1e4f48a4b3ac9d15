"""Persistence layer: run registry, processing lock and snapshot files."""

from .health import SQLAlchemyDatabaseHealthService
from .interfaces import (
	DatabaseHealthPort,
	ProcessingLockPort,
	ProcessingRunAlreadyActiveError,
	ProcessingRunRecord,
	ProcessingRunRepositoryPort,
	ProcessingRunState,
	SnapshotStorePort,
)
from .processing_run import SQLAlchemyProcessingRunService
from .schema import db_create_schema, db_metadata
from .session import db_create_engine
from .snapshot_files import FileSnapshotStore

__all__ = [
	"DatabaseHealthPort",
	"FileSnapshotStore",
	"ProcessingLockPort",
	"ProcessingRunAlreadyActiveError",
	"ProcessingRunRecord",
	"ProcessingRunRepositoryPort",
	"ProcessingRunState",
	"SQLAlchemyDatabaseHealthService",
	"SQLAlchemyProcessingRunService",
	"SnapshotStorePort",
	"db_create_engine",
	"db_create_schema",
	"db_metadata",
]
