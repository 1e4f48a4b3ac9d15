"""Table definitions for the processing run registry and processing lock.

Timestamps are stored as ISO-8601 UTC text and run ids as UUID text, so the
same schema works on SQLite and PostgreSQL.
"""

from sqlalchemy import BigInteger, CheckConstraint, Column, Engine, Index, MetaData, Table, Text

db_metadata = MetaData()

processing_run_table = Table(
    "processing_run",
    db_metadata,
    Column("processing_run_id", Text(), primary_key=True),
    Column("run_type", Text(), nullable=False),
    Column("status", Text(), nullable=False),
    Column("source_dir", Text(), nullable=False),
    Column("started_at_utc", Text(), nullable=False),
    Column("ended_at_utc", Text(), nullable=True),
    Column("duration_ms", BigInteger(), nullable=True),
    Column("error_code", Text(), nullable=True),
    Column("error_message", Text(), nullable=True),
    Column("diagnostics", Text(), nullable=True),
    Column("created_at_utc", Text(), nullable=False),
    CheckConstraint("status IN ('started', 'success', 'failed')", name="ck_processing_run_status"),
)
Index("ix_processing_run_started_at_utc", processing_run_table.c.started_at_utc)
Index("ix_processing_run_status", processing_run_table.c.status)

processing_lock_table = Table(
    "processing_lock",
    db_metadata,
    Column("lock_name", Text(), primary_key=True),
    Column("owner_id", Text(), nullable=False),
    Column("acquired_at_utc", Text(), nullable=False),
)


def db_create_schema(engine: Engine) -> None:
    """Create missing registry tables.

    Args:
        engine: SQLAlchemy engine.

    Returns:
        None: Tables are created as side effect.

    Raises:
        ValueError: Raised when engine is None.
        SQLAlchemyError: Raised when DDL execution fails.
    """

    if engine is None:
        raise ValueError("engine must not be None")
    db_metadata.create_all(engine, checkfirst=True)


__all__ = ["db_create_schema", "db_metadata", "processing_lock_table", "processing_run_table"]
