"""Processing run registry and processing lock

Revision ID: 20261017_01
Revises: None
Create Date: 2026-10-17
"""
# pylint: disable=no-member,invalid-name,wrong-import-order

from typing import Sequence, Union

from alembic import op
import sqlalchemy as sa


# revision identifiers, used by Alembic.
revision: str = "20261017_01"
down_revision: Union[str, Sequence[str], None] = None
branch_labels: Union[str, Sequence[str], None] = None
depends_on: Union[str, Sequence[str], None] = None


def upgrade() -> None:
    """Upgrade schema."""

    op.create_table(
        "processing_run",
        sa.Column("processing_run_id", sa.Text(), primary_key=True),
        sa.Column("run_type", sa.Text(), nullable=False),
        sa.Column("status", sa.Text(), nullable=False),
        sa.Column("source_dir", sa.Text(), nullable=False),
        sa.Column("started_at_utc", sa.Text(), nullable=False),
        sa.Column("ended_at_utc", sa.Text(), nullable=True),
        sa.Column("duration_ms", sa.BigInteger(), nullable=True),
        sa.Column("error_code", sa.Text(), nullable=True),
        sa.Column("error_message", sa.Text(), nullable=True),
        sa.Column("diagnostics", sa.Text(), nullable=True),
        sa.Column("created_at_utc", sa.Text(), nullable=False),
        sa.CheckConstraint("status IN ('started', 'success', 'failed')", name="ck_processing_run_status"),
    )
    op.create_index("ix_processing_run_started_at_utc", "processing_run", ["started_at_utc"])
    op.create_index("ix_processing_run_status", "processing_run", ["status"])

    op.create_table(
        "processing_lock",
        sa.Column("lock_name", sa.Text(), primary_key=True),
        sa.Column("owner_id", sa.Text(), nullable=False),
        sa.Column("acquired_at_utc", sa.Text(), nullable=False),
    )


def downgrade() -> None:
    """Downgrade schema."""

    op.drop_table("processing_lock")

    op.drop_index("ix_processing_run_status", table_name="processing_run")
    op.drop_index("ix_processing_run_started_at_utc", table_name="processing_run")
    op.drop_table("processing_run")
