"""Create versioned_record table with validity indexes.

Revision ID: 0001_versioned_record
Revises:
Create Date: 2026-10-19 00:00:00

"""

from __future__ import annotations

from collections.abc import Sequence

import sqlalchemy as sa
from alembic import op

from scdsync.adapters.sqlalchemy.mappings import UTCDateTime

revision: str = "0001_versioned_record"
down_revision: str | None = None
branch_labels: str | Sequence[str] | None = None
depends_on: str | Sequence[str] | None = None


def upgrade() -> None:
    op.create_table(
        "versioned_record",
        sa.Column("id", sa.Integer(), nullable=False, autoincrement=True),
        sa.Column("collection", sa.String(length=255), nullable=False),
        sa.Column("hash", sa.String(length=64), nullable=False),
        sa.Column("key", sa.String(length=255), nullable=False),
        sa.Column("payload", sa.JSON(), nullable=False),
        sa.Column("start_timestamp", UTCDateTime(), nullable=False),
        sa.Column("end_timestamp", UTCDateTime(), nullable=True),
        sa.Column("updated_timestamp", UTCDateTime(), nullable=True),
        sa.PrimaryKeyConstraint("id", name=op.f("pk_versioned_record")),
    )
    op.create_index(
        "ix_versioned_record_validity",
        "versioned_record",
        ["start_timestamp", "end_timestamp"],
    )
    op.create_index(
        "ix_versioned_record_validity_key",
        "versioned_record",
        ["start_timestamp", "end_timestamp", "key"],
    )
    op.create_index(
        "ix_versioned_record_active_hash",
        "versioned_record",
        ["collection", "end_timestamp", "hash"],
    )


def downgrade() -> None:
    op.drop_index("ix_versioned_record_active_hash", table_name="versioned_record")
    op.drop_index("ix_versioned_record_validity_key", table_name="versioned_record")
    op.drop_index("ix_versioned_record_validity", table_name="versioned_record")
    op.drop_table("versioned_record")
