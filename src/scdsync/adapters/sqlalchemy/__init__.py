"""SQLAlchemy adapter package for scdsync."""

from __future__ import annotations

from .mappings import create_all_tables, mapper_registry, start_mappers, versioned_record_table
from .repositories import SqlAlchemyVersionedRecordRepository

__all__ = [
    "SqlAlchemyVersionedRecordRepository",
    "create_all_tables",
    "mapper_registry",
    "start_mappers",
    "versioned_record_table",
]
