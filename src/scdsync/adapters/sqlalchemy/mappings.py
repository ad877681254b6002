"""SQLAlchemy mapping metadata for versioned records."""

from __future__ import annotations

import logging
from datetime import UTC, datetime
from typing import TYPE_CHECKING

from sqlalchemy import (
    JSON,
    Column,
    DateTime,
    Dialect,
    Index,
    Integer,
    String,
    Table,
    TypeDecorator,
    orm,
)
from sqlalchemy.orm import configure_mappers

from scdsync.domain.model import VersionedRecord

if TYPE_CHECKING:
    from sqlalchemy.engine import Engine

log = logging.getLogger(__name__)


class UTCDateTime(TypeDecorator[datetime]):
    impl = DateTime(timezone=True)
    cache_ok = True

    def process_bind_param(self, value: datetime | None, dialect: Dialect) -> datetime | None:
        _ = dialect
        if value is None:
            return None
        if value.tzinfo is None:
            value = value.replace(tzinfo=UTC)
        return value.astimezone(UTC)

    def process_result_value(self, value: datetime | None, dialect: Dialect) -> datetime | None:
        _ = dialect
        if value is None:
            return None
        return value if value.tzinfo else value.replace(tzinfo=UTC)


mapper_registry = orm.registry()
mapper_registry.metadata.naming_convention = {
    "ix": "ix_%(column_0_label)s",
    "uq": "uq_%(table_name)s_%(column_0_label)s",
    "ck": "ck_%(table_name)s_%(constraint_name)s",
    "fk": "fk_%(table_name)s_%(column_0_label)s_%(referred_table_name)s",
    "pk": "pk_%(table_name)s",
}

versioned_record_table = Table(
    "versioned_record",
    mapper_registry.metadata,
    Column("id", Integer, primary_key=True, autoincrement=True),
    Column("collection", String(255), nullable=False),
    Column("hash", String(64), nullable=False),
    Column("key", String(255), nullable=False),
    Column("payload", JSON, nullable=False),
    Column("start_timestamp", UTCDateTime(), nullable=False),
    Column("end_timestamp", UTCDateTime(), nullable=True),
    Column("updated_timestamp", UTCDateTime(), nullable=True),
    Index("ix_versioned_record_validity", "start_timestamp", "end_timestamp"),
    Index("ix_versioned_record_validity_key", "start_timestamp", "end_timestamp", "key"),
    Index("ix_versioned_record_active_hash", "collection", "end_timestamp", "hash"),
)


def start_mappers() -> orm.registry:
    """Map ``VersionedRecord`` onto its table; safe to call repeatedly."""

    if getattr(VersionedRecord, "__mapper__", None) is not None:
        return mapper_registry

    mapper_registry.map_imperatively(VersionedRecord, versioned_record_table)

    configure_mappers()
    return mapper_registry


def create_all_tables(engine: Engine) -> None:
    """Create database tables for the mapped metadata."""

    log.info("Creating all tables")
    mapper_registry.metadata.create_all(engine)
