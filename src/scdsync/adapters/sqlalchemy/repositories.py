"""Repository implementations backed by SQLAlchemy sessions."""

from __future__ import annotations

import logging
from typing import TYPE_CHECKING, Any, cast

from sqlalchemy import ColumnElement, select, update

from scdsync.adapters.sqlalchemy.errors import translate_errors
from scdsync.adapters.sqlalchemy.mappings import versioned_record_table
from scdsync.domain.errors import StoreConnectionError, StoreTransactionError
from scdsync.domain.model import ActiveRecordRef, VersionedRecord

if TYPE_CHECKING:
    from datetime import datetime

    from sqlalchemy.orm import Session

    from scdsync.domain.model import ContentHash, PartitionKey, RecordId
    from scdsync.domain.scope import ScopeFilter, ScopeValue

log = logging.getLogger(__name__)

_table = versioned_record_table
_key_column = _table.c["key"]


class SqlAlchemyVersionedRecordRepository:
    def __init__(self, session: Session) -> None:
        self.session = session

    def active_records(self, scope: ScopeFilter) -> list[ActiveRecordRef]:
        stmt = (
            select(_table.c.id, _table.c.hash, _key_column)
            .where(*self._scope_clauses(scope))
            .order_by(_table.c.start_timestamp.asc(), _table.c.id.asc())
        )
        with translate_errors(StoreConnectionError, "load active records"):
            rows = self.session.execute(stmt).all()
        return [
            ActiveRecordRef(id=record_id, hash=content_hash, key=key)
            for record_id, content_hash, key in rows
        ]

    def insert(self, record: VersionedRecord) -> None:
        if record.id is not None or not record.is_active:
            raise StoreTransactionError("Only new active records can be inserted")
        with translate_errors(StoreTransactionError, "insert record"):
            self.session.add(record)
            self.session.flush()

    def update_payload(
        self, record_id: RecordId, payload: dict[str, Any], timestamp: datetime
    ) -> None:
        self._update_active(record_id, payload=payload, updated_timestamp=timestamp)

    def expire(self, record_id: RecordId, timestamp: datetime) -> None:
        self._update_active(record_id, end_timestamp=timestamp)

    def history(
        self,
        collection: str,
        *,
        content_hash: ContentHash | None = None,
        key: PartitionKey | None = None,
    ) -> list[VersionedRecord]:
        stmt = select(VersionedRecord).where(_table.c.collection == collection)
        if content_hash is not None:
            stmt = stmt.where(_table.c.hash == content_hash)
        if key is not None:
            stmt = stmt.where(_key_column == key)
        stmt = stmt.order_by(_table.c.start_timestamp.asc(), _table.c.id.asc()).execution_options(
            populate_existing=True
        )
        with translate_errors(StoreConnectionError, "load record history"):
            return list(self.session.execute(stmt).scalars().all())

    def _update_active(self, record_id: RecordId, **values: object) -> None:
        # terminal records are never touched again
        stmt = (
            update(_table)
            .where(_table.c.id == record_id)
            .where(_table.c.end_timestamp.is_(None))
            .values(**values)
            .execution_options(synchronize_session=False)
        )
        with translate_errors(StoreTransactionError, f"update record {record_id}"):
            result = self.session.execute(stmt)
        if cast("Any", result).rowcount != 1:
            raise StoreTransactionError(f"Record {record_id} is no longer active")

    @staticmethod
    def _scope_clauses(scope: ScopeFilter) -> list[ColumnElement[bool]]:
        clauses: list[ColumnElement[bool]] = [
            _table.c.end_timestamp.is_(None),
            _table.c.collection == scope.collection,
        ]
        if scope.keys is not None:
            clauses.append(_key_column.in_(sorted(scope.keys)))
        for name, value in scope.payload_equals.items():
            clauses.append(_payload_equals(name, value))
        return clauses


def _payload_equals(name: str, value: ScopeValue) -> ColumnElement[bool]:
    element = _table.c.payload[name]
    if isinstance(value, bool):
        return element.as_boolean() == value
    if isinstance(value, int):
        return element.as_integer() == value
    if isinstance(value, float):
        return element.as_float() == value
    return element.as_string() == value


if TYPE_CHECKING:
    from scdsync.domain.ports import VersionedRecordRepository

    _session_stub = cast("Session", object())
    _repo_check: VersionedRecordRepository = SqlAlchemyVersionedRecordRepository(_session_stub)
