"""Ports for reading and mutating versioned records."""

from __future__ import annotations

from typing import TYPE_CHECKING, Any, Protocol, runtime_checkable

if TYPE_CHECKING:
    from collections.abc import Sequence
    from datetime import datetime

    from scdsync.domain.model import (
        ActiveRecordRef,
        ContentHash,
        PartitionKey,
        RecordId,
        VersionedRecord,
    )
    from scdsync.domain.scope import ScopeFilter


@runtime_checkable
class VersionedRecordRepository(Protocol):
    """Persistence contract for Type-2 versioned records."""

    def active_records(self, scope: ScopeFilter) -> Sequence[ActiveRecordRef]:
        """Active records in scope, oldest first."""
        ...

    def insert(self, record: VersionedRecord) -> None: ...

    def update_payload(
        self, record_id: RecordId, payload: dict[str, Any], timestamp: datetime
    ) -> None: ...

    def expire(self, record_id: RecordId, timestamp: datetime) -> None: ...

    def history(
        self,
        collection: str,
        *,
        content_hash: ContentHash | None = None,
        key: PartitionKey | None = None,
    ) -> Sequence[VersionedRecord]: ...
