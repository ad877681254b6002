"""Records persisted by the versioned store and the entries reconciled against it."""

from __future__ import annotations

from collections.abc import Mapping
from dataclasses import dataclass, field
from typing import TYPE_CHECKING, Any

if TYPE_CHECKING:
    from datetime import datetime

type DesiredEntry = Mapping[str, Any]
type ContentHash = str
type PartitionKey = str
type RecordId = int


@dataclass(eq=False, kw_only=True)
class VersionedRecord:
    """One version of a logical item.

    ``end_timestamp is None`` marks the active version. Once it is set the record
    is terminal and the store refuses any further mutation of it.
    """

    collection: str
    hash: ContentHash
    key: PartitionKey
    payload: dict[str, Any] = field(default_factory=dict[str, Any])
    start_timestamp: datetime
    end_timestamp: datetime | None = None
    updated_timestamp: datetime | None = None
    # assigned by the store on insert
    id: RecordId | None = None

    @property
    def is_active(self) -> bool:
        return self.end_timestamp is None


@dataclass(frozen=True, slots=True)
class ActiveRecordRef:
    """Projection of an active record loaded into the index."""

    id: RecordId
    hash: ContentHash
    key: PartitionKey
