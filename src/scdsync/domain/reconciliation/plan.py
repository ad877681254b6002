"""Mutation plan types produced by the reconciler and consumed by the executor.

A plan is an ordered list of mutations meant to be applied as one transaction.
Records are never deleted: a changed item is expired and a new version inserted.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import TYPE_CHECKING, Any

if TYPE_CHECKING:
    from collections.abc import Iterator
    from datetime import datetime

    from scdsync.domain.model import RecordId, VersionedRecord


@dataclass(frozen=True, slots=True)
class Insert:
    """Open a new active version."""

    record: VersionedRecord

    @property
    def timestamp(self) -> datetime:
        return self.record.start_timestamp


@dataclass(frozen=True, slots=True)
class UpdatePayload:
    """Replace the payload of an active record in place."""

    record_id: RecordId
    payload: dict[str, Any]
    timestamp: datetime


@dataclass(frozen=True, slots=True)
class Expire:
    """Close out an active record."""

    record_id: RecordId
    timestamp: datetime


type Mutation = Insert | UpdatePayload | Expire


@dataclass(slots=True)
class MutationStats:
    """Counters summarising a plan, identical for dry runs and committing runs."""

    insert: int = 0
    update: int = 0
    delete: int = 0

    def record_insert(self) -> None:
        self.insert += 1

    def record_update(self) -> None:
        self.update += 1

    def record_delete(self, count: int = 1) -> None:
        self.delete += count

    @property
    def total(self) -> int:
        return self.insert + self.update + self.delete

    def as_dict(self) -> dict[str, int]:
        return {"insert": self.insert, "update": self.update, "delete": self.delete}


@dataclass(slots=True)
class MutationPlan:
    mutations: list[Mutation] = field(default_factory=list["Mutation"])
    stats: MutationStats = field(default_factory=MutationStats)

    def insert(self, record: VersionedRecord) -> None:
        self.mutations.append(Insert(record))
        self.stats.record_insert()

    def update_payload(self, record_id: RecordId, payload: dict[str, Any], now: datetime) -> None:
        self.mutations.append(UpdatePayload(record_id, payload, now))
        self.stats.record_update()

    def expire(self, record_id: RecordId, now: datetime) -> None:
        self.mutations.append(Expire(record_id, now))
        self.stats.record_delete()

    def __iter__(self) -> Iterator[Mutation]:
        return iter(self.mutations)

    def __len__(self) -> int:
        return len(self.mutations)

    def __bool__(self) -> bool:
        return bool(self.mutations)
