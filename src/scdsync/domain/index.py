"""In-memory index of the store's active records, keyed by content hash."""

from __future__ import annotations

import logging
from typing import TYPE_CHECKING

if TYPE_CHECKING:
    from collections.abc import Iterable, Iterator

    from .model import ActiveRecordRef, ContentHash, RecordId
    from .ports.persistence import VersionedRecordRepository
    from .scope import ScopeFilter

log = logging.getLogger(__name__)


class ActiveRecordIndex:
    """Mapping ``hash -> [record ids]`` consumed while a run is diffed.

    Ids keep the order they were loaded in. The store loads them oldest first, so
    the first id of a group is the earliest-created record and becomes canonical
    when the group holds duplicates. An index belongs to exactly one run.
    """

    def __init__(self) -> None:
        self._groups: dict[ContentHash, list[RecordId]] = {}

    @classmethod
    def from_records(cls, records: Iterable[ActiveRecordRef]) -> ActiveRecordIndex:
        index = cls()
        for record in records:
            index.add(record)
        if not index:
            log.info("No existing active entries found")
        else:
            log.info("Found %s existing active entries", index.record_count)
            duplicates = index.duplicate_groups()
            if duplicates:
                log.warning("Found %s hashes with duplicate active entries", duplicates)
        return index

    def add(self, record: ActiveRecordRef) -> None:
        self._groups.setdefault(record.hash, []).append(record.id)

    def take(self, content_hash: ContentHash) -> list[RecordId] | None:
        """Remove and return the whole id group for ``content_hash``."""

        return self._groups.pop(content_hash, None)

    def remaining_ids(self) -> Iterator[RecordId]:
        for ids in self._groups.values():
            yield from ids

    def duplicate_groups(self) -> int:
        return sum(1 for ids in self._groups.values() if len(ids) > 1)

    @property
    def record_count(self) -> int:
        return sum(len(ids) for ids in self._groups.values())

    def __contains__(self, content_hash: object) -> bool:
        return content_hash in self._groups

    def __len__(self) -> int:
        return len(self._groups)

    def __bool__(self) -> bool:
        return bool(self._groups)


def load_active_index(
    repository: VersionedRecordRepository, scope: ScopeFilter
) -> ActiveRecordIndex:
    """Query the active records in ``scope`` and index them by hash."""

    log.debug("Loading active records: %s", scope.describe())
    return ActiveRecordIndex.from_records(repository.active_records(scope))
