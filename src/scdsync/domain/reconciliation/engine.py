"""Diff a desired snapshot against the active record index.

For every desired entry, in input order:

1) hash and key the entry
2) on a hash hit, consume the whole id group; under field-mutation mode the
   first id gets the new payload, and any other ids of the group are expired
3) on a miss, insert a new active version

Entries whose key or payload falls outside the run scope are skipped with a
warning, since a later run would never load them back.

Ids left in the index afterwards are expired. The function performs no I/O.
"""

from __future__ import annotations

import logging
from typing import TYPE_CHECKING

from scdsync.domain.hashing import content_hash, partition_key
from scdsync.domain.model import VersionedRecord

from .plan import MutationPlan

if TYPE_CHECKING:
    from collections.abc import Iterable

    from scdsync.domain.context import RunContext
    from scdsync.domain.index import ActiveRecordIndex
    from scdsync.domain.model import DesiredEntry

log = logging.getLogger(__name__)


def reconcile(
    entries: Iterable[DesiredEntry],
    index: ActiveRecordIndex,
    *,
    context: RunContext,
) -> MutationPlan:
    """Return the mutations bringing the active set in line with ``entries``."""

    plan = MutationPlan()
    now = context.now
    field_mutation = context.hashing.field_mutation
    out_of_scope = 0

    for entry in entries:
        entry_hash = content_hash(entry, context.hashing)
        entry_key = partition_key(entry, context.keying)
        if not context.scope.admits(entry_key, entry):
            out_of_scope += 1
            log.debug("Skipping entry %s outside scope (key=%s)", entry_hash, entry_key)
            continue
        group = index.take(entry_hash)
        if group is None:
            plan.insert(
                VersionedRecord(
                    collection=context.scope.collection,
                    hash=entry_hash,
                    key=entry_key,
                    payload=dict(entry),
                    start_timestamp=now,
                )
            )
            continue

        canonical_id, *duplicates = group
        # without field-mutation mode the hash covers the whole entry, so the
        # canonical record already holds this exact payload
        if field_mutation:
            plan.update_payload(canonical_id, dict(entry), now)
        for record_id in duplicates:
            plan.expire(record_id, now)
        if duplicates:
            log.debug(
                "Collapsed %s duplicates of %s into record %s",
                len(duplicates),
                entry_hash,
                canonical_id,
            )

    for record_id in index.remaining_ids():
        plan.expire(record_id, now)

    if out_of_scope:
        log.warning(
            "Skipped %s entries outside scope %s", out_of_scope, context.scope.describe()
        )

    log.info(
        "Planned %s ops: insert=%s, update=%s, delete=%s",
        len(plan),
        plan.stats.insert,
        plan.stats.update,
        plan.stats.delete,
    )
    return plan
