from __future__ import annotations

import logging

import pytest

from scdsync.domain.context import RunContext
from scdsync.domain.errors import SerializationError
from scdsync.domain.hashing import FieldKeying
from scdsync.domain.reconciliation import Expire, Insert, UpdatePayload, reconcile
from scdsync.domain.scope import ScopeFilter
from tests.helpers.records import COLLECTION, NOW, hash_of, make_context, make_index


def test_unchanged_entry_produces_empty_plan() -> None:
    entry = {"id": 1, "v": "x"}
    index = make_index((1, hash_of(entry)))

    plan = reconcile([entry], index, context=make_context())

    assert plan.mutations == []
    assert plan.stats.as_dict() == {"insert": 0, "update": 0, "delete": 0}


def test_changed_entry_inserts_new_version_and_expires_old() -> None:
    index = make_index((1, hash_of({"id": 1, "v": "x"})))
    entry = {"id": 1, "v": "y"}

    plan = reconcile([entry], index, context=make_context())

    insert, expire = plan.mutations
    assert isinstance(insert, Insert)
    assert insert.record.hash == hash_of(entry)
    assert insert.record.key == "default"
    assert insert.record.collection == COLLECTION
    assert insert.record.payload == entry
    assert insert.record.start_timestamp == NOW
    assert insert.record.end_timestamp is None
    assert insert.record.id is None
    assert expire == Expire(record_id=1, timestamp=NOW)
    assert plan.stats.as_dict() == {"insert": 1, "update": 0, "delete": 1}


def test_pick_collapses_duplicates_into_first_record() -> None:
    stored_hash = hash_of({"v": "x"}, pick=["v"])
    index = make_index((1, stored_hash), (2, stored_hash))
    entry = {"id": 1, "v": "x", "note": "new"}

    plan = reconcile([entry], index, context=make_context(pick=["v"]))

    assert plan.mutations == [
        UpdatePayload(record_id=1, payload=entry, timestamp=NOW),
        Expire(record_id=2, timestamp=NOW),
    ]
    assert plan.stats.as_dict() == {"insert": 0, "update": 1, "delete": 1}


@pytest.mark.parametrize("size", [1, 2, 5])
def test_duplicate_group_yields_one_update_and_n_minus_one_expires(size: int) -> None:
    entry = {"sku": "a", "price": 3}
    stored_hash = hash_of(entry, pick=["sku"])
    index = make_index(*((record_id, stored_hash) for record_id in range(10, 10 + size)))

    plan = reconcile([entry], index, context=make_context(pick=["sku"]))

    updates = [m for m in plan if isinstance(m, UpdatePayload)]
    expires = [m for m in plan if isinstance(m, Expire)]
    assert [m.record_id for m in updates] == [10]
    assert [m.record_id for m in expires] == list(range(11, 10 + size))
    assert plan.stats.update == 1
    assert plan.stats.delete == size - 1


def test_duplicates_without_field_mutation_keep_only_first_record() -> None:
    entry = {"id": 1}
    index = make_index((4, hash_of(entry)), (9, hash_of(entry)))

    plan = reconcile([entry], index, context=make_context())

    assert plan.mutations == [Expire(record_id=9, timestamp=NOW)]
    assert plan.stats.as_dict() == {"insert": 0, "update": 0, "delete": 1}


def test_unmatched_duplicate_group_is_fully_expired() -> None:
    index = make_index((1, "dead"), (2, "dead"), (3, "other"))

    plan = reconcile([], index, context=make_context())

    assert plan.mutations == [
        Expire(record_id=1, timestamp=NOW),
        Expire(record_id=2, timestamp=NOW),
        Expire(record_id=3, timestamp=NOW),
    ]
    assert plan.stats.delete == 3


def test_pure_removal_expires_only_missing_record() -> None:
    kept = {"id": 1}
    removed = {"id": 2}
    index = make_index((1, hash_of(kept)), (2, hash_of(removed)))

    plan = reconcile([kept], index, context=make_context())

    assert plan.mutations == [Expire(record_id=2, timestamp=NOW)]


def test_omit_updates_payload_for_matching_record() -> None:
    stored = {"id": 1, "fetched_at": "monday"}
    entry = {"id": 1, "fetched_at": "tuesday"}
    context = make_context(omit=["fetched_at"])
    index = make_index((7, hash_of({"id": 1})))

    plan = reconcile([entry], index, context=context)

    assert stored != entry
    assert plan.mutations == [UpdatePayload(record_id=7, payload=entry, timestamp=NOW)]


def test_repeated_hash_in_snapshot_inserts_after_group_is_consumed() -> None:
    entry = {"id": 1}
    index = make_index((1, hash_of(entry)))

    plan = reconcile([entry, dict(entry)], index, context=make_context())

    assert len(plan) == 1
    assert isinstance(plan.mutations[0], Insert)
    assert plan.stats.insert == 1


def test_inserts_follow_input_order_before_expiries() -> None:
    index = make_index((1, "stale"))
    entries = [{"id": 3}, {"id": 1}, {"id": 2}]

    plan = reconcile(entries, index, context=make_context())

    kinds = [type(m).__name__ for m in plan]
    assert kinds == ["Insert", "Insert", "Insert", "Expire"]
    payloads = [m.record.payload for m in plan if isinstance(m, Insert)]
    assert payloads == entries


def test_all_mutations_share_one_timestamp() -> None:
    stored_hash = hash_of({"sku": "a"}, pick=["sku"])
    index = make_index((1, stored_hash), (2, stored_hash), (3, "gone"))
    entries = [{"sku": "a", "n": 1}, {"sku": "b"}]

    plan = reconcile(entries, index, context=make_context(pick=["sku"]))

    assert len(plan) == 4
    assert {mutation.timestamp for mutation in plan} == {NOW}


def test_keying_strategy_sets_partition_key() -> None:
    context = make_context(keying=FieldKeying(fields=("region",)))

    plan = reconcile([{"id": 1, "region": "eu"}], make_index(), context=context)

    (insert,) = plan.mutations
    assert isinstance(insert, Insert)
    assert insert.record.key == "eu"


def test_payload_is_copied_from_entry() -> None:
    entry = {"id": 1}

    plan = reconcile([entry], make_index(), context=make_context())
    entry["id"] = 2

    (insert,) = plan.mutations
    assert isinstance(insert, Insert)
    assert insert.record.payload == {"id": 1}


def test_second_run_over_applied_plan_is_empty() -> None:
    entries = [{"id": 1, "v": "x"}, {"id": 2, "v": "y"}]
    first = reconcile(entries, make_index(), context=make_context())
    applied = [
        (record_id, m.record.hash)
        for record_id, m in enumerate(first, start=1)
        if isinstance(m, Insert)
    ]

    second = reconcile(entries, make_index(*applied), context=make_context())

    assert len(first) == 2
    assert not second


def test_serialisation_error_propagates() -> None:
    with pytest.raises(SerializationError):
        reconcile([{"bad": {1, 2}}], make_index(), context=make_context())


def test_entries_outside_scope_are_skipped(caplog: pytest.LogCaptureFixture) -> None:
    context = RunContext.start(
        ScopeFilter(collection=COLLECTION, keys=frozenset({"eu"}), payload_equals={"live": True}),
        keying=FieldKeying(fields=("region",)),
        clock=lambda: NOW,
    )
    entries = [
        {"sku": "a", "region": "eu", "live": True},
        {"sku": "b", "region": "us", "live": True},
        {"sku": "c", "region": "eu", "live": 1},
        {"sku": "d", "region": "eu"},
    ]

    with caplog.at_level(logging.WARNING):
        plan = reconcile(entries, make_index(), context=context)

    payloads = [m.record.payload for m in plan if isinstance(m, Insert)]
    assert payloads == [entries[0]]
    assert "Skipped 3 entries outside scope" in caplog.text


def test_out_of_scope_entry_does_not_consume_matching_record() -> None:
    entry = {"sku": "a", "region": "us"}
    context = RunContext.start(
        ScopeFilter(collection=COLLECTION, keys=frozenset({"eu"})),
        keying=FieldKeying(fields=("region",)),
        clock=lambda: NOW,
    )
    index = make_index((1, hash_of(entry)))

    plan = reconcile([entry], index, context=context)

    assert plan.mutations == [Expire(record_id=1, timestamp=NOW)]
