"""Application orchestration entry points."""

from __future__ import annotations

import logging
from collections.abc import Callable
from dataclasses import dataclass
from typing import TYPE_CHECKING

from scdsync.adapters.sqlalchemy.unit_of_work import SqlAlchemyUnitOfWork, is_started, startup
from scdsync.domain.context import RunContext
from scdsync.domain.index import load_active_index
from scdsync.domain.ports.unit_of_work import VersionedRecordUnitOfWork
from scdsync.domain.reconciliation import MutationBatchExecutor, reconcile

if TYPE_CHECKING:
    from collections.abc import Iterable, Sequence

    from scdsync.config import DatabaseConfig, RunSettings
    from scdsync.domain.model import DesiredEntry, PartitionKey, VersionedRecord
    from scdsync.domain.reconciliation import MutationStats

UnitOfWorkFactory = Callable[[], VersionedRecordUnitOfWork]


log = logging.getLogger(__name__)


@dataclass(slots=True, frozen=True)
class RunResult:
    """Outcome of one reconciliation run."""

    stats: MutationStats
    planned: int
    applied: int
    dry_run: bool
    skipped: bool


def reconcile_snapshot(
    entries: Iterable[DesiredEntry],
    *,
    settings: RunSettings,
    unit_of_work_factory: UnitOfWorkFactory | None = None,
    database: DatabaseConfig | None = None,
    context: RunContext | None = None,
) -> RunResult:
    """Bring the store's active records in scope in line with ``entries``.

    Runs over overlapping scopes must not execute concurrently: both would read
    the same active snapshot. Failures are raised, never retried.
    """

    run = context or RunContext.start(
        settings.scope_filter(),
        hashing=settings.hashing_options(),
        keying=settings.keying_strategy(),
    )
    effective_uow = _ensure_store(unit_of_work_factory, database)
    log.info(
        "Starting reconciliation: %s, dry_run=%s, now=%s",
        run.scope.describe(),
        settings.dry_run,
        run.now.isoformat(),
    )

    run.check_cancelled("snapshot load")
    with effective_uow() as uow:
        index = load_active_index(uow.repositories.versioned_records, run.scope)

    run.check_cancelled("reconciliation")
    plan = reconcile(entries, index, context=run)

    executor = MutationBatchExecutor(effective_uow)
    execution = executor.execute(plan, dry_run=settings.dry_run, context=run)

    log.info(
        "Finished reconciliation: insert=%s, update=%s, delete=%s, applied=%s, dry_run=%s",
        execution.stats.insert,
        execution.stats.update,
        execution.stats.delete,
        execution.applied,
        execution.dry_run,
    )
    return RunResult(
        stats=execution.stats,
        planned=execution.planned,
        applied=execution.applied,
        dry_run=execution.dry_run,
        skipped=execution.skipped,
    )


def record_history(
    collection: str,
    *,
    key: PartitionKey | None = None,
    content_hash: str | None = None,
    unit_of_work_factory: UnitOfWorkFactory | None = None,
    database: DatabaseConfig | None = None,
) -> Sequence[VersionedRecord]:
    """Return every version stored for ``collection``, oldest first."""

    effective_uow = _ensure_store(unit_of_work_factory, database)
    with effective_uow() as uow:
        return uow.repositories.versioned_records.history(
            collection, content_hash=content_hash, key=key
        )


def _ensure_store(
    unit_of_work_factory: UnitOfWorkFactory | None,
    database: DatabaseConfig | None,
) -> UnitOfWorkFactory:
    if unit_of_work_factory is not None:
        return unit_of_work_factory
    if not is_started():
        startup(database=database)
    return SqlAlchemyUnitOfWork
