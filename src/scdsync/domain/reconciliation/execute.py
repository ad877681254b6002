"""Apply a mutation plan as one atomic batch, or preview it."""

from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import TYPE_CHECKING

from .plan import Expire, Insert, UpdatePayload

if TYPE_CHECKING:
    from collections.abc import Callable

    from scdsync.domain.context import RunContext
    from scdsync.domain.ports import VersionedRecordRepository, VersionedRecordUnitOfWork

    from .plan import Mutation, MutationPlan, MutationStats

log = logging.getLogger(__name__)


@dataclass(slots=True, frozen=True)
class ExecutionResult:
    """Outcome of executing one plan.

    ``applied`` counts committed mutations; a dry run and an empty plan both
    apply nothing. ``planned`` is the would-be mutation count.
    """

    stats: MutationStats
    planned: int
    applied: int = 0
    dry_run: bool = False
    skipped: bool = False


class MutationBatchExecutor:
    """Run a plan through one unit of work: every mutation lands or none does.

    Store failures surface as ``StoreTransactionError`` from the adapter and are
    not retried here.
    """

    def __init__(self, unit_of_work_factory: Callable[[], VersionedRecordUnitOfWork]) -> None:
        self._unit_of_work_factory = unit_of_work_factory

    def execute(
        self,
        plan: MutationPlan,
        *,
        dry_run: bool = False,
        context: RunContext | None = None,
    ) -> ExecutionResult:
        planned = len(plan)
        if not plan:
            log.info("There are no ops to send")
            return ExecutionResult(stats=plan.stats, planned=0, dry_run=dry_run, skipped=True)

        if dry_run:
            log.info("Dry run: %s ops would be sent", planned)
            for mutation in plan:
                log.debug("Dry run: would apply %s", describe_mutation(mutation))
            return ExecutionResult(stats=plan.stats, planned=planned, dry_run=True)

        if context is not None:
            context.check_cancelled("batch write")

        log.info("There are %s ops to send", planned)
        with self._unit_of_work_factory() as uow:
            repository = uow.repositories.versioned_records
            for mutation in plan:
                apply_mutation(repository, mutation)
            if context is not None:
                context.check_cancelled("commit")
            uow.commit()
        log.info("All ops sent %s", planned)
        return ExecutionResult(stats=plan.stats, planned=planned, applied=planned)


def apply_mutation(repository: VersionedRecordRepository, mutation: Mutation) -> None:
    match mutation:
        case Insert(record=record):
            repository.insert(record)
        case UpdatePayload(record_id=record_id, payload=payload, timestamp=timestamp):
            repository.update_payload(record_id, payload, timestamp)
        case Expire(record_id=record_id, timestamp=timestamp):
            repository.expire(record_id, timestamp)


def describe_mutation(mutation: Mutation) -> str:
    match mutation:
        case Insert(record=record):
            return f"insert hash={record.hash} key={record.key}"
        case UpdatePayload(record_id=record_id):
            return f"update record={record_id}"
        case Expire(record_id=record_id):
            return f"expire record={record_id}"
