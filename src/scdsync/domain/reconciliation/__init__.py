"""Reconciliation of a desired snapshot against the active versioned records.

Flow of one run:
1) load the active records in scope into an ``ActiveRecordIndex``
2) ``reconcile`` the desired entries against it into a ``MutationPlan``
3) apply the plan atomically with ``MutationBatchExecutor`` (or preview it)
"""

from __future__ import annotations

from .engine import reconcile
from .execute import ExecutionResult, MutationBatchExecutor
from .plan import Expire, Insert, Mutation, MutationPlan, MutationStats, UpdatePayload

__all__ = [
    "ExecutionResult",
    "Expire",
    "Insert",
    "Mutation",
    "MutationBatchExecutor",
    "MutationPlan",
    "MutationStats",
    "UpdatePayload",
    "reconcile",
]
