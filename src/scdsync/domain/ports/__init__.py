"""Ports describing the store contract required by the reconciliation core."""

from __future__ import annotations

from .persistence import VersionedRecordRepository
from .unit_of_work import UnitOfWork, VersionedRecordRepositories, VersionedRecordUnitOfWork

__all__ = [
    "UnitOfWork",
    "VersionedRecordRepositories",
    "VersionedRecordRepository",
    "VersionedRecordUnitOfWork",
]
