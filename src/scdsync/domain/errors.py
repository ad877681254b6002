"""Error taxonomy surfaced by a reconciliation run."""

from __future__ import annotations


class ScdSyncError(RuntimeError):
    """Base class for every failure a run reports to its caller."""


class SerializationError(ScdSyncError):
    """Raised when a desired entry cannot be canonically serialised for hashing."""


class StoreConnectionError(ScdSyncError):
    """Raised when the store cannot be reached, provisioned or queried."""


class StoreTransactionError(ScdSyncError):
    """Raised when a mutation batch fails; nothing from the batch is persisted."""


class RunCancelledError(ScdSyncError):
    """Raised when a run is cancelled before its batch was committed."""


class SnapshotError(ScdSyncError):
    """Raised when the desired snapshot cannot be read or parsed."""
