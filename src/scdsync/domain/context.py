"""Run-scoped state shared by the phases of one reconciliation run."""

from __future__ import annotations

import threading
from dataclasses import dataclass, field
from datetime import UTC, datetime
from typing import TYPE_CHECKING, Protocol

from .errors import RunCancelledError
from .hashing import HashingOptions

if TYPE_CHECKING:
    from .hashing import KeyingStrategy
    from .scope import ScopeFilter


class Clock(Protocol):
    def __call__(self) -> datetime: ...


def _utcnow() -> datetime:
    return datetime.now(UTC)


@dataclass(slots=True, kw_only=True)
class RunContext:
    """Everything one run needs, created fresh per run and never reused.

    ``now`` is captured once; every insert, update and expiry of the run carries it.
    """

    scope: ScopeFilter
    now: datetime
    hashing: HashingOptions = field(default_factory=HashingOptions)
    keying: KeyingStrategy | None = None
    _cancelled: threading.Event = field(default_factory=threading.Event)

    @classmethod
    def start(
        cls,
        scope: ScopeFilter,
        *,
        hashing: HashingOptions | None = None,
        keying: KeyingStrategy | None = None,
        clock: Clock = _utcnow,
    ) -> RunContext:
        return cls(
            scope=scope,
            now=clock(),
            hashing=hashing or HashingOptions(),
            keying=keying,
        )

    def cancel(self) -> None:
        self._cancelled.set()

    @property
    def cancelled(self) -> bool:
        return self._cancelled.is_set()

    def check_cancelled(self, phase: str) -> None:
        if self._cancelled.is_set():
            raise RunCancelledError(f"Run cancelled before {phase}")
