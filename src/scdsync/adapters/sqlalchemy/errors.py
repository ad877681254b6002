"""Translation of SQLAlchemy failures into the run's error taxonomy."""

from __future__ import annotations

from contextlib import contextmanager
from typing import TYPE_CHECKING

from sqlalchemy.exc import SQLAlchemyError

if TYPE_CHECKING:
    from collections.abc import Iterator

    from scdsync.domain.errors import ScdSyncError


@contextmanager
def translate_errors(error_cls: type[ScdSyncError], action: str) -> Iterator[None]:
    try:
        yield
    except SQLAlchemyError as exc:
        raise error_cls(f"Failed to {action}: {exc}") from exc
