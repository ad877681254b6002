"""Load the desired snapshot from JSON or JSON-lines files."""

from __future__ import annotations

import json
import logging
from typing import TYPE_CHECKING, Any

from pydantic import TypeAdapter, ValidationError

from scdsync.domain.errors import SnapshotError

if TYPE_CHECKING:
    from pathlib import Path

log = logging.getLogger(__name__)

_ENTRIES = TypeAdapter(list[dict[str, Any]])
_ENTRY = TypeAdapter(dict[str, Any])

JSONL_SUFFIXES = frozenset({".jsonl", ".ndjson"})


def load_snapshot(path: Path) -> list[dict[str, Any]]:
    """Return the desired entries stored at ``path``, in file order.

    ``.jsonl``/``.ndjson`` files hold one JSON object per line; anything else must
    be a single JSON array of objects.
    """

    try:
        text = path.read_text(encoding="utf-8")
    except OSError as exc:
        raise SnapshotError(f"Cannot read snapshot {path}: {exc}") from exc

    if path.suffix.lower() in JSONL_SUFFIXES:
        entries = _parse_lines(text, path)
    else:
        try:
            entries = _ENTRIES.validate_json(text)
        except ValidationError as exc:
            raise SnapshotError(f"Snapshot {path} must be a JSON array of objects: {exc}") from exc

    log.info("Loaded %s desired entries from %s", len(entries), path)
    return entries


def _parse_lines(text: str, path: Path) -> list[dict[str, Any]]:
    entries: list[dict[str, Any]] = []
    for lineno, line in enumerate(text.splitlines(), start=1):
        if not line.strip():
            continue
        try:
            entries.append(_ENTRY.validate_python(json.loads(line)))
        except (json.JSONDecodeError, ValidationError) as exc:
            raise SnapshotError(f"{path}:{lineno}: expected a JSON object: {exc}") from exc
    return entries
