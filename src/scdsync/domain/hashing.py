"""Content hashing and partition keying for desired entries.

The content hash decides whether an entry changed since the active version was
written; the partition key only groups records and never takes part in identity.
"""

from __future__ import annotations

import hashlib
import json
from collections.abc import Callable, Mapping
from dataclasses import dataclass
from typing import TYPE_CHECKING, Any, Final

from .errors import SerializationError

if TYPE_CHECKING:
    from collections.abc import Sequence

    from .model import ContentHash, DesiredEntry, PartitionKey

DEFAULT_PARTITION_KEY: Final[str] = "default"

type KeyingStrategy = Callable[[DesiredEntry], str]


@dataclass(frozen=True, slots=True)
class HashingOptions:
    """Which fields of an entry take part in the content hash.

    ``pick`` wins over ``omit`` when both are given. Configuring either one turns
    on field-mutation mode: a hash match no longer implies identical payloads.
    """

    pick: tuple[str, ...] | None = None
    omit: tuple[str, ...] | None = None

    @property
    def field_mutation(self) -> bool:
        return self.pick is not None or self.omit is not None

    def select(self, entry: DesiredEntry) -> dict[str, Any]:
        if self.pick is not None:
            return {name: entry[name] for name in self.pick if name in entry}
        if self.omit is not None:
            omitted = set(self.omit)
            return {name: value for name, value in entry.items() if name not in omitted}
        return dict(entry)


def canonical_json(value: Mapping[str, Any]) -> str:
    """Serialise ``value`` with stable key ordering at every nesting level.

    Mapping keys must be strings at every level; ``json`` would otherwise coerce
    ``1`` and ``"1"`` to the same key.
    """

    _require_string_keys(value)
    try:
        return json.dumps(
            value,
            sort_keys=True,
            separators=(",", ":"),
            ensure_ascii=False,
            allow_nan=False,
        )
    except (TypeError, ValueError) as exc:
        raise SerializationError(f"Entry cannot be canonically serialised: {exc}") from exc


def _require_string_keys(value: object, path: str = "$") -> None:
    if isinstance(value, Mapping):
        for key, item in value.items():
            if not isinstance(key, str):
                raise SerializationError(
                    f"Entry cannot be canonically serialised: non-string key {key!r} at {path}"
                )
            _require_string_keys(item, f"{path}.{key}")
    elif isinstance(value, list | tuple):
        for position, item in enumerate(value):
            _require_string_keys(item, f"{path}[{position}]")


def content_hash(entry: DesiredEntry, options: HashingOptions | None = None) -> ContentHash:
    """Return the hex SHA-1 digest of the canonical form of ``entry``."""

    if not isinstance(entry, Mapping):
        raise SerializationError(f"Entry must be a mapping, got {type(entry).__name__}")
    selected = (options or HashingOptions()).select(entry)
    encoded = canonical_json(selected).encode("utf-8")
    return hashlib.sha1(encoded, usedforsecurity=False).hexdigest()


def partition_key(entry: DesiredEntry, keying: KeyingStrategy | None = None) -> PartitionKey:
    if keying is None:
        return DEFAULT_PARTITION_KEY
    return keying(entry)


@dataclass(frozen=True, slots=True)
class FieldKeying:
    """Keying strategy joining the string form of selected entry fields."""

    fields: tuple[str, ...]
    separator: str = ":"

    def __post_init__(self) -> None:
        if not self.fields:
            raise ValueError("FieldKeying needs at least one field")

    def __call__(self, entry: DesiredEntry) -> str:
        return self.separator.join(_key_part(entry.get(name)) for name in self.fields)


def _key_part(value: object) -> str:
    if value is None:
        return ""
    return str(value)


def field_keying(fields: Sequence[str], *, separator: str = ":") -> FieldKeying:
    return FieldKeying(fields=tuple(fields), separator=separator)
