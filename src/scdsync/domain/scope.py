"""Scope filters restricting which active records take part in a run."""

from __future__ import annotations

from collections.abc import Mapping
from dataclasses import dataclass, field
from typing import Any

type ScopeValue = str | int | float | bool


@dataclass(frozen=True, slots=True)
class ScopeFilter:
    """Active records of ``collection``, optionally narrowed by key and payload fields."""

    collection: str
    keys: frozenset[str] | None = None
    payload_equals: dict[str, ScopeValue] = field(default_factory=dict[str, "ScopeValue"])

    def __post_init__(self) -> None:
        if not self.collection.strip():
            raise ValueError("Scope collection must not be blank")

    def admits(self, key: str, payload: Mapping[str, Any]) -> bool:
        """Whether a record with ``key`` and ``payload`` would be loaded by this scope."""

        if self.keys is not None and key not in self.keys:
            return False
        return all(
            _field_matches(payload.get(name), expected)
            for name, expected in self.payload_equals.items()
        )

    def describe(self) -> str:
        parts = [f"collection={self.collection}"]
        if self.keys is not None:
            parts.append(f"keys={sorted(self.keys)}")
        if self.payload_equals:
            parts.append(f"payload={self.payload_equals}")
        return ", ".join(parts)


def _field_matches(actual: object, expected: ScopeValue) -> bool:
    # bool is an int subclass; keep true/false distinct from 1/0
    if isinstance(expected, bool) or isinstance(actual, bool):
        return actual is expected
    return actual == expected
