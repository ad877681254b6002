"""Run settings loaded from a TOML file and validated with pydantic."""

from __future__ import annotations

import importlib
import logging
import tomllib
from typing import TYPE_CHECKING, Any, cast

from pydantic import BaseModel, ConfigDict, Field, ValidationError, model_validator

from scdsync.domain.hashing import FieldKeying, HashingOptions
from scdsync.domain.scope import ScopeFilter, ScopeValue

from .errors import ConfigurationError, MissingConfigurationError

if TYPE_CHECKING:
    from collections.abc import Callable
    from pathlib import Path

    from scdsync.domain.hashing import KeyingStrategy

log = logging.getLogger(__name__)


class SettingsModel(BaseModel):
    model_config = ConfigDict(extra="forbid", frozen=True)


class ScopeSettings(SettingsModel):
    collection: str | None = None
    keys: list[str] | None = None
    payload_equals: dict[str, ScopeValue] = Field(default_factory=dict[str, ScopeValue])


class HashingSettings(SettingsModel):
    pick: list[str] | None = None
    omit: list[str] | None = None


class KeyingSettings(SettingsModel):
    function: str | None = None
    fields: list[str] | None = None
    separator: str = ":"

    @model_validator(mode="after")
    def _single_strategy(self) -> KeyingSettings:
        if self.function is not None and self.fields is not None:
            raise ValueError("keying accepts either 'function' or 'fields', not both")
        if self.fields is not None and not self.fields:
            raise ValueError("keying 'fields' must not be empty")
        return self


class RunSettings(SettingsModel):
    """Everything configurable about one reconciliation run except the snapshot."""

    scope: ScopeSettings = Field(default_factory=ScopeSettings)
    hashing: HashingSettings = Field(default_factory=HashingSettings)
    keying: KeyingSettings = Field(default_factory=KeyingSettings)
    dry_run: bool = False

    def with_overrides(
        self,
        *,
        scope: dict[str, Any] | None = None,
        hashing: dict[str, Any] | None = None,
        keying: dict[str, Any] | None = None,
        dry_run: bool | None = None,
    ) -> RunSettings:
        """Return a copy with overrides applied.

        Scope values are merged field by field; hashing and keying sections are
        replaced as a whole so file and command line strategies never mix.
        """

        data = self.model_dump()
        if scope:
            data["scope"].update({k: v for k, v in scope.items() if v is not None})
        if hashing:
            data["hashing"] = hashing
        if keying:
            data["keying"] = keying
        if dry_run is not None:
            data["dry_run"] = dry_run
        return parse_run_settings(data)

    def scope_filter(self) -> ScopeFilter:
        collection = self.scope.collection
        if collection is None or not collection.strip():
            raise MissingConfigurationError("Missing configuration for: scope.collection")
        keys = frozenset(self.scope.keys) if self.scope.keys is not None else None
        return ScopeFilter(
            collection=collection,
            keys=keys,
            payload_equals=dict(self.scope.payload_equals),
        )

    def hashing_options(self) -> HashingOptions:
        pick = tuple(self.hashing.pick) if self.hashing.pick is not None else None
        omit = tuple(self.hashing.omit) if self.hashing.omit is not None else None
        return HashingOptions(pick=pick, omit=omit)

    def keying_strategy(self) -> KeyingStrategy | None:
        if self.keying.function is not None:
            return resolve_keying_function(self.keying.function)
        if self.keying.fields is not None:
            return FieldKeying(fields=tuple(self.keying.fields), separator=self.keying.separator)
        return None


def parse_run_settings(data: dict[str, Any]) -> RunSettings:
    try:
        return RunSettings.model_validate(data)
    except ValidationError as exc:
        raise ConfigurationError(f"Invalid run settings: {exc}") from exc


def load_run_settings(path: Path) -> RunSettings:
    """Read and validate run settings from ``path``."""

    try:
        with path.open("rb") as handle:
            document = tomllib.load(handle)
    except FileNotFoundError as exc:
        raise ConfigurationError(f"Run settings file not found: {path}") from exc
    except tomllib.TOMLDecodeError as exc:
        raise ConfigurationError(f"Invalid TOML in {path}: {exc}") from exc
    log.debug("Loaded run settings from %s", path)
    return parse_run_settings(document)


def resolve_keying_function(reference: str) -> KeyingStrategy:
    """Import ``package.module:attribute`` and return it as a keying strategy."""

    module_name, sep, attribute = reference.partition(":")
    if not sep or not module_name or not attribute:
        raise ConfigurationError(
            f"Keying function must look like 'package.module:function', got {reference!r}"
        )
    try:
        module = importlib.import_module(module_name)
    except ImportError as exc:
        raise ConfigurationError(f"Cannot import keying module {module_name!r}") from exc
    target: object = module
    for part in attribute.split("."):
        try:
            target = getattr(target, part)
        except AttributeError as exc:
            raise ConfigurationError(f"Keying function {reference!r} not found") from exc
    if not callable(target):
        raise ConfigurationError(f"Keying function {reference!r} is not callable")
    return cast("Callable[[Any], str]", target)
