from __future__ import annotations

from typing import TYPE_CHECKING

import pytest

from scdsync.config import (
    ConfigurationError,
    MissingConfigurationError,
    RunSettings,
    load_run_settings,
    parse_run_settings,
    resolve_keying_function,
)
from scdsync.domain.hashing import FieldKeying, HashingOptions

if TYPE_CHECKING:
    from pathlib import Path

SETTINGS_TOML = """
dry_run = true

[scope]
collection = "products"
keys = ["eu"]
payload_equals = { shop = 7, active = true }

[hashing]
pick = ["sku", "price"]

[keying]
fields = ["region", "shop"]
separator = "/"
"""


def test_load_run_settings_from_toml(tmp_path: Path) -> None:
    path = tmp_path / "run.toml"
    path.write_text(SETTINGS_TOML, encoding="utf-8")

    settings = load_run_settings(path)

    assert settings.dry_run is True
    scope = settings.scope_filter()
    assert scope.collection == "products"
    assert scope.keys == frozenset({"eu"})
    assert scope.payload_equals == {"shop": 7, "active": True}
    assert settings.hashing_options() == HashingOptions(pick=("sku", "price"))
    assert settings.keying_strategy() == FieldKeying(fields=("region", "shop"), separator="/")


def test_missing_collection_is_configuration_error() -> None:
    with pytest.raises(MissingConfigurationError, match=r"scope\.collection"):
        RunSettings().scope_filter()


def test_blank_collection_is_configuration_error() -> None:
    settings = parse_run_settings({"scope": {"collection": "  "}})

    with pytest.raises(ConfigurationError):
        settings.scope_filter()


def test_unknown_keys_are_rejected() -> None:
    with pytest.raises(ConfigurationError, match="Invalid run settings"):
        parse_run_settings({"hashing": {"pik": ["a"]}})


def test_keying_cannot_mix_function_and_fields() -> None:
    with pytest.raises(ConfigurationError):
        parse_run_settings({"keying": {"function": "a:b", "fields": ["x"]}})


def test_invalid_toml(tmp_path: Path) -> None:
    path = tmp_path / "run.toml"
    path.write_text("[scope\n", encoding="utf-8")

    with pytest.raises(ConfigurationError, match="Invalid TOML"):
        load_run_settings(path)


def test_missing_settings_file(tmp_path: Path) -> None:
    with pytest.raises(ConfigurationError, match="not found"):
        load_run_settings(tmp_path / "absent.toml")


def test_defaults_have_no_field_mutation_or_keying() -> None:
    settings = parse_run_settings({"scope": {"collection": "items"}})

    assert not settings.hashing_options().field_mutation
    assert settings.keying_strategy() is None
    assert settings.dry_run is False


def test_overrides_merge_scope_and_replace_strategies() -> None:
    base = parse_run_settings(
        {
            "scope": {"collection": "items", "keys": ["eu"]},
            "hashing": {"pick": ["a"]},
            "keying": {"function": "tests.helpers.keying:by_region"},
        }
    )

    merged = base.with_overrides(
        scope={"collection": None, "keys": ["us"]},
        hashing={"omit": ["b"]},
        keying={"fields": ["region"]},
        dry_run=True,
    )

    assert merged.scope.collection == "items"
    assert merged.scope.keys == ["us"]
    assert merged.hashing_options() == HashingOptions(omit=("b",))
    assert merged.keying_strategy() == FieldKeying(fields=("region",))
    assert merged.dry_run is True


def test_resolve_keying_function() -> None:
    keying = resolve_keying_function("tests.helpers.keying:by_region")

    assert keying({"region": "eu"}) == "eu"


@pytest.mark.parametrize(
    "reference",
    [
        "no_colon",
        "tests.helpers.keying:",
        "tests.helpers.absent_module:fn",
        "tests.helpers.keying:missing",
        "tests.helpers.keying:NOT_CALLABLE",
    ],
)
def test_resolve_keying_function_errors(reference: str) -> None:
    with pytest.raises(ConfigurationError):
        resolve_keying_function(reference)
