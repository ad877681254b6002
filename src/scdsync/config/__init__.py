"""Application configuration helpers."""

from __future__ import annotations

from .env import float_env_var, require_env_var, require_env_vars
from .errors import ConfigurationError, MissingConfigurationError
from .logging import configure_logging
from .run import (
    HashingSettings,
    KeyingSettings,
    RunSettings,
    ScopeSettings,
    load_run_settings,
    parse_run_settings,
    resolve_keying_function,
)
from .storage import DatabaseConfig, StorageConfig, get_database_config, get_storage_config

__all__ = [
    "ConfigurationError",
    "DatabaseConfig",
    "HashingSettings",
    "KeyingSettings",
    "MissingConfigurationError",
    "RunSettings",
    "ScopeSettings",
    "StorageConfig",
    "configure_logging",
    "float_env_var",
    "get_database_config",
    "get_storage_config",
    "load_run_settings",
    "parse_run_settings",
    "require_env_var",
    "require_env_vars",
    "resolve_keying_function",
]
