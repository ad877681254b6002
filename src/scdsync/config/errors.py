"""Configuration error definitions."""

from __future__ import annotations

from scdsync.domain.errors import ScdSyncError


class ConfigurationError(ScdSyncError):
    """Raised when configuration values are invalid."""


class MissingConfigurationError(ConfigurationError):
    """Raised when required configuration values are absent or blank."""
