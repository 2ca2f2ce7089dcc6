"""Configuration models and environment-driven settings."""

from ormsync.core.config.settings import (
    DatabaseConfig,
    OrmSyncSettings,
    PoolConfig,
    clear_settings_cache,
    get_settings,
)

__all__ = [
    "DatabaseConfig",
    "OrmSyncSettings",
    "PoolConfig",
    "clear_settings_cache",
    "get_settings",
]
