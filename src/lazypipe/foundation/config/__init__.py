"""Configuration management using pydantic-settings.

Provides environment-based configuration with type safety and validation.
"""

from .settings import (
    LazypipeSettings,
    LoggingSettings,
    MergeSettings,
    PipeSettings,
    ReleaseMode,
    clear_settings_cache,
    get_settings,
)

__all__ = [
    "LazypipeSettings",
    "LoggingSettings",
    "MergeSettings",
    "PipeSettings",
    "ReleaseMode",
    "clear_settings_cache",
    "get_settings",
]
