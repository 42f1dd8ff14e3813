"""Environment-based configuration using pydantic-settings.

Provides type-safe, validated defaults for pipelines, the merge engine and
logging. Supports .env files and nested configuration.

Example:
    >>> from lazypipe.foundation.config import get_settings
    >>> settings = get_settings()
    >>> settings.pipe.move_on_chain
    True
    >>> settings.merge.release
    'detach'
    
    # Or with environment variables:
    # LAZYPIPE_PIPE_ERR_ON_MOVE=true
    # LAZYPIPE_MERGE_RELEASE=await
    # LAZYPIPE_LOG_LEVEL=DEBUG
"""

from __future__ import annotations

from functools import lru_cache
from typing import Literal

from pydantic import Field, field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict

ReleaseMode = Literal["detach", "await"]
LogFormat = Literal["console", "json", "none"]


class PipeSettings(BaseSettings):
    """Default move discipline for new Pipe instances."""
    
    model_config = SettingsConfigDict(
        env_prefix="LAZYPIPE_PIPE_",
        extra="ignore",
    )
    
    err_on_move: bool = Field(default=False, description="Raise 'use after move' instead of yielding nothing")
    move_on_chain: bool = Field(default=True, description="Deriving a pipe invalidates the original")


class MergeSettings(BaseSettings):
    """Merge engine configuration."""
    
    model_config = SettingsConfigDict(
        env_prefix="LAZYPIPE_MERGE_",
        extra="ignore",
    )
    
    release: ReleaseMode = Field(
        default="detach",
        description="'detach' releases abandoned sources in the background, 'await' waits for them",
    )
    
    @field_validator("release", mode="before")
    @classmethod
    def _normalize_release(cls, v: str) -> str:
        return v.lower() if isinstance(v, str) else v

class LoggingSettings(BaseSettings):
    """Logging configuration."""
    
    model_config = SettingsConfigDict(
        env_prefix="LAZYPIPE_LOG_",
        extra="ignore",
    )
    
    level: Literal["DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"] = "INFO"
    format: LogFormat = "console"
    
    @field_validator("level", mode="before")
    @classmethod
    def _normalize_level(cls, v: str) -> str:
        return v.upper() if isinstance(v, str) else v

    @field_validator("format", mode="before")
    @classmethod
    def _normalize_format(cls, v: str) -> str:
        return v.lower() if isinstance(v, str) else v


class LazypipeSettings(BaseSettings):
    """Root settings for lazypipe.
    
    Loads configuration from environment variables with LAZYPIPE_ prefix.
    Supports nested configuration and .env files.
    
    Example environment variables:
        LAZYPIPE_PIPE_ERR_ON_MOVE=true
        LAZYPIPE_PIPE_MOVE_ON_CHAIN=false
        LAZYPIPE_MERGE_RELEASE=await
        LAZYPIPE_LOG_FORMAT=json
    """
    
    model_config = SettingsConfigDict(
        env_prefix="LAZYPIPE_",
        env_file=".env",
        env_file_encoding="utf-8",
        env_nested_delimiter="__",
        extra="ignore",
        validate_default=True,
    )
    
    # Nested settings (loaded with LAZYPIPE_PIPE_, LAZYPIPE_MERGE_, LAZYPIPE_LOG_)
    pipe: PipeSettings = Field(default_factory=PipeSettings)
    merge: MergeSettings = Field(default_factory=MergeSettings)
    logging: LoggingSettings = Field(default_factory=LoggingSettings)


@lru_cache(maxsize=1)
def get_settings() -> LazypipeSettings:
    """Get the global settings instance (cached).
    
    Example:
        >>> settings = get_settings()
        >>> settings.pipe.err_on_move
        False
    """
    return LazypipeSettings()


def clear_settings_cache() -> None:
    """Clear the settings cache (useful for testing).
    
    After calling this, the next get_settings() call will
    reload configuration from environment.
    """
    get_settings.cache_clear()
