"""Environment-driven configuration for dtree."""

from __future__ import annotations

from functools import lru_cache
from typing import Literal

from pydantic import Field
from pydantic_settings import BaseSettings

# Valid log levels for enable_logging; DECISION is registered by dtree.logging
type LogLevel = Literal[
    "TRACE",
    "DEBUG",
    "INFO",
    "DECISION",
    "WARNING",
    "ERROR",
    "CRITICAL",
]

# Valid log format styles
type LogFormat = Literal["short", "full"]


class DTreeSettings(BaseSettings, env_prefix="DTREE_", env_file=".env", env_file_encoding="utf-8", extra="ignore"):
    """Settings read from ``DTREE_*`` environment variables or a local ``.env`` file.

    Attributes:
        dialect (str | None): sqlglot dialect used to parse predicates and outcome
            values. ``None`` selects sqlglot's default dialect, where strings are
            single-quoted and double quotes delimit identifiers.
        log_level (LogLevel): Default minimum level for ``enable_logging()``.
        log_format (LogFormat): Default format style for ``enable_logging()``.
    """

    dialect: str | None = Field(default=None, description="sqlglot dialect used to parse expressions.")
    log_level: LogLevel = Field(default="DECISION", description="Default minimum level for enable_logging().")
    log_format: LogFormat = Field(default="short", description="Default format style for enable_logging().")


@lru_cache(maxsize=1)
def get_settings() -> DTreeSettings:
    """Return the process-wide settings, loading them on first use.

    Call ``get_settings.cache_clear()`` after changing the environment to reload.

    Returns:
        DTreeSettings: The cached settings instance.
    """
    return DTreeSettings()
