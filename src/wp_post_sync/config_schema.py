"""Unified configuration schema for wp_post_sync.

Defines Pydantic models for the YAML config file with dedicated sections
for the WordPress connection, sync behaviour, and logging.

Usage:
    from wp_post_sync.config_schema import build_config, to_fallbacks

    raw = load_hierarchical_config()
    unified = build_config(raw)
    config = load_config(yaml_fallbacks=to_fallbacks(unified))
"""

from __future__ import annotations

import logging
from typing import Any

from pydantic import BaseModel, Field

logger = logging.getLogger(__name__)


# ---------------------------------------------------------------------------
# Section models
# ---------------------------------------------------------------------------


class WordPressConfig(BaseModel):
    """WordPress REST connection settings.

    All fields are optional to support zero-config: env vars and CLI args
    can supply them at runtime instead.
    """

    base_url: str | None = Field(
        default=None, description="WordPress REST base URL"
    )
    bearer_token: str | None = Field(
        default=None, description="Bearer token"
    )
    insecure: bool = Field(
        default=False,
        description="Disable SSL verification (development only)",
    )
    debug: bool = Field(default=False, description="Enable debug mode")
    timeout: float | None = Field(
        default=None, gt=0, description="Read timeout in seconds"
    )

    model_config = {"frozen": True}


class SyncConfig(BaseModel):
    """Sync pass settings.

    Attributes:
        cache_path: Local cache root directory.
        sync_limit: Posts fetched per status per pass (the window).
        statuses: Post statuses listed to build the remote window, in
            priority order for de-duplication.
        lock_timeout: Seconds after which a cache lock is considered
            stale.
    """

    cache_path: str | None = Field(
        default=None, description="Local cache root"
    )
    sync_limit: int | None = Field(
        default=None,
        ge=1,
        le=100,
        description="Posts fetched per status per pass (1-100)",
    )
    statuses: list[str] = Field(
        default_factory=lambda: ["publish", "draft"],
        min_length=1,
        description="Statuses listed for the remote window",
    )
    lock_timeout: float = Field(
        default=600.0,
        gt=0,
        description="Seconds before a cache lock is treated as stale",
    )

    model_config = {"frozen": True}


class LoggingConfig(BaseModel):
    """Logging configuration.

    Attributes:
        level: Log level name (DEBUG, INFO, WARNING, ERROR, CRITICAL).
        file: Optional log file path.
        format: ``text`` or ``json``.
    """

    level: str = Field(default="INFO", description="Log level")
    file: str | None = Field(default=None, description="Log file path")
    format: str = Field(default="text", pattern="^(text|json)$")

    model_config = {"frozen": True}


# ---------------------------------------------------------------------------
# Top-level unified config
# ---------------------------------------------------------------------------


class UnifiedConfig(BaseModel):
    """Top-level unified configuration.

    Every section has sensible defaults, so ``UnifiedConfig()``
    (zero-config) is always valid.
    """

    wordpress: WordPressConfig = Field(default_factory=WordPressConfig)
    sync: SyncConfig = Field(default_factory=SyncConfig)
    logging: LoggingConfig = Field(default_factory=LoggingConfig)

    model_config = {"frozen": True}


def build_config(raw_data: dict) -> UnifiedConfig:
    """Construct a ``UnifiedConfig`` from the raw dict returned by
    ``load_hierarchical_config()``.

    Args:
        raw_data: Merged configuration dictionary.

    Returns:
        Validated ``UnifiedConfig`` instance.
    """
    if not raw_data:
        return UnifiedConfig()

    return UnifiedConfig(**raw_data)


def to_fallbacks(unified: UnifiedConfig) -> dict[str, Any]:
    """Flatten the YAML-sourced values ``load_config()`` falls back on.

    Keys whose value is unset are omitted so built-in defaults apply.
    """
    values: dict[str, Any] = {
        "base_url": unified.wordpress.base_url,
        "bearer_token": unified.wordpress.bearer_token,
        "insecure": unified.wordpress.insecure,
        "debug": unified.wordpress.debug,
        "timeout": unified.wordpress.timeout,
        "cache_path": unified.sync.cache_path,
        "sync_limit": unified.sync.sync_limit,
    }
    return {key: value for key, value in values.items() if value is not None}
