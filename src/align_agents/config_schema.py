"""Unified configuration schema for align_agents.

Defines Pydantic models for the YAML config structure with dedicated
sections for storage, backups, logging and tool metadata overrides.

Usage:
    from align_agents.config_schema import UnifiedConfig, build_config

    raw = load_hierarchical_config()
    unified = build_config(raw)
"""

from __future__ import annotations

import logging

from pydantic import BaseModel, Field

from .capabilities import ToolMetadata

logger = logging.getLogger(__name__)


# ---------------------------------------------------------------------------
# Section models
# ---------------------------------------------------------------------------


class StorageConfig(BaseModel):
    """Where align-agents keeps its state.

    All fields are optional to support zero-config: env vars and CLI args
    can supply them at runtime instead.
    """

    home_dir: str | None = Field(
        default=None, description="Data directory (default ~/.align-agents)"
    )
    database: str | None = Field(
        default=None,
        description="SQLite database file (default <home_dir>/align-agents.db)",
    )

    model_config = {"frozen": True}


class BackupConfig(BaseModel):
    """Pre-write snapshot settings."""

    enabled: bool = Field(default=True, description="Snapshot targets before writing")
    max_backups: int = Field(
        default=5,
        ge=1,
        le=100,
        description="Snapshots kept per target file (1-100)",
    )

    model_config = {"frozen": True}


class LoggingConfig(BaseModel):
    """Logging configuration.

    Attributes:
        level: Log level name (DEBUG, INFO, WARNING, ERROR, CRITICAL).
        file: Optional log file path.
    """

    level: str = Field(default="INFO", description="Log level")
    file: str | None = Field(default=None, description="Log file path")

    model_config = {"frozen": True}


# ---------------------------------------------------------------------------
# Top-level unified config
# ---------------------------------------------------------------------------


class UnifiedConfig(BaseModel):
    """Top-level unified configuration.

    Aggregates all config sections. Every section has sensible defaults,
    so ``UnifiedConfig()`` (zero-config) is always valid.  ``tools``
    entries replace built-in tool metadata with the same id or add new
    tools.
    """

    storage: StorageConfig = Field(default_factory=StorageConfig)
    backup: BackupConfig = Field(default_factory=BackupConfig)
    logging: LoggingConfig = Field(default_factory=LoggingConfig)
    tools: list[ToolMetadata] = Field(default_factory=list)

    model_config = {"frozen": True}


# ---------------------------------------------------------------------------
# Factory function
# ---------------------------------------------------------------------------


def build_config(raw_data: dict) -> UnifiedConfig:
    """Construct a ``UnifiedConfig`` from the raw dict returned by
    ``load_hierarchical_config()``.

    Missing sections get their defaults.

    Args:
        raw_data: Merged configuration dictionary.

    Returns:
        Validated ``UnifiedConfig`` instance.
    """
    if not raw_data:
        return UnifiedConfig()

    return UnifiedConfig(**raw_data)
