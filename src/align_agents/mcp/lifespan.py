"""Lifespan management for MCP server startup and shutdown."""

import logging
import sys
from collections.abc import AsyncIterator
from contextlib import asynccontextmanager
from typing import Any

from dotenv import load_dotenv

from ..capabilities import CapabilityRegistry
from ..config import load_config
from ..config_loader import discover_config_files, load_hierarchical_config
from ..config_schema import build_config
from ..store.database import Database
from ..sync.backup import TimestampedBackup
from ..sync.engine import SyncEngine

logger = logging.getLogger(__name__)


def _stderr_print(msg: str) -> None:
    """Print message to stderr for user feedback (safe in MCP mode)."""
    print(msg, file=sys.stderr, flush=True)


@asynccontextmanager
async def server_lifespan(
    config_overrides: dict[str, Any] | None = None,
) -> AsyncIterator[dict[str, Any]]:
    """
    Manage server startup and shutdown lifecycle.

    On startup:
    - Load .env file (so values are available for env var lookups and YAML interpolation)
    - Load YAML config file if present (storage/backup fallbacks, tool overrides)
    - Merge all sources via load_config(): CLI > env vars > .env > YAML > defaults
    - Open the SQLite store and build the SyncEngine

    On shutdown:
    - Close the database connection

    Args:
        config_overrides: Optional dict with values from CLI (home_dir, database, debug, read_only)

    Yields:
        Dict with 'engine' (SyncEngine) and 'config' (Config) keys

    Raises:
        RuntimeError: If configuration is invalid or the database cannot be opened.
    """
    logger.info("MCP server starting...")
    _stderr_print("align-agents MCP server starting...")

    overrides = config_overrides or {}
    try:
        load_dotenv()

        yaml_fallbacks: dict[str, Any] = {}
        tool_overrides = []
        sources = []
        config_files = discover_config_files()
        if config_files:
            unified = build_config(load_hierarchical_config())
            yaml_fallbacks = {
                k: v
                for k, v in {
                    **unified.storage.model_dump(),
                    **unified.backup.model_dump(),
                }.items()
                if v is not None
            }
            tool_overrides = list(unified.tools)
            sources.append(f"config file: {config_files[0]}")

        config = load_config(
            home_dir=overrides.get("home_dir"),
            database=overrides.get("database"),
            debug=overrides.get("debug", False),
            read_only=overrides.get("read_only", False),
            yaml_fallbacks=yaml_fallbacks,
        )

        if overrides:
            sources.append("CLI arguments")
        sources.append("environment variables")
        source_desc = ", ".join(sources)
        logger.info("Configuration loaded from: %s", source_desc)
        _stderr_print(f"  Configuration loaded from: {source_desc}")
    except ValueError as e:
        logger.error("Configuration error: %s", e)
        _stderr_print(f"ERROR: Configuration error: {e}")
        raise RuntimeError(f"Configuration error: {e}") from e

    try:
        db = Database(config.database)
    except Exception as e:
        logger.error("Failed to open database %s: %s", config.database, e)
        _stderr_print(f"ERROR: Cannot open database {config.database}: {e}")
        raise RuntimeError(f"Database error: {e}") from e

    registry = CapabilityRegistry.with_overrides(tool_overrides)
    backup = TimestampedBackup(
        enabled=config.backup_enabled, max_backups=config.max_backups
    )
    engine = SyncEngine(db, registry, backup=backup)

    logger.info("Database: %s (%d tools known)", config.database, len(registry.ids()))
    _stderr_print(f"  Database: {config.database}")
    _stderr_print("Server ready. Waiting for MCP client connection...")

    try:
        yield {"engine": engine, "config": config}
    finally:
        db.close()
        logger.info("MCP server shutting down")
        _stderr_print("align-agents MCP server shutting down.")
