"""Runtime configuration for align-agents.

Reads storage and backup settings from CLI args, environment variables,
.env files, and YAML config file fallbacks.

Precedence (highest to lowest):
    CLI args > Environment variables > .env file > YAML config > Built-in defaults

Environment variables:
    ALIGN_AGENTS_HOME: Data directory (optional, default: ~/.align-agents)
    ALIGN_AGENTS_DB: SQLite database path (optional, default: <home>/align-agents.db)
    ALIGN_AGENTS_BACKUP: Snapshot targets before writing (optional, default: true)
    ALIGN_AGENTS_MAX_BACKUPS: Snapshots kept per file (optional, default: 5)
    ALIGN_AGENTS_DEBUG: Enable debug logging (optional, default: false)
"""

import logging
import os
from dataclasses import dataclass
from pathlib import Path

logger = logging.getLogger(__name__)

DEFAULT_HOME = "~/.align-agents"
DB_FILENAME = "align-agents.db"


@dataclass
class Config:
    home_dir: str
    database: str
    backup_enabled: bool = True
    max_backups: int = 5
    debug: bool = False
    read_only: bool = False


def validate_config(config: Config) -> None:
    """Validate configuration values and raise ValueError if invalid.

    Args:
        config: Config instance to validate.

    Raises:
        ValueError: If paths are empty or max_backups is out of range.
    """
    config.home_dir = config.home_dir.strip()
    config.database = config.database.strip()

    if not config.home_dir:
        raise ValueError(
            "Data directory cannot be empty. Set ALIGN_AGENTS_HOME or pass --home."
        )
    if not config.database:
        raise ValueError(
            "Database path cannot be empty. Set ALIGN_AGENTS_DB or pass --db."
        )
    if not (1 <= config.max_backups <= 100):
        raise ValueError(
            f"Invalid max_backups {config.max_backups}: must be between 1 and 100"
        )

    if config.database != ":memory:" and Path(config.database).expanduser().is_dir():
        raise ValueError(
            f"Database path '{config.database}' is a directory, expected a file"
        )

    if not config.backup_enabled:
        logger.warning(
            "Backups disabled: tool configs will be overwritten without snapshots."
        )


def load_config(
    home_dir: str | None = None,
    database: str | None = None,
    debug: bool = False,
    read_only: bool = False,
    yaml_fallbacks: dict | None = None,
) -> Config:
    """Load configuration with unified precedence.

    Resolution order for each field (highest to lowest):
        CLI arg > env var / .env > yaml_fallbacks > built-in default

    The caller is responsible for calling ``load_dotenv()`` before this
    function so that .env values are available via ``os.getenv()``.

    Args:
        home_dir: Override data directory.
        database: Override database file.
        debug: Enable debug logging (CLI flag).
        read_only: Hide mutating MCP tools (CLI flag).
        yaml_fallbacks: Flat dict built from the YAML ``storage`` and
            ``backup`` sections (keys: home_dir, database, enabled,
            max_backups).

    Returns:
        Validated Config instance.

    Raises:
        ValueError: If a value is malformed after checking all sources.
    """
    fb = yaml_fallbacks or {}

    # --- Path fields: CLI > env > YAML > default ---

    final_home = (
        home_dir
        or os.getenv("ALIGN_AGENTS_HOME")
        or fb.get("home_dir")
        or DEFAULT_HOME
    )
    final_home = str(Path(final_home.strip()).expanduser())

    final_db = database or os.getenv("ALIGN_AGENTS_DB") or fb.get("database")
    if not final_db:
        final_db = str(Path(final_home) / DB_FILENAME)
    elif final_db != ":memory:":
        final_db = str(Path(final_db.strip()).expanduser())

    # --- Boolean fields: CLI > env > YAML > default ---

    def get_bool_env(key: str) -> bool | None:
        """Return True/False from env var, or None if unset."""
        val = os.getenv(key)
        if val is None:
            return None
        return val.lower() in ("true", "1", "yes", "on")

    env_backup = get_bool_env("ALIGN_AGENTS_BACKUP")
    if env_backup is not None:
        final_backup = env_backup
    else:
        final_backup = bool(fb.get("enabled", True))

    if debug:
        final_debug = True
    else:
        env_debug = get_bool_env("ALIGN_AGENTS_DEBUG")
        final_debug = bool(env_debug)

    # --- Numeric fields: env > YAML > default ---

    max_backups_raw = os.getenv("ALIGN_AGENTS_MAX_BACKUPS")
    if max_backups_raw is not None:
        try:
            final_max_backups = int(max_backups_raw)
        except ValueError:
            raise ValueError(
                f"Invalid ALIGN_AGENTS_MAX_BACKUPS '{max_backups_raw}': must be a number between 1 and 100"
            ) from None
    elif "max_backups" in fb:
        final_max_backups = int(fb["max_backups"])
    else:
        final_max_backups = 5

    config = Config(
        home_dir=final_home,
        database=final_db,
        backup_enabled=final_backup,
        max_backups=final_max_backups,
        debug=final_debug,
        read_only=read_only,
    )

    validate_config(config)

    return config
