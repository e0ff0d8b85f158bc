"""
YAML configuration files for align-agents.

Up to four files are read, most specific first:

1. the file named by ``ALIGN_AGENTS_CONFIG``;
2. ``.align_agents/config.yml`` (or ``.yaml``) in the working directory;
3. ``~/.config/align-agents/config.yml``;
4. ``~/.align-agents/config.yml`` next to the default data directory.

Values may reference the environment as ``${VAR}`` or ``${VAR:-default}``
and a file may pull in another with ``!include other.yml``.  When files
are combined, sections (``storage``, ``backup``, ``logging``) merge key by
key and ``tools`` entries merge field by field on ``id``, the more specific
file winning.

Usage:
    from align_agents.config_loader import load_hierarchical_config

    raw = load_hierarchical_config()
"""

import logging
import os
import re
from collections.abc import Iterator
from pathlib import Path
from typing import Any

import yaml

logger = logging.getLogger(__name__)

CONFIG_ENV_VAR = "ALIGN_AGENTS_CONFIG"
PROJECT_DIRNAME = ".align_agents"
USER_DIRNAME = "align-agents"

_VAR_REF = re.compile(r"\$\{(?P<name>[^}:]+)(?::-(?P<default>[^}]*))?\}")


def interpolate_env_vars(value: str) -> str:
    """Expand ``${VAR}`` / ``${VAR:-default}`` references in *value*.

    An unset or empty variable expands to its default, or to "" when no
    default is given.  An unterminated ``${`` is left as is.
    """
    return _VAR_REF.sub(
        lambda m: os.environ.get(m["name"]) or (m["default"] or ""), value
    )


def _expand(node: Any) -> Any:
    if isinstance(node, str):
        return interpolate_env_vars(node)
    if isinstance(node, dict):
        return {key: _expand(val) for key, val in node.items()}
    if isinstance(node, list):
        return [_expand(item) for item in node]
    return node


# ---------------------------------------------------------------------------
# Reading one file
# ---------------------------------------------------------------------------


class _IncludeLoader(yaml.SafeLoader):
    """SafeLoader bound to the chain of files currently being read."""

    def __init__(self, stream, chain: tuple[Path, ...]):
        super().__init__(stream)
        self.chain = chain

    def include(self, node: yaml.ScalarNode) -> Any:
        current = self.chain[-1]
        target = (current.parent / self.construct_scalar(node)).resolve()
        if target in self.chain:
            loop = " -> ".join(p.name for p in (*self.chain, target))
            raise ValueError(f"Circular include detected in {current}: {loop}")
        if not target.is_file():
            raise FileNotFoundError(f"{current}: !include target {target} does not exist")
        return read_config_file(target, _chain=self.chain)


_IncludeLoader.add_constructor("!include", _IncludeLoader.include)


def read_config_file(path: Path, *, _chain: tuple[Path, ...] = ()) -> Any:
    """Parse one YAML file, following ``!include`` tags.

    Relative includes resolve against the including file.

    Raises:
        ValueError: An include refers back to a file already being read.
        FileNotFoundError: An include target is missing.
        yaml.YAMLError: Malformed YAML.
    """
    path = path.resolve()
    with open(path, encoding="utf-8") as fh:
        loader = _IncludeLoader(fh, (*_chain, path))
        try:
            return loader.get_single_data()
        finally:
            loader.dispose()


# ---------------------------------------------------------------------------
# Discovery
# ---------------------------------------------------------------------------


def _candidates() -> Iterator[Path]:
    explicit = os.environ.get(CONFIG_ENV_VAR)
    if explicit:
        yield Path(explicit).expanduser().resolve()
    project = Path.cwd() / PROJECT_DIRNAME
    yield project / "config.yml"
    yield project / "config.yaml"
    home = Path.home()
    yield home / ".config" / USER_DIRNAME / "config.yml"
    yield home / f".{USER_DIRNAME}" / "config.yml"


def discover_config_files() -> list[Path]:
    """Return the config files that exist, most specific first."""
    return [path for path in _candidates() if path.is_file()]


# ---------------------------------------------------------------------------
# Combining files
# ---------------------------------------------------------------------------


def _merge_tools(base: list[Any], override: list[Any]) -> list[Any]:
    by_id: dict[Any, dict[str, Any]] = {}
    loose: list[Any] = []
    for entry in [*base, *override]:
        if isinstance(entry, dict) and "id" in entry:
            by_id[entry["id"]] = {**by_id.get(entry["id"], {}), **entry}
        else:
            loose.append(entry)
    return [*by_id.values(), *loose]


def merge_config(base: dict[str, Any], override: dict[str, Any]) -> dict[str, Any]:
    """Overlay *override* on *base*.

    Mapping sections merge one level deep, ``tools`` lists merge on
    ``id``, anything else is replaced.
    """
    merged = dict(base)
    for key, value in override.items():
        previous = merged.get(key)
        if key == "tools" and isinstance(previous, list) and isinstance(value, list):
            merged[key] = _merge_tools(previous, value)
        elif isinstance(previous, dict) and isinstance(value, dict):
            merged[key] = {**previous, **value}
        else:
            merged[key] = value
    return merged


def load_hierarchical_config() -> dict[str, Any]:
    """Read every discovered config file and combine them.

    Returns an empty dict when there is no config file (zero-config).
    """
    paths = discover_config_files()
    if not paths:
        logger.debug("No config files found, using zero-config defaults")
        return {}

    combined: dict[str, Any] = {}
    for path in reversed(paths):
        data = read_config_file(path)
        if data is None:
            continue
        if not isinstance(data, dict):
            logger.warning(
                "Ignoring %s: top level is a %s, expected a mapping",
                path,
                type(data).__name__,
            )
            continue
        logger.debug("Loaded config: %s", path)
        combined = merge_config(combined, _expand(data))
    return combined
