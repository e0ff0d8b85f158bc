"""Content reconciliation strategies.

Pure functions, no I/O:

- ``apply_text_strategy`` -- whole-file text reconciliation for rule
  documents (overwrite / append / smart-update).
- ``deep_merge_server_map`` -- field-level merge of two MCP server maps.
- ``merge_server_map`` -- container-level reconciliation used by MCP sync.

``smart-update`` maintains one managed region in the target file delimited
by ``MARKER_START`` / ``MARKER_END``.  These literals are written into user
files and must never change.
"""

from __future__ import annotations

import copy
from enum import Enum
from typing import Any

from ..errors import ValidationError

MARKER_START = "<!-- align-agents-start -->"
MARKER_END = "<!-- align-agents-end -->"


class TextStrategy(str, Enum):
    """Reconciliation policy for whole-file text targets."""

    OVERWRITE = "overwrite"
    APPEND = "append"
    SMART_UPDATE = "smart-update"

    @classmethod
    def parse(cls, value: str | TextStrategy) -> TextStrategy:
        """Return the member for *value*; ``smart_update`` is accepted too.

        Raises:
            ValidationError: If *value* names no known strategy.
        """
        if isinstance(value, cls):
            return value
        normalized = str(value).strip().lower().replace("_", "-")
        try:
            return cls(normalized)
        except ValueError:
            raise ValidationError(
                f"unknown strategy '{value}'",
                error_code="unknown_strategy",
                details={"allowed": [m.value for m in cls]},
            ) from None


class ServerStrategy(str, Enum):
    """Reconciliation policy for the MCP server container of a config file."""

    OVERWRITE = "overwrite"
    APPEND = "append"
    DEEP_MERGE = "deep-merge"

    @classmethod
    def parse(cls, value: str | ServerStrategy) -> ServerStrategy:
        """Return the member for *value*.

        Unrecognised values fall back to ``APPEND`` (shallow merge), the
        default branch of MCP reconciliation.
        """
        if isinstance(value, cls):
            return value
        normalized = str(value).strip().lower().replace("_", "-")
        try:
            return cls(normalized)
        except ValueError:
            return cls.APPEND


# ------------------------------------------------------------------
# Text reconciliation
# ------------------------------------------------------------------


def _separator(current: str) -> str:
    """Line-break(s) to insert between *current* and appended text."""
    return "\n" if current.endswith("\n") else "\n\n"


def _append(current: str, incoming: str) -> str:
    if not current:
        return incoming
    return current + _separator(current) + incoming


def _wrap(incoming: str) -> str:
    return f"{MARKER_START}\n{incoming}\n{MARKER_END}"


def _smart_update(current: str, incoming: str) -> str:
    if MARKER_START in incoming or MARKER_END in incoming:
        raise ValidationError(
            "rule content must not contain the managed region markers",
            error_code="marker_in_content",
            details={"markers": [MARKER_START, MARKER_END]},
        )
    start = current.find(MARKER_START)
    end = current.find(MARKER_END, start + len(MARKER_START)) if start != -1 else -1
    if start == -1 or end == -1:
        return _append(current, _wrap(incoming))

    head = current[: start + len(MARKER_START)]
    tail = current[end:]
    return f"{head}\n{incoming}\n{tail}"


def apply_text_strategy(
    current: str, incoming: str, strategy: str | TextStrategy
) -> str:
    """Reconcile *current* file text with *incoming* source text.

    Args:
        current: Existing target content ("" when the file is new).
        incoming: Content of the selected source rule.
        strategy: ``overwrite``, ``append`` or ``smart-update``.

    Returns:
        The text to write.

    Raises:
        ValidationError: If *strategy* is not recognised, or if
            ``smart-update`` is given *incoming* text containing a marker.
    """
    match TextStrategy.parse(strategy):
        case TextStrategy.OVERWRITE:
            return incoming
        case TextStrategy.APPEND:
            return _append(current, incoming)
        case TextStrategy.SMART_UPDATE:
            return _smart_update(current, incoming)


def has_managed_block(content: str) -> bool:
    """Return ``True`` if *content* contains a complete managed region."""
    start = content.find(MARKER_START)
    return start != -1 and content.find(MARKER_END, start) != -1


# ------------------------------------------------------------------
# Server map reconciliation
# ------------------------------------------------------------------


def deep_merge_server_map(
    existing: dict[str, Any], incoming: dict[str, Any]
) -> dict[str, Any]:
    """Merge *incoming* server entries into *existing* field by field.

    For a name present on both sides, fields of ``incoming[name]`` override
    the same fields of ``existing[name]``; fields only in the existing entry
    (timeouts, trust flags, allow/deny lists) survive.  Names unique to
    either side pass through.  Neither input is mutated.
    """
    merged = copy.deepcopy(existing)
    for name, entry in incoming.items():
        current = merged.get(name)
        if isinstance(current, dict) and isinstance(entry, dict):
            updated = dict(current)
            updated.update(copy.deepcopy(entry))
            merged[name] = updated
        else:
            merged[name] = copy.deepcopy(entry)
    return merged


def merge_server_map(
    existing: dict[str, Any],
    selection: dict[str, Any],
    strategy: str | ServerStrategy,
) -> dict[str, Any]:
    """Apply *strategy* to the server container of a config document.

    ``overwrite`` replaces the container with *selection*, ``deep-merge``
    delegates to :func:`deep_merge_server_map`, anything else shallow-merges
    (colliding names are replaced wholesale).
    """
    match ServerStrategy.parse(strategy):
        case ServerStrategy.OVERWRITE:
            return copy.deepcopy(selection)
        case ServerStrategy.DEEP_MERGE:
            return deep_merge_server_map(existing, selection)
        case _:
            merged = copy.deepcopy(existing)
            merged.update(copy.deepcopy(selection))
            return merged
