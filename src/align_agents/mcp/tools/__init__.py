"""MCP tool handlers for align-agents.

This package wraps the synchronous ``SyncEngine`` with async handlers,
formatted text output, structured content, and error responses with
corrective actions.
"""

from .errors import build_error_response, translate_engine_error
from .library import LIBRARY_SPECS, LIBRARY_TOOLS
from .library_write import LIBRARY_WRITE_SPECS, LIBRARY_WRITE_TOOLS
from .registry import ToolRegistry, ToolSpec
from .sync import SYNC_SPECS, SYNC_TOOLS

ALL_SPECS: list[ToolSpec] = SYNC_SPECS + LIBRARY_SPECS + LIBRARY_WRITE_SPECS

__all__ = [
    "build_error_response",
    "translate_engine_error",
    # Registry
    "ToolSpec",
    "ToolRegistry",
    # Spec lists
    "ALL_SPECS",
    "SYNC_SPECS",
    "LIBRARY_SPECS",
    "LIBRARY_WRITE_SPECS",
    # Tool lists
    "SYNC_TOOLS",
    "LIBRARY_TOOLS",
    "LIBRARY_WRITE_TOOLS",
]
