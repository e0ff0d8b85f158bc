"""Config file format adapter.

``ConfigFormat`` is the single place that knows how each supported tool
config format is parsed, serialized, and which top-level key holds the
MCP server map.  The orchestrator never branches on format itself.

JSON is parsed and written with the standard library.  TOML is parsed
with ``tomllib`` and written with ``tomli_w``; inline tables
(``env = { A = "1" }``) and sub-tables (``[mcp_servers.x.env]``) parse to
the same dict, so ``env`` round-trips regardless of how it was written.
"""

from __future__ import annotations

import json
import tomllib
from enum import Enum
from pathlib import Path
from typing import Any

import tomli_w

from ..errors import FormatError


class ConfigFormat(str, Enum):
    """Supported config file formats."""

    JSON = "json"
    TOML = "toml"

    @property
    def container_key(self) -> str:
        """Top-level key holding the MCP server map."""
        return _CONTAINER_KEYS[self]

    @property
    def label(self) -> str:
        return self.value.upper()

    @classmethod
    def for_path(cls, path: str | Path) -> ConfigFormat:
        """Pick the format from the file extension (``.toml`` or JSON)."""
        return cls.TOML if Path(path).suffix.lower() == ".toml" else cls.JSON

    def loads(self, text: str) -> dict[str, Any]:
        """Parse *text* into a document dict.

        Blank content parses as an empty document.  A leading UTF-8 BOM is
        ignored.

        Raises:
            FormatError: If the text is not valid for this format or its
                root is not a table/object.
        """
        text = text.removeprefix("\ufeff")
        if not text.strip():
            return {}
        try:
            if self is ConfigFormat.TOML:
                data = tomllib.loads(text)
            else:
                data = json.loads(text)
        except (json.JSONDecodeError, tomllib.TOMLDecodeError) as exc:
            raise FormatError(
                f"Failed to parse existing config as {self.label}: {exc}",
                error_code="parse_error",
                details={"format": self.value},
            ) from exc
        if not isinstance(data, dict):
            raise FormatError(
                f"Expected a {self.label} object at the document root, "
                f"got {type(data).__name__}",
                error_code="parse_error",
                details={"format": self.value},
            )
        return data

    def dumps(self, document: dict[str, Any]) -> str:
        """Serialize *document*; output always ends with a newline.

        Raises:
            FormatError: If a value has no TOML representation (``None``).
        """
        if self is ConfigFormat.TOML:
            try:
                text = tomli_w.dumps(document)
            except TypeError as exc:
                raise FormatError(
                    f"Cannot write config as TOML: {exc}",
                    error_code="serialize_error",
                    details={"format": self.value},
                ) from exc
        else:
            text = json.dumps(document, indent=2, ensure_ascii=False)
        return text if text.endswith("\n") else text + "\n"

    def get_servers(self, document: dict[str, Any]) -> dict[str, Any]:
        """Return the server map of *document* ({} when absent).

        Raises:
            FormatError: If the container key holds something other than a map.
        """
        servers = document.get(self.container_key, {})
        if not isinstance(servers, dict):
            raise FormatError(
                f"'{self.container_key}' must be a table/object, "
                f"got {type(servers).__name__}",
                error_code="invalid_container",
                details={"format": self.value, "key": self.container_key},
            )
        return servers


_CONTAINER_KEYS: dict[ConfigFormat, str] = {
    ConfigFormat.JSON: "mcpServers",
    ConfigFormat.TOML: "mcp_servers",
}
