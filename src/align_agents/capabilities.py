"""Tool capability registry.

Read-only facts about each supported AI tool: where its config lives,
which format it uses, whether it accepts MCP servers, and which rules
file it reads.  Paths are stored with a leading ``~`` and expanded on
access so the registry can be built once and used under a different
``HOME`` (tests rely on this).

The built-in table can be extended or overridden from the ``tools``
section of the YAML config (see ``config_schema.UnifiedConfig``).
"""

from __future__ import annotations

import logging
import shutil
import sys
from pathlib import Path

from pydantic import BaseModel, Field

from .errors import NotFoundError

logger = logging.getLogger(__name__)


def expand(path: str) -> Path:
    """Expand ``~`` in *path* against the current home directory."""
    return Path(path).expanduser()


class ToolMetadata(BaseModel):
    """Capabilities and path conventions of a single tool.

    Attributes:
        id: Stable tool identifier (``codex``, ``cursor-ide`` ...).
        name: Display name.
        category: ``desktop``, ``cli`` or ``ide``.
        format: Declared config format, ``json`` or ``toml``.
        config_paths: Candidate config files, most specific first.
        mcp_config_path: Global file holding the MCP server map.
        rules_filename: Rules document name (``AGENTS.md``, ``.cursorrules``).
        global_rules_dir: Directory holding the global rules document.
        project_mcp_filename: Project-relative MCP config file.
        supports_mcp: Whether the tool reads MCP server definitions.
        app_path: Application bundle used for the install check.
        cli_command: Executable used for the install check.
    """

    id: str
    name: str
    category: str = "cli"
    format: str = Field(default="json", pattern="^(json|toml)$")
    config_paths: list[str] = []
    mcp_config_path: str | None = None
    rules_filename: str | None = None
    global_rules_dir: str | None = None
    project_mcp_filename: str | None = None
    supports_mcp: bool = True
    app_path: str | None = None
    cli_command: str | None = None

    model_config = {"frozen": True}

    @property
    def supports_rules(self) -> bool:
        return bool(self.rules_filename)

    def global_mcp_path(self) -> Path | None:
        """Global MCP target: ``mcp_config_path`` or the first config path."""
        if not self.supports_mcp:
            return None
        if self.mcp_config_path:
            return expand(self.mcp_config_path)
        if self.config_paths:
            return expand(self.config_paths[0])
        return None

    def global_rules_path(self) -> Path | None:
        """Global rules target: ``global_rules_dir / rules_filename``."""
        if self.global_rules_dir and self.rules_filename:
            return expand(self.global_rules_dir) / self.rules_filename
        return None


def _claude_desktop_config() -> str:
    if sys.platform == "darwin":
        return "~/Library/Application Support/Claude/claude_desktop_config.json"
    if sys.platform.startswith("win"):
        return "~/AppData/Roaming/Claude/claude_desktop_config.json"
    return "~/.config/Claude/claude_desktop_config.json"


BUILTIN_TOOLS: list[ToolMetadata] = [
    # Desktop
    ToolMetadata(
        id="claude-desktop",
        name="Claude Desktop",
        category="desktop",
        config_paths=[
            "~/Library/Application Support/Claude/claude_desktop_config.json",
            "~/AppData/Roaming/Claude/claude_desktop_config.json",
        ],
        mcp_config_path=_claude_desktop_config(),
        format="json",
        supports_mcp=True,
        app_path="/Applications/Claude.app",
    ),
    # CLI
    ToolMetadata(
        id="github-copilot-cli",
        name="GitHub Copilot",
        category="cli",
        config_paths=[
            "~/.config/github-copilot/hosts.json",
            "~/.config/github-copilot/config.json",
        ],
        format="json",
        supports_mcp=False,
        cli_command="github-copilot-cli",
    ),
    ToolMetadata(
        id="codex",
        name="Codex",
        category="cli",
        config_paths=["~/.codex/config.toml", "~/.codex/config.json"],
        mcp_config_path="~/.codex/config.toml",
        format="toml",
        supports_mcp=True,
        rules_filename="AGENTS.md",
        global_rules_dir="~/.codex",
        cli_command="codex",
    ),
    ToolMetadata(
        id="gemini-cli",
        name="Gemini CLI",
        category="cli",
        config_paths=[
            "~/.gemini/settings.json",
            "~/AppData/Roaming/gemini-cli/settings.json",
        ],
        mcp_config_path="~/.gemini/settings.json",
        project_mcp_filename=".gemini/settings.json",
        format="json",
        supports_mcp=True,
        rules_filename="GEMINI.md",
        global_rules_dir="~/.gemini",
        cli_command="gemini",
    ),
    ToolMetadata(
        id="claude-code-cli",
        name="Claude Code",
        category="cli",
        config_paths=["~/.claude.json", "~/.claude/settings.json"],
        mcp_config_path="~/.claude.json",
        project_mcp_filename=".mcp.json",
        format="json",
        supports_mcp=True,
        rules_filename="CLAUDE.md",
        global_rules_dir="~/.claude",
        cli_command="claude",
    ),
    ToolMetadata(
        id="qwen-cli",
        name="Qwen",
        category="cli",
        config_paths=["~/.qwen/settings.json", "~/.qwen/oauth_creds.json"],
        mcp_config_path="~/.qwen/settings.json",
        project_mcp_filename=".qwen/settings.json",
        format="json",
        supports_mcp=True,
        cli_command="qwen",
    ),
    # IDE
    ToolMetadata(
        id="cursor-ide",
        name="Cursor",
        category="ide",
        config_paths=[
            "~/.cursor/cli-config.json",
            "~/Library/Application Support/Cursor/User/globalStorage/storage.json",
        ],
        mcp_config_path="~/.cursor/mcp.json",
        project_mcp_filename=".cursor/mcp.json",
        format="json",
        supports_mcp=True,
        rules_filename=".cursorrules",
        global_rules_dir="~",
        app_path="/Applications/Cursor.app",
        cli_command="cursor",
    ),
    ToolMetadata(
        id="windsurf-ide",
        name="Windsurf",
        category="ide",
        config_paths=["~/.codeium/windsurf/settings.json"],
        mcp_config_path="~/.codeium/windsurf/mcp_config.json",
        format="json",
        supports_mcp=True,
        rules_filename=".windsurfrules",
        global_rules_dir="~",
        app_path="/Applications/Windsurf.app",
        cli_command="windsurf",
    ),
]


class CapabilityRegistry:
    """Lookup of ``ToolMetadata`` by id, in registration order.

    Args:
        tools: Tool entries; later entries with a duplicate id replace
            earlier ones.
    """

    def __init__(self, tools: list[ToolMetadata] | None = None) -> None:
        self._tools: dict[str, ToolMetadata] = {}
        for tool in BUILTIN_TOOLS if tools is None else tools:
            self._tools[tool.id] = tool

    @classmethod
    def with_overrides(
        cls, overrides: list[ToolMetadata] | None = None
    ) -> CapabilityRegistry:
        """Built-in tools, then *overrides* replacing or adding entries."""
        registry = cls()
        for tool in overrides or []:
            if tool.id in registry._tools:
                logger.debug("Overriding built-in tool metadata: %s", tool.id)
            registry._tools[tool.id] = tool
        return registry

    def get(self, tool_id: str) -> ToolMetadata | None:
        return self._tools.get(tool_id)

    def require(self, tool_id: str) -> ToolMetadata:
        """Return the metadata for *tool_id*.

        Raises:
            NotFoundError: If the tool is unknown.
        """
        tool = self._tools.get(tool_id)
        if tool is None:
            raise NotFoundError(
                f"Unknown tool '{tool_id}'",
                error_code="tool_not_found",
                details={"available": list(self._tools)},
            )
        return tool

    def list(self) -> list[ToolMetadata]:
        return list(self._tools.values())

    def ids(self) -> list[str]:
        return list(self._tools)

    def mcp_capable(self) -> list[ToolMetadata]:
        return [t for t in self._tools.values() if t.supports_mcp]

    def rules_capable(self) -> list[ToolMetadata]:
        return [t for t in self._tools.values() if t.supports_rules]

    def is_installed(self, tool_id: str) -> bool:
        """Cheap install check: any known path exists or the CLI is on PATH."""
        tool = self.get(tool_id)
        if tool is None:
            return False
        candidates = list(tool.config_paths)
        if tool.mcp_config_path:
            candidates.append(tool.mcp_config_path)
        if tool.global_rules_dir and tool.global_rules_dir != "~":
            candidates.append(tool.global_rules_dir)
        if tool.app_path:
            candidates.append(tool.app_path)
        if any(expand(p).exists() for p in candidates):
            return True
        return bool(tool.cli_command and shutil.which(tool.cli_command))
