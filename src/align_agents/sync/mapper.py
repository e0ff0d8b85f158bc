"""Target path resolution for tool configs.

Translates a (tool, kind, scope) triple into the concrete file that a
sync writes.

Resolution order:

1. **Explicit override** -- returned unconditionally.
2. **Tool lookup** -- unknown tool ids raise ``NotFoundError``.
3. **Global scope** -- the tool's declared global location for the kind
   (MCP: ``mcp_config_path`` or first config path; rules:
   ``global_rules_dir / rules_filename``).
4. **Project scope** -- an existing project root joined with the tool's
   project-relative filename for the kind.
"""

from __future__ import annotations

from enum import Enum
from pathlib import Path

from ..capabilities import CapabilityRegistry, ToolMetadata
from ..errors import ValidationError


class TargetKind(str, Enum):
    """What a sync writes: MCP server map or rules document."""

    MCP = "mcp"
    RULES = "rules"


class TargetPathResolver:
    """Resolve on-disk sync targets from tool capabilities.

    Args:
        registry: Capability registry used for tool lookup.
    """

    def __init__(self, registry: CapabilityRegistry) -> None:
        self._registry = registry

    def resolve(
        self,
        tool_id: str,
        kind: TargetKind,
        *,
        is_global: bool = True,
        path_override: str | Path | None = None,
        project_root: str | Path | None = None,
    ) -> Path:
        """Return the target file for *tool_id*.

        Args:
            tool_id: Registered tool id.
            kind: ``TargetKind.MCP`` or ``TargetKind.RULES``.
            is_global: Global (home directory) vs project scope.
            path_override: Explicit target; wins over everything else.
            project_root: Project directory, required when not global.

        Raises:
            NotFoundError: Unknown tool.
            ValidationError: Missing global location, missing/nonexistent
                project root, or no project-scoped filename for the kind.
        """
        if path_override:
            return Path(path_override).expanduser()

        tool = self._registry.require(tool_id)

        if is_global:
            return self._global_target(tool, kind)
        return self._project_target(tool, kind, project_root)

    # ------------------------------------------------------------------
    # Internal helpers
    # ------------------------------------------------------------------

    @staticmethod
    def _global_target(tool: ToolMetadata, kind: TargetKind) -> Path:
        path = (
            tool.global_mcp_path()
            if kind is TargetKind.MCP
            else tool.global_rules_path()
        )
        if path is None:
            raise ValidationError(
                f"Tool '{tool.id}' declares no global {kind.value} location",
                error_code="no_global_target",
                details={"tool_id": tool.id, "kind": kind.value},
            )
        return path

    @staticmethod
    def _project_target(
        tool: ToolMetadata,
        kind: TargetKind,
        project_root: str | Path | None,
    ) -> Path:
        if not project_root or not str(project_root).strip():
            raise ValidationError(
                "project root is required for project-scoped sync",
                error_code="missing_project_root",
                details={"tool_id": tool.id},
            )
        root = Path(project_root).expanduser()
        if not root.is_dir():
            raise ValidationError(
                f"project root does not exist: {root}",
                error_code="missing_project_root",
                details={"tool_id": tool.id, "project_root": str(root)},
            )

        filename = (
            tool.project_mcp_filename
            if kind is TargetKind.MCP
            else tool.rules_filename
        )
        if not filename:
            raise ValidationError(
                "tool does not support project-scoped target",
                error_code="unsupported_scope",
                details={"tool_id": tool.id, "kind": kind.value},
            )
        return root / filename
