"""Core sync engine: single-tool and fleet-wide synchronization.

The ``SyncEngine`` ties together the store, path resolver, format
adapter, strategies, state tracker and backup collaborator.

Single-tool MCP sync (``sync_one_mcp``):

1. Resolve the source set into a ``name -> {command, args, env}`` map.
2. Compute the selection (all names, or the requested subset).
3. Resolve the target path and format.
4. Snapshot the existing target (best effort).
5. Parse it, reconcile the server container with the strategy, and
   serialize; every other top-level field is left untouched.
6. Warn on drift, write atomically, record the new checksum.

Single-tool rules sync (``sync_one_rules``) follows the same steps on
whole-file text.

Fleet syncs run tools **sequentially** and isolate each tool: an
exception becomes an ``error`` result for that tool only.  One audit
record is appended per fleet run.
"""

from __future__ import annotations

import logging
import time
from pathlib import Path

from ..capabilities import CapabilityRegistry, ToolMetadata
from ..errors import ValidationError
from ..file_handler import read_text_if_exists, write_file
from ..store.database import Database
from ..store.history import SyncHistoryRepository
from ..store.mcp import McpRepository
from ..store.rules import RuleRepository
from ..store.sync_config import SyncConfigRepository
from .backup import BackupProvider
from .formats import ConfigFormat
from .mapper import TargetKind, TargetPathResolver
from .models import (
    HistoryStatus,
    HistoryTargetType,
    SyncHistoryEntry,
    SyncResult,
    SyncStatus,
)
from .reporter import summarize
from .state import SyncStateTracker
from .strategies import TextStrategy, apply_text_strategy, merge_server_map

logger = logging.getLogger(__name__)

GLOBAL_TOOL_ID = "global"


class SyncEngine:
    """Propagate MCP sets and rules into tool config files.

    Args:
        db: Open ``Database``.
        registry: Tool capability registry.
        backup: Optional backup collaborator called before each write.
    """

    def __init__(
        self,
        db: Database,
        registry: CapabilityRegistry,
        backup: BackupProvider | None = None,
    ) -> None:
        self.db = db
        self.registry = registry
        self.backup = backup

        self.mcp_sets = McpRepository(db)
        self.rules = RuleRepository(db)
        self.sync_configs = SyncConfigRepository(db)
        self.history = SyncHistoryRepository(db)
        self.state = SyncStateTracker(db)
        self.resolver = TargetPathResolver(registry)

    # ------------------------------------------------------------------
    # Single tool: MCP
    # ------------------------------------------------------------------

    def sync_one_mcp(
        self,
        tool_id: str,
        path: str | Path | None,
        selected_names: list[str] | None,
        strategy: str,
        source_id: str | None,
        *,
        is_global: bool = True,
        project_root: str | Path | None = None,
    ) -> list[str]:
        """Write the selected servers of set *source_id* into one tool config.

        Args:
            tool_id: Target tool.
            path: Explicit config file; ``None`` resolves from the tool.
            selected_names: Server names to write; ``None`` means all.
            strategy: ``overwrite``, ``append`` or ``deep-merge``.
            source_id: Id of the MCP set to propagate.
            is_global: Scope used when *path* is not given.
            project_root: Project directory for project scope.

        Returns:
            Names actually written, in source order ([] when nothing was
            written).

        Raises:
            ValidationError: Missing source id, unresolvable target.
            NotFoundError: Unknown set or tool.
            FormatError: Existing target is not valid JSON/TOML.
        """
        if not source_id:
            raise ValidationError(
                "source_id (MCP set id) is required for sync",
                error_code="missing_source_id",
            )

        source_map = self.mcp_sets.resolve_server_map(source_id)
        if not source_map:
            logger.warning(
                "MCP set %s has no enabled servers; nothing to sync for %s",
                source_id,
                tool_id,
            )
            return []

        if selected_names is None:
            selection = dict(source_map)
        else:
            selection = {
                name: source_map[name]
                for name in selected_names
                if name in source_map
            }
        if not selection:
            logger.warning(
                "No requested servers exist in MCP set %s; skipping %s",
                source_id,
                tool_id,
            )
            return []

        target = self.resolver.resolve(
            tool_id,
            TargetKind.MCP,
            is_global=is_global,
            path_override=path,
            project_root=project_root,
        )
        fmt = ConfigFormat.for_path(target)

        current = read_text_if_exists(target)
        if current is not None:
            self._snapshot(f"mcp:{tool_id}", target)

        document = fmt.loads(current or "")
        existing = fmt.get_servers(document)
        document[fmt.container_key] = merge_server_map(
            existing, selection, strategy
        )
        output = fmt.dumps(document)

        self._write(target, current, output)
        logger.info(
            "Synced %d MCP servers to %s (%s, %s)",
            len(selection),
            target,
            fmt.label,
            strategy,
        )
        return list(selection)

    # ------------------------------------------------------------------
    # Single tool: rules
    # ------------------------------------------------------------------

    def sync_one_rules(
        self,
        tool_id: str,
        project_root: str | Path | None = None,
        strategy: str = "overwrite",
        source_id: str | None = None,
        *,
        is_global: bool = True,
        path_override: str | Path | None = None,
    ) -> Path:
        """Write rule *source_id* into one tool's rules document.

        Args:
            tool_id: Target tool.
            project_root: Project directory for project scope.
            strategy: ``overwrite``, ``append`` or ``smart-update``.
            source_id: Id of the rule to propagate.
            is_global: Global rules file vs ``project_root/<rules file>``.
            path_override: Explicit target file.

        Returns:
            The path that was written.

        Raises:
            ValidationError: Missing source id, unknown strategy,
                unresolvable target.
            NotFoundError: Unknown rule or tool.
        """
        text_strategy = TextStrategy.parse(strategy)
        if not source_id:
            raise ValidationError(
                "source_id (rule id) is required for sync",
                error_code="missing_source_id",
            )
        rule = self.rules.require(source_id)

        target = self.resolver.resolve(
            tool_id,
            TargetKind.RULES,
            is_global=is_global,
            path_override=path_override,
            project_root=project_root,
        )

        current = read_text_if_exists(target)
        if current is not None:
            self._snapshot(f"rules:{tool_id}", target)

        output = apply_text_strategy(current or "", rule.content, text_strategy)
        self._write(target, current, output)
        logger.info(
            "Synced rule '%s' to %s (%s)", rule.name, target, text_strategy.value
        )

        try:
            self.sync_configs.set_rules_source(tool_id, source_id)
        except Exception as exc:
            logger.warning(
                "Could not record rules source for %s: %s", tool_id, exc
            )
        return target

    # ------------------------------------------------------------------
    # Single tool with result + audit record
    # ------------------------------------------------------------------

    def sync_tool_mcp(
        self,
        tool_id: str,
        source_id: str | None,
        strategy: str = "overwrite",
        *,
        selected_names: list[str] | None = None,
        path: str | Path | None = None,
        is_global: bool | None = None,
        project_root: str | Path | None = None,
    ) -> SyncResult:
        """Sync one tool and record it in the audit log.

        Unlike ``sync_one_mcp`` this never raises for sync failures; the
        failure is returned as an ``error`` result.

        Raises:
            NotFoundError: Unknown tool.
        """
        tool = self.registry.require(tool_id)
        started = time.monotonic()
        if is_global is None:
            is_global = project_root is None
        result = self._isolated_mcp(
            tool, source_id, strategy, selected_names, path, is_global, project_root
        )
        self._record_history(
            HistoryTargetType.MCP_SET,
            source_id,
            self._set_name(source_id),
            [result],
            strategy,
            started,
        )
        return result

    def sync_tool_rules(
        self,
        tool_id: str,
        source_id: str | None,
        strategy: str = "overwrite",
        *,
        project_root: str | Path | None = None,
        is_global: bool | None = None,
        path: str | Path | None = None,
    ) -> SyncResult:
        """Rules counterpart of :meth:`sync_tool_mcp`.

        Raises:
            NotFoundError: Unknown tool.
        """
        tool = self.registry.require(tool_id)
        started = time.monotonic()
        if is_global is None:
            is_global = project_root is None
        result = self._isolated_rules(
            tool, source_id, strategy, project_root, is_global, path
        )
        self._record_history(
            HistoryTargetType.RULE,
            source_id,
            self._rule_name(source_id),
            [result],
            strategy,
            started,
        )
        return result

    # ------------------------------------------------------------------
    # Fleet
    # ------------------------------------------------------------------

    def sync_fleet_mcp(
        self,
        source_id: str | None,
        tools: list[str] | None = None,
        strategy: str = "overwrite",
    ) -> list[SyncResult]:
        """Sync MCP set *source_id* to every tool in *tools* (default: all).

        Never raises: a missing source id yields a single ``error`` result,
        and each tool's failure is confined to its own result.
        """
        if not source_id:
            return [_missing_source_result("MCP set")]

        started = time.monotonic()
        results: list[SyncResult] = []
        for tool_id in self._fleet_ids(tools):
            tool = self.registry.get(tool_id)
            if tool is None:
                results.append(_unknown_tool_result(tool_id))
                continue
            precheck = self._precheck(tool, TargetKind.MCP)
            if precheck is not None:
                results.append(precheck)
                continue

            config = self.sync_configs.get(tool.id)
            project_root = config.target_path
            is_global = (
                config.is_global
                if config.is_global is not None
                else not project_root
            )
            results.append(
                self._isolated_mcp(
                    tool,
                    source_id,
                    strategy,
                    config.servers,
                    None,
                    is_global,
                    project_root,
                )
            )

        self._record_history(
            HistoryTargetType.ALL_MCP,
            source_id,
            self._set_name(source_id),
            results,
            strategy,
            started,
        )
        return results

    def sync_fleet_rules(
        self,
        target_path: str | Path | None,
        strategy: str = "overwrite",
        source_id: str | None = None,
        tools: list[str] | None = None,
    ) -> list[SyncResult]:
        """Sync rule *source_id* to every tool in *tools* (default: all).

        Per tool, the project root is the tool's configured ``target_path``
        falling back to *target_path*; scope is the configured
        ``is_global``, else project when a root is known, else global.
        """
        if not source_id:
            return [_missing_source_result("rule")]

        started = time.monotonic()
        results: list[SyncResult] = []
        for tool_id in self._fleet_ids(tools):
            tool = self.registry.get(tool_id)
            if tool is None:
                results.append(_unknown_tool_result(tool_id))
                continue
            precheck = self._precheck(tool, TargetKind.RULES)
            if precheck is not None:
                results.append(precheck)
                continue

            config = self.sync_configs.get(tool.id)
            project_root = config.target_path or (
                str(target_path) if target_path else None
            )
            is_global = (
                config.is_global
                if config.is_global is not None
                else not project_root
            )

            if not is_global and not project_root:
                results.append(
                    _result(tool, SyncStatus.SKIPPED, "no project path configured")
                )
                continue
            if is_global and tool.global_rules_path() is None:
                results.append(
                    _result(
                        tool, SyncStatus.SKIPPED, "tool has no global rules location"
                    )
                )
                continue

            results.append(
                self._isolated_rules(
                    tool, source_id, strategy, project_root, is_global, None
                )
            )

        self._record_history(
            HistoryTargetType.ALL_RULES,
            source_id,
            self._rule_name(source_id),
            results,
            strategy,
            started,
        )
        return results

    # ------------------------------------------------------------------
    # Internal helpers
    # ------------------------------------------------------------------

    def _fleet_ids(self, tools: list[str] | None) -> list[str]:
        return list(tools) if tools is not None else self.registry.ids()

    def _precheck(self, tool: ToolMetadata, kind: TargetKind) -> SyncResult | None:
        """Skip/unsupported result for a known tool, or ``None`` to proceed."""
        if not self.registry.is_installed(tool.id):
            return _result(tool, SyncStatus.SKIPPED, "tool not installed")
        supported = tool.supports_mcp if kind is TargetKind.MCP else tool.supports_rules
        if not supported:
            return _result(
                tool,
                SyncStatus.UNSUPPORTED,
                f"tool does not support {kind.value} sync",
            )
        if not self.sync_configs.get(tool.id).enabled:
            return _result(tool, SyncStatus.SKIPPED, "sync disabled for tool")
        return None

    def _isolated_mcp(
        self,
        tool: ToolMetadata,
        source_id: str | None,
        strategy: str,
        selected_names: list[str] | None,
        path: str | Path | None,
        is_global: bool,
        project_root: str | Path | None,
    ) -> SyncResult:
        target: Path | None = None
        try:
            target = self.resolver.resolve(
                tool.id,
                TargetKind.MCP,
                is_global=is_global,
                path_override=path,
                project_root=project_root,
            )
            applied = self.sync_one_mcp(
                tool.id,
                target,
                selected_names,
                strategy,
                source_id,
                is_global=is_global,
                project_root=project_root,
            )
        except Exception as exc:
            logger.error("MCP sync failed for %s: %s", tool.id, exc)
            return _result(
                tool, SyncStatus.ERROR, str(exc), target_path=target
            )
        if not applied:
            return _result(
                tool,
                SyncStatus.SKIPPED,
                "no servers to sync",
                target_path=target,
                applied_server_names=[],
            )
        return _result(
            tool,
            SyncStatus.SUCCESS,
            target_path=target,
            applied_server_names=applied,
        )

    def _isolated_rules(
        self,
        tool: ToolMetadata,
        source_id: str | None,
        strategy: str,
        project_root: str | Path | None,
        is_global: bool,
        path: str | Path | None,
    ) -> SyncResult:
        try:
            target = self.sync_one_rules(
                tool.id,
                project_root,
                strategy,
                source_id,
                is_global=is_global,
                path_override=path,
            )
        except Exception as exc:
            logger.error("Rules sync failed for %s: %s", tool.id, exc)
            return _result(tool, SyncStatus.ERROR, str(exc))
        return _result(tool, SyncStatus.SUCCESS, target_path=target)

    def _snapshot(self, label: str, target: Path) -> None:
        if self.backup is None:
            return
        try:
            self.backup.create_snapshot(label, target)
        except Exception as exc:
            logger.warning("Backup of %s failed, continuing: %s", target, exc)

    def _write(self, target: Path, current: str | None, output: str) -> None:
        self.state.detect_drift(target, current)
        write_file(target, output)
        self.state.record(target, output)

    def _set_name(self, source_id: str | None) -> str | None:
        if not source_id:
            return None
        mcp_set = self.mcp_sets.get_set(source_id, include_archived=True)
        return mcp_set.name if mcp_set else None

    def _rule_name(self, source_id: str | None) -> str | None:
        if not source_id:
            return None
        rule = self.rules.get(source_id)
        return rule.name if rule else None

    def _record_history(
        self,
        target_type: HistoryTargetType,
        source_id: str | None,
        target_name: str | None,
        results: list[SyncResult],
        strategy: str,
        started: float,
    ) -> None:
        counts = summarize(results)
        skipped = counts["skipped"] + counts["unsupported"]
        if counts["error"] == 0:
            status = HistoryStatus.SUCCESS
        elif counts["success"] == 0:
            status = HistoryStatus.FAILED
        else:
            status = HistoryStatus.PARTIAL

        entry = SyncHistoryEntry(
            target_type=target_type,
            target_id=source_id,
            target_name=target_name,
            status=status,
            success_count=counts["success"],
            failed_count=counts["error"],
            skipped_count=skipped,
            strategy=str(strategy),
            details=[
                r.model_dump(mode="json", exclude_none=True) for r in results
            ],
            duration_ms=int((time.monotonic() - started) * 1000),
        )
        try:
            self.history.append(entry)
        except Exception as exc:
            logger.warning("Failed to append sync history: %s", exc)


def _result(
    tool: ToolMetadata,
    status: SyncStatus,
    message: str | None = None,
    *,
    target_path: str | Path | None = None,
    applied_server_names: list[str] | None = None,
) -> SyncResult:
    return SyncResult(
        tool_id=tool.id,
        tool_name=tool.name,
        status=status,
        message=message,
        target_path=str(target_path) if target_path else None,
        applied_server_names=applied_server_names,
    )


def _unknown_tool_result(tool_id: str) -> SyncResult:
    return SyncResult(
        tool_id=tool_id,
        status=SyncStatus.ERROR,
        message=f"Unknown tool '{tool_id}'",
    )


def _missing_source_result(kind: str) -> SyncResult:
    logger.warning("Fleet sync requested without a %s id", kind)
    return SyncResult(
        tool_id=GLOBAL_TOOL_ID,
        tool_name="System",
        status=SyncStatus.ERROR,
        message=f"source_id ({kind} id) is required for sync",
    )

