"""Sync result formatting functions.

Provides human-readable and machine-readable output for sync operations:

- ``summarize`` -- counts by status.
- ``format_sync_results`` -- per-tool summary of a single or fleet sync.
- ``format_history`` -- compact listing of audit records.
- ``results_to_json`` -- structured dict for MCP tool output.
"""

from __future__ import annotations

from typing import TYPE_CHECKING, Any

from .models import SyncStatus

if TYPE_CHECKING:
    from .models import SyncHistoryEntry, SyncResult

_STATUS_LABELS: dict[SyncStatus, str] = {
    SyncStatus.SUCCESS: "Synced",
    SyncStatus.SKIPPED: "Skipped",
    SyncStatus.UNSUPPORTED: "Unsupported",
    SyncStatus.ERROR: "Errors",
}


def summarize(results: list[SyncResult]) -> dict[str, int]:
    """Count results per status; every status key is present."""
    counts = {status.value: 0 for status in SyncStatus}
    for r in results:
        counts[r.status.value] += 1
    counts["total"] = len(results)
    return counts


# ------------------------------------------------------------------
# Human-readable report
# ------------------------------------------------------------------


def format_sync_results(results: list[SyncResult], title: str = "Sync") -> str:
    """Format sync results as human-readable text.

    Sections are only included when they contain at least one result.

    Args:
        results: Per-tool results from a single or fleet sync.
        title: Heading for the report.

    Returns:
        Multi-line formatted string.
    """
    counts = summarize(results)
    lines: list[str] = [
        f"{title}: {counts['success']} synced, {counts['skipped']} skipped, "
        f"{counts['unsupported']} unsupported, {counts['error']} errors",
        "",
    ]

    for status, label in _STATUS_LABELS.items():
        group = [r for r in results if r.status == status]
        if not group:
            continue
        lines.append(f"{label}:")
        for r in group:
            name = r.tool_name or r.tool_id
            line = f"  {name}"
            if r.target_path:
                line += f" -> {r.target_path}"
            if r.applied_server_names:
                line += f" [{', '.join(r.applied_server_names)}]"
            if r.message and status != SyncStatus.SUCCESS:
                line += f" ({r.message})"
            lines.append(line)
        lines.append("")

    return "\n".join(lines).rstrip() + "\n"


def format_history(entries: list[SyncHistoryEntry]) -> str:
    """One line per audit record, newest first as given."""
    if not entries:
        return "No sync history recorded.\n"
    lines = []
    for e in entries:
        target = e.target_name or e.target_id or "-"
        lines.append(
            f"#{e.id} {e.created_at} {e.target_type.value} {target} "
            f"{e.status.value}: {e.success_count} ok, {e.failed_count} failed, "
            f"{e.skipped_count} skipped ({e.duration_ms} ms)"
        )
    return "\n".join(lines) + "\n"


# ------------------------------------------------------------------
# Machine-readable output
# ------------------------------------------------------------------


def results_to_json(results: list[SyncResult]) -> dict[str, Any]:
    """Convert results to a JSON-serialisable dict.

    Returns:
        Dict with ``summary`` counts and a ``results`` list.
    """
    return {
        "summary": summarize(results),
        "results": [r.model_dump(mode="json", exclude_none=True) for r in results],
    }
