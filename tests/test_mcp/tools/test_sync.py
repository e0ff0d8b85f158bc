"""Tests for the sync MCP tools.

Covers:
- mcp_sync / rules_sync write through a real engine and report results
- engine and argument errors come back as isError responses
- fleet_sync dispatch per kind
- sync_status targets and drift reporting
"""

from __future__ import annotations

import json

import mcp.types as types
import pytest

from align_agents.mcp.tools import ALL_SPECS, SYNC_TOOLS, ToolRegistry


@pytest.fixture
def call(seeded):
    registry = ToolRegistry(ALL_SPECS)
    engine = seeded["engine"]

    async def _call(name: str, args: dict | None = None) -> types.CallToolResult:
        return await registry.call_tool(name, args, engine)

    return _call


def _text(result: types.CallToolResult) -> str:
    content = result.content[0]
    assert isinstance(content, types.TextContent)
    return content.text


# ---------------------------------------------------------------------------
# Definitions
# ---------------------------------------------------------------------------


class TestToolDefinitions:
    def test_names(self):
        assert [t.name for t in SYNC_TOOLS] == [
            "mcp_sync",
            "rules_sync",
            "fleet_sync",
            "sync_status",
        ]

    def test_schemas_are_objects_with_known_required(self):
        for tool in SYNC_TOOLS:
            schema = tool.inputSchema
            assert schema["type"] == "object"
            assert set(schema["required"]) <= set(schema["properties"])


# ---------------------------------------------------------------------------
# mcp_sync
# ---------------------------------------------------------------------------


class TestMcpSync:
    async def test_writes_config(self, call, seeded, home):
        result = await call("mcp_sync", {"tool_id": "json-cli", "set_id": seeded["set"].id})

        assert not result.isError
        assert _text(result).startswith("MCP sync: 1 synced")
        written = json.loads((home / ".jsoncli" / "settings.json").read_text())
        assert set(written["mcpServers"]) == {"fs", "github"}
        (row,) = result.structuredContent["results"]
        assert row["status"] == "success"

    async def test_server_subset_and_strategy(self, call, seeded, home):
        target = home / ".jsoncli" / "settings.json"
        target.write_text(json.dumps({"mcpServers": {"mine": {"command": "m"}}}))

        await call(
            "mcp_sync",
            {
                "tool_id": "json-cli",
                "set_id": seeded["set"].id,
                "servers": ["fs"],
                "strategy": "append",
            },
        )

        assert list(json.loads(target.read_text())["mcpServers"]) == ["mine", "fs"]

    async def test_project_root(self, call, seeded, tmp_path):
        result = await call(
            "mcp_sync",
            {"tool_id": "json-cli", "set_id": seeded["set"].id, "project_root": str(tmp_path)},
        )
        assert (tmp_path / ".jsoncli" / "mcp.json").exists()
        assert result.structuredContent["results"][0]["target_path"].endswith("mcp.json")

    async def test_sync_failure_is_reported_in_result(self, call, seeded, home):
        (home / ".tomlcli" / "config.toml").write_text("not = [valid\n")
        result = await call("mcp_sync", {"tool_id": "toml-cli", "set_id": seeded["set"].id})
        assert not result.isError
        assert "Errors:" in _text(result)
        assert result.structuredContent["summary"]["error"] == 1

    async def test_unknown_tool(self, call, seeded):
        result = await call("mcp_sync", {"tool_id": "nope", "set_id": seeded["set"].id})
        assert result.isError
        assert _text(result).startswith("Error (not_found)")

    async def test_missing_arguments(self, call):
        result = await call("mcp_sync", {"tool_id": "json-cli"})
        assert result.isError
        assert "set_id is required" in _text(result)


# ---------------------------------------------------------------------------
# rules_sync
# ---------------------------------------------------------------------------


class TestRulesSync:
    async def test_smart_update(self, call, seeded, home):
        target = home / ".tomlcli" / "AGENTS.md"
        target.write_text("# Local\n")

        result = await call(
            "rules_sync",
            {"tool_id": "toml-cli", "rule_id": seeded["rule"].id, "strategy": "smart-update"},
        )

        assert not result.isError
        text = target.read_text()
        assert text.startswith("# Local\n\n<!-- align-agents-start -->")
        assert "- be kind" in text

    async def test_explicit_target(self, call, seeded, tmp_path):
        target = tmp_path / "CUSTOM.md"
        await call(
            "rules_sync",
            {"tool_id": "json-cli", "rule_id": seeded["rule"].id, "target_path": str(target)},
        )
        assert target.read_text() == "# Team\n- be kind"

    async def test_missing_rule_id(self, call):
        result = await call("rules_sync", {"tool_id": "json-cli", "rule_id": "  "})
        assert result.isError
        assert "rule_id is required" in _text(result)


# ---------------------------------------------------------------------------
# fleet_sync
# ---------------------------------------------------------------------------


class TestFleetSync:
    async def test_mcp_fleet(self, call, seeded):
        result = await call("fleet_sync", {"kind": "mcp", "source_id": seeded["set"].id})
        assert _text(result).startswith("Fleet MCP sync: 2 synced, 1 skipped, 1 unsupported, 0 errors")
        assert result.structuredContent["summary"]["total"] == 4

    async def test_rules_fleet_to_project(self, call, seeded, tmp_path):
        result = await call(
            "fleet_sync",
            {
                "kind": "rules",
                "source_id": seeded["rule"].id,
                "project_root": str(tmp_path),
                "tools": ["json-cli", "toml-cli"],
            },
        )
        assert result.structuredContent["summary"]["success"] == 2
        assert (tmp_path / "JSONCLI.md").exists()
        assert (tmp_path / "AGENTS.md").exists()

    async def test_missing_source_id(self, call):
        result = await call("fleet_sync", {"kind": "mcp"})
        (row,) = result.structuredContent["results"]
        assert row["tool_id"] == "global"
        assert row["status"] == "error"

    async def test_bad_kind(self, call, seeded):
        result = await call("fleet_sync", {"kind": "both", "source_id": seeded["set"].id})
        assert result.isError
        assert "kind must be 'mcp' or 'rules'" in _text(result)


# ---------------------------------------------------------------------------
# sync_status
# ---------------------------------------------------------------------------


class TestSyncStatus:
    async def test_never_synced(self, call, home):
        result = await call("sync_status", {})
        rows = {r["tool_id"]: r for r in result.structuredContent["tools"]}
        assert rows["json-cli"]["installed"] is True
        assert rows["json-cli"]["mcp"]["last_synced"] is None
        assert rows["missing-cli"]["installed"] is False
        assert "mcp" not in rows["rules-only"]
        assert rows["rules-only"]["rules"]["target"] == str(home / ".rulesonly")

    async def test_drift_reported(self, call, seeded, home):
        await call("mcp_sync", {"tool_id": "json-cli", "set_id": seeded["set"].id})
        result = await call("sync_status", {"tool_id": "json-cli"})
        (row,) = result.structuredContent["tools"]
        assert row["mcp"]["last_synced"] is not None
        assert row["mcp"]["drifted"] is False

        (home / ".jsoncli" / "settings.json").write_text("{}\n")
        result = await call("sync_status", {"tool_id": "json-cli"})
        assert result.structuredContent["tools"][0]["mcp"]["drifted"] is True
        assert "DRIFTED" in _text(result)

    async def test_unknown_tool(self, call):
        result = await call("sync_status", {"tool_id": "nope"})
        assert result.isError
