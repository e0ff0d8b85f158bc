"""Tests for the library MCP tools (tools, definitions, sets, rules, history)."""

from __future__ import annotations

import mcp.types as types
import pytest

from align_agents.mcp.tools import ALL_SPECS, LIBRARY_TOOLS, LIBRARY_WRITE_TOOLS, ToolRegistry


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


def test_only_set_activation_is_mutating():
    mutating = {s.tool.name for s in ALL_SPECS if s.mutating}
    assert mutating & {t.name for t in LIBRARY_TOOLS} == {"mcp_set_activate"}


class TestToolList:
    async def test_lists_registry(self, call):
        result = await call("tool_list")
        tools = {t["id"]: t for t in result.structuredContent["tools"]}
        assert list(tools) == ["json-cli", "toml-cli", "rules-only", "missing-cli"]
        assert tools["json-cli"]["supports_project_mcp"] is True
        assert tools["rules-only"]["supports_mcp"] is False
        assert tools["missing-cli"]["installed"] is False
        assert "rules-only (Rules Only, json): installed; supports rules" in _text(result)


class TestDefinitionList:
    async def test_lists_pool(self, call):
        result = await call("mcp_definition_list")
        names = [d["name"] for d in result.structuredContent["definitions"]]
        assert sorted(names) == ["fs", "github"]
        assert "npx -y @modelcontextprotocol/server-filesystem" in _text(result)


class TestSetList:
    async def test_active_marker_and_members(self, call, seeded):
        result = await call("mcp_set_list")
        assert f"Default [{seeded['set'].id}] (active): fs, github" in _text(result)

    async def test_archived_hidden_by_default(self, call, seeded):
        engine = seeded["engine"]
        old = engine.mcp_sets.create_set("Old")
        engine.mcp_sets.update_set(old.id, is_archived=True)

        visible = await call("mcp_set_list")
        everything = await call("mcp_set_list", {"include_archived": True})

        assert len(visible.structuredContent["sets"]) == 1
        assert len(everything.structuredContent["sets"]) == 2
        assert "(archived)" in _text(everything)


class TestSetActivate:
    async def test_switches_active_set(self, call, seeded):
        engine = seeded["engine"]
        other = engine.mcp_sets.create_set("Other", [seeded["fs"].id])

        result = await call("mcp_set_activate", {"set_id": other.id})

        assert result.structuredContent == {"active_set_id": other.id, "name": "Other"}
        assert engine.mcp_sets.get_active_set_id() == other.id
        assert not engine.mcp_sets.get_set(seeded["set"].id).is_active

    async def test_unknown_set(self, call):
        result = await call("mcp_set_activate", {"set_id": "ghost"})
        assert result.isError
        assert _text(result).startswith("Error (not_found)")

    async def test_missing_set_id(self, call):
        result = await call("mcp_set_activate", {})
        assert result.isError
        assert "set_id is required" in _text(result)

    async def test_hidden_in_read_only_mode(self, seeded):
        registry = ToolRegistry(ALL_SPECS, read_only=True)
        with pytest.raises(ValueError):
            await registry.call_tool("mcp_set_activate", {"set_id": seeded["set"].id}, seeded["engine"])


class TestRuleList:
    async def test_content_excluded_by_default(self, call, seeded):
        result = await call("rule_list")
        (rule,) = result.structuredContent["rules"]
        assert rule["name"] == "Team rules"
        assert "content" not in rule
        assert "be kind" not in _text(result)

    async def test_include_content(self, call):
        result = await call("rule_list", {"include_content": True})
        assert result.structuredContent["rules"][0]["content"] == "# Team\n- be kind"
        assert "     - be kind" in _text(result)

    async def test_archived(self, call, seeded):
        seeded["engine"].rules.delete(seeded["rule"].id)
        assert (await call("rule_list")).structuredContent["rules"] == []
        archived = await call("rule_list", {"include_archived": True})
        assert "(archived)" in _text(archived)


class TestSyncHistory:
    async def test_empty(self, call):
        result = await call("sync_history")
        assert _text(result) == "No sync history recorded.\n"
        assert result.structuredContent == {"entries": []}

    async def test_filters(self, call, seeded):
        await call("fleet_sync", {"kind": "mcp", "source_id": seeded["set"].id})
        await call("rules_sync", {"tool_id": "json-cli", "rule_id": seeded["rule"].id})

        everything = await call("sync_history")
        fleet_only = await call("sync_history", {"target_type": "all_mcp"})
        latest = await call("sync_history", {"limit": 1})

        assert [e["target_type"] for e in everything.structuredContent["entries"]] == [
            "rule",
            "all_mcp",
        ]
        assert len(fleet_only.structuredContent["entries"]) == 1
        assert latest.structuredContent["entries"][0]["target_name"] == "Team rules"

    async def test_bad_filter_is_validation_error(self, call):
        result = await call("sync_history", {"status": "meh"})
        assert result.isError
        assert _text(result).startswith("Error (validation_error)")


# ---------------------------------------------------------------------------
# Library editing tools
# ---------------------------------------------------------------------------


def test_editing_tools_are_mutating():
    specs = {s.tool.name: s for s in ALL_SPECS}
    for tool in LIBRARY_WRITE_TOOLS:
        assert specs[tool.name].mutating is True


class TestDefinitionEditing:
    async def test_create(self, call, seeded):
        result = await call(
            "mcp_definition_create",
            {"name": "pg", "command": "pg-mcp", "args": ["--ro"], "env": {"PGHOST": "db"}},
        )
        assert not result.isError
        created = result.structuredContent["definition"]
        stored = seeded["engine"].mcp_sets.get_definition(created["id"])
        assert stored.to_server_entry() == {
            "command": "pg-mcp",
            "args": ["--ro"],
            "env": {"PGHOST": "db"},
        }

    async def test_create_without_command(self, call):
        result = await call("mcp_definition_create", {"name": "pg"})
        assert result.isError
        assert _text(result).startswith("Error (validation_error)")

    async def test_update_only_given_fields(self, call, seeded):
        fs = seeded["fs"]
        result = await call(
            "mcp_definition_update", {"definition_id": fs.id, "args": ["/srv"]}
        )
        assert not result.isError
        stored = seeded["engine"].mcp_sets.get_definition(fs.id)
        assert stored.args == ["/srv"]
        assert stored.command == "npx"

    async def test_update_blank_name(self, call, seeded):
        result = await call(
            "mcp_definition_update", {"definition_id": seeded["fs"].id, "name": " "}
        )
        assert result.isError
        assert seeded["engine"].mcp_sets.get_definition(seeded["fs"].id).name == "fs"

    async def test_update_needs_a_field(self, call, seeded):
        result = await call("mcp_definition_update", {"definition_id": seeded["fs"].id})
        assert result.isError
        assert "at least one field" in _text(result)

    async def test_delete_prunes_set(self, call, seeded):
        engine = seeded["engine"]
        result = await call("mcp_definition_delete", {"definition_id": seeded["gh"].id})
        assert result.structuredContent["pruned_items"] == 1
        assert engine.mcp_sets.resolve_server_map(seeded["set"].id).keys() == {"fs"}

    async def test_delete_unknown(self, call):
        result = await call("mcp_definition_delete", {"definition_id": "ghost"})
        assert _text(result).startswith("Error (not_found)")


class TestSetEditing:
    async def test_create_with_disabled_item(self, call, seeded):
        result = await call(
            "mcp_set_create",
            {
                "name": "Work",
                "items": [seeded["fs"].id, {"server_id": seeded["gh"].id, "disabled": True}],
            },
        )
        created = result.structuredContent["set"]
        assert created["is_active"] is False
        server_map = seeded["engine"].mcp_sets.resolve_server_map(created["id"])
        assert list(server_map) == ["fs"]

    async def test_duplicate_server_names_rejected(self, call, seeded):
        engine = seeded["engine"]
        twin = engine.mcp_sets.create_definition("fs", "node", ["other"])
        result = await call("mcp_set_create", {"name": "Twins", "items": [seeded["fs"].id, twin.id]})
        assert result.isError
        assert "named 'fs'" in _text(result)

    async def test_update_items_and_archive(self, call, seeded):
        engine = seeded["engine"]
        other = engine.mcp_sets.create_set("Other", [seeded["fs"].id])
        result = await call(
            "mcp_set_update",
            {"set_id": other.id, "items": [seeded["gh"].id], "archived": True},
        )
        assert not result.isError
        stored = engine.mcp_sets.get_set(other.id, include_archived=True)
        assert stored.is_archived
        assert [i.server_id for i in stored.items] == [seeded["gh"].id]

    async def test_archive_active_set_is_conflict(self, call, seeded):
        result = await call("mcp_set_update", {"set_id": seeded["set"].id, "archived": True})
        assert _text(result).startswith("Error (conflict)")
        assert "mcp_set_activate" in _text(result)

    async def test_delete(self, call, seeded):
        engine = seeded["engine"]
        other = engine.mcp_sets.create_set("Other")
        await call("mcp_set_delete", {"set_id": other.id})
        assert engine.mcp_sets.get_set(other.id, include_archived=True) is None

    async def test_delete_active_is_conflict(self, call, seeded):
        result = await call("mcp_set_delete", {"set_id": seeded["set"].id})
        assert _text(result).startswith("Error (conflict)")


class TestRuleEditing:
    async def test_create_appends_to_order(self, call, seeded):
        result = await call("rule_create", {"name": "Style", "content": "- short lines"})
        rule = result.structuredContent["rule"]
        assert rule["order_index"] == seeded["rule"].order_index + 1
        assert seeded["engine"].rules.require(rule["id"]).content == "- short lines"

    async def test_update_content(self, call, seeded):
        await call("rule_update", {"rule_id": seeded["rule"].id, "content": "# New"})
        stored = seeded["engine"].rules.require(seeded["rule"].id)
        assert stored.content == "# New"
        assert stored.name == "Team rules"

    async def test_update_needs_name_or_content(self, call, seeded):
        result = await call("rule_update", {"rule_id": seeded["rule"].id})
        assert result.isError

    async def test_delete_archives_and_restore_brings_back(self, call, seeded):
        rule_id = seeded["rule"].id
        await call("rule_delete", {"rule_id": rule_id})
        assert seeded["engine"].rules.list() == []
        await call("rule_restore", {"rule_id": rule_id})
        assert [r.id for r in seeded["engine"].rules.list()] == [rule_id]

    async def test_reorder(self, call, seeded):
        engine = seeded["engine"]
        second = engine.rules.create("Second", "x")
        result = await call("rule_reorder", {"rule_ids": [second.id, seeded["rule"].id]})
        assert [r["id"] for r in result.structuredContent["rules"]] == [
            second.id,
            seeded["rule"].id,
        ]

    async def test_reorder_unknown_id_changes_nothing(self, call, seeded):
        result = await call("rule_reorder", {"rule_ids": ["ghost", seeded["rule"].id]})
        assert _text(result).startswith("Error (not_found)")
        assert seeded["engine"].rules.require(seeded["rule"].id).order_index == 0


class TestSyncConfigUpdate:
    async def test_updates_fleet_preferences(self, call, seeded, tmp_path):
        result = await call(
            "sync_config_update",
            {
                "tool_id": "toml-cli",
                "enabled": False,
                "servers": ["fs"],
                "target_path": str(tmp_path),
                "is_global": False,
            },
        )
        assert not result.isError
        config = seeded["engine"].sync_configs.get("toml-cli")
        assert config.enabled is False
        assert config.servers == ["fs"]
        assert config.target_path == str(tmp_path)
        assert config.is_global is False
        assert "scope=project" in _text(result)

    async def test_null_servers_means_all(self, call, seeded):
        engine = seeded["engine"]
        engine.sync_configs.update("toml-cli", servers=["fs"])
        await call("sync_config_update", {"tool_id": "toml-cli", "servers": None})
        assert engine.sync_configs.get("toml-cli").servers is None

    async def test_disabled_tool_skipped_by_fleet_sync(self, call, seeded):
        await call("sync_config_update", {"tool_id": "toml-cli", "enabled": False})
        result = await call("fleet_sync", {"kind": "mcp", "source_id": seeded["set"].id})
        by_tool = {r["tool_id"]: r for r in result.structuredContent["results"]}
        assert by_tool["toml-cli"]["status"] == "skipped"

    async def test_unknown_tool(self, call):
        result = await call("sync_config_update", {"tool_id": "ghost", "enabled": True})
        assert _text(result).startswith("Error (not_found)")

    async def test_wrong_type(self, call):
        result = await call("sync_config_update", {"tool_id": "toml-cli", "servers": "fs"})
        assert _text(result).startswith("Error (validation_error)")
