"""Tests for target path resolution.

Covers:
- explicit override wins, even for unknown tools
- global MCP and rules targets
- project-scoped targets and their validation
"""

from __future__ import annotations

import pytest

from align_agents.errors import NotFoundError, ValidationError
from align_agents.sync.mapper import TargetKind, TargetPathResolver


@pytest.fixture
def resolver(registry):
    return TargetPathResolver(registry)


class TestOverride:
    def test_override_returned_unconditionally(self, resolver, tmp_path):
        target = tmp_path / "custom.json"
        assert resolver.resolve("json-cli", TargetKind.MCP, path_override=target) == target

    def test_override_skips_tool_lookup(self, resolver, tmp_path):
        target = tmp_path / "x.md"
        assert resolver.resolve("nope", TargetKind.RULES, path_override=str(target)) == target

    def test_override_expands_home(self, resolver, home):
        assert resolver.resolve(
            "json-cli", TargetKind.MCP, path_override="~/a.json"
        ) == home / "a.json"


class TestGlobalScope:
    def test_mcp_target(self, resolver, home):
        assert resolver.resolve("toml-cli", TargetKind.MCP) == home / ".tomlcli" / "config.toml"

    def test_rules_target(self, resolver, home):
        assert resolver.resolve("json-cli", TargetKind.RULES) == home / ".jsoncli" / "JSONCLI.md"

    def test_rules_in_home_directory(self, resolver, home):
        assert resolver.resolve("rules-only", TargetKind.RULES) == home / ".rulesonly"

    def test_unknown_tool(self, resolver):
        with pytest.raises(NotFoundError):
            resolver.resolve("nope", TargetKind.MCP)

    def test_no_global_location(self, resolver):
        with pytest.raises(ValidationError) as exc_info:
            resolver.resolve("rules-only", TargetKind.MCP)
        assert exc_info.value.error_code == "no_global_target"


class TestProjectScope:
    def test_project_mcp_target(self, resolver, tmp_path):
        assert resolver.resolve(
            "json-cli", TargetKind.MCP, is_global=False, project_root=tmp_path
        ) == tmp_path / ".jsoncli" / "mcp.json"

    def test_project_rules_target(self, resolver, tmp_path):
        assert resolver.resolve(
            "toml-cli", TargetKind.RULES, is_global=False, project_root=str(tmp_path)
        ) == tmp_path / "AGENTS.md"

    def test_missing_root(self, resolver):
        with pytest.raises(ValidationError) as exc_info:
            resolver.resolve("json-cli", TargetKind.MCP, is_global=False)
        assert exc_info.value.error_code == "missing_project_root"

    def test_blank_root(self, resolver):
        with pytest.raises(ValidationError):
            resolver.resolve("json-cli", TargetKind.RULES, is_global=False, project_root="  ")

    def test_nonexistent_root(self, resolver, tmp_path):
        with pytest.raises(ValidationError, match="does not exist"):
            resolver.resolve(
                "json-cli", TargetKind.RULES, is_global=False, project_root=tmp_path / "gone"
            )

    def test_tool_without_project_mcp_file(self, resolver, tmp_path):
        with pytest.raises(ValidationError) as exc_info:
            resolver.resolve("toml-cli", TargetKind.MCP, is_global=False, project_root=tmp_path)
        assert exc_info.value.error_code == "unsupported_scope"
        assert "project-scoped" in exc_info.value.message
