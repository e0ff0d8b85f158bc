"""Tests for the tool capability registry."""

from __future__ import annotations

from unittest.mock import patch

import pytest

from align_agents.capabilities import (
    BUILTIN_TOOLS,
    CapabilityRegistry,
    ToolMetadata,
)
from align_agents.errors import NotFoundError


class TestBuiltinTools:
    def test_ids_are_unique(self):
        ids = [t.id for t in BUILTIN_TOOLS]
        assert len(ids) == len(set(ids))

    def test_codex_is_toml_with_agents_md(self, home):
        codex = CapabilityRegistry().require("codex")
        assert codex.format == "toml"
        assert codex.global_mcp_path() == home / ".codex" / "config.toml"
        assert codex.global_rules_path() == home / ".codex" / "AGENTS.md"

    def test_copilot_has_no_mcp_support(self):
        assert not CapabilityRegistry().require("github-copilot-cli").supports_mcp

    def test_cursor_rules_live_in_home(self, home):
        cursor = CapabilityRegistry().require("cursor-ide")
        assert cursor.global_rules_path() == home / ".cursorrules"
        assert cursor.project_mcp_filename == ".cursor/mcp.json"

    def test_capability_filters(self):
        registry = CapabilityRegistry()
        assert "github-copilot-cli" not in [t.id for t in registry.mcp_capable()]
        assert "qwen-cli" not in [t.id for t in registry.rules_capable()]
        assert "claude-code-cli" in [t.id for t in registry.rules_capable()]


class TestToolMetadata:
    def test_format_is_validated(self):
        with pytest.raises(ValueError):
            ToolMetadata(id="x", name="X", format="yaml")

    def test_global_mcp_path_falls_back_to_first_config_path(self, home):
        tool = ToolMetadata(id="x", name="X", config_paths=["~/.x/a.json", "~/.x/b.json"])
        assert tool.global_mcp_path() == home / ".x" / "a.json"

    def test_no_paths(self):
        tool = ToolMetadata(id="x", name="X")
        assert tool.global_mcp_path() is None
        assert tool.global_rules_path() is None
        assert not tool.supports_rules

    def test_frozen(self):
        tool = ToolMetadata(id="x", name="X")
        with pytest.raises(ValueError):
            tool.name = "Y"


class TestCapabilityRegistry:
    def test_require_unknown_raises(self, registry):
        with pytest.raises(NotFoundError) as exc_info:
            registry.require("nope")
        assert exc_info.value.error_code == "tool_not_found"
        assert "json-cli" in exc_info.value.details["available"]

    def test_get_unknown_returns_none(self, registry):
        assert registry.get("nope") is None

    def test_ids_keep_registration_order(self, registry):
        assert registry.ids() == ["json-cli", "toml-cli", "rules-only", "missing-cli"]

    def test_with_overrides_replaces_and_adds(self):
        override = ToolMetadata(id="codex", name="Codex (custom)", format="toml")
        extra = ToolMetadata(id="my-cli", name="My CLI")
        registry = CapabilityRegistry.with_overrides([override, extra])
        assert registry.require("codex").name == "Codex (custom)"
        assert registry.ids()[-1] == "my-cli"
        assert "claude-desktop" in registry.ids()


class TestIsInstalled:
    def test_existing_directory_counts(self, registry):
        assert registry.is_installed("json-cli")

    def test_home_rules_dir_alone_does_not_count(self, registry, home):
        (home / ".rulesonly-app" / "settings.json").unlink()
        (home / ".rulesonly-app").rmdir()
        assert not registry.is_installed("rules-only")

    def test_missing_paths_and_binary(self, registry):
        assert not registry.is_installed("missing-cli")

    def test_cli_on_path_counts(self, registry):
        with patch("align_agents.capabilities.shutil.which", return_value="/usr/bin/x"):
            assert registry.is_installed("missing-cli")

    def test_unknown_tool(self, registry):
        assert not registry.is_installed("nope")
