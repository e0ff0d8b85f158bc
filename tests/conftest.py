"""Shared pytest fixtures for align-agents tests."""

from pathlib import Path

import pytest

from align_agents.capabilities import CapabilityRegistry, ToolMetadata
from align_agents.store.database import Database
from align_agents.sync.backup import TimestampedBackup
from align_agents.sync.engine import SyncEngine

# Tools whose paths all live under a temporary HOME.  Installed tools get
# their directories created by the ``home`` fixture.
TEST_TOOLS = [
    ToolMetadata(
        id="json-cli",
        name="JSON CLI",
        config_paths=["~/.jsoncli/settings.json"],
        mcp_config_path="~/.jsoncli/settings.json",
        project_mcp_filename=".jsoncli/mcp.json",
        format="json",
        rules_filename="JSONCLI.md",
        global_rules_dir="~/.jsoncli",
    ),
    ToolMetadata(
        id="toml-cli",
        name="TOML CLI",
        config_paths=["~/.tomlcli/config.toml"],
        mcp_config_path="~/.tomlcli/config.toml",
        format="toml",
        rules_filename="AGENTS.md",
        global_rules_dir="~/.tomlcli",
    ),
    ToolMetadata(
        id="rules-only",
        name="Rules Only",
        category="ide",
        config_paths=["~/.rulesonly-app/settings.json"],
        supports_mcp=False,
        rules_filename=".rulesonly",
        global_rules_dir="~",
    ),
    ToolMetadata(
        id="missing-cli",
        name="Missing CLI",
        config_paths=["~/.missing/settings.json"],
        mcp_config_path="~/.missing/settings.json",
        rules_filename="MISSING.md",
        global_rules_dir="~/.missing",
        cli_command="align-agents-test-no-such-binary",
    ),
]

INSTALLED_DIRS = [".jsoncli", ".tomlcli", ".rulesonly-app"]


@pytest.fixture
def home(tmp_path, monkeypatch) -> Path:
    """Temporary HOME with the installed test tools' directories."""
    home_dir = tmp_path / "home"
    home_dir.mkdir()
    for name in INSTALLED_DIRS:
        (home_dir / name).mkdir()
    (home_dir / ".rulesonly-app" / "settings.json").write_text("{}\n")
    monkeypatch.setenv("HOME", str(home_dir))
    monkeypatch.setenv("USERPROFILE", str(home_dir))
    return home_dir


@pytest.fixture
def db():
    database = Database(":memory:")
    yield database
    database.close()


@pytest.fixture
def registry(home) -> CapabilityRegistry:
    return CapabilityRegistry(TEST_TOOLS)


@pytest.fixture
def engine(db, registry) -> SyncEngine:
    return SyncEngine(db, registry, backup=TimestampedBackup(max_backups=3))


@pytest.fixture
def seeded(engine):
    """Engine with two definitions, one set holding both, and one rule."""
    fs = engine.mcp_sets.create_definition(
        "fs", "npx", ["-y", "@modelcontextprotocol/server-filesystem"]
    )
    gh = engine.mcp_sets.create_definition(
        "github", "gh-mcp", [], env={"GITHUB_TOKEN": "t0ken"}
    )
    mcp_set = engine.mcp_sets.create_set("Default", [fs.id, gh.id])
    rule = engine.rules.create("Team rules", "# Team\n- be kind")
    return {
        "engine": engine,
        "fs": fs,
        "gh": gh,
        "set": mcp_set,
        "rule": rule,
    }
