"""MCP server exposing the align-agents sync engine over stdio.

Transport: stdio (for Claude Desktop/Code integration)
Protocol: JSON-RPC 2.0 over MCP
"""

import argparse
import asyncio
import logging
import sys

import mcp.server.stdio
import mcp.types as types
from mcp.server import NotificationOptions, Server
from mcp.server.models import InitializationOptions

from .. import __version__
from ..logger import DEFAULT_LOG_FILE, setup_logging
from ..sync.engine import SyncEngine
from .lifespan import server_lifespan
from .tools import ALL_SPECS, ToolRegistry, build_error_response

logger = logging.getLogger(__name__)

server = Server("align-agents")

# Initialized in main()
_engine: SyncEngine | None = None
_registry: ToolRegistry | None = None


# ---------------------------------------------------------------------------
# Global accessors
# ---------------------------------------------------------------------------


def get_engine() -> SyncEngine:
    """Get the global SyncEngine instance.

    Raises:
        RuntimeError: If the engine is not initialized
    """
    if _engine is None:
        raise RuntimeError("SyncEngine not initialized. Server lifespan not started.")
    return _engine


def set_engine(engine: SyncEngine | None) -> None:
    global _engine
    _engine = engine


def get_registry() -> ToolRegistry:
    """Get the global ToolRegistry instance.

    Raises:
        RuntimeError: If registry is not initialized
    """
    if _registry is None:
        raise RuntimeError("ToolRegistry not initialized.")
    return _registry


def set_registry(registry: ToolRegistry | None) -> None:
    global _registry
    _registry = registry


# ---------------------------------------------------------------------------
# MCP protocol handlers
# ---------------------------------------------------------------------------


@server.list_tools()
async def handle_list_tools() -> list[types.Tool]:
    """List registered tools (mutating tools are hidden in read-only mode)."""
    return get_registry().list_tools()


@server.call_tool()
async def handle_call_tool(
    name: str, arguments: dict | None
) -> types.CallToolResult:
    """Dispatch a tool call through the ToolRegistry."""
    engine = get_engine()
    try:
        return await get_registry().call_tool(name, arguments, engine)
    except ValueError as e:
        # Unknown or filtered-out tool name
        return build_error_response(
            "unknown_tool",
            str(e),
            "Use list_tools to see available tools.",
        )


# ---------------------------------------------------------------------------
# Server lifecycle
# ---------------------------------------------------------------------------


async def main(config_overrides: dict | None = None):
    """Run the MCP server with stdio transport.

    Logging goes to a file only, never stdout, since stdout carries the
    JSON-RPC stream.

    Args:
        config_overrides: Optional dict of CLI values (home_dir, database,
            read_only, debug, log_file).
    """
    overrides = config_overrides or {}

    # Must run before stdio_server opens so nothing reaches stdout.
    setup_logging(
        mode="mcp",
        debug=overrides.get("debug", False),
        log_file=overrides.get("log_file"),
    )

    read_only = overrides.get("read_only", False)
    registry = ToolRegistry(ALL_SPECS, read_only=read_only)
    logger.info(
        "Registered %d tools (of %d total)%s",
        registry.tool_count(),
        len(ALL_SPECS),
        " [read-only]" if read_only else "",
    )
    if read_only:
        print(
            f"Read-only mode: {registry.tool_count()} of {len(ALL_SPECS)} tools enabled",
            file=sys.stderr,
        )
    set_registry(registry)

    # set_engine() is called here rather than inside the lifespan so that
    # running as ``python -m align_agents.mcp.server`` updates this module
    # and not a second import of it.
    async with server_lifespan(config_overrides=overrides) as ctx:
        set_engine(ctx["engine"])
        try:
            async with mcp.server.stdio.stdio_server() as (
                read_stream,
                write_stream,
            ):
                init_options = InitializationOptions(
                    server_name="align-agents",
                    server_version=__version__,
                    capabilities=server.get_capabilities(
                        notification_options=NotificationOptions(),
                        experimental_capabilities={},
                    ),
                )
                await server.run(read_stream, write_stream, init_options)
        finally:
            set_engine(None)
            set_registry(None)


def run() -> None:
    """Entry point that parses CLI arguments and handles errors gracefully."""
    parser = argparse.ArgumentParser(
        description="align-agents MCP server - keep AI tool MCP configs and rules in sync",
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog="""
Examples:
  # Run with default config (~/.align-agents, .env, .align_agents/config.yml)
  align-agents-mcp

  # Use a different data directory
  align-agents-mcp --home ~/work/agents

  # Only expose read-only tools
  align-agents-mcp --read-only

  # Custom log file location
  align-agents-mcp --log-file /var/log/align-agents.log

Note: This server uses stdio transport for JSON-RPC communication with MCP clients.
All user-facing messages are written to stderr.
        """,
    )
    parser.add_argument(
        "--home",
        help="Data directory (takes precedence over ALIGN_AGENTS_HOME and config files)",
    )
    parser.add_argument(
        "--db",
        help="SQLite database path (takes precedence over ALIGN_AGENTS_DB and config files)",
    )
    parser.add_argument(
        "--log-file",
        default=DEFAULT_LOG_FILE,
        help=f"Log file path (default: {DEFAULT_LOG_FILE})",
    )
    parser.add_argument(
        "--read-only",
        action="store_true",
        help="Hide tools that write tool configs or the store",
    )
    parser.add_argument(
        "--debug",
        action="store_true",
        help="Enable debug logging",
    )
    parser.add_argument(
        "--version",
        action="version",
        version=f"align-agents version {__version__}",
    )

    args = parser.parse_args()

    config_overrides: dict = {"log_file": args.log_file}
    if args.home:
        config_overrides["home_dir"] = args.home
    if args.db:
        config_overrides["database"] = args.db
    if args.read_only:
        config_overrides["read_only"] = True
    if args.debug:
        config_overrides["debug"] = True

    try:
        asyncio.run(main(config_overrides))
    except KeyboardInterrupt:
        sys.exit(0)
    except RuntimeError as e:
        print(f"ERROR: {e}", file=sys.stderr)
        sys.exit(1)


if __name__ == "__main__":
    run()
