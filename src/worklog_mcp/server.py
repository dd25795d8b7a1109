"""Work log MCP server - main entry point."""

from __future__ import annotations

import argparse
import asyncio
import json
import logging
import sys
from pathlib import Path
from typing import Any, Optional

from mcp.server import Server
from mcp.server.stdio import stdio_server
from mcp.types import TextContent, Tool

from .config import WorklogConfig, load_config
from .errors import StorageError
from .manager import LogManager
from .storage import LogStore
from .tools import execute_tool, make_tools

logger = logging.getLogger(__name__)

SERVER_NAME = "worklog-mcp"


def configure_logging(level: str) -> None:
    """Send log records to stderr; stdout carries the MCP protocol."""
    logging.basicConfig(
        level=getattr(logging, level.upper(), logging.WARNING),
        stream=sys.stderr,
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
    )


def open_manager(config: WorklogConfig) -> LogManager:
    """Open the configured store and wrap it in a LogManager."""
    store = LogStore(config.get_db_path(), busy_timeout_ms=config.database.busy_timeout_ms)
    return LogManager(store)


def create_server(manager: LogManager) -> Server:
    """Create and configure the MCP server.

    Args:
        manager: Log manager the tools dispatch to

    Returns:
        Configured MCP Server instance
    """
    server = Server(SERVER_NAME)
    tool_defs = make_tools()

    @server.list_tools()
    async def list_tools() -> list[Tool]:
        """Return list of available tools."""
        return [
            Tool(
                name=t["name"],
                description=t["description"],
                inputSchema=t["inputSchema"],
            )
            for t in tool_defs.values()
        ]

    @server.call_tool()
    async def call_tool(name: str, arguments: dict[str, Any]) -> list[TextContent]:
        """Handle tool invocation."""
        result = await execute_tool(manager, name, arguments)
        return [TextContent(type="text", text=json.dumps(result, indent=2, default=str))]

    return server


async def run_server(config: WorklogConfig) -> None:
    """Run the MCP server with stdio transport until the client disconnects."""
    manager = open_manager(config)
    server = create_server(manager)
    logger.info("Serving work log at %s", config.get_db_path())

    try:
        async with stdio_server() as (read_stream, write_stream):
            await server.run(
                read_stream,
                write_stream,
                server.create_initialization_options(),
            )
    finally:
        manager.close()


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        description="Work log MCP server - structured logs of agent work sessions"
    )
    parser.add_argument(
        "--db-path",
        type=Path,
        help="SQLite database file (default: ~/.worklog/work_logs.db or WORKLOG_DB_PATH)",
    )
    parser.add_argument(
        "--config",
        "-c",
        type=Path,
        help="Path to an extra config file (.toml or .json)",
    )
    parser.add_argument(
        "--log-level",
        help="Logging level for stderr output (default: WARNING or WORKLOG_LOG_LEVEL)",
    )
    parser.add_argument(
        "--init",
        action="store_true",
        help="Create the database and apply migrations, then exit",
    )
    return parser


def main(argv: Optional[list[str]] = None) -> None:
    """Main entry point."""
    args = build_parser().parse_args(argv)

    try:
        config = load_config(config_path=args.config)
    except Exception as e:
        print(f"Error loading config: {e}", file=sys.stderr)
        sys.exit(1)

    if args.db_path is not None:
        config.database.path = str(args.db_path)
    configure_logging(args.log_level or config.output.effective_log_level())

    if args.init:
        try:
            manager = open_manager(config)
        except StorageError as e:
            print(f"Error initializing database: {e}", file=sys.stderr)
            sys.exit(1)
        version = manager.store.get_current_version()
        manager.close()
        print(f"Initialized work log database at {config.get_db_path()}")
        print(f"  - schema version {version}")
        return

    asyncio.run(run_server(config))


if __name__ == "__main__":
    main()
