#!/usr/bin/env python3
"""
Text watermarking MCP Server - stdio transport

MCP protocol wrapper for Claude Code, Cursor and other stdio clients.
Business logic delegated to handlers.py.

Run with: textwatermark-mcp --token <your-token>
      or: python -m mcp_textwatermark.server --token <your-token>
"""

import asyncio
import os
import sys
from collections.abc import Sequence
from importlib.metadata import PackageNotFoundError, version
from typing import Any

from dotenv import load_dotenv
from mcp.server import Server
from mcp.server.stdio import stdio_server
from mcp.types import CallToolResult, TextContent, Tool

from textwatermark.client import WatermarkClient
from textwatermark.errors import ConfigurationError

from .config import PROG, EffectiveConfig, resolve_config, validate_config
from .handlers import ToolRegistry, ToolResult, build_registry
from .logging_config import (
    get_logger,
    level_from_env,
    log_file_from_env,
    setup_async_logging,
    shutdown_async_logging,
)

logger = get_logger(__name__)

SERVER_NAME = "TextWatermarkingMCP"

try:
    SERVER_VERSION = version("textwatermark-mcp")
except PackageNotFoundError:
    SERVER_VERSION = "1.0.0"


def to_call_tool_result(result: ToolResult) -> CallToolResult:
    """Convert a ToolResult into the MCP wire shape

    Success: one text content item.
    Failure: empty content, isError, and error {code, message}.
    """
    if result.error is not None:
        return CallToolResult(
            content=[],
            isError=True,
            error={"code": result.error.code, "message": result.error.message},
        )
    return CallToolResult(content=[TextContent(type="text", text=result.text or "")])


def create_server(registry: ToolRegistry) -> Server:
    """Low-level MCP server bound to a tool registry"""
    app: Server = Server(SERVER_NAME, version=SERVER_VERSION)

    @app.list_tools()  # type: ignore[misc,no-untyped-call]
    async def list_tools() -> list[Tool]:
        """List available MCP tools - registry is populated from tools.py"""
        return registry.describe()

    # Arguments are validated by the registry so schema errors share the
    # same error shape as remote failures
    @app.call_tool(validate_input=False)  # type: ignore[misc]
    async def call_tool(name: str, arguments: Any) -> CallToolResult:  # noqa: ANN401
        """Handle tool execution - delegates to handlers.py"""
        logger.info(f"call_tool: name={name}")
        result = await registry.dispatch(name, arguments or {})
        return to_call_tool_result(result)

    return app


def load_config(argv: Sequence[str] | None = None, prog: str = PROG) -> EffectiveConfig:
    """Load .env, resolve and validate configuration

    Exits 0 for --help; raises ConfigurationError when unusable.
    """
    load_dotenv(override=True)
    config = resolve_config(argv, os.environ, prog=prog)
    validate_config(config)
    return config


async def serve(config: EffectiveConfig) -> None:
    """Run the MCP server over stdio until the client disconnects"""
    async with WatermarkClient(config) as client:
        app = create_server(build_registry(client))
        logger.info("[startServer] Connecting stdio transport...")
        async with stdio_server() as (read_stream, write_stream):
            logger.info("[startServer] Transport connected successfully.")
            await app.run(
                read_stream,
                write_stream,
                app.create_initialization_options()
            )


def main(argv: Sequence[str] | None = None) -> None:
    """Console entry point"""
    setup_async_logging(log_file_from_env(os.environ), level_from_env(os.environ))
    try:
        try:
            config = load_config(argv)
        except ConfigurationError as e:
            logger.critical(f"CRITICAL ERROR: {e}")
            sys.exit(1)

        try:
            asyncio.run(serve(config))
        except KeyboardInterrupt:
            logger.info("Interrupted, shutting down")
        except Exception:
            logger.exception("Failed to start MCP server")
            sys.exit(1)
    finally:
        shutdown_async_logging()


if __name__ == "__main__":
    main()
