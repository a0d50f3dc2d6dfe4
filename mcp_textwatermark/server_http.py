#!/usr/bin/env python3
"""
Text watermarking MCP Server - HTTP/SSE transport

Network server for clients that cannot spawn a stdio process.
Same MCP protocol and tools as the stdio server, different transport.
Business logic delegated to handlers.py.

Run with: textwatermark-mcp-http --token <your-token>

Configuration:
- PORT: Server port (default: 5001)
- HOST: Bind address (default: 127.0.0.1)
"""

import os
import signal
import sys
from collections.abc import AsyncIterator, Mapping, Sequence
from contextlib import asynccontextmanager

import httpx
import uvicorn
from mcp.server.sse import SseServerTransport
from starlette.applications import Starlette
from starlette.requests import Request
from starlette.responses import JSONResponse, Response
from starlette.routing import Mount, Route

from textwatermark.client import WatermarkClient
from textwatermark.errors import ConfigurationError

from .config import EffectiveConfig
from .handlers import build_registry
from .logging_config import (
    get_logger,
    level_from_env,
    log_file_from_env,
    setup_async_logging,
    shutdown_async_logging,
)
from .server import create_server, load_config

logger = get_logger(__name__)

# Configuration
DEFAULT_PORT = 5001
DEFAULT_HOST = "127.0.0.1"


def get_port(environ: Mapping[str, str] = os.environ) -> int:
    """Get server port from environment or use default"""
    port_str = environ.get("PORT", str(DEFAULT_PORT))
    try:
        return int(port_str)
    except ValueError:
        msg = f"Invalid PORT value: {port_str}"
        raise ConfigurationError(msg) from None


async def handle_ping(_request: Request) -> JSONResponse:
    """Health check endpoint"""
    return JSONResponse({"status": "ok"})


async def handle_shutdown(_request: Request) -> JSONResponse:
    """Graceful shutdown endpoint"""
    # Send SIGTERM to self; uvicorn turns it into a graceful shutdown
    os.kill(os.getpid(), signal.SIGTERM)
    return JSONResponse({"status": "shutting down"})


def create_app(
    config: EffectiveConfig,
    transport: httpx.AsyncBaseTransport | None = None,
) -> Starlette:
    """Starlette app serving the watermarking tools over SSE

    The API client is shared by every SSE session and closed with the app.
    """
    client = WatermarkClient(config, transport=transport)
    mcp_server = create_server(build_registry(client))
    sse_transport = SseServerTransport("/messages/")

    async def handle_sse(request: Request) -> Response:
        """
        SSE endpoint for MCP protocol.

        Creates a new SSE connection for each client, runs the MCP server
        with the connection streams, and returns when client disconnects.
        """
        client_addr = request.client.host if request.client else "unknown"
        logger.info(f"New SSE connection from {client_addr}")

        async with sse_transport.connect_sse(
            request.scope, request.receive, request._send
        ) as streams:
            logger.info("SSE connected, running MCP server loop")
            await mcp_server.run(
                streams[0], streams[1], mcp_server.create_initialization_options()
            )
            logger.info(f"SSE disconnected from {client_addr}")

        # Return empty response to avoid NoneType error (per MCP docs)
        return Response(headers={"X-Content-Type-Options": "nosniff"})

    @asynccontextmanager
    async def lifespan(_app: Starlette) -> AsyncIterator[None]:
        logger.info(f"Forwarding tool calls to {client.base_url}")
        try:
            yield
        finally:
            await client.aclose()

    return Starlette(
        routes=[
            Route("/ping", endpoint=handle_ping, methods=["GET"]),
            Route("/shutdown", endpoint=handle_shutdown, methods=["POST"]),
            Route("/sse", endpoint=handle_sse, methods=["GET"]),
            Mount("/messages/", app=sse_transport.handle_post_message),
        ],
        lifespan=lifespan,
    )


def main(argv: Sequence[str] | None = None) -> None:
    """Console entry point"""
    setup_async_logging(log_file_from_env(os.environ), level_from_env(os.environ))
    try:
        try:
            config = load_config(argv, prog="textwatermark-mcp-http")
            port = get_port()
        except ConfigurationError as e:
            logger.critical(f"CRITICAL ERROR: {e}")
            sys.exit(1)

        host = os.environ.get("HOST", DEFAULT_HOST)
        logger.info(f"Starting HTTP/SSE server on {host}:{port}")
        # log_config=None keeps uvicorn on our queue-based root logger
        uvicorn.run(create_app(config), host=host, port=port, log_config=None)
    finally:
        shutdown_async_logging()


if __name__ == "__main__":
    main()
