"""
Transport layer for MCP tool discovery.

Opens an initialized `mcp.ClientSession` over whichever transport a server
definition implies: a spawned child process for stdio, an SSE stream, or a
streamable-HTTP session.
"""

from __future__ import annotations

import logging
import sys
from contextlib import asynccontextmanager
from typing import Any, AsyncIterator

from mcp import ClientSession, StdioServerParameters
from mcp.client.sse import sse_client
from mcp.client.stdio import stdio_client
from mcp.client.streamable_http import streamablehttp_client

from ..models import NetworkServer, ServerDef, StdioServer, Transport

logger = logging.getLogger(__name__)

# Env var values are unknown at discovery time; the server only needs them set.
PLACEHOLDER_ENV_VALUE = "dummy"


def stdio_parameters(server: StdioServer) -> StdioServerParameters:
    """Build the spawn parameters for a stdio server."""
    command = server.command
    # npx is a .cmd shim on Windows and cannot be spawned by bare name
    if command == "npx" and sys.platform == "win32":
        command = "npx.cmd"

    env = None
    if server.env:
        env = {name: PLACEHOLDER_ENV_VALUE for name in server.env}

    return StdioServerParameters(command=command, args=list(server.args), env=env)


@asynccontextmanager
async def open_session(server: ServerDef) -> AsyncIterator[ClientSession]:
    """Connect to one tool server and yield an initialized session."""
    if isinstance(server, StdioServer):
        params = stdio_parameters(server)
        logger.info(f"Starting stdio server '{server.name}': {params.command} {' '.join(params.args)}")
        async with stdio_client(params) as (read, write):
            async with ClientSession(read, write) as session:
                await session.initialize()
                yield session

    elif isinstance(server, NetworkServer) and server.transport is Transport.SSE:
        logger.info(f"Connecting to sse server '{server.name}': {server.url}")
        async with sse_client(server.url) as (read, write):
            async with ClientSession(read, write) as session:
                await session.initialize()
                yield session

    elif isinstance(server, NetworkServer) and server.transport is Transport.HTTP:
        logger.info(f"Connecting to http server '{server.name}': {server.url}")
        async with streamablehttp_client(server.url) as (read, write, _):
            async with ClientSession(read, write) as session:
                await session.initialize()
                yield session

    else:
        raise ValueError(f"Unsupported server definition: {server!r}")


async def list_all_tools(session: Any) -> list[Any]:
    """Fetch every page of the server's tool list, preserving its order."""
    result = await session.list_tools()
    tools = list(result.tools)
    cursor = getattr(result, "nextCursor", None)
    while cursor:
        result = await session.list_tools(cursor=cursor)
        tools.extend(result.tools)
        cursor = getattr(result, "nextCursor", None)
    return tools
