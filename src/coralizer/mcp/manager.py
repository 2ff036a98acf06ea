"""
Tool Server Manager — connects to declared MCP servers for tool discovery.

Usage:
    async with ToolServerManager(registry) as manager:
        tools_by_server = await manager.start_all()
    # every live session has been torn down here

Each server gets its own task that holds the session open until released,
so all successful connections can be closed together, concurrently.
"""

from __future__ import annotations

import asyncio
import logging
from contextlib import AbstractAsyncContextManager
from typing import Any, Callable

from ..errors import ToolServerError
from ..models import ServerDef
from ..servers import ServerRegistry
from .transport import list_all_tools, open_session

logger = logging.getLogger(__name__)

Connector = Callable[[ServerDef], AbstractAsyncContextManager[Any]]


class ServerConnection:
    """
    One discovery session, owned by a dedicated task.

    open() resolves once the tool list is in (or the attempt failed);
    the session itself stays live until close() releases it. On every exit
    path the transport context is exited, so spawned processes are reaped.
    """

    def __init__(self, server: ServerDef, connector: Connector = open_session):
        self.server = server
        self._connector = connector
        self._release = asyncio.Event()
        self._ready: asyncio.Future | None = None
        self._task: asyncio.Task | None = None

    @property
    def name(self) -> str:
        return self.server.name

    async def open(self) -> list[Any]:
        """Connect, list tools, and return them. Raises ToolServerError."""
        self._ready = asyncio.get_running_loop().create_future()
        self._task = asyncio.create_task(self._run(), name=f"mcp:{self.name}")
        return await self._ready

    async def close(self) -> None:
        """Release the session and wait for the transport to shut down."""
        self._release.set()
        if self._task is not None:
            await self._task

    async def _run(self) -> None:
        stage = "connect"
        try:
            async with self._connector(self.server) as session:
                stage = "list tools"
                tools = await list_all_tools(session)
                self._ready.set_result(tools)
                stage = "disconnect"
                await self._release.wait()
        except Exception as e:
            if not self._ready.done():
                self._ready.set_exception(ToolServerError(self.name, stage, e))
                return
            raise ToolServerError(self.name, stage, e) from e
        finally:
            if not self._ready.done():
                self._ready.cancel()


class ToolServerManager:
    """
    Manages discovery connections for every server in a registry.

    Responsibilities:
    - Connect to all servers concurrently, one task per server
    - Isolate failures: a broken server is logged and skipped
    - Tear down every opened session concurrently, best-effort
    """

    def __init__(self, registry: ServerRegistry, connector: Connector = open_session):
        self.registry = registry
        self._connector = connector
        self._connections: list[ServerConnection] = []
        self.failed: list[str] = []

    async def start_all(self) -> dict[str, list[Any]]:
        """Connect to every server and return {server_name: tools} for the ones that worked."""
        self._connections = [ServerConnection(s, self._connector) for s in self.registry]
        results = await asyncio.gather(
            *(conn.open() for conn in self._connections),
            return_exceptions=True,
        )

        discovered: dict[str, list[Any]] = {}
        for conn, result in zip(self._connections, results):
            if isinstance(result, BaseException):
                logger.error(f"{result}")
                self.failed.append(conn.name)
                continue
            discovered[conn.name] = result
            logger.info(f"[{conn.name}] tools={[_tool_name(t) for t in result]}")
        return discovered

    async def stop_all(self) -> None:
        """Close every connection concurrently. Failures are logged, never raised."""
        connections, self._connections = self._connections, []
        results = await asyncio.gather(
            *(conn.close() for conn in connections),
            return_exceptions=True,
        )
        for conn, result in zip(connections, results):
            if isinstance(result, BaseException):
                logger.warning(f"Error shutting down '{conn.name}': {result}")

    async def __aenter__(self) -> ToolServerManager:
        return self

    async def __aexit__(self, *exc_info) -> None:
        await self.stop_all()


def _tool_name(tool: Any) -> str:
    if isinstance(tool, dict):
        return tool.get("name", "?")
    return getattr(tool, "name", "?")
