"""
Capability Aggregator — fan out to every declared server, collect tools,
and synthesize the agent description.
"""

from __future__ import annotations

import asyncio
import logging
from typing import Any

from .describe import describe_tools
from .mcp.manager import Connector, ToolServerManager
from .mcp.transport import open_session
from .models import Discovery
from .servers import ServerRegistry

logger = logging.getLogger(__name__)


class CapabilityAggregator:
    """
    Discovers tools across a registry and describes the resulting agent.

    Teardown of the discovery sessions runs concurrently with the
    description call and is always awaited before discover() returns,
    including on error and cancellation.
    """

    def __init__(
        self,
        registry: ServerRegistry,
        connector: Connector = open_session,
        model: str | None = None,
        llm: Any = None,
    ):
        self.registry = registry
        self.connector = connector
        self.model = model
        self.llm = llm

    async def discover(self) -> Discovery:
        manager = ToolServerManager(self.registry, self.connector)
        closing: asyncio.Task | None = None
        try:
            tools_by_server = await manager.start_all()
            closing = asyncio.create_task(manager.stop_all())

            tools = [tool for tools in tools_by_server.values() for tool in tools]
            logger.info(f"Found {len(tools)} tools.")

            description = await describe_tools(tools, model=self.model, llm=self.llm)
            return Discovery(
                description=description,
                tools_by_server=tools_by_server,
                failed=list(manager.failed),
            )
        finally:
            if closing is None:
                closing = asyncio.create_task(manager.stop_all())
            await asyncio.shield(closing)
