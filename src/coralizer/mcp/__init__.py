"""
MCP client infrastructure for tool discovery.

Provides:
- open_session — connect to a stdio / SSE / streamable-HTTP server
- ServerConnection — one discovery session held open by its own task
- ToolServerManager — concurrent connect + teardown for a whole registry
"""

from .transport import list_all_tools, open_session
from .manager import ServerConnection, ToolServerManager

__all__ = [
    "list_all_tools",
    "open_session",
    "ServerConnection",
    "ToolServerManager",
]
