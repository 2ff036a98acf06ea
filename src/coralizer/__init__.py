"""
coralizer — turn a set of MCP servers into a runnable Coral agent project.

Usage:
    from coralizer import Coralizer, Framework, ServerRegistry

    registry = ServerRegistry.from_file("mcp.json")
    result = await Coralizer().materialize("./my-agent", registry, Framework.LANGCHAIN)

    result.discovery.description   # synthesized agent description
    result.options                 # options added to coral-agent.toml
"""

__version__ = "0.1.0"

from .models import (
    AgentOption,
    Discovery,
    Framework,
    MaterializeResult,
    NetworkServer,
    RenderReport,
    Runtime,
    ServerDef,
    StdioServer,
    Transport,
)
from .errors import (
    ArchiveError,
    CoralizerError,
    DestinationExistsError,
    PostProcessError,
    ServerConfigError,
    TemplateError,
    ToolServerError,
)
from .servers import ServerRegistry
from .aggregator import CapabilityAggregator
from .pipeline import Coralizer

__all__ = [
    # Core
    "Coralizer",
    "CapabilityAggregator",
    "ServerRegistry",
    # Models
    "AgentOption",
    "Discovery",
    "MaterializeResult",
    "NetworkServer",
    "RenderReport",
    "ServerDef",
    "StdioServer",
    # Enums
    "Framework",
    "Runtime",
    "Transport",
    # Errors
    "ArchiveError",
    "CoralizerError",
    "DestinationExistsError",
    "PostProcessError",
    "ServerConfigError",
    "TemplateError",
    "ToolServerError",
]
