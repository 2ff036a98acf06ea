"""
coralizer command line.

Usage:
    # Build a langchain agent around the servers declared in mcp.json
    coralizer mcp ./my-agent mcp.json

    # coral-rs, explicit agent name, replace an existing folder
    coralizer mcp ./my-agent mcp.json --framework coral-rs --name my-agent --force

    # Offline: use a local template checkout, no description model
    SKIP_LLM=1 coralizer mcp ./my-agent mcp.json --source ../langchain-agent
"""

from __future__ import annotations

import argparse
import asyncio
import logging
import sys

from . import __version__
from .errors import (
    ArchiveError,
    DestinationExistsError,
    ServerConfigError,
    TemplateError,
)
from .models import Framework
from .pipeline import Coralizer
from .servers import ServerRegistry

logger = logging.getLogger(__name__)

EXIT_FATAL = 1
EXIT_INTERRUPTED = 130


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="coralizer",
        description="Materialize Coral agents from MCP server declarations",
    )
    parser.add_argument("--version", action="version", version=f"%(prog)s {__version__}")
    sub = parser.add_subparsers(dest="command", required=True)

    mcp = sub.add_parser("mcp", help="Create an agent project around a set of MCP servers")
    mcp.add_argument("path", help="Output directory for the generated project")
    mcp.add_argument("mcp_servers_path", help="JSON/YAML file with an 'mcpServers' mapping")
    mcp.add_argument(
        "-f", "--framework",
        choices=[f.value for f in Framework],
        default=Framework.LANGCHAIN.value,
        help="Target framework (default: langchain)",
    )
    mcp.add_argument("-n", "--name", help="Agent name (default: output folder name)")
    mcp.add_argument("--source", help="Use a local template directory instead of downloading")
    mcp.add_argument("--force", action="store_true", help="Replace the output directory if it exists")
    mcp.add_argument("-v", "--verbose", action="store_true", help="Debug logging")
    return parser


async def run_mcp(args: argparse.Namespace) -> int:
    registry = ServerRegistry.from_file(args.mcp_servers_path)
    framework = Framework(args.framework)
    logger.info(f"Framework: {framework}")

    result = await Coralizer().materialize(
        args.path,
        registry,
        framework=framework,
        agent_name=args.name,
        source=args.source,
        overwrite=args.force,
    )

    discovery = result.discovery
    print(f"Found {len(discovery.tools)} tools from {len(discovery.tools_by_server)} server(s).")
    if discovery.failed:
        print(f"Unreachable servers: {', '.join(discovery.failed)}")
    print(f"Agent '{result.agent_name}' created at {result.path}")
    if result.warnings:
        print(f"Completed with {len(result.warnings)} warning(s):")
        for warning in result.warnings:
            print(f"  - {warning}")
    return 0


def main(argv: list[str] | None = None) -> int:
    args = build_parser().parse_args(argv)
    logging.basicConfig(
        level=logging.DEBUG if args.verbose else logging.INFO,
        format="%(levelname)s: %(message)s",
    )

    try:
        return asyncio.run(run_mcp(args))
    except KeyboardInterrupt:
        print("\nCancelled.", file=sys.stderr)
        return EXIT_INTERRUPTED
    except (
        TemplateError,
        ArchiveError,
        ServerConfigError,
        DestinationExistsError,
        FileNotFoundError,
    ) as e:
        logger.error(f"{type(e).__name__}: {e}")
        return EXIT_FATAL


if __name__ == "__main__":
    sys.exit(main())
