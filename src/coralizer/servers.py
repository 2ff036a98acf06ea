"""
Tool Server Registry — validated, in-memory view of declared MCP servers.

The declaration document is the format most MCP hosts hand out:

    {
      "mcpServers": {
        "filesystem": {
          "command": "npx",
          "args": ["-y", "@modelcontextprotocol/server-filesystem", "/tmp"],
          "env": {"FS_TOKEN": "FS_TOKEN"}
        },
        "search": {
          "transport": "sse",
          "url": "https://example.com/mcp",
          "headers": {"Authorization": "SEARCH_API_KEY"}
        }
      }
    }

`env` / `headers` map the external variable or header name to the name of the
agent option that will supply its value at runtime.
"""

from __future__ import annotations

import json
import logging
from pathlib import Path
from typing import Any, Iterator

import yaml

from .errors import ServerConfigError
from .models import AgentOption, NetworkServer, Runtime, ServerDef, StdioServer, Transport

logger = logging.getLogger(__name__)

SERVERS_KEY = "mcpServers"
YAML_SUFFIXES = (".yaml", ".yml")

_TRANSPORT_ALIASES = {
    "stdio": Transport.STDIO,
    "sse": Transport.SSE,
    "http": Transport.HTTP,
    "streamableHttp": Transport.HTTP,
}


class ServerRegistry:
    """
    Registry of declared MCP tool servers.

    Read-only once loaded; iteration follows declaration order so generated
    code is reproducible for a given declaration file.
    """

    def __init__(self):
        self._servers: dict[str, ServerDef] = {}

    def register(self, server_def: ServerDef) -> None:
        """Register a server definition (replaces any earlier one with the same name)."""
        if server_def.name in self._servers:
            logger.warning(f"Server '{server_def.name}' declared twice, keeping the latest")
        self._servers[server_def.name] = server_def
        logger.debug(f"Registered server def: {server_def.name} ({server_def.transport.value})")

    def get(self, name: str) -> ServerDef | None:
        return self._servers.get(name)

    def list_all(self) -> list[str]:
        return list(self._servers.keys())

    @property
    def count(self) -> int:
        return len(self._servers)

    def __iter__(self) -> Iterator[ServerDef]:
        return iter(self._servers.values())

    def __len__(self) -> int:
        return len(self._servers)

    # ── Loading ──────────────────────────────────────────────

    def load_from_dict(self, servers: dict[str, dict]) -> int:
        """Load and validate server records keyed by server name."""
        if not isinstance(servers, dict):
            raise ServerConfigError(
                f"'{SERVERS_KEY}' must be a mapping, got {type(servers).__name__}"
            )

        count = 0
        for name, config in servers.items():
            self.register(parse_server(str(name), config))
            count += 1

        logger.info(f"Loaded {count} server definitions")
        return count

    def load_from_file(self, path: str | Path) -> int:
        """Load a declaration document: YAML for .yaml/.yml, JSON otherwise."""
        path = Path(path)
        if not path.exists():
            raise FileNotFoundError(f"Server declarations not found: {path}")

        text = path.read_text(encoding="utf-8")
        try:
            if path.suffix.lower() in YAML_SUFFIXES:
                data = yaml.safe_load(text)
            else:
                data = json.loads(text)
        except (yaml.YAMLError, json.JSONDecodeError) as e:
            raise ServerConfigError(f"Could not parse {path}: {e}") from e

        if not isinstance(data, dict):
            raise ServerConfigError(
                f"Server declarations must be a mapping, got {type(data).__name__}"
            )
        if SERVERS_KEY not in data:
            raise ServerConfigError(f"No '{SERVERS_KEY}' key in {path}")

        return self.load_from_dict(data[SERVERS_KEY] or {})

    @classmethod
    def from_file(cls, path: str | Path) -> ServerRegistry:
        registry = cls()
        registry.load_from_file(path)
        return registry

    # ── Derived data ─────────────────────────────────────────

    def options(self) -> list[AgentOption]:
        """One agent option per env/header mapping value, in declaration order."""
        return [
            AgentOption(name=option)
            for server in self._servers.values()
            for option in server.option_names()
        ]

    def runtimes(self) -> set[Runtime]:
        return {
            runtime
            for server in self._servers.values()
            if (runtime := server.runtime()) is not None
        }


def parse_server(name: str, config: Any) -> ServerDef:
    """Validate one server record and build its definition."""
    if not isinstance(config, dict):
        raise ServerConfigError(f"Server '{name}' must be a mapping, got {type(config).__name__}")

    raw_transport = config.get("transport", "stdio")
    transport = _TRANSPORT_ALIASES.get(raw_transport)
    if transport is None:
        raise ServerConfigError(f"Server '{name}' has unknown transport '{raw_transport}'")

    if transport is Transport.STDIO:
        command = config.get("command")
        if not command or not isinstance(command, str):
            raise ServerConfigError(f"Server '{name}' requires a 'command' string")
        args = config.get("args") or []
        if not isinstance(args, list):
            raise ServerConfigError(f"Server '{name}' 'args' must be a list")
        return StdioServer(
            name=name,
            command=command,
            args=[str(a) for a in args],
            env=_string_mapping(name, "env", config.get("env")),
        )

    url = config.get("url")
    if not url or not isinstance(url, str):
        raise ServerConfigError(f"Server '{name}' requires a 'url' for {raw_transport} transport")
    return NetworkServer(
        name=name,
        transport=transport,
        url=url,
        headers=_string_mapping(name, "headers", config.get("headers")),
    )


def _string_mapping(server: str, key: str, value: Any) -> dict[str, str] | None:
    if value is None:
        return None
    if not isinstance(value, dict):
        raise ServerConfigError(f"Server '{server}' '{key}' must be a mapping")
    return {str(k): ("" if v is None else str(v)) for k, v in value.items()}
