"""
Data models for coralizer.

Enums, dataclasses, and type definitions used across the system.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from enum import Enum
from pathlib import Path
from typing import Any

import tomlkit


# ── Enums ────────────────────────────────────────────────────

class Transport(str, Enum):
    STDIO = "stdio"
    SSE = "sse"
    HTTP = "http"


class Runtime(str, Enum):
    """A runtime the generated project needs at execution time."""
    NPX = "npx"


class Language(str, Enum):
    PYTHON = "Python"
    RUST = "Rust"


class Framework(str, Enum):
    LANGCHAIN = "langchain"
    CORAL_RS = "coral-rs"

    @property
    def display_name(self) -> str:
        return {
            Framework.LANGCHAIN: "Langchain",
            Framework.CORAL_RS: "coral-rs",
        }[self]

    @property
    def language(self) -> Language:
        return {
            Framework.LANGCHAIN: Language.PYTHON,
            Framework.CORAL_RS: Language.RUST,
        }[self]

    def __str__(self) -> str:
        return f"{self.display_name} ({self.language.value})"


# ── Tool server definitions ──────────────────────────────────

def _normalize_mapping(mapping: dict[str, str] | None) -> dict[str, str] | None:
    """Empty mappings count as absent; blank option names fall back to the key."""
    if not mapping:
        return None
    return {key: (value or key) for key, value in mapping.items()}


@dataclass
class StdioServer:
    """A tool server spawned as a child process and spoken to over stdio."""
    name: str
    command: str
    args: list[str] = field(default_factory=list)

    # env var name -> agent option name
    env: dict[str, str] | None = None

    transport: Transport = field(default=Transport.STDIO, init=False)

    def __post_init__(self):
        self.env = _normalize_mapping(self.env)

    def option_names(self) -> list[str]:
        return list(self.env.values()) if self.env else []

    def runtime(self) -> Runtime | None:
        if "npx" in self.command:
            return Runtime.NPX
        return None


@dataclass
class NetworkServer:
    """A tool server reached over SSE or streamable HTTP."""
    name: str
    transport: Transport
    url: str

    # header name -> agent option name
    headers: dict[str, str] | None = None

    def __post_init__(self):
        self.transport = Transport(self.transport)
        if self.transport not in (Transport.SSE, Transport.HTTP):
            raise ValueError(f"Network server '{self.name}' cannot use {self.transport.value}")
        self.headers = _normalize_mapping(self.headers)

    def option_names(self) -> list[str]:
        return list(self.headers.values()) if self.headers else []

    def runtime(self) -> Runtime | None:
        return None


ServerDef = StdioServer | NetworkServer


# ── Agent options ────────────────────────────────────────────

@dataclass
class AgentOption:
    """A user-supplied configuration value declared in coral-agent.toml."""
    name: str
    type: str = "string"
    required: bool = True
    description: str | None = None

    def to_toml(self) -> Any:
        table = tomlkit.inline_table()
        table["type"] = self.type
        table["required"] = self.required
        if self.description:
            table["description"] = self.description
        return table


# ── Results ──────────────────────────────────────────────────

@dataclass
class Discovery:
    """What the capability aggregator learned about the declared servers."""
    description: str
    tools_by_server: dict[str, list[Any]] = field(default_factory=dict)
    failed: list[str] = field(default_factory=list)

    @property
    def tools(self) -> list[Any]:
        return [tool for tools in self.tools_by_server.values() for tool in tools]


@dataclass
class RenderReport:
    """What the tree walk copied and spliced into the staging directory."""
    copied: list[Path] = field(default_factory=list)
    spliced: list[Path] = field(default_factory=list)
    manifest: Path | None = None
    duplicate_manifests: list[Path] = field(default_factory=list)


@dataclass
class MaterializeResult:
    """What the pipeline returns after creating a project."""
    path: Path
    agent_name: str
    framework: Framework
    discovery: Discovery
    render: RenderReport
    options: list[AgentOption]
    warnings: list[str] = field(default_factory=list)
