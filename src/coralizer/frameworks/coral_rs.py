"""
coral-rs (Rust) rendering strategy.

The template's main.rs constructs `let mut agent = Agent::new(...)`. Right
after that statement a builder chain attaches every declared server:

    agent = agent
        .mcp_server(McpConnectionBuilder::stdio("npx", ["-y", "pkg"], "fs").connect().await.expect("..."))
        .mcp_server(McpConnectionBuilder::sse("https://x/mcp").connect().await.expect("..."));
"""

from __future__ import annotations

import logging
import re
import subprocess
from pathlib import Path

from ..errors import PostProcessError, TemplateError
from ..models import Framework, NetworkServer, ServerDef, StdioServer, Transport
from .base import Artifact, Template, set_toml_keys

logger = logging.getLogger(__name__)

# `let mut agent = Agent::new(` up to and including the next blank line
_AGENT_ANCHOR = re.compile(r"^([ \t]*)let mut agent = Agent::new\(.*?\n[ \t]*\n", re.DOTALL | re.MULTILINE)

_RUST_ESCAPES = {"\\": "\\\\", "\"": "\\\"", "\n": "\\n", "\r": "\\r", "\t": "\\t", "\0": "\\0"}


class CoralRsTemplate(Template):
    framework = Framework.CORAL_RS
    name = "coral-rs"
    artifact = Artifact(
        url="https://github.com/Coral-Protocol/coral-rs-agent/archive/d55baba502dd17e8a885b4f0d4b70c7613351834.zip",
        filename="d55baba502dd17e8a885b4f0d4b70c7613351834.zip",
    )
    entry_point = "main.rs"

    def splice(self, servers: list[ServerDef], contents: str) -> str:
        match = _AGENT_ANCHOR.search(contents)
        if match is None:
            raise TemplateError(
                f"Could not find 'let mut agent = Agent::new(...)' in {self.entry_point}"
            )

        calls = [call for server in servers if (call := self._render(server))]
        if not calls:
            return contents

        indent = match.group(1)
        chain = "".join(f"\n{indent}    .{call}" for call in calls)
        block = f"{indent}agent = agent{chain};\n\n"
        return contents[: match.end()] + block + contents[match.end() :]

    def _render(self, server: ServerDef) -> str | None:
        if isinstance(server, StdioServer):
            if server.env:
                logger.warning(
                    f"coral-rs does not support passing environment variables to stdio MCP servers "
                    f"('{server.name}' env ignored)"
                )
            args = ", ".join(rust_string(a) for a in server.args)
            builder = (
                f"McpConnectionBuilder::stdio({rust_string(server.command)}, "
                f"[{args}], {rust_string(server.name)})"
            )
            error = f"failed to spawn stdio mcp server '{server.name}'"

        elif isinstance(server, NetworkServer) and server.transport is Transport.SSE:
            if server.headers:
                logger.warning(
                    f"coral-rs does not support passing headers to SSE MCP servers "
                    f"('{server.name}' headers ignored)"
                )
            builder = f"McpConnectionBuilder::sse({rust_string(server.url)})"
            error = f"failed to connect to sse mcp server '{server.name}'"

        else:
            logger.warning(
                f"MCP servers with {server.transport.value} transport are not supported "
                f"in coral-rs, skipping '{server.name}'"
            )
            return None

        return f"mcp_server({builder}.connect().await.expect({rust_string(error)}))"

    def post_process(self, root: Path, agent_name: str) -> list[str]:
        warnings: list[str] = []

        try:
            set_toml_keys(root / "Cargo.toml", "package", {"name": agent_name})
            logger.info(f"Fixed up 'Cargo.toml' -> '{root / 'Cargo.toml'}'")
        except (PostProcessError, OSError) as e:
            warnings.append(f"Cargo.toml: {e}")

        try:
            subprocess.run(["cargo", "fmt"], cwd=root, check=True, capture_output=True)
            logger.info("Formatted")
        except (OSError, subprocess.CalledProcessError) as e:
            warnings.append(f"Failed to format coralized project, code may look weird: {e}")

        return warnings


def rust_string(value: str) -> str:
    """Double-quoted Rust string literal; other control characters become \\u{..}."""
    out = []
    for ch in value:
        if ch in _RUST_ESCAPES:
            out.append(_RUST_ESCAPES[ch])
        elif ord(ch) < 0x20 or ord(ch) == 0x7F:
            out.append(f"\\u{{{ord(ch):x}}}")
        else:
            out.append(ch)
    return '"' + "".join(out) + '"'
