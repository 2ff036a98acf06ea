"""
Langchain (Python) rendering strategy.

The template's main.py builds a MultiServerMCPClient whose `connections`
dict already holds the "coral" server. Every declared server is added as a
sibling entry right after it:

    client = MultiServerMCPClient(
        connections={
            "coral": {...},
            "filesystem": {
                "transport": "stdio",
                "command": "npx",
                "args": ["-y", "@modelcontextprotocol/server-filesystem", "/tmp"],
            }
        }
    )
"""

from __future__ import annotations

import logging
import re
from pathlib import Path

from ..errors import PostProcessError, TemplateError
from ..models import Framework, NetworkServer, Runtime, ServerDef, StdioServer, Transport
from .base import Artifact, Template, edit_text, set_toml_keys, string_literal

logger = logging.getLogger(__name__)

INDENT = "    "

_CLIENT_ANCHOR = re.compile(
    r'MultiServerMCPClient\s*\(\s*connections\s*=\s*\{\s*"coral"\s*:\s*\{'
)

_TRANSPORT_NAMES = {
    Transport.SSE: "sse",
    Transport.HTTP: "streamable_http",
}

DOCKERFILE_NEEDLE = "COPY --from=builder --chown=app:app /app/ /app/"

NODEJS_DOCKERFILE = """\
# Node.js runtime for npx-launched MCP servers
RUN apt-get update \\
    && apt-get install -y --no-install-recommends nodejs npm \\
    && rm -rf /var/lib/apt/lists/*

"""

PROJECT_DESCRIPTION = "Coralized langchain agent"


class LangchainTemplate(Template):
    framework = Framework.LANGCHAIN
    name = "langchain-agent"
    artifact = Artifact(
        url="https://github.com/Coral-Protocol/langchain-agent/archive/d77845581b94e17c39bfcf0f57c6faf89bdc90d2.zip",
        filename="d77845581b94e17c39bfcf0f57c6faf89bdc90d2.zip",
    )
    entry_point = "main.py"

    def splice(self, servers: list[ServerDef], contents: str) -> str:
        match = _CLIENT_ANCHOR.search(contents)
        if match is None:
            raise TemplateError(
                f"Could not find the MultiServerMCPClient 'coral' connection in {self.entry_point}"
            )

        close = _closing_brace(contents, match.end() - 1)
        if close is None:
            raise TemplateError(
                f"Unbalanced 'coral' connection dict in {self.entry_point}"
            )

        indent = _line_indent(contents, contents.rfind('"coral"', 0, match.end()))
        blocks = [block for server in servers if (block := self._render(server, indent))]
        if not blocks:
            return contents

        insertion = ",\n" + ",\n".join(blocks)
        return contents[: close + 1] + insertion + contents[close + 1 :]

    def _render(self, server: ServerDef, indent: str) -> str:
        inner = indent + INDENT
        lines = [f"{indent}{string_literal(server.name)}: {{"]

        if isinstance(server, StdioServer):
            lines.append(f'{inner}"transport": "stdio",')
            lines.append(f'{inner}"command": {string_literal(server.command)},')
            if server.env:
                lines.append(f'{inner}"env": {{')
                lines.extend(_asserted_env_lines(server.env, inner + INDENT))
                lines.append(f"{inner}}},")
            args = ", ".join(string_literal(a) for a in server.args)
            lines.append(f'{inner}"args": [{args}],')

        elif isinstance(server, NetworkServer):
            lines.append(f'{inner}"transport": "{_TRANSPORT_NAMES[server.transport]}",')
            lines.append(f'{inner}"url": {string_literal(server.url)},')
            if server.headers:
                lines.append(f'{inner}"headers": {{')
                lines.extend(_asserted_env_lines(server.headers, inner + INDENT))
                lines.append(f"{inner}}},")

        else:
            logger.warning(f"Langchain cannot render server '{server.name}', skipping")
            return ""

        lines.append(f"{indent}}}")
        return "\n".join(lines)

    def post_process(self, root: Path, agent_name: str) -> list[str]:
        warnings: list[str] = []

        pyproject_path = root / "pyproject.toml"
        try:
            set_toml_keys(
                pyproject_path,
                "project",
                {"name": agent_name, "description": PROJECT_DESCRIPTION},
            )
            logger.info(f"Fixed up 'pyproject.toml' -> '{pyproject_path}'")
        except (PostProcessError, OSError) as e:
            warnings.append(f"pyproject.toml: {e}")

        if Runtime.NPX in self.runtimes:
            dockerfile_path = root / "Dockerfile"
            try:
                edit_text(dockerfile_path, _add_nodejs)
                logger.info(f"Fixed up 'Dockerfile' -> '{dockerfile_path}'")
            except (PostProcessError, OSError) as e:
                warnings.append(f"Dockerfile: {e}")

        return warnings


def _add_nodejs(dockerfile: str) -> str:
    offset = dockerfile.find(DOCKERFILE_NEEDLE)
    if offset == -1:
        raise PostProcessError("Could not find relevant line in Dockerfile")
    return dockerfile[:offset] + NODEJS_DOCKERFILE + dockerfile[offset:]


def _asserted_env_lines(mapping: dict[str, str], indent: str) -> list[str]:
    return [
        f"{indent}{string_literal(key)}: asserted_env({string_literal(option)}),"
        for key, option in mapping.items()
    ]


def _line_indent(text: str, index: int) -> str:
    start = text.rfind("\n", 0, index) + 1
    line = text[start:index]
    return line[: len(line) - len(line.lstrip())]


def _closing_brace(text: str, open_index: int) -> int | None:
    """Index of the brace closing the one at `open_index`, skipping strings and comments."""
    depth = 0
    quote: str | None = None
    i = open_index
    while i < len(text):
        ch = text[i]
        if quote:
            if ch == "\\":
                i += 2
                continue
            if ch == quote:
                quote = None
        elif ch in "\"'":
            quote = ch
        elif ch == "#":
            newline = text.find("\n", i)
            if newline == -1:
                return None
            i = newline
        elif ch == "{":
            depth += 1
        elif ch == "}":
            depth -= 1
            if depth == 0:
                return i
        i += 1
    return None
