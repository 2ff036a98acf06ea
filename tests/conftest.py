"""Shared pytest fixtures: fake MCP sessions and template source trees."""

from __future__ import annotations

from contextlib import asynccontextmanager
from pathlib import Path
from types import SimpleNamespace

import pytest

LANGCHAIN_MAIN = '''\
import os

from langchain_mcp_adapters.client import MultiServerMCPClient


def asserted_env(name):
    value = os.getenv(name)
    assert value is not None, f"{name} must be set"
    return value


async def main():
    coral_url = asserted_env("CORAL_CONNECTION_URL")
    client = MultiServerMCPClient(
        connections={
            "coral": {
                "transport": "sse",
                "url": coral_url,
                "timeout": 300,
                "sse_read_timeout": 300,
            }
        }
    )
    tools = await client.get_tools()
'''

CORAL_RS_MAIN = '''\
use coral_rs::agent::Agent;

#[tokio::main]
async fn main() {
    let coral = coral_client().await;
    let mut agent = Agent::new(
        completion_model,
        coral,
    )
    .preamble("You are a helpful agent");

    agent.run().await.unwrap();
}
'''

AGENT_TOML = '''\
[agent]
name = "langchain-agent"
version = "0.1.0"
description = "Template agent"

[options]
MODEL_API_KEY = { type = "string", required = true }
'''

PYPROJECT = '''\
[project]
name = "langchain-agent"
version = "0.1.0"
description = "Template"
dependencies = ["langchain-mcp-adapters"]
'''

CARGO_TOML = '''\
[package]
name = "coral-rs-agent"
version = "0.1.0"
edition = "2024"
'''

DOCKERFILE = '''\
FROM python:3.12-slim AS builder
WORKDIR /app
COPY . .

FROM python:3.12-slim
COPY --from=builder --chown=app:app /app/ /app/
CMD ["python", "main.py"]
'''


@pytest.fixture(autouse=True)
def skip_llm(monkeypatch):
    """Never reach a real model from tests."""
    monkeypatch.setenv("SKIP_LLM", "1")


# ── Fake MCP sessions ───────────────────────────────────────

class FakeSession:
    def __init__(self, tools: list[dict], page_size: int | None = None):
        self._tools = tools
        self._page_size = page_size or max(len(tools), 1)

    async def list_tools(self, cursor: str | None = None):
        start = int(cursor or 0)
        end = start + self._page_size
        next_cursor = str(end) if end < len(self._tools) else None
        return SimpleNamespace(tools=self._tools[start:end], nextCursor=next_cursor)


class FakeConnector:
    """
    Stand-in for transport.open_session.

    servers: {name: [tool dicts]}; names in `fail_connect` / `fail_list` /
    `fail_close` raise at that stage.
    """

    def __init__(
        self,
        tools: dict[str, list[dict]],
        fail_connect: set[str] = frozenset(),
        fail_list: set[str] = frozenset(),
        fail_close: set[str] = frozenset(),
        page_size: int | None = None,
    ):
        self.tools = tools
        self.fail_connect = fail_connect
        self.fail_list = fail_list
        self.fail_close = fail_close
        self.page_size = page_size
        self.opened: list[str] = []
        self.closed: list[str] = []

    @asynccontextmanager
    async def __call__(self, server):
        if server.name in self.fail_connect:
            raise ConnectionError(f"cannot reach {server.name}")
        self.opened.append(server.name)
        try:
            if server.name in self.fail_list:
                yield _BrokenSession()
            else:
                yield FakeSession(self.tools.get(server.name, []), self.page_size)
        finally:
            self.closed.append(server.name)
        if server.name in self.fail_close:
            raise RuntimeError(f"{server.name} did not exit cleanly")


class _BrokenSession:
    async def list_tools(self, cursor=None):
        raise RuntimeError("tools/list not supported")


def tool(name: str, description: str = "") -> dict:
    return {"name": name, "description": description, "inputSchema": {"type": "object"}}


@pytest.fixture
def connector_factory():
    return FakeConnector


# ── Template trees ──────────────────────────────────────────

def _write(root: Path, rel: str, contents: str) -> None:
    path = root / rel
    path.parent.mkdir(parents=True, exist_ok=True)
    path.write_text(contents, encoding="utf-8")


@pytest.fixture
def langchain_source(tmp_path) -> Path:
    root = tmp_path / "langchain-template"
    _write(root, "main.py", LANGCHAIN_MAIN)
    _write(root, "coral-agent.toml", AGENT_TOML)
    _write(root, "pyproject.toml", PYPROJECT)
    _write(root, "Dockerfile", DOCKERFILE)
    _write(root, "README.md", "# Langchain agent\n")
    _write(root, "utils/helpers.py", "def helper():\n    return 1\n")
    _write(root, "flake.nix", "{ }\n")
    _write(root, ".git/HEAD", "ref: refs/heads/main\n")
    return root


@pytest.fixture
def coral_rs_source(tmp_path) -> Path:
    root = tmp_path / "coral-rs-template"
    _write(root, "src/main.rs", CORAL_RS_MAIN)
    _write(root, "coral-agent.toml", AGENT_TOML.replace("langchain-agent", "coral-rs-agent"))
    _write(root, "Cargo.toml", CARGO_TOML)
    return root
