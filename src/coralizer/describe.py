"""
Agent description synthesis.

Turns the aggregated tool list into a short natural-language description
via a LangChain chat model. Set SKIP_LLM to bypass the model entirely.
"""

from __future__ import annotations

import json
import logging
import os
from typing import Any

from langchain_core.messages import HumanMessage, SystemMessage

logger = logging.getLogger(__name__)

DEFAULT_MODEL = "openai:gpt-4o"
PLACEHOLDER_DESCRIPTION = "DUMMY DESCRIPTION"

SYSTEM_PROMPT = "You are a helpful assistant."

DESCRIPTION_PROMPT = """
We are making an agent with access to the following tooling:
# start of tooling
{tools}
# end of tooling

This agent is being generated around this tooling to represent its capabilities and responsibilities as an agent to other agents.
Other agents, as well as human developers will use the agent's description to determine whether it is relevant to communicate with and use.

With these tools in mind, generate a short description (10 - 50 words) that describes the agent's capabilities and responsibilities.
""".strip()


def llm_disabled() -> bool:
    return "SKIP_LLM" in os.environ


def _model_name() -> str:
    return os.environ.get("CORALIZER_MODEL", DEFAULT_MODEL)


def format_tools(tools: list[Any]) -> str:
    """Serialize tools (mcp `Tool` models or plain dicts) one JSON object per block."""
    blocks = []
    for tool in tools:
        if hasattr(tool, "model_dump_json"):
            blocks.append(tool.model_dump_json(exclude_none=True))
        else:
            blocks.append(json.dumps(tool, default=str))
    return "\n\n".join(blocks)


def fallback_description(tools: list[Any]) -> str:
    """Description used when the model cannot be reached."""
    names = []
    for tool in tools:
        name = tool.get("name") if isinstance(tool, dict) else getattr(tool, "name", None)
        if name:
            names.append(name)
    if not names:
        return "An agent generated around a set of MCP tool servers."
    shown = ", ".join(names[:8])
    if len(names) > 8:
        shown += f" and {len(names) - 8} more"
    return f"An agent with access to {len(names)} tools: {shown}."


async def describe_tools(
    tools: list[Any],
    model: str | None = None,
    llm: Any = None,
) -> str:
    """
    Ask a chat model for a 10-50 word description of an agent with these tools.

    Args:
        tools: Aggregated tool descriptors from every reachable server.
        model: LangChain model string (defaults to CORALIZER_MODEL / openai:gpt-4o).
        llm: A ready chat model; overrides `model` when given.

    Returns:
        The description. Falls back to a generated sentence if the model call
        fails, and to a fixed placeholder when SKIP_LLM is set.
    """
    if llm_disabled():
        logger.info("SKIP_LLM set, using placeholder description")
        return PLACEHOLDER_DESCRIPTION

    prompt = DESCRIPTION_PROMPT.format(tools=format_tools(tools))

    try:
        if llm is None:
            from langchain.chat_models import init_chat_model

            llm = init_chat_model(model or _model_name())

        logger.info("Generating agent description...")
        response = await llm.ainvoke(
            [SystemMessage(content=SYSTEM_PROMPT), HumanMessage(content=prompt)]
        )
    except Exception as e:
        logger.error(f"Description generation failed, using fallback: {e}")
        return fallback_description(tools)

    content = response.content if hasattr(response, "content") else str(response)
    if isinstance(content, list):
        content = "".join(
            part.get("text", "") if isinstance(part, dict) else str(part) for part in content
        )
    description = content.strip()
    if not description:
        logger.warning("Model returned an empty description, using fallback")
        return fallback_description(tools)
    return description
