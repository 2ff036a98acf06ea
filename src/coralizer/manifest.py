"""
Manifest enrichment for coral-agent.toml.

    [agent]
    name = "my-agent"              # <- set to the agent name
    version = "0.1.0"
    description = "..."            # <- set to the synthesized description

    [options]
    API_KEY = { type = "string", required = true }   # <- one per derived option

Each missing piece is reported and skipped on its own; whatever can be
applied is still written back.
"""

from __future__ import annotations

import logging
from pathlib import Path

import tomlkit
from tomlkit.exceptions import TOMLKitError

from .models import AgentOption

logger = logging.getLogger(__name__)


def enrich_manifest(
    path: Path,
    agent_name: str,
    description: str,
    options: list[AgentOption],
) -> list[str]:
    """
    Update coral-agent.toml in place.

    Returns:
        Warnings for every enrichment that had to be skipped.
    """
    warnings: list[str] = []
    manifest = path.name

    try:
        doc = tomlkit.parse(path.read_text(encoding="utf-8"))
    except (OSError, TOMLKitError) as e:
        warnings.append(f"Could not read {manifest}: {e}")
        logger.warning(warnings[-1])
        return warnings

    agent = doc.get("agent")
    if not isinstance(agent, dict):
        warnings.append(f"No [agent] table found in {manifest}!")
    else:
        agent["description"] = description
        if "name" in agent:
            agent["name"] = agent_name
        else:
            warnings.append(f"No agent.name key found in {manifest}!")

    table = doc.get("options")
    if not isinstance(table, dict):
        warnings.append(f"No [options] table found in {manifest}!")
    else:
        for option in options:
            if option.name in table:
                logger.debug(f"Option '{option.name}' already declared, overwriting")
            table[option.name] = option.to_toml()

    for warning in warnings:
        logger.warning(warning)

    path.write_text(tomlkit.dumps(doc), encoding="utf-8")
    return warnings
