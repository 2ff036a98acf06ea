"""
Rendering strategy interface.

A Template knows, for one target framework:
  - which archive holds its source tree
  - which files to skip and which one file is the entry point
  - how to splice per-server connection code into that entry point
  - how to fix up the project once it has been written
"""

from __future__ import annotations

import json
import logging
from abc import ABC, abstractmethod
from dataclasses import dataclass
from pathlib import Path
from typing import Callable

import tomlkit
from tomlkit.exceptions import TOMLKitError

from ..errors import PostProcessError
from ..models import Framework, Runtime, ServerDef

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class Artifact:
    """Content address of a template archive."""
    url: str
    filename: str


class Template(ABC):
    """Base class for per-framework rendering strategies."""

    framework: Framework
    name: str
    artifact: Artifact
    entry_point: str

    def __init__(self, runtimes: set[Runtime] | None = None):
        self.runtimes = set(runtimes or ())

    def include_file(self, path: Path) -> bool:
        """Housekeeping files (nix flakes) are not part of the generated project."""
        return not path.name.startswith("flake")

    def is_entry_point(self, rel_path: Path) -> bool:
        return Path(rel_path).name == self.entry_point

    @abstractmethod
    def splice(self, servers: list[ServerDef], contents: str) -> str:
        """Insert connection code for `servers` at the anchor. Raises TemplateError."""

    @abstractmethod
    def post_process(self, root: Path, agent_name: str) -> list[str]:
        """Fix up auxiliary project files. Returns warnings for steps that failed."""


def edit_text(path: Path, edit: Callable[[str], str]) -> None:
    """Read a text file, transform it, and write it back."""
    contents = path.read_text(encoding="utf-8")
    path.write_text(edit(contents), encoding="utf-8")


def set_toml_keys(path: Path, table: str, values: dict[str, str]) -> None:
    """Overwrite existing keys of one table in a TOML file, keeping its formatting."""
    if not path.exists():
        raise PostProcessError(f"{path.name} not found")

    def _edit(contents: str) -> str:
        try:
            doc = tomlkit.parse(contents)
        except TOMLKitError as e:
            raise PostProcessError(f"Could not parse {path.name}: {e}") from e
        section = doc.get(table)
        if section is None or not hasattr(section, "get"):
            raise PostProcessError(f"No [{table}] table found in {path.name}!")
        for key, value in values.items():
            if key not in section:
                raise PostProcessError(f"No {table}.{key} key found in {path.name}!")
            section[key] = value
        return tomlkit.dumps(doc)

    edit_text(path, _edit)


def string_literal(value: str) -> str:
    """Double-quoted Python string literal."""
    return json.dumps(value, ensure_ascii=False)
