"""
Per-framework rendering strategies.

Adding a framework means adding a Template subclass and registering it here.
"""

from __future__ import annotations

from ..models import Framework, Runtime
from .base import Artifact, Template
from .coral_rs import CoralRsTemplate
from .langchain import LangchainTemplate

TEMPLATES: dict[Framework, type[Template]] = {
    Framework.LANGCHAIN: LangchainTemplate,
    Framework.CORAL_RS: CoralRsTemplate,
}


def get_template(framework: Framework | str, runtimes: set[Runtime] | None = None) -> Template:
    """Instantiate the rendering strategy for a framework."""
    return TEMPLATES[Framework(framework)](runtimes=runtimes)


__all__ = [
    "Artifact",
    "CoralRsTemplate",
    "LangchainTemplate",
    "Template",
    "TEMPLATES",
    "get_template",
]
