"""
Error taxonomy for coralizer.

Recoverable errors (ToolServerError, PostProcessError) are caught by the
pipeline and turned into log lines / warnings. The rest abort materialization.
"""

from __future__ import annotations


class CoralizerError(Exception):
    """Base class for every error raised by coralizer."""


class ServerConfigError(CoralizerError, ValueError):
    """A tool server declaration is malformed."""


class ToolServerError(CoralizerError, RuntimeError):
    """Connecting to, or listing the tools of, one tool server failed."""

    def __init__(self, server: str, stage: str, cause: BaseException):
        super().__init__(f"Failed to {stage} '{server}': {cause!r}")
        self.server = server
        self.stage = stage
        self.cause = cause


class TemplateError(CoralizerError, RuntimeError):
    """The template source breaks its contract (e.g. the splice anchor is missing)."""


class PostProcessError(CoralizerError, RuntimeError):
    """A framework post-processing step could not be applied."""


class ArchiveError(CoralizerError, RuntimeError):
    """Fetching or extracting a template archive failed."""


class DestinationExistsError(CoralizerError, FileExistsError):
    """The destination directory exists and overwriting was not requested."""
