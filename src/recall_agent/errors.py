"""Errors that propagate out of the pipeline.

Tool failures never appear here: they are reported as failed `ToolResult`
records. Only configuration mistakes and caller contract violations raise.
"""

from __future__ import annotations


class RecallAgentError(Exception):
    """Base class for pipeline errors."""


class DuplicateToolError(RecallAgentError, ValueError):
    """Raised when a tool name is registered twice."""

    def __init__(self, name: str) -> None:
        super().__init__(f"Tool already registered: {name}")
        self.name = name


class InvalidMessageError(RecallAgentError, ValueError):
    """Raised when a caller passes a message the pipeline cannot process."""
