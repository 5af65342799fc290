"""
Error taxonomy for flow building, analysis, and optimization.

NotFoundError and ValidationError propagate to callers. OracleFailure is raised
only at the opinion-oracle boundary and is always caught by the advisor.
Structural warnings and circular dependencies are reported as data, not raised.
"""

from __future__ import annotations


class BlockflowError(Exception):
    """Base class for all blockflow errors."""


class NotFoundError(BlockflowError, LookupError):
    """A flow, block, connection, or parameter id is absent."""

    def __init__(self, kind: str, identifier: str, context: str | None = None) -> None:
        self.kind = kind
        self.identifier = identifier
        self.context = context
        message = f"{kind} not found: {identifier}"
        if context:
            message = f"{message} (in {context})"
        super().__init__(message)


class ValidationError(BlockflowError, ValueError):
    """Invalid input: unknown template, wrong value type, cleared required parameter."""

    def __init__(self, message: str, *, field: str | None = None, value: object = None) -> None:
        self.field = field
        self.value = value
        super().__init__(message)


class OracleFailure(BlockflowError):
    """The opinion oracle timed out, failed, or returned unusable data."""
