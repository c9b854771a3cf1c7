# src/tasklink/core/errors.py

from __future__ import annotations


class TaskLinkError(Exception):
    """Base class for errors raised by tasklink components."""


class DocumentNotFoundError(TaskLinkError):
    """A referenced document does not exist in the store."""

    def __init__(self, path: str) -> None:
        super().__init__(f"File not found: {path}")
        self.path = path


class QueryDefinitionError(TaskLinkError):
    """A saved-query definition could not be parsed."""


class MutationError(TaskLinkError):
    """The store rejected a metadata write."""
