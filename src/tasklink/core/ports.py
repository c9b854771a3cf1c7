# src/tasklink/core/ports.py

from __future__ import annotations

"""
Ports (interfaces) used by the core.

The core depends on Protocols instead of concrete implementations.
This keeps the host (an editor, a plain folder of notes, a test fake) swappable
and makes testing easier.
"""

from collections.abc import Callable
from typing import Any, Awaitable, Protocol

from .models import NotificationItem, NotificationPayload, TaskCreationData, TaskHandle, TaskRecord

MetadataBag = dict[str, Any]

# Called with the live metadata bag; mutates it in place.
MetadataMutator = Callable[[MetadataBag], None]

# Pushed by a UI surface that already computed a query's results.
# Returning None means "nothing computed yet"; the watcher then falls back.
ResultProvider = Callable[[], list[NotificationItem] | None]

# on_progress(current, total, message)
ProgressCallback = Callable[[int, int, str], None]


class DocumentStore(Protocol):
    """
    Host document store.

    mutate_metadata is the only write primitive the core uses. It must be an
    atomic read-modify-write of one document's metadata bag, persisted before
    the awaitable resolves.
    """

    def list_documents(self, extension: str | None = None) -> list[str]: ...
    def exists(self, path: str) -> bool: ...
    def get_metadata(self, path: str) -> MetadataBag | None: ...
    def read_text(self, path: str) -> Awaitable[str]: ...
    def mutate_metadata(self, path: str, mutator: MetadataMutator) -> Awaitable[None]: ...
    def make_reference(self, target_path: str, source_path: str | None = None) -> str: ...


class TaskIndex(Protocol):
    """
    Host view of which documents are tasks.

    Implementations may also provide `wait_for_fresh_data(path) -> Awaitable[None]`;
    the conversion engine awaits it after each write when present.
    """

    def get_all_tasks(self) -> Awaitable[list[TaskRecord]]: ...
    def is_task_record(self, properties: MetadataBag | None) -> bool: ...


class TaskService(Protocol):
    """Creates a new task document. Returns None when the host refused."""

    def create_task(self, data: TaskCreationData) -> Awaitable[TaskHandle | None]: ...


class NotificationDispatcher(Protocol):
    """UI-side port. Fire-and-forget: the watcher does not keep payloads."""

    def dispatch(self, payload: NotificationPayload) -> None: ...
