# src/tasklink/core/models.py

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any


@dataclass(slots=True)
class SourceItem:
    """
    One row handed to a bulk engine (typically one result of a saved query).

    properties is the document's metadata bag as the caller saw it; engines
    copy from it but never write back into it.
    """

    path: str
    display_name: str | None = None
    properties: dict[str, Any] = field(default_factory=dict)


@dataclass(slots=True)
class TaskRecord:
    path: str
    status: str | None = None
    priority: str | None = None
    # Raw reference strings from the link-list field; resolved at read time.
    projects: list[str] = field(default_factory=list)
    date_created: str | None = None
    date_modified: str | None = None
    properties: dict[str, Any] = field(default_factory=dict)


@dataclass(slots=True)
class TaskCreationData:
    title: str
    projects: list[str] = field(default_factory=list)
    due: str | None = None
    scheduled: str | None = None
    priority: str | None = None
    contexts: list[str] = field(default_factory=list)
    creation_context: str = "bulk-creation"


@dataclass(slots=True, frozen=True)
class TaskHandle:
    path: str


@dataclass(slots=True, frozen=True)
class NotificationItem:
    path: str
    title: str
    is_task: bool = False
    status: str | None = None


@dataclass(slots=True, frozen=True)
class NotificationPayload:
    query_id: str
    query_name: str
    items: tuple[NotificationItem, ...]


def coerce_str_list(value: Any) -> list[str]:
    """Scalar -> [scalar], list -> list of str, None -> []."""
    if value is None:
        return []
    if isinstance(value, (list, tuple)):
        return [str(v) for v in value if v is not None]
    return [str(value)]
