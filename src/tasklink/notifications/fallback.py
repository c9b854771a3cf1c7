# src/tasklink/notifications/fallback.py

from __future__ import annotations

"""
Fallback evaluator used when no live view has a query's results.

Only folder membership is understood:

    source: file.inFolder("Projects")
    source: file.inFolder("Inbox") || file.inFolder("Projects/Active")

Anything else in `source` (other predicates, `&&`, negation) makes the whole
query unsupported here and yields no results. A plain substring search for
inFolder(...) is not used: it would return the whole folder even when other
conditions are ANDed with it, and notify about notes the real filter excludes.
"""

import logging
import re

from ..bulk.conversion import FieldMapping
from ..core.models import NotificationItem
from ..core.ports import DocumentStore, MetadataBag, TaskIndex
from ..links.references import stem
from .query_config import QueryDefinition

logger = logging.getLogger(__name__)

_IN_FOLDER_RE = re.compile(r"""file\.inFolder\s*\(\s*["']([^"']+)["']\s*\)""")


def parse_folder_filter(source: str | None) -> list[str] | None:
    """Folders named by the filter, or None when the filter is not folder-only."""
    if not source or not source.strip():
        return None

    folders: list[str] = []
    for part in source.split("||"):
        m = _IN_FOLDER_RE.fullmatch(part.strip())
        if not m:
            return None
        folders.append(m.group(1).strip().strip("/"))
    return folders


def describe_document(
    path: str,
    metadata: MetadataBag | None,
    task_index: TaskIndex,
    fields: FieldMapping,
) -> NotificationItem:
    fm = metadata or {}
    is_task = task_index.is_task_record(fm)
    title = fm.get("title") or fm.get(fields.title) or stem(path)
    status = fm.get(fields.status) if is_task else None
    return NotificationItem(
        path=path,
        title=str(title),
        is_task=is_task,
        status=str(status) if status is not None else None,
    )


class FolderQueryEvaluator:
    def __init__(
        self,
        store: DocumentStore,
        task_index: TaskIndex,
        fields: FieldMapping | None = None,
        *,
        note_extension: str = ".md",
    ) -> None:
        self._store = store
        self._task_index = task_index
        self._fields = fields or FieldMapping()
        self._note_extension = note_extension

    def evaluate(self, definition: QueryDefinition) -> list[NotificationItem]:
        folders = parse_folder_filter(definition.source)
        if folders is None:
            logger.debug("Unsupported query source for fallback: %r", definition.source)
            return []

        items: list[NotificationItem] = []
        for path in self._store.list_documents(self._note_extension):
            if any(not folder or path.startswith(folder + "/") for folder in folders):
                items.append(describe_document(path, self._store.get_metadata(path), self._task_index, self._fields))
        return items
