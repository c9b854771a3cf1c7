# src/tasklink/vault/task_index.py

from __future__ import annotations

import asyncio
import logging
from typing import Any

from ..bulk.conversion import FieldMapping, TaskIdentification
from ..core.models import TaskRecord, coerce_str_list
from ..core.ports import MetadataBag
from .store import NOTE_EXTENSION, FileVault

logger = logging.getLogger(__name__)


def _opt_str(value: Any) -> str | None:
    return None if value is None else str(value)


class VaultTaskIndex:
    """
    TaskIndex over a FileVault.

    A note is a task when its front matter carries the identification marker:
    - tag method: `tags` contains the tag (with or without a leading '#')
    - property method: the property equals the configured value
      (compared case-insensitively as text, so True matches "true")
    """

    def __init__(
        self,
        vault: FileVault,
        identification: TaskIdentification | None = None,
        fields: FieldMapping | None = None,
    ) -> None:
        self._vault = vault
        self._ident = identification or TaskIdentification()
        self._fields = fields or FieldMapping()

    def is_task_record(self, properties: MetadataBag | None) -> bool:
        if not properties:
            return False

        if self._ident.method == "property":
            name = self._ident.property_name
            if not name or name not in properties:
                return False
            expected = self._ident.property_marker_value()
            return str(properties[name]).strip().lower() == str(expected).strip().lower()

        tag = (self._ident.tag or "task").lstrip("#")
        tags = coerce_str_list(properties.get(self._fields.tags))
        return any(t.lstrip("#") == tag for t in tags)

    def to_task_record(self, path: str, fm: MetadataBag) -> TaskRecord:
        f = self._fields
        return TaskRecord(
            path=path,
            status=_opt_str(fm.get(f.status)),
            priority=_opt_str(fm.get(f.priority)),
            projects=coerce_str_list(fm.get(f.projects)),
            date_created=_opt_str(fm.get(f.date_created)),
            date_modified=_opt_str(fm.get(f.date_modified)),
            properties=fm,
        )

    async def get_all_tasks(self) -> list[TaskRecord]:
        tasks: list[TaskRecord] = []
        for path in self._vault.list_documents(NOTE_EXTENSION):
            fm = self._vault.get_metadata(path)
            if fm and self.is_task_record(fm):
                tasks.append(self.to_task_record(path, fm))
        logger.debug("Task index: %d tasks", len(tasks))
        return tasks

    async def wait_for_fresh_data(self, path: str) -> None:
        """Drop the cached front matter of `path` and re-read it."""
        self._vault.invalidate(path)
        self._vault.get_metadata(path)
        await asyncio.sleep(0)
