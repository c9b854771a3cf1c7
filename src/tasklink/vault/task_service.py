# src/tasklink/vault/task_service.py

from __future__ import annotations

import logging
import re
from collections.abc import Callable
from typing import Any

from ..bulk.conversion import ConversionConfig, current_timestamp
from ..core.models import TaskCreationData, TaskHandle
from .store import NOTE_EXTENSION, FileVault

logger = logging.getLogger(__name__)

_UNSAFE_CHARS_RE = re.compile(r'[\\/:*?"<>|#^\[\]]')
MAX_FILENAME_LEN = 120


def safe_filename(title: str) -> str:
    name = _UNSAFE_CHARS_RE.sub(" ", title or "")
    name = re.sub(r"\s+", " ", name).strip().strip(".")
    return name[:MAX_FILENAME_LEN].rstrip() or "Untitled task"


class VaultTaskService:
    """TaskService that writes one Markdown note per task into the tasks folder."""

    def __init__(
        self,
        vault: FileVault,
        config: ConversionConfig | None = None,
        *,
        tasks_folder: str = "Tasks",
        now: Callable[[], str] = current_timestamp,
    ) -> None:
        self._vault = vault
        self._config = config or ConversionConfig()
        self._folder = tasks_folder.strip("/")
        self._now = now

    def _unique_path(self, title: str) -> str:
        base = safe_filename(title)
        prefix = f"{self._folder}/" if self._folder else ""
        path = f"{prefix}{base}{NOTE_EXTENSION}"
        n = 2
        while self._vault.exists(path):
            path = f"{prefix}{base} {n}{NOTE_EXTENSION}"
            n += 1
        return path

    def build_metadata(self, data: TaskCreationData) -> dict[str, Any]:
        cfg = self._config
        f = cfg.fields
        ident = cfg.identification
        ts = self._now()

        fm: dict[str, Any] = {f.title: data.title}
        fm[f.status] = cfg.default_status
        fm[f.priority] = data.priority or cfg.default_priority
        if data.due:
            fm["due"] = data.due
        if data.scheduled:
            fm["scheduled"] = data.scheduled
        if data.contexts:
            fm["contexts"] = list(data.contexts)
        if data.projects:
            fm[f.projects] = list(data.projects)

        if ident.method == "property" and ident.property_name:
            fm[ident.property_name] = ident.property_marker_value()
        else:
            fm[f.tags] = [ident.tag or "task"]

        fm[f.date_created] = ts
        fm[f.date_modified] = ts
        return fm

    async def create_task(self, data: TaskCreationData) -> TaskHandle | None:
        path = self._unique_path(data.title)
        await self._vault.create_document(path, self.build_metadata(data))
        logger.info("Task created: %s (%s)", path, data.creation_context)
        return TaskHandle(path=path)
