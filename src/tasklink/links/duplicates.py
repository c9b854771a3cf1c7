# src/tasklink/links/duplicates.py

from __future__ import annotations

import logging
from collections.abc import Iterable
from dataclasses import dataclass, field

from ..core.ports import TaskIndex
from .references import links_to

logger = logging.getLogger(__name__)


@dataclass(slots=True)
class DuplicateCheckResult:
    # Source paths that already have at least one linked task.
    linked_paths: set[str] = field(default_factory=set)
    source_to_tasks: dict[str, list[str]] = field(default_factory=dict)


class DuplicateDetector:
    """
    Finds source notes that already have a task pointing at them.

    Only the tasks' link-list entries are consulted. The scan is
    sources x tasks, fine for batches of a few hundred notes.
    """

    def __init__(self, task_index: TaskIndex) -> None:
        self._task_index = task_index

    async def check_for_duplicates(self, source_paths: Iterable[str]) -> DuplicateCheckResult:
        result = DuplicateCheckResult()
        all_tasks = await self._task_index.get_all_tasks()

        for source_path in source_paths:
            if not source_path:
                continue
            linked = [task.path for task in all_tasks if links_to(task, source_path)]
            if linked:
                result.linked_paths.add(source_path)
                result.source_to_tasks[source_path] = linked

        logger.debug(
            "Duplicate check: %d tasks scanned, %d sources already linked",
            len(all_tasks),
            len(result.linked_paths),
        )
        return result

    async def has_existing_task(self, source_path: str) -> bool:
        result = await self.check_for_duplicates([source_path])
        return source_path in result.linked_paths
