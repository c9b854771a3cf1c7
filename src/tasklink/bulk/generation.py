# src/tasklink/bulk/generation.py

from __future__ import annotations

"""
Bulk task generation.

Creates one new task per source item:
- optional duplicate snapshot up front (skip_existing),
- items processed one at a time, in input order,
- per-item failures are recorded and never abort the batch.

The duplicate snapshot is taken once. A task created for the same source by
someone else while the batch runs is not noticed until the next run.
"""

import asyncio
import logging
from dataclasses import dataclass, field
from typing import Any

from ..core.models import SourceItem, TaskCreationData
from ..core.ports import DocumentStore, ProgressCallback, TaskIndex, TaskService
from ..links.duplicates import DuplicateCheckResult, DuplicateDetector
from ..links.references import build_wikilink, stem
from .reporting import report_progress

logger = logging.getLogger(__name__)

UNTITLED_TASK = "Untitled task"


@dataclass(slots=True, frozen=True)
class BulkCreationOptions:
    skip_existing: bool = True
    link_to_source: bool = True


@dataclass(slots=True)
class BulkCreationResult:
    created: int = 0
    skipped: int = 0
    failed: int = 0
    errors: list[str] = field(default_factory=list)
    created_paths: list[str] = field(default_factory=list)


@dataclass(slots=True)
class CreationPreCheck:
    to_create: int
    to_skip: int
    existing: set[str] = field(default_factory=set)


def _non_empty_str(value: Any) -> str | None:
    if isinstance(value, str) and value.strip():
        return value.strip()
    return None


def extract_title(item: SourceItem) -> str:
    props = item.properties or {}
    return (
        _non_empty_str(props.get("title"))
        or _non_empty_str(item.display_name)
        or _non_empty_str(props.get("name"))
        or _non_empty_str(stem(item.path or ""))
        or UNTITLED_TASK
    )


def build_creation_data(item: SourceItem, reference: str | None) -> TaskCreationData:
    """Map a source item onto a task: title, optional link, allow-listed props."""
    props = item.properties or {}
    data = TaskCreationData(title=extract_title(item))

    if reference:
        data.projects = [reference]

    if props.get("due"):
        data.due = str(props["due"])
    if props.get("scheduled"):
        data.scheduled = str(props["scheduled"])
    if props.get("priority"):
        data.priority = str(props["priority"])
    contexts = props.get("contexts")
    if isinstance(contexts, list):
        data.contexts = [str(c) for c in contexts]

    return data


class BulkTaskEngine:
    def __init__(
        self,
        task_service: TaskService,
        task_index: TaskIndex,
        store: DocumentStore | None = None,
    ) -> None:
        self._task_service = task_service
        self._store = store
        self._detector = DuplicateDetector(task_index)

    def _reference_to(self, source_path: str) -> str:
        if self._store is not None:
            return self._store.make_reference(source_path)
        return build_wikilink(source_path)

    async def pre_check(self, items: list[SourceItem], skip_existing: bool) -> CreationPreCheck:
        if not skip_existing:
            return CreationPreCheck(to_create=len(items), to_skip=0)

        check = await self._detector.check_for_duplicates(i.path for i in items if i.path)
        to_skip = sum(1 for i in items if i.path in check.linked_paths)
        return CreationPreCheck(
            to_create=len(items) - to_skip,
            to_skip=to_skip,
            existing=set(check.linked_paths),
        )

    async def create_tasks(
        self,
        items: list[SourceItem],
        options: BulkCreationOptions,
        on_progress: ProgressCallback | None = None,
    ) -> BulkCreationResult:
        result = BulkCreationResult()
        if not items:
            return result

        total = len(items)
        duplicates: DuplicateCheckResult | None = None
        if options.skip_existing:
            report_progress(on_progress, 0, total, "Checking for existing tasks...")
            duplicates = await self._detector.check_for_duplicates(i.path for i in items if i.path)

        for index, item in enumerate(items):
            source_path = item.path or ""
            report_progress(on_progress, index + 1, total, f"Creating task {index + 1} of {total}...")

            if duplicates is not None and source_path in duplicates.linked_paths:
                result.skipped += 1
                logger.debug("Skipping %s (already linked to %s)", source_path, duplicates.source_to_tasks[source_path])
                await asyncio.sleep(0)
                continue

            try:
                reference = self._reference_to(source_path) if options.link_to_source and source_path else None
                handle = await self._task_service.create_task(build_creation_data(item, reference))
            except Exception as e:
                result.failed += 1
                result.errors.append(f"Error for {source_path}: {e}")
                logger.exception("create_task failed source=%s", source_path)
                continue

            if handle is None:
                result.failed += 1
                result.errors.append(f"Failed to create task for: {source_path}")
                logger.warning("Task service returned no task for %s", source_path)
                continue

            result.created += 1
            result.created_paths.append(handle.path)

        logger.info(
            "Bulk creation done: created=%d skipped=%d failed=%d",
            result.created,
            result.skipped,
            result.failed,
        )
        return result
