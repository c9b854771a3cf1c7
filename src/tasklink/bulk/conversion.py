# src/tasklink/bulk/conversion.py

from __future__ import annotations

"""
Bulk conversion: turn existing notes into tasks in place.

Rules for the metadata write (one read-modify-write per note):
- identification marker: tag appended / property set, only when missing
- defaults (status, priority, dateCreated): only when missing
- back-link to the query definition: appended to the link list, deduplicated
- dateModified: always overwritten

Nothing else on the note is touched.
"""

import logging
from collections.abc import Callable
from dataclasses import dataclass, field
from datetime import datetime
from typing import Any

from ..core.errors import DocumentNotFoundError
from ..core.models import SourceItem
from ..core.ports import DocumentStore, MetadataBag, ProgressCallback, TaskIndex
from .reporting import report_progress

logger = logging.getLogger(__name__)


def current_timestamp() -> str:
    return datetime.now().astimezone().isoformat(timespec="seconds")


@dataclass(slots=True, frozen=True)
class TaskIdentification:
    """How the host recognises a task: a tag in `tags`, or a property value."""

    method: str = "tag"  # "tag" | "property"
    tag: str = "task"
    property_name: str = ""
    property_value: str = ""

    def property_marker_value(self) -> Any:
        if self.property_value == "true":
            return True
        if self.property_value == "false":
            return False
        return self.property_value


@dataclass(slots=True, frozen=True)
class FieldMapping:
    """User-facing property names for the task fields the core writes."""

    title: str = "title"
    status: str = "status"
    priority: str = "priority"
    projects: str = "projects"
    tags: str = "tags"
    date_created: str = "dateCreated"
    date_modified: str = "dateModified"


@dataclass(slots=True, frozen=True)
class ConversionConfig:
    identification: TaskIdentification = TaskIdentification()
    fields: FieldMapping = FieldMapping()
    default_status: str = "open"
    default_priority: str = "normal"

    @staticmethod
    def from_settings(settings: Any) -> ConversionConfig:
        return ConversionConfig(
            identification=TaskIdentification(
                method=settings.task_identification_method,
                tag=settings.task_tag,
                property_name=settings.task_property_name,
                property_value=settings.task_property_value,
            ),
            fields=FieldMapping(projects=settings.projects_field),
            default_status=settings.default_task_status,
            default_priority=settings.default_task_priority,
        )


@dataclass(slots=True, frozen=True)
class BulkConvertOptions:
    apply_defaults: bool = True
    link_to_query: bool = False
    query_path: str | None = None
    # Already-task notes are always skipped; this only decides whether they
    # show up in `skipped` and in the progress total.
    report_skipped: bool = True


@dataclass(slots=True)
class BulkConvertResult:
    converted: int = 0
    skipped: int = 0
    failed: int = 0
    errors: list[str] = field(default_factory=list)
    converted_paths: list[str] = field(default_factory=list)


@dataclass(slots=True)
class ConvertPreCheck:
    to_convert: int
    already_tasks: int
    already_task_paths: set[str] = field(default_factory=set)


def apply_task_marker(fm: MetadataBag, ident: TaskIdentification, fields: FieldMapping) -> None:
    if ident.method == "property":
        name = ident.property_name
        if name and name not in fm:
            fm[name] = ident.property_marker_value()
        return

    tag = ident.tag or "task"
    tags = fm.get(fields.tags)
    if tags is None:
        fm[fields.tags] = [tag]
    elif isinstance(tags, list):
        if tag not in tags:
            tags.append(tag)
    elif tags != tag:
        # A single scalar tag; keep it and add ours next to it.
        fm[fields.tags] = [tags, tag]


def build_conversion_mutator(
    config: ConversionConfig,
    options: BulkConvertOptions,
    query_reference: str | None,
    now: Callable[[], str] = current_timestamp,
) -> Callable[[MetadataBag], None]:
    fields = config.fields

    def _mutate(fm: MetadataBag) -> None:
        apply_task_marker(fm, config.identification, fields)

        if options.apply_defaults:
            if fields.status not in fm:
                fm[fields.status] = config.default_status or "open"
            if fields.priority not in fm:
                fm[fields.priority] = config.default_priority or "normal"
            if fields.date_created not in fm:
                fm[fields.date_created] = now()

        if query_reference:
            links = fm.get(fields.projects)
            if links is None:
                fm[fields.projects] = [query_reference]
            elif isinstance(links, list) and query_reference not in links:
                links.append(query_reference)

        fm[fields.date_modified] = now()

    return _mutate


class BulkConvertEngine:
    def __init__(
        self,
        store: DocumentStore,
        task_index: TaskIndex,
        config: ConversionConfig | None = None,
        *,
        now: Callable[[], str] = current_timestamp,
    ) -> None:
        self._store = store
        self._task_index = task_index
        self._config = config or ConversionConfig()
        self._now = now

    async def pre_check(self, items: list[SourceItem]) -> ConvertPreCheck:
        already: set[str] = set()
        for item in items:
            path = item.path or ""
            if not path or not self._store.exists(path):
                continue
            if self._task_index.is_task_record(self._store.get_metadata(path)):
                already.add(path)

        already_count = sum(1 for i in items if i.path in already)
        logger.debug("Convert pre-check: items=%d already_tasks=%d", len(items), already_count)
        return ConvertPreCheck(
            to_convert=len(items) - already_count,
            already_tasks=already_count,
            already_task_paths=already,
        )

    async def convert_notes(
        self,
        items: list[SourceItem],
        options: BulkConvertOptions,
        on_progress: ProgressCallback | None = None,
        *,
        config: ConversionConfig | None = None,
    ) -> BulkConvertResult:
        result = BulkConvertResult()
        if not items:
            return result

        config = config or self._config

        report_progress(on_progress, 0, len(items), "Checking existing tasks...")
        pre = await self.pre_check(items)

        work = items
        if not options.report_skipped:
            work = [i for i in items if i.path not in pre.already_task_paths]
        total = len(work)

        for index, item in enumerate(work):
            path = item.path or ""
            report_progress(on_progress, index + 1, total, f"Converting {index + 1} of {total}...")

            if path in pre.already_task_paths:
                logger.debug("Skipping (already task): %s", path)
                result.skipped += 1
                continue

            try:
                await self.convert_single_note(path, options, config=config)
            except DocumentNotFoundError as e:
                result.failed += 1
                result.errors.append(str(e))
                logger.warning("Convert: %s", e)
                continue
            except Exception as e:
                result.failed += 1
                result.errors.append(f"Error for {path}: {e}")
                logger.exception("convert_single_note failed path=%s", path)
                continue

            result.converted += 1
            result.converted_paths.append(path)

        logger.info(
            "Bulk conversion done: converted=%d skipped=%d failed=%d",
            result.converted,
            result.skipped,
            result.failed,
        )
        return result

    async def convert_single_note(
        self,
        path: str,
        options: BulkConvertOptions,
        *,
        config: ConversionConfig | None = None,
    ) -> None:
        if not path or not self._store.exists(path):
            raise DocumentNotFoundError(path)

        config = config or self._config
        query_reference = None
        if options.link_to_query and options.query_path:
            query_reference = self._store.make_reference(options.query_path, source_path=path)

        mutator = build_conversion_mutator(config, options, query_reference, now=self._now)
        await self._store.mutate_metadata(path, mutator)

        wait_fresh = getattr(self._task_index, "wait_for_fresh_data", None)
        if wait_fresh is not None:
            await wait_fresh(path)
