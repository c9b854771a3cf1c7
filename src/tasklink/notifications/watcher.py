# src/tasklink/notifications/watcher.py

from __future__ import annotations

"""
Saved-query watcher.

Keeps a registry of query definitions flagged `notify: true`, listens to the
host change feed and re-evaluates queries after a short debounce:

    registered --(change event)--> pending --(debounce fires)--> evaluating --> registered
    any state --(notify turned off / definition deleted)--> removed

Any document change marks every non-snoozed query pending, not only the ones
whose cached results contain the changed path: a change can add a brand-new
match that no cached set knows about yet.

Snooze only blocks evaluation and dispatch for a while. There is no
"same results as last time" suppression; once the snooze lapses the next
trigger notifies again.
"""

import asyncio
import logging
import time
from collections.abc import Callable
from dataclasses import dataclass, field
from enum import StrEnum
from typing import Any

from ..bulk.conversion import FieldMapping
from ..core.events import (
    EVENT_DOCUMENT_CHANGED,
    EVENT_DOCUMENT_DELETED,
    EVENT_DOCUMENT_RENAMED,
    EVENT_TASK_UPDATED,
    EventEmitter,
    SubscriptionGroup,
)
from ..core.models import NotificationItem, NotificationPayload
from ..core.ports import DocumentStore, NotificationDispatcher, TaskIndex
from .fallback import FolderQueryEvaluator
from .live_views import LiveViewRegistry
from .query_config import load_query_definition, parse_query_definition

logger = logging.getLogger(__name__)


class QueryState(StrEnum):
    REGISTERED = "registered"
    PENDING = "pending"
    EVALUATING = "evaluating"


@dataclass(slots=True)
class MonitoredQuery:
    path: str
    name: str
    snoozed_until: float = 0.0
    last_result_count: int = 0
    cached_paths: set[str] = field(default_factory=set)

    def is_snoozed(self, now: float) -> bool:
        return now < self.snoozed_until


@dataclass(slots=True, frozen=True)
class MonitoredQueryInfo:
    path: str
    name: str
    snoozed: bool
    state: QueryState
    last_result_count: int


@dataclass(slots=True, frozen=True)
class WatcherConfig:
    debounce_seconds: float = 1.0
    startup_delay_seconds: float = 5.0
    rescan_interval_seconds: float = 300.0
    query_extension: str = ".base"
    note_extension: str = ".md"

    @staticmethod
    def from_settings(settings: Any) -> WatcherConfig:
        return WatcherConfig(
            debounce_seconds=float(settings.debounce_seconds),
            startup_delay_seconds=float(settings.startup_delay_seconds),
            rescan_interval_seconds=float(settings.rescan_interval_seconds),
            query_extension=settings.query_extension,
        )


def _query_display_name(path: str, extension: str) -> str:
    base = path.rsplit("/", 1)[-1]
    if extension and base.endswith(extension):
        base = base[: -len(extension)]
    return base or path


class QueryWatcher:
    def __init__(
        self,
        store: DocumentStore,
        task_index: TaskIndex,
        dispatcher: NotificationDispatcher,
        events: EventEmitter,
        *,
        live_views: LiveViewRegistry | None = None,
        config: WatcherConfig | None = None,
        fields: FieldMapping | None = None,
        clock: Callable[[], float] = time.time,
    ) -> None:
        self._store = store
        self._dispatcher = dispatcher
        self._events = events
        self.live_views = live_views if live_views is not None else LiveViewRegistry()
        self._config = config or WatcherConfig()
        self._clock = clock
        self._evaluator = FolderQueryEvaluator(
            store,
            task_index,
            fields,
            note_extension=self._config.note_extension,
        )

        self._monitored: dict[str, MonitoredQuery] = {}
        self._pending: set[str] = set()
        self._evaluating: set[str] = set()
        self._subscriptions = SubscriptionGroup()

        self._startup_handle: asyncio.TimerHandle | None = None
        self._debounce_handle: asyncio.TimerHandle | None = None
        self._background: set[asyncio.Task[Any]] = set()
        self._rescan_task: asyncio.Task[None] | None = None
        self._started = False

        # Number of evaluation passes that had at least one query to look at.
        self.passes = 0

    # ---- lifecycle ----

    def start(self) -> None:
        """Schedule the initial scan. Must be called from the running loop."""
        if self._started:
            return
        self._started = True
        loop = asyncio.get_running_loop()
        self._startup_handle = loop.call_later(self._config.startup_delay_seconds, self._on_startup_timer)
        logger.info("Query watcher initialized, scanning in %.1fs", self._config.startup_delay_seconds)

    def _on_startup_timer(self) -> None:
        self._startup_handle = None
        self._spawn(self._startup())

    async def _startup(self) -> None:
        await self.scan()
        self._subscribe()
        self._rescan_task = asyncio.create_task(self._rescan_loop())

    def close(self) -> None:
        if self._startup_handle is not None:
            self._startup_handle.cancel()
            self._startup_handle = None

        if self._debounce_handle is not None:
            self._debounce_handle.cancel()
            self._debounce_handle = None

        if self._rescan_task is not None:
            self._rescan_task.cancel()
            self._rescan_task = None

        for task in list(self._background):
            task.cancel()
        self._background.clear()

        self._subscriptions.release_all()
        self._monitored.clear()
        self._pending.clear()
        self._started = False
        logger.info("Query watcher closed")

    def _subscribe(self) -> None:
        if len(self._subscriptions):
            return
        on = self._events.on
        self._subscriptions.add(on(EVENT_TASK_UPDATED, self._on_task_updated))
        self._subscriptions.add(on(EVENT_DOCUMENT_CHANGED, self._on_document_changed))
        self._subscriptions.add(on(EVENT_DOCUMENT_DELETED, self._on_document_deleted))
        self._subscriptions.add(on(EVENT_DOCUMENT_RENAMED, self._on_document_renamed))
        logger.debug("Query watcher subscribed to change feed")

    def _spawn(self, coro: Any) -> asyncio.Task[Any]:
        task = asyncio.get_running_loop().create_task(coro)
        self._background.add(task)
        task.add_done_callback(self._background.discard)
        return task

    async def drain(self) -> None:
        """Wait for in-flight scans / evaluation passes (not for armed timers)."""
        while self._background:
            await asyncio.gather(*list(self._background), return_exceptions=True)

    # ---- registry ----

    def is_query_definition(self, path: str) -> bool:
        return bool(path) and path.endswith(self._config.query_extension)

    async def scan(self) -> None:
        paths = self._store.list_documents(self._config.query_extension)
        logger.debug("Scanning %d query definitions", len(paths))

        # Definitions deleted while nobody was listening. Queries fed by a live
        # view stay until the view releases them.
        present = set(paths)
        for path in [p for p in self._monitored if p not in present and p not in self.live_views]:
            self.remove(path)

        for path in paths:
            await self.check_and_register(path)
        logger.info("Monitoring %d queries", len(self._monitored))

    async def check_and_register(self, path: str) -> None:
        try:
            content = await self._store.read_text(path)
        except Exception:
            logger.warning("Failed to read query definition %s", path, exc_info=True)
            return

        definition = load_query_definition(content, path)
        if not definition.notify:
            if self._monitored.pop(path, None) is not None:
                self._pending.discard(path)
                logger.info("Unregistered query (notify off): %s", path)
            return

        existing = self._monitored.get(path)
        name = definition.name or _query_display_name(path, self._config.query_extension)
        if existing is not None:
            existing.name = name
            return

        self._monitored[path] = MonitoredQuery(path=path, name=name)
        logger.info("Registered query: %s", path)

    def remove(self, path: str) -> None:
        if self._monitored.pop(path, None) is not None:
            self._pending.discard(path)
            logger.info("Unregistered query: %s", path)

    def get(self, path: str) -> MonitoredQuery | None:
        return self._monitored.get(path)

    def list_monitored(self) -> list[MonitoredQueryInfo]:
        now = self._clock()
        out: list[MonitoredQueryInfo] = []
        for m in self._monitored.values():
            if m.path in self._evaluating:
                state = QueryState.EVALUATING
            elif m.path in self._pending:
                state = QueryState.PENDING
            else:
                state = QueryState.REGISTERED
            out.append(
                MonitoredQueryInfo(
                    path=m.path,
                    name=m.name,
                    snoozed=m.is_snoozed(now),
                    state=state,
                    last_result_count=m.last_result_count,
                )
            )
        return out

    # ---- change feed ----

    def _on_task_updated(self, path: str) -> None:
        if path:
            self.handle_path_change(path)

    def _on_document_changed(self, path: str) -> None:
        if self.is_query_definition(path):
            self._spawn(self.check_and_register(path))
        elif path:
            self.handle_path_change(path)

    def _on_document_deleted(self, path: str) -> None:
        if self.is_query_definition(path):
            self.remove(path)
        elif path:
            self.handle_path_change(path)

    def _on_document_renamed(self, new_path: str, old_path: str) -> None:
        old_is_query = self.is_query_definition(old_path)
        new_is_query = self.is_query_definition(new_path)
        if not (old_is_query or new_is_query):
            self.handle_path_change(new_path)
            self.handle_path_change(old_path)
            return

        existing = self._monitored.pop(old_path, None)
        self._pending.discard(old_path)

        if new_is_query:
            if existing is not None:
                existing.path = new_path
                self._monitored[new_path] = existing
                logger.info("Query moved: %s -> %s", old_path, new_path)
            # The notify flag may differ (or the file just became a definition).
            self._spawn(self.check_and_register(new_path))
        else:
            if existing is not None:
                logger.info("Unregistered query (no longer a definition): %s", old_path)
            self.handle_path_change(new_path)

        if not old_is_query:
            self.handle_path_change(old_path)

    def handle_path_change(self, path: str) -> None:
        for query_path, m in self._monitored.items():
            if path in m.cached_paths:
                self._pending.add(query_path)

        now = self._clock()
        for query_path, m in self._monitored.items():
            if not m.is_snoozed(now):
                self._pending.add(query_path)

        if self._pending:
            self.schedule_evaluation()

    def mark_pending(self, query_path: str) -> None:
        if query_path in self._monitored:
            self._pending.add(query_path)
            self.schedule_evaluation()

    # ---- evaluation ----

    def schedule_evaluation(self) -> None:
        if self._debounce_handle is not None:
            self._debounce_handle.cancel()
        loop = asyncio.get_running_loop()
        self._debounce_handle = loop.call_later(self._config.debounce_seconds, self._on_debounce_timer)

    def _on_debounce_timer(self) -> None:
        self._debounce_handle = None
        self._spawn(self.evaluate_pending())

    async def evaluate_pending(self) -> None:
        if not self._pending:
            return

        snapshot = list(self._pending)
        self._pending.clear()
        self.passes += 1
        logger.debug("Evaluation pass #%d: %d queries", self.passes, len(snapshot))

        for query_path in snapshot:
            m = self._monitored.get(query_path)
            if m is None:
                continue
            if m.is_snoozed(self._clock()):
                logger.debug("%s is snoozed", query_path)
                continue

            self._evaluating.add(query_path)
            try:
                await self._evaluate_query(m)
            finally:
                self._evaluating.discard(query_path)

    async def _evaluate_query(self, m: MonitoredQuery) -> None:
        try:
            items = await self.resolve_results(m.path)
        except Exception:
            logger.exception("Error evaluating %s", m.path)
            return

        m.cached_paths = {item.path for item in items}
        m.last_result_count = len(items)

        if items:
            self._dispatch(m, items)

    async def resolve_results(self, query_path: str) -> list[NotificationItem]:
        live = self.live_views.read(query_path)
        if live is not None:
            return list(live)

        content = await self._store.read_text(query_path)
        return self._evaluator.evaluate(parse_query_definition(content))

    def _dispatch(self, m: MonitoredQuery, items: list[NotificationItem]) -> None:
        payload = NotificationPayload(query_id=m.path, query_name=m.name, items=tuple(items))
        logger.info("Notification for %s: %d items", m.name, len(items))
        try:
            self._dispatcher.dispatch(payload)
        except Exception:
            logger.exception("Notification dispatch failed for %s", m.path)

    async def trigger_evaluation(self, query_path: str) -> None:
        if query_path not in self._monitored:
            return
        self._pending.add(query_path)
        await self.evaluate_pending()

    async def rescan(self) -> None:
        await self.scan()

        now = self._clock()
        for query_path, m in self._monitored.items():
            if not m.is_snoozed(now):
                self._pending.add(query_path)

        if self._pending:
            await self.evaluate_pending()

    async def _rescan_loop(self) -> None:
        interval = max(1.0, float(self._config.rescan_interval_seconds))
        while True:
            await asyncio.sleep(interval)
            try:
                await self.rescan()
            except Exception:
                logger.exception("Periodic query rescan failed")

    # ---- push path / snooze ----

    def notify_from_view(self, query_path: str, query_name: str, items: list[NotificationItem]) -> None:
        """Called by a live view that just computed fresh results for a query."""
        if not items:
            return

        m = self._monitored.get(query_path)
        if m is None:
            m = MonitoredQuery(path=query_path, name=query_name)
            self._monitored[query_path] = m

        if m.is_snoozed(self._clock()):
            logger.debug("%s is snoozed, skipping notification", query_path)
            return

        m.cached_paths = {item.path for item in items}
        m.last_result_count = len(items)
        self._dispatch(m, items)

    def snooze(self, query_path: str, duration_minutes: float) -> bool:
        m = self._monitored.get(query_path)
        if m is None:
            return False
        until = self._clock() + float(duration_minutes) * 60.0
        m.snoozed_until = max(m.snoozed_until, until)
        logger.info("Snoozed %s for %s minutes", query_path, duration_minutes)
        return True

    def reset_snooze(self, query_path: str) -> bool:
        m = self._monitored.get(query_path)
        if m is None:
            return False
        m.snoozed_until = 0.0
        logger.info("Snooze cleared for %s", query_path)
        return True
