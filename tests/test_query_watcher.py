# tests/test_query_watcher.py

from __future__ import annotations

import asyncio

import pytest
import pytest_asyncio

from tasklink.core.events import (
    EVENT_DOCUMENT_CHANGED,
    EVENT_DOCUMENT_DELETED,
    EVENT_DOCUMENT_RENAMED,
    EVENT_TASK_UPDATED,
    EventEmitter,
)
from tasklink.core.models import NotificationItem
from tasklink.notifications.watcher import QueryState, QueryWatcher, WatcherConfig

from .fakes import FakeDocumentStore, FakeTaskIndex, RecordingDispatcher

DUE_QUERY = "Queries/Due.base"
DUE_TEXT = 'name: Due soon\nnotify: true\nsource: file.inFolder("Projects")\n'


class FakeClock:
    def __init__(self, now: float = 1_000.0) -> None:
        self.now = now

    def __call__(self) -> float:
        return self.now


class Harness:
    def __init__(self, *, debounce: float = 0.02) -> None:
        self.store = FakeDocumentStore()
        self.store.add(DUE_QUERY, text=DUE_TEXT)
        self.store.add("Queries/Quiet.base", text='source: file.inFolder("Projects")\n')
        self.store.add("Projects/A.md", {"tags": ["task"], "status": "open"})
        self.events = EventEmitter()
        self.dispatcher = RecordingDispatcher()
        self.clock = FakeClock()
        self.watcher = QueryWatcher(
            self.store,
            FakeTaskIndex(),
            self.dispatcher,
            self.events,
            config=WatcherConfig(debounce_seconds=debounce, startup_delay_seconds=0.0, rescan_interval_seconds=300.0),
            clock=self.clock,
        )

    async def start(self) -> None:
        self.watcher.start()
        await asyncio.sleep(0.01)
        await self.watcher.drain()

    async def settle(self, seconds: float = 0.08) -> None:
        await asyncio.sleep(seconds)
        await self.watcher.drain()


@pytest_asyncio.fixture
async def harness():
    h = Harness()
    yield h
    h.watcher.close()


@pytest.mark.asyncio
async def test_startup_scan_registers_only_notify_queries(harness: Harness) -> None:
    await harness.start()

    infos = harness.watcher.list_monitored()
    assert [(i.path, i.name, i.state) for i in infos] == [(DUE_QUERY, "Due soon", QueryState.REGISTERED)]
    assert harness.events.listener_count() == 4


@pytest.mark.asyncio
async def test_query_name_falls_back_to_file_name(harness: Harness) -> None:
    harness.store.add("Queries/Inbox review.base", text="views:\n  - notify: true\n")
    await harness.watcher.scan()
    assert harness.watcher.get("Queries/Inbox review.base").name == "Inbox review"


@pytest.mark.asyncio
async def test_burst_of_changes_gives_one_pass(harness: Harness) -> None:
    await harness.start()

    for _ in range(10):
        harness.events.emit(EVENT_DOCUMENT_CHANGED, "Projects/A.md")
    assert harness.watcher.list_monitored()[0].state == QueryState.PENDING
    await harness.settle()

    assert harness.watcher.passes == 1
    assert len(harness.dispatcher.payloads) == 1
    payload = harness.dispatcher.payloads[0]
    assert payload.query_id == DUE_QUERY
    assert payload.query_name == "Due soon"
    assert [i.path for i in payload.items] == ["Projects/A.md"]


@pytest.mark.asyncio
async def test_spaced_changes_give_one_pass_each(harness: Harness) -> None:
    await harness.start()

    for _ in range(10):
        harness.events.emit(EVENT_TASK_UPDATED, "Projects/A.md")
        await harness.settle(0.06)

    assert harness.watcher.passes == 10
    assert len(harness.dispatcher.payloads) == 10


@pytest.mark.asyncio
async def test_snoozed_query_is_not_evaluated(harness: Harness) -> None:
    await harness.start()
    w = harness.watcher

    assert w.snooze(DUE_QUERY, 15) is True
    assert w.list_monitored()[0].snoozed is True

    harness.events.emit(EVENT_DOCUMENT_CHANGED, "Projects/A.md")
    await harness.settle()
    assert harness.dispatcher.payloads == []

    harness.clock.now += 15 * 60 + 1
    harness.events.emit(EVENT_DOCUMENT_CHANGED, "Projects/A.md")
    await harness.settle()
    assert len(harness.dispatcher.payloads) == 1


@pytest.mark.asyncio
async def test_snooze_never_shortens_and_can_be_reset(harness: Harness) -> None:
    await harness.watcher.scan()
    w = harness.watcher

    w.snooze(DUE_QUERY, 60)
    w.snooze(DUE_QUERY, 15)
    assert w.get(DUE_QUERY).snoozed_until == harness.clock.now + 3600

    assert w.reset_snooze(DUE_QUERY) is True
    assert w.get(DUE_QUERY).is_snoozed(harness.clock.now) is False

    assert w.snooze("Queries/Missing.base", 15) is False
    assert w.reset_snooze("Queries/Missing.base") is False


@pytest.mark.asyncio
async def test_empty_results_then_two_matches_notify_once(harness: Harness) -> None:
    harness.store.metadata.pop("Projects/A.md")
    await harness.start()
    w = harness.watcher

    await w.trigger_evaluation(DUE_QUERY)
    assert w.get(DUE_QUERY).last_result_count == 0
    assert harness.dispatcher.payloads == []

    harness.store.add("Projects/One.md", {"tags": ["task"], "status": "open"})
    harness.store.add("Projects/Two.md", {})
    harness.events.emit(EVENT_DOCUMENT_CHANGED, "Projects/Two.md")
    await harness.settle()

    assert len(harness.dispatcher.payloads) == 1
    items = harness.dispatcher.payloads[0].items
    assert len(items) == 2
    assert items[0] == NotificationItem(path="Projects/One.md", title="One", is_task=True, status="open")
    assert w.get(DUE_QUERY).cached_paths == {"Projects/One.md", "Projects/Two.md"}


@pytest.mark.asyncio
async def test_failed_evaluation_keeps_previous_cache(harness: Harness) -> None:
    await harness.watcher.scan()
    w = harness.watcher

    await w.trigger_evaluation(DUE_QUERY)
    assert w.get(DUE_QUERY).cached_paths == {"Projects/A.md"}

    def broken() -> list[NotificationItem] | None:
        raise RuntimeError("view crashed")

    sub = w.live_views.register(DUE_QUERY, broken)
    await w.trigger_evaluation(DUE_QUERY)

    m = w.get(DUE_QUERY)
    assert m.cached_paths == {"Projects/A.md"}
    assert m.last_result_count == 1
    assert len(harness.dispatcher.payloads) == 1
    assert w.list_monitored()[0].state == QueryState.REGISTERED
    sub.release()


@pytest.mark.asyncio
async def test_live_view_results_win_over_fallback(harness: Harness) -> None:
    await harness.watcher.scan()
    w = harness.watcher
    live = [NotificationItem(path="Elsewhere/X.md", title="X")]

    with w.live_views.register(DUE_QUERY, lambda: live):
        await w.trigger_evaluation(DUE_QUERY)
    await w.trigger_evaluation(DUE_QUERY)

    assert [p.items[0].path for p in harness.dispatcher.payloads] == ["Elsewhere/X.md", "Projects/A.md"]
    assert DUE_QUERY not in w.live_views


@pytest.mark.asyncio
async def test_live_view_without_results_falls_back(harness: Harness) -> None:
    await harness.watcher.scan()
    harness.watcher.live_views.register(DUE_QUERY, lambda: None)

    await harness.watcher.trigger_evaluation(DUE_QUERY)

    assert [i.path for i in harness.dispatcher.payloads[0].items] == ["Projects/A.md"]


@pytest.mark.asyncio
async def test_only_latest_live_view_registration_counts(harness: Harness) -> None:
    registry = harness.watcher.live_views
    old = registry.register(DUE_QUERY, lambda: [])
    registry.register(DUE_QUERY, lambda: None)

    old.release()

    assert DUE_QUERY in registry
    assert registry.read(DUE_QUERY) is None


@pytest.mark.asyncio
async def test_definition_edits_and_deletes_update_registry(harness: Harness) -> None:
    await harness.start()
    w = harness.watcher

    harness.store.texts["Queries/Quiet.base"] = "notify: true\n"
    harness.events.emit(EVENT_DOCUMENT_CHANGED, "Queries/Quiet.base")
    await w.drain()
    assert w.get("Queries/Quiet.base") is not None

    harness.store.texts[DUE_QUERY] = "notify: false\n"
    harness.events.emit(EVENT_DOCUMENT_CHANGED, DUE_QUERY)
    await w.drain()
    assert w.get(DUE_QUERY) is None

    harness.events.emit(EVENT_DOCUMENT_DELETED, "Queries/Quiet.base")
    assert w.list_monitored() == []


@pytest.mark.asyncio
async def test_reregistering_keeps_snooze_and_cache(harness: Harness) -> None:
    await harness.watcher.scan()
    w = harness.watcher
    await w.trigger_evaluation(DUE_QUERY)
    w.snooze(DUE_QUERY, 60)

    harness.store.texts[DUE_QUERY] = DUE_TEXT.replace("Due soon", "Due this week")
    await w.check_and_register(DUE_QUERY)

    m = w.get(DUE_QUERY)
    assert m.name == "Due this week"
    assert m.is_snoozed(harness.clock.now)
    assert m.cached_paths == {"Projects/A.md"}


@pytest.mark.asyncio
async def test_renamed_definition_keeps_its_state(harness: Harness) -> None:
    await harness.start()
    w = harness.watcher
    w.snooze(DUE_QUERY, 60)

    harness.store.add("Queries/Soon.base", text=DUE_TEXT)
    harness.events.emit(EVENT_DOCUMENT_RENAMED, "Queries/Soon.base", DUE_QUERY)
    await w.drain()

    assert w.get(DUE_QUERY) is None
    moved = w.get("Queries/Soon.base")
    assert moved is not None
    assert moved.is_snoozed(harness.clock.now)


@pytest.mark.asyncio
async def test_renamed_note_triggers_evaluation(harness: Harness) -> None:
    await harness.start()

    harness.events.emit(EVENT_DOCUMENT_RENAMED, "Projects/B.md", "Projects/A.md")
    await harness.settle()

    assert harness.watcher.passes == 1


@pytest.mark.asyncio
async def test_close_releases_everything(harness: Harness) -> None:
    await harness.start()
    harness.events.emit(EVENT_DOCUMENT_CHANGED, "Projects/A.md")

    harness.watcher.close()
    assert harness.events.listener_count() == 0
    assert harness.watcher.list_monitored() == []

    await asyncio.sleep(0.06)
    assert harness.dispatcher.payloads == []
    assert harness.watcher.passes == 0


@pytest.mark.asyncio
async def test_notify_from_view_registers_and_respects_snooze(harness: Harness) -> None:
    w = harness.watcher
    items = [NotificationItem(path="Projects/A.md", title="A", is_task=True, status="open")]

    w.notify_from_view("Views/Board.base", "Board", [])
    assert w.get("Views/Board.base") is None

    w.notify_from_view("Views/Board.base", "Board", items)
    assert len(harness.dispatcher.payloads) == 1
    assert w.get("Views/Board.base").last_result_count == 1

    w.snooze("Views/Board.base", 15)
    w.notify_from_view("Views/Board.base", "Board", items)
    assert len(harness.dispatcher.payloads) == 1


@pytest.mark.asyncio
async def test_dispatcher_failure_does_not_break_the_pass(harness: Harness) -> None:
    class ExplodingDispatcher:
        def dispatch(self, payload) -> None:
            raise RuntimeError("no display")

    watcher = QueryWatcher(harness.store, FakeTaskIndex(), ExplodingDispatcher(), harness.events)
    await watcher.scan()
    await watcher.trigger_evaluation(DUE_QUERY)

    assert watcher.get(DUE_QUERY).last_result_count == 1
    assert watcher.passes == 1


@pytest.mark.asyncio
async def test_rescan_picks_up_new_definitions_and_evaluates(harness: Harness) -> None:
    await harness.watcher.scan()
    harness.store.add("Queries/Later.base", text='name: Later\nnotify: true\nsource: file.inFolder("Projects")\n')

    await harness.watcher.rescan()

    assert sorted(p.query_name for p in harness.dispatcher.payloads) == ["Due soon", "Later"]
    assert harness.watcher.passes == 1


@pytest.mark.asyncio
async def test_file_renamed_into_a_definition_is_registered(harness: Harness) -> None:
    await harness.start()

    harness.store.add("Queries/New.base", text="name: New\nnotify: true\n")
    harness.events.emit(EVENT_DOCUMENT_RENAMED, "Queries/New.base", "Notes/New.md")
    await harness.watcher.drain()

    assert sorted(i.path for i in harness.watcher.list_monitored()) == [DUE_QUERY, "Queries/New.base"]


@pytest.mark.asyncio
async def test_definition_renamed_to_a_note_is_unregistered(harness: Harness) -> None:
    await harness.start()

    harness.store.add("Queries/Due.md", text=DUE_TEXT)
    harness.events.emit(EVENT_DOCUMENT_RENAMED, "Queries/Due.md", DUE_QUERY)
    await harness.watcher.drain()

    assert harness.watcher.list_monitored() == []


@pytest.mark.asyncio
async def test_renamed_definition_with_notify_off_is_dropped(harness: Harness) -> None:
    await harness.start()

    harness.store.add("Queries/Off.base", text="notify: false\n")
    harness.events.emit(EVENT_DOCUMENT_RENAMED, "Queries/Off.base", DUE_QUERY)
    await harness.watcher.drain()

    assert harness.watcher.list_monitored() == []


@pytest.mark.asyncio
async def test_scan_drops_definitions_that_disappeared(harness: Harness) -> None:
    await harness.watcher.scan()
    harness.store.add("Queries/Live.base", text="notify: true\n")
    await harness.watcher.scan()
    sub = harness.watcher.live_views.register("Queries/Live.base", lambda: [])

    del harness.store.metadata[DUE_QUERY]
    del harness.store.metadata["Queries/Live.base"]
    await harness.watcher.scan()

    assert harness.watcher.get(DUE_QUERY) is None
    assert harness.watcher.get("Queries/Live.base") is not None
    sub.release()
