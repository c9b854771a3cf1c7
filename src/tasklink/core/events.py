# src/tasklink/core/events.py

from __future__ import annotations

"""
Tiny observer abstraction.

Every `on(...)` returns a Subscription handle. Whoever subscribes owns the
handle and must release it on shutdown; SubscriptionGroup collects handles so a
component can release all of them in one call (or by leaving a `with` block).
"""

import logging
from collections.abc import Callable
from typing import Any

logger = logging.getLogger(__name__)

EVENT_DOCUMENT_CHANGED = "document-changed"
EVENT_TASK_UPDATED = "task-updated"
EVENT_DOCUMENT_DELETED = "document-deleted"
EVENT_DOCUMENT_RENAMED = "document-renamed"  # (new_path, old_path)

Handler = Callable[..., Any]


class Subscription:
    """Handle returned by EventEmitter.on(); release() is idempotent."""

    def __init__(self, release: Callable[[], None]) -> None:
        self._release: Callable[[], None] | None = release

    @property
    def active(self) -> bool:
        return self._release is not None

    def release(self) -> None:
        fn, self._release = self._release, None
        if fn is not None:
            fn()

    def __enter__(self) -> Subscription:
        return self

    def __exit__(self, *exc: object) -> None:
        self.release()


class SubscriptionGroup:
    """Holds several subscriptions and releases them together."""

    def __init__(self) -> None:
        self._subs: list[Subscription] = []

    def add(self, sub: Subscription) -> Subscription:
        self._subs.append(sub)
        return sub

    def __len__(self) -> int:
        return len(self._subs)

    def release_all(self) -> None:
        subs, self._subs = self._subs, []
        for sub in subs:
            sub.release()

    def __enter__(self) -> SubscriptionGroup:
        return self

    def __exit__(self, *exc: object) -> None:
        self.release_all()


class EventEmitter:
    """
    Synchronous in-process emitter.

    A failing handler is logged and does not stop the remaining handlers.
    """

    def __init__(self) -> None:
        self._handlers: dict[str, list[Handler]] = {}

    def on(self, event: str, handler: Handler) -> Subscription:
        self._handlers.setdefault(event, []).append(handler)

        def _off() -> None:
            handlers = self._handlers.get(event)
            if handlers and handler in handlers:
                handlers.remove(handler)

        return Subscription(_off)

    def listener_count(self, event: str | None = None) -> int:
        if event is not None:
            return len(self._handlers.get(event, []))
        return sum(len(h) for h in self._handlers.values())

    def emit(self, event: str, *args: Any) -> None:
        for handler in list(self._handlers.get(event, [])):
            try:
                handler(*args)
            except Exception:
                logger.exception("Event handler failed event=%s", event)
