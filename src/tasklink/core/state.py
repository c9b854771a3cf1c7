# src/tasklink/core/state.py

from __future__ import annotations

import asyncio
from collections.abc import Callable, Coroutine
from dataclasses import dataclass
from typing import Any, TypeVar

from ..bulk.conversion import BulkConvertEngine, ConversionConfig
from ..bulk.generation import BulkTaskEngine
from ..notifications.watcher import QueryWatcher
from ..vault.store import FileVault
from ..vault.task_index import VaultTaskIndex
from ..vault.task_service import VaultTaskService
from .events import EventEmitter

T = TypeVar("T")


@dataclass
class AppState:
    # Store Settings on the state for easy access in other modules later.
    settings: Any

    vault: FileVault
    events: EventEmitter
    conversion_config: ConversionConfig
    task_index: VaultTaskIndex
    task_service: VaultTaskService
    bulk_tasks: BulkTaskEngine
    bulk_convert: BulkConvertEngine
    watcher: QueryWatcher

    # Set once the background loop is running (see connectors.background).
    loop: asyncio.AbstractEventLoop | None = None

    def run(self, coro: Coroutine[Any, Any, T], timeout: float | None = None) -> T:
        """
        Run a coroutine on the service loop and wait for the result.

        Called from the console thread; without a background loop (tests,
        one-shot commands) the coroutine runs on a fresh loop instead.
        """
        if self.loop is None or not self.loop.is_running():
            return asyncio.run(coro)
        return asyncio.run_coroutine_threadsafe(coro, self.loop).result(timeout)

    def call(self, fn: Callable[..., T], *args: Any) -> T:
        """Run a plain function on the service loop (watcher state lives there)."""

        async def _call() -> T:
            return fn(*args)

        return self.run(_call())
