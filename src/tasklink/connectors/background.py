# src/tasklink/connectors/background.py

from __future__ import annotations

import asyncio
import contextlib
import logging
import threading
from dataclasses import dataclass

from ..core.state import AppState
from ..vault.change_feed import run_vault_poller

logger = logging.getLogger(__name__)


async def _run_services(state: AppState, stop_event: asyncio.Event) -> None:
    """Vault poller + query watcher, until stop_event is set."""
    settings = state.settings

    poller = asyncio.create_task(
        run_vault_poller(state.vault, state.events, interval_seconds=settings.poll_interval_seconds)
    )
    if settings.watcher_enabled:
        state.watcher.start()
    else:
        logger.info("Query watcher disabled.")

    try:
        await stop_event.wait()
    finally:
        state.watcher.close()
        poller.cancel()
        with contextlib.suppress(asyncio.CancelledError):
            await poller
        logger.info("Background services stopped.")


@dataclass
class BackgroundRunner:
    thread: threading.Thread
    loop: asyncio.AbstractEventLoop
    stop_event: asyncio.Event

    def stop(self) -> None:
        try:
            self.loop.call_soon_threadsafe(self.stop_event.set)
        except Exception:
            logger.debug("Failed to signal background stop.", exc_info=True)

    def join(self, timeout: float | None = None) -> None:
        self.thread.join(timeout=timeout)


def start_services_in_background(state: AppState) -> BackgroundRunner | None:
    """
    Run the asyncio services in a background thread (so the console REPL can run in parallel).

    Why a thread:
    - console REPL is blocking (input()).
    - watcher and poller are async and want their own event loop.
    Console commands reach the loop through state.run()/state.call().
    """
    ready = threading.Event()
    holder: dict[str, object] = {}

    def runner() -> None:
        loop = asyncio.new_event_loop()
        asyncio.set_event_loop(loop)
        stop_event = asyncio.Event()

        holder["loop"] = loop
        holder["stop_event"] = stop_event
        state.loop = loop
        ready.set()

        try:
            loop.run_until_complete(_run_services(state, stop_event))
        finally:
            state.loop = None
            with contextlib.suppress(Exception):
                loop.stop()
            with contextlib.suppress(Exception):
                loop.close()

    t = threading.Thread(target=runner, name="tasklink-services", daemon=True)
    t.start()

    ready.wait(timeout=5.0)
    loop = holder.get("loop")
    stop_event = holder.get("stop_event")

    if not isinstance(loop, asyncio.AbstractEventLoop) or not isinstance(stop_event, asyncio.Event):
        logger.error("Background thread did not initialize properly.")
        return None

    logger.info("Background services started.")
    return BackgroundRunner(thread=t, loop=loop, stop_event=stop_event)
