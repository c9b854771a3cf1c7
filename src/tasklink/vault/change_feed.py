# src/tasklink/vault/change_feed.py

from __future__ import annotations

"""
Polling change feed for a FileVault.

Every interval_seconds:
- take a (mtime, size) snapshot of the vault
- diff it against the previous one
- emit document-changed for new / modified files, document-deleted for gone ones

A rename shows up as delete + change. The first snapshot is the baseline
and emits nothing.

To stop the poller, cancel the coroutine/task.
"""

import asyncio
import logging

from ..core.events import EVENT_DOCUMENT_CHANGED, EVENT_DOCUMENT_DELETED, EventEmitter
from .store import FileVault

logger = logging.getLogger(__name__)

Snapshot = dict[str, tuple[int, int]]


def diff_snapshots(old: Snapshot, new: Snapshot) -> tuple[list[str], list[str]]:
    changed = sorted(p for p, sig in new.items() if old.get(p) != sig)
    deleted = sorted(p for p in old if p not in new)
    return changed, deleted


def poll_once(vault: FileVault, events: EventEmitter, previous: Snapshot) -> Snapshot:
    current = vault.snapshot()
    changed, deleted = diff_snapshots(previous, current)

    for path in deleted:
        vault.invalidate(path)
        events.emit(EVENT_DOCUMENT_DELETED, path)
    for path in changed:
        vault.invalidate(path)
        events.emit(EVENT_DOCUMENT_CHANGED, path)

    if changed or deleted:
        logger.debug("Vault poll: %d changed, %d deleted", len(changed), len(deleted))
    return current


async def run_vault_poller(
        vault: FileVault,
        events: EventEmitter,
        *,
        interval_seconds: float = 2.0,
) -> None:
    sleep_s = max(0.01, float(interval_seconds))

    try:
        snapshot = vault.snapshot()
    except Exception:
        logger.exception("Initial vault snapshot failed")
        snapshot = {}

    while True:
        await asyncio.sleep(sleep_s)
        try:
            snapshot = poll_once(vault, events, snapshot)
        except Exception:
            logger.exception("Vault poll failed")
