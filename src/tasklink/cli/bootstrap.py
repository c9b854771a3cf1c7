# src/tasklink/cli/bootstrap.py

"""
CLI bootstrap helpers.

This module is the "composition root":
- loads settings once,
- ensures local (gitignored) directories exist,
- wires the folder vault, task index/service, bulk engines and the query
  watcher into AppState.
"""

from __future__ import annotations

import logging
from collections.abc import Callable

from ..bulk.conversion import BulkConvertEngine, ConversionConfig
from ..bulk.generation import BulkTaskEngine
from ..config import get_settings
from ..core.events import EventEmitter
from ..core.state import AppState
from ..notifications.dispatch import TextNotificationDispatcher
from ..notifications.watcher import QueryWatcher, WatcherConfig
from ..vault.store import FileVault
from ..vault.task_index import VaultTaskIndex
from ..vault.task_service import VaultTaskService

logger = logging.getLogger(__name__)


def _ensure_local_dirs(settings) -> None:
    settings.data_dir.mkdir(parents=True, exist_ok=True)


def create_initial_state(*, settings=None, notify: Callable[[str], None] | None = None) -> AppState:
    """
    Create AppState from the provided settings.

    Keeping settings injectable makes the app easier to test and avoids hidden global config reads.
    If settings is None, falls back to get_settings(). `notify` receives rendered
    notification text (defaults to print).
    """
    if settings is None:
        settings = get_settings()

    _ensure_local_dirs(settings)

    conversion_config = ConversionConfig.from_settings(settings)
    vault = FileVault(settings.vault_root)
    events = EventEmitter()
    task_index = VaultTaskIndex(vault, conversion_config.identification, conversion_config.fields)
    task_service = VaultTaskService(vault, conversion_config, tasks_folder=settings.tasks_folder)

    dispatcher = TextNotificationDispatcher(notify or print, max_items=settings.max_display_items)
    watcher = QueryWatcher(
        vault,
        task_index,
        dispatcher,
        events,
        config=WatcherConfig.from_settings(settings),
        fields=conversion_config.fields,
    )

    state = AppState(
        settings=settings,
        vault=vault,
        events=events,
        conversion_config=conversion_config,
        task_index=task_index,
        task_service=task_service,
        bulk_tasks=BulkTaskEngine(task_service, task_index, vault),
        bulk_convert=BulkConvertEngine(vault, task_index, conversion_config),
        watcher=watcher,
    )
    logger.info("State ready vault=%s tasks_folder=%s", vault.root, settings.tasks_folder)
    return state
