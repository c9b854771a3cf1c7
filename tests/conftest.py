# tests/conftest.py

from __future__ import annotations

from pathlib import Path
from types import SimpleNamespace
from typing import Any

import pytest

from tasklink.cli.bootstrap import create_initial_state
from tasklink.core.state import AppState
from tasklink.vault.frontmatter import render_document
from tasklink.vault.store import FileVault


@pytest.fixture()
def settings(tmp_path: Path) -> SimpleNamespace:
    """
    Minimal settings object compatible with create_initial_state and AppState.

    We intentionally use a SimpleNamespace rather than importing real config,
    to keep unit tests isolated from the developer's .env.
    """
    vault_root = tmp_path / "vault"
    vault_root.mkdir()
    return SimpleNamespace(
        app_name="tasklink-test",
        log_level="DEBUG",
        data_dir=tmp_path / "data",
        console_enabled=False,
        vault_root=vault_root,
        tasks_folder="Tasks",
        query_extension=".base",
        task_identification_method="tag",
        task_tag="task",
        task_property_name="isTask",
        task_property_value="true",
        default_task_status="open",
        default_task_priority="normal",
        projects_field="projects",
        watcher_enabled=True,
        debounce_seconds=0.02,
        startup_delay_seconds=0.0,
        rescan_interval_seconds=300.0,
        poll_interval_seconds=0.01,
        max_display_items=5,
    )


@pytest.fixture()
def vault(settings: SimpleNamespace) -> FileVault:
    return FileVault(settings.vault_root)


@pytest.fixture()
def write_note(vault: FileVault):
    """write_note("Notes/A.md", {"tags": ["task"]}, "body") -> path"""

    def _write(path: str, metadata: dict[str, Any] | None = None, body: str = "") -> str:
        p = vault.root / path
        p.parent.mkdir(parents=True, exist_ok=True)
        p.write_text(render_document(metadata or {}, body), "utf-8")
        vault.invalidate(path)
        return path

    return _write


@pytest.fixture()
def notifications() -> list[str]:
    return []


@pytest.fixture()
def state(settings: SimpleNamespace, notifications: list[str]) -> AppState:
    """AppState wired on a temp vault; rendered notifications land in `notifications`."""
    return create_initial_state(settings=settings, notify=notifications.append)
