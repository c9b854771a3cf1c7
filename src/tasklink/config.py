# src/tasklink/config.py

"""Centralized settings loaded from environment variables (+ optional .env).

Design goals:
- One Settings object for the whole app (normal "settings layer").
- Nothing required at import time: every key has a default.
- Batch engines never read Settings directly; they receive frozen config
  objects built from it (see bulk.conversion.ConversionConfig).
"""

from __future__ import annotations

import os
from dataclasses import dataclass
from pathlib import Path

from dotenv import load_dotenv

ENV_PREFIX = "TASKLINK"

load_dotenv(override=False)


def _k(suffix: str) -> str:
    """Build env var name with the project prefix."""
    return f"{ENV_PREFIX}_{suffix}"


def _env(name: str, default: str = "") -> str:
    v = os.getenv(name)
    return default if v is None else v


def _env_bool(name: str, default: bool) -> bool:
    raw = os.getenv(name)
    if raw is None:
        return default
    return raw.strip().lower() in {"1", "true", "yes", "y", "on"}


def _env_int(name: str, default: int) -> int:
    raw = os.getenv(name)
    if raw is None or raw.strip() == "":
        return default
    try:
        return int(raw)
    except ValueError:
        return default


def _env_float(name: str, default: float) -> float:
    raw = os.getenv(name)
    if raw is None or raw.strip() == "":
        return default
    try:
        return float(raw)
    except ValueError:
        return default


def _env_path(name: str, default: Path) -> Path:
    raw = os.getenv(name)
    if raw is None or raw.strip() == "":
        return default
    return Path(raw).expanduser()


@dataclass(frozen=True, slots=True)
class Settings:
    # ---- App / logging ----
    app_name: str
    log_level: str
    data_dir: Path
    console_enabled: bool

    # ---- Vault ----
    vault_root: Path
    tasks_folder: str
    query_extension: str

    # ---- Task identification ----
    task_identification_method: str  # "tag" | "property"
    task_tag: str
    task_property_name: str
    task_property_value: str

    # ---- Defaults applied on conversion / creation ----
    default_task_status: str
    default_task_priority: str
    projects_field: str

    # ---- Query watcher ----
    watcher_enabled: bool
    debounce_seconds: float
    startup_delay_seconds: float
    rescan_interval_seconds: float
    poll_interval_seconds: float
    max_display_items: int

    @staticmethod
    def from_env() -> "Settings":
        app_name = _env(_k("APP_NAME"), "tasklink") or "tasklink"
        log_level = _env(_k("LOG_LEVEL"), "INFO")
        data_dir = _env_path(_k("DATA_DIR"), Path(".local/tasklink"))

        vault_root = _env_path(_k("VAULT_ROOT"), Path("."))
        tasks_folder = _env(_k("TASKS_FOLDER"), "Tasks").strip("/")
        query_extension = _env(_k("QUERY_EXTENSION"), ".base")

        method = _env(_k("TASK_IDENTIFICATION"), "tag").strip().lower()
        if method not in ("tag", "property"):
            method = "tag"

        return Settings(
            app_name=app_name,
            log_level=log_level,
            data_dir=data_dir,
            console_enabled=_env_bool(_k("CONSOLE_ENABLED"), True),
            vault_root=vault_root,
            tasks_folder=tasks_folder,
            query_extension=query_extension,
            task_identification_method=method,
            task_tag=_env(_k("TASK_TAG"), "task") or "task",
            task_property_name=_env(_k("TASK_PROPERTY_NAME"), "isTask"),
            task_property_value=_env(_k("TASK_PROPERTY_VALUE"), "true"),
            default_task_status=_env(_k("DEFAULT_STATUS"), "open") or "open",
            default_task_priority=_env(_k("DEFAULT_PRIORITY"), "normal") or "normal",
            projects_field=_env(_k("PROJECTS_FIELD"), "projects") or "projects",
            watcher_enabled=_env_bool(_k("WATCHER_ENABLED"), True),
            debounce_seconds=_env_float(_k("DEBOUNCE_SECONDS"), 1.0),
            startup_delay_seconds=_env_float(_k("STARTUP_DELAY_SECONDS"), 5.0),
            rescan_interval_seconds=_env_float(_k("RESCAN_INTERVAL_SECONDS"), 300.0),
            poll_interval_seconds=_env_float(_k("POLL_INTERVAL_SECONDS"), 2.0),
            max_display_items=_env_int(_k("MAX_DISPLAY_ITEMS"), 5),
        )


SETTINGS = Settings.from_env()


def get_settings() -> Settings:
    return SETTINGS
