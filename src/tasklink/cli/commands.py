# src/tasklink/cli/commands.py

from __future__ import annotations

import contextlib
import logging
from collections.abc import Callable

from ..bulk.conversion import BulkConvertOptions
from ..bulk.generation import BulkCreationOptions
from ..bulk.reporting import (
    describe_convert_precheck,
    describe_convert_result,
    describe_creation_precheck,
    describe_creation_result,
)
from ..core.models import SourceItem
from ..core.state import AppState
from ..links.references import stem
from ..notifications.dispatch import SNOOZE_OPTIONS
from ..vault.store import NOTE_EXTENSION, FileVault

CommandEmitter = Callable[[str], None]
CommandHandler = Callable[[AppState, list[str], CommandEmitter | None], str]

logger = logging.getLogger(__name__)


class CommandRegistry:
    """Simple slash-command registry used by the console (/help, /create, ...)."""

    def __init__(self) -> None:
        self._handlers: dict[str, CommandHandler] = {}
        self._help: dict[str, str] = {}

    def register(
        self,
        name: str,
        handler: CommandHandler,
        help_text: str,
        aliases: list[str] | None = None,
    ) -> None:
        aliases = aliases or []
        key = name.lower()
        self._handlers[key] = handler
        self._help[key] = help_text
        for alias in aliases:
            self._handlers[alias.lower()] = handler

    def handle(self, state: AppState, line: str, emit: CommandEmitter | None = None) -> str | None:
        """
        Handle a string like "/command args".
        Returns a reply string or None if not a command.
        """
        if not line.startswith("/"):
            return None

        parts = line[1:].split()
        if not parts:
            return "Empty command. Use /help to list available commands."

        name = parts[0].lower()
        handler = self._handlers.get(name)
        if not handler:
            return f"Unknown command: /{name}. Use /help to list available commands."

        return handler(state, parts[1:], emit)

    def build_help(self) -> str:
        lines = ["Available commands:"]
        for name, help_text in self._help.items():
            lines.append(f"  /{name} - {help_text}")
        return "\n".join(lines)


registry = CommandRegistry()


def collect_source_items(vault: FileVault, folder: str) -> list[SourceItem]:
    """
    Every note under `folder` as a SourceItem, in path order.

    Commands call this through state.call: the FileVault metadata cache belongs
    to the service loop thread.
    """
    prefix = folder.strip("/")
    items: list[SourceItem] = []
    for path in vault.list_documents(NOTE_EXTENSION):
        if prefix and not path.startswith(prefix + "/"):
            continue
        items.append(SourceItem(path=path, display_name=stem(path), properties=vault.get_metadata(path) or {}))
    return items


def _progress(emit: CommandEmitter | None) -> Callable[[int, int, str], None] | None:
    if emit is None:
        return None

    def _on_progress(current: int, total: int, message: str) -> None:
        with contextlib.suppress(Exception):
            emit(f"[{current}/{total}] {message}")

    return _on_progress


def _resolve_query(state: AppState, arg: str) -> str | None:
    """Accept a definition path or a query display name."""
    infos = state.call(state.watcher.list_monitored)
    for info in infos:
        if info.path == arg:
            return info.path
    for info in infos:
        if info.name.lower() == arg.lower():
            return info.path
    return None


def _with_errors(summary: str, errors: list[str], limit: int = 5) -> str:
    if not errors:
        return summary
    lines = [summary]
    lines.extend(f"  ! {e}" for e in errors[:limit])
    if len(errors) > limit:
        lines.append(f"  ... and {len(errors) - limit} more errors")
    return "\n".join(lines)


def cmd_help(state: AppState, args: list[str], emit: CommandEmitter | None = None) -> str:
    return registry.build_help()


def cmd_status(state: AppState, args: list[str], emit: CommandEmitter | None = None) -> str:
    s = state.settings
    ident = state.conversion_config.identification
    marker = f"tag #{ident.tag}" if ident.method == "tag" else f"property {ident.property_name}={ident.property_value}"
    watched = state.call(state.watcher.list_monitored)
    return (
        "Status:\n"
        f"  Vault: {state.vault.root}\n"
        f"  Tasks folder: {s.tasks_folder}\n"
        f"  Task marker: {marker}\n"
        f"  Query watcher: {'ON' if s.watcher_enabled else 'OFF'} ({len(watched)} queries)"
    )


def cmd_precheck(state: AppState, args: list[str], emit: CommandEmitter | None = None) -> str:
    """
    /precheck <folder>  -> dry-run summary for both /create and /convert
    """
    if not args:
        return "Usage: /precheck <folder>"
    items = state.call(collect_source_items, state.vault, args[0])
    if not items:
        return f"No notes found under {args[0]}."

    create_pre = state.run(state.bulk_tasks.pre_check(items, skip_existing=True))
    convert_pre = state.run(state.bulk_convert.pre_check(items))
    return (
        f"{len(items)} notes under {args[0]}:\n"
        f"  create:  {describe_creation_precheck(create_pre)}\n"
        f"  convert: {describe_convert_precheck(convert_pre)}"
    )


def cmd_create(state: AppState, args: list[str], emit: CommandEmitter | None = None) -> str:
    """
    /create <folder>            -> one new task per note, skipping notes that already have one
    /create <folder> --all      -> do not skip
    /create <folder> --no-link  -> do not link the task back to its note
    """
    folders = [a for a in args if not a.startswith("--")]
    if not folders:
        return "Usage: /create <folder> [--all] [--no-link]"
    items = state.call(collect_source_items, state.vault, folders[0])
    if not items:
        return f"No notes found under {folders[0]}."

    options = BulkCreationOptions(skip_existing="--all" not in args, link_to_source="--no-link" not in args)
    logger.info("Bulk create requested folder=%s items=%d options=%s", folders[0], len(items), options)
    result = state.run(state.bulk_tasks.create_tasks(items, options, _progress(emit)))
    return _with_errors(describe_creation_result(result), result.errors)


def cmd_convert(state: AppState, args: list[str], emit: CommandEmitter | None = None) -> str:
    """
    /convert <folder>                 -> turn notes into tasks in place (with defaults)
    /convert <folder> --no-defaults   -> only add the task marker
    /convert <folder> --link <query>  -> also link each note to a saved query
    """
    rest = list(args)
    query_path = None
    if "--link" in rest:
        i = rest.index("--link")
        if i + 1 >= len(rest):
            return "Usage: /convert <folder> [--no-defaults] [--link <query>]"
        query_path = rest[i + 1]
        del rest[i : i + 2]

    folders = [a for a in rest if not a.startswith("--")]
    if not folders:
        return "Usage: /convert <folder> [--no-defaults] [--link <query>]"
    items = state.call(collect_source_items, state.vault, folders[0])
    if not items:
        return f"No notes found under {folders[0]}."

    options = BulkConvertOptions(
        apply_defaults="--no-defaults" not in rest,
        link_to_query=query_path is not None,
        query_path=query_path,
    )
    logger.info("Bulk convert requested folder=%s items=%d options=%s", folders[0], len(items), options)
    result = state.run(state.bulk_convert.convert_notes(items, options, _progress(emit)))
    return _with_errors(describe_convert_result(result), result.errors)


def cmd_queries(state: AppState, args: list[str], emit: CommandEmitter | None = None) -> str:
    infos = state.call(state.watcher.list_monitored)
    if not infos:
        return "No monitored queries (add `notify: true` to a query definition)."
    lines = ["Monitored queries:"]
    for info in infos:
        snoozed = " (snoozed)" if info.snoozed else ""
        lines.append(f"  {info.name} [{info.path}] {info.state}, last={info.last_result_count}{snoozed}")
    return "\n".join(lines)


def cmd_snooze(state: AppState, args: list[str], emit: CommandEmitter | None = None) -> str:
    """
    /snooze <query> [minutes]  -> pause notifications (default 15 minutes)
    """
    if not args:
        options = ", ".join(f"{label} = {minutes}" for label, minutes in SNOOZE_OPTIONS)
        return f"Usage: /snooze <query> [minutes]  ({options})"

    query_path = _resolve_query(state, args[0])
    if query_path is None:
        return f"Unknown query: {args[0]}"

    minutes = 15.0
    if len(args) > 1:
        try:
            minutes = float(args[1])
        except ValueError:
            return f"Not a number of minutes: {args[1]}"
        if minutes <= 0:
            return "Minutes must be positive."

    state.call(state.watcher.snooze, query_path, minutes)
    return f"Snoozed {query_path} for {minutes:g} minutes."


def cmd_unsnooze(state: AppState, args: list[str], emit: CommandEmitter | None = None) -> str:
    if not args:
        return "Usage: /unsnooze <query>"
    query_path = _resolve_query(state, args[0])
    if query_path is None:
        return f"Unknown query: {args[0]}"
    state.call(state.watcher.reset_snooze, query_path)
    return f"Notifications resumed for {query_path}."


def cmd_check(state: AppState, args: list[str], emit: CommandEmitter | None = None) -> str:
    if not args:
        return "Usage: /check <query>"
    query_path = _resolve_query(state, args[0])
    if query_path is None:
        return f"Unknown query: {args[0]}"
    state.run(state.watcher.trigger_evaluation(query_path))
    m = state.call(state.watcher.get, query_path)
    count = m.last_result_count if m is not None else 0
    return f"Evaluated {query_path}: {count} results."


registry.register("help", cmd_help, help_text="Show available commands.", aliases=["h", "?"])
registry.register("status", cmd_status, help_text="Show vault / watcher settings.")
registry.register("precheck", cmd_precheck, help_text="Dry run: /precheck <folder>.")
registry.register("create", cmd_create, help_text="Create tasks: /create <folder> [--all] [--no-link].")
registry.register(
    "convert", cmd_convert, help_text="Convert notes: /convert <folder> [--no-defaults] [--link <query>]."
)
registry.register("queries", cmd_queries, help_text="List monitored queries.", aliases=["q"])
registry.register("snooze", cmd_snooze, help_text="Pause notifications: /snooze <query> [minutes].")
registry.register("unsnooze", cmd_unsnooze, help_text="Resume notifications: /unsnooze <query>.")
registry.register("check", cmd_check, help_text="Evaluate a query now: /check <query>.")
