# src/tasklink/notifications/query_config.py

from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import Any

import yaml

from ..core.errors import QueryDefinitionError
from ..vault.frontmatter import NoteLoader

logger = logging.getLogger(__name__)


@dataclass(slots=True, frozen=True)
class QueryDefinition:
    name: str | None = None
    notify: bool = False
    source: str | None = None


def parse_query_definition(content: str) -> QueryDefinition:
    """
    Parse a saved-query definition (YAML).

    `notify: true` may sit at the top level or on any entry of `views`. Only the
    boolean true counts; `yes` / `on` load as plain strings (NoteLoader).
    Raises QueryDefinitionError on malformed YAML.
    """
    try:
        parsed: Any = yaml.load(content, Loader=NoteLoader) if content else None
    except yaml.YAMLError as e:
        raise QueryDefinitionError(f"Invalid query definition: {e}") from e

    if parsed is None:
        return QueryDefinition()
    if not isinstance(parsed, dict):
        raise QueryDefinitionError(f"Query definition must be a mapping, got {type(parsed).__name__}")

    notify = parsed.get("notify") is True
    views = parsed.get("views")
    if not notify and isinstance(views, list):
        notify = any(isinstance(v, dict) and v.get("notify") is True for v in views)

    name = parsed.get("name")
    source = parsed.get("source")
    return QueryDefinition(
        name=str(name) if name else None,
        notify=notify,
        source=source if isinstance(source, str) else None,
    )


def load_query_definition(content: str, path: str = "") -> QueryDefinition:
    """Like parse_query_definition, but a broken definition just means notify=False."""
    try:
        return parse_query_definition(content)
    except QueryDefinitionError as e:
        logger.warning("Failed to parse %s: %s", path or "<query>", e)
        return QueryDefinition()
