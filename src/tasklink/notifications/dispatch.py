# src/tasklink/notifications/dispatch.py

from __future__ import annotations

import logging
from collections.abc import Callable

from ..core.models import NotificationPayload

logger = logging.getLogger(__name__)

# Offered to the user next to a notification (label, minutes).
SNOOZE_OPTIONS: tuple[tuple[str, int], ...] = (
    ("15 minutes", 15),
    ("1 hour", 60),
    ("4 hours", 240),
    ("Until tomorrow", 1440),
)


def format_notification(payload: NotificationPayload, max_items: int = 5) -> str:
    count = len(payload.items)
    subtitle = "1 item needs attention" if count == 1 else f"{count} items need attention"
    lines = [f"{payload.query_name}: {subtitle}"]

    limit = max(1, int(max_items))
    for item in payload.items[:limit]:
        line = f"  - {item.title}"
        if item.is_task and item.status:
            line += f" [{item.status}]"
        lines.append(line)

    remaining = count - limit
    if remaining > 0:
        lines.append(f"  ... and {remaining} more")

    return "\n".join(lines)


class TextNotificationDispatcher:
    """
    Renders payloads as plain text and hands them to `send`.

    The connector decides where the text goes (console, log, chat).
    """

    def __init__(self, send: Callable[[str], None], *, max_items: int = 5) -> None:
        self._send = send
        self._max_items = max_items

    def dispatch(self, payload: NotificationPayload) -> None:
        text = format_notification(payload, self._max_items)
        logger.debug("Dispatching notification for %s (%d items)", payload.query_id, len(payload.items))
        self._send(text)
