# src/tasklink/notifications/live_views.py

from __future__ import annotations

import logging

from ..core.events import Subscription
from ..core.models import NotificationItem
from ..core.ports import ResultProvider

logger = logging.getLogger(__name__)


class LiveViewRegistry:
    """
    Query path -> result provider, filled by UI surfaces.

    A surface registers when it mounts a query and releases the returned
    handle when it unmounts. Only the latest registration for a path counts.
    """

    def __init__(self) -> None:
        self._providers: dict[str, ResultProvider] = {}

    def register(self, query_path: str, provider: ResultProvider) -> Subscription:
        self._providers[query_path] = provider
        logger.debug("Live view registered: %s", query_path)

        def _unregister() -> None:
            if self._providers.get(query_path) is provider:
                del self._providers[query_path]
                logger.debug("Live view released: %s", query_path)

        return Subscription(_unregister)

    def get(self, query_path: str) -> ResultProvider | None:
        return self._providers.get(query_path)

    def read(self, query_path: str) -> list[NotificationItem] | None:
        provider = self._providers.get(query_path)
        if provider is None:
            return None
        return provider()

    def __contains__(self, query_path: object) -> bool:
        return query_path in self._providers

    def __len__(self) -> int:
        return len(self._providers)
