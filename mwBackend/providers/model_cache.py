"""
Time-bounded cache for remotely discovered model catalogs.

A miss returns None so the caller can serve its fallback list at once
while ``schedule_refresh`` fills the cache in a background task.
"""

import asyncio
import logging
import time
from typing import Awaitable, Callable, Optional

from providers.models import ModelInfo

logger = logging.getLogger(__name__)

CACHE_TTL = 3600  # 1 hour


class ModelCatalogCache:
    def __init__(self, ttl: float = CACHE_TTL, clock: Callable[[], float] = time.time):
        self.ttl = ttl
        self._clock = clock
        self._models: Optional[list[ModelInfo]] = None
        self._expires_at: float = 0
        self._refresh_task: Optional[asyncio.Task] = None

    def get(self) -> Optional[list[ModelInfo]]:
        """Cached models, or None when empty or expired."""
        if self._models is not None and self._clock() < self._expires_at:
            return list(self._models)
        return None

    def set(self, models: list[ModelInfo]) -> None:
        self._models = list(models)
        self._expires_at = self._clock() + self.ttl

    def clear(self) -> None:
        self._models = None
        self._expires_at = 0

    @property
    def refreshing(self) -> bool:
        return self._refresh_task is not None and not self._refresh_task.done()

    def schedule_refresh(self, fetch: Callable[[], Awaitable[list[ModelInfo]]]) -> Optional[asyncio.Task]:
        """Start a background refresh unless one is already running.

        Returns the task, or None when a refresh is in flight or there is no
        running event loop to schedule on.
        """
        if self.refreshing:
            return None
        try:
            loop = asyncio.get_running_loop()
        except RuntimeError:
            logger.debug("No running event loop; skipping model catalog refresh")
            return None

        self._refresh_task = loop.create_task(self._refresh(fetch))
        return self._refresh_task

    async def _refresh(self, fetch: Callable[[], Awaitable[list[ModelInfo]]]) -> None:
        try:
            models = await fetch()
        except Exception as e:
            logger.warning(f"Failed to refresh model catalog cache: {e}")
            return
        if models:
            self.set(models)
            logger.info(f"Model catalog cache refreshed with {len(models)} models")


# Shared by every OpenRouter adapter that is not given its own cache.
default_cache = ModelCatalogCache()
