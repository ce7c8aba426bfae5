"""APScheduler-based background jobs for cache maintenance."""

from __future__ import annotations

import logging
from typing import TYPE_CHECKING

from apscheduler.schedulers.asyncio import AsyncIOScheduler

from gallerysync.config import settings

if TYPE_CHECKING:
    from gallerysync.services.sync_service import GallerySyncService

logger = logging.getLogger(__name__)


class CacheMaintenanceScheduler:
    """Periodically evicts cache rows older than the configured max age."""

    def __init__(
        self,
        sync_service: GallerySyncService,
        interval_seconds: int | None = None,
        max_age_ms: int | None = None,
    ):
        self._sync = sync_service
        self._interval = interval_seconds or settings.cache_maintenance_interval_seconds
        self._max_age_ms = max_age_ms or settings.cache_max_age_ms
        self._scheduler = AsyncIOScheduler(
            job_defaults={"coalesce": True, "max_instances": 1}
        )

    @property
    def running(self) -> bool:
        return self._scheduler.running

    def start(self) -> None:
        """Register and start the eviction job."""
        self._scheduler.add_job(
            self.evict_old_entries,
            "interval",
            seconds=self._interval,
            id="evict_old_cache",
            name="Evict expired cache rows",
        )
        self._scheduler.start()
        logger.info(
            "Cache maintenance started: evicting rows older than %dms every %ds",
            self._max_age_ms,
            self._interval,
        )

    async def stop(self) -> None:
        if self._scheduler.running:
            self._scheduler.shutdown(wait=False)
            logger.info("Cache maintenance stopped")

    async def evict_old_entries(self) -> int:
        """Run one eviction pass; returns the number of rows removed."""
        result = await self._sync.clear_old_cache(self._max_age_ms)
        if not result.ok:
            logger.error("Cache eviction failed: %s", result.error)
            return 0
        if result.value:
            logger.info("Cache eviction removed %d rows", result.value)
        return result.value or 0
