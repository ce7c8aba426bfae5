"""Service singletons: registry wired from the application lifespan."""

from __future__ import annotations

import logging
from typing import TYPE_CHECKING

from gallerysync.config import settings

if TYPE_CHECKING:
    from gallerysync.services.cache_store import CacheStore
    from gallerysync.services.connectivity import ConnectivityMonitor
    from gallerysync.services.remote_client import DiskApiClient
    from gallerysync.services.scheduler import CacheMaintenanceScheduler
    from gallerysync.services.sync_service import GallerySyncService
    from gallerysync.services.token_provider import TokenProvider

logger = logging.getLogger(__name__)

_NOT_INITIALIZED = "Services not initialized: call init_services() first"

_token_provider: TokenProvider | None = None
_monitor: ConnectivityMonitor | None = None
_cache_store: CacheStore | None = None
_client: DiskApiClient | None = None
_sync_service: GallerySyncService | None = None
_scheduler: CacheMaintenanceScheduler | None = None


async def init_services(session_factory=None, start_background: bool = True) -> None:
    """Create and wire up all service singletons."""
    global _token_provider, _monitor, _cache_store, _client, _sync_service, _scheduler

    from gallerysync.database import async_session
    from gallerysync.services.cache_store import CacheStore
    from gallerysync.services.connectivity import ConnectivityMonitor
    from gallerysync.services.remote_client import DiskApiClient
    from gallerysync.services.scheduler import CacheMaintenanceScheduler
    from gallerysync.services.sync_service import GallerySyncService
    from gallerysync.services.token_provider import TokenProvider

    _token_provider = TokenProvider(settings.oauth_token)
    if not _token_provider.has_token:
        logger.warning("No OAuth token configured (GALLERYSYNC_OAUTH_TOKEN), waiting for PUT /auth/token")

    _monitor = ConnectivityMonitor()
    _cache_store = CacheStore(session_factory or async_session)
    _client = DiskApiClient(_token_provider, is_offline=_monitor.is_definitely_offline)
    _sync_service = GallerySyncService(_cache_store, _client, _monitor)
    _scheduler = CacheMaintenanceScheduler(_sync_service)

    if start_background:
        _monitor.start()
        _scheduler.start()
    logger.info("Services initialized (cache, connectivity, remote client, sync)")


async def shutdown_services() -> None:
    """Stop background loops and close the HTTP client."""
    global _scheduler, _monitor, _client
    if _scheduler:
        await _scheduler.stop()
        _scheduler = None
    if _monitor:
        await _monitor.stop()
        _monitor = None
    if _client:
        await _client.aclose()
        _client = None


def get_token_provider() -> TokenProvider:
    if _token_provider is None:
        raise RuntimeError(_NOT_INITIALIZED)
    return _token_provider


def get_connectivity_monitor() -> ConnectivityMonitor:
    if _monitor is None:
        raise RuntimeError(_NOT_INITIALIZED)
    return _monitor


def get_cache_store() -> CacheStore:
    if _cache_store is None:
        raise RuntimeError(_NOT_INITIALIZED)
    return _cache_store


def get_sync_service() -> GallerySyncService:
    if _sync_service is None:
        raise RuntimeError(_NOT_INITIALIZED)
    return _sync_service
