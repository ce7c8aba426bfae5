"""Tests for service registry wiring."""

import pytest
from sqlalchemy.ext.asyncio import async_sessionmaker

import gallerysync.services as services
from gallerysync.services.cache_store import CacheStore
from gallerysync.services.sync_service import GallerySyncService


def test_getters_fail_before_init(monkeypatch):
    monkeypatch.setattr(services, "_sync_service", None)
    monkeypatch.setattr(services, "_cache_store", None)

    with pytest.raises(RuntimeError, match="not initialized"):
        services.get_sync_service()
    with pytest.raises(RuntimeError, match="not initialized"):
        services.get_cache_store()


@pytest.mark.asyncio
async def test_init_wires_shared_singletons(engine):
    await services.init_services(async_sessionmaker(engine, expire_on_commit=False), start_background=False)
    try:
        assert isinstance(services.get_cache_store(), CacheStore)
        assert isinstance(services.get_sync_service(), GallerySyncService)
        assert services.get_connectivity_monitor().current_state().name == "unknown"

        services.get_token_provider().set_token("abc")
        assert services.get_token_provider().has_token
    finally:
        await services.shutdown_services()

    with pytest.raises(RuntimeError):
        services.get_connectivity_monitor()
