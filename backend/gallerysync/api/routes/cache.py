"""Cache statistics and maintenance routes."""

from __future__ import annotations

from fastapi import APIRouter, Query

from gallerysync.api.deps import unwrap
from gallerysync.config import settings
from gallerysync.schemas.cache import CacheStats, EvictionResult
from gallerysync.services import get_sync_service

router = APIRouter()


@router.get("/stats", response_model=CacheStats)
async def cache_stats():
    """Cache usage statistics."""
    return unwrap(await get_sync_service().cache_stats())


@router.delete("", status_code=204)
async def clear_cache():
    """Drop every cached row and all sync metadata."""
    unwrap(await get_sync_service().clear_cache())


@router.post("/evict", response_model=EvictionResult)
async def evict_old_entries(max_age_ms: int | None = Query(None, ge=0)):
    age = max_age_ms if max_age_ms is not None else settings.cache_max_age_ms
    deleted = unwrap(await get_sync_service().clear_old_cache(age))
    return EvictionResult(deleted=deleted, max_age_ms=age)
