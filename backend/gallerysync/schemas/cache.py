"""Cache statistics schemas."""

from pydantic import BaseModel


class CacheStats(BaseModel):
    """Cache usage statistics."""
    folder_count: int
    media_count: int
    total_media_bytes: int
    synced_folders: int  # Folders with a sync metadata row


class EvictionResult(BaseModel):
    """Rows removed by an age-based eviction."""
    deleted: int
    max_age_ms: int
