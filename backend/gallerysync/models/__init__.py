"""SQLAlchemy ORM models for the GallerySync cache."""

from gallerysync.models.base import Base
from gallerysync.models.folder import CachedFolder
from gallerysync.models.media_file import CachedMediaFile
from gallerysync.models.sync_metadata import DEFAULT_TTL_MS, SyncMetadata

__all__ = [
    "Base",
    "CachedFolder",
    "CachedMediaFile",
    "SyncMetadata",
    "DEFAULT_TTL_MS",
]
