"""Sync metadata: when each folder listing was last fetched from the remote."""

from typing import Optional

from sqlalchemy import BigInteger, Integer, String, Text
from sqlalchemy.orm import Mapped, mapped_column

from gallerysync.models.base import Base

DEFAULT_TTL_MS = 5 * 60 * 1000


class SyncMetadata(Base):
    __tablename__ = "sync_metadata"

    scope: Mapped[str] = mapped_column(String(300), primary_key=True)
    folder_path: Mapped[str] = mapped_column(Text, primary_key=True)  # root folder is "/"
    last_synced_at: Mapped[int] = mapped_column(BigInteger, nullable=False, index=True)  # epoch ms
    total_items: Mapped[Optional[int]] = mapped_column(Integer, nullable=True)
    etag: Mapped[Optional[str]] = mapped_column(String(200), nullable=True)

    def is_stale(self, now_ms: int, ttl_ms: int = DEFAULT_TTL_MS) -> bool:
        """True once the listing is older than the TTL."""
        return now_ms - self.last_synced_at > ttl_ms

    def __repr__(self) -> str:
        return f"<SyncMetadata(scope={self.scope}, path='{self.folder_path}', total={self.total_items})>"
