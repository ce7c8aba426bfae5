"""Cached media file model: file entries listed from the remote disk."""

from datetime import datetime
from typing import Optional

from sqlalchemy import BigInteger, DateTime, Index, String, Text, UniqueConstraint
from sqlalchemy.orm import Mapped, mapped_column

from gallerysync.models.base import Base


class CachedMediaFile(Base):
    __tablename__ = "media_files"
    __table_args__ = (
        UniqueConstraint("scope", "path", name="uq_media_file_path"),
        Index("ix_media_files_parent", "scope", "parent_path"),
    )

    scope: Mapped[str] = mapped_column(String(300), primary_key=True)
    id: Mapped[str] = mapped_column(Text, primary_key=True)
    name: Mapped[str] = mapped_column(String(500), nullable=False)
    path: Mapped[str] = mapped_column(Text, nullable=False)
    parent_path: Mapped[str] = mapped_column(Text, nullable=False)
    type: Mapped[str] = mapped_column(String(10), nullable=False, index=True)  # IMAGE | VIDEO
    mime_type: Mapped[str] = mapped_column(String(200), nullable=False)
    size: Mapped[int] = mapped_column(BigInteger, default=0)
    created_at: Mapped[Optional[datetime]] = mapped_column(DateTime, nullable=True)
    modified_at: Mapped[Optional[datetime]] = mapped_column(DateTime, nullable=True, index=True)
    preview_url: Mapped[Optional[str]] = mapped_column(Text, nullable=True)
    md5: Mapped[Optional[str]] = mapped_column(String(32), nullable=True)
    cached_at: Mapped[int] = mapped_column(BigInteger, nullable=False)  # epoch ms

    def __repr__(self) -> str:
        return f"<CachedMediaFile(id={self.id}, path='{self.path}')>"
