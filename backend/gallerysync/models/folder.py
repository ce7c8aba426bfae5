"""Cached folder model: directory entries listed from the remote disk."""

from datetime import datetime
from typing import Optional

from sqlalchemy import BigInteger, DateTime, Index, Integer, String, Text, UniqueConstraint
from sqlalchemy.orm import Mapped, mapped_column

from gallerysync.models.base import Base


class CachedFolder(Base):
    __tablename__ = "folders"
    __table_args__ = (
        UniqueConstraint("scope", "path", name="uq_folder_path"),
        Index("ix_folders_parent", "scope", "parent_path"),
    )

    scope: Mapped[str] = mapped_column(String(300), primary_key=True)  # "disk" or "public:<key>"
    id: Mapped[str] = mapped_column(Text, primary_key=True)
    name: Mapped[str] = mapped_column(String(500), nullable=False)
    path: Mapped[str] = mapped_column(Text, nullable=False)
    parent_path: Mapped[Optional[str]] = mapped_column(Text, nullable=True)
    items_count: Mapped[Optional[int]] = mapped_column(Integer, nullable=True)
    created_at: Mapped[Optional[datetime]] = mapped_column(DateTime, nullable=True)
    modified_at: Mapped[Optional[datetime]] = mapped_column(DateTime, nullable=True)
    cached_at: Mapped[int] = mapped_column(BigInteger, nullable=False)  # epoch ms

    def __repr__(self) -> str:
        return f"<CachedFolder(id={self.id}, path='{self.path}')>"
