"""Persistent cache of folders, media files and per-folder sync metadata."""

from __future__ import annotations

import asyncio
import logging
import time
from contextlib import asynccontextmanager
from datetime import datetime, timezone
from typing import AsyncIterator, Callable, Iterable, Sequence, Union

from sqlalchemy import delete, func, insert, select
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from gallerysync.errors import CacheReadError, CacheWriteError, DomainException
from gallerysync.models import CachedFolder, CachedMediaFile, SyncMetadata
from gallerysync.schemas.cache import CacheStats
from gallerysync.schemas.files import Folder, MediaFile, SortOrder, media_type_for
from gallerysync.utils.paths import DISK_SCOPE, normalize_path

logger = logging.getLogger(__name__)

Entity = Union[Folder, MediaFile]

_EPOCH = datetime(1970, 1, 1, tzinfo=timezone.utc)


def now_ms() -> int:
    return int(time.time() * 1000)


def sort_items(items: Iterable[Entity], order: SortOrder) -> list[Entity]:
    """Sort a mixed folder/file listing; missing dates sort first ascending."""
    if order in (SortOrder.NAME_ASC, SortOrder.NAME_DESC):
        return sorted(items, key=lambda i: i.name, reverse=order == SortOrder.NAME_DESC)
    if order in (SortOrder.DATE_ASC, SortOrder.DATE_DESC):
        return sorted(
            items,
            key=lambda i: (i.modified_at is not None, i.modified_at or _EPOCH),
            reverse=order == SortOrder.DATE_DESC,
        )
    return sorted(
        items,
        key=lambda i: i.size if isinstance(i, MediaFile) else 0,
        reverse=order == SortOrder.SIZE_DESC,
    )


def _to_db_time(value: datetime | None) -> datetime | None:
    """SQLite DateTime columns hold naive UTC."""
    if value is None or value.tzinfo is None:
        return value
    return value.astimezone(timezone.utc).replace(tzinfo=None)


def _from_db_time(value: datetime | None) -> datetime | None:
    if value is None:
        return None
    return value.replace(tzinfo=timezone.utc)


def _folder_row(item: Folder, scope: str, cached_at: int) -> dict:
    return {
        "scope": scope,
        "id": item.id,
        "name": item.name,
        "path": normalize_path(item.path),
        "parent_path": normalize_path(item.parent_path) if item.parent_path else None,
        "items_count": item.items_count,
        "created_at": _to_db_time(item.created_at),
        "modified_at": _to_db_time(item.modified_at),
        "cached_at": cached_at,
    }


def _media_row(item: MediaFile, scope: str, cached_at: int) -> dict:
    return {
        "scope": scope,
        "id": item.id,
        "name": item.name,
        "path": normalize_path(item.path),
        "parent_path": normalize_path(item.parent_path),
        "type": media_type_for(item.mime_type).value,
        "mime_type": item.mime_type,
        "size": item.size,
        "created_at": _to_db_time(item.created_at),
        "modified_at": _to_db_time(item.modified_at),
        "preview_url": item.preview_url,
        "md5": item.md5,
        "cached_at": cached_at,
    }


def _folder_from_row(row: CachedFolder) -> Folder:
    return Folder(
        id=row.id,
        name=row.name,
        path=row.path,
        parent_path=row.parent_path,
        items_count=row.items_count,
        created_at=_from_db_time(row.created_at),
        modified_at=_from_db_time(row.modified_at),
        cached_at=row.cached_at,
    )


def _media_from_row(row: CachedMediaFile) -> MediaFile:
    return MediaFile(
        id=row.id,
        name=row.name,
        path=row.path,
        parent_path=row.parent_path,
        mime_type=row.mime_type,
        size=row.size,
        created_at=_from_db_time(row.created_at),
        modified_at=_from_db_time(row.modified_at),
        preview_url=row.preview_url,
        md5=row.md5,
        cached_at=row.cached_at,
    )


def _media_order(order: SortOrder | None) -> list:
    col = CachedMediaFile
    if order == SortOrder.NAME_ASC:
        return [col.name.asc()]
    if order == SortOrder.NAME_DESC:
        return [col.name.desc()]
    if order == SortOrder.DATE_ASC:
        return [col.modified_at.is_not(None), col.modified_at.asc()]
    if order == SortOrder.SIZE_ASC:
        return [col.size.asc()]
    if order == SortOrder.SIZE_DESC:
        return [col.size.desc()]
    # DATE_DESC and the default listing order
    return [col.modified_at.is_(None), col.modified_at.desc()]


class CacheStore:
    """Async SQLite-backed entity cache with per-parent change subscriptions.

    Rows are namespaced by ``scope`` ("disk" for the authenticated disk,
    ``public:<key>`` for public links). All writes are insert-or-replace and
    each call runs in a single transaction.
    """

    def __init__(
        self,
        session_factory: async_sessionmaker[AsyncSession],
        clock: Callable[[], int] = now_ms,
    ):
        self._session_factory = session_factory
        self._clock = clock
        self._subscribers: dict[tuple[str, str], set[asyncio.Event]] = {}

    @asynccontextmanager
    async def _session(self, write: bool = False) -> AsyncIterator[AsyncSession]:
        try:
            async with self._session_factory() as session:
                yield session
                if write:
                    await session.commit()
        except (SQLAlchemyError, OSError) as e:
            error = CacheWriteError(e) if write else CacheReadError(e)
            logger.error("%s", error.message)
            raise DomainException(error) from e

    # ------------------------------------------------------------------
    # Lookups
    # ------------------------------------------------------------------

    async def get(self, path: str, scope: str = DISK_SCOPE) -> Entity | None:
        """Folder or media file stored at ``path``."""
        folder = await self.get_folder(path, scope)
        if folder is not None:
            return folder
        return await self.get_media_file(path, scope)

    async def get_folder(self, path: str, scope: str = DISK_SCOPE) -> Folder | None:
        async with self._session() as db:
            result = await db.execute(
                select(CachedFolder).where(
                    CachedFolder.scope == scope,
                    CachedFolder.path == normalize_path(path),
                )
            )
            row = result.scalar_one_or_none()
        return _folder_from_row(row) if row else None

    async def get_media_file(self, path: str, scope: str = DISK_SCOPE) -> MediaFile | None:
        async with self._session() as db:
            result = await db.execute(
                select(CachedMediaFile).where(
                    CachedMediaFile.scope == scope,
                    CachedMediaFile.path == normalize_path(path),
                )
            )
            row = result.scalar_one_or_none()
        return _media_from_row(row) if row else None

    async def list_children(
        self,
        parent_path: str,
        scope: str = DISK_SCOPE,
        sort: SortOrder | None = None,
    ) -> list[Entity]:
        """Direct children of ``parent_path``.

        Without ``sort``: folders by name, then media newest first.
        """
        parent = normalize_path(parent_path)
        async with self._session() as db:
            folders = await db.execute(
                select(CachedFolder)
                .where(CachedFolder.scope == scope, CachedFolder.parent_path == parent)
                .order_by(CachedFolder.name.asc())
            )
            media = await db.execute(
                select(CachedMediaFile)
                .where(CachedMediaFile.scope == scope, CachedMediaFile.parent_path == parent)
                .order_by(*_media_order(None))
            )
            items: list[Entity] = [_folder_from_row(r) for r in folders.scalars().all()]
            items.extend(_media_from_row(r) for r in media.scalars().all())
        if sort is not None:
            return sort_items(items, sort)
        return items

    async def count_children(self, parent_path: str, scope: str = DISK_SCOPE) -> int:
        parent = normalize_path(parent_path)
        async with self._session() as db:
            folders = await db.scalar(
                select(func.count()).select_from(CachedFolder).where(
                    CachedFolder.scope == scope, CachedFolder.parent_path == parent
                )
            )
            media = await db.scalar(
                select(func.count()).select_from(CachedMediaFile).where(
                    CachedMediaFile.scope == scope, CachedMediaFile.parent_path == parent
                )
            )
        return (folders or 0) + (media or 0)

    async def list_media(
        self,
        scope: str = DISK_SCOPE,
        offset: int = 0,
        limit: int | None = None,
        sort: SortOrder | None = None,
    ) -> list[MediaFile]:
        """Every cached media file in ``scope``, regardless of folder."""
        stmt = (
            select(CachedMediaFile)
            .where(CachedMediaFile.scope == scope)
            .order_by(*_media_order(sort), CachedMediaFile.id)
            .offset(offset)
        )
        if limit is not None:
            stmt = stmt.limit(limit)
        async with self._session() as db:
            result = await db.execute(stmt)
            return [_media_from_row(r) for r in result.scalars().all()]

    async def count_media(self, scope: str = DISK_SCOPE) -> int:
        async with self._session() as db:
            count = await db.scalar(
                select(func.count()).select_from(CachedMediaFile).where(CachedMediaFile.scope == scope)
            )
        return count or 0

    # ------------------------------------------------------------------
    # Writes
    # ------------------------------------------------------------------

    async def upsert_all(self, items: Iterable[Entity], scope: str = DISK_SCOPE) -> int:
        """Insert-or-replace by id; returns the number of distinct rows written."""
        folders, media = self._rows(items, scope)
        if not folders and not media:
            return 0
        async with self._session(write=True) as db:
            await self._insert(db, folders, media)
        self._notify(scope, _parents(folders, media))
        return len(folders) + len(media)

    async def replace_children(
        self, parent_path: str, items: Iterable[Entity], scope: str = DISK_SCOPE
    ) -> int:
        """Swap the full child listing of ``parent_path`` in one transaction."""
        parent = normalize_path(parent_path)
        folders, media = self._rows(items, scope)
        async with self._session(write=True) as db:
            await db.execute(
                delete(CachedFolder).where(CachedFolder.scope == scope, CachedFolder.parent_path == parent)
            )
            await db.execute(
                delete(CachedMediaFile).where(
                    CachedMediaFile.scope == scope, CachedMediaFile.parent_path == parent
                )
            )
            await self._insert(db, folders, media)
        self._notify(scope, _parents(folders, media) | {parent})
        return len(folders) + len(media)

    async def delete_by_path(self, path: str, scope: str = DISK_SCOPE) -> int:
        target = normalize_path(path)
        async with self._session(write=True) as db:
            parents = set(
                (await db.execute(
                    select(CachedFolder.parent_path).where(
                        CachedFolder.scope == scope, CachedFolder.path == target
                    )
                )).scalars().all()
            )
            parents.update(
                (await db.execute(
                    select(CachedMediaFile.parent_path).where(
                        CachedMediaFile.scope == scope, CachedMediaFile.path == target
                    )
                )).scalars().all()
            )
            deleted = (await db.execute(
                delete(CachedFolder).where(CachedFolder.scope == scope, CachedFolder.path == target)
            )).rowcount
            deleted += (await db.execute(
                delete(CachedMediaFile).where(CachedMediaFile.scope == scope, CachedMediaFile.path == target)
            )).rowcount
        self._notify(scope, {p for p in parents if p})
        return deleted

    async def delete_by_parent(self, parent_path: str, scope: str = DISK_SCOPE) -> int:
        parent = normalize_path(parent_path)
        async with self._session(write=True) as db:
            deleted = (await db.execute(
                delete(CachedFolder).where(CachedFolder.scope == scope, CachedFolder.parent_path == parent)
            )).rowcount
            deleted += (await db.execute(
                delete(CachedMediaFile).where(
                    CachedMediaFile.scope == scope, CachedMediaFile.parent_path == parent
                )
            )).rowcount
        self._notify(scope, {parent})
        return deleted

    async def delete_older_than(self, threshold_ms: int) -> int:
        """Drop rows cached (or folders synced) before ``threshold_ms``."""
        async with self._session(write=True) as db:
            deleted = (await db.execute(
                delete(CachedMediaFile).where(CachedMediaFile.cached_at < threshold_ms)
            )).rowcount
            deleted += (await db.execute(
                delete(CachedFolder).where(CachedFolder.cached_at < threshold_ms)
            )).rowcount
            deleted += (await db.execute(
                delete(SyncMetadata).where(SyncMetadata.last_synced_at < threshold_ms)
            )).rowcount
        if deleted:
            logger.info("Evicted %d cache rows older than %d", deleted, threshold_ms)
            self._notify_all()
        return deleted

    async def clear(self) -> None:
        async with self._session(write=True) as db:
            await db.execute(delete(CachedMediaFile))
            await db.execute(delete(CachedFolder))
            await db.execute(delete(SyncMetadata))
        logger.info("Cache cleared")
        self._notify_all()

    # ------------------------------------------------------------------
    # Sync metadata
    # ------------------------------------------------------------------

    async def get_sync_metadata(self, folder_path: str, scope: str = DISK_SCOPE) -> SyncMetadata | None:
        async with self._session() as db:
            return await db.get(SyncMetadata, (scope, normalize_path(folder_path)))

    async def save_sync_metadata(
        self,
        folder_path: str,
        total_items: int | None,
        scope: str = DISK_SCOPE,
        etag: str | None = None,
    ) -> SyncMetadata:
        """Record a completed listing; timestamp and total are written together."""
        record = SyncMetadata(
            scope=scope,
            folder_path=normalize_path(folder_path),
            last_synced_at=self._clock(),
            total_items=total_items,
            etag=etag,
        )
        async with self._session(write=True) as db:
            record = await db.merge(record)
        return record

    async def delete_sync_metadata(self, folder_path: str, scope: str = DISK_SCOPE) -> None:
        async with self._session(write=True) as db:
            await db.execute(
                delete(SyncMetadata).where(
                    SyncMetadata.scope == scope,
                    SyncMetadata.folder_path == normalize_path(folder_path),
                )
            )

    async def stats(self) -> CacheStats:
        async with self._session() as db:
            folder_count = await db.scalar(select(func.count()).select_from(CachedFolder))
            media_count = await db.scalar(select(func.count()).select_from(CachedMediaFile))
            total_bytes = await db.scalar(select(func.sum(CachedMediaFile.size)))
            synced = await db.scalar(select(func.count()).select_from(SyncMetadata))
        return CacheStats(
            folder_count=folder_count or 0,
            media_count=media_count or 0,
            total_media_bytes=total_bytes or 0,
            synced_folders=synced or 0,
        )

    # ------------------------------------------------------------------
    # Subscriptions
    # ------------------------------------------------------------------

    async def observe_children(
        self,
        parent_path: str,
        scope: str = DISK_SCOPE,
        sort: SortOrder | None = None,
    ) -> AsyncIterator[list[Entity]]:
        """Current children, then a fresh snapshot after each affecting write.

        Writes landing while the consumer is busy collapse into one snapshot.
        """
        key = (scope, normalize_path(parent_path))
        changed = asyncio.Event()
        self._subscribers.setdefault(key, set()).add(changed)
        last: list[Entity] | None = None
        try:
            while True:
                changed.clear()
                try:
                    snapshot = await self.list_children(key[1], scope, sort)
                except DomainException as e:
                    logger.warning("Skipping snapshot for %s: %s", key[1], e.error.message)
                else:
                    if snapshot != last:
                        last = snapshot
                        yield snapshot
                await changed.wait()
        finally:
            subscribers = self._subscribers.get(key)
            if subscribers is not None:
                subscribers.discard(changed)
                if not subscribers:
                    del self._subscribers[key]

    def _notify(self, scope: str, parents: set[str]) -> None:
        for parent in parents:
            for event in self._subscribers.get((scope, parent), ()):
                event.set()

    def _notify_all(self) -> None:
        for events in self._subscribers.values():
            for event in events:
                event.set()

    # ------------------------------------------------------------------

    def _rows(self, items: Iterable[Entity], scope: str) -> tuple[list[dict], list[dict]]:
        cached_at = self._clock()
        folders: dict[str, dict] = {}
        media: dict[str, dict] = {}
        for item in items:
            if isinstance(item, Folder):
                folders[item.id] = _folder_row(item, scope, cached_at)
            else:
                media[item.id] = _media_row(item, scope, cached_at)
        return list(folders.values()), list(media.values())

    @staticmethod
    async def _insert(db: AsyncSession, folders: Sequence[dict], media: Sequence[dict]) -> None:
        # OR REPLACE also resolves a path now owned by a different id
        if folders:
            await db.execute(insert(CachedFolder.__table__).prefix_with("OR REPLACE"), folders)
        if media:
            await db.execute(insert(CachedMediaFile.__table__).prefix_with("OR REPLACE"), media)


def _parents(folders: Sequence[dict], media: Sequence[dict]) -> set[str]:
    parents = {row["parent_path"] for row in folders if row["parent_path"]}
    parents.update(row["parent_path"] for row in media)
    return parents
