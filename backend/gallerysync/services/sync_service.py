"""Sync orchestrator: cache-vs-remote decisions for folder listings and media.

Reads are served from the local cache while it is fresh. A stale (or never
synced) first page is fetched from the remote when the connectivity monitor
reports the device online; otherwise the cached data is served as-is. Remote
failures degrade to cached data whenever the cache has something to show.

Every public coroutine returns a ``Result``; only programming errors raise.
"""

from __future__ import annotations

import logging
from typing import AsyncIterator, Awaitable, Callable, Sequence, TypeVar, Union

from gallerysync.config import settings
from gallerysync.errors import (
    DiskNotFound,
    DomainError,
    DomainException,
    EmptyField,
    NoConnection,
    Result,
)
from gallerysync.models import SyncMetadata
from gallerysync.schemas.cache import CacheStats
from gallerysync.schemas.files import (
    DiskInfo,
    Folder,
    MediaFile,
    PagedResult,
    PreviewSize,
    SortOrder,
    UserSettings,
)
from gallerysync.schemas.resource import ResourceDto
from gallerysync.services.cache_store import CacheStore, now_ms
from gallerysync.services.connectivity import ConnectivityMonitor
from gallerysync.services.remote_client import MEDIA_TYPE_FILTER, DiskApiClient
from gallerysync.services.resource_mapper import (
    filter_media,
    to_entities,
    to_entity,
    to_folder,
    to_media_file,
)
from gallerysync.utils.paths import DISK_SCOPE, ROOT_PATH, normalize_path, public_scope
from gallerysync.utils.public_url import validate_public_url
from gallerysync.utils.singleflight import SingleFlight

logger = logging.getLogger(__name__)

T = TypeVar("T")
Entity = Union[Folder, MediaFile]
PageFetcher = Callable[[int, int, SortOrder], Awaitable[ResourceDto]]

# Metadata namespace for the flat all-media listing; rows stay in the disk scope
ALL_MEDIA_SCOPE = "disk#all-media"

PUBLIC_LINK_HOSTS = ("disk.yandex.", "yadi.sk")


class GallerySyncService:
    """Composes cache store, remote client and connectivity monitor."""

    def __init__(
        self,
        cache: CacheStore,
        client: DiskApiClient,
        monitor: ConnectivityMonitor,
        user_settings: Callable[[], UserSettings] = UserSettings,
        clock: Callable[[], int] = now_ms,
        ttl_ms: int | None = None,
        page_size: int | None = None,
        refresh_page_size: int | None = None,
        preview_size: str | None = None,
    ):
        self._cache = cache
        self._client = client
        self._monitor = monitor
        self._user_settings = user_settings
        self._clock = clock
        self._ttl_ms = ttl_ms if ttl_ms is not None else settings.cache_ttl_ms
        self._page_size = page_size or settings.default_page_size
        self._refresh_page_size = refresh_page_size or settings.refresh_page_size
        self._preview_size = preview_size or settings.preview_size
        self._flights = SingleFlight()

    # ------------------------------------------------------------------
    # Folder listings
    # ------------------------------------------------------------------

    async def get_folder_contents(
        self,
        path: str | None = None,
        offset: int = 0,
        limit: int | None = None,
        sort: SortOrder | None = None,
        media_only: bool = False,
    ) -> Result[PagedResult[Entity]]:
        folder = normalize_path(path)
        fetch = self._disk_fetcher(folder)
        return await self._guard(
            self._list(DISK_SCOPE, folder, offset, limit, sort, media_only, fetch)
        )

    async def observe_folder_contents(
        self,
        path: str | None = None,
        sort: SortOrder | None = None,
        media_only: bool = False,
    ) -> AsyncIterator[list[Entity]]:
        """Live cached children; never triggers a remote fetch."""
        async for items in self._observe(DISK_SCOPE, normalize_path(path), sort, media_only):
            yield items

    async def refresh_folder(self, path: str | None = None) -> Result[int]:
        """Re-list the whole folder remotely and replace its cached children."""
        folder = normalize_path(path)
        fetch = self._disk_fetcher(folder)
        return await self._guard(self._refresh(DISK_SCOPE, folder, fetch))

    # ------------------------------------------------------------------
    # Public folders
    # ------------------------------------------------------------------

    async def get_public_folder_contents(
        self,
        public_key: str,
        path: str | None = None,
        offset: int = 0,
        limit: int | None = None,
        sort: SortOrder | None = None,
        media_only: bool = False,
    ) -> Result[PagedResult[Entity]]:
        try:
            key = _resolve_public_key(public_key)
        except DomainException as e:
            return Result.failure(e.error)
        folder = normalize_path(path)
        fetch = self._public_fetcher(key, folder)
        return await self._guard(
            self._list(public_scope(key), folder, offset, limit, sort, media_only, fetch)
        )

    async def observe_public_folder_contents(
        self,
        public_key: str,
        path: str | None = None,
        sort: SortOrder | None = None,
        media_only: bool = False,
    ) -> AsyncIterator[list[Entity]]:
        """Live cached children of a public folder; an invalid link yields nothing."""
        try:
            key = _resolve_public_key(public_key)
        except DomainException as e:
            logger.warning("Not observing public folder: %s", e.error.message)
            return
        async for items in self._observe(public_scope(key), normalize_path(path), sort, media_only):
            yield items

    async def refresh_public_folder(self, public_key: str, path: str | None = None) -> Result[int]:
        try:
            key = _resolve_public_key(public_key)
        except DomainException as e:
            return Result.failure(e.error)
        folder = normalize_path(path)
        fetch = self._public_fetcher(key, folder)
        return await self._guard(self._refresh(public_scope(key), folder, fetch))

    async def get_public_download_url(self, public_key: str, path: str | None = None) -> Result[str]:
        async def run() -> str:
            key = _resolve_public_key(public_key)
            return await self._client.fetch_public_download_link(
                key, normalize_path(path) if path else None
            )

        return await self._guard(run())

    # ------------------------------------------------------------------
    # All media
    # ------------------------------------------------------------------

    async def get_all_media(
        self,
        offset: int = 0,
        limit: int | None = None,
        sort: SortOrder | None = None,
    ) -> Result[PagedResult[MediaFile]]:
        """Every image and video on the disk, regardless of folder."""
        return await self._guard(self._all_media(offset, limit or self._page_size, self._sort(sort)))

    async def _all_media(self, offset: int, limit: int, sort: SortOrder) -> PagedResult[MediaFile]:
        meta = await self._read_metadata(ROOT_PATH, ALL_MEDIA_SCOPE)
        if self._is_fresh(meta):
            cached = await self._cached_media(offset, limit, sort)
            if cached is not None and len(cached) == limit:
                return _media_page(cached, offset, limit)

        if not self._monitor.is_online:
            logger.info("Offline, serving all-media page %d from cache", offset)
            return _media_page(await self._cached_media(offset, limit, sort) or [], offset, limit)

        try:
            files = await self._flights.do(
                ("all-media", offset, limit, sort),
                lambda: self._sync_media_page(offset, limit, sort),
            )
        except DomainException as e:
            cached = await self._cached_media(offset, limit, sort)
            if cached:
                logger.warning("All-media fetch failed (%s), serving cached page", e.error.message)
                return _media_page(cached, offset, limit)
            raise
        return PagedResult[MediaFile](
            items=files, offset=offset, limit=limit, total=None, has_more=len(files) >= limit
        )

    async def _sync_media_page(self, offset: int, limit: int, sort: SortOrder) -> list[MediaFile]:
        response = await self._client.fetch_all_files_flat(
            offset=offset,
            limit=limit,
            media_type=MEDIA_TYPE_FILTER,
            sort=sort,
            preview_size=self._preview_size,
        )
        seen: set[str] = set()
        files: list[MediaFile] = []
        for dto in response.items:
            media = to_media_file(dto)
            if media.id in seen:
                continue
            seen.add(media.id)
            files.append(media)

        try:
            await self._cache.upsert_all(files, DISK_SCOPE)
            if offset == 0:
                # The flat endpoint reports no total
                await self._cache.save_sync_metadata(ROOT_PATH, None, scope=ALL_MEDIA_SCOPE)
        except DomainException as e:
            logger.warning("Could not cache all-media page %d: %s", offset, e.error.message)
        return files

    async def _cached_media(self, offset: int, limit: int, sort: SortOrder) -> list[MediaFile] | None:
        try:
            return await self._cache.list_media(DISK_SCOPE, offset, limit, sort)
        except DomainException:
            return None

    # ------------------------------------------------------------------
    # Single items
    # ------------------------------------------------------------------

    async def get_media_file(self, path: str) -> Result[MediaFile]:
        async def run() -> MediaFile:
            cached = await self._cached(self._cache.get_media_file(path))
            if cached is not None:
                return cached
            dto = await self._client.fetch_resource(normalize_path(path), preview_size=PreviewSize.L.value)
            return to_media_file(dto)

        return await self._guard(run())

    async def get_folder(self, path: str | None = None) -> Result[Folder]:
        async def run() -> Folder:
            cached = await self._cached(self._cache.get_folder(normalize_path(path)))
            if cached is not None:
                return cached
            dto = await self._client.fetch_resource(normalize_path(path))
            return to_folder(dto)

        return await self._guard(run())

    async def get_item(self, path: str | None = None) -> Result[Entity]:
        """Folder or file at ``path``, whichever the cache or remote holds."""

        async def run() -> Entity:
            cached = await self._cached(self._cache.get(normalize_path(path)))
            if cached is not None:
                return cached
            return to_entity(await self._client.fetch_resource(normalize_path(path)))

        return await self._guard(run())

    async def get_download_url(self, path: str) -> Result[str]:
        return await self._guard(self._client.fetch_download_link(normalize_path(path)))

    async def get_preview_url(self, path: str, size: PreviewSize = PreviewSize.M) -> Result[str]:
        async def run() -> str:
            dto = await self._client.fetch_resource(normalize_path(path), preview_size=size.value)
            if not dto.preview:
                raise DomainException(DiskNotFound(path))
            return dto.preview

        return await self._guard(run())

    async def get_disk_info(self) -> Result[DiskInfo]:
        async def run() -> DiskInfo:
            info = await self._client.fetch_disk_info()
            return DiskInfo(
                total_space=info.total_space,
                used_space=info.used_space,
                trash_size=info.trash_size,
            )

        return await self._guard(run())

    # ------------------------------------------------------------------
    # Cache maintenance
    # ------------------------------------------------------------------

    async def clear_cache(self) -> Result[None]:
        return await self._guard(self._cache.clear())

    async def clear_old_cache(self, max_age_ms: int | None = None) -> Result[int]:
        age = max_age_ms if max_age_ms is not None else settings.cache_max_age_ms
        return await self._guard(self._cache.delete_older_than(self._clock() - age))

    async def cache_stats(self) -> Result[CacheStats]:
        return await self._guard(self._cache.stats())

    # ------------------------------------------------------------------
    # Listing core
    # ------------------------------------------------------------------

    async def _list(
        self,
        scope: str,
        folder: str,
        offset: int,
        limit: int | None,
        sort: SortOrder | None,
        media_only: bool,
        fetch: PageFetcher,
    ) -> PagedResult[Entity]:
        limit = limit or self._page_size
        order = self._sort(sort)
        meta = await self._read_metadata(folder, scope)
        online = self._monitor.is_online

        if offset == 0:
            if self._is_fresh(meta):
                try:
                    return await self._cached_page(scope, folder, offset, limit, order, media_only, meta)
                except DomainException as e:
                    if not online:
                        raise
                    # An unreadable cache counts as stale while the remote is reachable
                    logger.warning(
                        "Cached listing of %s unreadable (%s), fetching remotely", folder, e.error.message
                    )
            elif not online:
                logger.info("Offline, serving stale listing of %s", folder)
                return await self._cached_page(scope, folder, offset, limit, order, media_only, meta)
            try:
                items, total = await self._flights.do(
                    ("first-page", scope, folder, limit, order),
                    lambda: self._sync_first_page(scope, folder, limit, order, fetch),
                )
            except DomainException as e:
                return await self._degraded(scope, folder, offset, limit, order, media_only, meta, e.error)
            return _remote_page(items, offset, limit, total, media_only)

        # Continuation pages come from the cache when it already holds them
        total = meta.total_items if meta is not None else None
        if not online or await self._cache_covers(scope, folder, offset, limit, total):
            return await self._cached_page(scope, folder, offset, limit, order, media_only, meta)
        try:
            items, total = await self._flights.do(
                ("page", scope, folder, offset, limit, order),
                lambda: self._sync_page(scope, folder, offset, limit, order, fetch),
            )
        except DomainException as e:
            return await self._degraded(scope, folder, offset, limit, order, media_only, meta, e.error)
        return _remote_page(items, offset, limit, total, media_only)

    async def _sync_first_page(
        self, scope: str, folder: str, limit: int, order: SortOrder, fetch: PageFetcher
    ) -> tuple[list[Entity], int | None]:
        items, total = await self._fetch_page(folder, 0, limit, order, fetch)
        try:
            await self._cache.upsert_all(items, scope)
            await self._cache.save_sync_metadata(folder, total, scope=scope)
        except DomainException as e:
            logger.warning("Could not cache listing of %s: %s", folder, e.error.message)
        return items, total

    async def _sync_page(
        self, scope: str, folder: str, offset: int, limit: int, order: SortOrder, fetch: PageFetcher
    ) -> tuple[list[Entity], int | None]:
        items, total = await self._fetch_page(folder, offset, limit, order, fetch)
        try:
            await self._cache.upsert_all(items, scope)
        except DomainException as e:
            logger.warning("Could not cache page %d of %s: %s", offset, folder, e.error.message)
        return items, total

    async def _fetch_page(
        self, folder: str, offset: int, limit: int, order: SortOrder, fetch: PageFetcher
    ) -> tuple[list[Entity], int | None]:
        resource = await fetch(offset, limit, order)
        embedded = resource.embedded
        if embedded is None:
            return [], None
        return to_entities(embedded.items, parent_path=folder), embedded.total

    async def _refresh(self, scope: str, folder: str, fetch: PageFetcher) -> int:
        if self._monitor.is_definitely_offline():
            raise DomainException(NoConnection())
        return await self._flights.do(("refresh", scope, folder), lambda: self._refresh_all(scope, folder, fetch))

    async def _refresh_all(self, scope: str, folder: str, fetch: PageFetcher) -> int:
        order = self._sort(None)
        collected: list[Entity] = []
        total: int | None = None
        offset = 0
        while True:
            page, total = await self._fetch_page(folder, offset, self._refresh_page_size, order, fetch)
            collected.extend(page)
            offset += len(page)
            if not page or len(page) < self._refresh_page_size:
                break
            if total is not None and offset >= total:
                break

        await self._cache.replace_children(folder, collected, scope)
        await self._cache.save_sync_metadata(folder, total, scope=scope)
        logger.info("Refreshed %s (%s): %d items", folder, scope, len(collected))
        return len(collected)

    async def _cached_page(
        self,
        scope: str,
        folder: str,
        offset: int,
        limit: int,
        order: SortOrder,
        media_only: bool,
        meta: SyncMetadata | None,
    ) -> PagedResult[Entity]:
        children = await self._cache.list_children(folder, scope, order)
        page = children[offset:offset + limit]
        total = meta.total_items if meta is not None else None
        return PagedResult[Entity](
            items=filter_media(page) if media_only else page,
            offset=offset,
            limit=limit,
            total=total,
            has_more=_has_more(offset, len(page), limit, total),
        )

    async def _degraded(
        self,
        scope: str,
        folder: str,
        offset: int,
        limit: int,
        order: SortOrder,
        media_only: bool,
        meta: SyncMetadata | None,
        error: DomainError,
    ) -> PagedResult[Entity]:
        try:
            cached = await self._cached_page(scope, folder, offset, limit, order, media_only, meta)
        except DomainException:
            raise DomainException(error)
        if meta is None and not cached.items:
            raise DomainException(error)
        logger.warning("Remote listing of %s failed (%s), serving cache", folder, error.message)
        return cached

    async def _cache_covers(
        self, scope: str, folder: str, offset: int, limit: int, total: int | None
    ) -> bool:
        wanted = offset + limit if total is None else min(offset + limit, total)
        try:
            return await self._cache.count_children(folder, scope) >= wanted
        except DomainException:
            return False

    async def _observe(
        self, scope: str, folder: str, sort: SortOrder | None, media_only: bool
    ) -> AsyncIterator[list[Entity]]:
        order = self._sort(sort)
        last: list[Entity] | None = None
        async for children in self._cache.observe_children(folder, scope, order):
            items = filter_media(children) if media_only else children
            if items != last:
                last = items
                yield items

    # ------------------------------------------------------------------

    def _disk_fetcher(self, folder: str) -> PageFetcher:
        async def fetch(offset: int, limit: int, order: SortOrder) -> ResourceDto:
            return await self._client.fetch_resource(
                folder, offset=offset, limit=limit, sort=order, preview_size=self._preview_size
            )

        return fetch

    def _public_fetcher(self, public_key: str, folder: str) -> PageFetcher:
        async def fetch(offset: int, limit: int, order: SortOrder) -> ResourceDto:
            return await self._client.fetch_public_resource(
                public_key,
                path=folder,
                offset=offset,
                limit=limit,
                sort=order,
                preview_size=self._preview_size,
            )

        return fetch

    def _sort(self, sort: SortOrder | None) -> SortOrder:
        return sort if sort is not None else self._user_settings().sort_order

    def _is_fresh(self, meta: SyncMetadata | None) -> bool:
        return meta is not None and not meta.is_stale(self._clock(), self._ttl_ms)

    async def _read_metadata(self, folder: str, scope: str) -> SyncMetadata | None:
        try:
            return await self._cache.get_sync_metadata(folder, scope)
        except DomainException as e:
            # An unreadable record counts as never synced
            logger.warning("Sync metadata for %s unavailable: %s", folder, e.error.message)
            return None

    @staticmethod
    async def _cached(lookup: Awaitable[T | None]) -> T | None:
        try:
            return await lookup
        except DomainException as e:
            logger.warning("Cache lookup failed: %s", e.error.message)
            return None

    @staticmethod
    async def _guard(operation: Awaitable[T]) -> Result[T]:
        try:
            return Result.success(await operation)
        except DomainException as e:
            return Result.failure(e.error)


def _resolve_public_key(public_key: str | None) -> str:
    """Public links are validated; bare keys pass through."""
    raw = (public_key or "").strip()
    if not raw:
        raise DomainException(EmptyField("public_key"))
    if "://" in raw or raw.startswith(PUBLIC_LINK_HOSTS):
        return validate_public_url(raw)
    return raw


def _has_more(offset: int, count: int, limit: int, total: int | None) -> bool:
    if total is not None:
        return offset + count < total
    return count >= limit


def _remote_page(
    items: Sequence[Entity], offset: int, limit: int, total: int | None, media_only: bool
) -> PagedResult[Entity]:
    return PagedResult[Entity](
        items=filter_media(items) if media_only else list(items),
        offset=offset,
        limit=limit,
        total=total,
        has_more=_has_more(offset, len(items), limit, total),
    )


def _media_page(files: list[MediaFile], offset: int, limit: int) -> PagedResult[MediaFile]:
    return PagedResult[MediaFile](
        items=files, offset=offset, limit=limit, total=None, has_more=len(files) >= limit
    )
