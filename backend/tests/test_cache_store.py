"""Tests for the SQLite cache store."""

import asyncio
from datetime import datetime, timezone

import pytest

from gallerysync.database import create_engine_for, create_session_factory
from gallerysync.errors import CacheReadError, CacheWriteError, DomainException
from gallerysync.models import SyncMetadata
from gallerysync.schemas.files import Folder, MediaFile, SortOrder
from gallerysync.services.cache_store import CacheStore, sort_items
from gallerysync.utils.paths import public_scope

from conftest import T0


def _media(name: str, parent: str = "/Photos", size: int = 100, modified: datetime | None = None, **kw) -> MediaFile:
    return MediaFile(
        id=kw.pop("id", f"id:{parent}/{name}"),
        name=name,
        path=f"{parent.rstrip('/')}/{name}",
        parent_path=parent,
        mime_type=kw.pop("mime_type", "image/jpeg"),
        size=size,
        modified_at=modified,
        **kw,
    )


def _folder(name: str, parent: str = "/") -> Folder:
    path = f"{parent.rstrip('/')}/{name}"
    return Folder(id=f"id:{path}", name=name, path=path, parent_path=parent)


def _at(hour: int) -> datetime:
    return datetime(2024, 5, 1, hour, 0, tzinfo=timezone.utc)


@pytest.mark.asyncio
async def test_upsert_is_idempotent(cache_store):
    items = [_folder("Photos"), _media("a.jpg", parent="/")]

    await cache_store.upsert_all(items)
    await cache_store.upsert_all(items)

    children = await cache_store.list_children("/")
    assert len(children) == 2
    stats = await cache_store.stats()
    assert (stats.folder_count, stats.media_count) == (1, 1)


@pytest.mark.asyncio
async def test_upsert_replaces_by_id(cache_store):
    await cache_store.upsert_all([_media("a.jpg", size=1)])
    await cache_store.upsert_all([_media("a.jpg", size=2)])

    media = await cache_store.get_media_file("/Photos/a.jpg")
    assert media.size == 2


@pytest.mark.asyncio
async def test_duplicate_ids_in_one_batch_keep_last(cache_store):
    written = await cache_store.upsert_all([_media("a.jpg", size=1), _media("a.jpg", size=5)])

    assert written == 1
    assert (await cache_store.get_media_file("/Photos/a.jpg")).size == 5


@pytest.mark.asyncio
async def test_write_sets_cached_at_from_clock(cache_store, clock):
    clock.advance(42)
    await cache_store.upsert_all([_media("a.jpg")])

    assert (await cache_store.get("/Photos/a.jpg")).cached_at == T0 + 42


@pytest.mark.asyncio
async def test_round_trip_keeps_timestamps_utc(cache_store):
    await cache_store.upsert_all([_media("a.jpg", modified=_at(9))])

    media = await cache_store.get_media_file("/Photos/a.jpg")
    assert media.modified_at == _at(9)
    assert media.modified_at.tzinfo is not None


@pytest.mark.asyncio
async def test_default_child_order_folders_then_newest_media(cache_store):
    await cache_store.upsert_all([
        _media("old.jpg", parent="/", modified=_at(1)),
        _folder("Zeta"),
        _media("new.jpg", parent="/", modified=_at(5)),
        _folder("Alpha"),
        _media("undated.jpg", parent="/"),
    ])

    names = [i.name for i in await cache_store.list_children("/")]
    assert names == ["Alpha", "Zeta", "new.jpg", "old.jpg", "undated.jpg"]


def test_sort_items_orders():
    items = [
        _folder("dir"),
        _media("b.jpg", size=30, modified=_at(3)),
        _media("a.jpg", size=10, modified=_at(7)),
    ]

    assert [i.name for i in sort_items(items, SortOrder.NAME_DESC)] == ["dir", "b.jpg", "a.jpg"]
    assert [i.name for i in sort_items(items, SortOrder.DATE_ASC)] == ["dir", "b.jpg", "a.jpg"]
    assert [i.name for i in sort_items(items, SortOrder.DATE_DESC)] == ["a.jpg", "b.jpg", "dir"]
    assert [i.name for i in sort_items(items, SortOrder.SIZE_ASC)] == ["dir", "a.jpg", "b.jpg"]


@pytest.mark.asyncio
async def test_delete_by_path_and_parent(cache_store):
    await cache_store.upsert_all([_media("a.jpg"), _media("b.jpg"), _media("c.jpg", parent="/Other")])

    assert await cache_store.delete_by_path("/Photos/a.jpg") == 1
    assert await cache_store.delete_by_parent("/Photos") == 1
    assert await cache_store.count_children("/Photos") == 0
    assert await cache_store.count_children("/Other") == 1


@pytest.mark.asyncio
async def test_delete_older_than_returns_count(cache_store, clock):
    await cache_store.upsert_all([_media("old.jpg")])
    await cache_store.save_sync_metadata("/Photos", 1)
    clock.advance(10_000)
    await cache_store.upsert_all([_media("new.jpg")])

    deleted = await cache_store.delete_older_than(T0 + 5_000)

    assert deleted == 2
    assert [i.name for i in await cache_store.list_children("/Photos")] == ["new.jpg"]
    assert await cache_store.get_sync_metadata("/Photos") is None


@pytest.mark.asyncio
async def test_clear_removes_everything(cache_store):
    await cache_store.upsert_all([_folder("Photos"), _media("a.jpg")])
    await cache_store.save_sync_metadata("/", 1)

    await cache_store.clear()

    stats = await cache_store.stats()
    assert (stats.folder_count, stats.media_count, stats.synced_folders) == (0, 0, 0)


@pytest.mark.asyncio
async def test_replace_children_is_a_full_swap(cache_store):
    await cache_store.upsert_all([_media("a.jpg"), _media("b.jpg")])

    await cache_store.replace_children("/Photos", [_media("c.jpg")])

    assert [i.name for i in await cache_store.list_children("/Photos")] == ["c.jpg"]


@pytest.mark.asyncio
async def test_list_media_across_folders(cache_store):
    await cache_store.upsert_all([
        _media("a.jpg", parent="/A", size=5),
        _media("b.jpg", parent="/B", size=50),
        _folder("A"),
    ])

    media = await cache_store.list_media(sort=SortOrder.SIZE_DESC)
    assert [m.name for m in media] == ["b.jpg", "a.jpg"]
    assert await cache_store.count_media() == 2
    assert [m.name for m in await cache_store.list_media(offset=1, limit=1, sort=SortOrder.SIZE_DESC)] == ["a.jpg"]


def test_sync_metadata_ttl_boundary():
    meta = SyncMetadata(scope="disk", folder_path="/", last_synced_at=T0, total_items=3)

    assert not meta.is_stale(T0 + 299_999)
    assert not meta.is_stale(T0 + 300_000)
    assert meta.is_stale(T0 + 300_001)


@pytest.mark.asyncio
async def test_sync_metadata_round_trip(cache_store, clock):
    await cache_store.save_sync_metadata("/Photos", 12)
    clock.advance(5)
    await cache_store.save_sync_metadata("/Photos", 13)

    meta = await cache_store.get_sync_metadata("/Photos/")
    assert (meta.total_items, meta.last_synced_at) == (13, T0 + 5)
    await cache_store.delete_sync_metadata("/Photos")
    assert await cache_store.get_sync_metadata("/Photos") is None


@pytest.mark.asyncio
async def test_scopes_never_share_rows(cache_store):
    shared = _media("same.jpg", parent="/")
    await cache_store.upsert_all([shared])
    await cache_store.upsert_all([shared.model_copy(update={"size": 999})], scope=public_scope("k"))
    await cache_store.save_sync_metadata("/", 1, scope=public_scope("k"))

    private = await cache_store.get_media_file("/same.jpg")
    public = await cache_store.get_media_file("/same.jpg", scope=public_scope("k"))
    assert (private.size, public.size) == (100, 999)
    assert await cache_store.get_sync_metadata("/") is None


@pytest.mark.asyncio
async def test_observe_children_coalesces_writes(cache_store):
    stream = cache_store.observe_children("/Photos", sort=SortOrder.NAME_ASC)

    assert await stream.__anext__() == []
    await cache_store.upsert_all([_media("a.jpg")])
    await cache_store.upsert_all([_media("b.jpg")])
    snapshot = await asyncio.wait_for(stream.__anext__(), timeout=2)

    assert [i.name for i in snapshot] == ["a.jpg", "b.jpg"]
    await stream.aclose()


@pytest.mark.asyncio
async def test_observe_children_ignores_other_parents(cache_store):
    stream = cache_store.observe_children("/Photos")
    await stream.__anext__()

    await cache_store.upsert_all([_media("x.jpg", parent="/Elsewhere")])

    with pytest.raises(asyncio.TimeoutError):
        await asyncio.wait_for(stream.__anext__(), timeout=0.2)


@pytest.mark.asyncio
async def test_observe_children_wakes_on_clear(cache_store):
    await cache_store.upsert_all([_media("a.jpg")])
    stream = cache_store.observe_children("/Photos")
    assert len(await stream.__anext__()) == 1

    await cache_store.clear()

    assert await asyncio.wait_for(stream.__anext__(), timeout=2) == []
    await stream.aclose()


@pytest.mark.asyncio
async def test_io_failures_are_wrapped(tmp_path):
    # No tables were created on this engine
    engine = create_engine_for(f"sqlite+aiosqlite:///{tmp_path / 'bare.db'}")
    store = CacheStore(create_session_factory(engine))

    with pytest.raises(DomainException) as read_exc:
        await store.get_folder("/")
    with pytest.raises(DomainException) as write_exc:
        await store.upsert_all([_media("a.jpg")])
    await engine.dispose()

    assert isinstance(read_exc.value.error, CacheReadError)
    assert isinstance(write_exc.value.error, CacheWriteError)
    assert read_exc.value.error.cause is not None
