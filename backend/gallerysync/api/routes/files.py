"""Folder listings, media and single items of the authenticated disk."""

from __future__ import annotations

from fastapi import APIRouter, Query

from gallerysync.api.deps import unwrap
from gallerysync.schemas.files import DiskItem, MediaFile, PagedResult, PreviewSize, SortOrder
from gallerysync.schemas.system import LinkResponse, RefreshResponse
from gallerysync.services import get_sync_service
from gallerysync.utils.paths import ROOT_PATH

router = APIRouter()


@router.get("/list", response_model=PagedResult[DiskItem])
async def list_folder(
    path: str = ROOT_PATH,
    offset: int = Query(0, ge=0),
    limit: int | None = Query(None, ge=1, le=1000),
    sort: SortOrder | None = None,
    media_only: bool = False,
):
    """One page of a folder, served from cache while fresh."""
    result = await get_sync_service().get_folder_contents(path, offset, limit, sort, media_only)
    return unwrap(result)


@router.post("/refresh", response_model=RefreshResponse)
async def refresh_folder(path: str = ROOT_PATH):
    """Re-list a folder from the remote, replacing its cached children."""
    count = unwrap(await get_sync_service().refresh_folder(path))
    return RefreshResponse(path=path, items=count)


@router.get("/media", response_model=PagedResult[MediaFile])
async def all_media(
    offset: int = Query(0, ge=0),
    limit: int | None = Query(None, ge=1, le=1000),
    sort: SortOrder | None = None,
):
    """Every image and video on the disk."""
    return unwrap(await get_sync_service().get_all_media(offset, limit, sort))


@router.get("/item", response_model=DiskItem)
async def get_item(path: str):
    return unwrap(await get_sync_service().get_item(path))


@router.get("/download", response_model=LinkResponse)
async def download_link(path: str):
    return LinkResponse(href=unwrap(await get_sync_service().get_download_url(path)))


@router.get("/preview", response_model=LinkResponse)
async def preview_link(path: str, size: PreviewSize = PreviewSize.M):
    return LinkResponse(href=unwrap(await get_sync_service().get_preview_url(path, size)))
