"""Public folder links: listings, refresh and downloads."""

from __future__ import annotations

from fastapi import APIRouter, Query

from gallerysync.api.deps import unwrap
from gallerysync.schemas.files import DiskItem, PagedResult, SortOrder
from gallerysync.schemas.system import LinkResponse, RefreshResponse
from gallerysync.services import get_sync_service
from gallerysync.utils.paths import ROOT_PATH

router = APIRouter()


@router.get("/list", response_model=PagedResult[DiskItem])
async def list_public_folder(
    public_key: str,
    path: str = ROOT_PATH,
    offset: int = Query(0, ge=0),
    limit: int | None = Query(None, ge=1, le=1000),
    sort: SortOrder | None = None,
    media_only: bool = False,
):
    """``public_key`` accepts either the raw key or the share link."""
    result = await get_sync_service().get_public_folder_contents(
        public_key, path, offset, limit, sort, media_only
    )
    return unwrap(result)


@router.post("/refresh", response_model=RefreshResponse)
async def refresh_public_folder(public_key: str, path: str = ROOT_PATH):
    count = unwrap(await get_sync_service().refresh_public_folder(public_key, path))
    return RefreshResponse(path=path, items=count)


@router.get("/download", response_model=LinkResponse)
async def public_download_link(public_key: str, path: str | None = None):
    href = unwrap(await get_sync_service().get_public_download_url(public_key, path))
    return LinkResponse(href=href)
