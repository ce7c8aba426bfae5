"""Disk quota information."""

from fastapi import APIRouter

from gallerysync.api.deps import unwrap
from gallerysync.schemas.files import DiskInfo
from gallerysync.services import get_sync_service

router = APIRouter()


@router.get("/info", response_model=DiskInfo)
async def disk_info():
    """Total, used and trash bytes as reported by the remote."""
    return unwrap(await get_sync_service().get_disk_info())
