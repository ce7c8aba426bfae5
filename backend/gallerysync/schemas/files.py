"""File schemas: folders, media files and paged listings."""

from datetime import datetime
from enum import Enum
from typing import Annotated, Generic, Literal, TypeVar, Union

from pydantic import BaseModel, Field, computed_field

T = TypeVar("T")

DEFAULT_MIME_TYPE = "application/octet-stream"


class MediaType(str, Enum):
    IMAGE = "IMAGE"
    VIDEO = "VIDEO"


class SortOrder(str, Enum):
    NAME_ASC = "name_asc"
    NAME_DESC = "name_desc"
    DATE_ASC = "date_asc"
    DATE_DESC = "date_desc"
    SIZE_ASC = "size_asc"
    SIZE_DESC = "size_desc"


class ViewMode(str, Enum):
    GRID = "grid"
    LIST = "list"


class PreviewSize(str, Enum):
    S = "S"  # 150x150
    M = "M"  # 300x300
    L = "L"  # 500x500
    XL = "XL"  # 800x800
    XXL = "XXL"  # 1024x1024


def media_type_for(mime_type: str | None) -> MediaType:
    """IMAGE unless the MIME type is a video."""
    if mime_type and mime_type.startswith("video/"):
        return MediaType.VIDEO
    return MediaType.IMAGE


def is_media_mime(mime_type: str | None) -> bool:
    return bool(mime_type) and (mime_type.startswith("image/") or mime_type.startswith("video/"))


class UserSettings(BaseModel):
    """Read-only snapshot of user preferences relevant to listings."""
    model_config = {"frozen": True}

    view_mode: ViewMode = ViewMode.GRID
    sort_order: SortOrder = SortOrder.DATE_DESC


class Folder(BaseModel):
    """Directory on the remote disk."""
    kind: Literal["dir"] = "dir"
    id: str
    name: str
    path: str
    parent_path: str | None = None
    items_count: int | None = None
    created_at: datetime | None = None
    modified_at: datetime | None = None
    cached_at: int | None = None  # epoch ms of the cache write


class MediaFile(BaseModel):
    """File on the remote disk; ``type`` always follows ``mime_type``."""
    kind: Literal["file"] = "file"
    id: str
    name: str
    path: str
    parent_path: str
    mime_type: str = DEFAULT_MIME_TYPE
    size: int = 0
    created_at: datetime | None = None
    modified_at: datetime | None = None
    preview_url: str | None = None
    md5: str | None = None
    cached_at: int | None = None

    @computed_field  # type: ignore[prop-decorator]
    @property
    def type(self) -> MediaType:
        return media_type_for(self.mime_type)

    @property
    def is_media(self) -> bool:
        return is_media_mime(self.mime_type)


DiskItem = Annotated[Union[Folder, MediaFile], Field(discriminator="kind")]


class PagedResult(BaseModel, Generic[T]):
    """One page of a listing."""
    items: list[T]
    offset: int
    limit: int
    total: int | None = None
    has_more: bool = False

    @property
    def next_offset(self) -> int:
        return self.offset + len(self.items)

    @property
    def is_empty(self) -> bool:
        return not self.items


class DiskInfo(BaseModel):
    """Disk quota summary."""
    total_space: int
    used_space: int
    trash_size: int | None = None
