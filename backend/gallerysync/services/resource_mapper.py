"""Wire resources -> domain folders and media files."""

from __future__ import annotations

from datetime import datetime, timezone
from typing import Iterable, Union

from gallerysync.schemas.files import DEFAULT_MIME_TYPE, Folder, MediaFile, is_media_mime
from gallerysync.schemas.resource import ResourceDto
from gallerysync.utils.paths import ROOT_PATH, normalize_path, parent_of

Entity = Union[Folder, MediaFile]


def parse_datetime(value: str | None) -> datetime | None:
    """ISO-8601 timestamp as an aware UTC datetime; ``None`` when unparseable."""
    if not value:
        return None
    text = value.strip()
    if text.endswith("Z"):
        text = text[:-1] + "+00:00"
    try:
        parsed = datetime.fromisoformat(text)
    except ValueError:
        return None
    if parsed.tzinfo is None:
        parsed = parsed.replace(tzinfo=timezone.utc)
    return parsed.astimezone(timezone.utc)


def to_folder(dto: ResourceDto, parent_path: str | None = None) -> Folder:
    path = normalize_path(dto.path)
    return Folder(
        id=dto.resource_id or dto.path,
        name=dto.name,
        path=path,
        parent_path=normalize_path(parent_path) if parent_path else parent_of(path),
        items_count=dto.embedded.total if dto.embedded else None,
        created_at=parse_datetime(dto.created),
        modified_at=parse_datetime(dto.modified),
    )


def to_media_file(dto: ResourceDto, parent_path: str | None = None) -> MediaFile:
    path = normalize_path(dto.path)
    return MediaFile(
        id=dto.resource_id or dto.path,
        name=dto.name,
        path=path,
        parent_path=normalize_path(parent_path) if parent_path else (parent_of(path) or ROOT_PATH),
        mime_type=dto.mime_type or DEFAULT_MIME_TYPE,
        size=dto.size or 0,
        created_at=parse_datetime(dto.created),
        modified_at=parse_datetime(dto.modified),
        preview_url=dto.preview,
        md5=dto.md5,
    )


def to_entity(dto: ResourceDto, parent_path: str | None = None) -> Entity:
    if dto.is_directory:
        return to_folder(dto, parent_path)
    return to_media_file(dto, parent_path)


def to_entities(
    dtos: Iterable[ResourceDto],
    parent_path: str | None = None,
    media_only: bool = False,
) -> list[Entity]:
    """Map a listing; ``media_only`` drops non image/video files but keeps folders."""
    return [
        to_entity(dto, parent_path)
        for dto in dtos
        if not (media_only and not dto.is_directory and not is_media_mime(dto.mime_type))
    ]


def filter_media(items: Iterable[Entity]) -> list[Entity]:
    return [i for i in items if isinstance(i, Folder) or i.is_media]
