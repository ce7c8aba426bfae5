"""Remote disk API payloads (wire format)."""

from pydantic import BaseModel, ConfigDict, Field

TYPE_FILE = "file"
TYPE_DIR = "dir"

# Error codes returned in the ``error`` field of an error body
ERROR_UNAUTHORIZED = "UnauthorizedError"
ERROR_NOT_FOUND = "DiskNotFoundError"
ERROR_PATH_NOT_FOUND = "DiskPathDoesntExistsError"
ERROR_FORBIDDEN = "DiskForbiddenError"
ERROR_QUOTA_EXCEEDED = "DiskQuotaExceededError"
ERROR_SERVICE_UNAVAILABLE = "DiskServiceUnavailableError"
ERROR_RESOURCE_ALREADY_EXISTS = "DiskResourceAlreadyExistsError"
ERROR_TOO_MANY_REQUESTS = "TooManyRequestsError"


class _Wire(BaseModel):
    model_config = ConfigDict(extra="ignore", populate_by_name=True)


class ResourceDto(_Wire):
    """File or folder as returned by ``/resources`` endpoints."""
    name: str
    path: str
    type: str
    resource_id: str | None = None
    mime_type: str | None = None
    size: int | None = None
    created: str | None = None
    modified: str | None = None
    md5: str | None = None
    preview: str | None = None
    embedded: "EmbeddedResources | None" = Field(default=None, alias="_embedded")

    @property
    def is_directory(self) -> bool:
        return self.type == TYPE_DIR

    @property
    def is_file(self) -> bool:
        return self.type == TYPE_FILE


class EmbeddedResources(_Wire):
    """Folder contents page embedded in a directory resource."""
    items: list[ResourceDto] = []
    offset: int = 0
    limit: int = 0
    total: int | None = None


class PublicResourceDto(ResourceDto):
    """Resource reached through a public link."""
    public_key: str | None = None
    public_url: str | None = None


class FilesResponse(_Wire):
    """Flat file list from ``/resources/files``; it carries no total."""
    items: list[ResourceDto] = []
    offset: int = 0
    limit: int = 0


class DownloadLinkDto(_Wire):
    href: str | None = None
    method: str = "GET"
    templated: bool = False


class DiskInfoDto(_Wire):
    total_space: int
    used_space: int
    trash_size: int | None = None


class ErrorDto(_Wire):
    error: str
    message: str | None = None
    description: str | None = None


ResourceDto.model_rebuild()
PublicResourceDto.model_rebuild()
