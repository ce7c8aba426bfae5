"""Yandex.Disk REST API client with OAuth header injection, retries and error classification."""

from __future__ import annotations

import asyncio
import logging
from typing import Any, Awaitable, Callable, Generator, TypeVar

import httpx
from pydantic import BaseModel

from gallerysync.config import settings
from gallerysync.errors import DomainException, ServerError
from gallerysync.schemas.files import SortOrder
from gallerysync.schemas.resource import (
    DiskInfoDto,
    DownloadLinkDto,
    FilesResponse,
    PublicResourceDto,
    ResourceDto,
)
from gallerysync.services.error_classifier import classify
from gallerysync.services.retry import RetryTransport
from gallerysync.services.token_provider import TokenProvider

logger = logging.getLogger(__name__)

ModelT = TypeVar("ModelT", bound=BaseModel)

RESOURCES = "/v1/disk/resources"
FILES = "/v1/disk/resources/files"
DOWNLOAD = "/v1/disk/resources/download"
PUBLIC_RESOURCES = "/v1/disk/public/resources"
PUBLIC_DOWNLOAD = "/v1/disk/public/resources/download"
DISK = "/v1/disk"

MEDIA_TYPE_FILTER = "image,video"

SORT_PARAMS: dict[SortOrder, str] = {
    SortOrder.NAME_ASC: "name",
    SortOrder.NAME_DESC: "-name",
    SortOrder.DATE_ASC: "modified",
    SortOrder.DATE_DESC: "-modified",
    SortOrder.SIZE_ASC: "size",
    SortOrder.SIZE_DESC: "-size",
}


def api_sort_param(order: SortOrder | None) -> str | None:
    return SORT_PARAMS[order] if order is not None else None


class OAuthTokenAuth(httpx.Auth):
    """Adds ``Authorization: OAuth <token>`` when a token is present."""

    def __init__(self, provider: TokenProvider):
        self._provider = provider

    def auth_flow(self, request: httpx.Request) -> Generator[httpx.Request, httpx.Response, None]:
        token = self._provider.get_token()
        if token:
            request.headers["Authorization"] = f"OAuth {token}"
        response = yield request
        if response.status_code == 401 and token:
            self._provider.invalidate()


class DiskApiClient:
    """Resilient client for the paginated disk resource API.

    Every method either returns the decoded payload or raises
    ``DomainException`` carrying an already classified error.
    """

    def __init__(
        self,
        token_provider: TokenProvider,
        base_url: str | None = None,
        transport: httpx.AsyncBaseTransport | None = None,
        sleep: Callable[[float], Awaitable[None]] = asyncio.sleep,
        is_offline: Callable[[], bool] | None = None,
    ):
        self._token_provider = token_provider
        self._base_url = (base_url or settings.api_base_url).rstrip("/")
        self._transport = RetryTransport(
            transport or httpx.AsyncHTTPTransport(),
            sleep=sleep,
            is_offline=is_offline,
        )
        self._client: httpx.AsyncClient | None = None

    def _http(self) -> httpx.AsyncClient:
        if self._client is None:
            self._client = httpx.AsyncClient(
                base_url=self._base_url,
                transport=self._transport,
                auth=OAuthTokenAuth(self._token_provider),
                timeout=httpx.Timeout(
                    connect=settings.connect_timeout_seconds,
                    read=settings.read_timeout_seconds,
                    write=settings.write_timeout_seconds,
                    pool=settings.connect_timeout_seconds,
                ),
                headers={"Accept": "application/json"},
            )
        return self._client

    async def aclose(self) -> None:
        if self._client is not None:
            await self._client.aclose()
            self._client = None

    async def __aenter__(self) -> "DiskApiClient":
        return self

    async def __aexit__(self, *exc_info) -> None:
        await self.aclose()

    # ------------------------------------------------------------------
    # Private resources
    # ------------------------------------------------------------------

    async def fetch_resource(
        self,
        path: str,
        offset: int | None = None,
        limit: int | None = None,
        sort: SortOrder | None = None,
        preview_size: str | None = None,
        preview_crop: bool | None = None,
        fields: str | None = None,
    ) -> ResourceDto:
        """Resource metadata; directories embed one page of their items."""
        params = {
            "path": path,
            "fields": fields,
            "limit": limit,
            "offset": offset,
            "preview_size": preview_size,
            "preview_crop": _flag(preview_crop),
            "sort": api_sort_param(sort),
        }
        return await self._get(RESOURCES, params, ResourceDto)

    async def fetch_all_files_flat(
        self,
        offset: int | None = None,
        limit: int | None = None,
        media_type: str | None = MEDIA_TYPE_FILTER,
        sort: SortOrder | None = None,
        preview_size: str | None = None,
    ) -> FilesResponse:
        """Flat list of every file on the disk; the response has no total."""
        params = {
            "limit": limit,
            "offset": offset,
            "media_type": media_type,
            "preview_size": preview_size,
            "sort": api_sort_param(sort),
        }
        return await self._get(FILES, params, FilesResponse)

    async def fetch_download_link(self, path: str) -> str:
        link = await self._get(DOWNLOAD, {"path": path}, DownloadLinkDto)
        return _require_href(link)

    # ------------------------------------------------------------------
    # Public resources
    # ------------------------------------------------------------------

    async def fetch_public_resource(
        self,
        public_key: str,
        path: str | None = None,
        offset: int | None = None,
        limit: int | None = None,
        sort: SortOrder | None = None,
        preview_size: str | None = None,
    ) -> PublicResourceDto:
        params = {
            "public_key": public_key,
            "path": path,
            "limit": limit,
            "offset": offset,
            "preview_size": preview_size,
            "sort": api_sort_param(sort),
        }
        return await self._get(PUBLIC_RESOURCES, params, PublicResourceDto)

    async def fetch_public_download_link(self, public_key: str, path: str | None = None) -> str:
        link = await self._get(
            PUBLIC_DOWNLOAD, {"public_key": public_key, "path": path}, DownloadLinkDto
        )
        return _require_href(link)

    # ------------------------------------------------------------------
    # Disk info
    # ------------------------------------------------------------------

    async def fetch_disk_info(self) -> DiskInfoDto:
        return await self._get(DISK, {}, DiskInfoDto)

    # ------------------------------------------------------------------

    async def _get(self, url: str, params: dict[str, Any], model: type[ModelT]) -> ModelT:
        query = {k: v for k, v in params.items() if v is not None}
        try:
            resp = await self._http().get(url, params=query)
        except (httpx.HTTPError, OSError) as e:
            error = classify(e)
            logger.warning("GET %s failed: %s", url, error.message)
            raise DomainException(error) from e

        if not resp.is_success:
            error = classify(resp)
            logger.warning("GET %s -> HTTP %d: %s", url, resp.status_code, error.message)
            raise DomainException(error)

        if not resp.content:
            raise DomainException(ServerError(code=0, server_message="Empty response"))
        try:
            return model.model_validate(resp.json())
        except ValueError as e:
            logger.error("Malformed %s payload from %s: %s", model.__name__, url, e)
            raise DomainException(
                ServerError(code=resp.status_code, server_message="Malformed response body")
            ) from e


def _flag(value: bool | None) -> str | None:
    if value is None:
        return None
    return "true" if value else "false"


def _require_href(link: DownloadLinkDto) -> str:
    if not link.href:
        raise DomainException(ServerError(code=0, server_message="No download URL"))
    return link.href
