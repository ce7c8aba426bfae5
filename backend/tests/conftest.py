"""Test fixtures: file-backed SQLite cache, fake remote disk API, FastAPI test client."""

from __future__ import annotations

import posixpath

import httpx
import pytest
import pytest_asyncio
from httpx import ASGITransport, AsyncClient

from gallerysync.database import create_engine_for, create_session_factory, init_db
from gallerysync.main import create_app
from gallerysync.services.cache_store import CacheStore
from gallerysync.services.connectivity import Connected, ConnectionType, ConnectivityMonitor
from gallerysync.services.remote_client import DiskApiClient
from gallerysync.services.sync_service import GallerySyncService
from gallerysync.services.token_provider import TokenProvider

T0 = 1_700_000_000_000
API_BASE = "https://api.test"


class FakeClock:
    """Epoch-ms clock advanced by hand."""

    def __init__(self, now: int = T0):
        self.now = now

    def __call__(self) -> int:
        return self.now

    def advance(self, ms: int) -> None:
        self.now += ms


class FakeDisk:
    """In-memory stand-in for the disk REST API, served through httpx.MockTransport."""

    def __init__(self):
        self.folders: dict[str, list[dict]] = {"/": []}
        self.files: dict[str, dict] = {}
        self.public: dict[str, dict[str, list[dict]]] = {}
        self.requests: list[httpx.Request] = []
        self.failures: list[httpx.Response | Exception] = []
        self.previews = True

    # -- content -------------------------------------------------------

    def add_folder(self, path: str) -> dict:
        parent = posixpath.dirname(path) or "/"
        item = {
            "name": posixpath.basename(path),
            "path": f"disk:{path}",
            "type": "dir",
            "resource_id": f"id:{path}",
            "created": "2024-01-01T00:00:00+00:00",
            "modified": "2024-01-01T00:00:00+00:00",
        }
        self.folders.setdefault(parent, []).append(item)
        self.folders.setdefault(path, [])
        return item

    def add_file(
        self,
        parent: str,
        name: str,
        mime_type: str | None = "image/jpeg",
        size: int = 1024,
        modified: str = "2024-03-01T12:00:00+00:00",
    ) -> dict:
        path = posixpath.join(parent, name)
        item = {
            "name": name,
            "path": f"disk:{path}",
            "type": "file",
            "resource_id": f"id:{path}",
            "mime_type": mime_type,
            "size": size,
            "created": "2024-01-01T00:00:00+00:00",
            "modified": modified,
            "md5": f"md5-{name}",
            "preview": f"https://preview.test{path}" if self.previews else None,
        }
        self.folders.setdefault(parent, []).append(item)
        self.files[path] = item
        return item

    def remove(self, path: str) -> None:
        parent = posixpath.dirname(path) or "/"
        self.folders[parent] = [i for i in self.folders[parent] if i["path"] != f"disk:{path}"]
        self.files.pop(path, None)

    def add_public_file(self, key: str, folder: str, name: str, mime_type: str = "image/png") -> dict:
        path = posixpath.join(folder, name)
        item = {
            "name": name,
            "path": path,
            "type": "file",
            "resource_id": f"pub:{path}",
            "mime_type": mime_type,
            "size": 2048,
            "modified": "2024-02-01T08:00:00+00:00",
        }
        self.public.setdefault(key, {}).setdefault(folder, []).append(item)
        return item

    # -- transport -----------------------------------------------------

    def resource_requests(self) -> list[httpx.Request]:
        return [r for r in self.requests if r.url.path == "/v1/disk/resources"]

    def handler(self, request: httpx.Request) -> httpx.Response:
        self.requests.append(request)
        if self.failures:
            failure = self.failures.pop(0)
            if isinstance(failure, Exception):
                raise failure
            return failure

        params = request.url.params
        route = request.url.path
        if route == "/v1/disk/resources":
            path = _clean(params.get("path"))
            if path in self.folders:
                return httpx.Response(200, json=_listing(path, self.folders[path], params))
            if path in self.files:
                item = dict(self.files[path])
                if not self.previews:
                    item["preview"] = None
                return httpx.Response(200, json=item)
            return _not_found(path)
        if route == "/v1/disk/resources/files":
            wanted = (params.get("media_type") or "").split(",")
            items = [
                f for f in self.files.values()
                if not wanted[0] or (f["mime_type"] or "").split("/")[0] in wanted
            ]
            offset, limit = int(params.get("offset", 0)), int(params.get("limit", 20))
            return httpx.Response(
                200, json={"items": items[offset:offset + limit], "offset": offset, "limit": limit}
            )
        if route in ("/v1/disk/resources/download", "/v1/disk/public/resources/download"):
            return httpx.Response(
                200,
                json={"href": f"https://downloader.test{_clean(params.get('path'))}", "method": "GET"},
            )
        if route == "/v1/disk/public/resources":
            folders = self.public.get(params.get("public_key", ""))
            path = _clean(params.get("path"))
            if folders is None or path not in folders:
                return _not_found(path)
            return httpx.Response(200, json=_listing(path, folders[path], params))
        if route == "/v1/disk":
            return httpx.Response(
                200, json={"total_space": 10_000, "used_space": 2_500, "trash_size": 100}
            )
        return httpx.Response(404, json={"error": "NotFound"})


def _clean(path: str | None) -> str:
    path = (path or "/").removeprefix("disk:")
    return path if path.startswith("/") else "/" + path


def _listing(path: str, items: list[dict], params) -> dict:
    offset, limit = int(params.get("offset", 0)), int(params.get("limit", 20))
    return {
        "name": posixpath.basename(path) or "disk",
        "path": f"disk:{path}",
        "type": "dir",
        "resource_id": f"id:{path}",
        "_embedded": {
            "items": items[offset:offset + limit],
            "offset": offset,
            "limit": limit,
            "total": len(items),
        },
    }


def _not_found(path: str) -> httpx.Response:
    return httpx.Response(
        404,
        json={"error": "DiskNotFoundError", "message": "Resource not found", "description": path},
    )


async def no_sleep(_seconds: float) -> None:
    return None


@pytest.fixture
def clock() -> FakeClock:
    return FakeClock()


@pytest.fixture
def fake_disk() -> FakeDisk:
    return FakeDisk()


@pytest_asyncio.fixture
async def engine(tmp_path):
    """File-backed SQLite engine with the cache tables created."""
    engine = create_engine_for(f"sqlite+aiosqlite:///{tmp_path / 'cache.db'}")
    await init_db(engine)
    yield engine
    await engine.dispose()


@pytest.fixture
def cache_store(engine, clock) -> CacheStore:
    return CacheStore(create_session_factory(engine), clock=clock)


@pytest.fixture
def monitor() -> ConnectivityMonitor:
    return ConnectivityMonitor(
        probe_url="https://probe.test",
        interval=0.01,
        timeout=1.0,
        failure_threshold=2,
        connection_type=ConnectionType.WIFI,
        initial_state=Connected(ConnectionType.WIFI),
    )


@pytest.fixture
def token_provider() -> TokenProvider:
    return TokenProvider("test-token")


@pytest_asyncio.fixture
async def api_client(fake_disk, token_provider, monitor):
    client = DiskApiClient(
        token_provider,
        base_url=API_BASE,
        transport=httpx.MockTransport(fake_disk.handler),
        sleep=no_sleep,
        is_offline=monitor.is_definitely_offline,
    )
    yield client
    await client.aclose()


@pytest.fixture
def sync_service(cache_store, api_client, monitor, clock) -> GallerySyncService:
    return GallerySyncService(
        cache_store,
        api_client,
        monitor,
        clock=clock,
        ttl_ms=300_000,
        page_size=20,
        refresh_page_size=1000,
        preview_size="M",
    )


@pytest_asyncio.fixture
async def client():
    """Async test client for the API; route tests patch the service getters."""
    app = create_app()
    transport = ASGITransport(app=app)
    async with AsyncClient(transport=transport, base_url="http://test") as c:
        yield c
