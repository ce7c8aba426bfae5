"""Health and connectivity schemas."""

from pydantic import BaseModel


class HealthResponse(BaseModel):
    """Health check response."""
    status: str = "ok"
    version: str
    service: str = "gallerysync"


class ConnectivityStatus(BaseModel):
    """Current reachability of the remote disk API."""
    state: str  # connected | disconnected | unknown
    connection_type: str | None = None
    is_online: bool


class TokenUpdate(BaseModel):
    """OAuth token handed over by the external auth flow."""
    token: str


class RefreshResponse(BaseModel):
    """Outcome of a forced folder refresh."""
    path: str
    items: int


class LinkResponse(BaseModel):
    """Short-lived URL handed out by the remote (download or preview)."""
    href: str
