"""GallerySync configuration via Pydantic BaseSettings loaded from .env."""

from __future__ import annotations

from functools import lru_cache
from pathlib import Path

from pydantic import field_validator, model_validator
from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    """Application settings."""

    app_name: str = "GallerySync"
    debug: bool = True
    log_level: str = "INFO"

    # HTTP surface
    host: str = "127.0.0.1"
    port: int = 8000
    api_prefix: str = "/api"
    cors_origins: list[str] = [
        "http://localhost:5173",
        "http://localhost:8000",
    ]

    # Remote disk API
    api_base_url: str = "https://cloud-api.yandex.net"
    oauth_token: str = ""  # Initial token, replaced at runtime via /auth/token
    connect_timeout_seconds: float = 30.0
    read_timeout_seconds: float = 30.0
    write_timeout_seconds: float = 30.0

    # Retry / backoff
    retry_max_attempts: int = 3
    retry_base_delay_ms: int = 1000
    retry_rate_limit_base_delay_ms: int = 5000
    retry_max_delay_ms: int = 30000
    retry_jitter_ratio: float = 0.2

    # Cache & staleness
    data_dir: str = "./data"
    database_path: str = "./data/gallerysync.db"
    cache_ttl_ms: int = 300_000  # 5 minutes
    default_page_size: int = 20
    refresh_page_size: int = 1000
    preview_size: str = "M"
    cache_max_age_ms: int = 7 * 24 * 3600 * 1000
    cache_maintenance_interval_seconds: int = 3600

    # Connectivity probing
    probe_url: str = ""  # Empty -> api_base_url
    probe_interval_seconds: int = 30
    probe_timeout_seconds: float = 5.0
    probe_failure_threshold: int = 2
    connection_type: str = "other"  # wifi | cellular | ethernet | other

    # Server
    uvicorn_workers: int = 1
    max_db_connections: int = 5

    @property
    def effective_probe_url(self) -> str:
        return self.probe_url or self.api_base_url

    model_config = SettingsConfigDict(
        env_file=(".env", "../.env"),
        env_file_encoding="utf-8",
        env_prefix="GALLERYSYNC_",
        extra="ignore",
    )

    @field_validator("cors_origins", mode="before")
    @classmethod
    def assemble_cors_origins(cls, value: list[str] | str) -> list[str]:
        if isinstance(value, str) and not value.startswith("["):
            return [o.strip() for o in value.split(",") if o.strip()]
        if isinstance(value, list):
            return value
        return ["http://localhost:5173"]

    @field_validator("api_base_url")
    @classmethod
    def _strip_trailing_slash(cls, value: str) -> str:
        return value.rstrip("/")

    @model_validator(mode="after")
    def _resolve_paths(self) -> "Settings":
        """Ensure data paths are absolute."""
        base = Path(__file__).resolve().parent.parent  # backend/
        for field in ("data_dir", "database_path"):
            val = getattr(self, field)
            if not Path(val).is_absolute():
                setattr(self, field, str(base / val))
        return self


@lru_cache(maxsize=1)
def get_settings() -> Settings:
    return Settings()


settings = get_settings()
