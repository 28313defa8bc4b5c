from __future__ import annotations

import os
from dataclasses import dataclass
from pathlib import Path
from urllib.parse import quote_plus

from dotenv import load_dotenv


def _load_repo_env() -> None:
    """Load the nearest .env starting from this file upward."""
    current = Path(__file__).resolve()
    for candidate in [current.parent, *current.parents]:
        env_file = candidate / ".env"
        if env_file.exists():
            load_dotenv(env_file)
            return


_load_repo_env()


def _require_env(name: str) -> str:
    value = os.getenv(name)
    if value is None or value == "":
        raise ValueError(f"Environment variable {name} is required")
    return value


def _env_int(name: str, default: int) -> int:
    raw = os.getenv(name)
    if raw is None or raw == "":
        return default
    try:
        return int(raw)
    except ValueError as exc:
        raise ValueError(f"Environment variable {name} must be an integer") from exc


def _optional_env(name: str) -> str | None:
    value = os.getenv(name)
    return value or None


@dataclass(frozen=True)
class UploadsConfig:
    database_url: str | None
    db_host: str | None
    db_port: int
    db_name: str | None
    db_user: str | None
    db_password: str | None
    yt_client_id: str | None
    yt_client_secret: str | None
    yt_refresh_token: str | None
    yt_channel_id: str | None
    session_ttl_hours: int
    pending_cache_seconds: int
    pending_cache_backend: str
    redis_host: str
    redis_port: int
    redis_db: int
    reconcile_queue_name: str
    reconcile_delay_seconds: int
    auth_url: str
    auth_api_key: str

    @property
    def database_dsn(self) -> str:
        if self.database_url:
            return self.database_url
        user = quote_plus(self.db_user or "")
        password = quote_plus(self.db_password or "")
        return (
            f"postgresql://{user}:{password}"
            f"@{self.db_host}:{self.db_port}/{self.db_name}"
        )

    @property
    def sqlalchemy_dsn(self) -> str:
        dsn = self.database_dsn
        if dsn.startswith("postgresql://"):
            return dsn.replace("postgresql://", "postgresql+psycopg://", 1)
        return dsn


def load_config() -> UploadsConfig:
    database_url = _optional_env("UPLOADS_DATABASE_URL")
    return UploadsConfig(
        database_url=database_url,
        db_host=None if database_url else _require_env("UPLOADS_DB_HOST"),
        db_port=_env_int("UPLOADS_DB_PORT", 5432),
        db_name=None if database_url else _require_env("UPLOADS_DB_NAME"),
        db_user=None if database_url else _require_env("UPLOADS_DB_USER"),
        db_password=None if database_url else _require_env("UPLOADS_DB_PASSWORD"),
        # checked when an upload is initiated, not at start-up
        yt_client_id=_optional_env("YT_CLIENT_ID"),
        yt_client_secret=_optional_env("YT_CLIENT_SECRET"),
        yt_refresh_token=_optional_env("YT_REFRESH_TOKEN"),
        yt_channel_id=_optional_env("YT_CHANNEL_ID"),
        session_ttl_hours=_env_int("UPLOADS_SESSION_TTL_HOURS", 24),
        pending_cache_seconds=_env_int("UPLOADS_PENDING_CACHE_SECONDS", 300),
        pending_cache_backend=os.getenv("UPLOADS_PENDING_CACHE_BACKEND", "memory"),
        redis_host=os.getenv("UPLOADS_REDIS_HOST", "localhost"),
        redis_port=_env_int("UPLOADS_REDIS_PORT", 6379),
        redis_db=_env_int("UPLOADS_REDIS_DB", 0),
        reconcile_queue_name=os.getenv("UPLOADS_RECONCILE_QUEUE", "reconcile"),
        reconcile_delay_seconds=_env_int("UPLOADS_RECONCILE_DELAY_SECONDS", 600),
        auth_url=_require_env("UPLOADS_AUTH_URL"),
        auth_api_key=_require_env("UPLOADS_AUTH_API_KEY"),
    )
