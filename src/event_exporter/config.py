from functools import lru_cache
from typing import Literal
from pydantic import Field
from pydantic_settings import BaseSettings


class Settings(BaseSettings):
    # Runtime
    app_env: str = Field("dev", alias="APP_ENV")
    log_level: str = Field("INFO", alias="LOG_LEVEL")
    api_host: str = Field("0.0.0.0", alias="API_HOST")
    api_port: int = Field(8000, alias="API_PORT")

    # Destination database: either a full connection URL or the discrete fields below
    database_url: str | None = Field(None, alias="DATABASE_URL")
    host: str | None = Field(None, alias="DB_HOST")
    port: str | None = Field(None, alias="DB_PORT")
    db_name: str | None = Field(None, alias="DB_NAME")
    db_username: str | None = Field(None, alias="DB_USERNAME")
    db_password: str | None = Field(None, alias="DB_PASSWORD")
    has_self_signed_cert: Literal["Yes", "No"] = Field("No", alias="HAS_SELF_SIGNED_CERT")
    db_ssl_root_cert: str = Field("system", alias="DB_SSL_ROOT_CERT")  # only used when certs are verified
    db_connect_timeout: int = Field(10, alias="DB_CONNECT_TIMEOUT")

    # Export
    table_name: str = Field("event_export", alias="TABLE_NAME")
    events_to_insert: str | None = Field(None, alias="EVENTS_TO_INSERT")  # comma separated allow-list

    # Job queue (Celery broker/backend)
    redis_url: str = Field("redis://localhost:6379/0", alias="REDIS_URL")

    class Config:
        env_file = ".env"
        case_sensitive = False
        extra = "allow"  # Allow extra environment variables
        frozen = True
        populate_by_name = True


@lru_cache
def get_settings() -> Settings:
    return Settings()


def reset_settings():
    """Clear cached settings (useful in tests when env vars change)."""
    try:
        get_settings.cache_clear()  # type: ignore[attr-defined]
    except Exception:
        pass


def parse_events_to_insert(raw: str | None) -> frozenset[str]:
    return frozenset(e.strip() for e in raw.split(",") if e.strip()) if raw else frozenset()
