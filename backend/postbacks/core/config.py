# Central place for all configurable settings. We use Pydantic's
# BaseSettings so values can be read from env vars or a .env file.
# House tokens and commission terms live in the database, not here.

import json
from typing import Optional

from pydantic import Field
from pydantic_settings import BaseSettings, SettingsConfigDict


def safe_json_loads(value):
    try:
        return json.loads(value)
    except Exception:
        return value


class Settings(BaseSettings):
    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        env_json_loads=safe_json_loads,
    )

    # Core DB connection string, like sqlite:///./postbacks.db or a Postgres URL.
    DATABASE_URL: str

    # Toggle SQLAlchemy echo logs. Useful for debugging queries locally.
    DB_ECHO: bool = False

    # Upper bound for any single store operation during ingestion.
    # SQLite uses it as the busy timeout, Postgres as statement_timeout.
    POSTBACK_DB_TIMEOUT_SECONDS: float = Field(default=5.0, gt=0)

    # Clicks from the same customer may legitimately repeat, so their
    # fingerprint includes a coarse time bucket of this width.
    POSTBACK_CLICK_BUCKET_SECONDS: int = Field(default=60, gt=0)

    # Public base URL used when rendering postback URL templates for houses.
    POSTBACK_BASE_URL: str = "http://localhost:8000"

    # Shared key for admin/report routes. Empty means open (dev only).
    ADMIN_API_KEY: Optional[str] = None

    # Reporting defaults
    REPORT_DEFAULT_WINDOW_DAYS: int = Field(default=30, gt=0)
    RECENT_CONVERSIONS_LIMIT: int = Field(default=50, gt=0)
    REJECTION_LOG_LIMIT: int = Field(default=100, gt=0)

    LOG_LEVEL: str = "INFO"


# Instantiate a single settings object for app-wide import.
# Any module can just `from postbacks.core.config import settings`.
settings = Settings()
