"""Application settings loaded from environment with safe fallbacks.

Environment precedence:
- Loads `.env` from the repo root before reading process env vars.
- Most values are pulled straight from env; booleans go through `_env_flag` so `"0"/"false"` work.
- CORS is normalized from `CORS_ORIGINS` (comma-separated) with a conservative default allowlist.

Key expectations (defaults in parentheses):
- `APP_ENV` controls settings class selection (`production` default).
- Database: `DATABASE_URL` or component parts (`DATABASE_*`), with `_test` suffix enforced in tests.
- Push gateway: `PUSH_GATEWAY_URL` (Expo push endpoint), batches of `PUSH_BATCH_SIZE` (100)
  paced by `PUSH_BATCH_DELAY_SECONDS` (0.1).
- Studio clock: `STUDIO_TIMEZONE` (Europe/Tirane) is used for the dates and times shown to members.
- Scheduling: reminders default to `DEFAULT_REMINDER_MINUTES` (15) before class start; due
  notifications older than `STALE_NOTIFICATION_DAYS` (7) are never pushed.
"""

import logging
import os
from pathlib import Path
from typing import Annotated, Any, ClassVar, Optional
from zoneinfo import ZoneInfo, ZoneInfoNotFoundError

from dotenv import load_dotenv
from pydantic import field_validator
from pydantic_settings import BaseSettings, NoDecode, SettingsConfigDict

# Base directory of the project; used for resolving relative paths reliably.
# (__file__ is app/core/config/settings.py, so we need to traverse three levels up)
BASE_DIR = Path(__file__).resolve().parents[3]


load_dotenv(BASE_DIR / ".env")

logger = logging.getLogger(__name__)

EXPO_PUSH_URL = "https://exp.host/--/api/v2/push/send"


def _env_flag(name: str, *, default: Optional[bool] = False) -> Optional[bool]:
    """
    Helper to parse boolean-like environment variables.
    """
    value = os.getenv(name)
    if value is None:
        return default
    return value.lower() in {"1", "true", "yes", "on"}


class Settings(BaseSettings):
    """Application configuration loaded from environment variables.

    Behavior highlights:
    - Loads `.env` at repo root, then lets process env override.
    - Enforces safe DB URLs (prefers `DATABASE_URL`, ensures `_test` suffix for test DBs).
    - Feature toggles parsed via `_env_flag` to accept common truthy/falsey strings.
    - Push and scheduling knobs are plain numbers so tests can shrink delays to zero.
    """

    model_config: ClassVar[SettingsConfigDict] = SettingsConfigDict(
        env_file=str(BASE_DIR / ".env"),
        env_file_encoding="utf-8",
        extra="ignore",
    )

    database_url: Optional[str] = os.getenv("DATABASE_URL")
    test_database_url: Optional[str] = os.getenv("TEST_DATABASE_URL")
    database_hostname: Optional[str] = os.getenv("DATABASE_HOSTNAME")
    database_port: str = os.getenv("DATABASE_PORT", "5432")
    database_password: Optional[str] = os.getenv("DATABASE_PASSWORD")
    database_name: Optional[str] = os.getenv("DATABASE_NAME")
    database_username: Optional[str] = os.getenv("DATABASE_USERNAME")
    database_ssl_mode: str = os.getenv("DATABASE_SSL_MODE", "require")
    environment: str = os.getenv("APP_ENV", "production")
    log_level: str = os.getenv("LOG_LEVEL", "INFO")
    log_dir: str = os.getenv("LOG_DIR", "logs")
    use_json_logs: bool = _env_flag("USE_JSON_LOGS", default=True)
    cors_origins: Annotated[list[str], NoDecode] = []
    SITE_NAME: str = os.getenv("SITE_NAME", "Animo Pilates")

    secret_key: str = os.getenv("SECRET_KEY", "change-me")
    algorithm: str = os.getenv("ALGORITHM", "HS256")
    access_token_expire_minutes: int = int(os.getenv("ACCESS_TOKEN_EXPIRE_MINUTES", 30))

    default_language: str = os.getenv("DEFAULT_LANGUAGE", "en")
    studio_timezone: str = os.getenv("STUDIO_TIMEZONE", "Europe/Tirane")

    push_gateway_url: str = os.getenv("PUSH_GATEWAY_URL", EXPO_PUSH_URL)
    push_access_token: Optional[str] = os.getenv("PUSH_ACCESS_TOKEN")
    push_batch_size: int = int(os.getenv("PUSH_BATCH_SIZE", 100))
    push_batch_delay_seconds: float = float(os.getenv("PUSH_BATCH_DELAY_SECONDS", "0.1"))
    push_timeout_seconds: float = float(os.getenv("PUSH_TIMEOUT_SECONDS", "10"))
    push_android_channel_id: str = os.getenv("PUSH_ANDROID_CHANNEL_ID", "default")

    default_reminder_minutes: int = int(os.getenv("DEFAULT_REMINDER_MINUTES", 15))
    subscription_expiry_window_days: int = int(
        os.getenv("SUBSCRIPTION_EXPIRY_WINDOW_DAYS", 7)
    )
    subscription_check_hour: int = int(os.getenv("SUBSCRIPTION_CHECK_HOUR", 9))
    stale_notification_days: int = int(os.getenv("STALE_NOTIFICATION_DAYS", 7))
    due_scan_interval_seconds: int = int(os.getenv("DUE_SCAN_INTERVAL_SECONDS", 60))
    due_batch_limit: int = int(os.getenv("DUE_BATCH_LIMIT", 500))

    @field_validator("cors_origins", mode="before")
    @classmethod
    def _split_origins(cls, value: Any) -> Any:
        # CORS_ORIGINS is a comma-separated list, not JSON.
        if isinstance(value, str):
            return [origin.strip() for origin in value.split(",") if origin.strip()]
        return value

    @field_validator("studio_timezone")
    @classmethod
    def _known_timezone(cls, value: str) -> str:
        try:
            ZoneInfo(value)
        except (ZoneInfoNotFoundError, ValueError) as exc:
            raise ValueError(f"Unknown STUDIO_TIMEZONE: {value}") from exc
        return value

    def __init__(self, **kwargs):
        super().__init__(**kwargs)
        env_override = os.getenv("APP_ENV")
        if env_override:
            object.__setattr__(self, "environment", env_override)

        if not self.cors_origins:
            object.__setattr__(
                self, "cors_origins", ["http://localhost:8081", "http://localhost:19006"]
            )

        if self.push_batch_size <= 0 or self.push_batch_size > 100:
            logger.warning(
                "PUSH_BATCH_SIZE=%s is outside the gateway limit; using 100",
                self.push_batch_size,
            )
            object.__setattr__(self, "push_batch_size", 100)

    def get_database_url(self, *, use_test: bool = False) -> str:
        """Resolve the SQLAlchemy database URL for runtime or tests.

        Priority: explicit `DATABASE_URL` (or `_test` variant when requested),
        then composed Postgres parts, then `TEST_DATABASE_URL`, finally sqlite fallback.
        Enforces dedicated test DB names to avoid destructive writes to prod data.
        """
        if use_test:
            test_url = self._resolve_test_database_url()
            if test_url.startswith("sqlite"):
                return test_url
            if "_test" not in test_url:
                raise ValueError(
                    "Test database URL must point to a dedicated test database (contains '_test')."
                )
            return test_url

        if self.database_url:
            return self.database_url

        composed = self._compose_postgres_url(self.database_name)
        if composed:
            return composed

        if self.test_database_url:
            return self.test_database_url

        raise ValueError(
            "Database configuration is incomplete; please set DATABASE_URL or the individual components."
        )

    def _compose_postgres_url(self, database_name: Optional[str]) -> Optional[str]:
        if not (
            self.database_hostname
            and self.database_username
            and self.database_password
            and database_name
        ):
            return None
        base_url = (
            f"postgresql+psycopg2://{self.database_username}:{self.database_password}"
            f"@{self.database_hostname}:{self.database_port}/{database_name}"
        )
        if self.database_ssl_mode:
            return f"{base_url}?sslmode={self.database_ssl_mode}"
        return base_url

    def _resolve_test_database_url(self) -> str:
        """
        Build a test database URL.
        Priority:
        1) Explicit TEST_DATABASE_URL env.
        2) Derive from DATABASE_URL with a *_test suffix (or reuse sqlite).
        3) Derive from Postgres components with a *_test suffix.
        4) Fallback to sqlite for ad-hoc local runs.
        """
        if self.test_database_url:
            return self.test_database_url

        if self.database_url:
            from sqlalchemy.engine import make_url

            url = make_url(self.database_url)
            if url.drivername.startswith("sqlite"):
                return str(url)
            db_name = url.database or ""
            suffix_name = db_name if db_name.endswith("_test") else f"{db_name}_test"
            return url.set(database=suffix_name).render_as_string(hide_password=False)

        if self.database_name:
            composed = self._compose_postgres_url(f"{self.database_name}_test")
            if composed:
                return composed

        return "sqlite:///./test.db"
