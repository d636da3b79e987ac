"""Runtime configuration for coach-sync."""

from datetime import timedelta

from loguru import logger
from pydantic import Field, field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict

from .errors import ConfigurationError


class Settings(BaseSettings):
    strava_client_id: str = Field(default="", validation_alias="STRAVA_CLIENT_ID")
    strava_client_secret: str = Field(default="", validation_alias="STRAVA_CLIENT_SECRET")
    strava_webhook_verify_token: str = Field(default="", validation_alias="STRAVA_WEBHOOK_VERIFY_TOKEN")
    strava_api_timeout_seconds: float = Field(default=15.0, validation_alias="STRAVA_API_TIMEOUT_SECONDS")

    db_path: str = Field(
        default="",
        validation_alias="COACH_SYNC_DB_PATH",
        description="SQLite file path; empty means <repo>/data/coach_sync.db",
    )
    log_level: str = Field(default="INFO", validation_alias="LOG_LEVEL")
    default_time_zone: str = Field(default="UTC", validation_alias="DEFAULT_TIME_ZONE")

    # Ledger timing
    sync_debounce_seconds: int = Field(default=120, validation_alias="SYNC_DEBOUNCE_SECONDS")
    sync_lease_seconds: int = Field(default=300, validation_alias="SYNC_LEASE_SECONDS")
    sync_retry_backoff_seconds: int = Field(default=15 * 60, validation_alias="SYNC_RETRY_BACKOFF_SECONDS")
    sync_rate_limit_backoff_seconds: int = Field(
        default=30 * 60, validation_alias="SYNC_RATE_LIMIT_BACKOFF_SECONDS"
    )

    # Orchestrator window
    sync_lookback_days: int = Field(default=14, validation_alias="SYNC_LOOKBACK_DAYS")
    sync_buffer_minutes: int = Field(default=120, validation_alias="SYNC_BUFFER_MINUTES")
    sync_page_size: int = Field(default=50, validation_alias="SYNC_PAGE_SIZE")
    sync_max_pages: int = Field(default=10, validation_alias="SYNC_MAX_PAGES")
    auto_confirm_synced: bool = Field(
        default=False,
        validation_alias="SYNC_AUTO_CONFIRM",
        description="Mark matched entries COMPLETED_SYNCED instead of leaving a draft for the athlete",
    )

    summary_cache_seconds: int = Field(default=30, validation_alias="SUMMARY_CACHE_SECONDS")

    model_config = SettingsConfigDict(
        env_file=".env",
        extra="ignore",
        populate_by_name=True,
    )

    @field_validator("log_level")
    @classmethod
    def validate_log_level(cls, value: str) -> str:
        """Validate that log level is one of the standard logging levels."""
        valid_levels = {"DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"}
        upper_value = value.upper()
        if upper_value not in valid_levels:
            logger.warning(f"Invalid LOG_LEVEL '{value}'. Defaulting to INFO.")
            return "INFO"
        return upper_value

    @property
    def debounce_window(self) -> timedelta:
        return timedelta(seconds=self.sync_debounce_seconds)

    @property
    def lease_duration(self) -> timedelta:
        return timedelta(seconds=self.sync_lease_seconds)

    @property
    def retry_backoff(self) -> timedelta:
        return timedelta(seconds=self.sync_retry_backoff_seconds)

    @property
    def rate_limit_backoff(self) -> timedelta:
        return timedelta(seconds=self.sync_rate_limit_backoff_seconds)

    def require_strava_credentials(self) -> tuple[str, str]:
        """Return the Strava client id/secret or fail loudly."""
        if not self.strava_client_id or not self.strava_client_secret:
            raise ConfigurationError("STRAVA_CLIENT_ID/STRAVA_CLIENT_SECRET are not set.")
        return self.strava_client_id, self.strava_client_secret

    def require_webhook_verify_token(self) -> str:
        """Return the webhook verify token or fail loudly."""
        if not self.strava_webhook_verify_token:
            raise ConfigurationError("STRAVA_WEBHOOK_VERIFY_TOKEN is not set.")
        return self.strava_webhook_verify_token


settings = Settings()
