from pathlib import Path

from pydantic import Field
from pydantic_settings import BaseSettings, SettingsConfigDict

ENV_PATH = Path(__file__).resolve().parent.parent / ".env.local"


class Settings(BaseSettings):
    # Environment settings
    environment: str = "development"
    debug: bool = False
    LOG_LEVEL: str = "INFO"

    # Availability / rehearsal backend
    BACKEND_API_URL: str = "http://localhost:3001/api/native"
    BACKEND_ACCESS_TOKEN: str | None = None

    # Calendar provider
    GOOGLE_CALENDAR_ACCESS_TOKEN: str | None = None

    # Persisted sync state
    REDIS_URL: str = "redis://localhost:6379/0"

    # Owner of this sync client
    SYNC_USER_ID: str = "default"
    USER_TIMEZONE: str = "UTC"
    SYNC_PROJECT_IDS: list[str] = Field(default_factory=list)

    # =================================================================
    # SYNC TUNING
    # =================================================================
    SYNC_COOLDOWN_SECONDS: float = 5.0
    IMPORT_LOOKBACK_DAYS: int = 0
    IMPORT_LOOKAHEAD_DAYS: int = 365
    IMPORT_CHUNK_SIZE: int = 50
    EXPORT_BATCH_SIZE: int = 10

    # HTTP clients
    REQUEST_TIMEOUT: float = 10.0
    MAX_RETRIES: int = 3

    model_config = SettingsConfigDict(
        env_file=str(ENV_PATH),
        env_file_encoding="utf-8",
        extra="ignore",
    )

    def resolved_timezone(self) -> str:
        """
        Return USER_TIMEZONE if it is a known IANA zone, else "UTC".
        An unknown zone is logged, never raised.
        """
        from rehearsal_sync.utils.timezone import zone_or_utc

        return zone_or_utc(self.USER_TIMEZONE).key

    def get_http_client_config(self) -> dict:
        """Shared timeout/retry configuration for the outbound HTTP clients."""
        config = {
            "timeout": self.REQUEST_TIMEOUT,
            "max_retries": self.MAX_RETRIES,
        }

        if self.environment == "development":
            # Fail faster against a local backend
            config.update({"max_retries": min(self.MAX_RETRIES, 2)})

        return config


settings = Settings()
