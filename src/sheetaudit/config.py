"""Application configuration using pydantic-settings.

Settings come from environment variables or a `.env` file. One Settings
instance is built at process start and passed to every component.
"""

from functools import lru_cache
from zoneinfo import ZoneInfo, ZoneInfoNotFoundError

from pydantic import field_validator, model_validator
from pydantic_settings import BaseSettings, SettingsConfigDict

from sheetaudit.models import MonitoredSource

SNAPSHOT_KEY = "sheetStructure"


class Settings(BaseSettings):
    """sheetaudit settings.

    With no `monitored_sources` the service runs in single-document mode:
    every notification is logged to `log_sheet_name`. With a list, only the
    listed documents are logged, each to its own destination sheet.
    """

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=False,
        extra="ignore",
    )

    # Log destination
    log_spreadsheet_id: str = ""
    log_sheet_name: str = "Logs"

    # JSON list, e.g. [{"document_id": "1abc", "log_destination_name": "Budget"}]
    monitored_sources: list[MonitoredSource] = []

    # IANA time zone used for the Timestamp column
    time_zone: str = "UTC"

    # Snapshot persistence
    snapshot_backend: str = "file"
    snapshot_dir: str = ".sheetaudit/snapshots"

    # Notification endpoint
    webhook_secret: str = ""
    public_url: str = ""
    port: int = 8080

    # Runtime
    environment: str = "development"
    log_level: str = "INFO"

    @property
    def is_production(self) -> bool:
        """Check if running in production environment."""
        return self.environment == "production"

    @property
    def is_multi_document(self) -> bool:
        return bool(self.monitored_sources)

    @property
    def zone(self) -> ZoneInfo:
        return ZoneInfo(self.time_zone)

    def find_source(self, document_id: str) -> MonitoredSource | None:
        """Return the monitored source for a document, if listed."""
        for source in self.monitored_sources:
            if source.document_id == document_id:
                return source
        return None

    def snapshot_key(self, document_id: str) -> str:
        """Storage key of a document's structure snapshot.

        Always namespaced by document: single-document mode still accepts
        notifications from any source, and each keeps its own baseline.
        """
        return f"{SNAPSHOT_KEY}:{document_id}"

    @field_validator("time_zone")
    @classmethod
    def validate_time_zone(cls, v: str) -> str:
        """Validate time zone is a known IANA name."""
        try:
            ZoneInfo(v)
        except (ZoneInfoNotFoundError, ValueError) as e:
            raise ValueError(f"unknown time zone: {v}") from e
        return v

    @field_validator("snapshot_backend")
    @classmethod
    def validate_snapshot_backend(cls, v: str) -> str:
        """Validate snapshot backend is a known value."""
        allowed = {"file", "metadata", "memory"}
        v_lower = v.lower()
        if v_lower not in allowed:
            raise ValueError(f"snapshot_backend must be one of: {allowed}")
        return v_lower

    @field_validator("environment")
    @classmethod
    def validate_environment(cls, v: str) -> str:
        """Validate environment is a known value."""
        allowed = {"development", "staging", "production"}
        if v not in allowed:
            raise ValueError(f"environment must be one of: {allowed}")
        return v

    @field_validator("port")
    @classmethod
    def validate_port(cls, v: int) -> int:
        """Validate port is in valid range."""
        if not 1 <= v <= 65535:
            raise ValueError("port must be between 1 and 65535")
        return v

    @field_validator("log_level")
    @classmethod
    def validate_log_level(cls, v: str) -> str:
        """Validate log level is a known value."""
        allowed = {"DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"}
        v_upper = v.upper()
        if v_upper not in allowed:
            raise ValueError(f"log_level must be one of: {allowed}")
        return v_upper

    @model_validator(mode="after")
    def validate_sources(self) -> "Settings":
        """Reject duplicate monitored documents."""
        seen: set[str] = set()
        for source in self.monitored_sources:
            if source.document_id in seen:
                raise ValueError(
                    f"document {source.document_id} is listed more than once"
                )
            seen.add(source.document_id)

        if self.is_production and not self.webhook_secret:
            raise ValueError("WEBHOOK_SECRET must be set in production")
        return self


@lru_cache
def get_settings() -> Settings:
    """Get cached settings instance.

    Settings are loaded once and cached for the lifetime of the process.
    """
    return Settings()
