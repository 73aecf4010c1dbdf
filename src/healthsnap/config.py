"""Runtime settings for healthsnap.

Values are read from ``HEALTHSNAP_*`` environment variables or a local
``.env`` file.  The analytics functions never read settings themselves
except to pick the default local time zone; everything else is passed in
explicitly by the service layer or the CLI.
"""

from __future__ import annotations

from functools import lru_cache
from zoneinfo import ZoneInfo, ZoneInfoNotFoundError

from pydantic import Field, field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    """Application settings."""

    model_config = SettingsConfigDict(
        env_prefix="HEALTHSNAP_",
        env_file=".env",
        env_file_encoding="utf-8",
        extra="ignore",
    )

    # IANA zone used for day boundaries and date labels
    timezone: str = "UTC"

    # Sleep starting before this local hour belongs to the previous night
    sleep_rollover_hour: int = Field(10, ge=0, le=23)

    # Query window when no start date is given
    default_window_days: int = Field(7, ge=1)

    log_level: str = "WARNING"

    @field_validator("timezone")
    @classmethod
    def _known_zone(cls, value: str) -> str:
        try:
            ZoneInfo(value)
        except (ZoneInfoNotFoundError, ValueError) as exc:
            raise ValueError(f"unknown time zone: {value!r}") from exc
        return value

    @field_validator("log_level")
    @classmethod
    def _upper_level(cls, value: str) -> str:
        return value.upper()

    @property
    def tzinfo(self) -> ZoneInfo:
        return ZoneInfo(self.timezone)


@lru_cache(maxsize=1)
def get_settings() -> Settings:
    """Return the process-wide settings instance."""
    return Settings()
