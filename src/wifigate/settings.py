"""Runtime settings using pydantic-settings.

Values come from ``WIFIGATE_*`` environment variables or a ``.env`` file.
Roles, policies and category keywords are not settings; they live in the
YAML access config (see ``wifigate.schema.AccessConfig``).
"""

from pathlib import Path
from zoneinfo import ZoneInfo, ZoneInfoNotFoundError

from pydantic import Field, field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    """Process-level configuration."""

    model_config = SettingsConfigDict(
        env_prefix="WIFIGATE_",
        env_file=".env",
        env_file_encoding="utf-8",
        extra="ignore",
    )

    db_path: str = "wifigate.db"
    config_path: Path | None = None
    unrestricted_role: str = "Admin"
    timezone: str = "UTC"
    log_level: str = "WARNING"
    violation_write_attempts: int = Field(default=3, ge=1, le=10)
    violation_retry_delay_seconds: float = Field(default=0.05, ge=0, le=5)

    @field_validator("timezone")
    @classmethod
    def validate_timezone(cls, v: str) -> str:
        try:
            ZoneInfo(v)
        except (ZoneInfoNotFoundError, ValueError) as e:
            msg = f"Unknown timezone: {v}"
            raise ValueError(msg) from e
        return v

    @field_validator("log_level")
    @classmethod
    def validate_log_level(cls, v: str) -> str:
        level = v.upper()
        if level not in {"DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"}:
            msg = f"Unknown log level: {v}"
            raise ValueError(msg)
        return level

    @property
    def tz(self) -> ZoneInfo:
        return ZoneInfo(self.timezone)


def get_settings(**overrides) -> Settings:
    """Build settings from the environment, with explicit overrides on top."""
    return Settings(**{k: v for k, v in overrides.items() if v is not None})
