"""Configuration management for cronloop."""

import signal
from pathlib import Path
from zoneinfo import ZoneInfo, ZoneInfoNotFoundError

from pydantic import Field, field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    """Scheduler settings loaded from environment variables."""

    model_config = SettingsConfigDict(
        env_prefix="CRONLOOP_",
        env_file=".env",
        env_file_encoding="utf-8",
        extra="ignore",
    )

    debug: bool = Field(
        default=False,
        description="Log job lifecycle events (scheduling, start, skip, finish, deletion)",
    )
    default_timezone: str = Field(
        default="UTC",
        description="Zone used for jobs registered without an explicit timezone",
    )
    shutdown_signals: list[str] = Field(
        default_factory=lambda: ["SIGTERM"],
        description="Signals that stop the scheduler and wait for running jobs",
    )
    jobs_file: Path | None = Field(
        default=None,
        description="Default YAML jobs file for the command-line runner",
    )

    @field_validator("default_timezone")
    @classmethod
    def _check_timezone(cls, value: str) -> str:
        try:
            ZoneInfo(value)
        except (ZoneInfoNotFoundError, ValueError) as e:
            raise ValueError(f"Unknown timezone: {value}") from e
        return value

    @field_validator("shutdown_signals")
    @classmethod
    def _check_signals(cls, value: list[str]) -> list[str]:
        names = []
        for name in value:
            name = name.upper()
            if not name.startswith("SIG"):
                name = f"SIG{name}"
            if not hasattr(signal, name):
                raise ValueError(f"Unknown signal: {name}")
            names.append(name)
        return names


# Global settings instance
settings = Settings()
