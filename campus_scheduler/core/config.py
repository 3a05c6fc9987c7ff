"""Runtime settings, read from the environment and an optional ``.env`` file."""

from __future__ import annotations

from functools import lru_cache

from pydantic import Field, field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    model_config = SettingsConfigDict(
        env_prefix="SCHEDULER_",
        env_file=".env",
        extra="ignore",
    )

    app_name: str = "Campus Event Scheduler"
    environment: str = "development"

    # Logging
    log_level: str = "INFO"
    log_json: bool | None = None

    # Admission
    lock_timeout_seconds: float = Field(default=5.0, gt=0)

    # Fan-out audience when a reservation names no targetAudience
    notify_roles: list[str] = Field(default_factory=lambda: ["student", "teacher"])

    @field_validator("log_level")
    @classmethod
    def _upper_level(cls, v: str) -> str:
        return v.upper()

    @property
    def is_production(self) -> bool:
        return self.environment == "production"

    @property
    def json_logging(self) -> bool:
        if self.log_json is None:
            return self.is_production
        return self.log_json


@lru_cache
def get_settings() -> Settings:
    return Settings()


settings = get_settings()
