"""Configuration for the Mansa mentorship client."""

from __future__ import annotations

from pydantic import Field, field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    """Runtime settings loaded from environment."""

    api_base_url: str = "https://mansa-backend-1rr8.onrender.com"
    api_prefix: str = "/api/v1/mentorship"
    connect_timeout: float = 10.0
    read_timeout: float = 30.0
    page_size: int = Field(default=10, ge=1)
    slow_operation_seconds: float = 1.0
    log_level: str = "INFO"

    # Redirect targets handed back to callers on 401/403.
    login_path: str = "/login"
    safe_default_path: str = "/community/mentorship"

    model_config = SettingsConfigDict(env_prefix="MANSA_MENTORSHIP_", env_file=".env")

    @field_validator("api_base_url")
    @classmethod
    def strip_trailing_slash(cls, v: str) -> str:
        return v.rstrip("/")

    @property
    def mentorship_url(self) -> str:
        return f"{self.api_base_url}{self.api_prefix}"
