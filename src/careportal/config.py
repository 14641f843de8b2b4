"""Application configuration and settings management."""

from typing import Any

import json
from pydantic import Field, field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    """Runtime configuration loaded from environment variables or defaults."""

    model_config = SettingsConfigDict(
        env_prefix="CAREPORTAL_",
        case_sensitive=False,
        env_file=".env",
        env_file_encoding="utf-8",
    )

    app_name: str = "Care Portal"
    api_prefix: str = "/api"
    upstream_base_url: str = Field(
        default="https://api.blaueengelhaushaltshilfe.de",
        description="Base URL of the upstream REST API that owns all persistence.",
    )
    upstream_timeout_seconds: float = Field(default=15.0, gt=0.0)
    upstream_max_retries: int = Field(
        default=2,
        ge=0,
        description="Retries for idempotent GET requests on network errors and timeouts.",
    )
    upstream_backoff_seconds: float = Field(default=0.5, ge=0.0)

    access_cookie_name: str = "be_access"
    access_cookie_max_age: int = Field(default=60 * 15, ge=1)
    access_cookie_secure: bool = True
    min_access_token_length: int = Field(default=20, ge=1)

    frontend_allowed_origins: tuple[str, ...] = Field(
        default=(),
        description="Permitted web origins for browser clients (CORS).",
    )

    signature_width: int = Field(default=600, ge=1, description="Default CSS width of the ink surface.")
    signature_height: int = Field(default=180, ge=1, description="Default CSS height of the ink surface.")
    signature_line_width: float = Field(default=2.0, gt=0.0)
    signature_max_bytes: int = Field(default=2_000_000, ge=1)
    signature_max_css_width: float = Field(default=2000.0, gt=0.0)
    signature_max_css_height: float = Field(default=1000.0, gt=0.0)
    signature_max_pixel_ratio: float = Field(default=4.0, ge=1.0)
    signature_max_pixels: int = Field(
        default=8_000_000,
        ge=1,
        description="Upper bound for the rasterised or decoded signature, in device pixels.",
    )
    signature_max_points: int = Field(default=20_000, ge=1)

    lock_cookie_name: str = "be_day_locks"
    lock_cookie_max_age: int = Field(default=60 * 60 * 12, ge=1)
    lock_cookie_max_entries: int = Field(default=20, ge=1)

    timezone: str = Field(
        default="Europe/Berlin",
        description="Zone used to derive the calendar day of an assignment.",
    )
    log_level: str = "INFO"

    @field_validator("frontend_allowed_origins", mode="before")
    @classmethod
    def _parse_str_tuple_from_env(cls, value: Any) -> tuple[str, ...]:
        """Parse string tuple from environment variable (comma-separated or JSON array)."""
        if isinstance(value, tuple):
            return value
        if isinstance(value, list):
            return tuple(str(item) for item in value)
        if isinstance(value, str):
            try:
                parsed = json.loads(value)
                if isinstance(parsed, list):
                    return tuple(str(item) for item in parsed)
            except (json.JSONDecodeError, TypeError):
                pass
            if "," in value:
                return tuple(item.strip() for item in value.split(",") if item.strip())
            if value.strip():
                return (value.strip(),)
        return tuple()

    @field_validator("upstream_base_url", mode="after")
    @classmethod
    def _strip_trailing_slash(cls, value: str) -> str:
        return value.rstrip("/")


settings = Settings()
