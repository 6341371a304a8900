"""
Server settings read from OTA_* environment variables (or backend/.env).

Environment Variables:
    OTA_DEFAULT_CHANNEL: Channel used when neither the request nor the
        device names one (default: "production")
    OTA_STORAGE_BASE_URL: Base URL of the blob store for bundles published
        with an internal storage path (default: "")
    OTA_DOWNLOAD_SIGNING_KEY: HMAC key for internal download URLs, at least
        32 characters. Empty means URLs are returned unsigned.
    OTA_DOWNLOAD_URL_EXPIRY_SECONDS: Signed URL validity, 60..86400 (default: 3600)
    OTA_DEVICE_RATE_LIMIT: slowapi limit for device-facing endpoints
        (default: "120/minute")
    OTA_RATE_LIMIT_STORAGE_URI: slowapi counter storage (default: "memory://").
        Use a shared backend such as "redis://host:6379" with several workers.
"""

from functools import lru_cache
from pathlib import Path

from pydantic import Field, field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict


BACKEND_ENV_FILE = Path(__file__).resolve().parents[2] / ".env"

MIN_SIGNING_KEY_LENGTH = 32


class AppSettings(BaseSettings):
    """Typed view of the OTA_* environment."""

    model_config = SettingsConfigDict(
        env_prefix="OTA_",
        env_file=BACKEND_ENV_FILE,
        extra="ignore",
    )

    default_channel: str = Field(default="production", min_length=1, max_length=100)

    storage_base_url: str = ""
    download_signing_key: str = ""
    download_url_expiry_seconds: int = Field(default=3600, ge=60, le=86400)

    device_rate_limit: str = "120/minute"
    rate_limit_storage_uri: str = "memory://"

    @field_validator("default_channel", "storage_base_url", mode="before")
    @classmethod
    def strip_whitespace(cls, v):
        return v.strip() if isinstance(v, str) else v

    @field_validator("download_signing_key")
    @classmethod
    def validate_download_signing_key(cls, v: str) -> str:
        if v and len(v) < MIN_SIGNING_KEY_LENGTH:
            raise ValueError(
                f"OTA_DOWNLOAD_SIGNING_KEY must be at least {MIN_SIGNING_KEY_LENGTH} characters"
            )
        return v

    @property
    def signing_configured(self) -> bool:
        """True when internal download URLs get signed."""
        return bool(self.download_signing_key)


@lru_cache()
def get_settings() -> AppSettings:
    """Process-wide settings; tests clear the cache between cases."""
    return AppSettings()
