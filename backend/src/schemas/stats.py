"""
Pydantic schemas for device lifecycle statistics.
"""

from typing import Optional

from pydantic import AliasChoices, BaseModel, ConfigDict, Field, field_validator

from backend.src.models import normalize_platform
from backend.src.models.device_event import VERSION_MAX_LENGTH


class StatsRequest(BaseModel):
    """
    Lifecycle event reported by a device (POST /api/stats).

    action and status are accepted as synonyms; the legacy
    /api/downloaded, /api/applied and /api/failed routes fix the action
    and do not require one in the body.
    """

    model_config = ConfigDict(populate_by_name=True, extra="ignore")

    app_id: str = Field(
        ...,
        min_length=1,
        max_length=255,
        validation_alias=AliasChoices("app_id", "appId"),
    )
    device_id: str = Field(
        ...,
        min_length=1,
        max_length=255,
        validation_alias=AliasChoices("device_id", "deviceId"),
    )
    action: Optional[str] = Field(
        default=None,
        max_length=50,
        validation_alias=AliasChoices("action", "status"),
    )
    platform: Optional[str] = None
    version_name: Optional[str] = Field(
        default=None,
        max_length=50,
        validation_alias=AliasChoices("version_name", "versionName", "version"),
    )
    bundle_id: Optional[str] = Field(
        default=None,
        max_length=VERSION_MAX_LENGTH,
        validation_alias=AliasChoices("bundle_id", "bundleId"),
    )
    details: Optional[str] = Field(default=None, max_length=2000)

    @field_validator("platform")
    @classmethod
    def validate_platform(cls, v: Optional[str]) -> Optional[str]:
        if v is None or not v.strip():
            return None
        return normalize_platform(v)


class StatsResponse(BaseModel):
    """Acknowledgement."""

    status: str = "ok"
