"""
Pydantic schemas for device channel self-assignment.

Request bodies accept snake_case and camelCase field names. Responses
always carry the resolved channel name and the allowSet capability flag.
"""

from typing import List, Optional

from pydantic import AliasChoices, BaseModel, ConfigDict, Field, field_validator

from backend.src.models import normalize_platform
from backend.src.services.channel_service import ChannelListing, ChannelState


# ============================================================================
# Request Schemas
# ============================================================================


class DeviceChannelRequest(BaseModel):
    """
    Identifies a device of an app.

    Used as the body of PUT /api/channel_self (get current channel).
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
    platform: str
    default_channel: Optional[str] = Field(
        default=None,
        max_length=100,
        validation_alias=AliasChoices("default_channel", "defaultChannel"),
    )

    @field_validator("platform")
    @classmethod
    def validate_platform(cls, v: str) -> str:
        return normalize_platform(v)


class ChannelAssignRequest(DeviceChannelRequest):
    """
    Self-assignment request (POST /api/channel_self).

    Example:
        >>> ChannelAssignRequest.model_validate({
        ...     "appId": "com.example.app",
        ...     "deviceId": "A1B2",
        ...     "platform": "android",
        ...     "channel": "beta",
        ... })
    """

    channel: str = Field(..., min_length=1, max_length=100)


# ============================================================================
# Response Schemas
# ============================================================================


class ChannelStateResponse(BaseModel):
    """Effective channel of a device."""

    model_config = ConfigDict(populate_by_name=True)

    channel: str
    status: str = Field(..., description="override or default")
    allow_set: bool = Field(..., serialization_alias="allowSet")

    @classmethod
    def from_state(cls, state: ChannelState) -> "ChannelStateResponse":
        return cls(channel=state.channel, status=state.status, allow_set=state.allow_set)


class ChannelItemResponse(BaseModel):
    """One entry of the channel list."""

    model_config = ConfigDict(populate_by_name=True)

    id: str = Field(..., description="Channel GUID (chn_xxx)")
    name: str
    public: bool
    allow_set: bool = Field(..., serialization_alias="allowSet")

    @classmethod
    def from_listing(cls, listing: ChannelListing) -> "ChannelItemResponse":
        return cls(
            id=listing.guid,
            name=listing.name,
            public=listing.public,
            allow_set=listing.allow_set,
        )


class ChannelListResponse(BaseModel):
    """Channels a device may see."""

    channels: List[ChannelItemResponse]
