"""
Pydantic schemas for API request/response validation.

This module exports all schema classes for use in API endpoints.
"""

from backend.src.schemas.update import (
    UpdateCheckRequest,
    UpdateAvailableResponse,
    NativeUpdateRequiredResponse,
    serialize_decision,
)
from backend.src.schemas.channel import (
    DeviceChannelRequest,
    ChannelAssignRequest,
    ChannelStateResponse,
    ChannelItemResponse,
    ChannelListResponse,
)
from backend.src.schemas.stats import StatsRequest, StatsResponse

__all__ = [
    "UpdateCheckRequest",
    "UpdateAvailableResponse",
    "NativeUpdateRequiredResponse",
    "serialize_decision",
    "DeviceChannelRequest",
    "ChannelAssignRequest",
    "ChannelStateResponse",
    "ChannelItemResponse",
    "ChannelListResponse",
    "StatsRequest",
    "StatsResponse",
]
