"""
Service layer for business logic.

This module exports all service classes for use in API endpoints.
"""

from backend.src.services.bundle_catalog import BundleCatalog
from backend.src.services.channel_resolver import ChannelResolver, ChannelResolution
from backend.src.services.channel_service import ChannelService, ChannelState, ChannelListing
from backend.src.services.device_service import DeviceService
from backend.src.services.publish_service import PublishService
from backend.src.services.update_service import (
    UpdateService,
    DeviceCheck,
    NoUpdate,
    UpdateAvailable,
    NativeGateBlocked,
)
from backend.src.services.exceptions import (
    ServiceError,
    NotFoundError,
    ConflictError,
    ValidationError,
    PolicyError,
)

__all__ = [
    "BundleCatalog",
    "ChannelResolver",
    "ChannelResolution",
    "ChannelService",
    "ChannelState",
    "ChannelListing",
    "DeviceService",
    "PublishService",
    "UpdateService",
    "DeviceCheck",
    "NoUpdate",
    "UpdateAvailable",
    "NativeGateBlocked",
    "ServiceError",
    "NotFoundError",
    "ConflictError",
    "ValidationError",
    "PolicyError",
]
