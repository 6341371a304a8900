"""
SQLAlchemy models for the OTA update server.

This module provides the declarative base class and imports all models
to ensure they are registered with SQLAlchemy's metadata.
"""

from sqlalchemy.orm import declarative_base

# All models inherit from this Base class
Base = declarative_base()


# Import all models here so they are registered with Base.metadata
# This is required for Alembic autogenerate to detect models
from backend.src.models.app import App
from backend.src.models.bundle import (
    Bundle,
    VALID_PLATFORMS,
    normalize_manifest,
    normalize_platform,
)
from backend.src.models.channel import Channel
from backend.src.models.device import Device
from backend.src.models.device_event import DeviceEvent

__all__ = [
    "Base",
    "App",
    "Bundle",
    "Channel",
    "Device",
    "DeviceEvent",
    "VALID_PLATFORMS",
    "normalize_manifest",
    "normalize_platform",
]
