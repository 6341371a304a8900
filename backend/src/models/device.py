"""
Device model.

One row per (app, device) pair, upserted on every update check so the
server knows the last reported runtime state of each installation.
channel_override pins the device to a channel by name; NULL means it
follows the app's default channel.
"""

from datetime import datetime

from sqlalchemy import (
    Column, Integer, String, DateTime, Boolean, ForeignKey, UniqueConstraint,
)

from backend.src.models import Base


class Device(Base):
    """
    Last-known state of a device installation.

    Attributes:
        app_id: FK to apps.id
        device_id: Opaque device identifier sent by the plugin
        platform: "ios" or "android"
        version_name: Bundle version the device currently runs
        version_build: Native build the device reported
        is_emulator / is_prod: Runtime flags reported by the plugin
        plugin_version: Updater plugin version
        channel_override: Channel name the device is pinned to (nullable)
        last_seen_at: Time of the last update check
    """

    __tablename__ = "devices"

    id = Column(Integer, primary_key=True, autoincrement=True)

    app_id = Column(
        Integer,
        ForeignKey("apps.id", ondelete="CASCADE"),
        nullable=False,
    )
    device_id = Column(String(255), nullable=False)

    platform = Column(String(20), nullable=True)
    version_name = Column(String(50), nullable=True)
    version_build = Column(String(50), nullable=True)
    is_emulator = Column(Boolean, default=False, nullable=False)
    is_prod = Column(Boolean, default=True, nullable=False)
    plugin_version = Column(String(50), nullable=True)

    channel_override = Column(String(100), nullable=True)

    last_seen_at = Column(DateTime, default=datetime.utcnow, nullable=False)
    created_at = Column(DateTime, default=datetime.utcnow, nullable=False)
    updated_at = Column(
        DateTime,
        default=datetime.utcnow,
        onupdate=datetime.utcnow,
        nullable=False
    )

    __table_args__ = (
        UniqueConstraint('app_id', 'device_id', name='uq_devices_app_device'),
    )

    def __repr__(self) -> str:
        return (
            f"<Device(device_id='{self.device_id}', platform='{self.platform}', "
            f"version_name='{self.version_name}', channel_override={self.channel_override!r})>"
        )
