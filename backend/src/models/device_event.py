"""
DeviceEvent model.

Append-only log of what the server told a device on check-in
(get / native_update_required / no_new) and of the lifecycle events
devices report back (downloaded, applied, failed, ...).
"""

from datetime import datetime

from sqlalchemy import Column, Integer, String, DateTime, Text, ForeignKey, Index

from backend.src.models import Base


# Bundle versions and unresolved bundle references share this width
VERSION_MAX_LENGTH = 50


class DeviceEvent(Base):
    """
    Single device event.

    Attributes:
        app_id: FK to apps.id
        device_id: Opaque device identifier
        action: Event name, e.g. "get", "no_new", "applied"
        version_name: Version the device was running
        new_version: Version offered or installed (nullable)
        bundle_id: Bundle the event refers to (nullable)
        platform: Device platform
        details: Free-form detail, e.g. the no-update reason
    """

    __tablename__ = "device_events"

    # Check-in outcomes
    ACTION_GET = "get"
    ACTION_NATIVE_UPDATE_REQUIRED = "native_update_required"
    ACTION_NO_NEW = "no_new"

    id = Column(Integer, primary_key=True, autoincrement=True)

    app_id = Column(
        Integer,
        ForeignKey("apps.id", ondelete="CASCADE"),
        nullable=False,
    )
    device_id = Column(String(255), nullable=False)
    action = Column(String(50), nullable=False)

    version_name = Column(String(VERSION_MAX_LENGTH), nullable=True)
    new_version = Column(String(VERSION_MAX_LENGTH), nullable=True)
    bundle_id = Column(
        Integer,
        ForeignKey("bundles.id", ondelete="SET NULL"),
        nullable=True,
    )
    platform = Column(String(20), nullable=True)
    details = Column(Text, nullable=True)

    created_at = Column(DateTime, default=datetime.utcnow, nullable=False)

    __table_args__ = (
        Index('ix_device_events_app_device', 'app_id', 'device_id'),
        Index('ix_device_events_created_at', 'created_at'),
    )

    def __repr__(self) -> str:
        return f"<DeviceEvent(device_id='{self.device_id}', action='{self.action}')>"
