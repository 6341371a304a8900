"""
Channel model.

A Channel is a named, policy-governed pointer to at most one active
Bundle of its App. Devices follow the App's default channel unless they
carry an override.

Invariant: active_bundle_id is the single source of truth for what a
channel serves. Publishing swaps it in one UPDATE.
"""

from datetime import datetime

from sqlalchemy import (
    Column, Integer, String, DateTime, Boolean, ForeignKey, UniqueConstraint,
)
from sqlalchemy.orm import relationship, validates

from backend.src.models import Base
from backend.src.models.mixins import GuidMixin
from backend.src.models.bundle import normalize_platform


class Channel(Base, GuidMixin):
    """
    Distribution channel for an app.

    Attributes:
        id: Primary key (internal only)
        uuid/guid: External identifier (chn_xxx)
        app_id: FK to apps.id
        name: Channel name, unique within the app (e.g. "production", "beta")
        active_bundle_id: FK to the bundle currently served (nullable)
        is_public: Listed to devices
        allow_device_self_assign: Devices may join/leave on their own
        allow_dev_builds: Serve to non-production native builds
        allow_emulator: Serve to emulators/simulators
        ios_enabled / android_enabled: Per-platform switches
    """

    __tablename__ = "channels"

    GUID_PREFIX = "chn"

    id = Column(Integer, primary_key=True, autoincrement=True)

    app_id = Column(
        Integer,
        ForeignKey("apps.id", ondelete="CASCADE"),
        nullable=False,
        index=True,
    )

    name = Column(String(100), nullable=False)

    active_bundle_id = Column(
        Integer,
        ForeignKey("bundles.id", ondelete="SET NULL"),
        nullable=True,
    )

    # Policy flags
    is_public = Column(Boolean, default=False, nullable=False)
    allow_device_self_assign = Column(Boolean, default=False, nullable=False)
    allow_dev_builds = Column(Boolean, default=False, nullable=False)
    allow_emulator = Column(Boolean, default=False, nullable=False)
    ios_enabled = Column(Boolean, default=True, nullable=False)
    android_enabled = Column(Boolean, default=True, nullable=False)

    created_at = Column(DateTime, default=datetime.utcnow, nullable=False)
    updated_at = Column(
        DateTime,
        default=datetime.utcnow,
        onupdate=datetime.utcnow,
        nullable=False
    )

    app = relationship("App", back_populates="channels")
    active_bundle = relationship("Bundle", foreign_keys=[active_bundle_id], lazy="joined")

    __table_args__ = (
        UniqueConstraint('app_id', 'name', name='uq_channels_app_name'),
    )

    # Policy flags that PublishService may set
    POLICY_FIELDS = (
        "is_public",
        "allow_device_self_assign",
        "allow_dev_builds",
        "allow_emulator",
        "ios_enabled",
        "android_enabled",
    )

    @validates('name')
    def validate_name(self, key: str, value: str) -> str:
        if not value or not value.strip():
            raise ValueError("Channel name is required")
        value = value.strip()
        if len(value) > 100:
            raise ValueError("Channel name must be at most 100 characters")
        return value

    def platform_enabled(self, platform: str) -> bool:
        """Check whether the channel serves the given platform."""
        platform = normalize_platform(platform)
        if platform == "ios":
            return bool(self.ios_enabled)
        return bool(self.android_enabled)

    def __repr__(self) -> str:
        return (
            f"<Channel(guid='{self.guid}', name='{self.name}', "
            f"active_bundle_id={self.active_bundle_id})>"
        )

    @classmethod
    def find_by_name(cls, db_session, app_id: int, name: str):
        """
        Find a channel of an app by name.

        Args:
            db_session: Database session
            app_id: Internal App id
            name: Channel name

        Returns:
            Channel or None
        """
        if not name:
            return None
        return db_session.query(cls).filter(
            cls.app_id == app_id,
            cls.name == name.strip(),
        ).first()
