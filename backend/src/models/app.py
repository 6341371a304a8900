"""
App model.

An App is the logical application that devices check in for. It is
addressed by its stable external identifier (the bundle/package name the
plugin sends as app_id); the integer id is internal only.
"""

from datetime import datetime

from sqlalchemy import Column, Integer, String, DateTime
from sqlalchemy.orm import relationship, validates

from backend.src.models import Base


class App(Base):
    """
    Application registered for OTA updates.

    Attributes:
        id: Primary key (internal, never exposed)
        app_id: External identifier, e.g. "com.example.app" (immutable)
        name: Display name
        created_at: Creation timestamp
        updated_at: Last update timestamp
    """

    __tablename__ = "apps"

    id = Column(Integer, primary_key=True, autoincrement=True)
    app_id = Column(String(255), nullable=False, unique=True, index=True)
    name = Column(String(255), nullable=True)

    created_at = Column(DateTime, default=datetime.utcnow, nullable=False)
    updated_at = Column(
        DateTime,
        default=datetime.utcnow,
        onupdate=datetime.utcnow,
        nullable=False
    )

    channels = relationship(
        "Channel",
        back_populates="app",
        cascade="all, delete-orphan",
        lazy="select",
    )

    @validates('app_id')
    def validate_app_id(self, key: str, value: str) -> str:
        if not value or not value.strip():
            raise ValueError("app_id is required")
        return value.strip()

    def __repr__(self) -> str:
        return f"<App(id={self.id}, app_id='{self.app_id}')>"

    @classmethod
    def find_by_app_id(cls, db_session, app_id: str):
        """
        Find an app by its external identifier.

        Returns:
            App or None
        """
        if not app_id:
            return None
        return db_session.query(cls).filter(cls.app_id == app_id.strip()).first()
