"""
Bundle model for OTA web-asset releases.

A Bundle is one immutable, versioned release artifact for an App+Platform
pair. Channels point at bundles; the pointer on the Channel, not a flag on
the Bundle, decides what a channel serves.

Design Rationale:
- Content is immutable after publish; only active/required toggle and
  deleted (soft delete) change
- Artifact location is either an external URL or an internal storage
  path resolved to a URL at check time
- checksum is the SHA-256 of the stored bytes (ciphertext when encrypted)
- session_key is present only for encrypted bundles
"""

import re
from datetime import datetime
from typing import Any, Dict, List, Optional

from sqlalchemy import (
    JSON, Column, Integer, String, DateTime, Boolean, Text, ForeignKey, Index,
)
from sqlalchemy.dialects.postgresql import JSONB
from sqlalchemy.orm import relationship, validates

from backend.src.models import Base
from backend.src.models.mixins import GuidMixin
from backend.src.utils.crypto import normalize_checksum, parse_session_key


VALID_PLATFORMS = ("ios", "android")

# Dotted version made of alphanumerics, no path characters
VERSION_PATTERN = re.compile(r'^[0-9A-Za-z][0-9A-Za-z.\-+]*$')


def normalize_platform(value: Optional[str]) -> str:
    """
    Lowercase and validate a platform identifier.

    Raises:
        ValueError: If value is not one of VALID_PLATFORMS
    """
    if not value:
        raise ValueError("Platform is required")
    value = value.strip().lower()
    if value not in VALID_PLATFORMS:
        raise ValueError(
            f"Invalid platform '{value}'. Must be one of: {', '.join(VALID_PLATFORMS)}"
        )
    return value


MANIFEST_FIELDS = ("file_name", "file_hash", "download_url")


def normalize_manifest(value: Any) -> Optional[List[Dict[str, str]]]:
    """
    Validate a multi-file manifest.

    A manifest is a list of {file_name, file_hash, download_url} objects
    with non-empty string values; other keys are dropped. An empty list
    or None means no manifest.

    Raises:
        ValueError: If value is not a list of such objects
    """
    if not value:
        return None
    if not isinstance(value, list):
        raise ValueError("Manifest must be a list of file entries")

    entries = []
    for index, entry in enumerate(value):
        if not isinstance(entry, dict):
            raise ValueError(f"Manifest entry {index} must be an object")
        missing = [
            field for field in MANIFEST_FIELDS
            if not isinstance(entry.get(field), str) or not entry[field].strip()
        ]
        if missing:
            raise ValueError(f"Manifest entry {index} is missing {', '.join(missing)}")
        entries.append({field: entry[field].strip() for field in MANIFEST_FIELDS})
    return entries


class Bundle(Base, GuidMixin):
    """
    Versioned OTA bundle for one app and platform.

    Attributes:
        id: Primary key (internal only)
        uuid/guid: External identifier (bnd_xxx)
        app_id: FK to apps.id
        platform: "ios" or "android"
        version: Bundle version string, e.g. "1.2.0"
        external_url: Download URL when hosted outside our blob store
        storage_path: Path inside our blob store (resolved to a URL on check)
        checksum: SHA-256 hex digest of the stored artifact
        session_key: "<iv>:<wrapped key>" for encrypted bundles, else None
        manifest_json: Optional multi-file manifest
        min_native_version: Lowest native build allowed to install (0 = any)
        required: Forces install on the device
        active: Whether the bundle may be served
        deleted: Soft-delete flag
    """

    __tablename__ = "bundles"

    GUID_PREFIX = "bnd"

    id = Column(Integer, primary_key=True, autoincrement=True)

    app_id = Column(
        Integer,
        ForeignKey("apps.id", ondelete="CASCADE"),
        nullable=False,
    )

    platform = Column(String(20), nullable=False)
    version = Column(String(50), nullable=False)

    # Artifact location (exactly one is set)
    external_url = Column(Text, nullable=True)
    storage_path = Column(String(500), nullable=True)

    # Integrity metadata
    checksum = Column(String(64), nullable=False)
    session_key = Column(String(1024), nullable=True)
    manifest_json = Column(JSON().with_variant(JSONB(), "postgresql"), nullable=True)

    # Install policy
    min_native_version = Column(Integer, default=0, nullable=False)
    required = Column(Boolean, default=False, nullable=False)
    active = Column(Boolean, default=True, nullable=False)
    deleted = Column(Boolean, default=False, nullable=False)

    created_at = Column(DateTime, default=datetime.utcnow, nullable=False)
    updated_at = Column(
        DateTime,
        default=datetime.utcnow,
        onupdate=datetime.utcnow,
        nullable=False
    )

    app = relationship("App", lazy="select")

    __table_args__ = (
        Index('ix_bundles_app_platform_version', 'app_id', 'platform', 'version'),
        Index('ix_bundles_active', 'active'),
    )

    @validates('platform')
    def validate_platform(self, key: str, value: str) -> str:
        return normalize_platform(value)

    @validates('version')
    def validate_version(self, key: str, value: str) -> str:
        if not value or not value.strip():
            raise ValueError("Version is required")
        value = value.strip()
        if not VERSION_PATTERN.match(value):
            raise ValueError(f"Invalid version '{value}'")
        return value

    @validates('checksum')
    def validate_checksum(self, key: str, value: str) -> str:
        return normalize_checksum(value)

    @validates('session_key')
    def validate_session_key(self, key: str, value: Optional[str]) -> Optional[str]:
        if not value:
            return None
        parse_session_key(value)
        return value

    @validates('manifest_json')
    def validate_manifest(self, key: str, value: Any) -> Optional[List[Dict[str, str]]]:
        return normalize_manifest(value)

    @validates('min_native_version')
    def validate_min_native_version(self, key: str, value: Optional[int]) -> int:
        value = value or 0
        if value < 0:
            raise ValueError("min_native_version must be >= 0")
        return value

    @property
    def manifest(self) -> Optional[List[dict]]:
        return self.manifest_json or None

    @property
    def is_encrypted(self) -> bool:
        return bool(self.session_key)

    @property
    def is_servable(self) -> bool:
        """Active and not soft-deleted."""
        return bool(self.active) and not self.deleted

    def __repr__(self) -> str:
        return (
            f"<Bundle(guid='{self.guid}', platform='{self.platform}', "
            f"version='{self.version}', active={self.active})>"
        )
