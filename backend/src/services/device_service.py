"""
Device service for check-in bookkeeping.

Keeps the (app, device) row current and appends device events.

Design:
- Device rows are written with INSERT ... ON CONFLICT (app_id, device_id)
  DO UPDATE so concurrent check-ins from one device never create
  duplicates; last writer wins on the observed fields
- Check-in side effects run inside a SAVEPOINT and never propagate: the
  update decision has already been computed when they run
- Stats events are explicit device reports and do propagate failures
"""

from datetime import datetime
from typing import Any, Dict, Optional

from sqlalchemy import update
from sqlalchemy.dialects import postgresql, sqlite
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from backend.src.models import App, Bundle, Device, DeviceEvent
from backend.src.models.device_event import VERSION_MAX_LENGTH
from backend.src.services.exceptions import NotFoundError, ValidationError
from backend.src.utils.logging_config import get_logger


logger = get_logger("services")

# Device columns a check-in may report
DEVICE_STATE_FIELDS = (
    "platform",
    "version_name",
    "version_build",
    "is_emulator",
    "is_prod",
    "plugin_version",
)

_UPSERT_DIALECTS = {
    "postgresql": postgresql.insert,
    "sqlite": sqlite.insert,
}


class DeviceService:
    """
    Service for device rows and device events.

    Usage:
        >>> service = DeviceService(db_session)
        >>> service.set_channel_override(app, "device-1", "beta", platform="ios")
    """

    def __init__(self, db: Session):
        """
        Initialize device service.

        Args:
            db: SQLAlchemy database session
        """
        self.db = db

    def get_device(self, app: App, device_id: Optional[str]) -> Optional[Device]:
        """Find the stored device row, or None."""
        if app is None or not device_id:
            return None
        return self.db.query(Device).filter(
            Device.app_id == app.id,
            Device.device_id == device_id,
        ).first()

    # =========================================================================
    # Upsert
    # =========================================================================

    def upsert_device(self, app: App, device_id: str, **state: Any) -> None:
        """
        Insert or update the device row atomically.

        Only keys passed in state (and whose value is not None) are written
        on conflict; channel_override is written even when None so it can
        be cleared.

        Args:
            app: Owning app
            device_id: Device identifier
            **state: Column values (DEVICE_STATE_FIELDS and channel_override)
        """
        if not device_id:
            raise ValidationError("device_id is required", field="device_id")

        now = datetime.utcnow()
        changes: Dict[str, Any] = {
            key: value for key, value in state.items()
            if value is not None or key == "channel_override"
        }
        changes["last_seen_at"] = now
        changes["updated_at"] = now

        insert_fn = _UPSERT_DIALECTS.get(self.db.get_bind().dialect.name)
        if insert_fn is None:
            self._upsert_fallback(app, device_id, changes)
            return

        stmt = insert_fn(Device).values(
            app_id=app.id,
            device_id=device_id,
            created_at=now,
            **changes,
        )
        stmt = stmt.on_conflict_do_update(
            index_elements=[Device.app_id, Device.device_id],
            set_=changes,
        )
        self.db.execute(stmt)

    def _upsert_fallback(self, app: App, device_id: str, changes: Dict[str, Any]) -> None:
        # Dialects without ON CONFLICT: update first, insert if nothing matched
        result = self.db.execute(
            update(Device)
            .where(Device.app_id == app.id, Device.device_id == device_id)
            .values(**changes)
        )
        if result.rowcount == 0:
            self.db.add(Device(app_id=app.id, device_id=device_id, **changes))
            self.db.flush()

    # =========================================================================
    # Channel override
    # =========================================================================

    def set_channel_override(
        self,
        app: App,
        device_id: str,
        channel_name: Optional[str],
        platform: Optional[str] = None,
    ) -> None:
        """
        Pin the device to a channel, or clear the pin with None.

        Commits the transaction.
        """
        self.upsert_device(
            app,
            device_id,
            platform=platform,
            channel_override=channel_name,
        )
        self.db.commit()
        logger.info(
            f"Device '{device_id}' of {app.app_id} "
            + (f"assigned to channel '{channel_name}'" if channel_name else "reverted to default channel")
        )

    # =========================================================================
    # Events
    # =========================================================================

    def record_event(
        self,
        app: App,
        device_id: str,
        action: str,
        version_name: Optional[str] = None,
        new_version: Optional[str] = None,
        bundle_id: Optional[int] = None,
        platform: Optional[str] = None,
        details: Optional[str] = None,
    ) -> DeviceEvent:
        """Add a device event to the session (caller commits)."""
        event = DeviceEvent(
            app_id=app.id,
            device_id=device_id,
            action=action,
            version_name=version_name,
            new_version=new_version,
            bundle_id=bundle_id,
            platform=platform,
            details=details,
        )
        self.db.add(event)
        return event

    def record_check_in(
        self,
        app: App,
        device_id: Optional[str],
        action: str,
        state: Dict[str, Any],
        new_version: Optional[str] = None,
        bundle_id: Optional[int] = None,
        details: Optional[str] = None,
    ) -> bool:
        """
        Best-effort check-in bookkeeping.

        Upserts the device and appends the check-in event inside a SAVEPOINT.
        Database failures are logged and rolled back, never raised.

        Returns:
            True if the side effect was committed, False if skipped or failed
        """
        if not device_id:
            return False

        app_key = app.app_id
        try:
            with self.db.begin_nested():
                self.upsert_device(app, device_id, **state)
                self.record_event(
                    app,
                    device_id,
                    action,
                    version_name=state.get("version_name"),
                    new_version=new_version,
                    bundle_id=bundle_id,
                    platform=state.get("platform"),
                    details=details,
                )
            self.db.commit()
            return True
        except SQLAlchemyError as e:
            self.db.rollback()
            logger.warning(
                f"Check-in bookkeeping failed for device '{device_id}' of {app_key}: {e}",
                extra={"app_id": app_key, "device_id": device_id, "action": action},
            )
            return False

    def record_stats(
        self,
        app_id: str,
        device_id: str,
        action: str,
        platform: Optional[str] = None,
        version_name: Optional[str] = None,
        bundle_ref: Optional[str] = None,
        details: Optional[str] = None,
    ) -> DeviceEvent:
        """
        Record a lifecycle event reported by a device.

        Args:
            app_id: External app identifier
            device_id: Device identifier
            action: Event name, e.g. "download_complete", "set"
            platform: Device platform
            version_name: Version the device runs
            bundle_ref: Bundle GUID (bnd_xxx) or a plain bundle version
            details: Free-form detail

        Returns:
            The stored DeviceEvent

        Raises:
            NotFoundError: If the app is unknown
            ValidationError: If action or device_id is missing, or bundle_ref
                is longer than a stored version
        """
        if not action or not action.strip():
            raise ValidationError("action is required", field="action")
        if bundle_ref and len(bundle_ref) > VERSION_MAX_LENGTH:
            raise ValidationError(
                f"bundle_id must be at most {VERSION_MAX_LENGTH} characters", field="bundle_id"
            )

        app = App.find_by_app_id(self.db, app_id)
        if app is None:
            raise NotFoundError("App", app_id)

        bundle = Bundle.find_by_guid(self.db, bundle_ref) if bundle_ref else None
        if bundle is not None and bundle.app_id != app.id:
            bundle = None
        new_version = bundle.version if bundle is not None else bundle_ref

        self.upsert_device(
            app,
            device_id,
            platform=platform,
            version_name=version_name,
        )
        event = self.record_event(
            app,
            device_id,
            action.strip(),
            version_name=version_name,
            new_version=new_version,
            bundle_id=bundle.id if bundle is not None else None,
            platform=platform,
            details=details,
        )
        self.db.commit()

        logger.info(
            f"Recorded '{event.action}' for device '{device_id}' of {app.app_id}",
            extra={"app_id": app.app_id, "device_id": device_id, "action": event.action},
        )
        return event
