"""
Publish service for apps, channels and bundles.

The administrative side of distribution. The update engine only reads
what this service writes.

Design:
- Publishing inserts the bundle and swaps the channel's active pointer
  with a single UPDATE in the same transaction, so a concurrent check
  sees either the old bundle or the new one, never neither
- Bundle content is immutable; only active/required toggle
- Bundles are soft-deleted, and never while a channel points at them
"""

from typing import Any, Dict, List, Optional

from sqlalchemy import update
from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session

from backend.src.models import App, Bundle, Channel, normalize_manifest, normalize_platform
from backend.src.services.exceptions import ConflictError, NotFoundError, ValidationError
from backend.src.utils.crypto import compute_checksum, normalize_checksum, parse_session_key
from backend.src.utils.logging_config import get_logger


logger = get_logger("services")


class PublishService:
    """
    Service for registering apps, managing channels and publishing bundles.

    Usage:
        >>> service = PublishService(db_session)
        >>> service.register_app("com.example.app", name="Example")
        >>> bundle = service.publish_bundle(
        ...     "com.example.app", "ios", "1.2.0",
        ...     channel="production",
        ...     external_url="https://cdn.example.com/1.2.0.zip",
        ...     artifact=zip_bytes,
        ... )
    """

    def __init__(self, db: Session):
        """
        Initialize publish service.

        Args:
            db: SQLAlchemy database session
        """
        self.db = db

    # =========================================================================
    # Apps
    # =========================================================================

    def register_app(self, app_id: str, name: Optional[str] = None) -> App:
        """
        Register an app, or return it if it already exists.

        Updates the display name when one is given.
        """
        app = App.find_by_app_id(self.db, app_id)
        if app is not None:
            if name and app.name != name:
                app.name = name
                self.db.commit()
                self.db.refresh(app)
            return app

        try:
            app = App(app_id=app_id, name=name)
        except ValueError as e:
            raise ValidationError(str(e), field="app_id")

        self.db.add(app)
        self.db.commit()
        self.db.refresh(app)
        logger.info(f"Registered app '{app.app_id}'")
        return app

    def get_app(self, app_id: str) -> App:
        app = App.find_by_app_id(self.db, app_id)
        if app is None:
            raise NotFoundError("App", app_id)
        return app

    # =========================================================================
    # Channels
    # =========================================================================

    @staticmethod
    def _policy(policy: Dict[str, Any]) -> Dict[str, bool]:
        unknown = set(policy) - set(Channel.POLICY_FIELDS)
        if unknown:
            raise ValidationError(
                f"Unknown channel policy fields: {', '.join(sorted(unknown))}",
                field=sorted(unknown)[0],
            )
        return {key: bool(value) for key, value in policy.items() if value is not None}

    def create_channel(self, app_id: str, name: str, **policy: Any) -> Channel:
        """
        Create a channel for an app.

        Args:
            app_id: External app identifier
            name: Channel name (unique within the app)
            **policy: Channel.POLICY_FIELDS flags

        Raises:
            NotFoundError: If the app is unknown
            ConflictError: If the app already has a channel with this name
            ValidationError: If name or policy is invalid
        """
        app = self.get_app(app_id)
        flags = self._policy(policy)

        existing = Channel.find_by_name(self.db, app.id, name)
        if existing is not None:
            raise ConflictError(
                f"Channel '{existing.name}' already exists for {app.app_id}",
                existing_guid=existing.guid,
            )

        try:
            channel = Channel(app_id=app.id, name=name, **flags)
        except ValueError as e:
            raise ValidationError(str(e), field="name")

        try:
            self.db.add(channel)
            self.db.commit()
        except IntegrityError:
            self.db.rollback()
            raise ConflictError(f"Channel '{name}' already exists for {app_id}")

        self.db.refresh(channel)
        logger.info(f"Created channel '{channel.name}' ({channel.guid}) for {app_id}")
        return channel

    def update_channel_policy(self, app_id: str, name: str, **policy: Any) -> Channel:
        """
        Change a channel's policy flags.

        Raises:
            NotFoundError: If the app or channel is unknown
            ValidationError: If a flag name is unknown
        """
        app = self.get_app(app_id)
        flags = self._policy(policy)

        channel = Channel.find_by_name(self.db, app.id, name)
        if channel is None:
            raise NotFoundError("Channel", name)

        for key, value in flags.items():
            setattr(channel, key, value)
        self.db.commit()
        self.db.refresh(channel)

        logger.info(f"Updated policy of channel '{channel.name}' for {app_id}: {flags}")
        return channel

    def list_bundles(self, app_id: str, platform: Optional[str] = None) -> List[Bundle]:
        """Non-deleted bundles of an app, newest first."""
        app = self.get_app(app_id)
        query = self.db.query(Bundle).filter(
            Bundle.app_id == app.id,
            Bundle.deleted.is_(False),
        )
        if platform:
            query = query.filter(Bundle.platform == normalize_platform(platform))
        return query.order_by(Bundle.created_at.desc(), Bundle.id.desc()).all()

    # =========================================================================
    # Bundles
    # =========================================================================

    def publish_bundle(
        self,
        app_id: str,
        platform: str,
        version: str,
        channel: Optional[str] = None,
        external_url: Optional[str] = None,
        storage_path: Optional[str] = None,
        artifact: Optional[bytes] = None,
        checksum: Optional[str] = None,
        session_key: Optional[str] = None,
        manifest: Optional[List[dict]] = None,
        min_native_version: int = 0,
        required: bool = False,
    ) -> Bundle:
        """
        Publish a bundle and make it the channel's active bundle.

        Args:
            app_id: External app identifier
            platform: "ios" or "android"
            version: Bundle version
            channel: Channel to activate the bundle on (created if missing);
                None only stores the bundle
            external_url: Download URL outside our blob store
            storage_path: Path inside our blob store
            artifact: Artifact bytes as stored (ciphertext when encrypted);
                the checksum is computed from them
            checksum: SHA-256 hex digest, required when artifact is not given
            session_key: "<iv>:<wrapped key>" for encrypted bundles
            manifest: Optional multi-file manifest
            min_native_version: Lowest native build allowed (0 = any)
            required: Force install on devices

        Returns:
            The created Bundle

        Raises:
            NotFoundError: If the app is unknown
            ConflictError: If a non-deleted bundle with the same app,
                platform and version exists
            ValidationError: On invalid platform, version, location,
                checksum, session key, manifest or channel name
        """
        app = self.get_app(app_id)

        if bool(external_url) == bool(storage_path):
            raise ValidationError(
                "Exactly one of external_url or storage_path is required",
                field="external_url",
            )

        try:
            expected = normalize_checksum(checksum) if checksum else None
        except ValueError as e:
            raise ValidationError(str(e), field="checksum")

        if artifact is not None:
            checksum = compute_checksum(artifact)
            if expected and expected != checksum:
                raise ValidationError("Checksum does not match artifact", field="checksum")
        elif expected:
            checksum = expected
        else:
            raise ValidationError("checksum is required when no artifact is given", field="checksum")

        if session_key:
            try:
                parse_session_key(session_key)
            except ValueError as e:
                raise ValidationError(str(e), field="session_key")

        try:
            manifest = normalize_manifest(manifest)
        except ValueError as e:
            raise ValidationError(str(e), field="manifest")

        if channel is not None:
            channel = channel.strip()
            if not channel:
                raise ValidationError("Channel name is required", field="channel")

        try:
            bundle = Bundle(
                app_id=app.id,
                platform=platform,
                version=version,
                external_url=external_url,
                storage_path=storage_path,
                checksum=checksum,
                session_key=session_key,
                manifest_json=manifest,
                min_native_version=min_native_version,
                required=required,
                active=True,
            )
        except ValueError as e:
            raise ValidationError(str(e))

        duplicate = self.db.query(Bundle).filter(
            Bundle.app_id == app.id,
            Bundle.platform == bundle.platform,
            Bundle.version == bundle.version,
            Bundle.deleted.is_(False),
        ).first()
        if duplicate is not None:
            raise ConflictError(
                f"Bundle {bundle.version} for {bundle.platform} already exists",
                existing_guid=duplicate.guid,
            )

        try:
            self.db.add(bundle)
            self.db.flush()

            target = None
            if channel:
                target = Channel.find_by_name(self.db, app.id, channel)
                if target is None:
                    target = Channel(app_id=app.id, name=channel)
                    self.db.add(target)
                    self.db.flush()
                    logger.info(f"Created channel '{target.name}' for {app.app_id} on publish")

                self.db.execute(
                    update(Channel)
                    .where(Channel.id == target.id)
                    .values(active_bundle_id=bundle.id)
                )
            self.db.commit()
        except ValueError as e:
            self.db.rollback()
            raise ValidationError(str(e), field="channel")
        except IntegrityError:
            self.db.rollback()
            raise ConflictError(f"Bundle {version} for {platform} could not be published")

        self.db.refresh(bundle)
        if target is not None:
            self.db.refresh(target)

        logger.info(
            f"Published bundle {bundle.version} ({bundle.guid}) for {app.app_id}/{bundle.platform}"
            + (f" on channel '{channel}'" if channel else ""),
            extra={"app_id": app.app_id, "channel": channel},
        )
        return bundle

    def activate_on_channel(self, app_id: str, channel: str, bundle_guid: str) -> Channel:
        """
        Point an existing channel at an existing bundle (e.g. rollback).

        Raises:
            NotFoundError: If app, channel or bundle is unknown
            ConflictError: If the bundle is deleted or inactive
        """
        app = self.get_app(app_id)
        target = Channel.find_by_name(self.db, app.id, channel)
        if target is None:
            raise NotFoundError("Channel", channel)
        bundle = self._get_bundle(bundle_guid)
        if bundle.app_id != app.id:
            raise NotFoundError("Bundle", bundle_guid)
        if not bundle.is_servable:
            raise ConflictError(f"Bundle {bundle.guid} is not active")

        self.db.execute(
            update(Channel)
            .where(Channel.id == target.id)
            .values(active_bundle_id=bundle.id)
        )
        self.db.commit()
        self.db.refresh(target)
        logger.info(f"Channel '{target.name}' of {app_id} now serves {bundle.version}")
        return target

    def _get_bundle(self, guid: str) -> Bundle:
        bundle = Bundle.find_by_guid(self.db, guid)
        if bundle is None or bundle.deleted:
            raise NotFoundError("Bundle", guid)
        return bundle

    def set_bundle_flags(
        self,
        guid: str,
        active: Optional[bool] = None,
        required: Optional[bool] = None,
    ) -> Bundle:
        """
        Toggle a bundle's active/required flags.

        Raises:
            NotFoundError: If the bundle is unknown or deleted
        """
        bundle = self._get_bundle(guid)
        if active is not None:
            bundle.active = active
        if required is not None:
            bundle.required = required
        self.db.commit()
        self.db.refresh(bundle)

        logger.info(f"Bundle {bundle.guid}: active={bundle.active} required={bundle.required}")
        return bundle

    def delete_bundle(self, guid: str) -> None:
        """
        Soft-delete a bundle.

        Raises:
            NotFoundError: If the bundle is unknown or already deleted
            ConflictError: If a channel still points at the bundle
        """
        bundle = self._get_bundle(guid)

        referencing = self.db.query(Channel).filter(
            Channel.active_bundle_id == bundle.id
        ).all()
        if referencing:
            names = ", ".join(sorted(c.name for c in referencing))
            raise ConflictError(f"Bundle {bundle.guid} is active on channel(s): {names}")

        bundle.deleted = True
        bundle.active = False
        self.db.commit()
        logger.info(f"Deleted bundle {bundle.guid} ({bundle.version})")
