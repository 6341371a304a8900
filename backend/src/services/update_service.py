"""
Update resolution engine.

Answers one device check: is there a newer bundle for this device, and
if so which one and how to verify it.

Flow:
    app lookup -> channel resolution -> channel eligibility ->
    active bundle -> version comparison -> native build gate ->
    UpdateAvailable

The outcome is a tagged decision (NoUpdate | UpdateAvailable |
NativeGateBlocked); wire shapes are produced only at the API boundary.
Check-in bookkeeping runs after the decision is final and cannot alter it.
Read-path database errors propagate and fail the request.
"""

from dataclasses import dataclass, field
from typing import Any, Dict, List, Optional, Union

from sqlalchemy.orm import Session

from backend.src.config.settings import get_settings
from backend.src.models import Bundle, DeviceEvent
from backend.src.services.bundle_catalog import BundleCatalog
from backend.src.services.channel_resolver import ChannelResolver
from backend.src.services.device_service import DeviceService
from backend.src.services.download_service import resolve_download_url
from backend.src.utils.logging_config import get_logger
from backend.src.utils.version import BUILTIN_VERSION, is_newer, normalize_version


logger = get_logger("services")


# NoUpdate reasons
REASON_APP_NOT_FOUND = "app_not_found"
REASON_NO_BUNDLE = "no_bundle_for_channel"
REASON_ALREADY_CURRENT = "already_current"
REASON_NATIVE_UPDATE_REQUIRED = "native_update_required"


@dataclass
class DeviceCheck:
    """Canonical device-check request."""

    app_id: str
    platform: str
    device_id: Optional[str] = None
    version_name: str = BUILTIN_VERSION
    version_build: Optional[str] = None
    native_build: int = 0
    channel: Optional[str] = None
    default_channel: Optional[str] = None
    is_emulator: bool = False
    is_prod: bool = True
    plugin_version: Optional[str] = None

    def device_state(self) -> Dict[str, Any]:
        """Device columns observed by this check-in."""
        return {
            "platform": self.platform,
            "version_name": self.version_name,
            "version_build": self.version_build,
            "is_emulator": self.is_emulator,
            "is_prod": self.is_prod,
            "plugin_version": self.plugin_version,
        }


@dataclass
class NoUpdate:
    """Nothing to install."""

    reason: str
    channel: Optional[str] = None


@dataclass
class UpdateAvailable:
    """A strictly newer, installable bundle."""

    bundle_guid: str
    version: str
    download_url: str
    checksum: str
    session_key: Optional[str] = None
    required: bool = False
    manifest: Optional[List[dict]] = None
    channel: Optional[str] = None
    bundle_id: Optional[int] = field(default=None, repr=False)

    @classmethod
    def from_bundle(cls, bundle: Bundle, download_url: str, channel: Optional[str] = None) -> "UpdateAvailable":
        return cls(
            bundle_guid=bundle.guid,
            version=bundle.version,
            download_url=download_url,
            checksum=bundle.checksum,
            session_key=bundle.session_key or None,
            required=bool(bundle.required),
            manifest=bundle.manifest,
            channel=channel,
            bundle_id=bundle.id,
        )


@dataclass
class NativeGateBlocked:
    """A newer bundle exists but needs a newer native binary first."""

    required_native_version: int
    native_build: int
    version: str = ""
    channel: Optional[str] = None
    reason: str = field(default=REASON_NATIVE_UPDATE_REQUIRED, init=False)

    @property
    def message(self) -> str:
        return (
            f"Native version {self.required_native_version} required. "
            f"You have {self.native_build}."
        )


UpdateDecision = Union[NoUpdate, UpdateAvailable, NativeGateBlocked]


class UpdateService:
    """
    Resolve device checks into update decisions.

    Usage:
        >>> service = UpdateService(db_session)
        >>> decision = service.resolve(DeviceCheck(app_id="com.example.app", platform="ios"))
    """

    def __init__(self, db: Session, resolver: Optional[ChannelResolver] = None):
        """
        Initialize update service.

        Args:
            db: SQLAlchemy database session
            resolver: Channel resolver (default uses OTA_DEFAULT_CHANNEL)
        """
        self.db = db
        self.catalog = BundleCatalog(db)
        self.resolver = resolver or ChannelResolver()
        self.devices = DeviceService(db)

    def resolve(self, check: DeviceCheck) -> UpdateDecision:
        """
        Decide whether the device should update.

        Args:
            check: Normalized device check

        Returns:
            NoUpdate, UpdateAvailable or NativeGateBlocked
        """
        app = self.catalog.get_app(check.app_id)
        if app is None:
            logger.info(f"Update check for unknown app '{check.app_id}'")
            return NoUpdate(reason=REASON_APP_NOT_FOUND)

        device = self.devices.get_device(app, check.device_id)
        channel_name = self.resolver.resolve_channel(
            device,
            requested_channel=check.channel,
            default_channel=check.default_channel,
        )

        decision = self._decide(app, channel_name, check)

        logger.info(
            f"Update check {app.app_id}/{check.platform} device={check.device_id} "
            f"channel={channel_name} current={check.version_name}: {self._describe(decision)}",
            extra={"app_id": app.app_id, "channel": channel_name},
        )

        self._record(app, check, decision)
        return decision

    def _decide(self, app, channel_name: str, check: DeviceCheck) -> UpdateDecision:
        channel = self.catalog.get_channel(app, channel_name)
        if channel is None:
            return NoUpdate(reason=REASON_NO_BUNDLE, channel=channel_name)

        reason = self.resolver.eligibility_reason(
            channel,
            check.platform,
            is_emulator=check.is_emulator,
            is_prod=check.is_prod,
        )
        if reason:
            return NoUpdate(reason=reason, channel=channel_name)

        bundle = self.catalog.active_bundle_of(channel, check.platform)
        if bundle is None:
            return NoUpdate(reason=REASON_NO_BUNDLE, channel=channel_name)

        if not is_newer(bundle.version, normalize_version(check.version_name)):
            return NoUpdate(reason=REASON_ALREADY_CURRENT, channel=channel_name)

        min_native = bundle.min_native_version or 0
        if min_native > 0 and check.native_build < min_native:
            return NativeGateBlocked(
                required_native_version=min_native,
                native_build=check.native_build,
                version=bundle.version,
                channel=channel_name,
            )

        download_url = resolve_download_url(bundle, get_settings())
        return UpdateAvailable.from_bundle(bundle, download_url, channel=channel_name)

    @staticmethod
    def _describe(decision: UpdateDecision) -> str:
        if isinstance(decision, UpdateAvailable):
            return f"update {decision.version}"
        if isinstance(decision, NativeGateBlocked):
            return f"native build {decision.required_native_version} required"
        return f"no update ({decision.reason})"

    def _record(self, app, check: DeviceCheck, decision: UpdateDecision) -> None:
        if isinstance(decision, UpdateAvailable):
            action, new_version, details = DeviceEvent.ACTION_GET, decision.version, None
        elif isinstance(decision, NativeGateBlocked):
            action = DeviceEvent.ACTION_NATIVE_UPDATE_REQUIRED
            new_version = decision.version
            details = decision.message
        else:
            action, new_version, details = DeviceEvent.ACTION_NO_NEW, None, decision.reason

        self.devices.record_check_in(
            app,
            check.device_id,
            action,
            check.device_state(),
            new_version=new_version,
            bundle_id=getattr(decision, "bundle_id", None),
            details=details,
        )
