"""
Channel self-assignment service.

Backs the device-facing channel operations: list eligible channels,
assign the device to a channel, report the effective channel, and clear
the override. Every result carries the resolved channel name and whether
the device may change it on its own (allowSet).

Policy violations raise PolicyError and leave the device row untouched.
"""

from dataclasses import dataclass
from typing import List, Optional

from sqlalchemy.orm import Session

from backend.src.models import App, Channel, normalize_platform
from backend.src.services.bundle_catalog import BundleCatalog
from backend.src.services.channel_resolver import ChannelResolver
from backend.src.services.device_service import DeviceService
from backend.src.services.exceptions import NotFoundError, PolicyError, ValidationError
from backend.src.utils.logging_config import get_logger


logger = get_logger("services")

STATUS_OVERRIDE = "override"
STATUS_DEFAULT = "default"


@dataclass
class ChannelState:
    """Effective channel of a device."""

    channel: str
    status: str
    allow_set: bool


@dataclass
class ChannelListing:
    """One channel a device may see."""

    guid: str
    name: str
    public: bool
    allow_set: bool


class ChannelService:
    """
    Device-facing channel operations.

    Usage:
        >>> service = ChannelService(db_session)
        >>> state = service.assign("com.example.app", "device-1", "ios", "beta")
        >>> state.status
        'override'
    """

    def __init__(self, db: Session, resolver: Optional[ChannelResolver] = None):
        self.db = db
        self.catalog = BundleCatalog(db)
        self.resolver = resolver or ChannelResolver()
        self.devices = DeviceService(db)

    def _get_app(self, app_id: str) -> App:
        app = self.catalog.get_app(app_id)
        if app is None:
            raise NotFoundError("App", app_id)
        return app

    @staticmethod
    def _platform(platform: str) -> str:
        try:
            return normalize_platform(platform)
        except ValueError as e:
            raise ValidationError(str(e), field="platform")

    def _allow_set(self, app: App, channel_name: str, platform: str) -> bool:
        channel = self.catalog.get_channel(app, channel_name)
        return channel is not None and self.resolver.can_self_assign(channel, platform)

    def list_channels(self, app_id: str, platform: str) -> List[ChannelListing]:
        """
        Channels a device on platform may see.

        Includes channels enabled for the platform that are public or
        allow self-assignment, ordered by name.

        Raises:
            NotFoundError: If the app is unknown
            ValidationError: If platform is invalid
        """
        app = self._get_app(app_id)
        platform = self._platform(platform)

        channels = (
            self.db.query(Channel)
            .filter(Channel.app_id == app.id)
            .order_by(Channel.name)
            .all()
        )
        return [
            ChannelListing(
                guid=channel.guid,
                name=channel.name,
                public=bool(channel.is_public),
                allow_set=self.resolver.can_self_assign(channel, platform),
            )
            for channel in channels
            if channel.platform_enabled(platform)
            and (channel.is_public or channel.allow_device_self_assign)
        ]

    def get_current(
        self,
        app_id: str,
        device_id: str,
        platform: str,
        default_channel: Optional[str] = None,
    ) -> ChannelState:
        """
        Effective channel of the device and whether it is an override.

        Raises:
            NotFoundError: If the app is unknown
        """
        app = self._get_app(app_id)
        platform = self._platform(platform)
        device = self.devices.get_device(app, device_id)

        resolution = self.resolver.resolve(device, default_channel=default_channel)
        return ChannelState(
            channel=resolution.name,
            status=STATUS_OVERRIDE if resolution.is_override else STATUS_DEFAULT,
            allow_set=self._allow_set(app, resolution.name, platform),
        )

    def assign(self, app_id: str, device_id: str, platform: str, channel_name: str) -> ChannelState:
        """
        Self-assign the device to a channel.

        Raises:
            NotFoundError: If the app or channel is unknown
            PolicyError: If the channel does not allow self-assignment or
                is disabled for platform
            ValidationError: If channel or platform is invalid
        """
        if not channel_name or not channel_name.strip():
            raise ValidationError("channel is required", field="channel")

        app = self._get_app(app_id)
        platform = self._platform(platform)

        channel = self.catalog.get_channel(app, channel_name)
        if channel is None:
            raise NotFoundError("Channel", channel_name.strip())

        self.resolver.ensure_self_assignable(channel, platform)

        self.devices.set_channel_override(app, device_id, channel.name, platform=platform)
        return ChannelState(channel=channel.name, status=STATUS_OVERRIDE, allow_set=True)

    def clear(
        self,
        app_id: str,
        device_id: str,
        platform: str,
        default_channel: Optional[str] = None,
    ) -> ChannelState:
        """
        Remove the device's channel override.

        A device pinned to a channel that does not allow self-assignment
        was pinned by an administrator and cannot unpin itself.

        Raises:
            NotFoundError: If the app is unknown
            PolicyError: If the current override may not be left by the device
        """
        app = self._get_app(app_id)
        platform = self._platform(platform)
        device = self.devices.get_device(app, device_id)

        if device is not None and device.channel_override:
            current = self.catalog.get_channel(app, device.channel_override)
            if current is not None and not self.resolver.can_self_assign(current, platform):
                raise PolicyError(
                    f"Channel '{current.name}' does not allow device self-assignment",
                    channel=current.name,
                )
            self.devices.set_channel_override(app, device_id, None, platform=platform)
        else:
            logger.debug(f"Device '{device_id}' of {app_id} has no channel override")

        resolution = self.resolver.resolve(None, default_channel=default_channel)
        return ChannelState(
            channel=resolution.name,
            status=STATUS_DEFAULT,
            allow_set=self._allow_set(app, resolution.name, platform),
        )
