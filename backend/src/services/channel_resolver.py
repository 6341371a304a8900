"""
Channel resolver.

Picks the effective channel name for a device and evaluates channel
policy flags. Resolution only chooses a name; whether such a channel
exists is the catalog's concern.

Precedence (highest first):
    1. channel explicitly requested by the caller
    2. device's stored channel override
    3. caller-supplied default channel hint
    4. configured fallback (OTA_DEFAULT_CHANNEL)
"""

from dataclasses import dataclass
from typing import Optional

from backend.src.config.settings import get_settings
from backend.src.models import Channel, Device
from backend.src.services.exceptions import PolicyError


# Channel resolution sources
SOURCE_REQUEST = "request"
SOURCE_OVERRIDE = "override"
SOURCE_DEFAULT_HINT = "default_hint"
SOURCE_FALLBACK = "fallback"

# Eligibility reasons
REASON_PLATFORM_DISABLED = "platform_disabled"
REASON_EMULATOR_NOT_ALLOWED = "emulator_not_allowed"
REASON_DEV_BUILD_NOT_ALLOWED = "dev_build_not_allowed"


@dataclass(frozen=True)
class ChannelResolution:
    """Effective channel name and where it came from."""

    name: str
    source: str

    @property
    def is_override(self) -> bool:
        """True when the device is pinned rather than following a default."""
        return self.source in (SOURCE_REQUEST, SOURCE_OVERRIDE)


def _clean(value: Optional[str]) -> Optional[str]:
    if value is None:
        return None
    value = value.strip()
    return value or None


class ChannelResolver:
    """
    Stateless channel precedence and policy checks.

    Usage:
        >>> resolver = ChannelResolver()
        >>> resolver.resolve_channel(device, default_channel="beta").name
        'beta'
    """

    def __init__(self, fallback_channel: Optional[str] = None):
        self.fallback_channel = fallback_channel or get_settings().default_channel

    def resolve(
        self,
        device: Optional[Device] = None,
        requested_channel: Optional[str] = None,
        default_channel: Optional[str] = None,
    ) -> ChannelResolution:
        """
        Resolve the effective channel.

        Args:
            device: Stored device row (None for first contact)
            requested_channel: Caller-forced channel name
            default_channel: Default channel hint sent by the device

        Returns:
            ChannelResolution with the chosen name and its source
        """
        requested = _clean(requested_channel)
        if requested:
            return ChannelResolution(requested, SOURCE_REQUEST)

        override = _clean(device.channel_override) if device is not None else None
        if override:
            return ChannelResolution(override, SOURCE_OVERRIDE)

        hint = _clean(default_channel)
        if hint:
            return ChannelResolution(hint, SOURCE_DEFAULT_HINT)

        return ChannelResolution(self.fallback_channel, SOURCE_FALLBACK)

    def resolve_channel(
        self,
        device: Optional[Device] = None,
        requested_channel: Optional[str] = None,
        default_channel: Optional[str] = None,
    ) -> str:
        """Resolve the effective channel name only."""
        return self.resolve(device, requested_channel, default_channel).name

    @staticmethod
    def eligibility_reason(
        channel: Channel,
        platform: str,
        is_emulator: bool = False,
        is_prod: bool = True,
    ) -> Optional[str]:
        """
        Check whether a channel may serve the given device.

        Returns:
            None when eligible, else one of the REASON_* constants
        """
        if not channel.platform_enabled(platform):
            return REASON_PLATFORM_DISABLED
        if is_emulator and not channel.allow_emulator:
            return REASON_EMULATOR_NOT_ALLOWED
        if not is_prod and not channel.allow_dev_builds:
            return REASON_DEV_BUILD_NOT_ALLOWED
        return None

    @staticmethod
    def can_self_assign(channel: Channel, platform: str) -> bool:
        """Whether a device on platform may join or leave channel on its own."""
        return bool(channel.allow_device_self_assign) and channel.platform_enabled(platform)

    @staticmethod
    def ensure_self_assignable(channel: Channel, platform: str) -> None:
        """
        Enforce self-assignment policy.

        Raises:
            PolicyError: If the channel is disabled for platform or does not
                allow device self-assignment
        """
        if not channel.platform_enabled(platform):
            raise PolicyError(
                f"Channel '{channel.name}' is not enabled for {platform}",
                channel=channel.name,
            )
        if not channel.allow_device_self_assign:
            raise PolicyError(
                f"Channel '{channel.name}' does not allow device self-assignment",
                channel=channel.name,
            )
