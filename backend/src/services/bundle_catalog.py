"""
Bundle catalog.

Read-only view over published bundles. The only question it answers for
update resolution is "which bundle does this channel serve to this
platform right now?"; an unknown channel and a channel without a
servable bundle both come back as None.
"""

from typing import Optional

from sqlalchemy.orm import Session

from backend.src.models import App, Bundle, Channel, normalize_platform
from backend.src.utils.logging_config import get_logger


logger = get_logger("services")


class BundleCatalog:
    """
    Lookups for apps, channels and their active bundles.

    Usage:
        >>> catalog = BundleCatalog(db_session)
        >>> bundle = catalog.active_bundle_for(app, "production", "ios")
    """

    def __init__(self, db: Session):
        self.db = db

    def get_app(self, app_id: str) -> Optional[App]:
        """Find an app by its external identifier."""
        return App.find_by_app_id(self.db, app_id)

    def get_channel(self, app: App, name: Optional[str]) -> Optional[Channel]:
        """Find a channel of the app by name."""
        if app is None or not name:
            return None
        return Channel.find_by_name(self.db, app.id, name)

    def active_bundle_of(self, channel: Optional[Channel], platform: str) -> Optional[Bundle]:
        """
        Return the channel's active bundle if it can be served to platform.

        Args:
            channel: Channel (may be None)
            platform: Requesting device platform

        Returns:
            Bundle, or None when the channel is missing, has no pointer, or
            points at a bundle of another platform / inactive / deleted
        """
        if channel is None or channel.active_bundle_id is None:
            return None

        bundle = channel.active_bundle
        if bundle is None:
            return None

        try:
            platform = normalize_platform(platform)
        except ValueError:
            return None

        if bundle.platform != platform:
            logger.debug(
                f"Channel '{channel.name}' bundle {bundle.guid} is for "
                f"{bundle.platform}, not {platform}"
            )
            return None
        if not bundle.is_servable:
            return None
        return bundle

    def active_bundle_for(self, app: App, channel_name: str, platform: str) -> Optional[Bundle]:
        """
        Active bundle for an app's named channel and a platform.

        Returns:
            Bundle or None ("nothing published here")
        """
        return self.active_bundle_of(self.get_channel(app, channel_name), platform)
