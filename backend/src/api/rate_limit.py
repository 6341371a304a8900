"""
Shared rate limiter for device-facing endpoints.

Keyed by client IP (X-Forwarded-For aware). main.py registers it on
app.state together with the 429 handler.
"""

from slowapi import Limiter

from backend.src.config.settings import get_settings
from backend.src.utils.client_ip import get_client_ip


limiter = Limiter(
    key_func=get_client_ip,
    storage_uri=get_settings().rate_limit_storage_uri,
)


def device_rate_limit() -> str:
    """Per-client limit for device check-ins (OTA_DEVICE_RATE_LIMIT)."""
    return get_settings().device_rate_limit
