"""
Download URL resolution for bundle artifacts.

Bundles hosted elsewhere carry an external URL that is passed through
unchanged. Bundles in our blob store carry a storage path that is joined
to OTA_STORAGE_BASE_URL and, when OTA_DOWNLOAD_SIGNING_KEY is set,
signed with a time-limited HMAC-SHA256 signature.
"""

import hashlib
import hmac
import time
from typing import Optional, Tuple
from urllib.parse import quote, urlencode

from backend.src.config.settings import AppSettings
from backend.src.models import Bundle


# Default signed URL validity period (1 hour)
DEFAULT_SIGNED_URL_EXPIRY_SECONDS = 3600


def _sign(bundle_guid: str, storage_path: str, expires: int, secret_key: str) -> str:
    message = f"{bundle_guid}:{storage_path}:{expires}"
    return hmac.new(
        secret_key.encode(),
        message.encode(),
        hashlib.sha256,
    ).hexdigest()


def _join_url(base_url: str, storage_path: str) -> str:
    path = quote(storage_path.lstrip("/"), safe="/")
    if not base_url:
        return f"/{path}"
    return f"{base_url.rstrip('/')}/{path}"


def generate_signed_download_url(
    bundle_guid: str,
    storage_path: str,
    base_url: str,
    secret_key: str,
    expires_in_seconds: int = DEFAULT_SIGNED_URL_EXPIRY_SECONDS,
) -> Tuple[str, int]:
    """
    Generate a time-limited signed download URL.

    The signature is HMAC-SHA256 over "<bundle_guid>:<storage_path>:<expires>".

    Args:
        bundle_guid: Bundle GUID (e.g., "bnd_01hgw2bbg...")
        storage_path: Path of the artifact inside the blob store
        base_url: Blob store base URL
        secret_key: HMAC signing key (OTA_DOWNLOAD_SIGNING_KEY)
        expires_in_seconds: URL validity period (default: 3600 = 1 hour)

    Returns:
        Tuple of (url, expires_timestamp)
    """
    expires = int(time.time()) + expires_in_seconds
    signature = _sign(bundle_guid, storage_path, expires, secret_key)
    query = urlencode({"bundle": bundle_guid, "expires": expires, "signature": signature})
    return f"{_join_url(base_url, storage_path)}?{query}", expires


def verify_signed_download_url(
    bundle_guid: str,
    storage_path: str,
    expires: int,
    signature: str,
    secret_key: str,
) -> Tuple[bool, Optional[str]]:
    """
    Verify a signed download URL.

    Checks expiry first, then the signature in constant time.

    Returns:
        Tuple of (is_valid, error_message). error_message is None when valid.
    """
    if int(time.time()) > expires:
        return False, "Download link has expired"

    expected = _sign(bundle_guid, storage_path, expires, secret_key)
    if not hmac.compare_digest(signature or "", expected):
        return False, "Invalid download link signature"

    return True, None


def resolve_download_url(bundle: Bundle, settings: AppSettings) -> str:
    """
    Resolve the URL a device should download the bundle from.

    Args:
        bundle: Bundle being offered
        settings: Application settings (storage base URL, signing key)

    Returns:
        Download URL (external URL unchanged, or storage URL, signed when
        a signing key is configured)

    Raises:
        ValueError: If the bundle has neither an external URL nor a
            storage path
    """
    if bundle.external_url:
        return bundle.external_url

    if not bundle.storage_path:
        raise ValueError(f"Bundle {bundle.guid} has no artifact location")

    if settings.signing_configured:
        url, _ = generate_signed_download_url(
            bundle.guid,
            bundle.storage_path,
            settings.storage_base_url,
            settings.download_signing_key,
            expires_in_seconds=settings.download_url_expiry_seconds,
        )
        return url

    return _join_url(settings.storage_base_url, bundle.storage_path)
