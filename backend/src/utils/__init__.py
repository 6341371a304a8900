"""
Utility modules for the OTA update server.

This package contains shared utilities used across the application:
- crypto: Bundle checksums, encryption and device-side verification
- version: Dotted-numeric bundle version comparison
"""

from backend.src.utils.crypto import (
    BundleVerifier,
    VerificationResult,
    compute_checksum,
    encrypt_bundle,
)
from backend.src.utils.version import (
    BUILTIN_VERSION,
    compare_versions,
    normalize_version,
)

__all__ = [
    "BundleVerifier",
    "VerificationResult",
    "compute_checksum",
    "encrypt_bundle",
    "BUILTIN_VERSION",
    "compare_versions",
    "normalize_version",
]
