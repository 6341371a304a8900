"""
Configuration module for the OTA update server.

Provides centralized configuration for channel defaults, bundle storage
URLs, download URL signing and rate limiting.
"""

from backend.src.config.settings import AppSettings, get_settings

__all__ = [
    "AppSettings",
    "get_settings",
]
