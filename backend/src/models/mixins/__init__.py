"""
Model mixins for shared functionality across entities.
"""

from backend.src.models.mixins.guid import GuidMixin, encode_guid

__all__ = ["GuidMixin", "encode_guid"]
