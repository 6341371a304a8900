"""
Service-layer errors.

Services raise these; routers turn them into HTTP errors using
``http_status`` and the publish CLI prints ``message``. Database errors
are not wrapped and reach the SQLAlchemy handler in main.
"""

from typing import Any, Optional


class ServiceError(Exception):
    """Base class; ``message`` is safe to show to a device or operator."""

    http_status = 400

    def __init__(self, message: str):
        self.message = message
        super().__init__(message)


class NotFoundError(ServiceError):
    """Unknown app, channel or bundle."""

    http_status = 404

    def __init__(self, resource: str, identifier: Any):
        self.resource = resource
        self.identifier = identifier
        super().__init__(f"{resource} {identifier} not found")


class ConflictError(ServiceError):
    """
    Operation clashes with stored state.

    Duplicate bundle version, duplicate channel name, activating a retired
    bundle, deleting a bundle a channel still serves. ``existing_guid``
    names the row in the way when there is one.
    """

    http_status = 409

    def __init__(self, message: str, existing_guid: Optional[str] = None):
        self.existing_guid = existing_guid
        super().__init__(message)


class ValidationError(ServiceError):
    """Bad input the schema layer could not catch; ``field`` names it."""

    def __init__(self, message: str, field: Optional[str] = None):
        self.field = field
        super().__init__(message)


class PolicyError(ServiceError):
    """A channel's policy refuses the device (self-assignment, platform)."""

    http_status = 403

    def __init__(self, message: str, channel: Optional[str] = None):
        self.channel = channel
        super().__init__(message)
