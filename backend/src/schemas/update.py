"""
Pydantic schemas for the device update check.

The updater plugin sends snake_case fields while older dashboard builds
send camelCase; both are accepted here and folded into one canonical
DeviceCheck. Nothing past this boundary looks at raw field names.

Design:
- version_name missing means the device runs its built-in assets
- version_build may be a number or a string; the native build number is
  its leading digit run
- Response shapes are produced from the decision variant, never from
  field presence checks in the engine
"""

from typing import Any, Dict, List, Optional

from pydantic import AliasChoices, BaseModel, ConfigDict, Field, field_validator

from backend.src.models import normalize_platform
from backend.src.services.update_service import (
    DeviceCheck,
    NativeGateBlocked,
    NoUpdate,
    UpdateAvailable,
    UpdateDecision,
)
from backend.src.utils.version import BUILTIN_VERSION, parse_native_build


# ============================================================================
# Request Schemas
# ============================================================================


class UpdateCheckRequest(BaseModel):
    """
    Device update check request.

    Required:
        app_id / appId: External app identifier
        platform: "ios" or "android"

    Example:
        >>> UpdateCheckRequest.model_validate({
        ...     "app_id": "com.example.app",
        ...     "device_id": "A1B2",
        ...     "version_name": "1.1.0",
        ...     "version_build": "42",
        ...     "platform": "ios",
        ... }).to_device_check().native_build
        42
    """

    model_config = ConfigDict(populate_by_name=True, extra="ignore")

    app_id: str = Field(
        ...,
        min_length=1,
        max_length=255,
        validation_alias=AliasChoices("app_id", "appId"),
    )
    device_id: Optional[str] = Field(
        default=None,
        max_length=255,
        validation_alias=AliasChoices("device_id", "deviceId"),
    )
    version_name: Optional[str] = Field(
        default=None,
        max_length=50,
        validation_alias=AliasChoices("version_name", "versionName", "version"),
    )
    version_build: Optional[str] = Field(
        default=None,
        max_length=50,
        validation_alias=AliasChoices("version_build", "versionBuild"),
    )
    platform: str = Field(..., description="ios or android")
    channel: Optional[str] = Field(default=None, max_length=100)
    default_channel: Optional[str] = Field(
        default=None,
        max_length=100,
        validation_alias=AliasChoices("default_channel", "defaultChannel"),
    )
    is_emulator: bool = Field(
        default=False,
        validation_alias=AliasChoices("is_emulator", "isEmulator"),
    )
    is_prod: bool = Field(
        default=True,
        validation_alias=AliasChoices("is_prod", "isProd"),
    )
    plugin_version: Optional[str] = Field(
        default=None,
        max_length=50,
        validation_alias=AliasChoices("plugin_version", "pluginVersion"),
    )

    @field_validator("version_build", mode="before")
    @classmethod
    def coerce_version_build(cls, v: Any) -> Optional[str]:
        """Accept numeric build numbers."""
        if v is None or isinstance(v, bool):
            return None
        if isinstance(v, (int, float)):
            return str(int(v))
        return v

    @field_validator("platform")
    @classmethod
    def validate_platform(cls, v: str) -> str:
        return normalize_platform(v)

    @field_validator("app_id")
    @classmethod
    def validate_app_id(cls, v: str) -> str:
        if not v.strip():
            raise ValueError("app_id must not be blank")
        return v.strip()

    @field_validator("device_id", "version_name", "channel", "default_channel")
    @classmethod
    def strip_blank(cls, v: Optional[str]) -> Optional[str]:
        if v is None:
            return v
        v = v.strip()
        return v or None

    def to_device_check(self) -> DeviceCheck:
        """Build the canonical request consumed by the engine."""
        return DeviceCheck(
            app_id=self.app_id,
            platform=self.platform,
            device_id=self.device_id,
            version_name=self.version_name or BUILTIN_VERSION,
            version_build=self.version_build,
            native_build=parse_native_build(self.version_build),
            channel=self.channel,
            default_channel=self.default_channel,
            is_emulator=self.is_emulator,
            is_prod=self.is_prod,
            plugin_version=self.plugin_version,
        )


# ============================================================================
# Response Schemas
# ============================================================================


class UpdateAvailableResponse(BaseModel):
    """Wire shape of an available update."""

    model_config = ConfigDict(populate_by_name=True)

    version: str
    download_url: str = Field(..., serialization_alias="downloadUrl")
    checksum: str
    session_key: Optional[str] = Field(default=None, serialization_alias="sessionKey")
    required: bool = False
    manifest: Optional[List[Dict[str, Any]]] = None


class NativeUpdateRequiredResponse(BaseModel):
    """Wire shape of a bundle withheld until the native app is updated."""

    model_config = ConfigDict(populate_by_name=True)

    message: str = "native_update_required"
    error: str
    required_native_version: int = Field(..., serialization_alias="requiredNativeVersion")


def serialize_decision(decision: UpdateDecision) -> Dict[str, Any]:
    """
    Render an update decision as the device-facing JSON body.

    Returns:
        {} for NoUpdate, the update object for UpdateAvailable, or the
        native_update_required marker for NativeGateBlocked
    """
    if isinstance(decision, UpdateAvailable):
        return UpdateAvailableResponse(
            version=decision.version,
            download_url=decision.download_url,
            checksum=decision.checksum,
            session_key=decision.session_key,
            required=decision.required,
            manifest=decision.manifest,
        ).model_dump(by_alias=True, exclude_none=True)

    if isinstance(decision, NativeGateBlocked):
        return NativeUpdateRequiredResponse(
            error=decision.message,
            required_native_version=decision.required_native_version,
        ).model_dump(by_alias=True)

    if isinstance(decision, NoUpdate):
        return {}

    raise TypeError(f"Unknown update decision: {type(decision).__name__}")
