"""
Unit tests for request normalization and response serialization.

Tests:
- UpdateCheckRequest field aliases and coercions
- DeviceCheck construction
- serialize_decision wire shapes
- Channel and stats request aliases
"""

import pytest
from pydantic import ValidationError

from backend.src.schemas.channel import ChannelAssignRequest, ChannelStateResponse
from backend.src.schemas.stats import StatsRequest
from backend.src.schemas.update import UpdateCheckRequest, serialize_decision
from backend.src.services.channel_service import ChannelState
from backend.src.services.update_service import NativeGateBlocked, NoUpdate, UpdateAvailable


class TestUpdateCheckRequest:
    """Tests for UpdateCheckRequest."""

    def test_snake_case(self):
        request = UpdateCheckRequest.model_validate({
            "app_id": "com.example.app",
            "device_id": "A1",
            "version_name": "1.1.0",
            "version_build": "42",
            "platform": "ios",
            "default_channel": "beta",
            "is_emulator": True,
            "is_prod": False,
            "plugin_version": "6.0.0",
        })

        check = request.to_device_check()
        assert check.app_id == "com.example.app"
        assert check.device_id == "A1"
        assert check.version_name == "1.1.0"
        assert check.native_build == 42
        assert check.default_channel == "beta"
        assert check.is_emulator is True
        assert check.is_prod is False
        assert check.plugin_version == "6.0.0"

    def test_camel_case(self):
        request = UpdateCheckRequest.model_validate({
            "appId": "com.example.app",
            "deviceId": "A1",
            "versionName": "1.1.0",
            "versionBuild": 42,
            "platform": "Android",
            "defaultChannel": "beta",
            "isEmulator": True,
            "isProd": False,
            "pluginVersion": "6.0.0",
        })

        check = request.to_device_check()
        assert check.platform == "android"
        assert check.version_build == "42"
        assert check.native_build == 42
        assert check.default_channel == "beta"
        assert check.is_emulator is True

    def test_missing_version_is_builtin(self):
        check = UpdateCheckRequest(app_id="com.example.app", platform="ios").to_device_check()

        assert check.version_name == "builtin"
        assert check.native_build == 0
        assert check.device_id is None

    def test_blank_optionals_become_none(self):
        request = UpdateCheckRequest.model_validate({
            "app_id": "com.example.app",
            "platform": "ios",
            "device_id": "  ",
            "channel": "",
            "version_name": " ",
        })

        assert request.device_id is None
        assert request.channel is None
        assert request.to_device_check().version_name == "builtin"

    @pytest.mark.parametrize("build,expected", [("45", 45), ("45b", 45), ("abc", 0), (12.0, 12)])
    def test_native_build_parsing(self, build, expected):
        request = UpdateCheckRequest(app_id="com.example.app", platform="ios", version_build=build)

        assert request.to_device_check().native_build == expected

    def test_unknown_fields_ignored(self):
        request = UpdateCheckRequest.model_validate({
            "app_id": "com.example.app", "platform": "ios", "custom_id": "x",
        })

        assert request.app_id == "com.example.app"

    @pytest.mark.parametrize("body", [
        {"platform": "ios"},
        {"app_id": "com.example.app"},
        {"app_id": "com.example.app", "platform": "web"},
        {"app_id": " ", "platform": "ios"},
    ])
    def test_invalid(self, body):
        with pytest.raises(ValidationError):
            UpdateCheckRequest.model_validate(body)


class TestSerializeDecision:
    """Tests for serialize_decision()."""

    def test_update_available(self):
        decision = UpdateAvailable(
            bundle_guid="bnd_x",
            version="1.2.0",
            download_url="https://cdn/x.zip",
            checksum="a" * 64,
            session_key="iv:key",
            required=True,
            manifest=[{"file_name": "index.js"}],
            channel="production",
            bundle_id=7,
        )

        assert serialize_decision(decision) == {
            "version": "1.2.0",
            "downloadUrl": "https://cdn/x.zip",
            "checksum": "a" * 64,
            "sessionKey": "iv:key",
            "required": True,
            "manifest": [{"file_name": "index.js"}],
        }

    def test_update_available_omits_empty_optionals(self):
        decision = UpdateAvailable(
            bundle_guid="bnd_x", version="1.2.0", download_url="u", checksum="c",
        )

        assert serialize_decision(decision) == {
            "version": "1.2.0", "downloadUrl": "u", "checksum": "c", "required": False,
        }

    def test_native_gate(self):
        decision = NativeGateBlocked(required_native_version=50, native_build=40, version="1.2.0")

        assert serialize_decision(decision) == {
            "message": "native_update_required",
            "error": "Native version 50 required. You have 40.",
            "requiredNativeVersion": 50,
        }

    def test_no_update(self):
        assert serialize_decision(NoUpdate(reason="already_current")) == {}

    def test_unknown_decision(self):
        with pytest.raises(TypeError):
            serialize_decision(object())


class TestChannelSchemas:
    """Tests for channel request/response schemas."""

    def test_assign_request_aliases(self):
        request = ChannelAssignRequest.model_validate({
            "appId": "com.example.app", "deviceId": "A1", "platform": "IOS", "channel": "beta",
        })

        assert request.app_id == "com.example.app"
        assert request.device_id == "A1"
        assert request.platform == "ios"

    def test_assign_request_requires_channel(self):
        with pytest.raises(ValidationError):
            ChannelAssignRequest.model_validate({
                "app_id": "com.example.app", "device_id": "A1", "platform": "ios",
            })

    def test_state_response_alias(self):
        response = ChannelStateResponse.from_state(ChannelState("beta", "override", True))

        assert response.model_dump(by_alias=True) == {
            "channel": "beta", "status": "override", "allowSet": True,
        }


class TestStatsRequest:
    """Tests for StatsRequest."""

    def test_status_is_action_synonym(self):
        request = StatsRequest.model_validate({
            "appId": "com.example.app", "deviceId": "A1", "status": "set", "bundleId": "bnd_x",
        })

        assert request.action == "set"
        assert request.bundle_id == "bnd_x"

    def test_blank_platform_is_none(self):
        request = StatsRequest(app_id="com.example.app", device_id="A1", platform=" ")

        assert request.platform is None
