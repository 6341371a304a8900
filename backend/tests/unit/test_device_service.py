"""
Unit tests for DeviceService.

Tests:
- Atomic device upsert (no duplicates, partial updates)
- Channel override set / clear
- Lifecycle stats recording
"""

import pytest

from backend.src.models import App, Device, DeviceEvent
from backend.src.services.device_service import DeviceService
from backend.src.services.exceptions import NotFoundError, ValidationError


@pytest.fixture
def device_service(test_db_session):
    return DeviceService(test_db_session)


def _devices(db, app):
    return db.query(Device).filter(Device.app_id == app.id).all()


class TestUpsertDevice:
    """Tests for upsert_device()."""

    def test_inserts_new_device(self, device_service, test_db_session, sample_app):
        app = sample_app()

        device_service.upsert_device(app, "device-1", platform="ios", version_name="1.0.0")
        test_db_session.commit()

        devices = _devices(test_db_session, app)
        assert len(devices) == 1
        assert devices[0].platform == "ios"
        assert devices[0].version_name == "1.0.0"
        assert devices[0].is_prod is True
        assert devices[0].last_seen_at is not None

    def test_updates_existing_device(self, device_service, test_db_session, sample_app):
        app = sample_app()
        device_service.upsert_device(app, "device-1", platform="ios", version_name="1.0.0")
        device_service.upsert_device(app, "device-1", version_name="1.1.0", is_emulator=True)
        test_db_session.commit()

        devices = _devices(test_db_session, app)
        assert len(devices) == 1
        assert devices[0].version_name == "1.1.0"
        assert devices[0].is_emulator is True
        # Not reported on the second call, so kept
        assert devices[0].platform == "ios"

    def test_preserves_channel_override_when_not_given(self, device_service, test_db_session, sample_device):
        device = sample_device(channel_override="beta")
        app = App.find_by_app_id(test_db_session, "com.example.app")

        device_service.upsert_device(app, "device-1", version_name="2.0.0")
        test_db_session.commit()
        test_db_session.refresh(device)

        assert device.channel_override == "beta"
        assert device.version_name == "2.0.0"

    def test_same_device_id_in_two_apps(self, device_service, test_db_session, sample_app):
        first = sample_app()
        second = sample_app(app_id="com.other.app")

        device_service.upsert_device(first, "device-1", platform="ios")
        device_service.upsert_device(second, "device-1", platform="android")
        test_db_session.commit()

        assert test_db_session.query(Device).count() == 2

    def test_requires_device_id(self, device_service, sample_app):
        with pytest.raises(ValidationError) as exc_info:
            device_service.upsert_device(sample_app(), "")

        assert exc_info.value.field == "device_id"


class TestChannelOverride:
    """Tests for set_channel_override()."""

    def test_set_and_clear(self, device_service, test_db_session, sample_app):
        app = sample_app()

        device_service.set_channel_override(app, "device-1", "beta", platform="ios")
        device = device_service.get_device(app, "device-1")
        assert device.channel_override == "beta"

        device_service.set_channel_override(app, "device-1", None, platform="ios")
        test_db_session.refresh(device)
        assert device.channel_override is None

    def test_get_device_unknown(self, device_service, sample_app):
        app = sample_app()

        assert device_service.get_device(app, "nope") is None
        assert device_service.get_device(app, None) is None


class TestRecordStats:
    """Tests for record_stats()."""

    def test_records_event_and_upserts_device(self, device_service, test_db_session, sample_app):
        app = sample_app()

        event = device_service.record_stats(
            "com.example.app", "device-1", "download_complete",
            platform="ios", version_name="1.1.0", bundle_ref="1.2.0",
        )

        assert event.action == "download_complete"
        assert event.new_version == "1.2.0"
        assert event.bundle_id is None
        assert len(_devices(test_db_session, app)) == 1

    def test_resolves_bundle_guid(self, device_service, published_app):
        _, _, bundle = published_app

        event = device_service.record_stats(
            "com.example.app", "device-1", "set", bundle_ref=bundle.guid,
        )

        assert event.bundle_id == bundle.id
        assert event.new_version == "1.2.0"

    def test_ignores_guid_of_other_app(self, device_service, sample_app, sample_bundle):
        sample_app()
        other = sample_app(app_id="com.other.app")
        foreign = sample_bundle(app=other)

        event = device_service.record_stats("com.example.app", "device-1", "set", bundle_ref=foreign.guid)

        assert event.bundle_id is None

    def test_strips_action(self, device_service, sample_app):
        sample_app()

        event = device_service.record_stats("com.example.app", "device-1", "  update_fail ")

        assert event.action == "update_fail"

    def test_unknown_app(self, device_service, test_db_session):
        with pytest.raises(NotFoundError):
            device_service.record_stats("com.unknown", "device-1", "set")

        assert test_db_session.query(DeviceEvent).count() == 0

    @pytest.mark.parametrize("action", ["", "   "])
    def test_blank_action(self, device_service, sample_app, action):
        sample_app()

        with pytest.raises(ValidationError):
            device_service.record_stats("com.example.app", "device-1", action)

    def test_missing_device_id(self, device_service, sample_app):
        sample_app()

        with pytest.raises(ValidationError):
            device_service.record_stats("com.example.app", "", "set")

    def test_overlong_bundle_ref(self, device_service, test_db_session, sample_app):
        sample_app()

        with pytest.raises(ValidationError) as exc_info:
            device_service.record_stats("com.example.app", "device-1", "set", bundle_ref="b" * 51)

        assert exc_info.value.field == "bundle_id"
        assert test_db_session.query(DeviceEvent).count() == 0
