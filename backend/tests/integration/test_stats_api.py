"""
Integration tests for device lifecycle statistics endpoints.
"""

import pytest

from backend.src.models import DeviceEvent


class TestStats:
    """Tests for POST /api/stats and the legacy routes."""

    def test_record_action(self, test_client, test_db_session, published_app):
        _, _, bundle = published_app

        response = test_client.post("/api/stats", json={
            "app_id": "com.example.app",
            "device_id": "device-1",
            "action": "download_complete",
            "platform": "ios",
            "version_name": "1.1.0",
            "bundle_id": bundle.guid,
        })

        assert response.status_code == 200
        assert response.json() == {"status": "ok"}
        event = test_db_session.query(DeviceEvent).one()
        assert event.action == "download_complete"
        assert event.bundle_id == bundle.id
        assert event.new_version == "1.2.0"

    def test_status_alias(self, test_client, test_db_session, published_app):
        response = test_client.post("/api/stats", json={
            "appId": "com.example.app", "deviceId": "device-1", "status": "set",
        })

        assert response.status_code == 200
        assert test_db_session.query(DeviceEvent).one().action == "set"

    @pytest.mark.parametrize("route,action", [
        ("/api/downloaded", "downloaded"),
        ("/api/applied", "applied"),
        ("/api/failed", "failed"),
    ])
    def test_legacy_routes(self, test_client, test_db_session, published_app, route, action):
        response = test_client.post(route, json={"app_id": "com.example.app", "device_id": "device-1"})

        assert response.status_code == 200
        assert test_db_session.query(DeviceEvent).one().action == action

    def test_missing_action(self, test_client, published_app):
        response = test_client.post("/api/stats", json={"app_id": "com.example.app", "device_id": "device-1"})

        assert response.status_code == 400

    def test_unknown_app(self, test_client):
        response = test_client.post("/api/stats", json={
            "app_id": "com.unknown", "device_id": "device-1", "action": "set",
        })

        assert response.status_code == 404

    def test_invalid_platform(self, test_client, published_app):
        response = test_client.post("/api/stats", json={
            "app_id": "com.example.app", "device_id": "device-1", "action": "set", "platform": "web",
        })

        assert response.status_code == 422

    def test_bundle_id_longer_than_a_version(self, test_client, test_db_session, published_app):
        response = test_client.post("/api/stats", json={
            "app_id": "com.example.app", "device_id": "device-1", "action": "set", "bundle_id": "b" * 51,
        })

        assert response.status_code == 422
        assert test_db_session.query(DeviceEvent).count() == 0

    def test_bundle_id_at_version_width(self, test_client, test_db_session, published_app):
        response = test_client.post("/api/stats", json={
            "app_id": "com.example.app", "device_id": "device-1", "action": "set", "bundle_id": "b" * 50,
        })

        assert response.status_code == 200
        assert test_db_session.query(DeviceEvent).one().new_version == "b" * 50
