"""
Unit tests for BundleCatalog.

Tests the active-bundle lookup for a channel and platform.
"""

import pytest

from backend.src.services.bundle_catalog import BundleCatalog


@pytest.fixture
def catalog(test_db_session):
    return BundleCatalog(test_db_session)


class TestLookups:
    """Tests for get_app() and get_channel()."""

    def test_get_app(self, catalog, sample_app):
        app = sample_app()

        assert catalog.get_app("com.example.app").id == app.id
        assert catalog.get_app("com.unknown") is None

    def test_get_channel(self, catalog, sample_app, sample_channel):
        app = sample_app()
        channel = sample_channel(app=app, name="beta")

        assert catalog.get_channel(app, "beta").id == channel.id
        assert catalog.get_channel(app, "missing") is None
        assert catalog.get_channel(app, None) is None

    def test_channel_scoped_to_app(self, catalog, sample_app, sample_channel):
        app = sample_app()
        other = sample_app(app_id="com.other.app")
        sample_channel(app=other, name="beta")

        assert catalog.get_channel(app, "beta") is None


class TestActiveBundleFor:
    """Tests for active_bundle_for()."""

    def test_returns_active_bundle(self, catalog, published_app):
        app, _, bundle = published_app

        assert catalog.active_bundle_for(app, "production", "ios").id == bundle.id

    def test_platform_case_insensitive(self, catalog, published_app):
        app, _, bundle = published_app

        assert catalog.active_bundle_for(app, "production", "iOS").id == bundle.id

    def test_unknown_channel_is_none(self, catalog, published_app):
        app, _, _ = published_app

        assert catalog.active_bundle_for(app, "nightly", "ios") is None

    def test_channel_without_pointer_is_none(self, catalog, sample_app, sample_channel):
        app = sample_app()
        sample_channel(app=app, name="production")

        assert catalog.active_bundle_for(app, "production", "ios") is None

    def test_other_platform_is_none(self, catalog, published_app):
        app, _, _ = published_app

        assert catalog.active_bundle_for(app, "production", "android") is None

    def test_invalid_platform_is_none(self, catalog, published_app):
        app, _, _ = published_app

        assert catalog.active_bundle_for(app, "production", "windows") is None

    def test_inactive_bundle_is_none(self, catalog, test_db_session, published_app):
        app, _, bundle = published_app
        bundle.active = False
        test_db_session.commit()

        assert catalog.active_bundle_for(app, "production", "ios") is None

    def test_deleted_bundle_is_none(self, catalog, test_db_session, published_app):
        app, _, bundle = published_app
        bundle.deleted = True
        test_db_session.commit()

        assert catalog.active_bundle_for(app, "production", "ios") is None

    def test_pointer_cleared_when_bundle_row_removed(self, catalog, test_db_session, published_app):
        app, channel, bundle = published_app
        test_db_session.delete(bundle)
        test_db_session.commit()
        test_db_session.refresh(channel)

        assert channel.active_bundle_id is None
        assert catalog.active_bundle_for(app, "production", "ios") is None
