"""
Pytest configuration and fixtures for backend tests.

Provides shared fixtures for:
- Test database sessions
- Sample data factories (apps, bundles, channels, devices)
- RSA key pair for encrypted bundles
- FastAPI test client
"""

import os
import pytest
from sqlalchemy.orm import sessionmaker

# Set test environment variables before importing app modules
os.environ['OTA_DB_URL'] = 'sqlite:///:memory:'
os.environ['OTA_DEFAULT_CHANNEL'] = 'production'
os.environ.pop('OTA_DOWNLOAD_SIGNING_KEY', None)
os.environ.pop('OTA_STORAGE_BASE_URL', None)

from backend.src.config.settings import get_settings
from backend.src.db.database import create_db_engine
from backend.src.models import Base, App, Bundle, Channel, Device
from backend.src.utils.crypto import compute_checksum, generate_key_pair


# ============================================================================
# Database Fixtures
# ============================================================================

@pytest.fixture(scope='function')
def test_db_engine():
    """Fresh in-memory SQLite schema per test (foreign keys enforced)."""
    engine = create_db_engine('sqlite:///:memory:')
    Base.metadata.create_all(engine)
    yield engine
    Base.metadata.drop_all(engine)
    engine.dispose()


@pytest.fixture(scope='function')
def test_db_session(test_db_engine):
    """Session bound to the per-test engine; uncommitted work is discarded."""
    session = sessionmaker(autoflush=False, bind=test_db_engine)()
    try:
        yield session
    finally:
        session.rollback()
        session.close()


@pytest.fixture(autouse=True)
def clear_settings_cache():
    """Re-read settings from the environment for every test."""
    get_settings.cache_clear()
    yield
    get_settings.cache_clear()


# ============================================================================
# Crypto Fixtures
# ============================================================================

@pytest.fixture(scope='session')
def rsa_key_pair():
    """(private_pem, public_pem) shared across the test session."""
    return generate_key_pair()


# ============================================================================
# Sample Data Factories
# ============================================================================

@pytest.fixture
def sample_app(test_db_session):
    """Factory for creating sample App models in the database."""
    def _create(app_id='com.example.app', name='Example App'):
        app = App(app_id=app_id, name=name)
        test_db_session.add(app)
        test_db_session.commit()
        test_db_session.refresh(app)
        return app
    return _create


@pytest.fixture
def sample_bundle(test_db_session, sample_app):
    """Factory for creating sample Bundle models in the database."""
    def _create(
        app=None,
        platform='ios',
        version='1.2.0',
        external_url=None,
        storage_path=None,
        checksum=None,
        session_key=None,
        manifest=None,
        min_native_version=0,
        required=False,
        active=True,
        deleted=False,
    ):
        if app is None:
            app = App.find_by_app_id(test_db_session, 'com.example.app') or sample_app()
        if external_url is None and storage_path is None:
            external_url = f'https://cdn.example.com/{platform}/{version}.zip'
        bundle = Bundle(
            app_id=app.id,
            platform=platform,
            version=version,
            external_url=external_url,
            storage_path=storage_path,
            checksum=checksum or compute_checksum(f'bundle-{platform}-{version}'.encode()),
            session_key=session_key,
            manifest_json=manifest,
            min_native_version=min_native_version,
            required=required,
            active=active,
            deleted=deleted,
        )
        test_db_session.add(bundle)
        test_db_session.commit()
        test_db_session.refresh(bundle)
        return bundle
    return _create


@pytest.fixture
def sample_channel(test_db_session, sample_app):
    """Factory for creating sample Channel models in the database."""
    def _create(
        app=None,
        name='production',
        active_bundle=None,
        is_public=True,
        allow_device_self_assign=False,
        allow_dev_builds=True,
        allow_emulator=True,
        ios_enabled=True,
        android_enabled=True,
    ):
        if app is None:
            app = App.find_by_app_id(test_db_session, 'com.example.app') or sample_app()
        channel = Channel(
            app_id=app.id,
            name=name,
            active_bundle_id=active_bundle.id if active_bundle is not None else None,
            is_public=is_public,
            allow_device_self_assign=allow_device_self_assign,
            allow_dev_builds=allow_dev_builds,
            allow_emulator=allow_emulator,
            ios_enabled=ios_enabled,
            android_enabled=android_enabled,
        )
        test_db_session.add(channel)
        test_db_session.commit()
        test_db_session.refresh(channel)
        return channel
    return _create


@pytest.fixture
def sample_device(test_db_session, sample_app):
    """Factory for creating sample Device models in the database."""
    def _create(
        app=None,
        device_id='device-1',
        platform='ios',
        version_name='1.0.0',
        channel_override=None,
    ):
        if app is None:
            app = App.find_by_app_id(test_db_session, 'com.example.app') or sample_app()
        device = Device(
            app_id=app.id,
            device_id=device_id,
            platform=platform,
            version_name=version_name,
            channel_override=channel_override,
        )
        test_db_session.add(device)
        test_db_session.commit()
        test_db_session.refresh(device)
        return device
    return _create


@pytest.fixture
def published_app(sample_app, sample_bundle, sample_channel):
    """
    App "com.example.app" whose "production" channel serves iOS bundle 1.2.0.

    Returns:
        Tuple of (app, channel, bundle)
    """
    app = sample_app()
    bundle = sample_bundle(app=app, version='1.2.0')
    channel = sample_channel(app=app, name='production', active_bundle=bundle)
    return app, channel, bundle


# ============================================================================
# FastAPI Test Client Fixture
# ============================================================================

@pytest.fixture
def test_client(test_db_session):
    """Create a test client for FastAPI application."""
    from fastapi.testclient import TestClient
    from backend.src.main import app
    from backend.src.api.rate_limit import limiter
    from backend.src.db.database import get_db

    def get_test_db():
        try:
            yield test_db_session
        finally:
            pass

    app.dependency_overrides[get_db] = get_test_db
    limiter.reset()

    with TestClient(app) as client:
        yield client

    # Clear overrides
    app.dependency_overrides.clear()
