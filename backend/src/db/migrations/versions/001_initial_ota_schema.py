"""Initial OTA schema

Revision ID: 001_initial_ota_schema
Revises:
Create Date: 2026-10-17

Creates the distribution tables:
- apps: applications addressed by their external app_id
- bundles: immutable versioned artifacts per app and platform
- channels: named pointers to one active bundle, with policy flags
- devices: last-known device state, unique per (app_id, device_id)
- device_events: append-only check-in and lifecycle log
"""
from alembic import op
import sqlalchemy as sa
from sqlalchemy.dialects import postgresql


# revision identifiers, used by Alembic.
revision = '001_initial_ota_schema'
down_revision = None
branch_labels = None
depends_on = None


def _uuid_type():
    return sa.Uuid()


def _json_type():
    return postgresql.JSONB().with_variant(sa.JSON(), 'sqlite')


def upgrade() -> None:
    """Create apps, bundles, channels, devices and device_events."""
    op.create_table(
        'apps',
        sa.Column('id', sa.Integer(), autoincrement=True, nullable=False),
        sa.Column('app_id', sa.String(length=255), nullable=False),
        sa.Column('name', sa.String(length=255), nullable=True),
        sa.Column('created_at', sa.DateTime(), nullable=False, server_default=sa.func.now()),
        sa.Column('updated_at', sa.DateTime(), nullable=False, server_default=sa.func.now()),
        sa.PrimaryKeyConstraint('id'),
    )
    op.create_index('ix_apps_app_id', 'apps', ['app_id'], unique=True)

    op.create_table(
        'bundles',
        sa.Column('id', sa.Integer(), autoincrement=True, nullable=False),
        sa.Column('uuid', _uuid_type(), nullable=False),
        sa.Column('app_id', sa.Integer(), nullable=False),
        sa.Column('platform', sa.String(length=20), nullable=False),
        sa.Column('version', sa.String(length=50), nullable=False),
        sa.Column('external_url', sa.Text(), nullable=True),
        sa.Column('storage_path', sa.String(length=500), nullable=True),
        sa.Column('checksum', sa.String(length=64), nullable=False),
        sa.Column('session_key', sa.String(length=1024), nullable=True),
        sa.Column('manifest_json', _json_type(), nullable=True),
        sa.Column('min_native_version', sa.Integer(), nullable=False, server_default='0'),
        sa.Column('required', sa.Boolean(), nullable=False, server_default=sa.false()),
        sa.Column('active', sa.Boolean(), nullable=False, server_default=sa.true()),
        sa.Column('deleted', sa.Boolean(), nullable=False, server_default=sa.false()),
        sa.Column('created_at', sa.DateTime(), nullable=False, server_default=sa.func.now()),
        sa.Column('updated_at', sa.DateTime(), nullable=False, server_default=sa.func.now()),
        sa.ForeignKeyConstraint(['app_id'], ['apps.id'], ondelete='CASCADE'),
        sa.PrimaryKeyConstraint('id'),
    )
    op.create_index('ix_bundles_uuid', 'bundles', ['uuid'], unique=True)
    op.create_index(
        'ix_bundles_app_platform_version', 'bundles', ['app_id', 'platform', 'version']
    )
    op.create_index('ix_bundles_active', 'bundles', ['active'])

    op.create_table(
        'channels',
        sa.Column('id', sa.Integer(), autoincrement=True, nullable=False),
        sa.Column('uuid', _uuid_type(), nullable=False),
        sa.Column('app_id', sa.Integer(), nullable=False),
        sa.Column('name', sa.String(length=100), nullable=False),
        sa.Column('active_bundle_id', sa.Integer(), nullable=True),
        sa.Column('is_public', sa.Boolean(), nullable=False, server_default=sa.false()),
        sa.Column('allow_device_self_assign', sa.Boolean(), nullable=False, server_default=sa.false()),
        sa.Column('allow_dev_builds', sa.Boolean(), nullable=False, server_default=sa.false()),
        sa.Column('allow_emulator', sa.Boolean(), nullable=False, server_default=sa.false()),
        sa.Column('ios_enabled', sa.Boolean(), nullable=False, server_default=sa.true()),
        sa.Column('android_enabled', sa.Boolean(), nullable=False, server_default=sa.true()),
        sa.Column('created_at', sa.DateTime(), nullable=False, server_default=sa.func.now()),
        sa.Column('updated_at', sa.DateTime(), nullable=False, server_default=sa.func.now()),
        sa.ForeignKeyConstraint(['app_id'], ['apps.id'], ondelete='CASCADE'),
        sa.ForeignKeyConstraint(['active_bundle_id'], ['bundles.id'], ondelete='SET NULL'),
        sa.PrimaryKeyConstraint('id'),
        sa.UniqueConstraint('app_id', 'name', name='uq_channels_app_name'),
    )
    op.create_index('ix_channels_uuid', 'channels', ['uuid'], unique=True)
    op.create_index('ix_channels_app_id', 'channels', ['app_id'])

    op.create_table(
        'devices',
        sa.Column('id', sa.Integer(), autoincrement=True, nullable=False),
        sa.Column('app_id', sa.Integer(), nullable=False),
        sa.Column('device_id', sa.String(length=255), nullable=False),
        sa.Column('platform', sa.String(length=20), nullable=True),
        sa.Column('version_name', sa.String(length=50), nullable=True),
        sa.Column('version_build', sa.String(length=50), nullable=True),
        sa.Column('is_emulator', sa.Boolean(), nullable=False, server_default=sa.false()),
        sa.Column('is_prod', sa.Boolean(), nullable=False, server_default=sa.true()),
        sa.Column('plugin_version', sa.String(length=50), nullable=True),
        sa.Column('channel_override', sa.String(length=100), nullable=True),
        sa.Column('last_seen_at', sa.DateTime(), nullable=False, server_default=sa.func.now()),
        sa.Column('created_at', sa.DateTime(), nullable=False, server_default=sa.func.now()),
        sa.Column('updated_at', sa.DateTime(), nullable=False, server_default=sa.func.now()),
        sa.ForeignKeyConstraint(['app_id'], ['apps.id'], ondelete='CASCADE'),
        sa.PrimaryKeyConstraint('id'),
        sa.UniqueConstraint('app_id', 'device_id', name='uq_devices_app_device'),
    )

    op.create_table(
        'device_events',
        sa.Column('id', sa.Integer(), autoincrement=True, nullable=False),
        sa.Column('app_id', sa.Integer(), nullable=False),
        sa.Column('device_id', sa.String(length=255), nullable=False),
        sa.Column('action', sa.String(length=50), nullable=False),
        sa.Column('version_name', sa.String(length=50), nullable=True),
        sa.Column('new_version', sa.String(length=50), nullable=True),
        sa.Column('bundle_id', sa.Integer(), nullable=True),
        sa.Column('platform', sa.String(length=20), nullable=True),
        sa.Column('details', sa.Text(), nullable=True),
        sa.Column('created_at', sa.DateTime(), nullable=False, server_default=sa.func.now()),
        sa.ForeignKeyConstraint(['app_id'], ['apps.id'], ondelete='CASCADE'),
        sa.ForeignKeyConstraint(['bundle_id'], ['bundles.id'], ondelete='SET NULL'),
        sa.PrimaryKeyConstraint('id'),
    )
    op.create_index('ix_device_events_app_device', 'device_events', ['app_id', 'device_id'])
    op.create_index('ix_device_events_created_at', 'device_events', ['created_at'])


def downgrade() -> None:
    """Drop all OTA tables in reverse dependency order."""
    op.drop_index('ix_device_events_created_at', table_name='device_events')
    op.drop_index('ix_device_events_app_device', table_name='device_events')
    op.drop_table('device_events')
    op.drop_table('devices')
    op.drop_index('ix_channels_app_id', table_name='channels')
    op.drop_index('ix_channels_uuid', table_name='channels')
    op.drop_table('channels')
    op.drop_index('ix_bundles_active', table_name='bundles')
    op.drop_index('ix_bundles_app_platform_version', table_name='bundles')
    op.drop_index('ix_bundles_uuid', table_name='bundles')
    op.drop_table('bundles')
    op.drop_index('ix_apps_app_id', table_name='apps')
    op.drop_table('apps')
