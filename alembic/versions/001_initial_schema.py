"""Initial schema: users, subscriptions, preferences, items, reminders, fcm tokens

Revision ID: 001_initial_schema
Revises:
Create Date: 2026-10-19 09:00:00.000000

"""
from alembic import op
import sqlalchemy as sa

# revision identifiers, used by Alembic.
revision = '001_initial_schema'
down_revision = None
branch_labels = None
depends_on = None

LIVE_STATUS_PREDICATE = sa.text("status IN ('PENDING', 'SENT')")


def upgrade():
    op.create_table(
        'users',
        sa.Column('id', sa.Integer(), primary_key=True),
        sa.Column('email', sa.String(), nullable=False),
        sa.Column('hashed_password', sa.String(), nullable=False),
        sa.Column('first_name', sa.String(), nullable=True),
        sa.Column('last_name', sa.String(), nullable=True),
        sa.Column('is_active', sa.Boolean(), nullable=False, server_default=sa.true()),
        sa.Column('is_superuser', sa.Boolean(), nullable=False, server_default=sa.false()),
        sa.Column('last_login_at', sa.DateTime(), nullable=True),
        sa.Column('password_reset_token_hash', sa.String(), nullable=True),
        sa.Column('password_reset_expires_at', sa.DateTime(), nullable=True),
        sa.Column('created_at', sa.DateTime(), nullable=False),
        sa.Column('updated_at', sa.DateTime(), nullable=False),
    )
    op.create_index('ix_users_id', 'users', ['id'])
    op.create_index('ix_users_email', 'users', ['email'], unique=True)
    op.create_index('ix_users_password_reset_token_hash', 'users', ['password_reset_token_hash'])

    op.create_table(
        'subscriptions',
        sa.Column('id', sa.Integer(), primary_key=True),
        sa.Column('user_id', sa.Integer(), sa.ForeignKey('users.id', ondelete='CASCADE'), nullable=False, unique=True),
        sa.Column('plan', sa.String(), nullable=False, server_default='FREE'),
        sa.Column('status', sa.String(), nullable=False, server_default='ACTIVE'),
        sa.Column('start_date', sa.DateTime(), nullable=False),
        sa.Column('end_date', sa.DateTime(), nullable=True),
    )
    op.create_index('ix_subscriptions_id', 'subscriptions', ['id'])

    op.create_table(
        'notification_preferences',
        sa.Column('id', sa.Integer(), primary_key=True),
        sa.Column('user_id', sa.Integer(), sa.ForeignKey('users.id', ondelete='CASCADE'), nullable=False, unique=True),
        sa.Column('enabled', sa.Boolean(), nullable=False, server_default=sa.true()),
        sa.Column('food_notifications_enabled', sa.Boolean(), nullable=False, server_default=sa.true()),
        sa.Column('document_notifications_enabled', sa.Boolean(), nullable=False, server_default=sa.true()),
        sa.Column('intervals', sa.JSON(), nullable=False),
        sa.Column('quiet_hours_enabled', sa.Boolean(), nullable=False, server_default=sa.false()),
        sa.Column('quiet_hours_start', sa.String(5), nullable=True),
        sa.Column('quiet_hours_end', sa.String(5), nullable=True),
        sa.Column('preferred_time', sa.String(5), nullable=True),
        sa.Column('created_at', sa.DateTime(), nullable=False),
        sa.Column('updated_at', sa.DateTime(), nullable=False),
    )
    op.create_index('ix_notification_preferences_id', 'notification_preferences', ['id'])

    op.create_table(
        'items',
        sa.Column('id', sa.Integer(), primary_key=True),
        sa.Column('user_id', sa.Integer(), sa.ForeignKey('users.id', ondelete='CASCADE'), nullable=False),
        sa.Column('item_type', sa.String(16), nullable=False),
        sa.Column('name', sa.String(), nullable=False),
        sa.Column('expiry_date', sa.Date(), nullable=False),
        sa.Column('notes', sa.Text(), nullable=True),
        sa.Column('photo_url', sa.String(), nullable=True),
        sa.Column('photo_public_id', sa.String(), nullable=True),
        sa.Column('created_at', sa.DateTime(), nullable=False),
        sa.Column('updated_at', sa.DateTime(), nullable=False),
        # Food payload
        sa.Column('category', sa.String(), nullable=True),
        sa.Column('storage_type', sa.String(), nullable=True),
        sa.Column('quantity', sa.String(), nullable=True),
        # Document payload
        sa.Column('document_type', sa.String(), nullable=True),
        sa.Column('custom_type', sa.String(), nullable=True),
        sa.Column('document_number', sa.String(), nullable=True),
        sa.Column('issued_date', sa.Date(), nullable=True),
        sqlite_autoincrement=True,
    )
    op.create_index('ix_items_id', 'items', ['id'])
    op.create_index('ix_items_user_id', 'items', ['user_id'])
    op.create_index('ix_items_expiry_date', 'items', ['expiry_date'])
    op.create_index('ix_items_user_type_expiry', 'items', ['user_id', 'item_type', 'expiry_date'])

    op.create_table(
        'reminders',
        sa.Column('id', sa.Uuid(), primary_key=True),
        sa.Column('user_id', sa.Integer(), sa.ForeignKey('users.id', ondelete='CASCADE'), nullable=False),
        sa.Column('item_id', sa.Integer(), sa.ForeignKey('items.id', ondelete='SET NULL'), nullable=True),
        sa.Column('item_type', sa.String(16), nullable=True),
        sa.Column('offset_days', sa.Integer(), nullable=True),
        sa.Column('job_key', sa.String(), nullable=True),
        sa.Column('job_id', sa.String(), nullable=True),
        sa.Column('title', sa.String(), nullable=True),
        sa.Column('body', sa.String(), nullable=True),
        sa.Column('scheduled_for', sa.DateTime(timezone=True), nullable=False),
        sa.Column('status', sa.String(16), nullable=False, server_default='PENDING'),
        sa.Column('attempts', sa.Integer(), nullable=False, server_default='0'),
        sa.Column('error_message', sa.Text(), nullable=True),
        sa.Column('sent_at', sa.DateTime(timezone=True), nullable=True),
        sa.Column('external_id', sa.String(), nullable=True),
        sa.Column('created_at', sa.DateTime(), nullable=False),
        sa.Column('updated_at', sa.DateTime(), nullable=False),
    )
    op.create_index('ix_reminders_user_id', 'reminders', ['user_id'])
    op.create_index('ix_reminders_item_id', 'reminders', ['item_id'])
    op.create_index('ix_reminders_job_key', 'reminders', ['job_key'])
    op.create_index('ix_reminders_scheduled_for', 'reminders', ['scheduled_for'])
    op.create_index('ix_reminders_external_id', 'reminders', ['external_id'])
    op.create_index('ix_reminders_status_time', 'reminders', ['status', 'scheduled_for'])
    op.create_index('ix_reminders_user_time', 'reminders', ['user_id', 'scheduled_for'])
    # At most one live reminder per key and fire time
    op.create_index(
        'uq_reminders_live_job_key',
        'reminders',
        ['job_key', 'scheduled_for'],
        unique=True,
        postgresql_where=LIVE_STATUS_PREDICATE,
        sqlite_where=LIVE_STATUS_PREDICATE,
    )

    op.create_table(
        'fcm_tokens',
        sa.Column('id', sa.Integer(), primary_key=True),
        sa.Column('token', sa.String(), nullable=False),
        sa.Column('user_id', sa.Integer(), sa.ForeignKey('users.id', ondelete='CASCADE'), nullable=False),
        sa.Column('platform', sa.String(16), nullable=False),
        sa.Column('device_id', sa.String(), nullable=True),
        sa.Column('created_at', sa.DateTime(), nullable=False),
        sa.Column('updated_at', sa.DateTime(), nullable=False),
    )
    op.create_index('ix_fcm_tokens_id', 'fcm_tokens', ['id'])
    op.create_index('ix_fcm_tokens_token', 'fcm_tokens', ['token'], unique=True)
    op.create_index('ix_fcm_tokens_user_id', 'fcm_tokens', ['user_id'])
    op.create_index('ix_fcm_tokens_user_platform', 'fcm_tokens', ['user_id', 'platform'])


def downgrade():
    op.drop_table('fcm_tokens')
    op.drop_index('uq_reminders_live_job_key', table_name='reminders')
    op.drop_table('reminders')
    op.drop_table('items')
    op.drop_table('notification_preferences')
    op.drop_table('subscriptions')
    op.drop_table('users')
