"""initial media studio schema

Revision ID: a1c3e5f70001
Revises:
Create Date: 2026-10-19 10:00:00.000000

"""
from alembic import op
import sqlalchemy as sa
from sqlalchemy import inspect


# revision identifiers, used by Alembic.
revision = 'a1c3e5f70001'
down_revision = None
branch_labels = None
depends_on = None


def upgrade() -> None:
    conn = op.get_bind()
    tables = inspect(conn).get_table_names()

    if 'users' not in tables:
        op.create_table(
            'users',
            sa.Column('id', sa.Integer(), nullable=False),
            sa.Column('email', sa.String(), nullable=False),
            sa.Column('hashed_password', sa.String(), nullable=False),
            sa.Column('full_name', sa.String(), nullable=True),
            sa.Column('is_active', sa.Boolean(), nullable=False, server_default=sa.true()),
            sa.Column('is_admin', sa.Boolean(), nullable=False, server_default=sa.false()),
            sa.Column('image_credits', sa.Integer(), nullable=False, server_default='0'),
            sa.Column('video_credits', sa.Integer(), nullable=False, server_default='0'),
            sa.Column('created_at', sa.DateTime(), nullable=False),
            sa.Column('updated_at', sa.DateTime(), nullable=False),
            sa.PrimaryKeyConstraint('id')
        )
        op.create_index(op.f('ix_users_id'), 'users', ['id'], unique=False)
        op.create_index(op.f('ix_users_email'), 'users', ['email'], unique=True)
        op.create_index(op.f('ix_users_is_admin'), 'users', ['is_admin'], unique=False)

    if 'usage_counters' not in tables:
        op.create_table(
            'usage_counters',
            sa.Column('id', sa.Integer(), nullable=False),
            sa.Column('user_id', sa.Integer(), nullable=False),
            sa.Column('image_count', sa.Integer(), nullable=False, server_default='0'),
            sa.Column('video_count', sa.Integer(), nullable=False, server_default='0'),
            sa.Column('updated_at', sa.DateTime(), nullable=False),
            sa.ForeignKeyConstraint(['user_id'], ['users.id'], ondelete='CASCADE'),
            sa.PrimaryKeyConstraint('id'),
            sa.CheckConstraint('image_count >= 0', name='ck_usage_counters_image_count_non_negative'),
            sa.CheckConstraint('video_count >= 0', name='ck_usage_counters_video_count_non_negative'),
        )
        op.create_index(op.f('ix_usage_counters_id'), 'usage_counters', ['id'], unique=False)
        op.create_index(op.f('ix_usage_counters_user_id'), 'usage_counters', ['user_id'], unique=True)

    if 'content_history' not in tables:
        op.create_table(
            'content_history',
            sa.Column('id', sa.Integer(), nullable=False),
            sa.Column('user_id', sa.Integer(), nullable=False),
            sa.Column('content_type', sa.String(), nullable=False),
            sa.Column('content_url', sa.String(), nullable=False),
            sa.Column('prompt', sa.Text(), nullable=True),
            sa.Column('is_public', sa.Boolean(), nullable=False, server_default=sa.false()),
            sa.Column('metadata', sa.JSON(), nullable=True),
            sa.Column('created_at', sa.DateTime(), nullable=False),
            sa.ForeignKeyConstraint(['user_id'], ['users.id'], ondelete='CASCADE'),
            sa.PrimaryKeyConstraint('id')
        )
        op.create_index(op.f('ix_content_history_id'), 'content_history', ['id'], unique=False)
        op.create_index(op.f('ix_content_history_user_id'), 'content_history', ['user_id'], unique=False)
        op.create_index(op.f('ix_content_history_content_type'), 'content_history', ['content_type'], unique=False)
        op.create_index(op.f('ix_content_history_is_public'), 'content_history', ['is_public'], unique=False)
        op.create_index(op.f('ix_content_history_created_at'), 'content_history', ['created_at'], unique=False)
        op.create_index('idx_content_history_user_created', 'content_history', ['user_id', 'created_at'], unique=False)
        op.create_index('idx_content_history_public_created', 'content_history', ['is_public', 'created_at'], unique=False)

    if 'credit_packages' not in tables:
        op.create_table(
            'credit_packages',
            sa.Column('id', sa.String(), nullable=False),
            sa.Column('name', sa.String(), nullable=False),
            sa.Column('description', sa.Text(), nullable=True),
            sa.Column('price', sa.Numeric(12, 2), nullable=False),
            sa.Column('currency', sa.String(3), nullable=False, server_default='KS'),
            sa.Column('image_credits', sa.Integer(), nullable=False, server_default='0'),
            sa.Column('video_credits', sa.Integer(), nullable=False, server_default='0'),
            sa.Column('is_active', sa.Boolean(), nullable=False, server_default=sa.true()),
            sa.Column('created_at', sa.DateTime(), nullable=False),
            sa.PrimaryKeyConstraint('id')
        )

    if 'payment_requests' not in tables:
        op.create_table(
            'payment_requests',
            sa.Column('id', sa.Integer(), nullable=False),
            sa.Column('user_id', sa.Integer(), nullable=False),
            sa.Column('package_id', sa.String(), nullable=False),
            sa.Column('reference_id', sa.String(16), nullable=False),
            sa.Column('amount', sa.Numeric(12, 2), nullable=False),
            sa.Column('currency', sa.String(3), nullable=False),
            sa.Column('payment_method', sa.String(), nullable=False, server_default='bank_transfer'),
            sa.Column('contact_email', sa.String(), nullable=False),
            sa.Column('screenshot_url', sa.String(), nullable=True),
            sa.Column('image_credits', sa.Integer(), nullable=False, server_default='0'),
            sa.Column('video_credits', sa.Integer(), nullable=False, server_default='0'),
            sa.Column('payment_details', sa.JSON(), nullable=True),
            sa.Column('status', sa.String(), nullable=False, server_default='pending'),
            sa.Column('resolved_by', sa.Integer(), nullable=True),
            sa.Column('resolved_at', sa.DateTime(), nullable=True),
            sa.Column('created_at', sa.DateTime(), nullable=False),
            sa.Column('updated_at', sa.DateTime(), nullable=False),
            sa.ForeignKeyConstraint(['user_id'], ['users.id'], ondelete='CASCADE'),
            sa.ForeignKeyConstraint(['package_id'], ['credit_packages.id'], ),
            sa.ForeignKeyConstraint(['resolved_by'], ['users.id'], ondelete='SET NULL'),
            sa.PrimaryKeyConstraint('id')
        )
        op.create_index(op.f('ix_payment_requests_id'), 'payment_requests', ['id'], unique=False)
        op.create_index(op.f('ix_payment_requests_user_id'), 'payment_requests', ['user_id'], unique=False)
        op.create_index(op.f('ix_payment_requests_reference_id'), 'payment_requests', ['reference_id'], unique=True)
        op.create_index(op.f('ix_payment_requests_status'), 'payment_requests', ['status'], unique=False)
        op.create_index(op.f('ix_payment_requests_created_at'), 'payment_requests', ['created_at'], unique=False)

    if 'api_keys' not in tables:
        op.create_table(
            'api_keys',
            sa.Column('id', sa.Integer(), nullable=False),
            sa.Column('user_id', sa.Integer(), nullable=False),
            sa.Column('key_name', sa.String(), nullable=False),
            sa.Column('key_value', sa.String(), nullable=False),
            sa.Column('created_at', sa.DateTime(), nullable=False),
            sa.Column('updated_at', sa.DateTime(), nullable=False),
            sa.ForeignKeyConstraint(['user_id'], ['users.id'], ondelete='CASCADE'),
            sa.PrimaryKeyConstraint('id'),
            sa.UniqueConstraint('user_id', 'key_name', name='uq_api_keys_user_key_name')
        )
        op.create_index(op.f('ix_api_keys_id'), 'api_keys', ['id'], unique=False)
        op.create_index(op.f('ix_api_keys_user_id'), 'api_keys', ['user_id'], unique=False)


def downgrade() -> None:
    for table in ['api_keys', 'payment_requests', 'credit_packages', 'content_history', 'usage_counters', 'users']:
        op.drop_table(table)
