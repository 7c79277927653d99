"""Initial schema: users, social connections, authorization attempts, publish records

Revision ID: a1c2e3f4b5d6
Revises:
Create Date: 2026-10-19

Creates tables for:
- users: session accounts with Argon2id password hashes and lockout counters
- social_connections: one OAuth connection per (user, provider)
- authorization_attempts: pending OAuth flows, consumed once by the callback
- publish_records: append-only history of publish attempts
"""
from alembic import op
import sqlalchemy as sa


# revision identifiers, used by Alembic.
revision = 'a1c2e3f4b5d6'
down_revision = None
branch_labels = None
depends_on = None


def upgrade():
    op.create_table('users',
        sa.Column('id', sa.Integer(), nullable=False),
        sa.Column('email', sa.String(length=120), nullable=False),
        sa.Column('name', sa.String(length=100), nullable=True),
        sa.Column('created_at', sa.DateTime(), nullable=True),
        sa.Column('last_login_at', sa.DateTime(), nullable=True),
        sa.Column('password_hash', sa.String(length=255), nullable=True),
        sa.Column('failed_login_attempts', sa.Integer(), nullable=True),
        sa.Column('locked_until', sa.DateTime(), nullable=True),
        sa.Column('password_changed_at', sa.DateTime(), nullable=True),
        sa.Column('is_disabled', sa.Boolean(), nullable=True),
        sa.PrimaryKeyConstraint('id')
    )
    op.create_index('ix_users_email', 'users', ['email'], unique=True)

    op.create_table('social_connections',
        sa.Column('id', sa.Integer(), nullable=False),
        sa.Column('user_id', sa.Integer(), nullable=False),
        sa.Column('provider', sa.String(length=50), nullable=False),
        sa.Column('profile_id', sa.String(length=100), nullable=True),
        sa.Column('username', sa.String(length=255), nullable=True),
        sa.Column('email', sa.String(length=255), nullable=True),
        sa.Column('profile_image_url', sa.Text(), nullable=True),
        sa.Column('encrypted_credentials', sa.Text(), nullable=False),
        sa.Column('token_expires_at', sa.DateTime(), nullable=True),
        sa.Column('scopes', sa.Text(), nullable=False, server_default=''),
        sa.Column('status', sa.String(length=20), nullable=False, server_default='connected'),
        sa.Column('last_used_at', sa.DateTime(), nullable=True),
        sa.Column('last_error', sa.Text(), nullable=True),
        sa.Column('connected_at', sa.DateTime(), nullable=True),
        sa.Column('updated_at', sa.DateTime(), nullable=True),
        sa.ForeignKeyConstraint(['user_id'], ['users.id'], ),
        sa.PrimaryKeyConstraint('id'),
        sa.UniqueConstraint('user_id', 'provider', name='unique_user_provider')
    )
    op.create_index('ix_social_connections_user_id', 'social_connections', ['user_id'], unique=False)
    op.create_index('ix_social_connections_provider', 'social_connections', ['provider'], unique=False)

    op.create_table('authorization_attempts',
        sa.Column('id', sa.Integer(), nullable=False),
        sa.Column('user_id', sa.Integer(), nullable=False),
        sa.Column('provider', sa.String(length=50), nullable=False),
        sa.Column('state', sa.String(length=128), nullable=False),
        sa.Column('pkce_verifier', sa.String(length=128), nullable=True),
        sa.Column('created_at', sa.DateTime(), nullable=True),
        sa.ForeignKeyConstraint(['user_id'], ['users.id'], ),
        sa.PrimaryKeyConstraint('id')
    )
    op.create_index('ix_authorization_attempts_user_id', 'authorization_attempts', ['user_id'], unique=False)
    op.create_index('ix_authorization_attempts_state', 'authorization_attempts', ['state'], unique=True)

    op.create_table('publish_records',
        sa.Column('id', sa.Integer(), nullable=False),
        sa.Column('user_id', sa.Integer(), nullable=False),
        sa.Column('connection_id', sa.Integer(), nullable=True),
        sa.Column('provider', sa.String(length=50), nullable=False),
        sa.Column('text', sa.Text(), nullable=False),
        sa.Column('has_media', sa.Boolean(), nullable=True),
        sa.Column('status', sa.String(length=20), nullable=False),
        sa.Column('external_id', sa.String(length=100), nullable=True),
        sa.Column('external_url', sa.Text(), nullable=True),
        sa.Column('error_code', sa.String(length=50), nullable=True),
        sa.Column('error_message', sa.Text(), nullable=True),
        sa.Column('published_at', sa.DateTime(), nullable=True),
        sa.Column('response_time_ms', sa.Integer(), nullable=True),
        sa.ForeignKeyConstraint(['user_id'], ['users.id'], ),
        sa.ForeignKeyConstraint(['connection_id'], ['social_connections.id'], ondelete='SET NULL'),
        sa.PrimaryKeyConstraint('id')
    )
    op.create_index('ix_publish_records_user_id', 'publish_records', ['user_id'], unique=False)
    op.create_index('ix_publish_records_provider', 'publish_records', ['provider'], unique=False)
    op.create_index('ix_publish_records_published_at', 'publish_records', ['published_at'], unique=False)


def downgrade():
    op.drop_index('ix_publish_records_published_at', table_name='publish_records')
    op.drop_index('ix_publish_records_provider', table_name='publish_records')
    op.drop_index('ix_publish_records_user_id', table_name='publish_records')
    op.drop_table('publish_records')

    op.drop_index('ix_authorization_attempts_state', table_name='authorization_attempts')
    op.drop_index('ix_authorization_attempts_user_id', table_name='authorization_attempts')
    op.drop_table('authorization_attempts')

    op.drop_index('ix_social_connections_provider', table_name='social_connections')
    op.drop_index('ix_social_connections_user_id', table_name='social_connections')
    op.drop_table('social_connections')

    op.drop_index('ix_users_email', table_name='users')
    op.drop_table('users')
