"""initial schema

Revision ID: 0001_initial
Revises:
Create Date: 2026-10-19 00:00:00.000000

Creates the DrinkQuick schema:
- users / session_tokens: accounts and bearer sessions
- drinks: per-owner catalog (soft delete via is_active)
- orders / order_items: order documents with a frozen item snapshot
"""
from alembic import op
import sqlalchemy as sa


# revision identifiers, used by Alembic.
revision = '0001_initial'
down_revision = None
branch_labels = None
depends_on = None


def upgrade():
    # ============================================================================
    # users
    # ============================================================================
    op.create_table(
        'users',
        sa.Column('id', sa.Integer(), nullable=False),
        sa.Column('username', sa.String(length=30), nullable=False),
        sa.Column('email', sa.String(length=255), nullable=False),
        sa.Column('password_hash', sa.String(length=255), nullable=False),
        sa.Column('role', sa.String(length=32), nullable=False),
        sa.Column('is_active', sa.Boolean(), nullable=False, server_default='1'),
        sa.Column('created_at', sa.DateTime(), nullable=False),
        sa.Column('last_login_at', sa.DateTime(), nullable=True),
        sa.PrimaryKeyConstraint('id'),
        sqlite_autoincrement=True
    )
    op.create_index('ix_users_username', 'users', ['username'], unique=True)
    op.create_index('ix_users_email', 'users', ['email'], unique=True)

    # ============================================================================
    # session_tokens: only the SHA-256 hash of a token is stored
    # ============================================================================
    op.create_table(
        'session_tokens',
        sa.Column('id', sa.Integer(), nullable=False),
        sa.Column('user_id', sa.Integer(), nullable=False),
        sa.Column('token_hash', sa.String(length=64), nullable=False),
        sa.Column('created_at', sa.DateTime(), nullable=False),
        sa.Column('last_used_at', sa.DateTime(), nullable=False),
        sa.Column('expires_at', sa.DateTime(), nullable=False),
        sa.Column('is_revoked', sa.Boolean(), nullable=False, server_default='0'),
        sa.Column('revoked_at', sa.DateTime(), nullable=True),
        sa.Column('revoked_reason', sa.String(length=255), nullable=True),
        sa.Column('user_agent', sa.String(length=255), nullable=True),
        sa.Column('ip_address', sa.String(length=64), nullable=True),
        sa.ForeignKeyConstraint(['user_id'], ['users.id'], ondelete='CASCADE'),
        sa.PrimaryKeyConstraint('id'),
        sqlite_autoincrement=True
    )
    op.create_index('ix_session_tokens_user_id', 'session_tokens', ['user_id'])
    op.create_index('ix_session_tokens_token_hash', 'session_tokens', ['token_hash'], unique=True)

    # ============================================================================
    # drinks
    # ============================================================================
    op.create_table(
        'drinks',
        sa.Column('id', sa.Integer(), nullable=False),
        sa.Column('owner_id', sa.Integer(), nullable=False),
        sa.Column('name', sa.String(length=100), nullable=False),
        sa.Column('price', sa.Integer(), nullable=False),
        sa.Column('category', sa.String(length=32), nullable=False),
        sa.Column('description', sa.String(length=500), nullable=True),
        sa.Column('tags', sa.JSON(), nullable=False),
        sa.Column('alcohol_content', sa.Float(), nullable=False, server_default='0'),
        sa.Column('volume', sa.Float(), nullable=True),
        sa.Column('unit', sa.String(length=4), nullable=False, server_default='ml'),
        sa.Column('is_custom', sa.Boolean(), nullable=False, server_default='1'),
        sa.Column('is_active', sa.Boolean(), nullable=False, server_default='1'),
        sa.Column('client_local_id', sa.String(length=64), nullable=True),
        sa.Column('last_synced_at', sa.DateTime(), nullable=True),
        sa.Column('sync_status', sa.String(length=16), nullable=False, server_default='synced'),
        sa.Column('version_id', sa.Integer(), nullable=False, server_default='1'),
        sa.Column('created_at', sa.DateTime(), nullable=False),
        sa.Column('updated_at', sa.DateTime(), nullable=False),
        sa.ForeignKeyConstraint(['owner_id'], ['users.id'], ),
        sa.PrimaryKeyConstraint('id'),
        sa.UniqueConstraint('owner_id', 'name', name='uq_drinks_owner_name'),
        sa.UniqueConstraint('client_local_id'),
        sqlite_autoincrement=True
    )
    op.create_index('ix_drinks_owner_id', 'drinks', ['owner_id'])
    op.create_index('ix_drinks_category', 'drinks', ['category'])
    op.create_index('ix_drinks_sync_status', 'drinks', ['sync_status'])
    op.create_index('ix_drinks_owner_active', 'drinks', ['owner_id', 'is_active'])

    # ============================================================================
    # orders: subtotal / total_amount / balance are derived on every write
    # ============================================================================
    op.create_table(
        'orders',
        sa.Column('id', sa.Integer(), nullable=False),
        sa.Column('order_number', sa.String(length=64), nullable=False),
        sa.Column('receipt_number', sa.String(length=64), nullable=False),
        sa.Column('owner_id', sa.Integer(), nullable=False),
        sa.Column('customer_name', sa.String(length=100), nullable=True),
        sa.Column('customer_email', sa.String(length=255), nullable=True),
        sa.Column('subtotal', sa.Integer(), nullable=False, server_default='0'),
        sa.Column('discount', sa.Integer(), nullable=False, server_default='0'),
        sa.Column('tax', sa.Integer(), nullable=False, server_default='0'),
        sa.Column('total_amount', sa.Integer(), nullable=False, server_default='0'),
        sa.Column('amount_paid', sa.Integer(), nullable=False, server_default='0'),
        sa.Column('balance', sa.Integer(), nullable=False, server_default='0'),
        sa.Column('status', sa.String(length=16), nullable=False, server_default='completed'),
        sa.Column('payment_method', sa.String(length=16), nullable=False, server_default='cash'),
        sa.Column('notes', sa.String(length=500), nullable=True),
        sa.Column('receipt_printed', sa.Boolean(), nullable=False, server_default='0'),
        sa.Column('email_sent', sa.Boolean(), nullable=False, server_default='0'),
        sa.Column('client_local_id', sa.String(length=64), nullable=True),
        sa.Column('last_synced_at', sa.DateTime(), nullable=True),
        sa.Column('sync_status', sa.String(length=16), nullable=False, server_default='synced'),
        sa.Column('version_id', sa.Integer(), nullable=False, server_default='1'),
        sa.Column('created_at', sa.DateTime(), nullable=False),
        sa.Column('updated_at', sa.DateTime(), nullable=False),
        sa.ForeignKeyConstraint(['owner_id'], ['users.id'], ),
        sa.PrimaryKeyConstraint('id'),
        sa.UniqueConstraint('order_number'),
        sa.UniqueConstraint('receipt_number'),
        sa.UniqueConstraint('client_local_id'),
        sqlite_autoincrement=True
    )
    op.create_index('ix_orders_owner_id', 'orders', ['owner_id'])
    op.create_index('ix_orders_customer_name', 'orders', ['customer_name'])
    op.create_index('ix_orders_status', 'orders', ['status'])
    op.create_index('ix_orders_sync_status', 'orders', ['sync_status'])
    op.create_index('ix_orders_owner_created', 'orders', ['owner_id', 'created_at'])
    op.create_index('ix_orders_owner_status', 'orders', ['owner_id', 'status'])

    # ============================================================================
    # order_items: frozen drink name / unit price snapshot
    # ============================================================================
    op.create_table(
        'order_items',
        sa.Column('id', sa.Integer(), nullable=False),
        sa.Column('order_id', sa.Integer(), nullable=False),
        sa.Column('drink_id', sa.Integer(), nullable=False),
        sa.Column('position', sa.Integer(), nullable=False, server_default='0'),
        sa.Column('drink_name', sa.String(length=100), nullable=False),
        sa.Column('quantity', sa.Integer(), nullable=False),
        sa.Column('unit_price', sa.Integer(), nullable=False),
        sa.Column('line_total', sa.Integer(), nullable=False),
        sa.ForeignKeyConstraint(['order_id'], ['orders.id'], ondelete='CASCADE'),
        sa.ForeignKeyConstraint(['drink_id'], ['drinks.id'], ),
        sa.PrimaryKeyConstraint('id'),
        sqlite_autoincrement=True
    )
    op.create_index('ix_order_items_order_id', 'order_items', ['order_id'])
    op.create_index('ix_order_items_drink_id', 'order_items', ['drink_id'])


def downgrade():
    op.drop_table('order_items')
    op.drop_table('orders')
    op.drop_table('drinks')
    op.drop_table('session_tokens')
    op.drop_table('users')
