"""initial schema

Revision ID: m001_initial_schema
Revises:
Create Date: 2026-10-19 00:00:00.000000

Creates the complete Mercado schema:
- supermarkets: tenant root
- users / session_tokens: authentication
- products / customers: catalog and loyalty
- shifts / sales / cash_flow_entries: register operation
- daily_reports: immutable shift closings

supermarkets.owner_id and shifts.daily_report_id close reference cycles,
so their foreign keys are added after every table exists.
"""
from alembic import op
import sqlalchemy as sa


# revision identifiers, used by Alembic.
revision = 'm001_initial_schema'
down_revision = None
branch_labels = None
depends_on = None


def _timestamp(name, nullable=False):
    return sa.Column(name, sa.DateTime(timezone=True), nullable=nullable,
                     server_default=sa.text('CURRENT_TIMESTAMP'))


def upgrade():
    # ============================================================================
    # supermarkets: tenant root
    # ============================================================================
    op.create_table(
        'supermarkets',
        sa.Column('id', sa.Integer(), nullable=False),
        sa.Column('owner_id', sa.Integer(), nullable=True),
        sa.Column('name', sa.String(length=255), nullable=False),
        sa.Column('logo', sa.Text(), nullable=True),
        sa.Column('theme', sa.String(length=16), nullable=False, server_default='light'),
        sa.Column('cnpj', sa.String(length=32), nullable=True),
        sa.Column('ie', sa.String(length=32), nullable=True),
        sa.Column('address', sa.String(length=255), nullable=True),
        sa.Column('phone', sa.String(length=32), nullable=True),
        _timestamp('created_at'),
        _timestamp('updated_at'),
        sa.PrimaryKeyConstraint('id'),
        sqlite_autoincrement=True
    )

    # ============================================================================
    # users + session_tokens
    # ============================================================================
    op.create_table(
        'users',
        sa.Column('id', sa.Integer(), nullable=False),
        sa.Column('supermarket_id', sa.Integer(), nullable=False),
        sa.Column('name', sa.String(length=128), nullable=False),
        sa.Column('email', sa.String(length=255), nullable=False),
        sa.Column('password_hash', sa.String(length=255), nullable=False),
        sa.Column('role', sa.Enum('owner', 'operator', name='user_role'), nullable=False),
        sa.Column('is_active', sa.Boolean(), nullable=False, server_default='1'),
        _timestamp('created_at'),
        sa.Column('last_login_at', sa.DateTime(timezone=True), nullable=True),
        sa.ForeignKeyConstraint(['supermarket_id'], ['supermarkets.id'], ),
        sa.PrimaryKeyConstraint('id'),
        sa.UniqueConstraint('email'),
        sqlite_autoincrement=True
    )
    op.create_index('ix_users_supermarket_id', 'users', ['supermarket_id'])
    op.create_index('ix_users_supermarket_role', 'users', ['supermarket_id', 'role'])

    op.create_table(
        'session_tokens',
        sa.Column('id', sa.Integer(), nullable=False),
        sa.Column('user_id', sa.Integer(), nullable=False),
        sa.Column('supermarket_id', sa.Integer(), nullable=False),
        sa.Column('token_hash', sa.String(length=64), nullable=False),
        _timestamp('created_at'),
        _timestamp('last_used_at'),
        sa.Column('expires_at', sa.DateTime(timezone=True), nullable=False),
        sa.Column('is_revoked', sa.Boolean(), nullable=False, server_default='0'),
        sa.Column('revoked_at', sa.DateTime(timezone=True), nullable=True),
        sa.Column('revoked_reason', sa.String(length=64), nullable=True),
        sa.Column('user_agent', sa.String(length=255), nullable=True),
        sa.Column('ip_address', sa.String(length=64), nullable=True),
        sa.ForeignKeyConstraint(['user_id'], ['users.id'], ),
        sa.ForeignKeyConstraint(['supermarket_id'], ['supermarkets.id'], ),
        sa.PrimaryKeyConstraint('id'),
        sqlite_autoincrement=True
    )
    op.create_index('ix_session_tokens_user_id', 'session_tokens', ['user_id'])
    op.create_index('ix_session_tokens_supermarket_id', 'session_tokens', ['supermarket_id'])
    op.create_index('ix_session_tokens_token_hash', 'session_tokens', ['token_hash'], unique=True)
    op.create_index('ix_session_tokens_is_revoked', 'session_tokens', ['is_revoked'])

    # ============================================================================
    # products + customers
    # ============================================================================
    op.create_table(
        'products',
        sa.Column('id', sa.Integer(), nullable=False),
        sa.Column('supermarket_id', sa.Integer(), nullable=False),
        sa.Column('name', sa.String(length=255), nullable=False),
        sa.Column('price_cents', sa.Integer(), nullable=False, server_default='0'),
        sa.Column('stock', sa.Integer(), nullable=False, server_default='0'),
        sa.Column('image_url', sa.Text(), nullable=True),
        sa.Column('low_stock_threshold', sa.Integer(), nullable=False, server_default='10'),
        sa.Column('barcode', sa.String(length=64), nullable=True),
        _timestamp('created_at'),
        _timestamp('updated_at'),
        sa.ForeignKeyConstraint(['supermarket_id'], ['supermarkets.id'], ),
        sa.PrimaryKeyConstraint('id'),
        sa.UniqueConstraint('supermarket_id', 'barcode', name='uq_products_supermarket_barcode'),
        sa.CheckConstraint('price_cents >= 0', name='ck_products_price_non_negative'),
        sa.CheckConstraint('stock >= 0', name='ck_products_stock_non_negative'),
        sqlite_autoincrement=True
    )
    op.create_index('ix_products_supermarket_id', 'products', ['supermarket_id'])
    op.create_index('ix_products_supermarket_name', 'products', ['supermarket_id', 'name'])

    op.create_table(
        'customers',
        sa.Column('id', sa.Integer(), nullable=False),
        sa.Column('supermarket_id', sa.Integer(), nullable=False),
        sa.Column('name', sa.String(length=255), nullable=False),
        sa.Column('national_id', sa.String(length=32), nullable=False),
        sa.Column('points', sa.Integer(), nullable=False, server_default='0'),
        _timestamp('created_at'),
        _timestamp('updated_at'),
        sa.ForeignKeyConstraint(['supermarket_id'], ['supermarkets.id'], ),
        sa.PrimaryKeyConstraint('id'),
        sa.UniqueConstraint('supermarket_id', 'national_id', name='uq_customers_supermarket_national_id'),
        sa.CheckConstraint('points >= 0', name='ck_customers_points_non_negative'),
        sqlite_autoincrement=True
    )
    op.create_index('ix_customers_supermarket_id', 'customers', ['supermarket_id'])

    # ============================================================================
    # shifts, sales, cash flow
    # ============================================================================
    op.create_table(
        'shifts',
        sa.Column('id', sa.Integer(), nullable=False),
        sa.Column('supermarket_id', sa.Integer(), nullable=False),
        sa.Column('operator_id', sa.Integer(), nullable=False),
        sa.Column('status', sa.String(length=16), nullable=False, server_default='OPEN'),
        _timestamp('opened_at'),
        sa.Column('closed_at', sa.DateTime(timezone=True), nullable=True),
        sa.Column('daily_report_id', sa.Integer(), nullable=True),
        sa.ForeignKeyConstraint(['supermarket_id'], ['supermarkets.id'], ),
        sa.ForeignKeyConstraint(['operator_id'], ['users.id'], ),
        sa.PrimaryKeyConstraint('id'),
        sqlite_autoincrement=True
    )
    op.create_index('ix_shifts_supermarket_id', 'shifts', ['supermarket_id'])
    op.create_index('ix_shifts_operator_id', 'shifts', ['operator_id'])
    op.create_index('ix_shifts_supermarket_status', 'shifts', ['supermarket_id', 'status'])

    op.create_table(
        'sales',
        sa.Column('id', sa.Integer(), nullable=False),
        sa.Column('supermarket_id', sa.Integer(), nullable=False),
        sa.Column('shift_id', sa.Integer(), nullable=False),
        sa.Column('operator_id', sa.Integer(), nullable=False),
        sa.Column('customer_id', sa.Integer(), nullable=True),
        sa.Column('items', sa.JSON(), nullable=False),
        sa.Column('total_cents', sa.Integer(), nullable=False),
        sa.Column('points_awarded', sa.Integer(), nullable=False, server_default='0'),
        _timestamp('timestamp'),
        sa.ForeignKeyConstraint(['supermarket_id'], ['supermarkets.id'], ),
        sa.ForeignKeyConstraint(['shift_id'], ['shifts.id'], ),
        sa.ForeignKeyConstraint(['operator_id'], ['users.id'], ),
        sa.ForeignKeyConstraint(['customer_id'], ['customers.id'], ),
        sa.PrimaryKeyConstraint('id'),
        sqlite_autoincrement=True
    )
    op.create_index('ix_sales_supermarket_id', 'sales', ['supermarket_id'])
    op.create_index('ix_sales_shift_id', 'sales', ['shift_id'])
    op.create_index('ix_sales_operator_id', 'sales', ['operator_id'])
    op.create_index('ix_sales_customer_id', 'sales', ['customer_id'])
    op.create_index('ix_sales_supermarket_timestamp', 'sales', ['supermarket_id', 'timestamp'])

    op.create_table(
        'cash_flow_entries',
        sa.Column('id', sa.Integer(), nullable=False),
        sa.Column('supermarket_id', sa.Integer(), nullable=False),
        sa.Column('shift_id', sa.Integer(), nullable=False),
        sa.Column('operator_id', sa.Integer(), nullable=False),
        sa.Column('type', sa.String(length=16), nullable=False),
        sa.Column('amount_cents', sa.Integer(), nullable=False),
        sa.Column('sale_id', sa.Integer(), nullable=True),
        _timestamp('timestamp'),
        sa.Column('description', sa.String(length=255), nullable=True),
        sa.ForeignKeyConstraint(['supermarket_id'], ['supermarkets.id'], ),
        sa.ForeignKeyConstraint(['shift_id'], ['shifts.id'], ),
        sa.ForeignKeyConstraint(['operator_id'], ['users.id'], ),
        sa.ForeignKeyConstraint(['sale_id'], ['sales.id'], ),
        sa.PrimaryKeyConstraint('id'),
        sqlite_autoincrement=True
    )
    op.create_index('ix_cash_flow_entries_supermarket_id', 'cash_flow_entries', ['supermarket_id'])
    op.create_index('ix_cash_flow_entries_shift_id', 'cash_flow_entries', ['shift_id'])
    op.create_index('ix_cash_flow_shift_timestamp', 'cash_flow_entries', ['shift_id', 'timestamp'])

    # ============================================================================
    # daily_reports
    # ============================================================================
    op.create_table(
        'daily_reports',
        sa.Column('id', sa.Integer(), nullable=False),
        sa.Column('supermarket_id', sa.Integer(), nullable=False),
        sa.Column('shift_id', sa.Integer(), nullable=False),
        sa.Column('operator_id', sa.Integer(), nullable=False),
        sa.Column('date', sa.String(length=10), nullable=False),
        sa.Column('total_sales_cents', sa.Integer(), nullable=False, server_default='0'),
        sa.Column('initial_cash_cents', sa.Integer(), nullable=False, server_default='0'),
        sa.Column('total_sangria_cents', sa.Integer(), nullable=False, server_default='0'),
        sa.Column('final_cash_cents', sa.Integer(), nullable=False, server_default='0'),
        sa.Column('sales', sa.JSON(), nullable=False),
        sa.Column('cash_flow', sa.JSON(), nullable=False),
        _timestamp('created_at'),
        sa.ForeignKeyConstraint(['supermarket_id'], ['supermarkets.id'], ),
        sa.ForeignKeyConstraint(['shift_id'], ['shifts.id'], ),
        sa.ForeignKeyConstraint(['operator_id'], ['users.id'], ),
        sa.PrimaryKeyConstraint('id'),
        sa.UniqueConstraint('shift_id'),
        sqlite_autoincrement=True
    )
    op.create_index('ix_daily_reports_supermarket_id', 'daily_reports', ['supermarket_id'])
    op.create_index('ix_daily_reports_supermarket_created', 'daily_reports', ['supermarket_id', 'created_at'])

    # Cycle-closing foreign keys (batch mode for SQLite)
    with op.batch_alter_table('supermarkets') as batch_op:
        batch_op.create_foreign_key('fk_supermarkets_owner_id', 'users', ['owner_id'], ['id'])
    with op.batch_alter_table('shifts') as batch_op:
        batch_op.create_foreign_key('fk_shifts_daily_report_id', 'daily_reports', ['daily_report_id'], ['id'])


def downgrade():
    with op.batch_alter_table('shifts') as batch_op:
        batch_op.drop_constraint('fk_shifts_daily_report_id', type_='foreignkey')
    with op.batch_alter_table('supermarkets') as batch_op:
        batch_op.drop_constraint('fk_supermarkets_owner_id', type_='foreignkey')

    op.drop_table('daily_reports')
    op.drop_table('cash_flow_entries')
    op.drop_table('sales')
    op.drop_table('shifts')
    op.drop_table('customers')
    op.drop_table('products')
    op.drop_table('session_tokens')
    op.drop_table('users')
    op.drop_table('supermarkets')
