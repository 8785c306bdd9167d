"""initial billing schema

Revision ID: b7c1d2e3f4a5
Revises:
Create Date: 2026-10-18 00:00:00.000000

Creates the tyre shop billing schema:
- invoices + invoice_items + service_items: billing documents, money in paise
- invoice_sequences: atomic counter for invoice numbers
- tires + tyre_purchases: stock and the supplier purchases that move it
- expenses + staff_payments: bookkeeping
- admins + admin_sessions: authentication
"""
from alembic import op
import sqlalchemy as sa


# revision identifiers, used by Alembic.
revision = 'b7c1d2e3f4a5'
down_revision = None
branch_labels = None
depends_on = None


def _timestamps():
    return [
        sa.Column('created_at', sa.DateTime(timezone=True), nullable=False,
                  server_default=sa.text('CURRENT_TIMESTAMP')),
        sa.Column('updated_at', sa.DateTime(timezone=True), nullable=False,
                  server_default=sa.text('CURRENT_TIMESTAMP')),
    ]


def upgrade():
    # ============================================================================
    # invoices: header, server-computed totals, payment allocation
    # ============================================================================
    op.create_table(
        'invoices',
        sa.Column('id', sa.Integer(), nullable=False),
        sa.Column('invoice_number', sa.String(length=64), nullable=False),
        sa.Column('invoice_number_sequence', sa.Integer(), nullable=False),
        sa.Column('customer_name', sa.String(length=255), nullable=False),
        sa.Column('customer_phone', sa.String(length=32), nullable=True),
        sa.Column('customer_gst', sa.String(length=15), nullable=True),
        sa.Column('car_model', sa.String(length=128), nullable=True),
        sa.Column('car_number', sa.String(length=32), nullable=True),
        sa.Column('usage_reading', sa.Integer(), nullable=True),
        sa.Column('invoice_date', sa.DateTime(timezone=True), nullable=False),
        sa.Column('items_subtotal_paise', sa.Integer(), nullable=False, server_default='0'),
        sa.Column('services_subtotal_paise', sa.Integer(), nullable=False, server_default='0'),
        sa.Column('total_amount_paise', sa.Integer(), nullable=False, server_default='0'),
        sa.Column('cgst_paise', sa.Integer(), nullable=False, server_default='0'),
        sa.Column('sgst_paise', sa.Integer(), nullable=False, server_default='0'),
        sa.Column('grand_total_paise', sa.Integer(), nullable=False, server_default='0'),
        sa.Column('payment_method', sa.String(length=16), nullable=False),
        sa.Column('cash_amount_paise', sa.Integer(), nullable=False, server_default='0'),
        sa.Column('online_amount_paise', sa.Integer(), nullable=False, server_default='0'),
        sa.Column('online_reference', sa.String(length=128), nullable=True),
        sa.Column('payment_status', sa.String(length=16), nullable=False, server_default='PAID'),
        sa.Column('pending_amount_paise', sa.Integer(), nullable=False, server_default='0'),
        *_timestamps(),
        sa.PrimaryKeyConstraint('id'),
        sa.UniqueConstraint('invoice_number', name='uq_invoices_number'),
        sa.UniqueConstraint('invoice_number_sequence', name='uq_invoices_sequence'),
        sqlite_autoincrement=True
    )
    op.create_index('ix_invoices_customer_name', 'invoices', ['customer_name'])
    op.create_index('ix_invoices_customer_phone', 'invoices', ['customer_phone'])
    op.create_index('ix_invoices_invoice_date', 'invoices', ['invoice_date'])
    op.create_index('ix_invoices_car_number', 'invoices', ['car_number'])
    op.create_index('ix_invoices_payment_method', 'invoices', ['payment_method'])
    op.create_index('ix_invoices_payment_status', 'invoices', ['payment_status'])

    op.create_table(
        'invoice_items',
        sa.Column('id', sa.Integer(), nullable=False),
        sa.Column('invoice_id', sa.Integer(), nullable=False),
        sa.Column('position', sa.Integer(), nullable=False, server_default='0'),
        sa.Column('material_code', sa.String(length=64), nullable=False),
        sa.Column('dimension', sa.String(length=64), nullable=False),
        sa.Column('pattern', sa.String(length=64), nullable=False),
        sa.Column('price_paise', sa.Integer(), nullable=False),
        sa.Column('quantity', sa.Integer(), nullable=False),
        sa.Column('total_paise', sa.Integer(), nullable=False),
        sa.Column('stock_deducted', sa.Integer(), nullable=False, server_default='0'),
        sa.ForeignKeyConstraint(['invoice_id'], ['invoices.id'], ondelete='CASCADE'),
        sa.PrimaryKeyConstraint('id'),
        sqlite_autoincrement=True
    )
    op.create_index('ix_invoice_items_invoice_id', 'invoice_items', ['invoice_id'])
    op.create_index('ix_invoice_items_dimension_pattern', 'invoice_items', ['dimension', 'pattern'])

    op.create_table(
        'service_items',
        sa.Column('id', sa.Integer(), nullable=False),
        sa.Column('invoice_id', sa.Integer(), nullable=False),
        sa.Column('position', sa.Integer(), nullable=False, server_default='0'),
        sa.Column('service_type', sa.String(length=128), nullable=False),
        sa.Column('quantity', sa.Integer(), nullable=False),
        sa.Column('rate_paise', sa.Integer(), nullable=False),
        sa.Column('total_paise', sa.Integer(), nullable=False),
        sa.ForeignKeyConstraint(['invoice_id'], ['invoices.id'], ondelete='CASCADE'),
        sa.PrimaryKeyConstraint('id'),
        sqlite_autoincrement=True
    )
    op.create_index('ix_service_items_invoice_id', 'service_items', ['invoice_id'])

    # ============================================================================
    # invoice_sequences: one row per counter, bumped with a single UPDATE
    # ============================================================================
    op.create_table(
        'invoice_sequences',
        sa.Column('id', sa.Integer(), nullable=False),
        sa.Column('name', sa.String(length=32), nullable=False),
        sa.Column('next_number', sa.Integer(), nullable=False, server_default='1'),
        sa.Column('updated_at', sa.DateTime(timezone=True), nullable=False,
                  server_default=sa.text('CURRENT_TIMESTAMP')),
        sa.PrimaryKeyConstraint('id'),
        sa.UniqueConstraint('name', name='uq_invoice_sequences_name'),
        sqlite_autoincrement=True
    )

    # ============================================================================
    # tires + tyre_purchases
    # ============================================================================
    op.create_table(
        'tires',
        sa.Column('id', sa.Integer(), nullable=False),
        sa.Column('dimension', sa.String(length=64), nullable=False),
        sa.Column('pattern', sa.String(length=64), nullable=False),
        sa.Column('material_code', sa.String(length=64), nullable=False, server_default=''),
        sa.Column('lisi', sa.String(length=32), nullable=False, server_default=''),
        sa.Column('billing_price_paise', sa.Integer(), nullable=False, server_default='0'),
        sa.Column('our_price_paise', sa.Integer(), nullable=False, server_default='0'),
        sa.Column('customer_price_paise', sa.Integer(), nullable=False, server_default='0'),
        sa.Column('stock', sa.Integer(), nullable=False, server_default='0'),
        *_timestamps(),
        sa.PrimaryKeyConstraint('id'),
        sa.UniqueConstraint('dimension', 'pattern', name='uq_tires_dimension_pattern'),
        sqlite_autoincrement=True
    )

    op.create_table(
        'tyre_purchases',
        sa.Column('id', sa.Integer(), nullable=False),
        sa.Column('date', sa.DateTime(timezone=True), nullable=False),
        sa.Column('bill_no', sa.String(length=64), nullable=False),
        sa.Column('tyre_size', sa.String(length=64), nullable=False),
        sa.Column('pattern', sa.String(length=64), nullable=False),
        sa.Column('brand', sa.String(length=64), nullable=True),
        sa.Column('quantity', sa.Integer(), nullable=False),
        sa.Column('created_at', sa.DateTime(timezone=True), nullable=False,
                  server_default=sa.text('CURRENT_TIMESTAMP')),
        sa.PrimaryKeyConstraint('id'),
        sqlite_autoincrement=True
    )
    op.create_index('ix_tyre_purchases_bill_no', 'tyre_purchases', ['bill_no'])
    op.create_index('ix_tyre_purchases_date', 'tyre_purchases', ['date'])
    op.create_index('ix_tyre_purchases_size_pattern', 'tyre_purchases', ['tyre_size', 'pattern'])

    # ============================================================================
    # expenses + staff_payments
    # ============================================================================
    op.create_table(
        'expenses',
        sa.Column('id', sa.Integer(), nullable=False),
        sa.Column('key', sa.String(length=255), nullable=False),
        sa.Column('value_paise', sa.Integer(), nullable=False),
        sa.Column('date', sa.DateTime(timezone=True), nullable=False),
        *_timestamps(),
        sa.PrimaryKeyConstraint('id'),
        sqlite_autoincrement=True
    )
    op.create_index('ix_expenses_date', 'expenses', ['date'])
    op.create_index('ix_expenses_key', 'expenses', ['key'])

    op.create_table(
        'staff_payments',
        sa.Column('id', sa.Integer(), nullable=False),
        sa.Column('name', sa.String(length=255), nullable=False),
        sa.Column('amount_paise', sa.Integer(), nullable=False),
        sa.Column('type', sa.String(length=16), nullable=False),
        sa.Column('date', sa.DateTime(timezone=True), nullable=False),
        sa.Column('created_at', sa.DateTime(timezone=True), nullable=False,
                  server_default=sa.text('CURRENT_TIMESTAMP')),
        sa.PrimaryKeyConstraint('id'),
        sqlite_autoincrement=True
    )
    op.create_index('ix_staff_payments_date', 'staff_payments', ['date'])
    op.create_index('ix_staff_payments_type', 'staff_payments', ['type'])

    # ============================================================================
    # admins + admin_sessions
    # ============================================================================
    op.create_table(
        'admins',
        sa.Column('id', sa.Integer(), nullable=False),
        sa.Column('email', sa.String(length=255), nullable=False),
        sa.Column('password_hash', sa.String(length=255), nullable=False),
        sa.Column('is_active', sa.Boolean(), nullable=False, server_default='1'),
        sa.Column('created_at', sa.DateTime(timezone=True), nullable=False,
                  server_default=sa.text('CURRENT_TIMESTAMP')),
        sa.Column('last_login_at', sa.DateTime(timezone=True), nullable=True),
        sa.PrimaryKeyConstraint('id'),
        sa.UniqueConstraint('email', name='uq_admins_email'),
        sqlite_autoincrement=True
    )

    op.create_table(
        'admin_sessions',
        sa.Column('id', sa.Integer(), nullable=False),
        sa.Column('admin_id', sa.Integer(), nullable=False),
        sa.Column('token_hash', sa.String(length=64), nullable=False),
        sa.Column('created_at', sa.DateTime(timezone=True), nullable=False,
                  server_default=sa.text('CURRENT_TIMESTAMP')),
        sa.Column('expires_at', sa.DateTime(timezone=True), nullable=False),
        sa.Column('is_revoked', sa.Boolean(), nullable=False, server_default='0'),
        sa.Column('revoked_at', sa.DateTime(timezone=True), nullable=True),
        sa.Column('ip_address', sa.String(length=64), nullable=True),
        sa.Column('user_agent', sa.String(length=255), nullable=True),
        sa.ForeignKeyConstraint(['admin_id'], ['admins.id'], ),
        sa.PrimaryKeyConstraint('id'),
        sqlite_autoincrement=True
    )
    op.create_index('ix_admin_sessions_admin_id', 'admin_sessions', ['admin_id'])
    op.create_index('ix_admin_sessions_token_hash', 'admin_sessions', ['token_hash'], unique=True)
    op.create_index('ix_admin_sessions_expires_at', 'admin_sessions', ['expires_at'])
    op.create_index('ix_admin_sessions_admin_active', 'admin_sessions', ['admin_id', 'is_revoked'])


def downgrade():
    op.drop_table('admin_sessions')
    op.drop_table('admins')
    op.drop_table('staff_payments')
    op.drop_table('expenses')
    op.drop_table('tyre_purchases')
    op.drop_table('tires')
    op.drop_table('invoice_sequences')
    op.drop_table('service_items')
    op.drop_table('invoice_items')
    op.drop_table('invoices')
