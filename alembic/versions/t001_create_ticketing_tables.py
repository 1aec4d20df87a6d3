"""Create ticketing tables

Revision ID: t001_create_ticketing
Revises:
Create Date: 2026-10-19

This migration creates the core ticketing schema:
- customers: buyers with purchase aggregates
- orders: one purchase of N tickets
- tickets: entry passes with scan counters
- ticket_scans: append-only scan history
- ticket_settings: singleton scan policy row
- audit_log: immutable change log
"""

from alembic import op
import sqlalchemy as sa

# revision identifiers, used by Alembic.
revision = 't001_create_ticketing'
down_revision = None
branch_labels = None
depends_on = None


def upgrade() -> None:
    op.create_table(
        'customers',
        sa.Column('id', sa.String(), primary_key=True),
        sa.Column('first_name', sa.String(100), nullable=False),
        sa.Column('last_name', sa.String(100), nullable=False),
        sa.Column('email', sa.String(255), nullable=False),
        sa.Column('phone', sa.String(30), nullable=True),
        sa.Column('total_orders', sa.Integer(), nullable=False, server_default='0'),
        sa.Column('total_spent', sa.BigInteger(), nullable=False, server_default='0'),
        sa.Column('last_purchase', sa.DateTime(timezone=True), nullable=True),
        sa.Column('created_at', sa.DateTime(timezone=True), nullable=False, server_default=sa.func.now()),
        sa.Column('updated_at', sa.DateTime(timezone=True), nullable=False, server_default=sa.func.now()),
    )
    op.create_index('ix_customers_email', 'customers', ['email'], unique=True)

    op.create_table(
        'orders',
        sa.Column('id', sa.String(), primary_key=True),
        sa.Column('order_number', sa.String(32), nullable=False),
        sa.Column('customer_id', sa.String(), sa.ForeignKey('customers.id'), nullable=False),
        sa.Column('quantity', sa.Integer(), nullable=False),
        sa.Column('amount', sa.BigInteger(), nullable=False),
        sa.Column('status', sa.String(20), nullable=False, server_default='PENDING'),
        sa.Column('payment_reference', sa.String(255), nullable=True),
        sa.Column('payment_method', sa.String(30), nullable=True),
        sa.Column('paid_amount', sa.BigInteger(), nullable=True),
        sa.Column('paid_at', sa.DateTime(timezone=True), nullable=True),
        sa.Column('game_session', sa.String(100), nullable=True),
        sa.Column('purchase_date', sa.DateTime(timezone=True), nullable=False),
        sa.Column('cancelled_at', sa.DateTime(timezone=True), nullable=True),
        sa.Column('cancel_reason', sa.Text(), nullable=True),
        sa.Column('created_at', sa.DateTime(timezone=True), nullable=False, server_default=sa.func.now()),
        sa.Column('updated_at', sa.DateTime(timezone=True), nullable=False, server_default=sa.func.now()),
    )
    op.create_index('ix_orders_order_number', 'orders', ['order_number'], unique=True)
    op.create_index('ix_orders_customer_id', 'orders', ['customer_id'])
    op.create_index('ix_orders_status', 'orders', ['status'])
    op.create_index('ix_orders_payment_reference', 'orders', ['payment_reference'])

    op.create_table(
        'tickets',
        sa.Column('id', sa.String(), primary_key=True),
        sa.Column('ticket_code', sa.String(32), nullable=False),
        sa.Column('order_id', sa.String(), sa.ForeignKey('orders.id'), nullable=False),
        sa.Column('game_session', sa.String(100), nullable=True),
        sa.Column('valid_until', sa.DateTime(timezone=True), nullable=False),
        sa.Column('max_scans', sa.Integer(), nullable=False),
        sa.Column('scan_window', sa.Integer(), nullable=False),
        sa.Column('scan_count', sa.Integer(), nullable=False, server_default='0'),
        sa.Column('first_scan_at', sa.DateTime(timezone=True), nullable=True),
        sa.Column('last_scan_at', sa.DateTime(timezone=True), nullable=True),
        sa.Column('status', sa.String(20), nullable=False, server_default='PENDING'),
        sa.Column('qr_code_path', sa.String(512), nullable=True),
        sa.Column('notes', sa.Text(), nullable=True),
        sa.Column('created_at', sa.DateTime(timezone=True), nullable=False, server_default=sa.func.now()),
        sa.Column('updated_at', sa.DateTime(timezone=True), nullable=False, server_default=sa.func.now()),
        sa.CheckConstraint('scan_count >= 0 AND scan_count <= max_scans', name='ck_tickets_scan_count'),
    )
    op.create_index('ix_tickets_ticket_code', 'tickets', ['ticket_code'], unique=True)
    op.create_index('ix_tickets_order_id', 'tickets', ['order_id'])
    op.create_index('ix_tickets_status', 'tickets', ['status'])

    op.create_table(
        'ticket_scans',
        sa.Column('id', sa.String(), primary_key=True),
        sa.Column('ticket_id', sa.String(), sa.ForeignKey('tickets.id'), nullable=False),
        sa.Column('scanned_by', sa.String(), nullable=True),
        sa.Column('location', sa.String(255), nullable=True),
        sa.Column('allowed', sa.Boolean(), nullable=False),
        sa.Column('reason', sa.Text(), nullable=False),
        sa.Column('scanned_at', sa.DateTime(timezone=True), nullable=False, server_default=sa.func.now()),
    )
    op.create_index('ix_ticket_scans_ticket_id', 'ticket_scans', ['ticket_id'])

    op.create_table(
        'ticket_settings',
        sa.Column('id', sa.Integer(), primary_key=True),
        sa.Column('max_scan_count', sa.Integer(), nullable=False),
        sa.Column('scan_window_days', sa.Integer(), nullable=False),
        sa.Column('validity_days', sa.Integer(), nullable=False),
        sa.Column('base_price', sa.BigInteger(), nullable=False),
        sa.Column('allow_refunds', sa.Boolean(), nullable=False, server_default=sa.true()),
        sa.Column('allow_transfers', sa.Boolean(), nullable=False, server_default=sa.false()),
        sa.Column('updated_at', sa.DateTime(timezone=True), nullable=False, server_default=sa.func.now()),
    )

    op.create_table(
        'audit_log',
        sa.Column('id', sa.String(), primary_key=True),
        sa.Column('action', sa.String(100), nullable=False),
        sa.Column('actor_type', sa.String(50), nullable=False),
        sa.Column('actor_id', sa.String(), nullable=True),
        sa.Column('entity_type', sa.String(50), nullable=False),
        sa.Column('entity_id', sa.String(), nullable=False),
        sa.Column('previous_state', sa.JSON(), nullable=True),
        sa.Column('new_state', sa.JSON(), nullable=True),
        sa.Column('change_details', sa.JSON(), nullable=True),
        sa.Column('request_id', sa.String(100), nullable=True),
        sa.Column('created_at', sa.DateTime(timezone=True), nullable=False, server_default=sa.func.now()),
    )
    op.create_index('ix_audit_log_action', 'audit_log', ['action'])
    op.create_index('ix_audit_log_entity_id', 'audit_log', ['entity_id'])


def downgrade() -> None:
    op.drop_table('audit_log')
    op.drop_table('ticket_settings')
    op.drop_table('ticket_scans')
    op.drop_table('tickets')
    op.drop_table('orders')
    op.drop_table('customers')
