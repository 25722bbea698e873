"""initial marketplace schema

Revision ID: 001
Revises:
Create Date: 2026-10-18 09:00:00.000000
"""
from typing import Sequence, Union
from alembic import op
import sqlalchemy as sa
from sqlalchemy.dialects import postgresql

# revision identifiers, used by Alembic.
revision: str = '001'
down_revision: Union[str, None] = None
branch_labels: Union[str, Sequence[str], None] = None
depends_on: Union[str, Sequence[str], None] = None

USER_TYPES = ('CLIENT', 'SERVICE_PROVIDER', 'ADMIN')
ORDER_STATUSES = ('PENDING', 'CONFIRMED', 'PROCESSING', 'SHIPPED', 'DELIVERED', 'CANCELLED', 'REFUNDED')
APPOINTMENT_STATUSES = ('PENDING', 'CONFIRMED', 'COMPLETED', 'CANCELLED', 'NO_SHOW')
RECURRING_PATTERNS = ('WEEKLY', 'BIWEEKLY', 'MONTHLY', 'CUSTOM')
PAYMENT_STATUSES = ('PENDING', 'PROCESSING', 'COMPLETED', 'FAILED', 'REFUNDED', 'CANCELLED')
PAYMENT_TYPES = ('WALLET_DEPOSIT', 'ORDER', 'APPOINTMENT')
PAYMENT_PROVIDERS = ('YOCO', 'PAYFAST')
TRANSACTION_TYPES = ('CREDIT', 'DEBIT', 'REFUND', 'WITHDRAWAL')
NOTIFICATION_TYPES = (
    'BOOKING_NEW', 'BOOKING_CONFIRMED', 'BOOKING_CANCELLED',
    'PAYMENT_RECEIVED', 'PAYMENT_FAILED', 'SYSTEM',
)

ENUMS = {
    'user_type': USER_TYPES,
    'order_status': ORDER_STATUSES,
    'appointment_status': APPOINTMENT_STATUSES,
    'recurring_pattern': RECURRING_PATTERNS,
    'payment_status': PAYMENT_STATUSES,
    'payment_type': PAYMENT_TYPES,
    'payment_provider': PAYMENT_PROVIDERS,
    'transaction_type': TRANSACTION_TYPES,
    'notification_type': NOTIFICATION_TYPES,
}


def _enum(name: str) -> postgresql.ENUM:
    return postgresql.ENUM(*ENUMS[name], name=name, create_type=False)


def _uuid_pk() -> sa.Column:
    return sa.Column('id', postgresql.UUID(as_uuid=True), primary_key=True, server_default=sa.text('gen_random_uuid()'))


def _timestamps() -> list[sa.Column]:
    return [
        sa.Column('created_at', sa.DateTime(), nullable=True, server_default=sa.text('now()')),
        sa.Column('updated_at', sa.DateTime(), nullable=True, server_default=sa.text('now()')),
    ]


def upgrade() -> None:
    bind = op.get_bind()
    for name, values in ENUMS.items():
        postgresql.ENUM(*values, name=name).create(bind, checkfirst=True)

    op.create_table(
        'users',
        _uuid_pk(),
        sa.Column('email', sa.String(), nullable=False),
        sa.Column('username', sa.String(), nullable=False),
        sa.Column('picture', sa.String(), nullable=True),
        sa.Column('user_type', _enum('user_type'), nullable=False, server_default='CLIENT'),
        sa.Column('is_active', sa.Boolean(), nullable=True, server_default='true'),
        *_timestamps(),
    )
    op.create_index(op.f('ix_users_email'), 'users', ['email'], unique=True)

    op.create_table(
        'shops',
        _uuid_pk(),
        sa.Column('owner_id', postgresql.UUID(as_uuid=True), sa.ForeignKey('users.id', ondelete='CASCADE'), nullable=False, unique=True),
        sa.Column('name', sa.String(), nullable=False),
        sa.Column('created_at', sa.DateTime(), nullable=True, server_default=sa.text('now()')),
    )

    op.create_table(
        'services',
        _uuid_pk(),
        sa.Column('provider_id', postgresql.UUID(as_uuid=True), sa.ForeignKey('users.id', ondelete='CASCADE'), nullable=False),
        sa.Column('name', sa.String(), nullable=False),
        sa.Column('price', sa.Numeric(12, 2), nullable=True),
        sa.Column('is_active', sa.Boolean(), nullable=False, server_default='true'),
        *_timestamps(),
    )
    op.create_index(op.f('ix_services_provider_id'), 'services', ['provider_id'], unique=False)

    op.create_table(
        'orders',
        _uuid_pk(),
        sa.Column('order_number', sa.String(), nullable=False, unique=True),
        sa.Column('user_id', postgresql.UUID(as_uuid=True), sa.ForeignKey('users.id', ondelete='CASCADE'), nullable=False),
        sa.Column('status', _enum('order_status'), nullable=False, server_default='PENDING'),
        sa.Column('total', sa.Numeric(12, 2), nullable=False, server_default='0'),
        *_timestamps(),
    )
    op.create_index(op.f('ix_orders_user_id'), 'orders', ['user_id'], unique=False)

    op.create_table(
        'recurring_appointments',
        _uuid_pk(),
        sa.Column('requester_id', postgresql.UUID(as_uuid=True), sa.ForeignKey('users.id', ondelete='CASCADE'), nullable=False),
        sa.Column('provider_id', postgresql.UUID(as_uuid=True), sa.ForeignKey('users.id', ondelete='CASCADE'), nullable=False),
        sa.Column('service_id', postgresql.UUID(as_uuid=True), sa.ForeignKey('services.id', ondelete='CASCADE'), nullable=False),
        sa.Column('pattern', _enum('recurring_pattern'), nullable=False),
        sa.Column('frequency', sa.Integer(), nullable=False, server_default='1'),
        sa.Column('day_of_week', sa.Integer(), nullable=True),
        sa.Column('day_of_month', sa.Integer(), nullable=True),
        sa.Column('time', sa.String(5), nullable=False),
        sa.Column('start_date', sa.Date(), nullable=False),
        sa.Column('end_date', sa.Date(), nullable=True),
        sa.Column('occurrences', sa.Integer(), nullable=True),
        sa.Column('address', sa.Text(), nullable=True),
        sa.Column('note', sa.Text(), nullable=True),
        sa.Column('is_active', sa.Boolean(), nullable=False, server_default='true'),
        *_timestamps(),
    )
    op.create_index(op.f('ix_recurring_appointments_requester_id'), 'recurring_appointments', ['requester_id'], unique=False)
    op.create_index(op.f('ix_recurring_appointments_provider_id'), 'recurring_appointments', ['provider_id'], unique=False)

    op.create_table(
        'appointments',
        _uuid_pk(),
        sa.Column('requester_id', postgresql.UUID(as_uuid=True), sa.ForeignKey('users.id', ondelete='CASCADE'), nullable=False),
        sa.Column('provider_id', postgresql.UUID(as_uuid=True), sa.ForeignKey('users.id', ondelete='CASCADE'), nullable=False),
        sa.Column('service_id', postgresql.UUID(as_uuid=True), sa.ForeignKey('services.id', ondelete='CASCADE'), nullable=False),
        sa.Column('date', sa.Date(), nullable=False),
        sa.Column('time', sa.String(5), nullable=False),
        sa.Column('status', _enum('appointment_status'), nullable=False, server_default='PENDING'),
        sa.Column('payment_mode', sa.String(), nullable=True),
        sa.Column('address', sa.Text(), nullable=True),
        sa.Column('note', sa.Text(), nullable=True),
        sa.Column(
            'recurring_appointment_id', postgresql.UUID(as_uuid=True),
            sa.ForeignKey('recurring_appointments.id', ondelete='SET NULL'), nullable=True,
        ),
        *_timestamps(),
        sa.UniqueConstraint('recurring_appointment_id', 'date', name='uq_appointments_recurring_date'),
    )
    op.create_index(op.f('ix_appointments_requester_id'), 'appointments', ['requester_id'], unique=False)
    op.create_index(op.f('ix_appointments_provider_id'), 'appointments', ['provider_id'], unique=False)
    op.create_index(op.f('ix_appointments_date'), 'appointments', ['date'], unique=False)
    op.create_index(op.f('ix_appointments_status'), 'appointments', ['status'], unique=False)
    op.create_index(op.f('ix_appointments_recurring_appointment_id'), 'appointments', ['recurring_appointment_id'], unique=False)

    op.create_table(
        'payments',
        _uuid_pk(),
        sa.Column('user_id', postgresql.UUID(as_uuid=True), sa.ForeignKey('users.id', ondelete='CASCADE'), nullable=False),
        sa.Column('amount', sa.Numeric(12, 2), nullable=False),
        sa.Column('currency', sa.String(3), nullable=False, server_default='ZAR'),
        sa.Column('status', _enum('payment_status'), nullable=False, server_default='PENDING'),
        sa.Column('type', _enum('payment_type'), nullable=False),
        sa.Column('provider', _enum('payment_provider'), nullable=False),
        sa.Column('provider_ref', sa.String(), nullable=True),
        sa.Column('provider_data', sa.JSON(), nullable=True),
        sa.Column('description', sa.String(), nullable=True),
        sa.Column('order_id', postgresql.UUID(as_uuid=True), sa.ForeignKey('orders.id', ondelete='SET NULL'), nullable=True),
        sa.Column('appointment_id', postgresql.UUID(as_uuid=True), sa.ForeignKey('appointments.id', ondelete='SET NULL'), nullable=True),
        sa.Column('failure_reason', sa.Text(), nullable=True),
        sa.Column('completed_at', sa.DateTime(), nullable=True),
        *_timestamps(),
    )
    op.create_index(op.f('ix_payments_user_id'), 'payments', ['user_id'], unique=False)
    op.create_index(op.f('ix_payments_status'), 'payments', ['status'], unique=False)
    op.create_index(op.f('ix_payments_provider_ref'), 'payments', ['provider_ref'], unique=False)

    op.create_table(
        'wallets',
        _uuid_pk(),
        sa.Column('user_id', postgresql.UUID(as_uuid=True), sa.ForeignKey('users.id', ondelete='CASCADE'), nullable=False, unique=True),
        sa.Column('balance', sa.Numeric(12, 2), nullable=False, server_default='0'),
        sa.Column('currency', sa.String(3), nullable=False, server_default='ZAR'),
        *_timestamps(),
    )

    op.create_table(
        'transactions',
        _uuid_pk(),
        sa.Column('wallet_id', postgresql.UUID(as_uuid=True), sa.ForeignKey('wallets.id', ondelete='CASCADE'), nullable=False),
        sa.Column('amount', sa.Numeric(12, 2), nullable=False),
        sa.Column('type', _enum('transaction_type'), nullable=False),
        sa.Column('description', sa.String(), nullable=True),
        sa.Column('reference', sa.String(), nullable=True),
        sa.Column('created_at', sa.DateTime(), nullable=True, server_default=sa.text('now()')),
        sa.UniqueConstraint('wallet_id', 'reference', 'type', name='uq_transactions_wallet_reference_type'),
    )
    op.create_index(op.f('ix_transactions_wallet_id'), 'transactions', ['wallet_id'], unique=False)
    op.create_index(op.f('ix_transactions_created_at'), 'transactions', ['created_at'], unique=False)

    op.create_table(
        'notifications',
        _uuid_pk(),
        sa.Column('user_id', postgresql.UUID(as_uuid=True), sa.ForeignKey('users.id', ondelete='CASCADE'), nullable=False),
        sa.Column('title', sa.String(), nullable=False),
        sa.Column('message', sa.Text(), nullable=False),
        sa.Column('type', _enum('notification_type'), nullable=False),
        sa.Column('link', sa.String(), nullable=True),
        sa.Column('extra', sa.JSON(), nullable=True),
        sa.Column('is_read', sa.Boolean(), nullable=False, server_default='false'),
        sa.Column('created_at', sa.DateTime(), nullable=False, server_default=sa.text('now()')),
    )
    op.create_index(op.f('ix_notifications_id'), 'notifications', ['id'], unique=False)
    op.create_index(op.f('ix_notifications_user_id'), 'notifications', ['user_id'], unique=False)


def downgrade() -> None:
    for table in (
        'notifications', 'transactions', 'wallets', 'payments', 'appointments',
        'recurring_appointments', 'orders', 'services', 'shops', 'users',
    ):
        op.drop_table(table)

    bind = op.get_bind()
    for name, values in ENUMS.items():
        postgresql.ENUM(*values, name=name).drop(bind, checkfirst=True)
