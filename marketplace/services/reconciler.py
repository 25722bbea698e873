"""Payment webhook reconciliation.

Both gateways funnel into reconcile_payment() once their notification has
been authenticated. The status write and every side effect (wallet credit,
order/appointment confirmation) happen in one database transaction, and the
status write only matches payments that are not yet in a terminal state
and not already further along than the notification (a PROCESSING payment
is never put back to PENDING). A redelivered or concurrently delivered
notification therefore matches no row and changes nothing.
"""

import logging
from dataclasses import dataclass, field
from datetime import datetime
from decimal import Decimal
from typing import Any, Optional
from uuid import UUID

from sqlalchemy import select, update, or_
from sqlalchemy.ext.asyncio import AsyncSession

from marketplace.models.appointment import Appointment, AppointmentStatus
from marketplace.models.order import Order, OrderStatus
from marketplace.models.payment import (
    Payment,
    PaymentStatus,
    PaymentType,
    TERMINAL_PAYMENT_STATUSES,
)
from marketplace.models.service import Service
from marketplace.models.wallet import Transaction, TransactionType, Wallet
from marketplace.services.notification_service import (
    notify_payment_failed,
    notify_payment_received,
)

logger = logging.getLogger(__name__)


class PaymentNotFoundError(Exception):
    """No payment matches the notification's id or provider reference."""


@dataclass
class PaymentUpdate:
    """Provider-neutral description of a verified notification."""
    status: PaymentStatus
    provider_ref: Optional[str] = None
    provider_data: dict[str, Any] = field(default_factory=dict)
    failure_reason: Optional[str] = None
    # shown to the user on FAILED; defaults to failure_reason
    failure_notice: Optional[str] = None


@dataclass
class ReconcileResult:
    payment_id: UUID
    previous_status: PaymentStatus
    status: PaymentStatus
    applied: bool


# Non-terminal statuses only move forward: PENDING -> PROCESSING -> terminal.
_STATUS_RANK = {
    PaymentStatus.PENDING: 0,
    PaymentStatus.PROCESSING: 1,
}


def _statuses_blocking(new_status: PaymentStatus) -> tuple[PaymentStatus, ...]:
    """Stored statuses that an update to new_status must not overwrite."""
    rank = _STATUS_RANK.get(new_status)
    if rank is None:
        return TERMINAL_PAYMENT_STATUSES
    ahead = tuple(s for s, r in _STATUS_RANK.items() if r > rank)
    return TERMINAL_PAYMENT_STATUSES + ahead


def _as_uuid(value: Optional[str]) -> Optional[UUID]:
    if not value:
        return None
    try:
        return UUID(str(value))
    except ValueError:
        return None


async def find_payment(
    db: AsyncSession,
    payment_id: Optional[str],
    provider_ref: Optional[str],
) -> Optional[Payment]:
    """Find a payment by our id or by the gateway's reference."""
    conditions = []
    internal_id = _as_uuid(payment_id)
    if internal_id:
        conditions.append(Payment.id == internal_id)
    if provider_ref:
        conditions.append(Payment.provider_ref == provider_ref)
    if not conditions:
        return None

    result = await db.execute(
        select(Payment)
        .where(or_(*conditions))
        .limit(1)
        .execution_options(populate_existing=True)
    )
    return result.scalars().first()


async def get_or_create_wallet(db: AsyncSession, user_id: UUID, currency: str = "ZAR") -> Wallet:
    """Fetch the user's wallet, creating an empty one if needed (flushes, never commits)."""
    result = await db.execute(select(Wallet).where(Wallet.user_id == user_id))
    wallet = result.scalar_one_or_none()
    if wallet is None:
        wallet = Wallet(user_id=user_id, balance=Decimal("0"), currency=currency)
        db.add(wallet)
        await db.flush()
        logger.info("Created wallet %s for user %s", wallet.id, user_id)
    return wallet


async def credit_wallet(
    db: AsyncSession,
    user_id: UUID,
    amount: Decimal,
    description: str,
    reference: str,
    currency: str = "ZAR",
) -> Wallet:
    """Increment the balance and write the matching CREDIT ledger row.

    Runs inside the caller's transaction; the caller commits.
    """
    wallet = await get_or_create_wallet(db, user_id, currency)
    await db.execute(
        update(Wallet)
        .where(Wallet.id == wallet.id)
        .values(balance=Wallet.balance + amount, updated_at=datetime.utcnow())
        .execution_options(synchronize_session=False)
    )
    db.add(Transaction(
        wallet_id=wallet.id,
        amount=amount,
        type=TransactionType.CREDIT,
        description=description,
        reference=reference,
    ))
    await db.flush()
    return wallet


async def _confirm_purchase(db: AsyncSession, payment: Payment) -> None:
    if payment.order_id:
        await db.execute(
            update(Order)
            .where(Order.id == payment.order_id)
            .values(status=OrderStatus.CONFIRMED, updated_at=datetime.utcnow())
            .execution_options(synchronize_session=False)
        )
    if payment.appointment_id:
        await db.execute(
            update(Appointment)
            .where(Appointment.id == payment.appointment_id)
            .values(
                payment_mode="PAID",
                status=AppointmentStatus.CONFIRMED,
                updated_at=datetime.utcnow(),
            )
            .execution_options(synchronize_session=False)
        )


async def _describe_purchase(db: AsyncSession, payment: Payment) -> str:
    if payment.type == PaymentType.WALLET_DEPOSIT:
        return "Wallet Deposit"
    if payment.appointment_id:
        result = await db.execute(
            select(Service.name)
            .join(Appointment, Appointment.service_id == Service.id)
            .where(Appointment.id == payment.appointment_id)
        )
        name = result.scalar_one_or_none()
        if name:
            return name
    return "Order"


async def _notify(
    db: AsyncSession,
    payment_id: UUID,
    user_id: UUID,
    amount: Decimal,
    update_: PaymentUpdate,
    description: str,
) -> None:
    """Best-effort notification; failures are logged, never raised."""
    try:
        if update_.status == PaymentStatus.COMPLETED:
            await notify_payment_received(db, user_id, amount, description, payment_id)
        elif update_.status == PaymentStatus.FAILED:
            await notify_payment_failed(
                db, user_id, amount,
                update_.failure_notice or update_.failure_reason or "Payment failed",
            )
    except Exception as e:
        logger.error("Failed to send payment notification for %s: %s", payment_id, e)
        await db.rollback()


async def reconcile_payment(
    db: AsyncSession,
    payment_id: Optional[str],
    provider_ref: Optional[str],
    update_: PaymentUpdate,
    provider_label: str,
) -> ReconcileResult:
    """Apply one verified gateway notification to our payment state.

    Raises PaymentNotFoundError without touching the database when no
    payment matches. Returns applied=False when the payment was already
    final, or already further along than the notification, in which case
    nothing was written.
    """
    payment = await find_payment(db, payment_id, provider_ref)
    if payment is None:
        logger.error(
            "%s notification for unknown payment (id=%s, ref=%s)",
            provider_label, payment_id, provider_ref,
        )
        raise PaymentNotFoundError(payment_id or provider_ref or "")

    # any rollback expires `payment`, so everything used later is read here
    payment_pk = payment.id
    user_id = payment.user_id
    amount = payment.amount
    currency = payment.currency
    payment_type = payment.type
    previous_status = PaymentStatus(payment.status)

    now = datetime.utcnow()
    values: dict[str, Any] = {
        "status": update_.status,
        "provider_data": update_.provider_data,
        "updated_at": now,
    }
    if update_.provider_ref:
        values["provider_ref"] = update_.provider_ref
    if update_.status == PaymentStatus.COMPLETED:
        values["completed_at"] = now
    if update_.status == PaymentStatus.FAILED:
        values["failure_reason"] = update_.failure_reason or "Payment failed"

    description = await _describe_purchase(db, payment)

    try:
        result = await db.execute(
            update(Payment)
            .where(
                Payment.id == payment_pk,
                Payment.status.notin_(_statuses_blocking(update_.status)),
            )
            .values(**values)
            .execution_options(synchronize_session=False)
        )

        if result.rowcount == 0:
            await db.rollback()
            logger.info(
                "Payment %s already %s; ignoring %s notification (%s)",
                payment_pk, previous_status.value, provider_label, update_.status.value,
            )
            return ReconcileResult(payment_pk, previous_status, previous_status, applied=False)

        if update_.status == PaymentStatus.COMPLETED:
            if payment_type == PaymentType.WALLET_DEPOSIT:
                await credit_wallet(
                    db,
                    user_id=user_id,
                    amount=amount,
                    description=f"Wallet deposit via {provider_label}",
                    reference=str(payment_pk),
                    currency=currency,
                )
            else:
                await _confirm_purchase(db, payment)

        await db.commit()
    except Exception:
        await db.rollback()
        raise

    logger.info(
        "Payment %s: %s -> %s via %s",
        payment_pk, previous_status.value, update_.status.value, provider_label,
    )

    await _notify(db, payment_pk, user_id, amount, update_, description)

    return ReconcileResult(payment_pk, previous_status, update_.status, applied=True)
