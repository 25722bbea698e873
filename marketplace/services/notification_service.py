"""Notification service for creating in-app notifications."""

import logging
from decimal import Decimal
from typing import Any, Optional
from uuid import UUID

from sqlalchemy.ext.asyncio import AsyncSession

from marketplace.models.notification import Notification, NotificationType

logger = logging.getLogger(__name__)


async def create_notification(
    db: AsyncSession,
    user_id: UUID,
    title: str,
    message: str,
    notification_type: NotificationType,
    link: Optional[str] = None,
    extra: Optional[dict[str, Any]] = None,
) -> Notification:
    """Create a notification for a user.

    Commits on its own, so call it only after the business change it
    describes has been committed.
    """
    notification = Notification(
        user_id=user_id,
        title=title,
        message=message,
        type=notification_type,
        link=link,
        extra=extra,
        is_read=False,
    )
    db.add(notification)
    await db.commit()
    await db.refresh(notification)

    logger.info(
        "Created notification for user %s: %s (%s)",
        user_id,
        title,
        notification_type.value,
    )
    return notification


async def notify_payment_received(
    db: AsyncSession,
    user_id: UUID,
    amount: Decimal,
    description: str,
    payment_id: UUID,
):
    await create_notification(
        db=db,
        user_id=user_id,
        title="Payment Received",
        message=f"You received R{Decimal(amount):.2f} for {description}",
        notification_type=NotificationType.PAYMENT_RECEIVED,
        link="/dashboard/wallet",
        extra={"amount": str(amount), "serviceName": description, "paymentId": str(payment_id)},
    )


async def notify_payment_failed(
    db: AsyncSession,
    user_id: UUID,
    amount: Decimal,
    reason: Optional[str] = None,
):
    suffix = f": {reason}" if reason else ""
    await create_notification(
        db=db,
        user_id=user_id,
        title="Payment Failed",
        message=f"Payment of R{Decimal(amount):.2f} failed{suffix}",
        notification_type=NotificationType.PAYMENT_FAILED,
        link="/dashboard/wallet",
        extra={"amount": str(amount), "reason": reason},
    )


async def notify_new_recurring_booking(
    db: AsyncSession,
    provider_id: UUID,
    pattern: str,
    service_name: str,
    recurring_id: UUID,
    appointment_count: int,
):
    await create_notification(
        db=db,
        user_id=provider_id,
        title="New Recurring Booking",
        message=f"You have a new {pattern.lower()} recurring booking for {service_name}",
        notification_type=NotificationType.BOOKING_NEW,
        extra={"recurringId": str(recurring_id), "appointmentCount": appointment_count},
    )
