"""Notification endpoints."""

import logging
from fastapi import APIRouter, HTTPException, Depends, Query
from sqlalchemy import select, func, update
from sqlalchemy.ext.asyncio import AsyncSession
from uuid import UUID

from marketplace.core.database import get_db
from marketplace.core.deps import get_current_user
from marketplace.models.user import User
from marketplace.models.notification import Notification
from marketplace.schemas.notification import (
    NotificationOut,
    NotificationList,
    NotificationUnreadCount,
)
from marketplace.schemas.common import MessageResponse

router = APIRouter()
logger = logging.getLogger(__name__)


@router.get("", response_model=NotificationList)
async def list_notifications(
    page: int = Query(1, ge=1),
    page_size: int = Query(20, ge=1, le=100),
    unread_only: bool = Query(False),
    current_user: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_db),
):
    """List the caller's notifications, newest first."""
    conditions = [Notification.user_id == current_user.id]
    if unread_only:
        conditions.append(Notification.is_read.is_(False))

    total = (await db.execute(
        select(func.count(Notification.id)).where(*conditions)
    )).scalar_one()

    query = (
        select(Notification)
        .where(*conditions)
        .order_by(Notification.created_at.desc())
        .offset((page - 1) * page_size)
        .limit(page_size)
    )
    result = await db.execute(query)
    notifications = result.scalars().all()

    return NotificationList(
        notifications=[NotificationOut.model_validate(n) for n in notifications],
        total=total,
        page=page,
        page_size=page_size,
    )


@router.get("/unread-count", response_model=NotificationUnreadCount)
async def get_unread_count(
    current_user: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_db),
):
    query = select(func.count(Notification.id)).where(
        Notification.user_id == current_user.id,
        Notification.is_read.is_(False),
    )
    result = await db.execute(query)
    return NotificationUnreadCount(count=result.scalar_one())


@router.put("/mark-all-read", response_model=MessageResponse)
async def mark_all_notifications_read(
    current_user: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_db),
):
    """Mark all of the caller's notifications as read."""
    stmt = (
        update(Notification)
        .where(
            Notification.user_id == current_user.id,
            Notification.is_read.is_(False),
        )
        .values(is_read=True)
    )
    result = await db.execute(stmt)
    await db.commit()

    updated_count = result.rowcount
    logger.info("Marked %d notifications as read for user %s", updated_count, current_user.id)

    return MessageResponse(message=f"Marked {updated_count} notifications as read")


@router.put("/{notification_id}/read", response_model=MessageResponse)
async def mark_notification_read(
    notification_id: UUID,
    current_user: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_db),
):
    result = await db.execute(
        select(Notification).where(
            Notification.id == notification_id,
            Notification.user_id == current_user.id,
        )
    )
    notification = result.scalar_one_or_none()

    if not notification:
        raise HTTPException(status_code=404, detail="Notification not found")

    notification.is_read = True
    await db.commit()

    logger.info("Notification %s marked as read by user %s", notification_id, current_user.id)

    return MessageResponse(message="Notification marked as read")
