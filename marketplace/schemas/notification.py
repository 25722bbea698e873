"""Pydantic schemas for notifications."""

from pydantic import BaseModel
from typing import Any, Optional
from uuid import UUID
from datetime import datetime
from marketplace.models.notification import NotificationType


class NotificationOut(BaseModel):
    """Response schema for notification."""
    id: UUID
    user_id: UUID
    title: str
    message: str
    type: NotificationType
    link: Optional[str] = None
    extra: Optional[dict[str, Any]] = None
    is_read: bool
    created_at: datetime

    class Config:
        from_attributes = True


class NotificationList(BaseModel):
    """Response schema for paginated notifications."""
    notifications: list[NotificationOut]
    total: int
    page: int
    page_size: int


class NotificationUnreadCount(BaseModel):
    """Response schema for unread notification count."""
    count: int
