"""Recurring appointment endpoints.

Creating a series stores the rule and materialises the first few
occurrences; the rest are added later by the extend_recurring command.
"""

import logging
from datetime import date, datetime
from typing import Literal, Optional
from uuid import UUID

from fastapi import APIRouter, Depends, HTTPException, Query
from sqlalchemy import func, select, update
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy.orm import selectinload

from marketplace.core.config import Settings, get_settings
from marketplace.core.database import get_db
from marketplace.core.deps import get_current_user
from marketplace.models.appointment import Appointment, AppointmentStatus, RecurringAppointment
from marketplace.models.service import Service
from marketplace.models.user import User, UserType
from marketplace.schemas.common import MessageResponse
from marketplace.schemas.recurring import (
    OccurrenceOut,
    ProviderSummary,
    RecurringAppointmentCreate,
    RecurringCreateOut,
    RecurringList,
    RecurringOut,
    ServiceSummary,
    UserSummary,
)
from marketplace.services.notification_service import notify_new_recurring_booking
from marketplace.services.recurrence import materialize_initial_batch

router = APIRouter()
logger = logging.getLogger(__name__)

OPEN_STATUSES = (AppointmentStatus.PENDING, AppointmentStatus.CONFIRMED)


@router.post("", response_model=RecurringCreateOut)
async def create_recurring_appointment(
    body: RecurringAppointmentCreate,
    current_user: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_db),
    settings: Settings = Depends(get_settings),
):
    """Create a recurring series and its first batch of appointments."""
    result = await db.execute(
        select(Service).where(Service.id == body.service_id, Service.is_active.is_(True))
    )
    service = result.scalar_one_or_none()
    if not service:
        raise HTTPException(status_code=404, detail="Service not found")

    result = await db.execute(
        select(User).where(
            User.id == body.provider_id,
            User.user_type == UserType.SERVICE_PROVIDER,
        )
    )
    provider = result.scalar_one_or_none()
    if not provider:
        raise HTTPException(status_code=404, detail="Provider not found")

    recurring = RecurringAppointment(
        requester_id=current_user.id,
        provider_id=provider.id,
        service_id=service.id,
        pattern=body.pattern,
        frequency=body.frequency,
        day_of_week=body.day_of_week,
        day_of_month=body.day_of_month,
        time=body.time,
        start_date=body.start_date,
        end_date=body.end_date,
        occurrences=body.occurrences,
        address=body.address,
        note=body.note,
        is_active=True,
    )
    db.add(recurring)
    await db.flush()

    appointments = materialize_initial_batch(recurring, settings.RECURRING_INITIAL_BATCH)
    db.add_all(appointments)
    await db.commit()

    logger.info(
        "Created recurring appointment %s (%s) with %d appointment(s) for user %s",
        recurring.id, body.pattern.value, len(appointments), current_user.id,
    )

    response = RecurringCreateOut(
        recurring_id=recurring.id,
        appointments_created=len(appointments),
        appointments=[OccurrenceOut.model_validate(a) for a in appointments],
    )

    try:
        await notify_new_recurring_booking(
            db,
            provider_id=provider.id,
            pattern=body.pattern.value,
            service_name=service.name,
            recurring_id=recurring.id,
            appointment_count=len(appointments),
        )
    except Exception as e:
        logger.error("Failed to notify provider about recurring booking %s: %s", response.recurring_id, e)
        await db.rollback()

    return response


@router.get("", response_model=RecurringList)
async def list_recurring_appointments(
    role: Literal["customer", "provider"] = Query("customer"),
    current_user: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_db),
):
    """List the caller's recurring series, as customer or as provider."""
    owner_column = (
        RecurringAppointment.provider_id if role == "provider" else RecurringAppointment.requester_id
    )
    result = await db.execute(
        select(RecurringAppointment)
        .where(owner_column == current_user.id)
        .options(
            selectinload(RecurringAppointment.service),
            selectinload(RecurringAppointment.requester),
            selectinload(RecurringAppointment.provider).selectinload(User.shop),
        )
        .order_by(RecurringAppointment.created_at.desc())
    )
    series = result.scalars().all()

    today = date.today()
    items = []
    for recurring in series:
        total = (await db.execute(
            select(func.count(Appointment.id))
            .where(Appointment.recurring_appointment_id == recurring.id)
        )).scalar_one()

        upcoming = (await db.execute(
            select(Appointment)
            .where(
                Appointment.recurring_appointment_id == recurring.id,
                Appointment.date >= today,
                Appointment.status.in_(OPEN_STATUSES),
            )
            .order_by(Appointment.date.asc())
            .limit(3)
        )).scalars().all()

        provider = recurring.provider
        items.append(RecurringOut(
            id=recurring.id,
            pattern=recurring.pattern,
            frequency=recurring.frequency,
            day_of_week=recurring.day_of_week,
            day_of_month=recurring.day_of_month,
            time=recurring.time,
            start_date=recurring.start_date,
            end_date=recurring.end_date,
            occurrences=recurring.occurrences,
            is_active=recurring.is_active,
            service=ServiceSummary(
                id=recurring.service.id,
                name=recurring.service.name,
                price=float(recurring.service.price) if recurring.service.price is not None else None,
            ),
            requester=UserSummary.model_validate(recurring.requester),
            provider=ProviderSummary(
                id=provider.id,
                username=provider.username,
                picture=provider.picture,
                shop_name=provider.shop.name if provider.shop else None,
            ),
            total_appointments=total,
            upcoming_appointments=[OccurrenceOut.model_validate(a) for a in upcoming],
        ))

    return RecurringList(recurring=items)


@router.patch("", response_model=MessageResponse)
async def update_recurring_appointment(
    id: Optional[UUID] = Query(None),
    action: Optional[str] = Query(None),
    current_user: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_db),
):
    """Pause, resume or cancel a series.

    Cancelling also cancels every future occurrence that is still
    pending or confirmed.
    """
    if id is None:
        raise HTTPException(status_code=400, detail="Recurring appointment ID is required")
    if action not in ("pause", "resume", "cancel"):
        raise HTTPException(status_code=400, detail="Invalid action")

    result = await db.execute(select(RecurringAppointment).where(RecurringAppointment.id == id))
    recurring = result.scalar_one_or_none()
    if not recurring or current_user.id not in (recurring.requester_id, recurring.provider_id):
        raise HTTPException(status_code=404, detail="Recurring appointment not found")

    recurring.is_active = action == "resume"
    recurring.updated_at = datetime.utcnow()

    cancelled = 0
    if action == "cancel":
        stmt = (
            update(Appointment)
            .where(
                Appointment.recurring_appointment_id == recurring.id,
                Appointment.date >= date.today(),
                Appointment.status.in_(OPEN_STATUSES),
            )
            .values(status=AppointmentStatus.CANCELLED, updated_at=datetime.utcnow())
            .execution_options(synchronize_session=False)
        )
        cancelled = (await db.execute(stmt)).rowcount

    await db.commit()

    past = {"pause": "paused", "resume": "resumed", "cancel": "cancelled"}[action]
    logger.info(
        "Recurring appointment %s %s by user %s (%d future appointment(s) cancelled)",
        id, past, current_user.id, cancelled,
    )
    return MessageResponse(message=f"Recurring appointment {past}")
