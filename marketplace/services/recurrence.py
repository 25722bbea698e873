"""Recurring appointment expansion.

generate_occurrences() is a pure function of a RecurrenceRule: it walks
the calendar one day at a time from the anchor date and keeps the days
that match the rule's pattern. materialize_initial_batch() and
extend_recurring_series() turn those dates into Appointment rows.
"""

import logging
from dataclasses import dataclass, replace
from datetime import date, timedelta
from typing import Optional

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from marketplace.models.appointment import (
    Appointment,
    AppointmentStatus,
    RecurringAppointment,
    RecurringPattern,
)

logger = logging.getLogger(__name__)

DEFAULT_OCCURRENCE_CAP = 52  # one year of weekly appointments
MAX_SPAN = timedelta(days=365)
INITIAL_BATCH_SIZE = 4


@dataclass(frozen=True)
class RecurrenceRule:
    pattern: RecurringPattern
    anchor_date: date
    frequency: int = 1
    end_date: Optional[date] = None
    occurrence_cap: Optional[int] = None
    day_of_week: Optional[int] = None  # 0 = Sunday ... 6 = Saturday
    day_of_month: Optional[int] = None

    @classmethod
    def from_recurring(cls, recurring: RecurringAppointment) -> "RecurrenceRule":
        return cls(
            pattern=RecurringPattern(recurring.pattern),
            anchor_date=recurring.start_date,
            frequency=recurring.frequency or 1,
            end_date=recurring.end_date,
            occurrence_cap=recurring.occurrences,
            day_of_week=recurring.day_of_week,
            day_of_month=recurring.day_of_month,
        )

    @property
    def effective_end(self) -> date:
        horizon = self.anchor_date + MAX_SPAN
        if self.end_date is None:
            return horizon
        return min(self.end_date, horizon)

    @property
    def cap(self) -> int:
        return self.occurrence_cap or DEFAULT_OCCURRENCE_CAP


def weekday_index(d: date) -> int:
    """Weekday with Sunday as 0, matching the public API."""
    return d.isoweekday() % 7


def _matches(rule: RecurrenceRule, candidate: date) -> bool:
    weeks_since_anchor = (candidate - rule.anchor_date).days // 7
    weekday = weekday_index(candidate)

    if rule.pattern == RecurringPattern.WEEKLY:
        target = rule.day_of_week if rule.day_of_week is not None else weekday_index(rule.anchor_date)
        return weekday == target

    if rule.pattern == RecurringPattern.BIWEEKLY:
        return (
            rule.day_of_week is not None
            and weekday == rule.day_of_week
            and weeks_since_anchor % 2 == 0
        )

    if rule.pattern == RecurringPattern.MONTHLY:
        target = rule.day_of_month if rule.day_of_month is not None else rule.anchor_date.day
        return candidate.day == target

    if rule.pattern == RecurringPattern.CUSTOM:
        frequency = max(rule.frequency, 1)
        return (
            weeks_since_anchor % frequency == 0
            and weekday == weekday_index(rule.anchor_date)
        )

    return False


def generate_occurrences(rule: RecurrenceRule) -> list[date]:
    """Expand a rule into an ascending list of distinct dates.

    Bounded by the occurrence cap (default 52) and by
    min(end_date, anchor + 365 days), both inclusive.
    """
    dates: list[date] = []
    end = rule.effective_end
    cap = rule.cap
    current = rule.anchor_date

    while len(dates) < cap and current <= end:
        if _matches(rule, current) and current >= rule.anchor_date:
            dates.append(current)
        current += timedelta(days=1)

    return dates


def _new_occurrence(recurring: RecurringAppointment, occurrence_date: date) -> Appointment:
    return Appointment(
        requester_id=recurring.requester_id,
        provider_id=recurring.provider_id,
        service_id=recurring.service_id,
        date=occurrence_date,
        time=recurring.time,
        address=recurring.address,
        note=recurring.note,
        status=AppointmentStatus.PENDING,
        recurring_appointment_id=recurring.id,
    )


def materialize_initial_batch(
    recurring: RecurringAppointment,
    batch_size: int = INITIAL_BATCH_SIZE,
) -> list[Appointment]:
    """Build (unsaved) Appointment rows for the first batch of a new series.

    At most min(occurrences or batch_size, batch_size) rows are built.
    """
    rule = RecurrenceRule.from_recurring(recurring)
    first_batch = min(rule.occurrence_cap or batch_size, batch_size)
    dates = generate_occurrences(replace(rule, occurrence_cap=first_batch))
    return [_new_occurrence(recurring, d) for d in dates]


async def extend_recurring_series(
    db: AsyncSession,
    today: date,
    horizon_days: int = 28,
) -> dict:
    """Materialise upcoming occurrences for every active series.

    For each active RecurringAppointment the full series (capped by its
    occurrence count, default 52) is regenerated; dates inside
    [today, today + horizon_days] that have no Appointment row yet are
    inserted. The series cap counts every row already materialised,
    including cancelled ones. Safe to run repeatedly.
    """
    horizon = today + timedelta(days=horizon_days)

    result = await db.execute(
        select(RecurringAppointment).where(RecurringAppointment.is_active.is_(True))
    )
    series = result.scalars().all()

    created = 0
    for recurring in series:
        rule = RecurrenceRule.from_recurring(recurring)

        existing_result = await db.execute(
            select(Appointment.date).where(Appointment.recurring_appointment_id == recurring.id)
        )
        existing = set(existing_result.scalars().all())
        remaining = rule.cap - len(existing)
        if remaining <= 0:
            continue

        new_rows = []
        for occurrence_date in generate_occurrences(rule):
            if occurrence_date > horizon or len(new_rows) >= remaining:
                break
            if occurrence_date < today or occurrence_date in existing:
                continue
            new_rows.append(_new_occurrence(recurring, occurrence_date))

        if new_rows:
            db.add_all(new_rows)
            created += len(new_rows)
            logger.info(
                "Extended recurring series %s with %d appointment(s)",
                recurring.id, len(new_rows),
            )

    await db.commit()

    logger.info(
        "Recurring extension complete: %d series checked, %d appointment(s) created",
        len(series), created,
    )
    return {"series": len(series), "created": created}
