"""Tests for recurring appointment expansion."""

import uuid
from unittest.mock import AsyncMock, patch
from datetime import date, timedelta

import pytest
from sqlalchemy import select

from marketplace.models.appointment import Appointment, RecurringAppointment, RecurringPattern
from marketplace.services.recurrence import (
    RecurrenceRule,
    extend_recurring_series,
    generate_occurrences,
    materialize_initial_batch,
    weekday_index,
)


def test_weekday_index_starts_on_sunday():
    assert weekday_index(date(2024, 1, 7)) == 0  # Sunday
    assert weekday_index(date(2024, 1, 1)) == 1  # Monday
    assert weekday_index(date(2024, 1, 6)) == 6  # Saturday


def test_weekly_monday_four_occurrences():
    rule = RecurrenceRule(
        pattern=RecurringPattern.WEEKLY,
        anchor_date=date(2024, 1, 1),
        day_of_week=1,
        occurrence_cap=4,
    )
    dates = generate_occurrences(rule)

    assert dates == [date(2024, 1, 1), date(2024, 1, 8), date(2024, 1, 15), date(2024, 1, 22)]
    assert all((b - a).days == 7 for a, b in zip(dates, dates[1:]))


def test_weekly_without_day_uses_anchor_weekday():
    rule = RecurrenceRule(
        pattern=RecurringPattern.WEEKLY,
        anchor_date=date(2024, 1, 3),  # Wednesday
        occurrence_cap=3,
    )
    assert generate_occurrences(rule) == [date(2024, 1, 3), date(2024, 1, 10), date(2024, 1, 17)]


def test_sunday_is_a_real_constraint():
    """day_of_week=0 must select Sundays, not fall back to the anchor weekday."""
    rule = RecurrenceRule(
        pattern=RecurringPattern.WEEKLY,
        anchor_date=date(2024, 1, 1),
        day_of_week=0,
        occurrence_cap=2,
    )
    assert generate_occurrences(rule) == [date(2024, 1, 7), date(2024, 1, 14)]


def test_biweekly_three_occurrences_fourteen_days_apart():
    rule = RecurrenceRule(
        pattern=RecurringPattern.BIWEEKLY,
        anchor_date=date(2024, 1, 1),
        day_of_week=1,
        occurrence_cap=3,
    )
    dates = generate_occurrences(rule)

    assert dates == [date(2024, 1, 1), date(2024, 1, 15), date(2024, 1, 29)]
    assert all((b - a).days == 14 for a, b in zip(dates, dates[1:]))


def test_biweekly_requires_day_of_week():
    rule = RecurrenceRule(pattern=RecurringPattern.BIWEEKLY, anchor_date=date(2024, 1, 1))
    assert generate_occurrences(rule) == []


def test_monthly_on_the_fifteenth():
    rule = RecurrenceRule(
        pattern=RecurringPattern.MONTHLY,
        anchor_date=date(2024, 1, 15),
        day_of_month=15,
        occurrence_cap=3,
    )
    assert generate_occurrences(rule) == [date(2024, 1, 15), date(2024, 2, 15), date(2024, 3, 15)]


def test_monthly_skips_months_without_that_day():
    rule = RecurrenceRule(
        pattern=RecurringPattern.MONTHLY,
        anchor_date=date(2024, 1, 1),
        day_of_month=31,
        occurrence_cap=4,
    )
    assert generate_occurrences(rule) == [
        date(2024, 1, 31), date(2024, 3, 31), date(2024, 5, 31), date(2024, 7, 31),
    ]


def test_monthly_defaults_to_anchor_day():
    rule = RecurrenceRule(
        pattern=RecurringPattern.MONTHLY,
        anchor_date=date(2024, 1, 10),
        occurrence_cap=2,
    )
    assert generate_occurrences(rule) == [date(2024, 1, 10), date(2024, 2, 10)]


def test_custom_every_third_week():
    rule = RecurrenceRule(
        pattern=RecurringPattern.CUSTOM,
        anchor_date=date(2024, 1, 1),
        frequency=3,
        occurrence_cap=3,
    )
    assert generate_occurrences(rule) == [date(2024, 1, 1), date(2024, 1, 22), date(2024, 2, 12)]


def test_default_cap_and_one_year_span():
    anchor = date(2024, 1, 1)
    rule = RecurrenceRule(pattern=RecurringPattern.WEEKLY, anchor_date=anchor, day_of_week=1)
    dates = generate_occurrences(rule)

    assert len(dates) == 52
    assert dates == sorted(set(dates))
    assert dates[0] >= anchor
    assert dates[-1] <= anchor + timedelta(days=365)


def test_end_date_is_inclusive_and_bounds_the_series():
    rule = RecurrenceRule(
        pattern=RecurringPattern.WEEKLY,
        anchor_date=date(2024, 1, 1),
        day_of_week=1,
        end_date=date(2024, 1, 15),
    )
    assert generate_occurrences(rule) == [date(2024, 1, 1), date(2024, 1, 8), date(2024, 1, 15)]


def test_far_end_date_is_clamped_to_one_year():
    rule = RecurrenceRule(
        pattern=RecurringPattern.MONTHLY,
        anchor_date=date(2024, 1, 15),
        day_of_month=15,
        end_date=date(2030, 1, 1),
    )
    dates = generate_occurrences(rule)

    assert len(dates) == 12
    assert dates[-1] == date(2024, 12, 15)


def _series(**overrides) -> RecurringAppointment:
    fields = dict(
        id=uuid.uuid4(),
        requester_id=uuid.uuid4(),
        provider_id=uuid.uuid4(),
        service_id=uuid.uuid4(),
        pattern=RecurringPattern.WEEKLY,
        frequency=1,
        day_of_week=1,
        time="09:00",
        start_date=date(2024, 1, 1),
        occurrences=10,
        is_active=True,
    )
    fields.update(overrides)
    return RecurringAppointment(**fields)


def test_initial_batch_is_capped_at_four():
    recurring = _series(occurrences=10)
    appointments = materialize_initial_batch(recurring)

    assert [a.date for a in appointments] == [
        date(2024, 1, 1), date(2024, 1, 8), date(2024, 1, 15), date(2024, 1, 22),
    ]
    assert all(a.recurring_appointment_id == recurring.id for a in appointments)
    assert all(a.time == "09:00" for a in appointments)


def test_initial_batch_respects_smaller_occurrence_count():
    appointments = materialize_initial_batch(_series(occurrences=2))
    assert len(appointments) == 2


async def _persist_series(db, customer, provider, service, **overrides) -> RecurringAppointment:
    recurring = _series(
        requester_id=customer.id,
        provider_id=provider.id,
        service_id=service.id,
        **overrides,
    )
    db.add(recurring)
    await db.flush()
    db.add_all(materialize_initial_batch(recurring))
    await db.commit()
    return recurring


async def _dates(db, recurring_id) -> list[date]:
    result = await db.execute(
        select(Appointment.date)
        .where(Appointment.recurring_appointment_id == recurring_id)
        .order_by(Appointment.date)
    )
    return list(result.scalars().all())


@pytest.mark.asyncio
async def test_extend_recurring_series_fills_horizon(db, customer, provider, service):
    recurring = await _persist_series(db, customer, provider, service, occurrences=None)

    summary = await extend_recurring_series(db, today=date(2024, 1, 20), horizon_days=28)

    assert summary == {"series": 1, "created": 3}
    assert await _dates(db, recurring.id) == [
        date(2024, 1, 1), date(2024, 1, 8), date(2024, 1, 15), date(2024, 1, 22),
        date(2024, 1, 29), date(2024, 2, 5), date(2024, 2, 12),
    ]


@pytest.mark.asyncio
async def test_extend_recurring_series_is_idempotent(db, customer, provider, service):
    await _persist_series(db, customer, provider, service, occurrences=None)

    await extend_recurring_series(db, today=date(2024, 1, 20), horizon_days=28)
    summary = await extend_recurring_series(db, today=date(2024, 1, 20), horizon_days=28)

    assert summary["created"] == 0


@pytest.mark.asyncio
async def test_extend_recurring_series_respects_occurrence_cap(db, customer, provider, service):
    recurring = await _persist_series(db, customer, provider, service, occurrences=5)

    summary = await extend_recurring_series(db, today=date(2024, 1, 20), horizon_days=60)

    assert summary["created"] == 1
    assert len(await _dates(db, recurring.id)) == 5


@pytest.mark.asyncio
async def test_extend_recurring_series_skips_inactive(db, customer, provider, service):
    recurring = await _persist_series(db, customer, provider, service, occurrences=None, is_active=False)

    summary = await extend_recurring_series(db, today=date(2024, 1, 20), horizon_days=28)

    assert summary == {"series": 0, "created": 0}
    assert len(await _dates(db, recurring.id)) == 4


def test_extend_recurring_command_passes_arguments():
    from marketplace.scripts import extend_recurring

    with patch.object(extend_recurring, "run", AsyncMock(return_value={"series": 2, "created": 5})) as run:
        exit_code = extend_recurring.main(["--today", "2024-01-20", "--horizon-days", "14"])

    assert exit_code == 0
    run.assert_awaited_once_with(date(2024, 1, 20), 14)


def test_extend_recurring_command_reports_failure():
    from marketplace.scripts import extend_recurring

    with patch.object(extend_recurring, "run", AsyncMock(side_effect=RuntimeError("db down"))):
        assert extend_recurring.main(["--today", "2024-01-20"]) == 1
