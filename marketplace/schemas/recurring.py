"""Pydantic schemas for recurring appointments."""

from datetime import date
from typing import Optional
from uuid import UUID

from pydantic import Field, field_validator, model_validator

from marketplace.models.appointment import AppointmentStatus, RecurringPattern
from marketplace.schemas.common import CamelModel


class RecurringAppointmentCreate(CamelModel):
    """Request body for creating a recurring appointment."""
    service_id: UUID
    provider_id: UUID
    pattern: RecurringPattern
    frequency: int = Field(1, ge=1, le=4)
    day_of_week: Optional[int] = Field(None, ge=0, le=6)  # 0 = Sunday
    day_of_month: Optional[int] = Field(None, ge=1, le=31)
    time: str
    start_date: date
    end_date: Optional[date] = None
    occurrences: Optional[int] = Field(None, ge=1, le=52)
    address: Optional[str] = None
    note: Optional[str] = None

    @field_validator("time")
    @classmethod
    def check_time(cls, value: str) -> str:
        parts = value.split(":")
        if len(parts) != 2 or not all(len(p) == 2 and p.isdigit() for p in parts):
            raise ValueError("Time must be in HH:MM format")
        return value

    @field_validator("start_date", "end_date", mode="before")
    @classmethod
    def strip_time_part(cls, value):
        # Clients sometimes send full ISO timestamps
        if isinstance(value, str) and "T" in value:
            return value.split("T", 1)[0]
        return value

    @model_validator(mode="after")
    def check_range(self):
        if self.end_date is not None and self.end_date < self.start_date:
            raise ValueError("End date must be on or after start date")
        return self


class OccurrenceOut(CamelModel):
    id: UUID
    date: date
    time: str
    status: AppointmentStatus


class RecurringCreateOut(CamelModel):
    success: bool = True
    recurring_id: UUID
    appointments_created: int
    appointments: list[OccurrenceOut]


class ServiceSummary(CamelModel):
    id: UUID
    name: str
    price: Optional[float] = None


class UserSummary(CamelModel):
    id: UUID
    username: str
    picture: Optional[str] = None


class ProviderSummary(UserSummary):
    shop_name: Optional[str] = None


class RecurringOut(CamelModel):
    id: UUID
    pattern: RecurringPattern
    frequency: int
    day_of_week: Optional[int] = None
    day_of_month: Optional[int] = None
    time: str
    start_date: date
    end_date: Optional[date] = None
    occurrences: Optional[int] = None
    is_active: bool
    service: ServiceSummary
    requester: UserSummary
    provider: ProviderSummary
    total_appointments: int
    upcoming_appointments: list[OccurrenceOut]


class RecurringList(CamelModel):
    recurring: list[RecurringOut]
