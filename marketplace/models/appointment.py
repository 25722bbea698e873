"""Appointment and recurring-appointment models."""

from sqlalchemy import (
    Column, String, DateTime, Integer, Date, Boolean, ForeignKey, Text,
    UniqueConstraint, Enum as SQLEnum,
)
from sqlalchemy.dialects.postgresql import UUID
from sqlalchemy.orm import relationship
import uuid
from datetime import datetime
import enum
from marketplace.core.database import Base


class AppointmentStatus(str, enum.Enum):
    PENDING = "PENDING"
    CONFIRMED = "CONFIRMED"
    COMPLETED = "COMPLETED"
    CANCELLED = "CANCELLED"
    NO_SHOW = "NO_SHOW"


class RecurringPattern(str, enum.Enum):
    WEEKLY = "WEEKLY"
    BIWEEKLY = "BIWEEKLY"
    MONTHLY = "MONTHLY"
    CUSTOM = "CUSTOM"


class RecurringAppointment(Base):
    """Owner of a recurrence rule. Rule fields never change after creation;
    pause/resume/cancel only flip is_active."""

    __tablename__ = "recurring_appointments"

    id = Column(UUID(as_uuid=True), primary_key=True, default=uuid.uuid4)
    requester_id = Column(UUID(as_uuid=True), ForeignKey("users.id", ondelete="CASCADE"), nullable=False, index=True)
    provider_id = Column(UUID(as_uuid=True), ForeignKey("users.id", ondelete="CASCADE"), nullable=False, index=True)
    service_id = Column(UUID(as_uuid=True), ForeignKey("services.id", ondelete="CASCADE"), nullable=False)

    pattern = Column(SQLEnum(RecurringPattern, name="recurring_pattern"), nullable=False)
    frequency = Column(Integer, nullable=False, default=1)
    day_of_week = Column(Integer, nullable=True)  # 0 = Sunday ... 6 = Saturday
    day_of_month = Column(Integer, nullable=True)
    time = Column(String(5), nullable=False)  # "HH:MM"
    start_date = Column(Date, nullable=False)
    end_date = Column(Date, nullable=True)
    occurrences = Column(Integer, nullable=True)
    address = Column(Text, nullable=True)
    note = Column(Text, nullable=True)
    is_active = Column(Boolean, nullable=False, default=True)

    created_at = Column(DateTime, default=datetime.utcnow)
    updated_at = Column(DateTime, default=datetime.utcnow, onupdate=datetime.utcnow)

    # Relationships
    service = relationship("Service")
    requester = relationship("User", foreign_keys=[requester_id])
    provider = relationship("User", foreign_keys=[provider_id])
    appointments = relationship("Appointment", back_populates="recurring_appointment")


class Appointment(Base):
    __tablename__ = "appointments"
    __table_args__ = (
        UniqueConstraint("recurring_appointment_id", "date", name="uq_appointments_recurring_date"),
    )

    id = Column(UUID(as_uuid=True), primary_key=True, default=uuid.uuid4)
    requester_id = Column(UUID(as_uuid=True), ForeignKey("users.id", ondelete="CASCADE"), nullable=False, index=True)
    provider_id = Column(UUID(as_uuid=True), ForeignKey("users.id", ondelete="CASCADE"), nullable=False, index=True)
    service_id = Column(UUID(as_uuid=True), ForeignKey("services.id", ondelete="CASCADE"), nullable=False)

    date = Column(Date, nullable=False, index=True)
    time = Column(String(5), nullable=False)
    status = Column(SQLEnum(AppointmentStatus, name="appointment_status"), default=AppointmentStatus.PENDING, nullable=False, index=True)
    payment_mode = Column(String, nullable=True)
    address = Column(Text, nullable=True)
    note = Column(Text, nullable=True)
    recurring_appointment_id = Column(
        UUID(as_uuid=True),
        ForeignKey("recurring_appointments.id", ondelete="SET NULL"),
        nullable=True,
        index=True,
    )

    created_at = Column(DateTime, default=datetime.utcnow)
    updated_at = Column(DateTime, default=datetime.utcnow, onupdate=datetime.utcnow)

    # Relationships
    service = relationship("Service")
    recurring_appointment = relationship("RecurringAppointment", back_populates="appointments")
