"""Payment model: one attempted external charge."""

from sqlalchemy import Column, String, DateTime, Numeric, ForeignKey, Text, Enum as SQLEnum
from sqlalchemy.dialects.postgresql import UUID
from sqlalchemy.types import JSON
from sqlalchemy.orm import relationship
import uuid
import enum
from datetime import datetime
from marketplace.core.database import Base


class PaymentStatus(str, enum.Enum):
    PENDING = "PENDING"
    PROCESSING = "PROCESSING"
    COMPLETED = "COMPLETED"
    FAILED = "FAILED"
    REFUNDED = "REFUNDED"
    CANCELLED = "CANCELLED"


# Once a payment reaches one of these it is never rewritten.
TERMINAL_PAYMENT_STATUSES = (
    PaymentStatus.COMPLETED,
    PaymentStatus.FAILED,
    PaymentStatus.REFUNDED,
    PaymentStatus.CANCELLED,
)


class PaymentType(str, enum.Enum):
    WALLET_DEPOSIT = "WALLET_DEPOSIT"
    ORDER = "ORDER"
    APPOINTMENT = "APPOINTMENT"


class PaymentProvider(str, enum.Enum):
    YOCO = "YOCO"
    PAYFAST = "PAYFAST"


class Payment(Base):
    __tablename__ = "payments"

    id = Column(UUID(as_uuid=True), primary_key=True, default=uuid.uuid4)
    user_id = Column(UUID(as_uuid=True), ForeignKey("users.id", ondelete="CASCADE"), nullable=False, index=True)
    amount = Column(Numeric(12, 2), nullable=False)
    currency = Column(String(3), nullable=False, default="ZAR")
    status = Column(SQLEnum(PaymentStatus, name="payment_status"), nullable=False, default=PaymentStatus.PENDING, index=True)
    type = Column(SQLEnum(PaymentType, name="payment_type"), nullable=False)
    provider = Column(SQLEnum(PaymentProvider, name="payment_provider"), nullable=False)
    provider_ref = Column(String, nullable=True, index=True)
    provider_data = Column(JSON, nullable=True)  # raw gateway payload
    description = Column(String, nullable=True)
    order_id = Column(UUID(as_uuid=True), ForeignKey("orders.id", ondelete="SET NULL"), nullable=True)
    appointment_id = Column(UUID(as_uuid=True), ForeignKey("appointments.id", ondelete="SET NULL"), nullable=True)
    failure_reason = Column(Text, nullable=True)
    completed_at = Column(DateTime, nullable=True)

    created_at = Column(DateTime, default=datetime.utcnow)
    updated_at = Column(DateTime, default=datetime.utcnow, onupdate=datetime.utcnow)

    # Relationships
    user = relationship("User")
    order = relationship("Order")
    appointment = relationship("Appointment")
