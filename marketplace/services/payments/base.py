"""Shared payment gateway types."""

from dataclasses import dataclass, field
from decimal import Decimal
from typing import Any, Optional

from marketplace.models.payment import PaymentStatus


@dataclass
class CheckoutResult:
    """Outcome of initiating a payment with a gateway."""
    success: bool
    provider_ref: Optional[str] = None
    redirect_url: Optional[str] = None
    provider_data: Optional[dict[str, Any]] = None
    error: Optional[str] = None


@dataclass
class PaymentVerification:
    """Outcome of authenticating a gateway notification.

    verified is False when the notification must be rejected; status is
    only meaningful when verified is True.
    """
    verified: bool
    status: PaymentStatus = PaymentStatus.PENDING
    provider_ref: Optional[str] = None
    amount: Optional[Decimal] = None
    provider_data: dict[str, Any] = field(default_factory=dict)
    error: Optional[str] = None
