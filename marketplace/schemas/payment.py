"""Pydantic schemas for payment webhooks and wallet endpoints."""

from datetime import datetime
from decimal import Decimal
from typing import Literal, Optional
from uuid import UUID

from pydantic import BaseModel, ConfigDict, Field, field_validator

from marketplace.models.payment import PaymentStatus
from marketplace.models.wallet import TransactionType
from marketplace.schemas.common import CamelModel

MIN_DEPOSIT = Decimal("10")


class YocoWebhookMetadata(BaseModel):
    model_config = ConfigDict(extra="allow")

    payment_id: Optional[str] = Field(None, alias="paymentId")


class YocoWebhookIn(BaseModel):
    """Yoco notification body. Only the checkout id is trusted."""
    model_config = ConfigDict(extra="allow")

    id: Optional[str] = None
    status: Optional[str] = None
    metadata: Optional[YocoWebhookMetadata] = None


class YocoVerifyOut(BaseModel):
    success: bool
    status: PaymentStatus
    amount: Optional[float] = None


class PayFastITN(BaseModel):
    """PayFast ITN form fields we rely on. Unknown fields are kept for the signature."""
    model_config = ConfigDict(extra="allow")

    m_payment_id: str = ""
    pf_payment_id: str = ""
    payment_status: str
    amount_gross: str = ""
    merchant_id: str
    signature: str
    custom_str1: Optional[str] = None
    custom_str2: Optional[str] = None
    custom_str3: Optional[str] = None


class TransactionOut(CamelModel):
    id: UUID
    amount: float
    type: TransactionType
    description: Optional[str] = None
    reference: Optional[str] = None
    created_at: Optional[datetime] = None


class WalletOut(CamelModel):
    id: UUID
    user_id: UUID
    balance: float
    currency: str
    transactions: list[TransactionOut] = []


class DepositRequest(CamelModel):
    amount: Decimal
    provider: Literal["yoco", "payfast"] = "yoco"

    @field_validator("amount")
    @classmethod
    def check_minimum(cls, value: Decimal) -> Decimal:
        if value < MIN_DEPOSIT:
            raise ValueError(f"Minimum deposit is R{MIN_DEPOSIT}")
        return value.quantize(Decimal("0.01"))


class DepositOut(CamelModel):
    success: bool = True
    payment_id: UUID
    redirect_url: Optional[str] = None


class DepositStatusOut(CamelModel):
    success: bool
    status: PaymentStatus
    amount: Optional[float] = None
    message: str
