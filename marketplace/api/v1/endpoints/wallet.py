"""Wallet balance and deposit endpoints."""

import logging
from datetime import datetime
from typing import Optional
from uuid import UUID

from fastapi import APIRouter, Depends, HTTPException, Query
from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from marketplace.core.config import Settings, get_settings
from marketplace.core.database import get_db
from marketplace.core.deps import get_current_user, get_payfast_gateway, get_yoco_gateway
from marketplace.models.payment import Payment, PaymentProvider, PaymentStatus, PaymentType
from marketplace.models.user import User
from marketplace.models.wallet import Transaction
from marketplace.schemas.payment import (
    DepositOut,
    DepositRequest,
    DepositStatusOut,
    TransactionOut,
    WalletOut,
)
from marketplace.services.payments.payfast import PayFastGateway
from marketplace.services.payments.yoco import YocoGateway
from marketplace.services.reconciler import get_or_create_wallet

router = APIRouter()
logger = logging.getLogger(__name__)

RECENT_TRANSACTIONS = 50


@router.get("", response_model=WalletOut)
async def get_wallet(
    current_user: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_db),
):
    """Return the caller's wallet, creating it on first access."""
    wallet = await get_or_create_wallet(db, current_user.id)
    await db.commit()

    result = await db.execute(
        select(Transaction)
        .where(Transaction.wallet_id == wallet.id)
        .order_by(Transaction.created_at.desc())
        .limit(RECENT_TRANSACTIONS)
    )
    transactions = result.scalars().all()

    return WalletOut(
        id=wallet.id,
        user_id=wallet.user_id,
        balance=float(wallet.balance),
        currency=wallet.currency,
        transactions=[TransactionOut.model_validate(t) for t in transactions],
    )


@router.post("/deposit", response_model=DepositOut)
async def create_deposit(
    body: DepositRequest,
    current_user: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_db),
    settings: Settings = Depends(get_settings),
    yoco: YocoGateway = Depends(get_yoco_gateway),
    payfast: PayFastGateway = Depends(get_payfast_gateway),
):
    """Start a wallet deposit with the chosen gateway.

    The wallet is only credited once the gateway's webhook confirms the
    payment.
    """
    payment = Payment(
        user_id=current_user.id,
        amount=body.amount,
        currency="ZAR",
        status=PaymentStatus.PENDING,
        type=PaymentType.WALLET_DEPOSIT,
        provider=PaymentProvider.YOCO if body.provider == "yoco" else PaymentProvider.PAYFAST,
        description="Wallet deposit",
    )
    db.add(payment)
    await db.flush()

    wallet_url = f"{settings.BASE_URL}/dashboard/wallet"
    if body.provider == "yoco":
        checkout = await yoco.create_checkout(
            amount=body.amount,
            success_url=f"{wallet_url}?deposit=success&paymentId={payment.id}",
            cancel_url=f"{wallet_url}?deposit=cancelled&paymentId={payment.id}",
            failure_url=f"{wallet_url}?deposit=failed&paymentId={payment.id}",
            metadata={"paymentId": str(payment.id), "type": PaymentType.WALLET_DEPOSIT.value},
        )
    else:
        checkout = payfast.build_payment(
            payment_id=str(payment.id),
            amount=body.amount,
            item_name="Wallet Deposit",
            return_url=f"{wallet_url}?deposit=success&paymentId={payment.id}",
            cancel_url=f"{wallet_url}?deposit=cancelled&paymentId={payment.id}",
            notify_url=f"{settings.BASE_URL}/api/v1/payments/webhook/payfast",
            email=current_user.email,
            first_name=current_user.username,
            custom_str1=PaymentType.WALLET_DEPOSIT.value,
        )

    payment.updated_at = datetime.utcnow()
    if not checkout.success:
        payment.status = PaymentStatus.FAILED
        payment.failure_reason = checkout.error
        await db.commit()
        logger.warning("Deposit %s could not be started with %s: %s", payment.id, body.provider, checkout.error)
        raise HTTPException(status_code=400, detail=checkout.error or "Failed to initiate payment")

    payment.status = PaymentStatus.PROCESSING
    payment.provider_ref = checkout.provider_ref
    payment.provider_data = checkout.provider_data
    await db.commit()

    logger.info(
        "Deposit %s of R%s started with %s for user %s",
        payment.id, body.amount, body.provider, current_user.id,
    )
    return DepositOut(payment_id=payment.id, redirect_url=checkout.redirect_url)


@router.get("/deposit", response_model=DepositStatusOut)
async def get_deposit_status(
    payment_id: Optional[UUID] = Query(None, alias="paymentId"),
    current_user: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_db),
):
    """Report the state of one of the caller's deposits."""
    if payment_id is None:
        raise HTTPException(status_code=400, detail="Payment ID is required")

    result = await db.execute(
        select(Payment).where(
            Payment.id == payment_id,
            Payment.user_id == current_user.id,
            Payment.type == PaymentType.WALLET_DEPOSIT,
        )
    )
    payment = result.scalar_one_or_none()
    if not payment:
        raise HTTPException(status_code=404, detail="Payment not found")

    if payment.status == PaymentStatus.COMPLETED:
        message = "Deposit completed"
    elif payment.status == PaymentStatus.FAILED:
        message = f"Deposit failed: {payment.failure_reason or 'Payment failed'}"
    elif payment.status == PaymentStatus.CANCELLED:
        message = "Deposit cancelled"
    else:
        message = "Deposit is being processed"

    return DepositStatusOut(
        success=payment.status == PaymentStatus.COMPLETED,
        status=payment.status,
        amount=float(payment.amount),
        message=message,
    )
