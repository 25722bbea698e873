"""Tests for payment reconciliation and wallet crediting."""

from decimal import Decimal
from unittest.mock import AsyncMock, patch

import pytest
from sqlalchemy import select, text
from sqlalchemy.exc import IntegrityError

from marketplace.models.notification import Notification
from marketplace.models.payment import Payment, PaymentProvider, PaymentStatus, PaymentType
from marketplace.models.wallet import Transaction, TransactionType, Wallet
from marketplace.services.reconciler import (
    PaymentNotFoundError,
    PaymentUpdate,
    credit_wallet,
    reconcile_payment,
)


async def _deposit(db, user, status=PaymentStatus.PROCESSING) -> Payment:
    payment = Payment(
        user_id=user.id,
        amount=Decimal("75.50"),
        status=status,
        type=PaymentType.WALLET_DEPOSIT,
        provider=PaymentProvider.YOCO,
        provider_ref="ch_abc",
    )
    db.add(payment)
    await db.commit()
    return payment


@pytest.mark.asyncio
async def test_reconcile_applies_once(db, customer):
    payment = await _deposit(db, customer)
    payment_id, user_id = str(payment.id), customer.id
    update = PaymentUpdate(status=PaymentStatus.COMPLETED, provider_ref="ch_abc")

    first = await reconcile_payment(db, payment_id, None, update, "Yoco")
    second = await reconcile_payment(db, payment_id, None, update, "Yoco")

    assert first.applied is True
    assert first.previous_status == PaymentStatus.PROCESSING
    assert first.status == PaymentStatus.COMPLETED
    assert second.applied is False
    assert second.status == PaymentStatus.COMPLETED

    wallet = (await db.execute(
        select(Wallet).where(Wallet.user_id == user_id).execution_options(populate_existing=True)
    )).scalar_one()
    assert wallet.balance == Decimal("75.50")


@pytest.mark.asyncio
async def test_terminal_payment_is_never_rewritten(db, customer):
    payment = await _deposit(db, customer, status=PaymentStatus.FAILED)
    payment_id = payment.id

    result = await reconcile_payment(
        db, None, "ch_abc", PaymentUpdate(status=PaymentStatus.COMPLETED), "Yoco"
    )

    assert result.applied is False
    refreshed = (await db.execute(
        select(Payment).where(Payment.id == payment_id).execution_options(populate_existing=True)
    )).scalar_one()
    assert refreshed.status == PaymentStatus.FAILED
    assert (await db.execute(select(Wallet))).scalars().all() == []


@pytest.mark.asyncio
async def test_unknown_payment_raises(db):
    with pytest.raises(PaymentNotFoundError):
        await reconcile_payment(
            db, "not-a-uuid", "ch_missing", PaymentUpdate(status=PaymentStatus.COMPLETED), "Yoco"
        )


@pytest.mark.asyncio
async def test_side_effect_failure_rolls_back_status(db, customer):
    payment = await _deposit(db, customer)
    payment_id = payment.id

    with patch(
        "marketplace.services.reconciler.credit_wallet",
        AsyncMock(side_effect=RuntimeError("ledger unavailable")),
    ):
        with pytest.raises(RuntimeError):
            await reconcile_payment(
                db, str(payment_id), None, PaymentUpdate(status=PaymentStatus.COMPLETED), "Yoco"
            )

    refreshed = (await db.execute(
        select(Payment).where(Payment.id == payment_id).execution_options(populate_existing=True)
    )).scalar_one()
    assert refreshed.status == PaymentStatus.PROCESSING


@pytest.mark.asyncio
async def test_notification_failure_does_not_undo_credit(db, customer):
    payment = await _deposit(db, customer)
    payment_id, user_id = str(payment.id), customer.id

    with patch(
        "marketplace.services.reconciler.notify_payment_received",
        AsyncMock(side_effect=RuntimeError("smtp down")),
    ):
        result = await reconcile_payment(
            db, payment_id, None, PaymentUpdate(status=PaymentStatus.COMPLETED), "Yoco"
        )

    assert result.applied is True
    wallet = (await db.execute(
        select(Wallet).where(Wallet.user_id == user_id).execution_options(populate_existing=True)
    )).scalar_one()
    assert wallet.balance == Decimal("75.50")
    assert (await db.execute(select(Notification))).scalars().all() == []


@pytest.mark.asyncio
async def test_ledger_rejects_duplicate_credit_reference(db, customer):
    user_id = customer.id
    await credit_wallet(db, user_id, Decimal("10.00"), "Wallet deposit via Yoco", "ref-1")
    await db.commit()

    with pytest.raises(IntegrityError):
        await credit_wallet(db, user_id, Decimal("10.00"), "Wallet deposit via Yoco", "ref-1")
    await db.rollback()

    transactions = (await db.execute(select(Transaction))).scalars().all()
    assert len(transactions) == 1
    assert transactions[0].type == TransactionType.CREDIT
    wallet = (await db.execute(
        select(Wallet).where(Wallet.user_id == user_id).execution_options(populate_existing=True)
    )).scalar_one()
    assert wallet.balance == Decimal("10.00")


@pytest.mark.asyncio
async def test_notification_failure_after_db_work_still_acknowledges(db, customer):
    payment = await _deposit(db, customer)
    payment_id, user_id = payment.id, customer.id

    async def failing_notify(session, *args, **kwargs):
        await session.execute(text("SELECT 1"))
        raise RuntimeError("notification store unavailable")

    with patch("marketplace.services.reconciler.notify_payment_received", failing_notify):
        result = await reconcile_payment(
            db, str(payment_id), None, PaymentUpdate(status=PaymentStatus.COMPLETED), "Yoco"
        )

    assert result.applied is True
    assert result.payment_id == payment_id
    assert result.status == PaymentStatus.COMPLETED
    wallet = (await db.execute(
        select(Wallet).where(Wallet.user_id == user_id).execution_options(populate_existing=True)
    )).scalar_one()
    assert wallet.balance == Decimal("75.50")


@pytest.mark.asyncio
async def test_processing_payment_is_not_moved_back_to_pending(db, customer):
    payment = await _deposit(db, customer, status=PaymentStatus.PROCESSING)
    payment_id = payment.id

    result = await reconcile_payment(
        db, str(payment_id), None, PaymentUpdate(status=PaymentStatus.PENDING), "Yoco"
    )

    assert result.applied is False
    assert result.status == PaymentStatus.PROCESSING
    refreshed = (await db.execute(
        select(Payment).where(Payment.id == payment_id).execution_options(populate_existing=True)
    )).scalar_one()
    assert refreshed.status == PaymentStatus.PROCESSING


@pytest.mark.asyncio
async def test_pending_payment_moves_forward_to_processing(db, customer):
    payment = await _deposit(db, customer, status=PaymentStatus.PENDING)
    payment_id = payment.id

    result = await reconcile_payment(
        db, str(payment_id), None, PaymentUpdate(status=PaymentStatus.PROCESSING), "PayFast"
    )

    assert result.applied is True
    assert result.previous_status == PaymentStatus.PENDING
    refreshed = (await db.execute(
        select(Payment).where(Payment.id == payment_id).execution_options(populate_existing=True)
    )).scalar_one()
    assert refreshed.status == PaymentStatus.PROCESSING
