"""Tests for wallet and deposit endpoints."""

from decimal import Decimal
from unittest.mock import AsyncMock, patch
from uuid import UUID

import pytest
from sqlalchemy import select

from marketplace.models.payment import Payment, PaymentProvider, PaymentStatus, PaymentType
from marketplace.services.payments.base import CheckoutResult
from marketplace.services.payments.payfast import PayFastGateway, generate_signature
from marketplace.services.payments.yoco import YocoGateway


@pytest.mark.asyncio
async def test_get_wallet_creates_empty_wallet(client, customer_headers):
    resp = await client.get("/api/v1/wallet", headers=customer_headers)

    assert resp.status_code == 200
    data = resp.json()
    assert data["balance"] == 0.0
    assert data["currency"] == "ZAR"
    assert data["transactions"] == []

    again = await client.get("/api/v1/wallet", headers=customer_headers)
    assert again.json()["id"] == data["id"]


@pytest.mark.asyncio
async def test_wallet_requires_auth(client):
    resp = await client.get("/api/v1/wallet")
    assert resp.status_code == 401


@pytest.mark.asyncio
async def test_deposit_below_minimum_is_rejected(client, customer_headers):
    resp = await client.post(
        "/api/v1/wallet/deposit", json={"amount": 5, "provider": "yoco"}, headers=customer_headers
    )

    assert resp.status_code == 400
    assert resp.json()["detail"] == "Minimum deposit is R10"


@pytest.mark.asyncio
async def test_yoco_deposit_starts_checkout(client, db, customer_headers):
    checkout = CheckoutResult(
        success=True,
        provider_ref="ch_123",
        redirect_url="https://pay.yoco.com/ch_123",
        provider_data={"id": "ch_123"},
    )
    with patch.object(YocoGateway, "create_checkout", AsyncMock(return_value=checkout)) as create:
        resp = await client.post(
            "/api/v1/wallet/deposit", json={"amount": 150, "provider": "yoco"}, headers=customer_headers
        )

    assert resp.status_code == 200
    data = resp.json()
    assert data["success"] is True
    assert data["redirectUrl"] == "https://pay.yoco.com/ch_123"
    assert create.call_args.kwargs["metadata"]["paymentId"] == data["paymentId"]

    payment = (await db.execute(select(Payment).where(Payment.id == UUID(data["paymentId"])))).scalar_one()
    assert payment.status == PaymentStatus.PROCESSING
    assert payment.type == PaymentType.WALLET_DEPOSIT
    assert payment.provider == PaymentProvider.YOCO
    assert payment.provider_ref == "ch_123"
    assert payment.amount == Decimal("150.00")


@pytest.mark.asyncio
async def test_failed_checkout_marks_payment_failed(client, db, customer_headers):
    checkout = CheckoutResult(success=False, error="Yoco is not configured")
    with patch.object(YocoGateway, "create_checkout", AsyncMock(return_value=checkout)):
        resp = await client.post(
            "/api/v1/wallet/deposit", json={"amount": 50}, headers=customer_headers
        )

    assert resp.status_code == 400
    assert resp.json()["detail"] == "Yoco is not configured"

    payment = (await db.execute(select(Payment))).scalar_one()
    assert payment.status == PaymentStatus.FAILED
    assert payment.failure_reason == "Yoco is not configured"


@pytest.mark.asyncio
async def test_payfast_deposit_then_itn_credits_wallet(client, customer_headers, payfast_gateway):
    resp = await client.post(
        "/api/v1/wallet/deposit", json={"amount": "100.00", "provider": "payfast"}, headers=customer_headers
    )
    assert resp.status_code == 200
    data = resp.json()
    assert data["redirectUrl"].startswith("https://sandbox.payfast.co.za/eng/process?")

    status = await client.get(
        "/api/v1/wallet/deposit", params={"paymentId": data["paymentId"]}, headers=customer_headers
    )
    assert status.json() == {
        "success": False,
        "status": "PROCESSING",
        "amount": 100.0,
        "message": "Deposit is being processed",
    }

    itn = {
        "m_payment_id": data["paymentId"],
        "pf_payment_id": "2000001",
        "payment_status": "COMPLETE",
        "item_name": "Wallet Deposit",
        "amount_gross": "100.00",
        "merchant_id": payfast_gateway.merchant_id,
    }
    itn["signature"] = generate_signature(itn, payfast_gateway.passphrase)
    with patch.object(PayFastGateway, "validate_with_payfast", AsyncMock(return_value=True)):
        notify = await client.post(
            "/api/v1/payments/webhook/payfast", data=itn, headers={"x-forwarded-for": "197.97.145.144"}
        )
    assert notify.text == "OK"

    status = await client.get(
        "/api/v1/wallet/deposit", params={"paymentId": data["paymentId"]}, headers=customer_headers
    )
    assert status.json()["success"] is True
    assert status.json()["message"] == "Deposit completed"

    wallet = (await client.get("/api/v1/wallet", headers=customer_headers)).json()
    assert wallet["balance"] == 100.0
    assert len(wallet["transactions"]) == 1
    assert wallet["transactions"][0]["type"] == "CREDIT"
    assert wallet["transactions"][0]["reference"] == data["paymentId"]


@pytest.mark.asyncio
async def test_deposit_status_of_another_user_is_hidden(client, customer_headers, provider_headers):
    checkout = CheckoutResult(success=True, provider_ref="ch_9", redirect_url="https://pay.yoco.com/ch_9")
    with patch.object(YocoGateway, "create_checkout", AsyncMock(return_value=checkout)):
        resp = await client.post("/api/v1/wallet/deposit", json={"amount": 20}, headers=customer_headers)

    status = await client.get(
        "/api/v1/wallet/deposit", params={"paymentId": resp.json()["paymentId"]}, headers=provider_headers
    )
    assert status.status_code == 404


@pytest.mark.asyncio
async def test_deposit_status_requires_payment_id(client, customer_headers):
    resp = await client.get("/api/v1/wallet/deposit", headers=customer_headers)
    assert resp.status_code == 400
