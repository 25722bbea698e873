"""Yoco and PayFast payment webhooks.

Thin HTTP layer: each handler authenticates the notification with its
gateway, then hands a PaymentUpdate to the reconciler.
"""

import logging
from typing import Optional

from fastapi import APIRouter, Depends, HTTPException, Query, Request
from fastapi.responses import PlainTextResponse
from pydantic import ValidationError
from sqlalchemy.ext.asyncio import AsyncSession

from marketplace.core.database import get_db
from marketplace.core.deps import get_payfast_gateway, get_yoco_gateway
from marketplace.models.payment import PaymentStatus
from marketplace.schemas.payment import PayFastITN, YocoVerifyOut, YocoWebhookIn
from marketplace.services.payments.payfast import PayFastGateway
from marketplace.services.payments.yoco import YocoGateway
from marketplace.services.reconciler import PaymentNotFoundError, PaymentUpdate, reconcile_payment

router = APIRouter()
logger = logging.getLogger(__name__)


@router.post("/yoco")
async def yoco_webhook(
    body: YocoWebhookIn,
    db: AsyncSession = Depends(get_db),
    yoco: YocoGateway = Depends(get_yoco_gateway),
):
    """Receive a Yoco checkout notification.

    The body is not trusted: the checkout is fetched from Yoco and its
    status there is what gets applied.
    """
    if not body.id:
        raise HTTPException(status_code=400, detail="Missing checkout ID")

    payment_id = body.metadata.payment_id if body.metadata else None
    logger.info("Yoco webhook: checkout=%s payment=%s status=%s", body.id, payment_id, body.status)

    try:
        verification = await yoco.verify_checkout(body.id)
        if not verification.verified:
            logger.warning("Yoco webhook rejected for checkout %s: %s", body.id, verification.error)
            raise HTTPException(status_code=400, detail=verification.error or "Failed to verify payment")

        await reconcile_payment(
            db,
            payment_id=payment_id,
            provider_ref=body.id,
            update_=PaymentUpdate(
                status=verification.status,
                provider_ref=body.id,
                provider_data=verification.provider_data,
                failure_reason=verification.error,
            ),
            provider_label="Yoco",
        )
    except HTTPException:
        raise
    except PaymentNotFoundError:
        raise HTTPException(status_code=404, detail="Payment not found")
    except Exception:
        logger.exception("Yoco webhook processing failed for checkout %s", body.id)
        await db.rollback()
        raise HTTPException(status_code=500, detail="Webhook processing failed")

    return {"success": True}


@router.get("/yoco", response_model=YocoVerifyOut)
async def verify_yoco_checkout(
    id: Optional[str] = Query(None),
    yoco: YocoGateway = Depends(get_yoco_gateway),
):
    """Look up a checkout's current status at Yoco."""
    if not id:
        raise HTTPException(status_code=400, detail="Missing checkout ID")

    try:
        verification = await yoco.verify_checkout(id)
    except Exception:
        logger.exception("Yoco verification failed for checkout %s", id)
        raise HTTPException(status_code=500, detail="Verification failed")

    if not verification.verified:
        raise HTTPException(status_code=400, detail=verification.error or "Failed to verify payment")

    return YocoVerifyOut(
        success=True,
        status=verification.status,
        amount=float(verification.amount) if verification.amount is not None else None,
    )


def _client_ip(request: Request) -> str:
    forwarded = request.headers.get("x-forwarded-for", "")
    if forwarded:
        return forwarded.split(",")[0].strip()
    return request.client.host if request.client else ""


@router.post("/payfast", response_class=PlainTextResponse)
async def payfast_itn(
    request: Request,
    db: AsyncSession = Depends(get_db),
    payfast: PayFastGateway = Depends(get_payfast_gateway),
):
    """Receive a PayFast ITN. PayFast expects a plain-text answer."""
    form = await request.form()
    itn = {key: str(value) for key, value in form.items()}
    client_ip = _client_ip(request)

    try:
        fields = PayFastITN.model_validate(itn)
    except ValidationError as e:
        logger.warning("Malformed PayFast ITN from %s: %s", client_ip, e.errors()[0]["msg"])
        return PlainTextResponse("ITN verification failed", status_code=400)

    logger.info(
        "PayFast ITN: payment=%s pf_payment=%s status=%s",
        fields.m_payment_id, fields.pf_payment_id, fields.payment_status,
    )

    try:
        verification = await payfast.verify_itn(itn, client_ip)
        if not verification.verified:
            logger.warning(
                "PayFast ITN rejected for payment %s: %s", fields.m_payment_id, verification.error
            )
            return PlainTextResponse("ITN verification failed", status_code=400)

        declined = verification.status == PaymentStatus.FAILED
        await reconcile_payment(
            db,
            payment_id=fields.m_payment_id,
            provider_ref=fields.pf_payment_id,
            update_=PaymentUpdate(
                status=verification.status,
                provider_ref=fields.pf_payment_id or None,
                provider_data=verification.provider_data,
                failure_notice="Payment was declined" if declined else None,
            ),
            provider_label="PayFast",
        )
    except PaymentNotFoundError:
        return PlainTextResponse("Payment not found", status_code=404)
    except Exception:
        logger.exception("PayFast ITN processing failed for payment %s", fields.m_payment_id)
        await db.rollback()
        return PlainTextResponse("Internal server error", status_code=500)

    return PlainTextResponse("OK")
