"""Yoco checkout gateway.

Yoco webhooks carry only a checkout id; authenticity comes from asking
the Yoco API for that checkout with our secret key.
"""

import logging
from decimal import Decimal
from typing import Any, Optional

import httpx

from marketplace.core.config import Settings
from marketplace.models.payment import PaymentStatus
from marketplace.services.payments.base import CheckoutResult, PaymentVerification

logger = logging.getLogger(__name__)

YOCO_STATUS_MAP = {
    "pending": PaymentStatus.PENDING,
    "successful": PaymentStatus.COMPLETED,
    "failed": PaymentStatus.FAILED,
}


def map_yoco_status(status: str | None) -> PaymentStatus:
    return YOCO_STATUS_MAP.get((status or "").lower(), PaymentStatus.PENDING)


class YocoGateway:
    """Thin async client for the Yoco checkout API."""

    def __init__(
        self,
        secret_key: str,
        public_key: str = "",
        api_url: str = "https://online.yoco.com/v1",
        timeout: float = 15.0,
    ):
        self.secret_key = secret_key
        self.public_key = public_key
        self.api_url = api_url.rstrip("/")
        self.timeout = timeout

    @classmethod
    def from_settings(cls, settings: Settings) -> "YocoGateway":
        return cls(
            secret_key=settings.YOCO_SECRET_KEY,
            public_key=settings.YOCO_PUBLIC_KEY,
            api_url=settings.YOCO_API_URL,
            timeout=settings.PAYMENT_HTTP_TIMEOUT,
        )

    @property
    def is_configured(self) -> bool:
        return bool(self.secret_key)

    def _headers(self) -> dict:
        return {
            "Authorization": f"Bearer {self.secret_key}",
            "Content-Type": "application/json",
        }

    async def create_checkout(
        self,
        amount: Decimal,
        success_url: str,
        cancel_url: str,
        failure_url: Optional[str] = None,
        currency: str = "ZAR",
        metadata: Optional[dict[str, Any]] = None,
    ) -> CheckoutResult:
        """Create a hosted checkout. Amounts are sent in cents."""
        if not self.is_configured:
            return CheckoutResult(success=False, error="Yoco is not configured")

        payload = {
            "amount": int((Decimal(amount) * 100).to_integral_value()),
            "currency": currency,
            "successUrl": success_url,
            "cancelUrl": cancel_url,
            "failureUrl": failure_url or cancel_url,
            "metadata": metadata or {},
        }

        try:
            async with httpx.AsyncClient(timeout=self.timeout) as client:
                response = await client.post(
                    f"{self.api_url}/checkouts", headers=self._headers(), json=payload
                )
        except httpx.HTTPError as e:
            logger.error("Yoco checkout request failed: %s", e)
            return CheckoutResult(success=False, error="Failed to initiate Yoco payment")

        if response.status_code >= 400:
            try:
                message = response.json().get("message")
            except ValueError:
                message = None
            logger.warning("Yoco rejected checkout (%s): %s", response.status_code, message)
            return CheckoutResult(success=False, error=message or "Failed to initiate Yoco payment")

        data = response.json()
        logger.info("Created Yoco checkout %s", data.get("id"))
        return CheckoutResult(
            success=True,
            provider_ref=data.get("id"),
            redirect_url=data.get("redirectUrl"),
            provider_data=data,
        )

    async def verify_checkout(self, checkout_id: str) -> PaymentVerification:
        """Fetch a checkout from Yoco and translate its status.

        Transport errors propagate so the caller can answer with a
        retryable error.
        """
        if not self.is_configured:
            return PaymentVerification(verified=False, status=PaymentStatus.FAILED, error="Yoco is not configured")

        async with httpx.AsyncClient(timeout=self.timeout) as client:
            response = await client.get(
                f"{self.api_url}/checkouts/{checkout_id}", headers=self._headers()
            )

        if response.status_code != 200:
            logger.warning(
                "Yoco verification for checkout %s returned %s", checkout_id, response.status_code
            )
            return PaymentVerification(verified=False, status=PaymentStatus.FAILED, error="Failed to verify payment")

        data = response.json()
        amount = data.get("amount")
        return PaymentVerification(
            verified=True,
            status=map_yoco_status(data.get("status")),
            provider_ref=data.get("id", checkout_id),
            amount=(Decimal(amount) / 100) if amount is not None else None,
            provider_data=data,
            error=data.get("errorMessage"),
        )
