"""PayFast gateway: signed redirect payments and ITN verification.

An ITN (Instant Transaction Notification) is a form POST from PayFast.
It is accepted only if the merchant id matches, the MD5 signature over
the sorted fields checks out, the sender IP is a PayFast address (in
production) and PayFast's validate endpoint answers "VALID".
"""

import hashlib
import hmac
import logging
from decimal import Decimal
from typing import Any, Mapping, Optional
from urllib.parse import quote, quote_plus, urlencode

import httpx

from marketplace.core.config import Settings
from marketplace.models.payment import PaymentStatus
from marketplace.services.payments.base import CheckoutResult, PaymentVerification

logger = logging.getLogger(__name__)

# Characters encodeURIComponent leaves alone besides alphanumerics and "-_."
_SAFE = "!~*'()"

PAYFAST_STATUS_MAP = {
    "COMPLETE": PaymentStatus.COMPLETED,
    "FAILED": PaymentStatus.FAILED,
    "PENDING": PaymentStatus.PROCESSING,
    "CANCELLED": PaymentStatus.CANCELLED,
}

SANDBOX_IPS = [
    "197.97.145.144",
    "197.97.145.145",
    "197.97.145.146",
    "197.97.145.147",
]

LIVE_IPS = SANDBOX_IPS + [
    "41.74.179.194",
    "41.74.179.195",
    "41.74.179.196",
    "41.74.179.197",
]


def map_payfast_status(payment_status: str | None) -> PaymentStatus:
    """Map PayFast's payment_status to ours; unknown values mean PROCESSING."""
    return PAYFAST_STATUS_MAP.get(payment_status or "", PaymentStatus.PROCESSING)


def generate_signature(fields: Mapping[str, Any], passphrase: Optional[str] = None) -> str:
    """MD5 over non-empty fields (excluding signature) sorted by key."""
    param_string = "&".join(
        f"{key}={quote_plus(str(fields[key]), safe=_SAFE)}"
        for key in sorted(fields)
        if key != "signature" and fields[key] not in (None, "")
    )
    if passphrase:
        param_string += f"&passphrase={quote(passphrase, safe=_SAFE)}"
    return hashlib.md5(param_string.encode("utf-8")).hexdigest()


class PayFastGateway:
    """PayFast merchant integration."""

    def __init__(
        self,
        merchant_id: str,
        merchant_key: str,
        passphrase: str = "",
        sandbox: bool = False,
        enforce_ip: bool = False,
        timeout: float = 15.0,
    ):
        self.merchant_id = merchant_id
        self.merchant_key = merchant_key
        self.passphrase = passphrase
        self.sandbox = sandbox
        self.enforce_ip = enforce_ip
        self.timeout = timeout

        host = "sandbox.payfast.co.za" if sandbox else "www.payfast.co.za"
        self.process_url = f"https://{host}/eng/process"
        self.validate_url = f"https://{host}/eng/query/validate"

    @classmethod
    def from_settings(cls, settings: Settings) -> "PayFastGateway":
        return cls(
            merchant_id=settings.PAYFAST_MERCHANT_ID,
            merchant_key=settings.PAYFAST_MERCHANT_KEY,
            passphrase=settings.PAYFAST_PASSPHRASE,
            sandbox=settings.PAYFAST_SANDBOX,
            enforce_ip=settings.is_production,
            timeout=settings.PAYMENT_HTTP_TIMEOUT,
        )

    @property
    def is_configured(self) -> bool:
        return bool(self.merchant_id and self.merchant_key)

    @property
    def allowed_ips(self) -> list[str]:
        return SANDBOX_IPS if self.sandbox else LIVE_IPS

    def build_payment(
        self,
        payment_id: str,
        amount: Decimal,
        item_name: str,
        return_url: str,
        cancel_url: str,
        notify_url: str,
        email: Optional[str] = None,
        first_name: Optional[str] = None,
        last_name: Optional[str] = None,
        custom_str1: Optional[str] = None,
    ) -> CheckoutResult:
        """Build a signed redirect to the PayFast payment page."""
        if not self.is_configured:
            return CheckoutResult(success=False, error="PayFast is not configured")

        fields: dict[str, str] = {
            "merchant_id": self.merchant_id,
            "merchant_key": self.merchant_key,
            "return_url": return_url,
            "cancel_url": cancel_url,
            "notify_url": notify_url,
            "m_payment_id": payment_id,
            "amount": f"{Decimal(amount):.2f}",
            "item_name": item_name,
        }
        if email:
            fields["email_address"] = email
        if first_name:
            fields["name_first"] = first_name
        if last_name:
            fields["name_last"] = last_name
        if custom_str1 and len(custom_str1) <= 255:
            fields["custom_str1"] = custom_str1

        fields["signature"] = generate_signature(fields, self.passphrase)

        return CheckoutResult(
            success=True,
            provider_ref=payment_id,
            redirect_url=f"{self.process_url}?{urlencode(fields)}",
            provider_data=fields,
        )

    def check_ip(self, client_ip: str) -> bool:
        """True when the sender may post ITNs.

        Outside production an unknown address only logs a warning.
        """
        if client_ip in self.allowed_ips:
            return True
        if self.enforce_ip:
            logger.warning("PayFast ITN from unauthorized IP rejected: %s", client_ip)
            return False
        logger.warning("PayFast ITN from unauthorized IP: %s (not enforced)", client_ip)
        return True

    async def validate_with_payfast(self, itn: Mapping[str, str]) -> bool:
        """POST the ITN back to PayFast; it must answer exactly VALID."""
        async with httpx.AsyncClient(timeout=self.timeout) as client:
            response = await client.post(self.validate_url, data=dict(itn))
        return response.text.strip() == "VALID"

    async def verify_itn(self, itn: Mapping[str, str], client_ip: str) -> PaymentVerification:
        if not self.is_configured:
            return PaymentVerification(verified=False, status=PaymentStatus.FAILED, error="PayFast is not configured")

        if itn.get("merchant_id") != self.merchant_id:
            return PaymentVerification(verified=False, status=PaymentStatus.FAILED, error="Invalid merchant ID")

        expected = generate_signature(itn, self.passphrase)
        if not hmac.compare_digest(expected, itn.get("signature", "")):
            return PaymentVerification(verified=False, status=PaymentStatus.FAILED, error="Invalid signature")

        if not self.check_ip(client_ip):
            return PaymentVerification(verified=False, status=PaymentStatus.FAILED, error="Invalid source IP")

        if not await self.validate_with_payfast(itn):
            return PaymentVerification(verified=False, status=PaymentStatus.FAILED, error="Payment validation failed")

        amount = itn.get("amount_gross")
        return PaymentVerification(
            verified=True,
            status=map_payfast_status(itn.get("payment_status")),
            provider_ref=itn.get("pf_payment_id"),
            amount=Decimal(amount) if amount else None,
            provider_data=dict(itn),
        )
