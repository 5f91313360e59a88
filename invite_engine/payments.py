"""USD pricing and Razorpay order/verification calls"""

import base64
import hashlib
import hmac
import logging
import math
import time
from dataclasses import dataclass
from typing import Optional

import httpx

from .errors import InvalidRequestError, PaymentError, PaymentsDisabledError

logger = logging.getLogger(__name__)

# Orders for this venue are charged the dev price (used for live smoke tests)
DEV_MODE_VENUE = "Hotel Jain Ji Shubham"
SUPPORTED_CURRENCY = "USD"


def to_minor_units(amount) -> Optional[int]:
    """4.99 -> 499; None for non-numeric input"""
    try:
        major = float(amount)
    except (TypeError, ValueError):
        return None
    if not math.isfinite(major):
        return None
    return int(round(major * 100))


@dataclass(frozen=True)
class OrderAmount:
    currency: str
    major_amount: float

    @property
    def minor_amount(self) -> Optional[int]:
        return to_minor_units(self.major_amount)


@dataclass(frozen=True)
class Pricing:
    price_usd: float = 4.99
    dev_price_usd: float = 1.0
    dev_mode: bool = False

    @staticmethod
    def is_dev_venue(venue: str) -> bool:
        if not venue:
            return False
        return venue.strip().lower() == DEV_MODE_VENUE.lower()

    def resolve(self, venue: str = "") -> OrderAmount:
        dev_order = self.dev_mode or self.is_dev_venue(venue)
        amount = self.dev_price_usd if dev_order else self.price_usd
        return OrderAmount(currency=SUPPORTED_CURRENCY, major_amount=amount)


class RazorpayClient:
    """Thin async wrapper over the Razorpay REST API"""

    def __init__(self, key_id: str, key_secret: str, pricing: Pricing, enabled: bool = True,
                 base_url: str = "https://api.razorpay.com", timeout: float = 20.0,
                 transport: httpx.AsyncBaseTransport = None):
        self.key_id = key_id
        self.key_secret = key_secret
        self.pricing = pricing
        self.enabled = enabled
        self.base_url = base_url.rstrip("/")
        self.timeout = timeout
        self._transport = transport

    def _require_enabled(self) -> None:
        if not self.enabled:
            raise PaymentsDisabledError("Razorpay is disabled")
        if not self.key_id or not self.key_secret:
            raise PaymentError("Razorpay credentials missing", public_message="Razorpay configuration missing")

    def _client(self) -> httpx.AsyncClient:
        return httpx.AsyncClient(
            base_url=self.base_url,
            auth=(self.key_id, self.key_secret),
            timeout=self.timeout,
            transport=self._transport,
        )

    async def create_order(self, venue: str = "", currency: str = None, request_id: str = "") -> dict:
        self._require_enabled()
        if currency and str(currency).upper() != SUPPORTED_CURRENCY:
            raise InvalidRequestError("Only USD payments are supported")

        resolved = self.pricing.resolve(venue)
        amount_minor = resolved.minor_amount
        if not amount_minor or amount_minor <= 0:
            raise InvalidRequestError("Invalid amount")

        payload = {
            "amount": amount_minor,
            "currency": resolved.currency,
            "receipt": f"receipt_{request_id}",
            "payment_capture": 1,
        }
        if venue:
            payload["notes"] = {"venue": venue[:120]}

        logger.info(f"💳 [{request_id}] Creating Razorpay order ({amount_minor} {resolved.currency})")
        async with self._client() as client:
            response = await client.post("/v1/orders", json=payload)
        if response.status_code >= 400:
            logger.error(f"❌ [{request_id}] Razorpay order failed: {response.status_code} {response.text[:200]}")
            raise PaymentError(
                f"Razorpay responded {response.status_code}: {response.text[:500]}",
                public_message="Failed to create Razorpay order",
            )

        order = response.json()
        logger.info(f"✅ [{request_id}] Razorpay order created: {order.get('id')}")
        return {
            "success": True,
            "orderId": order.get("id"),
            "amount": resolved.major_amount,
            "currency": resolved.currency,
        }

    def signature_valid(self, order_id: str, payment_id: str, signature: str) -> bool:
        expected = hmac.new(
            self.key_secret.encode("utf-8"),
            f"{order_id}|{payment_id}".encode("utf-8"),
            hashlib.sha256,
        ).hexdigest()
        return hmac.compare_digest(expected.encode("utf-8"), str(signature or "").encode("utf-8"))

    async def verify(self, order_id: str, payment_id: str, signature: str,
                     venue: str = "", request_id: str = "") -> dict:
        """Check the checkout signature, then confirm the payment is captured for the right amount"""
        self._require_enabled()
        if not order_id or not payment_id or not signature:
            raise InvalidRequestError("Missing Razorpay verification payload")

        not_verified = {"success": True, "verified": False, "verificationToken": None}
        if not self.signature_valid(order_id, payment_id, signature):
            logger.warning(f"⚠️ [{request_id}] Razorpay signature mismatch for order {order_id}")
            return not_verified

        async with self._client() as client:
            response = await client.get(f"/v1/payments/{payment_id}")
        if response.status_code >= 400:
            logger.error(f"❌ [{request_id}] Razorpay payment lookup failed: {response.status_code}")
            return not_verified

        payment = response.json()
        status = str(payment.get("status") or "").lower()
        currency = str(payment.get("currency") or "").upper()
        expected_amount = self.pricing.resolve(venue).minor_amount
        verified = (
            status == "captured"
            and currency == SUPPORTED_CURRENCY
            and payment.get("order_id") == order_id
            and (expected_amount is None or payment.get("amount") == expected_amount)
        )
        logger.info(f"💳 [{request_id}] Razorpay verification: status={status} verified={verified}")

        token = None
        if verified:
            token = base64.b64encode(f"{payment_id}:{int(time.time() * 1000)}".encode("utf-8")).decode("ascii")
        return {"success": True, "verified": verified, "verificationToken": token}
