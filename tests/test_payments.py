"""Tests for pricing and the Razorpay client (HTTP mocked with httpx.MockTransport)."""

import asyncio
import base64
import hashlib
import hmac
import json

import httpx
import pytest

from invite_engine.errors import InvalidRequestError, PaymentError, PaymentsDisabledError
from invite_engine.payments import DEV_MODE_VENUE, Pricing, RazorpayClient, to_minor_units

SECRET = "test_secret"


def _sign(order_id, payment_id, secret=SECRET):
    return hmac.new(secret.encode(), f"{order_id}|{payment_id}".encode(), hashlib.sha256).hexdigest()


class Recorder:
    """MockTransport handler that records requests and replays canned responses"""

    def __init__(self, responses):
        self.responses = responses
        self.requests = []

    def __call__(self, request: httpx.Request) -> httpx.Response:
        self.requests.append(request)
        status, body = self.responses[(request.method, request.url.path)]
        return httpx.Response(status, json=body)


def _client(handler, pricing=None, enabled=True):
    return RazorpayClient(
        key_id="rzp_test_key",
        key_secret=SECRET,
        pricing=pricing or Pricing(price_usd=4.99, dev_price_usd=1.0),
        enabled=enabled,
        transport=httpx.MockTransport(handler),
    )


class TestPricing:
    """Tests for Pricing.resolve()."""

    def test_default_price(self):
        resolved = Pricing().resolve("Grand Hall")
        assert resolved.currency == "USD"
        assert resolved.major_amount == 4.99
        assert resolved.minor_amount == 499

    def test_dev_venue(self):
        assert Pricing().resolve(f"  {DEV_MODE_VENUE.upper()} ").minor_amount == 100

    def test_dev_mode(self):
        assert Pricing(dev_mode=True).resolve("Grand Hall").major_amount == 1.0

    def test_to_minor_units(self):
        assert to_minor_units("4.99") == 499
        assert to_minor_units("abc") is None
        assert to_minor_units(float("nan")) is None


class TestCreateOrder:
    """Tests for RazorpayClient.create_order()."""

    def test_success(self):
        recorder = Recorder({("POST", "/v1/orders"): (200, {"id": "order_123"})})
        result = asyncio.run(_client(recorder).create_order(venue="Grand Hall", currency="usd", request_id="abc"))
        assert result == {"success": True, "orderId": "order_123", "amount": 4.99, "currency": "USD"}

        request = recorder.requests[0]
        payload = json.loads(request.content)
        assert payload["amount"] == 499
        assert payload["currency"] == "USD"
        assert payload["notes"] == {"venue": "Grand Hall"}
        expected_auth = base64.b64encode(f"rzp_test_key:{SECRET}".encode()).decode()
        assert request.headers["authorization"] == f"Basic {expected_auth}"

    def test_non_usd_rejected(self):
        recorder = Recorder({})
        with pytest.raises(InvalidRequestError):
            asyncio.run(_client(recorder).create_order(currency="INR"))
        assert recorder.requests == []

    def test_upstream_error(self):
        recorder = Recorder({("POST", "/v1/orders"): (401, {"error": {"description": "Authentication failed"}})})
        with pytest.raises(PaymentError) as exc_info:
            asyncio.run(_client(recorder).create_order())
        assert exc_info.value.status_code == 502
        assert exc_info.value.public_message == "Failed to create Razorpay order"

    def test_disabled(self):
        with pytest.raises(PaymentsDisabledError) as exc_info:
            asyncio.run(_client(Recorder({}), enabled=False).create_order())
        assert exc_info.value.status_code == 503


class TestVerify:
    """Tests for RazorpayClient.verify()."""

    def _payment(self, **overrides):
        payment = {"id": "pay_1", "order_id": "order_1", "status": "captured", "currency": "USD", "amount": 499}
        payment.update(overrides)
        return payment

    def test_signature(self):
        client = _client(Recorder({}))
        assert client.signature_valid("order_1", "pay_1", _sign("order_1", "pay_1"))
        assert not client.signature_valid("order_1", "pay_1", _sign("order_1", "pay_1", secret="other"))
        assert not client.signature_valid("order_1", "pay_1", "ünïcode")

    def test_verified(self):
        recorder = Recorder({("GET", "/v1/payments/pay_1"): (200, self._payment())})
        result = asyncio.run(_client(recorder).verify("order_1", "pay_1", _sign("order_1", "pay_1")))
        assert result["success"] is True
        assert result["verified"] is True
        token = base64.b64decode(result["verificationToken"]).decode()
        assert token.startswith("pay_1:")

    def test_bad_signature_skips_lookup(self):
        recorder = Recorder({})
        result = asyncio.run(_client(recorder).verify("order_1", "pay_1", "deadbeef"))
        assert result == {"success": True, "verified": False, "verificationToken": None}
        assert recorder.requests == []

    def test_not_captured(self):
        recorder = Recorder({("GET", "/v1/payments/pay_1"): (200, self._payment(status="authorized"))})
        result = asyncio.run(_client(recorder).verify("order_1", "pay_1", _sign("order_1", "pay_1")))
        assert result["verified"] is False

    def test_wrong_amount(self):
        recorder = Recorder({("GET", "/v1/payments/pay_1"): (200, self._payment(amount=100))})
        result = asyncio.run(_client(recorder).verify("order_1", "pay_1", _sign("order_1", "pay_1")))
        assert result["verified"] is False

    def test_dev_venue_amount(self):
        recorder = Recorder({("GET", "/v1/payments/pay_1"): (200, self._payment(amount=100))})
        result = asyncio.run(_client(recorder).verify(
            "order_1", "pay_1", _sign("order_1", "pay_1"), venue=DEV_MODE_VENUE
        ))
        assert result["verified"] is True

    def test_missing_payload(self):
        with pytest.raises(InvalidRequestError):
            asyncio.run(_client(Recorder({})).verify("order_1", "", ""))
