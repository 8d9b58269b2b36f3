"""
Tests for Razorpay adapter.

Tests cover:
- Parameter validation
- Request payloads sent through the SDK
- Error translation for each exception type
- Checkout and webhook signature verification
"""

import hashlib
import hmac
from unittest.mock import MagicMock, patch

import pytest
import razorpay
import requests
from django.test import override_settings

from payments.adapters import (
    CreateOrderParams,
    CreatePlanParams,
    CreateSubscriptionParams,
    RazorpayAdapter,
)
from payments.exceptions import (
    RazorpayAPIUnavailableError,
    RazorpayBadRequestError,
    RazorpaySignatureError,
    RazorpayTimeoutError,
)


def hmac_hex(secret: str, message: str) -> str:
    return hmac.new(secret.encode(), message.encode(), hashlib.sha256).hexdigest()


@pytest.fixture
def mock_client():
    """Patch razorpay.Client and yield the instance the adapter builds."""
    with patch("payments.adapters.razorpay_adapter.razorpay.Client") as client_cls:
        yield client_cls.return_value


# =============================================================================
# Parameter Tests
# =============================================================================


class TestCreateOrderParams:
    """Tests for CreateOrderParams dataclass validation."""

    def test_defaults(self):
        """Should default to INR with no notes."""
        params = CreateOrderParams(amount_paise=50_000, receipt="PAY-20240115-3F2A9C1B")

        assert params.currency == "INR"
        assert params.notes == {}

    def test_amount_must_be_positive(self):
        """Should raise ValueError for zero amount."""
        with pytest.raises(ValueError, match="amount_paise must be positive"):
            CreateOrderParams(amount_paise=0, receipt="PAY-1")

    def test_receipt_required(self):
        """Should raise ValueError for a blank receipt."""
        with pytest.raises(ValueError, match="receipt is required"):
            CreateOrderParams(amount_paise=100, receipt="")


class TestCreatePlanParams:
    """Tests for CreatePlanParams."""

    def test_period_follows_plan_type(self):
        """Should map membership types to Razorpay periods."""
        assert CreatePlanParams("Monthly", 50_000, "monthly").period == "monthly"
        assert CreatePlanParams("Yearly", 500_000, "yearly").period == "yearly"

    def test_lifetime_is_not_a_plan(self):
        """Should reject lifetime, which is billed as a one-off order."""
        with pytest.raises(ValueError, match="plan_type must be one of"):
            CreatePlanParams("Lifetime", 2_500_000, "lifetime")


class TestCreateSubscriptionParams:
    """Tests for CreateSubscriptionParams."""

    def test_total_count_must_be_positive(self):
        """Should raise ValueError for a zero cycle count."""
        with pytest.raises(ValueError, match="total_count must be positive"):
            CreateSubscriptionParams(plan_id="plan_1", total_count=0)

    def test_plan_id_required(self):
        """Should raise ValueError without a plan."""
        with pytest.raises(ValueError, match="plan_id is required"):
            CreateSubscriptionParams(plan_id="", total_count=12)


# =============================================================================
# API Operation Tests
# =============================================================================


class TestCreateOrder:
    """Tests for RazorpayAdapter.create_order."""

    def test_success(self, mock_client):
        """Should send amount in paise and return the order."""
        mock_client.order.create.return_value = {
            "id": "order_ABC",
            "amount": 50_000,
            "currency": "INR",
            "receipt": "PAY-1",
            "status": "created",
        }

        result = RazorpayAdapter.create_order(
            CreateOrderParams(amount_paise=50_000, receipt="PAY-1", notes={"type": "donation"})
        )

        assert result.id == "order_ABC"
        assert result.amount_paise == 50_000
        assert result.receipt == "PAY-1"
        call = mock_client.order.create.call_args
        assert call.kwargs["data"] == {
            "amount": 50_000,
            "currency": "INR",
            "receipt": "PAY-1",
            "notes": {"type": "donation"},
        }
        assert call.kwargs["timeout"] == 10

    def test_bad_request(self, mock_client):
        """Should translate BadRequestError."""
        mock_client.order.create.side_effect = razorpay.errors.BadRequestError(
            "amount exceeds maximum amount allowed"
        )

        with pytest.raises(RazorpayBadRequestError) as exc_info:
            RazorpayAdapter.create_order(CreateOrderParams(amount_paise=100, receipt="PAY-1"))

        assert exc_info.value.razorpay_code == "BAD_REQUEST_ERROR"
        assert "amount exceeds" in exc_info.value.message

    def test_server_error(self, mock_client):
        """Should translate ServerError to unavailable."""
        mock_client.order.create.side_effect = razorpay.errors.ServerError("boom")

        with pytest.raises(RazorpayAPIUnavailableError) as exc_info:
            RazorpayAdapter.create_order(CreateOrderParams(amount_paise=100, receipt="PAY-1"))

        assert exc_info.value.razorpay_code == "SERVER_ERROR"

    def test_gateway_error(self, mock_client):
        """Should translate GatewayError to unavailable."""
        mock_client.order.create.side_effect = razorpay.errors.GatewayError("bank down")

        with pytest.raises(RazorpayAPIUnavailableError):
            RazorpayAdapter.create_order(CreateOrderParams(amount_paise=100, receipt="PAY-1"))

    def test_timeout(self, mock_client):
        """Should translate a requests timeout."""
        mock_client.order.create.side_effect = requests.exceptions.ReadTimeout()

        with pytest.raises(RazorpayTimeoutError):
            RazorpayAdapter.create_order(CreateOrderParams(amount_paise=100, receipt="PAY-1"))

    def test_connection_error(self, mock_client):
        """Should translate a network failure to unavailable."""
        mock_client.order.create.side_effect = requests.exceptions.ConnectionError()

        with pytest.raises(RazorpayAPIUnavailableError) as exc_info:
            RazorpayAdapter.create_order(CreateOrderParams(amount_paise=100, receipt="PAY-1"))

        assert exc_info.value.razorpay_code == "api_connection_error"

    def test_unexpected_error(self, mock_client):
        """Should wrap anything else as unavailable."""
        mock_client.order.create.side_effect = KeyError("id")

        with pytest.raises(RazorpayAPIUnavailableError) as exc_info:
            RazorpayAdapter.create_order(CreateOrderParams(amount_paise=100, receipt="PAY-1"))

        assert exc_info.value.razorpay_code == "unknown_error"

    @override_settings(RAZORPAY_API_TIMEOUT_SECONDS=3)
    def test_timeout_setting(self, mock_client):
        """Should pass the configured timeout to the SDK."""
        mock_client.order.create.return_value = {"id": "order_X"}

        RazorpayAdapter.create_order(CreateOrderParams(amount_paise=100, receipt="PAY-1"))

        assert mock_client.order.create.call_args.kwargs["timeout"] == 3


class TestPlansAndSubscriptions:
    """Tests for plan and subscription calls."""

    def test_create_plan(self, mock_client):
        """Should wrap the price in an item block."""
        mock_client.plan.create.return_value = {
            "id": "plan_M1",
            "period": "monthly",
            "interval": 1,
        }

        result = RazorpayAdapter.create_plan(
            CreatePlanParams(name="Monthly", amount_paise=50_000, plan_type="monthly")
        )

        assert result.id == "plan_M1"
        data = mock_client.plan.create.call_args.kwargs["data"]
        assert data["period"] == "monthly"
        assert data["item"]["amount"] == 50_000
        assert data["item"]["currency"] == "INR"

    def test_create_subscription(self, mock_client):
        """Should create against the plan with the cycle count."""
        mock_client.subscription.create.return_value = {
            "id": "sub_S1",
            "status": "created",
            "plan_id": "plan_M1",
            "short_url": "https://rzp.io/i/abc",
        }

        result = RazorpayAdapter.create_subscription(
            CreateSubscriptionParams(plan_id="plan_M1", total_count=120)
        )

        assert result.id == "sub_S1"
        assert result.short_url == "https://rzp.io/i/abc"
        data = mock_client.subscription.create.call_args.kwargs["data"]
        assert data["total_count"] == 120
        assert data["customer_notify"] == 1

    def test_cancel_at_cycle_end(self, mock_client):
        """Should ask Razorpay to cancel at the end of the cycle."""
        mock_client.subscription.cancel.return_value = {
            "id": "sub_S1",
            "status": "active",
        }

        result = RazorpayAdapter.cancel_subscription("sub_S1")

        args = mock_client.subscription.cancel.call_args.args
        assert args == ("sub_S1", {"cancel_at_cycle_end": 1})
        assert result.id == "sub_S1"

    def test_cancel_unknown_subscription(self, mock_client):
        """Should surface Razorpay's rejection."""
        mock_client.subscription.cancel.side_effect = razorpay.errors.BadRequestError(
            "The id provided does not exist"
        )

        with pytest.raises(RazorpayBadRequestError):
            RazorpayAdapter.cancel_subscription("sub_missing", cancel_at_cycle_end=False)


# =============================================================================
# Signature Tests
# =============================================================================


class TestPaymentSignature:
    """Tests for checkout signature verification."""

    def test_valid_order_signature(self):
        """Should accept HMAC of order_id|payment_id."""
        signature = hmac_hex("test_key_secret", "order_1|pay_1")

        RazorpayAdapter.verify_payment_signature("order_1", "pay_1", signature)

    def test_invalid_order_signature(self):
        """Should reject a mismatched signature."""
        with pytest.raises(RazorpaySignatureError) as exc_info:
            RazorpayAdapter.verify_payment_signature("order_1", "pay_1", "0" * 64)

        assert exc_info.value.error_code == "INVALID_SIGNATURE"

    def test_swapped_ids_rejected(self):
        """Should bind the signature to this order and payment pair."""
        signature = hmac_hex("test_key_secret", "pay_1|order_1")

        with pytest.raises(RazorpaySignatureError):
            RazorpayAdapter.verify_payment_signature("order_1", "pay_1", signature)

    def test_missing_fields(self):
        """Should reject blank identifiers before hashing."""
        with pytest.raises(RazorpaySignatureError) as exc_info:
            RazorpayAdapter.verify_payment_signature("", "pay_1", "abc")

        assert exc_info.value.details["missing"] == ["order_id"]

    def test_valid_subscription_signature(self):
        """Should accept HMAC of payment_id|subscription_id."""
        signature = hmac_hex("test_key_secret", "pay_1|sub_1")

        RazorpayAdapter.verify_subscription_signature("sub_1", "pay_1", signature)

    def test_invalid_subscription_signature(self):
        """Should reject a signature made with the order layout."""
        signature = hmac_hex("test_key_secret", "sub_1|pay_1")

        with pytest.raises(RazorpaySignatureError):
            RazorpayAdapter.verify_subscription_signature("sub_1", "pay_1", signature)


class TestWebhookSignature:
    """Tests for webhook signature verification."""

    def test_valid_signature(self):
        """Should accept HMAC of the raw body with the webhook secret."""
        body = b'{"event":"payment.captured"}'
        signature = hmac_hex("test_webhook_secret", body.decode())

        RazorpayAdapter.verify_webhook_signature(body, signature)

    def test_tampered_body(self):
        """Should reject a body that no longer matches its signature."""
        signature = hmac_hex("test_webhook_secret", '{"event":"payment.captured"}')

        with pytest.raises(RazorpaySignatureError, match="Invalid webhook signature"):
            RazorpayAdapter.verify_webhook_signature(b'{"event":"payment.failed"}', signature)

    def test_key_secret_does_not_sign_webhooks(self):
        """Should not accept a signature made with the API key secret."""
        body = '{"event":"payment.captured"}'

        with pytest.raises(RazorpaySignatureError):
            RazorpayAdapter.verify_webhook_signature(body, hmac_hex("test_key_secret", body))

    @override_settings(RAZORPAY_WEBHOOK_SECRET="")
    def test_missing_secret(self):
        """Should reject every webhook when no secret is configured."""
        with pytest.raises(RazorpaySignatureError) as exc_info:
            RazorpayAdapter.verify_webhook_signature(b"{}", "abc")

        assert exc_info.value.razorpay_code == "webhook_secret_missing"

    def test_body_not_utf8(self):
        """Should reject a body that cannot be decoded as UTF-8."""
        with pytest.raises(RazorpaySignatureError) as exc_info:
            RazorpayAdapter.verify_webhook_signature(b"\xff\xfe{not utf8", "f" * 64)

        assert exc_info.value.razorpay_code == "webhook_body_not_utf8"
