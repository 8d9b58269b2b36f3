"""
Pytest fixtures for payment tests.

This module provides fixtures for creating payment-related test data.
Fixtures are designed to provide objects in various states for testing
state transitions and business logic.

Usage:
    def test_mark_success(pending_donation):
        pending_donation.mark_success(razorpay_payment_id="pay_1")
        pending_donation.save()
        assert pending_donation.payment_status == PaymentStatus.SUCCESS
"""

import hashlib
import hmac
from unittest.mock import MagicMock, patch

import pytest
from django.conf import settings
from rest_framework.test import APIClient

from payments.adapters import OrderResult, PlanResult, SubscriptionResult
from payments.services import (
    CheckoutOrchestrator,
    SubscriptionService,
    VerificationService,
)
from payments.state_machines import MembershipType, PaymentStatus
from payments.tests.factories import (
    DonationFactory,
    MemberFactory,
    MembershipPlanFactory,
    PaymentFactory,
    SubscriptionFactory,
    UserFactory,
)


# =============================================================================
# Signature Helpers
# =============================================================================


def hmac_hex(secret: str, message: str) -> str:
    """HMAC-SHA256 hex digest, as Razorpay computes it."""
    return hmac.new(
        secret.encode("utf-8"), message.encode("utf-8"), hashlib.sha256
    ).hexdigest()


def sign_order(order_id: str, payment_id: str) -> str:
    """Checkout signature for an order payment."""
    return hmac_hex(settings.RAZORPAY_KEY_SECRET, f"{order_id}|{payment_id}")


def sign_subscription(subscription_id: str, payment_id: str) -> str:
    """Checkout signature for a subscription's first payment."""
    return hmac_hex(settings.RAZORPAY_KEY_SECRET, f"{payment_id}|{subscription_id}")


def sign_webhook(body: bytes) -> str:
    """X-Razorpay-Signature for a webhook body."""
    return hmac_hex(settings.RAZORPAY_WEBHOOK_SECRET, body.decode("utf-8"))


# =============================================================================
# User and Member Fixtures
# =============================================================================


@pytest.fixture
def user(db):
    """Create a test user."""
    return UserFactory()


@pytest.fixture
def other_user(db):
    """Create a second, unrelated user."""
    return UserFactory()


@pytest.fixture
def staff_user(db):
    """Create a staff user."""
    return UserFactory(is_staff=True)


@pytest.fixture
def member(db, user):
    """Create a member linked to the test user."""
    return MemberFactory(user=user, full_name="Asha Rao")


# =============================================================================
# Plan Fixtures
# =============================================================================


@pytest.fixture
def monthly_plan(db):
    """Create a ₹500/month plan."""
    return MembershipPlanFactory(
        name="Monthly Supporter",
        plan_type=MembershipType.MONTHLY,
        price_paise=50_000,
    )


@pytest.fixture
def yearly_plan(db):
    """Create a ₹5,000/year plan."""
    return MembershipPlanFactory(
        name="Annual Supporter",
        plan_type=MembershipType.YEARLY,
        price_paise=500_000,
    )


@pytest.fixture
def lifetime_plan(db):
    """Create a ₹25,000 lifetime plan."""
    return MembershipPlanFactory(
        name="Lifetime Patron",
        plan_type=MembershipType.LIFETIME,
        price_paise=2_500_000,
    )


# =============================================================================
# Donation Fixtures
# =============================================================================


@pytest.fixture
def pending_donation(db):
    """Create a pending ₹500 donation."""
    return DonationFactory(razorpay_order_id="order_DON001")


@pytest.fixture
def successful_donation(db):
    """Create a donation that has been paid."""
    return DonationFactory(
        razorpay_order_id="order_DON002",
        razorpay_payment_id="pay_DON002",
        payment_status=PaymentStatus.SUCCESS,
    )


# =============================================================================
# Subscription and Payment Fixtures
# =============================================================================


@pytest.fixture
def pending_subscription(db, member, monthly_plan):
    """Create a pending monthly subscription with a Razorpay ID."""
    return SubscriptionFactory(
        member=member,
        plan=monthly_plan,
        razorpay_subscription_id="sub_TEST001",
    )


@pytest.fixture
def active_subscription(db, pending_subscription):
    """Create an active monthly subscription."""
    pending_subscription.activate()
    pending_subscription.save()
    return pending_subscription


@pytest.fixture
def lifetime_payment(db, member, lifetime_plan):
    """Create a pending lifetime payment and its pending subscription."""
    return PaymentFactory(
        member=member,
        plan=lifetime_plan,
        razorpay_order_id="order_LIFE001",
    )


# =============================================================================
# Gateway Fixtures
# =============================================================================


@pytest.fixture
def mock_razorpay():
    """
    Replace the Razorpay adapter on every service with one MagicMock.

    Signature checks keep working for real (they only need the configured
    secret); API calls return canned results.
    """
    from payments.adapters import RazorpayAdapter

    adapter = MagicMock(name="RazorpayAdapter")
    adapter.verify_payment_signature.side_effect = RazorpayAdapter.verify_payment_signature
    adapter.verify_subscription_signature.side_effect = (
        RazorpayAdapter.verify_subscription_signature
    )
    adapter.create_order.side_effect = lambda params: OrderResult(
        id="order_TEST123",
        amount_paise=params.amount_paise,
        currency=params.currency,
        receipt=params.receipt,
    )
    adapter.create_plan.return_value = PlanResult(
        id="plan_TEST123",
        period="monthly",
        interval=1,
    )
    adapter.create_subscription.return_value = SubscriptionResult(
        id="sub_TEST123",
        status="created",
        plan_id="plan_TEST123",
    )
    adapter.cancel_subscription.return_value = SubscriptionResult(
        id="sub_TEST001",
        status="active",
    )

    with patch.object(CheckoutOrchestrator, "razorpay", adapter), patch.object(
        VerificationService, "razorpay", adapter
    ), patch.object(SubscriptionService, "razorpay", adapter):
        yield adapter


# =============================================================================
# API Client Fixtures
# =============================================================================


@pytest.fixture
def api_client():
    """Unauthenticated DRF client."""
    return APIClient()


@pytest.fixture
def authenticated_client(user):
    """DRF client authenticated as the test user."""
    client = APIClient()
    client.force_authenticate(user=user)
    return client
