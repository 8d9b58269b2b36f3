"""
Tests for payment models.

Covers field defaults, helper properties, billing period arithmetic,
optimistic locking on Subscription, and WebhookEvent helpers.
"""

from datetime import datetime, timezone as dt_timezone
from decimal import Decimal

import pytest
from django.db import IntegrityError

from payments.models import Donation, add_billing_period
from payments.references import generate_payment_reference, is_payment_reference
from payments.state_machines import (
    MembershipType,
    PaymentStatus,
    SubscriptionStatus,
    WebhookEventStatus,
)
from payments.models.webhook_event import MAX_WEBHOOK_RETRIES
from payments.tests.factories import (
    DonationFactory,
    MemberFactory,
    MembershipPlanFactory,
    WebhookEventFactory,
)


# =============================================================================
# Payment References
# =============================================================================


class TestPaymentReference:
    """Tests for payment reference generation."""

    def test_reference_format(self):
        """Should produce PAY-YYYYMMDD-XXXXXXXX from the UTC date."""
        reference = generate_payment_reference(
            datetime(2024, 1, 15, 10, 30, tzinfo=dt_timezone.utc)
        )

        assert reference.startswith("PAY-20240115-")
        assert is_payment_reference(reference)

    def test_references_are_unique(self):
        """Should not repeat across calls."""
        references = {generate_payment_reference() for _ in range(50)}

        assert len(references) == 50

    def test_rejects_other_shapes(self):
        """Should not accept strings of another shape."""
        assert not is_payment_reference("REF001")
        assert not is_payment_reference("")


# =============================================================================
# Donation
# =============================================================================


class TestDonation:
    """Tests for the Donation model."""

    def test_defaults(self, pending_donation):
        """Should start pending in INR."""
        assert pending_donation.payment_status == PaymentStatus.PENDING
        assert pending_donation.currency == "INR"
        assert pending_donation.confirmation_email_sent_at is None

    def test_amount_in_rupees(self, pending_donation):
        """Should convert paise to rupees."""
        assert pending_donation.amount == Decimal("500")

    def test_payment_reference_unique(self, pending_donation):
        """Should reject a duplicate payment reference."""
        with pytest.raises(IntegrityError):
            DonationFactory(payment_reference=pending_donation.payment_reference)

    def test_amount_must_be_positive(self, db):
        """Should reject a zero amount at the database."""
        with pytest.raises(IntegrityError):
            DonationFactory(amount_paise=0)

    def test_needs_confirmation_email(self, successful_donation):
        """Should need an email once paid and not yet sent."""
        assert successful_donation.needs_confirmation_email is True

    def test_pending_needs_no_email(self, pending_donation):
        """Should not email for an unpaid donation."""
        assert pending_donation.needs_confirmation_email is False

    def test_mark_confirmation_sent(self, successful_donation):
        """Should stamp the timestamp without touching the status."""
        successful_donation.mark_confirmation_sent()

        stored = Donation.objects.get(pk=successful_donation.pk)
        assert stored.confirmation_email_sent_at is not None
        assert stored.payment_status == PaymentStatus.SUCCESS
        assert successful_donation.needs_confirmation_email is False

    def test_str(self, pending_donation):
        """Should show the reference and status."""
        assert pending_donation.payment_reference in str(pending_donation)
        assert "pending" in str(pending_donation)


# =============================================================================
# Member and Plan
# =============================================================================


class TestMember:
    """Tests for the Member model."""

    def test_owned_by_own_user(self, member, user):
        """Should let the linked user act for the member."""
        assert member.is_owned_by(user) is True

    def test_not_owned_by_other_user(self, member, other_user):
        """Should refuse an unrelated user."""
        assert member.is_owned_by(other_user) is False

    def test_staff_may_act_for_anyone(self, member, staff_user):
        """Should let staff act for any member."""
        assert member.is_owned_by(staff_user) is True

    def test_member_without_login(self, db, user):
        """Should refuse everyone but staff when there is no login."""
        member = MemberFactory(user=None)

        assert member.is_owned_by(user) is False


class TestMembershipPlan:
    """Tests for the MembershipPlan model."""

    def test_price_in_rupees(self, monthly_plan):
        """Should convert paise to rupees."""
        assert monthly_plan.price == Decimal("500")

    def test_plan_kinds(self, monthly_plan, lifetime_plan):
        """Should classify lifetime and recurring plans."""
        assert monthly_plan.is_recurring and not monthly_plan.is_lifetime
        assert lifetime_plan.is_lifetime and not lifetime_plan.is_recurring

    def test_features_keep_order(self, db):
        """Should return features in stored order."""
        plan = MembershipPlanFactory(features=["Zeta", "Alpha", "Mu"])
        plan.refresh_from_db()

        assert plan.features == ["Zeta", "Alpha", "Mu"]


# =============================================================================
# Billing Periods
# =============================================================================


class TestAddBillingPeriod:
    """Tests for add_billing_period."""

    def test_monthly(self):
        """Should add one calendar month."""
        start = datetime(2024, 3, 10, tzinfo=dt_timezone.utc)

        assert add_billing_period(start, MembershipType.MONTHLY) == datetime(
            2024, 4, 10, tzinfo=dt_timezone.utc
        )

    def test_monthly_clamps_to_month_end(self):
        """Should clamp 31 January to the end of February."""
        start = datetime(2024, 1, 31, tzinfo=dt_timezone.utc)

        assert add_billing_period(start, MembershipType.MONTHLY).day == 29

    def test_monthly_rolls_year(self):
        """Should roll December into January of the next year."""
        start = datetime(2024, 12, 5, tzinfo=dt_timezone.utc)

        result = add_billing_period(start, MembershipType.MONTHLY)
        assert (result.year, result.month) == (2025, 1)

    def test_yearly(self):
        """Should add twelve months."""
        start = datetime(2024, 2, 29, tzinfo=dt_timezone.utc)

        assert add_billing_period(start, MembershipType.YEARLY) == datetime(
            2025, 2, 28, tzinfo=dt_timezone.utc
        )

    def test_lifetime_has_no_end(self):
        """Should return None for lifetime plans."""
        start = datetime(2024, 2, 1, tzinfo=dt_timezone.utc)

        assert add_billing_period(start, MembershipType.LIFETIME) is None


# =============================================================================
# Subscription
# =============================================================================


class TestSubscription:
    """Tests for the Subscription model."""

    def test_version_increments_on_save(self, pending_subscription):
        """Should bump the version on every update."""
        assert pending_subscription.version == 1

        pending_subscription.activate()
        pending_subscription.save()

        assert pending_subscription.version == 2

    def test_has_access_while_cancelled_before_end(self, active_subscription):
        """Should keep access until the paid period ends."""
        active_subscription.cancel()
        active_subscription.save()

        assert active_subscription.status == SubscriptionStatus.CANCELLED
        assert active_subscription.has_access is True

    def test_pending_has_no_access(self, pending_subscription):
        """Should not grant access before activation."""
        assert pending_subscription.has_access is False


# =============================================================================
# WebhookEvent
# =============================================================================


class TestWebhookEvent:
    """Tests for WebhookEvent helpers."""

    def test_event_id_unique(self, db):
        """Should reject a second row with the same event ID."""
        WebhookEventFactory(razorpay_event_id="evt_dup")

        with pytest.raises(IntegrityError):
            WebhookEventFactory(razorpay_event_id="evt_dup")

    def test_lifecycle(self, db):
        """Should count attempts and stamp processed_at."""
        event = WebhookEventFactory()

        event.mark_processing()
        assert event.status == WebhookEventStatus.PROCESSING
        assert event.retry_count == 1

        event.mark_processed()
        assert event.is_processed
        assert event.processed_at is not None

    def test_can_retry_until_limit(self, db):
        """Should allow retries only below the attempt limit."""
        event = WebhookEventFactory(status=WebhookEventStatus.FAILED, retry_count=1)
        assert event.can_retry is True

        event.retry_count = MAX_WEBHOOK_RETRIES
        assert event.can_retry is False

    def test_get_entity(self, db):
        """Should pull the entity out of the payload envelope."""
        event = WebhookEventFactory(
            payload={
                "event": "payment.captured",
                "payload": {"payment": {"entity": {"id": "pay_1"}}},
            }
        )

        assert event.get_entity("payment") == {"id": "pay_1"}
        assert event.get_entity("subscription") == {}
