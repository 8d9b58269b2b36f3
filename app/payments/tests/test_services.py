"""
Tests for payment services.

Covers donation order creation, membership checkout routing, checkout
verification for all three payment types, and member cancellation. The
Razorpay adapter is replaced by the mock_razorpay fixture; signatures are
computed with the test secret and checked by the real SDK.
"""

import uuid
from unittest.mock import patch

import pytest

from payments.adapters import SubscriptionResult
from payments.exceptions import RazorpayAPIUnavailableError, RazorpayBadRequestError
from payments.models import Donation, MembershipPlan, Payment, Subscription
from payments.references import is_payment_reference
from payments.services import (
    CheckoutOrchestrator,
    DonationOrderParams,
    SubscriptionService,
    VerificationService,
    VerifyPaymentParams,
)
from payments.state_machines import (
    MembershipType,
    PaymentStatus,
    PaymentType,
    SubscriptionStatus,
)
from payments.strategies import OneTimeOrderStrategy, RecurringSubscriptionStrategy
from payments.tests.conftest import sign_order, sign_subscription
from payments.tests.factories import MembershipPlanFactory, SubscriptionFactory


def donation_params(**overrides) -> DonationOrderParams:
    params = {
        "amount": 500,
        "donor_name": "Asha Rao",
        "donor_email": "asha@example.com",
    }
    params.update(overrides)
    return DonationOrderParams(**params)


# =============================================================================
# CheckoutOrchestrator - donations
# =============================================================================


@pytest.mark.django_db
class TestCreateDonationOrder:
    """Tests for CheckoutOrchestrator.create_donation_order."""

    def test_creates_pending_donation(self, mock_razorpay):
        """Should store a pending donation bound to the Razorpay order."""
        result = CheckoutOrchestrator.create_donation_order(donation_params())

        assert result.success
        donation = Donation.objects.get()
        assert donation.payment_status == PaymentStatus.PENDING
        assert donation.razorpay_order_id == "order_TEST123"
        assert donation.amount_paise == 50_000
        assert is_payment_reference(donation.payment_reference)
        assert result.data.donation == donation

    def test_order_carries_reference_and_paise(self, mock_razorpay):
        """Should send the amount in paise and the reference as receipt."""
        result = CheckoutOrchestrator.create_donation_order(donation_params(amount=2500))

        order_params = mock_razorpay.create_order.call_args.args[0]
        assert order_params.amount_paise == 250_000
        assert order_params.currency == "INR"
        assert order_params.receipt == result.data.donation.payment_reference
        assert order_params.notes["type"] == "donation"

    def test_gateway_failure_stores_nothing(self, mock_razorpay):
        """Should return the gateway error and leave no record."""
        mock_razorpay.create_order.side_effect = RazorpayAPIUnavailableError(
            "Razorpay service error. Please retry."
        )

        result = CheckoutOrchestrator.create_donation_order(donation_params())

        assert not result.success
        assert result.error_code == "RAZORPAY_UNAVAILABLE"
        assert result.http_status == 502
        assert Donation.objects.count() == 0

    def test_rejects_non_positive_amount(self):
        """Should refuse to build params for a zero amount."""
        with pytest.raises(ValueError):
            donation_params(amount=0)


# =============================================================================
# CheckoutOrchestrator - memberships
# =============================================================================


class TestStrategyRegistry:
    """Tests for strategy selection by plan type."""

    def test_lifetime_uses_one_time_order(self):
        """Should charge lifetime plans with a single order."""
        strategy = CheckoutOrchestrator.get_strategy(MembershipType.LIFETIME)

        assert isinstance(strategy, OneTimeOrderStrategy)

    @pytest.mark.parametrize("plan_type", [MembershipType.MONTHLY, MembershipType.YEARLY])
    def test_recurring_uses_subscription(self, plan_type):
        """Should bill recurring plans through a subscription."""
        strategy = CheckoutOrchestrator.get_strategy(plan_type)

        assert isinstance(strategy, RecurringSubscriptionStrategy)

    def test_unknown_plan_type(self):
        """Should raise for an unregistered plan type."""
        with pytest.raises(ValueError, match="Unknown plan type"):
            CheckoutOrchestrator.get_strategy("weekly")


class TestCreateMembershipCheckout:
    """Tests for CheckoutOrchestrator.create_membership_checkout."""

    def test_lifetime_opens_order(self, mock_razorpay, user, member, lifetime_plan):
        """Should store a pending payment and subscription for the order."""
        result = CheckoutOrchestrator.create_membership_checkout(
            user=user, plan_id=lifetime_plan.id, member_id=member.id
        )

        assert result.success
        assert result.data.is_order
        payment = Payment.objects.get()
        assert payment.payment_type == PaymentType.LIFETIME
        assert payment.payment_status == PaymentStatus.PENDING
        assert payment.amount_paise == lifetime_plan.price_paise
        assert payment.razorpay_order_id == "order_TEST123"
        assert payment.subscription.status == SubscriptionStatus.PENDING
        assert payment.subscription.razorpay_subscription_id is None
        mock_razorpay.create_subscription.assert_not_called()

    def test_recurring_creates_gateway_plan_once(
        self, mock_razorpay, user, member, monthly_plan
    ):
        """Should create the Razorpay plan on first use and cache it."""
        first = CheckoutOrchestrator.create_membership_checkout(
            user=user, plan_id=monthly_plan.id, member_id=member.id
        )
        mock_razorpay.create_subscription.return_value = SubscriptionResult(
            id="sub_TEST456", status="created"
        )
        second = CheckoutOrchestrator.create_membership_checkout(
            user=user, plan_id=monthly_plan.id, member_id=member.id
        )

        assert first.success and second.success
        assert mock_razorpay.create_plan.call_count == 1
        assert MembershipPlan.objects.get(pk=monthly_plan.pk).razorpay_plan_id == "plan_TEST123"
        assert first.data.razorpay_subscription_id == "sub_TEST123"
        assert Subscription.objects.filter(status=SubscriptionStatus.PENDING).count() == 2

    def test_recurring_total_count(self, mock_razorpay, user, member, yearly_plan, settings):
        """Should request the configured number of yearly cycles."""
        settings.SUBSCRIPTION_TOTAL_COUNT_YEARLY = 7

        CheckoutOrchestrator.create_membership_checkout(
            user=user, plan_id=yearly_plan.id, member_id=member.id
        )

        params = mock_razorpay.create_subscription.call_args.args[0]
        assert params.total_count == 7
        assert params.plan_id == "plan_TEST123"

    def test_other_members_refused(self, mock_razorpay, other_user, member, monthly_plan):
        """Should refuse to buy a plan for someone else."""
        result = CheckoutOrchestrator.create_membership_checkout(
            user=other_user, plan_id=monthly_plan.id, member_id=member.id
        )

        assert result.http_status == 403
        assert result.error_code == "PERMISSION_DENIED"
        mock_razorpay.create_plan.assert_not_called()

    def test_inactive_plan_not_found(self, mock_razorpay, user, member):
        """Should treat an inactive plan as missing."""
        plan = MembershipPlanFactory(is_active=False)

        result = CheckoutOrchestrator.create_membership_checkout(
            user=user, plan_id=plan.id, member_id=member.id
        )

        assert result.http_status == 404
        assert result.error_code == "PLAN_NOT_FOUND"

    def test_unknown_member(self, mock_razorpay, user, monthly_plan):
        """Should report a missing member."""
        result = CheckoutOrchestrator.create_membership_checkout(
            user=user, plan_id=monthly_plan.id, member_id=uuid.uuid4()
        )

        assert result.error_code == "MEMBER_NOT_FOUND"

    def test_gateway_failure_stores_nothing(self, mock_razorpay, user, member, monthly_plan):
        """Should leave no subscription behind when Razorpay refuses."""
        mock_razorpay.create_subscription.side_effect = RazorpayBadRequestError(
            "The plan id provided does not exist"
        )

        result = CheckoutOrchestrator.create_membership_checkout(
            user=user, plan_id=monthly_plan.id, member_id=member.id
        )

        assert not result.success
        assert result.error_code == "RAZORPAY_BAD_REQUEST"
        assert Subscription.objects.count() == 0

    def test_list_plans_cheapest_first(self, yearly_plan, monthly_plan, lifetime_plan):
        """Should return active plans ordered by price."""
        MembershipPlanFactory(is_active=False, price_paise=100)

        plans = CheckoutOrchestrator.list_plans().data

        assert [plan.id for plan in plans] == [
            monthly_plan.id,
            yearly_plan.id,
            lifetime_plan.id,
        ]


# =============================================================================
# VerificationService
# =============================================================================


class TestVerifyDonation:
    """Tests for verifying donation checkouts."""

    def verify(self, donation, payment_id="pay_DON001", signature=None):
        return VerificationService.verify(
            VerifyPaymentParams(
                payment_type=PaymentType.DONATION,
                razorpay_order_id=donation.razorpay_order_id,
                razorpay_payment_id=payment_id,
                razorpay_signature=signature
                or sign_order(donation.razorpay_order_id, payment_id),
            )
        )

    def test_valid_signature_marks_success(
        self, mock_razorpay, pending_donation, django_capture_on_commit_callbacks
    ):
        """Should mark the donation paid and queue the email after commit."""
        with patch("payments.tasks.send_donation_confirmation.delay") as delay:
            with django_capture_on_commit_callbacks(execute=True):
                result = self.verify(pending_donation)

        assert result.success
        assert result.data.already_verified is False
        donation = Donation.objects.get(pk=pending_donation.pk)
        assert donation.payment_status == PaymentStatus.SUCCESS
        assert donation.razorpay_payment_id == "pay_DON001"
        delay.assert_called_once_with(str(pending_donation.id))

    def test_bad_signature_changes_nothing(self, mock_razorpay, pending_donation):
        """Should reject a forged signature and leave the donation pending."""
        result = self.verify(pending_donation, signature="0" * 64)

        assert not result.success
        assert result.error_code == "INVALID_SIGNATURE"
        assert result.http_status == 400
        donation = Donation.objects.get(pk=pending_donation.pk)
        assert donation.payment_status == PaymentStatus.PENDING
        assert donation.razorpay_payment_id is None

    def test_reverify_is_idempotent(
        self, mock_razorpay, pending_donation, django_capture_on_commit_callbacks
    ):
        """Should report success again without a second email."""
        with patch("payments.tasks.send_donation_confirmation.delay") as delay:
            with django_capture_on_commit_callbacks(execute=True):
                self.verify(pending_donation)
            with django_capture_on_commit_callbacks(execute=True):
                second = self.verify(pending_donation)

        assert second.success
        assert second.data.already_verified is True
        assert delay.call_count == 1

    def test_unknown_order(self, mock_razorpay, db):
        """Should report a missing donation."""
        signature = sign_order("order_NOPE", "pay_1")

        result = VerificationService.verify(
            VerifyPaymentParams(
                payment_type=PaymentType.DONATION,
                razorpay_order_id="order_NOPE",
                razorpay_payment_id="pay_1",
                razorpay_signature=signature,
            )
        )

        assert result.http_status == 404
        assert result.error_code == "DONATION_NOT_FOUND"

    def test_failed_donation_cannot_succeed(self, mock_razorpay, pending_donation):
        """Should refuse to mark a failed donation paid."""
        pending_donation.mark_failed(reason="Card declined")
        pending_donation.save()

        result = self.verify(pending_donation)

        assert not result.success
        assert result.error_code == "INVALID_STATE_TRANSITION"
        assert result.http_status == 409


class TestVerifyLifetime:
    """Tests for verifying lifetime membership checkouts."""

    def test_activates_without_end_date(self, mock_razorpay, lifetime_payment):
        """Should mark the payment paid and activate for life."""
        result = VerificationService.verify(
            VerifyPaymentParams(
                payment_type=PaymentType.LIFETIME,
                razorpay_order_id="order_LIFE001",
                razorpay_payment_id="pay_LIFE001",
                razorpay_signature=sign_order("order_LIFE001", "pay_LIFE001"),
            )
        )

        assert result.success
        subscription = Subscription.objects.get(pk=lifetime_payment.subscription_id)
        assert subscription.status == SubscriptionStatus.ACTIVE
        assert subscription.end_date is None
        payment = Payment.objects.get(pk=lifetime_payment.pk)
        assert payment.payment_status == PaymentStatus.SUCCESS
        assert payment.razorpay_payment_id == "pay_LIFE001"

    def test_unknown_order(self, mock_razorpay, db):
        """Should report a missing payment."""
        result = VerificationService.verify(
            VerifyPaymentParams(
                payment_type=PaymentType.LIFETIME,
                razorpay_order_id="order_NOPE",
                razorpay_payment_id="pay_1",
                razorpay_signature=sign_order("order_NOPE", "pay_1"),
            )
        )

        assert result.error_code == "PAYMENT_NOT_FOUND"


class TestVerifySubscription:
    """Tests for verifying recurring subscription checkouts."""

    def verify(self, subscription_id="sub_TEST001", payment_id="pay_SUB001"):
        return VerificationService.verify(
            VerifyPaymentParams(
                payment_type=PaymentType.SUBSCRIPTION,
                razorpay_subscription_id=subscription_id,
                razorpay_payment_id=payment_id,
                razorpay_signature=sign_subscription(subscription_id, payment_id),
            )
        )

    def test_activates_and_records_first_charge(self, mock_razorpay, pending_subscription):
        """Should activate for one period and store the first payment."""
        result = self.verify()

        assert result.success
        subscription = Subscription.objects.get(pk=pending_subscription.pk)
        assert subscription.status == SubscriptionStatus.ACTIVE
        assert subscription.end_date is not None
        payment = Payment.objects.get(razorpay_payment_id="pay_SUB001")
        assert payment.payment_type == PaymentType.SUBSCRIPTION
        assert payment.payment_status == PaymentStatus.SUCCESS
        assert payment.amount_paise == pending_subscription.plan.price_paise

    def test_repeat_does_not_duplicate_payment(self, mock_razorpay, pending_subscription):
        """Should record the first charge once."""
        self.verify()
        second = self.verify()

        assert second.success
        assert second.data.already_verified is True
        assert Payment.objects.filter(razorpay_payment_id="pay_SUB001").count() == 1

    def test_already_activated_by_webhook(self, mock_razorpay, active_subscription):
        """Should still record the charge when the webhook activated first."""
        result = self.verify()

        assert result.success
        assert Payment.objects.filter(subscription=active_subscription).count() == 1

    def test_bad_signature(self, mock_razorpay, pending_subscription):
        """Should leave the subscription pending on a bad signature."""
        result = VerificationService.verify(
            VerifyPaymentParams(
                payment_type=PaymentType.SUBSCRIPTION,
                razorpay_subscription_id="sub_TEST001",
                razorpay_payment_id="pay_SUB001",
                razorpay_signature=sign_order("sub_TEST001", "pay_SUB001"),
            )
        )

        assert result.error_code == "INVALID_SIGNATURE"
        assert Subscription.objects.get(pk=pending_subscription.pk).status == (
            SubscriptionStatus.PENDING
        )
        assert Payment.objects.count() == 0

    def test_params_require_subscription_id(self):
        """Should refuse subscription params without the gateway ID."""
        with pytest.raises(ValueError):
            VerifyPaymentParams(
                payment_type=PaymentType.SUBSCRIPTION,
                razorpay_payment_id="pay_1",
                razorpay_signature="sig",
            )


# =============================================================================
# SubscriptionService
# =============================================================================


class TestCancelSubscription:
    """Tests for SubscriptionService.cancel."""

    def test_cancels_at_cycle_end(self, mock_razorpay, user, active_subscription):
        """Should cancel at Razorpay and keep the paid period."""
        end_date = active_subscription.end_date

        result = SubscriptionService.cancel(user=user, subscription_id=active_subscription.id)

        assert result.success
        mock_razorpay.cancel_subscription.assert_called_once_with(
            "sub_TEST001", cancel_at_cycle_end=True
        )
        subscription = Subscription.objects.get(pk=active_subscription.pk)
        assert subscription.status == SubscriptionStatus.CANCELLED
        assert subscription.end_date == end_date
        assert subscription.cancelled_at is not None

    def test_cancel_twice_is_success(self, mock_razorpay, user, active_subscription):
        """Should return the cancelled record without calling Razorpay again."""
        SubscriptionService.cancel(user=user, subscription_id=active_subscription.id)
        result = SubscriptionService.cancel(user=user, subscription_id=active_subscription.id)

        assert result.success
        assert mock_razorpay.cancel_subscription.call_count == 1

    def test_lifetime_cannot_be_cancelled(self, mock_razorpay, user, lifetime_payment):
        """Should refuse to cancel a lifetime membership."""
        result = SubscriptionService.cancel(
            user=user, subscription_id=lifetime_payment.subscription_id
        )

        assert result.error_code == "LIFETIME_NOT_CANCELLABLE"
        assert result.http_status == 400
        mock_razorpay.cancel_subscription.assert_not_called()

    def test_missing_gateway_id(self, mock_razorpay, user, member, monthly_plan):
        """Should refuse a recurring subscription without a Razorpay ID."""
        subscription = SubscriptionFactory(
            member=member, plan=monthly_plan, razorpay_subscription_id=None
        )

        result = SubscriptionService.cancel(user=user, subscription_id=subscription.id)

        assert result.error_code == "NO_RAZORPAY_SUBSCRIPTION"

    def test_other_user_refused(self, mock_razorpay, other_user, active_subscription):
        """Should not let one member cancel another's subscription."""
        result = SubscriptionService.cancel(
            user=other_user, subscription_id=active_subscription.id
        )

        assert result.http_status == 403

    def test_pending_cannot_be_cancelled(self, mock_razorpay, user, pending_subscription):
        """Should report a conflict for a pending subscription."""
        result = SubscriptionService.cancel(
            user=user, subscription_id=pending_subscription.id
        )

        assert result.http_status == 409
        mock_razorpay.cancel_subscription.assert_not_called()

    def test_gateway_failure_keeps_active(self, mock_razorpay, user, active_subscription):
        """Should leave the subscription active when Razorpay fails."""
        mock_razorpay.cancel_subscription.side_effect = RazorpayAPIUnavailableError(
            "Could not connect to Razorpay. Please retry."
        )

        result = SubscriptionService.cancel(user=user, subscription_id=active_subscription.id)

        assert not result.success
        assert result.http_status == 502
        assert Subscription.objects.get(pk=active_subscription.pk).status == (
            SubscriptionStatus.ACTIVE
        )

    def test_unknown_subscription(self, mock_razorpay, user):
        """Should report a missing subscription."""
        result = SubscriptionService.cancel(user=user, subscription_id=uuid.uuid4())

        assert result.http_status == 404
