"""
DRF serializers for payments app.

This module provides serializers for:
- Donation order requests
- Membership checkout and cancellation requests
- Checkout verification requests
- Plan and subscription display
- Response shapes for the OpenAPI schema

Request serializers repeat the validation the checkout flow already does
in the browser (amount bounds, name length, email format), with the same
messages.

Related files:
    - models/: Donation, MembershipPlan, Subscription
    - views.py: Payment API views

Usage:
    serializer = DonationOrderSerializer(data=request.data)
    serializer.is_valid(raise_exception=True)
"""

from __future__ import annotations

from rest_framework import serializers

from core.validators import (
    NAME_MAX_LENGTH,
    validate_donation_amount,
    validate_no_html,
    validate_person_name,
)

from payments.models import MembershipPlan, Subscription
from payments.state_machines import PaymentType


# =============================================================================
# Request Serializers
# =============================================================================


class DonationOrderSerializer(serializers.Serializer):
    """
    Serializer for donation order creation.

    Fields:
        amount: Donation in whole rupees (100 - 1,000,000)
        type: Always "donation"
        donor_name: 2-100 characters
        donor_email: Valid email address
        donor_phone: Optional phone number
        donor_address: Optional postal address
        notes: Optional message, no HTML
        plan_id: Optional plan the donation relates to
    """

    amount = serializers.IntegerField(
        validators=[validate_donation_amount],
        help_text="Donation amount in rupees",
    )
    type = serializers.ChoiceField(
        choices=[PaymentType.DONATION.value],
        default=PaymentType.DONATION.value,
        help_text="Payment type tag (donation)",
    )
    donor_name = serializers.CharField(
        max_length=NAME_MAX_LENGTH,
        validators=[validate_person_name],
        error_messages={"max_length": "Name must be at most 100 characters"},
        help_text="Donor full name",
    )
    donor_email = serializers.EmailField(
        error_messages={"invalid": "Please enter a valid email"},
        help_text="Donor email for the confirmation message",
    )
    donor_phone = serializers.CharField(
        max_length=20,
        required=False,
        allow_blank=True,
        default="",
        help_text="Donor phone number",
    )
    donor_address = serializers.CharField(
        max_length=500,
        required=False,
        allow_blank=True,
        default="",
        validators=[validate_no_html],
        help_text="Donor postal address",
    )
    notes = serializers.CharField(
        max_length=1000,
        required=False,
        allow_blank=True,
        default="",
        validators=[validate_no_html],
        help_text="Message from the donor",
    )
    plan_id = serializers.UUIDField(
        required=False,
        allow_null=True,
        default=None,
        help_text="Plan the donation relates to, if any",
    )

    def validate_donor_name(self, value: str) -> str:
        """Strip surrounding whitespace."""
        return value.strip()


class MembershipCheckoutSerializer(serializers.Serializer):
    """
    Serializer for membership checkout creation.

    Fields:
        plan_id: Active MembershipPlan ID
        member_id: Member buying the plan
    """

    plan_id = serializers.UUIDField(help_text="Membership plan ID")
    member_id = serializers.UUIDField(help_text="Member ID")


class VerifyPaymentSerializer(serializers.Serializer):
    """
    Serializer for checkout verification.

    Orders (donation, lifetime) send razorpay_order_id; subscriptions send
    razorpay_subscription_id.
    """

    type = serializers.ChoiceField(
        choices=PaymentType.choices,
        help_text="Payment type tag",
    )
    razorpay_payment_id = serializers.CharField(
        max_length=64,
        help_text="Razorpay payment ID (pay_xxx)",
    )
    razorpay_signature = serializers.CharField(
        max_length=128,
        help_text="Signature returned by the checkout",
    )
    razorpay_order_id = serializers.CharField(
        max_length=64,
        required=False,
        allow_blank=True,
        default="",
        help_text="Razorpay order ID (donation and lifetime)",
    )
    razorpay_subscription_id = serializers.CharField(
        max_length=64,
        required=False,
        allow_blank=True,
        default="",
        help_text="Razorpay subscription ID (subscription)",
    )

    def validate(self, attrs: dict) -> dict:
        """Require the gateway identifier that matches the payment type."""
        if attrs["type"] == PaymentType.SUBSCRIPTION:
            if not attrs.get("razorpay_subscription_id"):
                raise serializers.ValidationError(
                    {"razorpay_subscription_id": ["This field is required."]}
                )
        elif not attrs.get("razorpay_order_id"):
            raise serializers.ValidationError(
                {"razorpay_order_id": ["This field is required."]}
            )
        return attrs


class CancelSubscriptionSerializer(serializers.Serializer):
    """
    Serializer for subscription cancellation.

    Fields:
        subscription_id: Local Subscription ID
    """

    subscription_id = serializers.UUIDField(help_text="Subscription ID")


# =============================================================================
# Display Serializers
# =============================================================================


class MembershipPlanSerializer(serializers.ModelSerializer):
    """
    Serializer for plans on offer.

    Features are returned in their stored order.
    """

    price = serializers.DecimalField(max_digits=12, decimal_places=2, read_only=True)

    class Meta:
        model = MembershipPlan
        fields = [
            "id",
            "name",
            "description",
            "plan_type",
            "price",
            "price_paise",
            "features",
        ]
        read_only_fields = fields


class SubscriptionSerializer(serializers.ModelSerializer):
    """Serializer for a member's subscription."""

    plan_name = serializers.CharField(source="plan.name", read_only=True)
    plan_type = serializers.CharField(source="plan.plan_type", read_only=True)

    class Meta:
        model = Subscription
        fields = [
            "id",
            "plan_name",
            "plan_type",
            "status",
            "start_date",
            "end_date",
            "next_billing_date",
            "cancelled_at",
        ]
        read_only_fields = fields


# =============================================================================
# Response Serializers (schema only)
# =============================================================================


class DonationOrderResponseSerializer(serializers.Serializer):
    """Response for donation order creation."""

    orderId = serializers.CharField(help_text="Razorpay order ID")
    amount = serializers.IntegerField(help_text="Amount in paise")
    currency = serializers.CharField()
    keyId = serializers.CharField(help_text="Razorpay key ID for the checkout")
    paymentReference = serializers.CharField()


class MembershipCheckoutResponseSerializer(serializers.Serializer):
    """
    Response for membership checkout creation.

    ``type`` is "order" for lifetime plans (orderId, amount, currency,
    subscriptionId, paymentReference set) and "subscription" for recurring
    plans (subscriptionId is the Razorpay ID, dbSubscriptionId the local one).
    """

    type = serializers.ChoiceField(choices=["order", "subscription"])
    keyId = serializers.CharField()
    orderId = serializers.CharField(required=False)
    amount = serializers.IntegerField(required=False)
    currency = serializers.CharField(required=False)
    subscriptionId = serializers.CharField()
    paymentReference = serializers.CharField(required=False)
    dbSubscriptionId = serializers.UUIDField(required=False)


class VerifyPaymentResponseSerializer(serializers.Serializer):
    """Response for checkout verification."""

    success = serializers.BooleanField()
    type = serializers.CharField()
    paymentReference = serializers.CharField(required=False)
    subscriptionStatus = serializers.CharField(required=False)


class ErrorResponseSerializer(serializers.Serializer):
    """Error body returned by every payments endpoint."""

    error = serializers.CharField()
    error_code = serializers.CharField()
    details = serializers.DictField(required=False)
