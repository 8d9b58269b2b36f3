"""
DRF views for payments app.

This module provides API views for:
- Plan listing
- Donation order creation
- Membership checkout creation
- Checkout verification
- Subscription cancellation

Related files:
    - services/: CheckoutOrchestrator, VerificationService, SubscriptionService
    - serializers.py: Request/response serializers
    - webhooks/views.py: Razorpay webhook endpoint
    - urls.py: URL routing

Endpoints:
    GET  /api/v1/payments/plans/ - List active plans
    POST /api/v1/payments/orders/ - Create a donation order
    POST /api/v1/payments/subscriptions/ - Open a membership checkout
    POST /api/v1/payments/subscriptions/cancel/ - Cancel a recurring membership
    POST /api/v1/payments/verify/ - Verify a checkout response

Security:
    - Plans, orders and verify are public (donors need no account)
    - Membership endpoints require authentication; members act for themselves
      unless staff
    - Verify checks the Razorpay signature before touching any record

Errors:
    Every failure is {"error": ..., "error_code": ..., "details"?: ...}.
"""

from __future__ import annotations

import logging

from django.conf import settings
from drf_spectacular.utils import OpenApiResponse, extend_schema
from rest_framework import status
from rest_framework.permissions import AllowAny, IsAuthenticated
from rest_framework.response import Response
from rest_framework.views import APIView

from core.services import ServiceResult

from payments.services import (
    CheckoutOrchestrator,
    DonationOrderParams,
    SubscriptionService,
    VerificationService,
    VerifyPaymentParams,
)
from payments.serializers import (
    CancelSubscriptionSerializer,
    DonationOrderResponseSerializer,
    DonationOrderSerializer,
    ErrorResponseSerializer,
    MembershipCheckoutResponseSerializer,
    MembershipCheckoutSerializer,
    MembershipPlanSerializer,
    SubscriptionSerializer,
    VerifyPaymentResponseSerializer,
    VerifyPaymentSerializer,
)
from payments.state_machines import PaymentType

logger = logging.getLogger(__name__)


# =============================================================================
# Response helpers
# =============================================================================


def error_response(result: ServiceResult) -> Response:
    """Render a failed ServiceResult as an error body with its HTTP status."""
    body = {
        "error": result.error,
        "error_code": result.error_code or "ERROR",
    }
    if result.errors:
        body["details"] = result.errors
    return Response(body, status=result.http_status)


def validation_error_response(errors: dict) -> Response:
    """
    Render serializer errors.

    The first field message becomes the top-level error so clients can show
    it directly.
    """
    first_message = "Validation failed"
    for messages in errors.values():
        if isinstance(messages, (list, tuple)) and messages:
            first_message = str(messages[0])
            break
    return Response(
        {
            "error": first_message,
            "error_code": "VALIDATION_ERROR",
            "details": errors,
        },
        status=status.HTTP_400_BAD_REQUEST,
    )


# =============================================================================
# Plans
# =============================================================================


class MembershipPlanListView(APIView):
    """
    List plans on offer.

    GET /api/v1/payments/plans/
    """

    permission_classes = [AllowAny]
    authentication_classes = []

    @extend_schema(
        operation_id="list_membership_plans",
        summary="List membership plans",
        description="Active plans, cheapest first, with features in display order.",
        responses={200: MembershipPlanSerializer(many=True)},
        tags=["Payments - Plans"],
    )
    def get(self, request):
        """Return active plans."""
        result = CheckoutOrchestrator.list_plans()
        return Response(MembershipPlanSerializer(result.data, many=True).data)


# =============================================================================
# Donations
# =============================================================================


class DonationOrderView(APIView):
    """
    Create a Razorpay order for a donation.

    POST /api/v1/payments/orders/

    Request body:
        {
            "amount": 500,
            "type": "donation",
            "donor_name": "Asha Rao",
            "donor_email": "asha@example.com"
        }

    Returns:
        {"orderId", "amount" (paise), "currency", "keyId", "paymentReference"}
    """

    permission_classes = [AllowAny]
    authentication_classes = []

    @extend_schema(
        operation_id="create_donation_order",
        summary="Create donation order",
        request=DonationOrderSerializer,
        responses={
            201: DonationOrderResponseSerializer,
            400: ErrorResponseSerializer,
            502: OpenApiResponse(
                response=ErrorResponseSerializer,
                description="Razorpay unavailable or rejected the order",
            ),
        },
        tags=["Payments - Donations"],
    )
    def post(self, request):
        """Create the order and a pending donation."""
        serializer = DonationOrderSerializer(data=request.data)
        if not serializer.is_valid():
            return validation_error_response(serializer.errors)

        data = serializer.validated_data
        result = CheckoutOrchestrator.create_donation_order(
            DonationOrderParams(
                amount=data["amount"],
                donor_name=data["donor_name"],
                donor_email=data["donor_email"],
                donor_phone=data["donor_phone"],
                donor_address=data["donor_address"],
                notes=data["notes"],
                plan_id=data["plan_id"],
            )
        )
        if not result.success:
            return error_response(result)

        order = result.data.order
        return Response(
            {
                "orderId": order.id,
                "amount": order.amount_paise,
                "currency": order.currency,
                "keyId": settings.RAZORPAY_KEY_ID,
                "paymentReference": result.data.donation.payment_reference,
            },
            status=status.HTTP_201_CREATED,
        )


# =============================================================================
# Memberships
# =============================================================================


class MembershipCheckoutView(APIView):
    """
    Open a checkout for a membership plan.

    POST /api/v1/payments/subscriptions/

    Request body:
        {"plan_id": "<uuid>", "member_id": "<uuid>"}

    Returns (lifetime):
        {"type": "order", "orderId", "amount", "currency", "keyId",
         "subscriptionId", "paymentReference"}

    Returns (monthly/yearly):
        {"type": "subscription", "subscriptionId", "keyId", "dbSubscriptionId"}
    """

    permission_classes = [IsAuthenticated]

    @extend_schema(
        operation_id="create_membership_checkout",
        summary="Create membership checkout",
        request=MembershipCheckoutSerializer,
        responses={
            201: MembershipCheckoutResponseSerializer,
            400: ErrorResponseSerializer,
            403: ErrorResponseSerializer,
            404: ErrorResponseSerializer,
            502: ErrorResponseSerializer,
        },
        tags=["Payments - Memberships"],
    )
    def post(self, request):
        """Delegate to the strategy for the plan type."""
        serializer = MembershipCheckoutSerializer(data=request.data)
        if not serializer.is_valid():
            return validation_error_response(serializer.errors)

        result = CheckoutOrchestrator.create_membership_checkout(
            user=request.user,
            plan_id=serializer.validated_data["plan_id"],
            member_id=serializer.validated_data["member_id"],
        )
        if not result.success:
            return error_response(result)

        checkout = result.data
        if checkout.is_order:
            body = {
                "type": "order",
                "orderId": checkout.order.id,
                "amount": checkout.order.amount_paise,
                "currency": checkout.order.currency,
                "keyId": settings.RAZORPAY_KEY_ID,
                "subscriptionId": str(checkout.subscription.id),
                "paymentReference": checkout.payment.payment_reference,
            }
        else:
            body = {
                "type": "subscription",
                "subscriptionId": checkout.razorpay_subscription_id,
                "keyId": settings.RAZORPAY_KEY_ID,
                "dbSubscriptionId": str(checkout.subscription.id),
            }
        return Response(body, status=status.HTTP_201_CREATED)


class CancelSubscriptionView(APIView):
    """
    Cancel a recurring membership at the end of its billing cycle.

    POST /api/v1/payments/subscriptions/cancel/

    Request body:
        {"subscription_id": "<uuid>"}
    """

    permission_classes = [IsAuthenticated]

    @extend_schema(
        operation_id="cancel_membership_subscription",
        summary="Cancel subscription",
        description=(
            "Cancels at the end of the current billing period. Lifetime "
            "memberships cannot be cancelled."
        ),
        request=CancelSubscriptionSerializer,
        responses={
            200: SubscriptionSerializer,
            400: ErrorResponseSerializer,
            403: ErrorResponseSerializer,
            404: ErrorResponseSerializer,
            502: ErrorResponseSerializer,
        },
        tags=["Payments - Memberships"],
    )
    def post(self, request):
        """Cancel the subscription."""
        serializer = CancelSubscriptionSerializer(data=request.data)
        if not serializer.is_valid():
            return validation_error_response(serializer.errors)

        result = SubscriptionService.cancel(
            user=request.user,
            subscription_id=serializer.validated_data["subscription_id"],
        )
        if not result.success:
            return error_response(result)

        return Response(
            {"success": True, "subscription": SubscriptionSerializer(result.data).data}
        )


# =============================================================================
# Verification
# =============================================================================


class VerifyPaymentView(APIView):
    """
    Verify a checkout response and record the payment.

    POST /api/v1/payments/verify/

    Request body:
        {
            "type": "donation" | "lifetime" | "subscription",
            "razorpay_payment_id": "pay_xxx",
            "razorpay_signature": "...",
            "razorpay_order_id": "order_xxx"          (donation, lifetime)
            "razorpay_subscription_id": "sub_xxx"    (subscription)
        }
    """

    permission_classes = [AllowAny]
    authentication_classes = []

    @extend_schema(
        operation_id="verify_payment",
        summary="Verify checkout payment",
        request=VerifyPaymentSerializer,
        responses={
            200: VerifyPaymentResponseSerializer,
            400: OpenApiResponse(
                response=ErrorResponseSerializer,
                description="Invalid signature or request",
            ),
            404: ErrorResponseSerializer,
            409: ErrorResponseSerializer,
        },
        tags=["Payments - Verification"],
    )
    def post(self, request):
        """Check the signature, then record the payment."""
        serializer = VerifyPaymentSerializer(data=request.data)
        if not serializer.is_valid():
            return validation_error_response(serializer.errors)

        data = serializer.validated_data
        result = VerificationService.verify(
            VerifyPaymentParams(
                payment_type=data["type"],
                razorpay_payment_id=data["razorpay_payment_id"],
                razorpay_signature=data["razorpay_signature"],
                razorpay_order_id=data["razorpay_order_id"] or None,
                razorpay_subscription_id=data["razorpay_subscription_id"] or None,
            )
        )
        if not result.success:
            return error_response(result)

        verification = result.data
        body = {"success": True, "type": verification.payment_type}
        if verification.payment_type == PaymentType.DONATION:
            body["paymentReference"] = verification.record.payment_reference
        else:
            body["subscriptionStatus"] = verification.record.status
        return Response(body)
