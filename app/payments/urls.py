"""
URL configuration for the payments app.

Routes:
    - GET  /plans/                - Active membership plans
    - POST /orders/               - Create a donation order
    - POST /subscriptions/        - Create a membership checkout
    - POST /subscriptions/cancel/ - Cancel a recurring membership
    - POST /verify/               - Verify a checkout response
    - POST /webhooks/razorpay/    - Razorpay webhook endpoint

All routes are prefixed with /api/v1/payments/ when included in the main URLconf.

Usage:
    # In config/urls.py
    api_v1_patterns = [
        path("payments/", include("payments.urls")),
    ]
"""

from django.urls import path

from payments.views import (
    CancelSubscriptionView,
    DonationOrderView,
    MembershipCheckoutView,
    MembershipPlanListView,
    VerifyPaymentView,
)
from payments.webhooks.views import razorpay_webhook

app_name = "payments"

urlpatterns = [
    path("plans/", MembershipPlanListView.as_view(), name="plan_list"),
    path("orders/", DonationOrderView.as_view(), name="donation_order"),
    path("subscriptions/", MembershipCheckoutView.as_view(), name="membership_checkout"),
    path(
        "subscriptions/cancel/",
        CancelSubscriptionView.as_view(),
        name="cancel_subscription",
    ),
    path("verify/", VerifyPaymentView.as_view(), name="verify_payment"),
    # Webhook endpoints
    path("webhooks/razorpay/", razorpay_webhook, name="razorpay_webhook"),
]
