"""
Payment domain models.

This module contains all payment-related models:
- Donation: One-time gift paid through a Razorpay order
- Member: Person holding a membership
- MembershipPlan: Purchasable plan (monthly, yearly, lifetime)
- Subscription: A member's membership term and its gateway mandate
- Payment: Membership charge (lifetime purchase or recurring charge)
- WebhookEvent: Razorpay webhook event tracking for idempotent processing
"""

from payments.models.donation import Donation
from payments.models.membership import Member, MembershipPlan
from payments.models.payment import Payment
from payments.models.subscription import Subscription, add_billing_period
from payments.models.webhook_event import WebhookEvent

__all__ = [
    "Donation",
    "Member",
    "MembershipPlan",
    "Payment",
    "Subscription",
    "WebhookEvent",
    "add_billing_period",
]
