"""
State enums for payment models.

This module defines all state enums used by payment models with django-fsm.
These are Django TextChoices for database storage and admin integration.

State Machines Overview:

Donation / Payment status:
    pending → success (signature verified or payment.captured)
    pending → failed (payment.failed)
    success → refunded (refund.processed)

Subscription status:
    pending → active (provider confirmation)
    active ↔ paused (gateway events)
    active/paused → cancelled (member cancels; current period kept)
    active/paused/cancelled → expired (gateway completes or ends the mandate)

WebhookEvent processing:
    pending → processing → processed
    pending → processing → failed (retried by celery-beat)
"""

from django.db import models


class PaymentStatus(models.TextChoices):
    """
    Status of a Donation or membership Payment.

    Terminal states: FAILED, REFUNDED. SUCCESS only moves on to REFUNDED.

    State Flow:
        PENDING → SUCCESS → REFUNDED
        PENDING → FAILED
    """

    PENDING = "pending", "Pending"
    SUCCESS = "success", "Success"
    FAILED = "failed", "Failed"
    REFUNDED = "refunded", "Refunded"


class SubscriptionStatus(models.TextChoices):
    """
    States for the Subscription model lifecycle.

    A subscription that never reaches ACTIVE simply stays PENDING; there is
    no explicit failed state.

    State Flow:
        PENDING → ACTIVE → CANCELLED → EXPIRED
        ACTIVE → PAUSED → ACTIVE
    """

    PENDING = "pending", "Pending"
    ACTIVE = "active", "Active"
    PAUSED = "paused", "Paused"
    CANCELLED = "cancelled", "Cancelled"
    EXPIRED = "expired", "Expired"


class MembershipType(models.TextChoices):
    """
    Billing type of a MembershipPlan.

    LIFETIME plans are paid with a one-time gateway order; MONTHLY and
    YEARLY plans use a recurring gateway subscription.
    """

    MONTHLY = "monthly", "Monthly"
    YEARLY = "yearly", "Yearly"
    LIFETIME = "lifetime", "Lifetime"


class PaymentType(models.TextChoices):
    """
    Payment type tag sent by the checkout client and stored on payments.

    DONATION is only used on the wire; donations have their own model.
    """

    DONATION = "donation", "Donation"
    LIFETIME = "lifetime", "Lifetime Membership"
    SUBSCRIPTION = "subscription", "Subscription Charge"


class WebhookEventStatus(models.TextChoices):
    """
    Processing status for WebhookEvent.

    State Flow:
        PENDING → PROCESSING → PROCESSED
        PENDING → PROCESSING → FAILED (can retry)
    """

    PENDING = "pending", "Pending"
    PROCESSING = "processing", "Processing"
    PROCESSED = "processed", "Processed"
    FAILED = "failed", "Failed"


__all__ = [
    "MembershipType",
    "PaymentStatus",
    "PaymentType",
    "SubscriptionStatus",
    "WebhookEventStatus",
]
