"""
State machine enums for payment models.

This module defines the state enums used by payment models with django-fsm.
"""

from payments.state_machines.states import (
    MembershipType,
    PaymentStatus,
    PaymentType,
    SubscriptionStatus,
    WebhookEventStatus,
)

__all__ = [
    "MembershipType",
    "PaymentStatus",
    "PaymentType",
    "SubscriptionStatus",
    "WebhookEventStatus",
]
