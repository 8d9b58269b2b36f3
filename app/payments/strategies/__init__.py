"""
Membership checkout strategies.

This module provides the strategy pattern implementation for the two ways
a membership plan is charged (one-time order, recurring subscription).

Usage:
    from payments.strategies import OneTimeOrderStrategy, MembershipCheckoutParams

    # Lifetime plan: single Razorpay order
    strategy = OneTimeOrderStrategy()
    result = strategy.create_checkout(
        MembershipCheckoutParams(member=member, plan=lifetime_plan)
    )

    # Monthly/yearly plan: Razorpay plan + subscription
    from payments.strategies import RecurringSubscriptionStrategy

    strategy = RecurringSubscriptionStrategy()
    result = strategy.create_checkout(
        MembershipCheckoutParams(member=member, plan=monthly_plan)
    )
"""

from payments.strategies.base import (
    CheckoutResult,
    MembershipCheckoutParams,
    PaymentStrategy,
)
from payments.strategies.one_time import OneTimeOrderStrategy
from payments.strategies.recurring import (
    RecurringSubscriptionStrategy,
    total_billing_cycles,
)

__all__ = [
    "CheckoutResult",
    "MembershipCheckoutParams",
    "OneTimeOrderStrategy",
    "PaymentStrategy",
    "RecurringSubscriptionStrategy",
    "total_billing_cycles",
]
