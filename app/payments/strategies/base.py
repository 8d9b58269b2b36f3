"""
Abstract base strategy for membership checkout.

This module defines the strategy pattern contract that all membership
checkout strategies must implement. Each strategy handles one way of
charging for a plan:

- OneTimeOrderStrategy: lifetime plans, a single Razorpay order
- RecurringSubscriptionStrategy: monthly/yearly plans, a Razorpay
  plan + subscription mandate

The strategy pattern allows:
- Lifetime and recurring plans to open different checkouts
- Easy extension for new billing models
- Testability through adapter injection

Usage:
    class MyCustomStrategy(PaymentStrategy):
        def create_checkout(self, params):
            # Open a checkout with the gateway, store pending records
            pass

        def complete_checkout(self, record, razorpay_payment_id, razorpay_signature=None):
            # Mark the payment successful and activate the subscription
            pass
"""

from __future__ import annotations

from abc import ABC, abstractmethod
from dataclasses import dataclass
from typing import TYPE_CHECKING

from core.services import ServiceResult

from payments.adapters import RazorpayAdapter

if TYPE_CHECKING:
    from payments.adapters import OrderResult
    from payments.models import Member, MembershipPlan, Payment, Subscription


# =============================================================================
# Parameter and Result Types
# =============================================================================


@dataclass
class MembershipCheckoutParams:
    """
    Parameters for opening a membership checkout.

    Attributes:
        member: Member buying the plan
        plan: Active plan being bought

    Example:
        params = MembershipCheckoutParams(member=member, plan=plan)
    """

    member: Member
    plan: MembershipPlan

    def __post_init__(self) -> None:
        """Validate parameters after initialization."""
        if self.member is None:
            raise ValueError("member is required")
        if self.plan is None:
            raise ValueError("plan is required")


@dataclass
class CheckoutResult:
    """
    Result from opening a membership checkout.

    Exactly one of ``order`` (one-time checkout) or
    ``razorpay_subscription_id`` (recurring checkout) is set.

    Attributes:
        subscription: The pending local Subscription
        payment: The pending Payment (one-time checkout only)
        order: Razorpay order details (one-time checkout only)
        razorpay_subscription_id: Razorpay subscription ID (recurring only)
    """

    subscription: Subscription
    payment: Payment | None = None
    order: OrderResult | None = None
    razorpay_subscription_id: str | None = None

    @property
    def is_order(self) -> bool:
        """Whether the checkout is opened with an order ID."""
        return self.order is not None


# =============================================================================
# Abstract Strategy
# =============================================================================


class PaymentStrategy(ABC):
    """
    Abstract base class for membership checkout strategies.

    The CheckoutOrchestrator picks a strategy from the plan type and
    delegates to it. All strategies share the same interface but differ in:
    - Gateway objects created (order vs plan + subscription)
    - Local records stored up front (lifetime stores a pending Payment)
    - How completion records the payment

    Dependency Injection:
        The Razorpay adapter can be injected for testing. If not provided,
        uses the default RazorpayAdapter class.
    """

    def __init__(self, razorpay_adapter: type | None = None):
        """
        Initialize the strategy with optional Razorpay adapter injection.

        Args:
            razorpay_adapter: Optional adapter class for dependency injection.
                              If not provided, uses the default RazorpayAdapter.
        """
        self.razorpay = razorpay_adapter or RazorpayAdapter

    @abstractmethod
    def create_checkout(
        self, params: MembershipCheckoutParams
    ) -> ServiceResult[CheckoutResult]:
        """
        Open a checkout for a plan.

        Calls Razorpay first, then stores the pending local records, so a
        gateway failure leaves nothing behind in the database.

        Args:
            params: Checkout parameters

        Returns:
            ServiceResult containing CheckoutResult on success, or the
            translated gateway error on failure.
        """

    @abstractmethod
    def complete_checkout(
        self,
        record: Payment | Subscription,
        razorpay_payment_id: str,
        razorpay_signature: str | None = None,
    ) -> ServiceResult[Subscription]:
        """
        Record a confirmed payment and activate the membership.

        Called after the checkout signature has been verified, or from the
        ``payment.captured`` webhook. Must be idempotent: completing an
        already-completed checkout returns success without a second
        transition.

        Args:
            record: The locked Payment (one-time) or Subscription (recurring)
            razorpay_payment_id: Razorpay payment ID (pay_xxx)
            razorpay_signature: Checkout signature, when coming from checkout

        Returns:
            ServiceResult containing the activated Subscription

        Note:
            Call within a transaction with the record locked by
            select_for_update.
        """
