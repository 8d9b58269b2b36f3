"""
Checkout orchestrator service for coordinating order creation.

This module provides the CheckoutOrchestrator class which serves as the
entry point for opening payments. It coordinates between strategies,
the Razorpay adapter, and the payment models.

The orchestrator:
- Creates donation orders (one Razorpay order, one pending Donation)
- Routes membership checkouts to the strategy for the plan type
- Lists the plans on offer

Usage:
    from payments.services import CheckoutOrchestrator, DonationOrderParams

    result = CheckoutOrchestrator.create_donation_order(
        DonationOrderParams(
            amount=500,
            donor_name="Asha Rao",
            donor_email="asha@example.com",
        )
    )

    if result.success:
        order_id = result.data.order.id
        reference = result.data.donation.payment_reference
"""

from __future__ import annotations

import uuid
from dataclasses import dataclass
from typing import TYPE_CHECKING

from django.conf import settings

from core.services import BaseService, ServiceResult

from payments.adapters import CreateOrderParams, OrderResult, RazorpayAdapter
from payments.exceptions import RazorpayError
from payments.models import Donation, Member, MembershipPlan
from payments.references import generate_payment_reference
from payments.state_machines import MembershipType, PaymentType
from payments.strategies import (
    CheckoutResult,
    MembershipCheckoutParams,
    OneTimeOrderStrategy,
    RecurringSubscriptionStrategy,
)

if TYPE_CHECKING:
    from django.contrib.auth.models import AbstractBaseUser

    from payments.strategies import PaymentStrategy


# =============================================================================
# Parameter and Result Types
# =============================================================================


@dataclass
class DonationOrderParams:
    """
    Parameters for creating a donation order.

    Attributes:
        amount: Donation in whole rupees (already validated for bounds)
        donor_name: Donor name
        donor_email: Donor email
        donor_phone: Optional phone
        donor_address: Optional address
        notes: Optional message from the donor
        plan_id: Optional plan the donation is tied to (noted on the order)
    """

    amount: int
    donor_name: str
    donor_email: str
    donor_phone: str = ""
    donor_address: str = ""
    notes: str = ""
    plan_id: uuid.UUID | None = None

    def __post_init__(self) -> None:
        """Validate parameters after initialization."""
        if self.amount <= 0:
            raise ValueError("amount must be positive")
        if not self.donor_name:
            raise ValueError("donor_name is required")
        if not self.donor_email:
            raise ValueError("donor_email is required")

    @property
    def amount_paise(self) -> int:
        """Amount in paise."""
        return self.amount * 100


@dataclass
class DonationOrderResult:
    """
    Result from creating a donation order.

    Attributes:
        donation: The pending Donation
        order: Razorpay order details
    """

    donation: Donation
    order: OrderResult


# =============================================================================
# Checkout Orchestrator
# =============================================================================


class CheckoutOrchestrator(BaseService):
    """
    Central coordinator for opening payments.

    Strategy Registry:
        - LIFETIME: OneTimeOrderStrategy (single order)
        - MONTHLY/YEARLY: RecurringSubscriptionStrategy (plan + subscription)

    All methods are class methods - no instance state is maintained.
    """

    # Strategy registry - maps plan type to strategy class
    STRATEGIES: dict[str, type[PaymentStrategy]] = {
        MembershipType.LIFETIME: OneTimeOrderStrategy,
        MembershipType.MONTHLY: RecurringSubscriptionStrategy,
        MembershipType.YEARLY: RecurringSubscriptionStrategy,
    }

    # Adapter used for donation orders; swapped in tests
    razorpay = RazorpayAdapter

    @classmethod
    def get_strategy(cls, plan_type: str) -> PaymentStrategy:
        """
        Get a strategy instance for the given plan type.

        Args:
            plan_type: The plan type (from MembershipType enum)

        Returns:
            An instance of the appropriate strategy

        Raises:
            ValueError: If plan type is not registered
        """
        strategy_class = cls.STRATEGIES.get(plan_type)
        if not strategy_class:
            supported = ", ".join(cls.STRATEGIES.keys())
            raise ValueError(
                f"Unknown plan type: {plan_type}. Supported: {supported}"
            )
        return strategy_class(razorpay_adapter=cls.razorpay)

    @classmethod
    def get_strategy_for_plan(cls, plan: MembershipPlan) -> PaymentStrategy:
        """Get the strategy instance that charges for a plan."""
        return cls.get_strategy(plan.plan_type)

    # =========================================================================
    # Donations
    # =========================================================================

    @classmethod
    def create_donation_order(
        cls, params: DonationOrderParams
    ) -> ServiceResult[DonationOrderResult]:
        """
        Create a Razorpay order and a pending Donation.

        The order carries the payment reference as its receipt and the
        donor in its notes, so the payment.captured webhook can tell it
        is a donation.

        Args:
            params: Donation order parameters

        Returns:
            ServiceResult containing DonationOrderResult on success
        """
        logger = cls.get_logger()
        reference = generate_payment_reference()

        logger.info(
            "Creating donation order",
            extra={
                "amount_paise": params.amount_paise,
                "payment_reference": reference,
            },
        )

        try:
            order = cls.razorpay.create_order(
                CreateOrderParams(
                    amount_paise=params.amount_paise,
                    currency=settings.PAYMENT_CURRENCY,
                    receipt=reference,
                    notes={
                        "type": PaymentType.DONATION.value,
                        "donor_name": params.donor_name,
                        "donor_email": params.donor_email,
                        "plan_id": str(params.plan_id) if params.plan_id else "",
                    },
                )
            )
        except RazorpayError as e:
            logger.error(
                "Failed to create donation order: Razorpay error",
                extra={
                    "error_code": e.error_code,
                    "is_retryable": e.is_retryable,
                    "payment_reference": reference,
                },
            )
            return ServiceResult.from_exception(e)

        donation = Donation.objects.create(
            donor_name=params.donor_name,
            donor_email=params.donor_email,
            donor_phone=params.donor_phone,
            donor_address=params.donor_address,
            notes=params.notes,
            amount_paise=params.amount_paise,
            currency=order.currency or settings.PAYMENT_CURRENCY,
            payment_reference=reference,
            razorpay_order_id=order.id,
        )

        logger.info(
            "Donation order created",
            extra={
                "donation_id": str(donation.id),
                "razorpay_order_id": order.id,
                "payment_reference": reference,
            },
        )
        return ServiceResult.success(DonationOrderResult(donation=donation, order=order))

    # =========================================================================
    # Memberships
    # =========================================================================

    @classmethod
    def create_membership_checkout(
        cls,
        user: AbstractBaseUser,
        plan_id: uuid.UUID,
        member_id: uuid.UUID,
    ) -> ServiceResult[CheckoutResult]:
        """
        Open a checkout for a membership plan.

        Args:
            user: Authenticated request user
            plan_id: MembershipPlan ID (must be active)
            member_id: Member ID (must belong to the user unless staff)

        Returns:
            ServiceResult containing CheckoutResult on success
        """
        logger = cls.get_logger()

        plan = MembershipPlan.objects.filter(id=plan_id, is_active=True).first()
        if plan is None:
            return ServiceResult.failure(
                "Plan not found",
                error_code="PLAN_NOT_FOUND",
                http_status=404,
            )

        member = Member.objects.filter(id=member_id, is_active=True).first()
        if member is None:
            return ServiceResult.failure(
                "Member not found",
                error_code="MEMBER_NOT_FOUND",
                http_status=404,
            )

        if not member.is_owned_by(user):
            logger.warning(
                "Membership checkout for another member refused",
                extra={"member_id": str(member.id), "user_id": str(user.pk)},
            )
            return ServiceResult.failure(
                "You can only purchase a membership for yourself",
                error_code="PERMISSION_DENIED",
                http_status=403,
            )

        strategy = cls.get_strategy_for_plan(plan)
        result = strategy.create_checkout(
            MembershipCheckoutParams(member=member, plan=plan)
        )

        if result.success:
            logger.info(
                "Membership checkout opened",
                extra={
                    "subscription_id": str(result.data.subscription.id),
                    "plan_type": plan.plan_type,
                },
            )
        else:
            logger.warning(
                "Membership checkout failed",
                extra={"error": result.error, "error_code": result.error_code},
            )
        return result

    @classmethod
    def list_plans(cls) -> ServiceResult[list[MembershipPlan]]:
        """Return the active plans, cheapest first."""
        return ServiceResult.success(
            list(MembershipPlan.objects.filter(is_active=True).order_by("price_paise"))
        )
