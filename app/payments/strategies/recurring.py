"""
Recurring subscription strategy for monthly and yearly memberships.

Recurring plans are billed by Razorpay Subscriptions:
1. Member picks a monthly or yearly plan
2. Razorpay plan created on first use, its ID cached on MembershipPlan
3. Razorpay subscription created against the plan
4. Pending local Subscription stored with the gateway subscription ID
5. Checkout opened with the subscription ID; the member authorises the mandate
6. Signature verification activates the subscription and records the
   first charge; later charges arrive as subscription.charged webhooks

Billing cycles:
    monthly: SUBSCRIPTION_TOTAL_COUNT_MONTHLY cycles (default 120, ten years)
    yearly: SUBSCRIPTION_TOTAL_COUNT_YEARLY cycles (default 10)

Usage:
    from payments.strategies import RecurringSubscriptionStrategy

    strategy = RecurringSubscriptionStrategy()
    result = strategy.create_checkout(
        MembershipCheckoutParams(member=member, plan=monthly_plan)
    )

    if result.success:
        subscription_id = result.data.razorpay_subscription_id
"""

from __future__ import annotations

import logging

from django.conf import settings

from core.services import ServiceResult

from payments.adapters import CreatePlanParams, CreateSubscriptionParams
from payments.exceptions import RazorpayError
from payments.models import MembershipPlan, Payment, Subscription
from payments.references import generate_payment_reference
from payments.state_machines import (
    MembershipType,
    PaymentStatus,
    PaymentType,
    SubscriptionStatus,
)
from payments.strategies.base import (
    CheckoutResult,
    MembershipCheckoutParams,
    PaymentStrategy,
)

logger = logging.getLogger(__name__)


def total_billing_cycles(plan_type: str) -> int:
    """Number of billing cycles requested for a recurring plan."""
    if plan_type == MembershipType.MONTHLY:
        return settings.SUBSCRIPTION_TOTAL_COUNT_MONTHLY
    return settings.SUBSCRIPTION_TOTAL_COUNT_YEARLY


class RecurringSubscriptionStrategy(PaymentStrategy):
    """
    Strategy for plans billed through a Razorpay subscription.

    Used for monthly and yearly memberships.
    """

    def ensure_gateway_plan(self, plan: MembershipPlan) -> str:
        """
        Return the Razorpay plan ID for a membership plan, creating it once.

        Args:
            plan: Recurring membership plan

        Returns:
            Razorpay plan ID (plan_xxx)

        Raises:
            RazorpayError: If the plan cannot be created
        """
        if plan.razorpay_plan_id:
            return plan.razorpay_plan_id

        result = self.razorpay.create_plan(
            CreatePlanParams(
                name=plan.name,
                amount_paise=plan.price_paise,
                plan_type=plan.plan_type,
                currency=settings.PAYMENT_CURRENCY,
                description=plan.description,
            )
        )

        # Only fill the cache if no concurrent checkout got there first
        updated = MembershipPlan.objects.filter(
            pk=plan.pk, razorpay_plan_id__isnull=True
        ).update(razorpay_plan_id=result.id)
        if updated:
            plan.razorpay_plan_id = result.id
            logger.info(
                "Razorpay plan created",
                extra={"plan_id": str(plan.id), "razorpay_plan_id": result.id},
            )
        else:
            plan.razorpay_plan_id = MembershipPlan.objects.values_list(
                "razorpay_plan_id", flat=True
            ).get(pk=plan.pk)

        return plan.razorpay_plan_id

    def create_checkout(
        self, params: MembershipCheckoutParams
    ) -> ServiceResult[CheckoutResult]:
        """
        Create a Razorpay subscription and the pending local Subscription.

        Args:
            params: Checkout parameters

        Returns:
            ServiceResult containing CheckoutResult with the gateway
            subscription ID
        """
        member, plan = params.member, params.plan

        logger.info(
            "Creating recurring membership subscription",
            extra={
                "member_id": str(member.id),
                "plan_id": str(plan.id),
                "plan_type": plan.plan_type,
            },
        )

        try:
            razorpay_plan_id = self.ensure_gateway_plan(plan)
            gateway_subscription = self.razorpay.create_subscription(
                CreateSubscriptionParams(
                    plan_id=razorpay_plan_id,
                    total_count=total_billing_cycles(plan.plan_type),
                    customer_notify=1,
                    notes={
                        "type": plan.plan_type,
                        "member_id": str(member.id),
                        "plan_id": str(plan.id),
                    },
                )
            )
        except RazorpayError as e:
            logger.error(
                "Failed to create membership subscription: Razorpay error",
                extra={
                    "error_code": e.error_code,
                    "is_retryable": e.is_retryable,
                    "member_id": str(member.id),
                },
            )
            return ServiceResult.from_exception(e)

        subscription = Subscription.objects.create(
            member=member,
            plan=plan,
            razorpay_subscription_id=gateway_subscription.id,
        )

        logger.info(
            "Recurring membership subscription created",
            extra={
                "subscription_id": str(subscription.id),
                "razorpay_subscription_id": gateway_subscription.id,
            },
        )

        return ServiceResult.success(
            CheckoutResult(
                subscription=subscription,
                razorpay_subscription_id=gateway_subscription.id,
            )
        )

    def complete_checkout(
        self,
        record: Subscription,
        razorpay_payment_id: str,
        razorpay_signature: str | None = None,
    ) -> ServiceResult[Subscription]:
        """
        Activate the subscription and record its first charge.

        The activation is skipped if the subscription.activated webhook got
        there first; the Payment is skipped if one already exists for the
        Razorpay payment ID.

        Args:
            record: The locked Subscription
            razorpay_payment_id: Razorpay payment ID of the first charge
            razorpay_signature: Checkout signature, if any

        Returns:
            ServiceResult containing the active Subscription
        """
        subscription = record

        if subscription.status == SubscriptionStatus.PENDING:
            subscription.activate()
            subscription.save()
        elif subscription.status != SubscriptionStatus.ACTIVE:
            return ServiceResult.failure(
                f"Cannot activate subscription from state: {subscription.status}",
                error_code="INVALID_STATE_TRANSITION",
                http_status=409,
            )

        if not Payment.objects.filter(razorpay_payment_id=razorpay_payment_id).exists():
            Payment.objects.create(
                member_id=subscription.member_id,
                subscription=subscription,
                plan_id=subscription.plan_id,
                amount_paise=subscription.plan.price_paise,
                currency=settings.PAYMENT_CURRENCY,
                payment_reference=generate_payment_reference(),
                payment_type=PaymentType.SUBSCRIPTION,
                payment_status=PaymentStatus.SUCCESS,
                razorpay_payment_id=razorpay_payment_id,
                razorpay_signature=razorpay_signature,
            )

        logger.info(
            "Recurring membership activated",
            extra={
                "subscription_id": str(subscription.id),
                "razorpay_payment_id": razorpay_payment_id,
                "end_date": subscription.end_date.isoformat()
                if subscription.end_date
                else None,
            },
        )
        return ServiceResult.success(subscription)
