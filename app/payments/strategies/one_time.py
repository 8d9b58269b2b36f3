"""
One-time order strategy for lifetime memberships.

A lifetime plan is paid once through a Razorpay order:
1. Member picks a lifetime plan
2. Razorpay order created for the plan price
3. Pending Subscription (no gateway ID) and pending Payment stored
4. Checkout opened with the order ID
5. Signature verification (or payment.captured) completes the checkout

State Flow:
    Payment: PENDING -> SUCCESS
    Subscription: PENDING -> ACTIVE (end_date and next_billing_date stay empty)

Usage:
    from payments.strategies import OneTimeOrderStrategy, MembershipCheckoutParams

    strategy = OneTimeOrderStrategy()
    result = strategy.create_checkout(
        MembershipCheckoutParams(member=member, plan=lifetime_plan)
    )

    if result.success:
        order_id = result.data.order.id
"""

from __future__ import annotations

import logging

from django.conf import settings
from django.db import transaction

from core.services import ServiceResult

from payments.adapters import CreateOrderParams
from payments.exceptions import RazorpayError
from payments.models import Payment, Subscription
from payments.references import generate_payment_reference
from payments.state_machines import PaymentStatus, PaymentType, SubscriptionStatus
from payments.strategies.base import (
    CheckoutResult,
    MembershipCheckoutParams,
    PaymentStrategy,
)

logger = logging.getLogger(__name__)


class OneTimeOrderStrategy(PaymentStrategy):
    """
    Strategy for plans paid with a single Razorpay order.

    Used for lifetime memberships. The Payment row is created up front with
    the order ID so verification and the payment.captured webhook can both
    find it.
    """

    def create_checkout(
        self, params: MembershipCheckoutParams
    ) -> ServiceResult[CheckoutResult]:
        """
        Create a Razorpay order and the pending local records.

        Args:
            params: Checkout parameters

        Returns:
            ServiceResult containing CheckoutResult with the order
        """
        member, plan = params.member, params.plan
        reference = generate_payment_reference()

        logger.info(
            "Creating one-time membership order",
            extra={
                "member_id": str(member.id),
                "plan_id": str(plan.id),
                "amount_paise": plan.price_paise,
                "payment_reference": reference,
            },
        )

        try:
            order = self.razorpay.create_order(
                CreateOrderParams(
                    amount_paise=plan.price_paise,
                    currency=settings.PAYMENT_CURRENCY,
                    receipt=reference,
                    notes={
                        "type": plan.plan_type,
                        "member_id": str(member.id),
                        "plan_id": str(plan.id),
                    },
                )
            )
        except RazorpayError as e:
            logger.error(
                "Failed to create membership order: Razorpay error",
                extra={
                    "error_code": e.error_code,
                    "is_retryable": e.is_retryable,
                    "member_id": str(member.id),
                },
            )
            return ServiceResult.from_exception(e)

        with transaction.atomic():
            subscription = Subscription.objects.create(member=member, plan=plan)
            payment = Payment.objects.create(
                member=member,
                subscription=subscription,
                plan=plan,
                amount_paise=plan.price_paise,
                currency=order.currency or settings.PAYMENT_CURRENCY,
                payment_reference=reference,
                payment_type=PaymentType.LIFETIME,
                razorpay_order_id=order.id,
            )

        logger.info(
            "One-time membership order created",
            extra={
                "subscription_id": str(subscription.id),
                "payment_id": str(payment.id),
                "razorpay_order_id": order.id,
            },
        )

        return ServiceResult.success(
            CheckoutResult(subscription=subscription, payment=payment, order=order)
        )

    def complete_checkout(
        self,
        record: Payment,
        razorpay_payment_id: str,
        razorpay_signature: str | None = None,
    ) -> ServiceResult[Subscription]:
        """
        Mark the lifetime payment successful and activate the subscription.

        Args:
            record: The locked pending Payment
            razorpay_payment_id: Razorpay payment ID
            razorpay_signature: Checkout signature, if any

        Returns:
            ServiceResult containing the active Subscription
        """
        payment = record
        subscription = (
            Subscription.objects.select_for_update()
            .select_related("plan")
            .get(pk=payment.subscription_id)
        )

        if payment.payment_status == PaymentStatus.SUCCESS:
            logger.info(
                "Lifetime payment already completed",
                extra={"payment_id": str(payment.id)},
            )
            return ServiceResult.success(subscription)

        if payment.payment_status != PaymentStatus.PENDING:
            return ServiceResult.failure(
                f"Cannot complete payment from state: {payment.payment_status}",
                error_code="INVALID_STATE_TRANSITION",
                http_status=409,
            )

        payment.mark_success(
            razorpay_payment_id=razorpay_payment_id,
            razorpay_signature=razorpay_signature,
        )
        payment.save()

        if subscription.status == SubscriptionStatus.PENDING:
            subscription.activate()
            subscription.save()

        logger.info(
            "Lifetime membership activated",
            extra={
                "payment_id": str(payment.id),
                "subscription_id": str(subscription.id),
                "razorpay_payment_id": razorpay_payment_id,
            },
        )
        return ServiceResult.success(subscription)
