"""
Subscription lifecycle service.

Member-initiated cancellation goes through here. Razorpay is asked to
cancel at the end of the current cycle, then the local Subscription moves
to CANCELLED. The paid period is never shortened: end_date and
next_billing_date are left as they were.

Usage:
    from payments.services import SubscriptionService

    result = SubscriptionService.cancel(user=request.user, subscription_id=sub_id)
    if not result.success:
        return Response(result.to_response(), status=result.http_status)
"""

from __future__ import annotations

import uuid
from typing import TYPE_CHECKING

from core.services import BaseService, ServiceResult

from payments.adapters import RazorpayAdapter
from payments.exceptions import RazorpayError
from payments.models import Subscription
from payments.state_machines import SubscriptionStatus

if TYPE_CHECKING:
    from django.contrib.auth.models import AbstractBaseUser


class SubscriptionService(BaseService):
    """
    Cancels member subscriptions.

    All methods are class methods - no instance state is maintained.
    """

    razorpay = RazorpayAdapter

    @classmethod
    def cancel(
        cls,
        user: AbstractBaseUser,
        subscription_id: uuid.UUID,
    ) -> ServiceResult[Subscription]:
        """
        Cancel a recurring subscription at the end of its billing cycle.

        Args:
            user: Authenticated request user (owner or staff)
            subscription_id: Local Subscription ID

        Returns:
            ServiceResult containing the cancelled Subscription. Lifetime
            memberships and subscriptions without a Razorpay ID fail with
            a 400; cancelling twice returns the already-cancelled record.
        """
        logger = cls.get_logger()

        subscription = (
            Subscription.objects.select_related("plan", "member")
            .filter(id=subscription_id)
            .first()
        )
        if subscription is None:
            return ServiceResult.failure(
                "Subscription not found",
                error_code="SUBSCRIPTION_NOT_FOUND",
                http_status=404,
            )

        if not subscription.member.is_owned_by(user):
            return ServiceResult.failure(
                "You can only cancel your own subscription",
                error_code="PERMISSION_DENIED",
                http_status=403,
            )

        if subscription.plan.is_lifetime:
            return ServiceResult.failure(
                "Lifetime memberships cannot be cancelled",
                error_code="LIFETIME_NOT_CANCELLABLE",
            )

        if not subscription.razorpay_subscription_id:
            return ServiceResult.failure(
                "No Razorpay subscription found",
                error_code="NO_RAZORPAY_SUBSCRIPTION",
            )

        if subscription.status == SubscriptionStatus.CANCELLED:
            return ServiceResult.success(subscription)

        if subscription.status not in (
            SubscriptionStatus.ACTIVE,
            SubscriptionStatus.PAUSED,
        ):
            return ServiceResult.failure(
                f"Cannot cancel subscription in {subscription.status} status",
                error_code="INVALID_STATE_TRANSITION",
                http_status=409,
            )

        try:
            cls.razorpay.cancel_subscription(
                subscription.razorpay_subscription_id,
                cancel_at_cycle_end=True,
            )
        except RazorpayError as e:
            return cls.handle_exception(e, "Subscription cancellation")

        with cls.atomic():
            locked = Subscription.objects.select_for_update().get(pk=subscription.pk)
            if locked.status in (SubscriptionStatus.ACTIVE, SubscriptionStatus.PAUSED):
                locked.cancel()
                locked.save()

        logger.info(
            "Subscription cancelled",
            extra={
                "subscription_id": str(locked.id),
                "razorpay_subscription_id": locked.razorpay_subscription_id,
                "end_date": locked.end_date.isoformat() if locked.end_date else None,
            },
        )
        return ServiceResult.success(locked)
