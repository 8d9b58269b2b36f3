"""
Webhook event handlers for Razorpay events.

This module provides a handler registry and implementations for
processing different Razorpay webhook events.

The handler registry allows:
- Clean separation between event routing and handling
- Easy extension for new event types
- Centralized error handling

Handled events:
    payment.captured        Donation/lifetime payment confirmed
    payment.failed          Donation/lifetime payment failed
    refund.processed        Successful payment refunded
    subscription.activated  Mandate authorised, membership starts
    subscription.charged    Recurring charge collected
    subscription.cancelled  Mandate cancelled
    subscription.paused     Billing paused
    subscription.resumed    Billing resumed
    subscription.completed  All billing cycles done
    subscription.expired    Mandate expired

Every handler is idempotent: replaying an event whose effect is already
recorded returns success without a second transition.

Usage:
    from payments.webhooks.handlers import dispatch_webhook, register_handler

    # Register a custom handler
    @register_handler("custom.event")
    def handle_custom_event(webhook_event: WebhookEvent) -> ServiceResult:
        ...

    # Dispatch an event to its handler
    result = dispatch_webhook(webhook_event)
"""

from __future__ import annotations

import logging
from datetime import datetime, timezone as dt_timezone
from typing import Callable

from django.conf import settings
from django.db import transaction

from core.services import ServiceResult

from payments.models import Donation, Payment, Subscription, WebhookEvent
from payments.references import generate_payment_reference
from payments.services import VerificationService
from payments.state_machines import (
    PaymentStatus,
    PaymentType,
    SubscriptionStatus,
)
from payments.strategies import OneTimeOrderStrategy


logger = logging.getLogger(__name__)


# =============================================================================
# Handler Registry
# =============================================================================


# Maps event type strings to handler functions
WEBHOOK_HANDLERS: dict[str, Callable[[WebhookEvent], ServiceResult]] = {}


def register_handler(*event_types: str) -> Callable:
    """
    Decorator to register a webhook event handler.

    Usage:
        @register_handler("payment.captured")
        def handle_payment_captured(webhook_event: WebhookEvent) -> ServiceResult:
            ...

    Args:
        event_types: One or more Razorpay event names

    Returns:
        Decorator function that registers the handler
    """

    def decorator(func: Callable[[WebhookEvent], ServiceResult]) -> Callable:
        for event_type in event_types:
            WEBHOOK_HANDLERS[event_type] = func
            logger.debug(f"Registered webhook handler for {event_type}")
        return func

    return decorator


def dispatch_webhook(webhook_event: WebhookEvent) -> ServiceResult:
    """
    Dispatch a webhook event to the appropriate handler.

    Looks up the handler by event type and calls it. If no handler
    is registered, logs and returns success (to avoid failing on
    unknown events).

    Args:
        webhook_event: The WebhookEvent to process

    Returns:
        ServiceResult from the handler, or success if no handler
    """
    handler = WEBHOOK_HANDLERS.get(webhook_event.event_type)

    if not handler:
        logger.info(
            f"No handler registered for event type: {webhook_event.event_type}",
            extra={"razorpay_event_id": webhook_event.razorpay_event_id},
        )
        return ServiceResult.success(None)

    logger.info(
        f"Dispatching {webhook_event.event_type} to handler",
        extra={"razorpay_event_id": webhook_event.razorpay_event_id},
    )

    return handler(webhook_event)


# =============================================================================
# Helpers
# =============================================================================


def from_timestamp(value: int | None) -> datetime | None:
    """Convert a Razorpay unix timestamp (seconds) to an aware datetime."""
    if not value:
        return None
    return datetime.fromtimestamp(int(value), tz=dt_timezone.utc)


def _missing_entity(webhook_event: WebhookEvent, name: str) -> ServiceResult:
    logger.error(
        f"{webhook_event.event_type}: payload has no {name} entity",
        extra={"razorpay_event_id": webhook_event.razorpay_event_id},
    )
    return ServiceResult.failure(
        f"Could not extract {name} from webhook",
        error_code="INVALID_WEBHOOK_PAYLOAD",
    )


def _lock_subscription(razorpay_subscription_id: str) -> Subscription | None:
    return (
        Subscription.objects.select_for_update()
        .select_related("plan")
        .filter(razorpay_subscription_id=razorpay_subscription_id)
        .first()
    )


def _subscription_not_found(
    webhook_event: WebhookEvent, razorpay_subscription_id: str
) -> ServiceResult:
    logger.warning(
        "Subscription not found for razorpay_subscription_id",
        extra={
            "razorpay_subscription_id": razorpay_subscription_id,
            "razorpay_event_id": webhook_event.razorpay_event_id,
        },
    )
    return ServiceResult.failure(
        f"Subscription not found: {razorpay_subscription_id}",
        error_code="SUBSCRIPTION_NOT_FOUND",
    )


# =============================================================================
# Payment Handlers
# =============================================================================


@register_handler("payment.captured")
def handle_payment_captured(webhook_event: WebhookEvent) -> ServiceResult:
    """
    Handle a captured payment.

    Donation orders move to SUCCESS (and get the confirmation email if the
    donor closed the checkout before verification ran). Lifetime
    membership orders complete their checkout. Payments for orders we
    don't know (recurring charges) are left to subscription.charged.

    Args:
        webhook_event: The WebhookEvent containing the event data

    Returns:
        ServiceResult with success/failure status
    """
    payment = webhook_event.get_entity("payment")
    payment_id = payment.get("id")
    order_id = payment.get("order_id")

    if not payment_id:
        return _missing_entity(webhook_event, "payment")

    log_context = {
        "razorpay_event_id": webhook_event.razorpay_event_id,
        "razorpay_payment_id": payment_id,
        "razorpay_order_id": order_id,
    }
    logger.info("Processing payment.captured", extra=log_context)

    if not order_id:
        return ServiceResult.success(None)

    with transaction.atomic():
        donation = (
            Donation.objects.select_for_update()
            .filter(razorpay_order_id=order_id)
            .first()
        )
        if donation is not None:
            if donation.payment_status != PaymentStatus.PENDING:
                logger.info(
                    "Donation already settled",
                    extra={**log_context, "payment_status": donation.payment_status},
                )
                return ServiceResult.success(donation)

            donation.mark_success(razorpay_payment_id=payment_id)
            donation.save()
            VerificationService.queue_confirmation_email(donation)
            logger.info(
                "Donation confirmed by webhook",
                extra={**log_context, "donation_id": str(donation.id)},
            )
            return ServiceResult.success(donation)

        membership_payment = (
            Payment.objects.select_for_update()
            .filter(razorpay_order_id=order_id, payment_type=PaymentType.LIFETIME)
            .first()
        )
        if membership_payment is not None:
            if membership_payment.payment_status not in (
                PaymentStatus.PENDING,
                PaymentStatus.SUCCESS,
            ):
                logger.warning(
                    "Captured payment for settled lifetime order",
                    extra={
                        **log_context,
                        "payment_status": membership_payment.payment_status,
                    },
                )
                return ServiceResult.success(membership_payment)
            return OneTimeOrderStrategy().complete_checkout(
                membership_payment, razorpay_payment_id=payment_id
            )

    logger.info("No local order for captured payment", extra=log_context)
    return ServiceResult.success(None)


@register_handler("payment.failed")
def handle_payment_failed(webhook_event: WebhookEvent) -> ServiceResult:
    """
    Handle a failed payment attempt.

    A pending Donation or lifetime Payment for the order moves to FAILED
    with Razorpay's error description. Records that already left PENDING
    are not touched.

    Args:
        webhook_event: The WebhookEvent containing the event data

    Returns:
        ServiceResult with success/failure status
    """
    payment = webhook_event.get_entity("payment")
    payment_id = payment.get("id")
    order_id = payment.get("order_id")

    if not payment_id:
        return _missing_entity(webhook_event, "payment")

    reason = payment.get("error_description") or payment.get("error_code") or None
    log_context = {
        "razorpay_event_id": webhook_event.razorpay_event_id,
        "razorpay_payment_id": payment_id,
        "razorpay_order_id": order_id,
    }

    if not order_id:
        return ServiceResult.success(None)

    with transaction.atomic():
        record = (
            Donation.objects.select_for_update()
            .filter(razorpay_order_id=order_id)
            .first()
        ) or (
            Payment.objects.select_for_update()
            .filter(razorpay_order_id=order_id)
            .first()
        )

        if record is None:
            logger.info("No local order for failed payment", extra=log_context)
            return ServiceResult.success(None)

        if record.payment_status != PaymentStatus.PENDING:
            logger.info(
                "Ignoring payment.failed for settled record",
                extra={**log_context, "payment_status": record.payment_status},
            )
            return ServiceResult.success(record)

        record.mark_failed(reason=reason, razorpay_payment_id=payment_id)
        record.save()

    logger.info(
        "Payment marked failed",
        extra={**log_context, "record_id": str(record.id), "reason": reason},
    )
    return ServiceResult.success(record)


@register_handler("refund.processed")
def handle_refund_processed(webhook_event: WebhookEvent) -> ServiceResult:
    """
    Handle a refund issued from the Razorpay dashboard.

    The successful Donation or Payment with the refunded payment ID moves
    to REFUNDED.

    Args:
        webhook_event: The WebhookEvent containing the event data

    Returns:
        ServiceResult with success/failure status
    """
    refund = webhook_event.get_entity("refund")
    payment_id = refund.get("payment_id") or webhook_event.get_entity("payment").get("id")

    if not payment_id:
        return _missing_entity(webhook_event, "refund")

    log_context = {
        "razorpay_event_id": webhook_event.razorpay_event_id,
        "razorpay_payment_id": payment_id,
        "refund_id": refund.get("id"),
        "amount_paise": refund.get("amount"),
    }

    with transaction.atomic():
        record = (
            Donation.objects.select_for_update()
            .filter(razorpay_payment_id=payment_id)
            .first()
        ) or (
            Payment.objects.select_for_update()
            .filter(razorpay_payment_id=payment_id)
            .first()
        )

        if record is None:
            logger.warning("No local payment for refund", extra=log_context)
            return ServiceResult.failure(
                f"Payment not found for refund: {payment_id}",
                error_code="PAYMENT_NOT_FOUND",
            )

        if record.payment_status == PaymentStatus.REFUNDED:
            return ServiceResult.success(record)

        if record.payment_status != PaymentStatus.SUCCESS:
            logger.warning(
                "Refund for payment that never succeeded",
                extra={**log_context, "payment_status": record.payment_status},
            )
            return ServiceResult.success(record)

        record.refund()
        record.save()

    logger.info("Payment refunded", extra={**log_context, "record_id": str(record.id)})
    return ServiceResult.success(record)


# =============================================================================
# Subscription Handlers
# =============================================================================


@register_handler("subscription.activated")
def handle_subscription_activated(webhook_event: WebhookEvent) -> ServiceResult:
    """
    Handle mandate authorisation.

    A pending Subscription becomes ACTIVE with Razorpay's cycle dates:
    start from current_start, end from current_end, next billing from
    charge_at. If checkout verification already activated it, the dates
    are refreshed from the gateway.

    Args:
        webhook_event: The WebhookEvent containing the event data

    Returns:
        ServiceResult with success/failure status
    """
    entity = webhook_event.get_entity("subscription")
    razorpay_subscription_id = entity.get("id")
    if not razorpay_subscription_id:
        return _missing_entity(webhook_event, "subscription")

    start = from_timestamp(entity.get("current_start"))
    end = from_timestamp(entity.get("current_end"))
    next_billing = from_timestamp(entity.get("charge_at"))

    with transaction.atomic():
        subscription = _lock_subscription(razorpay_subscription_id)
        if subscription is None:
            return _subscription_not_found(webhook_event, razorpay_subscription_id)

        if subscription.status == SubscriptionStatus.PENDING:
            subscription.activate(start=start, end=end, next_billing=next_billing)
            subscription.save()
        elif subscription.status == SubscriptionStatus.ACTIVE:
            if end:
                subscription.end_date = end
            if next_billing:
                subscription.next_billing_date = next_billing
            subscription.save()
        else:
            logger.info(
                "Ignoring subscription.activated",
                extra={
                    "subscription_id": str(subscription.id),
                    "status": subscription.status,
                },
            )

    logger.info(
        "Subscription activated by webhook",
        extra={
            "subscription_id": str(subscription.id),
            "razorpay_subscription_id": razorpay_subscription_id,
        },
    )
    return ServiceResult.success(subscription)


@register_handler("subscription.charged")
def handle_subscription_charged(webhook_event: WebhookEvent) -> ServiceResult:
    """
    Handle a recurring charge.

    Records a SUCCESS Payment for the charge (unless one already exists for
    the Razorpay payment ID) and moves the billing dates forward.

    Args:
        webhook_event: The WebhookEvent containing the event data

    Returns:
        ServiceResult with success/failure status
    """
    entity = webhook_event.get_entity("subscription")
    payment = webhook_event.get_entity("payment")
    razorpay_subscription_id = entity.get("id")

    if not razorpay_subscription_id:
        return _missing_entity(webhook_event, "subscription")
    if not payment.get("id"):
        return _missing_entity(webhook_event, "payment")

    with transaction.atomic():
        subscription = _lock_subscription(razorpay_subscription_id)
        if subscription is None:
            return _subscription_not_found(webhook_event, razorpay_subscription_id)

        if subscription.status == SubscriptionStatus.PENDING:
            subscription.activate(
                start=from_timestamp(entity.get("current_start")),
                end=from_timestamp(entity.get("current_end")),
                next_billing=from_timestamp(entity.get("charge_at")),
            )
        elif subscription.status != SubscriptionStatus.EXPIRED:
            subscription.end_date = (
                from_timestamp(entity.get("current_end")) or subscription.end_date
            )
            subscription.next_billing_date = (
                from_timestamp(entity.get("charge_at")) or subscription.next_billing_date
            )
        subscription.save()

        created = False
        if not Payment.objects.filter(razorpay_payment_id=payment["id"]).exists():
            Payment.objects.create(
                member_id=subscription.member_id,
                subscription=subscription,
                plan_id=subscription.plan_id,
                amount_paise=payment.get("amount") or subscription.plan.price_paise,
                currency=(payment.get("currency") or settings.PAYMENT_CURRENCY).upper(),
                payment_reference=generate_payment_reference(),
                payment_type=PaymentType.SUBSCRIPTION,
                payment_status=PaymentStatus.SUCCESS,
                razorpay_payment_id=payment["id"],
                razorpay_order_id=payment.get("order_id") or None,
            )
            created = True

    logger.info(
        "Subscription charge recorded" if created else "Subscription charge already recorded",
        extra={
            "subscription_id": str(subscription.id),
            "razorpay_payment_id": payment["id"],
            "amount_paise": payment.get("amount"),
        },
    )
    return ServiceResult.success(subscription)


def _transition_subscription(
    webhook_event: WebhookEvent,
    allowed_from: tuple[str, ...],
    apply: Callable[[Subscription, dict], None],
) -> ServiceResult:
    """
    Shared body of the simple status events.

    Applies ``apply`` to the locked subscription when its status is in
    ``allowed_from``; any other status is treated as already handled.
    """
    entity = webhook_event.get_entity("subscription")
    razorpay_subscription_id = entity.get("id")
    if not razorpay_subscription_id:
        return _missing_entity(webhook_event, "subscription")

    with transaction.atomic():
        subscription = _lock_subscription(razorpay_subscription_id)
        if subscription is None:
            return _subscription_not_found(webhook_event, razorpay_subscription_id)

        previous = subscription.status
        if previous not in allowed_from:
            logger.info(
                f"Ignoring {webhook_event.event_type}",
                extra={"subscription_id": str(subscription.id), "status": previous},
            )
            return ServiceResult.success(subscription)

        apply(subscription, entity)
        subscription.save()

    logger.info(
        f"Subscription updated by {webhook_event.event_type}",
        extra={
            "subscription_id": str(subscription.id),
            "from_status": previous,
            "to_status": subscription.status,
        },
    )
    return ServiceResult.success(subscription)


@register_handler("subscription.cancelled")
def handle_subscription_cancelled(webhook_event: WebhookEvent) -> ServiceResult:
    """Handle a mandate cancelled at Razorpay (ACTIVE/PAUSED -> CANCELLED)."""
    return _transition_subscription(
        webhook_event,
        (SubscriptionStatus.ACTIVE, SubscriptionStatus.PAUSED),
        lambda subscription, entity: subscription.cancel(),
    )


@register_handler("subscription.completed", "subscription.expired")
def handle_subscription_ended(webhook_event: WebhookEvent) -> ServiceResult:
    """Handle a mandate that ran out (ACTIVE/PAUSED/CANCELLED -> EXPIRED)."""
    return _transition_subscription(
        webhook_event,
        (
            SubscriptionStatus.ACTIVE,
            SubscriptionStatus.PAUSED,
            SubscriptionStatus.CANCELLED,
        ),
        lambda subscription, entity: subscription.expire(
            ended_at=from_timestamp(entity.get("ended_at"))
            or from_timestamp(entity.get("current_end"))
        ),
    )


@register_handler("subscription.paused")
def handle_subscription_paused(webhook_event: WebhookEvent) -> ServiceResult:
    """Handle a paused mandate (ACTIVE -> PAUSED)."""
    return _transition_subscription(
        webhook_event,
        (SubscriptionStatus.ACTIVE,),
        lambda subscription, entity: subscription.pause(),
    )


@register_handler("subscription.resumed")
def handle_subscription_resumed(webhook_event: WebhookEvent) -> ServiceResult:
    """Handle a resumed mandate (PAUSED -> ACTIVE)."""
    return _transition_subscription(
        webhook_event,
        (SubscriptionStatus.PAUSED,),
        lambda subscription, entity: subscription.resume(),
    )
