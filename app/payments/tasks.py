"""
Celery tasks for payment processing.

This module provides async tasks for:
- Processing Razorpay webhook events
- Retrying failed webhook events
- Periodic cleanup of stuck events
- Sending donation confirmation emails

Usage:
    from payments.tasks import process_webhook_event

    # Queue a webhook for async processing
    process_webhook_event.delay(webhook_event_id)

    # Queue a donation confirmation (normally via transaction.on_commit)
    from payments.tasks import send_donation_confirmation
    send_donation_confirmation.delay(str(donation.id))
"""

from __future__ import annotations

import logging
from datetime import timedelta
from uuid import UUID

from celery import shared_task
from django.conf import settings
from django.db import transaction
from django.db.models import Q
from django.utils import timezone

from core.helpers import format_inr
from payments.models import Donation, WebhookEvent
from payments.models.webhook_event import MAX_WEBHOOK_RETRIES
from payments.state_machines import WebhookEventStatus

logger = logging.getLogger(__name__)


# =============================================================================
# Constants
# =============================================================================

STUCK_PROCESSING_THRESHOLD_MINUTES = 30
# Pending events older than this were never queued (broker down at receipt)
STALE_PENDING_THRESHOLD_MINUTES = 10
RETRY_BATCH_SIZE = 100

DONATION_CONFIRMATION_TEMPLATE = "emails/donation_confirmation"


# =============================================================================
# Webhook Processing Tasks
# =============================================================================


@shared_task(
    bind=True,
    autoretry_for=(Exception,),
    retry_backoff=True,
    retry_backoff_max=300,
    retry_kwargs={"max_retries": MAX_WEBHOOK_RETRIES},
    acks_late=True,
)
def process_webhook_event(self, webhook_event_id: str) -> dict:
    """
    Process a Razorpay webhook event asynchronously.

    This task:
    1. Loads the WebhookEvent by ID
    2. Checks if already processed (idempotency)
    3. Marks as processing
    4. Dispatches to appropriate handler
    5. Marks as processed or failed

    Args:
        webhook_event_id: UUID of the WebhookEvent to process

    Returns:
        Dict with processing result status

    Raises:
        Exception: Re-raised to trigger Celery retry mechanism
    """
    # Import here to avoid circular imports
    from payments.webhooks.handlers import dispatch_webhook

    if isinstance(webhook_event_id, str):
        webhook_event_id = UUID(webhook_event_id)

    logger.info(
        "Processing webhook event",
        extra={"webhook_event_id": str(webhook_event_id)},
    )

    try:
        webhook_event = WebhookEvent.objects.get(id=webhook_event_id)
    except WebhookEvent.DoesNotExist:
        logger.error(
            "WebhookEvent not found",
            extra={"webhook_event_id": str(webhook_event_id)},
        )
        return {"status": "not_found", "webhook_event_id": str(webhook_event_id)}

    if webhook_event.status == WebhookEventStatus.PROCESSED:
        logger.info(
            "WebhookEvent already processed, skipping",
            extra={
                "webhook_event_id": str(webhook_event_id),
                "razorpay_event_id": webhook_event.razorpay_event_id,
            },
        )
        return {
            "status": "already_processed",
            "webhook_event_id": str(webhook_event_id),
        }

    webhook_event.mark_processing()
    webhook_event.save()

    logger.info(
        f"Dispatching webhook: {webhook_event.event_type}",
        extra={
            "webhook_event_id": str(webhook_event_id),
            "razorpay_event_id": webhook_event.razorpay_event_id,
            "event_type": webhook_event.event_type,
            "retry_count": webhook_event.retry_count,
        },
    )

    try:
        with transaction.atomic():
            result = dispatch_webhook(webhook_event)

        if result.success:
            webhook_event.mark_processed()
            webhook_event.save()
            logger.info(
                "Webhook processed successfully",
                extra={
                    "webhook_event_id": str(webhook_event_id),
                    "razorpay_event_id": webhook_event.razorpay_event_id,
                },
            )
            return {
                "status": "processed",
                "webhook_event_id": str(webhook_event_id),
                "razorpay_event_id": webhook_event.razorpay_event_id,
            }

        error_msg = result.error or "Handler returned failure"
        webhook_event.mark_failed(error_msg)
        webhook_event.save()
        logger.warning(
            f"Webhook handler failed: {error_msg}",
            extra={
                "webhook_event_id": str(webhook_event_id),
                "razorpay_event_id": webhook_event.razorpay_event_id,
                "error_code": result.error_code,
            },
        )
        return {
            "status": "handler_failed",
            "webhook_event_id": str(webhook_event_id),
            "error": error_msg,
        }

    except Exception as e:
        error_msg = f"{type(e).__name__}: {str(e)}"
        webhook_event.mark_failed(error_msg)
        webhook_event.save()

        logger.exception(
            "Webhook processing failed with exception",
            extra={
                "webhook_event_id": str(webhook_event_id),
                "razorpay_event_id": webhook_event.razorpay_event_id,
            },
        )

        # Re-raise to trigger Celery retry
        raise


@shared_task
def retry_failed_webhooks() -> dict:
    """
    Periodic task to retry failed webhook events.

    Re-queues failed webhooks that haven't exceeded max retries, and
    pending webhooks that were stored but never reached the broker.

    Scheduled via celery-beat every 5 minutes.

    Returns:
        Dict with count of webhooks queued for retry
    """
    stale_cutoff = timezone.now() - timedelta(minutes=STALE_PENDING_THRESHOLD_MINUTES)

    webhooks = WebhookEvent.objects.filter(
        Q(status=WebhookEventStatus.FAILED, retry_count__lt=MAX_WEBHOOK_RETRIES)
        | Q(status=WebhookEventStatus.PENDING, created_at__lt=stale_cutoff)
    ).order_by("created_at")[:RETRY_BATCH_SIZE]

    queued_count = 0
    for webhook in webhooks:
        try:
            process_webhook_event.delay(str(webhook.id))
        except Exception as e:
            logger.error(
                f"Failed to queue webhook for retry: {e}",
                extra={"webhook_event_id": str(webhook.id)},
            )
            continue

        queued_count += 1
        logger.info(
            "Queued webhook for retry",
            extra={
                "webhook_event_id": str(webhook.id),
                "razorpay_event_id": webhook.razorpay_event_id,
                "status": webhook.status,
                "retry_count": webhook.retry_count,
            },
        )

    logger.info(
        f"Queued {queued_count} webhooks for retry",
        extra={"queued_count": queued_count},
    )

    return {"queued_count": queued_count}


@shared_task
def cleanup_stuck_webhooks() -> dict:
    """
    Periodic task to reset stuck webhooks.

    Finds webhooks that have been in PROCESSING status for too long
    and resets them to FAILED so they can be retried.

    This handles cases where the worker crashed during processing.

    Returns:
        Dict with count of webhooks reset
    """
    threshold = timezone.now() - timedelta(minutes=STUCK_PROCESSING_THRESHOLD_MINUTES)

    stuck_webhooks = WebhookEvent.objects.filter(
        status=WebhookEventStatus.PROCESSING,
        updated_at__lt=threshold,
    )

    reset_count = 0
    for webhook in stuck_webhooks:
        stuck_since = webhook.updated_at
        webhook.mark_failed("Processing timed out - reset for retry")
        webhook.save()
        reset_count += 1
        logger.warning(
            "Reset stuck webhook",
            extra={
                "webhook_event_id": str(webhook.id),
                "razorpay_event_id": webhook.razorpay_event_id,
                "stuck_since": stuck_since.isoformat(),
            },
        )

    if reset_count > 0:
        logger.info(
            f"Reset {reset_count} stuck webhooks",
            extra={"reset_count": reset_count},
        )

    return {"reset_count": reset_count}


# =============================================================================
# Email Tasks
# =============================================================================


@shared_task
def send_donation_confirmation(donation_id: str) -> dict:
    """
    Email the donor a confirmation of a successful donation.

    Runs detached from the payment: every failure is logged as a warning
    and swallowed, so a mail outage never touches the donation record.
    The sent timestamp makes the task safe to run twice.

    Args:
        donation_id: UUID of the Donation

    Returns:
        Dict with the outcome ("sent", "skipped", "not_found" or "failed")
    """
    from toolkit.services.email import EmailService

    try:
        donation = Donation.objects.get(id=donation_id)
    except Donation.DoesNotExist:
        logger.warning(
            "Donation not found for confirmation email",
            extra={"donation_id": str(donation_id)},
        )
        return {"status": "not_found", "donation_id": str(donation_id)}

    if not donation.needs_confirmation_email:
        return {"status": "skipped", "donation_id": str(donation_id)}

    context = {
        "organisation_name": settings.ORGANISATION_NAME,
        "donor_name": donation.donor_name,
        "amount_display": format_inr(donation.amount),
        "payment_reference": donation.payment_reference,
        "razorpay_payment_id": donation.razorpay_payment_id,
        "donated_at": donation.updated_at,
    }

    try:
        sent = EmailService.send(
            to=donation.donor_email,
            subject=f"Thank you for your donation to {settings.ORGANISATION_NAME}",
            template_name=DONATION_CONFIRMATION_TEMPLATE,
            context=context,
        )
    except Exception as e:
        logger.warning(
            f"Donation confirmation email raised: {type(e).__name__}",
            extra={"donation_id": str(donation.id), "error": str(e)},
        )
        return {"status": "failed", "donation_id": str(donation_id)}

    if not sent:
        logger.warning(
            "Donation confirmation email was not sent",
            extra={"donation_id": str(donation.id)},
        )
        return {"status": "failed", "donation_id": str(donation_id)}

    donation.mark_confirmation_sent()
    logger.info(
        "Donation confirmation email sent",
        extra={
            "donation_id": str(donation.id),
            "payment_reference": donation.payment_reference,
        },
    )
    return {"status": "sent", "donation_id": str(donation_id)}
