"""
Webhook endpoint views for Razorpay.

This module provides the HTTP endpoint for receiving Razorpay webhooks.
The view:
1. Verifies the X-Razorpay-Signature header
2. Creates/retrieves the WebhookEvent record (idempotent)
3. Queues the event for async processing
4. Returns immediately

Async processing keeps webhook responses fast while the state changes
happen in a Celery worker.

Usage:
    # In urls.py
    from payments.webhooks.views import razorpay_webhook

    urlpatterns = [
        path("webhooks/razorpay/", razorpay_webhook, name="razorpay_webhook"),
    ]
"""

from __future__ import annotations

import json
import logging

from django.http import HttpRequest, HttpResponse
from django.views.decorators.csrf import csrf_exempt
from django.views.decorators.http import require_POST

from core.helpers import get_client_ip, hash_string

from payments.adapters import RazorpayAdapter
from payments.exceptions import RazorpaySignatureError
from payments.models import WebhookEvent
from payments.state_machines import WebhookEventStatus


logger = logging.getLogger(__name__)


def resolve_event_id(request: HttpRequest, body: bytes) -> str:
    """
    Return the idempotency key for a webhook delivery.

    Razorpay sends a stable X-Razorpay-Event-Id on every retry of the same
    event. Without it, the SHA-256 of the raw body stands in.
    """
    event_id = request.headers.get("X-Razorpay-Event-Id", "").strip()
    if event_id:
        return event_id
    return f"body_{hash_string(body)}"


@csrf_exempt
@require_POST
def razorpay_webhook(request: HttpRequest) -> HttpResponse:
    """
    Receive and queue Razorpay webhook events.

    This view:
    1. Verifies the webhook signature using Razorpay's SDK
    2. Creates a WebhookEvent record (idempotent via razorpay_event_id)
    3. Queues the event for async processing via Celery
    4. Returns 200 immediately

    Security:
    - Signature verification prevents spoofed webhooks
    - CSRF exemption required for external webhooks
    - Only POST requests accepted

    Idempotency:
    - WebhookEvent.razorpay_event_id is unique
    - Duplicate events are detected and return 200 without reprocessing

    Returns:
        HttpResponse with status:
        - 200: Event accepted (new or duplicate)
        - 400: Missing/invalid signature or payload
    """
    body = request.body
    signature = request.headers.get("X-Razorpay-Signature", "")

    if not signature:
        logger.warning(
            "Webhook received without X-Razorpay-Signature header",
            extra={"client_ip": get_client_ip(request)},
        )
        return HttpResponse("Missing signature", status=400)

    # Step 1: Verify signature
    try:
        RazorpayAdapter.verify_webhook_signature(body, signature)
    except RazorpaySignatureError as e:
        logger.warning(
            "Webhook signature verification failed",
            extra={"error": str(e), "client_ip": get_client_ip(request)},
        )
        return HttpResponse("Invalid signature", status=400)

    try:
        event_data = json.loads(body)
    except (ValueError, UnicodeDecodeError):
        logger.warning("Webhook body is not valid JSON")
        return HttpResponse("Invalid payload", status=400)

    event_type = event_data.get("event") if isinstance(event_data, dict) else None
    if not event_type:
        logger.warning("Webhook missing event name")
        return HttpResponse("Invalid event", status=400)

    razorpay_event_id = resolve_event_id(request, body)

    logger.info(
        f"Received Razorpay webhook: {event_type}",
        extra={
            "razorpay_event_id": razorpay_event_id,
            "event_type": event_type,
        },
    )

    # Step 2: Create/get WebhookEvent (idempotent)
    webhook_event, created = WebhookEvent.objects.get_or_create(
        razorpay_event_id=razorpay_event_id,
        defaults={
            "event_type": event_type,
            "payload": event_data,
            "status": WebhookEventStatus.PENDING,
        },
    )

    # Step 3: If already processed, return success
    if not created:
        if webhook_event.status == WebhookEventStatus.PROCESSED:
            logger.info(
                "Webhook already processed, returning success",
                extra={"razorpay_event_id": razorpay_event_id},
            )
            return HttpResponse("Already processed", status=200)

        logger.info(
            f"Webhook already exists with status: {webhook_event.status}",
            extra={"razorpay_event_id": razorpay_event_id},
        )

    # Step 4: Queue for async processing
    try:
        from payments.tasks import process_webhook_event

        process_webhook_event.delay(str(webhook_event.id))
        logger.info(
            "Webhook queued for processing",
            extra={
                "razorpay_event_id": razorpay_event_id,
                "webhook_event_id": str(webhook_event.id),
            },
        )
    except Exception as e:
        # The event row stays PENDING; retry_failed_webhooks picks it up
        logger.error(
            f"Failed to queue webhook: {type(e).__name__}",
            extra={"razorpay_event_id": razorpay_event_id},
            exc_info=True,
        )

    # Step 5: Return success immediately
    return HttpResponse("Accepted", status=200)
