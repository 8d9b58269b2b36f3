"""
WebhookEvent model for Razorpay webhook event tracking.

Stores every webhook event received from Razorpay for idempotent
processing and audit trails. The unique razorpay_event_id constraint
ensures redelivered webhooks are detected and not processed twice.

Razorpay payloads look like:
    {
        "entity": "event",
        "event": "payment.captured",
        "contains": ["payment"],
        "payload": {"payment": {"entity": {"id": "pay_xxx", ...}}},
        "created_at": 1700000000
    }

The event ID is not part of the body; it arrives in the
``X-Razorpay-Event-Id`` header.

Usage:
    event, created = WebhookEvent.objects.get_or_create(
        razorpay_event_id=request.headers["X-Razorpay-Event-Id"],
        defaults={"event_type": "payment.captured", "payload": payload},
    )
"""

from __future__ import annotations

from typing import Any

from django.db import models
from django.utils import timezone

from core.models import BaseModel
from core.model_mixins import UUIDPrimaryKeyMixin

from payments.state_machines import WebhookEventStatus

MAX_WEBHOOK_RETRIES = 5


class WebhookEvent(UUIDPrimaryKeyMixin, BaseModel):
    """
    Tracks Razorpay webhook events for idempotent processing.

    Processing Flow:
        1. Webhook arrives, verify X-Razorpay-Signature
        2. Insert/get WebhookEvent with razorpay_event_id
        3. If exists and PROCESSED -> return 200 (duplicate)
        4. Queue processing task, return 200
        5. Task sets PROCESSING, routes to handler
        6. Task sets PROCESSED or FAILED
        7. FAILED events are picked up again by the retry task

    Fields:
        razorpay_event_id: Unique event ID from the X-Razorpay-Event-Id header
        event_type: Event name (e.g., 'payment.captured')
        payload: Full JSON body from Razorpay
        status: Processing status
        processed_at: When event was successfully processed
        error_message: Error details if processing failed
        retry_count: Number of processing attempts
    """

    # ==========================================================================
    # Event Identification
    # ==========================================================================

    razorpay_event_id = models.CharField(
        max_length=255,
        unique=True,
        db_index=True,
        help_text="Razorpay event ID - unique constraint for idempotency",
    )

    event_type = models.CharField(
        max_length=100,
        db_index=True,
        help_text="Razorpay event name (e.g., 'payment.captured')",
    )

    # ==========================================================================
    # Payload
    # ==========================================================================

    payload = models.JSONField(
        help_text="Full webhook body from Razorpay (JSON)",
    )

    # ==========================================================================
    # Processing Status
    # ==========================================================================

    status = models.CharField(
        max_length=20,
        choices=WebhookEventStatus.choices,
        default=WebhookEventStatus.PENDING,
        db_index=True,
        help_text="Current processing status",
    )

    processed_at = models.DateTimeField(
        null=True,
        blank=True,
        help_text="When event was successfully processed",
    )

    # ==========================================================================
    # Error Handling
    # ==========================================================================

    error_message = models.TextField(
        null=True,
        blank=True,
        help_text="Error message if processing failed",
    )

    retry_count = models.PositiveSmallIntegerField(
        default=0,
        help_text="Number of processing attempts",
    )

    # ==========================================================================
    # Meta & Methods
    # ==========================================================================

    class Meta:
        ordering = ["-created_at"]
        verbose_name = "Webhook Event"
        verbose_name_plural = "Webhook Events"
        indexes = [
            models.Index(fields=["status", "created_at"], name="webhook_status_created_idx"),
            models.Index(fields=["event_type", "created_at"], name="webhook_type_created_idx"),
            models.Index(fields=["status", "retry_count"], name="webhook_status_retry_idx"),
        ]

    def __str__(self) -> str:
        """Return string representation with event ID and type."""
        return f"WebhookEvent({self.razorpay_event_id}, {self.event_type})"

    # ==========================================================================
    # Properties
    # ==========================================================================

    @property
    def is_processed(self) -> bool:
        """Check if event has been successfully processed."""
        return self.status == WebhookEventStatus.PROCESSED

    @property
    def can_retry(self) -> bool:
        """Check if event can be retried (failed with retry count < max)."""
        return (
            self.status == WebhookEventStatus.FAILED
            and self.retry_count < MAX_WEBHOOK_RETRIES
        )

    # ==========================================================================
    # Helper Methods
    # ==========================================================================

    def mark_processing(self) -> None:
        """
        Mark event as being processed.

        Note: Does not save - caller must save after calling.
        """
        self.status = WebhookEventStatus.PROCESSING
        self.retry_count += 1

    def mark_processed(self) -> None:
        """
        Mark event as successfully processed.

        Note: Does not save - caller must save after calling.
        """
        self.status = WebhookEventStatus.PROCESSED
        self.processed_at = timezone.now()
        self.error_message = None

    def mark_failed(self, error_message: str) -> None:
        """
        Mark event as failed with error message.

        Note: Does not save - caller must save after calling.
        """
        self.status = WebhookEventStatus.FAILED
        self.error_message = error_message

    def get_entity(self, name: str) -> dict[str, Any]:
        """
        Extract an entity from the webhook payload.

        Args:
            name: Entity key, e.g. 'payment', 'subscription', 'refund'

        Returns:
            The entity dict, or an empty dict if the event doesn't carry it
        """
        try:
            entity = self.payload.get("payload", {}).get(name, {}).get("entity")
        except (AttributeError, TypeError):
            return {}
        return entity if isinstance(entity, dict) else {}
