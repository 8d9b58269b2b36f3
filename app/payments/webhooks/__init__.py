"""
Webhook handling for payment events from Razorpay.

This module provides views and handlers for processing Razorpay webhooks.
Webhooks are verified, stored idempotently, and processed asynchronously
via Celery tasks.

Usage:
    # In urls.py
    from payments.webhooks.views import razorpay_webhook

    urlpatterns = [
        path("webhooks/razorpay/", razorpay_webhook, name="razorpay_webhook"),
    ]
"""

from payments.webhooks.handlers import dispatch_webhook, register_handler
from payments.webhooks.views import razorpay_webhook

__all__ = [
    "dispatch_webhook",
    "razorpay_webhook",
    "register_handler",
]
