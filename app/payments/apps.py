"""
Payments app configuration.

This app provides donation and membership payments through Razorpay:
- One-time donation orders
- Lifetime (order) and recurring (subscription) memberships
- Checkout signature verification
- Webhook handling
"""

from django.apps import AppConfig


class PaymentsConfig(AppConfig):
    """Configuration for the payments application."""

    default_auto_field = "django.db.models.BigAutoField"
    name = "payments"
    verbose_name = "Payments"
