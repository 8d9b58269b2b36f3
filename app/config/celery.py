"""
Celery configuration for the payments service.

Celery runs the work that must not block a checkout request:
- Processing Razorpay webhook events
- Sending donation confirmation emails (fire-and-forget)
- Periodic retry of failed webhooks and reset of stuck ones

Redis is both the message broker and the result backend. Tasks are
auto-discovered from all installed Django apps.

Usage:
    from payments.tasks import send_donation_confirmation

    send_donation_confirmation.delay(str(donation.id))

For more information, see:
https://docs.celeryq.dev/en/stable/django/first-steps-with-django.html
"""

import os

from celery import Celery

os.environ.setdefault("DJANGO_SETTINGS_MODULE", "config.settings")

app = Celery("config")

# All Celery settings are prefixed with CELERY_ in settings.py
app.config_from_object("django.conf:settings", namespace="CELERY")

app.autodiscover_tasks()

# Synced into django-celery-beat's DatabaseScheduler on beat startup
app.conf.beat_schedule = {
    "retry-failed-webhooks": {
        "task": "payments.tasks.retry_failed_webhooks",
        "schedule": 5 * 60.0,
    },
    "cleanup-stuck-webhooks": {
        "task": "payments.tasks.cleanup_stuck_webhooks",
        "schedule": 15 * 60.0,
    },
}
