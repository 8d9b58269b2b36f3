"""
Tests for payments app.

This package contains test modules for:
- test_models.py: Donation, Member, MembershipPlan, Subscription, WebhookEvent
- test_state_transitions.py: Payment and subscription FSM transitions
- test_services.py: Checkout, verification and cancellation services
- test_views.py: API endpoint tests
- test_tasks.py: Donation confirmation email
- test_admin.py / test_exports.py: Admin console and CSV exports
- test_integration.py: End-to-end journeys

Webhook tests live in payments/webhooks/tests/.

Usage:
    pytest app/payments/tests/
    pytest app/payments/tests/test_services.py
"""
