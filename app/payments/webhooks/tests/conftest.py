"""
Pytest fixtures for webhook tests.

Provides Razorpay-shaped payload builders and WebhookEvent factories for
testing webhook views, handlers, and tasks. The payment fixtures (members,
plans, donations, subscriptions) come from payments/tests/conftest.py.
"""

import json

import pytest

from payments.tests.conftest import (  # noqa: F401
    active_subscription,
    lifetime_payment,
    lifetime_plan,
    member,
    monthly_plan,
    pending_donation,
    pending_subscription,
    successful_donation,
    user,
)
from payments.tests.factories import WebhookEventFactory


# =============================================================================
# Payload Builders
# =============================================================================


def razorpay_payload(event_type: str, **entities) -> dict:
    """
    Build a webhook body the way Razorpay sends it.

    Each keyword becomes ``payload[name]["entity"]``.
    """
    return {
        "entity": "event",
        "account_id": "acc_TEST",
        "event": event_type,
        "contains": list(entities),
        "payload": {name: {"entity": entity} for name, entity in entities.items()},
        "created_at": 1705312800,
    }


def payment_entity(**overrides) -> dict:
    entity = {
        "id": "pay_DON001",
        "entity": "payment",
        "amount": 50_000,
        "currency": "INR",
        "status": "captured",
        "order_id": "order_DON001",
        "method": "upi",
    }
    entity.update(overrides)
    return entity


def subscription_entity(**overrides) -> dict:
    entity = {
        "id": "sub_TEST001",
        "entity": "subscription",
        "plan_id": "plan_TEST123",
        "status": "active",
        "current_start": 1705312800,  # 2024-01-15 10:00 UTC
        "current_end": 1707991200,  # 2024-02-15 10:00 UTC
        "charge_at": 1707991200,
        "ended_at": None,
    }
    entity.update(overrides)
    return entity


def refund_entity(**overrides) -> dict:
    entity = {
        "id": "rfnd_TEST001",
        "entity": "refund",
        "amount": 50_000,
        "payment_id": "pay_DON002",
        "status": "processed",
    }
    entity.update(overrides)
    return entity


# =============================================================================
# WebhookEvent Fixtures
# =============================================================================


@pytest.fixture
def make_event(db):
    """Create a WebhookEvent for an event type and its entities."""

    def _make(event_type: str, **entities):
        return WebhookEventFactory(
            event_type=event_type,
            payload=razorpay_payload(event_type, **entities),
        )

    return _make


@pytest.fixture
def webhook_body():
    """Serialise a payload exactly as it will be signed."""

    def _body(payload: dict) -> bytes:
        return json.dumps(payload).encode("utf-8")

    return _body
