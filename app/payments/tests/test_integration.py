"""
End-to-end payment journeys through the HTTP API.

Razorpay API calls are mocked; signatures are real. Celery tasks run
inline by pointing ``.delay`` at the task itself.
"""

import json
from unittest.mock import patch

import pytest
from django.core import mail

from payments.models import Donation, Payment, Subscription, WebhookEvent
from payments.state_machines import (
    PaymentStatus,
    SubscriptionStatus,
    WebhookEventStatus,
)
from payments.tasks import process_webhook_event, send_donation_confirmation
from payments.tests.conftest import sign_order, sign_subscription, sign_webhook
from payments.webhooks.tests.conftest import (
    payment_entity,
    razorpay_payload,
    subscription_entity,
)

WEBHOOK_URL = "/api/v1/payments/webhooks/razorpay/"


@pytest.fixture
def inline_tasks():
    """Run queued Celery tasks in-process."""
    with patch(
        "payments.tasks.process_webhook_event.delay", side_effect=process_webhook_event
    ), patch(
        "payments.tasks.send_donation_confirmation.delay",
        side_effect=send_donation_confirmation,
    ):
        yield


def post_webhook(client, payload: dict, event_id: str):
    body = json.dumps(payload).encode("utf-8")
    return client.post(
        WEBHOOK_URL,
        data=body,
        content_type="application/json",
        HTTP_X_RAZORPAY_SIGNATURE=sign_webhook(body),
        HTTP_X_RAZORPAY_EVENT_ID=event_id,
    )


@pytest.mark.django_db
class TestDonationJourney:
    """Order, checkout verification, then the late capture webhook."""

    def test_donation_end_to_end(
        self, api_client, mock_razorpay, inline_tasks, django_capture_on_commit_callbacks
    ):
        """Should record one success and send one email despite the webhook."""
        response = api_client.post(
            "/api/v1/payments/orders/",
            {"amount": 500, "donor_name": "Asha Rao", "donor_email": "asha@example.com"},
            format="json",
        )
        assert response.status_code == 201
        order_id = response.data["orderId"]
        reference = response.data["paymentReference"]

        with django_capture_on_commit_callbacks(execute=True):
            response = api_client.post(
                "/api/v1/payments/verify/",
                {
                    "type": "donation",
                    "razorpay_order_id": order_id,
                    "razorpay_payment_id": "pay_E2E001",
                    "razorpay_signature": sign_order(order_id, "pay_E2E001"),
                },
                format="json",
            )
        assert response.status_code == 200
        assert response.data["paymentReference"] == reference

        with django_capture_on_commit_callbacks(execute=True):
            response = post_webhook(
                api_client,
                razorpay_payload(
                    "payment.captured",
                    payment=payment_entity(id="pay_E2E001", order_id=order_id),
                ),
                event_id="evt_E2E001",
            )
        assert response.status_code == 200

        donation = Donation.objects.get(payment_reference=reference)
        assert donation.payment_status == PaymentStatus.SUCCESS
        assert donation.razorpay_payment_id == "pay_E2E001"
        assert len(mail.outbox) == 1
        event = WebhookEvent.objects.get(razorpay_event_id="evt_E2E001")
        assert event.status == WebhookEventStatus.PROCESSED

    def test_webhook_rescues_abandoned_verification(
        self, api_client, mock_razorpay, inline_tasks, django_capture_on_commit_callbacks
    ):
        """Should complete a donation whose browser never called verify."""
        response = api_client.post(
            "/api/v1/payments/orders/",
            {"amount": 1000, "donor_name": "Ravi Kumar", "donor_email": "ravi@example.com"},
            format="json",
        )
        order_id = response.data["orderId"]

        with django_capture_on_commit_callbacks(execute=True):
            post_webhook(
                api_client,
                razorpay_payload(
                    "payment.captured",
                    payment=payment_entity(id="pay_E2E002", order_id=order_id),
                ),
                event_id="evt_E2E002",
            )

        donation = Donation.objects.get(razorpay_order_id=order_id)
        assert donation.payment_status == PaymentStatus.SUCCESS
        assert mail.outbox[0].to == ["ravi@example.com"]


@pytest.mark.django_db
class TestRecurringMembershipJourney:
    """Checkout, verification, renewal charge, then cancellation."""

    def test_subscription_lifecycle(
        self, authenticated_client, mock_razorpay, inline_tasks, member, monthly_plan
    ):
        response = authenticated_client.post(
            "/api/v1/payments/subscriptions/",
            {"plan_id": str(monthly_plan.id), "member_id": str(member.id)},
            format="json",
        )
        assert response.status_code == 201
        assert response.data["type"] == "subscription"
        razorpay_subscription_id = response.data["subscriptionId"]
        subscription_id = response.data["dbSubscriptionId"]

        response = authenticated_client.post(
            "/api/v1/payments/verify/",
            {
                "type": "subscription",
                "razorpay_subscription_id": razorpay_subscription_id,
                "razorpay_payment_id": "pay_SUB001",
                "razorpay_signature": sign_subscription(razorpay_subscription_id, "pay_SUB001"),
            },
            format="json",
        )
        assert response.status_code == 200
        assert response.data["subscriptionStatus"] == SubscriptionStatus.ACTIVE

        post_webhook(
            authenticated_client,
            razorpay_payload(
                "subscription.charged",
                subscription=subscription_entity(
                    id=razorpay_subscription_id,
                    current_start=1707991200,
                    current_end=1710496800,
                    charge_at=1710496800,
                ),
                payment=payment_entity(id="pay_SUB002", order_id=None),
            ),
            event_id="evt_SUB002",
        )
        assert Payment.objects.filter(subscription_id=subscription_id).count() == 2

        response = authenticated_client.post(
            "/api/v1/payments/subscriptions/cancel/",
            {"subscription_id": subscription_id},
            format="json",
        )
        assert response.status_code == 200
        subscription = Subscription.objects.get(pk=subscription_id)
        assert subscription.status == SubscriptionStatus.CANCELLED
        assert subscription.end_date is not None
        mock_razorpay.cancel_subscription.assert_called_once_with(
            razorpay_subscription_id, cancel_at_cycle_end=True
        )
