"""
Tests for the donation confirmation email task.

Webhook processing tasks are covered in payments/webhooks/tests/test_tasks.py.
"""

from __future__ import annotations

import uuid
from unittest.mock import patch

import pytest
from django.core import mail

from payments.models import Donation
from payments.state_machines import PaymentStatus
from payments.tasks import send_donation_confirmation
from payments.tests.factories import DonationFactory


@pytest.mark.django_db
class TestSendDonationConfirmation:
    """Tests for send_donation_confirmation."""

    def test_sends_email_for_successful_donation(self, successful_donation):
        """Should email the donor and stamp the sent time."""
        result = send_donation_confirmation(str(successful_donation.id))

        assert result["status"] == "sent"
        assert len(mail.outbox) == 1
        message = mail.outbox[0]
        assert message.to == [successful_donation.donor_email]
        assert message.subject == "Thank you for your donation to SSFA Foundation"
        assert successful_donation.payment_reference in message.body

        successful_donation.refresh_from_db(fields=["confirmation_email_sent_at"])
        assert successful_donation.confirmation_email_sent_at is not None

    def test_body_includes_formatted_amount(self):
        """Should render the amount with Indian digit grouping."""
        donation = DonationFactory(
            amount_paise=12_500_000,
            payment_status=PaymentStatus.SUCCESS,
            razorpay_payment_id="pay_BIG001",
        )

        send_donation_confirmation(str(donation.id))

        assert "₹1,25,000" in mail.outbox[0].body
        assert "pay_BIG001" in mail.outbox[0].body

    def test_skips_pending_donation(self, pending_donation):
        """Should not email a donor whose payment has not succeeded."""
        result = send_donation_confirmation(str(pending_donation.id))

        assert result["status"] == "skipped"
        assert mail.outbox == []

    def test_skips_when_already_sent(self, successful_donation):
        """Should send at most one confirmation per donation."""
        send_donation_confirmation(str(successful_donation.id))
        result = send_donation_confirmation(str(successful_donation.id))

        assert result["status"] == "skipped"
        assert len(mail.outbox) == 1

    def test_missing_donation(self):
        """Should report not_found for an unknown ID."""
        result = send_donation_confirmation(str(uuid.uuid4()))

        assert result["status"] == "not_found"

    def test_send_returns_false(self, successful_donation):
        """Should report failure and leave the donation unstamped."""
        with patch("toolkit.services.email.EmailService.send", return_value=False):
            result = send_donation_confirmation(str(successful_donation.id))

        assert result["status"] == "failed"
        successful_donation.refresh_from_db(fields=["confirmation_email_sent_at"])
        assert successful_donation.confirmation_email_sent_at is None

    def test_send_raises(self, successful_donation):
        """Should swallow mail errors so the payment is never affected."""
        with patch(
            "toolkit.services.email.EmailService.send",
            side_effect=ConnectionError("smtp down"),
        ):
            result = send_donation_confirmation(str(successful_donation.id))

        assert result["status"] == "failed"
        donation = Donation.objects.get(pk=successful_donation.pk)
        assert donation.payment_status == PaymentStatus.SUCCESS
