"""
Donation model for one-time gifts.

A Donation is created PENDING when the donor submits the form and a
Razorpay order is opened for it. Verification of the checkout signature (or
the ``payment.captured`` webhook, whichever lands first) moves it to SUCCESS.

Usage:
    from payments.models import Donation

    donation = Donation.objects.create(
        donor_name="Asha Rao",
        donor_email="asha@example.com",
        amount_paise=50_000,
        payment_reference="PAY-20240115-3F2A9C1B",
        razorpay_order_id="order_xxx",
    )

    donation.mark_success(razorpay_payment_id="pay_xxx", razorpay_signature="...")
    donation.save()
"""

from __future__ import annotations

from django.db import models
from django.utils import timezone

from payments.models.payment_record import PaymentRecord


class Donation(PaymentRecord):
    """
    A one-time donation paid through a Razorpay order.

    Fields:
        donor_name: Name as entered on the donation form
        donor_email: Email for the confirmation message
        donor_phone: Optional phone, prefilled into checkout
        donor_address: Optional postal address (tax receipts)
        notes: Free-text message from the donor
        confirmation_email_sent_at: When the thank-you email went out

    Plus the amount, reference, status and Razorpay fields from PaymentRecord.
    """

    # ==========================================================================
    # Donor Identity
    # ==========================================================================

    donor_name = models.CharField(
        max_length=100,
        help_text="Donor name as entered on the form",
    )

    donor_email = models.EmailField(
        db_index=True,
        help_text="Donor email address for the confirmation message",
    )

    donor_phone = models.CharField(
        max_length=20,
        blank=True,
        default="",
        help_text="Donor phone number (optional)",
    )

    donor_address = models.TextField(
        blank=True,
        default="",
        help_text="Donor postal address (optional)",
    )

    notes = models.TextField(
        blank=True,
        default="",
        help_text="Free-text message from the donor",
    )

    # ==========================================================================
    # Side Effects
    # ==========================================================================

    confirmation_email_sent_at = models.DateTimeField(
        null=True,
        blank=True,
        help_text="When the confirmation email was sent",
    )

    # ==========================================================================
    # Meta & Methods
    # ==========================================================================

    class Meta:
        ordering = ["-created_at"]
        verbose_name = "Donation"
        verbose_name_plural = "Donations"
        indexes = [
            models.Index(fields=["payment_status", "created_at"], name="donation_status_created_idx"),
        ]
        constraints = [
            models.CheckConstraint(
                condition=models.Q(amount_paise__gt=0),
                name="donation_amount_positive",
            ),
        ]

    def __str__(self) -> str:
        """Return string representation with reference, status and amount."""
        return f"Donation({self.payment_reference}, {self.payment_status}, {self.amount} {self.currency})"

    @property
    def needs_confirmation_email(self) -> bool:
        """Check if a confirmation email should still be sent."""
        return (
            self.is_successful
            and bool(self.donor_email)
            and self.confirmation_email_sent_at is None
        )

    def mark_confirmation_sent(self) -> None:
        """
        Stamp the confirmation email time.

        Saves only the timestamp column so it never races a status change.
        """
        self.confirmation_email_sent_at = timezone.now()
        type(self).objects.filter(pk=self.pk).update(
            confirmation_email_sent_at=self.confirmation_email_sent_at
        )
