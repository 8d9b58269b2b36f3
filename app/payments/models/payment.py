"""
Payment model for membership charges.

Each lifetime purchase and each recurring charge of a membership creates
one Payment. Lifetime payments start PENDING with the Razorpay order ID and
move to SUCCESS on verification; recurring charges are recorded directly
as SUCCESS from the checkout verification or ``subscription.charged``.

Usage:
    from payments.models import Payment
    from payments.state_machines import PaymentType

    payment = Payment.objects.create(
        member=member,
        subscription=subscription,
        plan=plan,
        amount_paise=plan.price_paise,
        payment_reference=generate_payment_reference(),
        payment_type=PaymentType.LIFETIME,
        razorpay_order_id="order_xxx",
    )
"""

from __future__ import annotations

from django.db import models

from payments.models.payment_record import PaymentRecord
from payments.state_machines import PaymentType


class Payment(PaymentRecord):
    """
    A membership payment (lifetime purchase or one recurring charge).

    Fields:
        member: Member who paid
        subscription: Subscription the payment belongs to
        plan: Plan paid for (kept even if the subscription changes plan)
        payment_type: lifetime or subscription
        receipt_url: Link to the gateway receipt, when known

    Plus the amount, reference, status and Razorpay fields from PaymentRecord.
    """

    # ==========================================================================
    # Relationships
    # ==========================================================================

    member = models.ForeignKey(
        "payments.Member",
        on_delete=models.PROTECT,
        related_name="payments",
        help_text="Member who paid",
    )

    subscription = models.ForeignKey(
        "payments.Subscription",
        on_delete=models.SET_NULL,
        null=True,
        blank=True,
        related_name="payments",
        help_text="Subscription this payment belongs to",
    )

    plan = models.ForeignKey(
        "payments.MembershipPlan",
        on_delete=models.SET_NULL,
        null=True,
        blank=True,
        related_name="payments",
        help_text="Plan paid for",
    )

    # ==========================================================================
    # Classification
    # ==========================================================================

    payment_type = models.CharField(
        max_length=20,
        choices=[
            (PaymentType.LIFETIME.value, PaymentType.LIFETIME.label),
            (PaymentType.SUBSCRIPTION.value, PaymentType.SUBSCRIPTION.label),
        ],
        db_index=True,
        help_text="lifetime purchase or recurring subscription charge",
    )

    receipt_url = models.URLField(
        null=True,
        blank=True,
        help_text="Link to the gateway receipt",
    )

    # ==========================================================================
    # Meta & Methods
    # ==========================================================================

    class Meta:
        ordering = ["-created_at"]
        verbose_name = "Payment"
        verbose_name_plural = "Payments"
        indexes = [
            models.Index(fields=["member", "payment_status"], name="payment_member_status_idx"),
            models.Index(fields=["payment_status", "created_at"], name="payment_status_created_idx"),
        ]
        constraints = [
            models.CheckConstraint(
                condition=models.Q(amount_paise__gt=0),
                name="payment_amount_positive",
            ),
        ]

    def __str__(self) -> str:
        """Return string representation with reference, type and status."""
        return f"Payment({self.payment_reference}, {self.payment_type}, {self.payment_status})"
