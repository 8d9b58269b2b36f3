"""
Abstract base for gateway-backed payment records.

Donation and Payment both track a single Razorpay order/payment pair and
share the same status machine. The shared fields and transitions live here;
the concrete models add who paid and what for.

State Flow:
    PENDING -> SUCCESS (signature verified or payment.captured webhook)
    PENDING -> FAILED  (payment.failed webhook)
    SUCCESS -> REFUNDED (refund.processed webhook)

Each transition can fire once: calling ``mark_success()`` on a record that
is already SUCCESS raises ``django_fsm.TransitionNotAllowed``.
"""

from __future__ import annotations

from decimal import Decimal

from django.conf import settings
from django.db import models
from django_fsm import FSMField, transition

from core.models import BaseModel
from core.model_mixins import UUIDPrimaryKeyMixin

from payments.state_machines import PaymentStatus


class PaymentRecord(UUIDPrimaryKeyMixin, BaseModel):
    """
    Shared fields and FSM transitions for Donation and Payment.

    Fields:
        amount_paise: Amount in the smallest currency unit
        currency: ISO 4217 currency code (uppercase, as Razorpay returns it)
        payment_reference: Human-readable reference (PAY-YYYYMMDD-XXXXXXXX)
        payment_status: Current FSM state
        razorpay_order_id: Gateway order ID (order_xxx)
        razorpay_payment_id: Gateway payment ID (pay_xxx), set on success
        razorpay_signature: Checkout signature, kept for audit
        failure_reason: Gateway error description when the payment failed
    """

    # ==========================================================================
    # Amount & Currency
    # ==========================================================================

    amount_paise = models.PositiveBigIntegerField(
        help_text="Amount in smallest currency unit (paise)",
    )

    currency = models.CharField(
        max_length=3,
        default=settings.PAYMENT_CURRENCY,
        help_text="ISO 4217 currency code",
    )

    # ==========================================================================
    # References
    # ==========================================================================

    payment_reference = models.CharField(
        max_length=32,
        unique=True,
        help_text="Human-readable payment reference shown to the payer",
    )

    # ==========================================================================
    # State
    # ==========================================================================

    payment_status = FSMField(
        default=PaymentStatus.PENDING,
        choices=PaymentStatus.choices,
        db_index=True,
        protected=True,
        help_text="Current payment status (managed by FSM)",
    )

    # ==========================================================================
    # Razorpay Integration
    # ==========================================================================

    razorpay_order_id = models.CharField(
        max_length=64,
        null=True,
        blank=True,
        unique=True,
        help_text="Razorpay order ID (order_xxx)",
    )

    razorpay_payment_id = models.CharField(
        max_length=64,
        null=True,
        blank=True,
        unique=True,
        help_text="Razorpay payment ID (pay_xxx)",
    )

    razorpay_signature = models.CharField(
        max_length=128,
        null=True,
        blank=True,
        help_text="Signature returned by checkout, kept for audit",
    )

    failure_reason = models.TextField(
        null=True,
        blank=True,
        help_text="Gateway error description when the payment failed",
    )

    class Meta:
        abstract = True
        ordering = ["-created_at"]

    # ==========================================================================
    # State Transitions (django-fsm)
    # ==========================================================================

    @transition(
        field="payment_status",
        source=PaymentStatus.PENDING,
        target=PaymentStatus.SUCCESS,
    )
    def mark_success(
        self,
        razorpay_payment_id: str | None = None,
        razorpay_signature: str | None = None,
    ):
        """
        Record a confirmed payment.

        Transition: PENDING -> SUCCESS
        """
        if razorpay_payment_id:
            self.razorpay_payment_id = razorpay_payment_id
        if razorpay_signature:
            self.razorpay_signature = razorpay_signature

    @transition(
        field="payment_status",
        source=PaymentStatus.PENDING,
        target=PaymentStatus.FAILED,
    )
    def mark_failed(self, reason: str | None = None, razorpay_payment_id: str | None = None):
        """
        Record a failed payment attempt.

        Transition: PENDING -> FAILED
        """
        self.failure_reason = reason
        if razorpay_payment_id and not self.razorpay_payment_id:
            self.razorpay_payment_id = razorpay_payment_id

    @transition(
        field="payment_status",
        source=PaymentStatus.SUCCESS,
        target=PaymentStatus.REFUNDED,
    )
    def refund(self):
        """
        Record a refund issued from the Razorpay dashboard.

        Transition: SUCCESS -> REFUNDED
        """
        pass

    # ==========================================================================
    # Helper Properties
    # ==========================================================================

    @property
    def amount(self) -> Decimal:
        """Amount in major currency units (rupees)."""
        return Decimal(self.amount_paise) / 100

    @property
    def is_pending(self) -> bool:
        """Check if the payment is still awaiting confirmation."""
        return self.payment_status == PaymentStatus.PENDING

    @property
    def is_successful(self) -> bool:
        """Check if the payment has been confirmed."""
        return self.payment_status == PaymentStatus.SUCCESS
