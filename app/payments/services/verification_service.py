"""
Checkout verification service.

When the hosted checkout succeeds it hands the browser a signed response.
This service checks that signature with Razorpay's SDK and, only if it
matches, records the payment:

- donation: Donation PENDING -> SUCCESS, confirmation email queued
- lifetime: Payment PENDING -> SUCCESS, Subscription activated with no end
- subscription: Subscription activated for one billing period, first
  charge recorded as a SUCCESS Payment

A bad signature mutates nothing. Re-verifying a completed payment is a
no-op that still reports success.

Usage:
    from payments.services import VerificationService, VerifyPaymentParams

    result = VerificationService.verify(
        VerifyPaymentParams(
            payment_type="donation",
            razorpay_payment_id="pay_xxx",
            razorpay_signature="...",
            razorpay_order_id="order_xxx",
        )
    )
"""

from __future__ import annotations

from dataclasses import dataclass

from django.db import transaction
from django_fsm import TransitionNotAllowed

from core.services import BaseService, ServiceResult

from payments.adapters import RazorpayAdapter
from payments.exceptions import InvalidStateTransitionError, RazorpaySignatureError
from payments.models import Donation, Payment, Subscription
from payments.state_machines import PaymentStatus, PaymentType, SubscriptionStatus
from payments.strategies import OneTimeOrderStrategy, RecurringSubscriptionStrategy


# =============================================================================
# Parameter and Result Types
# =============================================================================


@dataclass
class VerifyPaymentParams:
    """
    Signed checkout response plus the payment type tag.

    Attributes:
        payment_type: donation, lifetime or subscription
        razorpay_payment_id: Razorpay payment ID (pay_xxx)
        razorpay_signature: Signature returned by the checkout
        razorpay_order_id: Order ID (donation and lifetime)
        razorpay_subscription_id: Subscription ID (subscription)
    """

    payment_type: str
    razorpay_payment_id: str
    razorpay_signature: str
    razorpay_order_id: str | None = None
    razorpay_subscription_id: str | None = None

    def __post_init__(self) -> None:
        """Validate parameters after initialization."""
        if self.payment_type not in PaymentType.values:
            raise ValueError(f"Unknown payment type: {self.payment_type}")
        if self.payment_type == PaymentType.SUBSCRIPTION:
            if not self.razorpay_subscription_id:
                raise ValueError("razorpay_subscription_id is required")
        elif not self.razorpay_order_id:
            raise ValueError("razorpay_order_id is required")


@dataclass
class VerificationResult:
    """
    Outcome of a successful verification.

    Attributes:
        payment_type: donation, lifetime or subscription
        record: The Donation or the activated Subscription
        already_verified: True when the payment had been recorded before
    """

    payment_type: str
    record: Donation | Subscription
    already_verified: bool = False


# =============================================================================
# Verification Service
# =============================================================================


class VerificationService(BaseService):
    """
    Verifies checkout signatures and records confirmed payments.

    All methods are class methods - no instance state is maintained.
    """

    razorpay = RazorpayAdapter

    @classmethod
    def verify(cls, params: VerifyPaymentParams) -> ServiceResult[VerificationResult]:
        """
        Verify a checkout response and record the payment.

        Args:
            params: Signed checkout response

        Returns:
            ServiceResult containing VerificationResult on success. A bad
            signature fails with INVALID_SIGNATURE (400); an unknown order
            with a *_NOT_FOUND code (404).
        """
        logger = cls.get_logger()
        log_context = {
            "payment_type": params.payment_type,
            "razorpay_payment_id": params.razorpay_payment_id,
            "razorpay_order_id": params.razorpay_order_id,
            "razorpay_subscription_id": params.razorpay_subscription_id,
        }
        logger.info("Verifying checkout payment", extra=log_context)

        try:
            if params.payment_type == PaymentType.SUBSCRIPTION:
                cls.razorpay.verify_subscription_signature(
                    subscription_id=params.razorpay_subscription_id,
                    payment_id=params.razorpay_payment_id,
                    signature=params.razorpay_signature,
                )
            else:
                cls.razorpay.verify_payment_signature(
                    order_id=params.razorpay_order_id,
                    payment_id=params.razorpay_payment_id,
                    signature=params.razorpay_signature,
                )
        except RazorpaySignatureError as e:
            logger.warning("Checkout signature rejected", extra=log_context)
            return ServiceResult.from_exception(e)

        handlers = {
            PaymentType.DONATION: cls._complete_donation,
            PaymentType.LIFETIME: cls._complete_lifetime,
            PaymentType.SUBSCRIPTION: cls._complete_subscription,
        }

        try:
            with cls.atomic():
                result = handlers[params.payment_type](params)
        except TransitionNotAllowed as e:
            return cls.handle_exception(
                InvalidStateTransitionError(
                    str(e), details={"payment_type": params.payment_type}
                ),
                "Checkout verification",
            )

        if result.success:
            logger.info(
                "Checkout payment verified",
                extra={**log_context, "already_verified": result.data.already_verified},
            )
        else:
            logger.warning(
                "Checkout verification failed",
                extra={**log_context, "error_code": result.error_code},
            )
        return result

    # =========================================================================
    # Per-type completion (run inside the verify transaction)
    # =========================================================================

    @classmethod
    def _complete_donation(
        cls, params: VerifyPaymentParams
    ) -> ServiceResult[VerificationResult]:
        donation = (
            Donation.objects.select_for_update()
            .filter(razorpay_order_id=params.razorpay_order_id)
            .first()
        )
        if donation is None:
            return ServiceResult.failure(
                "Donation not found",
                error_code="DONATION_NOT_FOUND",
                http_status=404,
            )

        if donation.payment_status == PaymentStatus.SUCCESS:
            return ServiceResult.success(
                VerificationResult(
                    payment_type=PaymentType.DONATION,
                    record=donation,
                    already_verified=True,
                )
            )

        donation.mark_success(
            razorpay_payment_id=params.razorpay_payment_id,
            razorpay_signature=params.razorpay_signature,
        )
        donation.save()
        cls.queue_confirmation_email(donation)

        return ServiceResult.success(
            VerificationResult(payment_type=PaymentType.DONATION, record=donation)
        )

    @classmethod
    def _complete_lifetime(
        cls, params: VerifyPaymentParams
    ) -> ServiceResult[VerificationResult]:
        payment = (
            Payment.objects.select_for_update()
            .filter(
                razorpay_order_id=params.razorpay_order_id,
                payment_type=PaymentType.LIFETIME,
            )
            .first()
        )
        if payment is None:
            return ServiceResult.failure(
                "Payment not found",
                error_code="PAYMENT_NOT_FOUND",
                http_status=404,
            )

        already_verified = payment.payment_status == PaymentStatus.SUCCESS
        result = OneTimeOrderStrategy(razorpay_adapter=cls.razorpay).complete_checkout(
            payment,
            razorpay_payment_id=params.razorpay_payment_id,
            razorpay_signature=params.razorpay_signature,
        )
        return result.map(
            lambda subscription: VerificationResult(
                payment_type=PaymentType.LIFETIME,
                record=subscription,
                already_verified=already_verified,
            )
        )

    @classmethod
    def _complete_subscription(
        cls, params: VerifyPaymentParams
    ) -> ServiceResult[VerificationResult]:
        subscription = (
            Subscription.objects.select_for_update()
            .select_related("plan")
            .filter(razorpay_subscription_id=params.razorpay_subscription_id)
            .first()
        )
        if subscription is None:
            return ServiceResult.failure(
                "Subscription not found",
                error_code="SUBSCRIPTION_NOT_FOUND",
                http_status=404,
            )

        already_verified = (
            subscription.status == SubscriptionStatus.ACTIVE
            and Payment.objects.filter(
                razorpay_payment_id=params.razorpay_payment_id
            ).exists()
        )
        result = RecurringSubscriptionStrategy(
            razorpay_adapter=cls.razorpay
        ).complete_checkout(
            subscription,
            razorpay_payment_id=params.razorpay_payment_id,
            razorpay_signature=params.razorpay_signature,
        )
        return result.map(
            lambda subscription: VerificationResult(
                payment_type=PaymentType.SUBSCRIPTION,
                record=subscription,
                already_verified=already_verified,
            )
        )

    # =========================================================================
    # Side effects
    # =========================================================================

    @classmethod
    def queue_confirmation_email(cls, donation: Donation) -> bool:
        """
        Queue the donor's confirmation email once the transaction commits.

        Does nothing if the donation has no email or the email already went
        out. A broker failure is logged and never affects the payment.

        Args:
            donation: A successful Donation

        Returns:
            True if an email was scheduled
        """
        if not donation.needs_confirmation_email:
            return False

        from payments.tasks import send_donation_confirmation

        donation_id = str(donation.id)
        logger = cls.get_logger()

        def enqueue() -> None:
            try:
                send_donation_confirmation.delay(donation_id)
            except Exception:
                logger.warning(
                    "Could not queue donation confirmation email",
                    extra={"donation_id": donation_id},
                    exc_info=True,
                )

        transaction.on_commit(enqueue)
        return True
