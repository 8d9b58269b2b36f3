"""
Payment-specific exceptions for payment operations.

This module provides a hierarchy of exceptions for payment operations,
including payment domain errors, concurrency control errors, and
Razorpay-specific errors.

Exception Hierarchy:
    PaymentError (base for payment domain)
    ├── PaymentNotFoundError - Donation/plan/subscription lookup failures
    ├── PaymentValidationError - Payment validation failures
    └── PaymentProcessingError - Payment processing failures
        └── RazorpayError - Base for all Razorpay errors
            ├── RazorpayBadRequestError - Invalid request params (permanent)
            ├── RazorpaySignatureError - Signature mismatch (permanent)
            ├── RazorpayAPIUnavailableError - API unavailable (transient)
            └── RazorpayTimeoutError - Request timeout (transient)

    StaleRecordError - Optimistic locking conflict (inherits ConflictError)
    InvalidStateTransitionError - FSM transition not allowed (inherits ConflictError)

Usage:
    from payments.exceptions import (
        PaymentNotFoundError,
        RazorpayError,
        InvalidStateTransitionError,
    )

    # Gateway failure surfaced to the caller
    try:
        RazorpayAdapter.create_order(params)
    except RazorpayError as e:
        return ServiceResult.from_exception(e)

    # Invalid state transition
    raise InvalidStateTransitionError(
        "Cannot mark donation success from 'failed' state",
        details={"current_state": "failed", "target_state": "success"}
    )
"""

from __future__ import annotations

from typing import TYPE_CHECKING

from core.exceptions import BaseApplicationError, ConflictError

if TYPE_CHECKING:
    from typing import Any


# =============================================================================
# Payment Domain Exceptions
# =============================================================================


class PaymentError(BaseApplicationError):
    """
    Base exception for all payment operations.

    All payment-specific exceptions inherit from this class,
    which itself inherits from BaseApplicationError for
    consistent API error responses.

    Example:
        try:
            VerificationService.verify(...)
        except PaymentError as e:
            logger.error(f"Payment operation failed: {e}")
            return Response(e.to_dict(), status=e.http_status)
    """

    default_error_code: str = "PAYMENT_ERROR"


class PaymentNotFoundError(PaymentError):
    """
    Raised when a payment entity cannot be found.

    Use for:
    - Donation lookup by Razorpay order ID fails
    - MembershipPlan lookup fails (missing or inactive)
    - Member or Subscription lookup fails

    Example:
        donation = Donation.objects.filter(razorpay_order_id=order_id).first()
        if not donation:
            raise PaymentNotFoundError(
                "Donation not found",
                error_code="DONATION_NOT_FOUND",
                details={"razorpay_order_id": order_id}
            )
    """

    default_error_code: str = "PAYMENT_NOT_FOUND"
    http_status: int = 404


class PaymentValidationError(PaymentError):
    """
    Raised when payment validation fails.

    Use for:
    - Amount outside the accepted range
    - Missing gateway identifiers
    - Business rule violations (e.g. cancelling a lifetime membership)

    Example:
        if plan.is_lifetime:
            raise PaymentValidationError(
                "Lifetime memberships cannot be cancelled",
                error_code="LIFETIME_NOT_CANCELLABLE",
            )
    """

    default_error_code: str = "PAYMENT_VALIDATION_ERROR"


class PaymentProcessingError(PaymentError):
    """
    Raised when payment processing fails.

    Use for:
    - Razorpay API errors
    - Payment gateway failures
    - Processing timeouts
    """

    default_error_code: str = "PAYMENT_PROCESSING_ERROR"
    http_status: int = 502


# =============================================================================
# Razorpay-Specific Exceptions
# =============================================================================


class RazorpayError(PaymentProcessingError):
    """
    Base exception for all Razorpay-related errors.

    Provides common attributes for Razorpay error handling:
    - razorpay_code: Razorpay's error code (e.g. BAD_REQUEST_ERROR)
    - is_retryable: Whether the operation can be retried

    Nothing in the request path retries automatically; is_retryable
    only informs Celery tasks and log triage.
    """

    default_error_code: str = "RAZORPAY_ERROR"
    is_retryable: bool = False

    def __init__(
        self,
        message: str,
        error_code: str | None = None,
        razorpay_code: str | None = None,
        details: dict[str, Any] | None = None,
    ):
        details = details or {}
        if razorpay_code:
            details["razorpay_code"] = razorpay_code
        super().__init__(message, error_code=error_code, details=details)
        self.razorpay_code = razorpay_code


# -----------------------------------------------------------------------------
# Permanent Errors (do not retry)
# -----------------------------------------------------------------------------


class RazorpayBadRequestError(RazorpayError):
    """
    Invalid request parameters sent to Razorpay.

    The request itself is malformed and will never succeed with the same
    parameters: amount below the gateway minimum, unknown plan ID,
    cancelling a subscription that already ended.
    """

    default_error_code: str = "RAZORPAY_BAD_REQUEST"
    is_retryable: bool = False


class RazorpaySignatureError(RazorpayError):
    """
    A checkout or webhook signature did not match.

    Raised when the HMAC-SHA256 computed with our secret differs from the
    one supplied. Nothing must be mutated when this is raised.
    """

    default_error_code: str = "INVALID_SIGNATURE"
    is_retryable: bool = False
    http_status: int = 400


# -----------------------------------------------------------------------------
# Transient Errors (safe to retry with backoff)
# -----------------------------------------------------------------------------


class RazorpayAPIUnavailableError(RazorpayError):
    """
    Razorpay API is temporarily unavailable.

    This covers:
    - Network connectivity issues
    - Razorpay server and gateway errors (5xx)
    """

    default_error_code: str = "RAZORPAY_UNAVAILABLE"
    is_retryable: bool = True


class RazorpayTimeoutError(RazorpayError):
    """
    Razorpay API call timed out.

    The request was sent but no response was received within
    RAZORPAY_API_TIMEOUT_SECONDS. The operation may have succeeded on
    Razorpay's side; an order created this way is simply never paid.
    """

    default_error_code: str = "RAZORPAY_TIMEOUT"
    is_retryable: bool = True


# =============================================================================
# Concurrency Control Exceptions
# =============================================================================


class StaleRecordError(ConflictError):
    """
    Raised when optimistic locking detects concurrent modification.

    The record was modified by another process between read and update.
    The caller should either retry the operation with fresh data or abort.

    Example:
        rows = Subscription.objects.filter(pk=pk, version=expected).update(...)
        if rows == 0:
            raise StaleRecordError(
                f"Subscription {pk} has been modified",
                details={"pk": str(pk), "expected_version": expected},
            )
    """

    default_error_code: str = "STALE_RECORD"


class InvalidStateTransitionError(ConflictError):
    """
    Raised when a state machine transition is not allowed.

    This exception wraps django-fsm's TransitionNotAllowed to provide
    our standard error format with additional context.

    Example:
        from django_fsm import TransitionNotAllowed

        try:
            donation.mark_success(razorpay_payment_id="pay_xxx")
        except TransitionNotAllowed:
            raise InvalidStateTransitionError(
                f"Cannot mark donation success from '{donation.payment_status}' state",
                details={
                    "current_state": donation.payment_status,
                    "target_state": "success",
                    "transition": "mark_success",
                }
            )
    """

    default_error_code: str = "INVALID_STATE_TRANSITION"


# =============================================================================
# Exports
# =============================================================================

__all__ = [
    # Payment domain
    "PaymentError",
    "PaymentNotFoundError",
    "PaymentValidationError",
    "PaymentProcessingError",
    # Razorpay-specific
    "RazorpayError",
    "RazorpayBadRequestError",
    "RazorpaySignatureError",
    "RazorpayAPIUnavailableError",
    "RazorpayTimeoutError",
    # Concurrency control
    "StaleRecordError",
    "InvalidStateTransitionError",
]
