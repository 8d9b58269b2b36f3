"""
Razorpay API adapter for payment operations.

This module provides the RazorpayAdapter class which encapsulates all
Razorpay API interactions. All Razorpay calls should go through this
adapter to ensure consistent error handling, timeouts, and observability.

Features:
- Configurable timeouts on all API calls
- Automatic error translation to domain exceptions
- Structured logging with timing metrics
- Signature verification for checkout responses and webhooks
- Thread-safe for use from Celery workers

Configuration (via settings):
- RAZORPAY_KEY_ID: Public key ID (also handed to the checkout)
- RAZORPAY_KEY_SECRET: Secret used for API auth and checkout signatures
- RAZORPAY_WEBHOOK_SECRET: Webhook signing secret
- RAZORPAY_API_TIMEOUT_SECONDS: API call timeout (default: 10)

Usage:
    from payments.adapters import RazorpayAdapter, CreateOrderParams

    # Create an order for a ₹500 donation
    result = RazorpayAdapter.create_order(
        CreateOrderParams(
            amount_paise=50_000,
            currency="INR",
            receipt="PAY-20240115-3F2A9C1B",
            notes={"type": "donation"},
        )
    )

    # Verify the checkout response
    RazorpayAdapter.verify_payment_signature(
        order_id=result.id,
        payment_id="pay_xxx",
        signature="...",
    )
"""

from __future__ import annotations

import logging
import time
from dataclasses import dataclass, field
from typing import Any, Callable

import razorpay
import requests
from django.conf import settings

from payments.exceptions import (
    RazorpayAPIUnavailableError,
    RazorpayBadRequestError,
    RazorpayError,
    RazorpaySignatureError,
    RazorpayTimeoutError,
)
from payments.state_machines import MembershipType

# Razorpay plan periods keyed by membership type
PLAN_PERIODS = {
    MembershipType.MONTHLY: "monthly",
    MembershipType.YEARLY: "yearly",
}


# =============================================================================
# Data Types
# =============================================================================


@dataclass
class CreateOrderParams:
    """
    Parameters for creating a Razorpay order.

    Attributes:
        amount_paise: Order amount in smallest currency unit (paise)
        currency: ISO 4217 currency code (default: 'INR')
        receipt: Our payment reference, echoed back by Razorpay
        notes: Key-value pairs attached to the order (max 15 keys)
    """

    amount_paise: int
    receipt: str
    currency: str = "INR"
    notes: dict[str, str] = field(default_factory=dict)

    def __post_init__(self) -> None:
        """Validate parameters after initialization."""
        if self.amount_paise <= 0:
            raise ValueError("amount_paise must be positive")
        if not self.receipt:
            raise ValueError("receipt is required")
        if not self.currency:
            raise ValueError("currency is required")


@dataclass
class CreatePlanParams:
    """
    Parameters for creating a Razorpay plan.

    Attributes:
        name: Plan name shown on the checkout and in the dashboard
        amount_paise: Charge per billing cycle in paise
        plan_type: MembershipType (monthly or yearly)
        currency: ISO 4217 currency code
        description: Optional plan description
        interval: Number of periods between charges (default: 1)
    """

    name: str
    amount_paise: int
    plan_type: str
    currency: str = "INR"
    description: str = ""
    interval: int = 1

    def __post_init__(self) -> None:
        """Validate parameters after initialization."""
        if self.amount_paise <= 0:
            raise ValueError("amount_paise must be positive")
        if self.plan_type not in PLAN_PERIODS:
            raise ValueError(f"plan_type must be one of {sorted(PLAN_PERIODS)}")

    @property
    def period(self) -> str:
        """Razorpay billing period for the plan type."""
        return PLAN_PERIODS[self.plan_type]


@dataclass
class CreateSubscriptionParams:
    """
    Parameters for creating a Razorpay subscription.

    Attributes:
        plan_id: Razorpay plan ID (plan_xxx)
        total_count: Number of billing cycles before the mandate ends
        customer_notify: Whether Razorpay notifies the customer (1 or 0)
        notes: Key-value pairs attached to the subscription
    """

    plan_id: str
    total_count: int
    customer_notify: int = 1
    notes: dict[str, str] = field(default_factory=dict)

    def __post_init__(self) -> None:
        """Validate parameters after initialization."""
        if not self.plan_id:
            raise ValueError("plan_id is required")
        if self.total_count <= 0:
            raise ValueError("total_count must be positive")


@dataclass
class OrderResult:
    """
    Result from Razorpay order operations.

    Attributes:
        id: Order ID (order_xxx)
        amount_paise: Amount in paise as echoed by Razorpay
        currency: Currency code
        receipt: Receipt (our payment reference)
        status: Order status (created, attempted, paid)
        raw_response: Full Razorpay response dict (for debugging)
    """

    id: str
    amount_paise: int
    currency: str
    receipt: str | None = None
    status: str = "created"
    raw_response: dict[str, Any] = field(default_factory=dict)


@dataclass
class PlanResult:
    """
    Result from Razorpay plan operations.

    Attributes:
        id: Plan ID (plan_xxx)
        period: Billing period (monthly, yearly)
        interval: Periods between charges
        raw_response: Full Razorpay response dict
    """

    id: str
    period: str
    interval: int
    raw_response: dict[str, Any] = field(default_factory=dict)


@dataclass
class SubscriptionResult:
    """
    Result from Razorpay subscription operations.

    Attributes:
        id: Subscription ID (sub_xxx)
        status: Subscription status (created, authenticated, active, cancelled...)
        plan_id: Plan the subscription bills against
        short_url: Hosted authorisation link, when Razorpay returns one
        raw_response: Full Razorpay response dict
    """

    id: str
    status: str
    plan_id: str | None = None
    short_url: str | None = None
    raw_response: dict[str, Any] = field(default_factory=dict)


# =============================================================================
# Razorpay Adapter
# =============================================================================


class RazorpayAdapter:
    """
    Adapter for Razorpay API operations.

    All methods are classmethods - no instance state is maintained.
    Thread-safe for use from Celery workers.

    Usage:
        result = RazorpayAdapter.create_order(params)
        RazorpayAdapter.verify_webhook_signature(body, signature)
    """

    # =========================================================================
    # Configuration
    # =========================================================================

    @staticmethod
    def _client() -> razorpay.Client:
        """Build a Razorpay client authenticated with the configured keys."""
        return razorpay.Client(
            auth=(settings.RAZORPAY_KEY_ID, settings.RAZORPAY_KEY_SECRET)
        )

    @staticmethod
    def _timeout() -> float:
        """API timeout in seconds, passed through to requests."""
        return getattr(settings, "RAZORPAY_API_TIMEOUT_SECONDS", 10)

    @classmethod
    def get_logger(cls) -> logging.Logger:
        """Get logger for this adapter."""
        return logging.getLogger(f"{cls.__module__}.{cls.__name__}")

    @classmethod
    def _execute(
        cls,
        call: Callable[[], dict[str, Any]],
        log_context: dict[str, Any],
    ) -> dict[str, Any]:
        """
        Run one Razorpay API call with timing logs and error translation.

        Args:
            call: Zero-argument callable performing the SDK request
            log_context: Logging context, must include "operation"

        Returns:
            The Razorpay response dict

        Raises:
            RazorpayError: Any gateway or transport failure, translated
        """
        logger = cls.get_logger()
        start_time = time.time()
        logger.info("Starting Razorpay operation", extra=log_context)

        try:
            response = call()
        except Exception as e:
            duration_ms = (time.time() - start_time) * 1000
            cls._handle_razorpay_error(e, log_context, duration_ms)
            raise  # Never reached, but satisfies type checker

        duration_ms = (time.time() - start_time) * 1000
        logger.info(
            "Razorpay operation completed",
            extra={
                **log_context,
                "razorpay_id": response.get("id"),
                "status": response.get("status"),
                "duration_ms": duration_ms,
            },
        )
        return response

    # =========================================================================
    # Core Operations
    # =========================================================================

    @classmethod
    def create_order(cls, params: CreateOrderParams) -> OrderResult:
        """
        Create a Razorpay order.

        Args:
            params: Parameters for creating the order

        Returns:
            OrderResult with the order ID and amount in paise

        Raises:
            RazorpayBadRequestError: Invalid parameters
            RazorpayAPIUnavailableError: Razorpay service unavailable
            RazorpayTimeoutError: Request timed out
        """
        client = cls._client()
        log_context = {
            "operation": "create_order",
            "amount_paise": params.amount_paise,
            "currency": params.currency,
            "receipt": params.receipt,
        }

        order = cls._execute(
            lambda: client.order.create(
                data={
                    "amount": params.amount_paise,
                    "currency": params.currency,
                    "receipt": params.receipt,
                    "notes": params.notes,
                },
                timeout=cls._timeout(),
            ),
            log_context,
        )

        return OrderResult(
            id=order["id"],
            amount_paise=order.get("amount", params.amount_paise),
            currency=order.get("currency", params.currency),
            receipt=order.get("receipt"),
            status=order.get("status", "created"),
            raw_response=order,
        )

    @classmethod
    def create_plan(cls, params: CreatePlanParams) -> PlanResult:
        """
        Create a Razorpay plan for a recurring membership.

        Args:
            params: Parameters for creating the plan

        Returns:
            PlanResult with the plan ID

        Raises:
            RazorpayBadRequestError: Invalid parameters
            RazorpayAPIUnavailableError: Razorpay service unavailable
            RazorpayTimeoutError: Request timed out
        """
        client = cls._client()
        log_context = {
            "operation": "create_plan",
            "plan_name": params.name,
            "period": params.period,
            "amount_paise": params.amount_paise,
        }

        plan = cls._execute(
            lambda: client.plan.create(
                data={
                    "period": params.period,
                    "interval": params.interval,
                    "item": {
                        "name": params.name,
                        "amount": params.amount_paise,
                        "currency": params.currency,
                        "description": params.description,
                    },
                },
                timeout=cls._timeout(),
            ),
            log_context,
        )

        return PlanResult(
            id=plan["id"],
            period=plan.get("period", params.period),
            interval=plan.get("interval", params.interval),
            raw_response=plan,
        )

    @classmethod
    def create_subscription(
        cls, params: CreateSubscriptionParams
    ) -> SubscriptionResult:
        """
        Create a Razorpay subscription against an existing plan.

        Args:
            params: Parameters for creating the subscription

        Returns:
            SubscriptionResult with the subscription ID

        Raises:
            RazorpayBadRequestError: Invalid parameters (e.g. unknown plan)
            RazorpayAPIUnavailableError: Razorpay service unavailable
            RazorpayTimeoutError: Request timed out
        """
        client = cls._client()
        log_context = {
            "operation": "create_subscription",
            "plan_id": params.plan_id,
            "total_count": params.total_count,
        }

        subscription = cls._execute(
            lambda: client.subscription.create(
                data={
                    "plan_id": params.plan_id,
                    "total_count": params.total_count,
                    "customer_notify": params.customer_notify,
                    "notes": params.notes,
                },
                timeout=cls._timeout(),
            ),
            log_context,
        )

        return SubscriptionResult(
            id=subscription["id"],
            status=subscription.get("status", "created"),
            plan_id=subscription.get("plan_id", params.plan_id),
            short_url=subscription.get("short_url"),
            raw_response=subscription,
        )

    @classmethod
    def cancel_subscription(
        cls,
        subscription_id: str,
        cancel_at_cycle_end: bool = True,
    ) -> SubscriptionResult:
        """
        Cancel a Razorpay subscription.

        Args:
            subscription_id: Razorpay subscription ID (sub_xxx)
            cancel_at_cycle_end: Keep billing until the current cycle ends

        Returns:
            SubscriptionResult with the updated status

        Raises:
            RazorpayBadRequestError: Subscription unknown or already ended
            RazorpayAPIUnavailableError: Razorpay service unavailable
            RazorpayTimeoutError: Request timed out
        """
        client = cls._client()
        log_context = {
            "operation": "cancel_subscription",
            "subscription_id": subscription_id,
            "cancel_at_cycle_end": cancel_at_cycle_end,
        }

        subscription = cls._execute(
            lambda: client.subscription.cancel(
                subscription_id,
                {"cancel_at_cycle_end": 1 if cancel_at_cycle_end else 0},
                timeout=cls._timeout(),
            ),
            log_context,
        )

        return SubscriptionResult(
            id=subscription.get("id", subscription_id),
            status=subscription.get("status", "cancelled"),
            plan_id=subscription.get("plan_id"),
            raw_response=subscription,
        )

    # =========================================================================
    # Signature Verification
    # =========================================================================

    @classmethod
    def verify_payment_signature(
        cls,
        order_id: str,
        payment_id: str,
        signature: str,
    ) -> None:
        """
        Verify a checkout signature for an order payment.

        The signature is HMAC-SHA256 of ``order_id|payment_id`` keyed with
        RAZORPAY_KEY_SECRET.

        Raises:
            RazorpaySignatureError: Signature does not match
        """
        cls._require_fields(order_id=order_id, payment_id=payment_id, signature=signature)
        cls._verify(
            "verify_payment_signature",
            lambda utility: utility.verify_payment_signature(
                {
                    "razorpay_order_id": order_id,
                    "razorpay_payment_id": payment_id,
                    "razorpay_signature": signature,
                }
            ),
            {"razorpay_order_id": order_id, "razorpay_payment_id": payment_id},
        )

    @classmethod
    def verify_subscription_signature(
        cls,
        subscription_id: str,
        payment_id: str,
        signature: str,
    ) -> None:
        """
        Verify a checkout signature for a subscription's first payment.

        The signature is HMAC-SHA256 of ``payment_id|subscription_id`` keyed
        with RAZORPAY_KEY_SECRET.

        Raises:
            RazorpaySignatureError: Signature does not match
        """
        cls._require_fields(
            subscription_id=subscription_id, payment_id=payment_id, signature=signature
        )
        cls._verify(
            "verify_subscription_signature",
            lambda utility: utility.verify_subscription_payment_signature(
                {
                    "razorpay_subscription_id": subscription_id,
                    "razorpay_payment_id": payment_id,
                    "razorpay_signature": signature,
                }
            ),
            {
                "razorpay_subscription_id": subscription_id,
                "razorpay_payment_id": payment_id,
            },
        )

    @classmethod
    def verify_webhook_signature(cls, body: bytes | str, signature: str) -> None:
        """
        Verify a webhook body against its X-Razorpay-Signature header.

        Args:
            body: Raw request body, exactly as received
            signature: X-Razorpay-Signature header value

        Raises:
            RazorpaySignatureError: Missing secret, undecodable body or
                signature mismatch
        """
        secret = getattr(settings, "RAZORPAY_WEBHOOK_SECRET", "")
        if not secret:
            cls.get_logger().error(
                "RAZORPAY_WEBHOOK_SECRET is not configured",
                extra={"operation": "verify_webhook_signature"},
            )
            raise RazorpaySignatureError(
                "Webhook secret not configured",
                razorpay_code="webhook_secret_missing",
            )

        if isinstance(body, bytes):
            try:
                body = body.decode("utf-8")
            except UnicodeDecodeError as e:
                cls.get_logger().warning(
                    "Webhook body is not valid UTF-8",
                    extra={"operation": "verify_webhook_signature"},
                )
                raise RazorpaySignatureError(
                    "Invalid webhook payload",
                    razorpay_code="webhook_body_not_utf8",
                ) from e

        cls._verify(
            "verify_webhook_signature",
            lambda utility: utility.verify_webhook_signature(body, signature, secret),
            {"body_length": len(body)},
        )

    @staticmethod
    def _require_fields(**fields: str | None) -> None:
        """Reject a verification request with blank identifiers."""
        missing = sorted(name for name, value in fields.items() if not value)
        if missing:
            raise RazorpaySignatureError(
                "Missing fields for signature verification",
                razorpay_code="signature_fields_missing",
                details={"missing": missing},
            )

    @classmethod
    def _verify(
        cls,
        operation: str,
        check: Callable[[Any], Any],
        log_context: dict[str, Any],
    ) -> None:
        """Run an SDK signature check, translating mismatches."""
        try:
            check(cls._client().utility)
        except razorpay.errors.SignatureVerificationError as e:
            cls.get_logger().warning(
                "Razorpay signature verification failed",
                extra={"operation": operation, **log_context},
            )
            raise RazorpaySignatureError(
                "Invalid payment signature"
                if operation != "verify_webhook_signature"
                else "Invalid webhook signature",
                razorpay_code="signature_verification_failed",
                details={"error": str(e)},
            )

    # =========================================================================
    # Error Handling
    # =========================================================================

    @classmethod
    def _handle_razorpay_error(
        cls,
        error: Exception,
        log_context: dict[str, Any],
        duration_ms: float,
    ) -> None:
        """
        Translate Razorpay SDK and transport exceptions to domain exceptions.

        Args:
            error: The exception raised by the SDK call
            log_context: Logging context dict
            duration_ms: Operation duration for logging

        Raises:
            RazorpayBadRequestError: Invalid request parameters
            RazorpayTimeoutError: Request timed out
            RazorpayAPIUnavailableError: Gateway, server or network failure
        """
        logger = cls.get_logger()
        log_context = {**log_context, "duration_ms": duration_ms}

        if isinstance(error, RazorpayError):
            raise error

        if isinstance(error, razorpay.errors.BadRequestError):
            logger.error(
                "Invalid request to Razorpay",
                extra={**log_context, "error": str(error)},
            )
            raise RazorpayBadRequestError(
                str(error) or "Razorpay rejected the request",
                razorpay_code="BAD_REQUEST_ERROR",
            )

        elif isinstance(error, razorpay.errors.GatewayError):
            logger.error(
                "Razorpay gateway error",
                extra=log_context,
                exc_info=True,
            )
            raise RazorpayAPIUnavailableError(
                "Razorpay gateway error. Please retry.",
                razorpay_code="GATEWAY_ERROR",
            )

        elif isinstance(error, razorpay.errors.ServerError):
            logger.error(
                "Razorpay server error",
                extra=log_context,
                exc_info=True,
            )
            raise RazorpayAPIUnavailableError(
                "Razorpay service error. Please retry.",
                razorpay_code="SERVER_ERROR",
            )

        elif isinstance(error, requests.exceptions.Timeout):
            logger.error(
                "Razorpay request timed out",
                extra=log_context,
            )
            raise RazorpayTimeoutError(
                "Razorpay request timed out. Please retry.",
                razorpay_code="timeout",
            )

        elif isinstance(error, requests.exceptions.RequestException):
            logger.error(
                "Connection error to Razorpay",
                extra=log_context,
                exc_info=True,
            )
            raise RazorpayAPIUnavailableError(
                "Could not connect to Razorpay. Please retry.",
                razorpay_code="api_connection_error",
            )

        else:
            logger.error(
                f"Unexpected error from Razorpay: {type(error).__name__}",
                extra=log_context,
                exc_info=True,
            )
            raise RazorpayAPIUnavailableError(
                f"Unexpected Razorpay error: {error}",
                razorpay_code="unknown_error",
            )
