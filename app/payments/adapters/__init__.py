"""
Payment adapters for external services.

This module provides the adapter for the Razorpay payment gateway.
All Razorpay API calls should go through it to ensure consistent error
handling, timeouts, and observability.

Usage:
    from payments.adapters import RazorpayAdapter, CreateOrderParams

    result = RazorpayAdapter.create_order(
        CreateOrderParams(amount_paise=50_000, receipt="PAY-20240115-3F2A9C1B")
    )
"""

from payments.adapters.razorpay_adapter import (
    PLAN_PERIODS,
    CreateOrderParams,
    CreatePlanParams,
    CreateSubscriptionParams,
    OrderResult,
    PlanResult,
    RazorpayAdapter,
    SubscriptionResult,
)

__all__ = [
    "PLAN_PERIODS",
    "CreateOrderParams",
    "CreatePlanParams",
    "CreateSubscriptionParams",
    "OrderResult",
    "PlanResult",
    "RazorpayAdapter",
    "SubscriptionResult",
]
