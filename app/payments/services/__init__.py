"""
Payment services for coordinating payment operations.

This module provides:
- CheckoutOrchestrator: Entry point for donation orders and membership checkouts
- VerificationService: Checks checkout signatures and records payments
- SubscriptionService: Member-initiated cancellation

Usage:
    from payments.services import CheckoutOrchestrator, DonationOrderParams

    # Open a donation order
    result = CheckoutOrchestrator.create_donation_order(
        DonationOrderParams(amount=500, donor_name="Asha Rao", donor_email="asha@example.com")
    )

    # Verify the checkout response
    from payments.services import VerificationService, VerifyPaymentParams

    result = VerificationService.verify(
        VerifyPaymentParams(
            payment_type="donation",
            razorpay_payment_id="pay_xxx",
            razorpay_signature="...",
            razorpay_order_id="order_xxx",
        )
    )

    # Cancel a recurring membership
    from payments.services import SubscriptionService

    result = SubscriptionService.cancel(user=request.user, subscription_id=sub_id)
"""

from payments.services.checkout_orchestrator import (
    CheckoutOrchestrator,
    DonationOrderParams,
    DonationOrderResult,
)
from payments.services.subscription_service import SubscriptionService
from payments.services.verification_service import (
    VerificationResult,
    VerificationService,
    VerifyPaymentParams,
)

__all__ = [
    "CheckoutOrchestrator",
    "DonationOrderParams",
    "DonationOrderResult",
    "SubscriptionService",
    "VerificationResult",
    "VerificationService",
    "VerifyPaymentParams",
]
