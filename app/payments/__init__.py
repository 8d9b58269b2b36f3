"""
Payments app for Razorpay integration.

This app handles:
- Donation orders and confirmation emails
- Membership plans, checkout and cancellation
- Checkout signature verification
- Webhook event handling
- CSV exports from the admin

Related apps:
    - core: BaseModel, BaseService, ServiceResult
    - toolkit: EmailService for donation confirmations

Usage:
    from payments.services import CheckoutOrchestrator, DonationOrderParams

    # Create a donation order
    result = CheckoutOrchestrator.create_donation_order(
        DonationOrderParams(amount=500, donor_name="Asha Rao", donor_email="asha@example.com")
    )

    # Handle webhook
    from payments.webhooks import dispatch_webhook
    dispatch_webhook(webhook_event)
"""
