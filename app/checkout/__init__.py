"""
Checkout - client-side payment flow.

This package drives the Razorpay hosted checkout from Python against the
payments API:
- AmountSelector: preset/custom donation amount with bound checks
- PaymentsAPIClient: httpx client for the payments endpoints
- CheckoutBridge: loads the checkout script once and opens checkouts
- DonationFlow / MembershipFlow: the state machine tying them together

Usage:
    from checkout.bridge import CheckoutBridge
    from checkout.client import PaymentsAPIClient
    from checkout.flow import ContactDetails, DonationFlow

    bridge = CheckoutBridge(launcher)
    await bridge.load()

    async with PaymentsAPIClient() as api:
        flow = DonationFlow(api, bridge)
        flow.amounts.select_preset(500)
        await flow.submit(ContactDetails(name="Asha Rao", email="asha@example.com"))
"""
