"""
Client payment flow.

State machine for one donation or membership purchase:

    idle -> processing -> awaiting_checkout -> verifying -> success
                |                |                 |
                v                v                 v
              failed       checkout_error        failed

processing covers order creation; a failure there ends in ``failed``
without the checkout ever opening. success, failed and checkout_error are
terminal. Nothing is retried automatically: submitting again restarts
from idle.

Validation happens before any state change. A bad amount or donor field
leaves the flow idle with ``field_errors`` set and no request sent.

Usage:
    flow = DonationFlow(api, bridge)
    flow.amounts.select_preset(500)
    state = await flow.submit(ContactDetails(name="Asha Rao", email="asha@example.com"))
    if state == FlowState.SUCCESS:
        show(flow.payment_reference)
"""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from enum import Enum

from django.core.exceptions import ValidationError

from core.validators import validate_contact_email, validate_person_name
from checkout.amounts import AmountSelector
from checkout.bridge import LOADING_MESSAGE, CheckoutBridge, CheckoutOptions
from checkout.client import PaymentsAPIClient
from checkout.exceptions import CheckoutError, CheckoutValidationError

logger = logging.getLogger(__name__)


# =============================================================================
# States
# =============================================================================


class FlowState(str, Enum):
    """Where a payment attempt stands."""

    IDLE = "idle"
    PROCESSING = "processing"
    AWAITING_CHECKOUT = "awaiting_checkout"
    VERIFYING = "verifying"
    SUCCESS = "success"
    FAILED = "failed"
    CHECKOUT_ERROR = "checkout_error"


TERMINAL_STATES = frozenset(
    {FlowState.SUCCESS, FlowState.FAILED, FlowState.CHECKOUT_ERROR}
)
BUSY_STATES = frozenset(
    {FlowState.PROCESSING, FlowState.AWAITING_CHECKOUT, FlowState.VERIFYING}
)

ALLOWED_TRANSITIONS: dict[FlowState, frozenset[FlowState]] = {
    FlowState.IDLE: frozenset({FlowState.PROCESSING}),
    FlowState.PROCESSING: frozenset({FlowState.AWAITING_CHECKOUT, FlowState.FAILED}),
    FlowState.AWAITING_CHECKOUT: frozenset(
        {FlowState.VERIFYING, FlowState.CHECKOUT_ERROR}
    ),
    FlowState.VERIFYING: frozenset({FlowState.SUCCESS, FlowState.FAILED}),
    FlowState.SUCCESS: frozenset({FlowState.IDLE}),
    FlowState.FAILED: frozenset({FlowState.IDLE}),
    FlowState.CHECKOUT_ERROR: frozenset({FlowState.IDLE}),
}


class InvalidFlowTransition(CheckoutError):
    """Raised when the flow is driven out of order."""

    default_error_code = "INVALID_FLOW_TRANSITION"
    http_status = 409


# =============================================================================
# Presentation
# =============================================================================


@dataclass
class Notification:
    """A dismissible message for the user."""

    level: str
    title: str
    message: str
    dismissed: bool = False


@dataclass
class ContactDetails:
    """Donor or member contact details, also used to prefill the checkout."""

    name: str
    email: str
    phone: str = ""
    address: str = ""
    notes: str = ""

    def validate(self) -> dict[str, list[str]]:
        """
        Check name and email.

        Returns:
            Field errors, empty when valid
        """
        errors: dict[str, list[str]] = {}
        for field_name, validator, value in (
            ("name", validate_person_name, self.name),
            ("email", validate_contact_email, (self.email or "").strip()),
        ):
            try:
                validator(value)
            except ValidationError as e:
                errors[field_name] = list(e.messages)
        return errors

    def prefill(self) -> dict[str, str]:
        return {"name": self.name, "email": self.email, "contact": self.phone}


# =============================================================================
# Flows
# =============================================================================


class PaymentFlow:
    """
    Shared state handling for donation and membership flows.

    Attributes:
        state: Current FlowState
        payment_reference: Reference returned by order creation
        error: Message of the last failure
        field_errors: Validation errors from the last submit
        notifications: Messages shown to the user, newest last
    """

    def __init__(self, api: PaymentsAPIClient, bridge: CheckoutBridge):
        self.api = api
        self.bridge = bridge
        self.state = FlowState.IDLE
        self.payment_reference: str | None = None
        self.error: str | None = None
        self.field_errors: dict[str, list[str]] = {}
        self.notifications: list[Notification] = []

    @property
    def is_processing(self) -> bool:
        """True while a request or the checkout is in flight."""
        return self.state in BUSY_STATES

    @property
    def is_terminal(self) -> bool:
        return self.state in TERMINAL_STATES

    @property
    def active_notifications(self) -> list[Notification]:
        return [n for n in self.notifications if not n.dismissed]

    def notify(self, level: str, title: str, message: str) -> Notification:
        notification = Notification(level=level, title=title, message=message)
        self.notifications.append(notification)
        return notification

    def dismiss(self, notification: Notification) -> None:
        notification.dismissed = True

    def reset(self) -> None:
        """
        Return a finished flow to idle.

        Raises:
            InvalidFlowTransition: If a payment is still in flight
        """
        if self.state != FlowState.IDLE:
            self._transition(FlowState.IDLE)
        self.payment_reference = None
        self.error = None
        self.field_errors = {}

    def _transition(self, target: FlowState) -> None:
        if target not in ALLOWED_TRANSITIONS[self.state]:
            raise InvalidFlowTransition(
                f"Cannot move from {self.state.value} to {target.value}"
            )
        logger.debug(
            "Payment flow transition",
            extra={"flow": type(self).__name__, "from": self.state.value, "to": target.value},
        )
        self.state = target

    def _begin(self) -> bool:
        """Prepare for a new submit. Returns False if one is in flight."""
        if self.is_processing:
            logger.info("Submit ignored while payment in progress")
            return False
        if self.is_terminal:
            self.reset()
        self.error = None
        self.field_errors = {}
        return True

    def _checkout_ready(self) -> bool:
        if self.bridge.is_loaded:
            return True
        self.notify("error", "Please wait", LOADING_MESSAGE)
        return False

    def _fail(self, target: FlowState, title: str, message: str) -> FlowState:
        self.error = message
        self._transition(target)
        self.notify("error", title, message)
        logger.info(
            "Payment flow failed",
            extra={"flow": type(self).__name__, "state": target.value, "error": message},
        )
        return self.state

    async def _checkout_and_verify(
        self,
        options: CheckoutOptions,
        payment_type: str,
        checkout_failure_title: str,
    ) -> bool:
        """
        Open the checkout, then verify its signed response.

        Ends in checkout_error or failed on error; leaves the flow in
        verifying on success for the caller to finish.
        """
        self._transition(FlowState.AWAITING_CHECKOUT)
        result = await self.bridge.open(options)
        if not result.success:
            self._fail(FlowState.CHECKOUT_ERROR, checkout_failure_title, result.error)
            return False

        self._transition(FlowState.VERIFYING)
        response = result.data
        fields = {
            "razorpay_payment_id": response.get("razorpay_payment_id", ""),
            "razorpay_signature": response.get("razorpay_signature", ""),
        }
        if options.order_id:
            fields["razorpay_order_id"] = response.get("razorpay_order_id") or options.order_id
        else:
            fields["razorpay_subscription_id"] = (
                response.get("razorpay_subscription_id") or options.subscription_id
            )

        try:
            await self.api.verify_payment(payment_type, fields)
        except CheckoutError as e:
            self._fail(FlowState.FAILED, "Error", e.message)
            return False
        return True


class DonationFlow(PaymentFlow):
    """
    One-time donation.

    Attributes:
        amounts: The form's AmountSelector
    """

    def __init__(
        self,
        api: PaymentsAPIClient,
        bridge: CheckoutBridge,
        amounts: AmountSelector | None = None,
    ):
        super().__init__(api, bridge)
        self.amounts = amounts or AmountSelector()

    async def submit(self, donor: ContactDetails) -> FlowState:
        """
        Run a donation from order creation to verification.

        Args:
            donor: Donor contact details

        Returns:
            The resulting FlowState (idle when input was rejected)
        """
        if not self._begin():
            return self.state

        errors = donor.validate()
        try:
            amount = self.amounts.resolve()
        except CheckoutValidationError as e:
            errors = {**e.field_errors, **errors}
        if errors:
            self.field_errors = errors
            return self.state

        if not self._checkout_ready():
            return self.state

        self._transition(FlowState.PROCESSING)
        try:
            order = await self.api.create_donation_order(amount, donor)
        except CheckoutError as e:
            return self._fail(FlowState.FAILED, "Error", e.message)

        self.payment_reference = order.get("paymentReference")
        options = CheckoutOptions(
            key=order["keyId"],
            order_id=order["orderId"],
            amount=order["amount"],
            currency=order["currency"],
            description="Donation",
            prefill=donor.prefill(),
        )
        if not await self._checkout_and_verify(options, "donation", "Payment failed"):
            return self.state

        self._transition(FlowState.SUCCESS)
        self.notify(
            "success",
            "Thank You!",
            f"Your donation was successful. Reference: {self.payment_reference}",
        )
        return self.state


class MembershipFlow(PaymentFlow):
    """
    Membership purchase and cancellation.

    Lifetime plans come back from the API as an order, recurring plans as
    a subscription; the flow branches on that response type.

    Attributes:
        checkout_type: "order" or "subscription" after checkout creation
        subscription_id: Local Subscription ID of the purchase
    """

    def __init__(self, api: PaymentsAPIClient, bridge: CheckoutBridge):
        super().__init__(api, bridge)
        self.checkout_type: str | None = None
        self.subscription_id: str | None = None

    def reset(self) -> None:
        super().reset()
        self.checkout_type = None
        self.subscription_id = None

    async def subscribe(
        self, plan_id: str, member_id: str, member: ContactDetails
    ) -> FlowState:
        """
        Buy a membership plan.

        Args:
            plan_id: MembershipPlan ID
            member_id: Member ID
            member: Member contact details for the checkout prefill

        Returns:
            The resulting FlowState
        """
        if not self._begin():
            return self.state
        if not self._checkout_ready():
            return self.state

        self._transition(FlowState.PROCESSING)
        try:
            checkout = await self.api.create_membership_checkout(plan_id, member_id)
        except CheckoutError as e:
            return self._fail(FlowState.FAILED, "Error", e.message)

        self.checkout_type = checkout.get("type")
        if self.checkout_type == "order":
            self.payment_reference = checkout.get("paymentReference")
            self.subscription_id = checkout.get("subscriptionId")
            options = CheckoutOptions(
                key=checkout["keyId"],
                order_id=checkout["orderId"],
                amount=checkout["amount"],
                currency=checkout["currency"],
                description="Lifetime Membership",
                prefill=member.prefill(),
            )
            payment_type = "lifetime"
            failure_title = "Payment failed"
            welcome = "Your lifetime membership is now active."
        else:
            self.subscription_id = checkout.get("dbSubscriptionId")
            options = CheckoutOptions(
                key=checkout["keyId"],
                subscription_id=checkout["subscriptionId"],
                description="Membership Subscription",
                prefill=member.prefill(),
            )
            payment_type = "subscription"
            failure_title = "Subscription failed"
            welcome = "Your subscription is now active."

        if not await self._checkout_and_verify(options, payment_type, failure_title):
            return self.state

        self._transition(FlowState.SUCCESS)
        self.notify("success", "Welcome!", welcome)
        return self.state

    async def cancel(self, subscription_id: str) -> bool:
        """
        Cancel a recurring membership at the end of its billing period.

        Does not touch the purchase state machine.

        Returns:
            True if the API accepted the cancellation
        """
        try:
            await self.api.cancel_subscription(subscription_id)
        except CheckoutError as e:
            self.notify("error", "Error", e.message)
            return False

        self.notify(
            "success",
            "Subscription cancelled",
            "Your subscription has been cancelled and will end at the end of the billing period.",
        )
        return True
