"""
Bridge to the Razorpay hosted checkout.

The checkout script (checkout.js) is loaded once per process. Loading is
guarded by a one-shot asyncio.Lock so concurrent callers share a single
load; a failed load is not remembered and the next call tries again.
A successful load yields a CheckoutCapability. Without one, checkouts
cannot be opened.

The hosted checkout reports back through callbacks. Those stay at the
launcher boundary: CheckoutBridge.open() turns them into an awaited
ServiceResult.

Usage:
    bridge = CheckoutBridge(launcher)
    await bridge.load()

    result = await bridge.open(CheckoutOptions(key="rzp_test_x", order_id="order_1", amount=50000))
    if result.success:
        fields = result.data  # razorpay_payment_id, razorpay_signature, ...
"""

from __future__ import annotations

import asyncio
import logging
from dataclasses import dataclass, field
from datetime import datetime
from typing import Any, Callable, Protocol

from django.conf import settings
from django.utils import timezone

from core.services import ServiceResult
from checkout.exceptions import CheckoutNotLoadedError

logger = logging.getLogger(__name__)

LOADING_MESSAGE = "Payment system is loading..."
CANCELLED_MESSAGE = "Payment cancelled by user"
NOT_LOADED_MESSAGE = "Razorpay SDK not loaded"
LOAD_FAILED_MESSAGE = "Failed to load payment system"


class CheckoutLauncher(Protocol):
    """
    The host environment that runs the Razorpay checkout.

    Implementations load checkout.js and open the modal. ``open`` returns
    immediately; exactly one of the callbacks fires later.
    """

    async def load_script(self, url: str) -> None:
        """Load the checkout script, raising on failure."""
        ...

    def open(
        self,
        options: dict[str, Any],
        on_success: Callable[[dict[str, str]], None],
        on_error: Callable[[str], None],
        on_dismiss: Callable[[], None],
    ) -> None:
        """Open the hosted checkout with Razorpay options."""
        ...


@dataclass(frozen=True)
class CheckoutCapability:
    """Proof that the checkout script is loaded."""

    script_url: str
    loaded_at: datetime


@dataclass
class CheckoutOptions:
    """
    Options passed to the Razorpay checkout.

    Exactly one of order_id (one-time payment) or subscription_id
    (recurring mandate) is set.
    """

    key: str
    order_id: str | None = None
    subscription_id: str | None = None
    amount: int | None = None
    currency: str | None = None
    name: str = field(default_factory=lambda: settings.ORGANISATION_NAME)
    description: str = "Donation / Membership Payment"
    prefill: dict[str, str] = field(default_factory=dict)
    theme_color: str = field(default_factory=lambda: settings.CHECKOUT_THEME_COLOR)

    def __post_init__(self):
        if bool(self.order_id) == bool(self.subscription_id):
            raise ValueError("Exactly one of order_id or subscription_id is required")

    def to_dict(self) -> dict[str, Any]:
        """Render as the Razorpay options object."""
        options: dict[str, Any] = {
            "key": self.key,
            "name": self.name,
            "description": self.description,
            "prefill": {k: v for k, v in self.prefill.items() if v},
            "theme": {"color": self.theme_color},
        }
        if self.order_id:
            options["order_id"] = self.order_id
            options["amount"] = self.amount
            options["currency"] = self.currency
        else:
            options["subscription_id"] = self.subscription_id
        return options


class CheckoutBridge:
    """
    Loads the hosted checkout once and opens it on demand.

    Attributes:
        script_url: checkout.js location (CHECKOUT_SCRIPT_URL)
    """

    def __init__(self, launcher: CheckoutLauncher, script_url: str | None = None):
        self.launcher = launcher
        self.script_url = script_url or settings.CHECKOUT_SCRIPT_URL
        self._capability: CheckoutCapability | None = None
        self._load_lock = asyncio.Lock()

    @property
    def capability(self) -> CheckoutCapability | None:
        return self._capability

    @property
    def is_loaded(self) -> bool:
        return self._capability is not None

    async def load(self) -> ServiceResult[CheckoutCapability]:
        """
        Load the checkout script if it is not loaded yet.

        Returns:
            ServiceResult with the capability, or a failure when the
            launcher could not load the script
        """
        if self._capability is not None:
            return ServiceResult.success(self._capability)

        async with self._load_lock:
            # Another caller may have finished loading while we waited
            if self._capability is not None:
                return ServiceResult.success(self._capability)

            try:
                await self.launcher.load_script(self.script_url)
            except Exception as e:
                logger.warning(
                    f"Checkout script failed to load: {type(e).__name__}",
                    extra={"script_url": self.script_url, "error": str(e)},
                )
                return ServiceResult.failure(
                    LOAD_FAILED_MESSAGE,
                    error_code="CHECKOUT_LOAD_FAILED",
                    http_status=503,
                )

            self._capability = CheckoutCapability(
                script_url=self.script_url,
                loaded_at=timezone.now(),
            )
            logger.info("Checkout script loaded", extra={"script_url": self.script_url})

        return ServiceResult.success(self._capability)

    async def open(self, options: CheckoutOptions) -> ServiceResult[dict[str, str]]:
        """
        Open the hosted checkout and wait for the donor to finish.

        Args:
            options: Checkout options

        Returns:
            ServiceResult with the signed response fields on success;
            failure with "Payment cancelled by user" when the modal is
            dismissed, the gateway's message on payment error, or
            "Razorpay SDK not loaded" without a capability
        """
        if self._capability is None:
            return ServiceResult.failure(
                NOT_LOADED_MESSAGE, error_code="SDK_NOT_LOADED", http_status=503
            )

        loop = asyncio.get_running_loop()
        outcome: asyncio.Future[ServiceResult[dict[str, str]]] = loop.create_future()

        def settle(result: ServiceResult) -> None:
            if not outcome.done():
                outcome.set_result(result)

        def on_success(fields: dict[str, str]) -> None:
            loop.call_soon_threadsafe(settle, ServiceResult.success(dict(fields)))

        def on_error(message: str) -> None:
            loop.call_soon_threadsafe(
                settle,
                ServiceResult.failure(
                    message or "Payment failed", error_code="CHECKOUT_ERROR"
                ),
            )

        def on_dismiss() -> None:
            loop.call_soon_threadsafe(
                settle,
                ServiceResult.failure(CANCELLED_MESSAGE, error_code="CHECKOUT_CANCELLED"),
            )

        try:
            self.launcher.open(options.to_dict(), on_success, on_error, on_dismiss)
        except Exception as e:
            logger.warning(
                f"Checkout failed to open: {type(e).__name__}",
                extra={"error": str(e)},
            )
            return ServiceResult.failure(str(e) or "Payment failed", error_code="CHECKOUT_ERROR")

        return await outcome


# =============================================================================
# Process-wide bridge
# =============================================================================

_bridge: CheckoutBridge | None = None


def get_bridge(launcher: CheckoutLauncher | None = None) -> CheckoutBridge:
    """
    Return the process-wide bridge, creating it on first use.

    Args:
        launcher: Required on the first call

    Raises:
        CheckoutNotLoadedError: If no bridge exists and no launcher is given
    """
    global _bridge
    if _bridge is None:
        if launcher is None:
            raise CheckoutNotLoadedError(NOT_LOADED_MESSAGE)
        _bridge = CheckoutBridge(launcher)
    return _bridge


def reset_bridge() -> None:
    """Forget the process-wide bridge."""
    global _bridge
    _bridge = None
