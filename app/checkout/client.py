"""
HTTP client for the payments API.

Wraps httpx.AsyncClient with one method per payments endpoint. Error
responses become CheckoutAPIError carrying the server's ``error`` text
verbatim; transport failures become CheckoutNetworkError. Nothing is
retried: the caller decides what the user sees.

Usage:
    async with PaymentsAPIClient(token=access_token) as api:
        order = await api.create_donation_order(500, donor)
        await api.verify_payment("donation", checkout_fields)
"""

from __future__ import annotations

import logging
import time
from typing import TYPE_CHECKING, Any

import httpx
from django.conf import settings

from checkout.exceptions import CheckoutAPIError, CheckoutNetworkError

if TYPE_CHECKING:
    from checkout.flow import ContactDetails

logger = logging.getLogger(__name__)

TIMEOUT_MESSAGE = "Request timed out. Please try again."
NETWORK_MESSAGE = "Could not reach the payment server. Please check your connection."

ORDER_FIELDS = ("orderId", "amount", "currency", "keyId")
SUBSCRIPTION_FIELDS = ("subscriptionId", "keyId")


class PaymentsAPIClient:
    """
    Async client for /api/v1/payments/.

    Args:
        base_url: API root; defaults to CHECKOUT_API_BASE_URL
        token: JWT access token for member endpoints
        timeout: Per-request timeout in seconds; defaults to
            CHECKOUT_HTTP_TIMEOUT_SECONDS
        transport: Optional httpx transport (tests pass httpx.MockTransport)
    """

    def __init__(
        self,
        base_url: str | None = None,
        *,
        token: str | None = None,
        timeout: float | None = None,
        transport: httpx.AsyncBaseTransport | None = None,
    ):
        headers = {"Accept": "application/json"}
        if token:
            headers["Authorization"] = f"Bearer {token}"

        self._client = httpx.AsyncClient(
            base_url=(base_url or settings.CHECKOUT_API_BASE_URL).rstrip("/") + "/",
            headers=headers,
            timeout=timeout or settings.CHECKOUT_HTTP_TIMEOUT_SECONDS,
            transport=transport,
        )

    async def __aenter__(self) -> PaymentsAPIClient:
        return self

    async def __aexit__(self, *exc_info) -> None:
        await self.aclose()

    async def aclose(self) -> None:
        await self._client.aclose()

    # =========================================================================
    # Endpoints
    # =========================================================================

    async def list_plans(self) -> list[dict[str, Any]]:
        """Fetch active membership plans."""
        return await self._request("GET", "plans/", fallback="Failed to load plans")

    async def create_donation_order(
        self,
        amount: int,
        donor: ContactDetails,
        plan_id: str | None = None,
    ) -> dict[str, Any]:
        """
        Create a donation order.

        Args:
            amount: Amount in whole rupees
            donor: Donor contact details
            plan_id: Optional related plan

        Returns:
            {"orderId", "amount", "currency", "keyId", "paymentReference"}
        """
        payload = {
            "amount": amount,
            "type": "donation",
            "donor_name": donor.name,
            "donor_email": donor.email,
            "donor_phone": donor.phone,
            "donor_address": donor.address,
            "notes": donor.notes,
        }
        if plan_id:
            payload["plan_id"] = str(plan_id)
        fallback = "Failed to create order"
        order = await self._request("POST", "orders/", json=payload, fallback=fallback)
        return self._require_fields(order, ORDER_FIELDS, fallback)

    async def create_membership_checkout(
        self, plan_id: str, member_id: str
    ) -> dict[str, Any]:
        """
        Open a membership checkout.

        Returns:
            Order body ({"type": "order", ...}) for lifetime plans or
            subscription body ({"type": "subscription", ...}) otherwise
        """
        fallback = "Failed to create subscription"
        checkout = await self._request(
            "POST",
            "subscriptions/",
            json={"plan_id": str(plan_id), "member_id": str(member_id)},
            fallback=fallback,
        )
        checkout_type = checkout.get("type") if isinstance(checkout, dict) else None
        if checkout_type == "order":
            return self._require_fields(checkout, ORDER_FIELDS, fallback)
        if checkout_type == "subscription":
            return self._require_fields(checkout, SUBSCRIPTION_FIELDS, fallback)
        logger.warning(
            "Payments API returned an unknown checkout type",
            extra={"checkout_type": checkout_type},
        )
        raise CheckoutAPIError(
            fallback, status_code=502, error_code="INVALID_RESPONSE"
        )

    async def verify_payment(
        self, payment_type: str, fields: dict[str, str]
    ) -> dict[str, Any]:
        """
        Verify the signed checkout response.

        Args:
            payment_type: "donation", "lifetime" or "subscription"
            fields: razorpay_payment_id, razorpay_signature and
                razorpay_order_id or razorpay_subscription_id
        """
        return await self._request(
            "POST",
            "verify/",
            json={"type": payment_type, **fields},
            fallback="Payment verification failed",
        )

    async def cancel_subscription(self, subscription_id: str) -> dict[str, Any]:
        """Cancel a recurring membership at the end of its cycle."""
        return await self._request(
            "POST",
            "subscriptions/cancel/",
            json={"subscription_id": str(subscription_id)},
            fallback="Failed to cancel subscription",
        )

    # =========================================================================
    # Transport
    # =========================================================================

    async def _request(
        self,
        method: str,
        path: str,
        *,
        json: dict[str, Any] | None = None,
        fallback: str,
    ) -> Any:
        start = time.monotonic()
        try:
            response = await self._client.request(method, path, json=json)
        except httpx.TimeoutException as e:
            logger.warning(
                "Payments API request timed out",
                extra={"method": method, "path": path},
            )
            raise CheckoutNetworkError(TIMEOUT_MESSAGE) from e
        except httpx.HTTPError as e:
            logger.warning(
                f"Payments API request failed: {type(e).__name__}",
                extra={"method": method, "path": path},
            )
            raise CheckoutNetworkError(NETWORK_MESSAGE) from e

        duration_ms = (time.monotonic() - start) * 1000
        logger.info(
            "Payments API request completed",
            extra={
                "method": method,
                "path": path,
                "status_code": response.status_code,
                "duration_ms": round(duration_ms, 2),
            },
        )

        if response.is_error:
            try:
                body = response.json()
            except ValueError:
                body = {}
            if not isinstance(body, dict):
                body = {}
            raise CheckoutAPIError(
                body.get("error") or fallback,
                status_code=response.status_code,
                error_code=body.get("error_code"),
                details=body.get("details"),
            )

        try:
            return response.json()
        except ValueError as e:
            raise CheckoutAPIError(
                fallback, status_code=response.status_code, error_code="INVALID_RESPONSE"
            ) from e

    @staticmethod
    def _require_fields(
        body: Any, fields: tuple[str, ...], fallback: str
    ) -> dict[str, Any]:
        """Reject a success body missing any value the checkout needs."""
        missing = (
            [name for name in fields if not body.get(name)]
            if isinstance(body, dict)
            else list(fields)
        )
        if missing:
            logger.warning(
                "Payments API response missing fields",
                extra={"missing": missing},
            )
            raise CheckoutAPIError(
                fallback,
                status_code=502,
                error_code="INVALID_RESPONSE",
                details={"missing": missing},
            )
        return body
