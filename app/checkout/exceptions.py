"""
Checkout flow exceptions.

Errors raised on the client side of a payment, before or between calls to
the payments API. They share core.exceptions.BaseApplicationError so
``message``, ``error_code`` and ``details`` read the same on both sides.

Exception Hierarchy:
    BaseApplicationError (from core.exceptions)
    └── CheckoutError
        ├── CheckoutValidationError  - Field errors, caught before any request
        ├── CheckoutAPIError         - Payments API returned an error response
        ├── CheckoutNetworkError     - Transport failure talking to the API
        └── CheckoutNotLoadedError   - Hosted checkout script not available

Usage:
    from checkout.exceptions import CheckoutAPIError

    try:
        order = await api.create_donation_order(amount, donor)
    except CheckoutAPIError as e:
        show_error(e.message)
"""

from __future__ import annotations

from typing import Any

from core.exceptions import BaseApplicationError


class CheckoutError(BaseApplicationError):
    """Base exception for checkout flow errors."""

    default_error_code = "CHECKOUT_ERROR"


class CheckoutValidationError(CheckoutError):
    """
    Raised when form input fails validation.

    ``field_errors`` maps field name to a list of messages; ``message`` is
    the first of them.
    """

    default_error_code = "VALIDATION_ERROR"
    http_status = 400

    def __init__(self, field_errors: dict[str, list[str]]):
        self.field_errors = field_errors
        first = next(iter(field_errors.values()), ["Validation failed"])
        super().__init__(first[0], details={"fields": field_errors})


class CheckoutAPIError(CheckoutError):
    """
    Raised when the payments API answers with an error status.

    The server's ``error`` text is kept verbatim as the message.
    """

    default_error_code = "API_ERROR"

    def __init__(
        self,
        message: str,
        status_code: int,
        error_code: str | None = None,
        details: dict[str, Any] | None = None,
    ):
        super().__init__(message, error_code=error_code, details=details)
        self.status_code = status_code
        self.http_status = status_code


class CheckoutNetworkError(CheckoutError):
    """Raised when the payments API cannot be reached."""

    default_error_code = "NETWORK_ERROR"
    http_status = 503


class CheckoutNotLoadedError(CheckoutError):
    """Raised when the hosted checkout is used before its script loaded."""

    default_error_code = "SDK_NOT_LOADED"
    http_status = 503
