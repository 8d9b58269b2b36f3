"""
Pytest fixtures for the checkout flow.

FakeLauncher stands in for the browser that hosts checkout.js; the
payments API is served by an httpx.MockTransport so no request leaves
the process.
"""

from __future__ import annotations

import json
from typing import Any, Callable

import httpx
import pytest

from checkout.bridge import CheckoutBridge
from checkout.client import PaymentsAPIClient

API_BASE = "http://testserver/api/v1/payments/"


class FakeLauncher:
    """
    Scriptable checkout host.

    ``outcome`` decides which callback fires when the checkout opens:
    ("success", fields), ("error", message), ("dismiss", None) or None to
    leave the modal open.
    """

    def __init__(self, outcome: tuple[str, Any] | None = ("success", None)):
        self.outcome = outcome
        self.load_calls = 0
        self.load_error: Exception | None = None
        self.opened: list[dict[str, Any]] = []

    async def load_script(self, url: str) -> None:
        self.load_calls += 1
        if self.load_error is not None:
            raise self.load_error

    def open(self, options, on_success, on_error, on_dismiss) -> None:
        self.opened.append(options)
        if self.outcome is None:
            return
        kind, value = self.outcome
        if kind == "success":
            fields = value or {
                "razorpay_payment_id": "pay_FAKE001",
                "razorpay_signature": "sig_fake",
                **(
                    {"razorpay_order_id": options["order_id"]}
                    if "order_id" in options
                    else {"razorpay_subscription_id": options["subscription_id"]}
                ),
            }
            on_success(fields)
        elif kind == "error":
            on_error(value)
        else:
            on_dismiss()


class FakePaymentsAPI:
    """
    Routes requests to canned JSON responses and records them.

    ``routes`` maps "METHOD path" to (status, body) or to a callable
    taking the decoded request body.
    """

    def __init__(self):
        self.routes: dict[str, tuple[int, Any] | Callable[[dict], tuple[int, Any]]] = {}
        self.requests: list[tuple[str, str, dict]] = []

    def __call__(self, request: httpx.Request) -> httpx.Response:
        path = request.url.path.removeprefix("/api/v1/payments/")
        body = json.loads(request.content) if request.content else {}
        self.requests.append((request.method, path, body))
        route = self.routes.get(f"{request.method} {path}")
        if route is None:
            return httpx.Response(404, json={"error": "Not found", "error_code": "NOT_FOUND"})
        status, payload = route(body) if callable(route) else route
        return httpx.Response(status, json=payload)

    def paths(self) -> list[str]:
        return [path for _, path, _ in self.requests]


@pytest.fixture
def fake_api():
    return FakePaymentsAPI()


@pytest.fixture
async def api_client(fake_api):
    client = PaymentsAPIClient(API_BASE, transport=httpx.MockTransport(fake_api))
    yield client
    await client.aclose()


@pytest.fixture
def launcher():
    return FakeLauncher()


@pytest.fixture
async def loaded_bridge(launcher):
    bridge = CheckoutBridge(launcher, script_url="https://checkout.razorpay.com/v1/checkout.js")
    await bridge.load()
    return bridge


@pytest.fixture
def donation_order_body():
    return {
        "orderId": "order_FLOW001",
        "amount": 50000,
        "currency": "INR",
        "keyId": "rzp_test_key",
        "paymentReference": "REF001",
    }
