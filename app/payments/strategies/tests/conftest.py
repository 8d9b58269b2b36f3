"""
Pytest fixtures for strategy tests.

The member, plan and subscription fixtures come from
payments/tests/conftest.py.
"""

from payments.tests.conftest import (  # noqa: F401
    active_subscription,
    lifetime_payment,
    lifetime_plan,
    member,
    monthly_plan,
    pending_subscription,
    user,
)
