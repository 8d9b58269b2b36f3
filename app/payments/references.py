"""
Payment reference generation.

A payment reference is the human-readable identifier shown to donors on the
success screen and in their confirmation email. It is also sent to Razorpay
as the order ``receipt`` so gateway records can be matched back to ours.

Format: ``PAY-YYYYMMDD-XXXXXXXX``, where the date is the UTC creation date
and the suffix is the first 8 characters of a UUID4, uppercased.
"""

from __future__ import annotations

import re
import uuid
from datetime import datetime, timezone as dt_timezone

from django.utils import timezone

REFERENCE_PREFIX = "PAY"
REFERENCE_PATTERN = re.compile(r"^PAY-\d{8}-[0-9A-F]{8}$")


def generate_payment_reference(now: datetime | None = None) -> str:
    """
    Generate a new payment reference.

    Args:
        now: Timestamp to take the date from (defaults to the current time)

    Returns:
        Reference such as ``PAY-20240115-3F2A9C1B``
    """
    now = now or timezone.now()
    date_part = now.astimezone(dt_timezone.utc).strftime("%Y%m%d")
    suffix = uuid.uuid4().hex[:8].upper()
    return f"{REFERENCE_PREFIX}-{date_part}-{suffix}"


def is_payment_reference(value: str) -> bool:
    """Check whether a string has the payment reference shape."""
    return bool(REFERENCE_PATTERN.match(value or ""))
