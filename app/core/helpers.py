"""
Helper functions for common infrastructure operations.

This module provides domain-agnostic utility functions for:
- String hashing
- Currency display (Indian digit grouping)
- HTTP request helpers (client IP extraction)

These utilities are pure infrastructure - they have no knowledge
of domain concepts like donations, members, or business logic.

Usage:
    from core.helpers import format_inr, hash_string, get_client_ip

    hashed = hash_string(raw_body, "sha256")
    label = format_inr(1_000_000)  # "₹10,00,000"
    ip = get_client_ip(request)
"""

from __future__ import annotations

import hashlib
from decimal import Decimal
from typing import TYPE_CHECKING

if TYPE_CHECKING:
    from django.http import HttpRequest


def hash_string(value: str | bytes, algorithm: str = "sha256") -> str:
    """
    Hash a string using the specified algorithm.

    Args:
        value: String (or raw bytes) to hash
        algorithm: Hash algorithm (sha256, sha512, md5, etc.)

    Returns:
        Hexadecimal hash string

    Example:
        hashed = hash_string("hello", "sha256")
    """
    if isinstance(value, str):
        value = value.encode()
    hasher = hashlib.new(algorithm)
    hasher.update(value)
    return hasher.hexdigest()


def group_indian_digits(value: int) -> str:
    """
    Group an integer's digits the Indian way (lakh/crore).

    The last three digits form one group, every group before that has two.

    Example:
        group_indian_digits(1000000)  # "10,00,000"
        group_indian_digits(2500)     # "2,500"
    """
    sign = "-" if value < 0 else ""
    digits = str(abs(value))
    if len(digits) <= 3:
        return sign + digits

    head, tail = digits[:-3], digits[-3:]
    groups = []
    while len(head) > 2:
        groups.insert(0, head[-2:])
        head = head[:-2]
    if head:
        groups.insert(0, head)
    return sign + ",".join(groups + [tail])


def format_inr(amount: int | Decimal, symbol: str = "₹") -> str:
    """
    Format a rupee amount for display.

    Whole amounts are shown without decimals; fractional amounts keep
    two decimal places.

    Args:
        amount: Amount in rupees
        symbol: Currency symbol prefix

    Returns:
        Formatted string

    Example:
        format_inr(100)                # "₹100"
        format_inr(Decimal("1250.5"))  # "₹1,250.50"
    """
    amount = Decimal(amount)
    whole = int(amount)
    fraction = abs(amount - whole)
    text = group_indian_digits(whole)
    if fraction:
        text += f".{int((fraction * 100).quantize(Decimal('1'))):02d}"
    return f"{symbol}{text}"


def get_client_ip(request: HttpRequest) -> str:
    """
    Extract client IP from request, handling proxies.

    Checks X-Forwarded-For header for proxy chains.

    Args:
        request: Django HTTP request

    Returns:
        Client IP address string

    Example:
        ip = get_client_ip(request)
    """
    x_forwarded_for = request.META.get("HTTP_X_FORWARDED_FOR")
    if x_forwarded_for:
        # Take the first IP in the chain (original client)
        ip = x_forwarded_for.split(",")[0].strip()
    else:
        ip = request.META.get("REMOTE_ADDR", "")
    return ip
