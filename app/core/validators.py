"""
Custom validators for Django models, DRF serializers and the checkout flow.

This module provides validators for:
- Payment amounts (donation bounds)
- Person names and email addresses
- Security (HTML in free-text fields)

They raise django.core.exceptions.ValidationError, so they plug straight
into model fields and DRF serializer fields, and the asyncio checkout flow
catches the same exception to show field errors before any network call.

Usage:
    from core.validators import validate_donation_amount, validate_person_name

    class DonationOrderSerializer(serializers.Serializer):
        amount = serializers.IntegerField(validators=[validate_donation_amount])
        donor_name = serializers.CharField(validators=[validate_person_name])
"""

from __future__ import annotations

import re

from django.conf import settings
from django.core.exceptions import ValidationError
from django.core.validators import EmailValidator

from core.helpers import format_inr

NAME_MIN_LENGTH = 2
NAME_MAX_LENGTH = 100

validate_contact_email = EmailValidator(message="Please enter a valid email")


def validate_donation_amount(value: int) -> None:
    """
    Validate a donation amount in whole rupees against the configured bounds.

    Args:
        value: Amount in rupees

    Raises:
        ValidationError: "Minimum donation is ₹100" / "Maximum donation is ₹10,00,000"
    """
    minimum = settings.DONATION_MIN_AMOUNT
    maximum = settings.DONATION_MAX_AMOUNT
    if value < minimum:
        raise ValidationError(
            f"Minimum donation is {format_inr(minimum)}", code="min_amount"
        )
    if value > maximum:
        raise ValidationError(
            f"Maximum donation is {format_inr(maximum)}", code="max_amount"
        )


def validate_person_name(value: str) -> None:
    """
    Validate a donor or member name.

    Args:
        value: Name as entered

    Raises:
        ValidationError: If shorter than 2 or longer than 100 characters
    """
    length = len((value or "").strip())
    if length < NAME_MIN_LENGTH:
        raise ValidationError(
            f"Name must be at least {NAME_MIN_LENGTH} characters", code="min_length"
        )
    if length > NAME_MAX_LENGTH:
        raise ValidationError(
            f"Name must be at most {NAME_MAX_LENGTH} characters", code="max_length"
        )


def validate_no_html(value: str):
    """
    Validate that string contains no HTML tags.

    Useful for preventing XSS in text fields that end up in emails and
    the admin console.

    Args:
        value: String to validate

    Raises:
        ValidationError: If HTML tags found
    """
    if re.search(r"<[^>]+>", value):
        raise ValidationError("HTML tags are not allowed in this field.")
