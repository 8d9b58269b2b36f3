"""
Tests for shared input validators.

The messages here are shown to donors as-is, so they are asserted exactly.
"""

import pytest
from django.core.exceptions import ValidationError

from core.validators import (
    validate_contact_email,
    validate_donation_amount,
    validate_no_html,
    validate_person_name,
)


class TestValidateDonationAmount:
    """Tests for validate_donation_amount."""

    @pytest.mark.parametrize("value", [100, 500, 1_000_000])
    def test_accepts_bounds(self, value):
        """Should accept amounts between ₹100 and ₹10,00,000 inclusive."""
        validate_donation_amount(value)

    def test_below_minimum(self):
        """Should reject amounts under the minimum."""
        with pytest.raises(ValidationError) as exc_info:
            validate_donation_amount(99)

        assert exc_info.value.messages == ["Minimum donation is ₹100"]

    def test_above_maximum(self):
        """Should reject amounts over the maximum."""
        with pytest.raises(ValidationError) as exc_info:
            validate_donation_amount(1_000_001)

        assert exc_info.value.messages == ["Maximum donation is ₹10,00,000"]

    def test_bounds_follow_settings(self, settings):
        """Should read the bounds from settings."""
        settings.DONATION_MIN_AMOUNT = 500

        with pytest.raises(ValidationError, match="Minimum donation is ₹500"):
            validate_donation_amount(200)


class TestValidatePersonName:
    """Tests for validate_person_name."""

    def test_too_short(self):
        """Should count characters after trimming."""
        with pytest.raises(ValidationError) as exc_info:
            validate_person_name("  A  ")

        assert exc_info.value.messages == ["Name must be at least 2 characters"]

    def test_too_long(self):
        """Should reject names over 100 characters."""
        with pytest.raises(ValidationError, match="at most 100"):
            validate_person_name("A" * 101)

    def test_valid(self):
        validate_person_name("Asha Rao")


class TestValidateContactEmail:
    """Tests for validate_contact_email."""

    def test_invalid(self):
        with pytest.raises(ValidationError) as exc_info:
            validate_contact_email("asha@")

        assert exc_info.value.messages == ["Please enter a valid email"]


class TestValidateNoHtml:
    """Tests for validate_no_html."""

    def test_rejects_tags(self):
        """Should reject markup."""
        with pytest.raises(ValidationError):
            validate_no_html("<script>alert(1)</script>")

    def test_allows_plain_text(self):
        """Should allow a lone comparison sign."""
        validate_no_html("Donations < 1 lakh this month")
