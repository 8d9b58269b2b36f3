"""
Donation amount selection.

The donation form offers preset amounts plus a free-text custom amount.
Whichever the donor touched last wins: clicking a preset clears the custom
text, typing a custom amount clears the preset. The resolved amount is
checked against DONATION_MIN_AMOUNT / DONATION_MAX_AMOUNT with the same
validator the API uses, so a bad amount never reaches the network.

Usage:
    selector = AmountSelector()
    selector.select_preset(1000)
    selector.enter_custom("750")
    selector.resolve()  # 750
"""

from __future__ import annotations

import re
from dataclasses import dataclass, field

from django.conf import settings
from django.core.exceptions import ValidationError

from core.validators import validate_donation_amount
from checkout.exceptions import CheckoutValidationError

INVALID_AMOUNT_MESSAGE = "Please enter a valid amount"

# Digits with optional Indian/Western grouping commas, no decimals
_AMOUNT_PATTERN = re.compile(r"^\d[\d,]*$")


def _default_presets() -> tuple[int, ...]:
    return tuple(settings.DONATION_PRESET_AMOUNTS)


@dataclass
class AmountSelector:
    """
    Tracks the donor's amount choice.

    Attributes:
        presets: Amounts offered as buttons, in rupees
        selected_preset: The preset currently selected, if any
        custom_amount: Raw custom amount text, if any
    """

    presets: tuple[int, ...] = field(default_factory=_default_presets)
    selected_preset: int | None = None
    custom_amount: str = ""

    def select_preset(self, amount: int) -> None:
        """
        Select a preset amount and clear any custom text.

        Raises:
            ValueError: If amount is not one of the presets
        """
        if amount not in self.presets:
            raise ValueError(f"{amount} is not a preset amount")
        self.selected_preset = amount
        self.custom_amount = ""

    def enter_custom(self, text: str) -> None:
        """Set the custom amount text and clear the preset."""
        self.custom_amount = text
        self.selected_preset = None

    def clear(self) -> None:
        self.selected_preset = None
        self.custom_amount = ""

    @property
    def has_selection(self) -> bool:
        return self.selected_preset is not None or bool(self.custom_amount.strip())

    def resolve(self) -> int:
        """
        Return the selected amount in whole rupees.

        Returns:
            Validated amount

        Raises:
            CheckoutValidationError: With an ``amount`` field error when
                nothing is selected, the text is not a whole number, or the
                amount is outside the donation bounds
        """
        if self.selected_preset is not None:
            amount = self.selected_preset
        else:
            text = self.custom_amount.strip()
            if not _AMOUNT_PATTERN.match(text):
                raise CheckoutValidationError({"amount": [INVALID_AMOUNT_MESSAGE]})
            amount = int(text.replace(",", ""))

        try:
            validate_donation_amount(amount)
        except ValidationError as e:
            raise CheckoutValidationError({"amount": list(e.messages)}) from e
        return amount
