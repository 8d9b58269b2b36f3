"""
CSV exports for the admin console.

Admins export the selected donations or subscriptions from the changelist
for accounting and donor follow-up. Amounts are written in rupees and
dates in the server's local time.

Usage:
    from payments.exports import export_donations_csv

    response = export_donations_csv(Donation.objects.filter(...))
"""

from __future__ import annotations

import csv
from collections.abc import Iterable
from datetime import datetime

from django.db.models import QuerySet
from django.http import HttpResponse
from django.utils import timezone

DONATION_HEADERS = [
    "Reference",
    "Donor Name",
    "Email",
    "Phone",
    "Amount",
    "Status",
    "Razorpay Payment ID",
    "Date",
]

SUBSCRIPTION_HEADERS = [
    "Member Name",
    "Email",
    "Plan",
    "Status",
    "Start Date",
    "Next Billing",
    "Razorpay ID",
]

DATE_FORMAT = "%Y-%m-%d %H:%M"

# Leading characters a spreadsheet reads as the start of a formula
FORMULA_PREFIXES = ("=", "+", "-", "@", "\t", "\r")


def safe_cell(value: str | None) -> str:
    """
    Neutralise user-entered text before it reaches a spreadsheet.

    A cell starting with a formula character is prefixed with a single
    quote so it opens as text.
    """
    if not value:
        return ""
    if value.startswith(FORMULA_PREFIXES):
        return f"'{value}"
    return value


def format_date(value: datetime | None) -> str:
    """Render an aware datetime in local time, or an empty cell."""
    if value is None:
        return ""
    return timezone.localtime(value).strftime(DATE_FORMAT)


def csv_response(filename_prefix: str, headers: list[str], rows: Iterable[list]) -> HttpResponse:
    """
    Build a CSV attachment response.

    Args:
        filename_prefix: File name stem, suffixed with a timestamp
        headers: Header row
        rows: Data rows

    Returns:
        HttpResponse with a text/csv attachment
    """
    timestamp = timezone.localtime().strftime("%Y%m%d_%H%M%S")
    response = HttpResponse(content_type="text/csv; charset=utf-8")
    response["Content-Disposition"] = (
        f'attachment; filename="{filename_prefix}_{timestamp}.csv"'
    )
    writer = csv.writer(response)
    writer.writerow(headers)
    writer.writerows(rows)
    return response


def donation_rows(queryset: QuerySet) -> Iterable[list]:
    for donation in queryset:
        yield [
            donation.payment_reference,
            safe_cell(donation.donor_name),
            safe_cell(donation.donor_email),
            safe_cell(donation.donor_phone),
            f"{donation.amount:.2f}",
            donation.get_payment_status_display(),
            donation.razorpay_payment_id or "",
            format_date(donation.created_at),
        ]


def subscription_rows(queryset: QuerySet) -> Iterable[list]:
    for subscription in queryset.select_related("member", "plan"):
        yield [
            safe_cell(subscription.member.full_name),
            safe_cell(subscription.member.email),
            safe_cell(subscription.plan.name),
            subscription.get_status_display(),
            format_date(subscription.start_date),
            format_date(subscription.next_billing_date),
            subscription.razorpay_subscription_id or "",
        ]


def export_donations_csv(queryset: QuerySet) -> HttpResponse:
    """Export donations as CSV."""
    return csv_response("donations", DONATION_HEADERS, donation_rows(queryset))


def export_subscriptions_csv(queryset: QuerySet) -> HttpResponse:
    """Export subscriptions as CSV."""
    return csv_response(
        "subscriptions", SUBSCRIPTION_HEADERS, subscription_rows(queryset)
    )
