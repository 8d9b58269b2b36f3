"""
Payment admin configuration.

Registers the payment domain models with the Django admin. This is the
console staff use to follow donations, members and subscriptions:
filters, search, summary figures over the filtered list, and CSV export.

Payment and subscription states are read-only here. They change only
through checkout verification and Razorpay webhooks.
"""

from __future__ import annotations

from decimal import Decimal

from django.contrib import admin
from django.db.models import Count, Q, QuerySet, Sum

from core.helpers import format_inr
from payments.exports import export_donations_csv, export_subscriptions_csv
from payments.models import (
    Donation,
    Member,
    MembershipPlan,
    Payment,
    Subscription,
    WebhookEvent,
)
from payments.state_machines import PaymentStatus, WebhookEventStatus

__all__ = [
    "DonationAdmin",
    "MemberAdmin",
    "MembershipPlanAdmin",
    "PaymentAdmin",
    "SubscriptionAdmin",
    "WebhookEventAdmin",
]


def payment_summary(queryset: QuerySet) -> dict:
    """
    Summary figures for a Donation or Payment queryset.

    Returns:
        Dict with success_count, pending_count, total_paise and total_display
    """
    figures = queryset.aggregate(
        success_count=Count("id", filter=Q(payment_status=PaymentStatus.SUCCESS)),
        pending_count=Count("id", filter=Q(payment_status=PaymentStatus.PENDING)),
        total_paise=Sum("amount_paise", filter=Q(payment_status=PaymentStatus.SUCCESS)),
    )
    figures["total_paise"] = figures["total_paise"] or 0
    figures["total_display"] = format_inr(Decimal(figures["total_paise"]) / 100)
    return figures


class PaymentSummaryMixin:
    """Adds summary figures for the filtered changelist."""

    change_list_template = "admin/payments/change_list_summary.html"

    def changelist_view(self, request, extra_context=None):
        response = super().changelist_view(request, extra_context=extra_context)
        context = getattr(response, "context_data", None)
        if context and "cl" in context:
            context["summary"] = payment_summary(context["cl"].queryset)
        return response


def amount_display(obj) -> str:
    """Display the amount formatted as currency."""
    return format_inr(obj.amount)


@admin.register(Donation)
class DonationAdmin(PaymentSummaryMixin, admin.ModelAdmin):
    """
    Admin configuration for Donation.

    Pending donations whose checkout never verified show up here for
    manual follow-up.
    """

    list_display = [
        "payment_reference",
        "donor_name",
        "donor_email",
        "amount_col",
        "payment_status",
        "confirmation_email_sent_at",
        "created_at",
    ]
    list_filter = ["payment_status", "currency", "created_at"]
    search_fields = [
        "payment_reference",
        "donor_name",
        "donor_email",
        "donor_phone",
        "razorpay_order_id",
        "razorpay_payment_id",
    ]
    readonly_fields = [
        "id",
        "payment_reference",
        "amount_paise",
        "currency",
        "payment_status",
        "razorpay_order_id",
        "razorpay_payment_id",
        "razorpay_signature",
        "failure_reason",
        "confirmation_email_sent_at",
        "created_at",
        "updated_at",
    ]
    date_hierarchy = "created_at"
    ordering = ["-created_at"]
    actions = ["export_csv"]

    fieldsets = (
        (
            None,
            {
                "fields": ("id", "payment_reference", "payment_status"),
            },
        ),
        (
            "Donor",
            {
                "fields": ("donor_name", "donor_email", "donor_phone", "donor_address", "notes"),
            },
        ),
        (
            "Amount",
            {
                "fields": ("amount_paise", "currency"),
            },
        ),
        (
            "Razorpay Details",
            {
                "fields": ("razorpay_order_id", "razorpay_payment_id", "razorpay_signature"),
            },
        ),
        (
            "Failure Info",
            {
                "fields": ("failure_reason",),
                "classes": ("collapse",),
            },
        ),
        (
            "Timestamps",
            {
                "fields": ("confirmation_email_sent_at", "created_at", "updated_at"),
            },
        ),
    )

    @admin.display(description="Amount", ordering="amount_paise")
    def amount_col(self, obj: Donation) -> str:
        return amount_display(obj)

    @admin.action(description="Export selected donations to CSV")
    def export_csv(self, request, queryset):
        return export_donations_csv(queryset.order_by("-created_at"))

    def has_add_permission(self, request) -> bool:
        """Donations are created by checkout only."""
        return False

    def has_delete_permission(self, request, obj=None) -> bool:
        """Disable delete for donations (audit trail)."""
        return False


@admin.register(Member)
class MemberAdmin(admin.ModelAdmin):
    """Admin configuration for Member."""

    list_display = ["full_name", "email", "phone", "user", "is_active", "created_at"]
    list_filter = ["is_active", "created_at"]
    search_fields = ["full_name", "email", "phone", "user__email", "user__username"]
    readonly_fields = ["id", "created_at", "updated_at"]
    raw_id_fields = ["user"]
    ordering = ["full_name"]


@admin.register(MembershipPlan)
class MembershipPlanAdmin(admin.ModelAdmin):
    """
    Admin configuration for MembershipPlan.

    razorpay_plan_id is filled in on first recurring checkout; clear it
    after changing the price so a new gateway plan is created.
    """

    list_display = ["name", "plan_type", "price_col", "is_active", "razorpay_plan_id"]
    list_filter = ["plan_type", "is_active"]
    search_fields = ["name", "razorpay_plan_id"]
    readonly_fields = ["id", "created_at", "updated_at"]
    ordering = ["price_paise"]

    @admin.display(description="Price", ordering="price_paise")
    def price_col(self, obj: MembershipPlan) -> str:
        return format_inr(obj.price)


class PaymentInline(admin.TabularInline):
    """Inline display of payments for a subscription."""

    model = Payment
    extra = 0
    fields = [
        "payment_reference",
        "payment_type",
        "amount_paise",
        "payment_status",
        "razorpay_payment_id",
        "created_at",
    ]
    readonly_fields = fields
    can_delete = False
    show_change_link = True

    def has_add_permission(self, request, obj=None) -> bool:
        return False


@admin.register(Subscription)
class SubscriptionAdmin(admin.ModelAdmin):
    """
    Admin configuration for Subscription.

    Provides visibility into membership state and billing dates.
    """

    list_display = [
        "id",
        "member",
        "plan",
        "status",
        "start_date",
        "next_billing_date",
        "end_date",
        "created_at",
    ]
    list_filter = ["status", "plan__plan_type", "plan", "created_at"]
    search_fields = [
        "id",
        "razorpay_subscription_id",
        "member__full_name",
        "member__email",
    ]
    readonly_fields = [
        "id",
        "status",
        "razorpay_subscription_id",
        "start_date",
        "end_date",
        "next_billing_date",
        "cancelled_at",
        "version",
        "created_at",
        "updated_at",
    ]
    list_select_related = ["member", "plan"]
    raw_id_fields = ["member"]
    date_hierarchy = "created_at"
    ordering = ["-created_at"]
    inlines = [PaymentInline]
    actions = ["export_csv"]

    fieldsets = (
        (
            None,
            {
                "fields": ("id", "member", "plan", "status"),
            },
        ),
        (
            "Billing Period",
            {
                "fields": ("start_date", "end_date", "next_billing_date", "cancelled_at"),
            },
        ),
        (
            "Razorpay Details",
            {
                "fields": ("razorpay_subscription_id",),
            },
        ),
        (
            "Metadata",
            {
                "fields": ("version",),
                "classes": ("collapse",),
            },
        ),
        (
            "Timestamps",
            {
                "fields": ("created_at", "updated_at"),
            },
        ),
    )

    @admin.action(description="Export selected subscriptions to CSV")
    def export_csv(self, request, queryset):
        return export_subscriptions_csv(queryset.order_by("-created_at"))

    def has_add_permission(self, request) -> bool:
        """Subscriptions are created by checkout only."""
        return False

    def has_delete_permission(self, request, obj=None) -> bool:
        """Disable delete for subscriptions (audit trail)."""
        return False


@admin.register(Payment)
class PaymentAdmin(PaymentSummaryMixin, admin.ModelAdmin):
    """
    Admin configuration for Payment.

    Lifetime purchases and recurring charges, one row per gateway payment.
    """

    list_display = [
        "payment_reference",
        "member",
        "plan",
        "payment_type",
        "amount_col",
        "payment_status",
        "created_at",
    ]
    list_filter = ["payment_status", "payment_type", "plan", "created_at"]
    search_fields = [
        "payment_reference",
        "member__full_name",
        "member__email",
        "razorpay_order_id",
        "razorpay_payment_id",
    ]
    readonly_fields = [
        "id",
        "member",
        "subscription",
        "plan",
        "payment_reference",
        "payment_type",
        "amount_paise",
        "currency",
        "payment_status",
        "razorpay_order_id",
        "razorpay_payment_id",
        "razorpay_signature",
        "failure_reason",
        "created_at",
        "updated_at",
    ]
    list_select_related = ["member", "plan"]
    date_hierarchy = "created_at"
    ordering = ["-created_at"]

    @admin.display(description="Amount", ordering="amount_paise")
    def amount_col(self, obj: Payment) -> str:
        return amount_display(obj)

    def has_add_permission(self, request) -> bool:
        return False

    def has_delete_permission(self, request, obj=None) -> bool:
        """Disable delete for payments (audit trail)."""
        return False


@admin.register(WebhookEvent)
class WebhookEventAdmin(admin.ModelAdmin):
    """
    Admin configuration for WebhookEvent.

    Provides visibility into webhook processing and a manual retry.
    """

    list_display = [
        "id",
        "razorpay_event_id",
        "event_type",
        "status",
        "retry_count",
        "processed_at",
        "created_at",
    ]
    list_filter = ["status", "event_type", "created_at"]
    search_fields = ["id", "razorpay_event_id", "event_type"]
    readonly_fields = [
        "id",
        "created_at",
        "updated_at",
        "razorpay_event_id",
        "event_type",
        "payload",
        "processed_at",
    ]
    date_hierarchy = "created_at"
    ordering = ["-created_at"]
    actions = ["retry_processing"]

    fieldsets = (
        (
            None,
            {
                "fields": ("id", "razorpay_event_id", "event_type", "status"),
            },
        ),
        (
            "Processing",
            {
                "fields": ("processed_at", "retry_count"),
            },
        ),
        (
            "Error Info",
            {
                "fields": ("error_message",),
                "classes": ("collapse",),
            },
        ),
        (
            "Payload",
            {
                "fields": ("payload",),
                "classes": ("collapse",),
            },
        ),
        (
            "Timestamps",
            {
                "fields": ("created_at", "updated_at"),
            },
        ),
    )

    @admin.action(description="Queue selected events for processing")
    def retry_processing(self, request, queryset):
        """Bulk action to re-queue unprocessed events."""
        from payments.tasks import process_webhook_event

        count = 0
        for event in queryset.exclude(status=WebhookEventStatus.PROCESSED):
            process_webhook_event.delay(str(event.id))
            count += 1
        self.message_user(request, f"Queued {count} webhook events.")

    def has_delete_permission(self, request, obj=None) -> bool:
        """Disable delete for webhook events (audit trail)."""
        return False

    def has_add_permission(self, request) -> bool:
        """Disable adding webhook events through admin."""
        return False
