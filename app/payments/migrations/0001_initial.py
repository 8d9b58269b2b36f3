"""
Initial schema for donations and memberships.

Creates:
    - Donation: one-time donations paid through Razorpay orders
    - Member, MembershipPlan: people and the plans they can buy
    - Subscription: a member's membership term (FSM + version)
    - Payment: lifetime purchases and recurring charges
    - WebhookEvent: idempotent Razorpay webhook log
"""

import uuid

from django.conf import settings
from django.db import migrations, models
import django.db.models.deletion
import django_fsm


PAYMENT_STATUS_CHOICES = [
    ("pending", "Pending"),
    ("success", "Success"),
    ("failed", "Failed"),
    ("refunded", "Refunded"),
]


def uuid_pk():
    return models.UUIDField(
        default=uuid.uuid4,
        editable=False,
        help_text="Unique identifier for this record",
        primary_key=True,
        serialize=False,
    )


def timestamps():
    return [
        (
            "created_at",
            models.DateTimeField(
                auto_now_add=True,
                db_index=True,
                help_text="Timestamp when this record was created",
            ),
        ),
        (
            "updated_at",
            models.DateTimeField(
                auto_now=True,
                help_text="Timestamp when this record was last modified",
            ),
        ),
    ]


def payment_record_fields():
    return [
        (
            "amount_paise",
            models.PositiveBigIntegerField(
                help_text="Amount in smallest currency unit (paise)",
            ),
        ),
        (
            "currency",
            models.CharField(
                default="INR",
                help_text="ISO 4217 currency code",
                max_length=3,
            ),
        ),
        (
            "payment_reference",
            models.CharField(
                help_text="Human-readable payment reference shown to the payer",
                max_length=32,
                unique=True,
            ),
        ),
        (
            "payment_status",
            django_fsm.FSMField(
                choices=PAYMENT_STATUS_CHOICES,
                db_index=True,
                default="pending",
                help_text="Current payment status (managed by FSM)",
                max_length=50,
                protected=True,
            ),
        ),
        (
            "razorpay_order_id",
            models.CharField(
                blank=True,
                help_text="Razorpay order ID (order_xxx)",
                max_length=64,
                null=True,
                unique=True,
            ),
        ),
        (
            "razorpay_payment_id",
            models.CharField(
                blank=True,
                help_text="Razorpay payment ID (pay_xxx)",
                max_length=64,
                null=True,
                unique=True,
            ),
        ),
        (
            "razorpay_signature",
            models.CharField(
                blank=True,
                help_text="Signature returned by checkout, kept for audit",
                max_length=128,
                null=True,
            ),
        ),
        (
            "failure_reason",
            models.TextField(
                blank=True,
                help_text="Gateway error description when the payment failed",
                null=True,
            ),
        ),
    ]


class Migration(migrations.Migration):
    initial = True

    dependencies = [
        migrations.swappable_dependency(settings.AUTH_USER_MODEL),
    ]

    operations = [
        migrations.CreateModel(
            name="Donation",
            fields=[
                ("id", uuid_pk()),
                *timestamps(),
                *payment_record_fields(),
                (
                    "donor_name",
                    models.CharField(
                        help_text="Donor name as entered on the form",
                        max_length=100,
                    ),
                ),
                (
                    "donor_email",
                    models.EmailField(
                        db_index=True,
                        help_text="Donor email address for the confirmation message",
                        max_length=254,
                    ),
                ),
                (
                    "donor_phone",
                    models.CharField(
                        blank=True,
                        default="",
                        help_text="Donor phone number (optional)",
                        max_length=20,
                    ),
                ),
                (
                    "donor_address",
                    models.TextField(
                        blank=True,
                        default="",
                        help_text="Donor postal address (optional)",
                    ),
                ),
                (
                    "notes",
                    models.TextField(
                        blank=True,
                        default="",
                        help_text="Free-text message from the donor",
                    ),
                ),
                (
                    "confirmation_email_sent_at",
                    models.DateTimeField(
                        blank=True,
                        help_text="When the confirmation email was sent",
                        null=True,
                    ),
                ),
            ],
            options={
                "verbose_name": "Donation",
                "verbose_name_plural": "Donations",
                "ordering": ["-created_at"],
                "indexes": [
                    models.Index(
                        fields=["payment_status", "created_at"],
                        name="donation_status_created_idx",
                    ),
                ],
                "constraints": [
                    models.CheckConstraint(
                        condition=models.Q(("amount_paise__gt", 0)),
                        name="donation_amount_positive",
                    ),
                ],
            },
        ),
        migrations.CreateModel(
            name="Member",
            fields=[
                ("id", uuid_pk()),
                *timestamps(),
                (
                    "full_name",
                    models.CharField(help_text="Member full name", max_length=100),
                ),
                (
                    "email",
                    models.EmailField(
                        db_index=True,
                        help_text="Member contact email",
                        max_length=254,
                    ),
                ),
                (
                    "phone",
                    models.CharField(
                        blank=True,
                        default="",
                        help_text="Member phone number (optional)",
                        max_length=20,
                    ),
                ),
                (
                    "address",
                    models.TextField(
                        blank=True,
                        default="",
                        help_text="Member postal address (optional)",
                    ),
                ),
                (
                    "is_active",
                    models.BooleanField(
                        default=True,
                        help_text="Whether the member record is in use",
                    ),
                ),
                (
                    "user",
                    models.OneToOneField(
                        blank=True,
                        help_text="Login account for the member dashboard",
                        null=True,
                        on_delete=django.db.models.deletion.SET_NULL,
                        related_name="member",
                        to=settings.AUTH_USER_MODEL,
                    ),
                ),
            ],
            options={
                "verbose_name": "Member",
                "verbose_name_plural": "Members",
                "ordering": ["full_name"],
            },
        ),
        migrations.CreateModel(
            name="MembershipPlan",
            fields=[
                ("id", uuid_pk()),
                *timestamps(),
                ("name", models.CharField(help_text="Plan display name", max_length=100)),
                (
                    "description",
                    models.TextField(blank=True, default="", help_text="Plan description"),
                ),
                (
                    "plan_type",
                    models.CharField(
                        choices=[
                            ("monthly", "Monthly"),
                            ("yearly", "Yearly"),
                            ("lifetime", "Lifetime"),
                        ],
                        db_index=True,
                        help_text="Billing type: monthly, yearly or lifetime",
                        max_length=10,
                    ),
                ),
                (
                    "price_paise",
                    models.PositiveBigIntegerField(
                        help_text="Price in smallest currency unit (paise)",
                    ),
                ),
                (
                    "features",
                    models.JSONField(
                        blank=True,
                        default=list,
                        help_text="Ordered list of plan features",
                    ),
                ),
                (
                    "is_active",
                    models.BooleanField(
                        db_index=True,
                        default=True,
                        help_text="Whether the plan is offered to new members",
                    ),
                ),
                (
                    "razorpay_plan_id",
                    models.CharField(
                        blank=True,
                        help_text="Razorpay plan ID (plan_xxx), created on first checkout",
                        max_length=64,
                        null=True,
                    ),
                ),
            ],
            options={
                "verbose_name": "Membership Plan",
                "verbose_name_plural": "Membership Plans",
                "ordering": ["price_paise"],
                "constraints": [
                    models.CheckConstraint(
                        condition=models.Q(("price_paise__gt", 0)),
                        name="membership_plan_price_positive",
                    ),
                ],
            },
        ),
        migrations.CreateModel(
            name="Subscription",
            fields=[
                ("id", uuid_pk()),
                *timestamps(),
                (
                    "razorpay_subscription_id",
                    models.CharField(
                        blank=True,
                        help_text="Razorpay subscription ID (sub_xxx); empty for lifetime plans",
                        max_length=64,
                        null=True,
                        unique=True,
                    ),
                ),
                (
                    "status",
                    django_fsm.FSMField(
                        choices=[
                            ("pending", "Pending"),
                            ("active", "Active"),
                            ("paused", "Paused"),
                            ("cancelled", "Cancelled"),
                            ("expired", "Expired"),
                        ],
                        db_index=True,
                        default="pending",
                        help_text="Current state of the subscription (managed by FSM)",
                        max_length=50,
                        protected=True,
                    ),
                ),
                (
                    "start_date",
                    models.DateTimeField(
                        blank=True,
                        help_text="When the membership became active",
                        null=True,
                    ),
                ),
                (
                    "end_date",
                    models.DateTimeField(
                        blank=True,
                        help_text="End of the current paid period (empty for lifetime)",
                        null=True,
                    ),
                ),
                (
                    "next_billing_date",
                    models.DateTimeField(
                        blank=True,
                        help_text="Next scheduled charge for recurring plans",
                        null=True,
                    ),
                ),
                (
                    "cancelled_at",
                    models.DateTimeField(
                        blank=True,
                        help_text="When cancellation was requested",
                        null=True,
                    ),
                ),
                (
                    "version",
                    models.PositiveIntegerField(
                        default=1,
                        help_text="Version for optimistic locking - incremented on each save",
                    ),
                ),
                (
                    "member",
                    models.ForeignKey(
                        help_text="Member holding the subscription",
                        on_delete=django.db.models.deletion.PROTECT,
                        related_name="subscriptions",
                        to="payments.member",
                    ),
                ),
                (
                    "plan",
                    models.ForeignKey(
                        help_text="Plan purchased",
                        on_delete=django.db.models.deletion.PROTECT,
                        related_name="subscriptions",
                        to="payments.membershipplan",
                    ),
                ),
            ],
            options={
                "verbose_name": "Subscription",
                "verbose_name_plural": "Subscriptions",
                "ordering": ["-created_at"],
                "indexes": [
                    models.Index(
                        fields=["member", "status"], name="sub_member_status_idx"
                    ),
                    models.Index(fields=["status", "end_date"], name="sub_status_end_idx"),
                ],
            },
        ),
        migrations.CreateModel(
            name="Payment",
            fields=[
                ("id", uuid_pk()),
                *timestamps(),
                *payment_record_fields(),
                (
                    "payment_type",
                    models.CharField(
                        choices=[
                            ("lifetime", "Lifetime Membership"),
                            ("subscription", "Subscription Charge"),
                        ],
                        db_index=True,
                        help_text="lifetime purchase or recurring subscription charge",
                        max_length=20,
                    ),
                ),
                (
                    "receipt_url",
                    models.URLField(
                        blank=True,
                        help_text="Link to the gateway receipt",
                        null=True,
                    ),
                ),
                (
                    "member",
                    models.ForeignKey(
                        help_text="Member who paid",
                        on_delete=django.db.models.deletion.PROTECT,
                        related_name="payments",
                        to="payments.member",
                    ),
                ),
                (
                    "plan",
                    models.ForeignKey(
                        blank=True,
                        help_text="Plan paid for",
                        null=True,
                        on_delete=django.db.models.deletion.SET_NULL,
                        related_name="payments",
                        to="payments.membershipplan",
                    ),
                ),
                (
                    "subscription",
                    models.ForeignKey(
                        blank=True,
                        help_text="Subscription this payment belongs to",
                        null=True,
                        on_delete=django.db.models.deletion.SET_NULL,
                        related_name="payments",
                        to="payments.subscription",
                    ),
                ),
            ],
            options={
                "verbose_name": "Payment",
                "verbose_name_plural": "Payments",
                "ordering": ["-created_at"],
                "indexes": [
                    models.Index(
                        fields=["member", "payment_status"],
                        name="payment_member_status_idx",
                    ),
                    models.Index(
                        fields=["payment_status", "created_at"],
                        name="payment_status_created_idx",
                    ),
                ],
                "constraints": [
                    models.CheckConstraint(
                        condition=models.Q(("amount_paise__gt", 0)),
                        name="payment_amount_positive",
                    ),
                ],
            },
        ),
        migrations.CreateModel(
            name="WebhookEvent",
            fields=[
                ("id", uuid_pk()),
                *timestamps(),
                (
                    "razorpay_event_id",
                    models.CharField(
                        db_index=True,
                        help_text="Razorpay event ID - unique constraint for idempotency",
                        max_length=255,
                        unique=True,
                    ),
                ),
                (
                    "event_type",
                    models.CharField(
                        db_index=True,
                        help_text="Razorpay event name (e.g., 'payment.captured')",
                        max_length=100,
                    ),
                ),
                (
                    "payload",
                    models.JSONField(help_text="Full webhook body from Razorpay (JSON)"),
                ),
                (
                    "status",
                    models.CharField(
                        choices=[
                            ("pending", "Pending"),
                            ("processing", "Processing"),
                            ("processed", "Processed"),
                            ("failed", "Failed"),
                        ],
                        db_index=True,
                        default="pending",
                        help_text="Current processing status",
                        max_length=20,
                    ),
                ),
                (
                    "processed_at",
                    models.DateTimeField(
                        blank=True,
                        help_text="When event was successfully processed",
                        null=True,
                    ),
                ),
                (
                    "error_message",
                    models.TextField(
                        blank=True,
                        help_text="Error message if processing failed",
                        null=True,
                    ),
                ),
                (
                    "retry_count",
                    models.PositiveSmallIntegerField(
                        default=0,
                        help_text="Number of processing attempts",
                    ),
                ),
            ],
            options={
                "verbose_name": "Webhook Event",
                "verbose_name_plural": "Webhook Events",
                "ordering": ["-created_at"],
                "indexes": [
                    models.Index(
                        fields=["status", "created_at"], name="webhook_status_created_idx"
                    ),
                    models.Index(
                        fields=["event_type", "created_at"], name="webhook_type_created_idx"
                    ),
                    models.Index(
                        fields=["status", "retry_count"], name="webhook_status_retry_idx"
                    ),
                ],
            },
        ),
    ]
