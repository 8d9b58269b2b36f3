"""
Subscription model for membership terms.

A Subscription ties a Member to a MembershipPlan. Recurring plans carry the
Razorpay subscription ID; lifetime plans have none and never expire.

Usage:
    from payments.models import Subscription
    from payments.state_machines import SubscriptionStatus

    subscription = Subscription.objects.create(
        member=member,
        plan=plan,
        razorpay_subscription_id="sub_xxx",
    )

    # State transitions using django-fsm
    subscription.activate(start=timezone.now())  # pending -> active
    subscription.save()
"""

from __future__ import annotations

import calendar
from datetime import datetime

from django.db import models
from django.db.models import F
from django.utils import timezone
from django_fsm import FSMField, transition

from core.models import BaseModel
from core.model_mixins import UUIDPrimaryKeyMixin

from payments.state_machines import MembershipType, SubscriptionStatus


def add_billing_period(start: datetime, plan_type: str) -> datetime | None:
    """
    Return the end of one billing period starting at ``start``.

    Month arithmetic clamps to the last day of the target month, so a term
    starting 31 January ends 28/29 February.

    Args:
        start: Period start
        plan_type: MembershipType value

    Returns:
        Period end, or None for lifetime plans
    """
    if plan_type == MembershipType.LIFETIME:
        return None

    months = 1 if plan_type == MembershipType.MONTHLY else 12
    month_index = start.month - 1 + months
    year = start.year + month_index // 12
    month = month_index % 12 + 1
    day = min(start.day, calendar.monthrange(year, month)[1])
    return start.replace(year=year, month=month, day=day)


class Subscription(UUIDPrimaryKeyMixin, BaseModel):
    """
    Tracks a member's membership term.

    Uses django-fsm for state machine management and optimistic
    locking via version field for concurrency control.

    State Flow:
        PENDING -> ACTIVE (checkout verified or subscription.activated)
        ACTIVE -> PAUSED -> ACTIVE (gateway pause/resume)
        ACTIVE/PAUSED -> CANCELLED (member cancels, period kept)
        ACTIVE/PAUSED/CANCELLED -> EXPIRED (gateway ends the mandate)

    Fields:
        member: Member holding the subscription
        plan: Plan purchased
        razorpay_subscription_id: Gateway subscription ID (sub_xxx), None for lifetime
        status: Current FSM state
        start_date: When the membership became active
        end_date: End of the paid period (None for lifetime)
        next_billing_date: Next scheduled charge (recurring only)
        cancelled_at: When cancellation was requested
        version: Optimistic locking version
    """

    # ==========================================================================
    # Relationships
    # ==========================================================================

    member = models.ForeignKey(
        "payments.Member",
        on_delete=models.PROTECT,
        related_name="subscriptions",
        help_text="Member holding the subscription",
    )

    plan = models.ForeignKey(
        "payments.MembershipPlan",
        on_delete=models.PROTECT,
        related_name="subscriptions",
        help_text="Plan purchased",
    )

    # ==========================================================================
    # Razorpay Integration
    # ==========================================================================

    razorpay_subscription_id = models.CharField(
        max_length=64,
        null=True,
        blank=True,
        unique=True,
        help_text="Razorpay subscription ID (sub_xxx); empty for lifetime plans",
    )

    # ==========================================================================
    # State
    # ==========================================================================

    status = FSMField(
        default=SubscriptionStatus.PENDING,
        choices=SubscriptionStatus.choices,
        db_index=True,
        protected=True,
        help_text="Current state of the subscription (managed by FSM)",
    )

    # ==========================================================================
    # Billing Period
    # ==========================================================================

    start_date = models.DateTimeField(
        null=True,
        blank=True,
        help_text="When the membership became active",
    )

    end_date = models.DateTimeField(
        null=True,
        blank=True,
        help_text="End of the current paid period (empty for lifetime)",
    )

    next_billing_date = models.DateTimeField(
        null=True,
        blank=True,
        help_text="Next scheduled charge for recurring plans",
    )

    cancelled_at = models.DateTimeField(
        null=True,
        blank=True,
        help_text="When cancellation was requested",
    )

    # ==========================================================================
    # Concurrency Control
    # ==========================================================================

    version = models.PositiveIntegerField(
        default=1,
        help_text="Version for optimistic locking - incremented on each save",
    )

    # ==========================================================================
    # Meta & Methods
    # ==========================================================================

    class Meta:
        ordering = ["-created_at"]
        verbose_name = "Subscription"
        verbose_name_plural = "Subscriptions"
        indexes = [
            models.Index(fields=["member", "status"], name="sub_member_status_idx"),
            models.Index(fields=["status", "end_date"], name="sub_status_end_idx"),
        ]

    def __str__(self) -> str:
        """Return string representation with ID, state and plan."""
        return f"Subscription({self.id}, {self.status}, plan={self.plan_id})"

    def save(self, *args, **kwargs):
        """
        Save with version auto-increment for optimistic locking.
        """
        is_update = self.pk and not self._state.adding and not kwargs.get("force_insert", False)
        if is_update:
            self.version = F("version") + 1
        super().save(*args, **kwargs)
        if is_update:
            self.refresh_from_db(fields=["version"])

    # ==========================================================================
    # State Transitions (django-fsm)
    # ==========================================================================

    @transition(
        field=status,
        source=SubscriptionStatus.PENDING,
        target=SubscriptionStatus.ACTIVE,
    )
    def activate(
        self,
        start: datetime | None = None,
        end: datetime | None = None,
        next_billing: datetime | None = None,
    ):
        """
        Activate the subscription once the gateway confirms payment.

        Transition: PENDING -> ACTIVE

        Lifetime plans get no end date. Recurring plans default to one
        billing period from ``start`` when the gateway gives no dates.
        """
        self.start_date = start or timezone.now()
        if self.plan.is_lifetime:
            self.end_date = None
            self.next_billing_date = None
            return
        period_end = add_billing_period(self.start_date, self.plan.plan_type)
        self.end_date = end or period_end
        self.next_billing_date = next_billing or period_end

    @transition(
        field=status,
        source=SubscriptionStatus.ACTIVE,
        target=SubscriptionStatus.PAUSED,
    )
    def pause(self):
        """
        Pause billing at the gateway's request.

        Transition: ACTIVE -> PAUSED
        """
        pass

    @transition(
        field=status,
        source=SubscriptionStatus.PAUSED,
        target=SubscriptionStatus.ACTIVE,
    )
    def resume(self):
        """
        Resume billing after a pause.

        Transition: PAUSED -> ACTIVE
        """
        pass

    @transition(
        field=status,
        source=[SubscriptionStatus.ACTIVE, SubscriptionStatus.PAUSED],
        target=SubscriptionStatus.CANCELLED,
    )
    def cancel(self):
        """
        Cancel the subscription.

        Transition: ACTIVE/PAUSED -> CANCELLED

        The paid period is left intact: end_date and next_billing_date are
        not touched, so access continues until the period ends.
        """
        self.cancelled_at = timezone.now()

    @transition(
        field=status,
        source=[
            SubscriptionStatus.ACTIVE,
            SubscriptionStatus.PAUSED,
            SubscriptionStatus.CANCELLED,
        ],
        target=SubscriptionStatus.EXPIRED,
    )
    def expire(self, ended_at: datetime | None = None):
        """
        Mark the subscription as ended by the gateway.

        Transition: ACTIVE/PAUSED/CANCELLED -> EXPIRED
        """
        self.end_date = ended_at or timezone.now()
        self.next_billing_date = None

    # ==========================================================================
    # Helper Properties
    # ==========================================================================

    @property
    def is_active(self) -> bool:
        """Check if subscription is currently active."""
        return self.status == SubscriptionStatus.ACTIVE

    @property
    def is_lifetime(self) -> bool:
        """Check if the subscription is for a lifetime plan."""
        return self.plan.is_lifetime

    @property
    def has_access(self) -> bool:
        """
        Check if the member currently enjoys membership benefits.

        Cancelled recurring subscriptions keep access until end_date.
        """
        if self.status in (SubscriptionStatus.ACTIVE, SubscriptionStatus.PAUSED):
            return True
        if self.status == SubscriptionStatus.CANCELLED and self.end_date:
            return self.end_date > timezone.now()
        return False
