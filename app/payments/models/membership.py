"""
Member and MembershipPlan models.

Usage:
    from payments.models import Member, MembershipPlan
    from payments.state_machines import MembershipType

    plan = MembershipPlan.objects.create(
        name="Supporter",
        plan_type=MembershipType.MONTHLY,
        price_paise=50_000,
        features=["Quarterly newsletter", "Annual meet invite"],
    )

    member = Member.objects.create(user=user, full_name="Asha Rao", email=user.email)
"""

from __future__ import annotations

from decimal import Decimal

from django.conf import settings
from django.db import models

from core.models import BaseModel
from core.model_mixins import UUIDPrimaryKeyMixin

from payments.state_machines import MembershipType


class Member(UUIDPrimaryKeyMixin, BaseModel):
    """
    A person holding (or applying for) a membership.

    Fields:
        user: Login account, when the member has one
        full_name: Name used for checkout prefill and exports
        email: Contact email
        phone: Optional phone number
        address: Optional postal address
        is_active: Whether the member record is in use
    """

    user = models.OneToOneField(
        settings.AUTH_USER_MODEL,
        on_delete=models.SET_NULL,
        null=True,
        blank=True,
        related_name="member",
        help_text="Login account for the member dashboard",
    )

    full_name = models.CharField(
        max_length=100,
        help_text="Member full name",
    )

    email = models.EmailField(
        db_index=True,
        help_text="Member contact email",
    )

    phone = models.CharField(
        max_length=20,
        blank=True,
        default="",
        help_text="Member phone number (optional)",
    )

    address = models.TextField(
        blank=True,
        default="",
        help_text="Member postal address (optional)",
    )

    is_active = models.BooleanField(
        default=True,
        help_text="Whether the member record is in use",
    )

    class Meta:
        ordering = ["full_name"]
        verbose_name = "Member"
        verbose_name_plural = "Members"

    def __str__(self) -> str:
        """Return the member's name and email."""
        return f"{self.full_name} <{self.email}>"

    def is_owned_by(self, user) -> bool:
        """Check whether a request user may act for this member."""
        if user is None or not user.is_authenticated:
            return False
        return user.is_staff or self.user_id == user.pk


class MembershipPlan(UUIDPrimaryKeyMixin, BaseModel):
    """
    A purchasable membership plan.

    Lifetime plans are sold with a one-time order; monthly and yearly plans
    are billed through a Razorpay plan + subscription pair. The Razorpay plan
    is created lazily on first checkout and its ID cached here.

    Fields:
        name: Display name
        description: Marketing description
        plan_type: monthly, yearly or lifetime
        price_paise: Price per billing cycle (or one-off) in paise
        features: Ordered list of feature strings
        is_active: Whether the plan is offered
        razorpay_plan_id: Cached Razorpay plan ID (plan_xxx)
    """

    name = models.CharField(
        max_length=100,
        help_text="Plan display name",
    )

    description = models.TextField(
        blank=True,
        default="",
        help_text="Plan description",
    )

    plan_type = models.CharField(
        max_length=10,
        choices=MembershipType.choices,
        db_index=True,
        help_text="Billing type: monthly, yearly or lifetime",
    )

    price_paise = models.PositiveBigIntegerField(
        help_text="Price in smallest currency unit (paise)",
    )

    features = models.JSONField(
        default=list,
        blank=True,
        help_text="Ordered list of plan features",
    )

    is_active = models.BooleanField(
        default=True,
        db_index=True,
        help_text="Whether the plan is offered to new members",
    )

    razorpay_plan_id = models.CharField(
        max_length=64,
        null=True,
        blank=True,
        help_text="Razorpay plan ID (plan_xxx), created on first checkout",
    )

    class Meta:
        ordering = ["price_paise"]
        verbose_name = "Membership Plan"
        verbose_name_plural = "Membership Plans"
        constraints = [
            models.CheckConstraint(
                condition=models.Q(price_paise__gt=0),
                name="membership_plan_price_positive",
            ),
        ]

    def __str__(self) -> str:
        """Return the plan name and type."""
        return f"{self.name} ({self.get_plan_type_display()})"

    @property
    def price(self) -> Decimal:
        """Price in major currency units (rupees)."""
        return Decimal(self.price_paise) / 100

    @property
    def is_lifetime(self) -> bool:
        """Check if the plan is a one-time lifetime membership."""
        return self.plan_type == MembershipType.LIFETIME

    @property
    def is_recurring(self) -> bool:
        """Check if the plan bills on a schedule."""
        return self.plan_type in (MembershipType.MONTHLY, MembershipType.YEARLY)
