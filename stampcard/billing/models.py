"""
Billing models for Stampcard subscriptions.

Key design decisions:
- Plans are a static catalog (see plans.py), the row only stores the plan kind
- A user's authoritative subscription is their most recently created row
- Rows are never deleted; cancellation and expiry are status transitions
- current_period_end is always derived from current_period_start and the plan
  (or supplied by Stripe), never edited by hand
"""

from django.db import models
from django.utils import timezone
from model_utils.models import TimeStampedModel

from stampcard.billing.constants import PlanKind
from stampcard.billing.constants import SubscriptionStatus
from stampcard.billing.periods import format_period_label


class SubscriptionQuerySet(models.QuerySet):
    def for_user(self, user_id: str):
        return self.filter(user_id=user_id)

    def latest_first(self):
        return self.order_by("-created", "-pk")

    def active(self):
        return self.filter(status=SubscriptionStatus.ACTIVE)


class Subscription(TimeStampedModel):
    """
    Billing subscription for a restaurant owner.

    ``created`` and ``modified`` come from TimeStampedModel and are managed
    by the store; callers never set them.

    Usage:
        subscription = Subscription.objects.for_user(user_id).latest_first().first()
        subscription.is_current  # active and inside its paid period
    """

    user_id = models.CharField(
        max_length=64,
        db_index=True,
        help_text="External auth user id that owns this subscription.",
    )
    plan = models.CharField(
        max_length=20,
        choices=PlanKind.choices,
    )
    status = models.CharField(
        max_length=20,
        choices=SubscriptionStatus.choices,
        default=SubscriptionStatus.ACTIVE,
    )

    # Stripe integration (blank for trials and one-time payments)
    stripe_subscription_id = models.CharField(
        max_length=255,
        blank=True,
        default="",
        help_text="Stripe Subscription ID (sub_xxx).",
    )
    stripe_customer_id = models.CharField(
        max_length=255,
        blank=True,
        default="",
        help_text="Stripe Customer ID (cus_xxx).",
    )

    # Billing period: inclusive start, exclusive end
    current_period_start = models.DateTimeField(
        help_text="Start of current billing period.",
    )
    current_period_end = models.DateTimeField(
        help_text="End of current billing period.",
    )

    objects = SubscriptionQuerySet.as_manager()

    class Meta:
        indexes = [
            models.Index(fields=["status"], name="billing_sub_status_idx"),
            models.Index(fields=["stripe_customer_id"], name="billing_sub_customer_idx"),
            models.Index(fields=["user_id", "-created"], name="billing_sub_user_created_idx"),
        ]
        constraints = [
            models.UniqueConstraint(
                fields=["stripe_subscription_id"],
                condition=~models.Q(stripe_subscription_id=""),
                name="billing_unique_stripe_subscription_id",
            ),
            # Serialises first inserts for a user that has no row to lock yet
            models.UniqueConstraint(
                fields=["user_id"],
                condition=~models.Q(
                    status__in=[
                        SubscriptionStatus.CANCELLED,
                        SubscriptionStatus.EXPIRED,
                    ],
                ),
                name="billing_one_open_subscription_per_user",
            ),
            models.CheckConstraint(
                condition=models.Q(current_period_end__gt=models.F("current_period_start")),
                name="billing_period_end_after_start",
            ),
        ]

    def __str__(self) -> str:
        return f"{self.user_id} - {self.plan} ({self.status})"

    @property
    def period_label(self) -> str:
        return format_period_label(
            self.current_period_start,
            self.current_period_end,
            self.plan,
        )

    @property
    def is_current(self) -> bool:
        """True if active and the paid period has not ended."""
        return (
            self.status == SubscriptionStatus.ACTIVE
            and timezone.now() < self.current_period_end
        )
