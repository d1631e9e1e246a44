"""
Subscription statistics for the super-admin dashboard.
"""

from __future__ import annotations

from dataclasses import asdict
from dataclasses import dataclass

from django.db.models import Count
from django.db.models import Q

from stampcard.billing.constants import PlanKind
from stampcard.billing.constants import SubscriptionStatus
from stampcard.billing.models import Subscription
from stampcard.billing.plans import price_cents_for

# Rows counted towards revenue: paid at some point, not cancelled
REVENUE_STATUSES = (SubscriptionStatus.ACTIVE, SubscriptionStatus.EXPIRED)


@dataclass(frozen=True)
class SubscriptionStats:
    total: int
    active: int
    trial: int
    paid: int
    revenue_cents: int
    churn_rate: float

    def as_dict(self) -> dict:
        return asdict(self)


def subscription_statistics() -> SubscriptionStats:
    """
    Aggregate counts across all subscription rows.

    revenue_cents is total revenue generated (one period per row), not MRR.
    churn_rate is cancelled rows as a percentage of all rows.
    """
    counts = Subscription.objects.aggregate(
        total=Count("pk"),
        active=Count("pk", filter=Q(status=SubscriptionStatus.ACTIVE)),
        trial=Count("pk", filter=Q(plan=PlanKind.TRIAL)),
        paid=Count(
            "pk",
            filter=Q(status=SubscriptionStatus.ACTIVE) & ~Q(plan=PlanKind.TRIAL),
        ),
        cancelled=Count("pk", filter=Q(status=SubscriptionStatus.CANCELLED)),
    )

    revenue_cents = 0
    by_plan = (
        Subscription.objects.filter(status__in=REVENUE_STATUSES)
        .values("plan")
        .annotate(rows=Count("pk"))
    )
    for row in by_plan:
        revenue_cents += price_cents_for(row["plan"]) * row["rows"]

    total = counts["total"]
    churn_rate = (counts["cancelled"] / total) * 100 if total else 0.0

    return SubscriptionStats(
        total=total,
        active=counts["active"],
        trial=counts["trial"],
        paid=counts["paid"],
        revenue_cents=revenue_cents,
        churn_rate=round(churn_rate, 2),
    )


def recent_subscriptions(limit: int = 100):
    return Subscription.objects.latest_first()[:limit]
