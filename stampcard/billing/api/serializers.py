from django.utils import timezone
from rest_framework import serializers

from stampcard.billing.access import days_until
from stampcard.billing.models import Subscription
from stampcard.billing.plans import PLAN_CATALOG


class SubscriptionSerializer(serializers.ModelSerializer[Subscription]):
    period_label = serializers.CharField(read_only=True)
    days_remaining = serializers.SerializerMethodField()

    class Meta:
        model = Subscription
        fields = [
            "id",
            "user_id",
            "plan",
            "status",
            "stripe_subscription_id",
            "stripe_customer_id",
            "current_period_start",
            "current_period_end",
            "period_label",
            "days_remaining",
            "created",
            "modified",
        ]
        read_only_fields = fields

    def get_days_remaining(self, obj: Subscription) -> int:
        now = self.context.get("now") or timezone.now()
        return days_until(obj.current_period_end, now)


def serialize_plan_catalog() -> list[dict]:
    """Catalog entries in display order (trial first)."""
    return [
        {
            "plan": str(definition.kind),
            "name": str(definition.kind.label),
            "duration": definition.interval.phrase,
            "price_cents": definition.price_cents,
            "features": definition.features.as_dict(),
        }
        for definition in PLAN_CATALOG.values()
    ]
