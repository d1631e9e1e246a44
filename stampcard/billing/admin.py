"""
Django admin configuration for billing models.
"""

from django.contrib import admin

from stampcard.billing.models import Subscription


@admin.register(Subscription)
class SubscriptionAdmin(admin.ModelAdmin):
    """Admin for restaurant owner subscriptions."""

    list_display = [
        "user_id",
        "plan",
        "status",
        "current_period_start",
        "current_period_end",
        "stripe_subscription_id",
        "created",
    ]
    list_filter = ["status", "plan"]
    search_fields = ["user_id", "stripe_customer_id", "stripe_subscription_id"]
    ordering = ["-created"]
    readonly_fields = ["period_label", "created", "modified"]

    fieldsets = [
        (None, {"fields": ["user_id", "plan", "status"]}),
        (
            "Stripe",
            {"fields": ["stripe_customer_id", "stripe_subscription_id"]},
        ),
        (
            "Billing Period",
            {
                "fields": [
                    "current_period_start",
                    "current_period_end",
                    "period_label",
                ],
                "description": "Periods are set by webhooks. Edit with care.",
            },
        ),
        ("Timestamps", {"fields": ["created", "modified"]}),
    ]

    @admin.display(description="Period")
    def period_label(self, obj: Subscription) -> str:
        if obj.pk is None:
            return "-"
        return obj.period_label
