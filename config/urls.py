from django.conf import settings
from django.contrib import admin
from django.urls import include
from django.urls import path

urlpatterns = [
    # Admin URLs...
    path(settings.ADMIN_URL, admin.site.urls),
    # Billing API
    path(
        "api/v1/billing/",
        include("stampcard.billing.urls", namespace="billing"),
    ),
    # Stripe webhooks (dj-stripe verifies signatures and fires WEBHOOK_SIGNALS)
    path("stripe/", include("djstripe.urls", namespace="djstripe")),
]
