"""
URL configuration for the billing API.

Routes (mounted under /api/v1/billing/):
- plans/                              - Plan catalog
- plans/<plan>/features/              - Features for one plan
- access/                             - Access decision for the current user
- trial/                              - Start a trial (POST)
- admin/session/                      - Start (POST) / end (DELETE) admin session
- admin/stats/                        - Subscription statistics
- admin/subscriptions/                - Recent subscriptions
- scheduled/expire-subscriptions/     - Expiry sweep (POST, worker only)

Stripe webhooks are served by dj-stripe under /stripe/.
"""

from django.urls import path

from stampcard.billing.api.views import AccessView
from stampcard.billing.api.views import AdminSessionView
from stampcard.billing.api.views import AdminStatsView
from stampcard.billing.api.views import AdminSubscriptionListView
from stampcard.billing.api.views import ExpireSubscriptionsView
from stampcard.billing.api.views import PlanFeaturesView
from stampcard.billing.api.views import PlanListView
from stampcard.billing.api.views import TrialSignupView

app_name = "billing"

urlpatterns = [
    path("plans/", PlanListView.as_view(), name="plans"),
    path(
        "plans/<str:plan>/features/",
        PlanFeaturesView.as_view(),
        name="plan-features",
    ),
    path("access/", AccessView.as_view(), name="access"),
    path("trial/", TrialSignupView.as_view(), name="trial"),
    path("admin/session/", AdminSessionView.as_view(), name="admin-session"),
    path("admin/stats/", AdminStatsView.as_view(), name="admin-stats"),
    path(
        "admin/subscriptions/",
        AdminSubscriptionListView.as_view(),
        name="admin-subscriptions",
    ),
    path(
        "scheduled/expire-subscriptions/",
        ExpireSubscriptionsView.as_view(),
        name="expire-subscriptions",
    ),
]
