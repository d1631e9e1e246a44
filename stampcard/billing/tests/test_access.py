"""
Tests for access evaluation.
"""

from datetime import UTC
from datetime import datetime
from datetime import timedelta
from unittest.mock import MagicMock

import pytest
from django.db import OperationalError

from stampcard.billing.access import AccessEvaluator
from stampcard.billing.access import days_until
from stampcard.billing.access import evaluate_access
from stampcard.billing.access import plan_features
from stampcard.billing.constants import PlanKind
from stampcard.billing.constants import SubscriptionStatus
from stampcard.billing.exceptions import StoreUnavailable
from stampcard.billing.models import Subscription
from stampcard.billing.plans import FULL_FEATURES
from stampcard.billing.plans import TRIAL_FEATURES
from stampcard.billing.tests.factories import SubscriptionFactory

NOW = datetime(2025, 6, 15, 9, tzinfo=UTC)


def make_subscription(end, *, plan=PlanKind.MONTHLY, status=SubscriptionStatus.ACTIVE):
    return Subscription(
        user_id="user-1",
        plan=plan,
        status=status,
        current_period_start=end - timedelta(days=30),
        current_period_end=end,
    )


class TestEvaluateAccess:
    def test_new_user_gets_trial_access(self):
        decision = evaluate_access(None, now=NOW)
        assert decision.has_access
        assert decision.features == TRIAL_FEATURES
        assert decision.days_remaining == 30  # noqa: PLR2004
        assert decision.plan is None

    def test_expired_one_second_ago(self):
        decision = evaluate_access(make_subscription(NOW - timedelta(seconds=1)), now=NOW)
        assert not decision.has_access
        assert decision.days_remaining == 0

    def test_one_day_left(self):
        decision = evaluate_access(make_subscription(NOW + timedelta(days=1)), now=NOW)
        assert decision.has_access
        assert decision.days_remaining == 1

    def test_partial_day_rounds_up(self):
        decision = evaluate_access(make_subscription(NOW + timedelta(hours=1)), now=NOW)
        assert decision.has_access
        assert decision.days_remaining == 1

    def test_period_end_is_exclusive(self):
        decision = evaluate_access(make_subscription(NOW), now=NOW)
        assert not decision.has_access
        assert decision.days_remaining == 0

    @pytest.mark.parametrize(
        "status",
        [
            SubscriptionStatus.CANCELLED,
            SubscriptionStatus.EXPIRED,
            SubscriptionStatus.PAST_DUE,
        ],
    )
    def test_inactive_status_denies_access(self, status):
        decision = evaluate_access(
            make_subscription(NOW + timedelta(days=10), status=status),
            now=NOW,
        )
        assert not decision.has_access
        assert decision.days_remaining == 10  # noqa: PLR2004

    def test_features_follow_plan(self):
        decision = evaluate_access(
            make_subscription(NOW + timedelta(days=100), plan=PlanKind.ANNUAL),
            now=NOW,
        )
        assert decision.features == FULL_FEATURES
        assert decision.plan == "annual"
        assert decision.status == "active"
        assert decision.period_label.endswith("(1 year)")

    def test_as_dict(self):
        data = evaluate_access(None, now=NOW).as_dict()
        assert data["has_access"] is True
        assert data["days_remaining"] == 30  # noqa: PLR2004
        assert data["features"]["max_customers"] == 100  # noqa: PLR2004


def test_days_until_never_negative():
    assert days_until(NOW - timedelta(days=3), NOW) == 0
    assert days_until(NOW + timedelta(days=2, seconds=1), NOW) == 3  # noqa: PLR2004


def test_plan_features_is_exported():
    assert plan_features("trial") == TRIAL_FEATURES


@pytest.mark.django_db
class TestAccessEvaluator:
    def test_user_without_subscription(self):
        decision = AccessEvaluator(clock=lambda: NOW).evaluate("nobody")
        assert decision.has_access
        assert decision.days_remaining == 30  # noqa: PLR2004

    def test_uses_latest_subscription(self):
        SubscriptionFactory(
            user_id="user-1",
            status=SubscriptionStatus.CANCELLED,
            current_period_start=NOW - timedelta(days=90),
        )
        SubscriptionFactory(
            user_id="user-1",
            plan=PlanKind.SEMIANNUAL,
            current_period_start=NOW - timedelta(days=1),
        )

        decision = AccessEvaluator(clock=lambda: NOW).evaluate("user-1")

        assert decision.has_access
        assert decision.plan == "semiannual"

    def test_fails_open_when_store_is_down(self):
        store = MagicMock()
        store.get_active_subscription.side_effect = StoreUnavailable("down")

        decision = AccessEvaluator(store=store, fail_open=True).evaluate("user-1")

        assert decision.has_access
        assert decision.features == TRIAL_FEATURES

    def test_fails_closed_when_configured(self):
        store = MagicMock()
        store.get_active_subscription.side_effect = OperationalError("down")

        decision = AccessEvaluator(store=store, fail_open=False).evaluate("user-1")

        assert not decision.has_access
        assert decision.days_remaining == 0

    def test_fail_open_follows_setting(self, settings):
        settings.BILLING_ACCESS_FAIL_OPEN = False
        assert AccessEvaluator().fail_open is False

    def test_unknown_stored_plan_does_not_raise(self):
        store = MagicMock()
        store.get_active_subscription.return_value = make_subscription(
            NOW + timedelta(days=5),
            plan="weekly",
        )

        decision = AccessEvaluator(store=store, fail_open=True, clock=lambda: NOW).evaluate(
            "user-1",
        )

        assert decision.has_access
        assert decision.features == TRIAL_FEATURES
