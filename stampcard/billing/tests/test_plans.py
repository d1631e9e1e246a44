"""
Tests for the static plan catalog.
"""

import pytest

from stampcard.billing.constants import PlanKind
from stampcard.billing.exceptions import InvalidPlanKind
from stampcard.billing.plans import PLAN_CATALOG
from stampcard.billing.plans import TRIAL_FEATURES
from stampcard.billing.plans import duration_phrase_for
from stampcard.billing.plans import features_for
from stampcard.billing.plans import interval_for
from stampcard.billing.plans import parse_plan_kind
from stampcard.billing.plans import plan_features
from stampcard.billing.plans import price_cents_for


class TestParsePlanKind:
    @pytest.mark.parametrize(
        ("raw", "expected"),
        [
            ("trial", PlanKind.TRIAL),
            ("monthly", PlanKind.MONTHLY),
            ("Semiannual", PlanKind.SEMIANNUAL),
            (" ANNUAL ", PlanKind.ANNUAL),
            (PlanKind.MONTHLY, PlanKind.MONTHLY),
        ],
    )
    def test_accepts_known_plans(self, raw, expected):
        assert parse_plan_kind(raw) == expected

    @pytest.mark.parametrize("raw", ["weekly", "", "   ", None, 12])
    def test_rejects_unknown_plans(self, raw):
        with pytest.raises(InvalidPlanKind) as exc_info:
            parse_plan_kind(raw)
        assert exc_info.value.plan == raw

    def test_invalid_plan_is_a_value_error(self):
        with pytest.raises(ValueError, match="weekly"):
            parse_plan_kind("weekly")


class TestCatalog:
    def test_every_plan_kind_is_in_the_catalog(self):
        assert set(PLAN_CATALOG) == set(PlanKind)

    def test_intervals(self):
        assert interval_for("trial").days == 30  # noqa: PLR2004
        assert interval_for("trial").months == 0
        assert interval_for("monthly").months == 1
        assert interval_for("semiannual").months == 6  # noqa: PLR2004
        assert interval_for("annual").months == 12  # noqa: PLR2004

    def test_duration_phrases(self):
        assert duration_phrase_for(PlanKind.TRIAL) == "30 days"
        assert duration_phrase_for(PlanKind.MONTHLY) == "1 month"
        assert duration_phrase_for(PlanKind.SEMIANNUAL) == "6 months"
        assert duration_phrase_for(PlanKind.ANNUAL) == "1 year"

    def test_prices(self):
        assert price_cents_for("trial") == 0
        assert price_cents_for("monthly") == 299  # noqa: PLR2004
        assert price_cents_for("semiannual") == 999  # noqa: PLR2004
        assert price_cents_for("annual") == 1999  # noqa: PLR2004

    def test_trial_features_are_limited(self):
        features = features_for("trial")
        assert features == TRIAL_FEATURES
        assert features.max_customers == 100  # noqa: PLR2004
        assert features.max_branches == 1
        assert not features.advanced_analytics
        assert not features.api_access

    def test_monthly_features(self):
        features = features_for("monthly")
        assert features.max_customers is None
        assert features.max_branches is None
        assert features.advanced_analytics
        assert features.priority_support
        assert not features.custom_branding
        assert not features.api_access

    @pytest.mark.parametrize("plan", ["semiannual", "annual"])
    def test_long_plans_unlock_everything(self, plan):
        features = plan_features(plan)
        assert features.custom_branding
        assert features.api_access
        assert features.max_customers is None

    def test_features_for_unknown_plan_raises(self):
        with pytest.raises(InvalidPlanKind):
            features_for("enterprise")

    def test_feature_dict_uses_null_for_unlimited(self):
        data = features_for("annual").as_dict()
        assert data["max_customers"] is None
        assert data["api_access"] is True
