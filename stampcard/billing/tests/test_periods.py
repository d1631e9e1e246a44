"""
Tests for billing period arithmetic.

Month addition clamps to the end of shorter months; the trial is a literal
30 days.
"""

from datetime import UTC
from datetime import datetime
from datetime import timedelta
from datetime import timezone

import pytest

from stampcard.billing.constants import PlanKind
from stampcard.billing.exceptions import InvalidPlanKind
from stampcard.billing.periods import add_months
from stampcard.billing.periods import compute_period_end
from stampcard.billing.periods import format_period_label


def utc(*args) -> datetime:
    return datetime(*args, tzinfo=UTC)


class TestAddMonths:
    def test_clamps_to_end_of_february(self):
        assert add_months(utc(2025, 1, 31), 1) == utc(2025, 2, 28)

    def test_clamps_to_leap_day(self):
        assert add_months(utc(2024, 1, 31), 1) == utc(2024, 2, 29)

    def test_rolls_over_year(self):
        assert add_months(utc(2025, 11, 15, 9, 30), 3) == utc(2026, 2, 15, 9, 30)

    def test_clamp_is_not_carried_forward(self):
        february = add_months(utc(2025, 1, 31), 1)
        assert add_months(february, 1) == utc(2025, 3, 28)

    def test_preserves_time_of_day(self):
        assert add_months(utc(2025, 3, 10, 23, 59, 59), 1) == utc(2025, 4, 10, 23, 59, 59)


class TestComputePeriodEnd:
    def test_monthly_from_january_31(self):
        assert compute_period_end(utc(2025, 1, 31), PlanKind.MONTHLY) == utc(2025, 2, 28)

    def test_semiannual_from_august_31(self):
        assert compute_period_end(utc(2025, 8, 31), "semiannual") == utc(2026, 2, 28)

    def test_annual_from_leap_day(self):
        assert compute_period_end(utc(2024, 2, 29), "annual") == utc(2025, 2, 28)

    def test_trial_is_thirty_literal_days(self):
        start = utc(2025, 1, 31, 12)
        assert compute_period_end(start, "trial") == start + timedelta(days=30)

    @pytest.mark.parametrize("plan", list(PlanKind))
    @pytest.mark.parametrize(
        "start",
        [
            utc(2025, 1, 1),
            utc(2025, 1, 31, 8, 15),
            utc(2024, 2, 29),
            utc(2025, 12, 31, 23, 59, 59),
        ],
    )
    def test_end_is_after_start_and_deterministic(self, plan, start):
        end = compute_period_end(start, plan)
        assert end > start
        assert compute_period_end(start, plan) == end

    def test_unknown_plan_raises(self):
        with pytest.raises(InvalidPlanKind):
            compute_period_end(utc(2025, 1, 1), "weekly")


class TestFormatPeriodLabel:
    def test_monthly_label(self):
        label = format_period_label(utc(2025, 1, 31), utc(2025, 2, 28), "monthly")
        assert label == "01/31/2025 – 02/28/2025 (1 month)"

    def test_trial_label(self):
        label = format_period_label(utc(2025, 3, 1), utc(2025, 3, 31), "trial")
        assert label == "03/01/2025 – 03/31/2025 (30 days)"

    def test_label_renders_in_utc(self):
        brisbane = timezone(timedelta(hours=10))
        start = datetime(2025, 1, 1, 5, tzinfo=brisbane)
        label = format_period_label(start, utc(2026, 1, 1), "annual")
        assert label == "12/31/2024 – 01/01/2026 (1 year)"
