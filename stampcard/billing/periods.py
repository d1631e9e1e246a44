"""
Billing period arithmetic.

Period ends are always derived from a period start and a plan kind:

- trial adds a literal 30 days
- monthly / semiannual / annual add calendar months

Month addition clamps to the last valid day of the target month, so
Jan 31 + 1 month is Feb 28 (Feb 29 in leap years) and Aug 31 + 6 months is
Feb 28/29. The clamped day is not carried into later periods: each period is
computed from its own start.
"""

from __future__ import annotations

import calendar
from datetime import UTC
from datetime import datetime
from datetime import timedelta

from stampcard.billing.plans import duration_phrase_for
from stampcard.billing.plans import interval_for

PERIOD_LABEL_DATE_FORMAT = "%m/%d/%Y"


def add_months(instant: datetime, months: int) -> datetime:
    """
    Add calendar months to ``instant``, clamping the day of month.

    Time of day and tzinfo are preserved.
    """
    month_index = instant.month - 1 + months
    year = instant.year + month_index // 12
    month = month_index % 12 + 1
    last_day = calendar.monthrange(year, month)[1]
    return instant.replace(year=year, month=month, day=min(instant.day, last_day))


def compute_period_end(period_start: datetime, plan) -> datetime:
    """
    Return the exclusive end of the billing period starting at ``period_start``.

    Raises:
        InvalidPlanKind: if ``plan`` is not in the catalog.
    """
    interval = interval_for(plan)
    end = add_months(period_start, interval.months) if interval.months else period_start
    if interval.days:
        end += timedelta(days=interval.days)
    return end


def _as_utc(value: datetime) -> datetime:
    if value.tzinfo is None:
        return value
    return value.astimezone(UTC)


def format_period_label(start: datetime, end: datetime, plan) -> str:
    """
    Human label for a billing period, e.g. "01/31/2025 – 02/28/2025 (1 month)".

    Dates are rendered in UTC.
    """
    return "{} – {} ({})".format(
        _as_utc(start).strftime(PERIOD_LABEL_DATE_FORMAT),
        _as_utc(end).strftime(PERIOD_LABEL_DATE_FORMAT),
        duration_phrase_for(plan),
    )
