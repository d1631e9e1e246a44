"""
Plan catalog: billing intervals and feature entitlements per plan kind.

The catalog is static. Plans are not stored in the database; the
Subscription row only records the PlanKind value. Unknown plan identifiers
always raise InvalidPlanKind. Nothing in this module falls back to a default
plan.
"""

from __future__ import annotations

from dataclasses import asdict
from dataclasses import dataclass

from stampcard.billing.constants import PLAN_PRICE_CENTS
from stampcard.billing.constants import TRIAL_DURATION_DAYS
from stampcard.billing.constants import PlanKind
from stampcard.billing.exceptions import InvalidPlanKind


@dataclass(frozen=True)
class CalendarInterval:
    """
    Length of one billing period.

    ``months`` is calendar-relative (added with month arithmetic), ``days`` is
    a literal day count. Only the trial uses days.
    """

    months: int = 0
    days: int = 0

    @property
    def phrase(self) -> str:
        if self.days:
            return f"{self.days} days"
        if self.months == 12:  # noqa: PLR2004
            return "1 year"
        if self.months == 1:
            return "1 month"
        return f"{self.months} months"


@dataclass(frozen=True)
class FeatureSet:
    """
    Entitlements for a plan. Limits of None mean unlimited.
    """

    max_customers: int | None
    max_branches: int | None
    advanced_analytics: bool
    priority_support: bool
    custom_branding: bool
    api_access: bool

    def as_dict(self) -> dict:
        return asdict(self)


@dataclass(frozen=True)
class PlanDefinition:
    kind: PlanKind
    interval: CalendarInterval
    features: FeatureSet
    price_cents: int


TRIAL_FEATURES = FeatureSet(
    max_customers=100,
    max_branches=1,
    advanced_analytics=False,
    priority_support=False,
    custom_branding=False,
    api_access=False,
)

MONTHLY_FEATURES = FeatureSet(
    max_customers=None,
    max_branches=None,
    advanced_analytics=True,
    priority_support=True,
    custom_branding=False,
    api_access=False,
)

FULL_FEATURES = FeatureSet(
    max_customers=None,
    max_branches=None,
    advanced_analytics=True,
    priority_support=True,
    custom_branding=True,
    api_access=True,
)

PLAN_CATALOG: dict[PlanKind, PlanDefinition] = {
    PlanKind.TRIAL: PlanDefinition(
        kind=PlanKind.TRIAL,
        interval=CalendarInterval(days=TRIAL_DURATION_DAYS),
        features=TRIAL_FEATURES,
        price_cents=PLAN_PRICE_CENTS[PlanKind.TRIAL],
    ),
    PlanKind.MONTHLY: PlanDefinition(
        kind=PlanKind.MONTHLY,
        interval=CalendarInterval(months=1),
        features=MONTHLY_FEATURES,
        price_cents=PLAN_PRICE_CENTS[PlanKind.MONTHLY],
    ),
    PlanKind.SEMIANNUAL: PlanDefinition(
        kind=PlanKind.SEMIANNUAL,
        interval=CalendarInterval(months=6),
        features=FULL_FEATURES,
        price_cents=PLAN_PRICE_CENTS[PlanKind.SEMIANNUAL],
    ),
    PlanKind.ANNUAL: PlanDefinition(
        kind=PlanKind.ANNUAL,
        interval=CalendarInterval(months=12),
        features=FULL_FEATURES,
        price_cents=PLAN_PRICE_CENTS[PlanKind.ANNUAL],
    ),
}


def parse_plan_kind(value) -> PlanKind:
    """
    Coerce a plan identifier (PlanKind or string) to a PlanKind.

    Matching is case-insensitive and ignores surrounding whitespace.

    Raises:
        InvalidPlanKind: for None, empty strings and unknown identifiers.
    """
    if isinstance(value, PlanKind):
        return value
    if not isinstance(value, str) or not value.strip():
        raise InvalidPlanKind(value)
    try:
        return PlanKind(value.strip().lower())
    except ValueError as exc:
        raise InvalidPlanKind(value) from exc


def get_plan(plan) -> PlanDefinition:
    return PLAN_CATALOG[parse_plan_kind(plan)]


def interval_for(plan) -> CalendarInterval:
    return get_plan(plan).interval


def features_for(plan) -> FeatureSet:
    return get_plan(plan).features


def price_cents_for(plan) -> int:
    return get_plan(plan).price_cents


def duration_phrase_for(plan) -> str:
    """Human duration of one period: "30 days", "1 month", "6 months", "1 year"."""
    return interval_for(plan).phrase


# Public name used by application code gating features.
plan_features = features_for
