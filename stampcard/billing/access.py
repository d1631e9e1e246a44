"""
Access evaluation: what a user may do, given their subscription.

Policy:
- No subscription row yet: full trial access with NEW_USER_GRACE_DAYS
  remaining. New users are not locked out before their first row exists.
- Otherwise: access while the subscription is active and its period has
  not ended; features come from the plan catalog.
- Store failures: fail open (trial access) by default so paying users are
  not locked out by an outage. Set BILLING_ACCESS_FAIL_OPEN = False to deny
  instead. Either way, evaluation never raises.
"""

from __future__ import annotations

import logging
import math
from collections.abc import Callable
from dataclasses import dataclass
from datetime import datetime
from datetime import timedelta

from django.conf import settings
from django.db import DatabaseError
from django.utils import timezone

from stampcard.billing.constants import NEW_USER_GRACE_DAYS
from stampcard.billing.constants import SubscriptionStatus
from stampcard.billing.exceptions import InvalidPlanKind
from stampcard.billing.exceptions import StoreUnavailable
from stampcard.billing.plans import TRIAL_FEATURES
from stampcard.billing.plans import FeatureSet
from stampcard.billing.plans import features_for
from stampcard.billing.plans import plan_features  # noqa: F401
from stampcard.billing.store import DjangoSubscriptionStore
from stampcard.billing.store import SubscriptionStore

logger = logging.getLogger(__name__)

ONE_DAY = timedelta(days=1)


@dataclass(frozen=True)
class AccessDecision:
    has_access: bool
    features: FeatureSet
    days_remaining: int
    plan: str | None = None
    status: str | None = None
    period_label: str | None = None

    def as_dict(self) -> dict:
        return {
            "has_access": self.has_access,
            "features": self.features.as_dict(),
            "days_remaining": self.days_remaining,
            "plan": self.plan,
            "status": self.status,
            "period_label": self.period_label,
        }


def new_user_decision() -> AccessDecision:
    return AccessDecision(
        has_access=True,
        features=TRIAL_FEATURES,
        days_remaining=NEW_USER_GRACE_DAYS,
    )


def denied_decision() -> AccessDecision:
    return AccessDecision(
        has_access=False,
        features=TRIAL_FEATURES,
        days_remaining=0,
    )


def days_until(end: datetime, now: datetime) -> int:
    """Whole days left until ``end``, rounded up, never negative."""
    return max(0, math.ceil((end - now) / ONE_DAY))


def evaluate_access(subscription, *, now: datetime | None = None) -> AccessDecision:
    """
    Decide access for a subscription row, or None for a user without one.
    """
    if subscription is None:
        return new_user_decision()

    now = now or timezone.now()
    end = subscription.current_period_end
    return AccessDecision(
        has_access=subscription.status == SubscriptionStatus.ACTIVE and now < end,
        features=features_for(subscription.plan),
        days_remaining=days_until(end, now),
        plan=str(subscription.plan),
        status=str(subscription.status),
        period_label=subscription.period_label,
    )


class AccessEvaluator:
    """
    Evaluate access for a user id against the subscription store.

    Args:
        store: SubscriptionStore to read from.
        fail_open: Grant trial access when the store fails. Defaults to the
            BILLING_ACCESS_FAIL_OPEN setting.
        clock: Callable returning the current aware datetime.
    """

    def __init__(
        self,
        store: SubscriptionStore | None = None,
        fail_open: bool | None = None,
        clock: Callable[[], datetime] = timezone.now,
    ):
        self.store = store or DjangoSubscriptionStore()
        if fail_open is None:
            fail_open = getattr(settings, "BILLING_ACCESS_FAIL_OPEN", True)
        self.fail_open = fail_open
        self.clock = clock

    def evaluate(self, user_id: str) -> AccessDecision:
        try:
            subscription = self.store.get_active_subscription(user_id)
        except (StoreUnavailable, DatabaseError):
            logger.warning(
                "Subscription store unavailable for user=%s, failing %s",
                user_id,
                "open" if self.fail_open else "closed",
                exc_info=True,
            )
            return self._fallback_decision()

        try:
            return evaluate_access(subscription, now=self.clock())
        except InvalidPlanKind:
            logger.exception(
                "Subscription %s has an unknown plan %r",
                subscription.pk,
                subscription.plan,
            )
            return self._fallback_decision()

    def _fallback_decision(self) -> AccessDecision:
        return new_user_decision() if self.fail_open else denied_decision()
