"""
Subscription reconciliation.

Every billing event, whatever its source (Stripe webhook, checkout return,
trial signup), is applied to the subscription store through
SubscriptionReconciler. The reconciler guarantees:

- one authoritative row per user: an existing row is updated in place; a
  new row is only opened when the user has none, or when a fresh checkout
  follows a cancelled or expired subscription
- idempotency: an event that would not change any persisted field causes no
  write
- monotonic periods: for a given Stripe subscription, period ends only move
  forward, whether Stripe supplied the bounds or they were computed from the
  plan. Older bounds are ignored as stale, except for cancellations, whose
  status always applies
- events for a Stripe subscription the user's row no longer tracks (or for
  a closed row superseded by a newer one) are ignored
- period ends are computed from the plan (see periods.py) unless Stripe
  supplied the bounds

Usage:
    reconciler = SubscriptionReconciler()
    subscription = reconciler.reconcile(user_id, event)
"""

from __future__ import annotations

import logging
from collections.abc import Callable
from dataclasses import dataclass
from datetime import datetime

from django.utils import timezone

from stampcard.billing.constants import PlanKind
from stampcard.billing.constants import SubscriptionStatus
from stampcard.billing.events import BillingEvent
from stampcard.billing.exceptions import InvalidPlanKind
from stampcard.billing.exceptions import MissingUserReference
from stampcard.billing.exceptions import StaleEventIgnored
from stampcard.billing.models import Subscription
from stampcard.billing.periods import compute_period_end
from stampcard.billing.plans import parse_plan_kind
from stampcard.billing.store import DjangoSubscriptionStore
from stampcard.billing.store import SubscriptionStore

logger = logging.getLogger(__name__)

# Statuses after which a fresh checkout starts a new row
CLOSED_STATUSES = {SubscriptionStatus.CANCELLED, SubscriptionStatus.EXPIRED}

PERSISTED_FIELDS = (
    "user_id",
    "plan",
    "status",
    "stripe_subscription_id",
    "stripe_customer_id",
    "current_period_start",
    "current_period_end",
)


@dataclass(frozen=True)
class SubscriptionState:
    """The persisted fields an event resolves to."""

    user_id: str
    plan: PlanKind
    status: SubscriptionStatus
    stripe_subscription_id: str
    stripe_customer_id: str
    current_period_start: datetime
    current_period_end: datetime

    def differs_from(self, subscription: Subscription) -> bool:
        return any(
            getattr(self, field) != getattr(subscription, field)
            for field in PERSISTED_FIELDS
        )

    def apply_to(self, subscription: Subscription) -> Subscription:
        for field in PERSISTED_FIELDS:
            setattr(subscription, field, getattr(self, field))
        return subscription


class SubscriptionReconciler:
    """
    Apply billing events to the subscription store.

    Args:
        store: SubscriptionStore to read and write through. Defaults to the
            Django ORM store.
        clock: Callable returning the current aware datetime.
    """

    def __init__(
        self,
        store: SubscriptionStore | None = None,
        clock: Callable[[], datetime] = timezone.now,
    ):
        self.store = store or DjangoSubscriptionStore()
        self.clock = clock

    def reconcile(self, user_id: str | None, event: BillingEvent) -> Subscription:
        """
        Apply ``event`` and return the resulting subscription.

        Stale events are logged and the unchanged subscription is returned.

        Raises:
            InvalidPlanKind: unknown plan, or no plan where one is needed.
            MissingUserReference: no user id, and none found via Stripe ids.
            StoreUnavailable: the store failed; the caller should retry.
        """
        plan = self._event_plan(event)

        with self.store.atomic():
            current = self._current_subscription(user_id, event)
            resolved_user_id = self._resolve_user_id(user_id, event, current)
            if current is None:
                # Unknown Stripe subscription, or the user was only found
                # through the customer id.
                current = self.store.get_active_subscription(
                    resolved_user_id,
                    for_update=True,
                )
                if current is not None and self._is_replaced_subscription(event, current):
                    logger.info(
                        "Ignoring %s event %s for replaced subscription %s; "
                        "user=%s is on subscription %s",
                        event.event_type,
                        event.event_id or "-",
                        event.stripe_subscription_id,
                        resolved_user_id,
                        current.stripe_subscription_id,
                    )
                    return current
            elif self._is_superseded(event, current):
                logger.info(
                    "Ignoring %s event %s: subscription %s was superseded by a newer one",
                    event.event_type,
                    event.event_id or "-",
                    current.pk,
                )
                return current

            if current is not None and self._opens_new_row(event, current):
                logger.info(
                    "Opening new subscription for user=%s after %s subscription %s",
                    resolved_user_id,
                    current.status,
                    current.pk,
                )
                current = None

            try:
                state = self._resolve_state(resolved_user_id, event, plan, current)
            except StaleEventIgnored as exc:
                logger.info(
                    "Ignoring stale %s event %s for subscription %s: %s",
                    event.event_type,
                    event.event_id or "-",
                    current.pk,
                    exc,
                )
                return current

            if current is not None and not state.differs_from(current):
                logger.info(
                    "No changes from %s event %s for subscription %s",
                    event.event_type,
                    event.event_id or "-",
                    current.pk,
                )
                return current

            subscription = state.apply_to(current or Subscription())
            subscription = self.store.upsert_subscription(subscription)

        logger.info(
            "Reconciled %s event %s: user=%s plan=%s status=%s period_end=%s",
            event.event_type,
            event.event_id or "-",
            subscription.user_id,
            subscription.plan,
            subscription.status,
            subscription.current_period_end.isoformat(),
        )
        return subscription

    def start_trial(self, user_id: str) -> Subscription:
        """
        Start a trial for a user with no subscription history.

        Users who already have a row (of any status) get that row back; a
        trial is never granted twice.
        """
        if not user_id:
            msg = "Trial signup requires a user id"
            raise MissingUserReference(msg)

        with self.store.atomic():
            current = self.store.get_active_subscription(user_id, for_update=True)
            if current is not None:
                logger.info(
                    "User %s already has subscription %s, not starting a trial",
                    user_id,
                    current.pk,
                )
                return current

            start = self.clock()
            subscription = Subscription(
                user_id=user_id,
                plan=PlanKind.TRIAL,
                status=SubscriptionStatus.ACTIVE,
                current_period_start=start,
                current_period_end=compute_period_end(start, PlanKind.TRIAL),
            )
            subscription = self.store.upsert_subscription(subscription)

        logger.info("Started trial for user=%s until %s", user_id, subscription.current_period_end)
        return subscription

    # ------------------------------------------------------------------
    # Resolution helpers
    # ------------------------------------------------------------------

    def _event_plan(self, event: BillingEvent) -> PlanKind | None:
        if event.plan:
            return parse_plan_kind(event.plan)
        if event.policy.requires_plan:
            msg = f"{event.event_type} event {event.event_id or '-'} carries no plan"
            raise InvalidPlanKind(None, msg)
        return None

    def _current_subscription(
        self,
        user_id: str | None,
        event: BillingEvent,
    ) -> Subscription | None:
        if event.stripe_subscription_id:
            return self.store.find_by_external_subscription_id(
                event.stripe_subscription_id,
                for_update=True,
            )
        return self.store.get_active_subscription(
            user_id or event.user_id or "",
            for_update=True,
        )

    def _resolve_user_id(
        self,
        user_id: str | None,
        event: BillingEvent,
        current: Subscription | None,
    ) -> str:
        if current is not None and event.stripe_subscription_id:
            # The owner of a Stripe subscription never changes.
            requested = user_id or event.user_id
            if requested and str(requested) != current.user_id:
                logger.warning(
                    "%s event %s names user %s but subscription %s belongs to %s",
                    event.event_type,
                    event.event_id or "-",
                    requested,
                    event.stripe_subscription_id,
                    current.user_id,
                )
            return current.user_id
        if user_id:
            return str(user_id)
        if event.user_id:
            return str(event.user_id)
        fallback = self.store.find_by_external_customer_id(event.stripe_customer_id)
        if fallback is not None:
            logger.info(
                "Resolved user %s for %s event via customer %s",
                fallback.user_id,
                event.event_type,
                event.stripe_customer_id,
            )
            return fallback.user_id
        msg = (
            f"{event.event_type} event {event.event_id or '-'} has no user id and "
            f"no subscription matches customer {event.stripe_customer_id or '-'}"
        )
        raise MissingUserReference(msg)

    def _is_replaced_subscription(
        self,
        event: BillingEvent,
        current: Subscription,
    ) -> bool:
        """
        True when the event names a Stripe subscription the user's row no
        longer tracks. Only checkout and subscription-created events may
        move a row to a new Stripe subscription.
        """
        return (
            bool(event.stripe_subscription_id)
            and bool(current.stripe_subscription_id)
            and event.stripe_subscription_id != current.stripe_subscription_id
            and not event.policy.may_open_row
        )

    def _is_superseded(self, event: BillingEvent, current: Subscription) -> bool:
        """True for a closed row that is no longer the user's latest."""
        if current.status not in CLOSED_STATUSES:
            return False
        latest = self.store.get_active_subscription(current.user_id, for_update=True)
        return latest is not None and latest.pk != current.pk

    def _opens_new_row(self, event: BillingEvent, current: Subscription) -> bool:
        return (
            event.policy.may_open_row
            and current.status in CLOSED_STATUSES
            and bool(event.stripe_subscription_id)
            and event.stripe_subscription_id != current.stripe_subscription_id
        )

    def _resolve_status(
        self,
        event: BillingEvent,
        current: Subscription | None,
    ) -> SubscriptionStatus:
        if event.policy.implied_status is not None:
            return event.policy.implied_status
        status = event.processor_status
        if status is not None:
            return status
        if event.status:
            logger.warning(
                "Unrecognised processor status %r on %s event %s; keeping stored status",
                event.status,
                event.event_type,
                event.event_id or "-",
            )
        if current is not None:
            return SubscriptionStatus(current.status)
        return SubscriptionStatus.ACTIVE

    def _resolve_state(
        self,
        user_id: str,
        event: BillingEvent,
        plan: PlanKind | None,
        current: Subscription | None,
    ) -> SubscriptionState:
        if plan is None:
            if current is None:
                msg = (
                    f"{event.event_type} event {event.event_id or '-'} carries no plan "
                    f"and user {user_id} has no subscription"
                )
                raise InvalidPlanKind(None, msg)
            plan = PlanKind(current.plan)

        status = self._resolve_status(event, current)
        subscription_id = event.stripe_subscription_id or (
            current.stripe_subscription_id if current else ""
        )
        customer_id = event.stripe_customer_id or (
            current.stripe_customer_id if current else ""
        )
        start, end = self._resolve_period(event, plan, status, current)

        return SubscriptionState(
            user_id=user_id,
            plan=plan,
            status=status,
            stripe_subscription_id=subscription_id,
            stripe_customer_id=customer_id,
            current_period_start=start,
            current_period_end=end,
        )

    def _resolve_period(
        self,
        event: BillingEvent,
        plan: PlanKind,
        status: SubscriptionStatus,
        current: Subscription | None,
    ) -> tuple[datetime, datetime]:
        if event.has_period_bounds:
            start, end = event.period_start, event.period_end
        elif current is None:
            return self._computed_period(event, plan)
        else:
            already_applied = (
                bool(event.stripe_subscription_id)
                and event.stripe_subscription_id == current.stripe_subscription_id
                and plan == current.plan
                and status == current.status
            )
            plan_changed = plan != current.plan
            if not (plan_changed or (event.policy.renews_period and not already_applied)):
                return current.current_period_start, current.current_period_end
            start, end = self._computed_period(event, plan)

        return self._forward_only(event, status, current, start, end)

    def _computed_period(
        self,
        event: BillingEvent,
        plan: PlanKind,
    ) -> tuple[datetime, datetime]:
        start = event.occurred_at or self.clock()
        return start, compute_period_end(start, plan)

    def _forward_only(
        self,
        event: BillingEvent,
        status: SubscriptionStatus,
        current: Subscription | None,
        start: datetime,
        end: datetime,
    ) -> tuple[datetime, datetime]:
        """
        Keep period_end moving forward for a given Stripe subscription,
        whether the new bounds came from Stripe or were computed.
        """
        same_subscription = (
            current is not None
            and bool(current.stripe_subscription_id)
            and current.stripe_subscription_id == event.stripe_subscription_id
        )
        if not same_subscription or end >= current.current_period_end:
            return start, end

        if event.policy.is_cancellation or status == SubscriptionStatus.CANCELLED:
            # Cancellation wins on status; the later stored period stays.
            return current.current_period_start, current.current_period_end

        msg = (
            f"period_end {end.isoformat()} precedes stored "
            f"{current.current_period_end.isoformat()}"
        )
        raise StaleEventIgnored(msg)
