"""
Inbound billing events.

A BillingEvent is the single normalised shape every payment-processor
notification is turned into before reconciliation. The Stripe payloads it is
built from are not trusted to be complete: user and plan metadata may be
missing, subscription ids live in different places across API versions, and
period bounds are only present on some objects.

EVENT_POLICIES describes how each event type is applied. It has an entry for
every BillingEventType; the reconciler never branches on event type strings
directly.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from datetime import UTC
from datetime import datetime
from typing import Any

from stampcard.billing.constants import BillingEventType
from stampcard.billing.constants import SubscriptionStatus

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class EventPolicy:
    """
    How an event type affects a subscription.

    Attributes:
        implied_status: Status applied by the event. None means the
            processor-reported status decides.
        requires_plan: The event is meaningless without a plan identifier.
        renews_period: Without processor bounds, the event starts a new
            period from the event time.
        may_open_row: The event may start a new subscription row when the
            user's current row is cancelled or expired.
        is_cancellation: The status always applies, even when the event's
            period bounds are older than the stored ones.
    """

    implied_status: SubscriptionStatus | None
    requires_plan: bool = False
    renews_period: bool = False
    may_open_row: bool = False
    is_cancellation: bool = False


EVENT_POLICIES: dict[BillingEventType, EventPolicy] = {
    BillingEventType.CHECKOUT_COMPLETED: EventPolicy(
        implied_status=SubscriptionStatus.ACTIVE,
        requires_plan=True,
        renews_period=True,
        may_open_row=True,
    ),
    BillingEventType.PAYMENT_SUCCEEDED: EventPolicy(
        implied_status=SubscriptionStatus.ACTIVE,
        renews_period=True,
    ),
    BillingEventType.PAYMENT_FAILED: EventPolicy(
        implied_status=SubscriptionStatus.PAST_DUE,
    ),
    BillingEventType.SUBSCRIPTION_CREATED: EventPolicy(
        implied_status=None,
        requires_plan=True,
        renews_period=True,
        may_open_row=True,
    ),
    BillingEventType.SUBSCRIPTION_UPDATED: EventPolicy(
        implied_status=None,
        requires_plan=True,
    ),
    BillingEventType.SUBSCRIPTION_DELETED: EventPolicy(
        implied_status=SubscriptionStatus.CANCELLED,
        is_cancellation=True,
    ),
}

# Processor status spellings → our statuses. Both "canceled" and
# "cancelled" appear in the wild.
PROCESSOR_STATUS_MAP = {
    "active": SubscriptionStatus.ACTIVE,
    "trialing": SubscriptionStatus.ACTIVE,
    "past_due": SubscriptionStatus.PAST_DUE,
    "unpaid": SubscriptionStatus.PAST_DUE,
    "canceled": SubscriptionStatus.CANCELLED,
    "cancelled": SubscriptionStatus.CANCELLED,
    "expired": SubscriptionStatus.EXPIRED,
    "incomplete_expired": SubscriptionStatus.EXPIRED,
}

USER_METADATA_KEYS = ("user_id", "supabase_user_id")
PLAN_METADATA_KEYS = ("plan_type", "plan_code", "plan")


def normalize_status(raw) -> SubscriptionStatus | None:
    """Map a processor status string to a SubscriptionStatus, or None."""
    if isinstance(raw, SubscriptionStatus):
        return raw
    if not isinstance(raw, str):
        return None
    return PROCESSOR_STATUS_MAP.get(raw.strip().lower())


def from_epoch(value) -> datetime | None:
    """Convert a Unix timestamp (seconds) to an aware UTC datetime."""
    if value is None or value == "":
        return None
    if isinstance(value, datetime):
        return value
    return datetime.fromtimestamp(int(value), tz=UTC)


def _dig(obj: Any, *path):
    """Walk nested dicts/lists, returning None on any missing step."""
    for key in path:
        if isinstance(key, int):
            if not isinstance(obj, list) or len(obj) <= key:
                return None
        elif not isinstance(obj, dict):
            return None
        obj = obj[key] if isinstance(key, int) else obj.get(key)
        if obj is None:
            return None
    return obj


def _id_of(value) -> str:
    """Stripe fields may hold an id string or an expanded object."""
    if isinstance(value, dict):
        value = value.get("id")
    return value or ""


def _first_value(sources: list[dict], keys: tuple[str, ...]) -> str | None:
    for source in sources:
        for key in keys:
            value = source.get(key)
            if value:
                return str(value)
    return None


@dataclass(frozen=True)
class BillingEvent:
    """
    A normalised billing event.

    period_start / period_end are processor-supplied bounds. They are only
    used when both are present and the end is after the start.
    """

    event_type: BillingEventType
    user_id: str | None = None
    plan: str | None = None
    status: str | None = None
    stripe_subscription_id: str = ""
    stripe_customer_id: str = ""
    period_start: datetime | None = None
    period_end: datetime | None = None
    occurred_at: datetime | None = None
    event_id: str = ""

    @property
    def policy(self) -> EventPolicy:
        return EVENT_POLICIES[self.event_type]

    @property
    def has_period_bounds(self) -> bool:
        return (
            self.period_start is not None
            and self.period_end is not None
            and self.period_end > self.period_start
        )

    @property
    def processor_status(self) -> SubscriptionStatus | None:
        return normalize_status(self.status)

    @classmethod
    def from_stripe(
        cls,
        event_type: str,
        payload: dict | None,
        *,
        occurred_at: datetime | None = None,
        event_id: str = "",
    ) -> BillingEvent:
        """
        Build an event from a Stripe object (checkout session, invoice or
        subscription).

        Raises:
            ValueError: if ``event_type`` is not a handled billing event.
        """
        event_type = BillingEventType(event_type)
        payload = payload or {}
        is_subscription_object = event_type in (
            BillingEventType.SUBSCRIPTION_CREATED,
            BillingEventType.SUBSCRIPTION_UPDATED,
            BillingEventType.SUBSCRIPTION_DELETED,
        )

        metadata_sources = [
            source
            for source in (
                payload.get("metadata"),
                _dig(payload, "subscription_details", "metadata"),
                _dig(payload, "parent", "subscription_details", "metadata"),
                _dig(payload, "lines", "data", 0, "metadata"),
            )
            if isinstance(source, dict)
        ]

        user_id = _first_value(metadata_sources, USER_METADATA_KEYS)
        if not user_id and event_type == BillingEventType.CHECKOUT_COMPLETED:
            user_id = payload.get("client_reference_id") or None

        if is_subscription_object:
            subscription_id = _id_of(payload.get("id"))
            status = payload.get("status")
            period_start = payload.get("current_period_start") or _dig(
                payload, "items", "data", 0, "current_period_start"
            )
            period_end = payload.get("current_period_end") or _dig(
                payload, "items", "data", 0, "current_period_end"
            )
        else:
            subscription_id = _id_of(payload.get("subscription")) or _id_of(
                _dig(payload, "parent", "subscription_details", "subscription")
            )
            status = None
            period_start = _dig(payload, "lines", "data", 0, "period", "start")
            period_end = _dig(payload, "lines", "data", 0, "period", "end")

        event = cls(
            event_type=event_type,
            user_id=user_id,
            plan=_first_value(metadata_sources, PLAN_METADATA_KEYS),
            status=status,
            stripe_subscription_id=subscription_id,
            stripe_customer_id=_id_of(payload.get("customer")),
            period_start=from_epoch(period_start),
            period_end=from_epoch(period_end),
            occurred_at=occurred_at,
            event_id=event_id,
        )
        logger.debug(
            "Parsed %s event %s: user=%s plan=%s subscription=%s",
            event_type,
            event_id or "-",
            event.user_id,
            event.plan,
            event.stripe_subscription_id or "-",
        )
        return event
