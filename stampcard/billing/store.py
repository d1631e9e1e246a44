"""
Subscription store: the data-store collaborator used by the reconciler and
the access evaluator.

The reconciler only talks to the SubscriptionStore protocol. The Django
implementation makes decide-then-write atomic per row: inside ``atomic()``
every ``for_update`` lookup takes a row lock, so two deliveries of the same
Stripe event on different workers are applied one after the other. When
there is no row to lock yet, two partial unique constraints take over: one
on stripe_subscription_id and one allowing a single open (not cancelled or
expired) row per user.
"""

from __future__ import annotations

import logging
from contextlib import AbstractContextManager
from typing import Protocol

from django.db import DatabaseError
from django.db import IntegrityError
from django.db import transaction

from stampcard.billing.exceptions import StoreUnavailable
from stampcard.billing.models import Subscription

logger = logging.getLogger(__name__)


class SubscriptionStore(Protocol):
    def atomic(self) -> AbstractContextManager: ...

    def get_active_subscription(
        self,
        user_id: str,
        *,
        for_update: bool = False,
    ) -> Subscription | None: ...

    def find_by_external_subscription_id(
        self,
        stripe_subscription_id: str,
        *,
        for_update: bool = False,
    ) -> Subscription | None: ...

    def find_by_external_customer_id(
        self,
        stripe_customer_id: str,
    ) -> Subscription | None: ...

    def upsert_subscription(self, subscription: Subscription) -> Subscription: ...


class DjangoSubscriptionStore:
    """
    SubscriptionStore backed by the Subscription model.

    Database errors surface as StoreUnavailable so callers only deal with
    the billing error taxonomy.
    """

    def atomic(self):
        return transaction.atomic()

    def _queryset(self, *, for_update: bool):
        qs = Subscription.objects.all()
        if for_update:
            qs = qs.select_for_update()
        return qs

    def get_active_subscription(
        self,
        user_id: str,
        *,
        for_update: bool = False,
    ) -> Subscription | None:
        """
        Return the user's authoritative subscription (most recent row).

        The row is returned whatever its status; callers decide what an
        expired or cancelled row means for them.
        """
        if not user_id:
            return None
        try:
            return (
                self._queryset(for_update=for_update)
                .for_user(user_id)
                .latest_first()
                .first()
            )
        except DatabaseError as exc:
            msg = f"Could not load subscription for user {user_id}"
            raise StoreUnavailable(msg) from exc

    def find_by_external_subscription_id(
        self,
        stripe_subscription_id: str,
        *,
        for_update: bool = False,
    ) -> Subscription | None:
        if not stripe_subscription_id:
            return None
        try:
            return (
                self._queryset(for_update=for_update)
                .filter(stripe_subscription_id=stripe_subscription_id)
                .first()
            )
        except DatabaseError as exc:
            msg = f"Could not load subscription {stripe_subscription_id}"
            raise StoreUnavailable(msg) from exc

    def find_by_external_customer_id(
        self,
        stripe_customer_id: str,
    ) -> Subscription | None:
        """Fallback lookup used when event metadata carries no user id."""
        if not stripe_customer_id:
            return None
        try:
            return (
                Subscription.objects.filter(stripe_customer_id=stripe_customer_id)
                .latest_first()
                .first()
            )
        except DatabaseError as exc:
            msg = f"Could not load subscription for customer {stripe_customer_id}"
            raise StoreUnavailable(msg) from exc

    def upsert_subscription(self, subscription: Subscription) -> Subscription:
        """
        Insert a new row or write an existing one.

        A concurrent insert for the same Stripe subscription id, or a second
        open row for the same user, violates a unique constraint and is
        reported as StoreUnavailable. A retry will find and lock the row
        written by the other worker.
        """
        try:
            with transaction.atomic():
                subscription.save()
        except IntegrityError as exc:
            logger.warning(
                "Conflicting write for user=%s stripe_subscription=%s",
                subscription.user_id,
                subscription.stripe_subscription_id or "-",
            )
            msg = "Conflicting concurrent subscription write"
            raise StoreUnavailable(msg) from exc
        except DatabaseError as exc:
            msg = f"Could not save subscription for user {subscription.user_id}"
            raise StoreUnavailable(msg) from exc
        return subscription
