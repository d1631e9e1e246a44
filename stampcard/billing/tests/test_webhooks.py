"""
Tests for the dj-stripe webhook receivers.

Events are passed as lightweight stand-ins for djstripe.models.Event: the
handlers only read ``id``, ``type``, ``created`` and ``data``.
"""

from datetime import UTC
from datetime import datetime
from types import SimpleNamespace
from unittest.mock import MagicMock

import pytest
from djstripe.signals import WEBHOOK_SIGNALS

from stampcard.billing.constants import PlanKind
from stampcard.billing.constants import SubscriptionStatus
from stampcard.billing.exceptions import StoreUnavailable
from stampcard.billing.models import Subscription
from stampcard.billing.webhooks import handle_checkout_completed
from stampcard.billing.webhooks import handle_payment_failed
from stampcard.billing.webhooks import handle_payment_succeeded
from stampcard.billing.webhooks import handle_subscription_deleted
from stampcard.billing.webhooks import handle_subscription_updated
from stampcard.billing.webhooks import process_stripe_event

CREATED = datetime(2025, 1, 31, tzinfo=UTC)
FEB_1 = 1738368000
MAR_1 = 1740787200


def stripe_event(event_type, obj, event_id="evt_1", created=CREATED):
    return SimpleNamespace(
        id=event_id,
        type=event_type,
        created=created,
        data={"object": obj},
    )


def checkout_session(**metadata):
    metadata.setdefault("user_id", "user-1")
    metadata.setdefault("plan_type", "monthly")
    return {
        "id": "cs_test_1",
        "object": "checkout.session",
        "customer": "cus_1",
        "subscription": "sub_1",
        "metadata": metadata,
    }


@pytest.mark.django_db
class TestCheckoutCompleted:
    def test_creates_subscription(self):
        subscription = handle_checkout_completed(
            sender=None,
            event=stripe_event("checkout.session.completed", checkout_session()),
        )

        assert subscription is not None
        stored = Subscription.objects.get(user_id="user-1")
        assert stored.plan == PlanKind.MONTHLY
        assert stored.status == SubscriptionStatus.ACTIVE
        assert stored.current_period_start == CREATED
        assert stored.current_period_end == datetime(2025, 2, 28, tzinfo=UTC)

    def test_redelivery_is_idempotent(self):
        event = stripe_event("checkout.session.completed", checkout_session())
        handle_checkout_completed(sender=None, event=event)
        first = Subscription.objects.get()

        handle_checkout_completed(sender=None, event=event)

        second = Subscription.objects.get()
        assert second.modified == first.modified

    def test_invalid_plan_is_dropped(self):
        event = stripe_event(
            "checkout.session.completed",
            checkout_session(plan_type="weekly"),
        )

        assert handle_checkout_completed(sender=None, event=event) is None
        assert not Subscription.objects.exists()

    def test_missing_user_is_dropped(self):
        session = checkout_session()
        del session["metadata"]["user_id"]
        event = stripe_event("checkout.session.completed", session)

        assert handle_checkout_completed(sender=None, event=event) is None
        assert not Subscription.objects.exists()

    def test_receivers_are_connected(self):
        event = stripe_event("checkout.session.completed", checkout_session())

        WEBHOOK_SIGNALS["checkout.session.completed"].send(sender=None, event=event)

        assert Subscription.objects.filter(user_id="user-1").exists()


@pytest.mark.django_db
class TestInvoiceEvents:
    @pytest.fixture
    def subscription(self):
        handle_checkout_completed(
            sender=None,
            event=stripe_event("checkout.session.completed", checkout_session()),
        )
        return Subscription.objects.get()

    def test_payment_failed_marks_past_due(self, subscription):
        invoice = {"id": "in_1", "customer": "cus_1", "subscription": "sub_1"}

        handle_payment_failed(
            sender=None,
            event=stripe_event("invoice.payment_failed", invoice, event_id="evt_2"),
        )

        subscription.refresh_from_db()
        assert subscription.status == SubscriptionStatus.PAST_DUE

    def test_payment_succeeded_uses_line_period(self, subscription):
        invoice = {
            "id": "in_2",
            "customer": "cus_1",
            "subscription": "sub_1",
            "lines": {"data": [{"period": {"start": FEB_1, "end": MAR_1}}]},
        }

        handle_payment_succeeded(
            sender=None,
            event=stripe_event("invoice.payment_succeeded", invoice, event_id="evt_3"),
        )

        subscription.refresh_from_db()
        assert subscription.status == SubscriptionStatus.ACTIVE
        assert subscription.current_period_start == datetime(2025, 2, 1, tzinfo=UTC)
        assert subscription.current_period_end == datetime(2025, 3, 1, tzinfo=UTC)

    def test_one_time_invoice_is_skipped(self):
        invoice = {"id": "in_3", "customer": "cus_9", "metadata": {}}
        reconciler = MagicMock()

        result = process_stripe_event(
            stripe_event("invoice.payment_succeeded", invoice),
            reconciler=reconciler,
        )

        assert result is None
        reconciler.reconcile.assert_not_called()

    @pytest.mark.parametrize("plan_key", ["plan_type", "plan_code", "plan"])
    def test_invoice_with_plan_metadata_is_reconciled(self, plan_key):
        invoice = {
            "id": "in_4",
            "customer": "cus_9",
            "metadata": {"user_id": "user-9", plan_key: "monthly"},
        }
        reconciler = MagicMock()

        process_stripe_event(
            stripe_event("invoice.payment_succeeded", invoice),
            reconciler=reconciler,
        )

        reconciler.reconcile.assert_called_once()
        user_id, billing_event = reconciler.reconcile.call_args.args
        assert user_id == "user-9"
        assert billing_event.plan == "monthly"

    def test_invoice_with_line_item_plan_metadata_is_reconciled(self):
        invoice = {
            "id": "in_5",
            "customer": "cus_9",
            "lines": {"data": [{"metadata": {"user_id": "user-9", "plan_code": "annual"}}]},
        }
        reconciler = MagicMock()

        process_stripe_event(
            stripe_event("invoice.payment_failed", invoice),
            reconciler=reconciler,
        )

        reconciler.reconcile.assert_called_once()


@pytest.mark.django_db
class TestSubscriptionEvents:
    def test_update_then_delete(self):
        handle_checkout_completed(
            sender=None,
            event=stripe_event("checkout.session.completed", checkout_session()),
        )
        stripe_subscription = {
            "id": "sub_1",
            "object": "subscription",
            "customer": "cus_1",
            "status": "active",
            "current_period_start": FEB_1,
            "current_period_end": MAR_1,
            "metadata": {"user_id": "user-1", "plan_type": "monthly"},
        }
        handle_subscription_updated(
            sender=None,
            event=stripe_event(
                "customer.subscription.updated",
                stripe_subscription,
                event_id="evt_4",
            ),
        )

        handle_subscription_deleted(
            sender=None,
            event=stripe_event(
                "customer.subscription.deleted",
                {**stripe_subscription, "status": "canceled"},
                event_id="evt_5",
            ),
        )

        subscription = Subscription.objects.get()
        assert subscription.status == SubscriptionStatus.CANCELLED
        assert subscription.current_period_end == datetime(2025, 3, 1, tzinfo=UTC)


def test_store_failure_is_reraised():
    reconciler = MagicMock()
    reconciler.reconcile.side_effect = StoreUnavailable("down")

    with pytest.raises(StoreUnavailable):
        process_stripe_event(
            stripe_event("checkout.session.completed", checkout_session()),
            reconciler=reconciler,
        )
