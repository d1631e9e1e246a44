"""
Stripe webhook handlers using dj-stripe signals.

dj-stripe verifies the signature, stores the event and fires one signal per
event type from djstripe.signals.WEBHOOK_SIGNALS. Every handler here turns
the Stripe object into a BillingEvent and hands it to the reconciler, so all
event types share one code path.

Key events handled:
- checkout.session.completed: Start or reopen a subscription
- invoice.payment_succeeded: Renew the billing period
- invoice.payment_failed: Mark the subscription past due
- customer.subscription.created / updated: Sync plan, status and period
- customer.subscription.deleted: Cancel

Failure handling:
- InvalidPlanKind, MissingUserReference: logged, event dropped
- StoreUnavailable: re-raised so dj-stripe records the failure and Stripe
  redelivers the event

To test locally:
    stripe listen --forward-to localhost:8000/stripe/webhook/
"""

import logging

from django.dispatch import receiver
from djstripe.signals import WEBHOOK_SIGNALS

from stampcard.billing.constants import BillingEventType
from stampcard.billing.events import BillingEvent
from stampcard.billing.exceptions import InvalidPlanKind
from stampcard.billing.exceptions import MissingUserReference
from stampcard.billing.reconciler import SubscriptionReconciler

logger = logging.getLogger(__name__)


def process_stripe_event(event, reconciler: SubscriptionReconciler | None = None):
    """
    Reconcile a dj-stripe Event (or anything with ``type``, ``data``, ``id``
    and ``created``).

    Returns the reconciled Subscription, or None if the event was dropped.
    """
    stripe_object = (event.data or {}).get("object") or {}
    event_id = getattr(event, "id", "") or ""

    billing_event = BillingEvent.from_stripe(
        event.type,
        stripe_object,
        occurred_at=getattr(event, "created", None),
        event_id=str(event_id),
    )

    if (
        event.type in (BillingEventType.PAYMENT_SUCCEEDED, BillingEventType.PAYMENT_FAILED)
        and not billing_event.stripe_subscription_id
        and not billing_event.plan
    ):
        # One-time invoices without plan metadata are not subscription billing.
        logger.info("%s %s is not a subscription invoice, skipping", event.type, event_id)
        return None

    reconciler = reconciler or SubscriptionReconciler()
    try:
        return reconciler.reconcile(billing_event.user_id, billing_event)
    except InvalidPlanKind:
        logger.exception(
            "Dropping %s event %s: invalid plan",
            event.type,
            event_id,
        )
    except MissingUserReference:
        logger.exception(
            "Dropping %s event %s: no user reference (customer=%s)",
            event.type,
            event_id,
            billing_event.stripe_customer_id or "-",
        )
    return None


@receiver(WEBHOOK_SIGNALS["checkout.session.completed"])
def handle_checkout_completed(sender, event, **kwargs):
    """
    Provision the subscription after a successful Stripe Checkout.

    The session's metadata (or client_reference_id) carries our user id.
    """
    logger.info("checkout.session.completed: %s", event.id)
    return process_stripe_event(event)


@receiver(WEBHOOK_SIGNALS["invoice.payment_succeeded"])
def handle_payment_succeeded(sender, event, **kwargs):
    logger.info("invoice.payment_succeeded: %s", event.id)
    return process_stripe_event(event)


@receiver(WEBHOOK_SIGNALS["invoice.payment_failed"])
def handle_payment_failed(sender, event, **kwargs):
    """
    Mark the subscription past due. Stripe retries the charge on its own
    schedule; a later invoice.payment_succeeded reactivates it.
    """
    logger.warning("invoice.payment_failed: %s", event.id)
    return process_stripe_event(event)


@receiver(WEBHOOK_SIGNALS["customer.subscription.created"])
def handle_subscription_created(sender, event, **kwargs):
    logger.info("customer.subscription.created: %s", event.id)
    return process_stripe_event(event)


@receiver(WEBHOOK_SIGNALS["customer.subscription.updated"])
def handle_subscription_updated(sender, event, **kwargs):
    """
    Sync plan changes, status changes and period bounds from Stripe.
    """
    logger.info("customer.subscription.updated: %s", event.id)
    return process_stripe_event(event)


@receiver(WEBHOOK_SIGNALS["customer.subscription.deleted"])
def handle_subscription_deleted(sender, event, **kwargs):
    """
    Cancel when the Stripe subscription ends. Cancellation applies even if
    this event arrives after newer period updates.
    """
    logger.info("customer.subscription.deleted: %s", event.id)
    return process_stripe_event(event)
