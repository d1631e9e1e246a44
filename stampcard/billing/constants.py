"""
Billing constants for the Stampcard subscription system.

These enums define the plan kinds, subscription lifecycle states and inbound
billing event types used throughout the billing app.
"""

from django.db import models
from django.utils.translation import gettext_lazy as _


class PlanKind(models.TextChoices):
    """
    Plan identifiers stored on Subscription.plan.

    Trial is granted on signup with no payment. Monthly, semiannual and
    annual are paid through Stripe (recurring or one-time).
    """

    TRIAL = "trial", _("Trial")
    MONTHLY = "monthly", _("Monthly")
    SEMIANNUAL = "semiannual", _("Semiannual")
    ANNUAL = "annual", _("Annual")


class SubscriptionStatus(models.TextChoices):
    """
    Subscription lifecycle states.

    Typical flow:
        (none) → ACTIVE (checkout or trial signup)
        ACTIVE → PAST_DUE (payment failed) → ACTIVE (later payment succeeded)
        ACTIVE → CANCELLED (subscription deleted) → ACTIVE (fresh checkout)
        ACTIVE → EXPIRED (period ended, see expire_subscriptions)

    Rows are never deleted; every terminal-looking state can be reactivated.
    """

    ACTIVE = "active", _("Active")
    EXPIRED = "expired", _("Expired")
    CANCELLED = "cancelled", _("Cancelled")
    PAST_DUE = "past_due", _("Past Due")


class BillingEventType(models.TextChoices):
    """
    Inbound billing events. Values are the Stripe event type names.
    """

    CHECKOUT_COMPLETED = "checkout.session.completed", _("Checkout completed")
    PAYMENT_SUCCEEDED = "invoice.payment_succeeded", _("Payment succeeded")
    PAYMENT_FAILED = "invoice.payment_failed", _("Payment failed")
    SUBSCRIPTION_CREATED = "customer.subscription.created", _("Subscription created")
    SUBSCRIPTION_UPDATED = "customer.subscription.updated", _("Subscription updated")
    SUBSCRIPTION_DELETED = "customer.subscription.deleted", _("Subscription deleted")


# Trial length in literal days (not calendar-relative)
TRIAL_DURATION_DAYS = 30

# Days reported to users with no subscription row yet
NEW_USER_GRACE_DAYS = 30

# Display prices in cents (actual charges happen in Stripe)
PLAN_PRICE_CENTS = {
    PlanKind.TRIAL: 0,
    PlanKind.MONTHLY: 299,
    PlanKind.SEMIANNUAL: 999,
    PlanKind.ANNUAL: 1999,
}

# Super-admin dashboard session lifetime
DEFAULT_ADMIN_SESSION_TTL_HOURS = 24
