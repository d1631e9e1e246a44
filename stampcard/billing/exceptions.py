"""
Error taxonomy for billing reconciliation.

Every failure that crosses the event-ingestion boundary is one of these:

- InvalidPlanKind: unknown or missing plan. Drop the event and report it.
- MissingUserReference: no resolvable user. Drop the event; the caller may
  dead-letter it.
- StaleEventIgnored: the event would move a period backward. Expected under
  at-least-once, out-of-order delivery. Logged, never surfaced to callers.
- StoreUnavailable: the subscription store failed. Propagated; the caller's
  retry policy governs recovery.
"""


class BillingError(Exception):
    """Base exception for billing reconciliation errors."""


class InvalidPlanKind(BillingError, ValueError):
    """Raised when a plan identifier is not in the plan catalog."""

    def __init__(self, plan, message: str = ""):
        self.plan = plan
        super().__init__(message or f"Unknown plan kind: {plan!r}")


class MissingUserReference(BillingError):
    """Raised when an event cannot be tied to a user."""


class StaleEventIgnored(BillingError):
    """Raised internally when an event would move period_end backward."""


class StoreUnavailable(BillingError):
    """Raised when the subscription store cannot be read or written."""
