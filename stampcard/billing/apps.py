from django.apps import AppConfig


class BillingConfig(AppConfig):
    """
    Django app configuration for the billing app.

    Handles Stripe webhook reconciliation, subscription periods and
    access evaluation.
    """

    default_auto_field = "django.db.models.BigAutoField"
    name = "stampcard.billing"
    label = "billing"

    def ready(self):
        """
        Import webhook handlers so their dj-stripe signal receivers are
        connected when Django starts.
        """
        from stampcard.billing import webhooks  # noqa: F401
