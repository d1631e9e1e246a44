"""
Management command to expire subscriptions whose paid period has ended.

Access evaluation already denies access once current_period_end passes;
this command moves those rows to ``expired`` so statistics and the admin
dashboard reflect reality.

Usage:
    python manage.py expire_subscriptions
    python manage.py expire_subscriptions --dry-run
"""

import logging

from django.core.management.base import BaseCommand
from django.utils import timezone

from stampcard.billing.constants import SubscriptionStatus
from stampcard.billing.models import Subscription

logger = logging.getLogger(__name__)


class Command(BaseCommand):
    help = "Mark active subscriptions past their period end as expired."

    def add_arguments(self, parser):
        parser.add_argument(
            "--dry-run",
            action="store_true",
            help="Show what would be expired without changing anything",
        )

    def handle(self, *args, **options):
        dry_run = options["dry_run"]
        now = timezone.now()

        lapsed = Subscription.objects.active().filter(current_period_end__lte=now)
        count = lapsed.count()

        if count == 0:
            self.stdout.write(self.style.SUCCESS("No lapsed subscriptions found."))
            return

        if dry_run:
            self.stdout.write(
                self.style.WARNING(
                    f"[DRY RUN] Would expire {count} subscription(s)."
                )
            )
            return

        updated = lapsed.update(status=SubscriptionStatus.EXPIRED, modified=now)
        logger.info("Expired %s lapsed subscription(s)", updated)
        self.stdout.write(self.style.SUCCESS(f"Expired {updated} subscription(s)."))
