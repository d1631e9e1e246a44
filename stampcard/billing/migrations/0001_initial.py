import django.utils.timezone
import model_utils.fields
from django.db import migrations, models


class Migration(migrations.Migration):
    initial = True

    dependencies = []

    operations = [
        migrations.CreateModel(
            name="Subscription",
            fields=[
                ("id", models.BigAutoField(auto_created=True, primary_key=True, serialize=False, verbose_name="ID")),
                (
                    "created",
                    model_utils.fields.AutoCreatedField(
                        default=django.utils.timezone.now, editable=False, verbose_name="created"
                    ),
                ),
                (
                    "modified",
                    model_utils.fields.AutoLastModifiedField(
                        default=django.utils.timezone.now, editable=False, verbose_name="modified"
                    ),
                ),
                (
                    "user_id",
                    models.CharField(
                        db_index=True,
                        help_text="External auth user id that owns this subscription.",
                        max_length=64,
                    ),
                ),
                (
                    "plan",
                    models.CharField(
                        choices=[
                            ("trial", "Trial"),
                            ("monthly", "Monthly"),
                            ("semiannual", "Semiannual"),
                            ("annual", "Annual"),
                        ],
                        max_length=20,
                    ),
                ),
                (
                    "status",
                    models.CharField(
                        choices=[
                            ("active", "Active"),
                            ("expired", "Expired"),
                            ("cancelled", "Cancelled"),
                            ("past_due", "Past Due"),
                        ],
                        default="active",
                        max_length=20,
                    ),
                ),
                (
                    "stripe_subscription_id",
                    models.CharField(
                        blank=True, default="", help_text="Stripe Subscription ID (sub_xxx).", max_length=255
                    ),
                ),
                (
                    "stripe_customer_id",
                    models.CharField(
                        blank=True, default="", help_text="Stripe Customer ID (cus_xxx).", max_length=255
                    ),
                ),
                ("current_period_start", models.DateTimeField(help_text="Start of current billing period.")),
                ("current_period_end", models.DateTimeField(help_text="End of current billing period.")),
            ],
            options={
                "indexes": [
                    models.Index(fields=["status"], name="billing_sub_status_idx"),
                    models.Index(fields=["stripe_customer_id"], name="billing_sub_customer_idx"),
                    models.Index(fields=["user_id", "-created"], name="billing_sub_user_created_idx"),
                ],
                "constraints": [
                    models.UniqueConstraint(
                        condition=models.Q(("stripe_subscription_id", ""), _negated=True),
                        fields=("stripe_subscription_id",),
                        name="billing_unique_stripe_subscription_id",
                    ),
                    models.CheckConstraint(
                        condition=models.Q(("current_period_end__gt", models.F("current_period_start"))),
                        name="billing_period_end_after_start",
                    ),
                ],
            },
        ),
    ]
