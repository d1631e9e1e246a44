from django.db import migrations, models


class Migration(migrations.Migration):
    dependencies = [
        ("billing", "0001_initial"),
    ]

    operations = [
        migrations.AddConstraint(
            model_name="subscription",
            constraint=models.UniqueConstraint(
                condition=models.Q(("status__in", ["cancelled", "expired"]), _negated=True),
                fields=("user_id",),
                name="billing_one_open_subscription_per_user",
            ),
        ),
    ]
