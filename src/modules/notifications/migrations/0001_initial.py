import django.db.models.deletion
import uuid6
from django.db import migrations, models


class Migration(migrations.Migration):

    initial = True

    dependencies = [
        ("farmers", "0001_initial"),
        ("orders", "0001_initial"),
    ]

    operations = [
        migrations.CreateModel(
            name="Notification",
            fields=[
                (
                    "id",
                    models.UUIDField(
                        default=uuid6.uuid7,
                        editable=False,
                        primary_key=True,
                        serialize=False,
                    ),
                ),
                ("created_at", models.DateTimeField(auto_now_add=True)),
                ("updated_at", models.DateTimeField(auto_now=True)),
                (
                    "correlation_id",
                    models.CharField(blank=True, default="", max_length=64),
                ),
                ("rule", models.CharField(max_length=64)),
                (
                    "channel",
                    models.CharField(
                        choices=[("sms", "SMS"), ("email", "Email")], max_length=10
                    ),
                ),
                (
                    "audience",
                    models.CharField(
                        choices=[("customer", "Customer"), ("farmer", "Farmer")],
                        max_length=10,
                    ),
                ),
                (
                    "recipient",
                    models.CharField(blank=True, default="", max_length=254),
                ),
                ("subject", models.CharField(blank=True, default="", max_length=255)),
                ("message", models.TextField(blank=True, default="")),
                ("html_message", models.TextField(blank=True, default="")),
                ("sent_at", models.DateTimeField()),
                (
                    "outcome",
                    models.CharField(
                        choices=[
                            ("sent", "Sent"),
                            ("skipped", "Skipped"),
                            ("failed", "Failed"),
                        ],
                        max_length=10,
                    ),
                ),
                (
                    "error_class",
                    models.CharField(blank=True, default="", max_length=64),
                ),
                ("error_message", models.TextField(blank=True, default="")),
                (
                    "provider_message_id",
                    models.CharField(blank=True, default="", max_length=255),
                ),
                ("attempt", models.PositiveIntegerField(default=1)),
                (
                    "farmer",
                    models.ForeignKey(
                        blank=True,
                        null=True,
                        on_delete=django.db.models.deletion.PROTECT,
                        related_name="notifications",
                        to="farmers.farmer",
                    ),
                ),
                (
                    "order",
                    models.ForeignKey(
                        blank=True,
                        null=True,
                        on_delete=django.db.models.deletion.PROTECT,
                        related_name="notifications",
                        to="orders.order",
                    ),
                ),
                (
                    "retry_of",
                    models.ForeignKey(
                        blank=True,
                        null=True,
                        on_delete=django.db.models.deletion.PROTECT,
                        related_name="retries",
                        to="notifications.notification",
                    ),
                ),
            ],
            options={
                "db_table": "notifications",
                "ordering": ["sent_at", "id"],
                "indexes": [
                    models.Index(
                        fields=["outcome", "sent_at"], name="notif_outcome_sent_idx"
                    )
                ],
            },
        ),
    ]
