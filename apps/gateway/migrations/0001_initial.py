import django.db.models.deletion
from django.db import migrations, models

from apps.gateway.conf import transactions_table


class Migration(migrations.Migration):

    initial = True

    dependencies = []

    operations = [
        migrations.CreateModel(
            name="Transaction",
            fields=[
                ("id", models.BigAutoField(auto_created=True, primary_key=True, serialize=False, verbose_name="ID")),
                (
                    "port",
                    models.CharField(
                        choices=[
                            ("MELLAT", "Mellat"),
                            ("SADAD", "Sadad"),
                            ("ZARINPAL", "Zarinpal"),
                            ("PARSIAN", "Parsian"),
                            ("PASARGAD", "Pasargad"),
                            ("SAMAN", "Saman"),
                            ("PAYPAL", "PayPal"),
                            ("ASANPARDAKHT", "Asan Pardakht"),
                            ("PAYIR", "Pay.ir"),
                        ],
                        max_length=32,
                    ),
                ),
                ("amount", models.PositiveBigIntegerField()),
                ("ref_id", models.CharField(blank=True, db_index=True, max_length=255, null=True)),
                ("tracking_code", models.CharField(blank=True, max_length=255, null=True)),
                (
                    "status",
                    models.CharField(
                        choices=[("PENDING", "Pending"), ("SUCCEED", "Succeed"), ("FAILED", "Failed")],
                        db_index=True,
                        default="PENDING",
                        max_length=16,
                    ),
                ),
                ("payer_meta", models.JSONField(blank=True, default=dict)),
                ("ip", models.GenericIPAddressField(blank=True, null=True)),
                ("payment_date", models.DateTimeField(blank=True, null=True)),
                ("created_at", models.DateTimeField(auto_now_add=True)),
                ("updated_at", models.DateTimeField(auto_now=True)),
            ],
            options={
                "db_table": transactions_table(),
                "ordering": ["-id"],
                "constraints": [
                    models.CheckConstraint(condition=models.Q(amount__gt=0), name="gateway_tx_amount_positive"),
                ],
            },
        ),
        migrations.CreateModel(
            name="TransactionLog",
            fields=[
                ("id", models.BigAutoField(auto_created=True, primary_key=True, serialize=False, verbose_name="ID")),
                ("status_code", models.CharField(max_length=64)),
                ("message", models.TextField(blank=True, default="")),
                ("created_at", models.DateTimeField(auto_now_add=True)),
                (
                    "transaction",
                    models.ForeignKey(
                        on_delete=django.db.models.deletion.CASCADE,
                        related_name="logs",
                        to="gateway.transaction",
                    ),
                ),
            ],
            options={
                "db_table": f"{transactions_table()}_logs",
                "ordering": ["created_at", "id"],
            },
        ),
    ]
