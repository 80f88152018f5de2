import django.db.models.deletion
from django.conf import settings
from django.db import migrations, models


class Migration(migrations.Migration):

    initial = True

    dependencies = [
        ("catalog", "0001_initial"),
        migrations.swappable_dependency(settings.AUTH_USER_MODEL),
    ]

    operations = [
        migrations.CreateModel(
            name="InventoryLog",
            fields=[
                ("id", models.BigAutoField(auto_created=True, primary_key=True, serialize=False, verbose_name="ID")),
                (
                    "change_type",
                    models.CharField(
                        choices=[
                            ("stock_in", "Stock In"),
                            ("stock_out", "Stock Out"),
                            ("adjustment", "Manual Adjustment"),
                        ],
                        max_length=20,
                    ),
                ),
                ("quantity_change", models.IntegerField(help_text="Delta value (+/-)")),
                ("previous_stock", models.IntegerField()),
                ("new_stock", models.IntegerField()),
                (
                    "reason",
                    models.CharField(blank=True, help_text="Order #id, cancellation, audit note", max_length=255),
                ),
                ("created_at", models.DateTimeField(auto_now_add=True, db_index=True)),
                (
                    "created_by",
                    models.ForeignKey(
                        blank=True,
                        null=True,
                        on_delete=django.db.models.deletion.SET_NULL,
                        related_name="inventory_changes",
                        to=settings.AUTH_USER_MODEL,
                    ),
                ),
                (
                    "product",
                    models.ForeignKey(
                        on_delete=django.db.models.deletion.PROTECT,
                        related_name="inventory_logs",
                        to="catalog.product",
                    ),
                ),
            ],
            options={
                "db_table": "inventory_logs",
                "ordering": ["-id"],
                "indexes": [models.Index(fields=["product", "id"], name="inventory_logs_product_idx")],
                "constraints": [
                    models.CheckConstraint(
                        condition=models.Q(new_stock=models.F("previous_stock") + models.F("quantity_change")),
                        name="inventory_log_delta_brackets_change",
                    ),
                    models.CheckConstraint(
                        condition=models.Q(new_stock__gte=0),
                        name="inventory_log_new_stock_non_negative",
                    ),
                ],
            },
        ),
    ]
