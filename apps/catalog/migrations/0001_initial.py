from decimal import Decimal

import django.core.validators
from django.db import migrations, models


class Migration(migrations.Migration):

    initial = True

    dependencies = []

    operations = [
        migrations.CreateModel(
            name="Product",
            fields=[
                ("id", models.BigAutoField(auto_created=True, primary_key=True, serialize=False, verbose_name="ID")),
                ("created_at", models.DateTimeField(auto_now_add=True, db_index=True)),
                ("updated_at", models.DateTimeField(auto_now=True)),
                ("name", models.CharField(max_length=255)),
                ("description", models.TextField(blank=True)),
                ("category", models.CharField(db_index=True, max_length=100)),
                (
                    "price",
                    models.DecimalField(
                        decimal_places=2,
                        help_text="Current unit price (fixed-point)",
                        max_digits=12,
                        validators=[django.core.validators.MinValueValidator(Decimal("0.00"))],
                    ),
                ),
                (
                    "stock",
                    models.PositiveIntegerField(
                        default=0, help_text="Available quantity. Written by the stock ledger only."
                    ),
                ),
            ],
            options={
                "db_table": "products",
                "ordering": ["id"],
                "indexes": [models.Index(fields=["category", "stock"], name="products_category_stock_idx")],
                "constraints": [
                    models.CheckConstraint(condition=models.Q(stock__gte=0), name="product_stock_non_negative"),
                    models.CheckConstraint(condition=models.Q(price__gte=0), name="product_price_non_negative"),
                ],
            },
        ),
    ]
