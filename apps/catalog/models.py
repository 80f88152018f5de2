# apps/catalog/models.py
from decimal import Decimal

from django.core.validators import MinValueValidator
from django.db import models

from apps.utils.models import TimestampedModel


class Product(TimestampedModel):
    """
    Sellable product, owned by the catalog.

    NOTE:
    - Orders only READ name/price (snapshotted into order items).
    - `stock` is mutated ONLY through apps.inventory.services.StockLedger,
      never by a direct save from any other code path.
    """
    name = models.CharField(max_length=255)
    description = models.TextField(blank=True)
    category = models.CharField(max_length=100, db_index=True)

    price = models.DecimalField(
        max_digits=12,
        decimal_places=2,
        validators=[MinValueValidator(Decimal("0.00"))],
        help_text="Current unit price (fixed-point)",
    )
    stock = models.PositiveIntegerField(
        default=0,
        help_text="Available quantity. Written by the stock ledger only.",
    )

    class Meta:
        db_table = "products"
        ordering = ["id"]
        indexes = [
            models.Index(fields=["category", "stock"], name="products_category_stock_idx"),
        ]
        constraints = [
            models.CheckConstraint(
                condition=models.Q(stock__gte=0),
                name="product_stock_non_negative",
            ),
            models.CheckConstraint(
                condition=models.Q(price__gte=0),
                name="product_price_non_negative",
            ),
        ]

    def __str__(self):
        return f"{self.name} (#{self.pk})"
