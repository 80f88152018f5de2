from decimal import Decimal

from django.db import models

from apps.catalog.models import Product
from .order import Order


class OrderItem(models.Model):
    """
    Line item with point-in-time product name and price.
    Created together with its order and never changed afterwards.
    """
    order = models.ForeignKey(Order, on_delete=models.CASCADE, related_name='items')
    product = models.ForeignKey(Product, on_delete=models.PROTECT, related_name='order_items')

    # Snapshot fields (decoupled from later catalog changes)
    product_name = models.CharField(max_length=255)
    price = models.DecimalField(max_digits=12, decimal_places=2)

    quantity = models.PositiveIntegerField()

    class Meta:
        db_table = "order_items"
        ordering = ["id"]
        constraints = [
            models.CheckConstraint(
                condition=models.Q(quantity__gte=1),
                name="order_item_quantity_positive",
            ),
        ]

    def save(self, *args, **kwargs):
        if not self._state.adding:
            raise TypeError("Order items are immutable.")
        super().save(*args, **kwargs)

    @property
    def line_total(self) -> Decimal:
        return self.price * self.quantity

    def __str__(self):
        return f"{self.quantity}x {self.product_name}"
