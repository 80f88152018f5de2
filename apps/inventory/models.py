from django.db import models
from django.conf import settings
from apps.catalog.models import Product


class InventoryLogQuerySet(models.QuerySet):
    def update(self, **kwargs):
        raise TypeError("Inventory log entries are immutable.")

    def delete(self):
        raise TypeError("Inventory log entries are append-only.")


class InventoryLog(models.Model):
    """
    Immutable ledger of every stock change.
    Exactly one row per mutation of Product.stock, written in the same transaction.
    Per product, ordered by id, `previous_stock` of each row equals `new_stock` of the row before.
    """
    class ChangeType(models.TextChoices):
        STOCK_IN = "stock_in", "Stock In"
        STOCK_OUT = "stock_out", "Stock Out"
        ADJUSTMENT = "adjustment", "Manual Adjustment"

    product = models.ForeignKey(
        Product,
        on_delete=models.PROTECT,
        related_name='inventory_logs'
    )
    change_type = models.CharField(max_length=20, choices=ChangeType.choices)
    quantity_change = models.IntegerField(help_text="Delta value (+/-)")
    previous_stock = models.IntegerField()
    new_stock = models.IntegerField()

    # Traceability
    reason = models.TextField(blank=True, help_text="Order #id, cancellation, audit note")
    created_by = models.ForeignKey(
        settings.AUTH_USER_MODEL,
        null=True,
        blank=True,
        on_delete=models.SET_NULL,
        related_name='inventory_changes',
    )
    created_at = models.DateTimeField(auto_now_add=True, db_index=True)

    objects = InventoryLogQuerySet.as_manager()

    class Meta:
        db_table = "inventory_logs"
        ordering = ['-id']
        indexes = [
            models.Index(fields=['product', 'id'], name='inventory_logs_product_idx'),
        ]
        constraints = [
            models.CheckConstraint(
                condition=models.Q(new_stock=models.F('previous_stock') + models.F('quantity_change')),
                name='inventory_log_delta_brackets_change',
            ),
            models.CheckConstraint(
                condition=models.Q(new_stock__gte=0),
                name='inventory_log_new_stock_non_negative',
            ),
        ]

    def __str__(self):
        return f"{self.product_id} {self.change_type} {self.quantity_change:+d} ({self.previous_stock}->{self.new_stock})"

    def save(self, *args, **kwargs):
        if not self._state.adding:
            raise TypeError("Inventory log entries are immutable.")
        super().save(*args, **kwargs)

    def delete(self, *args, **kwargs):
        raise TypeError("Inventory log entries are append-only.")
