from decimal import Decimal

from django.conf import settings
from django.db import IntegrityError, models

from apps.utils.models import TimestampedModel


class Order(TimestampedModel):
    class Status(models.TextChoices):
        PENDING = "pending", "Pending"
        PROCESSING = "processing", "Processing"
        SHIPPED = "shipped", "Shipped"
        DELIVERED = "delivered", "Delivered"
        CANCELLED = "cancelled", "Cancelled"

    class PaymentStatus(models.TextChoices):
        PENDING = "pending", "Pending"
        COMPLETED = "completed", "Completed"
        FAILED = "failed", "Failed"
        REFUNDED = "refunded", "Refunded"

    class PaymentMethod(models.TextChoices):
        CREDIT_CARD = "credit_card", "Credit Card"
        DEBIT_CARD = "debit_card", "Debit Card"
        PAYPAL = "paypal", "PayPal"
        STRIPE = "stripe", "Stripe"

    # Fixed at checkout; only status/payment/tracking/notes change afterwards
    IMMUTABLE_FIELDS = frozenset({"user", "user_id", "total_amount", "created_at"})

    user = models.ForeignKey(settings.AUTH_USER_MODEL, on_delete=models.PROTECT, related_name='orders')

    total_amount = models.DecimalField(max_digits=12, decimal_places=2)

    status = models.CharField(max_length=20, choices=Status.choices, default=Status.PENDING, db_index=True)
    payment_status = models.CharField(
        max_length=20, choices=PaymentStatus.choices, default=PaymentStatus.PENDING, db_index=True
    )

    shipping_address = models.TextField()
    payment_method = models.CharField(max_length=20, choices=PaymentMethod.choices)
    notes = models.TextField(blank=True)
    tracking_number = models.CharField(max_length=100, blank=True)

    class Meta:
        db_table = "orders"
        ordering = ["-created_at", "-id"]
        indexes = [
            models.Index(fields=["user", "created_at"], name="orders_user_created_idx"),
        ]
        constraints = [
            models.CheckConstraint(
                condition=models.Q(total_amount__gte=0),
                name="order_total_non_negative",
            ),
        ]

    def __str__(self):
        return f"Order #{self.pk} [{self.status}]"

    def save(self, *args, **kwargs):
        if not self._state.adding:
            update_fields = kwargs.get("update_fields")
            if update_fields is None:
                raise TypeError("Existing orders must be saved with explicit update_fields.")
            frozen = self.IMMUTABLE_FIELDS.intersection(update_fields)
            if frozen:
                raise TypeError(f"Order fields {sorted(frozen)} cannot change after checkout.")
        super().save(*args, **kwargs)

    @property
    def items_total(self) -> Decimal:
        total = Decimal("0.00")
        for item in self.items.all():
            total += item.line_total
        return total

    def verify_total(self):
        """
        total_amount must equal sum(price * quantity) of the line items, exactly.
        """
        items_total = self.items_total
        if items_total != self.total_amount:
            raise IntegrityError(
                f"Order {self.pk} total {self.total_amount} != line items {items_total}"
            )
