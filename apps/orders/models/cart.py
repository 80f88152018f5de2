from django.conf import settings
from django.db import models

from apps.utils.models import TimestampedModel


class Cart(TimestampedModel):
    """
    Per-customer cart, one per user.
    Owned by the cart collaborator; the core only reads it at checkout
    and clears it after a committed order.
    """
    user = models.OneToOneField(
        settings.AUTH_USER_MODEL,
        related_name="cart",
        on_delete=models.CASCADE,
    )

    class Meta:
        db_table = "carts"

    def __str__(self):
        return f"Cart for {self.user_id}"


class CartItem(models.Model):
    cart = models.ForeignKey(
        Cart,
        related_name="items",
        on_delete=models.CASCADE,
    )
    product = models.ForeignKey(
        "catalog.Product",
        related_name="cart_items",
        on_delete=models.CASCADE,
    )

    quantity = models.PositiveIntegerField(default=1)
    added_at = models.DateTimeField(auto_now_add=True)

    class Meta:
        db_table = "cart_items"
        constraints = [
            models.UniqueConstraint(fields=["cart", "product"], name="uniq_cart_product"),
        ]

    def __str__(self):
        return f"{self.cart_id} -> {self.product_id} x {self.quantity}"
