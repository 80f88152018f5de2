"""
Top-level models import shim for the Orders app, so that

    from apps.orders.models import Order, OrderItem, Cart

works while the actual models live in separate modules.
"""

from .order import Order
from .item import OrderItem
from .cart import Cart, CartItem

__all__ = ["Order", "OrderItem", "Cart", "CartItem"]
