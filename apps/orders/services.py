import logging
from decimal import Decimal

from django.conf import settings
from django.db import transaction

from apps.inventory.services import StockLedger
from apps.utils.exceptions import AccessDenied, InvalidTransition, OrderNotCancellable, OrderNotFound, ValidationError
from apps.utils.resilience import retry_on_transient_error
from apps.utils.validators import validate_choice, validate_length, validate_positive_int
from .events import (
    ORDER_CANCELLED,
    ORDER_CREATED,
    ORDER_STATUS_UPDATED,
    SignalEventPublisher,
    build_payload,
)
from .models import Cart, CartItem, Order, OrderItem
from .status import ensure_transition, is_cancellable

logger = logging.getLogger(__name__)

ORDER_ORDERING_FIELDS = {"created_at", "total_amount", "status", "id"}


def is_staff(user) -> bool:
    return bool(getattr(user, "is_order_staff", False))


def ensure_owner_or_staff(order, requester):
    if requester is None:
        raise AccessDenied()
    if order.user_id != requester.pk and not is_staff(requester):
        raise AccessDenied()


class CartService:
    """
    Cart collaborator: supplies checkout lines and is told to clear itself
    after a committed order.
    """

    @staticmethod
    def items_for_checkout(user):
        try:
            cart = Cart.objects.prefetch_related("items").get(user=user)
        except Cart.DoesNotExist:
            raise ValidationError("No active cart found.")

        items = [
            {"product_id": item.product_id, "quantity": item.quantity}
            for item in cart.items.all()
        ]
        if not items:
            raise ValidationError("Cart is empty.")
        return items

    @staticmethod
    def clear(user):
        deleted, _ = CartItem.objects.filter(cart__user=user).delete()
        logger.debug(f"Cleared {deleted} cart item(s) for user {user.pk}")


class OrderService:
    """
    Transaction coordinator for order placement, status changes and cancellation.

    Stock is touched only through StockLedger, inside the same transaction as the
    order rows. Cart clearing and event publication are registered with
    transaction.on_commit, so they run strictly after commit and are dropped on rollback.
    """

    def __init__(self, events=None, cart=None):
        self.events = events or SignalEventPublisher()
        self.cart = cart or CartService()

    # ------------------------------------------------------------------
    # PlaceOrder
    # ------------------------------------------------------------------
    def place_order(self, user, items, shipping_address, payment_method, notes="", clear_cart=True):
        """
        1. Validate input (no transaction yet)
        2. Lock products ascending by id, reserve stock, insert order + items (atomic)
        3. After commit: clear cart, emit order:created
        """
        lines = self._clean_lines(items)
        shipping_address = validate_length(
            shipping_address, "shipping_address", min_length=10, max_length=500, required=True
        )
        payment_method = validate_choice(payment_method, "payment_method", Order.PaymentMethod.values)
        notes = validate_length(notes, "notes", max_length=1000)

        return self._place_order_atomic(
            user, lines, shipping_address, payment_method, notes, clear_cart
        )

    def place_order_from_cart(self, user, shipping_address, payment_method, notes=""):
        items = self.cart.items_for_checkout(user)
        return self.place_order(user, items, shipping_address, payment_method, notes)

    @retry_on_transient_error("PlaceOrder")
    def _place_order_atomic(self, user, lines, shipping_address, payment_method, notes, clear_cart):
        with transaction.atomic():
            products = StockLedger.lock_products(pid for pid, _ in lines)

            total_amount = Decimal("0.00")
            for product_id, qty in lines:
                total_amount += products[product_id].price * qty

            order = Order.objects.create(
                user=user,
                total_amount=total_amount,
                status=Order.Status.PENDING,
                payment_status=Order.PaymentStatus.PENDING,
                shipping_address=shipping_address,
                payment_method=payment_method,
                notes=notes,
            )

            # Ascending product id, same order as the locks
            reason = f"Order #{order.pk}"
            for product_id, qty in lines:
                StockLedger.reserve(products[product_id], qty, reason, actor=user)

            OrderItem.objects.bulk_create([
                OrderItem(
                    order=order,
                    product_id=product_id,
                    product_name=products[product_id].name,
                    price=products[product_id].price,
                    quantity=qty,
                )
                for product_id, qty in lines
            ])

            order.verify_total()

            if clear_cart:
                transaction.on_commit(lambda: self.cart.clear(user), robust=True)
            self._publish_on_commit(
                ORDER_CREATED, order, ["status", "total_amount", "items"], user
            )

        logger.info(
            f"Order #{order.pk} placed: {len(lines)} line(s), total {order.total_amount}",
            extra={"order_id": order.pk, "user_id": user.pk},
        )
        return order

    @staticmethod
    def _clean_lines(items):
        """
        Returns [(product_id, quantity)] sorted by product id.
        Repeated product ids are merged so each row is locked and reserved once.
        """
        if not items:
            raise ValidationError("Order must contain at least one item.", field="items")

        merged = {}
        for raw in items:
            if isinstance(raw, dict):
                product_id, qty = raw.get("product_id"), raw.get("quantity")
            else:
                try:
                    product_id, qty = raw
                except (TypeError, ValueError):
                    raise ValidationError("Each item needs a product_id and a quantity.", field="items")

            product_id = validate_positive_int(product_id, "product_id")
            qty = validate_positive_int(qty, "quantity")
            merged[product_id] = merged.get(product_id, 0) + qty

        return sorted(merged.items())

    # ------------------------------------------------------------------
    # UpdateOrderStatus
    # ------------------------------------------------------------------
    def update_status(self, order_id, new_status, tracking_number=None, requester=None):
        if not is_staff(requester):
            raise AccessDenied("Only admin or manager can update order status.")

        validate_choice(new_status, "status", Order.Status.values)
        tracking_number = validate_length(tracking_number, "tracking_number", max_length=100)

        return self._update_status_atomic(order_id, new_status, tracking_number, requester)

    @retry_on_transient_error("UpdateOrderStatus")
    def _update_status_atomic(self, order_id, new_status, tracking_number, requester):
        with transaction.atomic():
            order = self._lock_order(order_id)
            changed = ensure_transition(order.status, new_status)

            if not changed:
                # Same status again: no-op, except a newly supplied tracking number
                if tracking_number and tracking_number != order.tracking_number:
                    order.tracking_number = tracking_number
                    order.save(update_fields=["tracking_number", "updated_at"])
                    self._publish_on_commit(
                        ORDER_STATUS_UPDATED, order, ["tracking_number"], requester
                    )
                return order

            if new_status == Order.Status.CANCELLED:
                # Cancellation always goes through the compensating path
                return self._cancel_locked(order, "Cancelled by staff", requester)

            old_status = order.status
            order.status = new_status
            fields = ["status"]
            if tracking_number:
                order.tracking_number = tracking_number
                fields.append("tracking_number")
            order.save(update_fields=fields + ["updated_at"])

            self._publish_on_commit(ORDER_STATUS_UPDATED, order, fields, requester)

        logger.info(
            f"Order #{order.pk} status {old_status} -> {new_status}",
            extra={"order_id": order.pk, "user_id": requester.pk},
        )
        return order

    # ------------------------------------------------------------------
    # CancelOrder (compensating transaction)
    # ------------------------------------------------------------------
    def cancel_order(self, order_id, reason="", requester=None):
        reason = validate_length(reason, "reason", max_length=500)
        return self._cancel_order_atomic(order_id, reason, requester)

    @retry_on_transient_error("CancelOrder")
    def _cancel_order_atomic(self, order_id, reason, requester):
        with transaction.atomic():
            order = self._lock_order(order_id)
            ensure_owner_or_staff(order, requester)
            return self._cancel_locked(order, reason, requester)

    def _cancel_locked(self, order, reason, actor):
        """
        Caller holds the order row lock. Restores exactly the reserved quantities.
        """
        if not is_cancellable(order.status):
            raise OrderNotCancellable(order.pk, order.status)

        items = list(order.items.order_by("product_id", "id"))
        products = StockLedger.lock_products(item.product_id for item in items)

        log_reason = f"Order #{order.pk} cancelled: {reason}" if reason else f"Order #{order.pk} cancelled"
        for item in items:
            StockLedger.release(products[item.product_id], item.quantity, log_reason, actor=actor)

        order.status = Order.Status.CANCELLED
        note = f"Cancellation reason: {reason}" if reason else "Cancelled"
        order.notes = f"{order.notes}\n{note}" if order.notes else note
        fields = ["status", "notes"]

        if order.payment_status == Order.PaymentStatus.COMPLETED:
            order.payment_status = Order.PaymentStatus.REFUNDED
            fields.append("payment_status")

        order.save(update_fields=fields + ["updated_at"])
        self._publish_on_commit(ORDER_CANCELLED, order, fields, actor)

        logger.info(
            f"Order #{order.pk} cancelled, {len(items)} line(s) restocked",
            extra={"order_id": order.pk, "user_id": getattr(actor, "pk", None)},
        )
        return order

    # ------------------------------------------------------------------
    # Payment collaborator callback
    # ------------------------------------------------------------------
    @retry_on_transient_error("UpdatePaymentStatus")
    def update_payment_status(self, order_id, payment_status, actor=None):
        validate_choice(payment_status, "payment_status", Order.PaymentStatus.values)

        with transaction.atomic():
            order = self._lock_order(order_id)
            if order.payment_status == payment_status:
                return order

            if (
                order.status == Order.Status.CANCELLED
                and payment_status == Order.PaymentStatus.COMPLETED
            ):
                raise InvalidTransition(order.status, payment_status)

            order.payment_status = payment_status
            order.save(update_fields=["payment_status", "updated_at"])
            self._publish_on_commit(ORDER_STATUS_UPDATED, order, ["payment_status"], actor)

        return order

    # ------------------------------------------------------------------
    @staticmethod
    def _lock_order(order_id):
        try:
            return Order.objects.select_for_update().get(pk=order_id)
        except (Order.DoesNotExist, ValueError, TypeError):
            raise OrderNotFound(order_id)

    def _publish_on_commit(self, event, order, affected_fields, actor):
        payload = build_payload(order, affected_fields, actor)
        transaction.on_commit(lambda: self.events.publish(event, payload), robust=True)


class OrderQueryService:
    """
    Read side: no row locks, no writes.
    """

    @staticmethod
    def get_order(order_id, requester):
        try:
            order = Order.objects.prefetch_related("items").get(pk=order_id)
        except (Order.DoesNotExist, ValueError, TypeError):
            raise OrderNotFound(order_id)

        ensure_owner_or_staff(order, requester)
        return order

    @staticmethod
    def list_orders(
        requester=None,
        user_id=None,
        status=None,
        payment_status=None,
        start_date=None,
        end_date=None,
        page=1,
        page_size=20,
        ordering="-created_at",
    ):
        """
        Returns (orders, total_count). Non-staff requesters only ever see their own orders.
        """
        if requester is not None and not is_staff(requester):
            if user_id is not None and str(user_id) != str(requester.pk):
                raise AccessDenied()
            user_id = requester.pk

        qs = Order.objects.all()
        if user_id is not None:
            qs = qs.filter(user_id=user_id)
        if status:
            qs = qs.filter(status=validate_choice(status, "status", Order.Status.values))
        if payment_status:
            qs = qs.filter(
                payment_status=validate_choice(
                    payment_status, "payment_status", Order.PaymentStatus.values
                )
            )
        if start_date:
            qs = qs.filter(created_at__gte=start_date)
        if end_date:
            qs = qs.filter(created_at__lte=end_date)

        if ordering.lstrip("-") not in ORDER_ORDERING_FIELDS:
            raise ValidationError(f"Cannot sort by '{ordering}'.", field="ordering")

        page = validate_positive_int(page, "page")
        page_size = min(
            validate_positive_int(page_size, "page_size"),
            getattr(settings, "ORDER_LIST_MAX_PAGE_SIZE", 100),
        )

        total_count = qs.count()
        offset = (page - 1) * page_size
        orders = list(
            qs.order_by(ordering, "-id").prefetch_related("items")[offset:offset + page_size]
        )
        return orders, total_count
