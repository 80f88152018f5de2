# apps/orders/tests.py
from decimal import Decimal

from django.contrib.auth import get_user_model
from django.db import transaction
from django.test import TestCase
from django.urls import reverse

from rest_framework import status
from rest_framework.test import APITestCase

from apps.catalog.models import Product
from apps.inventory.models import InventoryLog
from apps.inventory.services import StockLedger
from apps.orders.events import (
    ORDER_CANCELLED,
    ORDER_CREATED,
    ORDER_STATUS_UPDATED,
    SignalEventPublisher,
)
from apps.orders.models import Cart, CartItem, Order, OrderItem
from apps.orders.services import OrderQueryService, OrderService
from apps.orders.signals import order_created
from apps.orders.status import can_transition, ensure_transition
from apps.utils.exceptions import (
    AccessDenied,
    InsufficientStock,
    InvalidTransition,
    OrderNotCancellable,
    OrderNotFound,
    ProductNotFound,
    ValidationError,
)

User = get_user_model()

ADDRESS = "221B Baker Street, London"


class RecordingPublisher:
    def __init__(self):
        self.events = []

    def publish(self, event, payload):
        self.events.append((event, payload))

    def names(self):
        return [name for name, _ in self.events]


class OrderTestMixin:
    def setUp(self):
        self.customer = User.objects.create_user(email="buyer@example.com", password="testpass123")
        self.other = User.objects.create_user(email="other@example.com", password="testpass123")
        self.manager = User.objects.create_user(
            email="manager@example.com", password="testpass123", role="manager"
        )
        self.widget = Product.objects.create(
            name="Widget", category="tools", price=Decimal("10.00"), stock=5
        )
        self.gadget = Product.objects.create(
            name="Gadget", category="tools", price=Decimal("25.50"), stock=2
        )
        self.events = RecordingPublisher()
        self.service = OrderService(events=self.events)

    def place(self, items=None, user=None, **kwargs):
        if items is None:
            items = [
                {"product_id": self.widget.id, "quantity": 3},
                {"product_id": self.gadget.id, "quantity": 1},
            ]
        with self.captureOnCommitCallbacks(execute=True):
            return self.service.place_order(
                user or self.customer, items, ADDRESS, "credit_card", **kwargs
            )

    def stock(self, product):
        return Product.objects.values_list("stock", flat=True).get(pk=product.pk)


class PlaceOrderTests(OrderTestMixin, TestCase):
    def test_successful_checkout_reserves_stock_and_logs(self):
        order = self.place()

        self.assertEqual(order.status, Order.Status.PENDING)
        self.assertEqual(order.payment_status, Order.PaymentStatus.PENDING)
        self.assertEqual(order.total_amount, Decimal("55.50"))
        self.assertEqual(self.stock(self.widget), 2)
        self.assertEqual(self.stock(self.gadget), 1)

        logs = InventoryLog.objects.filter(reason=f"Order #{order.id}").order_by("id")
        self.assertEqual(
            [(l.product_id, l.change_type, l.quantity_change, l.previous_stock, l.new_stock) for l in logs],
            [
                (self.widget.id, "stock_out", -3, 5, 2),
                (self.gadget.id, "stock_out", -1, 2, 1),
            ],
        )
        self.assertTrue(all(l.created_by_id == self.customer.id for l in logs))

    def test_widget_and_gadget_basket(self):
        widget = Product.objects.create(name="Widget", category="toys", price=Decimal("10.00"), stock=5)
        gadget = Product.objects.create(name="Gadget", category="toys", price=Decimal("5.00"), stock=5)

        order = self.place([
            {"product_id": widget.id, "quantity": 2},
            {"product_id": gadget.id, "quantity": 1},
        ])

        self.assertEqual(order.total_amount, Decimal("25.00"))
        self.assertEqual(self.stock(widget), 3)
        self.assertEqual(self.stock(gadget), 4)
        self.assertEqual(
            list(
                InventoryLog.objects.filter(product__in=[widget, gadget])
                .order_by("product_id")
                .values_list("change_type", "quantity_change")
            ),
            [("stock_out", -2), ("stock_out", -1)],
        )

    def test_second_buyer_of_last_unit_fails(self):
        Product.objects.filter(pk=self.gadget.pk).update(stock=1)
        line = [{"product_id": self.gadget.id, "quantity": 1}]

        self.place(line)
        with self.assertRaises(InsufficientStock):
            self.place(line, user=self.other)

        self.assertEqual(self.stock(self.gadget), 0)
        self.assertEqual(Order.objects.count(), 1)

    def test_items_snapshot_name_and_price(self):
        order = self.place()

        Product.objects.filter(pk=self.widget.pk).update(name="Widget v2", price=Decimal("99.00"))

        item = OrderItem.objects.get(order=order, product=self.widget)
        self.assertEqual(item.product_name, "Widget")
        self.assertEqual(item.price, Decimal("10.00"))
        self.assertEqual(item.quantity, 3)
        self.assertEqual(order.items_total, order.total_amount)

    def test_read_after_write_returns_full_order(self):
        order = self.place()

        fetched = OrderQueryService.get_order(order.id, self.customer)
        self.assertEqual(fetched.total_amount, Decimal("55.50"))
        self.assertEqual(fetched.items.count(), 2)

    def test_created_event_after_commit(self):
        order = self.place()

        self.assertEqual(self.events.names(), [ORDER_CREATED])
        payload = self.events.events[0][1]
        self.assertEqual(payload["order_id"], order.id)
        self.assertEqual(payload["actor"], self.customer.id)
        self.assertIn("total_amount", payload["affected_fields"])

    def test_duplicate_lines_are_merged(self):
        order = self.place([
            {"product_id": self.widget.id, "quantity": 1},
            {"product_id": self.widget.id, "quantity": 2},
        ])

        self.assertEqual(order.items.count(), 1)
        self.assertEqual(order.items.get().quantity, 3)
        self.assertEqual(self.stock(self.widget), 2)
        self.assertEqual(InventoryLog.objects.filter(product=self.widget).count(), 1)

    def test_tuple_lines_accepted(self):
        order = self.place([(self.gadget.id, 2)])
        self.assertEqual(order.total_amount, Decimal("51.00"))
        self.assertEqual(self.stock(self.gadget), 0)

    def test_insufficient_stock_rolls_back_everything(self):
        with self.captureOnCommitCallbacks(execute=True) as callbacks:
            with self.assertRaises(InsufficientStock) as ctx:
                self.service.place_order(
                    self.customer,
                    [
                        {"product_id": self.widget.id, "quantity": 1},
                        {"product_id": self.gadget.id, "quantity": 5},
                    ],
                    ADDRESS,
                    "paypal",
                )

        self.assertEqual(ctx.exception.product_id, self.gadget.id)
        self.assertEqual(ctx.exception.available, 2)
        self.assertIn("Gadget", ctx.exception.message)
        # Widget was reserved before Gadget failed: that must be undone too
        self.assertEqual(self.stock(self.widget), 5)
        self.assertEqual(self.stock(self.gadget), 2)
        self.assertFalse(Order.objects.exists())
        self.assertFalse(OrderItem.objects.exists())
        self.assertFalse(InventoryLog.objects.exists())
        self.assertEqual(callbacks, [])
        self.assertEqual(self.events.events, [])

    def test_unknown_product(self):
        with self.assertRaises(ProductNotFound) as ctx:
            self.place([
                {"product_id": self.widget.id, "quantity": 1},
                {"product_id": 999999, "quantity": 1},
            ])

        self.assertEqual(ctx.exception.product_id, 999999)
        self.assertEqual(self.stock(self.widget), 5)
        self.assertFalse(Order.objects.exists())

    def test_validation_errors_touch_nothing(self):
        cases = [
            ([], ADDRESS, "credit_card"),
            ([{"product_id": self.widget.id, "quantity": 0}], ADDRESS, "credit_card"),
            ([{"product_id": self.widget.id, "quantity": -2}], ADDRESS, "credit_card"),
            ([{"product_id": self.widget.id, "quantity": 1.5}], ADDRESS, "credit_card"),
            ([{"product_id": "abc", "quantity": 1}], ADDRESS, "credit_card"),
            ([{"product_id": self.widget.id, "quantity": 1}], "short", "credit_card"),
            ([{"product_id": self.widget.id, "quantity": 1}], "x" * 501, "credit_card"),
            ([{"product_id": self.widget.id, "quantity": 1}], ADDRESS, "cash"),
        ]
        for items, address, method in cases:
            with self.subTest(items=items, address=address[:12], method=method):
                with self.assertRaises(ValidationError):
                    self.service.place_order(self.customer, items, address, method)

        self.assertEqual(self.stock(self.widget), 5)
        self.assertFalse(Order.objects.exists())

    def test_notes_too_long(self):
        with self.assertRaises(ValidationError):
            self.place(notes="n" * 1001)

    def test_stale_read_cannot_oversell(self):
        stale = Product.objects.get(pk=self.widget.pk)
        self.assertEqual(stale.stock, 5)

        # Somebody else sells out after our read
        Product.objects.filter(pk=self.widget.pk).update(stock=0)

        with self.assertRaises(InsufficientStock):
            with transaction.atomic():
                StockLedger.reserve(stale, 1, "Order #stale")

        self.assertEqual(self.stock(self.widget), 0)
        self.assertFalse(InventoryLog.objects.exists())

    def test_checkout_from_cart_clears_cart_after_commit(self):
        cart = Cart.objects.create(user=self.customer)
        CartItem.objects.create(cart=cart, product=self.widget, quantity=2)

        with self.captureOnCommitCallbacks(execute=True):
            order = self.service.place_order_from_cart(self.customer, ADDRESS, "stripe")

        self.assertEqual(order.total_amount, Decimal("20.00"))
        self.assertFalse(CartItem.objects.filter(cart=cart).exists())
        self.assertEqual(self.stock(self.widget), 3)

    def test_empty_cart(self):
        Cart.objects.create(user=self.customer)
        with self.assertRaises(ValidationError):
            self.service.place_order_from_cart(self.customer, ADDRESS, "stripe")

    def test_failed_checkout_keeps_cart(self):
        cart = Cart.objects.create(user=self.customer)
        CartItem.objects.create(cart=cart, product=self.gadget, quantity=9)

        with self.captureOnCommitCallbacks(execute=True):
            with self.assertRaises(InsufficientStock):
                self.service.place_order_from_cart(self.customer, ADDRESS, "stripe")

        self.assertTrue(CartItem.objects.filter(cart=cart).exists())

    def test_order_fields_frozen_after_checkout(self):
        order = self.place()

        order.total_amount = Decimal("1.00")
        with self.assertRaises(TypeError):
            order.save(update_fields=["total_amount"])
        with self.assertRaises(TypeError):
            order.save()


class StatusMachineTests(TestCase):
    def test_transition_table(self):
        S = Order.Status
        self.assertTrue(can_transition(S.PENDING, S.PROCESSING))
        self.assertTrue(can_transition(S.PROCESSING, S.SHIPPED))
        self.assertTrue(can_transition(S.SHIPPED, S.DELIVERED))
        self.assertTrue(can_transition(S.PENDING, S.CANCELLED))
        self.assertTrue(can_transition(S.PROCESSING, S.CANCELLED))

        self.assertFalse(can_transition(S.PENDING, S.DELIVERED))
        self.assertFalse(can_transition(S.SHIPPED, S.CANCELLED))
        self.assertFalse(can_transition(S.DELIVERED, S.CANCELLED))
        self.assertFalse(can_transition(S.CANCELLED, S.PENDING))
        self.assertFalse(can_transition(S.SHIPPED, S.PROCESSING))

    def test_same_status_is_noop(self):
        self.assertFalse(ensure_transition("shipped", "shipped"))
        with self.assertRaises(InvalidTransition):
            ensure_transition("delivered", "pending")


class UpdateStatusTests(OrderTestMixin, TestCase):
    def setUp(self):
        super().setUp()
        self.order = self.place()
        self.events.events.clear()

    def update(self, new_status, **kwargs):
        kwargs.setdefault("requester", self.manager)
        with self.captureOnCommitCallbacks(execute=True):
            return self.service.update_status(self.order.id, new_status, **kwargs)

    def test_forward_path(self):
        self.update("processing")
        order = self.update("shipped", tracking_number="TRK-1")
        self.assertEqual(order.tracking_number, "TRK-1")
        order = self.update("delivered")

        self.assertEqual(order.status, Order.Status.DELIVERED)
        self.assertEqual(self.events.names(), [ORDER_STATUS_UPDATED] * 3)
        self.assertEqual(self.events.events[1][1]["affected_fields"], ["status", "tracking_number"])

    def test_skipping_steps_is_rejected(self):
        with self.assertRaises(InvalidTransition):
            self.update("delivered")

        self.order.refresh_from_db()
        self.assertEqual(self.order.status, Order.Status.PENDING)
        self.assertEqual(self.events.events, [])

    def test_delivered_cannot_be_cancelled(self):
        for s in ("processing", "shipped", "delivered"):
            self.update(s)

        with self.assertRaises(InvalidTransition):
            self.update("cancelled")
        self.assertEqual(self.stock(self.widget), 2)

    def test_same_status_twice_is_noop(self):
        self.update("processing")
        self.events.events.clear()

        order = self.update("processing")
        self.assertEqual(order.status, Order.Status.PROCESSING)
        self.assertEqual(self.events.events, [])

    def test_same_status_with_new_tracking_number(self):
        self.update("processing")
        self.update("shipped", tracking_number="TRK-1")
        self.events.events.clear()

        order = self.update("shipped", tracking_number="TRK-2")
        self.assertEqual(order.tracking_number, "TRK-2")
        self.assertEqual(self.events.names(), [ORDER_STATUS_UPDATED])
        self.assertEqual(self.events.events[0][1]["affected_fields"], ["tracking_number"])

    def test_cancel_via_status_restores_stock(self):
        order = self.update("cancelled")

        self.assertEqual(order.status, Order.Status.CANCELLED)
        self.assertEqual(self.stock(self.widget), 5)
        self.assertEqual(self.stock(self.gadget), 2)
        self.assertEqual(self.events.names(), [ORDER_CANCELLED])

    def test_customer_cannot_update_status(self):
        with self.assertRaises(AccessDenied):
            self.update("processing", requester=self.customer)

    def test_invalid_status_value(self):
        with self.assertRaises(ValidationError):
            self.update("lost")

    def test_unknown_order(self):
        with self.assertRaises(OrderNotFound):
            self.service.update_status(424242, "processing", requester=self.manager)

    def test_payment_status(self):
        with self.captureOnCommitCallbacks(execute=True):
            order = self.service.update_payment_status(self.order.id, "completed", actor=self.manager)

        self.assertEqual(order.payment_status, Order.PaymentStatus.COMPLETED)
        self.assertEqual(self.events.events[0][1]["affected_fields"], ["payment_status"])


class CancelOrderTests(OrderTestMixin, TestCase):
    def setUp(self):
        super().setUp()
        self.order = self.place()
        self.events.events.clear()

    def cancel(self, reason="Changed my mind", requester=None):
        with self.captureOnCommitCallbacks(execute=True):
            return self.service.cancel_order(
                self.order.id, reason=reason, requester=requester or self.customer
            )

    def test_round_trip_restores_stock(self):
        order = self.cancel()

        self.assertEqual(order.status, Order.Status.CANCELLED)
        self.assertIn("Cancellation reason: Changed my mind", order.notes)
        self.assertEqual(self.stock(self.widget), 5)
        self.assertEqual(self.stock(self.gadget), 2)

        for product, qty in ((self.widget, 3), (self.gadget, 1)):
            deltas = list(
                InventoryLog.objects.filter(product=product)
                .order_by("id")
                .values_list("change_type", "quantity_change")
            )
            self.assertEqual(deltas, [("stock_out", -qty), ("stock_in", qty)])
            self.assertEqual(StockLedger.verify_chain(product.id), [])

        self.assertEqual(self.events.names(), [ORDER_CANCELLED])

    def test_second_cancel_is_rejected(self):
        self.cancel()
        with self.assertRaises(OrderNotCancellable):
            self.cancel()

        self.assertEqual(self.stock(self.widget), 5)
        self.assertEqual(InventoryLog.objects.filter(product=self.widget).count(), 2)

    def test_shipped_order_cannot_be_cancelled(self):
        with self.captureOnCommitCallbacks(execute=True):
            self.service.update_status(self.order.id, "processing", requester=self.manager)
            self.service.update_status(self.order.id, "shipped", requester=self.manager)

        with self.assertRaises(OrderNotCancellable):
            self.cancel()
        self.assertEqual(self.stock(self.widget), 2)

    def test_other_customer_is_denied(self):
        with self.assertRaises(AccessDenied):
            self.cancel(requester=self.other)

        self.order.refresh_from_db()
        self.assertEqual(self.order.status, Order.Status.PENDING)

    def test_staff_can_cancel_any_order(self):
        order = self.cancel(requester=self.manager)
        self.assertEqual(order.status, Order.Status.CANCELLED)

    def test_completed_payment_becomes_refunded(self):
        self.service.update_payment_status(self.order.id, "completed")
        order = self.cancel()
        self.assertEqual(order.payment_status, Order.PaymentStatus.REFUNDED)

        with self.assertRaises(InvalidTransition):
            self.service.update_payment_status(self.order.id, "completed")

    def test_reason_too_long(self):
        with self.assertRaises(ValidationError):
            self.cancel(reason="r" * 501)

    def test_longest_reason_reaches_the_ledger_intact(self):
        reason = "r" * 497 + "END"
        self.cancel(reason=reason)

        restock = InventoryLog.objects.filter(product=self.widget, change_type="stock_in").get()
        self.assertEqual(restock.reason, f"Order #{self.order.id} cancelled: {reason}")
        self.order.refresh_from_db()
        self.assertTrue(self.order.notes.endswith(f"Cancellation reason: {reason}"))


class EventDeliveryTests(OrderTestMixin, TestCase):
    def test_failing_receiver_does_not_undo_order(self):
        def broken_receiver(sender, **kwargs):
            raise RuntimeError("mailer down")

        order_created.connect(broken_receiver, dispatch_uid="test-broken-receiver")
        self.addCleanup(order_created.disconnect, dispatch_uid="test-broken-receiver")

        service = OrderService(events=SignalEventPublisher())
        with self.assertLogs("apps.orders.events", level="ERROR"):
            with self.captureOnCommitCallbacks(execute=True):
                order = service.place_order(
                    self.customer, [{"product_id": self.widget.id, "quantity": 1}], ADDRESS, "paypal"
                )

        self.assertTrue(Order.objects.filter(pk=order.pk).exists())
        self.assertEqual(self.stock(self.widget), 4)

    def test_signal_payload(self):
        received = []

        def listener(sender, **kwargs):
            received.append(kwargs)

        order_created.connect(listener, dispatch_uid="test-listener")
        self.addCleanup(order_created.disconnect, dispatch_uid="test-listener")

        service = OrderService(events=SignalEventPublisher())
        with self.captureOnCommitCallbacks(execute=True):
            order = service.place_order(
                self.customer, [{"product_id": self.widget.id, "quantity": 1}], ADDRESS, "paypal"
            )

        self.assertEqual(len(received), 1)
        self.assertEqual(received[0]["order_id"], order.id)
        self.assertEqual(received[0]["actor"], self.customer.id)
        self.assertIsNotNone(received[0]["timestamp"])


class OrderQueryTests(OrderTestMixin, TestCase):
    def setUp(self):
        super().setUp()
        self.first = self.place([{"product_id": self.widget.id, "quantity": 1}])
        self.second = self.place([{"product_id": self.widget.id, "quantity": 2}])
        self.theirs = self.place([{"product_id": self.gadget.id, "quantity": 1}], user=self.other)

    def test_customer_sees_only_own_orders(self):
        orders, total = OrderQueryService.list_orders(requester=self.customer)
        self.assertEqual(total, 2)
        self.assertEqual({o.id for o in orders}, {self.first.id, self.second.id})

    def test_customer_cannot_list_other_user(self):
        with self.assertRaises(AccessDenied):
            OrderQueryService.list_orders(requester=self.customer, user_id=self.other.id)

    def test_staff_sees_everything_and_filters(self):
        _, total = OrderQueryService.list_orders(requester=self.manager)
        self.assertEqual(total, 3)

        orders, total = OrderQueryService.list_orders(requester=self.manager, user_id=self.other.id)
        self.assertEqual(total, 1)
        self.assertEqual(orders[0].id, self.theirs.id)

    def test_pagination_and_ordering(self):
        orders, total = OrderQueryService.list_orders(
            requester=self.manager, page=1, page_size=2, ordering="total_amount"
        )
        self.assertEqual(total, 3)
        self.assertEqual([o.id for o in orders], [self.first.id, self.second.id])

        orders, _ = OrderQueryService.list_orders(requester=self.manager, page=2, page_size=2)
        self.assertEqual(len(orders), 1)

    def test_status_filter(self):
        with self.captureOnCommitCallbacks(execute=True):
            self.service.cancel_order(self.first.id, requester=self.customer)

        orders, total = OrderQueryService.list_orders(requester=self.customer, status="cancelled")
        self.assertEqual(total, 1)
        self.assertEqual(orders[0].id, self.first.id)

    def test_bad_ordering(self):
        with self.assertRaises(ValidationError):
            OrderQueryService.list_orders(requester=self.manager, ordering="password")

    def test_get_order_access(self):
        with self.assertRaises(AccessDenied):
            OrderQueryService.get_order(self.theirs.id, self.customer)
        self.assertEqual(OrderQueryService.get_order(self.theirs.id, self.manager).id, self.theirs.id)
        with self.assertRaises(OrderNotFound):
            OrderQueryService.get_order(987654, self.manager)


class OrderAPITests(APITestCase):
    def setUp(self):
        self.customer = User.objects.create_user(email="api@example.com", password="testpass123")
        self.other = User.objects.create_user(email="api-other@example.com", password="testpass123")
        self.admin = User.objects.create_user(
            email="api-admin@example.com", password="testpass123", role="admin"
        )
        self.widget = Product.objects.create(
            name="Widget", category="tools", price=Decimal("10.00"), stock=5
        )
        self.client.force_authenticate(user=self.customer)

    def create_order(self, quantity=2):
        with self.captureOnCommitCallbacks(execute=True):
            return self.client.post(
                reverse("orders-list"),
                {
                    "items": [{"product_id": self.widget.id, "quantity": quantity}],
                    "shipping_address": ADDRESS,
                    "payment_method": "credit_card",
                },
                format="json",
            )

    def test_place_order(self):
        resp = self.create_order()

        self.assertEqual(resp.status_code, status.HTTP_201_CREATED)
        self.assertEqual(resp.data["total_amount"], "20.00")
        self.assertEqual(resp.data["status"], "pending")
        self.assertEqual(len(resp.data["items"]), 1)

    def test_insufficient_stock_is_conflict(self):
        resp = self.create_order(quantity=50)

        self.assertEqual(resp.status_code, status.HTTP_409_CONFLICT)
        self.assertEqual(resp.data["code"], "insufficient_stock")
        self.assertEqual(resp.data["details"]["available"], 5)

    def test_invalid_payload(self):
        resp = self.client.post(
            reverse("orders-list"),
            {"items": [], "shipping_address": ADDRESS, "payment_method": "credit_card"},
            format="json",
        )
        self.assertEqual(resp.status_code, status.HTTP_400_BAD_REQUEST)

    def test_requires_authentication(self):
        self.client.force_authenticate(user=None)
        resp = self.client.get(reverse("orders-list"))
        self.assertIn(resp.status_code, (status.HTTP_401_UNAUTHORIZED, status.HTTP_403_FORBIDDEN))

    def test_retrieve_and_list(self):
        order_id = self.create_order().data["id"]

        resp = self.client.get(reverse("orders-detail", args=[order_id]))
        self.assertEqual(resp.status_code, status.HTTP_200_OK)

        resp = self.client.get(reverse("orders-list"))
        self.assertEqual(resp.data["count"], 1)

        self.client.force_authenticate(user=self.other)
        resp = self.client.get(reverse("orders-detail", args=[order_id]))
        self.assertEqual(resp.status_code, status.HTTP_403_FORBIDDEN)

    def test_missing_order(self):
        resp = self.client.get(reverse("orders-detail", args=[99999]))
        self.assertEqual(resp.status_code, status.HTTP_404_NOT_FOUND)
        self.assertEqual(resp.data["code"], "order_not_found")

    def test_cancel(self):
        order_id = self.create_order().data["id"]

        with self.captureOnCommitCallbacks(execute=True):
            resp = self.client.post(
                reverse("orders-cancel", args=[order_id]), {"reason": "Too slow"}, format="json"
            )

        self.assertEqual(resp.status_code, status.HTTP_200_OK)
        self.assertEqual(resp.data["status"], "cancelled")
        self.widget.refresh_from_db()
        self.assertEqual(self.widget.stock, 5)

    def test_status_update_requires_staff(self):
        order_id = self.create_order().data["id"]
        url = reverse("orders-update-status", args=[order_id])

        resp = self.client.put(url, {"status": "processing"}, format="json")
        self.assertEqual(resp.status_code, status.HTTP_403_FORBIDDEN)

        self.client.force_authenticate(user=self.admin)
        resp = self.client.put(url, {"status": "processing"}, format="json")
        self.assertEqual(resp.status_code, status.HTTP_200_OK)
        self.assertEqual(resp.data["status"], "processing")

        resp = self.client.put(url, {"status": "pending"}, format="json")
        self.assertEqual(resp.status_code, status.HTTP_409_CONFLICT)
        self.assertEqual(resp.data["code"], "invalid_transition")
