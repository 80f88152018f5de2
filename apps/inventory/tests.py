from decimal import Decimal
from io import StringIO

from django.contrib.auth import get_user_model
from django.core.management import call_command
from django.db import transaction
from django.test import TestCase
from django.urls import reverse

from rest_framework import status
from rest_framework.test import APITestCase

from apps.catalog.models import Product
from apps.inventory.models import InventoryLog
from apps.inventory.services import StockLedger
from apps.inventory.tasks import audit_inventory_ledger
from apps.utils.exceptions import InsufficientStock, ProductNotFound, ValidationError

User = get_user_model()


class StockLedgerTests(TestCase):
    def setUp(self):
        self.manager = User.objects.create_user(email="ops@example.com", role="manager")
        self.product = Product.objects.create(
            name="Widget", category="tools", price=Decimal("10.00"), stock=10
        )

    def test_reserve_writes_one_log(self):
        with transaction.atomic():
            log = StockLedger.reserve(self.product, 4, "Order #1", actor=self.manager)

        self.assertEqual(self.product.stock, 6)
        self.product.refresh_from_db()
        self.assertEqual(self.product.stock, 6)
        self.assertEqual(log.change_type, InventoryLog.ChangeType.STOCK_OUT)
        self.assertEqual((log.previous_stock, log.quantity_change, log.new_stock), (10, -4, 6))
        self.assertEqual(log.created_by, self.manager)
        self.assertEqual(InventoryLog.objects.count(), 1)

    def test_reserve_exact_stock_reaches_zero(self):
        with transaction.atomic():
            StockLedger.reserve(self.product, 10, "Order #2")
        self.product.refresh_from_db()
        self.assertEqual(self.product.stock, 0)

    def test_reserve_more_than_available(self):
        with self.assertRaises(InsufficientStock) as ctx:
            with transaction.atomic():
                StockLedger.reserve(self.product, 11, "Order #3")

        self.assertEqual(ctx.exception.available, 10)
        self.assertEqual(ctx.exception.requested, 11)
        self.product.refresh_from_db()
        self.assertEqual(self.product.stock, 10)
        self.assertFalse(InventoryLog.objects.exists())

    def test_release_adds_back(self):
        with transaction.atomic():
            StockLedger.reserve(self.product, 3, "Order #4")
            log = StockLedger.release(self.product, 3, "Order #4 cancelled")

        self.assertEqual(log.change_type, InventoryLog.ChangeType.STOCK_IN)
        self.assertEqual((log.previous_stock, log.new_stock), (7, 10))
        self.assertEqual(StockLedger.verify_chain(self.product.id), [])

    def test_long_reason_is_stored_whole(self):
        reason = "x" * 399 + "!"
        with transaction.atomic():
            log = StockLedger.reserve(self.product, 1, reason)
        self.assertEqual(InventoryLog.objects.get(pk=log.pk).reason, reason)

    def test_lock_products_reports_missing_ids(self):
        other = Product.objects.create(name="Gadget", category="tools", price=Decimal("1.00"), stock=1)

        with transaction.atomic():
            locked = StockLedger.lock_products([other.id, self.product.id, other.id])
        self.assertEqual(list(locked), sorted([self.product.id, other.id]))

        with self.assertRaises(ProductNotFound) as ctx:
            with transaction.atomic():
                StockLedger.lock_products([self.product.id, 777777])
        self.assertEqual(ctx.exception.product_id, 777777)

    def test_adjust(self):
        log = StockLedger.adjust(self.product.id, -4, "Damaged in transit", actor=self.manager)

        self.assertEqual(log.change_type, InventoryLog.ChangeType.ADJUSTMENT)
        self.assertEqual(log.reason, "MANUAL: Damaged in transit")
        self.assertEqual(log.new_stock, 6)

        log = StockLedger.adjust(self.product.id, 20, "Restock")
        self.assertEqual((log.previous_stock, log.new_stock), (6, 26))
        self.assertEqual(StockLedger.verify_chain(self.product.id), [])

    def test_adjust_rejects_zero_and_negative_result(self):
        with self.assertRaises(ValidationError):
            StockLedger.adjust(self.product.id, 0, "Nothing")
        with self.assertRaises(InsufficientStock):
            StockLedger.adjust(self.product.id, -11, "Too many")

        self.product.refresh_from_db()
        self.assertEqual(self.product.stock, 10)
        self.assertFalse(InventoryLog.objects.exists())


class InventoryLogImmutabilityTests(TestCase):
    def setUp(self):
        self.product = Product.objects.create(
            name="Widget", category="tools", price=Decimal("10.00"), stock=10
        )
        with transaction.atomic():
            self.log = StockLedger.reserve(self.product, 1, "Order #9")

    def test_instance_cannot_be_changed_or_deleted(self):
        self.log.reason = "rewritten"
        with self.assertRaises(TypeError):
            self.log.save()
        with self.assertRaises(TypeError):
            self.log.delete()

    def test_queryset_cannot_be_changed_or_deleted(self):
        with self.assertRaises(TypeError):
            InventoryLog.objects.filter(pk=self.log.pk).update(reason="rewritten")
        with self.assertRaises(TypeError):
            InventoryLog.objects.all().delete()

        self.assertEqual(InventoryLog.objects.get(pk=self.log.pk).reason, "Order #9")


class LedgerAuditTests(TestCase):
    def setUp(self):
        self.product = Product.objects.create(
            name="Widget", category="tools", price=Decimal("10.00"), stock=10
        )
        with transaction.atomic():
            StockLedger.reserve(self.product, 2, "Order #1")
            StockLedger.reserve(self.product, 3, "Order #2")

    def test_clean_chain(self):
        self.assertEqual(StockLedger.verify_chain(self.product.id), [])

    def test_stock_drift_detected(self):
        # Bypass the ledger on purpose
        Product.objects.filter(pk=self.product.pk).update(stock=99)

        problems = StockLedger.verify_chain(self.product.id)
        self.assertEqual(len(problems), 1)
        self.assertEqual(problems[0]["problem"], "stock_drift")
        self.assertEqual((problems[0]["expected"], problems[0]["found"]), (5, 99))

    def test_gap_detected(self):
        InventoryLog.objects.create(
            product=self.product,
            change_type=InventoryLog.ChangeType.ADJUSTMENT,
            quantity_change=1,
            previous_stock=50,
            new_stock=51,
            reason="forged",
        )

        kinds = [p["problem"] for p in StockLedger.verify_chain(self.product.id)]
        self.assertEqual(kinds, ["gap", "stock_drift"])

    def test_management_command(self):
        out = StringIO()
        call_command("audit_inventory_ledger", stdout=out)
        self.assertIn("Ledger consistent for 1 product(s)", out.getvalue())

        Product.objects.filter(pk=self.product.pk).update(stock=0)
        out = StringIO()
        call_command("audit_inventory_ledger", product=self.product.id, stdout=out)
        self.assertIn("stock_drift", out.getvalue())

    def test_celery_task_logs_problems(self):
        self.assertIn("0 with ledger problems", audit_inventory_ledger())

        Product.objects.filter(pk=self.product.pk).update(stock=0)
        with self.assertLogs("apps.inventory.tasks", level="ERROR"):
            result = audit_inventory_ledger()
        self.assertIn("1 with ledger problems", result)


class InventoryAPITests(APITestCase):
    def setUp(self):
        self.manager = User.objects.create_user(email="mgr@example.com", role="manager")
        self.customer = User.objects.create_user(email="cust@example.com")
        self.product = Product.objects.create(
            name="Widget", category="tools", price=Decimal("10.00"), stock=10
        )
        self.client.force_authenticate(user=self.manager)

    def test_adjust_endpoint(self):
        resp = self.client.post(
            reverse("inventory-adjust"),
            {"product_id": self.product.id, "delta_quantity": -3, "reason": "Cycle count"},
            format="json",
        )

        self.assertEqual(resp.status_code, status.HTTP_201_CREATED)
        self.assertEqual(resp.data["new_stock"], 7)
        self.assertEqual(resp.data["performed_by"], "mgr@example.com")

    def test_adjust_below_zero_is_conflict(self):
        resp = self.client.post(
            reverse("inventory-adjust"),
            {"product_id": self.product.id, "delta_quantity": -30, "reason": "Cycle count"},
            format="json",
        )
        self.assertEqual(resp.status_code, status.HTTP_409_CONFLICT)

    def test_history_is_staff_only(self):
        StockLedger.adjust(self.product.id, 5, "Restock")

        resp = self.client.get(reverse("inventory-history"), {"product": self.product.id})
        self.assertEqual(resp.status_code, status.HTTP_200_OK)
        self.assertEqual(resp.data["count"], 1)

        self.client.force_authenticate(user=self.customer)
        resp = self.client.get(reverse("inventory-history"))
        self.assertEqual(resp.status_code, status.HTTP_403_FORBIDDEN)
