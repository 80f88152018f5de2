# apps/orders/tests_concurrency.py
from concurrent.futures import ThreadPoolExecutor
from decimal import Decimal

from django.contrib.auth import get_user_model
from django.db import connection
from django.test import TransactionTestCase

from apps.catalog.models import Product
from apps.inventory.models import InventoryLog
from apps.inventory.services import StockLedger
from apps.orders.models import Order
from apps.orders.services import OrderService
from apps.utils.exceptions import InsufficientStock

User = get_user_model()

ADDRESS = "221B Baker Street, London"


class ConcurrentCheckoutTests(TransactionTestCase):
    """
    Real parallel transactions. PostgreSQL serializes buyers on row locks,
    SQLite on BEGIN IMMEDIATE (file-backed test database).
    """

    def setUp(self):
        self.buyers = [
            User.objects.create_user(email=f"buyer{i}@example.com", password="testpass123")
            for i in range(8)
        ]

    def _checkout(self, user, items):
        try:
            return OrderService().place_order(user, items, ADDRESS, "credit_card")
        except InsufficientStock:
            return None
        finally:
            connection.close()

    def _run(self, jobs):
        with ThreadPoolExecutor(max_workers=len(jobs)) as pool:
            futures = [pool.submit(self._checkout, user, items) for user, items in jobs]
            return [f.result() for f in futures]

    def test_last_unit_is_sold_once(self):
        product = Product.objects.create(name="Last one", category="misc", price=Decimal("5.00"), stock=1)

        results = self._run([
            (self.buyers[0], [{"product_id": product.id, "quantity": 1}]),
            (self.buyers[1], [{"product_id": product.id, "quantity": 1}]),
        ])

        self.assertEqual(sum(1 for r in results if r is not None), 1)
        self.assertEqual(sum(1 for r in results if r is None), 1)
        product.refresh_from_db()
        self.assertEqual(product.stock, 0)
        self.assertEqual(Order.objects.count(), 1)
        self.assertEqual(InventoryLog.objects.filter(product=product).count(), 1)

    def test_n_buyers_for_m_units(self):
        product = Product.objects.create(name="Limited", category="misc", price=Decimal("3.00"), stock=5)

        results = self._run([
            (buyer, [{"product_id": product.id, "quantity": 1}]) for buyer in self.buyers
        ])

        self.assertEqual(sum(1 for r in results if r is not None), 5)
        self.assertEqual(sum(1 for r in results if r is None), 3)
        product.refresh_from_db()
        self.assertEqual(product.stock, 0)
        self.assertEqual(StockLedger.verify_chain(product.id), [])

    def test_overlapping_baskets_do_not_deadlock(self):
        a = Product.objects.create(name="A", category="misc", price=Decimal("1.00"), stock=10)
        b = Product.objects.create(name="B", category="misc", price=Decimal("2.00"), stock=10)

        # Same products, opposite request order
        jobs = []
        for i, buyer in enumerate(self.buyers):
            lines = [{"product_id": a.id, "quantity": 1}, {"product_id": b.id, "quantity": 1}]
            if i % 2:
                lines.reverse()
            jobs.append((buyer, lines))

        results = self._run(jobs)

        self.assertTrue(all(r is not None for r in results))
        a.refresh_from_db()
        b.refresh_from_db()
        self.assertEqual((a.stock, b.stock), (2, 2))
        self.assertEqual(StockLedger.verify_chain(a.id), [])
        self.assertEqual(StockLedger.verify_chain(b.id), [])

    def test_sqlite_writers_queue_at_begin(self):
        if connection.vendor != "sqlite":
            self.skipTest("SQLite only")

        options = connection.settings_dict["OPTIONS"]
        self.assertEqual(options["transaction_mode"], "IMMEDIATE")
        self.assertGreater(options["timeout"], 0)
        self.assertNotEqual(connection.settings_dict["NAME"], ":memory:")
