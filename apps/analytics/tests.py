# apps/analytics/tests.py
from datetime import datetime, timezone as dt_timezone
from decimal import Decimal

from django.contrib.auth import get_user_model
from django.test import TestCase
from django.urls import reverse

from rest_framework import status
from rest_framework.test import APITestCase

from apps.catalog.models import Product
from apps.orders.models import Order
from apps.utils.exceptions import ValidationError
from . import services

User = get_user_model()


def make_order(user, amount, payment_status="completed", order_status="pending", created_at=None):
    order = Order.objects.create(
        user=user,
        total_amount=Decimal(amount),
        status=order_status,
        payment_status=payment_status,
        shipping_address="1 Reporting Road, Springfield",
        payment_method="paypal",
    )
    if created_at:
        Order.objects.filter(pk=order.pk).update(created_at=created_at)
    return order


class OrderStatsTests(TestCase):
    def setUp(self):
        self.alice = User.objects.create_user(email="alice@example.com")
        self.bob = User.objects.create_user(email="bob@example.com")

        make_order(self.alice, "100.00", created_at=datetime(2024, 1, 10, 12, tzinfo=dt_timezone.utc))
        make_order(self.alice, "50.00", created_at=datetime(2024, 1, 20, 12, tzinfo=dt_timezone.utc))
        make_order(self.bob, "30.00", created_at=datetime(2024, 2, 5, 12, tzinfo=dt_timezone.utc))
        make_order(self.bob, "999.00", payment_status="pending", order_status="cancelled",
                   created_at=datetime(2024, 2, 6, 12, tzinfo=dt_timezone.utc))

    def test_order_stats(self):
        stats = services.get_order_stats()

        self.assertEqual(stats["total_orders"], 4)
        self.assertEqual(stats["pending_orders"], 3)
        self.assertEqual(stats["cancelled_orders"], 1)
        self.assertEqual(stats["delivered_orders"], 0)
        # Unpaid orders never count as revenue
        self.assertEqual(stats["total_revenue"], Decimal("180.00"))
        self.assertEqual(stats["average_order_value"], Decimal("294.75"))

    def test_order_stats_date_range(self):
        stats = services.get_order_stats(
            start_date=datetime(2024, 2, 1, tzinfo=dt_timezone.utc),
            end_date=datetime(2024, 2, 28, tzinfo=dt_timezone.utc),
        )
        self.assertEqual(stats["total_orders"], 2)
        self.assertEqual(stats["total_revenue"], Decimal("30.00"))

    def test_empty_stats(self):
        Order.objects.all().delete()
        stats = services.get_order_stats()
        self.assertEqual(stats["total_orders"], 0)
        self.assertEqual(stats["total_revenue"], Decimal("0.00"))

    def test_revenue_by_month(self):
        rows = services.get_revenue_by_period("month", 12)
        self.assertEqual(rows, [
            {"period": "2024-02", "order_count": 1, "revenue": Decimal("30.00")},
            {"period": "2024-01", "order_count": 2, "revenue": Decimal("150.00")},
        ])

    def test_revenue_by_year_and_limit(self):
        rows = services.get_revenue_by_period("year", 5)
        self.assertEqual(rows, [{"period": "2024", "order_count": 3, "revenue": Decimal("180.00")}])

        rows = services.get_revenue_by_period("day", 1)
        self.assertEqual(rows[0]["period"], "2024-02-05")

    def test_revenue_rejects_bad_input(self):
        with self.assertRaises(ValidationError):
            services.get_revenue_by_period("decade", 12)
        with self.assertRaises(ValidationError):
            services.get_revenue_by_period("month", 101)

    def test_top_customers(self):
        rows = services.get_top_customers(10)

        self.assertEqual([r["email"] for r in rows], ["alice@example.com", "bob@example.com"])
        self.assertEqual(rows[0]["order_count"], 2)
        self.assertEqual(rows[0]["total_spent"], Decimal("150.00"))
        self.assertEqual(rows[0]["avg_order_value"], Decimal("75.00"))
        self.assertEqual(rows[1]["total_spent"], Decimal("30.00"))

    def test_status_counts(self):
        counts = services.get_order_status_counts()
        self.assertEqual(counts["pending"], 3)
        self.assertEqual(counts["cancelled"], 1)
        self.assertEqual(counts["shipped"], 0)


class StockReportTests(TestCase):
    def setUp(self):
        for name, category, stock in [
            ("Hammer", "tools", 0),
            ("Saw", "tools", 4),
            ("Drill", "tools", 20),
            ("Lamp", "home", 15),
        ]:
            Product.objects.create(name=name, category=category, price=Decimal("9.99"), stock=stock)

    def test_stock_report(self):
        report = {row["category"]: row for row in services.get_stock_report(low_stock_threshold=10)}

        self.assertEqual(list(report), ["home", "tools"])
        tools = report["tools"]
        self.assertEqual(tools["total_products"], 3)
        self.assertEqual(tools["out_of_stock"], 1)
        self.assertEqual(tools["low_stock"], 2)
        self.assertEqual(tools["avg_stock"], 8.0)
        self.assertEqual(report["home"]["low_stock"], 0)

    def test_threshold_defaults_to_setting(self):
        with self.settings(LOW_STOCK_THRESHOLD=5):
            tools = services.get_stock_report()[1]
        self.assertEqual(tools["low_stock"], 2)

        with self.settings(LOW_STOCK_THRESHOLD=1):
            tools = services.get_stock_report()[1]
        self.assertEqual(tools["low_stock"], 1)


class AnalyticsAPITests(APITestCase):
    def setUp(self):
        self.admin = User.objects.create_user(email="boss@example.com", role="admin")
        self.customer = User.objects.create_user(email="shopper@example.com")
        make_order(self.customer, "40.00")

    def test_reports_are_staff_only(self):
        self.client.force_authenticate(user=self.customer)
        resp = self.client.get(reverse("analytics-order-stats"))
        self.assertEqual(resp.status_code, status.HTTP_403_FORBIDDEN)

    def test_order_stats_endpoint(self):
        self.client.force_authenticate(user=self.admin)
        resp = self.client.get(reverse("analytics-order-stats"))

        self.assertEqual(resp.status_code, status.HTTP_200_OK)
        self.assertEqual(resp.data["total_orders"], 1)
        self.assertEqual(resp.data["total_revenue"], "40.00")

    def test_revenue_endpoint_validates_period(self):
        self.client.force_authenticate(user=self.admin)

        resp = self.client.get(reverse("analytics-revenue"), {"period": "day"})
        self.assertEqual(resp.status_code, status.HTTP_200_OK)
        self.assertEqual(len(resp.data), 1)

        resp = self.client.get(reverse("analytics-revenue"), {"period": "hour"})
        self.assertEqual(resp.status_code, status.HTTP_400_BAD_REQUEST)

    def test_top_customers_and_stock_endpoints(self):
        self.client.force_authenticate(user=self.admin)

        resp = self.client.get(reverse("analytics-top-customers"), {"limit": 5})
        self.assertEqual(resp.data[0]["email"], "shopper@example.com")

        resp = self.client.get(reverse("analytics-stock-report"))
        self.assertEqual(resp.status_code, status.HTTP_200_OK)

        resp = self.client.get(reverse("analytics-status-counts"))
        self.assertEqual(resp.data["pending"], 1)
