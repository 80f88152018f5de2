from decimal import Decimal

from django.db import IntegrityError, transaction
from django.test import TestCase

from apps.catalog.models import Product


class ProductConstraintTests(TestCase):
    def setUp(self):
        self.product = Product.objects.create(
            name="Widget", category="tools", price=Decimal("10.00"), stock=3
        )

    def test_stock_cannot_go_negative(self):
        with self.assertRaises(IntegrityError):
            with transaction.atomic():
                Product.objects.filter(pk=self.product.pk).update(stock=-1)

        self.product.refresh_from_db()
        self.assertEqual(self.product.stock, 3)

    def test_price_cannot_be_negative(self):
        with self.assertRaises(IntegrityError):
            with transaction.atomic():
                Product.objects.create(name="Refund", category="misc", price=Decimal("-1.00"))
