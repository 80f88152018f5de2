import logging
from typing import Dict, Iterable, List

from django.db import transaction
from django.db.models import F
from django.utils import timezone

from apps.catalog.models import Product
from apps.utils.exceptions import InsufficientStock, ProductNotFound, ValidationError

from .models import InventoryLog

logger = logging.getLogger(__name__)


class StockLedger:
    """
    The only writer of Product.stock.

    Every method that mutates stock must run inside the caller's transaction,
    and appends exactly one InventoryLog row for the change it makes.
    """

    @staticmethod
    def lock_products(product_ids: Iterable[int]) -> Dict[int, Product]:
        """
        SELECT ... FOR UPDATE on every distinct product, ascending by id,
        so concurrent checkouts sharing products always lock in the same order.
        """
        ids = sorted(set(product_ids))
        products = (
            Product.objects
            .select_for_update()
            .filter(id__in=ids)
            .order_by("id")
        )
        product_map = {p.id: p for p in products}

        for pid in ids:
            if pid not in product_map:
                raise ProductNotFound(pid)

        return product_map

    @staticmethod
    @transaction.atomic(savepoint=False)
    def reserve(product: Product, quantity: int, reason: str, actor=None) -> InventoryLog:
        """
        Conditional decrement: stock = stock - qty WHERE stock >= qty.
        Zero affected rows is a hard failure, whatever an earlier read said.
        """
        updated = Product.objects.filter(pk=product.pk, stock__gte=quantity).update(
            stock=F("stock") - quantity,
            updated_at=timezone.now(),
        )
        if updated == 0:
            available = (
                Product.objects.filter(pk=product.pk)
                .values_list("stock", flat=True)
                .first()
            )
            if available is None:
                raise ProductNotFound(product.pk)
            raise InsufficientStock(
                product.pk, quantity, available=available, product_name=product.name
            )

        return StockLedger._record(
            product, -quantity, InventoryLog.ChangeType.STOCK_OUT, reason, actor
        )

    @staticmethod
    @transaction.atomic(savepoint=False)
    def release(product: Product, quantity: int, reason: str, actor=None) -> InventoryLog:
        """
        Returns previously reserved units (order cancellation).
        """
        updated = Product.objects.filter(pk=product.pk).update(
            stock=F("stock") + quantity,
            updated_at=timezone.now(),
        )
        if updated == 0:
            raise ProductNotFound(product.pk)

        return StockLedger._record(
            product, quantity, InventoryLog.ChangeType.STOCK_IN, reason, actor
        )

    @staticmethod
    def _record(product, delta, change_type, reason, actor):
        # The row is locked by the UPDATE above, so this read is the post-change value
        new_stock = Product.objects.values_list("stock", flat=True).get(pk=product.pk)
        product.stock = new_stock

        return InventoryLog.objects.create(
            product_id=product.pk,
            change_type=change_type,
            quantity_change=delta,
            previous_stock=new_stock - delta,
            new_stock=new_stock,
            reason=reason,
            created_by=actor,
        )

    @staticmethod
    @transaction.atomic
    def adjust(product_id: int, delta: int, reason: str, actor=None) -> InventoryLog:
        """
        Manual correction (cycle count, damaged goods, restock).
        """
        if delta == 0:
            raise ValidationError("Change cannot be zero.", field="delta")

        product = StockLedger.lock_products([product_id])[product_id]

        filters = {"pk": product.pk}
        if delta < 0:
            filters["stock__gte"] = -delta

        updated = Product.objects.filter(**filters).update(
            stock=F("stock") + delta,
            updated_at=timezone.now(),
        )
        if updated == 0:
            raise InsufficientStock(
                product.pk, -delta, available=product.stock, product_name=product.name
            )

        log = StockLedger._record(
            product, delta, InventoryLog.ChangeType.ADJUSTMENT, f"MANUAL: {reason}", actor
        )
        logger.info(
            f"Stock adjusted for product {product.pk}: {log.previous_stock} -> {log.new_stock}",
            extra={"product_id": product.pk},
        )
        return log

    @staticmethod
    def verify_chain(product_id: int) -> List[dict]:
        """
        Read-only audit of one product's ledger.
        Returns a list of problems; empty means the chain is contiguous and
        ends at the current stock value.
        """
        problems = []
        previous = None

        logs = InventoryLog.objects.filter(product_id=product_id).order_by("id")
        for log in logs.iterator():
            if log.previous_stock + log.quantity_change != log.new_stock:
                problems.append({
                    "log_id": log.id,
                    "problem": "delta_mismatch",
                    "expected": log.previous_stock + log.quantity_change,
                    "found": log.new_stock,
                })
            if previous is not None and log.previous_stock != previous.new_stock:
                problems.append({
                    "log_id": log.id,
                    "problem": "gap",
                    "expected": previous.new_stock,
                    "found": log.previous_stock,
                })
            previous = log

        if previous is not None:
            current = Product.objects.values_list("stock", flat=True).get(pk=product_id)
            if current != previous.new_stock:
                problems.append({
                    "log_id": previous.id,
                    "problem": "stock_drift",
                    "expected": previous.new_stock,
                    "found": current,
                })

        return problems
