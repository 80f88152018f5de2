import logging
from celery import shared_task
from django.core.paginator import Paginator

from .models import InventoryLog
from .services import StockLedger

logger = logging.getLogger(__name__)


@shared_task(time_limit=600)
def audit_inventory_ledger():
    """
    Nightly read-only check that every product's log chain is contiguous and
    matches its current stock. Reports only; never corrects stock.
    """
    product_ids = (
        InventoryLog.objects.order_by('product_id')
        .values_list('product_id', flat=True)
        .distinct()
    )
    paginator = Paginator(product_ids, 1000)

    broken = 0
    for page_num in paginator.page_range:
        for product_id in paginator.page(page_num).object_list:
            problems = StockLedger.verify_chain(product_id)
            if problems:
                broken += 1
                logger.error(
                    f"Inventory ledger broken for product {product_id}: {problems}",
                    extra={"product_id": product_id},
                )

    return f"Audited {paginator.count} products. {broken} with ledger problems."
