from django.core.management.base import BaseCommand
from apps.inventory.models import InventoryLog
from apps.inventory.services import StockLedger


class Command(BaseCommand):
    help = "Verifies that each product's inventory log chain is contiguous and matches current stock"

    def add_arguments(self, parser):
        parser.add_argument('--product', type=int, help="Audit a single product id")

    def handle(self, *args, **options):
        if options.get('product'):
            product_ids = [options['product']]
        else:
            product_ids = (
                InventoryLog.objects.order_by('product_id')
                .values_list('product_id', flat=True)
                .distinct()
            )

        checked = 0
        broken = 0
        for product_id in product_ids:
            checked += 1
            for problem in StockLedger.verify_chain(product_id):
                broken += 1
                self.stdout.write(
                    self.style.WARNING(
                        f"PRODUCT {product_id} LOG {problem['log_id']} :: {problem['problem']} "
                        f"(expected {problem['expected']}, found {problem['found']})"
                    )
                )

        if broken:
            self.stdout.write(self.style.ERROR(f"Audit found {broken} problem(s) across {checked} product(s)."))
        else:
            self.stdout.write(self.style.SUCCESS(f"Ledger consistent for {checked} product(s)."))
