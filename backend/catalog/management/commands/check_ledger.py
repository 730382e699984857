"""
Django management command to verify product stock against the movement trail.

For every product the movements must chain (each balance_after equals the
previous balance plus its delta) and the newest balance must equal the
product's current_stock.
"""
from django.core.management.base import BaseCommand
from backend.catalog.models import Product


class Command(BaseCommand):
    help = 'Check that product stock counters agree with their stock movement trail'

    def add_arguments(self, parser):
        parser.add_argument(
            '--product-id',
            type=str,
            help='Check a single product code only',
        )
        parser.add_argument(
            '--show-all',
            action='store_true',
            help='Show all products, not just discrepancies',
        )

    def handle(self, *args, **options):
        product_code = options.get('product_id')
        show_all = options.get('show_all', False)

        products = Product.objects.all().order_by('product_id')
        if product_code:
            products = products.filter(product_id=product_code)

        self.stdout.write(f"Checking {products.count()} products")

        issues = 0
        for product in products:
            problems = self.check_product(product)
            if problems:
                issues += 1
                self.stdout.write(self.style.ERROR(f"{product.product_id} ({product.name}):"))
                for problem in problems:
                    self.stdout.write(f"  - {problem}")
            elif show_all:
                self.stdout.write(self.style.SUCCESS(f"{product.product_id}: OK ({product.current_stock})"))

        if issues:
            self.stdout.write(self.style.ERROR(f"{issues} product(s) out of sync"))
        else:
            self.stdout.write(self.style.SUCCESS("Ledger is consistent"))

    def check_product(self, product):
        problems = []
        movements = list(product.movements.order_by('created_at', 'id'))
        if not movements:
            return problems

        previous = None
        for movement in movements:
            if previous is not None and previous.balance_after + movement.delta != movement.balance_after:
                problems.append(
                    f"movement #{movement.id} ({movement.source_ref}): "
                    f"{previous.balance_after} {movement.delta:+} != {movement.balance_after}"
                )
            previous = movement

        if previous.balance_after != product.current_stock:
            problems.append(
                f"current_stock {product.current_stock} != last movement balance {previous.balance_after}"
            )
        return problems
