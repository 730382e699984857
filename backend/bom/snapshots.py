"""
Point-in-time product snapshots embedded in BOM lines.

A snapshot is taken when a line is written and never refreshed, so
productions run long after authoring still see the product as it was, and
the resolution chain can fall back on it when the live product has been
renamed or removed.
"""
import logging

from django.utils import timezone

from backend.catalog.models import Product
from backend.catalog.resolution import parse_pk, split_composite
from backend.core.utils import decimal_to_str

logger = logging.getLogger(__name__)

RAW_MATERIAL_FIELDS = {
    'raw_material_name': 'name',
    'raw_material_code': 'product_id',
    'uom': 'uom',
    'category': 'category',
}

FINISHED_GOOD_FIELDS = {
    'name': 'name',
    'code': 'product_id',
    'uom': 'uom',
    'category': 'category',
}


def capture_snapshot(product):
    return {
        'id': product.pk,
        'product_id': product.product_id,
        'name': product.name,
        'uom': product.uom,
        'category': product.category,
        'current_stock': decimal_to_str(product.current_stock),
        'captured_at': timezone.now().isoformat(),
    }


def referenced_pk(line):
    """Product pk a line points at: the explicit product, else the composite reference"""
    product = line.get('product')
    if product is not None:
        return product.pk if isinstance(product, Product) else parse_pk(product)
    return parse_pk(split_composite(line.get('reference')))


def snapshot_lines(lines, field_map, previous=None):
    """
    Attach ``product`` and ``product_snapshot`` to each line dict in place.

    ``previous`` maps product pk to the snapshot an existing line already
    holds; those snapshots are carried over instead of being recaptured.
    Blank denormalized fields (name, code, uom, category) are filled from
    the product.
    """
    previous = previous or {}
    wanted = {pk for pk in (referenced_pk(line) for line in lines) if pk}
    products = Product.objects.in_bulk(wanted) if wanted else {}

    for line in lines:
        pk = referenced_pk(line)
        product = products.get(pk) if pk else None
        if pk and product is None:
            logger.warning(f"BOM line references unknown product {pk}, no snapshot taken")
        line['product'] = product
        if product is None:
            line['product_snapshot'] = None
            continue

        line['product_snapshot'] = previous.get(pk) or capture_snapshot(product)
        for line_field, product_field in field_map.items():
            if not line.get(line_field):
                line[line_field] = getattr(product, product_field) or ''
    return lines
