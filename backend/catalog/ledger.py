"""
Stock ledger primitives.

Every function here mutates Product stock counters and must run inside
transaction.atomic(). Usable stock changes are compare-and-swap UPDATEs
with F() expressions that replace ``last_change`` in the same statement
and append a StockMovement row.
"""
import logging
from decimal import Decimal

from django.db import transaction
from django.db.models import F
from django.utils import timezone

from backend.core.exceptions import InsufficientStockError
from backend.core.utils import decimal_to_str
from .models import Product, StockMovement

logger = logging.getLogger(__name__)

ZERO = Decimal('0.000')


def _require_atomic():
    if not transaction.get_connection().in_atomic_block:
        raise RuntimeError('Stock ledger mutations must run inside transaction.atomic()')


def _user_id(user):
    if user is not None and getattr(user, 'is_authenticated', False):
        return user.pk
    return None


def build_last_change(delta, reason, source_ref, user=None):
    """Audit slot stored on Product.last_change"""
    return {
        'changed_on': timezone.now().isoformat(),
        'change_type': 'increase' if delta >= 0 else 'decrease',
        'delta': decimal_to_str(delta),
        'reason': reason,
        'production_id': source_ref,
        'changed_by': _user_id(user),
    }


def shortfall_entry(line, product, required, available):
    return {
        'line': line,
        'product_id': product.product_id if product else None,
        'name': product.name if product else None,
        'required': decimal_to_str(required),
        'available': decimal_to_str(available),
        'shortfall': decimal_to_str(required - available),
    }


def lock_products(product_ids):
    """
    Lock the given products for the rest of the transaction.

    Rows are locked in primary key order so concurrent units touching
    overlapping products cannot deadlock. Returns {pk: Product}.
    """
    _require_atomic()
    products = Product.objects.select_for_update().filter(pk__in=set(product_ids)).order_by('pk')
    return {product.pk: product for product in products}


def _apply_usable_change(product, delta, reason, source_type, source_ref, user, guard=None):
    last_change = build_last_change(delta, reason, source_ref, user)
    queryset = Product.objects.filter(pk=product.pk)
    if guard is not None:
        queryset = queryset.filter(current_stock__gte=guard)
    updated = queryset.update(
        current_stock=F('current_stock') + delta,
        last_change=last_change,
        updated_at=timezone.now(),
    )
    if not updated:
        return None

    product.refresh_from_db(fields=['current_stock', 'reject_stock', 'last_change', 'updated_at'])
    movement = StockMovement.objects.create(
        product=product,
        delta=delta,
        balance_after=product.current_stock,
        reason=reason,
        source_type=source_type,
        source_ref=source_ref,
        created_by=user if _user_id(user) else None,
    )
    logger.debug(f"Stock {product.product_id}: {delta:+} -> {product.current_stock} ({source_ref})")
    return movement


def debit_stock(product, quantity, reason, source_type, source_ref, user=None, line=None):
    """Decrement usable stock; raises InsufficientStockError if it would go negative"""
    _require_atomic()
    movement = _apply_usable_change(
        product, -quantity, reason, source_type, source_ref, user, guard=quantity
    )
    if movement is None:
        product.refresh_from_db(fields=['current_stock'])
        raise InsufficientStockError([
            shortfall_entry(line or product.name, product, quantity, product.current_stock)
        ])
    return movement


def credit_stock(product, quantity, reason, source_type, source_ref, user=None):
    """Increment usable stock"""
    _require_atomic()
    return _apply_usable_change(product, quantity, reason, source_type, source_ref, user)


def reverse_credit(product, quantity, reason, source_type, source_ref, user=None):
    """
    Take back previously credited usable stock, floored at zero.

    ``product`` must be locked by the caller. Returns the movement, or None
    when there was nothing left to take back.
    """
    _require_atomic()
    product.refresh_from_db(fields=['current_stock'])
    applied = min(quantity, product.current_stock)
    if applied <= ZERO:
        logger.info(f"Nothing to reverse on {product.product_id} for {source_ref}: stock already at zero")
        return None
    return _apply_usable_change(
        product, -applied, reason, source_type, source_ref, user, guard=applied
    )


def add_reject_stock(product, quantity):
    """
    Increment reject stock.

    Reject stock changes do not touch last_change and write no movement.
    """
    _require_atomic()
    Product.objects.filter(pk=product.pk).update(
        reject_stock=F('reject_stock') + quantity,
        updated_at=timezone.now(),
    )
    product.refresh_from_db(fields=['reject_stock'])


def remove_reject_stock(product, quantity):
    """Decrement reject stock, floored at zero. ``product`` must be locked."""
    _require_atomic()
    product.refresh_from_db(fields=['reject_stock'])
    applied = min(quantity, product.reject_stock)
    if applied <= ZERO:
        return
    Product.objects.filter(pk=product.pk, reject_stock__gte=applied).update(
        reject_stock=F('reject_stock') - applied,
        updated_at=timezone.now(),
    )
    product.refresh_from_db(fields=['reject_stock'])
