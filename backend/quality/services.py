"""
Gate-entry quality checks against the stock ledger.

Approved quantity is credited to usable stock, rejected quantity to reject
stock. Edits adjust stock by the difference and deletion takes the credit
back, floored at zero. Each operation is a single ReconciliationUnit.
"""
import logging
from decimal import Decimal

from django.db.models import Sum

from backend.catalog import ledger
from backend.catalog.resolution import LineReference, resolve_product
from backend.core.exceptions import NotFoundError, ValidationError
from backend.production.reconciliation import ReconciliationUnit
from .models import GateEntry, GateEntryItem, QualityCheck

logger = logging.getLogger(__name__)

ZERO = Decimal('0.000')
SOURCE_TYPE = 'quality_check'
VERIFIED = 'Verified'


def source_ref(gate_entry):
    return f'GE-{gate_entry.pk}'


def resolve_item_product(item_name):
    return resolve_product(LineReference(name=item_name, label=item_name)).product


def _lock_item(gate_entry, item_id):
    try:
        return GateEntryItem.objects.select_for_update().get(pk=item_id, gate_entry=gate_entry)
    except GateEntryItem.DoesNotExist:
        raise ValidationError(f'Item {item_id} does not belong to gate entry {gate_entry.po_number}')


def _check_total(item, approved, rejected, exclude=None):
    """Every check on one gate item together stays within the received quantity"""
    others = QualityCheck.objects.filter(item=item)
    if exclude is not None:
        others = others.exclude(pk=exclude.pk)
    existing = others.aggregate(total=Sum('total_quantity'))['total'] or ZERO
    if existing + approved + rejected > item.item_quantity:
        raise ValidationError(
            f'Quantity exceeds what is left to inspect for {item.item_name}: '
            f'{item.item_quantity - existing} available',
            data={
                'item_quantity': str(item.item_quantity),
                'already_checked': str(existing),
            },
        )


def _shift_remaining(item, delta_total):
    """Positive delta consumes uninspected quantity; negative gives it back"""
    item.remaining_quantity = min(item.item_quantity, max(ZERO, item.remaining_quantity - delta_total))
    item.save(update_fields=['remaining_quantity'])


def _adjust_usable(unit, product, delta, gate_entry, user, reason):
    if delta > 0:
        unit.record(ledger.credit_stock(
            product, delta, reason=reason, source_type=SOURCE_TYPE, source_ref=source_ref(gate_entry), user=user,
        ))
    elif delta < 0:
        unit.record(ledger.reverse_credit(
            product, -delta, reason=reason, source_type=SOURCE_TYPE, source_ref=source_ref(gate_entry), user=user,
        ))


def _adjust_reject(product, delta):
    if delta > 0:
        ledger.add_reject_stock(product, delta)
    elif delta < 0:
        ledger.remove_reject_stock(product, -delta)


def create_quality_check(data, user=None):
    gate_entry = GateEntry.objects.filter(pk=data['gate_entry']).first()
    if gate_entry is None:
        raise NotFoundError(f"Gate entry {data['gate_entry']} not found")
    if gate_entry.status != VERIFIED:
        raise ValidationError(f'Gate entry {gate_entry.po_number} must be Verified before quality checking')

    approved = data.get('approved_quantity') or ZERO
    rejected = data.get('rejected_quantity') or ZERO

    with ReconciliationUnit('quality-check', source_ref(gate_entry), user) as unit:
        item = _lock_item(gate_entry, data['item'])
        _check_total(item, approved, rejected)
        product = resolve_item_product(item.item_name)
        locked = ledger.lock_products([product.pk])[product.pk]

        check = QualityCheck(
            gate_entry=gate_entry,
            item=item,
            item_name=item.item_name,
            approved_quantity=approved,
            rejected_quantity=rejected,
            max_allowed_quantity=item.item_quantity,
            remarks=data.get('remarks', ''),
            created_by=user if user and user.is_authenticated else None,
        )
        check.save()

        reason = f'Quality check on {gate_entry.po_number}'
        _adjust_usable(unit, locked, approved, gate_entry, user, reason)
        _adjust_reject(locked, rejected)
        _shift_remaining(item, check.total_quantity)

    return check


def update_quality_check(pk, data, user=None):
    with ReconciliationUnit('quality-check-update', f'quality check {pk}', user) as unit:
        try:
            check = QualityCheck.objects.select_for_update().select_related('gate_entry').get(pk=pk)
        except QualityCheck.DoesNotExist:
            raise NotFoundError(f'Quality check {pk} not found')

        gate_entry = check.gate_entry
        unit.reference = source_ref(gate_entry)
        item = _lock_item(gate_entry, check.item_id)

        approved = data.get('approved_quantity', check.approved_quantity)
        rejected = data.get('rejected_quantity', check.rejected_quantity)
        _check_total(item, approved, rejected, exclude=check)

        approved_delta = approved - check.approved_quantity
        rejected_delta = rejected - check.rejected_quantity
        old_total = check.total_quantity

        check.approved_quantity = approved
        check.rejected_quantity = rejected
        check.max_allowed_quantity = item.item_quantity
        if 'remarks' in data:
            check.remarks = data['remarks']
        check.save()

        if approved_delta or rejected_delta:
            product = resolve_item_product(check.item_name)
            locked = ledger.lock_products([product.pk])[product.pk]
            reason = f'Quality check on {gate_entry.po_number} updated'
            _adjust_usable(unit, locked, approved_delta, gate_entry, user, reason)
            _adjust_reject(locked, rejected_delta)
            _shift_remaining(item, check.total_quantity - old_total)

    return check


def delete_quality_check(pk, user=None):
    """Undo a check; returns the quantity taken back from usable stock"""
    with ReconciliationUnit('quality-check-delete', f'quality check {pk}', user) as unit:
        try:
            check = QualityCheck.objects.select_for_update().select_related('gate_entry').get(pk=pk)
        except QualityCheck.DoesNotExist:
            raise NotFoundError(f'Quality check {pk} not found')

        gate_entry = check.gate_entry
        unit.reference = source_ref(gate_entry)
        item = _lock_item(gate_entry, check.item_id)

        reversed_qty = ZERO
        if check.approved_quantity > 0 or check.rejected_quantity > 0:
            product = resolve_item_product(check.item_name)
            locked = ledger.lock_products([product.pk])[product.pk]
            if check.approved_quantity > 0:
                movement = unit.record(ledger.reverse_credit(
                    locked, check.approved_quantity,
                    reason=f'Quality check on {gate_entry.po_number} deleted',
                    source_type=SOURCE_TYPE,
                    source_ref=source_ref(gate_entry),
                    user=user,
                ))
                if movement is not None:
                    reversed_qty = -movement.delta
            _adjust_reject(locked, -check.rejected_quantity)

        _shift_remaining(item, -check.total_quantity)
        check.delete()

    logger.info(f"Quality check {pk} on {gate_entry.po_number} deleted, {reversed_qty} taken back")
    return reversed_qty


def available_items():
    """Verified gate items that still have uninspected quantity"""
    return GateEntryItem.objects.select_related('gate_entry').filter(
        gate_entry__status=VERIFIED, remaining_quantity__gt=0
    ).order_by('gate_entry_id', 'id')
