"""
Transactional reconciliation of production events with the stock ledger.

Each stock-affecting operation (start, approve, reject, undo of an approval)
runs inside one ReconciliationUnit: product rows are locked in pk order,
every line is resolved and checked before anything is written, and either
all ledger mutations plus the production changes commit or none do.
"""
import logging
from collections import OrderedDict, defaultdict
from decimal import Decimal, InvalidOperation

from django.db import transaction

from backend.catalog import ledger
from backend.catalog.models import Product
from backend.catalog.resolution import LineReference, resolve_product
from backend.core.exceptions import InsufficientStockError, NotFoundError, ValidationError
from backend.core.sequences import save_with_identifier
from . import state
from .models import (
    Production, ProductionFinishedGood, ProductionRawMaterial, ProductionProcess, ProductionQCRecord,
)

logger = logging.getLogger(__name__)

ZERO = Decimal('0.000')
PRODUCTION_PREFIX = 'PROD'
PRODUCTION_ID_WIDTH = 4
SOURCE_TYPE = 'production'


class ReconciliationUnit:
    """
    One atomic stock operation.

    Commits on a clean exit, rolls back and re-raises on any exception.
    Leaving the unit a second time is a no-op.
    """

    def __init__(self, operation, reference, user=None):
        self.operation = operation
        self.reference = reference
        self.user = user
        self.movements = []
        self._atomic = None
        self._closed = False

    def __enter__(self):
        self._atomic = transaction.atomic()
        self._atomic.__enter__()
        logger.info(f"Reconciliation {self.operation} {self.reference}: begin")
        return self

    def __exit__(self, exc_type, exc_value, traceback):
        if self._closed:
            return False
        self._closed = True
        self._atomic.__exit__(exc_type, exc_value, traceback)
        if exc_type is None:
            logger.info(f"Reconciliation {self.operation} {self.reference}: committed ({len(self.movements)} stock movements)")
        else:
            logger.warning(f"Reconciliation {self.operation} {self.reference}: aborted ({exc_type.__name__}: {exc_value})")
        return False

    def record(self, movement):
        if movement is not None:
            self.movements.append(movement)
        return movement


def raw_material_reference(line):
    return LineReference(
        product_pk=line.product_id,
        snapshot=line.product_snapshot or {},
        code=line.raw_material_code,
        name=line.raw_material_name,
        label=line.raw_material_name or line.raw_material_code,
    )


def finished_good_reference(line):
    return LineReference(
        product_pk=line.product_id,
        composite=line.reference,
        snapshot=line.product_snapshot or {},
        code=line.compound_code,
        name=line.compound_name,
        label=line.compound_name or line.compound_code or line.reference,
    )


# ---------------------------------------------------------------------------
# Building a production from its BOM
# ---------------------------------------------------------------------------

def _parse_weight(weight):
    try:
        return Decimal(str(weight).strip()) if weight not in (None, '') else ZERO
    except (InvalidOperation, ValueError):
        return ZERO


def _unit_price(product_pk=None, code='', name=''):
    """Best-effort price lookup for cost estimates; never fails"""
    product = None
    if product_pk:
        product = Product.objects.filter(pk=product_pk).first()
    if product is None and code:
        product = Product.objects.filter(product_id=code).first()
    if product is None and name:
        product = Product.objects.filter(name=name).first()
    return product.unit_price if product else ZERO


def _match_bom_line(bom_lines, bom_line_id, code, name, code_attr, name_attr):
    if bom_line_id:
        for line in bom_lines:
            if line.pk == bom_line_id:
                return line
        raise ValidationError(f'BOM line {bom_line_id} does not belong to this BOM')
    for line in bom_lines:
        if (code and getattr(line, code_attr) == code) or (name and getattr(line, name_attr) == name):
            return line
    return None


def build_finished_goods(bom, items):
    bom_lines = list(bom.finished_goods.all())
    if not items:
        items = [{'bom_line': line.pk, 'est_qty': line.quantity} for line in bom_lines]

    lines = []
    for position, data in enumerate(items):
        bom_line = _match_bom_line(
            bom_lines, data.get('bom_line'), data.get('compound_code'), data.get('compound_name'), 'code', 'name'
        )
        identified = any(data.get(key) for key in ('bom_line', 'product', 'compound_code', 'compound_name'))
        if bom_line is None and bom_lines and not identified:
            bom_line = bom_lines[0]
        snapshot = bom_line.product_snapshot if bom_line else None
        product = data.get('product')
        line = ProductionFinishedGood(
            position=position,
            product_id=product.pk if product else (bom_line.product_id if bom_line else None),
            reference=bom_line.reference if bom_line else '',
            product_snapshot=snapshot,
            compound_code=data.get('compound_code') or (bom_line.code if bom_line else '') or next(iter(bom.compound_codes), ''),
            compound_name=data.get('compound_name') or (bom_line.name if bom_line else '') or bom.compound_name,
            est_qty=data.get('est_qty') or ZERO,
            prod_qty=data.get('prod_qty') or ZERO,
            uom=data.get('uom') or (bom_line.uom if bom_line else '') or (snapshot or {}).get('uom', ''),
            category=data.get('category') or (bom_line.category if bom_line else '') or (snapshot or {}).get('category', ''),
        )
        if data.get('total_cost') is not None:
            line.total_cost = data['total_cost']
        else:
            price = _unit_price(line.product_id, line.compound_code, line.compound_name)
            line.total_cost = (line.est_qty * price).quantize(Decimal('0.01'))
        lines.append(line)
    return lines


def build_raw_materials(bom, items, compound_est_qty):
    bom_lines = list(bom.raw_materials.all())
    if not items:
        items = [{'bom_line': line.pk} for line in bom_lines]

    lines = []
    for position, data in enumerate(items):
        bom_line = _match_bom_line(
            bom_lines, data.get('bom_line'), data.get('raw_material_code'), data.get('raw_material_name'),
            'raw_material_code', 'raw_material_name',
        )
        snapshot = bom_line.product_snapshot if bom_line else None
        product = data.get('product')
        weight = data.get('weight') or (bom_line.weight if bom_line else '')
        est_qty = data.get('est_qty')
        if est_qty is None:
            est_qty = _parse_weight(weight) * compound_est_qty
        line = ProductionRawMaterial(
            position=position,
            product_id=product.pk if product else (bom_line.product_id if bom_line else None),
            product_snapshot=snapshot,
            raw_material_code=data.get('raw_material_code') or (bom_line.raw_material_code if bom_line else ''),
            raw_material_name=data.get('raw_material_name') or (bom_line.raw_material_name if bom_line else ''),
            est_qty=est_qty,
            used_qty=data.get('used_qty') or ZERO,
            uom=data.get('uom') or (bom_line.uom if bom_line else '') or (snapshot or {}).get('uom', ''),
            category=data.get('category') or (bom_line.category if bom_line else '') or (snapshot or {}).get('category', ''),
            weight=weight,
            tolerance=data.get('tolerance') or (bom_line.tolerance if bom_line else ''),
            code_no=data.get('code_no') or (bom_line.code_no if bom_line else ''),
        )
        if not (line.product_id or line.raw_material_code or line.raw_material_name):
            raise ValidationError(f'Raw material line {position + 1} has no product, code or name')
        if data.get('total_cost') is not None:
            line.total_cost = data['total_cost']
        else:
            price = _unit_price(line.product_id, line.raw_material_code, line.raw_material_name)
            line.total_cost = (est_qty * price).quantize(Decimal('0.01'))
        lines.append(line)
    return lines


def build_processes(bom, items):
    if not items:
        items = [{'process_name': name} for name in bom.processes]
    processes = []
    for position, data in enumerate(items):
        name = data.get('process_name') or (bom.processes[position] if position < len(bom.processes) else '')
        processes.append(ProductionProcess(
            position=position,
            process_name=name,
            work_done=data.get('work_done') or ZERO,
            start=bool(data.get('start')),
            done=bool(data.get('done')),
        ))
    return processes


# ---------------------------------------------------------------------------
# Start
# ---------------------------------------------------------------------------

def start_production(data, user=None):
    """
    Create a production from a validated payload and debit its raw materials.

    Every raw line is resolved and every shortfall collected before any
    stock moves; a single shortfall aborts the whole creation.
    """
    bom = data['bom']
    finished_goods = build_finished_goods(bom, data.get('finished_goods'))
    compound_est_qty = finished_goods[0].est_qty if finished_goods else ZERO
    raw_materials = build_raw_materials(bom, data.get('raw_materials'), compound_est_qty)
    processes = build_processes(bom, data.get('processes'))

    with ReconciliationUnit('start', f'BOM {bom.bom_id}', user) as unit:
        plan = []
        for line in raw_materials:
            quantity = line.quantity_to_consume
            if quantity <= 0:
                continue
            product = resolve_product(raw_material_reference(line)).product
            line.product = product
            plan.append((line, product, quantity))

        locked = ledger.lock_products(product.pk for _, product, _ in plan)
        required = OrderedDict()
        labels = defaultdict(list)
        for line, product, quantity in plan:
            required[product.pk] = required.get(product.pk, ZERO) + quantity
            labels[product.pk].append(line.raw_material_name or line.raw_material_code)

        shortfalls = [
            ledger.shortfall_entry(', '.join(labels[pk]), locked[pk], quantity, locked[pk].current_stock)
            for pk, quantity in required.items()
            if locked[pk].current_stock < quantity
        ]
        if shortfalls:
            raise InsufficientStockError(shortfalls)

        production = Production(bom=bom, created_by=user if user and user.is_authenticated else None)
        save_with_identifier(production, 'production_id', PRODUCTION_PREFIX, PRODUCTION_ID_WIDTH)
        unit.reference = production.production_id

        for line, product, quantity in plan:
            unit.record(ledger.debit_stock(
                locked[product.pk], quantity,
                reason=f'Consumed for production {production.production_id}',
                source_type=SOURCE_TYPE,
                source_ref=production.production_id,
                user=user,
                line=line.raw_material_name or line.raw_material_code,
            ))
            line.consumed_qty = quantity

        for line in finished_goods + raw_materials + processes:
            line.production = production
        for line in finished_goods + raw_materials:
            line.save()

        production.stock_debited = bool(plan)
        state.apply_derived_state(production, processes)
        ProductionProcess.objects.bulk_create(processes)
        production.save()

    return production


# ---------------------------------------------------------------------------
# QC approve / reject
# ---------------------------------------------------------------------------

def _lock_production(pk):
    try:
        return Production.objects.select_for_update().get(pk=pk)
    except Production.DoesNotExist:
        raise NotFoundError(f'Production {pk} not found')


def line_quantities(lines, approved_qty=ZERO, rejected_qty=ZERO, per_line=None):
    """
    Pair every output line with its (approved, rejected) quantities.

    Per-line quantities are matched by position; otherwise the top-level
    quantities belong to the first output line.
    """
    if per_line:
        if len(per_line) > len(lines):
            raise ValidationError(f'Got quantities for {len(per_line)} lines but the production has {len(lines)}')
        pairs = [(item.get('approved_qty') or ZERO, item.get('rejected_qty') or ZERO) for item in per_line]
        pairs += [(ZERO, ZERO)] * (len(lines) - len(pairs))
    else:
        pairs = [(approved_qty, rejected_qty)] + [(ZERO, ZERO)] * (len(lines) - 1)
    return list(zip(lines, pairs))


def approve_production(pk, approved_qty=ZERO, rejected_qty=ZERO, per_line=None, user=None):
    """
    Credit finished goods for an approved run.

    Per output line the usable credit is the approved quantity, or the
    produced quantity when none was approved; rejected quantity goes to
    reject stock on the same product.
    """
    with ReconciliationUnit('approve', f'production {pk}', user) as unit:
        production = _lock_production(pk)
        unit.reference = production.production_id
        state.ensure_qc_pending(production)

        lines = list(production.finished_goods.all())
        plan = []
        for line, (approved, rejected) in line_quantities(lines, approved_qty, rejected_qty, per_line):
            delta = approved if approved > 0 else line.prod_qty
            if delta <= 0 and rejected <= 0:
                continue
            product = resolve_product(finished_good_reference(line)).product
            plan.append((line, product, delta, rejected))
        if not plan:
            raise ValidationError(f'Nothing to approve on {production.production_id}: no approved or produced quantity')

        locked = ledger.lock_products(product.pk for _, product, _, _ in plan)
        total_approved = total_rejected = ZERO
        for line, product, delta, rejected in plan:
            stock_row = locked[product.pk]
            if delta > 0:
                unit.record(ledger.credit_stock(
                    stock_row, delta,
                    reason=f'Approved in QC for production {production.production_id}',
                    source_type=SOURCE_TYPE,
                    source_ref=production.production_id,
                    user=user,
                ))
            if rejected > 0:
                ledger.add_reject_stock(stock_row, rejected)

            line.product = product
            line.approved_qty = max(ZERO, delta)
            line.rejected_qty = rejected
            line.save()
            ProductionQCRecord.objects.create(
                production=production,
                finished_good=line,
                product=product,
                action='approved',
                approved_quantity=max(ZERO, delta),
                rejected_quantity=rejected,
                created_by=user if user and user.is_authenticated else None,
            )
            total_approved += max(ZERO, delta)
            total_rejected += rejected

        production.approved_qty = total_approved
        production.rejected_qty = total_rejected
        state.record_qc_result(production, 'approved')
        processes = state.apply_derived_state(production)
        ProductionProcess.objects.bulk_update(processes, ['status'])
        production.save()

    return production


def reject_production(pk, reason='', approved_qty=ZERO, rejected_qty=ZERO, per_line=None, user=None):
    """
    Move a rejected run's output into reject stock.

    Per output line the rejected quantity, or the produced quantity when
    none was given, is added to reject stock. Usable stock is untouched.
    """
    with ReconciliationUnit('reject', f'production {pk}', user) as unit:
        production = _lock_production(pk)
        unit.reference = production.production_id
        state.ensure_qc_pending(production)

        lines = list(production.finished_goods.all())
        plan = []
        for line, (_approved, rejected) in line_quantities(lines, approved_qty, rejected_qty, per_line):
            quantity = rejected if rejected > 0 else line.prod_qty
            if quantity <= 0:
                continue
            product = resolve_product(finished_good_reference(line)).product
            plan.append((line, product, quantity))
        if not plan:
            raise ValidationError(f'Nothing to reject on {production.production_id}: no rejected or produced quantity')

        locked = ledger.lock_products(product.pk for _, product, _ in plan)
        total_rejected = ZERO
        for line, product, quantity in plan:
            ledger.add_reject_stock(locked[product.pk], quantity)
            line.product = product
            line.rejected_qty = quantity
            line.save()
            ProductionQCRecord.objects.create(
                production=production,
                finished_good=line,
                product=product,
                action='rejected',
                approved_quantity=ZERO,
                rejected_quantity=quantity,
                reason=reason,
                created_by=user if user and user.is_authenticated else None,
            )
            total_rejected += quantity

        production.reject_reason = reason
        production.approved_qty = ZERO
        production.rejected_qty = total_rejected
        state.record_qc_result(production, 'rejected')
        processes = state.apply_derived_state(production)
        ProductionProcess.objects.bulk_update(processes, ['status'])
        production.save()

    return production


# ---------------------------------------------------------------------------
# Undo
# ---------------------------------------------------------------------------

def delete_qc_record(pk, user=None):
    """
    Delete a QC history row and take back what it booked: the usable stock it
    credited and the reject stock it added, each floored at zero. The
    production totals drop by the record's quantities. Returns (production,
    reversed usable quantity).
    """
    with ReconciliationUnit('undo-approve-on-delete', f'qc record {pk}', user) as unit:
        try:
            record = ProductionQCRecord.objects.select_for_update().get(pk=pk)
        except ProductionQCRecord.DoesNotExist:
            raise NotFoundError(f'QC history entry {pk} not found')

        production = _lock_production(record.production_id)
        unit.reference = production.production_id
        locked = ledger.lock_products([record.product_id])
        stock_row = locked[record.product_id]

        reversed_qty = ZERO
        if record.approved_quantity > 0:
            movement = unit.record(ledger.reverse_credit(
                stock_row, record.approved_quantity,
                reason=f'QC history deleted for production {production.production_id}',
                source_type=SOURCE_TYPE,
                source_ref=production.production_id,
                user=user,
            ))
            if movement is not None:
                reversed_qty = -movement.delta
        if record.rejected_quantity > 0:
            ledger.remove_reject_stock(stock_row, record.rejected_quantity)

        if record.finished_good_id:
            line = ProductionFinishedGood.objects.get(pk=record.finished_good_id)
            line.approved_qty = max(ZERO, line.approved_qty - record.approved_quantity)
            line.rejected_qty = max(ZERO, line.rejected_qty - record.rejected_quantity)
            line.save()

        record.delete()
        production.approved_qty = max(ZERO, production.approved_qty - record.approved_quantity)
        production.rejected_qty = max(ZERO, production.rejected_qty - record.rejected_quantity)
        if not production.qc_history.exists():
            state.clear_qc_result(production)
        production.save()

    return production, reversed_qty
