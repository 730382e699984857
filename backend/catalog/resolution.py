"""
Product resolution chain.

Line items reach the stock ledger through several denormalized copies
(BOM snapshot, production line, QC request) and any one identifying field
may be stale or missing. ``resolve_product`` tries an ordered list of
strategies and returns the first single match:

1. Direct product id
2. BOM composite reference ("<id>-<name>"): left part as id, then as code
3. Snapshot code, then snapshot id
4. Exact product code
5. Case-insensitive exact name
6. Case-insensitive name substring
7. Code equality OR name substring, across both loose inputs

Steps 1-4 look up unique keys. Steps 5-7 raise AmbiguousReferenceError
when more than one product matches. When nothing matches the chain raises
ProductNotResolvedError, so a quantity movement is never skipped silently.
"""
import logging
from dataclasses import dataclass, field
from typing import Optional

from django.db.models import Q

from backend.core.exceptions import AmbiguousReferenceError, ProductNotResolvedError
from .models import Product

logger = logging.getLogger(__name__)

MAX_CANDIDATES = 5


@dataclass(frozen=True)
class LineReference:
    """Everything a line item knows about the product it refers to"""
    product_pk: Optional[object] = None
    composite: str = ''
    snapshot: dict = field(default_factory=dict)
    code: str = ''
    name: str = ''
    label: str = ''

    def describe(self):
        return self.label or self.name or self.code or self.composite or str(self.product_pk or '?')


@dataclass(frozen=True)
class Resolution:
    product: Product
    strategy: str


def parse_pk(value) -> Optional[int]:
    """Return a positive integer primary key or None if ``value`` is not one"""
    if value is None or isinstance(value, bool):
        return None
    if isinstance(value, int):
        return value if value > 0 else None
    text = str(value).strip()
    if not text.isdigit():
        return None
    number = int(text)
    return number if number > 0 else None


def split_composite(composite):
    """'12-Rubber Compound' -> '12'; split happens at the first hyphen only"""
    if not composite:
        return ''
    return str(composite).split('-', 1)[0].strip()


def _by_pk(value):
    pk = parse_pk(value)
    if pk is None:
        return None
    return Product.objects.filter(pk=pk).first()


def _by_code(value):
    code = str(value).strip() if value else ''
    if not code:
        return None
    return Product.objects.filter(product_id=code).first()


def _single(queryset, reference):
    """Return the only match, None for no match, raise when ambiguous"""
    matches = list(queryset.order_by('pk')[:MAX_CANDIDATES + 1])
    if not matches:
        return None
    if len(matches) > 1:
        candidates = [p.product_id for p in matches[:MAX_CANDIDATES]]
        raise AmbiguousReferenceError(reference.describe(), candidates)
    return matches[0]


def _strategies(reference):
    code = (reference.code or '').strip()
    name = (reference.name or '').strip()
    snapshot = reference.snapshot or {}
    composite_key = split_composite(reference.composite)

    yield 'direct_id', lambda: _by_pk(reference.product_pk)
    yield 'composite_id', lambda: _by_pk(composite_key)
    yield 'composite_code', lambda: _by_code(composite_key)
    yield 'snapshot_code', lambda: _by_code(snapshot.get('product_id'))
    yield 'snapshot_id', lambda: _by_pk(snapshot.get('id'))
    yield 'code', lambda: _by_code(code)
    if name:
        yield 'name_exact', lambda: _single(Product.objects.filter(name__iexact=name), reference)
        yield 'name_contains', lambda: _single(Product.objects.filter(name__icontains=name), reference)

    loose = [value for value in (code, name) if value]
    if loose:
        condition = Q()
        for value in loose:
            condition |= Q(product_id=value) | Q(name__icontains=value)
        yield 'code_or_name', lambda: _single(Product.objects.filter(condition), reference)


def resolve_product(reference: LineReference) -> Resolution:
    """
    Resolve ``reference`` to exactly one Product.

    Read-only and deterministic: resolving the same reference twice without
    intervening writes yields the same product.
    """
    for strategy, lookup in _strategies(reference):
        product = lookup()
        if product is not None:
            logger.debug(f"Resolved '{reference.describe()}' to {product.product_id} via {strategy}")
            return Resolution(product=product, strategy=strategy)

    logger.warning(f"Could not resolve product for line item '{reference.describe()}'")
    raise ProductNotResolvedError(reference.describe())
