"""
Human-readable identifier sequencing (PROD-0001, RUB-001, ...)

The next value is computed from the highest existing identifier. Identifier
fields carry a unique constraint, so two concurrent writers that compute
the same value collide on insert and the loser retries.
"""
import logging
import re

from django.db import IntegrityError, transaction
from django.db.models.functions import Length

from .exceptions import IdentifierCollisionError

logger = logging.getLogger(__name__)

MAX_ATTEMPTS = 3


def format_identifier(prefix, number, width):
    return f"{prefix}-{number:0{width}d}"


def next_identifier(model, field, prefix, width):
    """
    Return the next identifier for ``prefix`` on ``model.field``.

    Only values shaped like ``PREFIX-<width digits>`` take part, plus longer
    suffixes without a leading zero once the counter outgrows ``width``.
    Short, over-padded or non-numeric suffixes never disturb the sequence.
    Longer suffixes sort first so ``PREFIX-10000`` follows ``PREFIX-9999``.
    """
    pattern = rf'^{re.escape(prefix)}-([0-9]{{{width}}}|[1-9][0-9]{{{width},}})$'
    last_value = (
        model.objects.filter(**{f'{field}__regex': pattern})
        .annotate(identifier_length=Length(field))
        .order_by('-identifier_length', f'-{field}')
        .values_list(field, flat=True)
        .first()
    )
    last_number = int(last_value.rsplit('-', 1)[-1]) if last_value else 0
    return format_identifier(prefix, last_number + 1, width)


def save_with_identifier(instance, field, prefix, width, attempts=MAX_ATTEMPTS):
    """
    Assign the next identifier to ``instance`` and save it.

    Each attempt runs in its own savepoint so a collision does not poison an
    enclosing transaction. Integrity errors unrelated to the identifier are
    re-raised untouched.
    """
    model = type(instance)
    for attempt in range(1, attempts + 1):
        value = next_identifier(model, field, prefix, width)
        setattr(instance, field, value)
        try:
            with transaction.atomic():
                instance.save()
            return instance
        except IntegrityError:
            if not model.objects.filter(**{field: value}).exists():
                raise
            logger.warning(f"{model.__name__} identifier {value} already taken (attempt {attempt}/{attempts})")
            instance.pk = None
    raise IdentifierCollisionError(f'Could not allocate a unique {model.__name__} identifier for prefix {prefix}')
