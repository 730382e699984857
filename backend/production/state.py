"""
Production lifecycle.

Derived status lives here and only here. Every path that mutates a
production or its process steps calls ``apply_derived_state`` before
saving, so stored statuses never drift from the start/done flags.

Overall status:
    pending -> in_progress     any step started, or raw materials debited
    in_progress -> completed   explicit finish() only
QC flags (ready_for_qc, qc_status, qc_done) move independently of status.
"""
import logging
from decimal import Decimal

from django.utils import timezone

from backend.core.exceptions import ValidationError

logger = logging.getLogger(__name__)

PENDING = 'pending'
IN_PROGRESS = 'in_progress'
COMPLETED = 'completed'


def derive_process_status(start, done):
    if done:
        return COMPLETED
    if start:
        return IN_PROGRESS
    return PENDING


def derive_production_status(production, processes):
    if production.status == COMPLETED:
        return COMPLETED
    if production.stock_debited or any(p.start or p.done for p in processes):
        return IN_PROGRESS
    return PENDING


def can_finish(processes):
    """Every step done; a run without steps can always be finished"""
    return all(p.done for p in processes)


def apply_derived_state(production, processes=None):
    """
    Recompute process step statuses and the production status in memory.

    Returns the process list; callers persist what changed.
    """
    if processes is None:
        processes = list(production.processes.all())
    for process in processes:
        process.status = derive_process_status(process.start, process.done)
    production.status = derive_production_status(production, processes)
    return processes


def mark_ready_for_qc(production):
    production.ready_for_qc = True


def ensure_qc_pending(production):
    """Approve/reject run once; deleting QC history reopens the run for QC"""
    if production.qc_done:
        raise ValidationError(
            f'Production {production.production_id} has already been {production.qc_status}; '
            f'delete its QC history to run QC again'
        )


def record_qc_result(production, qc_status):
    production.qc_status = qc_status
    production.qc_done = True


def clear_qc_result(production):
    production.qc_status = None
    production.qc_done = False
    production.approved_qty = Decimal('0.000')
    production.rejected_qty = Decimal('0.000')


def finish(production, processes=None):
    """Explicitly complete a run. Idempotent once completed."""
    if production.status == COMPLETED:
        return False
    if processes is None:
        processes = list(production.processes.all())
    if not can_finish(processes):
        pending = [p.process_name for p in processes if not p.done]
        raise ValidationError(
            f'Cannot finish {production.production_id}: unfinished steps {", ".join(pending)}',
            data={'unfinished_steps': pending},
        )
    production.status = COMPLETED
    production.completed_at = timezone.now()
    logger.info(f"Production {production.production_id} completed")
    return True
