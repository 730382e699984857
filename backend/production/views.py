import logging

from django.db import transaction
from django.shortcuts import get_object_or_404
from rest_framework import status
from rest_framework.decorators import api_view, permission_classes
from rest_framework.permissions import IsAuthenticated

from backend.bom.models import BOM
from backend.core.exceptions import NotFoundError, ValidationError
from backend.core.permissions import IsAllowed
from backend.core.responses import api_response
from backend.core.utils import create_audit_log, decimal_to_str
from . import reconciliation, state
from .filters import ProductionQCRecordFilter
from .models import Production, ProductionProcess, ProductionQCRecord
from .serializers import (
    ProductionSerializer, ProductionCreateSerializer, ProductionUpdateSerializer,
    ProductionQCRecordSerializer, QCDecisionSerializer,
)

logger = logging.getLogger(__name__)

QC_HISTORY_LIMIT = 200


def _production_queryset():
    return Production.objects.select_related('bom', 'created_by').prefetch_related(
        'finished_goods__product', 'raw_materials__product', 'processes'
    )


def _production_data(pk):
    return ProductionSerializer(_production_queryset().get(pk=pk)).data


def _qc_changes(production):
    return {
        'production_id': production.production_id,
        'status': production.status,
        'qc_status': production.qc_status,
        'approved_qty': decimal_to_str(production.approved_qty),
        'rejected_qty': decimal_to_str(production.rejected_qty),
    }


@api_view(['POST'])
@permission_classes([IsAuthenticated, IsAllowed('production')])
def production_create(request):
    """Create a production run and consume its raw materials from stock"""
    serializer = ProductionCreateSerializer(data=request.data)
    serializer.is_valid(raise_exception=True)
    data = serializer.validated_data

    bom = BOM.objects.prefetch_related('raw_materials', 'finished_goods').filter(pk=data['bom']).first()
    if bom is None:
        raise NotFoundError('BOM not found')
    data['bom'] = bom

    production = reconciliation.start_production(data, user=request.user)

    create_audit_log(
        request=request,
        action='production_start',
        model_name='Production',
        object_id=str(production.id),
        object_name=f"Production {production.production_id}",
        object_reference=production.production_id,
        changes={
            'bom': bom.bom_id,
            'raw_materials': [
                {'code': line.raw_material_code, 'consumed': decimal_to_str(line.consumed_qty)}
                for line in production.raw_materials.all()
            ],
        }
    )
    return api_response(
        _production_data(production.pk),
        message='Production created successfully',
        status=status.HTTP_201_CREATED,
    )


def _apply_manual_edits(production, data):
    """Update line quantities and process flags; no stock moves here"""
    for model_lines, items, fields in (
        (production.finished_goods, data.get('finished_goods', []), ('est_qty', 'prod_qty', 'total_cost')),
        (production.raw_materials, data.get('raw_materials', []), ('est_qty', 'used_qty', 'total_cost')),
    ):
        lines = {line.pk: line for line in model_lines.all()}
        for item in items:
            line = lines.get(item['id'])
            if line is None:
                raise ValidationError(f"Line {item['id']} does not belong to {production.production_id}")
            for field in fields:
                if field in item:
                    setattr(line, field, item[field])
            # save() recomputes remain_qty
            line.save()

    processes = list(production.processes.all())
    by_id = {process.pk: process for process in processes}
    for position, item in enumerate(data.get('processes', [])):
        process = by_id.get(item['id']) if item.get('id') else (processes[position] if position < len(processes) else None)
        if process is None:
            raise ValidationError(f'Unknown process step {item.get("id") or position + 1}')
        for field in ('process_name', 'work_done', 'start', 'done'):
            if field in item:
                setattr(process, field, item[field])

    state.apply_derived_state(production, processes)
    for process in processes:
        process.save()
    production.save()


@api_view(['GET', 'PUT', 'DELETE'])
@permission_classes([IsAuthenticated, IsAllowed('production')])
def production_detail(request, pk):
    """Retrieve, manually edit or delete a production run"""
    if request.method == 'GET':
        production = get_object_or_404(_production_queryset(), pk=pk)
        return api_response(ProductionSerializer(production).data)

    if request.method == 'PUT':
        serializer = ProductionUpdateSerializer(data=request.data)
        serializer.is_valid(raise_exception=True)
        with transaction.atomic():
            production = get_object_or_404(Production.objects.select_for_update(), pk=pk)
            _apply_manual_edits(production, serializer.validated_data)

        create_audit_log(
            request=request,
            action='update',
            model_name='Production',
            object_id=str(production.id),
            object_name=f"Production {production.production_id}",
            object_reference=production.production_id,
            changes={'status': production.status}
        )
        return api_response(_production_data(production.pk), message='Production updated successfully')

    # DELETE
    with transaction.atomic():
        production = get_object_or_404(Production.objects.select_for_update(), pk=pk)
        if production.qc_history.exists():
            raise ValidationError(
                f'Production {production.production_id} has QC history; delete the QC history entries first'
            )
        production_id = production.production_id
        production.delete()

    logger.info(f"Production {production_id} deleted by {request.user.username}")
    create_audit_log(
        request=request,
        action='delete',
        model_name='Production',
        object_id=str(pk),
        object_name=f"Production {production_id}",
        object_reference=production_id,
    )
    return api_response(None, message='Production deleted successfully')


@api_view(['PATCH'])
@permission_classes([IsAuthenticated, IsAllowed('production')])
def production_ready_for_qc(request, pk):
    with transaction.atomic():
        production = get_object_or_404(Production.objects.select_for_update(), pk=pk)
        state.mark_ready_for_qc(production)
        processes = state.apply_derived_state(production)
        ProductionProcess.objects.bulk_update(processes, ['status'])
        production.save()

    create_audit_log(
        request=request,
        action='production_ready_for_qc',
        model_name='Production',
        object_id=str(production.id),
        object_reference=production.production_id,
    )
    return api_response(_production_data(production.pk), message='Production marked ready for QC')


@api_view(['PATCH'])
@permission_classes([IsAuthenticated, IsAllowed('production')])
def production_approve(request, pk):
    """QC approval: credit usable and reject stock of every output line"""
    serializer = QCDecisionSerializer(data=request.data)
    serializer.is_valid(raise_exception=True)
    data = serializer.validated_data

    production = reconciliation.approve_production(
        pk,
        approved_qty=data['approved_qty'],
        rejected_qty=data['rejected_qty'],
        per_line=data.get('lines'),
        user=request.user,
    )

    create_audit_log(
        request=request,
        action='production_approve',
        model_name='Production',
        object_id=str(production.id),
        object_reference=production.production_id,
        changes=_qc_changes(production)
    )
    return api_response(_production_data(production.pk), message='Production approved successfully')


@api_view(['PATCH'])
@permission_classes([IsAuthenticated, IsAllowed('production')])
def production_reject(request, pk):
    """QC rejection: move output into reject stock"""
    serializer = QCDecisionSerializer(data=request.data)
    serializer.is_valid(raise_exception=True)
    data = serializer.validated_data

    production = reconciliation.reject_production(
        pk,
        reason=data['reason'],
        approved_qty=data['approved_qty'],
        rejected_qty=data['rejected_qty'],
        per_line=data.get('lines'),
        user=request.user,
    )

    changes = _qc_changes(production)
    changes['reason'] = production.reject_reason
    create_audit_log(
        request=request,
        action='production_reject',
        model_name='Production',
        object_id=str(production.id),
        object_reference=production.production_id,
        changes=changes
    )
    return api_response(_production_data(production.pk), message='Production rejected successfully')


@api_view(['PATCH'])
@permission_classes([IsAuthenticated, IsAllowed('production')])
def production_finish(request, pk):
    """Explicit completion; repeated calls on a completed run are no-ops"""
    with transaction.atomic():
        production = get_object_or_404(Production.objects.select_for_update(), pk=pk)
        processes = state.apply_derived_state(production)
        changed = state.finish(production, processes)
        ProductionProcess.objects.bulk_update(processes, ['status'])
        production.save()

    if changed:
        create_audit_log(
            request=request,
            action='production_finish',
            model_name='Production',
            object_id=str(production.id),
            object_reference=production.production_id,
        )
    message = 'Production completed' if changed else 'Production already completed'
    return api_response(_production_data(production.pk), message=message)


@api_view(['GET'])
@permission_classes([IsAuthenticated, IsAllowed('production')])
def qc_history_list(request):
    queryset = ProductionQCRecord.objects.select_related('production', 'product', 'created_by')
    filterset = ProductionQCRecordFilter(request.query_params, queryset=queryset)
    if not filterset.is_valid():
        raise ValidationError('Invalid filter', data=filterset.errors)
    records = filterset.qs[:QC_HISTORY_LIMIT]
    return api_response(ProductionQCRecordSerializer(records, many=True).data)


@api_view(['DELETE'])
@permission_classes([IsAuthenticated, IsAllowed('production')])
def qc_history_delete(request, pk):
    """Delete a QC history entry and take back the stock it credited"""
    production, reversed_qty = reconciliation.delete_qc_record(pk, user=request.user)

    create_audit_log(
        request=request,
        action='qc_history_delete',
        model_name='ProductionQCRecord',
        object_id=str(pk),
        object_reference=production.production_id,
        changes={'reversed_qty': decimal_to_str(reversed_qty), 'qc_status': production.qc_status}
    )
    return api_response(
        {'production': _production_data(production.pk), 'reversed_qty': decimal_to_str(reversed_qty)},
        message='QC history deleted successfully',
    )
