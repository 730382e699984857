import logging

from django.shortcuts import get_object_or_404
from rest_framework import status
from rest_framework.decorators import api_view, permission_classes
from rest_framework.permissions import IsAuthenticated

from backend.core.exceptions import ValidationError
from backend.core.permissions import IsAllowed
from backend.core.responses import api_response
from backend.core.utils import create_audit_log, decimal_to_str
from . import services
from .models import GateEntry, QualityCheck
from .serializers import (
    GateEntrySerializer, QualityCheckSerializer, QualityCheckCreateSerializer, QualityCheckUpdateSerializer,
    AvailableItemSerializer,
)

logger = logging.getLogger(__name__)


def _check_changes(check):
    return {
        'gate_entry': check.gate_entry.po_number,
        'item_name': check.item_name,
        'approved_quantity': decimal_to_str(check.approved_quantity),
        'rejected_quantity': decimal_to_str(check.rejected_quantity),
    }


@api_view(['POST'])
@permission_classes([IsAuthenticated, IsAllowed('quality')])
def gate_entry_create(request):
    serializer = GateEntrySerializer(data=request.data)
    serializer.is_valid(raise_exception=True)
    gate_entry = serializer.save(created_by=request.user)
    create_audit_log(
        request=request,
        action='create',
        model_name='GateEntry',
        object_id=str(gate_entry.id),
        object_name=str(gate_entry),
        object_reference=gate_entry.po_number,
    )
    return api_response(GateEntrySerializer(gate_entry).data, message='Gate entry created',
                        status=status.HTTP_201_CREATED)


@api_view(['PATCH'])
@permission_classes([IsAuthenticated, IsAllowed('quality')])
def gate_entry_verify(request, pk):
    gate_entry = get_object_or_404(GateEntry, pk=pk)
    if gate_entry.status == 'Completed':
        raise ValidationError(f'Gate entry {gate_entry.po_number} is already completed')
    gate_entry.status = 'Verified'
    gate_entry.save(update_fields=['status', 'updated_at'])
    return api_response(GateEntrySerializer(gate_entry).data, message='Gate entry verified')


@api_view(['GET', 'POST'])
@permission_classes([IsAuthenticated, IsAllowed('quality')])
def quality_check_list(request):
    """List checks of one gate entry, or record a new check and move its stock"""
    if request.method == 'GET':
        gate_entry_id = request.query_params.get('gate_entry')
        if not gate_entry_id:
            raise ValidationError('gate_entry query parameter is required')
        checks = QualityCheck.objects.select_related('gate_entry', 'created_by').filter(gate_entry_id=gate_entry_id)
        return api_response(QualityCheckSerializer(checks, many=True).data)

    serializer = QualityCheckCreateSerializer(data=request.data)
    serializer.is_valid(raise_exception=True)
    check = services.create_quality_check(serializer.validated_data, user=request.user)

    create_audit_log(
        request=request,
        action='quality_check_create',
        model_name='QualityCheck',
        object_id=str(check.id),
        object_name=check.item_name,
        object_reference=check.gate_entry.po_number,
        changes=_check_changes(check)
    )
    return api_response(QualityCheckSerializer(check).data, message='Quality check saved',
                        status=status.HTTP_201_CREATED)


@api_view(['GET', 'PUT', 'DELETE'])
@permission_classes([IsAuthenticated, IsAllowed('quality')])
def quality_check_detail(request, pk):
    if request.method == 'GET':
        check = get_object_or_404(QualityCheck.objects.select_related('gate_entry', 'created_by'), pk=pk)
        return api_response(QualityCheckSerializer(check).data)

    if request.method == 'PUT':
        serializer = QualityCheckUpdateSerializer(data=request.data)
        serializer.is_valid(raise_exception=True)
        check = services.update_quality_check(pk, serializer.validated_data, user=request.user)
        create_audit_log(
            request=request,
            action='quality_check_update',
            model_name='QualityCheck',
            object_id=str(check.id),
            object_name=check.item_name,
            object_reference=check.gate_entry.po_number,
            changes=_check_changes(check)
        )
        return api_response(QualityCheckSerializer(check).data, message='Quality check updated')

    # DELETE
    reversed_qty = services.delete_quality_check(pk, user=request.user)
    create_audit_log(
        request=request,
        action='quality_check_delete',
        model_name='QualityCheck',
        object_id=str(pk),
        changes={'reversed_qty': decimal_to_str(reversed_qty)}
    )
    return api_response({'reversed_qty': decimal_to_str(reversed_qty)}, message='Quality check deleted')


@api_view(['GET'])
@permission_classes([IsAuthenticated, IsAllowed('quality')])
def available_products(request):
    return api_response(AvailableItemSerializer(services.available_items(), many=True).data)
