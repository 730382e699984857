import logging

from django.db import transaction
from django.shortcuts import get_object_or_404
from rest_framework import status
from rest_framework.decorators import api_view, permission_classes
from rest_framework.permissions import IsAuthenticated

from backend.catalog.models import Product
from backend.core.exceptions import NotFoundError, ValidationError
from backend.core.permissions import IsAllowed
from backend.core.responses import api_response
from backend.core.utils import create_audit_log
from .models import BOM, BOMFinishedGood
from .serializers import BOMSerializer, BOMLookupSerializer

logger = logging.getLogger(__name__)


def _bom_queryset():
    return BOM.objects.select_related('created_by').prefetch_related('raw_materials', 'finished_goods')


@api_view(['POST'])
@permission_classes([IsAuthenticated, IsAllowed('bom')])
def bom_create(request):
    """Create a BOM, capturing product snapshots for every referenced line"""
    serializer = BOMSerializer(data=request.data)
    serializer.is_valid(raise_exception=True)
    with transaction.atomic():
        bom = serializer.save(created_by=request.user)

    logger.info(f"BOM {bom.bom_id} created by {request.user.username}")
    create_audit_log(
        request=request,
        action='bom_create',
        model_name='BOM',
        object_id=str(bom.id),
        object_name=bom.compound_name or bom.bom_id,
        object_reference=bom.bom_id,
        changes={
            'raw_materials': bom.raw_materials.count(),
            'finished_goods': bom.finished_goods.count(),
        }
    )
    return api_response(
        BOMSerializer(_bom_queryset().get(pk=bom.pk)).data,
        message='BOM saved successfully',
        status=status.HTTP_201_CREATED,
    )


@api_view(['GET', 'PUT'])
@permission_classes([IsAuthenticated, IsAllowed('bom')])
def bom_detail(request, pk):
    """Retrieve or update a BOM"""
    bom = get_object_or_404(_bom_queryset(), pk=pk)

    if request.method == 'GET':
        return api_response(BOMSerializer(bom).data)

    serializer = BOMSerializer(bom, data=request.data, partial=True)
    serializer.is_valid(raise_exception=True)
    with transaction.atomic():
        bom = serializer.save()

    create_audit_log(
        request=request,
        action='bom_update',
        model_name='BOM',
        object_id=str(bom.id),
        object_name=bom.compound_name or bom.bom_id,
        object_reference=bom.bom_id,
        changes={'fields': sorted(k for k in request.data.keys())}
    )
    return api_response(
        BOMSerializer(_bom_queryset().get(pk=bom.pk)).data,
        message='BOM updated successfully',
    )


@api_view(['GET'])
@permission_classes([IsAuthenticated, IsAllowed('bom')])
def bom_lookup(request):
    """
    Product details (uom, category, stock) for a compound code, used to
    auto-fill BOM and production forms.
    """
    code = (request.query_params.get('code') or '').strip()
    if not code:
        raise ValidationError('Please provide code query param')

    product = Product.objects.filter(product_id=code).first()
    if product is None:
        raise NotFoundError('No matching BOM or Product found for code')

    source = 'bom.finished_goods' if BOMFinishedGood.objects.filter(code=code).exists() else 'product'
    data = BOMLookupSerializer(product).data
    data['source'] = source
    return api_response(data)
