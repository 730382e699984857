from rest_framework.decorators import api_view, permission_classes
from rest_framework.permissions import IsAuthenticated
from django.shortcuts import get_object_or_404
from backend.core.permissions import IsAllowed
from backend.core.responses import api_response
from .models import Product
from .serializers import ProductSerializer, StockMovementSerializer

MOVEMENT_LIMIT = 100


@api_view(['GET'])
@permission_classes([IsAuthenticated, IsAllowed('catalog')])
def product_detail(request, pk):
    """Product with its ledger fields"""
    product = get_object_or_404(Product, pk=pk)
    return api_response(ProductSerializer(product).data)


@api_view(['GET'])
@permission_classes([IsAuthenticated, IsAllowed('catalog')])
def product_movements(request, pk):
    """Most recent stock movements for a product, optionally narrowed to one source"""
    product = get_object_or_404(Product, pk=pk)
    movements = product.movements.select_related('created_by')
    source_ref = request.query_params.get('source_ref')
    if source_ref:
        movements = movements.filter(source_ref=source_ref)
    serializer = StockMovementSerializer(movements[:MOVEMENT_LIMIT], many=True)
    return api_response(serializer.data)
