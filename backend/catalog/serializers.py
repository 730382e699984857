from rest_framework import serializers
from .models import Product, StockMovement


class ProductSerializer(serializers.ModelSerializer):
    unit_price = serializers.DecimalField(max_digits=12, decimal_places=2, read_only=True)

    class Meta:
        model = Product
        fields = ['id', 'product_id', 'name', 'category', 'uom', 'price', 'latest_price', 'updated_price',
                  'unit_price', 'current_stock', 'reject_stock', 'last_change', 'created_at', 'updated_at']
        read_only_fields = ['current_stock', 'reject_stock', 'last_change', 'created_at', 'updated_at']


class StockMovementSerializer(serializers.ModelSerializer):
    created_by_username = serializers.CharField(source='created_by.username', read_only=True, default=None)

    class Meta:
        model = StockMovement
        fields = ['id', 'delta', 'balance_after', 'reason', 'source_type', 'source_ref',
                  'created_by', 'created_by_username', 'created_at']
