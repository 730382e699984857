from decimal import Decimal

from rest_framework import serializers

from backend.catalog.models import Product
from .models import (
    Production, ProductionFinishedGood, ProductionRawMaterial, ProductionProcess, ProductionQCRecord,
)


def quantity_field(**kwargs):
    """Non-negative quantity; negatives and non-numbers fail validation"""
    kwargs.setdefault('max_digits', 12)
    kwargs.setdefault('decimal_places', 3)
    kwargs.setdefault('min_value', Decimal('0'))
    return serializers.DecimalField(**kwargs)


class ProductionFinishedGoodSerializer(serializers.ModelSerializer):
    product_code = serializers.CharField(source='product.product_id', read_only=True, default=None)

    class Meta:
        model = ProductionFinishedGood
        fields = ['id', 'position', 'product', 'product_code', 'reference', 'product_snapshot', 'compound_code',
                  'compound_name', 'est_qty', 'prod_qty', 'remain_qty', 'uom', 'category', 'total_cost',
                  'approved_qty', 'rejected_qty']


class ProductionRawMaterialSerializer(serializers.ModelSerializer):
    product_code = serializers.CharField(source='product.product_id', read_only=True, default=None)

    class Meta:
        model = ProductionRawMaterial
        fields = ['id', 'position', 'product', 'product_code', 'product_snapshot', 'raw_material_code',
                  'raw_material_name', 'est_qty', 'used_qty', 'remain_qty', 'consumed_qty', 'uom', 'category',
                  'weight', 'tolerance', 'code_no', 'total_cost']


class ProductionProcessSerializer(serializers.ModelSerializer):
    class Meta:
        model = ProductionProcess
        fields = ['id', 'position', 'process_name', 'work_done', 'start', 'done', 'status']


class ProductionSerializer(serializers.ModelSerializer):
    bom_id = serializers.CharField(source='bom.bom_id', read_only=True)
    finished_goods = ProductionFinishedGoodSerializer(many=True, read_only=True)
    raw_materials = ProductionRawMaterialSerializer(many=True, read_only=True)
    processes = ProductionProcessSerializer(many=True, read_only=True)
    created_by_username = serializers.CharField(source='created_by.username', read_only=True, default=None)

    class Meta:
        model = Production
        fields = ['id', 'production_id', 'bom', 'bom_id', 'status', 'stock_debited', 'ready_for_qc', 'qc_status',
                  'qc_done', 'approved_qty', 'rejected_qty', 'reject_reason', 'completed_at', 'finished_goods',
                  'raw_materials', 'processes', 'created_by', 'created_by_username', 'created_at', 'updated_at']
        read_only_fields = fields


class ProductionQCRecordSerializer(serializers.ModelSerializer):
    production_code = serializers.CharField(source='production.production_id', read_only=True)
    product_code = serializers.CharField(source='product.product_id', read_only=True)
    product_name = serializers.CharField(source='product.name', read_only=True)
    created_by_username = serializers.CharField(source='created_by.username', read_only=True, default=None)

    class Meta:
        model = ProductionQCRecord
        fields = ['id', 'production', 'production_code', 'finished_good', 'product', 'product_code', 'product_name',
                  'action', 'approved_quantity', 'rejected_quantity', 'reason', 'created_by',
                  'created_by_username', 'created_at']


# Input serializers

class FinishedGoodInputSerializer(serializers.Serializer):
    bom_line = serializers.IntegerField(required=False)
    product = serializers.PrimaryKeyRelatedField(queryset=Product.objects.all(), required=False, allow_null=True)
    compound_code = serializers.CharField(required=False, allow_blank=True)
    compound_name = serializers.CharField(required=False, allow_blank=True)
    est_qty = quantity_field(required=False)
    prod_qty = quantity_field(required=False)
    uom = serializers.CharField(required=False, allow_blank=True)
    category = serializers.CharField(required=False, allow_blank=True)
    total_cost = serializers.DecimalField(max_digits=14, decimal_places=2, min_value=Decimal('0'), required=False, allow_null=True)


class RawMaterialInputSerializer(serializers.Serializer):
    bom_line = serializers.IntegerField(required=False)
    product = serializers.PrimaryKeyRelatedField(queryset=Product.objects.all(), required=False, allow_null=True)
    raw_material_code = serializers.CharField(required=False, allow_blank=True)
    raw_material_name = serializers.CharField(required=False, allow_blank=True)
    est_qty = quantity_field(required=False, allow_null=True)
    used_qty = quantity_field(required=False)
    uom = serializers.CharField(required=False, allow_blank=True)
    category = serializers.CharField(required=False, allow_blank=True)
    weight = serializers.CharField(required=False, allow_blank=True)
    tolerance = serializers.CharField(required=False, allow_blank=True)
    code_no = serializers.CharField(required=False, allow_blank=True)
    total_cost = serializers.DecimalField(max_digits=14, decimal_places=2, min_value=Decimal('0'), required=False, allow_null=True)


class ProcessInputSerializer(serializers.Serializer):
    id = serializers.IntegerField(required=False)
    process_name = serializers.CharField(required=False, allow_blank=True)
    work_done = quantity_field(required=False)
    start = serializers.BooleanField(required=False)
    done = serializers.BooleanField(required=False)


class ProductionCreateSerializer(serializers.Serializer):
    bom = serializers.IntegerField(error_messages={'required': 'BOM is required', 'null': 'BOM is required'})
    finished_goods = FinishedGoodInputSerializer(many=True, required=False)
    raw_materials = RawMaterialInputSerializer(many=True, required=False)
    processes = ProcessInputSerializer(many=True, required=False)


class FinishedGoodUpdateSerializer(serializers.Serializer):
    id = serializers.IntegerField()
    est_qty = quantity_field(required=False)
    prod_qty = quantity_field(required=False)
    total_cost = serializers.DecimalField(max_digits=14, decimal_places=2, min_value=Decimal('0'), required=False)


class RawMaterialUpdateSerializer(serializers.Serializer):
    id = serializers.IntegerField()
    est_qty = quantity_field(required=False)
    used_qty = quantity_field(required=False)
    total_cost = serializers.DecimalField(max_digits=14, decimal_places=2, min_value=Decimal('0'), required=False)


class ProductionUpdateSerializer(serializers.Serializer):
    """Manual edits; quantities here never move stock"""
    finished_goods = FinishedGoodUpdateSerializer(many=True, required=False)
    raw_materials = RawMaterialUpdateSerializer(many=True, required=False)
    processes = ProcessInputSerializer(many=True, required=False)


class QCLineSerializer(serializers.Serializer):
    approved_qty = quantity_field(required=False, default=Decimal('0'))
    rejected_qty = quantity_field(required=False, default=Decimal('0'))


class QCDecisionSerializer(serializers.Serializer):
    approved_qty = quantity_field(required=False, default=Decimal('0'))
    rejected_qty = quantity_field(required=False, default=Decimal('0'))
    lines = QCLineSerializer(many=True, required=False)
    reason = serializers.CharField(required=False, allow_blank=True, default='')
