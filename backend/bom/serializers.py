import re

from rest_framework import serializers

from backend.catalog.models import Product
from backend.core.sequences import save_with_identifier
from .models import BOM, BOMRawMaterial, BOMFinishedGood
from .snapshots import snapshot_lines, RAW_MATERIAL_FIELDS, FINISHED_GOOD_FIELDS

BOM_ID_WIDTH = 3


def bom_prefix(compound_codes):
    """First three letters of the first compound code, e.g. 'rub-12' -> 'RUB'"""
    first = compound_codes[0] if compound_codes else ''
    return re.sub(r'[^a-zA-Z]', '', first or '').upper()[:3] or 'BOM'


def _clean_strings(values):
    return [value.strip() for value in values if value and value.strip()]


class BOMRawMaterialSerializer(serializers.ModelSerializer):
    product = serializers.PrimaryKeyRelatedField(queryset=Product.objects.all(), required=False, allow_null=True)

    class Meta:
        model = BOMRawMaterial
        fields = ['id', 'position', 'product', 'raw_material_name', 'raw_material_code', 'weight', 'tolerance',
                  'uom', 'category', 'code_no', 'comment', 'product_snapshot']
        read_only_fields = ['position', 'product_snapshot']

    def validate(self, attrs):
        if not attrs.get('product') and not attrs.get('raw_material_code') and not attrs.get('raw_material_name'):
            raise serializers.ValidationError('Raw material needs a product, code or name')
        return attrs


class BOMFinishedGoodSerializer(serializers.ModelSerializer):
    product = serializers.PrimaryKeyRelatedField(queryset=Product.objects.all(), required=False, allow_null=True)

    class Meta:
        model = BOMFinishedGood
        fields = ['id', 'position', 'line_type', 'product', 'reference', 'code', 'name', 'quantity', 'tolerance',
                  'uom', 'category', 'comment', 'product_snapshot']
        read_only_fields = ['position', 'product_snapshot']

    def validate_quantity(self, value):
        if value < 0:
            raise serializers.ValidationError('Quantity cannot be negative')
        return value


class BOMSerializer(serializers.ModelSerializer):
    raw_materials = BOMRawMaterialSerializer(many=True, required=False)
    finished_goods = BOMFinishedGoodSerializer(many=True, required=False)
    compound_codes = serializers.ListField(child=serializers.CharField(allow_blank=True), required=False)
    part_names = serializers.ListField(child=serializers.CharField(allow_blank=True), required=False)
    hardnesses = serializers.ListField(child=serializers.CharField(allow_blank=True), required=False)
    processes = serializers.ListField(child=serializers.CharField(allow_blank=True), required=False)
    created_by_username = serializers.CharField(source='created_by.username', read_only=True, default=None)

    class Meta:
        model = BOM
        fields = ['id', 'bom_id', 'compound_codes', 'compound_name', 'part_names', 'hardnesses', 'processes',
                  'quantity', 'comment', 'raw_materials', 'finished_goods', 'created_by', 'created_by_username',
                  'created_at', 'updated_at']
        read_only_fields = ['bom_id', 'created_by', 'created_at', 'updated_at']

    def validate(self, attrs):
        for key in ('compound_codes', 'part_names', 'hardnesses', 'processes'):
            if key in attrs:
                attrs[key] = _clean_strings(attrs[key])
        if not self.instance and not attrs.get('raw_materials'):
            raise serializers.ValidationError({'raw_materials': 'A BOM needs at least one raw material'})
        return attrs

    def _write_lines(self, bom, raw_lines, finished_lines, previous_raw=None, previous_finished=None):
        snapshot_lines(raw_lines, RAW_MATERIAL_FIELDS, previous_raw)
        snapshot_lines(finished_lines, FINISHED_GOOD_FIELDS, previous_finished)
        BOMRawMaterial.objects.bulk_create([
            BOMRawMaterial(bom=bom, position=index, **{k: v for k, v in line.items() if k != 'id'})
            for index, line in enumerate(raw_lines)
        ])
        BOMFinishedGood.objects.bulk_create([
            BOMFinishedGood(bom=bom, position=index, **{k: v for k, v in line.items() if k != 'id'})
            for index, line in enumerate(finished_lines)
        ])

    def create(self, validated_data):
        raw_lines = validated_data.pop('raw_materials', [])
        finished_lines = validated_data.pop('finished_goods', [])
        bom = BOM(**validated_data)
        save_with_identifier(bom, 'bom_id', bom_prefix(bom.compound_codes), BOM_ID_WIDTH)
        self._write_lines(bom, raw_lines, finished_lines)
        return bom

    def update(self, instance, validated_data):
        raw_lines = validated_data.pop('raw_materials', None)
        finished_lines = validated_data.pop('finished_goods', None)
        instance = super().update(instance, validated_data)

        # Lines are replaced wholesale; snapshots survive for unchanged products
        previous_raw, previous_finished = {}, {}
        if raw_lines is not None:
            previous_raw = {
                line.product_id: line.product_snapshot
                for line in instance.raw_materials.all() if line.product_id and line.product_snapshot
            }
            instance.raw_materials.all().delete()
        if finished_lines is not None:
            previous_finished = {
                line.product_id: line.product_snapshot
                for line in instance.finished_goods.all() if line.product_id and line.product_snapshot
            }
            instance.finished_goods.all().delete()
        self._write_lines(instance, raw_lines or [], finished_lines or [], previous_raw, previous_finished)
        return instance


class BOMLookupSerializer(serializers.ModelSerializer):
    class Meta:
        model = Product
        fields = ['id', 'product_id', 'name', 'uom', 'category', 'current_stock']
